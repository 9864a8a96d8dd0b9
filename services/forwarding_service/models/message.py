"""Per-order messages and their moderated attachments."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.forwarding_service.models.enums import MessageStatus, enum_values
from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id"), nullable=False
    )
    sender_id: Mapped[str] = mapped_column(String, nullable=False)
    sender_role: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    receiver_id: Mapped[str] = mapped_column(String, nullable=False)
    text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[MessageStatus] = mapped_column(
        SAEnum(
            MessageStatus,
            name="message_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=MessageStatus.PENDING,
        nullable=False,
        index=True,
    )
    moderated_by: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    moderated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    attachments: Mapped[list["MessageAttachment"]] = relationship(
        back_populates="message", lazy="selectin", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("ix_messages_order_created", "order_id", "created_at"),)

    def __repr__(self) -> str:
        return f"<Message {self.id} {self.status.value}>"


class MessageAttachment(Base):
    """Reference to a file already uploaded to storage."""

    __tablename__ = "message_attachments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    message_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("messages.id", ondelete="CASCADE"), nullable=False, index=True
    )
    file_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    file_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)

    message: Mapped["Message"] = relationship(back_populates="attachments")
