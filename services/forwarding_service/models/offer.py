"""Shipper offers (bids) on an order."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.forwarding_service.models.enums import (
    ACTIVE_OFFER_STATUSES,
    OfferStatus,
    enum_values,
)
from sqlalchemy import CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Numeric, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

_ACCEPTED_ONLY = text("status = 'accepted'")
_ACTIVE_ONLY = text(
    "status IN ({})".format(", ".join(f"'{s.value}'" for s in ACTIVE_OFFER_STATUSES))
)


class Offer(Base):
    __tablename__ = "offers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id"), nullable=False, index=True
    )
    shipper_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[OfferStatus] = mapped_column(
        SAEnum(
            OfferStatus,
            name="offer_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=OfferStatus.PENDING,
        nullable=False,
    )
    decided_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_OFFER_STATUSES

    __table_args__ = (
        CheckConstraint("price > 0", name="ck_offer_price_positive"),
        # At most one accepted offer per order.
        Index(
            "uq_offers_one_accepted_per_order",
            "order_id",
            unique=True,
            postgresql_where=_ACCEPTED_ONLY,
            sqlite_where=_ACCEPTED_ONLY,
        ),
        # At most one live bid per shipper per order.
        Index(
            "uq_offers_one_active_per_shipper",
            "order_id",
            "shipper_id",
            unique=True,
            postgresql_where=_ACTIVE_ONLY,
            sqlite_where=_ACTIVE_ONLY,
        ),
    )

    def __repr__(self) -> str:
        return f"<Offer {self.id} {self.status.value} {self.price}>"
