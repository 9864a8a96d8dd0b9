"""Customs declaration filed for an order's shipment."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.forwarding_service.models.enums import ServiceType, enum_values
from sqlalchemy import Boolean, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class CustomsDeclaration(Base):
    """
    One declaration per order, written by the requester or the accepted shipper.

    Declared value and weight are copied from the order's totals each time the
    declaration is saved, so they always match what the shopper was charged.
    """

    __tablename__ = "customs_declarations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id"), unique=True, nullable=False
    )
    shipping_type: Mapped[ServiceType] = mapped_column(
        SAEnum(
            ServiceType,
            name="service_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )

    # Sender
    from_name: Mapped[str] = mapped_column(String(255), nullable=False)
    from_business: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    from_street: Mapped[str] = mapped_column(String(255), nullable=False)
    from_postcode: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    from_country_id: Mapped[int] = mapped_column(Integer, nullable=False)
    from_state_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    from_city_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Recipient
    to_name: Mapped[str] = mapped_column(String(255), nullable=False)
    to_business: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    to_street: Mapped[str] = mapped_column(String(255), nullable=False)
    to_postcode: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    to_country_id: Mapped[int] = mapped_column(Integer, nullable=False)
    to_state_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    to_city_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    importer_reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    importer_contact: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    category_commercial_sample: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    category_gift: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    category_returned_goods: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    category_documents: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    category_other: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    explanation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    office_origin_posting: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )

    doc_licence: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    doc_certificate: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    doc_invoice: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    contains_prohibited_items: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    contains_liquids: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    contains_batteries: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    is_fragile: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    total_declared_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_weight: Mapped[Decimal] = mapped_column(Numeric(10, 3), nullable=False)

    submitted_by: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<CustomsDeclaration {self.order_id}>"
