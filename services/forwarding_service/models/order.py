"""Order aggregate: the order row plus its pricing snapshot tables."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.forwarding_service.models.enums import (
    ChargeType,
    OrderStatus,
    ServiceType,
    enum_values,
)
from sqlalchemy import Boolean, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship


class Order(Base):
    """
    A shopper's forwarding request.

    Totals are not stored; they are recomputed from the line items and the
    service/surcharge snapshots. ``version`` is bumped on every update so
    concurrent writers from other processes fail instead of overwriting.
    """

    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    request_number: Mapped[str] = mapped_column(
        String(20), unique=True, index=True, nullable=False
    )
    requester_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    service_type: Mapped[ServiceType] = mapped_column(
        SAEnum(
            ServiceType,
            name="service_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )

    ship_from_country_id: Mapped[int] = mapped_column(Integer, nullable=False)
    ship_from_state_id: Mapped[int] = mapped_column(Integer, nullable=False)
    ship_from_city_id: Mapped[int] = mapped_column(Integer, nullable=False)
    ship_to_country_id: Mapped[int] = mapped_column(Integer, nullable=False)
    ship_to_state_id: Mapped[int] = mapped_column(Integer, nullable=False)
    ship_to_city_id: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(
            OrderStatus,
            name="order_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=OrderStatus.OPEN,
        nullable=False,
        index=True,
    )
    accepted_offer_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Idempotency key sent with every capture attempt until one is recorded or
    # declined; ``capture_started_at`` is set while a gateway call is in flight.
    capture_key: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    capture_started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    delivered_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    line_items: Mapped[list["OrderLineItem"]] = relationship(
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderLineItem.position",
    )
    services: Mapped[list["OrderServiceSelection"]] = relationship(
        back_populates="order", lazy="selectin", cascade="all, delete-orphan"
    )
    surcharges: Mapped[list["OrderSurcharge"]] = relationship(
        back_populates="order", lazy="selectin", cascade="all, delete-orphan"
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Order {self.request_number} {self.status.value}>"


class OrderLineItem(Base):
    __tablename__ = "order_line_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    product_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    unit_weight: Mapped[Decimal] = mapped_column(
        Numeric(10, 3), default=Decimal("0"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    order: Mapped["Order"] = relationship(back_populates="line_items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_line_item_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_line_item_price_non_negative"),
    )


class OrderServiceSelection(Base):
    """Snapshot of an add-on service as charged on the order."""

    __tablename__ = "order_services"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    addon_service_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("addon_services.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(120), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    is_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    order: Mapped["Order"] = relationship(back_populates="services")


class OrderSurcharge(Base):
    """Snapshot of a shopper payment plan in force when the order was placed."""

    __tablename__ = "order_surcharges"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    payment_plan_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("payment_plans.id"), nullable=True
    )
    title: Mapped[str] = mapped_column(String(120), nullable=False)
    charge_type: Mapped[ChargeType] = mapped_column(
        SAEnum(
            ChargeType,
            name="charge_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    order: Mapped["Order"] = relationship(back_populates="surcharges")


Index("ix_orders_requester_created", Order.requester_id, Order.created_at)
