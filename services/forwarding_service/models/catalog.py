"""Admin-managed catalog: add-on services and payment plans."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.forwarding_service.models.enums import (
    ChargeType,
    PlanRole,
    ServiceType,
    enum_values,
)
from sqlalchemy import Boolean, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class AddonService(Base):
    """Extra handling a shopper can add to an order (packing, insurance, ...)."""

    __tablename__ = "addon_services"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    is_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_addon_service_price_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<AddonService {self.title} {self.price}>"


class PaymentPlan(Base):
    """
    A percent or fixed charge rule.

    Shopper plans are surcharged onto order totals; shipper plans are the
    platform commission taken from captured payments.
    """

    __tablename__ = "payment_plans"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    role: Mapped[PlanRole] = mapped_column(
        SAEnum(
            PlanRole,
            name="plan_role_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    # NULL applies the plan to both service types.
    service_type: Mapped[Optional[ServiceType]] = mapped_column(
        SAEnum(
            ServiceType,
            name="service_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=True,
    )
    charge_type: Mapped[ChargeType] = mapped_column(
        SAEnum(
            ChargeType,
            name="charge_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_payment_plan_amount_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<PaymentPlan {self.title} {self.role.value} {self.charge_type.value} {self.amount}>"
