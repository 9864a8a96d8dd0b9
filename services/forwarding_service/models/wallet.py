"""Wallet ledger entries and their audit trail."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.forwarding_service.models.enums import (
    LedgerAction,
    LedgerEntryType,
    LedgerStatus,
    ServiceType,
    enum_values,
)
from sqlalchemy import CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, validates

_IMMUTABLE_AMOUNTS = ("amount", "processor_fee", "commission_amount")


class WalletTransaction(Base):
    """
    A captured payment owed to a shipper.

    Amounts are fixed at capture time; only ``status`` and the
    release/reverse stamps ever change.
    """

    __tablename__ = "wallet_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    payer_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    service_type: Mapped[ServiceType] = mapped_column(
        SAEnum(
            ServiceType,
            name="service_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    transaction_type: Mapped[LedgerEntryType] = mapped_column(
        SAEnum(
            LedgerEntryType,
            name="ledger_entry_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=LedgerEntryType.CREDIT,
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    processor_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    commission_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[LedgerStatus] = mapped_column(
        SAEnum(
            LedgerStatus,
            name="ledger_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=LedgerStatus.PENDING,
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processor_ref: Mapped[str] = mapped_column(
        String, unique=True, index=True, nullable=False
    )
    released_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    released_by: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    reversed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    reversed_by: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    @validates(*_IMMUTABLE_AMOUNTS)
    def _freeze_amounts(self, key: str, value: Decimal) -> Decimal:
        if getattr(self, key) is not None:
            raise ValueError(f"WalletTransaction.{key} is immutable")
        return value

    @property
    def payee_share(self) -> Decimal:
        """What the payee's balance moves by when this entry is released."""
        return self.amount - self.processor_fee - self.commission_amount

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_wallet_transaction_amount_positive"),
        CheckConstraint(
            "processor_fee >= 0 AND commission_amount >= 0",
            name="ck_wallet_transaction_deductions_non_negative",
        ),
        CheckConstraint(
            "processor_fee + commission_amount <= amount",
            name="ck_wallet_transaction_deductions_within_amount",
        ),
        Index("ix_wallet_transactions_user_status", "user_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<WalletTransaction {self.id} {self.status.value} {self.amount}>"


class LedgerAuditLog(Base):
    """Who moved a ledger entry between states, and by how much."""

    __tablename__ = "ledger_audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    transaction_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("wallet_transactions.id"), nullable=False, index=True
    )
    action: Mapped[LedgerAction] = mapped_column(
        SAEnum(
            LedgerAction,
            name="ledger_action_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    from_status: Mapped[LedgerStatus] = mapped_column(
        SAEnum(
            LedgerStatus,
            name="ledger_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    to_status: Mapped[LedgerStatus] = mapped_column(
        SAEnum(
            LedgerStatus,
            name="ledger_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    balance_delta: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    performed_by: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
