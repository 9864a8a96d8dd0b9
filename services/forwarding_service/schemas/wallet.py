"""Wallet ledger response schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict
from services.forwarding_service.models.enums import (
    LedgerEntryType,
    LedgerStatus,
    ServiceType,
)


class WalletTransactionResponse(BaseModel):
    id: uuid.UUID
    order_id: uuid.UUID
    user_id: str
    payer_id: str
    service_type: ServiceType
    transaction_type: LedgerEntryType
    amount: Decimal
    processor_fee: Decimal
    commission_amount: Decimal
    payee_share: Decimal
    status: LedgerStatus
    description: Optional[str] = None
    processor_ref: str
    released_at: Optional[datetime] = None
    released_by: Optional[str] = None
    reversed_at: Optional[datetime] = None
    reversed_by: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionListResponse(BaseModel):
    transactions: list[WalletTransactionResponse]
    total: int
    skip: int
    limit: int


class LedgerMovementResponse(BaseModel):
    transaction: WalletTransactionResponse
    balance_delta: Decimal


class PoolsResponse(BaseModel):
    commission_pool: Decimal
    processor_fees: Decimal
    master_pool: Decimal


class WalletSummaryResponse(BaseModel):
    user_id: str
    credits: Decimal
    debits: Decimal
    net_balance: Decimal
    pending_payout: Decimal
    pools: Optional[PoolsResponse] = None
