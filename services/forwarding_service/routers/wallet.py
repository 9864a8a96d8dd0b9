"""Wallet ledger endpoints: balances for users, release/reverse for admins."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import get_current_user, require_admin
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.forwarding_service.models import LedgerStatus
from services.forwarding_service.schemas import (
    LedgerMovementResponse,
    PoolsResponse,
    TransactionListResponse,
    WalletSummaryResponse,
    WalletTransactionResponse,
)
from services.forwarding_service.services import wallet_ledger
from services.forwarding_service.services.wallet_ledger import LedgerSummary
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/wallet", tags=["wallet"])


def _summary_response(summary: LedgerSummary, include_pools: bool) -> WalletSummaryResponse:
    return WalletSummaryResponse(
        user_id=summary.user_id,
        credits=summary.credits,
        debits=summary.debits,
        net_balance=summary.net_balance,
        pending_payout=summary.pending_payout,
        pools=PoolsResponse.model_validate(summary.pools, from_attributes=True)
        if include_pools
        else None,
    )


# ---------------------------------------------------------------------------
# Caller's own ledger
# ---------------------------------------------------------------------------


@router.get("/me", response_model=WalletSummaryResponse)
async def get_my_wallet(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    summary = await wallet_ledger.summarize(db, user_id=current_user.user_id)
    return _summary_response(summary, include_pools=current_user.is_admin)


@router.get("/me/transactions", response_model=TransactionListResponse)
async def list_my_transactions(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    transactions, total = await wallet_ledger.list_transactions(
        db, user_id=current_user.user_id, skip=skip, limit=limit
    )
    return TransactionListResponse(
        transactions=[WalletTransactionResponse.model_validate(t) for t in transactions],
        total=total,
        skip=skip,
        limit=limit,
    )


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@router.get("/summary", response_model=WalletSummaryResponse)
async def get_wallet_summary(
    user_id: str = Query(..., min_length=1),
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Balances for any user plus the platform commission and master pools."""
    summary = await wallet_ledger.summarize(db, user_id=user_id)
    return _summary_response(summary, include_pools=True)


@router.get("/transactions", response_model=TransactionListResponse)
async def list_transactions(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    user_id: Optional[str] = None,
    txn_status: Optional[LedgerStatus] = Query(None, alias="status"),
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    transactions, total = await wallet_ledger.list_transactions(
        db, user_id=user_id, status=txn_status, skip=skip, limit=limit
    )
    return TransactionListResponse(
        transactions=[WalletTransactionResponse.model_validate(t) for t in transactions],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("/{transaction_id}/release", response_model=LedgerMovementResponse)
async def release_transaction(
    transaction_id: uuid.UUID,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Pay a held entry out to the shipper."""
    movement = await wallet_ledger.release(
        db, transaction_id=transaction_id, actor=admin
    )
    return LedgerMovementResponse(
        transaction=WalletTransactionResponse.model_validate(movement.transaction),
        balance_delta=movement.balance_delta,
    )


@router.post("/{transaction_id}/reverse", response_model=LedgerMovementResponse)
async def reverse_transaction(
    transaction_id: uuid.UUID,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Claw back a released entry in full."""
    movement = await wallet_ledger.reverse(
        db, transaction_id=transaction_id, actor=admin
    )
    return LedgerMovementResponse(
        transaction=WalletTransactionResponse.model_validate(movement.transaction),
        balance_delta=movement.balance_delta,
    )
