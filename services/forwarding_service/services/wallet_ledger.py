"""Wallet ledger: captured payments held for shippers, released or reversed by admins.

Each entry moves through ``pending -> completed <-> reversed`` (or
``pending -> failed``). The payee's balance moves by
``amount - processor_fee - commission`` on release and by the negative of
that on reversal, so release-then-reverse nets to zero.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from libs.auth.models import AuthUser
from libs.common.currency import ZERO, to_money
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.forwarding_service.errors import (
    InvalidLedgerTransition,
    NotFound,
    ValidationError,
)
from services.forwarding_service.models import (
    LedgerAction,
    LedgerAuditLog,
    LedgerEntryType,
    LedgerStatus,
    ServiceType,
    WalletTransaction,
)
from services.forwarding_service.services.locks import ledger_locks
from services.forwarding_service.services.pricing import ChargeSchedule
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

# action -> (states it may start from, state it lands in)
_TRANSITIONS = {
    LedgerAction.RELEASE: (
        (LedgerStatus.PENDING, LedgerStatus.REVERSED),
        LedgerStatus.COMPLETED,
    ),
    LedgerAction.REVERSE: ((LedgerStatus.COMPLETED,), LedgerStatus.REVERSED),
    LedgerAction.FAIL: ((LedgerStatus.PENDING,), LedgerStatus.FAILED),
}


@dataclass(frozen=True)
class LedgerMovement:
    transaction: WalletTransaction
    balance_delta: Decimal


@dataclass(frozen=True)
class LedgerPools:
    commission_pool: Decimal
    processor_fees: Decimal
    master_pool: Decimal


@dataclass(frozen=True)
class LedgerSummary:
    user_id: str
    credits: Decimal
    debits: Decimal
    net_balance: Decimal
    pending_payout: Decimal
    pools: LedgerPools


# ---------------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------------


async def get_by_processor_ref(
    db: AsyncSession, processor_ref: str
) -> Optional[WalletTransaction]:
    result = await db.execute(
        select(WalletTransaction).where(WalletTransaction.processor_ref == processor_ref)
    )
    return result.scalar_one_or_none()


async def record_capture(
    db: AsyncSession,
    *,
    order_id: uuid.UUID,
    payer_id: str,
    payee_id: str,
    amount: Decimal,
    processor_fee: Decimal,
    commission_rule: ChargeSchedule,
    service_type: ServiceType,
    processor_ref: str,
    description: Optional[str] = None,
    commit: bool = True,
) -> tuple[WalletTransaction, bool]:
    """Record a captured payment as a pending credit for the payee.

    Idempotent on ``processor_ref``. Returns ``(transaction, created)``.
    """
    existing = await get_by_processor_ref(db, processor_ref)
    if existing:
        logger.info("Capture %s already recorded as %s", processor_ref, existing.id)
        return existing, False

    amount = to_money(amount)
    processor_fee = to_money(processor_fee)
    commission = commission_rule.apply(amount)
    if amount <= ZERO:
        raise ValidationError("Captured amount must be positive", amount=str(amount))
    if processor_fee < ZERO:
        raise ValidationError("Processor fee cannot be negative")
    if processor_fee + commission > amount:
        raise ValidationError(
            "Fees and commission exceed the captured amount",
            amount=str(amount),
            processor_fee=str(processor_fee),
            commission=str(commission),
        )

    txn = WalletTransaction(
        order_id=order_id,
        user_id=payee_id,
        payer_id=payer_id,
        service_type=service_type,
        transaction_type=LedgerEntryType.CREDIT,
        amount=amount,
        processor_fee=processor_fee,
        commission_amount=commission,
        status=LedgerStatus.PENDING,
        description=description,
        processor_ref=processor_ref,
    )
    db.add(txn)
    await db.flush()

    if commit:
        await db.commit()
        await db.refresh(txn)

    logger.info(
        "Recorded capture %s for order %s: amount=%s fee=%s commission=%s payee=%s",
        processor_ref,
        order_id,
        amount,
        processor_fee,
        commission,
        payee_id,
    )
    return txn, True


# ---------------------------------------------------------------------------
# Release / reverse
# ---------------------------------------------------------------------------


async def get_transaction(
    db: AsyncSession, transaction_id: uuid.UUID, *, for_update: bool = False
) -> WalletTransaction:
    query = select(WalletTransaction).where(WalletTransaction.id == transaction_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    txn = (await db.execute(query)).scalar_one_or_none()
    if txn is None:
        raise NotFound(f"Wallet transaction {transaction_id} not found")
    return txn


async def _move(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    action: LedgerAction,
    actor: AuthUser,
    commit: bool = True,
) -> LedgerMovement:
    sources, target = _TRANSITIONS[action]

    async with ledger_locks.hold(transaction_id):
        txn = await get_transaction(db, transaction_id, for_update=True)
        if txn.status not in sources:
            log = logger.error if actor.is_system else logger.warning
            log(
                "Refused %s of wallet transaction %s in status %s (actor %s)",
                action.value,
                txn.id,
                txn.status.value,
                actor.user_id,
            )
            raise InvalidLedgerTransition(
                f"Cannot {action.value} a transaction that is {txn.status.value}",
                transaction_status=txn.status.value,
            )

        if action == LedgerAction.RELEASE:
            delta = txn.payee_share
            txn.released_at = utc_now()
            txn.released_by = actor.user_id
        elif action == LedgerAction.REVERSE:
            delta = -txn.payee_share
            txn.reversed_at = utc_now()
            txn.reversed_by = actor.user_id
        else:
            delta = ZERO

        previous = txn.status
        txn.status = target
        db.add(
            LedgerAuditLog(
                transaction_id=txn.id,
                action=action,
                from_status=previous,
                to_status=target,
                balance_delta=delta,
                performed_by=actor.user_id,
            )
        )
        if commit:
            await db.commit()
            await db.refresh(txn)
        else:
            await db.flush()

    logger.info(
        "Wallet transaction %s %s -> %s by %s (payee %s delta %s)",
        txn.id,
        previous.value,
        target.value,
        actor.user_id,
        txn.user_id,
        delta,
    )
    return LedgerMovement(transaction=txn, balance_delta=delta)


async def release(
    db: AsyncSession, *, transaction_id: uuid.UUID, actor: AuthUser
) -> LedgerMovement:
    """Pay a pending (or previously reversed) entry out to the payee."""
    return await _move(db, transaction_id, LedgerAction.RELEASE, actor)


async def reverse(
    db: AsyncSession, *, transaction_id: uuid.UUID, actor: AuthUser
) -> LedgerMovement:
    """Claw back a released entry in full."""
    return await _move(db, transaction_id, LedgerAction.REVERSE, actor)


async def mark_failed(
    db: AsyncSession,
    *,
    transaction_id: uuid.UUID,
    actor: AuthUser,
    commit: bool = True,
) -> LedgerMovement:
    return await _move(db, transaction_id, LedgerAction.FAIL, actor, commit=commit)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def list_transactions(
    db: AsyncSession,
    *,
    user_id: Optional[str] = None,
    status: Optional[LedgerStatus] = None,
    skip: int = 0,
    limit: int = 50,
) -> tuple[list[WalletTransaction], int]:
    query = select(WalletTransaction)
    if user_id is not None:
        query = query.where(
            (WalletTransaction.user_id == user_id)
            | (WalletTransaction.payer_id == user_id)
        )
    if status is not None:
        query = query.where(WalletTransaction.status == status)

    total = (
        await db.execute(select(func.count()).select_from(query.subquery()))
    ).scalar_one()
    result = await db.execute(
        query.order_by(WalletTransaction.created_at.desc()).offset(skip).limit(limit)
    )
    return list(result.scalars().all()), total


def _sum(expr):
    return func.coalesce(func.sum(expr), 0)


async def summarize(db: AsyncSession, *, user_id: str) -> LedgerSummary:
    """Balances for one user plus the platform pools. Read-only."""
    share = (
        WalletTransaction.amount
        - WalletTransaction.processor_fee
        - WalletTransaction.commission_amount
    )
    completed = WalletTransaction.status == LedgerStatus.COMPLETED
    held = WalletTransaction.status.in_([LedgerStatus.PENDING, LedgerStatus.REVERSED])

    row = (
        await db.execute(
            select(
                _sum(case(((WalletTransaction.user_id == user_id) & completed, share))),
                _sum(
                    case(
                        (
                            (WalletTransaction.payer_id == user_id) & completed,
                            WalletTransaction.amount,
                        )
                    )
                ),
                _sum(
                    case(
                        (
                            (WalletTransaction.user_id == user_id)
                            & (WalletTransaction.status == LedgerStatus.PENDING),
                            share,
                        )
                    )
                ),
                _sum(case((completed, WalletTransaction.commission_amount))),
                _sum(case((completed, WalletTransaction.processor_fee))),
                _sum(case((held, WalletTransaction.amount))),
            )
        )
    ).one()
    credits, debits, pending, commission_pool, fees, master_pool = (
        to_money(Decimal(str(value))) for value in row
    )

    return LedgerSummary(
        user_id=user_id,
        credits=credits,
        debits=debits,
        net_balance=credits - debits,
        pending_payout=pending,
        pools=LedgerPools(
            commission_pool=commission_pool,
            processor_fees=fees,
            master_pool=master_pool,
        ),
    )
