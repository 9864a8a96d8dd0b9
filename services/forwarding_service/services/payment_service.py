"""Checkout and capture: turning an accepted offer into a ledger entry."""

import hashlib
import hmac
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from libs.auth.models import SYSTEM_ACTOR, AuthUser
from libs.common.config import get_settings
from libs.common.currency import to_money
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.forwarding_service.errors import (
    CheckoutInProgress,
    DomainError,
    ExternalPaymentFailure,
    IllegalTransition,
    PermissionDenied,
    ValidationError,
)
from services.forwarding_service.models import (
    LedgerStatus,
    Offer,
    Order,
    OrderStatus,
    WalletTransaction,
)
from services.forwarding_service.payment_client import (
    PaymentGatewayClient,
    PaymentGatewayError,
)
from services.forwarding_service.services import (
    catalog_service,
    order_service,
    wallet_ledger,
)
from services.forwarding_service.services.locks import order_locks
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

settings = get_settings()


@dataclass
class CheckoutOutcome:
    order: Order
    amount_due: Decimal
    transaction: Optional[WalletTransaction] = None


def verify_signature(raw_body: bytes, signature: str) -> bool:
    """HMAC-SHA512 of the raw callback body with the shared webhook secret."""
    secret = (settings.PAYMENT_WEBHOOK_SECRET or "").encode("utf-8")
    digest = hmac.new(secret, raw_body, hashlib.sha512).hexdigest()
    return hmac.compare_digest(digest, signature)


def amount_due(order: Order, offer: Offer) -> Decimal:
    """What the shopper pays: the order's grand total plus the shipper's price."""
    return to_money(order_service.order_totals(order).grand_total + offer.price)


def default_processor_fee(amount: Decimal) -> Decimal:
    fee = amount * settings.PROCESSOR_FEE_PERCENT / Decimal(100) + settings.PROCESSOR_FEE_FIXED
    return min(to_money(fee), to_money(amount))


async def _accepted_offer(db: AsyncSession, order: Order) -> Offer:
    offer = (
        await db.get(Offer, order.accepted_offer_id) if order.accepted_offer_id else None
    )
    if offer is None:
        raise IllegalTransition(
            f"Order {order.request_number} has no accepted offer",
            current_status=order.status.value,
        )
    return offer


async def checkout(
    db: AsyncSession,
    *,
    order_id: uuid.UUID,
    actor: AuthUser,
    gateway: PaymentGatewayClient,
) -> CheckoutOutcome:
    """Request payment for an accepted order and capture it synchronously.

    The order moves to ``payment_required`` and the attempt is recorded on it
    before the gateway is called. Every retry sends the same idempotency key
    until a capture is recorded or declined, so a timed-out call that did
    charge the card is not charged again. A second checkout while a call is
    outstanding is refused.
    """
    async with order_locks.hold(order_id):
        order = await order_service.get_order_for_update(db, order_id)
        if not (actor.is_admin or actor.user_id == order.requester_id):
            raise PermissionDenied("Only the order's requester can pay for it")
        if order.status == OrderStatus.OFFER_ACCEPTED:
            await order_service.apply_transition(
                db, order, OrderStatus.PAYMENT_REQUIRED, actor
            )
        elif order.status != OrderStatus.PAYMENT_REQUIRED:
            raise IllegalTransition(
                f"Order {order.request_number} is '{order.status.value}', not awaiting payment",
                current_status=order.status.value,
            )
        if order_service.capture_in_flight(order):
            raise CheckoutInProgress(
                f"A payment for order {order.request_number} is already being processed",
                order_id=str(order.id),
            )
        due = amount_due(order, await _accepted_offer(db, order))
        if order.capture_key is None:
            order.capture_key = f"{order.request_number}-{uuid.uuid4().hex[:12]}"
        order.capture_started_at = utc_now()
        key = order.capture_key
        await db.commit()

    try:
        result = await gateway.capture(
            reference=order.request_number, amount=due, idempotency_key=key
        )
    except PaymentGatewayError as e:
        logger.warning(
            "Capture for order %s failed: %s", order.request_number, e.message
        )
        await _finish_capture_attempt(db, order.id, keep_key=True)
        raise ExternalPaymentFailure(
            f"Payment processor error: {e.message}",
            order_id=str(order.id),
            processor_status=e.status_code,
        ) from e

    if result.status == "failed":
        await _finish_capture_attempt(db, order.id, keep_key=False)
        raise ExternalPaymentFailure(
            "Payment was declined by the processor",
            order_id=str(order.id),
            processor_ref=result.processor_ref,
        )

    transaction = None
    if result.succeeded:
        try:
            transaction, _ = await apply_capture(
                db,
                order_id=order.id,
                amount=result.amount,
                processor_ref=result.processor_ref,
                processor_fee=result.fee,
            )
        except DomainError:
            logger.error(
                "Capture %s for order %s succeeded but was not recorded; reconcile",
                result.processor_ref,
                order.request_number,
            )
            await _finish_capture_attempt(db, order.id, keep_key=True)
            raise
        await db.refresh(order)
    else:
        logger.info(
            "Capture %s for order %s is %s; awaiting callback",
            result.processor_ref,
            order.request_number,
            result.status,
        )
        await _finish_capture_attempt(db, order.id, keep_key=True)

    return CheckoutOutcome(order=order, amount_due=due, transaction=transaction)


async def _finish_capture_attempt(
    db: AsyncSession, order_id: uuid.UUID, *, keep_key: bool
) -> None:
    """Clear the in-flight marker; drop the key once the processor declined it."""
    await db.rollback()
    async with order_locks.hold(order_id):
        order = await order_service.get_order_for_update(db, order_id)
        order.capture_started_at = None
        if not keep_key:
            order.capture_key = None
        await db.commit()


async def apply_capture(
    db: AsyncSession,
    *,
    order_id: uuid.UUID,
    amount: Decimal,
    processor_ref: str,
    processor_fee: Optional[Decimal] = None,
) -> tuple[WalletTransaction, bool]:
    """Record a successful capture and mark the order paid.

    Safe to call again with the same ``processor_ref``. Returns
    ``(transaction, created)``.
    """
    async with order_locks.hold(order_id):
        existing = await wallet_ledger.get_by_processor_ref(db, processor_ref)
        if existing is not None:
            if existing.order_id != order_id:
                raise ValidationError(
                    "Processor reference belongs to a different order",
                    processor_ref=processor_ref,
                )
            return existing, False

        order = await order_service.get_order_for_update(db, order_id)
        if order.status != OrderStatus.PAYMENT_REQUIRED:
            raise IllegalTransition(
                f"Order {order.request_number} is '{order.status.value}', not awaiting payment",
                current_status=order.status.value,
            )
        offer = await _accepted_offer(db, order)
        due = amount_due(order, offer)
        if to_money(amount) != due:
            raise ValidationError(
                "Captured amount does not match the amount due",
                amount=str(to_money(amount)),
                amount_due=str(due),
            )

        txn, _ = await wallet_ledger.record_capture(
            db,
            order_id=order.id,
            payer_id=order.requester_id,
            payee_id=offer.shipper_id,
            amount=due,
            processor_fee=(
                processor_fee if processor_fee is not None else default_processor_fee(due)
            ),
            commission_rule=await catalog_service.commission_schedule(
                db, order.service_type
            ),
            service_type=order.service_type,
            processor_ref=processor_ref,
            description=f"Payment for order {order.request_number}",
            commit=False,
        )
        await order_service.apply_transition(
            db, order, OrderStatus.PAYMENT_COMPLETED, SYSTEM_ACTOR
        )
        order.capture_started_at = None
        await db.commit()
        await db.refresh(txn)

    logger.info("Order %s paid via %s", order.request_number, processor_ref)
    return txn, True


async def apply_capture_failure(
    db: AsyncSession, *, order_id: uuid.UUID, processor_ref: str
) -> Optional[WalletTransaction]:
    """Processor reported a failed capture after we recorded it.

    The entry is failed and the order goes back to ``payment_required`` in one
    transaction, with a fresh idempotency key for the next attempt. Once the
    order is past payment the failure is refused and left for an operator.
    """
    txn = await wallet_ledger.get_by_processor_ref(db, processor_ref)
    if txn is None:
        logger.info(
            "Failed capture %s for order %s had no ledger entry", processor_ref, order_id
        )
        return None
    if txn.order_id != order_id:
        raise ValidationError(
            "Processor reference belongs to a different order",
            processor_ref=processor_ref,
        )
    if txn.status == LedgerStatus.FAILED:
        return txn

    async with order_locks.hold(order_id):
        order = await order_service.get_order_for_update(db, order_id)
        if order.status != OrderStatus.PAYMENT_COMPLETED:
            logger.error(
                "Capture %s failed but order %s is already '%s'; reconcile",
                processor_ref,
                order.request_number,
                order.status.value,
            )
            raise IllegalTransition(
                f"Order {order.request_number} is '{order.status.value}'; "
                "its payment can no longer be failed",
                current_status=order.status.value,
            )
        movement = await wallet_ledger.mark_failed(
            db, transaction_id=txn.id, actor=SYSTEM_ACTOR, commit=False
        )
        await order_service.apply_transition(
            db, order, OrderStatus.PAYMENT_REQUIRED, SYSTEM_ACTOR
        )
        order.capture_key = None
        await db.commit()
        await db.refresh(movement.transaction)

    logger.warning(
        "Order %s back to payment_required after failed capture %s",
        order.request_number,
        processor_ref,
    )
    return movement.transaction
