"""Unit tests for checkout, capture callbacks and the gateway client."""

import asyncio
import hashlib
import hmac
from datetime import timedelta
from decimal import Decimal

import httpx
import pytest
from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from services.forwarding_service.errors import (
    CheckoutInProgress,
    ExternalPaymentFailure,
    IllegalTransition,
    PermissionDenied,
    ValidationError,
)
from services.forwarding_service.models import (
    LedgerStatus,
    OrderStatus,
    WalletTransaction,
)
from services.forwarding_service.payment_client import (
    PaymentGatewayClient,
    PaymentGatewayError,
)
from services.forwarding_service.services import order_service, payment_service
from tests.factories import (
    accepted_order,
    create_order,
    make_shipper,
    make_shopper,
    paid_order,
    seed_catalog,
)
from sqlalchemy import func, select

settings = get_settings()


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_verify_signature():
    body = b'{"processor_ref": "cap_1"}'
    good = hmac.new(
        settings.PAYMENT_WEBHOOK_SECRET.encode(), body, hashlib.sha512
    ).hexdigest()

    assert payment_service.verify_signature(body, good) is True
    assert payment_service.verify_signature(body, "0" * 128) is False
    assert payment_service.verify_signature(body + b" ", good) is False


@pytest.mark.unit
def test_default_processor_fee():
    # 2.9% of 100 + 0.30
    assert payment_service.default_processor_fee(Decimal("100.00")) == Decimal("3.20")
    # never more than the amount itself
    assert payment_service.default_processor_fee(Decimal("0.10")) == Decimal("0.10")


# ---------------------------------------------------------------------------
# checkout
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_checkout_captures_and_marks_paid(db_session, processor):
    """Grand total 33 plus the accepted 40 is charged; commission is 10%."""
    await seed_catalog(db_session)
    shopper = make_shopper()
    shipper = make_shipper()
    order, _ = await accepted_order(db_session, shopper, shipper, "40.00")
    processor.fee_cents = 250

    outcome = await payment_service.checkout(
        db_session, order_id=order.id, actor=shopper, gateway=processor.client()
    )

    assert outcome.amount_due == Decimal("73.00")
    assert outcome.order.status == OrderStatus.PAYMENT_COMPLETED
    assert processor.requests == [
        {"reference": order.request_number, "amount": 7300, "currency": "USD"}
    ]
    txn = outcome.transaction
    assert txn.status == LedgerStatus.PENDING
    assert txn.user_id == shipper.user_id
    assert txn.payer_id == shopper.user_id
    assert txn.amount == Decimal("73.00")
    assert txn.processor_fee == Decimal("2.50")
    assert txn.commission_amount == Decimal("7.30")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_gateway_failure_leaves_order_awaiting_payment(db_session, processor):
    shopper = make_shopper()
    order, _ = await accepted_order(db_session, shopper, make_shipper())
    processor.error_status = 503

    with pytest.raises(ExternalPaymentFailure) as exc_info:
        await payment_service.checkout(
            db_session, order_id=order.id, actor=shopper, gateway=processor.client()
        )

    assert exc_info.value.retryable is True
    order = await order_service.get_order(db_session, order.id)
    assert order.status == OrderStatus.PAYMENT_REQUIRED

    # Retry once the processor recovers.
    processor.error_status = None
    outcome = await payment_service.checkout(
        db_session, order_id=order.id, actor=shopper, gateway=processor.client()
    )
    assert outcome.order.status == OrderStatus.PAYMENT_COMPLETED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_declined_capture_is_external_failure(db_session, processor):
    shopper = make_shopper()
    order, _ = await accepted_order(db_session, shopper, make_shipper())
    processor.status = "failed"

    with pytest.raises(ExternalPaymentFailure):
        await payment_service.checkout(
            db_session, order_id=order.id, actor=shopper, gateway=processor.client()
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_pending_capture_waits_for_callback(db_session, processor):
    shopper = make_shopper()
    order, offer = await accepted_order(db_session, shopper, make_shipper())
    processor.status = "pending"

    outcome = await payment_service.checkout(
        db_session, order_id=order.id, actor=shopper, gateway=processor.client()
    )

    assert outcome.transaction is None
    assert outcome.order.status == OrderStatus.PAYMENT_REQUIRED

    txn, created = await payment_service.apply_capture(
        db_session,
        order_id=order.id,
        amount=outcome.amount_due,
        processor_ref="cap_async_1",
    )
    assert created is True
    order = await order_service.get_order(db_session, order.id)
    assert order.status == OrderStatus.PAYMENT_COMPLETED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_only_requester_checks_out(db_session, processor):
    order, _ = await accepted_order(db_session, make_shopper(), make_shipper())

    with pytest.raises(PermissionDenied):
        await payment_service.checkout(
            db_session,
            order_id=order.id,
            actor=make_shopper(),
            gateway=processor.client(),
        )
    assert processor.requests == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_open_order_cannot_check_out(db_session, processor):
    shopper = make_shopper()
    order = await create_order(db_session, shopper)

    with pytest.raises(IllegalTransition):
        await payment_service.checkout(
            db_session, order_id=order.id, actor=shopper, gateway=processor.client()
        )


async def _ledger_entries(db, order_id) -> int:
    return (
        await db.execute(
            select(func.count())
            .select_from(WalletTransaction)
            .where(WalletTransaction.order_id == order_id)
        )
    ).scalar_one()


@pytest.mark.asyncio
@pytest.mark.unit
async def test_concurrent_checkouts_charge_once(db_session, session_factory, processor):
    shopper = make_shopper()
    order, _ = await accepted_order(db_session, shopper, make_shipper())

    async def pay():
        async with session_factory() as session:
            return await payment_service.checkout(
                session, order_id=order.id, actor=shopper, gateway=processor.client()
            )

    results = await asyncio.gather(pay(), pay(), return_exceptions=True)

    outcomes = [r for r in results if isinstance(r, payment_service.CheckoutOutcome)]
    refused = [
        r for r in results if isinstance(r, (CheckoutInProgress, IllegalTransition))
    ]
    assert len(outcomes) == 1
    assert len(refused) == 1
    assert len(processor.requests) == 1
    assert await _ledger_entries(db_session, order.id) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_second_checkout_refused_while_capture_outstanding(
    db_session, session_factory, processor
):
    shopper = make_shopper()
    order, _ = await accepted_order(db_session, shopper, make_shipper())
    processor.gate.clear()

    async def pay():
        async with session_factory() as session:
            return await payment_service.checkout(
                session, order_id=order.id, actor=shopper, gateway=processor.client()
            )

    first = asyncio.create_task(pay())
    await processor.received.wait()

    with pytest.raises(CheckoutInProgress) as exc_info:
        await pay()
    assert exc_info.value.retryable is True

    processor.gate.set()
    outcome = await first

    assert outcome.order.status == OrderStatus.PAYMENT_COMPLETED
    assert outcome.order.capture_started_at is None
    assert len(processor.requests) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_stale_capture_marker_does_not_block(db_session, processor):
    shopper = make_shopper()
    order, _ = await accepted_order(db_session, shopper, make_shipper())
    order = await order_service.transition_status(
        db_session,
        order_id=order.id,
        new_status=OrderStatus.PAYMENT_REQUIRED,
        actor=shopper,
    )
    order.capture_started_at = utc_now()
    await db_session.commit()

    with pytest.raises(CheckoutInProgress):
        await payment_service.checkout(
            db_session, order_id=order.id, actor=shopper, gateway=processor.client()
        )
    assert processor.requests == []

    order = await order_service.get_order(db_session, order.id)
    order.capture_started_at = utc_now() - order_service.CAPTURE_STALE_AFTER - timedelta(
        seconds=1
    )
    await db_session.commit()

    outcome = await payment_service.checkout(
        db_session, order_id=order.id, actor=shopper, gateway=processor.client()
    )
    assert outcome.order.status == OrderStatus.PAYMENT_COMPLETED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_retry_after_gateway_error_reuses_idempotency_key(db_session, processor):
    shopper = make_shopper()
    order, _ = await accepted_order(db_session, shopper, make_shipper())
    processor.error_status = 503

    with pytest.raises(ExternalPaymentFailure):
        await payment_service.checkout(
            db_session, order_id=order.id, actor=shopper, gateway=processor.client()
        )
    order = await order_service.get_order(db_session, order.id)
    assert order.capture_started_at is None

    processor.error_status = None
    await payment_service.checkout(
        db_session, order_id=order.id, actor=shopper, gateway=processor.client()
    )

    first_key, second_key = processor.idempotency_keys
    assert first_key is not None
    assert first_key.startswith(order.request_number)
    assert second_key == first_key


@pytest.mark.asyncio
@pytest.mark.unit
async def test_capture_lost_to_timeout_is_not_charged_twice(db_session, processor):
    """The processor charged but the response never arrived; the retry replays it."""
    shopper = make_shopper()
    order, _ = await accepted_order(db_session, shopper, make_shipper())
    dropped = []

    async def drop_first_response(request):
        response = await processor.handler(request)
        if not dropped:
            dropped.append(response)
            raise httpx.ReadTimeout("timed out", request=request)
        return response

    gateway = PaymentGatewayClient(
        base_url="https://processor.test",
        secret_key="sk_test_forwarding",
        transport=httpx.MockTransport(drop_first_response),
    )

    with pytest.raises(ExternalPaymentFailure):
        await payment_service.checkout(
            db_session, order_id=order.id, actor=shopper, gateway=gateway
        )
    outcome = await payment_service.checkout(
        db_session, order_id=order.id, actor=shopper, gateway=gateway
    )

    assert outcome.transaction.processor_ref == f"cap_1_{order.request_number}"
    assert await _ledger_entries(db_session, order.id) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_declined_capture_gets_a_fresh_key(db_session, processor):
    shopper = make_shopper()
    order, _ = await accepted_order(db_session, shopper, make_shipper())
    processor.status = "failed"

    with pytest.raises(ExternalPaymentFailure):
        await payment_service.checkout(
            db_session, order_id=order.id, actor=shopper, gateway=processor.client()
        )
    order = await order_service.get_order(db_session, order.id)
    assert order.capture_key is None

    processor.status = "succeeded"
    outcome = await payment_service.checkout(
        db_session, order_id=order.id, actor=shopper, gateway=processor.client()
    )

    declined_key, paid_key = processor.idempotency_keys
    assert declined_key != paid_key
    assert outcome.order.status == OrderStatus.PAYMENT_COMPLETED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cannot_cancel_while_capture_outstanding(db_session):
    shopper = make_shopper()
    order, _ = await accepted_order(db_session, shopper, make_shipper())
    order = await order_service.transition_status(
        db_session,
        order_id=order.id,
        new_status=OrderStatus.PAYMENT_REQUIRED,
        actor=shopper,
    )
    order.capture_started_at = utc_now()
    await db_session.commit()

    with pytest.raises(IllegalTransition):
        await order_service.transition_status(
            db_session,
            order_id=order.id,
            new_status=OrderStatus.CANCELLED,
            actor=shopper,
        )

    order = await order_service.get_order(db_session, order.id)
    assert order.status == OrderStatus.PAYMENT_REQUIRED


# ---------------------------------------------------------------------------
# apply_capture
# ---------------------------------------------------------------------------


async def _awaiting_payment(db):
    shopper = make_shopper()
    order, offer = await accepted_order(db, shopper, make_shipper())
    order = await order_service.transition_status(
        db, order_id=order.id, new_status=OrderStatus.PAYMENT_REQUIRED, actor=shopper
    )
    return order, offer


@pytest.mark.asyncio
@pytest.mark.unit
async def test_redelivered_capture_is_recorded_once(db_session):
    order, offer = await _awaiting_payment(db_session)
    due = payment_service.amount_due(order, offer)

    first, created = await payment_service.apply_capture(
        db_session, order_id=order.id, amount=due, processor_ref="cap_redeliver"
    )
    again, created_again = await payment_service.apply_capture(
        db_session, order_id=order.id, amount=due, processor_ref="cap_redeliver"
    )

    assert created is True
    assert created_again is False
    assert again.id == first.id


@pytest.mark.asyncio
@pytest.mark.unit
async def test_capture_amount_must_match(db_session):
    order, _ = await _awaiting_payment(db_session)

    with pytest.raises(ValidationError):
        await payment_service.apply_capture(
            db_session,
            order_id=order.id,
            amount=Decimal("1.00"),
            processor_ref="cap_short",
        )

    order = await order_service.get_order(db_session, order.id)
    assert order.status == OrderStatus.PAYMENT_REQUIRED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_default_fee_when_processor_omits_it(db_session):
    order, offer = await _awaiting_payment(db_session)
    due = payment_service.amount_due(order, offer)

    txn, _ = await payment_service.apply_capture(
        db_session, order_id=order.id, amount=due, processor_ref="cap_nofee"
    )

    assert txn.processor_fee == payment_service.default_processor_fee(due)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_failed_capture_fails_pending_entry(db_session):
    order, offer = await _awaiting_payment(db_session)
    due = payment_service.amount_due(order, offer)
    await payment_service.apply_capture(
        db_session, order_id=order.id, amount=due, processor_ref="cap_bounce"
    )

    txn = await payment_service.apply_capture_failure(
        db_session, order_id=order.id, processor_ref="cap_bounce"
    )

    assert txn.status == LedgerStatus.FAILED
    order = await order_service.get_order(db_session, order.id)
    assert order.status == OrderStatus.PAYMENT_REQUIRED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_failed_capture_without_entry_is_ignored(db_session):
    order, _ = await _awaiting_payment(db_session)

    txn = await payment_service.apply_capture_failure(
        db_session, order_id=order.id, processor_ref="cap_unknown"
    )

    assert txn is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_failed_capture_blocks_tracking_until_paid_again(db_session):
    shopper = make_shopper()
    shipper = make_shipper()
    order, _, txn = await paid_order(db_session, shopper, shipper)

    await payment_service.apply_capture_failure(
        db_session, order_id=order.id, processor_ref=txn.processor_ref
    )

    with pytest.raises(IllegalTransition):
        await order_service.advance_tracking(
            db_session, order_id=order.id, status_id=6, actor=shipper
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_redelivered_capture_failure_is_a_no_op(db_session):
    order, _, txn = await paid_order(db_session, make_shopper(), make_shipper())

    first = await payment_service.apply_capture_failure(
        db_session, order_id=order.id, processor_ref=txn.processor_ref
    )
    again = await payment_service.apply_capture_failure(
        db_session, order_id=order.id, processor_ref=txn.processor_ref
    )

    assert again.id == first.id
    assert again.status == LedgerStatus.FAILED
    order = await order_service.get_order(db_session, order.id)
    assert order.status == OrderStatus.PAYMENT_REQUIRED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_capture_failure_refused_once_tracking_started(db_session):
    shopper = make_shopper()
    shipper = make_shipper()
    order, _, txn = await paid_order(db_session, shopper, shipper)
    await order_service.advance_tracking(
        db_session, order_id=order.id, status_id=6, actor=shipper
    )

    with pytest.raises(IllegalTransition):
        await payment_service.apply_capture_failure(
            db_session, order_id=order.id, processor_ref=txn.processor_ref
        )

    await db_session.refresh(txn)
    assert txn.status == LedgerStatus.PENDING
    order = await order_service.get_order(db_session, order.id)
    assert order.status == OrderStatus.IN_TRACKING


@pytest.mark.asyncio
@pytest.mark.unit
async def test_shopper_cannot_reopen_payment(db_session):
    shopper = make_shopper()
    order, _, _ = await paid_order(db_session, shopper, make_shipper())

    with pytest.raises(PermissionDenied):
        await order_service.transition_status(
            db_session,
            order_id=order.id,
            new_status=OrderStatus.PAYMENT_REQUIRED,
            actor=shopper,
        )


# ---------------------------------------------------------------------------
# Gateway client
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_gateway_timeout_raises_gateway_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    client = PaymentGatewayClient(
        base_url="https://processor.test",
        secret_key="sk_test",
        transport=httpx.MockTransport(handler),
    )

    with pytest.raises(PaymentGatewayError) as exc_info:
        await client.capture(reference="DP-TEST0001", amount=Decimal("10.00"))
    assert "timed out" in exc_info.value.message


@pytest.mark.asyncio
@pytest.mark.unit
async def test_gateway_converts_cents(processor):
    processor.fee_cents = 59

    result = await processor.client().capture(
        reference="DP-TEST0002", amount=Decimal("12.34")
    )

    assert processor.requests[0]["amount"] == 1234
    assert result.amount == Decimal("12.34")
    assert result.fee == Decimal("0.59")
    assert result.succeeded is True
