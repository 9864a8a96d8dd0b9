"""Unit tests for order creation, visibility and lifecycle transitions.

Tests call order_service functions directly with the db_session fixture.
"""

import uuid
from decimal import Decimal

import pytest
from libs.auth.models import SYSTEM_ACTOR
from services.forwarding_service.errors import (
    IllegalTransition,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from services.forwarding_service.models import (
    OfferStatus,
    OrderStatus,
    ServiceType,
    TrackingStatus,
)
from services.forwarding_service.services import (
    offer_service,
    order_service,
    tracking_service,
)
from tests.factories import (
    ROUTE,
    accepted_order,
    create_order,
    make_admin,
    make_shipper,
    make_shopper,
    order_payload,
    paid_order,
    place_offer,
    seed_catalog,
)


# ---------------------------------------------------------------------------
# Transition table (pure)
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_unknown_edge_is_illegal():
    with pytest.raises(IllegalTransition):
        order_service.check_transition(
            OrderStatus.OPEN, OrderStatus.DELIVERED, frozenset({SYSTEM_ACTOR.role})
        )


@pytest.mark.unit
def test_known_edge_without_role_is_denied():
    shopper = make_shopper()
    with pytest.raises(PermissionDenied):
        order_service.check_transition(
            OrderStatus.OPEN, OrderStatus.OFFER_ACCEPTED, frozenset({shopper.role})
        )


@pytest.mark.unit
def test_nothing_leaves_terminal_statuses():
    for terminal in (OrderStatus.DELIVERED, OrderStatus.CANCELLED):
        assert not [
            edge for edge in order_service.ORDER_TRANSITIONS if edge[0] == terminal
        ]


# ---------------------------------------------------------------------------
# create_order
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_order_snapshots_catalog(db_session):
    """Required service always attached; unselected optional left off."""
    catalog = await seed_catalog(db_session)
    shopper = make_shopper()

    order = await create_order(db_session, shopper)

    assert order.status == OrderStatus.OPEN
    assert order.requester_id == shopper.user_id
    assert order.request_number.startswith("DP-")
    assert [s.addon_service_id for s in order.services] == [catalog["required"].id]
    assert [s.title for s in order.surcharges] == ["Handling fee"]
    assert order_service.order_totals(order).grand_total == Decimal("33.00")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_order_records_pending_step(db_session):
    order = await create_order(db_session, make_shopper())

    steps = await tracking_service.get_steps(db_session, order.id)
    assert [s.status_id for s in steps] == [TrackingStatus.PENDING]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_snapshot_survives_catalog_changes(db_session):
    catalog = await seed_catalog(db_session)
    order = await create_order(db_session, make_shopper())

    catalog["surcharge"].amount = Decimal("50.00")
    await db_session.commit()

    order = await order_service.get_order(db_session, order.id)
    assert order_service.order_totals(order).grand_total == Decimal("33.00")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_order_with_selected_optional_service(db_session):
    catalog = await seed_catalog(db_session)

    order = await create_order(
        db_session, make_shopper(), service_ids=[catalog["optional"].id]
    )

    assert order_service.order_totals(order).grand_total == Decimal("35.00")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_order_requires_full_route(db_session):
    route = dict(ROUTE, ship_to_city_id=None)

    with pytest.raises(ValidationError) as exc_info:
        await create_order(db_session, make_shopper(), route=route)

    assert exc_info.value.details["missing_fields"] == "ship_to_city_id"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_buy_for_me_requires_products(db_session):
    with pytest.raises(ValidationError):
        await create_order(db_session, make_shopper(), line_items=[])


@pytest.mark.asyncio
@pytest.mark.unit
async def test_ship_for_me_without_products_is_allowed(db_session):
    order = await create_order(
        db_session,
        make_shopper(),
        service_type=ServiceType.SHIP_FOR_ME,
        line_items=[],
    )
    assert order.line_items == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unknown_service_selection_is_rejected(db_session):
    await seed_catalog(db_session)
    with pytest.raises(ValidationError):
        await create_order(db_session, make_shopper(), service_ids=[uuid.uuid4()])


@pytest.mark.asyncio
@pytest.mark.unit
async def test_only_shoppers_create_orders(db_session):
    with pytest.raises(PermissionDenied):
        await order_service.create_order(
            db_session, actor=make_shipper(), payload=order_payload()
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_quote_matches_created_order(db_session):
    catalog = await seed_catalog(db_session)
    payload = order_payload(service_ids=[catalog["optional"].id])

    totals = await order_service.quote(
        db_session,
        service_type=payload.service_type,
        line_items=payload.line_items,
        service_ids=payload.service_ids,
    )
    order = await order_service.create_order(
        db_session, actor=make_shopper(), payload=payload
    )

    assert totals == order_service.order_totals(order)


# ---------------------------------------------------------------------------
# Visibility
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_other_shopper_cannot_see_order(db_session):
    order = await create_order(db_session, make_shopper())

    with pytest.raises(NotFound):
        await order_service.get_visible_order(db_session, order.id, make_shopper())


@pytest.mark.asyncio
@pytest.mark.unit
async def test_shipper_sees_open_orders_and_orders_they_bid_on(db_session):
    shopper = make_shopper()
    bidder = make_shipper()
    outsider = make_shipper()
    order, _ = await accepted_order(db_session, shopper, bidder)
    open_order = await create_order(db_session, shopper)

    bidder_orders, _ = await order_service.list_orders(db_session, actor=bidder)
    outsider_orders, total = await order_service.list_orders(db_session, actor=outsider)

    assert {o.id for o in bidder_orders} == {order.id, open_order.id}
    assert [o.id for o in outsider_orders] == [open_order.id]
    assert total == 1
    with pytest.raises(NotFound):
        await order_service.get_visible_order(db_session, order.id, outsider)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_list_orders_filters_by_status(db_session):
    shopper = make_shopper()
    await create_order(db_session, shopper)
    await accepted_order(db_session, shopper, make_shipper())

    orders, total = await order_service.list_orders(
        db_session, actor=shopper, status=OrderStatus.OFFER_ACCEPTED
    )

    assert total == 1
    assert orders[0].status == OrderStatus.OFFER_ACCEPTED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_admin_lists_everything(db_session):
    await create_order(db_session, make_shopper())
    await create_order(db_session, make_shopper())

    _, total = await order_service.list_orders(db_session, actor=make_admin())
    assert total == 2


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_requester_cancels_open_order_and_live_bids_are_ignored(db_session):
    shopper = make_shopper()
    order = await create_order(db_session, shopper)
    offer = await place_offer(db_session, order, make_shipper())

    order = await order_service.transition_status(
        db_session, order_id=order.id, new_status=OrderStatus.CANCELLED, actor=shopper
    )

    assert order.status == OrderStatus.CANCELLED
    assert order.cancelled_at is not None
    offer = await offer_service.get_offer(db_session, offer.id)
    assert offer.status == OfferStatus.IGNORED
    current = await tracking_service.current_step(db_session, order.id)
    assert current.status_id == TrackingStatus.CANCELLED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_other_shopper_cannot_cancel(db_session):
    order = await create_order(db_session, make_shopper())

    with pytest.raises(PermissionDenied):
        await order_service.transition_status(
            db_session,
            order_id=order.id,
            new_status=OrderStatus.CANCELLED,
            actor=make_shopper(),
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_shopper_cannot_force_payment_completed(db_session):
    shopper = make_shopper()
    order, _ = await accepted_order(db_session, shopper, make_shipper())
    await order_service.transition_status(
        db_session,
        order_id=order.id,
        new_status=OrderStatus.PAYMENT_REQUIRED,
        actor=shopper,
    )

    with pytest.raises(PermissionDenied):
        await order_service.transition_status(
            db_session,
            order_id=order.id,
            new_status=OrderStatus.PAYMENT_COMPLETED,
            actor=shopper,
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_only_admin_cancels_paid_order(db_session):
    shopper = make_shopper()
    order, _, _ = await paid_order(db_session, shopper, make_shipper())

    with pytest.raises(PermissionDenied):
        await order_service.transition_status(
            db_session,
            order_id=order.id,
            new_status=OrderStatus.CANCELLED,
            actor=shopper,
        )

    order = await order_service.transition_status(
        db_session,
        order_id=order.id,
        new_status=OrderStatus.CANCELLED,
        actor=make_admin(),
    )
    assert order.status == OrderStatus.CANCELLED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_version_increments_on_every_change(db_session):
    shopper = make_shopper()
    order = await create_order(db_session, shopper)
    first_version = order.version

    order = await order_service.transition_status(
        db_session, order_id=order.id, new_status=OrderStatus.CANCELLED, actor=shopper
    )

    assert order.version > first_version


# ---------------------------------------------------------------------------
# advance_tracking
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_tracking_drives_order_to_delivered(db_session):
    shipper = make_shipper()
    order, _, _ = await paid_order(db_session, make_shopper(), shipper)

    for status_id in (6, 7, 8, 9, 10):
        step, created = await order_service.advance_tracking(
            db_session, order_id=order.id, actor=shipper, status_id=status_id
        )
        assert created is True
        order = await order_service.get_order(db_session, order.id)
        if status_id == 6:
            assert order.status == OrderStatus.IN_TRACKING

    assert order.status == OrderStatus.DELIVERED
    assert order.delivered_at is not None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_only_accepted_shipper_updates_tracking(db_session):
    order, _, _ = await paid_order(db_session, make_shopper(), make_shipper())

    with pytest.raises(PermissionDenied):
        await order_service.advance_tracking(
            db_session, order_id=order.id, actor=make_shipper(), status_id=6
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_tracking_requires_payment(db_session):
    shipper = make_shipper()
    order, _ = await accepted_order(db_session, make_shopper(), shipper)

    with pytest.raises(IllegalTransition):
        await order_service.advance_tracking(
            db_session, order_id=order.id, actor=shipper, status_id=6
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_retried_delivered_step_is_a_no_op(db_session):
    shipper = make_shipper()
    order, _, _ = await paid_order(db_session, make_shopper(), shipper)
    for status_id in (6, 7, 8, 9, 10):
        delivered, _ = await order_service.advance_tracking(
            db_session, order_id=order.id, actor=shipper, status_id=status_id
        )

    again, created = await order_service.advance_tracking(
        db_session, order_id=order.id, actor=shipper, status_id=10
    )

    assert created is False
    assert again.id == delivered.id
    order = await order_service.get_order(db_session, order.id)
    assert order.status == OrderStatus.DELIVERED
    with pytest.raises(IllegalTransition):
        await order_service.advance_tracking(
            db_session, order_id=order.id, actor=shipper, status_id=9
        )
