"""Order lifecycle: creation, pricing, status transitions and visibility."""

import secrets
import string
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from libs.auth.models import SYSTEM_ACTOR, AuthUser, Role
from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.forwarding_service.errors import (
    IllegalTransition,
    NotFound,
    OrderClosed,
    PermissionDenied,
    ValidationError,
)
from services.forwarding_service.models import (
    ACTIVE_OFFER_STATUSES,
    Offer,
    OfferStatus,
    Order,
    OrderLineItem,
    OrderServiceSelection,
    OrderStatus,
    OrderStatusStep,
    OrderSurcharge,
    PlanRole,
    ServiceType,
    TrackingStatus,
)
from services.forwarding_service.schemas.order import LineItemIn, OrderCreate, RouteIn
from services.forwarding_service.services import catalog_service, tracking_service
from services.forwarding_service.services.locks import order_locks
from services.forwarding_service.services.pricing import (
    ChargeRule,
    LineItem,
    OrderTotals,
    ServiceCharge,
    compute_totals,
)
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

settings = get_settings()

CAPTURE_STALE_AFTER = timedelta(seconds=2 * settings.PAYMENT_CAPTURE_TIMEOUT_SECONDS)

# ---------------------------------------------------------------------------
# Lifecycle table: (from, to) -> roles allowed to take the edge
# ---------------------------------------------------------------------------
ORDER_TRANSITIONS: dict[tuple[OrderStatus, OrderStatus], frozenset[Role]] = {
    (OrderStatus.OPEN, OrderStatus.OFFER_ACCEPTED): frozenset({Role.SYSTEM}),
    (OrderStatus.OPEN, OrderStatus.CANCELLED): frozenset({Role.SHOPPER, Role.ADMIN}),
    (OrderStatus.OFFER_ACCEPTED, OrderStatus.PAYMENT_REQUIRED): frozenset(
        {Role.SHOPPER, Role.ADMIN, Role.SYSTEM}
    ),
    (OrderStatus.OFFER_ACCEPTED, OrderStatus.CANCELLED): frozenset(
        {Role.SHOPPER, Role.ADMIN}
    ),
    (OrderStatus.PAYMENT_REQUIRED, OrderStatus.PAYMENT_COMPLETED): frozenset(
        {Role.SYSTEM}
    ),
    (OrderStatus.PAYMENT_REQUIRED, OrderStatus.CANCELLED): frozenset(
        {Role.SHOPPER, Role.ADMIN}
    ),
    (OrderStatus.PAYMENT_COMPLETED, OrderStatus.IN_TRACKING): frozenset({Role.SYSTEM}),
    # The processor reported the capture failed after we recorded it.
    (OrderStatus.PAYMENT_COMPLETED, OrderStatus.PAYMENT_REQUIRED): frozenset(
        {Role.SYSTEM}
    ),
    (OrderStatus.PAYMENT_COMPLETED, OrderStatus.CANCELLED): frozenset({Role.ADMIN}),
    (OrderStatus.IN_TRACKING, OrderStatus.DELIVERED): frozenset({Role.SYSTEM}),
    (OrderStatus.IN_TRACKING, OrderStatus.CANCELLED): frozenset({Role.ADMIN}),
}

# Tracking step recorded when the order enters a status.
_ENTRY_STEPS = {
    OrderStatus.OFFER_ACCEPTED: TrackingStatus.OFFER_ACCEPTED,
    OrderStatus.PAYMENT_REQUIRED: TrackingStatus.PAYMENT_PENDING,
    OrderStatus.PAYMENT_COMPLETED: TrackingStatus.RECEIVED,
    OrderStatus.CANCELLED: TrackingStatus.CANCELLED,
}

PAID_STATUSES = (OrderStatus.PAYMENT_COMPLETED, OrderStatus.IN_TRACKING)

_REQUEST_NUMBER_ALPHABET = string.ascii_uppercase + string.digits


# ---------------------------------------------------------------------------
# Permissions (pure)
# ---------------------------------------------------------------------------


def actor_roles_on(
    order: Order, actor: AuthUser, accepted_shipper_id: Optional[str] = None
) -> frozenset[Role]:
    """Which lifecycle roles ``actor`` holds on this particular order."""
    roles = set()
    if actor.is_system:
        roles.add(Role.SYSTEM)
    if actor.is_admin:
        roles.add(Role.ADMIN)
    if actor.role == Role.SHOPPER and actor.user_id == order.requester_id:
        roles.add(Role.SHOPPER)
    if (
        actor.role == Role.SHIPPER
        and accepted_shipper_id is not None
        and actor.user_id == accepted_shipper_id
    ):
        roles.add(Role.SHIPPER)
    return frozenset(roles)


def check_transition(
    current: OrderStatus, new_status: OrderStatus, roles: frozenset[Role]
) -> None:
    """Raise unless ``roles`` may move an order from ``current`` to ``new_status``."""
    allowed = ORDER_TRANSITIONS.get((current, new_status))
    if allowed is None:
        raise IllegalTransition(
            f"Order cannot move from '{current.value}' to '{new_status.value}'",
            current_status=current.value,
            requested_status=new_status.value,
        )
    if not roles & allowed:
        raise PermissionDenied(
            f"Not allowed to move order from '{current.value}' to '{new_status.value}'"
        )


def capture_in_flight(order: Order, now: Optional[datetime] = None) -> bool:
    """Whether a checkout is waiting on the gateway for this order.

    A marker older than twice the capture timeout belongs to a worker that
    died mid-call and no longer blocks.
    """
    started = order.capture_started_at
    if started is None:
        return False
    if started.tzinfo is None:
        started = started.replace(tzinfo=timezone.utc)
    return (now or utc_now()) - started < CAPTURE_STALE_AFTER


def can_view(order: Order, actor: AuthUser, shipper_has_offer: bool = False) -> bool:
    if actor.is_admin or actor.user_id == order.requester_id:
        return True
    if actor.role == Role.SHIPPER:
        return order.status == OrderStatus.OPEN or shipper_has_offer
    return False


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------


def order_totals(order: Order) -> OrderTotals:
    """Totals recomputed from the order's snapshot."""
    return compute_totals(
        order.service_type,
        [
            LineItem(i.unit_price, i.quantity, i.unit_weight)
            for i in order.line_items
        ],
        [
            ServiceCharge(s.price, required=s.is_required, selected=True)
            for s in order.services
        ],
        [ChargeRule(s.charge_type, s.rate) for s in order.surcharges],
    )


async def quote(
    db: AsyncSession,
    *,
    service_type: ServiceType,
    line_items: Sequence[LineItemIn],
    service_ids: Sequence[uuid.UUID],
) -> OrderTotals:
    """Price a prospective order against the current catalog without saving it."""
    offered = await catalog_service.resolve_order_services(db, service_ids)
    plans = await catalog_service.list_payment_plans(
        db, role=PlanRole.SHOPPER, service_type=service_type
    )
    return compute_totals(
        service_type,
        [LineItem(i.unit_price, i.quantity, i.unit_weight) for i in line_items],
        [
            ServiceCharge(s.price, required=s.is_required, selected=selected)
            for s, selected in offered
        ],
        [ChargeRule(p.charge_type, p.amount) for p in plans],
    )


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


def _validate_route(route: Optional[RouteIn]) -> RouteIn:
    if route is None:
        raise ValidationError("Route is required")
    missing = [name for name, value in route.model_dump().items() if value is None]
    if missing:
        raise ValidationError(
            "Route is incomplete", missing_fields=",".join(sorted(missing))
        )
    return route


def _new_request_number() -> str:
    return "DP-" + "".join(secrets.choice(_REQUEST_NUMBER_ALPHABET) for _ in range(8))


async def create_order(
    db: AsyncSession, *, actor: AuthUser, payload: OrderCreate
) -> Order:
    """Create an open order, snapshotting the services and surcharges in force."""
    if actor.role != Role.SHOPPER:
        raise PermissionDenied("Only shoppers can place orders")

    route = _validate_route(payload.route)
    if payload.service_type == ServiceType.BUY_FOR_ME and not payload.line_items:
        raise ValidationError("Buy-for-me orders need at least one product")

    offered = await catalog_service.resolve_order_services(db, payload.service_ids)
    plans = await catalog_service.list_payment_plans(
        db, role=PlanRole.SHOPPER, service_type=payload.service_type
    )

    order = Order(
        request_number=_new_request_number(),
        requester_id=actor.user_id,
        service_type=payload.service_type,
        status=OrderStatus.OPEN,
        **route.model_dump(),
    )
    order.line_items = [
        OrderLineItem(
            position=position,
            title=item.title,
            description=item.description,
            product_url=item.product_url,
            unit_price=item.unit_price,
            unit_weight=item.unit_weight,
            quantity=item.quantity,
        )
        for position, item in enumerate(payload.line_items)
    ]
    order.services = [
        OrderServiceSelection(
            addon_service_id=service.id,
            title=service.title,
            price=service.price,
            is_required=service.is_required,
        )
        for service, selected in offered
        if service.is_required or selected
    ]
    order.surcharges = [
        OrderSurcharge(
            payment_plan_id=plan.id,
            title=plan.title,
            charge_type=plan.charge_type,
            rate=plan.amount,
        )
        for plan in plans
    ]
    db.add(order)
    await db.flush()

    await tracking_service.record_system_step(
        db, order_id=order.id, status=TrackingStatus.PENDING
    )

    await db.commit()
    await db.refresh(order)

    logger.info(
        "Created order %s (%s) for %s, grand total %s",
        order.request_number,
        order.service_type.value,
        actor.user_id,
        order_totals(order).grand_total,
    )
    return order


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    order = await db.get(Order, order_id)
    if order is None:
        raise NotFound(f"Order {order_id} not found")
    return order


async def get_order_for_update(db: AsyncSession, order_id: uuid.UUID) -> Order:
    """Load the order with a row lock, discarding any stale identity-map copy."""
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFound(f"Order {order_id} not found")
    return order


async def shipper_has_offer(
    db: AsyncSession, order_id: uuid.UUID, shipper_id: str
) -> bool:
    result = await db.execute(
        select(func.count(Offer.id)).where(
            Offer.order_id == order_id, Offer.shipper_id == shipper_id
        )
    )
    return result.scalar_one() > 0


async def get_visible_order(
    db: AsyncSession, order_id: uuid.UUID, actor: AuthUser
) -> Order:
    """The order if ``actor`` may see it; NotFound otherwise."""
    order = await get_order(db, order_id)
    has_offer = actor.role == Role.SHIPPER and await shipper_has_offer(
        db, order_id, actor.user_id
    )
    if not can_view(order, actor, shipper_has_offer=has_offer):
        raise NotFound(f"Order {order_id} not found")
    return order


async def accepted_shipper_id(db: AsyncSession, order: Order) -> Optional[str]:
    if order.accepted_offer_id is None:
        return None
    offer = await db.get(Offer, order.accepted_offer_id)
    return offer.shipper_id if offer else None


async def list_orders(
    db: AsyncSession,
    *,
    actor: AuthUser,
    status: Optional[OrderStatus] = None,
    skip: int = 0,
    limit: int = 50,
) -> tuple[list[Order], int]:
    """Role-scoped order listing, newest first. Returns ``(orders, total)``."""
    query = select(Order)
    if actor.is_admin:
        pass
    elif actor.role == Role.SHIPPER:
        bid_on = select(Offer.order_id).where(Offer.shipper_id == actor.user_id)
        query = query.where(
            or_(Order.status == OrderStatus.OPEN, Order.id.in_(bid_on))
        )
    else:
        query = query.where(Order.requester_id == actor.user_id)

    if status is not None:
        query = query.where(Order.status == status)

    total = (
        await db.execute(select(func.count()).select_from(query.subquery()))
    ).scalar_one()
    result = await db.execute(
        query.order_by(Order.created_at.desc()).offset(skip).limit(limit)
    )
    return list(result.scalars().all()), total


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


async def apply_transition(
    db: AsyncSession,
    order: Order,
    new_status: OrderStatus,
    actor: AuthUser,
) -> Order:
    """Move a locked order to ``new_status`` inside the caller's transaction."""
    shipper_id = await accepted_shipper_id(db, order)
    check_transition(order.status, new_status, actor_roles_on(order, actor, shipper_id))
    if new_status == OrderStatus.CANCELLED and capture_in_flight(order):
        raise IllegalTransition(
            f"Order {order.request_number} has a payment capture in progress",
            current_status=order.status.value,
        )

    previous = order.status
    order.status = new_status
    if new_status == OrderStatus.CANCELLED:
        order.cancelled_at = utc_now()
        await _ignore_active_offers(db, order.id)
    elif new_status == OrderStatus.DELIVERED:
        order.delivered_at = utc_now()
    await db.flush()

    entry_step = _ENTRY_STEPS.get(new_status)
    if entry_step is not None:
        await tracking_service.record_system_step(
            db, order_id=order.id, status=entry_step
        )

    logger.info(
        "Order %s moved %s -> %s by %s",
        order.request_number,
        previous.value,
        new_status.value,
        actor.user_id,
    )
    return order


async def _ignore_active_offers(db: AsyncSession, order_id: uuid.UUID) -> None:
    result = await db.execute(
        select(Offer).where(
            Offer.order_id == order_id, Offer.status.in_(ACTIVE_OFFER_STATUSES)
        )
    )
    for offer in result.scalars().all():
        offer.status = OfferStatus.IGNORED
        offer.decided_at = utc_now()


async def transition_status(
    db: AsyncSession,
    *,
    order_id: uuid.UUID,
    new_status: OrderStatus,
    actor: AuthUser,
) -> Order:
    async with order_locks.hold(order_id):
        order = await get_order_for_update(db, order_id)
        await apply_transition(db, order, new_status, actor)
        await db.commit()
        await db.refresh(order)
    return order


async def close_for_bidding(db: AsyncSession, order: Order, offer: Offer) -> Order:
    """Record the accepted offer and take the order out of bidding.

    The caller holds the order lock and commits.
    """
    if order.status != OrderStatus.OPEN:
        raise OrderClosed(
            f"Order {order.request_number} is {order.status.value}",
            order_status=order.status.value,
        )
    order.accepted_offer_id = offer.id
    return await apply_transition(db, order, OrderStatus.OFFER_ACCEPTED, SYSTEM_ACTOR)


async def advance_tracking(
    db: AsyncSession,
    *,
    order_id: uuid.UUID,
    actor: AuthUser,
    status_id: int,
    tracking_number: Optional[str] = None,
    remarks: Optional[str] = None,
    files: Optional[list[str]] = None,
) -> tuple[OrderStatusStep, bool]:
    """Append a shipper-reported tracking step and follow it with the order.

    The first manual step puts the order in tracking; Delivered completes it.
    """
    async with order_locks.hold(order_id):
        order = await get_order_for_update(db, order_id)
        shipper_id = await accepted_shipper_id(db, order)
        if not (actor.is_admin or Role.SHIPPER in actor_roles_on(order, actor, shipper_id)):
            raise PermissionDenied("Only the accepted shipper can update tracking")

        # A retried step is a no-op whatever the order has moved on to.
        current = await tracking_service.current_step(db, order.id)
        if current is not None and current.status_id == status_id:
            return current, False

        if order.status not in PAID_STATUSES:
            raise IllegalTransition(
                f"Tracking cannot be updated while order is '{order.status.value}'",
                current_status=order.status.value,
            )

        step, created = await tracking_service.append_step(
            db,
            order_id=order.id,
            status_id=status_id,
            created_by=actor.user_id,
            tracking_number=tracking_number,
            remarks=remarks,
            files=files,
            commit=False,
        )
        if created:
            if order.status == OrderStatus.PAYMENT_COMPLETED:
                await apply_transition(db, order, OrderStatus.IN_TRACKING, SYSTEM_ACTOR)
            if step.status_id == TrackingStatus.DELIVERED:
                await apply_transition(db, order, OrderStatus.DELIVERED, SYSTEM_ACTOR)
        await db.commit()
    return step, created
