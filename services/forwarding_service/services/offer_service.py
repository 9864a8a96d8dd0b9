"""Offer negotiation: shippers bid on open orders, the shopper accepts one.

Acceptance is serialised per order. The first committer wins; a concurrent
accept on a sibling offer fails with ``AlreadyAccepted``. Price never breaks
ties.
"""

import uuid
from decimal import Decimal
from typing import Optional

from libs.auth.models import AuthUser, Role
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.forwarding_service.errors import (
    AlreadyAccepted,
    IllegalTransition,
    NotFound,
    OrderClosed,
    PermissionDenied,
)
from services.forwarding_service.models import (
    ACTIVE_OFFER_STATUSES,
    Offer,
    OfferAction,
    OfferDecision,
    OfferStatus,
    Order,
    OrderStatus,
    TrackingStatus,
)
from services.forwarding_service.services import order_service, tracking_service
from services.forwarding_service.services.locks import order_locks
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

logger = get_logger(__name__)


def _ensure_open(order: Order) -> None:
    if order.status != OrderStatus.OPEN:
        raise OrderClosed(
            f"Order {order.request_number} is no longer open for offers",
            order_status=order.status.value,
        )


async def _active_offer_for(
    db: AsyncSession, order_id: uuid.UUID, shipper_id: str
) -> Optional[Offer]:
    result = await db.execute(
        select(Offer)
        .where(
            Offer.order_id == order_id,
            Offer.shipper_id == shipper_id,
            Offer.status.in_(ACTIVE_OFFER_STATUSES),
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_offer(db: AsyncSession, offer_id: uuid.UUID) -> Offer:
    offer = await db.get(Offer, offer_id)
    if offer is None:
        raise NotFound(f"Offer {offer_id} not found")
    return offer


# ---------------------------------------------------------------------------
# Shipper side
# ---------------------------------------------------------------------------


async def submit_offer(
    db: AsyncSession,
    *,
    order_id: uuid.UUID,
    actor: AuthUser,
    price: Decimal,
    note: Optional[str] = None,
) -> tuple[Offer, bool]:
    """Bid on an open order, or re-price the shipper's live bid.

    Returns ``(offer, created)``.
    """
    if actor.role != Role.SHIPPER:
        raise PermissionDenied("Only shippers can submit offers")

    async with order_locks.hold(order_id):
        order = await order_service.get_order_for_update(db, order_id)
        if order.requester_id == actor.user_id:
            raise PermissionDenied("You cannot bid on your own order")
        _ensure_open(order)

        offer = await _active_offer_for(db, order_id, actor.user_id)
        created = offer is None
        if created:
            offer = Offer(
                order_id=order_id,
                shipper_id=actor.user_id,
                price=price,
                note=note,
                status=OfferStatus.PENDING,
            )
            db.add(offer)
            await db.flush()
            await tracking_service.record_system_step(
                db, order_id=order_id, status=TrackingStatus.OFFER_PLACED
            )
        else:
            offer.price = price
            if note is not None:
                offer.note = note

        await db.commit()
        await db.refresh(offer)

    logger.info(
        "%s offer %s on order %s by %s at %s",
        "Submitted" if created else "Re-priced",
        offer.id,
        order.request_number,
        actor.user_id,
        price,
    )
    return offer, created


async def respond_to_offer(
    db: AsyncSession,
    *,
    order_id: uuid.UUID,
    actor: AuthUser,
    action: OfferAction,
    price: Optional[Decimal] = None,
) -> Offer:
    """Shipper follow-up on their live bid.

    ``propose_price`` confirms a (new) price and moves the bid to
    ``inprogress``; ``cancel`` withdraws it.
    """
    async with order_locks.hold(order_id):
        order = await order_service.get_order_for_update(db, order_id)
        offer = await _active_offer_for(db, order_id, actor.user_id)
        if offer is None:
            raise NotFound(f"No active offer from you on order {order.request_number}")

        if action == OfferAction.CANCEL:
            offer.status = OfferStatus.CANCELLED
            offer.decided_at = utc_now()
        else:
            _ensure_open(order)
            offer.price = price
            offer.status = OfferStatus.INPROGRESS

        await db.commit()
        await db.refresh(offer)

    logger.info(
        "Offer %s on order %s -> %s by shipper %s",
        offer.id,
        order.request_number,
        offer.status.value,
        actor.user_id,
    )
    return offer


# ---------------------------------------------------------------------------
# Shopper side
# ---------------------------------------------------------------------------


async def decide_offer(
    db: AsyncSession,
    *,
    offer_id: uuid.UUID,
    actor: AuthUser,
    decision: OfferDecision,
) -> Offer:
    """Accept or reject a bid on the actor's order.

    Accepting ignores every other live bid and closes the order for bidding.
    """
    offer = await get_offer(db, offer_id)
    order_id = offer.order_id

    async with order_locks.hold(order_id):
        order = await order_service.get_order_for_update(db, order_id)
        if not (actor.is_admin or actor.user_id == order.requester_id):
            raise PermissionDenied("Only the order's requester can decide on offers")

        result = await db.execute(
            select(Offer)
            .where(Offer.order_id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        offers = list(result.scalars().all())
        offer = next(o for o in offers if o.id == offer_id)

        if decision == OfferDecision.ACCEPTED:
            winner = next((o for o in offers if o.status == OfferStatus.ACCEPTED), None)
            if winner is not None:
                logger.warning(
                    "Offer %s lost acceptance race on order %s to %s",
                    offer_id,
                    order.request_number,
                    winner.id,
                )
                raise AlreadyAccepted(
                    f"Order {order.request_number} already accepted another offer",
                    accepted_offer_id=str(winner.id),
                )
            _ensure_open(order)

        if not offer.is_active:
            raise IllegalTransition(
                f"Offer is already {offer.status.value}",
                offer_status=offer.status.value,
            )

        now = utc_now()
        try:
            if decision == OfferDecision.REJECTED:
                offer.status = OfferStatus.REJECTED
                offer.decided_at = now
            else:
                offer.status = OfferStatus.ACCEPTED
                offer.decided_at = now
                for sibling in offers:
                    if sibling.id != offer.id and sibling.is_active:
                        sibling.status = OfferStatus.IGNORED
                        sibling.decided_at = now
                await order_service.close_for_bidding(db, order, offer)
            await db.commit()
        except (StaleDataError, IntegrityError):
            # Another process moved the order or accepted a sibling first.
            await db.rollback()
            logger.warning(
                "Concurrent acceptance detected on order %s", order.request_number
            )
            raise AlreadyAccepted(
                f"Order {order.request_number} was accepted concurrently"
            )
        await db.refresh(offer)

    logger.info(
        "Offer %s %s on order %s by %s",
        offer.id,
        offer.status.value,
        order.request_number,
        actor.user_id,
    )
    return offer


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def list_offers_for_order(
    db: AsyncSession, *, order_id: uuid.UUID, actor: AuthUser
) -> list[Offer]:
    """All bids for the requester and admins; a shipper only sees their own."""
    order = await order_service.get_visible_order(db, order_id, actor)
    query = select(Offer).where(Offer.order_id == order.id)
    if not (actor.is_admin or actor.user_id == order.requester_id):
        query = query.where(Offer.shipper_id == actor.user_id)
    result = await db.execute(query.order_by(Offer.created_at))
    return list(result.scalars().all())


async def list_my_offers(
    db: AsyncSession,
    *,
    actor: AuthUser,
    status: Optional[OfferStatus] = None,
) -> list[Offer]:
    query = select(Offer).where(Offer.shipper_id == actor.user_id)
    if status is not None:
        query = query.where(Offer.status == status)
    result = await db.execute(query.order_by(Offer.created_at.desc()))
    return list(result.scalars().all())
