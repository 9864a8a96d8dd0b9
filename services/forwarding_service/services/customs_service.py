"""Customs declarations: one per order, filed once a shipper has been chosen."""

import uuid

from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.logging import get_logger
from services.forwarding_service.errors import (
    IllegalTransition,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from services.forwarding_service.models import (
    CustomsDeclaration,
    Order,
    OrderStatus,
)
from services.forwarding_service.schemas.customs import CustomsDeclarationIn
from services.forwarding_service.services import order_service
from services.forwarding_service.services.locks import order_locks
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

settings = get_settings()

# Statuses in which the shipment is known but has not been handed over yet.
DECLARABLE_STATUSES = (
    OrderStatus.OFFER_ACCEPTED,
    OrderStatus.PAYMENT_REQUIRED,
    OrderStatus.PAYMENT_COMPLETED,
    OrderStatus.IN_TRACKING,
)

_CATEGORY_FIELDS = (
    "category_commercial_sample",
    "category_gift",
    "category_returned_goods",
    "category_documents",
    "category_other",
)


async def _is_declarant(db: AsyncSession, order: Order, actor: AuthUser) -> bool:
    if actor.is_admin or actor.user_id == order.requester_id:
        return True
    return actor.user_id == await order_service.accepted_shipper_id(db, order)


def _check_payload(payload: CustomsDeclarationIn) -> None:
    if not any(getattr(payload, name) for name in _CATEGORY_FIELDS):
        raise ValidationError("Pick at least one category for the shipment")
    if payload.category_other and not (payload.explanation or "").strip():
        raise ValidationError("An explanation is required for category 'other'")


async def _find(db: AsyncSession, order_id: uuid.UUID):
    result = await db.execute(
        select(CustomsDeclaration).where(CustomsDeclaration.order_id == order_id)
    )
    return result.scalar_one_or_none()


def _apply(declaration: CustomsDeclaration, payload: CustomsDeclarationIn) -> None:
    for prefix, party in (("from", payload.sender), ("to", payload.recipient)):
        for field, value in party.model_dump().items():
            setattr(declaration, f"{prefix}_{field}", value)
    for field, value in payload.model_dump(exclude={"sender", "recipient"}).items():
        setattr(declaration, field, value)


async def submit_declaration(
    db: AsyncSession,
    *,
    order_id: uuid.UUID,
    actor: AuthUser,
    payload: CustomsDeclarationIn,
) -> tuple[CustomsDeclaration, bool]:
    """File or replace the order's declaration. Returns ``(declaration, created)``.

    Value and weight are taken from the order's current totals.
    """
    _check_payload(payload)

    async with order_locks.hold(order_id):
        order = await order_service.get_order_for_update(db, order_id)
        if not await _is_declarant(db, order, actor):
            raise PermissionDenied(
                "Only the requester or the accepted shipper can declare customs"
            )
        if order.status not in DECLARABLE_STATUSES:
            raise IllegalTransition(
                f"Customs cannot be declared while order is '{order.status.value}'",
                current_status=order.status.value,
            )

        declaration = await _find(db, order.id)
        created = declaration is None
        if created:
            declaration = CustomsDeclaration(order_id=order.id)
            db.add(declaration)

        totals = order_service.order_totals(order)
        _apply(declaration, payload)
        declaration.shipping_type = order.service_type
        declaration.currency = settings.PAYMENT_CURRENCY
        declaration.total_declared_value = totals.product_total
        declaration.total_weight = totals.total_weight
        declaration.submitted_by = actor.user_id
        await db.commit()
        await db.refresh(declaration)

    logger.info(
        "Customs declaration for order %s %s by %s",
        order.request_number,
        "filed" if created else "updated",
        actor.user_id,
    )
    return declaration, created


async def get_declaration(
    db: AsyncSession, *, order_id: uuid.UUID, viewer: AuthUser
) -> CustomsDeclaration:
    order = await order_service.get_order(db, order_id)
    if not await _is_declarant(db, order, viewer):
        raise NotFound(f"Order {order_id} not found")
    declaration = await _find(db, order.id)
    if declaration is None:
        raise NotFound(f"Order {order.request_number} has no customs declaration")
    return declaration
