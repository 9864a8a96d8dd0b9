"""Add-on services and payment plans."""

import uuid
from typing import Any, Optional, Sequence

from libs.common.logging import get_logger
from services.forwarding_service.errors import NotFound, ValidationError
from services.forwarding_service.models import (
    AddonService,
    ChargeType,
    PaymentPlan,
    PlanRole,
    ServiceType,
)
from services.forwarding_service.services.pricing import ChargeRule, ChargeSchedule
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Add-on services
# ---------------------------------------------------------------------------


async def list_addon_services(
    db: AsyncSession, *, include_inactive: bool = False
) -> list[AddonService]:
    query = select(AddonService).order_by(AddonService.title)
    if not include_inactive:
        query = query.where(AddonService.is_active.is_(True))
    result = await db.execute(query)
    return list(result.scalars().all())


async def create_addon_service(db: AsyncSession, **fields: Any) -> AddonService:
    service = AddonService(**fields)
    db.add(service)
    await db.commit()
    await db.refresh(service)
    logger.info("Created add-on service %s (%s)", service.title, service.price)
    return service


async def update_addon_service(
    db: AsyncSession, service_id: uuid.UUID, **fields: Any
) -> AddonService:
    service = await db.get(AddonService, service_id)
    if service is None:
        raise NotFound(f"Add-on service {service_id} not found")
    for key, value in fields.items():
        setattr(service, key, value)
    await db.commit()
    await db.refresh(service)
    logger.info("Updated add-on service %s: %s", service_id, sorted(fields))
    return service


async def resolve_order_services(
    db: AsyncSession, selected_ids: Sequence[uuid.UUID]
) -> list[tuple[AddonService, bool]]:
    """Active services offered on the order form, each with its selected flag.

    Unknown or inactive selections are rejected.
    """
    services = await list_addon_services(db)
    by_id = {s.id: s for s in services}
    unknown = [str(sid) for sid in selected_ids if sid not in by_id]
    if unknown:
        raise ValidationError(
            "Unknown or inactive add-on services selected", service_ids=",".join(unknown)
        )
    selected = set(selected_ids)
    return [(s, s.id in selected) for s in services]


# ---------------------------------------------------------------------------
# Payment plans
# ---------------------------------------------------------------------------


async def list_payment_plans(
    db: AsyncSession,
    *,
    role: Optional[PlanRole] = None,
    service_type: Optional[ServiceType] = None,
    include_inactive: bool = False,
) -> list[PaymentPlan]:
    query = select(PaymentPlan).order_by(PaymentPlan.title)
    if role is not None:
        query = query.where(PaymentPlan.role == role)
    if service_type is not None:
        query = query.where(
            or_(
                PaymentPlan.service_type.is_(None),
                PaymentPlan.service_type == service_type,
            )
        )
    if not include_inactive:
        query = query.where(PaymentPlan.is_active.is_(True))
    result = await db.execute(query)
    return list(result.scalars().all())


async def create_payment_plan(db: AsyncSession, **fields: Any) -> PaymentPlan:
    _check_plan_amount(fields.get("charge_type"), fields.get("amount"))
    plan = PaymentPlan(**fields)
    db.add(plan)
    await db.commit()
    await db.refresh(plan)
    logger.info(
        "Created %s payment plan %s (%s %s)",
        plan.role.value,
        plan.title,
        plan.charge_type.value,
        plan.amount,
    )
    return plan


async def update_payment_plan(
    db: AsyncSession, plan_id: uuid.UUID, **fields: Any
) -> PaymentPlan:
    plan = await db.get(PaymentPlan, plan_id)
    if plan is None:
        raise NotFound(f"Payment plan {plan_id} not found")
    _check_plan_amount(
        fields.get("charge_type", plan.charge_type), fields.get("amount", plan.amount)
    )
    for key, value in fields.items():
        setattr(plan, key, value)
    await db.commit()
    await db.refresh(plan)
    logger.info("Updated payment plan %s: %s", plan_id, sorted(fields))
    return plan


def _check_plan_amount(charge_type, amount) -> None:
    if charge_type == ChargeType.PERCENT and amount is not None and amount > 100:
        raise ValidationError("Percent plans cannot exceed 100%", amount=str(amount))


async def commission_schedule(
    db: AsyncSession, service_type: ServiceType
) -> ChargeSchedule:
    """The commission taken from a shipper payout for this service type."""
    plans = await list_payment_plans(
        db, role=PlanRole.SHIPPER, service_type=service_type
    )
    return ChargeSchedule.of(ChargeRule(p.charge_type, p.amount) for p in plans)
