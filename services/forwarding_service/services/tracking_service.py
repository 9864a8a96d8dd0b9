"""Delivery tracking: an append-only walk through a fixed status sequence."""

import uuid
from dataclasses import dataclass
from typing import Optional

from libs.common.logging import get_logger
from services.forwarding_service.errors import (
    IllegalTransition,
    SkippedStep,
    ValidationError,
)
from services.forwarding_service.models import OrderStatusStep, TrackingStatus
from services.forwarding_service.models.enums import TERMINAL_TRACKING_STATUSES
from services.forwarding_service.services.locks import tracking_locks
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

# The linear part of the sequence; Cancelled is a side branch.
SEQUENCE: tuple[TrackingStatus, ...] = tuple(
    s for s in TrackingStatus if s != TrackingStatus.CANCELLED
)


@dataclass(frozen=True)
class TimelineEntry:
    status: TrackingStatus
    completed: bool
    is_current: bool
    selectable: bool
    step: Optional[OrderStatusStep]


def list_statuses() -> list[TrackingStatus]:
    return list(TrackingStatus)


def next_status(current: Optional[TrackingStatus]) -> Optional[TrackingStatus]:
    """The only status that may follow ``current``; None once terminal."""
    if current is None:
        return SEQUENCE[0]
    if current in TERMINAL_TRACKING_STATUSES:
        return None
    return SEQUENCE[SEQUENCE.index(current) + 1]


async def get_steps(db: AsyncSession, order_id: uuid.UUID) -> list[OrderStatusStep]:
    result = await db.execute(
        select(OrderStatusStep)
        .where(OrderStatusStep.order_id == order_id)
        .order_by(OrderStatusStep.completed_at, OrderStatusStep.status_id)
    )
    return list(result.scalars().all())


async def current_step(
    db: AsyncSession, order_id: uuid.UUID
) -> Optional[OrderStatusStep]:
    """The most recently completed step, or None for an untracked order."""
    steps = await get_steps(db, order_id)
    if not steps:
        return None
    cancelled = [s for s in steps if s.status_id == TrackingStatus.CANCELLED]
    if cancelled:
        return cancelled[0]
    return max(steps, key=lambda s: s.status_id)


async def append_step(
    db: AsyncSession,
    *,
    order_id: uuid.UUID,
    status_id: int,
    created_by: str,
    tracking_number: Optional[str] = None,
    remarks: Optional[str] = None,
    files: Optional[list[str]] = None,
    system: bool = False,
    commit: bool = True,
) -> tuple[OrderStatusStep, bool]:
    """Append the next tracking step for an order.

    Only the immediate successor of the current step is accepted. Repeating
    the current step is a no-op and returns the existing row.

    Returns ``(step, created)``.
    """
    try:
        status = TrackingStatus(status_id)
    except ValueError:
        raise ValidationError(f"Unknown tracking status id {status_id}")

    if status.is_system and not system:
        raise ValidationError(
            f"'{status.label}' is recorded automatically and cannot be set manually",
            status_id=status.value,
        )

    async with tracking_locks.hold(order_id):
        current = await current_step(db, order_id)
        current_status = TrackingStatus(current.status_id) if current else None

        if current is not None and current_status == status:
            logger.info(
                "Tracking step %s already current for order %s", status.label, order_id
            )
            return current, False

        if current_status in TERMINAL_TRACKING_STATUSES:
            raise IllegalTransition(
                f"Tracking for order {order_id} ended at '{current_status.label}'",
                current_status=current_status.label,
            )

        if status != TrackingStatus.CANCELLED:
            expected = next_status(current_status)
            if status != expected:
                logger.warning(
                    "Rejected tracking step %s for order %s; expected %s",
                    status.label,
                    order_id,
                    expected.label,
                )
                raise SkippedStep(
                    f"Expected next tracking step '{expected.label}', got '{status.label}'",
                    expected_status_id=expected.value,
                    expected_status=expected.label,
                )

        step = OrderStatusStep(
            order_id=order_id,
            status_id=status.value,
            status_name=status.label,
            is_completed=True,
            tracking_number=tracking_number,
            remarks=remarks,
            files=list(files or []),
            created_by=created_by,
        )
        db.add(step)
        await db.flush()

        if commit:
            await db.commit()
            await db.refresh(step)

    logger.info("Order %s tracking advanced to %s", order_id, status.label)
    return step, True


async def record_system_step(
    db: AsyncSession,
    *,
    order_id: uuid.UUID,
    status: TrackingStatus,
    commit: bool = False,
) -> Optional[OrderStatusStep]:
    """Append a system-derived step unless the order already reached it.

    Called inside the transaction of the lifecycle change that implies it.
    """
    if status != TrackingStatus.CANCELLED:
        reached = [
            s.status_id
            for s in await get_steps(db, order_id)
            if s.status_id != TrackingStatus.CANCELLED
        ]
        if reached and max(reached) >= status.value:
            return None
    step, _ = await append_step(
        db,
        order_id=order_id,
        status_id=status.value,
        created_by="system",
        system=True,
        commit=commit,
    )
    return step


async def timeline(db: AsyncSession, order_id: uuid.UUID) -> list[TimelineEntry]:
    """Full sequence with completion flags and the next selectable status."""
    steps = {s.status_id: s for s in await get_steps(db, order_id)}
    current = await current_step(db, order_id)
    current_status = TrackingStatus(current.status_id) if current else None
    upcoming = next_status(current_status)

    entries = []
    for status in TrackingStatus:
        step = steps.get(status.value)
        if status == TrackingStatus.CANCELLED and step is None:
            continue
        entries.append(
            TimelineEntry(
                status=status,
                completed=step is not None,
                is_current=status == current_status,
                selectable=status == upcoming and not status.is_system,
                step=step,
            )
        )
    return entries
