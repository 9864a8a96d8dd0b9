"""Delivery tracking endpoints."""

import uuid

from fastapi import APIRouter, Depends, Response, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.forwarding_service.models import TrackingStatus
from services.forwarding_service.schemas import (
    TimelineEntryResponse,
    TimelineResponse,
    TrackingStatusResponse,
    TrackingStepCreate,
    TrackingStepResponse,
)
from services.forwarding_service.services import order_service, tracking_service
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["tracking"])


@router.get("/tracking/statuses", response_model=list[TrackingStatusResponse])
async def list_tracking_statuses(_user: AuthUser = Depends(get_current_user)):
    """The fixed tracking sequence. ``manual`` statuses are set by the shipper."""
    return [
        TrackingStatusResponse(id=s.value, name=s.label, manual=not s.is_system)
        for s in tracking_service.list_statuses()
    ]


@router.post("/orders/{order_id}/tracking", response_model=TrackingStepResponse)
async def append_tracking_step(
    order_id: uuid.UUID,
    payload: TrackingStepCreate,
    response: Response,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    step, created = await order_service.advance_tracking(
        db,
        order_id=order_id,
        actor=current_user,
        status_id=payload.status_id,
        tracking_number=payload.tracking_number,
        remarks=payload.remarks,
        files=payload.files,
    )
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return step


@router.get("/orders/{order_id}/tracking", response_model=TimelineResponse)
async def get_tracking_timeline(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    order = await order_service.get_visible_order(db, order_id, current_user)
    entries = await tracking_service.timeline(db, order.id)
    current = next((e for e in entries if e.is_current), None)
    return TimelineResponse(
        order_id=order.id,
        current_status_id=current.status.value if current else None,
        entries=[
            TimelineEntryResponse(
                status_id=e.status.value,
                name=e.status.label,
                completed=e.completed,
                is_current=e.is_current,
                selectable=e.selectable,
                step=TrackingStepResponse.model_validate(e.step) if e.step else None,
            )
            for e in entries
        ],
    )
