"""Order message thread and admin moderation endpoints."""

import uuid

from fastapi import APIRouter, Depends, Query, Request, status
from libs.auth.dependencies import get_current_user, require_admin
from libs.auth.models import AuthUser
from libs.common.rate_limit import write_limit
from libs.db.session import get_async_db
from services.forwarding_service.schemas import (
    AttachmentResponse,
    MessageCreate,
    MessageResponse,
    ModerationQueueResponse,
    ModerationRequest,
    ThreadResponse,
)
from services.forwarding_service.services import message_service
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["messages"])


@router.post(
    "/orders/{order_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
@write_limit
async def send_message(
    request: Request,
    order_id: uuid.UUID,
    payload: MessageCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Messages with attachments are held for moderation before delivery."""
    return await message_service.send(
        db,
        order_id=order_id,
        actor=current_user,
        receiver_id=payload.receiver_id,
        text=payload.text,
        attachments=payload.attachments,
    )


@router.get("/orders/{order_id}/messages", response_model=ThreadResponse)
async def get_thread(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    thread = await message_service.visible_thread(
        db, order_id=order_id, viewer=current_user
    )
    return ThreadResponse(
        order_id=order_id,
        messages=[
            MessageResponse.model_validate(item.message).model_copy(
                update={
                    "attachments": [
                        AttachmentResponse.model_validate(a) for a in item.attachments
                    ]
                }
            )
            for item in thread
        ],
    )


@router.get("/messages/pending", response_model=ModerationQueueResponse)
async def moderation_queue(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    messages, total = await message_service.moderation_queue(
        db, actor=admin, skip=skip, limit=limit
    )
    return ModerationQueueResponse(
        messages=[MessageResponse.model_validate(m) for m in messages], total=total
    )


@router.post("/messages/{message_id}/moderation", response_model=MessageResponse)
async def moderate_message(
    message_id: uuid.UUID,
    payload: ModerationRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Approve or reject a pending message. Admin only."""
    return await message_service.moderate(
        db, message_id=message_id, decision=payload.decision, actor=current_user
    )
