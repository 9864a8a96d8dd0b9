"""Customs declaration endpoints."""

import uuid

from fastapi import APIRouter, Depends, Response, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.forwarding_service.schemas import (
    CustomsDeclarationIn,
    CustomsDeclarationResponse,
)
from services.forwarding_service.services import customs_service
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["customs"])


@router.put(
    "/orders/{order_id}/customs-declaration",
    response_model=CustomsDeclarationResponse,
)
async def submit_customs_declaration(
    order_id: uuid.UUID,
    payload: CustomsDeclarationIn,
    response: Response,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """File the order's declaration (201) or replace the existing one (200)."""
    declaration, created = await customs_service.submit_declaration(
        db, order_id=order_id, actor=current_user, payload=payload
    )
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return declaration


@router.get(
    "/orders/{order_id}/customs-declaration",
    response_model=CustomsDeclarationResponse,
)
async def get_customs_declaration(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await customs_service.get_declaration(
        db, order_id=order_id, viewer=current_user
    )
