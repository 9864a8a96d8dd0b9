"""Offer negotiation endpoints."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from libs.auth.dependencies import get_current_user, require_roles
from libs.auth.models import AuthUser, Role
from libs.common.rate_limit import write_limit
from libs.db.session import get_async_db
from services.forwarding_service.models import OfferStatus
from services.forwarding_service.schemas import (
    OfferDecisionRequest,
    OfferListResponse,
    OfferRespond,
    OfferResponse,
    OfferSubmit,
)
from services.forwarding_service.services import offer_service
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["offers"])


@router.post("/orders/{order_id}/offers", response_model=OfferResponse)
@write_limit
async def submit_offer(
    request: Request,
    response: Response,
    order_id: uuid.UUID,
    payload: OfferSubmit,
    current_user: AuthUser = Depends(require_roles(Role.SHIPPER)),
    db: AsyncSession = Depends(get_async_db),
):
    """Bid on an open order. Re-submitting updates your live bid's price."""
    offer, created = await offer_service.submit_offer(
        db,
        order_id=order_id,
        actor=current_user,
        price=payload.price,
        note=payload.note,
    )
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return offer


@router.get("/orders/{order_id}/offers", response_model=OfferListResponse)
async def list_order_offers(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    offers = await offer_service.list_offers_for_order(
        db, order_id=order_id, actor=current_user
    )
    return OfferListResponse(
        offers=[OfferResponse.model_validate(o) for o in offers], total=len(offers)
    )


@router.post("/orders/{order_id}/offers/respond", response_model=OfferResponse)
async def respond_to_offer(
    order_id: uuid.UUID,
    payload: OfferRespond,
    current_user: AuthUser = Depends(require_roles(Role.SHIPPER)),
    db: AsyncSession = Depends(get_async_db),
):
    """Confirm a price on (or withdraw) your live bid for this order."""
    return await offer_service.respond_to_offer(
        db,
        order_id=order_id,
        actor=current_user,
        action=payload.action,
        price=payload.price,
    )


@router.get("/offers/mine", response_model=OfferListResponse)
async def list_my_offers(
    offer_status: Optional[OfferStatus] = Query(None, alias="status"),
    current_user: AuthUser = Depends(require_roles(Role.SHIPPER)),
    db: AsyncSession = Depends(get_async_db),
):
    offers = await offer_service.list_my_offers(
        db, actor=current_user, status=offer_status
    )
    return OfferListResponse(
        offers=[OfferResponse.model_validate(o) for o in offers], total=len(offers)
    )


@router.post("/offers/{offer_id}/decision", response_model=OfferResponse)
async def decide_offer(
    offer_id: uuid.UUID,
    payload: OfferDecisionRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Accept or reject a bid. Accepting closes the order for bidding."""
    return await offer_service.decide_offer(
        db, offer_id=offer_id, actor=current_user, decision=payload.decision
    )
