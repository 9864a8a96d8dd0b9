"""Order endpoints: quoting, creation, listing, status changes and checkout."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from libs.auth.dependencies import get_current_user, require_roles
from libs.auth.models import AuthUser, Role
from libs.common.rate_limit import payment_limit
from libs.db.session import get_async_db
from services.forwarding_service.models import Order, OrderStatus
from services.forwarding_service.payment_client import (
    PaymentGatewayClient,
    get_payment_gateway,
)
from services.forwarding_service.schemas import (
    CheckoutResponse,
    OrderCreate,
    OrderDetailResponse,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
    QuoteRequest,
    TotalsResponse,
    WalletTransactionResponse,
)
from services.forwarding_service.services import order_service, payment_service
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/orders", tags=["orders"])


def order_detail(order: Order) -> OrderDetailResponse:
    base = OrderResponse.model_validate(order)
    return OrderDetailResponse(
        **base.model_dump(),
        totals=TotalsResponse.model_validate(order_service.order_totals(order)),
    )


@router.post("/quote", response_model=TotalsResponse)
async def quote_order(
    payload: QuoteRequest,
    _user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Price an order against the current catalog without placing it."""
    totals = await order_service.quote(
        db,
        service_type=payload.service_type,
        line_items=payload.line_items,
        service_ids=payload.service_ids,
    )
    return TotalsResponse.model_validate(totals)


@router.post("", response_model=OrderDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: OrderCreate,
    current_user: AuthUser = Depends(require_roles(Role.SHOPPER)),
    db: AsyncSession = Depends(get_async_db),
):
    order = await order_service.create_order(db, actor=current_user, payload=payload)
    return order_detail(order)


@router.get("", response_model=OrderListResponse)
async def list_orders(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Orders visible to the caller, newest first."""
    orders, total = await order_service.list_orders(
        db, actor=current_user, status=order_status, skip=skip, limit=limit
    )
    return OrderListResponse(
        orders=[order_detail(o) for o in orders], total=total, skip=skip, limit=limit
    )


@router.get("/{order_id}", response_model=OrderDetailResponse)
async def get_order(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    order = await order_service.get_visible_order(db, order_id, current_user)
    return order_detail(order)


@router.post("/{order_id}/status", response_model=OrderDetailResponse)
async def change_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Move an order along its lifecycle (cancel, request payment)."""
    order = await order_service.transition_status(
        db, order_id=order_id, new_status=payload.status, actor=current_user
    )
    return order_detail(order)


@router.post("/{order_id}/checkout", response_model=CheckoutResponse)
@payment_limit
async def checkout_order(
    request: Request,
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    gateway: PaymentGatewayClient = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_async_db),
):
    """Request payment for the accepted offer and capture it."""
    outcome = await payment_service.checkout(
        db, order_id=order_id, actor=current_user, gateway=gateway
    )
    return CheckoutResponse(
        order_id=outcome.order.id,
        order_status=outcome.order.status,
        amount_due=outcome.amount_due,
        transaction=(
            WalletTransactionResponse.model_validate(outcome.transaction)
            if outcome.transaction
            else None
        ),
    )
