"""Catalog endpoints: add-on services and payment plans."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from libs.auth.dependencies import get_current_user, require_admin
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.forwarding_service.models import PlanRole, ServiceType
from services.forwarding_service.schemas import (
    AddonServiceCreate,
    AddonServiceResponse,
    AddonServiceUpdate,
    PaymentPlanCreate,
    PaymentPlanResponse,
    PaymentPlanUpdate,
)
from services.forwarding_service.services import catalog_service
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/catalog", tags=["catalog"])


# ---------------------------------------------------------------------------
# Add-on services
# ---------------------------------------------------------------------------


@router.get("/services", response_model=list[AddonServiceResponse])
async def list_services(
    include_inactive: bool = False,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Active add-on services; admins may include inactive ones."""
    return await catalog_service.list_addon_services(
        db, include_inactive=include_inactive and current_user.is_admin
    )


@router.post(
    "/services",
    response_model=AddonServiceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_service(
    payload: AddonServiceCreate,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await catalog_service.create_addon_service(db, **payload.model_dump())


@router.patch("/services/{service_id}", response_model=AddonServiceResponse)
async def update_service(
    service_id: uuid.UUID,
    payload: AddonServiceUpdate,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await catalog_service.update_addon_service(
        db, service_id, **payload.model_dump(exclude_unset=True)
    )


# ---------------------------------------------------------------------------
# Payment plans
# ---------------------------------------------------------------------------


@router.get("/payment-plans", response_model=list[PaymentPlanResponse])
async def list_payment_plans(
    role: Optional[PlanRole] = None,
    service_type: Optional[ServiceType] = None,
    include_inactive: bool = Query(False),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await catalog_service.list_payment_plans(
        db,
        role=role,
        service_type=service_type,
        include_inactive=include_inactive and current_user.is_admin,
    )


@router.post(
    "/payment-plans",
    response_model=PaymentPlanResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_payment_plan(
    payload: PaymentPlanCreate,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await catalog_service.create_payment_plan(db, **payload.model_dump())


@router.patch("/payment-plans/{plan_id}", response_model=PaymentPlanResponse)
async def update_payment_plan(
    plan_id: uuid.UUID,
    payload: PaymentPlanUpdate,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await catalog_service.update_payment_plan(
        db, plan_id, **payload.model_dump(exclude_unset=True)
    )
