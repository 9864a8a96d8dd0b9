"""Catalog (add-on services, payment plans) schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.forwarding_service.models.enums import ChargeType, PlanRole, ServiceType


class AddonServiceCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    is_required: bool = False
    is_active: bool = True


class AddonServiceUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    is_required: Optional[bool] = None
    is_active: Optional[bool] = None


class AddonServiceResponse(BaseModel):
    id: uuid.UUID
    title: str
    description: Optional[str] = None
    price: Decimal
    is_required: bool
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentPlanCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = None
    role: PlanRole
    service_type: Optional[ServiceType] = None
    charge_type: ChargeType
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    is_active: bool = True


class PaymentPlanUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = None
    service_type: Optional[ServiceType] = None
    charge_type: Optional[ChargeType] = None
    amount: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    is_active: Optional[bool] = None


class PaymentPlanResponse(BaseModel):
    id: uuid.UUID
    title: str
    description: Optional[str] = None
    role: PlanRole
    service_type: Optional[ServiceType] = None
    charge_type: ChargeType
    amount: Decimal
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
