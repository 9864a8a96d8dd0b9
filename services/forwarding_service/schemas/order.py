"""Order request/response schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.forwarding_service.models.enums import (
    ChargeType,
    OrderStatus,
    ServiceType,
)


class RouteIn(BaseModel):
    """Origin and destination. Every leg must be present for a valid order."""

    ship_from_country_id: Optional[int] = None
    ship_from_state_id: Optional[int] = None
    ship_from_city_id: Optional[int] = None
    ship_to_country_id: Optional[int] = None
    ship_to_state_id: Optional[int] = None
    ship_to_city_id: Optional[int] = None


class LineItemIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    product_url: Optional[str] = Field(None, max_length=2048)
    unit_price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    unit_weight: Decimal = Field(Decimal("0"), ge=0)
    quantity: int = Field(..., gt=0)


class OrderCreate(BaseModel):
    service_type: ServiceType
    route: Optional[RouteIn] = None
    line_items: list[LineItemIn] = Field(default_factory=list)
    service_ids: list[uuid.UUID] = Field(
        default_factory=list, description="Optional add-on services to include"
    )


class QuoteRequest(BaseModel):
    service_type: ServiceType
    line_items: list[LineItemIn] = Field(default_factory=list)
    service_ids: list[uuid.UUID] = Field(default_factory=list)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class TotalsResponse(BaseModel):
    product_total: Decimal
    service_total: Decimal
    surcharge_total: Decimal
    grand_total: Decimal
    total_weight: Decimal

    model_config = ConfigDict(from_attributes=True)


class LineItemResponse(BaseModel):
    id: uuid.UUID
    title: str
    description: Optional[str] = None
    product_url: Optional[str] = None
    unit_price: Decimal
    unit_weight: Decimal
    quantity: int

    model_config = ConfigDict(from_attributes=True)


class OrderServiceResponse(BaseModel):
    addon_service_id: uuid.UUID
    title: str
    price: Decimal
    is_required: bool

    model_config = ConfigDict(from_attributes=True)


class SurchargeResponse(BaseModel):
    title: str
    charge_type: ChargeType
    rate: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    id: uuid.UUID
    request_number: str
    requester_id: str
    service_type: ServiceType
    ship_from_country_id: int
    ship_from_state_id: int
    ship_from_city_id: int
    ship_to_country_id: int
    ship_to_state_id: int
    ship_to_city_id: int
    status: OrderStatus
    accepted_offer_id: Optional[uuid.UUID] = None
    version: int
    line_items: list[LineItemResponse]
    services: list[OrderServiceResponse]
    surcharges: list[SurchargeResponse]
    created_at: datetime
    updated_at: datetime
    cancelled_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class OrderDetailResponse(OrderResponse):
    totals: TotalsResponse


class OrderListResponse(BaseModel):
    orders: list[OrderDetailResponse]
    total: int
    skip: int
    limit: int
