"""Offer request/response schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from services.forwarding_service.models.enums import (
    OfferAction,
    OfferDecision,
    OfferStatus,
)


class OfferSubmit(BaseModel):
    price: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    note: Optional[str] = Field(None, max_length=2000)


class OfferRespond(BaseModel):
    """Shipper follow-up on their own bid: withdraw it or confirm a new price."""

    action: OfferAction
    price: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)

    @model_validator(mode="after")
    def _price_required_for_proposal(self) -> "OfferRespond":
        if self.action == OfferAction.PROPOSE_PRICE and self.price is None:
            raise ValueError("price is required when proposing a price")
        return self


class OfferDecisionRequest(BaseModel):
    decision: OfferDecision


class OfferResponse(BaseModel):
    id: uuid.UUID
    order_id: uuid.UUID
    shipper_id: str
    price: Decimal
    note: Optional[str] = None
    status: OfferStatus
    decided_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OfferListResponse(BaseModel):
    offers: list[OfferResponse]
    total: int
