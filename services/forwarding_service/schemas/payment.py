"""Checkout and processor callback schemas."""

import uuid
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field
from services.forwarding_service.models.enums import OrderStatus
from services.forwarding_service.schemas.wallet import WalletTransactionResponse


class CaptureEvent(BaseModel):
    """Body of the processor's signed capture callback."""

    order_id: uuid.UUID
    processor_ref: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., gt=0)
    processor_fee: Optional[Decimal] = Field(None, ge=0)
    status: Literal["succeeded", "failed"] = "succeeded"


class CheckoutResponse(BaseModel):
    order_id: uuid.UUID
    order_status: OrderStatus
    amount_due: Decimal
    transaction: Optional[WalletTransactionResponse] = None
