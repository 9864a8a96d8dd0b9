"""Customs declaration schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.forwarding_service.models.enums import ServiceType


class PartyAddressIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    business: Optional[str] = Field(None, max_length=255)
    street: str = Field(..., min_length=1, max_length=255)
    postcode: Optional[str] = Field(None, max_length=20)
    country_id: int
    state_id: Optional[int] = None
    city_id: Optional[int] = None


class CustomsDeclarationIn(BaseModel):
    sender: PartyAddressIn
    recipient: PartyAddressIn
    importer_reference: Optional[str] = Field(None, max_length=100)
    importer_contact: Optional[str] = Field(None, max_length=255)

    category_commercial_sample: bool = False
    category_gift: bool = False
    category_returned_goods: bool = False
    category_documents: bool = False
    category_other: bool = False
    explanation: Optional[str] = Field(
        None, max_length=2000, description="Required when category_other is set"
    )
    comments: Optional[str] = Field(None, max_length=2000)
    office_origin_posting: Optional[str] = Field(None, max_length=255)

    doc_licence: bool = False
    doc_certificate: bool = False
    doc_invoice: bool = False

    contains_prohibited_items: bool = False
    contains_liquids: bool = False
    contains_batteries: bool = False
    is_fragile: bool = False


class CustomsDeclarationResponse(BaseModel):
    id: uuid.UUID
    order_id: uuid.UUID
    shipping_type: ServiceType

    from_name: str
    from_business: Optional[str] = None
    from_street: str
    from_postcode: Optional[str] = None
    from_country_id: int
    from_state_id: Optional[int] = None
    from_city_id: Optional[int] = None
    to_name: str
    to_business: Optional[str] = None
    to_street: str
    to_postcode: Optional[str] = None
    to_country_id: int
    to_state_id: Optional[int] = None
    to_city_id: Optional[int] = None

    importer_reference: Optional[str] = None
    importer_contact: Optional[str] = None
    category_commercial_sample: bool
    category_gift: bool
    category_returned_goods: bool
    category_documents: bool
    category_other: bool
    explanation: Optional[str] = None
    comments: Optional[str] = None
    office_origin_posting: Optional[str] = None
    doc_licence: bool
    doc_certificate: bool
    doc_invoice: bool
    contains_prohibited_items: bool
    contains_liquids: bool
    contains_batteries: bool
    is_fragile: bool

    currency: str
    total_declared_value: Decimal
    total_weight: Decimal
    submitted_by: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
