"""Tracking request/response schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TrackingStatusResponse(BaseModel):
    id: int
    name: str
    manual: bool


class TrackingStepCreate(BaseModel):
    status_id: int
    tracking_number: Optional[str] = Field(None, max_length=100)
    remarks: Optional[str] = None
    files: list[str] = Field(
        default_factory=list, description="Paths of files already uploaded to storage"
    )


class TrackingStepResponse(BaseModel):
    id: uuid.UUID
    order_id: uuid.UUID
    status_id: int
    status_name: str
    is_completed: bool
    tracking_number: Optional[str] = None
    remarks: Optional[str] = None
    files: list[str]
    created_by: str
    completed_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TimelineEntryResponse(BaseModel):
    status_id: int
    name: str
    completed: bool
    is_current: bool
    selectable: bool
    step: Optional[TrackingStepResponse] = None


class TimelineResponse(BaseModel):
    order_id: uuid.UUID
    current_status_id: Optional[int] = None
    entries: list[TimelineEntryResponse]
