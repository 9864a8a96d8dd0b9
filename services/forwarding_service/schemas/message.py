"""Message request/response schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.forwarding_service.models.enums import (
    MessageStatus,
    ModerationDecision,
)


class AttachmentIn(BaseModel):
    file_path: str = Field(..., min_length=1, max_length=1024)
    mime_type: str = Field(..., min_length=1, max_length=100)
    file_name: Optional[str] = Field(None, max_length=255)


class MessageCreate(BaseModel):
    receiver_id: str
    text: Optional[str] = Field(None, max_length=5000)
    attachments: list[AttachmentIn] = Field(default_factory=list)


class AttachmentResponse(BaseModel):
    id: uuid.UUID
    file_path: str
    file_name: Optional[str] = None
    mime_type: str

    model_config = ConfigDict(from_attributes=True)


class MessageResponse(BaseModel):
    id: uuid.UUID
    order_id: uuid.UUID
    sender_id: str
    sender_role: Optional[str] = None
    receiver_id: str
    text: Optional[str] = None
    status: MessageStatus
    attachments: list[AttachmentResponse]
    moderated_by: Optional[str] = None
    moderated_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ThreadResponse(BaseModel):
    order_id: uuid.UUID
    messages: list[MessageResponse]


class ModerationRequest(BaseModel):
    decision: ModerationDecision


class ModerationQueueResponse(BaseModel):
    messages: list[MessageResponse]
    total: int
