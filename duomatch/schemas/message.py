from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID
from datetime import datetime

from duomatch.models.enums import MessageType


class MessageRead(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: UUID
    seq: int
    match_id: UUID
    sender_user_id: UUID
    content: str
    message_type: MessageType
    is_read: bool
    created_at: datetime


class MessageCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    content: str
    message_type: MessageType = MessageType.TEXT


class MarkReadRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    message_ids: list[UUID] = Field(..., min_length=1, max_length=500)


class MarkReadResponse(BaseModel):
    updated: int
