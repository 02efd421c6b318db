from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from inbox_api.schemas.message import MessageResponse


class ConversationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    phone_number: str
    mode: str
    human_handled: bool
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None


class ConversationSummaryResponse(ConversationResponse):
    message_count: int = 0
    last_message: Optional[str] = None
    last_message_direction: Optional[str] = None


class ReplyRequest(BaseModel):
    text: str = Field(min_length=1, max_length=4096)

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("text cannot be empty")
        return value


class ReplyResponse(BaseModel):
    success: bool = True
    delivered: bool
    message: MessageResponse


class ConversationActionResponse(BaseModel):
    success: bool = True
    conversation: ConversationResponse


class DeleteResponse(BaseModel):
    success: bool = True
    message: str
