from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    conversation_id: int
    direction: str
    body: str
    provider_message_id: Optional[str] = None
    media_url: Optional[str] = None
    media_type: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    created_at: datetime


class MessagePageResponse(BaseModel):
    messages: list[MessageResponse]
    has_more: bool = Field(serialization_alias="hasMore")
    oldest_message_id: Optional[int] = Field(default=None, serialization_alias="oldestMessageId")
    total: int
    limit: int
    before_id: Optional[int] = Field(default=None, serialization_alias="beforeId")


class LocationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    body: str
    latitude: float
    longitude: float
    created_at: datetime
