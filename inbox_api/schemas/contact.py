from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ContactResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    phone_number: str
    name: Optional[str] = None
    delivery_address: Optional[str] = None
    delivery_latitude: Optional[float] = None
    delivery_longitude: Optional[float] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ContactUpsert(BaseModel):
    phone_number: str = Field(min_length=1)
    name: Optional[str] = None
    delivery_address: Optional[str] = None
    delivery_latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    delivery_longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    notes: Optional[str] = None


class ContactUpdate(BaseModel):
    """Only the fields sent are written; send null to clear one."""

    name: Optional[str] = None
    delivery_address: Optional[str] = None
    delivery_latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    delivery_longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    notes: Optional[str] = None
