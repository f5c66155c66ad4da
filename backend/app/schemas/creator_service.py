"""Pydantic schemas for creator services."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class CreatorServiceCreate(BaseModel):
    creator_id: str
    service_type: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    price_cents: int = Field(gt=0)
    delivery_days: int = Field(default=7, ge=1)


class CreatorServiceUpdate(BaseModel):
    service_type: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    price_cents: Optional[int] = Field(default=None, gt=0)
    delivery_days: Optional[int] = Field(default=None, ge=1)
    is_active: Optional[bool] = None


class CreatorServiceOut(BaseModel):
    service_id: str
    creator_id: str
    service_type: str
    description: Optional[str] = None
    price_cents: int
    delivery_days: int
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
