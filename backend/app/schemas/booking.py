"""Pydantic schemas for Bookings and their transitions."""
from datetime import datetime
from typing import Optional, Any
from pydantic import BaseModel, Field


class BookingCreate(BaseModel):
    brand_id: str
    service_id: str
    message: Optional[str] = Field(default=None, max_length=2000)


class BookingAction(BaseModel):
    """Body shared by accept / decline / cancel / approve."""

    actor_user_id: str
    version: int  # required for optimistic locking


class RevisionRequest(BookingAction):
    revision_notes: str = Field(min_length=1, max_length=2000)


class BookingOut(BaseModel):
    booking_id: str
    brand_id: str
    creator_id: str
    service_id: Optional[str] = None
    service_name: Optional[str] = None
    message: Optional[str] = None
    status: str
    delivery_status: Optional[str] = None
    payment_status: str
    total_price_cents: int
    delivery_days: int
    delivery_deadline: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    revision_count: int
    revision_notes: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookingMutationOut(BaseModel):
    mutation_id: str
    actor_user_id: Optional[str] = None
    action_type: str
    before_snapshot: Optional[dict[str, Any]] = None
    after_snapshot: dict[str, Any]
    created_at: datetime

    model_config = {"from_attributes": True}
