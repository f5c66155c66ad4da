"""Pydantic schemas for booking disputes."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class DisputeOpen(BaseModel):
    booking_id: str
    opened_by_user_id: str
    reason: str
    evidence_description: Optional[str] = Field(default=None, max_length=4000)


class DisputeRespond(BaseModel):
    responder_user_id: str
    response_text: str


class DisputeResolve(BaseModel):
    admin_user_id: str
    admin_decision_reason: str
    refund_percentage: int = Field(ge=0, le=100)


class DisputeNotes(BaseModel):
    admin_user_id: str
    admin_notes: str = Field(max_length=4000)


class DisputeOut(BaseModel):
    dispute_id: str
    booking_id: str
    opened_by_user_id: str
    opened_by_role: str
    reason: str
    evidence_description: Optional[str] = None
    status: str
    response_text: Optional[str] = None
    response_submitted_at: Optional[datetime] = None
    response_deadline: datetime
    escalated_to_admin: bool
    escalated_at: Optional[datetime] = None
    resolution_deadline: Optional[datetime] = None
    resolution: Optional[str] = None
    refund_percentage: Optional[int] = None
    admin_decision_reason: Optional[str] = None
    admin_notes: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolved_by_user_id: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}
