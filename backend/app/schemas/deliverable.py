"""Pydantic schemas for deliverable uploads and submissions."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class UploadRequest(BaseModel):
    actor_user_id: str
    file_name: str = Field(min_length=1, max_length=255)
    mime_type: str = Field(min_length=1, max_length=100)


class UploadTicket(BaseModel):
    storage_key: str
    upload_url: str
    expires_in: int


class DeliverableFile(BaseModel):
    file_name: str = Field(min_length=1, max_length=255)
    mime_type: str = Field(min_length=1, max_length=100)
    file_size_bytes: int = Field(ge=0)
    storage_key: str = Field(min_length=1, max_length=512)
    description: Optional[str] = Field(default=None, max_length=1000)


class DeliverableSubmit(BaseModel):
    actor_user_id: str
    version: int  # booking version, for optimistic locking
    files: list[DeliverableFile] = Field(min_length=1)
    notes: Optional[str] = Field(default=None, max_length=2000)


class DeliverableOut(BaseModel):
    deliverable_id: str
    booking_id: str
    creator_id: str
    version: int
    file_name: str
    mime_type: str
    file_size_bytes: int
    storage_key: str
    description: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class SubmissionOut(BaseModel):
    """Result of a submission: the new deliverable version plus the booking state."""

    deliverable_version: int
    files: list[DeliverableOut]
    booking_version: int
    delivery_status: str
