"""Pydantic schemas for scheduled deadline jobs."""
from datetime import datetime
from typing import Optional, Any
from pydantic import BaseModel


class ScheduledJobOut(BaseModel):
    job_id: str
    job_type: str
    booking_id: Optional[str] = None
    dispute_id: Optional[str] = None
    due_at: datetime
    payload: Optional[dict[str, Any]] = None
    status: str
    attempts: int
    last_error: Optional[str] = None
    completed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class JobRunSummary(BaseModel):
    processed: int = 0
    done: int = 0
    skipped: int = 0
    failed: int = 0
