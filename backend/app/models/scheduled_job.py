"""ScheduledJob ORM model: durable deadline timers polled by the worker."""
import uuid
import enum
from sqlalchemy import Column, String, Integer, JSON, ForeignKey, Enum as SAEnum
from sqlalchemy.sql import func
from app.database import Base, UTCDateTime


class JobType(str, enum.Enum):
    review_reminder_48h = "review_reminder_48h"
    review_reminder_24h = "review_reminder_24h"
    auto_release = "auto_release"
    dispute_reminder_48h = "dispute_reminder_48h"
    dispute_reminder_24h = "dispute_reminder_24h"
    dispute_escalation = "dispute_escalation"
    dispute_resolution_reminder = "dispute_resolution_reminder"


class JobStatus(str, enum.Enum):
    pending = "pending"
    done = "done"
    skipped = "skipped"
    cancelled = "cancelled"
    failed = "failed"


class ScheduledJob(Base):
    __tablename__ = "scheduled_jobs"

    job_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    job_type = Column(SAEnum(JobType), nullable=False)
    booking_id = Column(String(36), ForeignKey("bookings.booking_id"), nullable=True, index=True)
    dispute_id = Column(String(36), ForeignKey("booking_disputes.dispute_id"), nullable=True, index=True)
    due_at = Column(UTCDateTime, nullable=False, index=True)
    payload = Column(JSON, nullable=True)
    status = Column(SAEnum(JobStatus), nullable=False, default=JobStatus.pending, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(String(2000), nullable=True)
    created_at = Column(UTCDateTime, server_default=func.now())
    completed_at = Column(UTCDateTime, nullable=True)
