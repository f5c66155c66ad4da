"""Durable deadline timers.

Jobs are rows; scheduling and cancelling join the caller's transaction
so a timer exists exactly when the state change that needs it commits.
"""
import logging
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session

from app.clock import resolve_now
from app.models.scheduled_job import ScheduledJob, JobType, JobStatus

logger = logging.getLogger(__name__)

REVIEW_JOBS = (JobType.review_reminder_48h, JobType.review_reminder_24h, JobType.auto_release)
DISPUTE_RESPONSE_JOBS = (
    JobType.dispute_reminder_48h,
    JobType.dispute_reminder_24h,
    JobType.dispute_escalation,
)


def schedule(
    db: Session,
    job_type: JobType,
    due_at: datetime,
    booking_id: Optional[str] = None,
    dispute_id: Optional[str] = None,
    payload: Optional[dict[str, Any]] = None,
) -> ScheduledJob:
    job = ScheduledJob(
        job_type=job_type,
        due_at=due_at,
        booking_id=booking_id,
        dispute_id=dispute_id,
        payload=payload,
        status=JobStatus.pending,
        attempts=0,
    )
    db.add(job)
    logger.info("Scheduled %s at %s (booking=%s dispute=%s)", job_type.value, due_at.isoformat(),
                booking_id, dispute_id)
    return job


def cancel_pending(
    db: Session,
    booking_id: Optional[str] = None,
    dispute_id: Optional[str] = None,
    job_types: Optional[Iterable[JobType]] = None,
    now: Optional[datetime] = None,
) -> int:
    """Mark matching pending jobs cancelled; returns how many were touched."""
    query = db.query(ScheduledJob).filter(ScheduledJob.status == JobStatus.pending)
    if booking_id:
        query = query.filter(ScheduledJob.booking_id == booking_id)
    if dispute_id:
        query = query.filter(ScheduledJob.dispute_id == dispute_id)
    if job_types:
        query = query.filter(ScheduledJob.job_type.in_(list(job_types)))

    now = resolve_now(now)
    jobs = query.all()
    for job in jobs:
        job.status = JobStatus.cancelled
        job.completed_at = now
    if jobs:
        logger.info("Cancelled %d pending job(s) (booking=%s dispute=%s)", len(jobs), booking_id, dispute_id)
    return len(jobs)


def due_jobs(db: Session, now: datetime, limit: int) -> list[ScheduledJob]:
    return (
        db.query(ScheduledJob)
        .filter(ScheduledJob.status == JobStatus.pending, ScheduledJob.due_at <= now)
        .order_by(ScheduledJob.due_at.asc())
        .limit(limit)
        .all()
    )


def list_jobs(
    db: Session,
    status: Optional[JobStatus] = None,
    booking_id: Optional[str] = None,
    dispute_id: Optional[str] = None,
) -> list[ScheduledJob]:
    query = db.query(ScheduledJob)
    if status:
        query = query.filter(ScheduledJob.status == status)
    if booking_id:
        query = query.filter(ScheduledJob.booking_id == booking_id)
    if dispute_id:
        query = query.filter(ScheduledJob.dispute_id == dispute_id)
    return query.order_by(ScheduledJob.due_at.asc()).all()
