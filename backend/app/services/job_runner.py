"""Runs due deadline jobs.

Each job is handled and committed on its own. A handler returns ``True``
when it acted and ``False`` when its precondition no longer holds (the
job is then marked skipped). Errors mark the job failed; nothing is
retried automatically.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.clock import resolve_now
from app.config import settings
from app.models.booking import BookingStatus, DeliveryStatus
from app.models.dispute import DisputeStatus
from app.models.scheduled_job import ScheduledJob, JobType, JobStatus
from app.schemas.job import JobRunSummary
from app.services import booking_service, dispute_service, job_service, notification_service
from app.services.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)

Handler = Callable[[Session, ScheduledJob, NotificationDispatcher, datetime], bool]


def _review_reminder(db: Session, job: ScheduledJob, dispatcher: NotificationDispatcher, now: datetime) -> bool:
    booking = booking_service.get_booking(db, job.booking_id)
    if booking.status != BookingStatus.accepted or booking.delivery_status != DeliveryStatus.delivered:
        return False
    if booking_service.unresolved_dispute(db, booking.booking_id) is not None:
        return False
    hours_left = 48 if job.job_type == JobType.review_reminder_48h else 24
    auto_release_at = booking.delivered_at + booking_service.REVIEW_WINDOW
    dispatcher.send_all(notification_service.review_reminder(booking, hours_left, auto_release_at))
    return True


def _auto_release(db: Session, job: ScheduledJob, dispatcher: NotificationDispatcher, now: datetime) -> bool:
    released = booking_service.auto_release(
        db, job.booking_id, dispatcher, now=now, idempotency_key=f"job:{job.job_id}",
    )
    return released is not None


def _dispute_reminder(db: Session, job: ScheduledJob, dispatcher: NotificationDispatcher, now: datetime) -> bool:
    dispute = dispute_service.get_dispute(db, job.dispute_id)
    if dispute.status != DisputeStatus.open or now > dispute.response_deadline:
        return False
    booking = booking_service.get_booking(db, dispute.booking_id)
    dispatcher.send_all(notification_service.dispute_response_needed(dispute, booking, now))
    return True


def _dispute_escalation(db: Session, job: ScheduledJob, dispatcher: NotificationDispatcher, now: datetime) -> bool:
    dispute = dispute_service.get_dispute(db, job.dispute_id)
    if dispute.status != DisputeStatus.open or now <= dispute.response_deadline:
        return False
    dispute_service.escalate(db, dispute.dispute_id, dispatcher, now=now)
    return True


def _resolution_reminder(db: Session, job: ScheduledJob, dispatcher: NotificationDispatcher, now: datetime) -> bool:
    dispute = dispute_service.get_dispute(db, job.dispute_id)
    if dispute.status not in (DisputeStatus.under_review, DisputeStatus.escalated):
        return False
    booking = booking_service.get_booking(db, dispute.booking_id)
    dispatcher.send_all(notification_service.dispute_resolution_reminder(dispute, booking, now))
    return True


HANDLERS: dict[JobType, Handler] = {
    JobType.review_reminder_48h: _review_reminder,
    JobType.review_reminder_24h: _review_reminder,
    JobType.auto_release: _auto_release,
    JobType.dispute_reminder_48h: _dispute_reminder,
    JobType.dispute_reminder_24h: _dispute_reminder,
    JobType.dispute_escalation: _dispute_escalation,
    JobType.dispute_resolution_reminder: _resolution_reminder,
}


def _finish(db: Session, job_id: str, outcome: JobStatus, now: datetime, error: Optional[str] = None) -> None:
    job = db.query(ScheduledJob).filter(ScheduledJob.job_id == job_id).first()
    job.status = outcome
    job.completed_at = now
    job.attempts = (job.attempts or 0) + 1
    if error:
        job.last_error = error[:2000]
    db.commit()


def run_due_jobs(
    db: Session,
    dispatcher: NotificationDispatcher,
    now: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> JobRunSummary:
    """Process pending jobs whose ``due_at`` has passed, oldest first."""
    now = resolve_now(now)
    summary = JobRunSummary()
    jobs = job_service.due_jobs(db, now, limit or settings.JOB_BATCH_SIZE)
    job_ids = [(job.job_id, job.job_type) for job in jobs]

    for job_id, job_type in job_ids:
        summary.processed += 1
        job = db.query(ScheduledJob).filter(ScheduledJob.job_id == job_id).first()
        if job is None or job.status != JobStatus.pending:
            # Cancelled by an earlier job in this batch.
            summary.skipped += 1
            continue
        try:
            acted = HANDLERS[job_type](db, job, dispatcher, now)
        except Exception as exc:
            db.rollback()
            logger.exception("Job %s (%s) failed", job_id, job_type.value)
            _finish(db, job_id, JobStatus.failed, now, error=str(getattr(exc, "detail", exc)))
            summary.failed += 1
            continue

        if acted:
            _finish(db, job_id, JobStatus.done, now)
            summary.done += 1
        else:
            _finish(db, job_id, JobStatus.skipped, now)
            summary.skipped += 1
        logger.info("Job %s (%s) %s", job_id, job_type.value, "done" if acted else "skipped")

    return summary
