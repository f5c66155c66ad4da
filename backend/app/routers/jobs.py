"""Admin routes for the deadline job queue."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.scheduled_job import JobStatus
from app.models.user import User, UserRole
from app.schemas.job import ScheduledJobOut, JobRunSummary
from app.services import job_runner, job_service
from app.services.notification_service import NotificationDispatcher, get_dispatcher

logger = logging.getLogger(__name__)
router = APIRouter()


def _require_admin(db: Session, admin_user_id: str) -> None:
    user = db.query(User).filter(User.user_id == admin_user_id).first()
    if not user or user.role != UserRole.admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")


@router.get("/", response_model=list[ScheduledJobOut])
def list_jobs(
    admin_user_id: str = Query(...),
    job_status: Optional[JobStatus] = Query(None, alias="status"),
    booking_id: Optional[str] = Query(None),
    dispute_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    _require_admin(db, admin_user_id)
    return job_service.list_jobs(db, status=job_status, booking_id=booking_id, dispute_id=dispute_id)


@router.post("/run-due", response_model=JobRunSummary)
def run_due(
    admin_user_id: str = Query(...),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Run whatever is due now instead of waiting for the worker's next poll."""
    _require_admin(db, admin_user_id)
    summary = job_runner.run_due_jobs(db, dispatcher)
    logger.info("Manual job run by %s: %s", admin_user_id, summary.model_dump())
    return summary
