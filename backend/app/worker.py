"""Deadline worker: polls ``scheduled_jobs`` and runs what is due.

Run with ``python -m app.worker`` from ``backend/``; ``--once`` processes
a single batch and exits (handy for cron).
"""
import argparse
import logging
import time
from typing import Optional

from app.config import settings
from app.database import SessionLocal
from app.schemas.job import JobRunSummary
from app.services.job_runner import run_due_jobs
from app.services.notification_service import NotificationDispatcher, get_dispatcher

# Registers every table on Base.metadata before the first query.
from app.models import user, creator_service, booking, deliverable, dispute, booking_mutation, scheduled_job  # noqa: F401

logger = logging.getLogger("app.worker")


def run_once(dispatcher: Optional[NotificationDispatcher] = None) -> JobRunSummary:
    db = SessionLocal()
    try:
        return run_due_jobs(db, dispatcher or get_dispatcher())
    finally:
        db.close()


def run_forever(poll_seconds: Optional[int] = None) -> None:
    poll_seconds = poll_seconds or settings.JOB_POLL_SECONDS
    logger.info("Deadline worker started (poll every %ds)", poll_seconds)
    while True:
        try:
            summary = run_once()
            if summary.processed:
                logger.info("Processed %d job(s): %d done, %d skipped, %d failed",
                            summary.processed, summary.done, summary.skipped, summary.failed)
        except Exception:
            logger.exception("Worker iteration failed")
        time.sleep(poll_seconds)


def main() -> None:
    parser = argparse.ArgumentParser(description="Run due booking deadline jobs")
    parser.add_argument("--once", action="store_true", help="process one batch and exit")
    parser.add_argument("--poll", type=int, default=None, help="seconds between polls")
    args = parser.parse_args()

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.once:
        summary = run_once()
        logger.info("Processed %d job(s)", summary.processed)
        return
    run_forever(args.poll)


if __name__ == "__main__":
    main()
