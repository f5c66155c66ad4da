"""Append-only versioned deliverable store.

Each submission batch gets the next version number for its booking and
every file in the batch shares it. Rows are never updated or deleted;
the "current" set is simply the highest version.
"""
import logging
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.booking import Booking, BookingStatus, DeliveryStatus
from app.models.deliverable import BookingDeliverable
from app.schemas.deliverable import DeliverableFile
from app.services.storage_service import booking_prefix

logger = logging.getLogger(__name__)


def latest_version(db: Session, booking_id: str) -> int:
    return db.query(func.max(BookingDeliverable.version)).filter(
        BookingDeliverable.booking_id == booking_id
    ).scalar() or 0


def _check_files(db: Session, booking_id: str, files: list[DeliverableFile], storage) -> None:
    """Every key must be under the booking's prefix, unused, and present in the bucket."""
    if not files:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="At least one file is required")

    prefix = booking_prefix(booking_id)
    keys = [f.storage_key for f in files]
    if len(set(keys)) != len(keys):
        raise HTTPException(status_code=422, detail="Duplicate storage key in submission")

    for key in keys:
        if not key.startswith(prefix):
            raise HTTPException(status_code=422, detail=f"Storage key {key} does not belong to this booking")

    already = db.query(BookingDeliverable.storage_key).filter(BookingDeliverable.storage_key.in_(keys)).all()
    if already:
        raise HTTPException(status_code=422, detail=f"Storage key {already[0][0]} was already submitted")

    for key in keys:
        if not storage.object_exists(key):
            raise HTTPException(status_code=422, detail=f"No uploaded file found for {key}")


def submit(
    db: Session,
    booking: Booking,
    creator_id: str,
    files: list[DeliverableFile],
    notes: Optional[str],
    storage,
) -> tuple[int, list[BookingDeliverable]]:
    """Append a new version; joins the caller's transaction."""
    _check_files(db, booking.booking_id, files, storage)

    version = latest_version(db, booking.booking_id) + 1
    rows = []
    for f in files:
        row = BookingDeliverable(
            booking_id=booking.booking_id,
            creator_id=creator_id,
            version=version,
            file_name=f.file_name,
            mime_type=f.mime_type,
            file_size_bytes=f.file_size_bytes,
            storage_key=f.storage_key,
            description=f.description,
            notes=notes,
        )
        db.add(row)
        rows.append(row)
    db.flush()

    logger.info("Booking %s: stored deliverable version %d (%d file(s))", booking.booking_id, version, len(rows))
    return version, rows


def current_set(db: Session, booking_id: str) -> list[BookingDeliverable]:
    version = latest_version(db, booking_id)
    if not version:
        return []
    return (
        db.query(BookingDeliverable)
        .filter(BookingDeliverable.booking_id == booking_id, BookingDeliverable.version == version)
        .order_by(BookingDeliverable.created_at.asc(), BookingDeliverable.file_name.asc())
        .all()
    )


def history(db: Session, booking_id: str) -> list[BookingDeliverable]:
    return (
        db.query(BookingDeliverable)
        .filter(BookingDeliverable.booking_id == booking_id)
        .order_by(BookingDeliverable.version.desc(), BookingDeliverable.created_at.asc())
        .all()
    )


def request_upload(booking: Booking, actor_user_id: str, file_name: str, mime_type: str, storage) -> dict:
    """Mint a storage key under the booking prefix plus a presigned PUT URL."""
    if booking.creator_id != actor_user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the booking's creator may upload deliverables",
        )
    if booking.status != BookingStatus.accepted or booking.delivery_status not in (
        DeliveryStatus.in_progress,
        DeliveryStatus.revision_requested,
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Deliverables can only be uploaded while work is in progress",
        )

    key = storage.build_key(booking.booking_id, file_name, mime_type)
    url = storage.presign_upload(key, mime_type)
    logger.info("Booking %s: issued upload URL for %s", booking.booking_id, key)
    return {"storage_key": key, "upload_url": url, "expires_in": storage.upload_ttl_seconds}
