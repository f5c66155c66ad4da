"""Delivery state machine: every booking transition goes through here.

Each transition:
- loads the booking (404) and checks the acting party (403)
- checks the caller's last-seen version (409)
- checks the transition's precondition (400)
- applies the change, bumps ``version`` and appends a ledger row
- commits, then dispatches notifications

Notifications go out after the commit; a failed email never undoes a
transition.
"""
import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional, Any

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.clock import resolve_now
from app.models.booking import Booking, BookingStatus, DeliveryStatus, PaymentStatus
from app.models.booking_mutation import BookingMutation, BookingAction
from app.models.creator_service import CreatorService
from app.models.dispute import BookingDispute, DisputeStatus
from app.models.scheduled_job import JobType
from app.models.user import User, UserRole
from app.schemas.deliverable import DeliverableFile
from app.services import deliverable_service, job_service, notification_service
from app.services.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)

MAX_REVISIONS = 2
REVIEW_WINDOW = timedelta(hours=72)


def _booking_snapshot(booking: Booking) -> dict[str, Any]:
    """Serialize a booking to a JSON-safe dict for the mutation ledger."""
    def _iso(value: Optional[datetime]) -> Optional[str]:
        return value.isoformat() if value else None

    return {
        "booking_id": booking.booking_id,
        "status": booking.status.value if booking.status else None,
        "delivery_status": booking.delivery_status.value if booking.delivery_status else None,
        "payment_status": booking.payment_status.value if booking.payment_status else None,
        "revision_count": booking.revision_count,
        "revision_notes": booking.revision_notes,
        "total_price_cents": booking.total_price_cents,
        "delivery_deadline": _iso(booking.delivery_deadline),
        "delivered_at": _iso(booking.delivered_at),
        "confirmed_at": _iso(booking.confirmed_at),
        "version": booking.version,
    }


def _record(
    db: Session,
    booking: Booking,
    actor_user_id: Optional[str],
    action: BookingAction,
    before: Optional[dict[str, Any]],
    now: datetime,
    idempotency_key: Optional[str] = None,
) -> None:
    """Bump the version and append the ledger row; joins the caller's transaction."""
    if before is not None:
        booking.version += 1
    booking.updated_at = now
    db.add(BookingMutation(
        booking_id=booking.booking_id,
        actor_user_id=actor_user_id,
        action_type=action,
        booking_version=booking.version,
        before_snapshot=before,
        after_snapshot=_booking_snapshot(booking),
        idempotency_key=idempotency_key or str(uuid.uuid4()),
        created_at=now,
    ))


def _check_party(booking: Booking, actor_user_id: str, role: UserRole) -> None:
    owner = booking.brand_id if role == UserRole.brand else booking.creator_id
    if owner != actor_user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Only the booking's {role.value} may perform this action",
        )


def _check_version(booking: Booking, version: int) -> None:
    if booking.version != version:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Version mismatch: expected {booking.version}, got {version}. Re-fetch and retry.",
        )


def _require(condition: bool, detail: str) -> None:
    if not condition:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def unresolved_dispute(db: Session, booking_id: str) -> Optional[BookingDispute]:
    return db.query(BookingDispute).filter(
        BookingDispute.booking_id == booking_id,
        BookingDispute.status != DisputeStatus.resolved,
    ).first()


def get_booking(db: Session, booking_id: str) -> Booking:
    booking = db.query(Booking).filter(Booking.booking_id == booking_id).first()
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


def list_bookings(
    db: Session,
    brand_id: Optional[str] = None,
    creator_id: Optional[str] = None,
    status_filter: Optional[BookingStatus] = None,
) -> list[Booking]:
    query = db.query(Booking)
    if brand_id:
        query = query.filter(Booking.brand_id == brand_id)
    if creator_id:
        query = query.filter(Booking.creator_id == creator_id)
    if status_filter:
        query = query.filter(Booking.status == status_filter)
    return query.order_by(Booking.created_at.desc()).all()


def get_timeline(db: Session, booking_id: str) -> list[BookingMutation]:
    get_booking(db, booking_id)
    return (
        db.query(BookingMutation)
        .filter(BookingMutation.booking_id == booking_id)
        .order_by(BookingMutation.booking_version.asc())
        .all()
    )


# ── Creation and acceptance ────────────────────────────────────────
def create_booking(
    db: Session,
    brand_id: str,
    service_id: str,
    message: Optional[str],
    dispatcher: NotificationDispatcher,
    now: Optional[datetime] = None,
) -> Booking:
    """Brand books a creator service; price and delivery days are snapshotted."""
    now = resolve_now(now)
    brand = db.query(User).filter(User.user_id == brand_id).first()
    if not brand:
        raise HTTPException(status_code=404, detail="Brand not found")
    _require(brand.role == UserRole.brand, "Only brands can create bookings")

    service = db.query(CreatorService).filter(CreatorService.service_id == service_id).first()
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")
    _require(service.is_active, "Service is not available for booking")

    booking = Booking(
        brand_id=brand_id,
        creator_id=service.creator_id,
        service_id=service.service_id,
        service_name=service.service_type,
        message=message,
        status=BookingStatus.pending,
        payment_status=PaymentStatus.pending,
        total_price_cents=service.price_cents,
        delivery_days=service.delivery_days,
        revision_count=0,
        version=1,
        created_at=now,
    )
    db.add(booking)
    db.flush()
    _record(db, booking, brand_id, BookingAction.create, None, now)
    db.commit()
    db.refresh(booking)
    logger.info("Created booking %s: brand %s -> creator %s (%d cents)",
                booking.booking_id, brand_id, booking.creator_id, booking.total_price_cents)

    dispatcher.send_all(notification_service.booking_requested(booking))
    return booking


def accept_booking(
    db: Session,
    booking_id: str,
    actor_user_id: str,
    version: int,
    dispatcher: NotificationDispatcher,
    now: Optional[datetime] = None,
) -> Booking:
    now = resolve_now(now)
    booking = get_booking(db, booking_id)
    _check_party(booking, actor_user_id, UserRole.creator)
    _check_version(booking, version)
    _require(booking.status == BookingStatus.pending, "Only pending bookings can be accepted")

    before = _booking_snapshot(booking)
    booking.status = BookingStatus.accepted
    booking.delivery_status = DeliveryStatus.in_progress
    booking.delivery_deadline = now + timedelta(days=booking.delivery_days)
    _record(db, booking, actor_user_id, BookingAction.accept, before, now)
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s accepted; delivery due %s", booking_id, booking.delivery_deadline.isoformat())

    dispatcher.send_all(notification_service.booking_accepted(booking))
    return booking


def decline_booking(
    db: Session,
    booking_id: str,
    actor_user_id: str,
    version: int,
    dispatcher: NotificationDispatcher,
    now: Optional[datetime] = None,
) -> Booking:
    now = resolve_now(now)
    booking = get_booking(db, booking_id)
    _check_party(booking, actor_user_id, UserRole.creator)
    _check_version(booking, version)
    _require(booking.status == BookingStatus.pending, "Only pending bookings can be declined")

    before = _booking_snapshot(booking)
    booking.status = BookingStatus.declined
    _record(db, booking, actor_user_id, BookingAction.decline, before, now)
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s declined", booking_id)

    dispatcher.send_all(notification_service.booking_declined(booking))
    return booking


def cancel_booking(
    db: Session,
    booking_id: str,
    actor_user_id: str,
    version: int,
    now: Optional[datetime] = None,
) -> Booking:
    now = resolve_now(now)
    booking = get_booking(db, booking_id)
    _check_party(booking, actor_user_id, UserRole.brand)
    _check_version(booking, version)
    _require(booking.status == BookingStatus.pending, "Only pending bookings can be cancelled")

    before = _booking_snapshot(booking)
    booking.status = BookingStatus.cancelled
    _record(db, booking, actor_user_id, BookingAction.cancel, before, now)
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s cancelled by brand", booking_id)
    return booking


# ── Delivery loop ──────────────────────────────────────────────────
def submit_deliverables(
    db: Session,
    booking_id: str,
    actor_user_id: str,
    version: int,
    files: list[DeliverableFile],
    notes: Optional[str],
    storage,
    dispatcher: NotificationDispatcher,
    now: Optional[datetime] = None,
):
    """Creator submits a batch; returns ``(booking, deliverable_version, rows)``."""
    now = resolve_now(now)
    booking = get_booking(db, booking_id)
    _check_party(booking, actor_user_id, UserRole.creator)
    _check_version(booking, version)
    _require(booking.status == BookingStatus.accepted, "Deliverables can only be submitted for accepted bookings")
    _require(
        booking.delivery_status in (DeliveryStatus.in_progress, DeliveryStatus.revision_requested),
        "Deliverables are already awaiting review" if booking.delivery_status == DeliveryStatus.delivered
        else "Delivery is already confirmed",
    )
    _require(unresolved_dispute(db, booking_id) is None, "Booking has an unresolved dispute")

    before = _booking_snapshot(booking)
    deliverable_version, rows = deliverable_service.submit(db, booking, actor_user_id, files, notes, storage)

    booking.delivery_status = DeliveryStatus.delivered
    booking.delivered_at = now
    auto_release_at = now + REVIEW_WINDOW

    job_service.cancel_pending(db, booking_id=booking_id, job_types=job_service.REVIEW_JOBS, now=now)
    anchor = {"delivered_at": now.isoformat(), "deliverable_version": deliverable_version}
    job_service.schedule(db, JobType.review_reminder_48h, auto_release_at - timedelta(hours=48),
                         booking_id=booking_id, payload=anchor)
    job_service.schedule(db, JobType.review_reminder_24h, auto_release_at - timedelta(hours=24),
                         booking_id=booking_id, payload=anchor)
    job_service.schedule(db, JobType.auto_release, auto_release_at, booking_id=booking_id, payload=anchor)

    _record(db, booking, actor_user_id, BookingAction.submit_deliverables, before, now)
    db.commit()
    db.refresh(booking)
    for row in rows:
        db.refresh(row)
    logger.info("Booking %s delivered (deliverable version %d); auto-release at %s",
                booking_id, deliverable_version, auto_release_at.isoformat())

    dispatcher.send_all(notification_service.deliverables_submitted(
        booking, deliverable_version, len(rows), auto_release_at,
    ))
    return booking, deliverable_version, rows


def _check_reviewable(db: Session, booking: Booking) -> None:
    _require(
        booking.status == BookingStatus.accepted and booking.delivery_status == DeliveryStatus.delivered,
        "Booking has no delivery awaiting review",
    )
    _require(bool(deliverable_service.current_set(db, booking.booking_id)), "No deliverables have been submitted")
    _require(unresolved_dispute(db, booking.booking_id) is None, "Booking has an unresolved dispute")


def approve_delivery(
    db: Session,
    booking_id: str,
    actor_user_id: str,
    version: int,
    dispatcher: NotificationDispatcher,
    now: Optional[datetime] = None,
) -> Booking:
    """Brand confirms the work; payment is released."""
    now = resolve_now(now)
    booking = get_booking(db, booking_id)
    _check_party(booking, actor_user_id, UserRole.brand)
    _check_version(booking, version)
    _check_reviewable(db, booking)

    before = _booking_snapshot(booking)
    booking.delivery_status = DeliveryStatus.confirmed
    booking.payment_status = PaymentStatus.paid
    booking.confirmed_at = now
    job_service.cancel_pending(db, booking_id=booking_id, job_types=job_service.REVIEW_JOBS, now=now)
    _record(db, booking, actor_user_id, BookingAction.approve, before, now)
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s approved; %d cents released", booking_id, booking.total_price_cents)

    dispatcher.send_all(notification_service.delivery_confirmed(booking))
    return booking


def request_revision(
    db: Session,
    booking_id: str,
    actor_user_id: str,
    version: int,
    revision_notes: str,
    dispatcher: NotificationDispatcher,
    now: Optional[datetime] = None,
) -> Booking:
    now = resolve_now(now)
    booking = get_booking(db, booking_id)
    _check_party(booking, actor_user_id, UserRole.brand)
    _check_version(booking, version)
    _check_reviewable(db, booking)
    _require(bool(revision_notes and revision_notes.strip()), "Revision notes are required")
    _require(booking.revision_count < MAX_REVISIONS, "Revision limit reached")

    before = _booking_snapshot(booking)
    booking.delivery_status = DeliveryStatus.revision_requested
    booking.revision_count += 1
    booking.revision_notes = revision_notes.strip()
    job_service.cancel_pending(db, booking_id=booking_id, job_types=job_service.REVIEW_JOBS, now=now)
    _record(db, booking, actor_user_id, BookingAction.request_revision, before, now)
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s: revision %d/%d requested", booking_id, booking.revision_count, MAX_REVISIONS)

    dispatcher.send_all(notification_service.revision_requested(booking, MAX_REVISIONS))
    return booking


def auto_release(
    db: Session,
    booking_id: str,
    dispatcher: NotificationDispatcher,
    now: Optional[datetime] = None,
    idempotency_key: Optional[str] = None,
) -> Optional[Booking]:
    """Release payment once the review window has lapsed.

    Returns ``None`` without writing when the booking no longer qualifies:
    it is not awaiting review, the window has not elapsed, or a dispute is
    unresolved.
    """
    now = resolve_now(now)
    booking = get_booking(db, booking_id)
    if booking.status != BookingStatus.accepted or booking.delivery_status != DeliveryStatus.delivered:
        logger.info("Booking %s: auto-release skipped (delivery_status=%s)", booking_id,
                    booking.delivery_status.value if booking.delivery_status else None)
        return None
    if booking.delivered_at is None or now < booking.delivered_at + REVIEW_WINDOW:
        logger.info("Booking %s: auto-release skipped, review window still open", booking_id)
        return None
    if unresolved_dispute(db, booking_id) is not None:
        logger.info("Booking %s: auto-release paused by unresolved dispute", booking_id)
        return None

    before = _booking_snapshot(booking)
    booking.delivery_status = DeliveryStatus.confirmed
    booking.payment_status = PaymentStatus.paid
    booking.confirmed_at = now
    _record(db, booking, None, BookingAction.auto_release, before, now, idempotency_key=idempotency_key)
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s auto-released; %d cents paid to creator", booking_id, booking.total_price_cents)

    dispatcher.send_all(notification_service.payment_auto_released(booking))
    return booking


# ── Dispute effects (called inside the dispute service's transaction) ──
def apply_dispute_opened(db: Session, booking: Booking, actor_user_id: str, now: datetime) -> None:
    before = _booking_snapshot(booking)
    booking.payment_status = PaymentStatus.disputed
    _record(db, booking, actor_user_id, BookingAction.dispute_opened, before, now)


def apply_dispute_resolution(
    db: Session,
    booking: Booking,
    admin_user_id: str,
    refund_percentage: int,
    now: datetime,
) -> None:
    """Close the booking according to the admin decision."""
    _require(
        booking.status in (BookingStatus.accepted, BookingStatus.completed),
        f"A {booking.status.value} booking cannot be settled",
    )

    before = _booking_snapshot(booking)
    booking.status = BookingStatus.completed
    if refund_percentage >= 100:
        booking.payment_status = PaymentStatus.refunded
    else:
        booking.payment_status = PaymentStatus.paid
        booking.delivery_status = DeliveryStatus.confirmed
        booking.confirmed_at = booking.confirmed_at or now
    job_service.cancel_pending(db, booking_id=booking.booking_id, job_types=job_service.REVIEW_JOBS, now=now)
    _record(db, booking, admin_user_id, BookingAction.dispute_resolved, before, now)
