"""Dispute sub-flow: open, respond, escalate, resolve.

A dispute gives the counterpart 72 hours to respond. A response moves it
to admin review; silence past the deadline escalates it. Either way the
admin has 96 hours from that point to decide. While a dispute is
unresolved the booking's auto-release is paused.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from app.clock import resolve_now
from app.models.booking import BookingStatus, PaymentStatus
from app.models.dispute import BookingDispute, DisputeStatus, DisputeResolution, PartyRole
from app.models.scheduled_job import JobType
from app.models.user import User, UserRole
from app.services import booking_service, job_service, notification_service
from app.services.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)

RESPONSE_WINDOW = timedelta(hours=72)
RESOLUTION_WINDOW = timedelta(hours=96)
MIN_TEXT_LENGTH = 50

LIST_FILTERS = ("all", "pending", "review", "overdue", "resolved")


def refund_amount(total_price_cents: int, refund_percentage: int) -> int:
    """Refund in cents, rounded half up."""
    return (total_price_cents * refund_percentage + 50) // 100


def resolution_for(refund_percentage: int) -> DisputeResolution:
    if refund_percentage >= 100:
        return DisputeResolution.refund
    if refund_percentage <= 0:
        return DisputeResolution.release
    return DisputeResolution.split


def _check_text(text: Optional[str], what: str) -> str:
    text = (text or "").strip()
    if len(text) < MIN_TEXT_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{what} must be at least {MIN_TEXT_LENGTH} characters",
        )
    return text


def get_dispute(db: Session, dispute_id: str) -> BookingDispute:
    dispute = db.query(BookingDispute).filter(BookingDispute.dispute_id == dispute_id).first()
    if not dispute:
        raise HTTPException(status_code=404, detail="Dispute not found")
    return dispute


def _require_admin(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.user_id == user_id).first()
    if not user or user.role != UserRole.admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


def list_disputes(
    db: Session,
    filter_name: str = "all",
    booking_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> list[BookingDispute]:
    """Admin queue. ``overdue`` means a deadline for the current stage has passed."""
    now = resolve_now(now)
    query = db.query(BookingDispute)
    if booking_id:
        query = query.filter(BookingDispute.booking_id == booking_id)

    if filter_name == "pending":
        query = query.filter(BookingDispute.status == DisputeStatus.open)
    elif filter_name == "review":
        query = query.filter(BookingDispute.status.in_([DisputeStatus.under_review, DisputeStatus.escalated]))
    elif filter_name == "resolved":
        query = query.filter(BookingDispute.status == DisputeStatus.resolved)
    elif filter_name == "overdue":
        query = query.filter(or_(
            and_(BookingDispute.status == DisputeStatus.open, BookingDispute.response_deadline < now),
            and_(
                BookingDispute.status.in_([DisputeStatus.under_review, DisputeStatus.escalated]),
                BookingDispute.resolution_deadline < now,
            ),
        ))
    elif filter_name != "all":
        raise HTTPException(status_code=400, detail=f"Unknown filter '{filter_name}'")

    return query.order_by(BookingDispute.created_at.desc()).all()


def _schedule_resolution_reminder(db: Session, dispute: BookingDispute) -> None:
    job_service.schedule(
        db,
        JobType.dispute_resolution_reminder,
        dispute.resolution_deadline - timedelta(hours=24),
        booking_id=dispute.booking_id,
        dispute_id=dispute.dispute_id,
    )


# ── Transitions ────────────────────────────────────────────────────
def open_dispute(
    db: Session,
    booking_id: str,
    opened_by_user_id: str,
    reason: str,
    evidence_description: Optional[str],
    dispatcher: NotificationDispatcher,
    now: Optional[datetime] = None,
) -> BookingDispute:
    now = resolve_now(now)
    booking = booking_service.get_booking(db, booking_id)

    if opened_by_user_id == booking.brand_id:
        role = PartyRole.brand
    elif opened_by_user_id == booking.creator_id:
        role = PartyRole.creator
    else:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the booking's brand or creator may open a dispute",
        )

    if booking.status in (BookingStatus.pending, BookingStatus.declined, BookingStatus.cancelled):
        raise HTTPException(status_code=400, detail=f"A {booking.status.value} booking cannot be disputed")
    if booking.payment_status == PaymentStatus.refunded:
        raise HTTPException(status_code=400, detail="A refunded booking cannot be disputed")
    if booking_service.unresolved_dispute(db, booking_id) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This booking already has an unresolved dispute",
        )
    reason = _check_text(reason, "Dispute reason")

    dispute = BookingDispute(
        booking_id=booking_id,
        opened_by_user_id=opened_by_user_id,
        opened_by_role=role,
        reason=reason,
        evidence_description=evidence_description,
        status=DisputeStatus.open,
        response_deadline=now + RESPONSE_WINDOW,
        escalated_to_admin=False,
        created_at=now,
    )
    db.add(dispute)
    db.flush()

    booking_service.apply_dispute_opened(db, booking, opened_by_user_id, now)

    deadline = dispute.response_deadline
    job_service.schedule(db, JobType.dispute_reminder_48h, deadline - timedelta(hours=48),
                         booking_id=booking_id, dispute_id=dispute.dispute_id)
    job_service.schedule(db, JobType.dispute_reminder_24h, deadline - timedelta(hours=24),
                         booking_id=booking_id, dispute_id=dispute.dispute_id)
    job_service.schedule(db, JobType.dispute_escalation, deadline + timedelta(seconds=1),
                         booking_id=booking_id, dispute_id=dispute.dispute_id)

    db.commit()
    db.refresh(dispute)
    logger.info("Dispute %s opened on booking %s by %s; response due %s",
                dispute.dispute_id, booking_id, role.value, deadline.isoformat())

    dispatcher.send_all(notification_service.dispute_opened(dispute, booking))
    return dispute


def respond(
    db: Session,
    dispute_id: str,
    responder_user_id: str,
    response_text: str,
    dispatcher: NotificationDispatcher,
    now: Optional[datetime] = None,
) -> BookingDispute:
    """Counterpart answers the dispute; it moves to admin review."""
    now = resolve_now(now)
    dispute = get_dispute(db, dispute_id)
    booking = booking_service.get_booking(db, dispute.booking_id)

    counterpart_id = booking.creator_id if dispute.opened_by_role == PartyRole.brand else booking.brand_id
    if responder_user_id != counterpart_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the other party may respond to this dispute",
        )
    if dispute.status != DisputeStatus.open:
        raise HTTPException(status_code=400, detail=f"Dispute is {dispute.status.value}, not open")
    if now > dispute.response_deadline:
        raise HTTPException(status_code=400, detail="Response window expired")
    response_text = _check_text(response_text, "Response")

    dispute.response_text = response_text
    dispute.response_submitted_at = now
    dispute.status = DisputeStatus.under_review
    dispute.resolution_deadline = now + RESOLUTION_WINDOW
    dispute.updated_at = now

    job_service.cancel_pending(db, dispute_id=dispute_id, job_types=job_service.DISPUTE_RESPONSE_JOBS, now=now)
    _schedule_resolution_reminder(db, dispute)
    db.commit()
    db.refresh(dispute)
    logger.info("Dispute %s answered; admin decision due %s", dispute_id, dispute.resolution_deadline.isoformat())

    dispatcher.send_all(notification_service.dispute_response_received(dispute, booking))
    return dispute


def escalate(
    db: Session,
    dispute_id: str,
    dispatcher: NotificationDispatcher,
    now: Optional[datetime] = None,
) -> BookingDispute:
    """Hand an unanswered dispute to the admin once the response window has lapsed."""
    now = resolve_now(now)
    dispute = get_dispute(db, dispute_id)
    if dispute.status != DisputeStatus.open:
        raise HTTPException(status_code=400, detail=f"Dispute is {dispute.status.value}, not open")
    if now <= dispute.response_deadline:
        raise HTTPException(status_code=400, detail="Response window has not expired yet")
    booking = booking_service.get_booking(db, dispute.booking_id)

    dispute.status = DisputeStatus.escalated
    dispute.escalated_to_admin = True
    dispute.escalated_at = now
    dispute.resolution_deadline = now + RESOLUTION_WINDOW
    dispute.updated_at = now

    job_service.cancel_pending(db, dispute_id=dispute_id, job_types=job_service.DISPUTE_RESPONSE_JOBS, now=now)
    _schedule_resolution_reminder(db, dispute)
    db.commit()
    db.refresh(dispute)
    logger.info("Dispute %s escalated to admin", dispute_id)

    dispatcher.send_all(notification_service.dispute_escalated(dispute, booking))
    return dispute


def resolve(
    db: Session,
    dispute_id: str,
    admin_user_id: str,
    admin_decision_reason: str,
    refund_percentage: int,
    dispatcher: NotificationDispatcher,
    now: Optional[datetime] = None,
) -> BookingDispute:
    now = resolve_now(now)
    _require_admin(db, admin_user_id)
    dispute = get_dispute(db, dispute_id)
    if dispute.status == DisputeStatus.resolved:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Dispute is already resolved")
    if not 0 <= refund_percentage <= 100:
        raise HTTPException(status_code=400, detail="Refund percentage must be between 0 and 100")
    if not (admin_decision_reason or "").strip():
        raise HTTPException(status_code=400, detail="A decision reason is required")
    booking = booking_service.get_booking(db, dispute.booking_id)

    dispute.status = DisputeStatus.resolved
    dispute.resolution = resolution_for(refund_percentage)
    dispute.refund_percentage = refund_percentage
    dispute.admin_decision_reason = admin_decision_reason.strip()
    dispute.resolved_at = now
    dispute.resolved_by_user_id = admin_user_id
    dispute.updated_at = now

    job_service.cancel_pending(db, dispute_id=dispute_id, now=now)
    booking_service.apply_dispute_resolution(db, booking, admin_user_id, refund_percentage, now)
    db.commit()
    db.refresh(dispute)
    db.refresh(booking)

    refund = refund_amount(booking.total_price_cents, refund_percentage)
    logger.info("Dispute %s resolved: %s (%d%%, refund %d cents)",
                dispute_id, dispute.resolution.value, refund_percentage, refund)

    dispatcher.send_all(notification_service.dispute_resolved(dispute, booking, refund))
    return dispute


def update_admin_notes(db: Session, dispute_id: str, admin_user_id: str, admin_notes: str) -> BookingDispute:
    _require_admin(db, admin_user_id)
    dispute = get_dispute(db, dispute_id)
    dispute.admin_notes = admin_notes
    db.commit()
    db.refresh(dispute)
    return dispute
