"""Dispute API routes."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.dispute import DisputeOpen, DisputeRespond, DisputeResolve, DisputeNotes, DisputeOut
from app.services import dispute_service
from app.services.notification_service import NotificationDispatcher, get_dispatcher

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=DisputeOut, status_code=status.HTTP_201_CREATED)
def open_dispute(
    payload: DisputeOpen,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Either party opens a dispute; the other side gets 72 hours to respond."""
    return dispute_service.open_dispute(
        db=db,
        booking_id=payload.booking_id,
        opened_by_user_id=payload.opened_by_user_id,
        reason=payload.reason,
        evidence_description=payload.evidence_description,
        dispatcher=dispatcher,
    )


@router.get("/", response_model=list[DisputeOut])
def list_disputes(
    filter_name: str = Query("all", alias="filter", pattern="^(all|pending|review|overdue|resolved)$"),
    booking_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    return dispute_service.list_disputes(db, filter_name=filter_name, booking_id=booking_id)


@router.get("/{dispute_id}", response_model=DisputeOut)
def get_dispute(dispute_id: str, db: Session = Depends(get_db)):
    return dispute_service.get_dispute(db, dispute_id)


@router.post("/{dispute_id}/respond", response_model=DisputeOut)
def respond(
    dispute_id: str,
    payload: DisputeRespond,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    return dispute_service.respond(db, dispute_id, payload.responder_user_id, payload.response_text, dispatcher)


@router.post("/{dispute_id}/escalate", response_model=DisputeOut)
def escalate(
    dispute_id: str,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Manual trigger; the scheduled escalation job does the same."""
    return dispute_service.escalate(db, dispute_id, dispatcher)


@router.post("/{dispute_id}/resolve", response_model=DisputeOut)
def resolve(
    dispute_id: str,
    payload: DisputeResolve,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    return dispute_service.resolve(
        db=db,
        dispute_id=dispute_id,
        admin_user_id=payload.admin_user_id,
        admin_decision_reason=payload.admin_decision_reason,
        refund_percentage=payload.refund_percentage,
        dispatcher=dispatcher,
    )


@router.patch("/{dispute_id}/notes", response_model=DisputeOut)
def update_notes(dispute_id: str, payload: DisputeNotes, db: Session = Depends(get_db)):
    return dispute_service.update_admin_notes(db, dispute_id, payload.admin_user_id, payload.admin_notes)
