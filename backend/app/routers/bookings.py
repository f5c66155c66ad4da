"""Booking API routes: delegates to booking_service for the delivery state machine."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.booking import BookingStatus
from app.schemas.agreement import AgreementDraftRequest, AgreementDraftOut
from app.schemas.booking import BookingCreate, BookingAction, RevisionRequest, BookingOut, BookingMutationOut
from app.schemas.deliverable import (
    UploadRequest, UploadTicket, DeliverableSubmit, DeliverableOut, SubmissionOut,
)
from app.services import agreement_service, booking_service, deliverable_service
from app.services.notification_service import NotificationDispatcher, get_dispatcher
from app.services.storage_service import get_storage

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: BookingCreate,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Brand books one of a creator's services."""
    return booking_service.create_booking(
        db=db,
        brand_id=payload.brand_id,
        service_id=payload.service_id,
        message=payload.message,
        dispatcher=dispatcher,
    )


@router.get("/", response_model=list[BookingOut])
def list_bookings(
    brand_id: Optional[str] = Query(None),
    creator_id: Optional[str] = Query(None),
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
):
    return booking_service.list_bookings(db, brand_id=brand_id, creator_id=creator_id, status_filter=status_filter)


@router.get("/{booking_id}", response_model=BookingOut)
def get_booking(booking_id: str, db: Session = Depends(get_db)):
    return booking_service.get_booking(db, booking_id)


@router.get("/{booking_id}/timeline", response_model=list[BookingMutationOut])
def get_timeline(booking_id: str, db: Session = Depends(get_db)):
    """Every write to the booking, oldest first."""
    return booking_service.get_timeline(db, booking_id)


# ── Transitions ────────────────────────────────────────────────────
@router.post("/{booking_id}/accept", response_model=BookingOut)
def accept_booking(
    booking_id: str,
    payload: BookingAction,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    return booking_service.accept_booking(db, booking_id, payload.actor_user_id, payload.version, dispatcher)


@router.post("/{booking_id}/decline", response_model=BookingOut)
def decline_booking(
    booking_id: str,
    payload: BookingAction,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    return booking_service.decline_booking(db, booking_id, payload.actor_user_id, payload.version, dispatcher)


@router.post("/{booking_id}/cancel", response_model=BookingOut)
def cancel_booking(booking_id: str, payload: BookingAction, db: Session = Depends(get_db)):
    return booking_service.cancel_booking(db, booking_id, payload.actor_user_id, payload.version)


@router.post("/{booking_id}/approve", response_model=BookingOut)
def approve_delivery(
    booking_id: str,
    payload: BookingAction,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Brand approves the current deliverables and releases payment."""
    return booking_service.approve_delivery(db, booking_id, payload.actor_user_id, payload.version, dispatcher)


@router.post("/{booking_id}/request-revision", response_model=BookingOut)
def request_revision(
    booking_id: str,
    payload: RevisionRequest,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    return booking_service.request_revision(
        db, booking_id, payload.actor_user_id, payload.version, payload.revision_notes, dispatcher,
    )


# ── Deliverables ───────────────────────────────────────────────────
@router.post("/{booking_id}/deliverables/upload-url", response_model=UploadTicket)
def request_upload(
    booking_id: str,
    payload: UploadRequest,
    db: Session = Depends(get_db),
    storage=Depends(get_storage),
):
    """Presigned PUT for one file; the returned key is then listed in the submission."""
    booking = booking_service.get_booking(db, booking_id)
    return deliverable_service.request_upload(booking, payload.actor_user_id, payload.file_name,
                                              payload.mime_type, storage)


@router.post("/{booking_id}/deliverables", response_model=SubmissionOut, status_code=status.HTTP_201_CREATED)
def submit_deliverables(
    booking_id: str,
    payload: DeliverableSubmit,
    db: Session = Depends(get_db),
    storage=Depends(get_storage),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    booking, deliverable_version, rows = booking_service.submit_deliverables(
        db=db,
        booking_id=booking_id,
        actor_user_id=payload.actor_user_id,
        version=payload.version,
        files=payload.files,
        notes=payload.notes,
        storage=storage,
        dispatcher=dispatcher,
    )
    return SubmissionOut(
        deliverable_version=deliverable_version,
        files=[DeliverableOut.model_validate(row) for row in rows],
        booking_version=booking.version,
        delivery_status=booking.delivery_status.value,
    )


@router.get("/{booking_id}/deliverables", response_model=list[DeliverableOut])
def current_deliverables(booking_id: str, db: Session = Depends(get_db)):
    """Files of the latest submitted version."""
    booking_service.get_booking(db, booking_id)
    return deliverable_service.current_set(db, booking_id)


@router.get("/{booking_id}/deliverables/history", response_model=list[DeliverableOut])
def deliverable_history(booking_id: str, db: Session = Depends(get_db)):
    booking_service.get_booking(db, booking_id)
    return deliverable_service.history(db, booking_id)


# ── Agreement ──────────────────────────────────────────────────────
@router.post("/{booking_id}/agreement/draft", response_model=AgreementDraftOut)
def draft_agreement(booking_id: str, payload: AgreementDraftRequest, db: Session = Depends(get_db)):
    return agreement_service.draft_agreement(
        db=db,
        booking_id=booking_id,
        actor_user_id=payload.actor_user_id,
        platforms=payload.platforms,
        usage_rights=payload.usage_rights,
        special_instructions=payload.special_instructions,
        current_content=payload.current_content,
    )
