"""BookingDispute ORM model: time-boxed disagreement on a booking."""
import uuid
import enum
from sqlalchemy import Column, String, Integer, Boolean, ForeignKey, Index, Enum as SAEnum, text
from sqlalchemy.sql import func
from app.database import Base, UTCDateTime


class DisputeStatus(str, enum.Enum):
    open = "open"
    under_review = "under_review"
    escalated = "escalated"
    resolved = "resolved"


class PartyRole(str, enum.Enum):
    brand = "brand"
    creator = "creator"


class DisputeResolution(str, enum.Enum):
    release = "release"
    refund = "refund"
    split = "split"


class BookingDispute(Base):
    __tablename__ = "booking_disputes"
    __table_args__ = (
        # One unresolved dispute per booking.
        Index(
            "uq_booking_disputes_one_unresolved",
            "booking_id",
            unique=True,
            postgresql_where=text("status <> 'resolved'"),
            sqlite_where=text("status <> 'resolved'"),
        ),
    )

    dispute_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    booking_id = Column(String(36), ForeignKey("bookings.booking_id"), nullable=False, index=True)
    opened_by_user_id = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    opened_by_role = Column(SAEnum(PartyRole), nullable=False)
    reason = Column(String(4000), nullable=False)
    evidence_description = Column(String(4000), nullable=True)
    status = Column(SAEnum(DisputeStatus), nullable=False, default=DisputeStatus.open)

    response_text = Column(String(4000), nullable=True)
    response_submitted_at = Column(UTCDateTime, nullable=True)
    response_deadline = Column(UTCDateTime, nullable=False)

    escalated_to_admin = Column(Boolean, nullable=False, default=False)
    escalated_at = Column(UTCDateTime, nullable=True)
    resolution_deadline = Column(UTCDateTime, nullable=True)

    resolution = Column(SAEnum(DisputeResolution), nullable=True)
    refund_percentage = Column(Integer, nullable=True)
    admin_decision_reason = Column(String(4000), nullable=True)
    admin_notes = Column(String(4000), nullable=True)
    resolved_at = Column(UTCDateTime, nullable=True)
    resolved_by_user_id = Column(String(36), ForeignKey("users.user_id"), nullable=True)

    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())
