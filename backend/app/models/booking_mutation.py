"""BookingMutation ORM model: append-only ledger of booking writes."""
import uuid
import enum
from sqlalchemy import Column, String, Integer, JSON, ForeignKey, Enum as SAEnum
from sqlalchemy.sql import func
from app.database import Base, UTCDateTime


class BookingAction(str, enum.Enum):
    create = "create"
    accept = "accept"
    decline = "decline"
    cancel = "cancel"
    submit_deliverables = "submit_deliverables"
    approve = "approve"
    request_revision = "request_revision"
    auto_release = "auto_release"
    dispute_opened = "dispute_opened"
    dispute_resolved = "dispute_resolved"


class BookingMutation(Base):
    __tablename__ = "booking_mutations"

    mutation_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    booking_id = Column(String(36), ForeignKey("bookings.booking_id"), nullable=False, index=True)
    actor_user_id = Column(String(36), ForeignKey("users.user_id"), nullable=True)  # NULL = system job
    action_type = Column(SAEnum(BookingAction), nullable=False)
    booking_version = Column(Integer, nullable=False)  # booking.version after this write
    before_snapshot = Column(JSON, nullable=True)
    after_snapshot = Column(JSON, nullable=False)
    idempotency_key = Column(String(255), nullable=True, unique=True)
    created_at = Column(UTCDateTime, server_default=func.now())
