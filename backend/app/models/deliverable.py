"""BookingDeliverable ORM model: append-only versioned submissions."""
import uuid
from sqlalchemy import Column, String, Integer, BigInteger, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from app.database import Base, UTCDateTime


class BookingDeliverable(Base):
    __tablename__ = "booking_deliverables"
    __table_args__ = (UniqueConstraint("storage_key", name="uq_booking_deliverables_storage_key"),)

    deliverable_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    booking_id = Column(String(36), ForeignKey("bookings.booking_id"), nullable=False, index=True)
    creator_id = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    version = Column(Integer, nullable=False)
    file_name = Column(String(255), nullable=False)
    mime_type = Column(String(100), nullable=False)
    file_size_bytes = Column(BigInteger, nullable=False)
    storage_key = Column(String(512), nullable=False)
    description = Column(String(1000), nullable=True)
    notes = Column(String(2000), nullable=True)
    created_at = Column(UTCDateTime, server_default=func.now())
