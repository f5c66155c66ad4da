"""Booking ORM model: one brand/creator engagement."""
import uuid
import enum
from sqlalchemy import Column, String, Integer, ForeignKey, CheckConstraint, Enum as SAEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base, UTCDateTime


class BookingStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    declined = "declined"
    cancelled = "cancelled"
    completed = "completed"


class DeliveryStatus(str, enum.Enum):
    in_progress = "in_progress"
    delivered = "delivered"
    revision_requested = "revision_requested"
    confirmed = "confirmed"


class PaymentStatus(str, enum.Enum):
    pending = "pending"
    paid = "paid"
    disputed = "disputed"
    refunded = "refunded"


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("revision_count BETWEEN 0 AND 2", name="ck_bookings_revision_count"),
        CheckConstraint("total_price_cents > 0", name="ck_bookings_total_price_positive"),
    )

    booking_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    brand_id = Column(String(36), ForeignKey("users.user_id"), nullable=False, index=True)
    creator_id = Column(String(36), ForeignKey("users.user_id"), nullable=False, index=True)
    service_id = Column(String(36), ForeignKey("creator_services.service_id"), nullable=True)
    service_name = Column(String(100), nullable=True)
    message = Column(String(2000), nullable=True)

    status = Column(SAEnum(BookingStatus), nullable=False, default=BookingStatus.pending)
    delivery_status = Column(SAEnum(DeliveryStatus), nullable=True)
    payment_status = Column(SAEnum(PaymentStatus), nullable=False, default=PaymentStatus.pending)

    total_price_cents = Column(Integer, nullable=False)
    delivery_days = Column(Integer, nullable=False, default=7)
    delivery_deadline = Column(UTCDateTime, nullable=True)
    delivered_at = Column(UTCDateTime, nullable=True)
    confirmed_at = Column(UTCDateTime, nullable=True)

    revision_count = Column(Integer, nullable=False, default=0)
    revision_notes = Column(String(2000), nullable=True)

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())

    brand = relationship("User", foreign_keys=[brand_id])
    creator = relationship("User", foreign_keys=[creator_id])
