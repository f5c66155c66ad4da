"""CreatorService ORM model: the bookable packages a creator offers."""
import uuid
from sqlalchemy import Column, String, Integer, Boolean, ForeignKey
from sqlalchemy.sql import func
from app.database import Base, UTCDateTime


class CreatorService(Base):
    __tablename__ = "creator_services"

    service_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    creator_id = Column(String(36), ForeignKey("users.user_id"), nullable=False, index=True)
    service_type = Column(String(100), nullable=False)
    description = Column(String(1000), nullable=True)
    price_cents = Column(Integer, nullable=False)
    delivery_days = Column(Integer, nullable=False, default=7)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, server_default=func.now())
