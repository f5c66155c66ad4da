"""User ORM model: brands, creators and platform admins."""
import uuid
import enum
from sqlalchemy import Column, String, Enum as SAEnum
from sqlalchemy.sql import func
from app.database import Base, UTCDateTime


class UserRole(str, enum.Enum):
    brand = "brand"
    creator = "creator"
    admin = "admin"


class User(Base):
    __tablename__ = "users"

    user_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    display_name = Column(String(150), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    role = Column(SAEnum(UserRole), nullable=False)
    default_timezone = Column(String(50), nullable=False, default="UTC")  # IANA tz
    created_at = Column(UTCDateTime, server_default=func.now())
