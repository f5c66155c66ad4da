"""Pydantic schemas for Users."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class UserCreate(BaseModel):
    display_name: str
    email: str
    role: str  # brand, creator, admin
    default_timezone: str = "UTC"


class UserUpdate(BaseModel):
    display_name: Optional[str] = None
    email: Optional[str] = None
    default_timezone: Optional[str] = None


class UserOut(BaseModel):
    user_id: str
    display_name: str
    email: str
    role: str
    default_timezone: str
    created_at: datetime

    model_config = {"from_attributes": True}
