"""User API routes."""
import logging
from typing import Optional

import pytz
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User, UserRole
from app.schemas.user import UserCreate, UserUpdate, UserOut

logger = logging.getLogger(__name__)
router = APIRouter()


def _check_timezone(tz_name: Optional[str]) -> None:
    if tz_name is not None and tz_name not in pytz.all_timezones_set:
        raise HTTPException(status_code=400, detail=f"Unknown timezone '{tz_name}'")


def _check_email_free(db: Session, email: str, user_id: Optional[str] = None) -> None:
    query = db.query(User).filter(User.email == email)
    if user_id:
        query = query.filter(User.user_id != user_id)
    if query.first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")


@router.post("/", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    """Register a brand, creator or admin."""
    if payload.role not in UserRole.__members__:
        raise HTTPException(status_code=400, detail=f"Unknown role '{payload.role}'")
    _check_timezone(payload.default_timezone)
    _check_email_free(db, payload.email)

    user = User(**payload.model_dump(exclude={"role"}), role=UserRole(payload.role))
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Created %s user %s (%s)", user.role.value, user.user_id, user.display_name)
    return user


@router.get("/", response_model=list[UserOut])
def list_users(role: Optional[UserRole] = Query(None), db: Session = Depends(get_db)):
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    return query.order_by(User.created_at).all()


@router.get("/{user_id}", response_model=UserOut)
def get_user(user_id: str, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.user_id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.patch("/{user_id}", response_model=UserOut)
def update_user(user_id: str, payload: UserUpdate, db: Session = Depends(get_db)):
    """Partial update of name, email or timezone."""
    user = db.query(User).filter(User.user_id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    _check_timezone(updates.get("default_timezone"))
    if updates.get("email"):
        _check_email_free(db, updates["email"], user_id)
    for field, value in updates.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    logger.info("Updated user %s", user_id)
    return user
