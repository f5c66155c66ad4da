"""Creator service catalog routes."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.creator_service import CreatorService
from app.models.user import User, UserRole
from app.schemas.creator_service import CreatorServiceCreate, CreatorServiceUpdate, CreatorServiceOut

logger = logging.getLogger(__name__)
router = APIRouter()


def _get_service(db: Session, service_id: str) -> CreatorService:
    service = db.query(CreatorService).filter(CreatorService.service_id == service_id).first()
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")
    return service


@router.post("/", response_model=CreatorServiceOut, status_code=status.HTTP_201_CREATED)
def create_service(payload: CreatorServiceCreate, db: Session = Depends(get_db)):
    creator = db.query(User).filter(User.user_id == payload.creator_id).first()
    if not creator:
        raise HTTPException(status_code=404, detail="Creator not found")
    if creator.role != UserRole.creator:
        raise HTTPException(status_code=400, detail="Only creators can offer services")

    service = CreatorService(**payload.model_dump(), is_active=True)
    db.add(service)
    db.commit()
    db.refresh(service)
    logger.info("Creator %s added service %s (%s, %d cents)",
                creator.user_id, service.service_id, service.service_type, service.price_cents)
    return service


@router.get("/", response_model=list[CreatorServiceOut])
def list_services(
    creator_id: Optional[str] = Query(None),
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
):
    query = db.query(CreatorService)
    if creator_id:
        query = query.filter(CreatorService.creator_id == creator_id)
    if not include_inactive:
        query = query.filter(CreatorService.is_active.is_(True))
    return query.order_by(CreatorService.created_at).all()


@router.get("/{service_id}", response_model=CreatorServiceOut)
def get_service(service_id: str, db: Session = Depends(get_db)):
    return _get_service(db, service_id)


@router.patch("/{service_id}", response_model=CreatorServiceOut)
def update_service(service_id: str, payload: CreatorServiceUpdate, db: Session = Depends(get_db)):
    """Price and delivery-day changes only affect bookings created afterwards."""
    service = _get_service(db, service_id)
    for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(service, field, value)
    db.commit()
    db.refresh(service)
    logger.info("Updated service %s", service_id)
    return service


@router.delete("/{service_id}", response_model=CreatorServiceOut)
def deactivate_service(service_id: str, db: Session = Depends(get_db)):
    service = _get_service(db, service_id)
    service.is_active = False
    db.commit()
    db.refresh(service)
    logger.info("Deactivated service %s", service_id)
    return service
