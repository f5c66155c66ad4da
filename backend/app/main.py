"""FastAPI application entry point."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.config import settings
from app.database import Base, engine

# Import routers
from app.routers import users, services, bookings, disputes, jobs

# Import all models so Base.metadata knows about them
from app.models.user import User                          # noqa: F401
from app.models.creator_service import CreatorService     # noqa: F401
from app.models.booking import Booking                    # noqa: F401
from app.models.deliverable import BookingDeliverable     # noqa: F401
from app.models.dispute import BookingDispute             # noqa: F401
from app.models.booking_mutation import BookingMutation   # noqa: F401
from app.models.scheduled_job import ScheduledJob         # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Creator Booking Delivery",
    description="Brand/creator booking lifecycle: accept, deliver, review, payout and disputes",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(services.router, prefix="/api/services", tags=["Services"])
app.include_router(bookings.router, prefix="/api/bookings", tags=["Bookings"])
app.include_router(disputes.router, prefix="/api/disputes", tags=["Disputes"])
app.include_router(jobs.router, prefix="/api/jobs", tags=["Jobs"])


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)


@app.get("/api/health")
def health_check():
    return {"status": "ok"}
