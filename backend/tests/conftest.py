"""Pytest fixtures: per-test SQLite database plus in-memory email and storage fakes."""
import uuid
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from app.database import Base, get_db
from app.main import app
from app.services import storage_service
from app.services.notification_service import NotificationDispatcher, get_dispatcher
from app.services.storage_service import get_storage

# Import all models so they register with Base.metadata
from app.models.user import User                          # noqa: F401
from app.models.creator_service import CreatorService     # noqa: F401
from app.models.booking import Booking                    # noqa: F401
from app.models.deliverable import BookingDeliverable     # noqa: F401
from app.models.dispute import BookingDispute             # noqa: F401
from app.models.booking_mutation import BookingMutation   # noqa: F401
from app.models.scheduled_job import ScheduledJob         # noqa: F401

SQLITE_URL = "sqlite:///./test.db"


class RecordingDispatcher(NotificationDispatcher):
    """Renders every notification for real but records instead of calling Resend."""

    def __init__(self):
        super().__init__(api_key="re_test_key", sender="CollabHunts <test@collabhunts.test>")
        self.sent = []
        self.delivered = []
        self.fail = False

    def send(self, notification):
        self.sent.append(notification)
        return super().send(notification)

    def _deliver(self, to_email, subject, html):
        if self.fail:
            raise RuntimeError("Resend is down")
        self.delivered.append({"to": to_email, "subject": subject, "html": html})
        return {"id": f"email_{len(self.delivered)}"}

    def types(self) -> list[str]:
        return [n.type for n in self.sent]

    def of_type(self, type_name: str) -> list:
        return [n for n in self.sent if n.type == type_name]


class FakeStorage:
    """Object store stand-in: keys exist once ``put`` has been called."""

    upload_ttl_seconds = 3600

    def __init__(self):
        self.objects = set()

    def build_key(self, booking_id, file_name, mime_type):
        return storage_service.build_key(booking_id, file_name, mime_type)

    def presign_upload(self, key, mime_type):
        return f"https://r2.test/bucket/{key}?X-Amz-Signature=test"

    def object_exists(self, key):
        return key in self.objects

    def put(self, key):
        self.objects.add(key)


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(db_engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture(scope="function")
def storage():
    return FakeStorage()


@pytest.fixture(scope="function")
def client(db_engine, dispatcher, storage):
    """TestClient with the database, email and storage dependencies overridden."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    def _override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_storage] = lambda: storage
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers: build parties, services and bookings through the API
# ---------------------------------------------------------------------------
def create_test_user(client: TestClient, name: str = "Test User", role: str = "brand",
                     tz: str = "America/New_York") -> dict:
    resp = client.post("/api/users/", json={
        "display_name": name,
        "email": f"{name.lower().replace(' ', '.')}.{uuid.uuid4().hex[:8]}@example.com",
        "role": role,
        "default_timezone": tz,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_test_service(client: TestClient, creator_id: str, price_cents: int = 10000,
                        delivery_days: int = 7, service_type: str = "instagram_reel") -> dict:
    resp = client.post("/api/services/", json={
        "creator_id": creator_id,
        "service_type": service_type,
        "description": "One 30s reel featuring the product",
        "price_cents": price_cents,
        "delivery_days": delivery_days,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_test_booking(client: TestClient, price_cents: int = 10000, delivery_days: int = 7):
    """Brand + creator + service + pending booking. Returns (brand, creator, booking)."""
    brand = create_test_user(client, name="Acme Brand", role="brand")
    creator = create_test_user(client, name="Jamie Creator", role="creator", tz="Asia/Beirut")
    service = create_test_service(client, creator["user_id"], price_cents=price_cents,
                                  delivery_days=delivery_days)
    resp = client.post("/api/bookings/", json={
        "brand_id": brand["user_id"],
        "service_id": service["service_id"],
        "message": "Launch campaign for our new bottle",
    })
    assert resp.status_code == 201, resp.text
    return brand, creator, resp.json()


def create_accepted_booking(client: TestClient, price_cents: int = 10000, delivery_days: int = 7):
    brand, creator, booking = create_test_booking(client, price_cents, delivery_days)
    resp = client.post(f"/api/bookings/{booking['booking_id']}/accept", json={
        "actor_user_id": creator["user_id"],
        "version": booking["version"],
    })
    assert resp.status_code == 200, resp.text
    return brand, creator, resp.json()


def upload_files(client: TestClient, storage: FakeStorage, booking: dict, creator_id: str,
                 count: int = 1) -> list[dict]:
    """Run the upload handshake for ``count`` files and return submission file entries."""
    files = []
    for i in range(count):
        name = f"cut_{i + 1}.mp4"
        resp = client.post(f"/api/bookings/{booking['booking_id']}/deliverables/upload-url", json={
            "actor_user_id": creator_id,
            "file_name": name,
            "mime_type": "video/mp4",
        })
        assert resp.status_code == 200, resp.text
        key = resp.json()["storage_key"]
        storage.put(key)
        files.append({
            "file_name": name,
            "mime_type": "video/mp4",
            "file_size_bytes": 1_048_576 * (i + 1),
            "storage_key": key,
        })
    return files


def submit_deliverables(client: TestClient, storage: FakeStorage, booking: dict, creator_id: str,
                        count: int = 1, notes: str = None) -> dict:
    """Upload and submit ``count`` files; returns the refreshed booking JSON."""
    files = upload_files(client, storage, booking, creator_id, count)
    resp = client.post(f"/api/bookings/{booking['booking_id']}/deliverables", json={
        "actor_user_id": creator_id,
        "version": booking["version"],
        "files": files,
        "notes": notes,
    })
    assert resp.status_code == 201, resp.text
    return client.get(f"/api/bookings/{booking['booking_id']}").json()


def create_delivered_booking(client: TestClient, storage: FakeStorage, price_cents: int = 10000,
                             file_count: int = 1):
    brand, creator, booking = create_accepted_booking(client, price_cents)
    booking = submit_deliverables(client, storage, booking, creator["user_id"], file_count)
    return brand, creator, booking


def create_admin(client: TestClient) -> dict:
    return create_test_user(client, name="Platform Admin", role="admin", tz="UTC")
