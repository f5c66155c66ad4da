"""Tests for User and creator service catalog endpoints."""
from tests.conftest import create_test_user, create_test_service


class TestUserCRUD:
    """User create / get / update / list."""

    def test_create_user(self, client):
        data = create_test_user(client, name="Alice", role="creator", tz="US/Eastern")
        assert data["display_name"] == "Alice"
        assert data["role"] == "creator"
        assert data["default_timezone"] == "US/Eastern"
        assert "user_id" in data

    def test_get_user(self, client):
        user = create_test_user(client)
        resp = client.get(f"/api/users/{user['user_id']}")
        assert resp.status_code == 200
        assert resp.json()["display_name"] == "Test User"

    def test_get_user_not_found(self, client):
        resp = client.get("/api/users/00000000-0000-0000-0000-000000000000")
        assert resp.status_code == 404

    def test_update_user(self, client):
        user = create_test_user(client)
        resp = client.patch(f"/api/users/{user['user_id']}", json={
            "display_name": "Updated Name",
            "default_timezone": "Europe/London",
        })
        assert resp.status_code == 200
        assert resp.json()["display_name"] == "Updated Name"
        assert resp.json()["default_timezone"] == "Europe/London"

    def test_update_ignores_null_fields(self, client):
        user = create_test_user(client, name="Nora", tz="Asia/Beirut")
        resp = client.patch(f"/api/users/{user['user_id']}", json={
            "display_name": "Nora K",
            "default_timezone": None,
            "email": None,
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["display_name"] == "Nora K"
        assert data["default_timezone"] == "Asia/Beirut"
        assert data["email"] == user["email"]

    def test_list_users_by_role(self, client):
        create_test_user(client, name="Alice", role="brand")
        create_test_user(client, name="Bob", role="creator")
        resp = client.get("/api/users/", params={"role": "creator"})
        assert resp.status_code == 200
        names = [u["display_name"] for u in resp.json()]
        assert names == ["Bob"]

    def test_unknown_role_rejected(self, client):
        resp = client.post("/api/users/", json={
            "display_name": "Mallory", "email": "mallory@example.com", "role": "superuser",
        })
        assert resp.status_code == 400

    def test_unknown_timezone_rejected(self, client):
        resp = client.post("/api/users/", json={
            "display_name": "Zed", "email": "zed@example.com", "role": "brand",
            "default_timezone": "Mars/Olympus_Mons",
        })
        assert resp.status_code == 400

    def test_duplicate_email_conflict(self, client):
        body = {"display_name": "Dup", "email": "dup@example.com", "role": "brand"}
        assert client.post("/api/users/", json=body).status_code == 201
        assert client.post("/api/users/", json=body).status_code == 409


class TestCreatorServices:
    """Service catalog: only creators offer services; inactive ones drop out of listings."""

    def test_create_service(self, client):
        creator = create_test_user(client, name="Maya", role="creator")
        service = create_test_service(client, creator["user_id"], price_cents=25000, delivery_days=5)
        assert service["price_cents"] == 25000
        assert service["delivery_days"] == 5
        assert service["is_active"] is True

    def test_brand_cannot_offer_service(self, client):
        brand = create_test_user(client, name="Acme", role="brand")
        resp = client.post("/api/services/", json={
            "creator_id": brand["user_id"], "service_type": "tiktok_video", "price_cents": 5000,
        })
        assert resp.status_code == 400

    def test_price_must_be_positive(self, client):
        creator = create_test_user(client, name="Maya", role="creator")
        resp = client.post("/api/services/", json={
            "creator_id": creator["user_id"], "service_type": "tiktok_video", "price_cents": 0,
        })
        assert resp.status_code == 422

    def test_deactivated_service_hidden_and_unbookable(self, client):
        creator = create_test_user(client, name="Maya", role="creator")
        brand = create_test_user(client, name="Acme", role="brand")
        service = create_test_service(client, creator["user_id"])

        resp = client.delete(f"/api/services/{service['service_id']}")
        assert resp.status_code == 200
        assert resp.json()["is_active"] is False

        listed = client.get("/api/services/", params={"creator_id": creator["user_id"]}).json()
        assert listed == []

        resp = client.post("/api/bookings/", json={
            "brand_id": brand["user_id"], "service_id": service["service_id"],
        })
        assert resp.status_code == 400

    def test_update_service_does_not_touch_existing_bookings(self, client):
        creator = create_test_user(client, name="Maya", role="creator")
        brand = create_test_user(client, name="Acme", role="brand")
        service = create_test_service(client, creator["user_id"], price_cents=10000)
        booking = client.post("/api/bookings/", json={
            "brand_id": brand["user_id"], "service_id": service["service_id"],
        }).json()

        client.patch(f"/api/services/{service['service_id']}", json={"price_cents": 99000})
        resp = client.get(f"/api/bookings/{booking['booking_id']}")
        assert resp.json()["total_price_cents"] == 10000

    def test_update_service_ignores_null_fields(self, client):
        creator = create_test_user(client, name="Maya", role="creator")
        service = create_test_service(client, creator["user_id"], price_cents=10000)
        resp = client.patch(f"/api/services/{service['service_id']}", json={
            "price_cents": None, "service_type": None, "delivery_days": 5,
        })
        assert resp.status_code == 200
        assert resp.json()["price_cents"] == 10000
        assert resp.json()["service_type"] == service["service_type"]
        assert resp.json()["delivery_days"] == 5


def test_health_endpoint(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
