"""Tests for collaboration agreement drafting."""
from types import SimpleNamespace

from app.config import settings
from app.services import agreement_service
from tests.conftest import create_accepted_booking


def _draft(client, booking, actor_id, **extra):
    return client.post(f"/api/bookings/{booking['booking_id']}/agreement/draft", json={
        "actor_user_id": actor_id,
        "platforms": ["instagram", "tiktok"],
        "usage_rights": "brand_repost",
        **extra,
    })


class TestAgreementDraft:

    def test_template_without_api_key(self, client, monkeypatch):
        monkeypatch.setattr(settings, "OPENAI_API_KEY", "")
        brand, creator, booking = create_accepted_booking(client, price_cents=25000)
        resp = _draft(client, booking, brand["user_id"], special_instructions="No competitor logos")
        assert resp.status_code == 200
        data = resp.json()
        assert data["generated_by"] == "template"
        assert brand["display_name"] in data["content"]
        assert creator["display_name"] in data["content"]
        assert "$250.00" in data["content"]
        assert "instagram, tiktok" in data["content"]
        assert "repost" in data["content"]
        assert "No competitor logos" in data["content"]

    def test_outsider_forbidden(self, client, monkeypatch):
        from tests.conftest import create_test_user
        monkeypatch.setattr(settings, "OPENAI_API_KEY", "")
        _, _, booking = create_accepted_booking(client)
        outsider = create_test_user(client, name="Someone Else", role="brand")
        assert _draft(client, booking, outsider["user_id"]).status_code == 403

    def test_llm_draft(self, client, monkeypatch):
        captured = {}

        class FakeCompletions:
            def create(self, **kwargs):
                captured.update(kwargs)
                message = SimpleNamespace(content="**Agreement**\nAcme x Jamie")
                return SimpleNamespace(choices=[SimpleNamespace(message=message)])

        class FakeOpenAI:
            def __init__(self, api_key):
                self.chat = SimpleNamespace(completions=FakeCompletions())

        monkeypatch.setattr(settings, "OPENAI_API_KEY", "sk-test")
        monkeypatch.setattr(agreement_service, "OpenAI", FakeOpenAI)
        _, creator, booking = create_accepted_booking(client)

        resp = _draft(client, booking, creator["user_id"], current_content="Old draft text")
        assert resp.status_code == 200
        assert resp.json() == {
            "booking_id": booking["booking_id"],
            "content": "**Agreement**\nAcme x Jamie",
            "generated_by": "llm",
        }
        prompt = captured["messages"][1]["content"]
        assert "Old draft text" in prompt
        assert "Revision rounds: 2" in prompt
        assert captured["model"] == settings.OPENAI_MODEL

    def test_llm_error_falls_back_to_template(self, client, monkeypatch):
        class BrokenOpenAI:
            def __init__(self, api_key):
                raise RuntimeError("connection refused")

        monkeypatch.setattr(settings, "OPENAI_API_KEY", "sk-test")
        monkeypatch.setattr(agreement_service, "OpenAI", BrokenOpenAI)
        brand, _, booking = create_accepted_booking(client)
        resp = _draft(client, booking, brand["user_id"])
        assert resp.status_code == 200
        assert resp.json()["generated_by"] == "template"
