"""Tests for the dispute sub-flow.

Covers:
- Open: parties only, accepted or completed bookings only, one unresolved dispute at a time
- 72h response window (respond at T+72h+1s → expired)
- Escalation only after the window
- Admin resolution and its effect on the booking's payment status
"""
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from app.models.dispute import DisputeStatus
from app.models.scheduled_job import ScheduledJob, JobStatus, JobType
from app.services import dispute_service
from tests.conftest import (
    create_admin,
    create_test_booking,
    create_accepted_booking,
    create_delivered_booking,
)

REASON = "The delivered reel does not feature the product at all, which was the core of the brief."
RESPONSE = "The product appears at 0:12 and 0:25 as agreed in the brief; happy to share raw footage."
T0 = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def _open(client, booking, user_id, reason=REASON):
    return client.post("/api/disputes/", json={
        "booking_id": booking["booking_id"],
        "opened_by_user_id": user_id,
        "reason": reason,
        "evidence_description": "Screenshots of the brief and the final cut",
    })


class TestOpenDispute:

    def test_brand_opens_dispute(self, client, storage, dispatcher):
        brand, creator, booking = create_delivered_booking(client, storage)
        resp = _open(client, booking, brand["user_id"])
        assert resp.status_code == 201
        dispute = resp.json()
        assert dispute["status"] == "open"
        assert dispute["opened_by_role"] == "brand"

        opened = datetime.fromisoformat(dispute["created_at"].replace("Z", "+00:00"))
        deadline = datetime.fromisoformat(dispute["response_deadline"].replace("Z", "+00:00"))
        assert deadline - opened == timedelta(hours=72)

        booking_after = client.get(f"/api/bookings/{booking['booking_id']}").json()
        assert booking_after["payment_status"] == "disputed"
        assert booking_after["version"] == booking["version"] + 1

        assert dispatcher.of_type("creator_dispute_opened")[0].to_email == creator["email"]
        assert len(dispatcher.of_type("admin_new_dispute")) == 1

    def test_creator_opens_dispute_notifies_brand(self, client, storage, dispatcher):
        brand, creator, booking = create_delivered_booking(client, storage)
        resp = _open(client, booking, creator["user_id"])
        assert resp.status_code == 201
        assert resp.json()["opened_by_role"] == "creator"
        assert dispatcher.of_type("brand_dispute_opened")[0].to_email == brand["email"]

    def test_outsider_cannot_open(self, client, storage):
        _, _, booking = create_delivered_booking(client, storage)
        admin = create_admin(client)
        assert _open(client, booking, admin["user_id"]).status_code == 403

    def test_pending_booking_cannot_be_disputed(self, client):
        brand, _, booking = create_test_booking(client)
        assert _open(client, booking, brand["user_id"]).status_code == 400

    def test_declined_booking_cannot_be_disputed(self, client):
        brand, creator, booking = create_test_booking(client)
        client.post(f"/api/bookings/{booking['booking_id']}/decline", json={
            "actor_user_id": creator["user_id"], "version": booking["version"],
        })
        resp = _open(client, booking, brand["user_id"])
        assert resp.status_code == 400
        after = client.get(f"/api/bookings/{booking['booking_id']}").json()
        assert after["status"] == "declined"
        assert after["payment_status"] == "pending"

    def test_cancelled_booking_cannot_be_disputed(self, client):
        brand, creator, booking = create_test_booking(client)
        client.post(f"/api/bookings/{booking['booking_id']}/cancel", json={
            "actor_user_id": brand["user_id"], "version": booking["version"],
        })
        assert _open(client, booking, creator["user_id"]).status_code == 400

    def test_short_reason_rejected(self, client, storage):
        brand, _, booking = create_delivered_booking(client, storage)
        assert _open(client, booking, brand["user_id"], reason="Not good").status_code == 400

    def test_second_unresolved_dispute_conflicts(self, client, storage):
        brand, creator, booking = create_delivered_booking(client, storage)
        assert _open(client, booking, brand["user_id"]).status_code == 201
        assert _open(client, booking, creator["user_id"]).status_code == 409
        assert _open(client, booking, brand["user_id"]).status_code == 409

    def test_open_schedules_reminders_and_escalation(self, client, storage, db):
        brand, _, booking = create_delivered_booking(client, storage)
        dispute = _open(client, booking, brand["user_id"]).json()
        deadline = datetime.fromisoformat(dispute["response_deadline"].replace("Z", "+00:00"))

        jobs = db.query(ScheduledJob).filter(ScheduledJob.dispute_id == dispute["dispute_id"]).all()
        by_type = {j.job_type: j.due_at for j in jobs}
        assert by_type[JobType.dispute_reminder_48h] == deadline - timedelta(hours=48)
        assert by_type[JobType.dispute_reminder_24h] == deadline - timedelta(hours=24)
        assert by_type[JobType.dispute_escalation] > deadline

    def test_dispute_blocks_approval(self, client, storage):
        brand, _, booking = create_delivered_booking(client, storage)
        _open(client, booking, brand["user_id"])
        booking = client.get(f"/api/bookings/{booking['booking_id']}").json()
        resp = client.post(f"/api/bookings/{booking['booking_id']}/approve", json={
            "actor_user_id": brand["user_id"], "version": booking["version"],
        })
        assert resp.status_code == 400


class TestRespond:

    def test_counterpart_responds(self, client, storage, dispatcher):
        brand, creator, booking = create_delivered_booking(client, storage)
        dispute = _open(client, booking, brand["user_id"]).json()

        resp = client.post(f"/api/disputes/{dispute['dispute_id']}/respond", json={
            "responder_user_id": creator["user_id"], "response_text": RESPONSE,
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "under_review"
        assert data["response_text"] == RESPONSE
        assert data["resolution_deadline"] is not None
        received = dispatcher.of_type("admin_dispute_response_received")
        assert len(received) == 1
        assert received[0].event.responder_role == "creator"
        assert dispatcher.of_type("admin_dispute_resolution_reminder") == []

    def test_opener_cannot_respond(self, client, storage):
        brand, _, booking = create_delivered_booking(client, storage)
        dispute = _open(client, booking, brand["user_id"]).json()
        resp = client.post(f"/api/disputes/{dispute['dispute_id']}/respond", json={
            "responder_user_id": brand["user_id"], "response_text": RESPONSE,
        })
        assert resp.status_code == 403

    def test_response_cancels_escalation(self, client, storage, db):
        brand, creator, booking = create_delivered_booking(client, storage)
        dispute = _open(client, booking, brand["user_id"]).json()
        client.post(f"/api/disputes/{dispute['dispute_id']}/respond", json={
            "responder_user_id": creator["user_id"], "response_text": RESPONSE,
        })
        escalation = db.query(ScheduledJob).filter(
            ScheduledJob.dispute_id == dispute["dispute_id"],
            ScheduledJob.job_type == JobType.dispute_escalation,
        ).one()
        assert escalation.status == JobStatus.cancelled
        reminder = db.query(ScheduledJob).filter(
            ScheduledJob.dispute_id == dispute["dispute_id"],
            ScheduledJob.job_type == JobType.dispute_resolution_reminder,
        ).one()
        assert reminder.status == JobStatus.pending

    def test_response_window_boundary(self, client, storage, db, dispatcher):
        brand, creator, booking = create_delivered_booking(client, storage)
        dispute = dispute_service.open_dispute(db, booking["booking_id"], brand["user_id"], REASON, None,
                                               dispatcher, now=T0)
        assert dispute.response_deadline == T0 + timedelta(hours=72)

        with pytest.raises(HTTPException) as exc:
            dispute_service.respond(db, dispute.dispute_id, creator["user_id"], RESPONSE, dispatcher,
                                    now=T0 + timedelta(hours=72, seconds=1))
        assert exc.value.status_code == 400
        assert exc.value.detail == "Response window expired"

        answered = dispute_service.respond(db, dispute.dispute_id, creator["user_id"], RESPONSE, dispatcher,
                                           now=T0 + timedelta(hours=72))
        assert answered.status == DisputeStatus.under_review
        assert answered.resolution_deadline == T0 + timedelta(hours=72 + 96)


class TestEscalate:

    def test_escalation_before_deadline_rejected(self, client, storage, db, dispatcher):
        brand, _, booking = create_delivered_booking(client, storage)
        dispute = dispute_service.open_dispute(db, booking["booking_id"], brand["user_id"], REASON, None,
                                               dispatcher, now=T0)
        with pytest.raises(HTTPException) as exc:
            dispute_service.escalate(db, dispute.dispute_id, dispatcher, now=T0 + timedelta(hours=72))
        assert exc.value.status_code == 400

    def test_escalation_after_deadline(self, client, storage, db, dispatcher):
        brand, _, booking = create_delivered_booking(client, storage)
        dispute = dispute_service.open_dispute(db, booking["booking_id"], brand["user_id"], REASON, None,
                                               dispatcher, now=T0)
        later = T0 + timedelta(hours=73)
        escalated = dispute_service.escalate(db, dispute.dispute_id, dispatcher, now=later)
        assert escalated.status == DisputeStatus.escalated
        assert escalated.escalated_to_admin is True
        assert escalated.escalated_at == later
        assert escalated.resolution_deadline == later + timedelta(hours=96)
        assert len(dispatcher.of_type("admin_dispute_escalated")) == 1

    def test_manual_escalate_endpoint_respects_window(self, client, storage):
        brand, _, booking = create_delivered_booking(client, storage)
        dispute = _open(client, booking, brand["user_id"]).json()
        resp = client.post(f"/api/disputes/{dispute['dispute_id']}/escalate")
        assert resp.status_code == 400


class TestResolve:

    def _open_and_answer(self, client, storage, price_cents=10000):
        brand, creator, booking = create_delivered_booking(client, storage, price_cents=price_cents)
        dispute = _open(client, booking, brand["user_id"]).json()
        client.post(f"/api/disputes/{dispute['dispute_id']}/respond", json={
            "responder_user_id": creator["user_id"], "response_text": RESPONSE,
        })
        return brand, creator, booking, dispute

    def _resolve(self, client, dispute, admin_id, pct, reason="Reviewed footage and brief"):
        return client.post(f"/api/disputes/{dispute['dispute_id']}/resolve", json={
            "admin_user_id": admin_id,
            "admin_decision_reason": reason,
            "refund_percentage": pct,
        })

    def test_full_refund(self, client, storage, dispatcher):
        brand, _, booking, dispute = self._open_and_answer(client, storage)
        admin = create_admin(client)
        resp = self._resolve(client, dispute, admin["user_id"], 100)
        assert resp.status_code == 200
        assert resp.json()["resolution"] == "refund"
        assert resp.json()["resolved_by_user_id"] == admin["user_id"]

        after = client.get(f"/api/bookings/{booking['booking_id']}").json()
        assert after["status"] == "completed"
        assert after["payment_status"] == "refunded"

        brand_mail = dispatcher.of_type("brand_dispute_resolved")[0]
        assert brand_mail.to_email == brand["email"]
        assert brand_mail.event.refund_amount_cents == 10000
        assert brand_mail.event.in_your_favor is True

    def test_release_to_creator(self, client, storage, dispatcher):
        _, creator, booking, dispute = self._open_and_answer(client, storage)
        admin = create_admin(client)
        resp = self._resolve(client, dispute, admin["user_id"], 0)
        assert resp.json()["resolution"] == "release"

        after = client.get(f"/api/bookings/{booking['booking_id']}").json()
        assert after["payment_status"] == "paid"
        assert after["delivery_status"] == "confirmed"
        assert after["confirmed_at"] is not None

        creator_mail = dispatcher.of_type("creator_dispute_resolved")[0]
        assert creator_mail.to_email == creator["email"]
        assert creator_mail.event.amount_to_creator == 10000
        assert creator_mail.event.in_your_favor is True

    def test_split_rounds_half_up(self, client, storage, dispatcher):
        _, _, booking, dispute = self._open_and_answer(client, storage, price_cents=999)
        admin = create_admin(client)
        resp = self._resolve(client, dispute, admin["user_id"], 50)
        assert resp.json()["resolution"] == "split"
        brand_mail = dispatcher.of_type("brand_dispute_resolved")[0]
        assert brand_mail.event.refund_amount_cents == 500
        assert dispatcher.of_type("creator_dispute_resolved")[0].event.amount_to_creator == 499

    def test_non_admin_cannot_resolve(self, client, storage):
        brand, _, _, dispute = self._open_and_answer(client, storage)
        assert self._resolve(client, dispute, brand["user_id"], 100).status_code == 403

    def test_resolve_twice_conflicts(self, client, storage):
        _, _, _, dispute = self._open_and_answer(client, storage)
        admin = create_admin(client)
        assert self._resolve(client, dispute, admin["user_id"], 0).status_code == 200
        assert self._resolve(client, dispute, admin["user_id"], 100).status_code == 409

    def test_percentage_out_of_range(self, client, storage):
        _, _, _, dispute = self._open_and_answer(client, storage)
        admin = create_admin(client)
        assert self._resolve(client, dispute, admin["user_id"], 150).status_code == 422

    def test_new_dispute_allowed_after_resolution(self, client, storage):
        brand, _, booking, dispute = self._open_and_answer(client, storage)
        admin = create_admin(client)
        self._resolve(client, dispute, admin["user_id"], 50)
        assert _open(client, booking, brand["user_id"]).status_code == 201

    def test_refunded_booking_cannot_be_disputed_again(self, client, storage):
        _, creator, booking, dispute = self._open_and_answer(client, storage)
        admin = create_admin(client)
        self._resolve(client, dispute, admin["user_id"], 100)

        assert _open(client, booking, creator["user_id"]).status_code == 400
        after = client.get(f"/api/bookings/{booking['booking_id']}").json()
        assert after["payment_status"] == "refunded"

    def test_unaccepted_booking_is_never_settled(self, client, db):
        from app.models.booking import Booking
        from app.services import booking_service
        brand, creator, booking = create_test_booking(client)
        client.post(f"/api/bookings/{booking['booking_id']}/decline", json={
            "actor_user_id": creator["user_id"], "version": booking["version"],
        })
        admin = create_admin(client)
        row = db.query(Booking).filter(Booking.booking_id == booking["booking_id"]).one()

        with pytest.raises(HTTPException) as exc:
            booking_service.apply_dispute_resolution(db, row, admin["user_id"], 0, T0)
        assert exc.value.status_code == 400
        db.rollback()
        db.refresh(row)
        assert row.payment_status.value == "pending"
        assert row.delivery_status is None

    def test_admin_notes(self, client, storage):
        _, _, _, dispute = self._open_and_answer(client, storage)
        admin = create_admin(client)
        resp = client.patch(f"/api/disputes/{dispute['dispute_id']}/notes", json={
            "admin_user_id": admin["user_id"], "admin_notes": "Asked creator for raw files",
        })
        assert resp.status_code == 200
        assert resp.json()["admin_notes"] == "Asked creator for raw files"


class TestListDisputes:

    def test_filters(self, client, storage):
        brand, creator, booking = create_delivered_booking(client, storage)
        _, _, other_booking = create_accepted_booking(client)
        open_one = _open(client, booking, brand["user_id"]).json()
        other = _open(client, other_booking, other_booking["brand_id"]).json()
        client.post(f"/api/disputes/{open_one['dispute_id']}/respond", json={
            "responder_user_id": creator["user_id"], "response_text": RESPONSE,
        })

        def ids(filter_name):
            resp = client.get("/api/disputes/", params={"filter": filter_name})
            assert resp.status_code == 200
            return {d["dispute_id"] for d in resp.json()}

        assert ids("all") == {open_one["dispute_id"], other["dispute_id"]}
        assert ids("pending") == {other["dispute_id"]}
        assert ids("review") == {open_one["dispute_id"]}
        assert ids("resolved") == set()
        assert ids("overdue") == set()

    def test_overdue(self, client, storage, db, dispatcher):
        brand, _, booking = create_delivered_booking(client, storage)
        dispute_service.open_dispute(db, booking["booking_id"], brand["user_id"], REASON, None,
                                     dispatcher, now=T0)
        overdue = dispute_service.list_disputes(db, "overdue", now=T0 + timedelta(hours=80))
        assert len(overdue) == 1
        assert dispute_service.list_disputes(db, "overdue", now=T0 + timedelta(hours=10)) == []

    def test_unknown_filter(self, client):
        assert client.get("/api/disputes/", params={"filter": "weird"}).status_code == 422
