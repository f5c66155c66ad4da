"""Notification event contracts for the email dispatcher.

Each email type is its own model with its fields enumerated; the envelope
discriminates on ``type`` so an unknown type or a payload missing a field
is rejected when the message is built, not when the template renders.
Amounts are integer cents, timestamps are ISO 8601 strings.
"""
from typing import Annotated, Any, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _Event(BaseModel):
    model_config = ConfigDict(extra="forbid")


# ── Booking lifecycle ──────────────────────────────────────────────
class CreatorNewBooking(_Event):
    type: Literal["creator_new_booking"] = "creator_new_booking"
    booking_id: str
    brand_name: str
    service_name: Optional[str] = None
    amount_cents: int
    message: Optional[str] = None


class BrandBookingAccepted(_Event):
    type: Literal["brand_booking_accepted"] = "brand_booking_accepted"
    booking_id: str
    creator_name: str
    amount_cents: int
    delivery_deadline: str
    delivery_deadline_local: str


class BrandBookingDeclined(_Event):
    type: Literal["brand_booking_declined"] = "brand_booking_declined"
    booking_id: str
    creator_name: str


class BrandDeliverablesSubmitted(_Event):
    type: Literal["brand_deliverables_submitted"] = "brand_deliverables_submitted"
    booking_id: str
    creator_name: str
    deliverable_version: int
    file_count: int
    amount_cents: int
    auto_release_at: str
    auto_release_at_local: str


class CreatorRevisionRequested(_Event):
    type: Literal["creator_revision_requested"] = "creator_revision_requested"
    booking_id: str
    brand_name: str
    revision_notes: str
    revision_count: int
    revisions_remaining: int


class CreatorDeliveryConfirmed(_Event):
    type: Literal["creator_delivery_confirmed"] = "creator_delivery_confirmed"
    booking_id: str
    brand_name: str
    amount_cents: int


class BrandReviewReminder48h(_Event):
    type: Literal["brand_review_reminder_48h"] = "brand_review_reminder_48h"
    booking_id: str
    creator_name: str
    amount_cents: int
    auto_release_at: str


class BrandReviewReminder24h(_Event):
    type: Literal["brand_review_reminder_24h"] = "brand_review_reminder_24h"
    booking_id: str
    creator_name: str
    amount_cents: int
    auto_release_at: str


class CreatorPaymentAutoReleased(_Event):
    type: Literal["creator_payment_auto_released"] = "creator_payment_auto_released"
    booking_id: str
    brand_name: str
    amount_cents: int


class BrandPaymentAutoReleased(_Event):
    type: Literal["brand_payment_auto_released"] = "brand_payment_auto_released"
    booking_id: str
    creator_name: str
    amount_cents: int


# ── Disputes ───────────────────────────────────────────────────────
class CreatorDisputeOpened(_Event):
    type: Literal["creator_dispute_opened"] = "creator_dispute_opened"
    dispute_id: str
    booking_id: str
    brand_name: str
    reason: str
    response_deadline: str
    response_deadline_local: str


class BrandDisputeOpened(_Event):
    type: Literal["brand_dispute_opened"] = "brand_dispute_opened"
    dispute_id: str
    booking_id: str
    creator_name: str
    reason: str
    response_deadline: str
    response_deadline_local: str


class CreatorDisputeResponseNeeded(_Event):
    type: Literal["creator_dispute_response_needed"] = "creator_dispute_response_needed"
    dispute_id: str
    brand_name: str
    hours_remaining: int


class BrandDisputeResponseNeeded(_Event):
    type: Literal["brand_dispute_response_needed"] = "brand_dispute_response_needed"
    dispute_id: str
    creator_name: str
    hours_remaining: int


class CreatorDisputeResolved(_Event):
    type: Literal["creator_dispute_resolved"] = "creator_dispute_resolved"
    dispute_id: str
    brand_name: str
    resolution: str
    refund_percentage: int
    amount_to_creator: int
    in_your_favor: bool


class BrandDisputeResolved(_Event):
    type: Literal["brand_dispute_resolved"] = "brand_dispute_resolved"
    dispute_id: str
    creator_name: str
    resolution: str
    refund_percentage: int
    refund_amount_cents: int
    in_your_favor: bool


class AdminNewDispute(_Event):
    type: Literal["admin_new_dispute"] = "admin_new_dispute"
    dispute_id: str
    opener_name: str
    opened_by_role: str
    other_party_name: str
    amount_cents: int
    reason: str


class AdminDisputeEscalated(_Event):
    type: Literal["admin_dispute_escalated"] = "admin_dispute_escalated"
    dispute_id: str
    brand_name: str
    creator_name: str
    amount_cents: int
    resolution_deadline: str


class AdminDisputeResponseReceived(_Event):
    type: Literal["admin_dispute_response_received"] = "admin_dispute_response_received"
    dispute_id: str
    brand_name: str
    creator_name: str
    responder_role: str
    amount_cents: int
    resolution_deadline: str


class AdminDisputeResolutionReminder(_Event):
    type: Literal["admin_dispute_resolution_reminder"] = "admin_dispute_resolution_reminder"
    dispute_id: str
    brand_name: str
    creator_name: str
    amount_cents: int
    hours_remaining: int


NotificationEvent = Annotated[
    Union[
        CreatorNewBooking,
        BrandBookingAccepted,
        BrandBookingDeclined,
        BrandDeliverablesSubmitted,
        CreatorRevisionRequested,
        CreatorDeliveryConfirmed,
        BrandReviewReminder48h,
        BrandReviewReminder24h,
        CreatorPaymentAutoReleased,
        BrandPaymentAutoReleased,
        CreatorDisputeOpened,
        BrandDisputeOpened,
        CreatorDisputeResponseNeeded,
        BrandDisputeResponseNeeded,
        CreatorDisputeResolved,
        BrandDisputeResolved,
        AdminNewDispute,
        AdminDisputeEscalated,
        AdminDisputeResponseReceived,
        AdminDisputeResolutionReminder,
    ],
    Field(discriminator="type"),
]

_event_adapter: TypeAdapter = TypeAdapter(NotificationEvent)


class Notification(BaseModel):
    """One email to one recipient."""

    model_config = ConfigDict(extra="forbid")

    to_email: str = Field(min_length=3)
    to_name: Optional[str] = None
    event: NotificationEvent

    @property
    def type(self) -> str:
        return self.event.type

    def to_wire(self) -> dict[str, Any]:
        """Render as the dispatcher's ``{type, to_email, to_name, data}`` envelope."""
        return {
            "type": self.event.type,
            "to_email": self.to_email,
            "to_name": self.to_name,
            "data": self.event.model_dump(exclude={"type"}),
        }

    @classmethod
    def from_wire(cls, body: dict[str, Any]) -> "Notification":
        """Parse the envelope, raising ``pydantic.ValidationError`` on unknown or malformed payloads."""
        data = dict(body.get("data") or {})
        data["type"] = body.get("type")
        return cls(
            to_email=body.get("to_email"),
            to_name=body.get("to_name"),
            event=_event_adapter.validate_python(data),
        )
