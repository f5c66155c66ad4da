"""Notification dispatcher: renders and sends transactional email.

The dispatcher is fire-and-forget from the caller's point of view: a
failed send is logged and reported as ``False``, never raised, so the
state transition that triggered it is never rolled back. Builders turn
booking and dispute rows into typed ``Notification`` messages.
"""
import logging
import math
from datetime import datetime
from typing import Iterable, Optional

import pytz
import resend
from jinja2 import Environment

from app.config import settings
from app.models.booking import Booking
from app.models.dispute import BookingDispute, PartyRole
from app.models.user import User
from app.schemas import notification as ev
from app.schemas.notification import Notification

logger = logging.getLogger(__name__)

_jinja = Environment(autoescape=True)
_jinja.filters["money"] = lambda cents: f"${(cents or 0) / 100:,.2f}"

SUBJECTS: dict[str, str] = {
    "creator_new_booking": "New booking request from {{ brand_name }}",
    "brand_booking_accepted": "{{ creator_name }} accepted your booking",
    "brand_booking_declined": "{{ creator_name }} declined your booking request",
    "brand_deliverables_submitted": "{{ creator_name }} submitted deliverables for review",
    "creator_revision_requested": "{{ brand_name }} requested revisions",
    "creator_delivery_confirmed": "{{ brand_name }} approved your work",
    "brand_review_reminder_48h": "48 hours left to review {{ creator_name }}'s deliverables",
    "brand_review_reminder_24h": "URGENT: 24 hours left to review deliverables",
    "creator_payment_auto_released": "Payment auto-released for {{ brand_name }} booking",
    "brand_payment_auto_released": "Payment auto-released to {{ creator_name }}",
    "creator_dispute_opened": "{{ brand_name }} opened a dispute",
    "brand_dispute_opened": "{{ creator_name }} opened a dispute",
    "creator_dispute_response_needed": "Dispute response needed - {{ hours_remaining }}h remaining",
    "brand_dispute_response_needed": "Dispute response needed - {{ hours_remaining }}h remaining",
    "creator_dispute_resolved": "Dispute resolved - {{ resolution }}",
    "brand_dispute_resolved": "Dispute resolved - {{ resolution }}",
    "admin_new_dispute": "New dispute filed: {{ opener_name }} vs {{ other_party_name }}",
    "admin_dispute_escalated": "Dispute escalated - admin review required",
    "admin_dispute_response_received": "Dispute answered - ready for admin review",
    "admin_dispute_resolution_reminder": "Dispute resolution deadline approaching",
}

BODIES: dict[str, str] = {
    "creator_new_booking": (
        "<p><strong>{{ brand_name }}</strong> wants to book your "
        "<strong>{{ service_name or 'service' }}</strong> for {{ amount_cents | money }}.</p>"
        "{% if message %}<p>Message: &ldquo;{{ message }}&rdquo;</p>{% endif %}"
    ),
    "brand_booking_accepted": (
        "<p><strong>{{ creator_name }}</strong> accepted your booking. "
        "{{ amount_cents | money }} is held until you approve the delivery.</p>"
        "<p>Delivery deadline: {{ delivery_deadline_local }}</p>"
    ),
    "brand_booking_declined": "<p><strong>{{ creator_name }}</strong> declined your booking request.</p>",
    "brand_deliverables_submitted": (
        "<p><strong>{{ creator_name }}</strong> submitted {{ file_count }} file(s) "
        "(version {{ deliverable_version }}) for your review.</p>"
        "<p>If you take no action, {{ amount_cents | money }} is released automatically "
        "on {{ auto_release_at_local }}.</p>"
    ),
    "creator_revision_requested": (
        "<p><strong>{{ brand_name }}</strong> requested changes (revision {{ revision_count }}, "
        "{{ revisions_remaining }} remaining).</p><p>&ldquo;{{ revision_notes }}&rdquo;</p>"
    ),
    "creator_delivery_confirmed": (
        "<p><strong>{{ brand_name }}</strong> approved your deliverables. "
        "Payment released: <strong>{{ amount_cents | money }}</strong>.</p>"
    ),
    "brand_review_reminder_48h": (
        "<p>You have 48 hours left to review the deliverables from <strong>{{ creator_name }}</strong>. "
        "{{ amount_cents | money }} is released automatically at {{ auto_release_at }}.</p>"
    ),
    "brand_review_reminder_24h": (
        "<p>Final reminder: less than 24 hours left to review <strong>{{ creator_name }}</strong>'s "
        "deliverables before {{ amount_cents | money }} is released.</p>"
    ),
    "creator_payment_auto_released": (
        "<p>The payment for your booking with <strong>{{ brand_name }}</strong> was released "
        "automatically: <strong>{{ amount_cents | money }}</strong>.</p>"
    ),
    "brand_payment_auto_released": (
        "<p>The review window closed and {{ amount_cents | money }} was released to "
        "<strong>{{ creator_name }}</strong>.</p>"
    ),
    "creator_dispute_opened": (
        "<p><strong>{{ brand_name }}</strong> opened a dispute: &ldquo;{{ reason }}&rdquo;</p>"
        "<p>Respond before {{ response_deadline_local }}.</p>"
    ),
    "brand_dispute_opened": (
        "<p><strong>{{ creator_name }}</strong> opened a dispute: &ldquo;{{ reason }}&rdquo;</p>"
        "<p>Respond before {{ response_deadline_local }}.</p>"
    ),
    "creator_dispute_response_needed": (
        "<p>You have <strong>{{ hours_remaining }} hours</strong> left to respond to the dispute "
        "from <strong>{{ brand_name }}</strong>.</p>"
    ),
    "brand_dispute_response_needed": (
        "<p>You have <strong>{{ hours_remaining }} hours</strong> left to respond to the dispute "
        "from <strong>{{ creator_name }}</strong>.</p>"
    ),
    "creator_dispute_resolved": (
        "<p>The dispute with <strong>{{ brand_name }}</strong> was resolved ({{ resolution }}).</p>"
        "<p>Your payout: {{ amount_to_creator | money }}</p>"
    ),
    "brand_dispute_resolved": (
        "<p>The dispute with <strong>{{ creator_name }}</strong> was resolved ({{ resolution }}).</p>"
        "<p>Refund: {{ refund_amount_cents | money }} ({{ refund_percentage }}%)</p>"
    ),
    "admin_new_dispute": (
        "<p>{{ opener_name }} ({{ opened_by_role }}) vs {{ other_party_name }}, "
        "{{ amount_cents | money }} at stake.</p><p>Reason: &ldquo;{{ reason }}&rdquo;</p>"
    ),
    "admin_dispute_escalated": (
        "<p>{{ brand_name }} vs {{ creator_name }} ({{ amount_cents | money }}): the response "
        "window lapsed. Resolve before {{ resolution_deadline }}.</p>"
    ),
    "admin_dispute_response_received": (
        "<p>The {{ responder_role }} answered the dispute between {{ brand_name }} and {{ creator_name }} "
        "({{ amount_cents | money }}). A decision is due before {{ resolution_deadline }}.</p>"
    ),
    "admin_dispute_resolution_reminder": (
        "<p>{{ brand_name }} vs {{ creator_name }} ({{ amount_cents | money }}) needs a decision "
        "within {{ hours_remaining }} hours.</p>"
    ),
}

LAYOUT = _jinja.from_string(
    "<div style=\"font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;\">"
    "<h2>{{ subject }}</h2>"
    "{% if to_name %}<p>Hi {{ to_name }},</p>{% endif %}"
    "{{ body | safe }}"
    "<p style=\"color: #888; font-size: 12px;\">CollabHunts</p>"
    "</div>"
)


class NotificationDispatcher:
    """Sends ``Notification`` messages through Resend."""

    def __init__(self, api_key: Optional[str] = None, sender: Optional[str] = None):
        self.api_key = settings.RESEND_API_KEY if api_key is None else api_key
        self.sender = sender or settings.EMAIL_FROM

    def render(self, notification: Notification) -> tuple[str, str]:
        """Return ``(subject, html)`` for a notification."""
        data = notification.event.model_dump()
        subject = _jinja.from_string(SUBJECTS[notification.type]).render(**data)
        body = _jinja.from_string(BODIES[notification.type]).render(**data)
        html = LAYOUT.render(subject=subject, to_name=notification.to_name, body=body)
        return subject, html

    def send(self, notification: Notification) -> bool:
        """Deliver one email. Failures are logged and reported as ``False``."""
        if not self.api_key:
            logger.warning("RESEND_API_KEY not configured; skipping %s email to %s",
                           notification.type, notification.to_email)
            return False
        try:
            subject, html = self.render(notification)
            response = self._deliver(notification.to_email, subject, html)
        except Exception:
            logger.exception("Failed to send %s email to %s", notification.type, notification.to_email)
            return False
        logger.info("Sent %s email to %s (%s)", notification.type, notification.to_email, response)
        return True

    def send_all(self, notifications: Iterable[Notification]) -> int:
        """Send each notification independently; return how many were delivered."""
        return sum(1 for n in notifications if self.send(n))

    def _deliver(self, to_email: str, subject: str, html: str):
        resend.api_key = self.api_key
        return resend.Emails.send({
            "from": self.sender,
            "to": [to_email],
            "subject": subject,
            "html": html,
        })


_dispatcher: Optional[NotificationDispatcher] = None


def get_dispatcher() -> NotificationDispatcher:
    """FastAPI dependency: process-wide dispatcher built from settings."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher()
    return _dispatcher


# ── Formatting helpers ─────────────────────────────────────────────
def format_local(value: datetime, tz_name: str) -> str:
    """Render a UTC timestamp in the recipient's timezone for email copy."""
    try:
        tz = pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        tz = pytz.utc
    return value.astimezone(tz).strftime("%b %d, %Y %I:%M %p %Z")


def hours_until(deadline: datetime, now: datetime) -> int:
    return max(0, math.ceil((deadline - now).total_seconds() / 3600))


def _to(user: User, event) -> Notification:
    return Notification(to_email=user.email, to_name=user.display_name, event=event)


def _to_admin(event) -> Notification:
    return Notification(to_email=settings.ADMIN_EMAIL, to_name="Admin", event=event)


# ── Booking lifecycle builders ─────────────────────────────────────
def booking_requested(booking: Booking) -> list[Notification]:
    return [_to(booking.creator, ev.CreatorNewBooking(
        booking_id=booking.booking_id,
        brand_name=booking.brand.display_name,
        service_name=booking.service_name,
        amount_cents=booking.total_price_cents,
        message=booking.message,
    ))]


def booking_accepted(booking: Booking) -> list[Notification]:
    return [_to(booking.brand, ev.BrandBookingAccepted(
        booking_id=booking.booking_id,
        creator_name=booking.creator.display_name,
        amount_cents=booking.total_price_cents,
        delivery_deadline=booking.delivery_deadline.isoformat(),
        delivery_deadline_local=format_local(booking.delivery_deadline, booking.brand.default_timezone),
    ))]


def booking_declined(booking: Booking) -> list[Notification]:
    return [_to(booking.brand, ev.BrandBookingDeclined(
        booking_id=booking.booking_id,
        creator_name=booking.creator.display_name,
    ))]


def deliverables_submitted(booking: Booking, deliverable_version: int, file_count: int,
                           auto_release_at: datetime) -> list[Notification]:
    return [_to(booking.brand, ev.BrandDeliverablesSubmitted(
        booking_id=booking.booking_id,
        creator_name=booking.creator.display_name,
        deliverable_version=deliverable_version,
        file_count=file_count,
        amount_cents=booking.total_price_cents,
        auto_release_at=auto_release_at.isoformat(),
        auto_release_at_local=format_local(auto_release_at, booking.brand.default_timezone),
    ))]


def revision_requested(booking: Booking, max_revisions: int) -> list[Notification]:
    return [_to(booking.creator, ev.CreatorRevisionRequested(
        booking_id=booking.booking_id,
        brand_name=booking.brand.display_name,
        revision_notes=booking.revision_notes or "",
        revision_count=booking.revision_count,
        revisions_remaining=max(0, max_revisions - booking.revision_count),
    ))]


def delivery_confirmed(booking: Booking) -> list[Notification]:
    return [_to(booking.creator, ev.CreatorDeliveryConfirmed(
        booking_id=booking.booking_id,
        brand_name=booking.brand.display_name,
        amount_cents=booking.total_price_cents,
    ))]


def review_reminder(booking: Booking, hours_left: int, auto_release_at: datetime) -> list[Notification]:
    model = ev.BrandReviewReminder48h if hours_left > 24 else ev.BrandReviewReminder24h
    return [_to(booking.brand, model(
        booking_id=booking.booking_id,
        creator_name=booking.creator.display_name,
        amount_cents=booking.total_price_cents,
        auto_release_at=auto_release_at.isoformat(),
    ))]


def payment_auto_released(booking: Booking) -> list[Notification]:
    return [
        _to(booking.creator, ev.CreatorPaymentAutoReleased(
            booking_id=booking.booking_id,
            brand_name=booking.brand.display_name,
            amount_cents=booking.total_price_cents,
        )),
        _to(booking.brand, ev.BrandPaymentAutoReleased(
            booking_id=booking.booking_id,
            creator_name=booking.creator.display_name,
            amount_cents=booking.total_price_cents,
        )),
    ]


# ── Dispute builders ───────────────────────────────────────────────
def _counterpart(dispute: BookingDispute, booking: Booking) -> User:
    return booking.creator if dispute.opened_by_role == PartyRole.brand else booking.brand


def _opener(dispute: BookingDispute, booking: Booking) -> User:
    return booking.brand if dispute.opened_by_role == PartyRole.brand else booking.creator


def dispute_opened(dispute: BookingDispute, booking: Booking) -> list[Notification]:
    counterpart = _counterpart(dispute, booking)
    deadline = dispute.response_deadline
    local = format_local(deadline, counterpart.default_timezone)
    if dispute.opened_by_role == PartyRole.brand:
        party_event = ev.CreatorDisputeOpened(
            dispute_id=dispute.dispute_id,
            booking_id=booking.booking_id,
            brand_name=booking.brand.display_name,
            reason=dispute.reason,
            response_deadline=deadline.isoformat(),
            response_deadline_local=local,
        )
    else:
        party_event = ev.BrandDisputeOpened(
            dispute_id=dispute.dispute_id,
            booking_id=booking.booking_id,
            creator_name=booking.creator.display_name,
            reason=dispute.reason,
            response_deadline=deadline.isoformat(),
            response_deadline_local=local,
        )
    return [
        _to(counterpart, party_event),
        _to_admin(ev.AdminNewDispute(
            dispute_id=dispute.dispute_id,
            opener_name=_opener(dispute, booking).display_name,
            opened_by_role=dispute.opened_by_role.value,
            other_party_name=counterpart.display_name,
            amount_cents=booking.total_price_cents,
            reason=dispute.reason,
        )),
    ]


def dispute_response_needed(dispute: BookingDispute, booking: Booking, now: datetime) -> list[Notification]:
    hours = hours_until(dispute.response_deadline, now)
    if dispute.opened_by_role == PartyRole.brand:
        event = ev.CreatorDisputeResponseNeeded(
            dispute_id=dispute.dispute_id, brand_name=booking.brand.display_name, hours_remaining=hours,
        )
    else:
        event = ev.BrandDisputeResponseNeeded(
            dispute_id=dispute.dispute_id, creator_name=booking.creator.display_name, hours_remaining=hours,
        )
    return [_to(_counterpart(dispute, booking), event)]


def dispute_resolution_reminder(dispute: BookingDispute, booking: Booking, now: datetime) -> list[Notification]:
    return [_to_admin(ev.AdminDisputeResolutionReminder(
        dispute_id=dispute.dispute_id,
        brand_name=booking.brand.display_name,
        creator_name=booking.creator.display_name,
        amount_cents=booking.total_price_cents,
        hours_remaining=hours_until(dispute.resolution_deadline, now),
    ))]


def dispute_response_received(dispute: BookingDispute, booking: Booking) -> list[Notification]:
    responder = PartyRole.creator if dispute.opened_by_role == PartyRole.brand else PartyRole.brand
    return [_to_admin(ev.AdminDisputeResponseReceived(
        dispute_id=dispute.dispute_id,
        brand_name=booking.brand.display_name,
        creator_name=booking.creator.display_name,
        responder_role=responder.value,
        amount_cents=booking.total_price_cents,
        resolution_deadline=dispute.resolution_deadline.isoformat(),
    ))]


def dispute_escalated(dispute: BookingDispute, booking: Booking) -> list[Notification]:
    return [_to_admin(ev.AdminDisputeEscalated(
        dispute_id=dispute.dispute_id,
        brand_name=booking.brand.display_name,
        creator_name=booking.creator.display_name,
        amount_cents=booking.total_price_cents,
        resolution_deadline=dispute.resolution_deadline.isoformat(),
    ))]


def dispute_resolved(dispute: BookingDispute, booking: Booking, refund_amount_cents: int) -> list[Notification]:
    pct = dispute.refund_percentage
    return [
        _to(booking.creator, ev.CreatorDisputeResolved(
            dispute_id=dispute.dispute_id,
            brand_name=booking.brand.display_name,
            resolution=dispute.resolution.value,
            refund_percentage=pct,
            amount_to_creator=booking.total_price_cents - refund_amount_cents,
            in_your_favor=pct < 50,
        )),
        _to(booking.brand, ev.BrandDisputeResolved(
            dispute_id=dispute.dispute_id,
            creator_name=booking.creator.display_name,
            resolution=dispute.resolution.value,
            refund_percentage=pct,
            refund_amount_cents=refund_amount_cents,
            in_your_favor=pct > 50,
        )),
    ]
