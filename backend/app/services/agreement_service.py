"""Collaboration agreement drafting.

Builds a prompt from the booking and asks the LLM for a short agreement.
Without an API key, or when the call fails, a plain local template is
returned instead so the parties always get a starting draft.
"""
import logging
from typing import Optional

from openai import OpenAI
from sqlalchemy.orm import Session
from fastapi import HTTPException, status

from app.config import settings
from app.models.booking import Booking
from app.services import booking_service

logger = logging.getLogger(__name__)

USAGE_RIGHTS = {
    "creator_only": "Content remains on the creator's channels only",
    "brand_repost": "Brand may repost/share the content with creator credit",
    "full_commercial": "Full commercial usage rights granted to the brand",
}

SYSTEM_PROMPT = """You are a professional contract drafting assistant for an influencer/creator marketplace.
You draft agreements between creators and brands.

Guidelines:
- Use the actual brand and creator names throughout, never generic placeholders
- Keep the tone professional but friendly
- Define deliverables, timeline, payment and usage rights clearly
- Include an FTC disclosure clause for sponsored content
- Payment is held by the platform and released after the brand approves delivery
- At most 600 words, **bold** markdown section headers
- Return ONLY the agreement text, no commentary"""

TEMPLATE = """**Collaboration Agreement**

This agreement is made between **{brand}** ("Brand") and **{creator}** ("Creator") for the booking {booking_id}.

**Scope of Work**
{creator} will produce: {service}.
Content platforms: {platforms}.

**Timeline**
Deliverables are due by {deadline}. {brand} has 72 hours after each delivery to approve or request changes; \
without a response, the delivery is approved automatically.

**Revisions**
Up to {revisions} rounds of revisions are included.

**Compensation**
{brand} pays {price}. The payment is held by the platform and released to {creator} when the delivery is approved.

**Usage Rights**
{usage_rights}.

**Disclosure**
{creator} will clearly disclose the paid partnership in line with FTC guidelines.
{special}"""


def _context(booking: Booking, platforms: list[str], usage_rights: str,
             special_instructions: Optional[str]) -> dict:
    return {
        "booking_id": booking.booking_id,
        "brand": booking.brand.display_name,
        "creator": booking.creator.display_name,
        "service": booking.service_name or "the agreed content",
        "platforms": ", ".join(platforms) if platforms else "Not specified",
        "deadline": booking.delivery_deadline.strftime("%B %d, %Y") if booking.delivery_deadline
        else f"{booking.delivery_days} days after acceptance",
        "revisions": booking_service.MAX_REVISIONS,
        "price": f"${booking.total_price_cents / 100:,.2f}",
        "usage_rights": USAGE_RIGHTS.get(usage_rights, usage_rights),
        "special": f"\n**Special Instructions**\n{special_instructions}\n" if special_instructions else "",
    }


def render_template(booking: Booking, platforms: list[str], usage_rights: str,
                    special_instructions: Optional[str] = None) -> str:
    return TEMPLATE.format(**_context(booking, platforms, usage_rights, special_instructions))


def _user_prompt(ctx: dict, special_instructions: Optional[str], current_content: Optional[str]) -> str:
    lines = [
        f"Generate a professional agreement between {ctx['brand']} and {ctx['creator']}.",
        "",
        f"Service: {ctx['service']}",
        f"Price: {ctx['price']}",
        f"Delivery deadline: {ctx['deadline']}",
        f"Content platforms: {ctx['platforms']}",
        f"Usage rights: {ctx['usage_rights']}",
        f"Revision rounds: {ctx['revisions']}",
        f"Special instructions: {special_instructions or 'None'}",
        "",
    ]
    if current_content:
        lines.append(f"Use this as a starting point but improve and personalize it:\n{current_content}")
    else:
        lines.append("Generate the full agreement from scratch based on the details above.")
    return "\n".join(lines)


def draft_agreement(
    db: Session,
    booking_id: str,
    actor_user_id: str,
    platforms: list[str],
    usage_rights: str,
    special_instructions: Optional[str] = None,
    current_content: Optional[str] = None,
) -> dict:
    booking = booking_service.get_booking(db, booking_id)
    if actor_user_id not in (booking.brand_id, booking.creator_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the booking's brand or creator may draft its agreement",
        )

    fallback = {
        "booking_id": booking_id,
        "content": render_template(booking, platforms, usage_rights, special_instructions),
        "generated_by": "template",
    }
    if not settings.OPENAI_API_KEY:
        logger.warning("OpenAI API key not configured; using the agreement template")
        return fallback

    ctx = _context(booking, platforms, usage_rights, special_instructions)
    try:
        client = OpenAI(api_key=settings.OPENAI_API_KEY)
        response = client.chat.completions.create(
            model=settings.OPENAI_MODEL,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": _user_prompt(ctx, special_instructions, current_content)},
            ],
            max_tokens=2000,
            temperature=0.7,
        )
    except Exception as e:
        logger.error("LLM API error while drafting agreement for %s: %s", booking_id, e)
        return fallback

    content = (response.choices[0].message.content or "").strip()
    if not content:
        logger.warning("Empty agreement draft for booking %s; using the template", booking_id)
        return fallback

    logger.info("Drafted agreement for booking %s with %s", booking_id, settings.OPENAI_MODEL)
    return {"booking_id": booking_id, "content": content, "generated_by": "llm"}
