"""Pydantic schemas for agreement drafting."""
from typing import Literal, Optional
from pydantic import BaseModel, Field


class AgreementDraftRequest(BaseModel):
    actor_user_id: str
    platforms: list[str] = []
    usage_rights: Literal["creator_only", "brand_repost", "full_commercial"] = "creator_only"
    special_instructions: Optional[str] = Field(default=None, max_length=2000)
    current_content: Optional[str] = Field(default=None, max_length=20000)


class AgreementDraftOut(BaseModel):
    booking_id: str
    content: str
    generated_by: Literal["llm", "template"]
