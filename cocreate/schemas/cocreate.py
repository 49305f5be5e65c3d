"""CoCreate HTTP API schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from cocreate.schemas.voice import Formatting, Tone, WritingStyle


class GenerateRequest(BaseModel):
    """Schema for a generation request."""

    user_message: str = ""
    current_draft: str | None = None
    action: Literal["create", "refine"] = "create"
    context_user_id: str | None = None  # write in this user's voice (ghostwriting)

    skip_sufficiency_check: bool = False
    skip_quality_review: bool = False
    proceed_without_questions: bool = False
    force_voice_update: bool = False


class RefineRequest(BaseModel):
    """Schema for a quick refinement of an existing post."""

    content: str = Field(min_length=1)
    feedback: str = Field(min_length=1)
    context_user_id: str | None = None


class RefineResponse(BaseModel):
    content: str
    confidence: Literal["low", "medium", "high"]


class SourceSummary(BaseModel):
    past_posts: int = 0
    training_docs: int = 0
    has_context_guide: bool = False


class VoiceSummary(BaseModel):
    writing_style: WritingStyle
    tone: Tone
    formatting: Formatting


class VoiceProfileStatusResponse(BaseModel):
    """Schema for the voice profile status endpoint."""

    has_profile: bool
    profile_version: int | None = None
    last_updated: datetime | None = None
    sources: SourceSummary = Field(default_factory=SourceSummary)
    voice_profile: VoiceSummary | None = None
