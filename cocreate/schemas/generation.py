"""Generation pipeline schemas: sources, stage results and the pipeline result."""

import re
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from cocreate.schemas.voice import SimplifiedVoice, SourceCounts

Confidence = Literal["low", "medium", "high"]
Verdict = Literal["PASS", "NEEDS_REVISION", "NEEDS_USER_INPUT"]


# =============================================================================
# Sources
# =============================================================================

class PastPostSample(BaseModel):
    content: str
    published_at: datetime | None = None


class TrainingDocSample(BaseModel):
    file_name: str
    extracted_text: str = ""
    word_count: int = 0


class VoiceSources(BaseModel):
    """Raw material a voice profile is learned from."""

    past_posts: list[PastPostSample] = Field(default_factory=list)
    training_docs: list[TrainingDocSample] = Field(default_factory=list)
    context_guide: str | None = None

    @property
    def context_guide_words(self) -> int:
        return len(self.context_guide.split()) if self.context_guide else 0

    def counts(self) -> SourceCounts:
        return SourceCounts(
            past_posts=len(self.past_posts),
            training_docs=len(self.training_docs),
            context_guide_words=self.context_guide_words,
        )

    def has_any(self) -> bool:
        return bool(self.past_posts or self.training_docs or (self.context_guide or "").strip())


# =============================================================================
# Stage results
# =============================================================================

class ModelAnswer(BaseModel):
    """Base for schemas parsed from model JSON; explicit nulls take the field default."""

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class ClarifyingQuestion(ModelAnswer):
    question: str
    reason: str | None = None


class SufficiencyResult(ModelAnswer):
    """Whether there is enough concrete detail to write the post authentically."""

    detected_content_type: str = "unknown"
    can_write_authentically: bool = True
    confidence: Confidence = "low"
    recommendation: Literal["proceed", "ask_questions"] = "proceed"
    questions_to_ask: list[ClarifyingQuestion] = Field(default_factory=list)
    writing_guidance: str = ""
    error: str | None = None

    @field_validator("confidence", "recommendation", mode="before")
    @classmethod
    def lower_enum(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("detected_content_type", mode="before")
    @classmethod
    def snake_content_type(cls, value: Any) -> Any:
        # "Personal Story" and "personal-story" both mean personal_story
        if isinstance(value, str):
            return re.sub(r"[\s\-]+", "_", value.strip().lower()) or "unknown"
        return value

    @field_validator("questions_to_ask", mode="before")
    @classmethod
    def coerce_questions(cls, value: Any) -> Any:
        # Models sometimes return bare strings instead of objects
        if isinstance(value, list):
            return [
                {"question": item} if isinstance(item, str) else item
                for item in value if item is not None
            ]
        return value


class DraftResult(BaseModel):
    content: str
    confidence: Confidence = "medium"
    missing_info: list[str] | None = None


class RefinementResult(BaseModel):
    content: str
    confidence: Confidence = "high"


class QualityScores(ModelAnswer):
    voice_match: int = 7
    authenticity: int = 7
    linkedin_optimization: int = 7
    clarity_value: int = 7

    @field_validator("*", mode="before")
    @classmethod
    def clamp_score(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return min(max(round(value), 0), 10)
        return value


class QualityIssue(ModelAnswer):
    severity: Literal["critical", "moderate"] = "moderate"
    description: str = ""
    suggestion: str | None = None

    @field_validator("severity", mode="before")
    @classmethod
    def normalize_severity(cls, value: Any) -> Any:
        if isinstance(value, str):
            return "critical" if value.strip().lower() == "critical" else "moderate"
        return value


class Refinements(ModelAnswer):
    hook: str = "OK"
    structure: str = "OK"
    ending: str = "OK"


class QualityResult(ModelAnswer):
    """Scored review of a draft."""

    scores: QualityScores = Field(default_factory=QualityScores)
    weighted_score: float | None = None
    verdict: Verdict = "PASS"
    issues: list[QualityIssue] = Field(default_factory=list)
    fabrication_flags: list[Any] = Field(default_factory=list)
    refinements: Refinements = Field(default_factory=Refinements)
    revised_content: str | None = None

    # Set when the review did not actually run
    skipped: bool = False
    skip_reason: str | None = None
    error: str | None = None
    parse_error: bool = False

    @field_validator("verdict", mode="before")
    @classmethod
    def upper_verdict(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("issues", "fabrication_flags", mode="before")
    @classmethod
    def drop_null_items(cls, value: Any) -> Any:
        return [item for item in value if item is not None] if isinstance(value, list) else value


class AuthenticityFlag(BaseModel):
    pattern: str
    reason: str


class AuthenticityCheck(BaseModel):
    passed: bool
    flags: list[AuthenticityFlag] = Field(default_factory=list)


# =============================================================================
# Pipeline
# =============================================================================

class PipelineOptions(BaseModel):
    skip_sufficiency_check: bool = False
    skip_quality_review: bool = False
    proceed_without_questions: bool = False
    force_voice_update: bool = False


class GenerationRequest(BaseModel):
    """Input to GenerationPipeline.generate_post."""

    user_request: str
    user_id: str
    target_user_id: str | None = None  # defaults to user_id
    sources: VoiceSources = Field(default_factory=VoiceSources)
    current_draft: str | None = None
    action: Literal["create", "refine"] = "create"
    options: PipelineOptions = Field(default_factory=PipelineOptions)

    @property
    def effective_target_id(self) -> str:
        return self.target_user_id or self.user_id


class PipelineStep(BaseModel):
    """One entry in the audit trail; stage-specific details ride along as extras."""

    model_config = ConfigDict(extra="allow")

    stage: str
    status: str
    timestamp: int  # epoch milliseconds


class PipelineResult(BaseModel):
    """What generate_post returns; either a success, an early exit or a failure."""

    success: bool
    needs_more_info: bool = False

    # Early exits
    questions: str | None = None
    content_type: str | None = None
    draft_content: str | None = None
    quality_issues: list[QualityIssue] | None = None

    # Normal completion
    content: str | None = None
    confidence: Confidence | None = None
    missing_info: list[str] | None = None
    quality_score: float | None = None
    quality_verdict: str | None = None

    voice_profile: SimplifiedVoice | None = None
    steps: list[PipelineStep] = Field(default_factory=list)
    duration: int = 0  # milliseconds
    metadata: dict[str, Any] = Field(default_factory=dict)

    # Failure
    error: str | None = None
    error_type: Literal["access_denied", "rate_limit", "upstream_unavailable", "generation_error"] | None = None
