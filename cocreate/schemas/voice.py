"""Voice profile schemas."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _lower(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


def _unique(values: list[str]) -> list[str]:
    """De-duplicate while keeping first occurrence order."""
    seen: set[str] = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


class WritingStyle(BaseModel):
    """How sentences and paragraphs are put together."""

    formality: float = 0.5  # 0=casual, 1=formal
    directness: float = 0.5  # 0=flowing, 1=direct
    sentence_length_avg: int = 15
    sentence_length_variance: Literal["low", "medium", "high"] = "medium"
    paragraph_style: Literal["short", "medium", "long"] = "medium"

    @field_validator("formality", "directness", mode="before")
    @classmethod
    def clamp_unit(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return min(max(float(value), 0.0), 1.0)
        return value

    @field_validator("sentence_length_avg", mode="before")
    @classmethod
    def round_length(cls, value: Any) -> Any:
        if isinstance(value, float):
            return round(value)
        return value

    @field_validator("sentence_length_variance", "paragraph_style", mode="before")
    @classmethod
    def lower_enum(cls, value: Any) -> Any:
        return _lower(value)


class Tone(BaseModel):
    primary: str = "professional"
    secondary: str = "approachable"
    emotional_range: list[str] = Field(default_factory=list)


class Vocabulary(BaseModel):
    level: Literal["casual", "professional", "academic"] = "professional"
    industry_terms: list[str] = Field(default_factory=list)
    signature_phrases: list[str] = Field(default_factory=list)
    words_to_avoid: list[str] = Field(default_factory=list)

    @field_validator("level", mode="before")
    @classmethod
    def lower_level(cls, value: Any) -> Any:
        return _lower(value)

    @field_validator("industry_terms", "words_to_avoid")
    @classmethod
    def dedupe(cls, value: list[str]) -> list[str]:
        return _unique(value)


class Formatting(BaseModel):
    uses_emojis: bool = False
    uses_hashtags: bool = False
    uses_line_breaks: bool = True
    preferred_hooks: list[str] = Field(default_factory=list)
    cta_style: Literal["none", "soft", "direct"] = "soft"

    @field_validator("cta_style", mode="before")
    @classmethod
    def lower_cta(cls, value: Any) -> Any:
        return _lower(value)


class ContentPreferences(BaseModel):
    expertise_areas: list[str] = Field(default_factory=list)
    storytelling_style: str = "personal anecdote"
    typical_post_length: int = 800  # characters

    @field_validator("expertise_areas")
    @classmethod
    def dedupe(cls, value: list[str]) -> list[str]:
        return _unique(value)

    @field_validator("typical_post_length", mode="before")
    @classmethod
    def round_length(cls, value: Any) -> Any:
        if isinstance(value, float):
            return round(value)
        return value


class AnalysisSources(BaseModel):
    """Which source volumes the current profile was derived from."""

    past_posts_count: int = 0
    training_docs_count: int = 0
    context_guide_words: int = 0
    last_post_analyzed_at: datetime | None = None
    analysis_method: Literal["llm", "pattern_fallback", "default"] | None = None


class VoiceProfileData(BaseModel):
    """
    The analysis-derived part of a voice profile.

    This is exactly what the analysis model is asked to return, and what
    the heuristic analyzer produces when the model is unavailable.
    """

    writing_style: WritingStyle = Field(default_factory=WritingStyle)
    tone: Tone = Field(default_factory=Tone)
    vocabulary: Vocabulary = Field(default_factory=Vocabulary)
    formatting: Formatting = Field(default_factory=Formatting)
    content_preferences: ContentPreferences = Field(default_factory=ContentPreferences)


class VoiceProfile(VoiceProfileData):
    """A stored voice profile."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str | None = None
    analysis_sources: AnalysisSources = Field(default_factory=AnalysisSources)
    performance_insights: dict[str, Any] = Field(default_factory=dict)
    raw_analysis: str | None = None
    version: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SourceCounts(BaseModel):
    """Source volumes offered for a (re)analysis."""

    past_posts: int = 0
    training_docs: int = 0
    context_guide_words: int = 0


class SimplifiedVoice(BaseModel):
    """Flat projection of a voice profile used to keep prompt context small."""

    style: str = "professional and engaging"
    tone: str = "confident and approachable"
    uses_emojis: bool = False
    uses_hashtags: bool = False
    avg_length: int = 800
    hooks: list[str] = Field(default_factory=lambda: ["question", "bold statement"])
    expertise_areas: list[str] = Field(default_factory=list)
    signature_phrases: list[str] = Field(default_factory=list)
    emotional_range: list[str] = Field(default_factory=list)
