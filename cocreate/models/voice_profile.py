"""Voice profile model - one learned writing voice per user."""

from datetime import datetime

from sqlalchemy import String, DateTime, Text, Integer
from sqlalchemy.orm import Mapped, mapped_column

from cocreate.services.database import Base, JSONType


class VoiceProfileRecord(Base):
    """
    Persisted voice profile.

    Each analysis-derived section lives in its own JSON column so that an
    analysis replaces all of them in a single row update.
    """

    __tablename__ = "user_voice_profiles"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    writing_style: Mapped[dict] = mapped_column(JSONType, default=dict)
    tone: Mapped[dict] = mapped_column(JSONType, default=dict)
    vocabulary: Mapped[dict] = mapped_column(JSONType, default=dict)
    formatting: Mapped[dict] = mapped_column(JSONType, default=dict)
    content_preferences: Mapped[dict] = mapped_column(JSONType, default=dict)
    analysis_sources: Mapped[dict] = mapped_column(JSONType, default=dict)

    # Owned by update_performance_insights, never by analysis
    performance_insights: Mapped[dict] = mapped_column(JSONType, default=dict)

    # Unparsed model output from the last LLM analysis
    raw_analysis: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, default=1)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
