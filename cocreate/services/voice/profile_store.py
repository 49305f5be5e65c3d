"""
Voice profile storage.

One profile row per user. Analysis results replace every analysis-derived
section in a single write; performance insights are merged separately and
survive re-analysis.

Concurrent writers for the same user are last-write-wins unless the caller
passes ``expected_version`` to ``upsert_voice_profile``.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cocreate.config import get_settings
from cocreate.core.exceptions import StaleProfileError
from cocreate.models.ghostwriter_link import GhostwriterApproverLink
from cocreate.models.voice_profile import VoiceProfileRecord
from cocreate.schemas.voice import AnalysisSources, SourceCounts, VoiceProfile, VoiceProfileData

logger = logging.getLogger(__name__)

ANALYSIS_SECTIONS = (
    "writing_style",
    "tone",
    "vocabulary",
    "formatting",
    "content_preferences",
)

PerformanceInsights = dict[str, Any]


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def should_update_profile(
    profile: VoiceProfile | None,
    counts: SourceCounts,
    now: datetime | None = None,
) -> bool:
    """
    Decide whether a profile needs (re)analysis.

    True when there is no profile, more than the threshold of new posts,
    any new training document, a changed context guide, or the profile is
    older than the maximum age.
    """
    if profile is None:
        return True

    settings = get_settings()
    sources = profile.analysis_sources

    if counts.past_posts > sources.past_posts_count + settings.profile_new_posts_threshold:
        return True
    if counts.training_docs > sources.training_docs_count:
        return True
    if counts.context_guide_words != sources.context_guide_words:
        return True

    if profile.updated_at is not None:
        now = _naive_utc(now or datetime.utcnow())
        age = now - _naive_utc(profile.updated_at)
        if age > timedelta(days=settings.profile_max_age_days):
            return True

    return False


def create_default_profile() -> VoiceProfile:
    """Neutral profile used before there is anything to learn from."""
    return VoiceProfile(analysis_sources=AnalysisSources(analysis_method="default"))


def merge_performance_insights(
    existing: PerformanceInsights | None,
    updates: PerformanceInsights,
    now: datetime | None = None,
) -> PerformanceInsights:
    """Shallow merge: new keys overwrite, other existing keys pass through."""
    merged = dict(existing or {})
    merged.update(updates)
    merged["last_updated"] = (now or datetime.utcnow()).isoformat()
    return merged


class VoiceProfileStore:
    """Reads and writes voice profiles and checks cross-user access."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_record(self, user_id: str) -> VoiceProfileRecord | None:
        result = await self.session.execute(
            select(VoiceProfileRecord).where(VoiceProfileRecord.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_voice_profile(self, user_id: str) -> VoiceProfile | None:
        record = await self._get_record(user_id)
        if record is None:
            return None
        return VoiceProfile.model_validate(record)

    async def upsert_voice_profile(
        self,
        user_id: str,
        profile: VoiceProfileData,
        expected_version: int | None = None,
    ) -> VoiceProfile:
        """
        Replace or insert the user's profile.

        Args:
            user_id: Owner of the profile
            profile: Analysis result; analysis_sources and raw_analysis are
                taken from it when it is a full VoiceProfile
            expected_version: When given, the write only succeeds if the
                stored version still matches

        Raises:
            StaleProfileError: expected_version no longer matches
        """
        now = datetime.utcnow()
        values: dict[str, Any] = {
            section: getattr(profile, section).model_dump(mode="json")
            for section in ANALYSIS_SECTIONS
        }
        sources = getattr(profile, "analysis_sources", None) or AnalysisSources()
        values["analysis_sources"] = sources.model_dump(mode="json")
        values["raw_analysis"] = getattr(profile, "raw_analysis", None)

        record = await self._get_record(user_id)

        if record is None:
            record = VoiceProfileRecord(
                user_id=user_id,
                performance_insights=dict(getattr(profile, "performance_insights", None) or {}),
                version=1,
                created_at=now,
                updated_at=now,
                **values,
            )
            self.session.add(record)
            try:
                await self.session.commit()
            except IntegrityError:
                # Another request created the row first; overwrite it
                await self.session.rollback()
                logger.info(f"Voice profile for {user_id} created concurrently, updating instead")
                return await self.upsert_voice_profile(user_id, profile)
            logger.info(f"Created voice profile for {user_id}")
            return VoiceProfile.model_validate(record)

        if expected_version is not None:
            stored_version = record.version
            result = await self.session.execute(
                update(VoiceProfileRecord)
                .where(
                    VoiceProfileRecord.user_id == user_id,
                    VoiceProfileRecord.version == expected_version,
                )
                .values(version=VoiceProfileRecord.version + 1, updated_at=now, **values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await self.session.rollback()
                raise StaleProfileError(user_id, expected_version, stored_version)
            await self.session.commit()
            await self.session.refresh(record)
        else:
            for key, value in values.items():
                setattr(record, key, value)
            record.version = (record.version or 0) + 1
            record.updated_at = now
            await self.session.commit()

        logger.info(f"Updated voice profile for {user_id} to version {record.version}")
        return VoiceProfile.model_validate(record)

    async def has_active_link(self, user_a: str, user_b: str) -> bool:
        """True if an active ghostwriter/approver link joins the two users in either direction."""
        link = GhostwriterApproverLink
        result = await self.session.execute(
            select(link.id)
            .where(
                link.active.is_(True),
                or_(
                    and_(link.ghostwriter_id == user_a, link.approver_id == user_b),
                    and_(link.ghostwriter_id == user_b, link.approver_id == user_a),
                ),
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def get_voice_profile_with_access(
        self,
        requesting_user_id: str,
        target_user_id: str,
    ) -> VoiceProfile | None:
        """Own profile, or a linked user's profile; None when access is not allowed."""
        if requesting_user_id == target_user_id:
            return await self.get_voice_profile(target_user_id)

        if not await self.has_active_link(requesting_user_id, target_user_id):
            logger.warning(
                f"User {requesting_user_id} has no active link to {target_user_id}, "
                "denying voice profile access"
            )
            return None

        return await self.get_voice_profile(target_user_id)

    async def update_performance_insights(
        self,
        user_id: str,
        insights: PerformanceInsights,
    ) -> VoiceProfile | None:
        """Merge insights into an existing profile; does not create one."""
        record = await self._get_record(user_id)
        if record is None:
            logger.warning(f"No voice profile for {user_id}, performance insights not saved")
            return None

        # Reassign so the JSON column change is detected
        record.performance_insights = merge_performance_insights(record.performance_insights, insights)
        await self.session.commit()
        return VoiceProfile.model_validate(record)
