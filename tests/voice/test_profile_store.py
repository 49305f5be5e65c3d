"""
Tests for the voice profile store.

Covers the staleness rule, upserts with versioning, cross-user access
and performance insight merging.
"""

from datetime import datetime, timedelta

import pytest

from cocreate.core.exceptions import StaleProfileError
from cocreate.models.ghostwriter_link import GhostwriterApproverLink
from cocreate.schemas.voice import AnalysisSources, SourceCounts, VoiceProfile, VoiceProfileData
from cocreate.services.voice.profile_store import (
    VoiceProfileStore,
    create_default_profile,
    merge_performance_insights,
    should_update_profile,
)


def make_profile(posts=10, docs=1, guide_words=100, updated_at=None) -> VoiceProfile:
    return VoiceProfile(
        analysis_sources=AnalysisSources(
            past_posts_count=posts,
            training_docs_count=docs,
            context_guide_words=guide_words,
        ),
        updated_at=updated_at or datetime.utcnow(),
    )


# =============================================================================
# Staleness rule
# =============================================================================

class TestShouldUpdateProfile:
    """Tests for should_update_profile."""

    def test_no_profile(self):
        """Test a missing profile always needs analysis."""
        assert should_update_profile(None, SourceCounts()) is True

    def test_new_posts_threshold(self):
        """Test more than five new posts triggers analysis, five does not."""
        profile = make_profile(posts=10)
        assert should_update_profile(
            profile, SourceCounts(past_posts=15, training_docs=1, context_guide_words=100)
        ) is False
        assert should_update_profile(
            profile, SourceCounts(past_posts=16, training_docs=1, context_guide_words=100)
        ) is True

    def test_new_training_document(self):
        """Test one extra training document triggers analysis."""
        profile = make_profile(docs=1)
        assert should_update_profile(
            profile, SourceCounts(past_posts=10, training_docs=2, context_guide_words=100)
        ) is True

    def test_fewer_training_documents_is_not_stale(self):
        """Test removing documents does not trigger analysis on its own."""
        profile = make_profile(docs=3)
        assert should_update_profile(
            profile, SourceCounts(past_posts=10, training_docs=1, context_guide_words=100)
        ) is False

    def test_changed_context_guide(self):
        """Test any change in guide word count triggers analysis."""
        profile = make_profile(guide_words=100)
        assert should_update_profile(
            profile, SourceCounts(past_posts=10, training_docs=1, context_guide_words=99)
        ) is True

    def test_age(self):
        """Test profiles older than seven days are stale."""
        counts = SourceCounts(past_posts=10, training_docs=1, context_guide_words=100)
        now = datetime(2024, 6, 15, 12, 0)

        fresh = make_profile(updated_at=now - timedelta(days=6))
        old = make_profile(updated_at=now - timedelta(days=8))

        assert should_update_profile(fresh, counts, now=now) is False
        assert should_update_profile(old, counts, now=now) is True


class TestMergePerformanceInsights:
    """Tests for merge_performance_insights."""

    def test_shallow_merge(self):
        """Test new keys overwrite and others are kept."""
        now = datetime(2024, 6, 15, 12, 0)
        merged = merge_performance_insights(
            {"best_hook": "question", "avg_likes": 10},
            {"avg_likes": 25},
            now=now,
        )
        assert merged == {
            "best_hook": "question",
            "avg_likes": 25,
            "last_updated": now.isoformat(),
        }

    def test_empty_existing(self):
        """Test merging into nothing."""
        merged = merge_performance_insights(None, {"a": 1})
        assert merged["a"] == 1
        assert "last_updated" in merged


# =============================================================================
# Storage
# =============================================================================

class TestUpsertVoiceProfile:
    """Tests for VoiceProfileStore.upsert_voice_profile."""

    @pytest.mark.asyncio
    async def test_insert_then_update_bumps_version(self, db_session):
        """Test the first write creates version 1 and later writes increment it."""
        store = VoiceProfileStore(db_session)

        created = await store.upsert_voice_profile("user-a", create_default_profile())
        assert created.version == 1
        assert created.user_id == "user-a"
        assert created.analysis_sources.analysis_method == "default"

        data = VoiceProfileData()
        data.tone.primary = "bold"
        updated = await store.upsert_voice_profile("user-a", data)

        assert updated.version == 2
        assert updated.tone.primary == "bold"
        assert updated.created_at == created.created_at

        stored = await store.get_voice_profile("user-a")
        assert stored.version == 2
        assert stored.tone.primary == "bold"

    @pytest.mark.asyncio
    async def test_analysis_replaces_every_section(self, db_session):
        """Test an update does not keep stale values from a previous analysis."""
        store = VoiceProfileStore(db_session)

        first = VoiceProfileData()
        first.vocabulary.industry_terms = ["kubernetes"]
        first.formatting.uses_emojis = True
        await store.upsert_voice_profile("user-a", first)

        await store.upsert_voice_profile("user-a", VoiceProfileData())

        stored = await store.get_voice_profile("user-a")
        assert stored.vocabulary.industry_terms == []
        assert stored.formatting.uses_emojis is False

    @pytest.mark.asyncio
    async def test_expected_version_match(self, db_session):
        """Test a write with the current version succeeds."""
        store = VoiceProfileStore(db_session)
        await store.upsert_voice_profile("user-a", create_default_profile())

        updated = await store.upsert_voice_profile("user-a", VoiceProfileData(), expected_version=1)

        assert updated.version == 2

    @pytest.mark.asyncio
    async def test_expected_version_mismatch(self, db_session):
        """Test a write against an outdated version is rejected."""
        store = VoiceProfileStore(db_session)
        await store.upsert_voice_profile("user-a", create_default_profile())
        await store.upsert_voice_profile("user-a", VoiceProfileData())

        with pytest.raises(StaleProfileError) as exc_info:
            await store.upsert_voice_profile("user-a", VoiceProfileData(), expected_version=1)

        assert exc_info.value.expected_version == 1
        assert exc_info.value.actual_version == 2
        assert (await store.get_voice_profile("user-a")).version == 2

    @pytest.mark.asyncio
    async def test_missing_profile(self, db_session):
        """Test reading a profile that does not exist."""
        assert await VoiceProfileStore(db_session).get_voice_profile("nobody") is None


class TestVoiceProfileAccess:
    """Tests for cross-user access checks."""

    @pytest.mark.asyncio
    async def test_own_profile(self, db_session):
        """Test a user can always read their own profile."""
        store = VoiceProfileStore(db_session)
        await store.upsert_voice_profile("user-a", create_default_profile())

        profile = await store.get_voice_profile_with_access("user-a", "user-a")

        assert profile is not None

    @pytest.mark.asyncio
    async def test_unlinked_user_is_denied(self, db_session):
        """Test an unrelated user gets nothing even if the profile exists."""
        store = VoiceProfileStore(db_session)
        await store.upsert_voice_profile("user-b", create_default_profile())

        assert await store.get_voice_profile_with_access("user-a", "user-b") is None

    @pytest.mark.asyncio
    async def test_link_works_in_both_directions(self, db_session):
        """Test ghostwriter and approver can each read the other's profile."""
        db_session.add(GhostwriterApproverLink(ghostwriter_id="writer", approver_id="exec"))
        await db_session.commit()

        store = VoiceProfileStore(db_session)
        await store.upsert_voice_profile("writer", create_default_profile())
        await store.upsert_voice_profile("exec", create_default_profile())

        assert await store.has_active_link("writer", "exec") is True
        assert await store.has_active_link("exec", "writer") is True
        assert await store.get_voice_profile_with_access("writer", "exec") is not None
        assert await store.get_voice_profile_with_access("exec", "writer") is not None

    @pytest.mark.asyncio
    async def test_inactive_link_is_denied(self, db_session):
        """Test a deactivated link grants nothing."""
        db_session.add(
            GhostwriterApproverLink(ghostwriter_id="writer", approver_id="exec", active=False)
        )
        await db_session.commit()

        store = VoiceProfileStore(db_session)
        await store.upsert_voice_profile("exec", create_default_profile())

        assert await store.has_active_link("writer", "exec") is False
        assert await store.get_voice_profile_with_access("writer", "exec") is None


class TestUpdatePerformanceInsights:
    """Tests for update_performance_insights."""

    @pytest.mark.asyncio
    async def test_merges_into_existing_profile(self, db_session):
        """Test insights are merged and analysis sections are untouched."""
        store = VoiceProfileStore(db_session)
        data = VoiceProfileData()
        data.tone.primary = "bold"
        await store.upsert_voice_profile("user-a", data)

        await store.update_performance_insights("user-a", {"best_hook": "question"})
        updated = await store.update_performance_insights("user-a", {"avg_likes": 12})

        assert updated.performance_insights["best_hook"] == "question"
        assert updated.performance_insights["avg_likes"] == 12
        assert "last_updated" in updated.performance_insights
        assert updated.tone.primary == "bold"
        assert updated.version == 1

    @pytest.mark.asyncio
    async def test_survives_reanalysis(self, db_session):
        """Test a later analysis keeps stored insights."""
        store = VoiceProfileStore(db_session)
        await store.upsert_voice_profile("user-a", create_default_profile())
        await store.update_performance_insights("user-a", {"best_hook": "question"})

        await store.upsert_voice_profile("user-a", VoiceProfileData())

        stored = await store.get_voice_profile("user-a")
        assert stored.performance_insights["best_hook"] == "question"

    @pytest.mark.asyncio
    async def test_no_profile_is_a_noop(self, db_session):
        """Test insights for an unknown user are not stored."""
        store = VoiceProfileStore(db_session)

        assert await store.update_performance_insights("nobody", {"a": 1}) is None
        assert await store.get_voice_profile("nobody") is None
