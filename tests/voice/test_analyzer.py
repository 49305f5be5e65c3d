"""
Tests for the voice analyzer.

Covers the LLM path, the pattern fallback, defaults for users without
content and the staleness short-circuit.
"""

import json

import pytest

from cocreate.schemas.generation import PastPostSample, TrainingDocSample, VoiceSources
from cocreate.schemas.voice import VoiceProfile
from cocreate.services.voice.analyzer import (
    PatternVoiceAnalyzer,
    VoiceAnalyzer,
    build_analysis_prompt,
    get_simplified_voice,
)
from cocreate.services.voice.profile_store import VoiceProfileStore


ANALYSIS_JSON = json.dumps({
    "writing_style": {
        "formality": 0.2,
        "directness": 0.9,
        "sentence_length_avg": 8.6,
        "sentence_length_variance": "High",
        "paragraph_style": "short",
    },
    "tone": {"primary": "confident", "secondary": "playful", "emotional_range": ["excited"]},
    "vocabulary": {
        "level": "casual",
        "industry_terms": ["shipping", "prod", "shipping"],
        "signature_phrases": ["Zero regrets."],
        "words_to_avoid": ["synergy"],
    },
    "formatting": {
        "uses_emojis": True,
        "uses_hashtags": True,
        "uses_line_breaks": True,
        "preferred_hooks": ["bold statement"],
        "cta_style": "direct",
    },
    "content_preferences": {
        "expertise_areas": ["product", "hiring"],
        "storytelling_style": "observation",
        "typical_post_length": 180,
    },
})


def make_sources(posts=None, docs=None, guide=None) -> VoiceSources:
    return VoiceSources(
        past_posts=[PastPostSample(content=p) for p in posts or []],
        training_docs=docs or [],
        context_guide=guide,
    )


# =============================================================================
# Prompt
# =============================================================================

class TestBuildAnalysisPrompt:
    """Tests for build_analysis_prompt."""

    def test_includes_all_sources(self):
        """Test guide, posts and documents all appear in the prompt."""
        prompt = build_analysis_prompt(
            [PastPostSample(content="First post"), PastPostSample(content="Second post")],
            [TrainingDocSample(file_name="talk.pdf", extracted_text="Keynote text")],
            "I am a founder",
        )

        assert "I am a founder" in prompt
        assert "POST 1:\nFirst post" in prompt
        assert "POST 2:\nSecond post" in prompt
        assert 'DOCUMENT "talk.pdf"' in prompt
        assert "Keynote text" in prompt

    def test_limits_samples(self):
        """Test at most fifteen posts and five truncated documents are sent."""
        posts = [PastPostSample(content=f"post {i}") for i in range(20)]
        docs = [
            TrainingDocSample(file_name=f"doc{i}.txt", extracted_text="x" * 5000)
            for i in range(7)
        ]

        prompt = build_analysis_prompt(posts, docs, None)

        assert "POST 15:" in prompt
        assert "POST 16:" not in prompt
        assert 'DOCUMENT "doc4.txt"' in prompt
        assert 'DOCUMENT "doc5.txt"' not in prompt
        assert "x" * 2001 not in prompt
        assert "CONTEXT GUIDE" not in prompt


# =============================================================================
# Heuristics
# =============================================================================

class TestPatternVoiceAnalyzer:
    """Tests for the statistics-only analyzer."""

    def test_detects_formatting_habits(self, sample_posts):
        """Test emoji, hashtag and line break usage are detected."""
        posts = [PastPostSample(content=p) for p in sample_posts]

        profile = PatternVoiceAnalyzer().analyze(posts)

        assert profile.formatting.uses_emojis is True
        assert profile.formatting.uses_hashtags is True
        assert profile.formatting.uses_line_breaks is True
        assert profile.content_preferences.typical_post_length == round(
            sum(len(p) for p in sample_posts) / len(sample_posts)
        )

    def test_plain_posts(self):
        """Test posts without emojis or hashtags are read as such."""
        posts = [PastPostSample(content="A plain post. It has two sentences.")] * 4

        profile = PatternVoiceAnalyzer().analyze(posts)

        assert profile.formatting.uses_emojis is False
        assert profile.formatting.uses_hashtags is False
        assert profile.formatting.uses_line_breaks is False
        assert profile.writing_style.sentence_length_avg == 4

    def test_many_questions_mean_conversational(self):
        """Test question-heavy posts set a conversational tone and question hooks."""
        posts = [PastPostSample(content="Why? How? What now?")] * 2

        profile = PatternVoiceAnalyzer().analyze(posts)

        assert profile.tone.primary == "conversational"
        assert "question" in profile.formatting.preferred_hooks

    def test_no_posts_gives_defaults(self):
        """Test an empty post list leaves every default in place."""
        profile = PatternVoiceAnalyzer().analyze([])
        assert profile.content_preferences.typical_post_length == 800
        assert profile.tone.primary == "professional"


# =============================================================================
# Analyze and update
# =============================================================================

class TestAnalyzeAndUpdate:
    """Tests for VoiceAnalyzer.analyze_and_update_voice_profile."""

    @pytest.mark.asyncio
    async def test_llm_analysis_is_stored(self, db_session, scripted_claude, sample_posts):
        """Test a successful model analysis is parsed, normalised and stored."""
        claude = scripted_claude({"analysis": ANALYSIS_JSON})
        analyzer = VoiceAnalyzer(VoiceProfileStore(db_session), claude)

        profile = await analyzer.analyze_and_update_voice_profile(
            "user-a", make_sources(sample_posts, guide="I build products")
        )

        assert profile.analysis_sources.analysis_method == "llm"
        assert profile.analysis_sources.past_posts_count == 4
        assert profile.analysis_sources.context_guide_words == 3
        assert profile.analysis_sources.last_post_analyzed_at is not None
        assert profile.raw_analysis == ANALYSIS_JSON
        assert profile.writing_style.sentence_length_avg == 9
        assert profile.writing_style.sentence_length_variance == "high"
        assert profile.vocabulary.industry_terms == ["shipping", "prod"]
        assert profile.formatting.cta_style == "direct"

        stored = await VoiceProfileStore(db_session).get_voice_profile("user-a")
        assert stored.tone.primary == "confident"

    @pytest.mark.asyncio
    async def test_current_profile_is_not_reanalyzed(self, db_session, scripted_claude, sample_posts):
        """Test a second call with the same sources makes no model call."""
        claude = scripted_claude({"analysis": ANALYSIS_JSON})
        analyzer = VoiceAnalyzer(VoiceProfileStore(db_session), claude)
        sources = make_sources(sample_posts)

        first = await analyzer.analyze_and_update_voice_profile("user-a", sources)
        second = await analyzer.analyze_and_update_voice_profile("user-a", sources)

        assert len(claude.calls) == 1
        assert second.version == first.version

    @pytest.mark.asyncio
    async def test_force_update_reanalyzes(self, db_session, scripted_claude, sample_posts):
        """Test force_update bypasses the staleness check."""
        claude = scripted_claude({"analysis": ANALYSIS_JSON})
        analyzer = VoiceAnalyzer(VoiceProfileStore(db_session), claude)
        sources = make_sources(sample_posts)

        await analyzer.analyze_and_update_voice_profile("user-a", sources)
        second = await analyzer.analyze_and_update_voice_profile("user-a", sources, force_update=True)

        assert len(claude.calls) == 2
        assert second.version == 2

    @pytest.mark.asyncio
    async def test_no_sources_gives_default_profile(self, db_session, scripted_claude):
        """Test a user with no content gets a stored default profile without a model call."""
        claude = scripted_claude({})
        analyzer = VoiceAnalyzer(VoiceProfileStore(db_session), claude)

        profile = await analyzer.analyze_and_update_voice_profile("user-a", make_sources())

        assert profile.analysis_sources.analysis_method == "default"
        assert profile.version == 1
        assert claude.calls == []

    @pytest.mark.asyncio
    async def test_model_error_falls_back_to_patterns(self, db_session, scripted_claude, sample_posts):
        """Test a failing model call still produces a stored profile."""
        claude = scripted_claude({"analysis": RuntimeError("boom")})
        analyzer = VoiceAnalyzer(VoiceProfileStore(db_session), claude)

        profile = await analyzer.analyze_and_update_voice_profile("user-a", make_sources(sample_posts))

        assert profile.analysis_sources.analysis_method == "pattern_fallback"
        assert profile.formatting.uses_emojis is True
        assert profile.raw_analysis is None

    @pytest.mark.asyncio
    async def test_unparseable_response_falls_back_to_patterns(self, db_session, scripted_claude, sample_posts):
        """Test malformed JSON is treated like a failed call."""
        claude = scripted_claude({"analysis": "I'd be happy to help! {not json"})
        analyzer = VoiceAnalyzer(VoiceProfileStore(db_session), claude)

        profile = await analyzer.analyze_and_update_voice_profile("user-a", make_sources(sample_posts))

        assert profile.analysis_sources.analysis_method == "pattern_fallback"

    @pytest.mark.asyncio
    async def test_no_client_falls_back_to_patterns(self, db_session, sample_posts):
        """Test running without a model configured."""
        analyzer = VoiceAnalyzer(VoiceProfileStore(db_session), None)

        profile = await analyzer.analyze_and_update_voice_profile("user-a", make_sources(sample_posts))

        assert profile.analysis_sources.analysis_method == "pattern_fallback"
        assert profile.analysis_sources.past_posts_count == 4


# =============================================================================
# Simplified voice
# =============================================================================

class TestGetSimplifiedVoice:
    """Tests for get_simplified_voice."""

    def test_defaults(self):
        """Test the projection used when there is no profile."""
        voice = get_simplified_voice(None)
        assert voice.style == "professional and engaging"
        assert voice.hooks == ["question", "bold statement"]
        assert voice.avg_length == 800

    def test_projection(self):
        """Test profile attributes are flattened."""
        profile = VoiceProfile.model_validate(json.loads(ANALYSIS_JSON))

        voice = get_simplified_voice(profile)

        assert voice.style == "casual and direct"
        assert voice.tone == "confident and playful"
        assert voice.uses_emojis is True
        assert voice.avg_length == 180
        assert voice.hooks == ["bold statement"]
        assert voice.expertise_areas == ["product", "hiring"]
        assert voice.signature_phrases == ["Zero regrets."]
        assert voice.emotional_range == ["excited"]

    def test_middle_band_is_balanced(self):
        """Test mid-range formality and directness."""
        assert get_simplified_voice(VoiceProfile()).style == "professional and balanced"
