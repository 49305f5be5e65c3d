"""Voice analyzer for learning a user's LinkedIn writing voice from their content."""

import logging
import re
from datetime import datetime

from anthropic import AsyncAnthropic

from cocreate.config import get_settings
from cocreate.core.json_response import parse_model_response
from cocreate.core.llm import complete
from cocreate.schemas.generation import PastPostSample, TrainingDocSample, VoiceSources
from cocreate.schemas.voice import AnalysisSources, SimplifiedVoice, VoiceProfile, VoiceProfileData
from cocreate.services.voice.profile_store import (
    VoiceProfileStore,
    create_default_profile,
    should_update_profile,
)

logger = logging.getLogger(__name__)

MAX_POST_SAMPLES = 15
MAX_DOC_SAMPLES = 5
MAX_DOC_EXCERPT_CHARS = 2000
SAMPLE_SEPARATOR = "\n\n---\n\n"

ANALYSIS_SCHEMA = """{
  "writing_style": {
    "formality": <0-1 float, 0 is very casual and 1 is very formal>,
    "directness": <0-1 float, 0 is flowing/narrative and 1 is direct/punchy>,
    "sentence_length_avg": <average words per sentence>,
    "sentence_length_variance": "<low|medium|high>",
    "paragraph_style": "<short|medium|long>"
  },
  "tone": {
    "primary": "<main tone: confident, humble, inspiring, analytical, conversational, ...>",
    "secondary": "<secondary tone>",
    "emotional_range": ["<emotions they express: vulnerable, excited, frustrated, ...>"]
  },
  "vocabulary": {
    "level": "<casual|professional|academic>",
    "industry_terms": ["<specific terms or jargon they use>"],
    "signature_phrases": ["<phrases they repeat or that are distinctive to them>"],
    "words_to_avoid": ["<words that would feel out of character>"]
  },
  "formatting": {
    "uses_emojis": <true|false from actual usage>,
    "uses_hashtags": <true|false from actual usage>,
    "uses_line_breaks": <true|false, line breaks used for emphasis>,
    "preferred_hooks": ["<question, bold statement, story opener, statistic, ...>"],
    "cta_style": "<none|soft|direct>"
  },
  "content_preferences": {
    "expertise_areas": ["<topics they clearly know well>"],
    "storytelling_style": "<personal anecdote|case study|framework|observation>",
    "typical_post_length": <approximate character count>
  }
}"""


def build_analysis_prompt(
    past_posts: list[PastPostSample],
    training_docs: list[TrainingDocSample],
    context_guide: str | None,
) -> str:
    """Assemble the single prompt the analysis model sees."""
    sections = [
        "You are an expert writing analyst. Analyze the following content to create "
        "a comprehensive voice profile for this author."
    ]

    if context_guide:
        sections.append(
            "CONTEXT GUIDE (the author's own self-description - PRIMARY reference):\n"
            f"{context_guide}"
        )

    post_samples = SAMPLE_SEPARATOR.join(
        f"POST {i}:\n{post.content}"
        for i, post in enumerate(past_posts[:MAX_POST_SAMPLES], start=1)
    )
    if post_samples:
        sections.append(f"LINKEDIN POSTS:\n{post_samples}")

    doc_samples = SAMPLE_SEPARATOR.join(
        f'DOCUMENT "{doc.file_name}":\n{(doc.extracted_text or "")[:MAX_DOC_EXCERPT_CHARS]}'
        for doc in training_docs[:MAX_DOC_SAMPLES]
    )
    if doc_samples:
        sections.append(f"TRAINING DOCUMENTS:\n{doc_samples}")

    sections.append(
        "Analyze this content and return a JSON object with the following structure. "
        "Be precise and base every value on patterns actually observed:\n\n"
        f"{ANALYSIS_SCHEMA}\n\n"
        "Return ONLY the JSON object, no additional text."
    )
    return SAMPLE_SEPARATOR.join(sections)


class PatternVoiceAnalyzer:
    """
    Statistics-only voice analysis used when the model is unavailable.

    Derives formatting habits, length and sentence rhythm from past posts.
    """

    EMOJI_PATTERN = re.compile(
        "[\U0001F600-\U0001F64F"
        "\U0001F300-\U0001F5FF"
        "\U0001F680-\U0001F6FF"
        "\U0001F1E0-\U0001F1FF"
        "\u2600-\u26FF"
        "\u2700-\u27BF]"
    )
    HASHTAG_PATTERN = re.compile(r"#\w+")
    SENTENCE_SPLIT_PATTERN = re.compile(r"[.!?]+")

    USAGE_THRESHOLD = 0.3  # share of posts
    LINE_BREAK_THRESHOLD = 0.5  # share of posts
    QUESTIONS_PER_POST = 2

    def analyze(self, past_posts: list[PastPostSample], context_guide: str | None = None) -> VoiceProfileData:
        profile = VoiceProfileData()
        posts = [post.content for post in past_posts]
        if not posts:
            return profile

        total = len(posts)

        emoji_posts = sum(1 for post in posts if self.EMOJI_PATTERN.search(post))
        profile.formatting.uses_emojis = emoji_posts / total > self.USAGE_THRESHOLD

        hashtag_posts = sum(1 for post in posts if self.HASHTAG_PATTERN.search(post))
        profile.formatting.uses_hashtags = hashtag_posts / total > self.USAGE_THRESHOLD

        profile.content_preferences.typical_post_length = round(sum(len(p) for p in posts) / total)

        spaced_posts = sum(1 for post in posts if post.count("\n\n") > 2)
        profile.formatting.uses_line_breaks = spaced_posts / total > self.LINE_BREAK_THRESHOLD

        all_content = " ".join(posts)
        sentences = [s for s in self.SENTENCE_SPLIT_PATTERN.split(all_content) if s.strip()]
        if sentences:
            avg_words = sum(len(s.split()) for s in sentences) / len(sentences)
            profile.writing_style.sentence_length_avg = round(avg_words)

        if all_content.count("?") > total * self.QUESTIONS_PER_POST:
            profile.tone.primary = "conversational"
            profile.formatting.preferred_hooks.append("question")

        return profile


class VoiceAnalyzer:
    """
    Keeps a user's voice profile current.

    Re-analyzes only when the store says the profile is stale, prefers the
    LLM analysis and falls back to PatternVoiceAnalyzer on any failure.
    """

    def __init__(self, store: VoiceProfileStore, claude_client: AsyncAnthropic | None = None):
        self.store = store
        self.claude = claude_client
        self.settings = get_settings()
        self.patterns = PatternVoiceAnalyzer()

    async def analyze_and_update_voice_profile(
        self,
        user_id: str,
        sources: VoiceSources,
        force_update: bool = False,
    ) -> VoiceProfile:
        """
        Return an up-to-date profile for the user, analyzing if needed.

        Never raises for analysis problems; the heuristic result is stored instead.
        """
        current = await self.store.get_voice_profile(user_id)
        counts = sources.counts()

        if not force_update and current is not None and not should_update_profile(current, counts):
            logger.info(f"Voice profile for {user_id} is current, skipping analysis")
            return current

        if not sources.has_any():
            logger.info(f"No content to analyze for {user_id}, using default profile")
            return await self.store.upsert_voice_profile(user_id, create_default_profile())

        logger.info(
            f"Analyzing voice for {user_id} from {counts.past_posts} posts, "
            f"{counts.training_docs} docs, {counts.context_guide_words} guide words"
        )

        analysis_sources = AnalysisSources(
            past_posts_count=counts.past_posts,
            training_docs_count=counts.training_docs,
            context_guide_words=counts.context_guide_words,
        )

        try:
            data, raw = await self._analyze_with_claude(sources)
            analysis_sources.last_post_analyzed_at = datetime.utcnow() if sources.past_posts else None
            analysis_sources.analysis_method = "llm"
            profile = VoiceProfile(
                **data.model_dump(),
                analysis_sources=analysis_sources,
                raw_analysis=raw,
            )
        except Exception as e:
            logger.warning(f"Voice analysis failed for {user_id}, using pattern fallback: {e}")
            data = self.analyze_voice_with_patterns(sources.past_posts, sources.context_guide)
            analysis_sources.analysis_method = "pattern_fallback"
            profile = VoiceProfile(**data.model_dump(), analysis_sources=analysis_sources)

        return await self.store.upsert_voice_profile(user_id, profile)

    async def _analyze_with_claude(self, sources: VoiceSources) -> tuple[VoiceProfileData, str]:
        prompt = build_analysis_prompt(sources.past_posts, sources.training_docs, sources.context_guide)
        response_text = await complete(
            self.claude,
            model=self.settings.claude_model,
            max_tokens=self.settings.analysis_max_tokens,
            prompt=prompt,
        )
        return parse_model_response(response_text, VoiceProfileData), response_text

    def analyze_voice_with_patterns(
        self,
        past_posts: list[PastPostSample],
        context_guide: str | None = None,
    ) -> VoiceProfileData:
        return self.patterns.analyze(past_posts, context_guide)


def get_simplified_voice(profile: VoiceProfile | None) -> SimplifiedVoice:
    """Flatten a profile into the handful of attributes prompts need."""
    if profile is None:
        return SimplifiedVoice()

    formality = profile.writing_style.formality
    directness = profile.writing_style.directness

    if formality < 0.3:
        style = "casual and "
    elif formality > 0.7:
        style = "formal and "
    else:
        style = "professional and "

    if directness < 0.3:
        style += "flowing"
    elif directness > 0.7:
        style += "direct"
    else:
        style += "balanced"

    return SimplifiedVoice(
        style=style,
        tone=f"{profile.tone.primary or 'confident'} and {profile.tone.secondary or 'approachable'}",
        uses_emojis=profile.formatting.uses_emojis,
        uses_hashtags=profile.formatting.uses_hashtags,
        avg_length=profile.content_preferences.typical_post_length or 800,
        hooks=list(profile.formatting.preferred_hooks),
        expertise_areas=list(profile.content_preferences.expertise_areas),
        signature_phrases=list(profile.vocabulary.signature_phrases),
        emotional_range=list(profile.tone.emotional_range),
    )
