"""
Generation pipeline.

Sequences the stages of one post-generation request:

    voice profile -> sufficiency check -> (ask questions)
                  -> draft -> quick authenticity check -> quality review
                  -> (ask for details) | done

Only two things make a request fail: an access violation when writing in
someone else's voice, and a drafting failure. Every other stage degrades
to its documented fallback. Each stage transition is recorded in
``steps`` and returned to the caller.
"""

import logging
import time
from typing import Any

from anthropic import AsyncAnthropic
from sqlalchemy.ext.asyncio import AsyncSession

from cocreate.config import get_settings
from cocreate.core.exceptions import LLMRateLimitError, LLMUnavailableError
from cocreate.schemas.generation import (
    GenerationRequest,
    PipelineResult,
    PipelineStep,
    RefinementResult,
)
from cocreate.schemas.voice import VoiceProfile
from cocreate.services.generation.draft import DraftGenerator
from cocreate.services.generation.quality_gate import (
    QualityGate,
    get_best_content,
    passes_quality_gate,
)
from cocreate.services.generation.sufficiency import (
    SufficiencyChecker,
    format_questions_for_user,
    should_ask_questions,
)
from cocreate.services.voice.analyzer import VoiceAnalyzer, get_simplified_voice
from cocreate.services.voice.profile_store import VoiceProfileStore

logger = logging.getLogger(__name__)

ACCESS_DENIED_MESSAGE = "Access denied to target user voice profile"
FABRICATION_FOLLOWUP = (
    "I noticed I might be making assumptions. "
    "Could you provide more specific details about your experience?"
)
DETAILS_FOLLOWUP = "To make this post more authentic, could you share more specific details?"
MAX_POST_EXAMPLES = 5


def _now_ms() -> int:
    return int(time.time() * 1000)


class StepRecorder:
    """Collects the audit trail and wall-clock duration for one request."""

    def __init__(self):
        self.steps: list[PipelineStep] = []
        self._started = time.monotonic()

    def record(self, stage: str, status: str, **details: Any) -> None:
        self.steps.append(PipelineStep(stage=stage, status=status, timestamp=_now_ms(), **details))

    @property
    def duration_ms(self) -> int:
        return int((time.monotonic() - self._started) * 1000)


class GenerationPipeline:
    """Runs the full generation flow for one user request."""

    def __init__(self, session: AsyncSession, claude_client: AsyncAnthropic | None = None):
        """
        Args:
            session: Database session used for voice profile reads and writes
            claude_client: Shared Anthropic client; None puts every optional
                stage on its fallback and makes drafting fail
        """
        self.settings = get_settings()
        self.store = VoiceProfileStore(session)
        self.analyzer = VoiceAnalyzer(self.store, claude_client)
        self.sufficiency = SufficiencyChecker(claude_client)
        self.drafter = DraftGenerator(claude_client)
        self.quality_gate = QualityGate(claude_client)

    async def generate_post(self, request: GenerationRequest) -> PipelineResult:
        trail = StepRecorder()
        target_user_id = request.effective_target_id
        sources = request.sources
        options = request.options

        try:
            # ========== Voice profile ==========
            trail.record("voice_profile", "started", target_user_id=target_user_id)

            if target_user_id != request.user_id:
                if not await self.store.has_active_link(request.user_id, target_user_id):
                    logger.warning(
                        f"User {request.user_id} tried to write as {target_user_id} without an active link"
                    )
                    return PipelineResult(
                        success=False,
                        error=ACCESS_DENIED_MESSAGE,
                        error_type="access_denied",
                        steps=trail.steps,
                        duration=trail.duration_ms,
                    )
                voice_profile = await self.store.get_voice_profile_with_access(
                    request.user_id, target_user_id
                )
            else:
                voice_profile = await self.store.get_voice_profile(target_user_id)

            if sources.has_any():
                voice_profile = await self.analyzer.analyze_and_update_voice_profile(
                    target_user_id, sources, force_update=options.force_voice_update
                )
                trail.record(
                    "voice_profile",
                    "updated",
                    target_user_id=target_user_id,
                    sources=sources.counts().model_dump(),
                    analysis_method=voice_profile.analysis_sources.analysis_method,
                )
            elif voice_profile is None:
                voice_profile = await self.analyzer.analyze_and_update_voice_profile(
                    target_user_id, sources
                )
                trail.record("voice_profile", "created_default", target_user_id=target_user_id)
            else:
                trail.record("voice_profile", "loaded_existing", target_user_id=target_user_id)

            simplified_voice = get_simplified_voice(voice_profile)

            # ========== Sufficiency check ==========
            content_type = None
            if not options.skip_sufficiency_check:
                trail.record("sufficiency_check", "started")

                sufficiency = await self.sufficiency.check_sufficiency(
                    request.user_request,
                    context_guide=sources.context_guide,
                    past_posts_count=len(sources.past_posts),
                    additional_context=(
                        f"Current draft: {request.current_draft}" if request.current_draft else None
                    ),
                )
                content_type = sufficiency.detected_content_type
                trail.record("sufficiency_check", "completed", result=sufficiency.model_dump())

                ask = should_ask_questions(sufficiency, self.settings.cautious_content_types)
                if ask and not options.proceed_without_questions:
                    logger.info(f"Asking clarifying questions before drafting ({content_type})")
                    return PipelineResult(
                        success=True,
                        needs_more_info=True,
                        questions=format_questions_for_user(sufficiency) or DETAILS_FOLLOWUP,
                        content_type=content_type,
                        voice_profile=simplified_voice,
                        steps=trail.steps,
                        duration=trail.duration_ms,
                    )

            # ========== Content generation ==========
            trail.record("content_generation", "started")

            draft = await self.drafter.generate_draft(
                user_request=request.user_request,
                voice_profile=voice_profile,
                context_guide=sources.context_guide,
                post_examples=[post.content for post in sources.past_posts[:MAX_POST_EXAMPLES]],
                current_draft=request.current_draft,
                action=request.action,
                target_length=voice_profile.content_preferences.typical_post_length,
            )
            trail.record("content_generation", "completed", confidence=draft.confidence)

            # ========== Quick authenticity check ==========
            quick_check = QualityGate.quick_authenticity_check(draft.content, request.user_request)
            if quick_check.passed:
                trail.record("quick_auth_check", "passed")
            else:
                trail.record(
                    "quick_auth_check",
                    "flags_detected",
                    flags=[flag.model_dump() for flag in quick_check.flags],
                )

            # ========== Quality review ==========
            final_content = draft.content
            quality = None

            if not options.skip_quality_review:
                trail.record("quality_review", "started")

                quality = await self.quality_gate.review_quality(
                    draft.content, request.user_request, voice_profile
                )
                trail.record(
                    "quality_review",
                    "completed",
                    verdict=quality.verdict,
                    score=quality.weighted_score,
                    passed=passes_quality_gate(quality),
                )

                final_content = get_best_content(draft.content, quality)

                if quality.verdict == "NEEDS_USER_INPUT":
                    logger.info("Quality review needs user input, returning draft for reference")
                    return PipelineResult(
                        success=True,
                        needs_more_info=True,
                        questions=FABRICATION_FOLLOWUP if quality.fabrication_flags else DETAILS_FOLLOWUP,
                        content_type=content_type,
                        draft_content=final_content,
                        quality_issues=quality.issues,
                        voice_profile=simplified_voice,
                        steps=trail.steps,
                        duration=trail.duration_ms,
                    )

            return PipelineResult(
                success=True,
                content=final_content,
                confidence=draft.confidence,
                missing_info=draft.missing_info,
                quality_score=quality.weighted_score if quality else None,
                quality_verdict=quality.verdict if quality else "NOT_REVIEWED",
                voice_profile=simplified_voice,
                steps=trail.steps,
                duration=trail.duration_ms,
                metadata={
                    "action": request.action,
                    "target_user_id": target_user_id,
                    "voice_profile_version": voice_profile.version,
                    "content_type": content_type,
                },
            )

        except LLMRateLimitError as e:
            return self._failure(trail, e, "rate_limit")
        except LLMUnavailableError as e:
            return self._failure(trail, e, "upstream_unavailable")
        except Exception as e:
            return self._failure(trail, e, "generation_error")

    def _failure(self, trail: StepRecorder, error: Exception, error_type: str) -> PipelineResult:
        logger.error(f"Generation pipeline error ({error_type}): {error}")
        trail.record("error", "failed", error=str(error))
        return PipelineResult(
            success=False,
            error=str(error),
            error_type=error_type,
            steps=trail.steps,
            duration=trail.duration_ms,
        )

    async def refine_content(
        self,
        content: str,
        feedback: str,
        voice_profile: VoiceProfile | None,
    ) -> RefinementResult:
        """Quick edit of an existing post; skips the sufficiency and review stages."""
        return await self.drafter.refine_content(content, feedback, voice_profile)
