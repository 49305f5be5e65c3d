"""Sufficiency checker - is there enough real detail to write the post without inventing any?"""

import logging
from typing import Iterable

from anthropic import AsyncAnthropic

from cocreate.config import get_settings
from cocreate.core.exceptions import LLMUnavailableError
from cocreate.core.json_response import parse_model_response
from cocreate.core.llm import complete
from cocreate.prompts.builder import build_stage_prompt
from cocreate.schemas.generation import SufficiencyResult

logger = logging.getLogger(__name__)

QUESTIONS_INTRO = "To write this post authentically, I need a few more details:"
QUESTIONS_OUTRO = "\nThis will help me write something that's genuinely yours, not generic advice."


def proceed_default(guidance: str, error: str | None = None) -> SufficiencyResult:
    """Low-confidence 'proceed' result used whenever the check itself cannot run."""
    return SufficiencyResult(
        detected_content_type="unknown",
        can_write_authentically=True,
        confidence="low",
        recommendation="proceed",
        questions_to_ask=[],
        writing_guidance=guidance,
        error=error,
    )


class SufficiencyChecker:
    """Advisory pre-drafting check on the fast model; never blocks the pipeline by failing."""

    def __init__(self, claude_client: AsyncAnthropic | None = None):
        self.claude = claude_client
        self.settings = get_settings()

    async def check_sufficiency(
        self,
        user_request: str,
        context_guide: str | None = None,
        past_posts_count: int = 0,
        additional_context: str | None = None,
    ) -> SufficiencyResult:
        prompt = build_stage_prompt("sufficiency-check", {
            "user_request": user_request,
            "context_guide": context_guide or None,
            "context_guide_words": len(context_guide.split()) if context_guide else 0,
            "past_posts_count": past_posts_count,
            "additional_context": additional_context or None,
        })

        try:
            response_text = await complete(
                self.claude,
                model=self.settings.claude_fast_model,
                max_tokens=self.settings.sufficiency_max_tokens,
                prompt=prompt,
            )
            return parse_model_response(response_text, SufficiencyResult)
        except LLMUnavailableError as e:
            logger.warning(f"Sufficiency check unavailable: {e}")
            return proceed_default("Proceed with caution - sufficiency check unavailable", error=str(e))
        except Exception as e:
            logger.warning(f"Sufficiency check failed: {e}")
            return proceed_default("Proceed - sufficiency check encountered an error", error=str(e))


def should_ask_questions(
    result: SufficiencyResult | None,
    cautious_content_types: Iterable[str] | None = None,
) -> bool:
    """
    Whether to stop and ask the user before drafting.

    Content types in ``cautious_content_types`` (personal stories by
    default) need high confidence to proceed, because they are where
    fabricated specifics are most likely.
    """
    if result is None:
        return False

    if result.recommendation == "ask_questions":
        return True

    if result.confidence == "low" and result.questions_to_ask:
        return True

    if cautious_content_types is None:
        cautious_content_types = get_settings().cautious_content_types
    if result.detected_content_type in set(cautious_content_types) and result.confidence != "high":
        return True

    return False


def format_questions_for_user(result: SufficiencyResult | None) -> str | None:
    """Numbered question list with a short framing sentence, or None if there is nothing to ask."""
    if result is None or not result.questions_to_ask:
        return None

    question_list = "\n".join(
        f"{i}. {q.question}" for i, q in enumerate(result.questions_to_ask, start=1)
    )
    return f"{QUESTIONS_INTRO}\n\n{question_list}{QUESTIONS_OUTRO}"
