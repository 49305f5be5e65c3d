"""Draft generator - the primary writing call of the pipeline."""

import logging
from typing import Literal

from anthropic import AsyncAnthropic

from cocreate.config import get_settings
from cocreate.core.llm import complete
from cocreate.core.markers import parse_draft_response
from cocreate.prompts.builder import build_stage_prompt, build_system_prompt
from cocreate.schemas.generation import DraftResult, RefinementResult
from cocreate.schemas.voice import VoiceProfile

logger = logging.getLogger(__name__)

MAX_POST_EXAMPLES = 5
DEFAULT_TARGET_LENGTH = 800


class DraftGenerator:
    """
    Writes and refines posts in the user's voice.

    Unlike the other stages there is no fallback here: without a draft
    there is nothing to review, so LLM failures propagate to the caller.
    """

    def __init__(self, claude_client: AsyncAnthropic | None = None):
        self.claude = claude_client
        self.settings = get_settings()

    async def generate_draft(
        self,
        user_request: str,
        voice_profile: VoiceProfile | None,
        context_guide: str | None = None,
        post_examples: list[str] | None = None,
        current_draft: str | None = None,
        action: Literal["create", "refine"] = "create",
        target_length: int | None = None,
    ) -> DraftResult:
        """
        Generate a draft.

        When refining, the request text is passed to the model as the
        user's feedback on ``current_draft``.

        Raises:
            LLMUnavailableError: no client, API failure or timeout
        """
        system_prompt = build_system_prompt(voice_profile)
        user_prompt = build_stage_prompt("content-draft", {
            "user_request": user_request,
            "current_draft": current_draft,
            "user_feedback": user_request if action == "refine" else None,
            "context_guide": context_guide,
            "post_examples": (post_examples or [])[:MAX_POST_EXAMPLES],
            "target_length": target_length or DEFAULT_TARGET_LENGTH,
        })

        response_text = await complete(
            self.claude,
            model=self.settings.claude_model,
            max_tokens=self.settings.draft_max_tokens,
            prompt=user_prompt,
            system=system_prompt,
        )

        result = parse_draft_response(response_text)
        logger.info(
            f"Draft generated ({len(result.content)} chars, confidence {result.confidence}, "
            f"{len(result.missing_info or [])} missing details)"
        )
        return result

    async def refine_content(
        self,
        content: str,
        feedback: str,
        voice_profile: VoiceProfile | None,
    ) -> RefinementResult:
        """Lightweight chat-style edit of an existing post, outside the full pipeline."""
        system_prompt = build_system_prompt(voice_profile)
        user_prompt = (
            f"Current post:\n{content}\n\n"
            f"User feedback:\n{feedback}\n\n"
            "Refine the post based on the feedback while maintaining the voice profile. "
            "Return only the updated post content."
        )

        response_text = await complete(
            self.claude,
            model=self.settings.claude_model,
            max_tokens=self.settings.draft_max_tokens,
            prompt=user_prompt,
            system=system_prompt,
        )
        return RefinementResult(content=response_text.strip(), confidence="high")
