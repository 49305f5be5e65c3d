"""Quality gate - scores a draft, screens for fabrication and may supply a revision."""

import logging
import re

from anthropic import AsyncAnthropic

from cocreate.config import get_settings
from cocreate.core.exceptions import ResponseParseError
from cocreate.core.json_response import parse_model_response
from cocreate.core.llm import complete
from cocreate.prompts.builder import build_stage_prompt, get_voice_context_for_review
from cocreate.schemas.generation import (
    AuthenticityCheck,
    AuthenticityFlag,
    QualityResult,
    QualityScores,
)
from cocreate.schemas.voice import VoiceProfile

logger = logging.getLogger(__name__)

QUALITY_SCORE_WEIGHTS: dict[str, float] = {
    "voice_match": 0.3,
    "authenticity": 0.3,
    "linkedin_optimization": 0.2,
    "clarity_value": 0.2,
}

QUALITY_GATE_MIN_SCORE = 6.0
DEFAULT_REVIEW_SCORE = 7


def compute_weighted_score(scores: QualityScores) -> float:
    return round(
        sum(getattr(scores, axis) * weight for axis, weight in QUALITY_SCORE_WEIGHTS.items()),
        2,
    )


def pass_default(**markers) -> QualityResult:
    """'PASS at 7' result used whenever the review cannot run."""
    return QualityResult(
        scores=QualityScores(),
        weighted_score=float(DEFAULT_REVIEW_SCORE),
        verdict="PASS",
        **markers,
    )


class QualityGate:
    """
    Second-opinion review of a draft.

    The review is a soft gate: if the model is unavailable or answers
    with something unparseable, the draft passes with a neutral score.
    """

    # Phrasings models use to invent experiences or evidence
    FABRICATION_PATTERNS = [
        re.compile(r"I remember when.*(?:my|a) (?:mentor|boss|colleague|friend) (?:told|said|asked)", re.IGNORECASE),
        re.compile(r"Last (?:week|month|year),? I (?:was|had|met|learned)", re.IGNORECASE),
        re.compile(r"A (?:client|customer|friend) (?:once|recently) (?:told|asked|shared)", re.IGNORECASE),
        re.compile(r"(?:studies|research|data) shows? that \d+%", re.IGNORECASE),
        re.compile(r"According to (?:a|recent) (?:study|survey|report)", re.IGNORECASE),
    ]

    def __init__(self, claude_client: AsyncAnthropic | None = None):
        self.claude = claude_client
        self.settings = get_settings()

    async def review_quality(
        self,
        draft_content: str,
        user_request: str,
        voice_profile: VoiceProfile | None,
    ) -> QualityResult:
        if self.claude is None:
            logger.warning("Quality review skipped - no LLM client configured")
            return pass_default(skipped=True, skip_reason="Quality review unavailable")

        prompt = build_stage_prompt("quality-review", {
            "draft_content": draft_content,
            "user_request": user_request,
            **get_voice_context_for_review(voice_profile),
        })

        try:
            response_text = await complete(
                self.claude,
                model=self.settings.claude_model,
                max_tokens=self.settings.review_max_tokens,
                prompt=prompt,
            )
        except Exception as e:
            logger.warning(f"Quality review failed: {e}")
            return pass_default(error=str(e))

        try:
            result = parse_model_response(response_text, QualityResult)
        except ResponseParseError as e:
            logger.warning(f"Could not parse quality review response: {e}")
            return pass_default(parse_error=True)

        if not result.weighted_score:
            result.weighted_score = compute_weighted_score(result.scores)

        logger.info(f"Quality review verdict {result.verdict} at {result.weighted_score}")
        return result

    @classmethod
    def quick_authenticity_check(cls, content: str, user_request: str) -> AuthenticityCheck:
        """
        Local regex screen for invented anecdotes and statistics.

        A pattern is only flagged when the user's own request does not
        contain it, i.e. the model introduced it.
        """
        flags = []
        for pattern in cls.FABRICATION_PATTERNS:
            match = pattern.search(content)
            if match and not pattern.search(user_request or ""):
                flags.append(AuthenticityFlag(
                    pattern=match.group(0),
                    reason="Potentially fabricated - not in original request",
                ))
        return AuthenticityCheck(passed=not flags, flags=flags)


def passes_quality_gate(result: QualityResult | None) -> bool:
    """Hard policy: no fabrication flags, score at least 6, no critical issues."""
    if result is None:
        return True
    if result.fabrication_flags:
        return False
    if result.weighted_score is not None and result.weighted_score < QUALITY_GATE_MIN_SCORE:
        return False
    if any(issue.severity == "critical" for issue in result.issues):
        return False
    return True


def get_best_content(original_content: str, result: QualityResult | None) -> str:
    """Use the reviewer's revision only for a NEEDS_REVISION verdict."""
    if result is not None and result.verdict == "NEEDS_REVISION" and result.revised_content:
        return result.revised_content
    return original_content


def format_quality_issues(result: QualityResult | None) -> str | None:
    """Markdown summary of review issues for the user, or None when there are none."""
    if result is None or not result.issues:
        return None

    critical = [issue for issue in result.issues if issue.severity == "critical"]
    moderate = [issue for issue in result.issues if issue.severity == "moderate"]

    lines = []
    if critical:
        lines.append("**Issues to address:**")
        for issue in critical:
            lines.append(f"- {issue.description}")
            if issue.suggestion:
                lines.append(f"  → {issue.suggestion}")

    if moderate:
        if lines:
            lines.append("")
        lines.append("**Suggestions for improvement:**")
        for issue in moderate:
            lines.append(f"- {issue.description}")

    return "\n".join(lines) + "\n" if lines else None
