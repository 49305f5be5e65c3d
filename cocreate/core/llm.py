"""Thin wrapper around the Anthropic messages API used by every pipeline stage."""

import asyncio
import logging

import anthropic
from anthropic import AsyncAnthropic

from cocreate.config import Settings, get_settings
from cocreate.core.exceptions import LLMRateLimitError, LLMResponseError, LLMUnavailableError

logger = logging.getLogger(__name__)


def build_claude_client(settings: Settings | None = None) -> AsyncAnthropic | None:
    """
    Create the shared Claude client, or None when no API key is configured.

    Stages receive the client explicitly and fall back when it is None.
    """
    settings = settings or get_settings()
    if not settings.anthropic_api_key:
        logger.warning("ANTHROPIC_API_KEY not set - LLM stages will use their fallbacks")
        return None
    return AsyncAnthropic(
        api_key=settings.anthropic_api_key,
        max_retries=settings.llm_max_retries,
    )


async def complete(
    client: AsyncAnthropic | None,
    *,
    model: str,
    max_tokens: int,
    prompt: str,
    system: str | None = None,
    timeout: float | None = None,
) -> str:
    """
    Run a single-turn completion and return the response text.

    Raises:
        LLMUnavailableError: no client, API failure or timeout
        LLMRateLimitError: the API answered 429
        LLMResponseError: the response had no text block
    """
    if client is None:
        raise LLMUnavailableError("No LLM client configured")

    kwargs = {
        "model": model,
        "max_tokens": max_tokens,
        "messages": [{"role": "user", "content": prompt}],
    }
    if system:
        kwargs["system"] = system

    if timeout is None:
        timeout = get_settings().llm_stage_timeout_seconds

    try:
        response = await asyncio.wait_for(client.messages.create(**kwargs), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise LLMUnavailableError(f"LLM call to {model} timed out after {timeout}s") from e
    except anthropic.RateLimitError as e:
        raise LLMRateLimitError(f"LLM rate limit reached: {e}") from e
    except anthropic.APIError as e:
        raise LLMUnavailableError(f"LLM call to {model} failed: {e}") from e

    if not response.content or not getattr(response.content[0], "text", None):
        raise LLMResponseError(f"Empty response from {model}")

    return response.content[0].text
