"""CoCreate API endpoints - generate and refine LinkedIn posts in a user's voice."""

import asyncio
import logging
from typing import Annotated

from anthropic import AsyncAnthropic
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cocreate.api.auth import get_current_user_id
from cocreate.config import get_settings
from cocreate.core.exceptions import LLMRateLimitError, LLMUnavailableError
from cocreate.schemas.cocreate import (
    GenerateRequest,
    RefineRequest,
    RefineResponse,
    SourceSummary,
    VoiceProfileStatusResponse,
    VoiceSummary,
)
from cocreate.schemas.generation import GenerationRequest, PipelineOptions, PipelineResult
from cocreate.services.content_sources import ContentSourceService
from cocreate.services.database import get_db, get_session_factory
from cocreate.services.generation.pipeline import GenerationPipeline
from cocreate.services.voice.profile_store import VoiceProfileStore

logger = logging.getLogger(__name__)
router = APIRouter()
settings = get_settings()

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again in a moment."


def get_claude_client(request: Request) -> AsyncAnthropic | None:
    """The app-wide Claude client created at startup (None when not configured)."""
    return getattr(request.app.state, "claude", None)


async def ensure_voice_access(store: VoiceProfileStore, user_id: str, target_user_id: str) -> None:
    if target_user_id != user_id and not await store.has_active_link(user_id, target_user_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this user's voice profile",
        )


def _error_response(status_code: int, result: PipelineResult, message: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": message or result.error,
            "type": result.error_type,
            "steps": [step.model_dump(mode="json") for step in result.steps],
        },
    )


@router.post("/generate", response_model=PipelineResult, response_model_exclude_none=True)
async def generate_post(
    body: GenerateRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
    session_factory: Annotated[async_sessionmaker, Depends(get_session_factory)],
    claude: Annotated[AsyncAnthropic | None, Depends(get_claude_client)],
):
    """
    Run the generation pipeline for the current user.

    Sources for the voice being written in are gathered concurrently
    before the pipeline starts. The whole request is bounded by the
    pipeline timeout.
    """
    if not body.user_message.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message is required")

    target_user_id = body.context_user_id or user_id
    await ensure_voice_access(VoiceProfileStore(db), user_id, target_user_id)

    sources = await ContentSourceService(session_factory).gather_sources(target_user_id)

    request = GenerationRequest(
        user_request=body.user_message,
        user_id=user_id,
        target_user_id=target_user_id,
        sources=sources,
        current_draft=body.current_draft,
        action=body.action,
        options=PipelineOptions(
            skip_sufficiency_check=body.skip_sufficiency_check,
            skip_quality_review=body.skip_quality_review,
            proceed_without_questions=body.proceed_without_questions,
            force_voice_update=body.force_voice_update,
        ),
    )

    pipeline = GenerationPipeline(db, claude)
    try:
        result = await asyncio.wait_for(
            pipeline.generate_post(request),
            timeout=settings.pipeline_timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.error(f"Generation for {user_id} exceeded {settings.pipeline_timeout_seconds}s")
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail="Generation took too long. Please try again.",
        )

    if not result.success:
        if result.error_type == "access_denied":
            return _error_response(status.HTTP_403_FORBIDDEN, result)
        if result.error_type == "rate_limit":
            return _error_response(status.HTTP_429_TOO_MANY_REQUESTS, result, RATE_LIMIT_MESSAGE)
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, result)

    return result


@router.post("/refine", response_model=RefineResponse)
async def refine_post(
    body: RefineRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
    claude: Annotated[AsyncAnthropic | None, Depends(get_claude_client)],
) -> RefineResponse:
    """Apply chat-style feedback to an existing post without the full pipeline."""
    target_user_id = body.context_user_id or user_id
    store = VoiceProfileStore(db)
    await ensure_voice_access(store, user_id, target_user_id)

    voice_profile = await store.get_voice_profile_with_access(user_id, target_user_id)
    pipeline = GenerationPipeline(db, claude)

    try:
        refined = await pipeline.refine_content(body.content, body.feedback, voice_profile)
    except LLMRateLimitError:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=RATE_LIMIT_MESSAGE)
    except LLMUnavailableError as e:
        logger.error(f"Refinement failed for {user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Content generation is unavailable. Please try again.",
        )

    return RefineResponse(content=refined.content, confidence=refined.confidence)


@router.get("/voice-profile", response_model=VoiceProfileStatusResponse)
async def get_voice_profile_status(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
    session_factory: Annotated[async_sessionmaker, Depends(get_session_factory)],
) -> VoiceProfileStatusResponse:
    """Current user's voice profile status and source volumes."""
    profile = await VoiceProfileStore(db).get_voice_profile(user_id)
    summary = await ContentSourceService(session_factory).get_source_summary(user_id)

    return VoiceProfileStatusResponse(
        has_profile=profile is not None,
        profile_version=profile.version if profile else 0,
        last_updated=profile.updated_at if profile else None,
        sources=SourceSummary(**summary),
        voice_profile=VoiceSummary(
            writing_style=profile.writing_style,
            tone=profile.tone,
            formatting=profile.formatting,
        ) if profile else None,
    )
