"""Prompt templates and the builder that renders them."""

from cocreate.prompts.builder import (
    build_generation_prompts,
    build_stage_prompt,
    build_system_prompt,
    clear_template_cache,
    get_voice_context_for_review,
    render_template,
)

__all__ = [
    "build_generation_prompts",
    "build_stage_prompt",
    "build_system_prompt",
    "clear_template_cache",
    "get_voice_context_for_review",
    "render_template",
]
