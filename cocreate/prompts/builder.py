"""
Prompt builder.

Loads Markdown prompt templates and fills them in with a small
handlebars-like syntax:

    {{path.to.value}}                 value lookup (missing -> "")
    {{#if path}}...{{else}}...{{/if}}  conditional, else branch optional
    {{#each path}}...{{this}}...{{/each}}
    {{join path ", "}}

Blocks are processed in the order each, if, join, plain values. Values
spliced in by the each and join passes are shielded from the later
passes, so user text containing `{{...}}` comes out verbatim.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from cocreate.config import get_settings
from cocreate.schemas.voice import VoiceProfile

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATES_DIR = Path(__file__).parent / "templates"

STAGE_TEMPLATES = {
    "sufficiency-check": "stages/sufficiency-check",
    "content-draft": "stages/content-draft",
    "quality-review": "stages/quality-review",
}

SYSTEM_TEMPLATES = [
    "base/voice-application",
    "base/anti-fabrication",
    "base/linkedin-best-practices",
]

SECTION_SEPARATOR = "\n\n---\n\n"

_PATH = r"\w+(?:\.\w+)*"
EACH_PATTERN = re.compile(r"\{\{#each\s+(" + _PATH + r")\}\}([\s\S]*?)\{\{/each\}\}")
IF_PATTERN = re.compile(
    r"\{\{#if\s+(" + _PATH + r")\}\}([\s\S]*?)(?:\{\{else\}\}([\s\S]*?))?\{\{/if\}\}"
)
JOIN_PATTERN = re.compile(r"\{\{join\s+(" + _PATH + r')\s+"([^"]+)"\}\}')
VALUE_PATTERN = re.compile(r"\{\{(" + _PATH + r")\}\}")
THIS_PATTERN = re.compile(r"\{\{this\}\}")

# Stands in for "{{" inside substituted values until rendering finishes
_OPEN_PLACEHOLDER = "\x00{\x00"

_template_cache: dict[str, str] = {}


def _templates_dir() -> Path:
    configured = get_settings().prompt_templates_dir
    return Path(configured) if configured else DEFAULT_TEMPLATES_DIR


def load_template(name: str) -> str:
    """Load a template by name (e.g. 'base/voice-application'), cached per path."""
    path = _templates_dir() / f"{name}.md"
    key = str(path)
    if key in _template_cache:
        return _template_cache[key]

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.error(f"Failed to load prompt template {name}: {e}")
        return ""

    _template_cache[key] = content
    return content


def clear_template_cache() -> None:
    """Drop all cached templates so edited files are picked up."""
    _template_cache.clear()


def _plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def resolve_path(context: Any, path: str) -> Any:
    """Dot-addressed lookup; `.length` on a sequence gives its size."""
    current = context
    for key in path.split("."):
        if current is None:
            return None
        if isinstance(current, dict):
            current = current.get(key)
        elif isinstance(current, (list, tuple, str)) and key == "length":
            current = len(current)
        elif isinstance(current, list) and key.isdigit():
            index = int(key)
            current = current[index] if index < len(current) else None
        else:
            current = getattr(current, key, None)
    return current


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def _shielded_text(value: Any) -> str:
    return _to_text(value).replace("{{", _OPEN_PLACEHOLDER)


def render_template(template: str, context: dict[str, Any]) -> str:
    """Substitute context values into a template."""
    context = _plain(context)

    def each(match: re.Match) -> str:
        items = resolve_path(context, match.group(1))
        if not isinstance(items, list) or not items:
            return ""
        body = match.group(2)
        # lambda replacement so backslashes in values are taken literally
        return "".join(THIS_PATTERN.sub(lambda _: _shielded_text(item), body) for item in items)

    def conditional(match: re.Match) -> str:
        value = resolve_path(context, match.group(1))
        return match.group(2) if value else (match.group(3) or "")

    def join(match: re.Match) -> str:
        items = resolve_path(context, match.group(1))
        if not isinstance(items, list):
            return ""
        return match.group(2).join(_shielded_text(item) for item in items)

    def value(match: re.Match) -> str:
        return _to_text(resolve_path(context, match.group(1)))

    result = EACH_PATTERN.sub(each, template)
    result = IF_PATTERN.sub(conditional, result)
    result = JOIN_PATTERN.sub(join, result)
    result = VALUE_PATTERN.sub(value, result)
    return result.replace(_OPEN_PLACEHOLDER, "{{")


def build_stage_prompt(stage: str, context: dict[str, Any]) -> str:
    """Render the prompt for one pipeline stage."""
    template_name = STAGE_TEMPLATES.get(stage)
    if template_name is None:
        raise ValueError(f"Unknown stage: {stage}")
    return render_template(load_template(template_name), context)


def build_system_prompt(voice_profile: VoiceProfile | dict | None) -> str:
    """Render every base-rule template with the voice profile and join them."""
    sections = [
        render_template(load_template(name), {"voice_profile": voice_profile})
        for name in SYSTEM_TEMPLATES
    ]
    return SECTION_SEPARATOR.join(sections)


def build_generation_prompts(
    stage: str,
    voice_profile: VoiceProfile | dict | None,
    stage_context: dict[str, Any],
) -> tuple[str, str]:
    """Build (system_prompt, user_prompt) for a stage."""
    system_prompt = build_system_prompt(voice_profile)
    user_prompt = build_stage_prompt(stage, {**stage_context, "voice_profile": voice_profile})
    return system_prompt, user_prompt


def get_voice_context_for_review(voice_profile: VoiceProfile | None) -> dict[str, Any]:
    """Small, flat voice summary for the quality review prompt."""
    if voice_profile is None:
        return {
            "voice_style": "professional and engaging",
            "voice_tone": "confident and approachable",
            "uses_emojis": False,
            "uses_hashtags": False,
            "typical_length": 800,
            "cta_style": "soft",
        }

    formality = voice_profile.writing_style.formality
    directness = voice_profile.writing_style.directness

    if formality < 0.3:
        style = "casual"
    elif formality > 0.7:
        style = "formal"
    else:
        style = "professional"
    style += " and direct" if directness > 0.6 else " and conversational"

    return {
        "voice_style": style,
        "voice_tone": f"{voice_profile.tone.primary or 'confident'} and {voice_profile.tone.secondary or 'approachable'}",
        "uses_emojis": voice_profile.formatting.uses_emojis,
        "uses_hashtags": voice_profile.formatting.uses_hashtags,
        "typical_length": voice_profile.content_preferences.typical_post_length or 800,
        "cta_style": voice_profile.formatting.cta_style,
    }
