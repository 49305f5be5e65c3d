"""Parsing of JSON answers that models like to wrap in Markdown fences."""

import json
import re
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from cocreate.core.exceptions import ResponseParseError

ModelT = TypeVar("ModelT", bound=BaseModel)

FENCE_PATTERN = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL)
OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


def strip_code_fences(text: str) -> str:
    """Return the body of the first ```json fence, or the text itself."""
    text = text.strip()
    match = FENCE_PATTERN.search(text)
    if match:
        return match.group(1).strip()
    if text.startswith("```"):
        # Unterminated fence: drop the opening line
        return "\n".join(text.split("\n")[1:]).strip()
    return text


def parse_json_object(text: str) -> dict[str, Any]:
    """Strip fences and parse a JSON object out of a model response."""
    body = strip_code_fences(text)
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        # Tolerate chatter around the object
        match = OBJECT_PATTERN.search(body)
        if not match:
            raise ResponseParseError("No JSON object found in response")
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise ResponseParseError(f"Invalid JSON in response: {e}") from e

    if not isinstance(data, dict):
        raise ResponseParseError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def parse_model_response(text: str, schema: type[ModelT]) -> ModelT:
    """Strip fences, parse JSON and validate it against a pydantic schema."""
    data = parse_json_object(text)
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise ResponseParseError(f"Response does not match {schema.__name__}: {e}") from e
