"""
Parser for the marker format the drafting model answers in.

Grammar (markers may appear in any order, all are optional):

    response   := text* [content] text* [confidence] text* [missing] text*
    content    := "[POST_CONTENT]" body "[/POST_CONTENT]"
    confidence := "[CONFIDENCE]" ws level any* "[/CONFIDENCE]"
    level      := "high" | "medium" | "low"          (case-insensitive)
    missing    := "[MISSING_INFO]" line* "[/MISSING_INFO]"
    needs      := "[NEEDS:" detail "]"               (inline, inside the body)

Parsing never fails:
- no content block: the whole response is the content
- no or unrecognised confidence: "medium"
- missing-info lines lose "-"/"*" bullets; "none"/"n/a" lines are dropped
- inline [NEEDS: ...] details are appended to the missing-info list
- an empty missing-info list is reported as None
"""

import re

from cocreate.schemas.generation import DraftResult

CONTENT_PATTERN = re.compile(r"\[POST_CONTENT\](.*?)\[/POST_CONTENT\]", re.DOTALL)
CONFIDENCE_PATTERN = re.compile(
    r"\[CONFIDENCE\]\s*(high|medium|low)\b.*?\[/CONFIDENCE\]", re.DOTALL | re.IGNORECASE
)
MISSING_INFO_PATTERN = re.compile(r"\[MISSING_INFO\](.*?)\[/MISSING_INFO\]", re.DOTALL)
NEEDS_PATTERN = re.compile(r"\[NEEDS:\s*([^\]]+)\]")
BULLET_PATTERN = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")

EMPTY_MARKERS = {"none", "n/a", "na", "nothing", "-"}


def _missing_info_lines(block: str) -> list[str]:
    items = []
    for line in block.splitlines():
        item = BULLET_PATTERN.sub("", line).strip()
        if item and item.lower().rstrip(".") not in EMPTY_MARKERS:
            items.append(item)
    return items


def parse_draft_response(text: str) -> DraftResult:
    """Split a drafting response into content, confidence and missing information."""
    content_match = CONTENT_PATTERN.search(text)
    content = (content_match.group(1) if content_match else text).strip()

    confidence_match = CONFIDENCE_PATTERN.search(text)
    confidence = confidence_match.group(1).lower() if confidence_match else "medium"

    missing_info: list[str] = []
    missing_match = MISSING_INFO_PATTERN.search(text)
    if missing_match:
        missing_info.extend(_missing_info_lines(missing_match.group(1)))

    for need in NEEDS_PATTERN.findall(content):
        need = need.strip()
        if need and need not in missing_info:
            missing_info.append(need)

    return DraftResult(
        content=content,
        confidence=confidence,
        missing_info=missing_info or None,
    )
