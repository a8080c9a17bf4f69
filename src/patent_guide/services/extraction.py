"""Recovery of structured fields from a raw assistant reply.

The model is asked to answer with a fenced JSON block, but it does not always
comply. Strategies are tried in order and the first one that yields any field
wins:

1. a ```json fenced block holding an object
2. the first ``{...}`` span anywhere in the text
3. the text with fenced JSON blocks removed
4. the text with only the fence markers removed
"""

import json
import re
from typing import Any, Dict, Optional

import structlog

from ..domain.models import ExtractionResult

logger = structlog.get_logger()

FENCED_JSON_RE = re.compile(r"```json\s*(\{.*?\})\s*```", re.DOTALL)
BARE_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)
FENCED_JSON_BLOCK_RE = re.compile(r"```json.*?```", re.DOTALL)
FENCE_MARKER_RE = re.compile(r"```(?:json)?")

FIELDS = ("problem", "solution", "title", "message")


def _parse_object(candidate: str) -> Optional[Dict[str, Any]]:
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.warning("extraction_json_parse_error", error=str(e))
        return None
    return parsed if isinstance(parsed, dict) else None


def _string_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _fields_from(parsed: Dict[str, Any]) -> Optional[Dict[str, Optional[str]]]:
    """Read the four known keys; ``None`` when none of them has content."""
    message = parsed.get("message")
    if message is None:
        message = parsed.get("chat")

    fields = {
        "problem": _string_or_none(parsed.get("problem")),
        "solution": _string_or_none(parsed.get("solution")),
        "title": _string_or_none(parsed.get("title")),
        "message": _string_or_none(message),
    }
    if not any(fields.values()):
        return None
    return fields


def _strip_fence_markers(text: str) -> str:
    stripped = FENCE_MARKER_RE.sub("", text)
    return stripped.strip() or stripped


def _structured_result(
    fields: Dict[str, Optional[str]], raw: str, matched: str
) -> ExtractionResult:
    display = fields["message"]
    if not display:
        # A reply with suggestions but no message still needs something to show.
        display = FENCE_MARKER_RE.sub("", raw.replace(matched, "")).strip()
    if not display:
        display = _strip_fence_markers(raw)
    return ExtractionResult(
        suggested_problem=fields["problem"],
        suggested_solution=fields["solution"],
        suggested_title=fields["title"],
        display_message=display,
    )


def extract(raw: Optional[str]) -> ExtractionResult:
    """Turn one raw assistant reply into an ``ExtractionResult``. Never raises."""
    text = raw or ""

    fenced = FENCED_JSON_RE.search(text)
    if fenced:
        parsed = _parse_object(fenced.group(1))
        fields = _fields_from(parsed) if parsed is not None else None
        if fields:
            logger.debug("extraction_fenced_json", keys=sorted(k for k, v in fields.items() if v))
            return _structured_result(fields, text, fenced.group(0))

    bare = BARE_OBJECT_RE.search(text)
    if bare:
        parsed = _parse_object(bare.group(0))
        fields = _fields_from(parsed) if parsed is not None else None
        if fields:
            logger.debug("extraction_bare_json", keys=sorted(k for k, v in fields.items() if v))
            return _structured_result(fields, text, bare.group(0))

    cleaned = FENCED_JSON_BLOCK_RE.sub("", text).replace("```", "").strip()
    if cleaned:
        logger.debug("extraction_cleaned_text", length=len(cleaned))
        return ExtractionResult(display_message=cleaned)

    logger.debug("extraction_fence_markers_stripped", length=len(text))
    return ExtractionResult(display_message=_strip_fence_markers(text))
