"""Validate and normalize raw generation output into a SegmentationBody."""

import json
import re
from typing import Any, Iterator

import structlog
from pydantic import ValidationError

from roadmap.errors import MalformedResponse
from roadmap.models import SegmentationBody, SegmentationMethod

logger = structlog.get_logger(__name__)

_CODE_FENCE_RE = re.compile(r"```(?:json)?[ \t]*\n?", re.IGNORECASE)
_FENCED_BLOCK_RE = re.compile(r"```(?:json)?[ \t]*\n?(.*?)```", re.IGNORECASE | re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


def strip_code_fences(text: str) -> str:
    """Remove markdown code-fence markers, keeping their content."""
    return _CODE_FENCE_RE.sub("", text).strip()


def _iter_json_objects(text: str) -> Iterator[str]:
    """Yield each top-level balanced {...} block, ignoring braces inside strings."""
    depth = 0
    start = None
    in_string = False
    escape_next = False

    for i, char in enumerate(text):
        if escape_next:
            escape_next = False
            continue
        if char == "\\" and in_string:
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue

        if char == "{":
            if depth == 0:
                start = i
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0 and start is not None:
                yield text[start:i + 1]
                start = None


def _json_candidates(response: str) -> Iterator[tuple[str, bool]]:
    """Candidate JSON texts in order of preference, with whether to repair commas."""
    for match in _FENCED_BLOCK_RE.finditer(response):
        yield match.group(1).strip(), True

    text = strip_code_fences(response)
    yield text, False

    # Prose may itself contain braces, so every balanced block gets a turn.
    for block in _iter_json_objects(text):
        yield block, True


def parse_json_response(response: str) -> Any:
    """Parse JSON from generation output, tolerating fences and surrounding prose.

    Fenced blocks are tried first, then the whole text, then each balanced
    object found in it.

    Raises:
        MalformedResponse: If no JSON value can be recovered.
    """
    if not response or not response.strip():
        raise MalformedResponse("Empty response")

    for candidate, repair in _json_candidates(response):
        attempts = [candidate, _TRAILING_COMMA_RE.sub(r"\1", candidate)] if repair else [candidate]
        for attempt in attempts:
            try:
                return json.loads(attempt)
            except json.JSONDecodeError as e:
                logger.debug("json_candidate_rejected", error=str(e))

    text = strip_code_fences(response)
    logger.warning("json_parse_error", response_preview=text[:300])
    raise MalformedResponse(f"Response is not valid JSON. Preview: {text[:150]}")


def _normalize_segments(segments: list[Any]) -> list[Any]:
    """Renumber segments by position and lower-case difficulty strings.

    Each segment must still carry an integer ``id``; only its value is replaced.
    """
    normalized = []
    for position, segment in enumerate(segments, start=1):
        if not isinstance(segment, dict):
            raise MalformedResponse(f"Segment {position} is not an object")
        segment_id = segment.get("id")
        if not isinstance(segment_id, int) or isinstance(segment_id, bool):
            raise MalformedResponse(f"Segment {position} has no integer id")
        segment = {**segment, "id": position}
        if isinstance(segment.get("difficulty"), str):
            segment["difficulty"] = segment["difficulty"].strip().lower()
        normalized.append(segment)
    return normalized


def validate_segmentation_response(response: str, document_label: str = "") -> SegmentationBody:
    """Turn untrusted generation output into a generated SegmentationBody.

    The reported ``totalSegments`` is discarded; the count is always derived
    from the returned segments.

    Args:
        response: Raw generation output.
        document_label: Title used when the payload has none.

    Returns:
        Validated SegmentationBody with ``method = generated``.

    Raises:
        MalformedResponse: If parsing fails, segments are absent or empty,
            or any segment is missing a field or has an unknown difficulty.
    """
    payload = parse_json_response(response)

    if not isinstance(payload, dict):
        raise MalformedResponse(f"Expected a JSON object, got {type(payload).__name__}")

    segments = payload.get("segments")
    if not isinstance(segments, list) or not segments:
        raise MalformedResponse("Response has no segments")

    title = payload.get("title")
    if not isinstance(title, str) or not title.strip():
        title = document_label

    try:
        body = SegmentationBody.model_validate({
            "title": title,
            "overview": payload.get("overview") or "",
            "segments": _normalize_segments(segments),
            "estimatedTotalTime": payload.get("estimatedTotalTime") or "",
            "method": SegmentationMethod.GENERATED,
        })
    except ValidationError as e:
        logger.warning("segmentation_schema_mismatch", errors=e.error_count())
        raise MalformedResponse(f"Response does not match segmentation schema: {e}") from e

    reported = payload.get("totalSegments")
    if reported is not None and reported != body.total_segments:
        logger.info(
            "segment_count_corrected",
            reported=reported,
            actual=body.total_segments,
        )

    logger.debug("segmentation_response_valid", segments=body.total_segments)

    return body
