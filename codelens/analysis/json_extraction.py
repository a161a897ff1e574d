"""Recover a JSON object from free-form LLM output.

Handles common LLM JSON formatting issues:
- Markdown code fences and prose around the object
- Missing commas between fields or array elements
- Trailing commas
- Output truncated at the token limit (unclosed strings/brackets)
"""

from __future__ import annotations

import json
import re
from typing import Any

from codelens.observability.logging import get_logger
from codelens.observability.telemetry import counter

logger = get_logger(__name__)


class JSONExtractionError(ValueError):
    """Raised when no JSON object can be recovered from a response."""


# json.loads failures: JSONDecodeError, over-long integer literals (ValueError)
# and pathological nesting (RecursionError)
_PARSE_ERRORS = (ValueError, RecursionError)


def extract_json(text: str | None) -> dict[str, Any]:
    """
    Parse the first JSON object found in `text`, repairing it if needed.

    Raises:
        JSONExtractionError: If nothing parses or the root is not an object
    """
    if not text or not text.strip():
        raise JSONExtractionError("Empty response")

    text = re.sub(r"```json\s*", "", text, flags=re.IGNORECASE)
    text = re.sub(r"```\s*", "", text)
    text = text.strip()

    try:
        return _require_object(json.loads(text))
    except JSONExtractionError:
        raise
    except _PARSE_ERRORS as e:
        logger.warning("JSON parse error (attempting repair): %s", type(e).__name__)

    start = text.find("{")
    if start == -1:
        counter("json_extraction.no_object")
        raise JSONExtractionError("No JSON object found in response")

    # First "{" to last "}" so nested objects stay intact
    end = text.rfind("}")
    if end > start:
        json_text = text[start : end + 1]
        try:
            return _require_object(json.loads(json_text))
        except _PARSE_ERRORS:
            pass

        repaired = _insert_missing_commas(json_text)
        try:
            result = _require_object(json.loads(repaired))
            logger.info("JSON repair succeeded (missing commas fixed)")
            counter("json_extraction.repaired")
            return result
        except _PARSE_ERRORS:
            pass

        repaired = _remove_trailing_commas(repaired)
        try:
            result = _require_object(json.loads(repaired))
            logger.info("JSON repair succeeded (trailing commas removed)")
            counter("json_extraction.repaired")
            return result
        except _PARSE_ERRORS:
            pass

    closed = _close_truncated(text[start:])
    if closed is not None:
        try:
            result = _require_object(
                json.loads(_remove_trailing_commas(_insert_missing_commas(closed)))
            )
            logger.info("JSON repair succeeded (truncated output closed)")
            counter("json_extraction.repaired")
            return result
        except _PARSE_ERRORS as e:
            logger.warning("JSON repair failed: %s", e)

    counter("json_extraction.failed")
    raise JSONExtractionError("Could not repair JSON in response")


def _require_object(value: Any) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise JSONExtractionError(f"Expected a JSON object, got {type(value).__name__}")
    return value


def _insert_missing_commas(json_text: str) -> str:
    repaired = re.sub(r'"\s*\n\s*"', '",\n"', json_text)
    # Anchored at the start of a number so long digit runs stay linear
    repaired = re.sub(
        r"(?<![\d.])(\d+(?:\.\d+)?(?:[eE][+-]?\d+)?|true|false|null)"
        r"\s*\n\s*\"",
        r'\1,\n"',
        repaired,
    )
    repaired = re.sub(r'\}\s*\n\s*"', '},\n"', repaired)
    repaired = re.sub(r'\]\s*\n\s*"', '],\n"', repaired)
    # Adjacent objects in an array
    repaired = re.sub(r"\}\s*\n\s*\{", "},\n{", repaired)
    return repaired


def _remove_trailing_commas(json_text: str) -> str:
    return re.sub(r",\s*([\}\]])", r"\1", json_text)


def _close_truncated(json_text: str) -> str | None:
    """
    Close an object cut off mid-stream: terminate an open string, drop a
    dangling separator and append the missing closing brackets.

    Returns None when the brackets are already balanced.
    """
    closers: list[str] = []
    in_string = False
    escaped = False

    for ch in json_text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            closers.append("}")
        elif ch == "[":
            closers.append("]")
        elif ch in "}]" and closers:
            closers.pop()

    if not closers and not in_string:
        return None

    repaired = json_text
    if in_string:
        if escaped:
            repaired = repaired[:-1]
        repaired += '"'
    repaired = repaired.rstrip(",: \t\r\n")
    return repaired + "".join(reversed(closers))
