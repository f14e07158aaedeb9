"""Multi-tier JSON decoding for model output and malformed JSON-LD."""

import json
import logging
import re
from typing import Callable, List, Optional

from recipe_harvester.app.services.url_parsing.errors import AIResponseParseError

logger = logging.getLogger(__name__)

_FENCE_START_RE = re.compile(r"^\s*```[a-zA-Z0-9_-]*\s*")
_FENCE_END_RE = re.compile(r"\s*```\s*$")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_BARE_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)\s*:")
_DOUBLE_COMMA_RE = re.compile(r",\s*,+")
_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.S)
# "//" preceded by ":" is a URL scheme, not a comment
_LINE_COMMENT_RE = re.compile(r"(?<![:\\])//[^\n\"]*$", re.M)
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F]")
_STRING_LITERAL_RE = re.compile(r'("(?:[^"\\]|\\.)*")', re.S)


def strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_START_RE.sub("", cleaned)
        cleaned = _FENCE_END_RE.sub("", cleaned)
    return cleaned.strip()


def sanitize_json_text(text: str) -> str:
    """Apply the textual fixes for the most common model JSON mistakes."""
    cleaned = strip_code_fences(text)
    cleaned = _BLOCK_COMMENT_RE.sub("", cleaned)
    cleaned = _LINE_COMMENT_RE.sub("", cleaned)
    cleaned = _CONTROL_CHARS_RE.sub("", cleaned)
    return _outside_strings(cleaned, _fix_structure)


def _fix_structure(segment: str) -> str:
    segment = _DOUBLE_COMMA_RE.sub(",", segment)
    segment = _TRAILING_COMMA_RE.sub(r"\1", segment)
    return _BARE_KEY_RE.sub(r'\1"\2":', segment)


def _outside_strings(text: str, fix: Callable[[str], str]) -> str:
    """Apply ``fix`` to the text between string literals, leaving the literals intact."""
    parts = _STRING_LITERAL_RE.split(text)
    return "".join(part if idx % 2 else fix(part) for idx, part in enumerate(parts))


def outer_braces(text: str) -> Optional[str]:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def first_balanced_object(text: str) -> Optional[str]:
    """Return the first ``{...}`` block whose braces balance, ignoring braces in strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for idx in range(start, len(text)):
            char = text[idx]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : idx + 1]
        start = text.find("{", start + 1)
    return None


def _direct(text: str) -> Optional[str]:
    return text


def _sanitized(text: str) -> Optional[str]:
    return sanitize_json_text(text)


def _outer_braces_sanitized(text: str) -> Optional[str]:
    snippet = outer_braces(strip_code_fences(text))
    return sanitize_json_text(snippet) if snippet else None


def _balanced_sanitized(text: str) -> Optional[str]:
    snippet = first_balanced_object(strip_code_fences(text))
    return sanitize_json_text(snippet) if snippet else None


REPAIR_TIERS: List[Callable[[str], Optional[str]]] = [
    _direct,
    _sanitized,
    _outer_braces_sanitized,
    _balanced_sanitized,
]


def parse_json_response(raw: str, context: str = "response"):
    """Decode ``raw`` trying each repair tier in order.

    Raises AIResponseParseError when every tier fails.
    """
    if raw is None:
        raw = ""
    for attempt, tier in enumerate(REPAIR_TIERS, start=1):
        candidate = tier(raw)
        if not candidate:
            logger.debug("JSON repair attempt %d for %s: nothing to parse", attempt, context)
            continue
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError as exc:
            logger.debug("JSON repair attempt %d for %s failed: %s", attempt, context, exc)
            continue
        if attempt > 1:
            logger.info("Recovered JSON from %s on attempt %d", context, attempt)
        return parsed
    logger.warning(
        "All %d JSON repair attempts failed for %s (first 200 chars: %s)",
        len(REPAIR_TIERS),
        context,
        raw[:200],
    )
    raise AIResponseParseError(
        f"Invalid JSON response from {context} after {len(REPAIR_TIERS)} attempts",
        attempts=len(REPAIR_TIERS),
    )
