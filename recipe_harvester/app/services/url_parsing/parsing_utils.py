"""General parsing utilities for recipe extraction."""

import html
import re
from typing import Iterable, List, Optional, Union
from urllib.parse import urlparse

from recipe_harvester.app.services.url_parsing.constants import FRACTION_MAP

Number = Union[int, float]

_ISO_DURATION_RE = re.compile(
    r"^P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?)?$", re.I
)
_HOURS_RE = re.compile(
    r"(?:(?P<whole>\d+)\s+)?(?P<num>\d+(?:\.\d+)?)(?:/(?P<den>\d+))?\s*(?:hours?\b|hrs?\b|h(?![a-z]))",
    re.I,
)
_MINUTES_RE = re.compile(r"(\d+)\s*(?:minutes?|mins?|m)\b", re.I)
_SERVINGS_RE = re.compile(
    r"(?P<lo>\d+(?:\.\d+)?)\s*(?:-|–|—|to)\s*(?P<hi>\d+(?:\.\d+)?)"
    r"|(?P<whole>\d+)\s+(?P<num>\d+)/(?P<den>\d+)"
    r"|(?P<fnum>\d+)/(?P<fden>\d+)"
    r"|(?P<plain>\d+(?:\.\d+)?)"
)
_STEP_PREFIX_RE = re.compile(r"^(?:step\s*\d+\s*[:.)-]?\s*|\d+\s*[.)]\s+)", re.I)
_TAG_RE = re.compile(r"<[^>]+>")


def clean_text(text: str) -> str:
    """Normalize whitespace in text."""
    return re.sub(r"\s+", " ", text or "").strip()


def strip_html(text: str) -> str:
    """Remove tags and decode entities, then normalize whitespace."""
    if not text:
        return ""
    return clean_text(html.unescape(_TAG_RE.sub(" ", text)))


def clean_instruction(text: str) -> str:
    """Strip leading step numbering such as ``1.`` or ``Step 2:``."""
    return clean_text(_STEP_PREFIX_RE.sub("", clean_text(text)))


def replace_unicode_fractions(text: str) -> str:
    fraction_chars = "".join(FRACTION_MAP.keys())
    text = re.sub(rf"(\d)([{fraction_chars}])", r"\1 \2", text)
    for char, ascii_value in FRACTION_MAP.items():
        text = text.replace(char, ascii_value)
    return text


def hostname_for(url: str) -> str:
    return (urlparse(url).hostname or "").lower()


def parse_iso8601_duration(duration: str) -> Optional[int]:
    """Parse an ISO-8601 duration string (e.g., PT1H30M) into minutes."""
    if not duration:
        return None
    match = _ISO_DURATION_RE.match(duration.strip())
    if not match or not any(match.groups()):
        return None
    days = int(match.group(1) or 0)
    hours = int(match.group(2) or 0)
    minutes = int(match.group(3) or 0)
    seconds = float(match.group(4) or 0)
    return days * 24 * 60 + hours * 60 + minutes + (1 if seconds >= 30 else 0)


def parse_free_text_duration(text: str) -> Optional[int]:
    """Parse durations like ``1 hour 30 minutes`` or ``45 mins`` into minutes."""
    if not text:
        return None
    text = replace_unicode_fractions(text)
    hours_match = _HOURS_RE.search(text)
    minutes_match = _MINUTES_RE.search(text)
    if not hours_match and not minutes_match:
        return None
    hours = _hours_value(hours_match) if hours_match else 0.0
    minutes = int(minutes_match.group(1)) if minutes_match else 0
    return int(round(hours * 60)) + minutes


def _hours_value(match: re.Match) -> float:
    hours = float(match.group("num"))
    if match.group("den"):
        denominator = int(match.group("den"))
        hours = hours / denominator if denominator else 0.0
    return hours + int(match.group("whole") or 0)


def format_iso8601_duration(minutes: int) -> Optional[str]:
    if minutes is None or minutes <= 0:
        return None
    hours, remainder = divmod(int(minutes), 60)
    parts = "PT"
    if hours:
        parts += f"{hours}H"
    if remainder:
        parts += f"{remainder}M"
    return parts


def is_iso8601_duration(value: str) -> bool:
    return bool(value) and parse_iso8601_duration(value) is not None


def to_iso8601_duration(value) -> Optional[str]:
    """Convert ISO, free-text or numeric (minutes) durations to ``PT#H#M``.

    Text that cannot be parsed is returned cleaned but otherwise unchanged.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return format_iso8601_duration(int(value))
    if not isinstance(value, str):
        return None
    text = clean_text(value)
    if not text:
        return None
    iso_minutes = parse_iso8601_duration(text)
    if iso_minutes is not None:
        return format_iso8601_duration(iso_minutes) or text.upper()
    minutes = parse_free_text_duration(text)
    if minutes is not None:
        return format_iso8601_duration(minutes)
    return text


def _as_number(value: float) -> Number:
    return int(value) if float(value).is_integer() else round(value, 2)


def parse_servings(value) -> Optional[Number]:
    """Parse servings from various formats.

    Lists use their first parseable entry. Ranges such as ``4-6`` resolve to
    their midpoint, mixed numbers and fractions are evaluated.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _as_number(value) if value > 0 else None
    if isinstance(value, list):
        for item in value:
            parsed = parse_servings(item)
            if parsed is not None:
                return parsed
        return None
    if not isinstance(value, str):
        return None
    match = _SERVINGS_RE.search(replace_unicode_fractions(value))
    if not match:
        return None
    if match.group("lo"):
        result = (float(match.group("lo")) + float(match.group("hi"))) / 2
    elif match.group("whole"):
        den = int(match.group("den"))
        if not den:
            return None
        result = int(match.group("whole")) + int(match.group("num")) / den
    elif match.group("fnum"):
        den = int(match.group("fden"))
        if not den:
            return None
        result = int(match.group("fnum")) / den
    else:
        result = float(match.group("plain"))
    return _as_number(result) if result > 0 else None


def extract_image(value) -> Optional[str]:
    """Extract image URL from various schema.org image formats."""
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        url = value.get("url") or value.get("contentUrl")
        return url.strip() if isinstance(url, str) and url.strip() else None
    if isinstance(value, list):
        for item in value:
            found = extract_image(item)
            if found:
                return found
    return None


def split_list_value(value) -> List[str]:
    """Flatten a string-or-list field (e.g. ``recipeCategory``) into clean strings."""
    if not value:
        return []
    items: Iterable = value if isinstance(value, list) else [value]
    result: List[str] = []
    for item in items:
        if isinstance(item, str):
            result.extend(clean_text(part) for part in item.split(",") if clean_text(part))
        elif isinstance(item, dict) and isinstance(item.get("name"), str):
            result.append(clean_text(item["name"]))
    return result


def unique(values: Iterable[str]) -> List[str]:
    """De-duplicate case-insensitively, keeping first occurrence order."""
    seen = set()
    result: List[str] = []
    for value in values:
        key = value.lower()
        if value and key not in seen:
            seen.add(key)
            result.append(value)
    return result
