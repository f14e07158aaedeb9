"""Publisher-specific repairs for JSON-LD Recipe nodes.

``normalize_recipe_node`` is pure: it deep-copies the node, runs the rule set
for the hostname plus the generic rules, and reports which rules fired.
Every rule is idempotent, so normalizing an already normalized node reports
``improved=False``.
"""

import copy
import logging
import re
from typing import Callable, List, Optional, Sequence, Tuple

from recipe_harvester.app.services.url_parsing.errors import NormalizationError
from recipe_harvester.app.services.url_parsing.json_ld import JsonObject, JsonValue, has_type
from recipe_harvester.app.services.url_parsing.models import NormalizationResult
from recipe_harvester.app.services.url_parsing.parsing_utils import (
    format_iso8601_duration,
    is_iso8601_duration,
    parse_free_text_duration,
)

logger = logging.getLogger(__name__)

# A rule edits the node in place and returns an issue message when it changed something.
Rule = Callable[[JsonObject], Optional[str]]

INSTRUCTIONS_KEY = "recipeInstructions"
INGREDIENTS_KEY = "recipeIngredient"
DURATION_KEYS = ("prepTime", "cookTime", "totalTime")

TIP_PATTERNS = [
    re.compile(p, re.I)
    for p in (r"^tip:", r"^note:", r"^chef'?s note:", r"^variation:", r"^storage:", r"^make ahead:")
]
COMMUNITY_ASIDE_PATTERNS = [
    re.compile(r"\s*" + re.escape(p), re.I)
    for p in (
        "(this is what I do)",
        "(my preference)",
        "(optional, but recommended)",
        "(trust me on this)",
        "(learned this the hard way)",
    )
]
REGIONAL_TERMS = {
    "caster sugar": "superfine sugar",
    "plain flour": "all-purpose flour",
    "self-raising flour": "self-rising flour",
    "bicarbonate of soda": "baking soda",
    "cornflour": "cornstarch",
    "double cream": "heavy cream",
    "single cream": "light cream",
    "icing sugar": "powdered sugar",
}
_REGIONAL_TERM_PATTERNS = [
    (re.compile(rf"\b{re.escape(uk)}\b", re.I), us) for uk, us in REGIONAL_TERMS.items()
]
VERBOSE_INGREDIENT_PATTERNS = [
    re.compile(r",\s*such as [^,()]+", re.I),
    re.compile(r"\s*\([^)]*see note[^)]*\)", re.I),
    re.compile(r",\s*or to taste\b", re.I),
    re.compile(r",\s*more as needed\b", re.I),
]
_RANGE_RE = re.compile(r"(\d+)\s+-\s*(\d+)|(\d+)\s*-\s+(\d+)")


def _step_text(entry: JsonValue) -> Optional[str]:
    if isinstance(entry, str):
        return entry
    if isinstance(entry, dict) and isinstance(entry.get("text"), str):
        return entry["text"]
    return None


def _with_step_text(entry: JsonValue, text: str) -> JsonValue:
    if isinstance(entry, dict):
        entry["text"] = text
        return entry
    return text


def _rewrite_instruction_text(node: JsonObject, rewrite: Callable[[str], str]) -> bool:
    instructions = node.get(INSTRUCTIONS_KEY)
    if not isinstance(instructions, list):
        return False
    changed = False
    for idx, entry in enumerate(instructions):
        text = _step_text(entry)
        if text is None:
            continue
        updated = rewrite(text)
        if updated != text:
            instructions[idx] = _with_step_text(entry, updated)
            changed = True
    return changed


def _rewrite_ingredients(node: JsonObject, rewrite: Callable[[str], str]) -> bool:
    ingredients = node.get(INGREDIENTS_KEY)
    if not isinstance(ingredients, list):
        return False
    changed = False
    for idx, entry in enumerate(ingredients):
        if not isinstance(entry, str):
            continue
        updated = rewrite(entry)
        if updated != entry:
            ingredients[idx] = updated
            changed = True
    return changed


def _is_wrapper(entry: JsonValue) -> bool:
    return isinstance(entry, dict) and (
        has_type(entry, "HowToSection")
        or has_type(entry, "ItemList")
        or (not has_type(entry, "HowToStep") and ("itemListElement" in entry or "hasStep" in entry))
    )


def _flatten_steps(entries: Sequence[JsonValue]) -> List[JsonValue]:
    flat: List[JsonValue] = []
    for entry in entries:
        if _is_wrapper(entry):
            children = entry.get("itemListElement") or entry.get("hasStep") or []
            if isinstance(children, dict):
                children = [children]
            if not isinstance(children, list):
                raise NormalizationError(f"unexpected section contents: {type(children).__name__}")
            flat.extend(_flatten_steps(children))
        else:
            flat.append(entry)
    return flat


def flatten_instruction_sections(node: JsonObject) -> Optional[str]:
    instructions = node.get(INSTRUCTIONS_KEY)
    if isinstance(instructions, dict):
        if not _is_wrapper(instructions):
            return None
        instructions = [instructions]
    elif not isinstance(instructions, list) or not any(_is_wrapper(e) for e in instructions):
        return None
    flattened = _flatten_steps(instructions)
    node[INSTRUCTIONS_KEY] = flattened
    return f"Flattened sectioned instructions into {len(flattened)} steps"


def unwrap_ingredient_objects(node: JsonObject) -> Optional[str]:
    ingredients = node.get(INGREDIENTS_KEY)
    if not isinstance(ingredients, list) or not any(isinstance(e, dict) for e in ingredients):
        return None
    unwrapped: List[JsonValue] = []
    for entry in ingredients:
        if isinstance(entry, dict):
            text = entry.get("text") or entry.get("name")
            if isinstance(text, str):
                unwrapped.append(text)
        else:
            unwrapped.append(entry)
    node[INGREDIENTS_KEY] = unwrapped
    return "Converted ingredient objects to text"


def _flatten_ingredient_entries(entries: Sequence[JsonValue]) -> List[JsonValue]:
    flat: List[JsonValue] = []
    for entry in entries:
        if isinstance(entry, list):
            flat.extend(_flatten_ingredient_entries(entry))
        elif isinstance(entry, dict) and isinstance(entry.get("itemListElement"), list):
            flat.extend(_flatten_ingredient_entries(entry["itemListElement"]))
        elif isinstance(entry, dict):
            text = entry.get("text") or entry.get("name")
            if isinstance(text, str):
                flat.append(text)
        elif isinstance(entry, str):
            flat.append(entry)
    return flat


def flatten_ingredient_lists(node: JsonObject) -> Optional[str]:
    ingredients = node.get(INGREDIENTS_KEY)
    if isinstance(ingredients, dict):
        ingredients = [ingredients]
    elif not isinstance(ingredients, list) or all(isinstance(e, str) for e in ingredients):
        return None
    node[INGREDIENTS_KEY] = _flatten_ingredient_entries(ingredients)
    return "Flattened nested ingredient lists"


def _translate(text: str) -> str:
    for pattern, replacement in _REGIONAL_TERM_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def translate_regional_terms(node: JsonObject) -> Optional[str]:
    changed = _rewrite_ingredients(node, _translate)
    changed = _rewrite_instruction_text(node, _translate) or changed
    return "Translated regional ingredient terms" if changed else None


def strip_editorial_tips(node: JsonObject) -> Optional[str]:
    instructions = node.get(INSTRUCTIONS_KEY)
    if not isinstance(instructions, list):
        return None
    kept = []
    for entry in instructions:
        text = _step_text(entry)
        if text is not None and any(p.match(text.strip()) for p in TIP_PATTERNS):
            continue
        kept.append(entry)
    removed = len(instructions) - len(kept)
    if not removed:
        return None
    node[INSTRUCTIONS_KEY] = kept
    return f"Removed {removed} editorial tips from instructions"


def _trim_verbose(text: str) -> str:
    for pattern in VERBOSE_INGREDIENT_PATTERNS:
        text = pattern.sub("", text)
    return text.strip()


def trim_verbose_ingredients(node: JsonObject) -> Optional[str]:
    if _rewrite_ingredients(node, _trim_verbose):
        return "Trimmed verbose ingredient qualifiers"
    return None


def _strip_asides(text: str) -> str:
    for pattern in COMMUNITY_ASIDE_PATTERNS:
        text = pattern.sub("", text)
    return text.strip()


def strip_community_asides(node: JsonObject) -> Optional[str]:
    if _rewrite_instruction_text(node, _strip_asides):
        return "Removed personal asides from instructions"
    return None


def _tidy_ingredient(text: str) -> str:
    text = re.sub(r"\s+", " ", text).strip()
    return _RANGE_RE.sub(lambda m: f"{m.group(1) or m.group(3)}-{m.group(2) or m.group(4)}", text)


def tidy_ingredient_formatting(node: JsonObject) -> Optional[str]:
    if _rewrite_ingredients(node, _tidy_ingredient):
        return "Tidied ingredient formatting"
    return None


def _is_empty_entry(entry: JsonValue) -> bool:
    if entry is None:
        return True
    if isinstance(entry, str):
        return not entry.strip()
    if isinstance(entry, dict) and not _is_wrapper(entry):
        return not any(
            isinstance(entry.get(key), str) and entry[key].strip()
            for key in ("text", "name", "description")
        )
    return False


def drop_empty_entries(node: JsonObject) -> Optional[str]:
    messages = []
    for key, label in ((INSTRUCTIONS_KEY, "instructions"), (INGREDIENTS_KEY, "ingredients")):
        entries = node.get(key)
        if not isinstance(entries, list):
            continue
        kept = [entry for entry in entries if not _is_empty_entry(entry)]
        if len(kept) != len(entries):
            node[key] = kept
            messages.append(f"Removed empty {label}")
    return "; ".join(messages) or None


def normalize_durations(node: JsonObject) -> Optional[str]:
    converted = []
    for key in DURATION_KEYS:
        value = node.get(key)
        if not isinstance(value, str) or not value.strip() or is_iso8601_duration(value.strip()):
            continue
        minutes = parse_free_text_duration(value)
        iso = format_iso8601_duration(minutes) if minutes is not None else None
        if iso:
            node[key] = iso
            converted.append(key)
    if converted:
        return f"Converted {', '.join(converted)} to ISO-8601 durations"
    return None


HOST_RULES: Tuple[Tuple[str, Tuple[Rule, ...]], ...] = (
    ("foodnetwork.com", (flatten_instruction_sections, unwrap_ingredient_objects)),
    (
        "bbcgoodfood.com",
        (flatten_instruction_sections, flatten_ingredient_lists, translate_regional_terms),
    ),
    ("simplyrecipes.com", (strip_editorial_tips, trim_verbose_ingredients)),
    ("food52.com", (strip_community_asides, tidy_ingredient_formatting)),
)
GENERIC_RULES: Tuple[Rule, ...] = (drop_empty_entries, normalize_durations)


def rules_for_host(hostname: str) -> List[Rule]:
    host = (hostname or "").lower()
    rules: List[Rule] = []
    for fragment, host_rules in HOST_RULES:
        if fragment in host:
            rules.extend(host_rules)
    rules.extend(GENERIC_RULES)
    return rules


def normalize_recipe_node(node: JsonObject, hostname: str) -> NormalizationResult:
    """Return a repaired deep copy of ``node`` for ``hostname``."""
    working = copy.deepcopy(node)
    issues: List[str] = []
    for rule in rules_for_host(hostname):
        candidate = copy.deepcopy(working)
        try:
            message = rule(candidate)
        except (NormalizationError, TypeError, ValueError, AttributeError, KeyError) as exc:
            error = exc if isinstance(exc, NormalizationError) else NormalizationError(str(exc))
            logger.warning("Normalization rule %s failed for %s: %s", rule.__name__, hostname, error)
            issues.append(f"Normalization failed: {rule.__name__}: {error}")
            continue
        if message:
            working = candidate
            issues.append(message)
    improved = any(not issue.startswith("Normalization failed") for issue in issues)
    if improved:
        logger.debug("Normalized JSON-LD for %s: %s", hostname, "; ".join(issues))
    return NormalizationResult(recipe=working, improved=improved, issues=issues)
