"""Schema.org JSON-LD helpers: block loading, Recipe search and draft parsing."""

import logging
from typing import Dict, Iterator, List, Optional, Union

from bs4 import BeautifulSoup

from recipe_harvester.app.services.url_parsing.errors import AIResponseParseError
from recipe_harvester.app.services.url_parsing.json_repair import parse_json_response
from recipe_harvester.app.services.url_parsing.models import RecipeDraft
from recipe_harvester.app.services.url_parsing.parsing_utils import (
    clean_text,
    extract_image,
    parse_servings,
    split_list_value,
    to_iso8601_duration,
    unique,
)

logger = logging.getLogger(__name__)

JsonValue = Union[None, bool, int, float, str, List["JsonValue"], Dict[str, "JsonValue"]]
JsonObject = Dict[str, JsonValue]

INGREDIENT_KEYS = (
    "recipeIngredient",
    "ingredients",
    "recipeIngredients",
    "ingredient",
    "recipeMaterial",
)
INSTRUCTION_KEYS = ("recipeInstructions", "steps", "method", "directions", "preparation")
STEP_TEXT_KEYS = ("text", "name", "description", "instruction", "step")
STEP_CONTAINER_KEYS = ("itemListElement", "hasStep", "steps")


def has_type(node: JsonValue, type_name: str) -> bool:
    """True when ``node['@type']`` equals (or lists) ``type_name``, ignoring case and prefixes."""
    if not isinstance(node, dict):
        return False
    declared = node.get("@type")
    types = declared if isinstance(declared, list) else [declared]
    target = type_name.lower()
    for value in types:
        if isinstance(value, str) and value.rsplit("/", 1)[-1].lower() == target:
            return True
    return False


def load_json_ld_blocks(soup: BeautifulSoup) -> List[JsonValue]:
    """Parse every ``application/ld+json`` script, repairing broken ones where possible."""
    blocks: List[JsonValue] = []
    scripts = soup.find_all("script", attrs={"type": "application/ld+json"})
    for idx, script in enumerate(scripts):
        raw_json = script.string or script.get_text()
        if not raw_json or not raw_json.strip():
            continue
        try:
            blocks.append(parse_json_response(raw_json, context=f"JSON-LD block {idx}"))
        except AIResponseParseError as exc:
            logger.warning("JSON-LD block %d could not be parsed: %s", idx, exc)
    return blocks


def find_recipe_node(value: JsonValue) -> Optional[JsonObject]:
    """Depth-first search for the first object typed ``Recipe``.

    Handles bare objects, arrays, ``@graph`` wrappers and recipes nested
    arbitrarily deep inside unrelated objects (``mainEntity`` and friends).
    """
    if isinstance(value, dict):
        if has_type(value, "Recipe"):
            return value
        for child in value.values():
            found = find_recipe_node(child)
            if found is not None:
                return found
    elif isinstance(value, list):
        for item in value:
            found = find_recipe_node(item)
            if found is not None:
                return found
    return None


def find_recipe_in_page(soup: BeautifulSoup) -> Optional[JsonObject]:
    for block in load_json_ld_blocks(soup):
        node = find_recipe_node(block)
        if node is not None:
            return node
    return None


def _text_of(value: JsonValue) -> str:
    if isinstance(value, str):
        return clean_text(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, dict):
        for key in ("text", "name", "description"):
            if isinstance(value.get(key), str) and value[key].strip():
                return clean_text(value[key])
    return ""


def iter_ingredient_texts(value: JsonValue) -> Iterator[str]:
    if isinstance(value, str):
        text = clean_text(value)
        if text:
            yield text
    elif isinstance(value, list):
        for item in value:
            yield from iter_ingredient_texts(item)
    elif isinstance(value, dict):
        nested = value.get("itemListElement")
        if isinstance(nested, list):
            yield from iter_ingredient_texts(nested)
            return
        text = _text_of(value)
        if text:
            yield text


def extract_ingredients(node: JsonObject) -> List[str]:
    """Find ingredient strings under any of the known (or improvised) keys."""
    for key in INGREDIENT_KEYS:
        found = list(iter_ingredient_texts(node.get(key)))
        if found:
            return found
    nutrition = node.get("nutrition")
    if isinstance(nutrition, dict):
        found = list(iter_ingredient_texts(nutrition.get("ingredients")))
        if found:
            return found
    for key, value in node.items():
        if "ingredient" in key.lower():
            found = list(iter_ingredient_texts(value))
            if found:
                return found
    return []


def iter_instruction_texts(value: JsonValue) -> Iterator[str]:
    """Flatten HowToStep / HowToSection / ItemList structures into step text."""
    if isinstance(value, str):
        for line in value.splitlines():
            text = clean_text(line)
            if text:
                yield text
        return
    if isinstance(value, list):
        ordered = value
        if value and all(isinstance(item, dict) and "position" in item for item in value):
            ordered = sorted(value, key=lambda item: _position(item))
        for item in ordered:
            yield from iter_instruction_texts(item)
        return
    if not isinstance(value, dict):
        return
    for key in STEP_CONTAINER_KEYS:
        children = value.get(key)
        if isinstance(children, (list, dict)):
            yield from iter_instruction_texts(children)
            return
    if has_type(value, "HowToSection") or has_type(value, "ItemList"):
        return
    for key in STEP_TEXT_KEYS:
        text = value.get(key)
        if isinstance(text, str) and clean_text(text):
            yield clean_text(text)
            return


def _position(item: JsonObject) -> float:
    try:
        return float(item.get("position"))
    except (TypeError, ValueError):
        return float("inf")


def extract_instructions(node: JsonObject) -> List[str]:
    for key in INSTRUCTION_KEYS:
        found = list(iter_instruction_texts(node.get(key)))
        if found:
            return found
    return []


def recipe_draft_from_node(node: JsonObject, source_url: Optional[str] = None) -> RecipeDraft:
    """Parse a (normalized) JSON-LD Recipe node into a RecipeDraft."""
    title = _text_of(node.get("name")) or _text_of(node.get("headline"))
    description = _text_of(node.get("description")) or None
    difficulty = node.get("difficulty") or node.get("skillLevel")
    tags = split_list_value(node.get("recipeCategory")) + split_list_value(node.get("recipeCuisine"))
    return RecipeDraft(
        title=title,
        description=description,
        image=extract_image(node.get("image")),
        prep_time=to_iso8601_duration(node.get("prepTime")),
        cook_time=to_iso8601_duration(node.get("cookTime")),
        total_time=to_iso8601_duration(node.get("totalTime")),
        servings=parse_servings(node.get("recipeYield") or node.get("yield")),
        difficulty=clean_text(difficulty) if isinstance(difficulty, str) and difficulty.strip() else None,
        ingredients=extract_ingredients(node),
        instructions=extract_instructions(node),
        tags=unique(tags),
        source_url=source_url,
    )
