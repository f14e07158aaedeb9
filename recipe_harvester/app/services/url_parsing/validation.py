"""Recipe draft validation and final cleanup."""

import logging
import re
from typing import List, Optional

from recipe_harvester.app.services.url_parsing.models import RecipeDraft
from recipe_harvester.app.services.url_parsing.parsing_utils import (
    clean_instruction,
    strip_html,
    unique,
)

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
MIN_SERVINGS = 1
MAX_SERVINGS = 100
_TERMINAL_PUNCTUATION_RE = re.compile(r"[.!?…)\"']$")


def is_usable_recipe(recipe: Optional[RecipeDraft]) -> bool:
    """A draft counts as a recipe when it has a title and ingredients or instructions."""
    return bool(recipe and recipe.title and (recipe.ingredients or recipe.instructions))


def validate_recipe(recipe: Optional[RecipeDraft]) -> List[str]:
    if recipe is None:
        return ["No recipe found"]
    issues = []
    if not recipe.title:
        issues.append("Missing title")
    if not recipe.ingredients:
        issues.append("Missing ingredients")
    if not recipe.instructions:
        issues.append("Missing instructions")
    return issues


def _as_sentence(text: str) -> str:
    sentence = clean_instruction(strip_html(text))
    if not sentence:
        return ""
    sentence = sentence[0].upper() + sentence[1:]
    if not _TERMINAL_PUNCTUATION_RE.search(sentence):
        sentence += "."
    return sentence


def clean_recipe_draft(recipe: RecipeDraft, source_url: Optional[str] = None) -> RecipeDraft:
    """Strip markup, normalize instruction sentences and drop out-of-range values."""
    title = strip_html(recipe.title)
    if len(title) > MAX_TITLE_LENGTH:
        title = title[:MAX_TITLE_LENGTH].rstrip()
    servings = recipe.servings
    if servings is not None and not (MIN_SERVINGS <= servings <= MAX_SERVINGS):
        logger.info("Dropping out-of-range servings value %s for %s", servings, title)
        servings = None
    ingredients = [strip_html(i) for i in recipe.ingredients]
    instructions = [_as_sentence(s) for s in recipe.instructions]
    return recipe.model_copy(
        update={
            "title": title,
            "description": strip_html(recipe.description or "") or None,
            "servings": servings,
            "difficulty": strip_html(recipe.difficulty or "") or None,
            "ingredients": [i for i in ingredients if i],
            "instructions": [s for s in instructions if s],
            "tags": unique(strip_html(t) for t in recipe.tags),
            "source_url": recipe.source_url or source_url,
        }
    )
