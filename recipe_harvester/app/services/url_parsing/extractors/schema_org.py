"""Generic schema.org scraper: JSON-LD, then microdata, then broad selectors."""

import logging
from typing import List, Optional, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from recipe_harvester.app.services.url_parsing.constants import (
    METHOD_CSS_SELECTORS,
    METHOD_MICRODATA,
)
from recipe_harvester.app.services.url_parsing.extractors.base import SiteScraper
from recipe_harvester.app.services.url_parsing.models import RecipeDraft
from recipe_harvester.app.services.url_parsing.parsing_utils import (
    clean_instruction,
    clean_text,
    parse_servings,
    to_iso8601_duration,
)

logger = logging.getLogger(__name__)


def _itemprop_value(element: Tag) -> str:
    for attr in ("content", "datetime", "src", "href"):
        value = element.get(attr)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return clean_text(element.get_text(" ", strip=True))


def _itemprops(scope: Tag, *names: str) -> List[Tag]:
    for name in names:
        found = scope.find_all(attrs={"itemprop": name})
        if found:
            return found
    return []


def _first_itemprop(scope: Tag, *names: str) -> Optional[str]:
    for element in _itemprops(scope, *names):
        value = _itemprop_value(element)
        if value:
            return value
    return None


def extract_microdata_recipe(soup: BeautifulSoup, url: str) -> Optional[RecipeDraft]:
    """Read a ``itemtype=schema.org/Recipe`` microdata scope into a draft."""
    scope = soup.select_one('[itemtype*="schema.org/Recipe"]')
    if scope is None:
        return None
    title = _first_itemprop(scope, "name")
    if not title:
        return None

    ingredients = [
        clean_text(el.get_text(" ", strip=True))
        for el in _itemprops(scope, "recipeIngredient", "ingredients")
    ]
    instructions: List[str] = []
    for element in _itemprops(scope, "recipeInstructions"):
        items = element.find_all("li")
        texts = [li.get_text(" ", strip=True) for li in items] if items else [element.get_text(" ", strip=True)]
        instructions.extend(clean_instruction(t) for t in texts)
    image = _first_itemprop(scope, "image")
    return RecipeDraft(
        title=clean_text(title),
        description=_first_itemprop(scope, "description"),
        image=urljoin(url, image) if image else None,
        prep_time=to_iso8601_duration(_first_itemprop(scope, "prepTime")),
        cook_time=to_iso8601_duration(_first_itemprop(scope, "cookTime")),
        total_time=to_iso8601_duration(_first_itemprop(scope, "totalTime")),
        servings=parse_servings(_first_itemprop(scope, "recipeYield", "yield")),
        ingredients=[i for i in ingredients if i],
        instructions=[s for s in instructions if s],
        source_url=url,
    )


class JsonLdScraper(SiteScraper):
    """Accepts every host; always the last entry in the registry."""

    name = "JSON-LD"
    selector_method = METHOD_CSS_SELECTORS

    title_selectors = ("h1", ".recipe-title", ".entry-title", '[itemprop="name"]', "title")
    description_selectors = (".recipe-description", ".entry-summary", '[itemprop="description"]', ".summary")
    image_selectors = (".recipe-image img", ".entry-image img", '[itemprop="image"]')
    ingredient_selectors = (
        ".recipe-ingredient",
        ".ingredients li",
        '[itemprop="recipeIngredient"]',
        ".ingredient",
        ".recipe-ingredients li",
        ".ingredients-section li",
    )
    instruction_selectors = (
        ".recipe-instruction",
        ".instructions li",
        ".directions li",
        '[itemprop="recipeInstructions"]',
        ".instruction",
        ".recipe-instructions li",
        ".method li",
        ".directions-section li",
    )
    prep_time_selectors = (".prep-time", ".recipe-prep-time")
    cook_time_selectors = (".cook-time", ".recipe-cook-time")
    total_time_selectors = (".total-time", ".recipe-total-time")
    servings_selectors = (".servings", ".recipe-servings", ".recipe-yield", ".yield")
    difficulty_selectors = (".difficulty", ".recipe-difficulty")

    def can_handle(self, hostname: str) -> bool:
        return True

    def extract_fallback(self, soup: BeautifulSoup, url: str) -> Tuple[Optional[RecipeDraft], str]:
        microdata = extract_microdata_recipe(soup, url)
        if microdata is not None:
            logger.info("Found schema.org microdata recipe for %s", url)
            return microdata, METHOD_MICRODATA
        return self.extract_with_selectors(soup, url), METHOD_CSS_SELECTORS
