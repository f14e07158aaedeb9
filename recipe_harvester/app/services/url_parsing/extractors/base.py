"""Site scraper strategy base class.

Every scraper runs the same two stages: JSON-LD first, then an ordered list
of CSS selectors per field when the structured data produced no title.
Subclasses only declare which hosts they handle and which selectors to use.
"""

import logging
from typing import List, Optional, Sequence, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from recipe_harvester.app.services.url_parsing.constants import (
    METHOD_JSON_LD,
    METHOD_SITE_SPECIFIC,
)
from recipe_harvester.app.services.url_parsing.errors import ScraperError
from recipe_harvester.app.services.url_parsing.json_ld import (
    find_recipe_in_page,
    recipe_draft_from_node,
)
from recipe_harvester.app.services.url_parsing.models import ExtractionResult, RecipeDraft
from recipe_harvester.app.services.url_parsing.normalizer import normalize_recipe_node
from recipe_harvester.app.services.url_parsing.parsing_utils import (
    clean_instruction,
    clean_text,
    hostname_for,
    parse_servings,
    to_iso8601_duration,
    unique,
)
from recipe_harvester.app.services.url_parsing.scoring import calculate_confidence, clamp_confidence
from recipe_harvester.app.services.url_parsing.validation import validate_recipe

logger = logging.getLogger(__name__)

Selectors = Tuple[str, ...]

IMAGE_ATTRIBUTES = ("src", "data-src", "data-lazy-src", "data-original", "content")


def select_text(soup: BeautifulSoup, selectors: Sequence[str]) -> Optional[str]:
    """Text of the first element matched by the first selector that matches anything."""
    for selector in selectors:
        for element in soup.select(selector):
            text = clean_text(element.get("content") or element.get_text(" ", strip=True))
            if text:
                return text
    return None


def select_texts(soup: BeautifulSoup, selectors: Sequence[str]) -> List[str]:
    """All non-empty texts for the first selector that yields any."""
    for selector in selectors:
        texts = [clean_text(el.get_text(" ", strip=True)) for el in soup.select(selector)]
        texts = [text for text in texts if text]
        if texts:
            return texts
    return []


def select_image(soup: BeautifulSoup, selectors: Sequence[str], base_url: str) -> Optional[str]:
    for selector in selectors:
        for element in soup.select(selector):
            for attr in IMAGE_ATTRIBUTES:
                value = element.get(attr)
                if isinstance(value, str) and value.strip() and not value.startswith("data:"):
                    return urljoin(base_url, value.strip())
    return None


class SiteScraper:
    """Base strategy; subclasses override the class attributes below."""

    name = "Generic"
    hostnames: Selectors = ()
    site_tag: Optional[str] = None
    extra_tags: Selectors = ()
    confidence_bonus = 0.0
    selector_method = METHOD_SITE_SPECIFIC

    title_selectors: Selectors = ()
    description_selectors: Selectors = ()
    image_selectors: Selectors = ()
    ingredient_selectors: Selectors = ()
    instruction_selectors: Selectors = ()
    prep_time_selectors: Selectors = ()
    cook_time_selectors: Selectors = ()
    total_time_selectors: Selectors = ()
    servings_selectors: Selectors = ()
    difficulty_selectors: Selectors = ()

    def can_handle(self, hostname: str) -> bool:
        host = (hostname or "").lower()
        return any(fragment in host for fragment in self.hostnames)

    async def scrape(self, url: str, soup: BeautifulSoup, html: str) -> ExtractionResult:
        """Run both stages; never raises."""
        try:
            return self._scrape(url, soup, html)
        except Exception as exc:  # noqa: BLE001
            error = exc if isinstance(exc, ScraperError) else ScraperError(f"{self.name} parsing error: {exc}")
            logger.warning("%s scraper failed for %s: %s", self.name, url, error)
            return ExtractionResult(
                recipe=None, confidence=0.0, method=self.selector_method, issues=[str(error)]
            )

    def _scrape(self, url: str, soup: BeautifulSoup, html: str) -> ExtractionResult:
        issues: List[str] = []
        draft = self.extract_structured(soup, url, issues)
        method = METHOD_JSON_LD
        if draft is None or not draft.title:
            draft, method = self.extract_fallback(soup, url)
        if draft is None or not draft.title:
            return ExtractionResult(
                recipe=None,
                confidence=0.0,
                method=method,
                issues=issues + [f"No recipe found using {self.name} extractors"],
            )

        draft = draft.model_copy(
            update={"tags": unique(list(draft.tags) + self._site_tags()), "source_url": url}
        )
        issues.extend(validate_recipe(draft))
        confidence = calculate_confidence(draft, method, url)
        confidence += self.adjust_confidence(soup, html, draft, issues)
        logger.info(
            "%s scraper: method=%s ingredients=%d instructions=%d confidence=%.2f",
            self.name,
            method,
            len(draft.ingredients),
            len(draft.instructions),
            confidence,
        )
        return ExtractionResult(
            recipe=draft, confidence=clamp_confidence(confidence), method=method, issues=issues
        )

    def _site_tags(self) -> List[str]:
        return ([self.site_tag] if self.site_tag else []) + list(self.extra_tags)

    def adjust_confidence(
        self, soup: BeautifulSoup, html: str, draft: RecipeDraft, issues: List[str]
    ) -> float:
        """Publisher-specific confidence adjustment; may append issues."""
        return self.confidence_bonus

    def extract_structured(
        self, soup: BeautifulSoup, url: str, issues: List[str]
    ) -> Optional[RecipeDraft]:
        node = find_recipe_in_page(soup)
        if node is None:
            return None
        normalized = normalize_recipe_node(node, hostname_for(url))
        issues.extend(normalized.issues)
        return recipe_draft_from_node(normalized.recipe, source_url=url)

    def extract_fallback(self, soup: BeautifulSoup, url: str) -> Tuple[Optional[RecipeDraft], str]:
        return self.extract_with_selectors(soup, url), self.selector_method

    def extract_with_selectors(self, soup: BeautifulSoup, url: str) -> Optional[RecipeDraft]:
        title = select_text(soup, self.title_selectors)
        if not title:
            return None
        instructions = [clean_instruction(s) for s in select_texts(soup, self.instruction_selectors)]
        return RecipeDraft(
            title=title,
            description=select_text(soup, self.description_selectors),
            image=select_image(soup, self.image_selectors, url),
            prep_time=to_iso8601_duration(select_text(soup, self.prep_time_selectors)),
            cook_time=to_iso8601_duration(select_text(soup, self.cook_time_selectors)),
            total_time=to_iso8601_duration(select_text(soup, self.total_time_selectors)),
            servings=parse_servings(select_text(soup, self.servings_selectors)),
            difficulty=select_text(soup, self.difficulty_selectors),
            ingredients=select_texts(soup, self.ingredient_selectors),
            instructions=[s for s in instructions if s],
            source_url=url,
        )
