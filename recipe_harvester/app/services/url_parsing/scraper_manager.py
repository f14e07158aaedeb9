"""Runs every applicable scraper over a page and picks the best result."""

import logging
from typing import List, Optional, Sequence

from bs4 import BeautifulSoup

from recipe_harvester.app.services.url_parsing import constants as c
from recipe_harvester.app.services.url_parsing.errors import AIExtractionError
from recipe_harvester.app.services.url_parsing.extractors.base import SiteScraper
from recipe_harvester.app.services.url_parsing.extractors.heuristic import (
    GenericHtmlExtractor,
    find_aggressive_ingredients,
    find_aggressive_instructions,
    meta_image,
)
from recipe_harvester.app.services.url_parsing.extractors.llm import (
    LEVEL_AGGRESSIVE,
    LEVEL_DETAILED,
    LEVEL_FAST,
    AIExtractor,
)
from recipe_harvester.app.services.url_parsing.extractors.schema_org import JsonLdScraper
from recipe_harvester.app.services.url_parsing.extractors.sites import (
    AllRecipesScraper,
    BBCGoodFoodScraper,
    BonAppetitScraper,
    DelishScraper,
    EpicuriousScraper,
    Food52Scraper,
    FoodNetworkScraper,
    NYTCookingScraper,
    SeriousEatsScraper,
    SimplyRecipesScraper,
)
from recipe_harvester.app.services.url_parsing.models import ExtractionResult
from recipe_harvester.app.services.url_parsing.parsing_utils import hostname_for, unique
from recipe_harvester.app.services.url_parsing.scoring import clamp_confidence, merge_results
from recipe_harvester.app.services.url_parsing.validation import is_usable_recipe, validate_recipe

logger = logging.getLogger(__name__)

NO_EXTRACTION_ISSUE = "No extraction attempted"


def default_scrapers() -> List[SiteScraper]:
    """Registry in priority order: publishers first, the generic scraper last."""
    return [
        NYTCookingScraper(),
        BBCGoodFoodScraper(),
        Food52Scraper(),
        SimplyRecipesScraper(),
        BonAppetitScraper(),
        EpicuriousScraper(),
        DelishScraper(),
        FoodNetworkScraper(),
        AllRecipesScraper(),
        SeriousEatsScraper(),
        JsonLdScraper(),
    ]


def select_ai_level(result: ExtractionResult) -> str:
    recipe = result.recipe
    if recipe is None or result.confidence < c.AI_AGGRESSIVE_MAX_CONFIDENCE:
        return LEVEL_AGGRESSIVE
    if recipe.title and result.confidence >= c.AI_FAST_MIN_CONFIDENCE:
        return LEVEL_FAST
    return LEVEL_DETAILED


def enhance_partial(result: ExtractionResult, soup: BeautifulSoup, url: str) -> ExtractionResult:
    """Fill missing lists and image with broad page-wide lookups."""
    recipe = result.recipe
    if recipe is None:
        return result
    updates = {}
    bonus = 0.0
    if not recipe.ingredients:
        ingredients = find_aggressive_ingredients(soup)
        if ingredients:
            updates["ingredients"] = ingredients
            bonus += c.ENHANCE_INGREDIENTS_BONUS
    if not recipe.instructions:
        instructions = find_aggressive_instructions(soup)
        if instructions:
            updates["instructions"] = instructions
            bonus += c.ENHANCE_INSTRUCTIONS_BONUS
    if not recipe.image:
        image = meta_image(soup, url)
        if image:
            updates["image"] = image
            bonus += c.ENHANCE_IMAGE_BONUS
    if not updates:
        return result

    enhanced = recipe.model_copy(update=updates)
    resolved = set(validate_recipe(recipe)) - set(validate_recipe(enhanced))
    logger.info("Enhanced partial recipe for %s with %s", url, ", ".join(sorted(updates)))
    return ExtractionResult(
        recipe=enhanced,
        confidence=clamp_confidence(result.confidence + bonus),
        method=result.method,
        issues=[issue for issue in result.issues if issue not in resolved]
        + [f"Enhanced {field} from page-wide search" for field in sorted(updates)],
    )


class ScraperManager:
    def __init__(
        self,
        scrapers: Optional[Sequence[SiteScraper]] = None,
        generic_extractor: Optional[GenericHtmlExtractor] = None,
        ai_extractor: Optional[AIExtractor] = None,
    ) -> None:
        self.scrapers = list(scrapers) if scrapers is not None else default_scrapers()
        self.generic_extractor = generic_extractor or GenericHtmlExtractor()
        self.ai_extractor = ai_extractor

    async def _run_scrapers(self, url: str, soup: BeautifulSoup, html: str) -> List[ExtractionResult]:
        hostname = hostname_for(url)
        results: List[ExtractionResult] = []
        for scraper in self.scrapers:
            if not scraper.can_handle(hostname):
                continue
            try:
                results.append(await scraper.scrape(url, soup, html))
            except Exception as exc:  # noqa: BLE001
                logger.warning("Scraper %s raised for %s: %s", scraper.name, url, exc)
                results.append(
                    ExtractionResult(
                        recipe=None,
                        confidence=0.0,
                        method=scraper.selector_method,
                        issues=[f"{scraper.name} parsing error: {exc}"],
                    )
                )
        try:
            results.append(self.generic_extractor.extract(url, html))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Generic HTML extraction failed for %s: %s", url, exc)
            results.append(
                ExtractionResult(
                    recipe=None,
                    confidence=0.0,
                    method=c.METHOD_CSS_SELECTORS,
                    issues=[f"{self.generic_extractor.name} parsing error: {exc}"],
                )
            )
        return results

    async def scrape_recipe(self, url: str, soup: BeautifulSoup, html: str) -> ExtractionResult:
        results = await self._run_scrapers(url, soup, html)
        found = [r for r in results if r.recipe is not None]
        if not found:
            issues = unique(issue for r in results for issue in r.issues)
            logger.info("No scraper found a recipe for %s", url)
            return ExtractionResult(
                recipe=None,
                confidence=0.0,
                method=c.METHOD_ERROR,
                issues=issues or [NO_EXTRACTION_ISSUE],
            )

        best = max(found, key=lambda r: r.confidence)
        merged = merge_results(found)
        if merged is not None and merged.confidence > best.confidence:
            logger.info(
                "Merged %d results for %s (%.2f > %.2f)", len(found), url, merged.confidence, best.confidence
            )
            best = merged
        if best.confidence < c.ENHANCE_THRESHOLD:
            best = enhance_partial(best, soup, url)
        logger.info("Best extraction for %s: method=%s confidence=%.2f", url, best.method, best.confidence)
        return best

    async def scrape_with_fallback(self, url: str, soup: BeautifulSoup, html: str) -> ExtractionResult:
        result = await self.scrape_recipe(url, soup, html)
        weak = not is_usable_recipe(result.recipe) or result.confidence < c.AI_FALLBACK_THRESHOLD
        if not weak or self.ai_extractor is None:
            return result

        level = select_ai_level(result)
        logger.info("Scraping result weak for %s (%.2f); trying AI level %s", url, result.confidence, level)
        try:
            ai_result = await self.ai_extractor.extract(url, html, hints=result.recipe, fallback_level=level)
        except AIExtractionError as exc:
            logger.warning("AI extraction failed for %s: %s", url, exc)
            return result.model_copy(update={"issues": list(result.issues) + [f"AI extraction failed: {exc}"]})
        except Exception as exc:  # noqa: BLE001
            logger.exception("AI extraction raised unexpectedly for %s", url)
            return result.model_copy(update={"issues": list(result.issues) + [f"AI extraction failed: {exc}"]})

        prior_usable = is_usable_recipe(result.recipe)
        if is_usable_recipe(ai_result.recipe) and (not prior_usable or ai_result.confidence > result.confidence):
            return ai_result
        logger.info("Keeping scraper result for %s over %s", url, ai_result.method)
        return result
