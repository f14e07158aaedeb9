import logging
from functools import lru_cache
from typing import Optional

from bs4 import BeautifulSoup

from recipe_harvester.app.core.config import Settings, get_settings
from recipe_harvester.app.services.cache_service import (
    NAMESPACE_RECIPE,
    RecipeCache,
    cache_key_for_url,
    get_recipe_cache,
)
from recipe_harvester.app.services.llm_client import get_text_generator
from recipe_harvester.app.services.url_parsing import constants as c
from recipe_harvester.app.services.url_parsing.extractors.llm import AIExtractor
from recipe_harvester.app.services.url_parsing.html_fetcher import RequestFetcher, validate_url
from recipe_harvester.app.services.url_parsing.image_resolver import ImageResolver, is_likely_bad_image_url
from recipe_harvester.app.services.url_parsing.models import ExtractionResult, RecipeDraft
from recipe_harvester.app.services.url_parsing.scraper_manager import ScraperManager
from recipe_harvester.app.services.url_parsing.validation import clean_recipe_draft, is_usable_recipe

logger = logging.getLogger(__name__)


class RecipePipeline:
    """URL in, cleaned ``ExtractionResult`` out.

    Only ``InvalidUrlError`` and ``FetchError`` escape ``extract``; every other
    failure lowers the confidence or shows up in ``issues``.
    """

    def __init__(
        self,
        fetcher: Optional[RequestFetcher] = None,
        scraper_manager: Optional[ScraperManager] = None,
        image_resolver: Optional[ImageResolver] = None,
        cache: Optional[RecipeCache] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.fetcher = fetcher or RequestFetcher(settings=self.settings)
        self.scraper_manager = scraper_manager or ScraperManager()
        self.image_resolver = image_resolver or ImageResolver(fetcher=self.fetcher, settings=self.settings)
        self.cache = cache

    async def _cached(self, key: str) -> Optional[RecipeDraft]:
        if self.cache is None:
            return None
        try:
            return await self.cache.get(key)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Recipe cache read failed for %s: %s", key, exc)
            return None

    async def _store(self, key: str, draft: RecipeDraft) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.set(key, draft, ttl_seconds=self.settings.recipe_cache_ttl_seconds)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Recipe cache write failed for %s: %s", key, exc)

    async def _with_resolved_image(
        self, url: str, html: str, recipe: RecipeDraft, fetch_fresh: bool
    ) -> RecipeDraft:
        try:
            image = await self.image_resolver.resolve_image(
                url, html, fetch_fresh=fetch_fresh, preferred=recipe.image
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Image resolution failed for %s: %s", url, exc)
            image = None
        if image:
            return recipe.model_copy(update={"image": image})
        if recipe.image and is_likely_bad_image_url(recipe.image):
            logger.info("Dropping likely non-recipe image %s", recipe.image)
            return recipe.model_copy(update={"image": None})
        return recipe

    async def extract(self, url: str, html: Optional[str] = None) -> ExtractionResult:
        validate_url(url)
        cache_key = cache_key_for_url(url, NAMESPACE_RECIPE)
        cached = await self._cached(cache_key)
        if cached is not None:
            logger.info("Recipe cache hit for %s", url)
            return ExtractionResult(recipe=cached, confidence=c.CACHE_HIT_CONFIDENCE, method=c.METHOD_CACHE)

        html_supplied = html is not None
        if not html_supplied:
            fetched = await self.fetcher.fetch(url)
            html = fetched.data

        soup = BeautifulSoup(html or "", "lxml")
        result = await self.scraper_manager.scrape_with_fallback(url, soup, html or "")
        if result.recipe is None:
            return result

        recipe = clean_recipe_draft(result.recipe, source_url=url)
        if self.settings.image_resolution_enabled:
            recipe = await self._with_resolved_image(url, html or "", recipe, fetch_fresh=not html_supplied)
        result = result.model_copy(update={"recipe": recipe})

        if is_usable_recipe(recipe) and result.confidence > c.ACCEPT_MIN_CONFIDENCE:
            await self._store(cache_key, recipe)
        logger.info(
            "Extracted %s: method=%s confidence=%.2f issues=%d",
            url,
            result.method,
            result.confidence,
            len(result.issues),
        )
        return result


@lru_cache
def get_recipe_pipeline() -> RecipePipeline:
    settings = get_settings()
    cache = get_recipe_cache()
    generator = get_text_generator()
    ai_extractor = AIExtractor(generator, cache=cache, settings=settings) if generator else None
    return RecipePipeline(
        scraper_manager=ScraperManager(ai_extractor=ai_extractor),
        cache=cache,
        settings=settings,
    )
