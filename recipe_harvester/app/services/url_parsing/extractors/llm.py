"""LLM-based recipe extraction."""

import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

from recipe_harvester.app.core.config import Settings, get_settings
from recipe_harvester.app.services.cache_service import (
    NAMESPACE_AI,
    RecipeCache,
    cache_key_for_url,
)
from recipe_harvester.app.services.llm_client import TextGenerator
from recipe_harvester.app.services.url_parsing import constants as c
from recipe_harvester.app.services.url_parsing.errors import AIExtractionError
from recipe_harvester.app.services.url_parsing.extractors.base import select_image
from recipe_harvester.app.services.url_parsing.extractors.heuristic import meta_image
from recipe_harvester.app.services.url_parsing.json_repair import parse_json_response
from recipe_harvester.app.services.url_parsing.models import ExtractionResult, RecipeDraft
from recipe_harvester.app.services.url_parsing.parsing_utils import (
    clean_instruction,
    clean_text,
    extract_image,
    parse_servings,
    split_list_value,
    to_iso8601_duration,
    unique,
)
from recipe_harvester.app.services.url_parsing.validation import validate_recipe

logger = logging.getLogger(__name__)

LEVEL_FAST = "fast"
LEVEL_MINIMAL = "minimal"
LEVEL_DETAILED = "detailed"
LEVEL_AGGRESSIVE = "aggressive"

LEVEL_METHODS = {
    LEVEL_FAST: c.METHOD_AI_FAST,
    LEVEL_MINIMAL: c.METHOD_AI_MINIMAL,
    LEVEL_DETAILED: c.METHOD_AI_DETAILED,
    LEVEL_AGGRESSIVE: c.METHOD_AI_AGGRESSIVE,
}
MAX_TOKENS = {
    LEVEL_FAST: 1500,
    LEVEL_MINIMAL: 1500,
    LEVEL_DETAILED: 3000,
    LEVEL_AGGRESSIVE: 4000,
}

FAST_TITLE_SELECTOR = "h1, .recipe-title, .entry-title"
FAST_INGREDIENT_SELECTOR = ".ingredient, .recipe-ingredient, .ingredients li"
FAST_INSTRUCTION_SELECTOR = ".instruction, .recipe-instruction, .directions li, .instructions li"
FAST_MAX_INGREDIENTS = 10
FAST_MAX_INSTRUCTIONS = 8

MINIMAL_CONTENT_CHARS = 5000
DETAILED_CONTENT_CHARS = 12000
AGGRESSIVE_CONTENT_CHARS = 20000
DETAILED_MIN_CONTAINER_CHARS = 500
DETAILED_CONTAINER_SELECTORS = (
    "article",
    ".recipe",
    ".recipe-content",
    ".entry-content",
    ".post-content",
    "main",
    ".content",
)
AGGRESSIVE_IMAGE_SELECTORS = (".recipe-image img", ".featured-image img")
AGGRESSIVE_PREP_TIME_SELECTOR = '.prep-time, .recipe-prep-time, [class*="prep"]'

RESPONSE_SCHEMA = (
    '{"title": string, "description": string|null, "image": string|null, '
    '"prep_time": string|null, "cook_time": string|null, "total_time": string|null, '
    '"servings": number|null, "difficulty": string|null, "ingredients": [string], '
    '"instructions": [string], "tags": [string]}'
)
PROMPT_RULES = (
    "Rules:\n"
    "- One ingredient per entry, quantity and unit as written: '1 cup flour'\n"
    "- One complete step per instruction entry, no step numbers\n"
    "- Times as ISO-8601 durations (PT1H30M) when known\n"
    '- If the content holds no recipe, return {"error": "no_recipe"}\n'
)
AGGRESSIVE_RULES = (
    "The page is noisy. Ignore advertisements, comments, navigation, newsletter "
    "prompts and links to other recipes. Extract only the primary recipe.\n"
)

_BLANK_LINES_RE = re.compile(r"\n{2,}")


def _page_title(soup: BeautifulSoup) -> str:
    tag = soup.find("h1") or soup.title
    return clean_text(tag.get_text()) if tag else ""


def _page_text(node, limit: int) -> str:
    if node is None:
        return ""
    for tag in node.find_all(["script", "style", "noscript"]):
        tag.decompose()
    text = _BLANK_LINES_RE.sub("\n", node.get_text("\n", strip=True))
    return text[:limit]


def _fast_fragments(soup: BeautifulSoup) -> Tuple[str, List[str], List[str]]:
    title_tag = soup.select_one(FAST_TITLE_SELECTOR)
    title = clean_text(title_tag.get_text(" ", strip=True)) if title_tag else ""
    ingredients = [clean_text(el.get_text(" ", strip=True)) for el in soup.select(FAST_INGREDIENT_SELECTOR)]
    instructions = [clean_text(el.get_text(" ", strip=True)) for el in soup.select(FAST_INSTRUCTION_SELECTOR)]
    return (
        title,
        [i for i in ingredients if i][:FAST_MAX_INGREDIENTS],
        [s for s in instructions if s][:FAST_MAX_INSTRUCTIONS],
    )


def _detailed_content(soup: BeautifulSoup) -> str:
    for selector in DETAILED_CONTAINER_SELECTORS:
        node = soup.select_one(selector)
        if node is not None and len(node.get_text(" ", strip=True)) > DETAILED_MIN_CONTAINER_CHARS:
            return _page_text(node, DETAILED_CONTENT_CHARS)
    return _page_text(soup.body or soup, DETAILED_CONTENT_CHARS)


def _hints_block(hints: Optional[RecipeDraft]) -> str:
    if hints is None:
        return ""
    known = hints.model_dump(exclude_none=True, exclude={"source_url"})
    known = {key: value for key, value in known.items() if value not in ("", [], None)}
    if not known:
        return ""
    return "Partial data already extracted (verify and complete it):\n" + json.dumps(known) + "\n\n"


def build_prompt(
    level: str,
    url: str,
    soup: BeautifulSoup,
    hints: Optional[RecipeDraft] = None,
    fragments: Optional[Tuple[str, List[str], List[str]]] = None,
) -> str:
    """Prompt text for one extraction level."""
    title = _page_title(soup)
    header = f"URL: {url}\nPage title: {title or 'Unknown'}\n\n{_hints_block(hints)}"
    if level == LEVEL_FAST and fragments:
        frag_title, ingredients, instructions = fragments
        body = (
            "Structure these recipe fragments.\n"
            f"Title: {frag_title or title}\n"
            "Ingredients:\n" + "\n".join(ingredients) + "\n"
            "Instructions:\n" + "\n".join(instructions) + "\n"
        )
    elif level == LEVEL_MINIMAL:
        body = "Content:\n" + _page_text(soup.body or soup, MINIMAL_CONTENT_CHARS) + "\n"
    elif level == LEVEL_AGGRESSIVE:
        body = AGGRESSIVE_RULES + "Content:\n" + _page_text(soup.body or soup, AGGRESSIVE_CONTENT_CHARS) + "\n"
    else:
        body = "Content:\n" + _detailed_content(soup) + "\n"
    return (
        "Extract the recipe from this web page and return ONLY valid JSON.\n\n"
        f"{header}{body}\n"
        f"Schema: {RESPONSE_SCHEMA}\n\n{PROMPT_RULES}"
    )


def _entry_text(entry: Any, keys: Tuple[str, ...]) -> str:
    if isinstance(entry, str):
        return clean_text(entry)
    if isinstance(entry, dict):
        for key in keys:
            value = entry.get(key)
            if isinstance(value, str) and value.strip():
                return clean_text(value)
    return ""


def _coerce_ingredient(entry: Any) -> str:
    if isinstance(entry, dict) and entry.get("name") and (entry.get("quantity") or entry.get("unit")):
        parts = [entry.get("quantity"), entry.get("unit"), entry.get("name")]
        return clean_text(" ".join(str(part) for part in parts if part))
    return _entry_text(entry, ("text", "original", "name", "ingredient"))


def _optional_text(value: Any) -> Optional[str]:
    return clean_text(value) or None if isinstance(value, str) else None


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, str):
        return [line for line in value.splitlines() if line.strip()]
    if isinstance(value, list):
        return value
    return [value]


def coerce_ai_payload(data: Any, url: str) -> RecipeDraft:
    """Accept the JSON shapes models commonly return and build a draft.

    Handles ``{"recipe": {...}}`` wrappers, ``name`` for ``title``,
    ingredient objects and ``steps`` / ``directions`` for instructions.
    """
    if isinstance(data, dict) and isinstance(data.get("recipe"), dict):
        data = data["recipe"]
    if not isinstance(data, dict):
        raise AIExtractionError("AI response is not a JSON object")
    error_val = data.get("error")
    if isinstance(error_val, str) and error_val.strip():
        raise AIExtractionError(f"AI returned error: {error_val}")
    if isinstance(error_val, dict) and (error_val.get("message") or error_val.get("code")):
        raise AIExtractionError(f"AI returned error: {error_val}")

    title = data.get("title") or data.get("name") or ""
    ingredients = [_coerce_ingredient(e) for e in _as_list(data.get("ingredients") or data.get("recipeIngredient"))]
    raw_steps = data.get("instructions") or data.get("steps") or data.get("directions")
    instructions = [
        clean_instruction(_entry_text(e, ("text", "step", "description", "name"))) for e in _as_list(raw_steps)
    ]
    image = extract_image(data.get("image") or data.get("image_url"))
    return RecipeDraft(
        title=clean_text(title) if isinstance(title, str) else "",
        description=_optional_text(data.get("description")),
        image=image,
        prep_time=to_iso8601_duration(data.get("prep_time") or data.get("prepTime")),
        cook_time=to_iso8601_duration(data.get("cook_time") or data.get("cookTime")),
        total_time=to_iso8601_duration(data.get("total_time") or data.get("totalTime")),
        servings=parse_servings(data.get("servings") or data.get("recipeYield")),
        difficulty=_optional_text(data.get("difficulty")),
        ingredients=[i for i in ingredients if i],
        instructions=[s for s in instructions if s],
        tags=unique(split_list_value(data.get("tags"))),
        source_url=url,
    )


def backfill_from_hints(draft: RecipeDraft, hints: Optional[RecipeDraft]) -> RecipeDraft:
    """Fill fields the model left empty with previously extracted values."""
    if hints is None:
        return draft
    updates: Dict[str, Any] = {}
    for field in RecipeDraft.model_fields:
        if field == "source_url":
            continue
        value = getattr(draft, field)
        hint = getattr(hints, field)
        if value in (None, "", []) and hint not in (None, "", []):
            updates[field] = hint
    return draft.model_copy(update=updates) if updates else draft


def quick_confidence(recipe: RecipeDraft) -> float:
    score = c.FAST_BASE_CONFIDENCE
    if len(recipe.title or "") > c.AI_TITLE_MIN_LENGTH:
        score += c.FAST_TITLE_BONUS
    if len(recipe.ingredients) > c.FAST_MIN_INGREDIENTS:
        score += c.FAST_INGREDIENTS_BONUS
    if len(recipe.instructions) > c.FAST_MIN_INSTRUCTIONS:
        score += c.FAST_INSTRUCTIONS_BONUS
    return min(c.FAST_MAX_CONFIDENCE, score)


def ai_confidence(recipe: RecipeDraft) -> float:
    score = c.AI_BASE_CONFIDENCE
    if len(recipe.title or "") > c.AI_TITLE_MIN_LENGTH:
        score += c.AI_TITLE_BONUS
    if recipe.ingredients:
        score += c.AI_INGREDIENTS_BONUS
    if recipe.instructions:
        score += c.AI_INSTRUCTIONS_BONUS
    if recipe.image:
        score += c.AI_IMAGE_BONUS
    if recipe.prep_time or recipe.cook_time:
        score += c.AI_TIME_BONUS
    if recipe.servings:
        score += c.AI_SERVINGS_BONUS
    return min(c.AI_MAX_CONFIDENCE, score)


class AIExtractor:
    """Generative fallback with four prompt levels and a result cache."""

    def __init__(
        self,
        generator: Optional[TextGenerator],
        cache: Optional[RecipeCache] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.generator = generator
        self.cache = cache
        self.settings = settings or get_settings()

    async def extract(
        self,
        url: str,
        html: str,
        *,
        hints: Optional[RecipeDraft] = None,
        fallback_level: str = LEVEL_DETAILED,
    ) -> ExtractionResult:
        cache_key = cache_key_for_url(url, NAMESPACE_AI)
        cached = await self._cached(cache_key)
        if cached is not None:
            logger.info("AI cache hit for %s", url)
            return ExtractionResult(recipe=cached, confidence=c.CACHE_HIT_CONFIDENCE, method=c.METHOD_CACHE)
        if self.generator is None:
            raise AIExtractionError("No text generator configured for AI extraction")

        level = fallback_level if fallback_level in LEVEL_METHODS else LEVEL_DETAILED
        try:
            result = await self._extract_level(url, html, hints, level)
        except AIExtractionError as exc:
            if level == LEVEL_FAST:
                raise
            logger.warning("AI extraction at level %s failed for %s: %s; retrying fast", level, url, exc)
            result = await self._extract_level(url, html, hints, LEVEL_FAST)

        if result.recipe is not None and result.confidence > c.AI_CACHE_MIN_CONFIDENCE:
            await self._store(cache_key, result.recipe)
        return result

    async def _cached(self, key: str) -> Optional[RecipeDraft]:
        if self.cache is None:
            return None
        try:
            return await self.cache.get(key)
        except Exception as exc:  # noqa: BLE001
            logger.warning("AI cache read failed for %s: %s", key, exc)
            return None

    async def _store(self, key: str, draft: RecipeDraft) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.set(key, draft, ttl_seconds=self.settings.ai_cache_ttl_seconds)
        except Exception as exc:  # noqa: BLE001
            logger.warning("AI cache write failed for %s: %s", key, exc)

    async def _generate(self, prompt: str, max_tokens: int) -> str:
        timeout = self.settings.llm_timeout_seconds
        try:
            return await asyncio.wait_for(self.generator.generate(prompt, max_tokens), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise AIExtractionError(f"AI generation timed out after {timeout:g}s") from exc

    async def _extract_level(
        self, url: str, html: str, hints: Optional[RecipeDraft], level: str
    ) -> ExtractionResult:
        soup = BeautifulSoup(html or "", "lxml")
        fragments = None
        if level == LEVEL_FAST:
            fragments = _fast_fragments(soup)
            if not fragments[1] and not fragments[2]:
                logger.info("No recipe fragments for fast AI extraction of %s; using minimal", url)
                level = LEVEL_MINIMAL

        # Backfill lookups need the page before _page_text strips it
        page_image = meta_image(soup, url) or select_image(soup, AGGRESSIVE_IMAGE_SELECTORS, url)
        prep_tag = soup.select_one(AGGRESSIVE_PREP_TIME_SELECTOR)
        page_prep_time = to_iso8601_duration(prep_tag.get_text(" ", strip=True)) if prep_tag else None

        prompt = build_prompt(level, url, soup, hints=hints, fragments=fragments)
        logger.info("AI extraction level=%s url=%s prompt_chars=%d", level, url, len(prompt))
        raw = await self._generate(prompt, MAX_TOKENS[level])
        payload = parse_json_response(raw, context="AI extraction")
        draft = backfill_from_hints(coerce_ai_payload(payload, url), hints)

        if level == LEVEL_AGGRESSIVE:
            updates = {}
            if not draft.image and page_image:
                updates["image"] = page_image
            if not draft.prep_time and page_prep_time:
                updates["prep_time"] = page_prep_time
            if updates:
                draft = draft.model_copy(update=updates)

        if not draft.title and not draft.ingredients and not draft.instructions:
            raise AIExtractionError("AI response contained no recipe data")

        if level == LEVEL_FAST:
            confidence = quick_confidence(draft)
        elif level == LEVEL_MINIMAL:
            confidence = c.MINIMAL_CONFIDENCE
        else:
            confidence = ai_confidence(draft)
        return ExtractionResult(
            recipe=draft,
            confidence=confidence,
            method=LEVEL_METHODS[level],
            issues=validate_recipe(draft),
        )
