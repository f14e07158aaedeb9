"""Confidence scoring and cross-strategy merging of extraction results."""

from typing import List, Optional, Sequence

from recipe_harvester.app.services.url_parsing import constants as c
from recipe_harvester.app.services.url_parsing.models import ExtractionResult, RecipeDraft
from recipe_harvester.app.services.url_parsing.parsing_utils import hostname_for, unique


def clamp_confidence(value: float) -> float:
    return max(0.0, min(1.0, value))


def is_high_quality_domain(url: Optional[str]) -> bool:
    host = hostname_for(url or "")
    return any(host == domain or host.endswith("." + domain) for domain in c.HIGH_QUALITY_DOMAINS)


def has_time(recipe: RecipeDraft) -> bool:
    return bool(recipe.prep_time or recipe.cook_time or recipe.total_time)


def calculate_confidence(recipe: Optional[RecipeDraft], method: str, url: Optional[str] = None) -> float:
    """Score a draft produced by ``method``; always within [0, 1]."""
    if recipe is None:
        return 0.0
    score = c.BASE_CONFIDENCE.get(method, c.DEFAULT_BASE_CONFIDENCE)
    if len(recipe.title or "") > c.TITLE_MIN_LENGTH:
        score += c.TITLE_BONUS
    score += min(c.INGREDIENT_BONUS_MAX, c.INGREDIENT_BONUS_PER_ITEM * len(recipe.ingredients))
    score += min(c.INSTRUCTION_BONUS_MAX, c.INSTRUCTION_BONUS_PER_ITEM * len(recipe.instructions))
    if recipe.image:
        score += c.IMAGE_BONUS
    if len(recipe.description or "") > c.DESCRIPTION_MIN_LENGTH:
        score += c.DESCRIPTION_BONUS
    if has_time(recipe):
        score += c.TIME_BONUS
    if recipe.servings and recipe.servings > 0:
        score += c.SERVINGS_BONUS
    if is_high_quality_domain(url or recipe.source_url):
        score += c.HIGH_QUALITY_DOMAIN_BONUS
    return clamp_confidence(score)


def _merged_confidence(recipe: RecipeDraft, results: Sequence[ExtractionResult]) -> float:
    score = c.MERGE_BASE_CONFIDENCE
    if recipe.title:
        score += c.MERGE_TITLE_BONUS
    if recipe.ingredients:
        score += c.MERGE_INGREDIENTS_BONUS
    if recipe.instructions:
        score += c.MERGE_INSTRUCTIONS_BONUS
    if recipe.image:
        score += c.MERGE_IMAGE_BONUS
    if recipe.description:
        score += c.MERGE_DESCRIPTION_BONUS
    if recipe.servings:
        score += c.MERGE_SERVINGS_BONUS
    if sum(1 for r in results if r.recipe.title) >= 2:
        score += c.MERGE_TITLE_AGREEMENT_BONUS
    if sum(1 for r in results if r.recipe.ingredients) >= 2:
        score += c.MERGE_INGREDIENT_AGREEMENT_BONUS
    return clamp_confidence(score)


def merge_results(results: Sequence[ExtractionResult]) -> Optional[ExtractionResult]:
    """Combine the best fields of every result into a new result.

    Returns None when fewer than two results carry a recipe, or when the
    merged draft would lack a title or ingredients.
    """
    with_recipe: List[ExtractionResult] = [r for r in results if r.recipe is not None]
    if len(with_recipe) < 2:
        return None
    ranked = sorted(with_recipe, key=lambda r: r.confidence, reverse=True)
    best = ranked[0]

    title = next((r.recipe.title for r in ranked if r.recipe.title), "")
    descriptions = [r.recipe.description for r in with_recipe if r.recipe.description]
    description = max(descriptions, key=len) if descriptions else None
    structured = (c.METHOD_JSON_LD, c.METHOD_SITE_SPECIFIC)
    preferred = [r for r in with_recipe if r.method in structured]
    others = [r for r in with_recipe if r.method not in structured]
    image = next((r.recipe.image for r in preferred + others if r.recipe.image), None)
    ingredients = max((r.recipe.ingredients for r in with_recipe), key=len)
    instructions = max((r.recipe.instructions for r in with_recipe), key=len)

    if not title or not ingredients:
        return None

    tags = unique(tag for r in ranked for tag in r.recipe.tags)
    merged = best.recipe.model_copy(
        update={
            "title": title,
            "description": description,
            "image": image,
            "ingredients": list(ingredients),
            "instructions": list(instructions),
            "tags": tags,
        }
    )
    # The merge keeps every field of ``best``, so it never scores below it.
    confidence = max(_merged_confidence(merged, with_recipe), best.confidence)
    return ExtractionResult(
        recipe=merged,
        confidence=confidence,
        method=f"{c.METHOD_MERGED_PREFIX}{best.method}",
        issues=list(best.issues),
    )
