import pytest

from recipe_harvester.app.services.url_parsing.models import ExtractionResult, RecipeDraft
from recipe_harvester.app.services.url_parsing.scoring import (
    calculate_confidence,
    is_high_quality_domain,
    merge_results,
)


def _draft(**kwargs):
    defaults = {"title": "Weeknight Chili"}
    defaults.update(kwargs)
    return RecipeDraft(**defaults)


def test_confidence_is_clamped_for_extreme_drafts():
    draft = _draft(
        description="A big pot of chili for a crowd on a cold night.",
        image="https://example.com/chili.jpg",
        prep_time="PT20M",
        servings=8,
        ingredients=[f"{i} cups beans" for i in range(100)],
        instructions=[f"Step number {i}" for i in range(100)],
    )

    assert calculate_confidence(draft, "json-ld", "https://www.seriouseats.com/chili") == 1.0
    assert calculate_confidence(None, "json-ld") == 0.0


def test_title_only_selector_draft():
    assert calculate_confidence(_draft(), "css-selectors") == pytest.approx(0.58)


def test_unknown_method_uses_default_base():
    assert calculate_confidence(RecipeDraft(title="Pie"), "something-else") == pytest.approx(0.40)


def test_high_quality_domains_match_subdomains_only():
    assert is_high_quality_domain("https://cooking.nytimes.com/recipes/1")
    assert is_high_quality_domain("https://food52.com/recipes/1")
    assert not is_high_quality_domain("https://notfood52.com/recipes/1")


def test_merge_needs_two_recipes():
    only = ExtractionResult(recipe=_draft(ingredients=["1 can beans"]), confidence=0.8, method="json-ld")
    empty = ExtractionResult(recipe=None, confidence=0.0, method="css-selectors")

    assert merge_results([only, empty]) is None


def test_merge_requires_ingredients():
    a = ExtractionResult(recipe=_draft(), confidence=0.58, method="json-ld")
    b = ExtractionResult(recipe=_draft(instructions=["Simmer."]), confidence=0.6, method="css-selectors")

    assert merge_results([a, b]) is None


def test_merge_takes_best_fields_and_never_scores_below_best():
    structured = ExtractionResult(
        recipe=_draft(
            ingredients=["1 lb beef", "1 can beans", "1 onion"],
            instructions=["Brown the beef."],
            tags=["Dinner"],
        ),
        confidence=0.98,
        method="json-ld",
        issues=["Converted prepTime to ISO-8601 durations"],
    )
    heuristic = ExtractionResult(
        recipe=_draft(
            description="Our favourite chili, ready in under an hour.",
            image="https://example.com/chili.jpg",
            instructions=["Brown the beef.", "Add the beans.", "Simmer for 30 minutes."],
            tags=["dinner", "Comfort Food"],
        ),
        confidence=0.66,
        method="css-selectors",
    )

    merged = merge_results([heuristic, structured])

    assert merged.method == "merged-json-ld"
    assert merged.confidence >= structured.confidence
    assert merged.recipe.ingredients == ["1 lb beef", "1 can beans", "1 onion"]
    assert len(merged.recipe.instructions) == 3
    assert merged.recipe.image == "https://example.com/chili.jpg"
    assert merged.recipe.description.startswith("Our favourite chili")
    assert merged.recipe.tags == ["Dinner", "Comfort Food"]
    assert merged.issues == structured.issues


def test_merge_prefers_structured_images():
    structured = ExtractionResult(
        recipe=_draft(ingredients=["1 lb beef"], image="https://example.com/structured.jpg"),
        confidence=0.7,
        method="site-specific",
    )
    heuristic = ExtractionResult(
        recipe=_draft(ingredients=["1 lb beef"], image="https://example.com/heuristic.jpg"),
        confidence=0.9,
        method="css-selectors",
    )

    merged = merge_results([heuristic, structured])

    assert merged.recipe.image == "https://example.com/structured.jpg"
    assert merged.method == "merged-css-selectors"
