"""Publisher-specific scrapers.

Each class declares the hosts it handles and its selector fallbacks; the
two-stage algorithm lives in ``SiteScraper``.
"""

from typing import List

from bs4 import BeautifulSoup

from recipe_harvester.app.services.url_parsing.extractors.base import SiteScraper
from recipe_harvester.app.services.url_parsing.models import RecipeDraft


NYT_PAYWALL_SELECTORS = (
    ".css-mcm29f",
    '[data-testid="paywall"]',
    ".paywall",
    ".subscriber-only",
    ".nyt-paywall",
    ".login-modal",
)
NYT_PAYWALL_PHRASES = (
    "subscribe to continue reading",
    "create a free account",
    "log in or create an account",
    "subscribers only",
    "subscription required",
)
NYT_PAYWALL_PENALTY = 0.1
NYT_PAYWALL_ISSUE = "Content may be limited due to NYT paywall"


class NYTCookingScraper(SiteScraper):
    name = "NYT Cooking"
    site_tag = "NYT Cooking"

    title_selectors = (
        '[data-testid="recipe-title"]',
        ".recipe-title",
        ".nyt5-headline",
        "h1",
    )
    description_selectors = (
        '[data-testid="recipe-description"]',
        ".recipe-intro",
        ".nyt5-summary",
        ".recipe-summary",
    )
    image_selectors = (
        '[data-testid="recipe-image"] img',
        ".recipe-photo img",
        ".nyt5-image img",
        ".css-1l1j2ho img",
        ".media-viewer img",
    )
    ingredient_selectors = (
        '[data-testid="recipe-ingredients"] li',
        ".recipe-ingredients li",
        ".nyt5-ingredients li",
        ".ingredients li",
        ".css-1dbjc4n li",
    )
    instruction_selectors = (
        '[data-testid="recipe-instructions"] ol li',
        '[data-testid="recipe-instructions"] li',
        ".recipe-instructions li",
        ".nyt5-instructions li",
        ".directions li",
    )
    prep_time_selectors = ('[data-testid="recipe-time-prep"]', ".recipe-time-prep", ".prep-time", ".nyt5-time .prep")
    cook_time_selectors = ('[data-testid="recipe-time-cook"]', ".recipe-time-cook", ".cook-time", ".nyt5-time .cook")
    total_time_selectors = (
        '[data-testid="recipe-time-total"]',
        ".recipe-time-total",
        ".total-time",
        ".nyt5-time .total",
    )
    servings_selectors = ('[data-testid="recipe-yield"]', ".recipe-yield", ".nyt5-yield", ".servings", ".serves")

    def can_handle(self, hostname: str) -> bool:
        host = (hostname or "").lower()
        return "nytimes.com" in host and ("cooking" in host or "recipes" in host)

    def adjust_confidence(
        self, soup: BeautifulSoup, html: str, draft: RecipeDraft, issues: List[str]
    ) -> float:
        if has_paywall(soup):
            issues.append(NYT_PAYWALL_ISSUE)
            return self.confidence_bonus - NYT_PAYWALL_PENALTY
        return self.confidence_bonus


def has_paywall(soup: BeautifulSoup) -> bool:
    if any(soup.select_one(selector) for selector in NYT_PAYWALL_SELECTORS):
        return True
    body = soup.body or soup
    text = body.get_text(" ", strip=True).lower()
    return any(phrase in text for phrase in NYT_PAYWALL_PHRASES)


class BBCGoodFoodScraper(SiteScraper):
    name = "BBC Good Food"
    hostnames = ("bbcgoodfood.com",)
    site_tag = "BBC Good Food"

    title_selectors = (".recipe-header__title", ".post-header__title", ".recipe-details__header h1", ".recipe-title", "h1")
    description_selectors = (
        ".recipe-header__description",
        ".post-header__description",
        ".recipe-details__summary",
        ".recipe-summary",
    )
    image_selectors = (
        ".post-header__image img",
        ".recipe-media__image img",
        ".recipe-details__image img",
        ".lead-image img",
        ".recipe-image img",
    )
    ingredient_selectors = (
        ".recipe-ingredients__list li",
        ".recipe-details__ingredients li",
        ".ingredients-list li",
        ".ingredients li",
        ".recipe-ingredients li",
    )
    instruction_selectors = (
        ".recipe-method__list li",
        ".recipe-details__method li",
        ".method-list li",
        ".method li",
        ".recipe-method li",
        ".recipe-instructions li",
    )
    prep_time_selectors = (
        ".recipe-details__cooking-time-prep",
        ".recipe-cooking-time .prep-time",
        '.recipe-details__item:-soup-contains("Prep")',
        ".recipe-time--prep",
    )
    cook_time_selectors = (
        ".recipe-details__cooking-time-cook",
        ".recipe-cooking-time .cook-time",
        '.recipe-details__item:-soup-contains("Cook")',
        ".recipe-time--cook",
    )
    total_time_selectors = (
        ".recipe-details__cooking-time-total",
        ".recipe-cooking-time .total-time",
        '.recipe-details__item:-soup-contains("Total")',
        ".recipe-time--total",
    )
    servings_selectors = (
        ".recipe-details__serves",
        '.recipe-details__item:-soup-contains("Serves")',
        ".recipe-serves",
        ".serves",
        ".recipe-yield",
    )
    difficulty_selectors = (
        ".recipe-details__skill-level",
        '.recipe-details__item:-soup-contains("Difficulty")',
        ".recipe-difficulty",
        ".skill-level",
    )


class Food52Scraper(SiteScraper):
    name = "Food52"
    hostnames = ("food52.com",)
    site_tag = "Food52"
    extra_tags = ("Community Recipe",)

    title_selectors = (".recipe-header h1", ".recipe-name", ".entry-title", "h1")
    description_selectors = (".recipe-headnote", ".recipe-intro", ".recipe-description", ".recipe-summary", ".entry-summary")
    image_selectors = (".recipe-photo img", ".recipe-header img", ".hero-image img", ".main-image img", ".recipe-image img")
    ingredient_selectors = (
        '[data-test="recipe-ingredients"] li',
        ".recipe-ingredient-list li",
        ".recipe-ingredients li",
        ".ingredient-list li",
        ".ingredients li",
        ".recipe-list li",
    )
    instruction_selectors = (
        '[data-test="recipe-instructions"] li',
        ".recipe-steps li",
        ".recipe-directions li",
        ".recipe-instructions li",
        ".directions li",
        ".instructions li",
        ".method li",
        ".preparation li",
    )
    prep_time_selectors = ('[data-test="prep-time"]', ".recipe-prep-time", ".prep-time", ".timing .prep", ".recipe-time .prep")
    cook_time_selectors = ('[data-test="cook-time"]', ".recipe-cook-time", ".cook-time", ".timing .cook", ".recipe-time .cook")
    total_time_selectors = (
        '[data-test="total-time"]',
        ".recipe-total-time",
        ".total-time",
        ".timing .total",
        ".recipe-time .total",
    )
    servings_selectors = ('[data-test="recipe-yield"]', ".recipe-yield", ".recipe-serves", ".servings", ".serves", ".makes", ".portions")


class SimplyRecipesScraper(SiteScraper):
    name = "Simply Recipes"
    hostnames = ("simplyrecipes.com",)
    site_tag = "Simply Recipes"
    confidence_bonus = 0.04

    title_selectors = (".recipe-header h1", ".headline", ".entry-title", "h1")
    description_selectors = (".recipe-intro", ".intro-text", ".recipe-description", ".recipe-summary", ".entry-summary", ".article-intro")
    image_selectors = (
        ".recipe-photo img",
        ".featured-image img",
        ".hero-image img",
        ".entry-image img",
        ".recipe-image img",
        ".lead-image img",
    )
    ingredient_selectors = (
        '[data-cy="recipe-ingredients"] li',
        ".recipe-ingredient-list li",
        ".recipe-ingredients li",
        ".ingredient-list li",
        ".ingredients li",
        ".recipe-callout-ingredients li",
    )
    instruction_selectors = (
        '[data-cy="recipe-instructions"] li',
        ".recipe-method li",
        ".method-instructions li",
        ".recipe-steps li",
        ".recipe-instructions li",
        ".directions li",
        ".instructions li",
        ".preparation-steps li",
    )
    prep_time_selectors = ('[data-cy="prep-time"]', ".recipe-prep-time", ".recipe-time .prep-time", ".prep-time", ".timing-prep")
    cook_time_selectors = ('[data-cy="cook-time"]', ".recipe-cook-time", ".recipe-time .cook-time", ".cook-time", ".timing-cook")
    total_time_selectors = (
        '[data-cy="total-time"]',
        ".recipe-total-time",
        ".recipe-time .total-time",
        ".total-time",
        ".timing-total",
    )
    servings_selectors = ('[data-cy="recipe-yield"]', ".recipe-yield", ".recipe-serves", ".servings", ".serves", ".makes", ".recipe-serving-size")
    difficulty_selectors = (".recipe-difficulty", ".difficulty", ".skill-level", ".recipe-skill-level")


class BonAppetitScraper(SiteScraper):
    name = "Bon Appetit"
    hostnames = ("bonappetit.com",)
    site_tag = "Bon Appetit"
    confidence_bonus = 0.04

    title_selectors = ('[data-testid="ContentHeaderHed"]', ".content-header h1", ".recipe-header h1", "h1")
    description_selectors = (
        '[data-testid="ContentHeaderDek"]',
        ".ContentHeaderDek",
        ".content-dek",
        ".recipe-description",
        ".recipe-summary",
        ".recipe-intro",
    )
    image_selectors = (
        '[data-testid="ContentHeaderLeadAsset"] img',
        ".ContentHeaderLeadAsset img",
        ".lead-image img",
        ".hero-image img",
        ".recipe-image img",
        ".content-header img",
    )
    ingredient_selectors = (
        '[data-testid="IngredientList"] li',
        ".ingredient-list li",
        ".recipe-ingredients li",
        ".ingredients li",
        '[class*="ingredient"] li',
    )
    instruction_selectors = (
        '[data-testid="InstructionList"] li',
        ".recipe-instructions li",
        ".instructions li",
        ".directions li",
        ".method li",
        ".preparation li",
        '[class*="instruction"] li',
    )
    prep_time_selectors = ('[data-testid="prep-time"]', ".recipe-prep-time", ".prep-time", ".active-time", ".recipe-time .prep")
    cook_time_selectors = ('[data-testid="cook-time"]', ".recipe-cook-time", ".cook-time", ".cooking-time", ".recipe-time .cook")
    total_time_selectors = ('[data-testid="total-time"]', ".recipe-total-time", ".total-time", ".recipe-time .total")
    servings_selectors = ('[data-testid="recipe-yield"]', ".recipe-yield", ".recipe-serves", ".servings", ".serves", ".makes", ".portions")


class EpicuriousScraper(SiteScraper):
    name = "Epicurious"
    hostnames = ("epicurious.com",)
    site_tag = "Epicurious"

    title_selectors = ('[data-testid="ContentHeaderHed"]', ".recipe-header h1", "h1")
    description_selectors = ('[data-testid="ContentHeaderDek"]', ".content-dek", ".recipe-summary", ".recipe-description")
    image_selectors = (
        '[data-testid="ContentHeaderLeadAsset"] img',
        ".content-header-image img",
        ".recipe-lead-image img",
        ".lead-image img",
        ".recipe-image img",
    )
    ingredient_selectors = (
        '[data-testid="IngredientList"] li',
        ".ingredient-list li",
        ".recipe-ingredients li",
        ".ingredients li",
        ".recipe-ingredient",
    )
    instruction_selectors = (
        '[data-testid="InstructionsWrapper"] li',
        '[data-testid="InstructionWrapper"] p',
        ".preparation-list li",
        ".recipe-instructions li",
        ".instructions li",
        ".recipe-method li",
    )
    prep_time_selectors = ('[data-testid="PrepTime"]', ".prep-time", ".recipe-prep-time")
    cook_time_selectors = ('[data-testid="CookTime"]', ".cook-time", ".recipe-cook-time")
    total_time_selectors = ('[data-testid="TotalTime"]', ".total-time", ".recipe-total-time")
    servings_selectors = ('[data-testid="Servings"]', ".servings", ".recipe-serves", ".yield")


class DelishScraper(SiteScraper):
    name = "Delish"
    hostnames = ("delish.com",)
    site_tag = "Delish"

    title_selectors = (".content-hed", ".article-hed h1", ".recipe-header h1", "h1")
    description_selectors = (".content-dek", ".article-dek", ".recipe-description", ".recipe-summary", ".content-intro")
    image_selectors = (
        ".content-lede-image img",
        ".article-lead-image img",
        ".recipe-lead-image img",
        ".lead-image img",
        ".hero-image img",
        ".content-header img",
    )
    ingredient_selectors = (
        '[data-module="RecipeIngredients"] li',
        ".ingredient-lists li",
        ".ingredient-list li",
        ".recipe-ingredients li",
        ".ingredients li",
        ".recipe-ingredient",
    )
    instruction_selectors = (
        '[data-module="RecipeInstructions"] li',
        ".recipe-directions li",
        ".directions li",
        ".recipe-instructions li",
        ".instructions li",
        ".method li",
        ".preparation-list li",
    )
    prep_time_selectors = ('[data-field="prep_time"]', ".prep-time", ".recipe-prep-time")
    cook_time_selectors = ('[data-field="cook_time"]', ".cook-time", ".recipe-cook-time")
    total_time_selectors = ('[data-field="total_time"]', ".total-time", ".recipe-total-time")
    servings_selectors = ('[data-field="servings"]', ".servings", ".recipe-serves", ".yield")
    difficulty_selectors = (".difficulty", ".recipe-difficulty")


class FoodNetworkScraper(SiteScraper):
    name = "Food Network"
    hostnames = ("foodnetwork.com",)
    site_tag = "Food Network"

    title_selectors = (".o-AssetTitle__a-HeadlineText", ".recipe-title", "h1")
    description_selectors = (
        ".o-AssetSummary__a-Description",
        '[data-module="RecipeSummary"]',
        ".recipe-summary",
        ".entry-summary",
    )
    image_selectors = (
        ".o-MediaBlock__a-Image img",
        ".m-MediaBlock__a-Image img",
        '[data-module="RecipeImage"] img',
        ".recipe-lead-image img",
        ".recipe-image img",
        ".entry-image img",
    )
    ingredient_selectors = (
        ".o-RecipeIngredients__a-Ingredient",
        ".o-Ingredients__a-Ingredient",
        '[data-module="RecipeIngredients"] li',
        ".recipe-ingredients__ingredient",
        ".recipe-ingredient",
        ".ingredients li",
        ".ingredient-list li",
    )
    instruction_selectors = (
        ".o-Method__m-Step",
        ".o-Instructions__a-ListItem",
        '[data-module="RecipeInstructions"] li',
        ".recipe-directions__direction",
        ".recipe-instruction",
        ".directions li",
        ".instructions li",
        ".method-step",
    )
    prep_time_selectors = ('.o-RecipeInfo__a-Description:-soup-contains("Prep")', ".prep-time", ".recipe-prep-time")
    cook_time_selectors = ('.o-RecipeInfo__a-Description:-soup-contains("Cook")', ".cook-time", ".recipe-cook-time")
    total_time_selectors = ('.o-RecipeInfo__a-Description:-soup-contains("Total")', ".total-time", ".recipe-total-time")
    servings_selectors = (
        '.o-RecipeInfo__a-Description:-soup-contains("Serves")',
        ".servings",
        ".recipe-serves",
        ".yield",
    )
    difficulty_selectors = (".difficulty", ".recipe-difficulty")


class AllRecipesScraper(SiteScraper):
    name = "Allrecipes"
    hostnames = ("allrecipes.com",)
    site_tag = "Allrecipes"

    title_selectors = (".headline-wrapper h1", ".recipe-header h1", ".recipe-title", ".entry-title", "h1")
    description_selectors = (".recipe-summary__description", ".recipe-description", ".recipe-summary", ".recipe-intro", ".entry-summary", ".dek")
    image_selectors = (
        ".primary-image img",
        ".recipe-card-image img",
        ".hero-photo__image",
        ".lead-image img",
        ".image-container img",
        ".recipe-image img",
        ".recipe-photo img",
    )
    ingredient_selectors = (
        ".mntl-structured-ingredients__list li",
        ".ingredients-section__ingredient",
        ".recipe-ingredients__ingredient",
        ".ingredients-section li",
        ".recipe-ingredient-list li",
        ".ingredient-list li",
        ".ingredients li",
        ".recipe-ingred_txt",
        "[data-ingredient] span",
        ".component-recipe-ingredients li",
    )
    instruction_selectors = (
        ".mntl-sc-block-group--OL li",
        ".recipe-directions__list--item",
        ".instructions-section li",
        ".recipe-instruction-list li",
        ".directions ol li",
        ".directions li",
        ".instructions li",
        ".instructions-section .section-body ol li",
    )
    prep_time_selectors = (".prep-time", ".recipe-prep-time", ".prepTime", ".total-time .prep-time")
    cook_time_selectors = (".cook-time", ".recipe-cook-time", ".cookTime", ".total-time .cook-time")
    total_time_selectors = (".total-time", ".recipe-total-time", ".totalTime")
    servings_selectors = (
        ".recipe-adjust-servings__size-quantity",
        ".servings",
        ".recipe-serves",
        ".yield",
        '.recipe-nutrition__item:-soup-contains("servings")',
    )


class SeriousEatsScraper(SiteScraper):
    name = "Serious Eats"
    hostnames = ("seriouseats.com",)
    site_tag = "Serious Eats"

    title_selectors = ("h1.heading__title", ".recipe-title", "h1.entry-title", ".project-name", "h1")
    description_selectors = (".recipe-about", ".recipe-summary", ".project-description", ".entry-summary")
    image_selectors = (".recipe-hero-image img", ".lead-image img", ".hero-image img", ".recipe-image img")
    ingredient_selectors = (
        ".structured-ingredients li",
        ".recipe-ingredients li",
        ".recipe-ingredient-group li",
        ".ingredient-list li",
        ".ingredients li",
    )
    instruction_selectors = (
        ".recipe-procedures li",
        ".recipe-instructions li",
        ".recipe-instruction-group li",
        ".instructions li",
        ".directions li",
        ".procedure-text",
    )
    prep_time_selectors = (".recipe-time-prep", ".prep-time", ".total-time-prep")
    cook_time_selectors = (".recipe-time-cook", ".cook-time", ".total-time-cook")
    total_time_selectors = (".recipe-time-total", ".total-time", ".recipe-total-time")
    servings_selectors = (".recipe-yield", ".servings", ".recipe-serves", ".makes")
