"""Recipe extractors for different parsing strategies."""

from recipe_harvester.app.services.url_parsing.extractors.base import SiteScraper
from recipe_harvester.app.services.url_parsing.extractors.heuristic import (
    GenericHtmlExtractor,
    find_aggressive_ingredients,
    find_aggressive_instructions,
    meta_image,
)
from recipe_harvester.app.services.url_parsing.extractors.llm import AIExtractor
from recipe_harvester.app.services.url_parsing.extractors.schema_org import (
    JsonLdScraper,
    extract_microdata_recipe,
)
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

__all__ = [
    "AIExtractor",
    "AllRecipesScraper",
    "BBCGoodFoodScraper",
    "BonAppetitScraper",
    "DelishScraper",
    "EpicuriousScraper",
    "Food52Scraper",
    "FoodNetworkScraper",
    "GenericHtmlExtractor",
    "JsonLdScraper",
    "NYTCookingScraper",
    "SeriousEatsScraper",
    "SimplyRecipesScraper",
    "SiteScraper",
    "extract_microdata_recipe",
    "find_aggressive_ingredients",
    "find_aggressive_instructions",
    "meta_image",
]
