import json

import pytest
from bs4 import BeautifulSoup

from recipe_harvester.app.services.url_parsing.extractors import (
    FoodNetworkScraper,
    GenericHtmlExtractor,
    JsonLdScraper,
    NYTCookingScraper,
    SeriousEatsScraper,
)
from recipe_harvester.app.services.url_parsing.extractors.base import SiteScraper
from recipe_harvester.app.services.url_parsing.extractors.sites import NYT_PAYWALL_ISSUE
from recipe_harvester.app.services.url_parsing.scoring import calculate_confidence


def _soup(html):
    return BeautifulSoup(html, "lxml")


def _json_ld_page(payload, body=""):
    return (
        '<html><head><script type="application/ld+json">'
        + json.dumps(payload)
        + "</script></head><body>"
        + body
        + "</body></html>"
    )


@pytest.mark.asyncio
async def test_json_ld_recipe_on_generic_host(caesar_salad_html):
    url = "https://example.com/caesar-salad"

    result = await JsonLdScraper().scrape(url, _soup(caesar_salad_html), caesar_salad_html)

    assert result.method == "json-ld"
    assert result.confidence >= 0.85
    assert result.recipe.title == "Caesar Salad"
    assert len(result.recipe.ingredients) == 6
    assert result.recipe.instructions[0] == "Wash and chop the romaine."
    assert result.recipe.prep_time == "PT15M"
    assert result.recipe.servings == 4
    assert result.recipe.source_url == url
    assert result.issues == []


@pytest.mark.asyncio
async def test_food_network_sections_in_graph_main_entity():
    payload = {
        "@context": "https://schema.org",
        "@graph": [
            {"@type": "WebSite", "name": "Food Network"},
            {
                "@type": "WebPage",
                "mainEntity": [
                    {
                        "@type": "Recipe",
                        "name": "Baked Ziti",
                        "recipeIngredient": [{"text": "1 pound ziti"}, "2 cups marinara", "1 cup ricotta"],
                        "recipeInstructions": [
                            {
                                "@type": "HowToSection",
                                "name": "Pasta",
                                "itemListElement": [
                                    {"@type": "HowToStep", "text": "Boil the ziti."},
                                    {"@type": "HowToStep", "text": "Drain well."},
                                ],
                            },
                            {
                                "@type": "HowToSection",
                                "name": "Bake",
                                "itemListElement": [{"@type": "HowToStep", "text": "Mix with sauce and bake."}],
                            },
                        ],
                    }
                ],
            },
        ],
    }
    html = _json_ld_page(payload)
    url = "https://www.foodnetwork.com/recipes/baked-ziti"

    result = await FoodNetworkScraper().scrape(url, _soup(html), html)

    assert result.method == "json-ld"
    assert result.recipe.instructions == ["Boil the ziti.", "Drain well.", "Mix with sauce and bake."]
    assert result.recipe.ingredients[0] == "1 pound ziti"
    assert "Food Network" in result.recipe.tags
    assert any(issue.startswith("Flattened sectioned instructions") for issue in result.issues)


def _nyt_page(extra_body=""):
    payload = {
        "@type": "Recipe",
        "name": "Pasta Puttanesca",
        "recipeIngredient": ["1 pound spaghetti", "4 anchovies", "1/4 cup capers"],
        "recipeInstructions": ["Cook the pasta.", "Make the sauce and toss."],
    }
    return _json_ld_page(payload, extra_body)


@pytest.mark.asyncio
async def test_nyt_paywall_lowers_confidence():
    url = "https://cooking.nytimes.com/recipes/12345-pasta-puttanesca"
    open_html = _nyt_page()
    walled_html = _nyt_page('<div class="paywall">Subscribe to continue reading</div>')

    scraper = NYTCookingScraper()
    open_result = await scraper.scrape(url, _soup(open_html), open_html)
    walled_result = await scraper.scrape(url, _soup(walled_html), walled_html)

    assert NYT_PAYWALL_ISSUE in walled_result.issues
    assert NYT_PAYWALL_ISSUE not in open_result.issues
    assert walled_result.confidence == pytest.approx(open_result.confidence - 0.1)
    assert "NYT Cooking" in walled_result.recipe.tags


@pytest.mark.asyncio
async def test_high_quality_domain_bonus_is_counted_once():
    url = "https://cooking.nytimes.com/recipes/12345-pasta-puttanesca"
    html = _nyt_page()

    result = await NYTCookingScraper().scrape(url, _soup(html), html)

    assert result.confidence == pytest.approx(calculate_confidence(result.recipe, result.method, url))


def test_nyt_scraper_only_handles_cooking_hosts():
    scraper = NYTCookingScraper()
    assert scraper.can_handle("cooking.nytimes.com")
    assert not scraper.can_handle("www.nytimes.com")


@pytest.mark.asyncio
async def test_microdata_is_used_without_json_ld():
    html = """
    <html><body>
      <div itemscope itemtype="https://schema.org/Recipe">
        <h2 itemprop="name">Buttermilk Pancakes</h2>
        <meta itemprop="prepTime" content="PT10M">
        <span itemprop="recipeYield">4 servings</span>
        <ul>
          <li itemprop="recipeIngredient">2 cups flour</li>
          <li itemprop="recipeIngredient">2 cups buttermilk</li>
        </ul>
        <ol itemprop="recipeInstructions">
          <li>Whisk everything together.</li>
          <li>Cook on a hot griddle.</li>
        </ol>
      </div>
    </body></html>
    """

    result = await JsonLdScraper().scrape("https://example.com/pancakes", _soup(html), html)

    assert result.method == "microdata"
    assert result.recipe.title == "Buttermilk Pancakes"
    assert result.recipe.ingredients == ["2 cups flour", "2 cups buttermilk"]
    assert result.recipe.instructions == ["Whisk everything together.", "Cook on a hot griddle."]
    assert result.recipe.prep_time == "PT10M"
    assert result.recipe.servings == 4


@pytest.mark.asyncio
async def test_site_selectors_when_structured_data_is_missing():
    html = """
    <html><body>
      <h1 class="heading__title">The Best Smash Burgers</h1>
      <ul class="structured-ingredients">
        <li>1 pound ground beef</li><li>4 potato buns</li><li>4 slices American cheese</li>
      </ul>
      <ol class="recipe-procedures">
        <li>1. Divide the beef into balls.</li><li>2. Smash onto a ripping hot skillet.</li>
      </ol>
    </body></html>
    """

    result = await SeriousEatsScraper().scrape("https://www.seriouseats.com/smash-burgers", _soup(html), html)

    assert result.method == "site-specific"
    assert result.recipe.title == "The Best Smash Burgers"
    assert len(result.recipe.ingredients) == 3
    assert result.recipe.instructions == ["Divide the beef into balls.", "Smash onto a ripping hot skillet."]
    assert "Serious Eats" in result.recipe.tags


@pytest.mark.asyncio
async def test_page_without_recipe_reports_issue():
    html = "<html><body><p>Nothing to see.</p></body></html>"

    result = await JsonLdScraper().scrape("https://example.com/", _soup(html), html)

    assert result.recipe is None
    assert result.confidence == 0.0
    assert result.issues == ["No recipe found using JSON-LD extractors"]


class BrokenScraper(SiteScraper):
    name = "Broken"

    def _scrape(self, url, soup, html):
        raise RuntimeError("boom")


@pytest.mark.asyncio
async def test_scrape_never_raises():
    result = await BrokenScraper().scrape("https://example.com/", _soup("<html></html>"), "<html></html>")

    assert result.recipe is None
    assert result.confidence == 0.0
    assert result.issues == ["Broken parsing error: boom"]


def test_generic_extractor_uses_list_heuristics():
    html = """
    <html><head><title>Lemon Bars | Example Kitchen</title></head><body>
      <nav><ul><li>Home</li><li>About</li></ul></nav>
      <article>
        <h1>Lemon Bars</h1>
        <p>Serves 12</p>
        <ul><li>1 cup flour</li><li>1/2 cup butter</li><li>2 lemons</li></ul>
        <ol><li>Bake the crust.</li><li>Whisk the filling.</li><li>Pour and bake again.</li></ol>
      </article>
    </body></html>
    """

    result = GenericHtmlExtractor().extract("https://example.com/lemon-bars", html)

    assert result.method == "css-selectors"
    assert result.recipe.title == "Lemon Bars"
    assert result.recipe.ingredients == ["1 cup flour", "1/2 cup butter", "2 lemons"]
    assert result.recipe.instructions == ["Bake the crust.", "Whisk the filling.", "Pour and bake again."]
    assert result.recipe.servings == 12


def test_generic_extractor_needs_a_title():
    result = GenericHtmlExtractor().extract("https://example.com/", "<html><body><p>hi</p></body></html>")

    assert result.recipe is None
    assert result.issues == ["No recipe found using generic HTML heuristics"]
