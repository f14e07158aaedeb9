import httpx
import pytest

from recipe_harvester.app.core.config import Settings
from recipe_harvester.app.services.cache_service import InMemoryRecipeCache
from recipe_harvester.app.services.recipe_pipeline import RecipePipeline
from recipe_harvester.app.services.url_parsing.errors import FetchError, InvalidUrlError
from recipe_harvester.app.services.url_parsing.models import FetchResult

TITLE_ONLY_PAGE = """
<html><head>
  <title>Weeknight Pad Thai</title>
  <meta property="og:image" content="https://example.com/images/pad-thai-hero.jpg">
</head><body><p>Our favorite noodles.</p></body></html>
"""


class FakeFetcher:
    def __init__(self, html=None, error=None):
        self.html = html
        self.error = error
        self.calls = []

    async def fetch(self, url, **kwargs):
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return FetchResult(data=self.html, status=200, attempts=1, final_user_agent="test", url=url)


class BrokenCache:
    async def get(self, key):
        raise RuntimeError("redis down")

    async def set(self, key, draft, ttl_seconds=None):
        raise RuntimeError("redis down")


@pytest.mark.asyncio
async def test_supplied_html_is_extracted_and_cached(settings, caesar_salad_html):
    fetcher = FakeFetcher(error=AssertionError("fetch should not run"))
    pipeline = RecipePipeline(fetcher=fetcher, cache=InMemoryRecipeCache(), settings=settings)
    url = "https://example.com/caesar-salad"

    result = await pipeline.extract(url, html=caesar_salad_html)

    assert result.method == "json-ld"
    assert result.confidence >= 0.85
    assert result.recipe.instructions[-1] == "Toss everything with the croutons and parmesan."
    assert result.recipe.source_url == url

    cached = await pipeline.extract(url + "/?utm_source=newsletter")

    assert cached.method == "cache"
    assert cached.confidence == 1.0
    assert cached.recipe == result.recipe
    assert fetcher.calls == []


@pytest.mark.asyncio
async def test_page_is_fetched_when_html_is_not_supplied(settings, caesar_salad_html):
    fetcher = FakeFetcher(html=caesar_salad_html)
    pipeline = RecipePipeline(fetcher=fetcher, settings=settings)

    result = await pipeline.extract("https://example.com/caesar-salad")

    assert fetcher.calls == ["https://example.com/caesar-salad"]
    assert result.recipe.title == "Caesar Salad"


@pytest.mark.asyncio
async def test_title_only_page_keeps_validated_meta_image(mock_transport):
    def handler(request: httpx.Request):
        if request.url.path == "/images/pad-thai-hero.jpg":
            return httpx.Response(200, headers={"content-type": "image/jpeg", "content-length": "80000"})
        return httpx.Response(404)

    mock_transport(handler)
    settings = Settings(_env_file=None, IMAGE_RESOLUTION_ENABLED=True)
    fetcher = FakeFetcher(error=AssertionError("fetch should not run"))
    cache = InMemoryRecipeCache()
    pipeline = RecipePipeline(fetcher=fetcher, cache=cache, settings=settings)

    result = await pipeline.extract("https://example.com/pad-thai", html=TITLE_ONLY_PAGE)

    assert result.method == "css-selectors"
    assert result.confidence == pytest.approx(0.61)
    assert result.recipe.title == "Weeknight Pad Thai"
    assert result.recipe.image == "https://example.com/images/pad-thai-hero.jpg"
    assert fetcher.calls == []
    # Without ingredients or instructions the draft is not worth caching
    assert (await pipeline.extract("https://example.com/pad-thai", html=TITLE_ONLY_PAGE)).method == "css-selectors"


@pytest.mark.asyncio
async def test_page_without_recipe_returns_error_result(settings):
    pipeline = RecipePipeline(fetcher=FakeFetcher(), settings=settings)

    result = await pipeline.extract("https://example.com/about", html="<html><body><p>About us</p></body></html>")

    assert result.recipe is None
    assert result.method == "error"
    assert result.issues


@pytest.mark.asyncio
@pytest.mark.parametrize("url", ["ftp://example.com/recipe", "http://localhost/recipe", "not a url"])
async def test_invalid_urls_raise(settings, url):
    pipeline = RecipePipeline(fetcher=FakeFetcher(), settings=settings)

    with pytest.raises(InvalidUrlError):
        await pipeline.extract(url)


@pytest.mark.asyncio
async def test_fetch_errors_propagate(settings):
    error = FetchError("Failed to fetch https://example.com/x after 3 attempts", url="https://example.com/x", attempts=3)
    pipeline = RecipePipeline(fetcher=FakeFetcher(error=error), settings=settings)

    with pytest.raises(FetchError) as exc_info:
        await pipeline.extract("https://example.com/x")

    assert exc_info.value.attempts == 3


@pytest.mark.asyncio
async def test_cache_failures_do_not_break_extraction(settings, caesar_salad_html):
    pipeline = RecipePipeline(fetcher=FakeFetcher(), cache=BrokenCache(), settings=settings)

    result = await pipeline.extract("https://example.com/caesar-salad", html=caesar_salad_html)

    assert result.method == "json-ld"
