import json

import httpx
import pytest
from bs4 import BeautifulSoup

from recipe_harvester.app.core.config import Settings
from recipe_harvester.app.services.url_parsing.errors import FetchError, ImageValidationError
from recipe_harvester.app.services.url_parsing.image_resolver import (
    ImageResolver,
    collect_image_candidates,
    is_likely_bad_image_url,
    score_img_tag,
    widest_srcset_entry,
)
from recipe_harvester.app.services.url_parsing.models import FetchResult

PAGE_URL = "https://example.com/recipes/pad-thai"

JSON_LD = {
    "@type": "Recipe",
    "name": "Pad Thai",
    "image": [
        {"@type": "ImageObject", "url": "https://cdn.example.com/pad-thai-small.jpg", "width": 300},
        {"@type": "ImageObject", "url": "https://cdn.example.com/pad-thai-wide.jpg", "width": 1200},
    ],
}

IMAGE_PAGE = f"""
<html><head>
  <script type="application/ld+json">{json.dumps(JSON_LD)}</script>
  <meta property="og:image" content="https://cdn.example.com/pad-thai-og.jpg">
  <meta name="twitter:image" content="https://cdn.example.com/pad-thai-wide.jpg">
</head><body>
  <img src="/static/site-logo.png" width="120">
  <img src="/img/thumb.jpg" width="150">
  <article>
    <img src="/img/pad-thai-step-1.jpg" width="640" height="400"
         srcset="/img/pad-thai-step-1-320.jpg 320w, /img/pad-thai-step-1-960.jpg 960w">
  </article>
</body></html>
"""


class FakeFetcher:
    def __init__(self, html=None, error=None):
        self.html = html
        self.error = error
        self.calls = []

    async def fetch(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return FetchResult(data=self.html, status=200, attempts=1, final_user_agent="test")


def _resolver(fetcher=None):
    return ImageResolver(fetcher=fetcher or FakeFetcher(), settings=Settings(_env_file=None, IMAGE_MIN_BYTES=15000))


@pytest.mark.parametrize(
    "url,bad",
    [
        ("https://example.com/images/logo.png", True),
        ("https://example.com/ad-banner.jpg", True),
        ("https://example.com/favicon.ico", True),
        ("https://example.com/icon.svg?v=2", True),
        ("https://example.com/images/pad-thai-hero.jpg", False),
        ("https://example.com/uploads/headache-remedy-soup.jpg", False),
        ("", True),
    ],
)
def test_is_likely_bad_image_url(url, bad):
    assert is_likely_bad_image_url(url) is bad


def test_widest_srcset_entry():
    assert widest_srcset_entry("a.jpg 320w, b.jpg 960w, c.jpg 640w") == ("b.jpg", 960)
    assert widest_srcset_entry("") == (None, 0)


def test_candidates_are_ordered_and_deduplicated():
    candidates = collect_image_candidates(IMAGE_PAGE, PAGE_URL, preferred="/img/chosen.jpg")

    assert [(cand.source, cand.url) for cand in candidates] == [
        ("preferred", "https://example.com/img/chosen.jpg"),
        ("json-ld", "https://cdn.example.com/pad-thai-wide.jpg"),
        ("og:image", "https://cdn.example.com/pad-thai-og.jpg"),
        ("img", "https://example.com/img/pad-thai-step-1-960.jpg"),
    ]


@pytest.mark.parametrize(
    "markup,score",
    [
        ('<div class="navy-bg"><img class="canvas" src="/a.jpg"></div>', 0.0),
        ('<div class="site-nav"><img src="/a.jpg"></div>', -4.0),
        ('<div><img class="footer" src="/a.jpg"></div>', -4.0),
    ],
)
def test_score_img_tag_penalizes_whole_layout_classes(markup, score):
    img = BeautifulSoup(markup, "lxml").img

    assert score_img_tag(img, "https://example.com/a.jpg") == score


def _head_handler(responses):
    def handler(request: httpx.Request):
        assert request.method == "HEAD"
        return responses.get(str(request.url), httpx.Response(404))

    return handler


@pytest.mark.asyncio
async def test_first_valid_candidate_wins(mock_transport):
    mock_transport(
        _head_handler(
            {
                "https://cdn.example.com/pad-thai-wide.jpg": httpx.Response(200, headers={"content-type": "text/html"}),
                "https://cdn.example.com/pad-thai-og.jpg": httpx.Response(
                    200, headers={"content-type": "image/jpeg", "content-length": "2048"}
                ),
                "https://example.com/img/pad-thai-step-1-960.jpg": httpx.Response(
                    200, headers={"content-type": "image/jpeg", "content-length": "90000"}
                ),
            }
        )
    )

    image = await _resolver().resolve_image(PAGE_URL, IMAGE_PAGE, fetch_fresh=False)

    assert image == "https://example.com/img/pad-thai-step-1-960.jpg"


@pytest.mark.asyncio
async def test_no_valid_candidate_returns_none(mock_transport):
    mock_transport(_head_handler({}))

    assert await _resolver().resolve_image(PAGE_URL, IMAGE_PAGE, fetch_fresh=False) is None


@pytest.mark.asyncio
async def test_fresh_fetch_failure_falls_back_to_supplied_html(mock_transport):
    mock_transport(
        _head_handler(
            {
                "https://cdn.example.com/pad-thai-wide.jpg": httpx.Response(
                    200, headers={"content-type": "image/webp", "content-length": "50000"}
                )
            }
        )
    )
    fetcher = FakeFetcher(error=FetchError("blocked", url=PAGE_URL, attempts=2))

    image = await _resolver(fetcher).resolve_image(PAGE_URL, IMAGE_PAGE)

    assert image == "https://cdn.example.com/pad-thai-wide.jpg"
    assert fetcher.calls[0][1]["user_agent_class"] == "chrome"


@pytest.mark.asyncio
async def test_fresh_html_is_preferred_over_supplied_html(mock_transport):
    fresh = '<html><head><meta property="og:image" content="https://cdn.example.com/fresh.jpg"></head></html>'
    mock_transport(
        _head_handler(
            {"https://cdn.example.com/fresh.jpg": httpx.Response(200, headers={"content-type": "image/png"})}
        )
    )

    image = await _resolver(FakeFetcher(html=fresh)).resolve_image(PAGE_URL, "<html></html>")

    assert image == "https://cdn.example.com/fresh.jpg"


@pytest.mark.asyncio
async def test_validate_image_url_rejects_logo_without_request(mock_transport):
    def handler(request):
        raise AssertionError("no request expected")

    mock_transport(handler)

    with pytest.raises(ImageValidationError):
        await _resolver().validate_image_url("https://example.com/logo.png")
