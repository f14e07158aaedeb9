"""Recipe image discovery and validation.

Candidates are collected from structured data, social meta tags and scored
``<img>`` tags, then checked one at a time with a HEAD request. The first
candidate that looks like a real, reasonably large image wins.
"""

import logging
import re
from typing import Any, List, Optional, Tuple
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup, Tag

from recipe_harvester.app.core.config import Settings, get_settings
from recipe_harvester.app.services.url_parsing import constants as c
from recipe_harvester.app.services.url_parsing.errors import FetchError, ImageValidationError
from recipe_harvester.app.services.url_parsing.html_fetcher import RequestFetcher
from recipe_harvester.app.services.url_parsing.json_ld import find_recipe_node, load_json_ld_blocks
from recipe_harvester.app.services.url_parsing.models import ImageCandidate

logger = logging.getLogger(__name__)

IMG_SOURCE_ATTRIBUTES = (
    "src",
    "data-src",
    "data-lazy-src",
    "data-original",
    "data-lazy",
    "data-real-src",
    "data-enlarge-src",
    "data-srcset",
)
META_IMAGE_SOURCES = (
    ('meta[property="og:image"], meta[property="og:image:url"]', "og:image"),
    ('meta[name="twitter:image"], meta[name="twitter:image:src"]', "twitter:image"),
    ('meta[property="instagram:image"]', "instagram:image"),
    ('meta[name="pinterest:media"]', "pinterest:media"),
)
RECIPE_CONTAINER_SELECTOR = "article, .recipe, .entry-content, .post-content"
MAX_REDIRECTS = 3

_BAD_TOKEN_RES = [re.compile(rf"\b{re.escape(token)}\b", re.I) for token in c.BAD_IMAGE_TOKENS]
_SRCSET_WIDTH_RE = re.compile(r"^(\d+)w$")
_LAYOUT_CLASS_RE = re.compile(r"\b(?:nav|navbar|footer|aside|sidebar)\b")


def is_likely_bad_image_url(url: str) -> bool:
    """Logos, icons, ads and tracking pixels; tokens must be whole words."""
    lowered = (url or "").lower()
    if not lowered:
        return True
    if lowered.split("?", 1)[0].endswith(c.BAD_IMAGE_EXTENSIONS):
        return True
    return any(pattern.search(lowered) for pattern in _BAD_TOKEN_RES)


def resolve_url(base_url: str, image_url: Optional[str]) -> Optional[str]:
    if not image_url or not isinstance(image_url, str):
        return None
    image_url = image_url.strip()
    if not image_url or image_url.startswith("data:"):
        return None
    if image_url.startswith("//"):
        return "https:" + image_url
    return urljoin(base_url, image_url)


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        match = re.match(r"\s*(\d+)", value)
        return int(match.group(1)) if match else None
    return None


def first_srcset_url(srcset: str) -> Optional[str]:
    first = (srcset or "").split(",")[0].strip().split()
    return first[0] if first else None


def widest_srcset_entry(srcset: str) -> Tuple[Optional[str], int]:
    """The srcset entry with the largest ``w`` descriptor."""
    best_url, best_width = None, 0
    for source in (srcset or "").split(","):
        parts = source.strip().split()
        if len(parts) < 2:
            continue
        match = _SRCSET_WIDTH_RE.match(parts[1])
        if match and int(match.group(1)) > best_width:
            best_url, best_width = parts[0], int(match.group(1))
    return best_url, best_width


def _json_ld_image_entries(value: Any, base_url: str) -> List[Tuple[str, Optional[int], Optional[int]]]:
    items = value if isinstance(value, list) else [value]
    entries = []
    for item in items:
        if isinstance(item, str):
            url, width, height = resolve_url(base_url, item), None, None
        elif isinstance(item, dict):
            raw = item.get("url") or item.get("contentUrl") or item.get("@id")
            url = resolve_url(base_url, raw if isinstance(raw, str) else None)
            width, height = _as_int(item.get("width")), _as_int(item.get("height"))
        else:
            continue
        if not url or is_likely_bad_image_url(url):
            continue
        if width is not None and width < c.JSON_LD_IMAGE_MIN_WIDTH:
            continue
        entries.append((url, width, height))
    return entries


def _best_json_ld_image(value: Any, base_url: str) -> Optional[str]:
    entries = _json_ld_image_entries(value, base_url)
    if not entries:
        return None
    entries.sort(key=lambda e: (e[1] or 0, e[2] or 0), reverse=True)
    return entries[0][0]


def json_ld_image_candidates(soup: BeautifulSoup, base_url: str) -> List[ImageCandidate]:
    candidates: List[ImageCandidate] = []
    for block in load_json_ld_blocks(soup):
        recipe = find_recipe_node(block) or {}
        root = block if isinstance(block, dict) else {}
        main_entity = root.get("mainEntity") if isinstance(root.get("mainEntity"), dict) else {}
        rating = recipe.get("aggregateRating") if isinstance(recipe.get("aggregateRating"), dict) else {}
        for value in (recipe.get("image"), main_entity.get("image"), rating.get("image"), root.get("image")):
            url = _best_json_ld_image(value, base_url) if value else None
            if url:
                candidates.append(ImageCandidate(url=url, source="json-ld"))
    return candidates


def meta_image_candidates(soup: BeautifulSoup, base_url: str) -> List[ImageCandidate]:
    candidates: List[ImageCandidate] = []
    for selector, source in META_IMAGE_SOURCES:
        element = soup.select_one(selector)
        url = resolve_url(base_url, element.get("content")) if element else None
        if url:
            candidates.append(ImageCandidate(url=url, source=source))
    link = soup.select_one('link[rel="image_src"]')
    url = resolve_url(base_url, link.get("href")) if link else None
    if url:
        candidates.append(ImageCandidate(url=url, source="image_src"))
    return candidates


def picture_candidates(soup: BeautifulSoup, base_url: str) -> List[ImageCandidate]:
    candidates: List[ImageCandidate] = []
    for picture in soup.find_all("picture"):
        for source in picture.find_all("source"):
            url = resolve_url(base_url, first_srcset_url(source.get("srcset") or ""))
            if url and not is_likely_bad_image_url(url):
                candidates.append(ImageCandidate(url=url, source="picture"))
                break
    return candidates


def _img_source(img: Tag, base_url: str) -> Optional[str]:
    for attr in IMG_SOURCE_ATTRIBUTES:
        value = img.get(attr)
        if not isinstance(value, str) or not value.strip() or value.startswith("data:"):
            continue
        raw = first_srcset_url(value) if attr == "data-srcset" else value
        return resolve_url(base_url, raw)
    return None


def score_img_tag(img: Tag, url: str) -> Optional[float]:
    """Heuristic score for an ``<img>``; None when it is too narrow to be a hero image."""
    width = _as_int(img.get("width"))
    height = _as_int(img.get("height"))
    if width is not None and width < c.IMG_TAG_MIN_WIDTH:
        return None
    score = 0.0
    if width is not None:
        if width >= 600:
            score += 3
        elif width >= 400:
            score += 2
    if height is not None:
        if height >= 400:
            score += 2
        elif height >= 300:
            score += 1
    if width and height:
        if 1.2 <= width / height <= 2.2:
            score += 2

    parent = img.parent if isinstance(img.parent, Tag) else None
    classes = " ".join(img.get("class") or []) + " " + " ".join((parent.get("class") or []) if parent else [])
    classes = classes.lower()
    if any(word in classes for word in ("recipe", "hero", "featured")):
        score += 2
    if _LAYOUT_CLASS_RE.search(classes):
        score -= 4
    if img.find_parent(["article"]) or img.find_parent(class_=re.compile(r"\b(recipe|entry-content|post-content)\b")):
        score += 3
    lowered = url.lower()
    if any(word in lowered for word in ("recipe", "hero", "featured", "main")):
        score += 2
    return score


def img_tag_candidates(soup: BeautifulSoup, base_url: str) -> List[ImageCandidate]:
    candidates: List[ImageCandidate] = []
    for img in soup.find_all("img"):
        url = _img_source(img, base_url)
        if not url or is_likely_bad_image_url(url):
            continue
        wide_url, wide_width = widest_srcset_entry(img.get("srcset") or "")
        if wide_width >= c.SRCSET_PREFERRED_WIDTH:
            resolved = resolve_url(base_url, wide_url)
            if resolved and not is_likely_bad_image_url(resolved):
                url = resolved
        score = score_img_tag(img, url)
        if score is None:
            continue
        candidates.append(ImageCandidate(url=url, score=score, source="img"))
    # Stable sort keeps document order between equal scores
    return sorted(candidates, key=lambda cand: cand.score, reverse=True)


def collect_image_candidates(
    html: str, base_url: str, preferred: Optional[str] = None
) -> List[ImageCandidate]:
    """All candidates in priority order, de-duplicated by URL."""
    soup = BeautifulSoup(html or "", "lxml")
    ordered: List[ImageCandidate] = []
    preferred_url = resolve_url(base_url, preferred)
    if preferred_url:
        ordered.append(ImageCandidate(url=preferred_url, source="preferred"))
    ordered.extend(json_ld_image_candidates(soup, base_url))
    ordered.extend(meta_image_candidates(soup, base_url))
    ordered.extend(picture_candidates(soup, base_url))
    ordered.extend(img_tag_candidates(soup, base_url))

    seen = set()
    unique_candidates: List[ImageCandidate] = []
    for candidate in ordered:
        if candidate.url in seen:
            continue
        seen.add(candidate.url)
        unique_candidates.append(candidate)
    return unique_candidates


class ImageResolver:
    def __init__(self, fetcher: Optional[RequestFetcher] = None, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self.fetcher = fetcher or RequestFetcher(settings=self.settings)

    async def _head(self, url: str) -> httpx.Response:
        async with httpx.AsyncClient(
            follow_redirects=True,
            max_redirects=MAX_REDIRECTS,
            timeout=self.settings.image_head_timeout_seconds,
        ) as client:
            return await client.head(url)

    async def validate_image_url(self, url: str) -> str:
        """Return ``url`` when it serves a large enough image; raise ImageValidationError otherwise."""
        if is_likely_bad_image_url(url):
            raise ImageValidationError(f"Rejected as likely non-recipe image: {url}")
        try:
            resp = await self._head(url)
        except httpx.HTTPError as exc:
            raise ImageValidationError(f"Image request failed for {url}: {exc}") from exc
        if resp.status_code >= 400:
            raise ImageValidationError(f"Image returned status {resp.status_code}: {url}")
        content_type = resp.headers.get("content-type", "")
        if not content_type.lower().startswith("image/"):
            raise ImageValidationError(f"Invalid content-type {content_type!r} for {url}")
        length = _as_int(resp.headers.get("content-length"))
        if length and length < self.settings.image_min_bytes:
            raise ImageValidationError(f"Image too small ({length} bytes): {url}")
        return url

    async def _fresh_html(self, url: str) -> Optional[str]:
        try:
            result = await self.fetcher.fetch(
                url,
                timeout=self.settings.image_fetch_timeout_seconds,
                retries=self.settings.image_fetch_retries,
                delay=self.settings.image_fetch_delay_seconds,
                user_agent_class="chrome",
            )
        except FetchError as exc:
            logger.warning("Image page fetch failed for %s, falling back to supplied HTML: %s", url, exc)
            return None
        return result.data

    async def resolve_image(
        self,
        url: str,
        fallback_html: Optional[str] = None,
        *,
        fetch_fresh: bool = True,
        preferred: Optional[str] = None,
    ) -> Optional[str]:
        html = await self._fresh_html(url) if fetch_fresh else None
        html = html or fallback_html
        if not html and not preferred:
            logger.info("No HTML available for image extraction of %s", url)
            return None

        candidates = collect_image_candidates(html or "", url, preferred=preferred)
        logger.info("Found %d image candidates for %s", len(candidates), url)
        for index, candidate in enumerate(candidates, start=1):
            try:
                valid = await self.validate_image_url(candidate.url)
            except ImageValidationError as exc:
                logger.debug("Image candidate %d/%d rejected: %s", index, len(candidates), exc)
                continue
            logger.info("Resolved image for %s from %s: %s", url, candidate.source, valid)
            return valid
        return None
