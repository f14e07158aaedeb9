"""HTML fetching with retries, rotating browser headers and bot-block detection."""

import asyncio
import ipaddress
import logging
import re
import threading
import time
from functools import lru_cache
from typing import Dict, Optional, Tuple
from urllib.parse import quote_plus, urlparse

import httpx

from recipe_harvester.app.core.config import get_settings
from recipe_harvester.app.services.url_parsing.constants import (
    BLOCKED_STATUS_CODES,
    BOT_DETECTION_PHRASES,
)
from recipe_harvester.app.services.url_parsing.errors import (
    BlockedResponseError,
    FetchError,
    InvalidUrlError,
)
from recipe_harvester.app.services.url_parsing.models import FetchResult

logger = logging.getLogger(__name__)

USER_AGENTS: Dict[str, Tuple[str, ...]] = {
    "chrome": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36",
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36",
    ),
    "firefox": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:120.0) Gecko/20100101 Firefox/120.0",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:120.0) Gecko/20100101 Firefox/120.0",
        "Mozilla/5.0 (X11; Linux x86_64; rv:120.0) Gecko/20100101 Firefox/120.0",
    ),
    "safari": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) "
        "Version/17.1 Safari/605.1.15",
        "Mozilla/5.0 (iPhone; CPU iPhone OS 17_1 like Mac OS X) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/17.1 Mobile/15E148 Safari/604.1",
    ),
}
BROWSER_ROTATION = ("chrome", "firefox", "safari")

_SCRIPT_STYLE_RE = re.compile(r"<(script|style|noscript)\b[^>]*>.*?</\1\s*>", re.I | re.S)


class RateLimiter:
    """Keeps a minimum interval between requests issued by this process.

    Callers reserve the next free slot under a lock and sleep outside it, so
    concurrent fetches queue up instead of firing together.
    """

    def __init__(self, min_interval: float = 1.0) -> None:
        self.min_interval = min_interval
        self._lock = threading.Lock()
        self._last_request_at: Optional[float] = None

    def reserve(self) -> float:
        """Claim the next slot and return how long the caller must wait for it."""
        with self._lock:
            now = time.monotonic()
            if self._last_request_at is None:
                slot = now
            else:
                slot = max(now, self._last_request_at + self.min_interval)
            self._last_request_at = slot
        return slot - now

    async def wait(self) -> None:
        delay = self.reserve()
        if delay > 0:
            logger.debug("Rate limiting: waiting %.2fs before next request", delay)
            await asyncio.sleep(delay)


@lru_cache
def get_rate_limiter() -> RateLimiter:
    return RateLimiter(get_settings().fetch_min_interval_seconds)


def is_private_host(host: str) -> bool:
    """Check if a host is private/localhost."""
    hostname = host.split(":")[0]
    try:
        ip = ipaddress.ip_address(hostname)
        return ip.is_private or ip.is_loopback
    except ValueError:
        return hostname.lower() in {"localhost"}


def validate_url(url: str) -> str:
    """Return the URL's hostname or raise InvalidUrlError."""
    parsed = urlparse(url or "")
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise InvalidUrlError("URL must start with http or https.")
    if is_private_host(parsed.hostname or ""):
        raise InvalidUrlError("URL points to a private or disallowed host")
    return (parsed.hostname or "").lower()


def pick_user_agent(user_agent_class: str, attempt: int) -> Tuple[str, str]:
    """Deterministically choose ``(browser_class, user_agent)`` for an attempt."""
    if user_agent_class in USER_AGENTS:
        browser = user_agent_class
    else:
        browser = BROWSER_ROTATION[attempt % len(BROWSER_ROTATION)]
    pool = USER_AGENTS[browser]
    return browser, pool[attempt % len(pool)]


def _referer_for(url: str, attempt: int) -> str:
    parsed = urlparse(url)
    domain = parsed.hostname or ""
    options = (
        f"{parsed.scheme}://{domain}/",
        f"https://www.google.com/search?q={quote_plus(domain)}",
        f"https://www.bing.com/search?q={quote_plus(domain)}",
        f"https://duckduckgo.com/?q={quote_plus(domain)}",
    )
    return options[(attempt - 1) % len(options)]


def build_request_headers(
    url: str,
    user_agent: str,
    browser: str,
    attempt: int,
    cookie: Optional[str] = None,
) -> Dict[str, str]:
    headers = {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "Accept-Encoding": "gzip, deflate, br",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
        "Upgrade-Insecure-Requests": "1",
        "Connection": "keep-alive",
    }
    referer = _referer_for(url, attempt) if attempt > 0 else None
    if referer:
        headers["Referer"] = referer
    if browser == "chrome":
        if not referer:
            fetch_site = "none"
        elif urlparse(referer).hostname == urlparse(url).hostname:
            fetch_site = "same-origin"
        else:
            fetch_site = "cross-site"
        headers.update(
            {
                "sec-ch-ua": '"Not_A Brand";v="8", "Chromium";v="120", "Google Chrome";v="120"',
                "sec-ch-ua-mobile": "?0",
                "sec-ch-ua-platform": '"Windows"' if "Windows" in user_agent else '"macOS"',
                "Sec-Fetch-Dest": "document",
                "Sec-Fetch-Mode": "navigate",
                "Sec-Fetch-Site": fetch_site,
                "Sec-Fetch-User": "?1",
            }
        )
    elif browser == "firefox":
        headers["DNT"] = "1"
    if cookie:
        headers["Cookie"] = cookie
    return headers


def contains_bot_phrase(body: str) -> Optional[str]:
    visible = _SCRIPT_STYLE_RE.sub(" ", body or "").lower()
    for phrase in BOT_DETECTION_PHRASES:
        if phrase in visible:
            return phrase
    return None


def is_blocked_response(status: int, body: str) -> bool:
    """Classify a response as a bot-detection page."""
    if status in BLOCKED_STATUS_CODES:
        return True
    return contains_bot_phrase(body) is not None


def _looks_like_html(text: str) -> bool:
    sample = text[:2000]
    if not sample:
        return False
    has_html_tags = bool(re.search(r"<[a-z]+[^>]*>", sample, re.I))
    printable_count = sum(1 for c in sample if (32 <= ord(c) <= 126) or c.isspace() or ord(c) > 159)
    control_chars = sum(1 for c in sample if ord(c) < 32 and c not in "\n\r\t")
    return has_html_tags and printable_count / len(sample) > 0.6 and control_chars / len(sample) < 0.1


def decode_body(response: httpx.Response) -> str:
    """Decode a response using the declared charset, then ``<meta charset>``, then UTF-8."""
    content_type = response.headers.get("content-type", "")
    content_bytes = response.content or b""
    encoding = None
    if "charset=" in content_type.lower():
        try:
            encoding = content_type.lower().split("charset=")[1].split(";")[0].strip().strip("\"'")
        except IndexError:
            encoding = None
    try:
        text = content_bytes.decode(encoding or "utf-8")
    except (UnicodeDecodeError, LookupError):
        text = content_bytes.decode("utf-8", errors="replace")
        encoding_match = re.search(r'<meta[^>]+charset=["\']?([^"\'>\s]+)', text, re.I)
        if encoding_match:
            detected = encoding_match.group(1).lower()
            if detected != "utf-8":
                try:
                    text = content_bytes.decode(detected)
                except (UnicodeDecodeError, LookupError):
                    pass
    return text


class RequestFetcher:
    """Fetches pages with retry, rotating headers and linear backoff."""

    def __init__(self, rate_limiter: Optional[RateLimiter] = None, settings=None) -> None:
        self.settings = settings or get_settings()
        self.rate_limiter = rate_limiter or get_rate_limiter()

    async def _get(self, url: str, headers: Dict[str, str], timeout: float) -> httpx.Response:
        client_timeout = httpx.Timeout(timeout, connect=min(5.0, timeout))
        async with httpx.AsyncClient(timeout=client_timeout, follow_redirects=True, headers=headers) as client:
            return await client.get(url)

    async def fetch(
        self,
        url: str,
        *,
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
        delay: Optional[float] = None,
        user_agent_class: str = "random",
    ) -> FetchResult:
        validate_url(url)
        timeout = self.settings.fetch_timeout_seconds if timeout is None else timeout
        retries = max(1, self.settings.fetch_retries if retries is None else retries)
        delay = self.settings.fetch_retry_delay_seconds if delay is None else delay

        last_error: Optional[BaseException] = None
        for attempt in range(retries):
            await self.rate_limiter.wait()
            browser, user_agent = pick_user_agent(user_agent_class, attempt)
            headers = build_request_headers(url, user_agent, browser, attempt, self.settings.scraper_cookies)
            try:
                response = await self._get(url, headers, timeout)
                body = decode_body(response)
                status = response.status_code
                if is_blocked_response(status, body):
                    raise BlockedResponseError(
                        f"Blocked response (status {status})", url=url, status=status
                    )
                if status >= 500:
                    raise FetchError(f"Site returned status {status}", url=url)
                if len(body) > 100 and not _looks_like_html(body):
                    raise FetchError("HTML content appears corrupted or invalid encoding", url=url)
                logger.info("Fetched %s (status %s) on attempt %d", url, status, attempt + 1)
                return FetchResult(
                    data=body,
                    status=status,
                    headers={k.lower(): v for k, v in response.headers.items()},
                    attempts=attempt + 1,
                    final_user_agent=user_agent,
                    url=str(response.url) if getattr(response, "url", None) else url,
                )
            except (httpx.HTTPError, FetchError) as exc:
                last_error = exc
                logger.warning(
                    "Fetch attempt %d/%d for %s failed: %s", attempt + 1, retries, url, exc
                )
                if attempt < retries - 1 and delay > 0:
                    await asyncio.sleep(delay * (attempt + 1))

        raise FetchError(
            f"Failed to fetch {url} after {retries} attempts. Last error: {last_error}",
            url=url,
            attempts=retries,
            last_error=last_error,
        )


async def fetch_html(url: str) -> str:
    """Fetch a page's HTML with the default fetcher settings."""
    result = await RequestFetcher().fetch(url)
    return result.data
