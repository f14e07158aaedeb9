"""
Recipe cache keyed by normalized URL.

Two backends share the ``RecipeCache`` protocol: an in-process TTL dict for
tests and single-process use, and Redis when ``REDIS_URL`` is configured.
"""
import hashlib
import json
import logging
import time
from typing import Dict, Optional, Protocol, Tuple
from urllib.parse import urlsplit, urlunsplit

from redis.asyncio import Redis

from recipe_harvester.app.core.config import get_settings
from recipe_harvester.app.services.url_parsing.models import RecipeDraft

logger = logging.getLogger(__name__)

NAMESPACE_RECIPE = "recipe"
NAMESPACE_AI = "ai"

# Global Redis connection and cache instance
_redis_conn: Optional[Redis] = None
_cache: Optional["RecipeCache"] = None


def normalize_url_for_cache(url: str) -> str:
    """Lowercase, with fragment, query string and trailing slash removed."""
    parts = urlsplit((url or "").strip())
    path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme, parts.netloc, path, "", "")).lower()


def cache_key_for_url(url: str, namespace: str = NAMESPACE_RECIPE) -> str:
    digest = hashlib.sha256(normalize_url_for_cache(url).encode("utf-8")).hexdigest()
    return f"{namespace}:{digest}"


class RecipeCache(Protocol):
    async def get(self, key: str) -> Optional[RecipeDraft]:
        ...

    async def set(self, key: str, draft: RecipeDraft, ttl_seconds: Optional[int] = None) -> None:
        ...


class InMemoryRecipeCache:
    """Dict-backed cache; expired entries are dropped on read."""

    def __init__(self, clock=time.monotonic) -> None:
        self._clock = clock
        self._entries: Dict[str, Tuple[Optional[float], RecipeDraft]] = {}

    async def get(self, key: str) -> Optional[RecipeDraft]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, draft = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._entries[key]
            return None
        return draft

    async def set(self, key: str, draft: RecipeDraft, ttl_seconds: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        self._entries[key] = (expires_at, draft)

    def clear(self) -> None:
        self._entries.clear()


class RedisRecipeCache:
    """Stores drafts as JSON strings with ``SET ... EX``."""

    def __init__(self, redis: Redis) -> None:
        self.redis = redis

    async def get(self, key: str) -> Optional[RecipeDraft]:
        raw = await self.redis.get(key)
        if raw is None:
            return None
        try:
            return RecipeDraft.model_validate(json.loads(raw))
        except ValueError as exc:
            logger.warning("Discarding unreadable cache entry %s: %s", key, exc)
            return None

    async def set(self, key: str, draft: RecipeDraft, ttl_seconds: Optional[int] = None) -> None:
        await self.redis.set(key, draft.model_dump_json(), ex=ttl_seconds or None)


def get_redis_connection() -> Redis:
    """Get or create the Redis connection."""
    global _redis_conn
    if _redis_conn is None:
        settings = get_settings()
        _redis_conn = Redis.from_url(settings.redis_url, decode_responses=True)
    return _redis_conn


def get_recipe_cache() -> "RecipeCache":
    """Redis-backed cache when REDIS_URL is set, otherwise an in-memory one."""
    global _cache
    if _cache is None:
        settings = get_settings()
        if settings.redis_url:
            logger.info("Using Redis recipe cache")
            _cache = RedisRecipeCache(get_redis_connection())
        else:
            logger.info("REDIS_URL not set; using in-memory recipe cache")
            _cache = InMemoryRecipeCache()
    return _cache
