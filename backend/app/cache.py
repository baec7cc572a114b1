"""Read-through cache layer.

The cache is never the source of truth. Every operation absorbs backend
failures (connection errors, timeouts, bad JSON) and logs them, so a cache
outage degrades to a store round-trip instead of failing the request.

Key layout:
- {ns}:{kind}:list:{digest}     list/search results (short tier)
- {ns}:{kind}:{id}              single-entity detail (medium tier)
- {ns}:properties:stats         aggregate statistics (long tier)
- {ns}:properties:featured:{n}  featured listings (long tier)

Writes invalidate whole kinds with ``{ns}:{kind}:*`` rather than tracking
individual keys.
"""

import fnmatch
import hashlib
import json
import logging
import time
from enum import Enum
from typing import Any, Iterable

import redis.asyncio as aioredis

from app.config import Settings, get_settings

logger = logging.getLogger(__name__)

USERS = "users"
PROPERTIES = "properties"
FAVORITES = "favorites"
RECOMMENDATIONS = "recommendations"
ALL_KINDS = (USERS, PROPERTIES, FAVORITES, RECOMMENDATIONS)

# Kinds whose cached reads may embed or count rows of the written kind
INVALIDATES = {
    USERS: (USERS, PROPERTIES, RECOMMENDATIONS),
    PROPERTIES: (PROPERTIES, FAVORITES, RECOMMENDATIONS, USERS),
    FAVORITES: (FAVORITES, USERS),
    RECOMMENDATIONS: (RECOMMENDATIONS, USERS),
}


class CacheTier(str, Enum):
    SHORT = "short"  # list and search results
    MEDIUM = "medium"  # single-entity detail
    LONG = "long"  # aggregates, featured listings


def tier_ttls(settings: Settings) -> dict[CacheTier, int]:
    return {
        CacheTier.SHORT: settings.cache_ttl_short,
        CacheTier.MEDIUM: settings.cache_ttl_medium,
        CacheTier.LONG: settings.cache_ttl_long,
    }


def digest(params: dict) -> str:
    """Stable digest of a filter/sort/page/limit combination."""
    canonical = json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha1(canonical.encode("utf-8")).hexdigest()


class RedisCacheBackend:
    """redis.asyncio backend. Errors propagate to CacheClient, which absorbs them."""

    def __init__(self, url: str, socket_timeout: float = 2.0):
        self.client = aioredis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=socket_timeout,
            socket_timeout=socket_timeout,
        )

    async def get(self, key: str) -> str | None:
        return await self.client.get(key)

    async def set(self, key: str, value: str, ttl: int) -> None:
        await self.client.setex(key, ttl, value)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return await self.client.delete(*keys)

    async def delete_pattern(self, pattern: str) -> int:
        deleted = 0
        batch: list[str] = []
        async for key in self.client.scan_iter(match=pattern, count=500):
            batch.append(key)
            if len(batch) >= 500:
                deleted += await self.client.delete(*batch)
                batch = []
        if batch:
            deleted += await self.client.delete(*batch)
        return deleted

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def close(self) -> None:
        await self.client.aclose()


class MemoryCacheBackend:
    """In-process backend with TTL expiry and glob matching, for local runs and tests."""

    def __init__(self):
        self._store: dict[str, tuple[str, float]] = {}

    def _sweep(self, now: float) -> None:
        expired = [key for key, (_, expires_at) in self._store.items() if expires_at <= now]
        for key in expired:
            del self._store[key]

    def _live(self, key: str) -> str | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= time.monotonic():
            self._store.pop(key, None)
            return None
        return value

    async def get(self, key: str) -> str | None:
        return self._live(key)

    async def set(self, key: str, value: str, ttl: int) -> None:
        now = time.monotonic()
        self._sweep(now)
        self._store[key] = (value, now + ttl)

    async def delete(self, *keys: str) -> int:
        return sum(1 for key in keys if self._store.pop(key, None) is not None)

    async def delete_pattern(self, pattern: str) -> int:
        matched = [key for key in self._store if fnmatch.fnmatchcase(key, pattern)]
        for key in matched:
            del self._store[key]
        return len(matched)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._store.clear()

    def keys(self) -> list[str]:
        return [key for key in list(self._store) if self._live(key) is not None]


class CacheClient:
    """Namespaced JSON cache over a backend, with tiered TTLs and kind invalidation."""

    def __init__(self, backend, namespace: str, ttls: dict[CacheTier, int]):
        self.backend = backend
        self.namespace = namespace
        self.ttls = ttls

    # Keys

    def key(self, kind: str, *parts: Any) -> str:
        return ":".join([self.namespace, kind, *(str(part) for part in parts)])

    def list_key(self, kind: str, params: dict) -> str:
        return self.key(kind, "list", digest(params))

    def detail_key(self, kind: str, entity_id: Any) -> str:
        return self.key(kind, entity_id)

    def kind_pattern(self, kind: str) -> str:
        return f"{self.namespace}:{kind}:*"

    # Operations

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self.backend.get(key)
            if raw is None:
                logger.debug("Cache miss %s", key)
                return None
            logger.debug("Cache hit %s", key)
            return json.loads(raw)
        except Exception as e:
            logger.warning("Cache read failed for %s: %s", key, e)
            return None

    async def set(self, key: str, value: Any, tier: CacheTier = CacheTier.SHORT) -> bool:
        try:
            await self.backend.set(key, json.dumps(value, default=str), self.ttls[tier])
            return True
        except Exception as e:
            logger.warning("Cache write failed for %s: %s", key, e)
            return False

    async def delete(self, key: str) -> bool:
        try:
            await self.backend.delete(key)
            return True
        except Exception as e:
            logger.warning("Cache delete failed for %s: %s", key, e)
            return False

    async def delete_pattern(self, pattern: str) -> int:
        try:
            deleted = await self.backend.delete_pattern(pattern)
            logger.debug("Cache cleared %d keys matching %s", deleted, pattern)
            return deleted
        except Exception as e:
            logger.warning("Cache pattern delete failed for %s: %s", pattern, e)
            return 0

    async def invalidate(self, *kinds: str) -> None:
        """Blanket-invalidate each written kind plus the kinds derived from it."""
        for kind in expand_kinds(kinds):
            await self.delete_pattern(self.kind_pattern(kind))

    async def ping(self) -> bool:
        try:
            return await self.backend.ping()
        except Exception as e:
            logger.warning("Cache ping failed: %s", e)
            return False

    async def close(self) -> None:
        try:
            await self.backend.close()
        except Exception as e:
            logger.warning("Cache close failed: %s", e)


def expand_kinds(kinds: Iterable[str]) -> list[str]:
    expanded: list[str] = []
    for kind in kinds:
        for related in INVALIDATES.get(kind, (kind,)):
            if related not in expanded:
                expanded.append(related)
    return expanded


def build_cache(settings: Settings | None = None) -> CacheClient:
    settings = settings or get_settings()
    if settings.cache_backend == "memory":
        backend = MemoryCacheBackend()
    else:
        backend = RedisCacheBackend(settings.redis_url, settings.cache_socket_timeout)
    logger.info("Cache backend: %s (namespace %s)", settings.cache_backend, settings.cache_namespace)
    return CacheClient(backend, settings.cache_namespace, tier_ttls(settings))
