"""Session-scoped byte cache for media resubmission, backed by Redis or memory."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Protocol, Set

import redis
import redis.asyncio as aioredis

from .config import settings

logger = logging.getLogger(__name__)


class CacheUnavailableError(RuntimeError):
    """Raised when the cache backend cannot be reached at all."""


@dataclass
class CacheStats:
    """Cache statistics for monitoring"""
    entry_count: int
    hits: int
    misses: int
    hit_rate: float


class ByteCache(Protocol):
    async def get(self, key: str) -> Optional[bytes]: ...

    async def set(self, key: str, value: bytes) -> None: ...

    async def delete(self, *keys: str) -> int: ...


class InMemoryByteCache:
    """Process-local backend, used in tests and when Redis is not deployed."""

    def __init__(self) -> None:
        self._items: Dict[str, bytes] = {}

    async def get(self, key: str) -> Optional[bytes]:
        return self._items.get(key)

    async def set(self, key: str, value: bytes) -> None:
        self._items[key] = bytes(value)

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._items.pop(key, None) is not None:
                removed += 1
        return removed

    def __len__(self) -> int:
        return len(self._items)


class RedisByteCache:
    """Redis backend storing raw bytes with a TTL per entry.

    Connection failures are surfaced as ``CacheUnavailableError`` so callers
    can tell "cache down" apart from "cache miss".
    """

    KEY_PREFIX = "console:media:"

    def __init__(
        self,
        redis_url: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
        client: Optional[aioredis.Redis] = None,
    ) -> None:
        self._client = client or aioredis.from_url(redis_url or settings.redis_url, decode_responses=False)
        self._ttl_seconds = ttl_seconds or settings.media_cache_ttl_seconds

    def _key(self, key: str) -> str:
        return f"{self.KEY_PREFIX}{key}"

    async def get(self, key: str) -> Optional[bytes]:
        try:
            return await self._client.get(self._key(key))
        except (redis.ConnectionError, redis.TimeoutError) as exc:
            raise CacheUnavailableError(f"Redis unavailable for get: {exc}") from exc

    async def set(self, key: str, value: bytes) -> None:
        try:
            await self._client.set(self._key(key), value, ex=self._ttl_seconds)
        except (redis.ConnectionError, redis.TimeoutError) as exc:
            raise CacheUnavailableError(f"Redis unavailable for set: {exc}") from exc

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return await self._client.delete(*(self._key(key) for key in keys))
        except (redis.ConnectionError, redis.TimeoutError) as exc:
            raise CacheUnavailableError(f"Redis unavailable for delete: {exc}") from exc

    async def close(self) -> None:
        await self._client.aclose()


class SessionMediaCache:
    """Media bytes for one entity, alive for one edit session.

    Keys follow ``<prefix>_<entity_id>_<filename>``. Every key written
    through this object is remembered so ``purge()`` removes exactly the
    session's entries and nothing else in the backend.
    """

    def __init__(self, backend: ByteCache, prefix: str, entity_id: str) -> None:
        self._backend = backend
        self._prefix = prefix
        self._entity_id = entity_id
        self._keys: Set[str] = set()
        self._hits = 0
        self._misses = 0

    def key_for(self, filename: str) -> str:
        return f"{self._prefix}_{self._entity_id}_{filename}"

    async def get(self, filename: str) -> Optional[bytes]:
        value = await self._backend.get(self.key_for(filename))
        if value is None:
            self._misses += 1
        else:
            self._hits += 1
        return value

    async def put(self, filename: str, value: bytes) -> None:
        key = self.key_for(filename)
        await self._backend.set(key, value)
        self._keys.add(key)

    async def contains(self, filename: str) -> bool:
        return await self._backend.get(self.key_for(filename)) is not None

    async def purge(self, filenames: Optional[Set[str]] = None) -> int:
        """Drop this session's entries (plus any ``filenames`` given explicitly)."""

        keys = set(self._keys)
        for filename in filenames or ():
            keys.add(self.key_for(filename))
        self._keys.clear()
        if not keys:
            return 0
        removed = await self._backend.delete(*sorted(keys))
        logger.debug("Purged %d media cache entries for %s", removed, self._entity_id)
        return removed

    def stats(self) -> CacheStats:
        total = self._hits + self._misses
        return CacheStats(
            entry_count=len(self._keys),
            hits=self._hits,
            misses=self._misses,
            hit_rate=(self._hits / total) if total else 0.0,
        )


def create_byte_cache(backend: Optional[str] = None) -> ByteCache:
    """Build the configured backend (``redis`` or ``memory``)."""

    choice = (backend or settings.media_cache_backend).lower()
    if choice == "memory":
        return InMemoryByteCache()
    if choice == "redis":
        return RedisByteCache()
    raise ValueError(f"Unknown media cache backend: {choice}")


__all__ = [
    "ByteCache",
    "CacheStats",
    "CacheUnavailableError",
    "InMemoryByteCache",
    "RedisByteCache",
    "SessionMediaCache",
    "create_byte_cache",
]
