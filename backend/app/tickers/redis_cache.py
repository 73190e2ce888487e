"""Redis-backed cache store."""

from __future__ import annotations

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from .errors import CacheStoreError
from .interface import CacheStore

logger = logging.getLogger(__name__)

# Keys per SCAN round trip and per DEL batch during pattern deletion
SCAN_BATCH = 500


class RedisCacheStore(CacheStore):
    """CacheStore on top of a shared ``redis.asyncio`` client.

    Expiry is delegated to Redis (``SET ... EX``), so entries older than
    their TTL are never returned. Every Redis or socket failure is raised as
    CacheStoreError; callers degrade it to a cache miss.
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client
        self._closed = False

    @classmethod
    def from_url(cls, url: str) -> RedisCacheStore:
        return cls(redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> str | None:
        try:
            return await self._client.get(key)
        except (RedisError, OSError) as e:
            raise CacheStoreError(f"cache get failed for {key}: {e}") from e

    async def set(self, key: str, value: str, ttl: int) -> None:
        try:
            await self._client.set(key, value, ex=ttl)
        except (RedisError, OSError) as e:
            raise CacheStoreError(f"cache set failed for {key}: {e}") from e

    async def add(self, key: str, value: str, ttl: int) -> bool:
        try:
            return bool(await self._client.set(key, value, ex=ttl, nx=True))
        except (RedisError, OSError) as e:
            raise CacheStoreError(f"cache add failed for {key}: {e}") from e

    async def delete(self, key: str) -> int:
        try:
            return int(await self._client.delete(key))
        except (RedisError, OSError) as e:
            raise CacheStoreError(f"cache delete failed for {key}: {e}") from e

    async def delete_pattern(self, pattern: str) -> int:
        """Delete matching keys while scanning, one bounded batch at a time."""
        removed = 0
        batch: list[str] = []
        try:
            async for key in self._client.scan_iter(match=pattern, count=SCAN_BATCH):
                batch.append(key)
                if len(batch) >= SCAN_BATCH:
                    removed += int(await self._client.delete(*batch))
                    batch = []
            if batch:
                removed += int(await self._client.delete(*batch))
        except (RedisError, OSError) as e:
            raise CacheStoreError(f"cache pattern delete failed for {pattern}: {e}") from e
        logger.debug("Removed %d cache keys matching %s", removed, pattern)
        return removed

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError) as e:
            logger.warning("Redis ping failed: %s", e)
            return False

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._client.aclose()
        logger.info("Redis cache connection closed")
