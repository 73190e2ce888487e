"""Factories that select collaborator implementations from settings."""

from __future__ import annotations

import logging

from .cache import MemoryCacheStore
from .config import MEMORY_DATABASE_URL, Settings
from .fetcher import CoinpaprikaSource
from .interface import CacheStore, TickerSource, TickerStore
from .store import MemoryTickerStore

logger = logging.getLogger(__name__)


def create_cache_store(settings: Settings) -> CacheStore:
    """Create the cache store.

    - ``redis_url`` set → RedisCacheStore (shared across replicas)
    - Otherwise → MemoryCacheStore (process-local)

    No connection is made here; Redis connects lazily on first use.
    """
    if settings.redis_url:
        from .redis_cache import RedisCacheStore

        logger.info("Cache store: Redis")
        return RedisCacheStore.from_url(settings.redis_url)

    logger.info("Cache store: in-memory")
    return MemoryCacheStore()


def create_ticker_store(settings: Settings) -> TickerStore:
    """Create the durable store. Caller must await store.open() before use."""
    if settings.database_url == MEMORY_DATABASE_URL:
        logger.info("Durable store: in-memory (not persisted)")
        return MemoryTickerStore()

    from .sql_store import SqlTickerStore

    logger.info("Durable store: SQL")
    return SqlTickerStore.from_url(settings.database_url)


def create_ticker_source(settings: Settings) -> TickerSource:
    return CoinpaprikaSource(base_url=settings.upstream_url, timeout=settings.upstream_timeout)
