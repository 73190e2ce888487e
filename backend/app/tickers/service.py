"""Read-through ticker service: cache, upstream refresh and durable store."""

from __future__ import annotations

import asyncio
import json
import logging

from .errors import CacheStoreError, FetchError, NotFoundError
from .interface import CacheStore, TickerSource, TickerStore
from .keys import (
    QUERY_TAG,
    REFRESH_GUARD_KEY,
    query_cache_key,
    ticker_cache_key,
    trending_cache_key,
)
from .models import Ticker, TickerPage, TickerQuery, TrendingQuery

logger = logging.getLogger(__name__)


class TickerService:
    """Serves ticker queries from the cache, refreshing the durable store on a miss.

    Read path for a listing:
        cache hit  -> deserialize, return (no upstream call)
        cache miss -> refresh_from_upstream() -> count + find on the store
                   -> cache the envelope for ``cache_ttl`` seconds

    Cache failures degrade to misses. Upstream failures during a refresh are
    logged and the existing durable data is served. Durable store failures
    (DurableStoreError) propagate to the caller.
    """

    def __init__(
        self,
        store: TickerStore,
        cache: CacheStore,
        source: TickerSource,
        cache_ttl: int = 30,
        refresh_guard_ttl: int = 15,
    ) -> None:
        self._store = store
        self._cache = cache
        self._source = source
        self._cache_ttl = cache_ttl
        self._guard_ttl = refresh_guard_ttl
        self._inflight: asyncio.Task[int] | None = None

    async def list_tickers(self, query: TickerQuery) -> TickerPage:
        key = query_cache_key(query)
        cached = await self._cache_get(key)
        if cached is not None:
            return TickerPage.from_dict(json.loads(cached))

        written = await self.refresh_from_upstream()

        total = await self._store.count(query.symbol)
        rows = await self._store.find_many(
            symbol=query.symbol,
            sort=query.sort,
            skip=query.skip,
            limit=query.limit,
        )
        page = TickerPage(data=rows, page=query.page, limit=query.limit, total=total)

        # An empty page while upstream is down would pin "no data" for a full TTL
        if total or written:
            await self._cache_set(key, json.dumps(page.to_dict()), self._cache_ttl)
        return page

    async def trending(self, query: TrendingQuery) -> list[Ticker]:
        """Top tickers by 24h volume or 24h price change, highest first.

        Same read-through path as :meth:`list_tickers`: served from cache
        when possible, otherwise refreshed and read from the durable store.
        """
        key = trending_cache_key(query)
        cached = await self._cache_get(key)
        if cached is not None:
            return [Ticker.from_dict(t) for t in json.loads(cached)]

        written = await self.refresh_from_upstream()
        rows = await self._store.find_many(sort=query.by, limit=query.limit, descending=True)

        if rows or written:
            await self._cache_set(key, json.dumps([t.to_dict() for t in rows]), self._cache_ttl)
        return rows

    async def get_ticker_by_id(self, ticker_id: str) -> Ticker | None:
        """Cached lookup by id, falling back to the durable store only."""
        key = ticker_cache_key(ticker_id)
        cached = await self._cache_get(key)
        if cached is not None:
            return Ticker.from_dict(json.loads(cached))

        ticker = await self._store.find_one(ticker_id)
        if ticker is not None:
            await self._cache_set(key, json.dumps(ticker.to_dict()), self._cache_ttl)
        return ticker

    async def refresh_from_upstream(self) -> int:
        """Upsert the latest upstream tickers into the durable store.

        Concurrent callers share one in-flight refresh; a guard key in the
        cache collapses refreshes across processes. Returns the number of
        tickers written (0 when upstream had nothing or another refresh
        holds the guard).
        """
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.create_task(self._refresh(), name="ticker-refresh")
        return await asyncio.shield(self._inflight)

    async def refresh_ticker(self, ticker_id: str) -> Ticker:
        """Pull one ticker from upstream, store it and invalidate cached views of it.

        Raises NotFoundError when upstream does not know the id and
        TransientUpstreamError when upstream cannot be reached.
        """
        ticker = await self._source.fetch_by_id(ticker_id)
        if ticker is None:
            raise NotFoundError(f"Ticker with id '{ticker_id}' not found")

        await self._store.upsert(ticker)
        await self._cache_delete(ticker_cache_key(ticker_id))
        await self.invalidate_queries()
        return ticker

    async def invalidate_queries(self) -> int:
        """Drop every cached listing page and trending list. Returns the number removed."""
        try:
            return await self._cache.delete_by_tag(QUERY_TAG)
        except CacheStoreError as e:
            logger.warning("Query cache invalidation failed: %s", e)
            return 0

    async def _refresh(self) -> int:
        if not await self._acquire_guard():
            logger.debug("Refresh already running elsewhere, serving stored data")
            return 0
        try:
            try:
                tickers = await self._source.fetch()
            except FetchError as e:
                logger.warning("Upstream refresh failed, serving stored data: %s", e)
                return 0
            if not tickers:
                logger.info("Upstream returned no tickers, keeping stored data")
                return 0
            written = await self._store.upsert_many(tickers)
            logger.info("Refreshed %d tickers from upstream", written)
            return written
        finally:
            await self._cache_delete(REFRESH_GUARD_KEY)

    async def _acquire_guard(self) -> bool:
        try:
            return await self._cache.add(REFRESH_GUARD_KEY, "1", self._guard_ttl)
        except CacheStoreError as e:
            # Without a cache there is nothing to coordinate on; refresh anyway
            logger.warning("Refresh guard unavailable: %s", e)
            return True

    async def _cache_get(self, key: str) -> str | None:
        try:
            return await self._cache.get(key)
        except CacheStoreError as e:
            logger.warning("Cache read failed, treating as miss: %s", e)
            return None

    async def _cache_set(self, key: str, value: str, ttl: int) -> None:
        try:
            await self._cache.set(key, value, ttl)
        except CacheStoreError as e:
            logger.warning("Cache write failed: %s", e)

    async def _cache_delete(self, key: str) -> None:
        try:
            await self._cache.delete(key)
        except CacheStoreError as e:
            logger.warning("Cache delete failed for %s: %s", key, e)
