"""Periodic broadcast of the shared ticker snapshot."""

from __future__ import annotations

import asyncio
import json
import logging

from .errors import CacheStoreError, FetchError
from .interface import CacheStore, TickerSource
from .keys import SNAPSHOT_KEY
from .messages import tickers_message
from .subscribers import SubscriberRegistry

logger = logging.getLogger(__name__)


class BroadcastScheduler:
    """Refreshes the broadcast snapshot on a fixed period and fans it out.

    Each tick reads the snapshot from the cache; on a miss it calls the
    upstream source directly (the durable store is bypassed, recency wins)
    and writes a non-empty result back with ``snapshot_ttl``. The payload
    is serialized once per tick and the same string goes to every
    subscriber.

    Lifecycle:
        scheduler = BroadcastScheduler(cache, source, registry)
        await scheduler.start()
        # ... app runs ...
        await scheduler.stop()   # before the cache and source are closed
    """

    def __init__(
        self,
        cache: CacheStore,
        source: TickerSource,
        registry: SubscriberRegistry,
        interval: float = 10.0,
        snapshot_ttl: int = 60,
    ) -> None:
        self._cache = cache
        self._source = source
        self._registry = registry
        self._interval = interval
        self._snapshot_ttl = snapshot_ttl
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        if self._snapshot_ttl < self._interval:
            logger.warning(
                "Snapshot TTL (%ds) is shorter than the broadcast interval (%.1fs); "
                "every tick will hit the upstream source",
                self._snapshot_ttl,
                self._interval,
            )
        self._task = asyncio.create_task(self._run_loop(), name="ticker-broadcast")
        logger.info("Broadcast scheduler started: %.1fs interval", self._interval)

    async def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("Broadcast scheduler stopped")

    async def tick(self) -> int:
        """Run one broadcast cycle. Returns the number of subscribers reached."""
        snapshot = await self._load_snapshot()
        if not snapshot:
            logger.debug("Broadcast tick skipped: no ticker data")
            return 0
        if not len(self._registry):
            return 0

        delivered = await self._registry.broadcast(tickers_message(snapshot))
        logger.debug("Broadcast %d tickers to %d subscribers", len(snapshot), delivered)
        return delivered

    async def _run_loop(self) -> None:
        """Tick on interval. A failed tick never stops the loop."""
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.tick()
            except Exception:
                logger.exception("Broadcast tick failed")

    async def _load_snapshot(self) -> list[dict]:
        try:
            raw = await self._cache.get(SNAPSHOT_KEY)
        except CacheStoreError as e:
            logger.warning("Snapshot cache read failed, fetching upstream: %s", e)
            raw = None
        if raw:
            return json.loads(raw)

        try:
            tickers = await self._source.fetch()
        except FetchError as e:
            logger.warning("Broadcast fetch failed: %s", e)
            return []
        if not tickers:
            return []

        snapshot = [t.to_dict() for t in tickers]
        try:
            await self._cache.set(SNAPSHOT_KEY, json.dumps(snapshot), self._snapshot_ttl)
        except CacheStoreError as e:
            logger.warning("Snapshot cache write failed: %s", e)
        return snapshot
