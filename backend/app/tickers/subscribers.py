"""Registry of live WebSocket subscribers."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Protocol

from .errors import CacheStoreError
from .interface import CacheStore
from .keys import SNAPSHOT_KEY
from .messages import info_message, tickers_message

logger = logging.getLogger(__name__)

# "Try again later": sent to subscribers dropped after a failed or slow send
DROPPED_CLOSE_CODE = 1013


class Subscriber(Protocol):
    """Anything that can receive text frames and be closed. FastAPI's WebSocket qualifies."""

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


class SubscriberRegistry:
    """Tracks open live connections and fans payloads out to them.

    Every subscriber gets the same global snapshot; there is no
    per-subscriber filtering. A subscriber whose send fails or times out is
    dropped and its connection closed, without affecting delivery to the
    others.

    A joining subscriber is registered at once but only receives broadcasts
    after its info message (and cached snapshot) went out, so the info
    message is always first and no two sends overlap on one connection.
    """

    def __init__(self, cache: CacheStore, send_timeout: float = 5.0) -> None:
        self._cache = cache
        self._send_timeout = send_timeout
        # Keyed by id(): WebSocket objects are mappings and not hashable
        self._subscribers: dict[int, Subscriber] = {}
        self._joining: set[int] = set()

    async def join(self, subscriber: Subscriber) -> bool:
        """Register a subscriber, acknowledge it, and send the cached snapshot.

        Returns False if the subscriber could not be reached (it is removed
        and closed).
        """
        key = id(subscriber)
        self._subscribers[key] = subscriber
        self._joining.add(key)
        logger.info("Subscriber joined (%d connected)", len(self._subscribers))
        try:
            if not await self._send(subscriber, info_message()):
                return False
            snapshot = await self._cached_snapshot()
            if snapshot:
                return await self._send(subscriber, tickers_message(snapshot))
            return True
        finally:
            self._joining.discard(key)

    def leave(self, subscriber: Subscriber) -> None:
        """Remove a subscriber. No-op if it is not registered."""
        if self._subscribers.pop(id(subscriber), None) is not None:
            logger.info("Subscriber left (%d connected)", len(self._subscribers))

    async def broadcast(self, payload: str) -> int:
        """Send one pre-serialized payload to every ready subscriber concurrently.

        Returns the number of successful deliveries.
        """
        subscribers = [s for key, s in self._subscribers.items() if key not in self._joining]
        if not subscribers:
            return 0
        results = await asyncio.gather(*(self._send(s, payload) for s in subscribers))
        return sum(results)

    async def _send(self, subscriber: Subscriber, payload: str) -> bool:
        try:
            await asyncio.wait_for(subscriber.send_text(payload), timeout=self._send_timeout)
            return True
        except Exception as e:
            # Closed sockets raise RuntimeError or WebSocketDisconnect; slow ones time out
            logger.info("Dropping subscriber after failed send: %s", type(e).__name__)
            self.leave(subscriber)
            await self._close(subscriber)
            return False

    async def _close(self, subscriber: Subscriber) -> None:
        """Close a dropped connection so its handler stops waiting on it."""
        try:
            await asyncio.wait_for(
                subscriber.close(code=DROPPED_CLOSE_CODE), timeout=self._send_timeout
            )
        except Exception as e:
            logger.debug("Close of dropped subscriber failed: %s", type(e).__name__)

    async def _cached_snapshot(self) -> list | None:
        try:
            raw = await self._cache.get(SNAPSHOT_KEY)
        except CacheStoreError as e:
            logger.warning("Snapshot unavailable for new subscriber: %s", e)
            return None
        return json.loads(raw) if raw else None

    def __len__(self) -> int:
        return len(self._subscribers)

    def __contains__(self, subscriber: object) -> bool:
        return id(subscriber) in self._subscribers
