"""Thread-safe in-memory TTL cache store."""

from __future__ import annotations

import time
from collections.abc import Callable
from fnmatch import fnmatchcase
from threading import Lock

from .interface import CacheStore


class MemoryCacheStore(CacheStore):
    """In-process CacheStore with per-key expiry.

    Used when no Redis URL is configured, and in tests. Expired entries are
    treated as absent on read and dropped by :meth:`purge_expired`.

    Writers: TickerService (query pages, single tickers, refresh guard),
    BroadcastScheduler (snapshot).
    Readers: TickerService, BroadcastScheduler, SubscriberRegistry.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[str, tuple[float, str]] = {}  # key -> (expires_at, value)
        self._lock = Lock()
        self._clock = clock

    async def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    async def set(self, key: str, value: str, ttl: int) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + ttl, value)

    async def add(self, key: str, value: str, ttl: int) -> bool:
        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is not None and now < entry[0]:
                return False
            self._entries[key] = (now + ttl, value)
            return True

    async def delete(self, key: str) -> int:
        with self._lock:
            return 1 if self._entries.pop(key, None) is not None else 0

    async def delete_pattern(self, pattern: str) -> int:
        with self._lock:
            matched = [k for k in self._entries if fnmatchcase(k, pattern)]
            for key in matched:
                del self._entries[key]
            return len(matched)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        with self._lock:
            self._entries.clear()

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and self._clock() < entry[0]
