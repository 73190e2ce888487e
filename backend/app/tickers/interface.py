"""Abstract interfaces for the collaborators of the ticker service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable

from .models import SortField, Ticker, TrendingBy


class TickerSource(ABC):
    """Contract for the upstream ticker provider.

    Lifecycle:
        source = create_ticker_source(settings)
        tickers = await source.fetch()
        one = await source.fetch_by_id("btc-bitcoin")
        # ... app shutting down ...
        await source.close()
    """

    @abstractmethod
    async def fetch(self) -> list[Ticker]:
        """Fetch and normalize the full ticker list.

        An empty list means "no fresher data available now", never "zero
        tickers exist". Raises MalformedUpstreamResponse on a bad payload shape.
        """

    @abstractmethod
    async def fetch_by_id(self, ticker_id: str) -> Ticker | None:
        """Fetch one ticker. None when the source does not know the id.

        Raises TransientUpstreamError on network failure or timeout.
        """

    async def close(self) -> None:
        """Release network resources. Safe to call multiple times."""


class CacheStore(ABC):
    """Contract for the shared TTL cache.

    Values are serialized strings. Implementations must be safe under
    concurrent use from request handlers and the broadcast task. Backend
    failures are raised as CacheStoreError; consumers treat them as misses.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value, or None when absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int) -> None:
        """Store a value that expires after ``ttl`` seconds."""

    @abstractmethod
    async def add(self, key: str, value: str, ttl: int) -> bool:
        """Store only if the key is absent. Returns True when stored."""

    @abstractmethod
    async def delete(self, key: str) -> int:
        """Remove one key. Returns the number of keys removed (0 or 1)."""

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        """Remove every key matching a glob pattern. Returns the count removed."""

    async def delete_by_tag(self, tag: str) -> int:
        """Remove every key whose name starts with ``tag``."""
        return await self.delete_pattern(f"{tag}*")

    @abstractmethod
    async def ping(self) -> bool:
        """True when the backend is reachable."""

    async def close(self) -> None:
        """Release the backend connection. Safe to call multiple times."""


class TickerStore(ABC):
    """Contract for the durable system of record.

    Failures are raised as DurableStoreError. Sorting is ascending (or
    descending when asked) with nulls last and ``id`` as tie-breaker; the
    symbol filter is a case-insensitive exact match.
    """

    async def open(self) -> None:
        """Acquire connections and ensure the schema exists."""

    async def close(self) -> None:
        """Release connections. Safe to call multiple times."""

    @abstractmethod
    async def find_many(
        self,
        symbol: str | None = None,
        sort: SortField | TrendingBy = SortField.RANK,
        skip: int = 0,
        limit: int = 20,
        descending: bool = False,
    ) -> list[Ticker]:
        """Return one page of tickers ordered on ``sort.field``."""

    @abstractmethod
    async def count(self, symbol: str | None = None) -> int:
        """Count tickers matching the filter."""

    @abstractmethod
    async def find_one(self, ticker_id: str) -> Ticker | None:
        """Look up a ticker by id."""

    @abstractmethod
    async def upsert(self, ticker: Ticker) -> None:
        """Insert the ticker, or overwrite the stored row with the same id."""

    @abstractmethod
    async def upsert_many(self, tickers: Iterable[Ticker]) -> int:
        """Upsert a batch. Returns the number of tickers written."""

    @abstractmethod
    async def ping(self) -> bool:
        """True when the store is reachable."""
