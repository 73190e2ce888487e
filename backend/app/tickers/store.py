"""Thread-safe in-memory durable store."""

from __future__ import annotations

from collections.abc import Iterable
from threading import Lock

from .interface import TickerStore
from .models import SortField, Ticker, TrendingBy


def sort_key(sort: SortField | TrendingBy, descending: bool = False):
    """Order on ``sort.field`` with nulls last, ties broken by id."""
    sign = -1 if descending else 1

    def key(ticker: Ticker) -> tuple:
        value = getattr(ticker, sort.field)
        return (value is None, sign * value if value is not None else 0, ticker.id)

    return key


class MemoryTickerStore(TickerStore):
    """TickerStore held in a dict keyed by ticker id.

    Not durable across restarts; selected with ``DATABASE_URL=memory://``
    and used as the store double in tests.
    """

    def __init__(self, tickers: Iterable[Ticker] = ()) -> None:
        self._rows: dict[str, Ticker] = {t.id: t for t in tickers}
        self._lock = Lock()

    async def find_many(
        self,
        symbol: str | None = None,
        sort: SortField | TrendingBy = SortField.RANK,
        skip: int = 0,
        limit: int = 20,
        descending: bool = False,
    ) -> list[Ticker]:
        rows = sorted(self._matching(symbol), key=sort_key(sort, descending))
        return rows[skip : skip + limit]

    async def count(self, symbol: str | None = None) -> int:
        return len(self._matching(symbol))

    async def find_one(self, ticker_id: str) -> Ticker | None:
        with self._lock:
            return self._rows.get(ticker_id)

    async def upsert(self, ticker: Ticker) -> None:
        with self._lock:
            self._rows[ticker.id] = ticker

    async def upsert_many(self, tickers: Iterable[Ticker]) -> int:
        written = 0
        with self._lock:
            for ticker in tickers:
                self._rows[ticker.id] = ticker
                written += 1
        return written

    async def ping(self) -> bool:
        return True

    def _matching(self, symbol: str | None) -> list[Ticker]:
        with self._lock:
            rows = list(self._rows.values())
        if symbol:
            wanted = symbol.upper()
            rows = [t for t in rows if t.symbol.upper() == wanted]
        return rows

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)
