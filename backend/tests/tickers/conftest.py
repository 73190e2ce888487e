"""Fixtures for ticker subsystem tests.

Provides in-memory stores, a controllable clock for TTL tests, a counting
fake upstream source and fake WebSocket subscribers.
"""

import asyncio
from datetime import UTC, datetime

import pytest

from app.tickers.cache import MemoryCacheStore
from app.tickers.interface import TickerSource
from app.tickers.models import Ticker
from app.tickers.service import TickerService
from app.tickers.store import MemoryTickerStore

FIXED_TIME = datetime(2024, 2, 10, 16, 0, tzinfo=UTC)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSource(TickerSource):
    """Upstream double that counts calls and can fail or stall on demand."""

    def __init__(self, tickers=None) -> None:
        self.tickers: list[Ticker] = list(tickers or [])
        self.error: Exception | None = None
        self.delay: float = 0.0
        self.calls = 0
        self.by_id_calls = 0
        self.closed = False

    async def fetch(self) -> list[Ticker]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.tickers)

    async def fetch_by_id(self, ticker_id: str) -> Ticker | None:
        self.by_id_calls += 1
        if self.error is not None:
            raise self.error
        return next((t for t in self.tickers if t.id == ticker_id), None)

    async def close(self) -> None:
        self.closed = True


class FakeSocket:
    """Subscriber double recording every frame it receives."""

    def __init__(self, closed: bool = False, stall: float = 0.0) -> None:
        self.sent: list[str] = []
        self.closed = closed
        self.stall = stall
        self.close_code: int | None = None

    async def send_text(self, data: str) -> None:
        if self.stall:
            await asyncio.sleep(self.stall)
        if self.closed:
            raise RuntimeError('Cannot call "send" once a close message has been sent.')
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed = True
        self.close_code = code


def _make_ticker(ticker_id: str, rank: int = 1, price: float | None = 100.0, **kwargs) -> Ticker:
    symbol = kwargs.pop("symbol", ticker_id.split("-")[0].upper())
    name = kwargs.pop("name", ticker_id.split("-")[-1].title())
    return Ticker(
        id=ticker_id,
        name=name,
        symbol=symbol,
        rank=rank,
        price=price,
        last_updated=kwargs.pop("last_updated", FIXED_TIME),
        **kwargs,
    )


@pytest.fixture
def make_ticker():
    return _make_ticker


@pytest.fixture
def sample_tickers():
    return [
        _make_ticker("btc-bitcoin", rank=1, price=100.0, market_cap=2_000.0),
        _make_ticker("eth-ethereum", rank=2, price=50.0, market_cap=1_000.0),
        _make_ticker("usdt-tether", rank=3, price=1.0, market_cap=500.0),
    ]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return MemoryCacheStore(clock=clock)


@pytest.fixture
def store():
    return MemoryTickerStore()


@pytest.fixture
def source(sample_tickers):
    return FakeSource(sample_tickers)


@pytest.fixture
def service(store, cache, source):
    return TickerService(store, cache, source, cache_ttl=30, refresh_guard_ttl=15)


@pytest.fixture
def socket_factory():
    return FakeSocket
