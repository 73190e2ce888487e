"""Tests for the durable store implementations.

Both stores must agree on filtering, ordering and upsert semantics, so the
behavioral tests run against each of them.
"""

from dataclasses import replace
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from app.tickers.errors import DurableStoreError
from app.tickers.models import SortField, TrendingBy
from app.tickers.sql_store import SqlTickerStore
from app.tickers.store import MemoryTickerStore


@pytest.fixture(params=["memory", "sql"])
def durable_store(request):
    if request.param == "memory":
        return MemoryTickerStore()
    return SqlTickerStore.from_url("sqlite://")


@pytest.mark.asyncio
class TestTickerStore:
    """Behavioral tests shared by MemoryTickerStore and SqlTickerStore."""

    async def test_upsert_and_find_one(self, durable_store, make_ticker):
        """Test inserting a ticker and reading it back by id."""
        await durable_store.open()
        ticker = make_ticker("btc-bitcoin", rank=1, price=100.0)
        await durable_store.upsert(ticker)

        assert await durable_store.find_one("btc-bitcoin") == ticker
        assert await durable_store.find_one("nope") is None
        await durable_store.close()

    async def test_upsert_is_idempotent(self, durable_store, sample_tickers):
        """Test that upserting the same data twice leaves rows unchanged."""
        await durable_store.open()
        await durable_store.upsert_many(sample_tickers)
        await durable_store.upsert_many(sample_tickers)

        assert await durable_store.count() == 3
        rows = await durable_store.find_many(limit=10)
        assert rows == sample_tickers

    async def test_upsert_overwrites_fields(self, durable_store, make_ticker):
        """Test that a repeated id overwrites prior fields instead of duplicating."""
        await durable_store.open()
        await durable_store.upsert(make_ticker("btc-bitcoin", price=100.0))
        await durable_store.upsert(make_ticker("btc-bitcoin", price=250.0, rank=1))

        assert await durable_store.count() == 1
        stored = await durable_store.find_one("btc-bitcoin")
        assert stored.price == 250.0

    async def test_upsert_many_empty(self, durable_store):
        await durable_store.open()
        assert await durable_store.upsert_many([]) == 0

    async def test_default_sort_is_rank_ascending(self, durable_store, make_ticker):
        """Test ordering by rank with the unranked sentinel last."""
        await durable_store.open()
        await durable_store.upsert_many(
            [
                make_ticker("zzz-unranked", rank=9999),
                make_ticker("eth-ethereum", rank=2),
                make_ticker("btc-bitcoin", rank=1),
            ]
        )

        rows = await durable_store.find_many()
        assert [t.id for t in rows] == ["btc-bitcoin", "eth-ethereum", "zzz-unranked"]

    async def test_sort_by_price_nulls_last(self, durable_store, make_ticker):
        """Test price ordering with missing prices at the end."""
        await durable_store.open()
        await durable_store.upsert_many(
            [
                make_ticker("btc-bitcoin", rank=1, price=100.0),
                make_ticker("new-coin", rank=5, price=None),
                make_ticker("usdt-tether", rank=3, price=1.0),
            ]
        )

        rows = await durable_store.find_many(sort=SortField.PRICE)
        assert [t.id for t in rows] == ["usdt-tether", "btc-bitcoin", "new-coin"]

    async def test_sort_by_market_cap(self, durable_store, sample_tickers):
        await durable_store.open()
        await durable_store.upsert_many(sample_tickers)

        rows = await durable_store.find_many(sort=SortField.MARKET_CAP)
        assert [t.id for t in rows] == ["usdt-tether", "eth-ethereum", "btc-bitcoin"]

    async def test_descending_keeps_nulls_last(self, durable_store, make_ticker):
        """Test highest-first ordering with missing values still at the end."""
        await durable_store.open()
        await durable_store.upsert_many(
            [
                make_ticker("btc-bitcoin", rank=1, volume_24h=300.0),
                make_ticker("new-coin", rank=5, volume_24h=None),
                make_ticker("eth-ethereum", rank=2, volume_24h=900.0),
                make_ticker("usdt-tether", rank=3, volume_24h=300.0),
            ]
        )

        rows = await durable_store.find_many(sort=TrendingBy.VOLUME, descending=True)
        assert [t.id for t in rows] == ["eth-ethereum", "btc-bitcoin", "usdt-tether", "new-coin"]

    async def test_descending_with_limit(self, durable_store, make_ticker):
        await durable_store.open()
        await durable_store.upsert_many(
            [
                make_ticker("btc-bitcoin", percent_change_24h=-2.0),
                make_ticker("eth-ethereum", percent_change_24h=4.0),
                make_ticker("doge-dogecoin", percent_change_24h=11.0),
            ]
        )

        rows = await durable_store.find_many(
            sort=TrendingBy.PRICE_CHANGE, limit=2, descending=True
        )
        assert [t.id for t in rows] == ["doge-dogecoin", "eth-ethereum"]

    async def test_ties_broken_by_id(self, durable_store, make_ticker):
        """Test deterministic order when sort values are equal."""
        await durable_store.open()
        await durable_store.upsert_many(
            [make_ticker("b-coin", rank=9999), make_ticker("a-coin", rank=9999)]
        )

        rows = await durable_store.find_many()
        assert [t.id for t in rows] == ["a-coin", "b-coin"]

    async def test_pagination(self, durable_store, make_ticker):
        """Test skip/limit windows over the sorted rows."""
        await durable_store.open()
        await durable_store.upsert_many(
            [make_ticker(f"coin-{i:02d}", rank=i + 1) for i in range(25)]
        )

        page_two = await durable_store.find_many(skip=20, limit=20)
        assert [t.rank for t in page_two] == [21, 22, 23, 24, 25]
        assert await durable_store.find_many(skip=40, limit=20) == []

    async def test_symbol_filter_case_insensitive(self, durable_store, make_ticker):
        """Test exact, case-insensitive symbol matching."""
        await durable_store.open()
        await durable_store.upsert_many(
            [
                make_ticker("btc-bitcoin", symbol="BTC"),
                make_ticker("wbtc-wrapped-bitcoin", symbol="WBTC", rank=20),
                make_ticker("btc-fork", symbol="btc", rank=500),
            ]
        )

        rows = await durable_store.find_many(symbol="btc")
        assert [t.id for t in rows] == ["btc-bitcoin", "btc-fork"]
        assert await durable_store.count(symbol="Btc") == 2
        assert await durable_store.count(symbol="DOGE") == 0

    async def test_timestamps_survive_storage(self, durable_store, make_ticker):
        """Test that last_updated comes back timezone-aware and unchanged."""
        await durable_store.open()
        ticker = make_ticker("btc-bitcoin")
        await durable_store.upsert(ticker)

        stored = await durable_store.find_one("btc-bitcoin")
        assert stored.last_updated == ticker.last_updated
        assert stored.last_updated.tzinfo is not None

    async def test_ping(self, durable_store):
        await durable_store.open()
        assert await durable_store.ping() is True


@pytest.mark.asyncio
class TestSqlTickerStoreErrors:
    """Failure handling specific to the SQL store."""

    async def test_database_errors_become_store_errors(self):
        """Test that SQLAlchemy failures surface as DurableStoreError."""
        store = SqlTickerStore.from_url("sqlite://")
        await store.open()

        failure = OperationalError("SELECT", {}, Exception("database is locked"))
        with patch.object(store, "_sessions", side_effect=failure):
            with pytest.raises(DurableStoreError):
                await store.count()

    async def test_missing_schema_is_store_error(self, make_ticker):
        """Test that querying before open() fails cleanly."""
        store = SqlTickerStore.from_url("sqlite://")
        with pytest.raises(DurableStoreError):
            await store.find_one("btc-bitcoin")

    async def test_close_is_idempotent(self):
        store = SqlTickerStore.from_url("sqlite://")
        await store.open()
        await store.close()
        await store.close()  # Should not raise

    async def test_updated_rows_keep_identity(self, make_ticker):
        """Test that a merge updates the row rather than inserting a new one."""
        store = SqlTickerStore.from_url("sqlite://")
        await store.open()
        ticker = make_ticker("eth-ethereum", rank=2, price=50.0)
        await store.upsert(ticker)
        await store.upsert(replace(ticker, price=55.0))

        assert await store.count() == 1
        assert (await store.find_one("eth-ethereum")).price == 55.0
