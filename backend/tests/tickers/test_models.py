"""Tests for ticker data models."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from app.tickers.errors import ValidationError
from app.tickers.models import (
    UNRANKED,
    SortField,
    Ticker,
    TickerPage,
    TickerQuery,
    TrendingBy,
    TrendingQuery,
    parse_timestamp,
)


class TestTicker:
    """Unit tests for the Ticker model."""

    def test_defaults(self):
        """Test that optional numbers default to None and rank to the sentinel."""
        ticker = Ticker(id="xyz-unknown", name="Unknown", symbol="XYZ")
        assert ticker.rank == UNRANKED
        assert ticker.price is None
        assert ticker.market_cap is None
        assert ticker.last_updated.tzinfo is not None

    def test_to_dict_shape(self, make_ticker):
        """Test the JSON shape shared by REST and WebSocket payloads."""
        data = make_ticker("btc-bitcoin").to_dict()
        assert list(data) == [
            "id",
            "name",
            "symbol",
            "rank",
            "price",
            "volume_24h",
            "market_cap",
            "percent_change_1h",
            "percent_change_24h",
            "percent_change_7d",
            "last_updated",
        ]
        assert data["last_updated"] == "2024-02-10T16:00:00+00:00"

    def test_from_dict_restores_ticker(self, make_ticker):
        """Test that a serialized ticker deserializes to an equal value."""
        ticker = make_ticker("eth-ethereum", rank=2, price=None, percent_change_24h=-3.5)
        assert Ticker.from_dict(ticker.to_dict()) == ticker

    def test_frozen(self, make_ticker):
        """Test that tickers are immutable."""
        ticker = make_ticker("btc-bitcoin")
        with pytest.raises(AttributeError):
            ticker.price = 1.0  # type: ignore[misc]


class TestParseTimestamp:
    def test_zulu_suffix(self):
        assert parse_timestamp("2024-02-10T16:00:00Z") == datetime(2024, 2, 10, 16, tzinfo=UTC)

    def test_offset_converted_to_utc(self):
        parsed = parse_timestamp("2024-02-10T18:00:00+02:00")
        assert parsed == datetime(2024, 2, 10, 16, tzinfo=UTC)
        assert parsed.utcoffset() == timedelta(0)

    def test_naive_assumed_utc(self):
        assert parse_timestamp(datetime(2024, 1, 1)) == datetime(2024, 1, 1, tzinfo=UTC)

    def test_aware_datetime_normalized(self):
        tz = timezone(timedelta(hours=-5))
        assert parse_timestamp(datetime(2024, 1, 1, 7, tzinfo=tz)) == datetime(2024, 1, 1, 12, tzinfo=UTC)

    @pytest.mark.parametrize("value", [None, "", "not a date", 12345])
    def test_invalid_values(self, value):
        assert parse_timestamp(value) is None


class TestTickerQuery:
    """Unit tests for query validation and normalization."""

    def test_defaults(self):
        """Test default page, limit and sort."""
        query = TickerQuery()
        assert (query.page, query.limit, query.sort, query.symbol) == (1, 20, SortField.RANK, None)
        assert query.skip == 0

    def test_skip(self):
        """Test that skip is (page - 1) * limit."""
        assert TickerQuery(page=3, limit=20).skip == 40

    def test_sort_from_string(self):
        """Test that sort accepts the raw query-string value."""
        assert TickerQuery(sort="market_cap").sort is SortField.MARKET_CAP

    def test_symbol_trimmed_and_blank_dropped(self):
        """Test symbol normalization."""
        assert TickerQuery(symbol="  btc ").symbol == "btc"
        assert TickerQuery(symbol="   ").symbol is None

    @pytest.mark.parametrize(
        "kwargs, field",
        [
            ({"page": 0}, "page"),
            ({"page": -1}, "page"),
            ({"limit": 0}, "limit"),
            ({"limit": 101}, "limit"),
            ({"sort": "volume"}, "sort"),
            ({"sort": "-rank"}, "sort"),
            ({"symbol": "ABCDEFGHIJK"}, "symbol"),
        ],
    )
    def test_invalid_field(self, kwargs, field):
        """Test that each invalid parameter is reported by field name."""
        with pytest.raises(ValidationError) as excinfo:
            TickerQuery(**kwargs)
        assert [e["field"] for e in excinfo.value.errors] == [field]
        assert excinfo.value.status_code == 400

    def test_all_errors_reported(self):
        """Test that several bad fields are reported together."""
        with pytest.raises(ValidationError) as excinfo:
            TickerQuery(page=0, limit=500, sort="nope")
        assert {e["field"] for e in excinfo.value.errors} == {"page", "limit", "sort"}

    def test_limit_bounds_inclusive(self):
        """Test that 1 and 100 are valid limits."""
        assert TickerQuery(limit=1).limit == 1
        assert TickerQuery(limit=100).limit == 100

    def test_normalized_symbol_case_insensitive(self):
        """Test that symbol case does not change the normalized form."""
        assert TickerQuery(symbol="btc").normalized() == TickerQuery(symbol="BTC").normalized()


class TestTrendingQuery:
    """Validation for trending list requests."""

    def test_defaults(self):
        query = TrendingQuery()
        assert query.by is TrendingBy.VOLUME
        assert query.limit == 10

    def test_criterion_from_string(self):
        """Test that the wire names map onto ticker fields."""
        assert TrendingQuery(by="priceChange").by.field == "percent_change_24h"
        assert TrendingQuery(by="volume").by.field == "volume_24h"

    @pytest.mark.parametrize(
        "kwargs, field",
        [
            ({"by": "favorites"}, "by"),
            ({"by": "volume_24h"}, "by"),
            ({"limit": 0}, "limit"),
            ({"limit": 101}, "limit"),
            ({"limit": True}, "limit"),
        ],
    )
    def test_invalid_field(self, kwargs, field):
        with pytest.raises(ValidationError) as excinfo:
            TrendingQuery(**kwargs)
        assert [e["field"] for e in excinfo.value.errors] == [field]

    def test_limit_bounds_inclusive(self):
        assert TrendingQuery(limit=1).limit == 1
        assert TrendingQuery(limit=100).limit == 100


class TestTickerPage:
    """Unit tests for the response envelope."""

    def test_total_pages_rounds_up(self):
        """Test total=95, limit=20 gives 5 pages."""
        assert TickerPage(data=[], page=1, limit=20, total=95).total_pages == 5

    def test_total_pages_exact(self):
        assert TickerPage(data=[], page=1, limit=20, total=40).total_pages == 2

    def test_empty_page(self):
        """Test total=0 gives zero pages and no data."""
        page = TickerPage(data=[], page=1, limit=20, total=0)
        assert page.to_dict() == {"data": [], "page": 1, "limit": 20, "total": 0, "totalPages": 0}

    def test_round_trip(self, sample_tickers):
        page = TickerPage(data=sample_tickers, page=2, limit=3, total=7)
        restored = TickerPage.from_dict(page.to_dict())
        assert restored == page
        assert restored.to_dict()["totalPages"] == 3
