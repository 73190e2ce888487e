"""Data models for the ticker API."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from .errors import ValidationError

# Rank assigned to entries the upstream source does not rank, so they sort last
UNRANKED = 9999

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100
MAX_SYMBOL_LENGTH = 10
DEFAULT_TRENDING_LIMIT = 10

_NUMERIC_FIELDS = (
    "price",
    "volume_24h",
    "market_cap",
    "percent_change_1h",
    "percent_change_24h",
    "percent_change_7d",
)


def utcnow() -> datetime:
    return datetime.now(UTC)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into an aware UTC datetime."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


class SortField(str, Enum):
    """Fields a ticker listing can be sorted on (always ascending)."""

    PRICE = "price"
    MARKET_CAP = "market_cap"
    RANK = "rank"

    @property
    def field(self) -> str:
        """Ticker attribute the listing is ordered by."""
        return self.value


class TrendingBy(str, Enum):
    """Trending criteria (always descending)."""

    VOLUME = "volume"
    PRICE_CHANGE = "priceChange"

    @property
    def field(self) -> str:
        return _TRENDING_FIELDS[self]


_TRENDING_FIELDS = {
    TrendingBy.VOLUME: "volume_24h",
    TrendingBy.PRICE_CHANGE: "percent_change_24h",
}


@dataclass(frozen=True, slots=True)
class Ticker:
    """One cryptocurrency's latest market snapshot. ``id`` is the upsert key."""

    id: str
    name: str
    symbol: str
    rank: int = UNRANKED
    price: float | None = None
    volume_24h: float | None = None
    market_cap: float | None = None
    percent_change_1h: float | None = None
    percent_change_24h: float | None = None
    percent_change_7d: float | None = None
    last_updated: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses, cache entries and WebSocket messages."""
        return {
            "id": self.id,
            "name": self.name,
            "symbol": self.symbol,
            "rank": self.rank,
            "price": self.price,
            "volume_24h": self.volume_24h,
            "market_cap": self.market_cap,
            "percent_change_1h": self.percent_change_1h,
            "percent_change_24h": self.percent_change_24h,
            "percent_change_7d": self.percent_change_7d,
            "last_updated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Ticker:
        """Inverse of :meth:`to_dict`. Expects data that was produced by it."""
        return cls(
            id=data["id"],
            name=data["name"],
            symbol=data["symbol"],
            rank=data["rank"],
            last_updated=parse_timestamp(data.get("last_updated")) or utcnow(),
            **{name: data.get(name) for name in _NUMERIC_FIELDS},
        )


@dataclass(frozen=True, slots=True)
class TickerQuery:
    """Pagination, sort and filter for a ticker listing.

    Built per request and never persisted. Validates on construction and
    raises ValidationError listing every bad field. ``symbol`` is trimmed;
    a blank symbol means no filter.
    """

    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    sort: SortField = SortField.RANK
    symbol: str | None = None

    def __post_init__(self) -> None:
        errors: list[dict[str, str]] = []

        if not _is_int(self.page) or self.page < 1:
            errors.append({"field": "page", "message": "Page must be a positive integer"})
        if not _is_int(self.limit) or not 1 <= self.limit <= MAX_LIMIT:
            errors.append({"field": "limit", "message": f"Limit must be 1-{MAX_LIMIT}"})

        try:
            object.__setattr__(self, "sort", SortField(self.sort))
        except ValueError:
            errors.append({"field": "sort", "message": "Invalid sort field"})

        symbol = self.symbol.strip() if isinstance(self.symbol, str) else self.symbol
        if symbol is not None and not isinstance(symbol, str):
            errors.append({"field": "symbol", "message": "Symbol must be a string"})
        elif symbol and len(symbol) > MAX_SYMBOL_LENGTH:
            errors.append(
                {"field": "symbol", "message": f"Symbol must be 1-{MAX_SYMBOL_LENGTH} characters"}
            )
        object.__setattr__(self, "symbol", symbol or None)

        if errors:
            raise ValidationError(errors)

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    def normalized(self) -> dict[str, Any]:
        """Canonical form used to derive the cache key."""
        return {
            "page": self.page,
            "limit": self.limit,
            "sort": self.sort.value,
            "symbol": self.symbol.upper() if self.symbol else None,
        }


@dataclass(frozen=True, slots=True)
class TrendingQuery:
    """Criterion and size for a trending list. Validates like TickerQuery."""

    by: TrendingBy = TrendingBy.VOLUME
    limit: int = DEFAULT_TRENDING_LIMIT

    def __post_init__(self) -> None:
        errors: list[dict[str, str]] = []

        try:
            object.__setattr__(self, "by", TrendingBy(self.by))
        except ValueError:
            errors.append({"field": "by", "message": "Invalid trending criterion"})
        if not _is_int(self.limit) or not 1 <= self.limit <= MAX_LIMIT:
            errors.append({"field": "limit", "message": f"Limit must be 1-{MAX_LIMIT}"})

        if errors:
            raise ValidationError(errors)

    def normalized(self) -> dict[str, Any]:
        return {"by": self.by.value, "limit": self.limit}


@dataclass(frozen=True, slots=True)
class TickerPage:
    """Response envelope for a ticker listing."""

    data: list[Ticker]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": [t.to_dict() for t in self.data],
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TickerPage:
        return cls(
            data=[Ticker.from_dict(t) for t in data["data"]],
            page=data["page"],
            limit=data["limit"],
            total=data["total"],
        )


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
