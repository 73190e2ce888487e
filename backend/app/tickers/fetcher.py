"""CoinPaprika client for upstream ticker data."""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any

import httpx

from .config import DEFAULT_UPSTREAM_URL
from .errors import MalformedUpstreamResponse, TransientUpstreamError
from .interface import TickerSource
from .models import UNRANKED, Ticker, parse_timestamp, utcnow

logger = logging.getLogger(__name__)

_NON_NEGATIVE = ("price", "volume_24h", "market_cap")
_SIGNED = ("percent_change_1h", "percent_change_24h", "percent_change_7d")


class CoinpaprikaSource(TickerSource):
    """TickerSource backed by the public CoinPaprika REST API.

    ``GET {base_url}`` returns every ticker as a JSON array;
    ``GET {base_url}/{id}`` returns one ticker object or 404.

    One attempt per call, bounded by ``timeout``. The caller owns retry
    policy (there is none: the next request or tick simply tries again).
    """

    def __init__(
        self,
        base_url: str = DEFAULT_UPSTREAM_URL,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def fetch(self) -> list[Ticker]:
        try:
            response = await self._client.get(self._base_url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning("Upstream returned %d, no fresh tickers", e.response.status_code)
            return []
        except httpx.RequestError as e:
            # Timeouts and connection failures land here
            logger.warning("Upstream request failed (%s): %s", type(e).__name__, e)
            return []

        payload = _decode(response)
        if not isinstance(payload, list):
            raise MalformedUpstreamResponse(
                f"expected a JSON array of tickers, got {type(payload).__name__}"
            )

        fetched_at = utcnow()
        tickers = [normalize_ticker(record, fetched_at) for record in payload]
        logger.debug("Fetched %d tickers from upstream", len(tickers))
        return tickers

    async def fetch_by_id(self, ticker_id: str) -> Ticker | None:
        url = f"{self._base_url}/{ticker_id}"
        try:
            response = await self._client.get(url)
        except httpx.RequestError as e:
            raise TransientUpstreamError(f"upstream request for {ticker_id} failed: {e}") from e

        if response.status_code == 404:
            return None
        if response.is_error:
            raise TransientUpstreamError(
                f"upstream returned {response.status_code} for {ticker_id}"
            )

        payload = _decode(response)
        return normalize_ticker(payload, utcnow())

    async def close(self) -> None:
        await self._client.aclose()


def normalize_ticker(record: Any, fetched_at: datetime | None = None) -> Ticker:
    """Map one CoinPaprika record onto a Ticker.

    Missing numbers become None (never zero), a missing or non-positive rank
    becomes UNRANKED, and a missing timestamp becomes the fetch time.
    Raises MalformedUpstreamResponse when the record has no ``id``.
    """
    if not isinstance(record, dict):
        raise MalformedUpstreamResponse(f"ticker record is {type(record).__name__}, not an object")
    ticker_id = record.get("id")
    if not isinstance(ticker_id, str) or not ticker_id:
        raise MalformedUpstreamResponse("ticker record is missing its id")

    quotes = record.get("quotes")
    usd = quotes.get("USD") if isinstance(quotes, dict) else None
    if not isinstance(usd, dict):
        usd = {}

    numbers: dict[str, float | None] = {}
    for name in _NON_NEGATIVE:
        value = _to_float(usd.get(name))
        numbers[name] = value if value is not None and value >= 0 else None
    for name in _SIGNED:
        numbers[name] = _to_float(usd.get(name))

    return Ticker(
        id=ticker_id,
        name=str(record.get("name") or ""),
        symbol=str(record.get("symbol") or ""),
        rank=_to_rank(record.get("rank")),
        last_updated=parse_timestamp(record.get("last_updated")) or fetched_at or utcnow(),
        **numbers,
    )


def _decode(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise MalformedUpstreamResponse(f"upstream body is not JSON: {e}") from e


def _to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _to_rank(value: Any) -> int:
    if isinstance(value, bool):
        return UNRANKED
    try:
        rank = int(value)
    except (TypeError, ValueError):
        return UNRANKED
    return rank if rank >= 1 else UNRANKED
