"""REST endpoints for ticker queries."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from .errors import NotFoundError
from .models import (
    DEFAULT_LIMIT,
    DEFAULT_PAGE,
    DEFAULT_TRENDING_LIMIT,
    SortField,
    TickerQuery,
    TrendingBy,
    TrendingQuery,
)
from .service import TickerService


def create_ticker_router(service: TickerService) -> APIRouter:
    """Create the /tickers router bound to a TickerService.

    Query parameters are validated by TickerQuery; a ValidationError becomes
    a 400 response through the app's exception handlers.
    """
    router = APIRouter(prefix="/tickers", tags=["tickers"])

    @router.get("")
    async def list_tickers(
        page: int = DEFAULT_PAGE,
        limit: int = DEFAULT_LIMIT,
        sort: str = SortField.RANK.value,
        symbol: str | None = None,
    ) -> dict[str, Any]:
        """Paginated, sorted (ascending) and optionally symbol-filtered tickers."""
        query = TickerQuery(page=page, limit=limit, sort=sort, symbol=symbol)
        result = await service.list_tickers(query)
        return result.to_dict()

    @router.get("/{ticker_id}")
    async def get_ticker(ticker_id: str) -> dict[str, Any]:
        ticker = await service.get_ticker_by_id(ticker_id)
        if ticker is None:
            raise NotFoundError(f"Ticker with id '{ticker_id}' not found")
        return ticker.to_dict()

    @router.post("/{ticker_id}/refresh")
    async def refresh_ticker(ticker_id: str) -> dict[str, Any]:
        """Re-fetch one ticker from upstream and drop its cached views."""
        ticker = await service.refresh_ticker(ticker_id)
        return ticker.to_dict()

    return router


def create_analytics_router(service: TickerService) -> APIRouter:
    """Create the /analytics router bound to a TickerService."""
    router = APIRouter(prefix="/analytics", tags=["analytics"])

    @router.get("/trending")
    async def trending(
        by: str = TrendingBy.VOLUME.value,
        limit: int = DEFAULT_TRENDING_LIMIT,
    ) -> dict[str, Any]:
        """Top tickers by 24h volume (``by=volume``) or 24h price change (``by=priceChange``)."""
        query = TrendingQuery(by=by, limit=limit)
        tickers = await service.trending(query)
        return {"data": [t.to_dict() for t in tickers]}

    return router
