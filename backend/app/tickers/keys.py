"""Cache key layout shared by the read service, scheduler and registry."""

from __future__ import annotations

import hashlib
import json

from .models import TickerQuery, TrendingQuery

# Tag for query pages; invalidating it drops every cached listing
QUERY_TAG = "tickers"
TICKER_PREFIX = "ticker"
SNAPSHOT_KEY = "broadcast:snapshot"
REFRESH_GUARD_KEY = "lock:tickers-refresh"


def query_cache_key(query: TickerQuery) -> str:
    """Deterministic key for one listing: tag plus a hash of the normalized query."""
    digest = hashlib.md5(
        json.dumps(query.normalized(), sort_keys=True).encode("utf-8"),
        usedforsecurity=False,
    ).hexdigest()
    return f"{QUERY_TAG}:{digest}"


def ticker_cache_key(ticker_id: str) -> str:
    return f"{TICKER_PREFIX}:{ticker_id}"


def trending_cache_key(query: TrendingQuery) -> str:
    """Trending lists share the query tag so invalidation drops them too."""
    return f"{QUERY_TAG}:trending:{query.by.value}:{query.limit}"
