"""Ticker data subsystem: read-through cache and live broadcast.

Public API:
    Ticker, TickerQuery, TickerPage - Data models
    TrendingQuery, TrendingBy - Trending list criteria
    TickerService          - Cached, paginated reads over the durable store
    BroadcastScheduler     - Periodic snapshot fan-out to live subscribers
    SubscriberRegistry     - Open WebSocket connections
    CacheStore, TickerStore, TickerSource - Collaborator interfaces
    Settings               - Environment-driven configuration
    create_cache_store, create_ticker_store, create_ticker_source - Factories
    create_ticker_router, create_analytics_router,
    create_stream_router   - FastAPI router factories
"""

from .broadcast import BroadcastScheduler
from .config import Settings
from .factory import create_cache_store, create_ticker_source, create_ticker_store
from .interface import CacheStore, TickerSource, TickerStore
from .models import SortField, Ticker, TickerPage, TickerQuery, TrendingBy, TrendingQuery
from .routes import create_analytics_router, create_ticker_router
from .service import TickerService
from .stream import create_stream_router
from .subscribers import SubscriberRegistry

__all__ = [
    "Ticker",
    "TickerQuery",
    "TickerPage",
    "SortField",
    "TrendingBy",
    "TrendingQuery",
    "TickerService",
    "BroadcastScheduler",
    "SubscriberRegistry",
    "CacheStore",
    "TickerStore",
    "TickerSource",
    "Settings",
    "create_cache_store",
    "create_ticker_store",
    "create_ticker_source",
    "create_ticker_router",
    "create_analytics_router",
    "create_stream_router",
]
