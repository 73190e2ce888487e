"""FastAPI application: wiring, lifecycle and error responses."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.logging_conf import setup_logging
from app.tickers import (
    BroadcastScheduler,
    CacheStore,
    Settings,
    SubscriberRegistry,
    TickerService,
    TickerSource,
    TickerStore,
    create_analytics_router,
    create_cache_store,
    create_stream_router,
    create_ticker_router,
    create_ticker_source,
    create_ticker_store,
)
from app.tickers.errors import DurableStoreError, TickerError, ValidationError

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    cache: CacheStore | None = None,
    store: TickerStore | None = None,
    source: TickerSource | None = None,
) -> FastAPI:
    """Build the application. Collaborators not passed in come from the factories.

    Construction does no I/O. The lifespan opens the durable store and starts
    the broadcast scheduler; on shutdown the scheduler is stopped before the
    upstream client, cache and durable store are closed.
    """
    settings = settings if settings is not None else Settings.from_env()
    cache = cache if cache is not None else create_cache_store(settings)
    store = store if store is not None else create_ticker_store(settings)
    source = source if source is not None else create_ticker_source(settings)

    service = TickerService(
        store,
        cache,
        source,
        cache_ttl=settings.cache_ttl,
        refresh_guard_ttl=settings.refresh_guard_ttl,
    )
    registry = SubscriberRegistry(cache, send_timeout=settings.send_timeout)
    scheduler = BroadcastScheduler(
        cache,
        source,
        registry,
        interval=settings.broadcast_interval,
        snapshot_ttl=settings.snapshot_ttl,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            await store.open()
        except DurableStoreError:
            logger.exception(
                "Durable store unavailable at startup; reads will fail until it recovers"
            )
        await scheduler.start()
        try:
            yield
        finally:
            await scheduler.stop()
            await _close_quietly("upstream client", source.close)
            await _close_quietly("cache", cache.close)
            await _close_quietly("durable store", store.close)
            logger.info("Shutdown complete")

    app = FastAPI(title="Crypto Ticker API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.service = service
    app.state.registry = registry
    app.state.scheduler = scheduler

    app.include_router(create_ticker_router(service))
    app.include_router(create_analytics_router(service))
    app.include_router(create_stream_router(registry))
    _install_error_handlers(app, settings)

    @app.get("/health")
    async def health() -> JSONResponse:
        db_ok = await store.ping()
        cache_ok = await cache.ping()
        healthy = db_ok and cache_ok
        body = {
            "status": "ok" if healthy else "error",
            "db": "up" if db_ok else "down",
            "cache": "up" if cache_ok else "down",
            "timestamp": datetime.now(UTC).isoformat(),
        }
        if not healthy:
            logger.warning("Health check failed: %s", body)
        return JSONResponse(body, status_code=200 if healthy else 503)

    return app


async def _close_quietly(name: str, close: Callable[[], Awaitable[None]]) -> None:
    """Run one shutdown step; a failure is logged and the remaining steps still run."""
    try:
        await close()
    except Exception:
        logger.exception("Failed to close %s", name)


def _install_error_handlers(app: FastAPI, settings: Settings) -> None:
    """Map exceptions onto JSON error bodies. Stack traces are only logged."""

    @app.exception_handler(ValidationError)
    async def handle_validation(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse({"errors": exc.errors}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [
            {"field": str(err["loc"][-1]) if err.get("loc") else "request", "message": err["msg"]}
            for err in exc.errors()
        ]
        return JSONResponse({"errors": errors}, status_code=400)

    @app.exception_handler(TickerError)
    async def handle_ticker_error(request: Request, exc: TickerError) -> JSONResponse:
        message = exc.message
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
            if settings.is_production:
                message = "Service temporarily unavailable"
        return JSONResponse(
            {"error": message, "status": exc.status_code}, status_code=exc.status_code
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        message = "Internal server error" if settings.is_production else str(exc)
        return JSONResponse({"error": message, "status": 500}, status_code=500)


def run() -> None:
    """Console entry point: configure logging and serve with uvicorn."""
    import uvicorn

    settings = Settings.from_env()
    setup_logging(settings.log_level, settings.log_format)
    uvicorn.run(
        "app.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_config=None,
    )
