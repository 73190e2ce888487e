"""Service configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_UPSTREAM_URL = "https://api.coinpaprika.com/v1/tickers"
MEMORY_DATABASE_URL = "memory://"


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the ticker API.

    Attributes:
        upstream_url: Ticker list endpoint; ``{upstream_url}/{id}`` serves one ticker.
        upstream_timeout: Timeout in seconds for every upstream request.
        redis_url: Redis connection URL. None selects the in-memory cache.
        database_url: SQLAlchemy URL for the durable store, or ``memory://``.
        cache_ttl: TTL for cached query pages and single tickers.
        snapshot_ttl: TTL for the broadcast snapshot.
        broadcast_interval: Seconds between broadcast ticks.
        refresh_guard_ttl: Lifetime of the "refresh in flight" guard key.
        send_timeout: Upper bound for one WebSocket send.
        environment: ``production`` hides internal error messages from clients.
        log_level: Root log level.
        log_format: ``plain`` or ``json``.
        host: Bind address for the bundled server.
        port: Bind port for the bundled server.
    """

    upstream_url: str = DEFAULT_UPSTREAM_URL
    upstream_timeout: float = 10.0
    redis_url: str | None = None
    database_url: str = "sqlite:///./tickers.db"
    cache_ttl: int = 30
    snapshot_ttl: int = 60
    broadcast_interval: float = 10.0
    refresh_guard_ttl: int = 15
    send_timeout: float = 5.0
    environment: str = "development"
    log_level: str = "INFO"
    log_format: str = "plain"
    host: str = "0.0.0.0"
    port: int = 5000

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @classmethod
    def from_env(cls) -> Settings:
        """Read settings from environment variables, falling back to defaults.

        Environment variables:
            UPSTREAM_URL, UPSTREAM_TIMEOUT, REDIS_URL, DATABASE_URL, CACHE_TTL,
            SNAPSHOT_TTL, BROADCAST_INTERVAL, REFRESH_GUARD_TTL, SEND_TIMEOUT,
            APP_ENV, LOG_LEVEL, LOG_FORMAT, HOST, PORT.
        """
        defaults = cls()
        return cls(
            upstream_url=os.getenv("UPSTREAM_URL", defaults.upstream_url).rstrip("/"),
            upstream_timeout=float(os.getenv("UPSTREAM_TIMEOUT", defaults.upstream_timeout)),
            redis_url=os.getenv("REDIS_URL", "").strip() or None,
            database_url=os.getenv("DATABASE_URL", "").strip() or defaults.database_url,
            cache_ttl=int(os.getenv("CACHE_TTL", defaults.cache_ttl)),
            snapshot_ttl=int(os.getenv("SNAPSHOT_TTL", defaults.snapshot_ttl)),
            broadcast_interval=float(os.getenv("BROADCAST_INTERVAL", defaults.broadcast_interval)),
            refresh_guard_ttl=int(os.getenv("REFRESH_GUARD_TTL", defaults.refresh_guard_ttl)),
            send_timeout=float(os.getenv("SEND_TIMEOUT", defaults.send_timeout)),
            environment=os.getenv("APP_ENV", defaults.environment),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
            log_format=os.getenv("LOG_FORMAT", defaults.log_format).lower(),
            host=os.getenv("HOST", defaults.host),
            port=int(os.getenv("PORT", defaults.port)),
        )
