"""Pytest configuration and fixtures."""

import pytest

from app.tickers.config import MEMORY_DATABASE_URL, Settings


@pytest.fixture
def settings():
    """Settings that never touch the network, disk or a real Redis."""
    return Settings(
        redis_url=None,
        database_url=MEMORY_DATABASE_URL,
        broadcast_interval=3600.0,  # Long interval so the loop never auto-ticks
        snapshot_ttl=3600,
        send_timeout=1.0,
    )
