"""Live channel message encoding."""

from __future__ import annotations

import json
from typing import Any

CONNECTED_MESSAGE = "Connected to Crypto WebSocket"


def info_message(message: str = CONNECTED_MESSAGE) -> str:
    return json.dumps({"type": "info", "message": message})


def tickers_message(data: list[dict[str, Any]]) -> str:
    """Encode a snapshot (tickers already in their dict form) for broadcast."""
    return json.dumps({"type": "tickers", "data": data})
