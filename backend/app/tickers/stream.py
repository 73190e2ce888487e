"""WebSocket endpoint for live ticker broadcasts."""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from .subscribers import SubscriberRegistry

logger = logging.getLogger(__name__)


def create_stream_router(registry: SubscriberRegistry) -> APIRouter:
    """Create the live channel router with a reference to the subscriber registry.

    This factory pattern lets us inject the registry without globals.
    """
    router = APIRouter(tags=["streaming"])

    @router.websocket("/ws")
    async def stream_tickers(websocket: WebSocket) -> None:
        """Live ticker channel.

        On connect the client receives ``{"type": "info", ...}`` followed by
        the cached snapshot if there is one; after that, a
        ``{"type": "tickers", "data": [...]}`` message every broadcast tick.
        Client messages are read only to detect disconnects.
        """
        await websocket.accept()
        client_ip = websocket.client.host if websocket.client else "unknown"
        logger.info("WebSocket client connected: %s", client_ip)

        if not await registry.join(websocket):
            return
        try:
            # A subscriber dropped by the registry has been closed server-side
            while websocket in registry:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.info("WebSocket client disconnected: %s", client_ip)
        finally:
            registry.leave(websocket)

    return router
