"""WebSocket transport implementation."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Optional

import websockets
from websockets.asyncio.client import ClientConnection

from bridge.config import BridgeSettings
from bridge.network.transport.base import BaseTransport

LOGGER = logging.getLogger(__name__)


class TransportNotReady(RuntimeError):
    """Raised when IO is attempted before connect() succeeded."""


class WebSocketTransport(BaseTransport):
    """Upstream transport backed by the ``websockets`` client."""

    def __init__(self, settings: BridgeSettings) -> None:
        self._settings = settings
        self._ws: Optional[ClientConnection] = None

    @property
    def url(self) -> str:
        return str(self._settings.upstream_ws_url)

    async def connect(self) -> None:
        LOGGER.info("Connecting to upstream WebSocket at %s", self.url)
        # keepalive is driven by the connection manager's own heartbeat
        self._ws = await websockets.connect(
            self.url,
            open_timeout=self._settings.connect_timeout_seconds,
            ping_interval=None,
            ping_timeout=None,
        )

    def _require(self) -> ClientConnection:
        if not self._ws:
            raise TransportNotReady("WebSocket transport not connected")
        return self._ws

    async def send(self, data: str) -> None:
        ws = self._require()
        LOGGER.debug("WebSocket send: %s", data)
        await ws.send(data)

    async def receive(self) -> str | bytes:
        raw = await self._require().recv()
        LOGGER.debug("WebSocket receive: %s", raw)
        return raw

    async def ping(self) -> Awaitable[Any]:
        return await self._require().ping()

    async def close(self) -> None:
        if self._ws:
            LOGGER.info("Closing WebSocket transport")
            await self._ws.close()
            self._ws = None

    def terminate(self) -> None:
        if self._ws:
            LOGGER.warning("Aborting WebSocket transport")
            self._ws.transport.abort()
