"""In-memory transport for offline runs and tests."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable

from .base import BaseTransport

LOGGER = logging.getLogger(__name__)


class TransportClosed(ConnectionError):
    """Raised by receive() once the dummy link is closed or terminated."""


class DummyTransport(BaseTransport):
    """Transport whose inbound frames are queued by hand; pings are answered immediately."""

    def __init__(self, settings=None) -> None:
        self._settings = settings
        self._inbox: asyncio.Queue[str | bytes | None] = asyncio.Queue()
        self.sent: list[str] = []
        self.closed = False
        self.terminated = False

    async def connect(self) -> None:
        LOGGER.debug("Dummy transport connect()")

    async def send(self, data: str) -> None:
        if self.closed:
            raise TransportClosed("Dummy transport closed")
        LOGGER.debug("Dummy transport send(): %s", data)
        self.sent.append(data)

    async def receive(self) -> str | bytes:
        frame = await self._inbox.get()
        if frame is None:
            raise TransportClosed("Dummy transport closed")
        return frame

    async def ping(self) -> Awaitable[Any]:
        waiter = asyncio.get_running_loop().create_future()
        waiter.set_result(0.0)
        return waiter

    def feed(self, frame: str | bytes) -> None:
        """Queue an inbound frame."""
        self._inbox.put_nowait(frame)

    async def close(self) -> None:
        LOGGER.debug("Dummy transport close()")
        self._shutdown()

    def terminate(self) -> None:
        LOGGER.debug("Dummy transport terminate()")
        self.terminated = True
        self._shutdown()

    def _shutdown(self) -> None:
        if not self.closed:
            self.closed = True
            self._inbox.put_nowait(None)
