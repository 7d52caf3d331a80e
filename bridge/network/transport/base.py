"""Transport abstractions for the upstream connection."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable


class BaseTransport(ABC):
    """Abstract WebSocket-like transport driven by the connection manager.

    A successful ``connect()`` is the open event. ``receive()`` raises once the
    peer closes or the link errors. ``ping()`` returns an awaitable that
    completes when the matching pong arrives.
    """

    @abstractmethod
    async def connect(self) -> None:
        ...

    @abstractmethod
    async def send(self, data: str) -> None:
        ...

    @abstractmethod
    async def receive(self) -> str | bytes:
        ...

    @abstractmethod
    async def ping(self) -> Awaitable[Any]:
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close gracefully."""

    @abstractmethod
    def terminate(self) -> None:
        """Drop the link immediately without a closing handshake."""
