"""Bridge facade consumed by the HTTP layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from bridge.config import BridgeSettings
from bridge.network.connection import ConnectionManager, TransportFactory
from bridge.network.correlator import Correlator
from bridge.network.retry import RetryingSender, RetryPolicy
from bridge.network.stats import ConnectionStats
from bridge.network.transport.dummy import DummyTransport
from bridge.network.transport.websocket import WebSocketTransport

LOGGER = logging.getLogger(__name__)


def resolve_transport_factory(settings: BridgeSettings) -> TransportFactory:
    if settings.transport == "websocket":
        return WebSocketTransport
    return DummyTransport


@dataclass
class BridgeStatus:
    connected: bool
    state: str
    url: str
    reconnect_attempts: int
    exhausted: bool
    pending_requests: int
    uptime_seconds: float
    stats: dict[str, Any] = field(default_factory=dict)


class Bridge:
    """Owns the correlator, connection manager and retrying sender for one upstream."""

    def __init__(
        self,
        settings: BridgeSettings,
        transport_factory: Optional[TransportFactory] = None,
    ) -> None:
        self.settings = settings
        self.stats = ConnectionStats()
        self.correlator = Correlator(default_timeout=settings.request_timeout_seconds)
        factory = transport_factory or resolve_transport_factory(settings)
        LOGGER.debug("Initialising upstream connection via %s", getattr(factory, "__name__", factory))
        self.connection = ConnectionManager(
            settings,
            factory,
            correlator=self.correlator,
            stats=self.stats,
        )
        self.sender = RetryingSender(self.connection, RetryPolicy.from_settings(settings))

    async def start(self) -> None:
        await self.connection.start()

    async def stop(self) -> None:
        await self.connection.shutdown()

    async def reconnect(self) -> None:
        await self.connection.reconnect()

    async def submit_operation(
        self,
        method: str,
        params: Optional[dict[str, Any]] = None,
        *,
        retry_safe: bool = False,
    ) -> Any:
        """Run ``method`` upstream; raises a ``BridgeError`` subclass on failure."""
        return await self.sender.send(method, params, retry_safe=retry_safe)

    def get_status(self) -> BridgeStatus:
        snapshot = self.connection.status()
        return BridgeStatus(
            connected=snapshot["connected"],
            state=snapshot["state"],
            url=snapshot["url"],
            reconnect_attempts=snapshot["reconnect_attempts"],
            exhausted=snapshot["exhausted"],
            pending_requests=snapshot["pending_requests"],
            uptime_seconds=self.stats.uptime(),
            stats=snapshot["stats"],
        )
