"""Connection manager that owns the upstream transport lifecycle."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Optional

from pydantic import ValidationError

from bridge.config import BridgeSettings
from bridge.errors import BridgeError, ConnectionLost, MalformedResponse, NotConnected, SendFailure, UpstreamError
from bridge.models.rpc import RpcRequest, RpcResponse
from bridge.network.correlator import Correlator
from bridge.network.state import ConnectionState, ConnectionTracker
from bridge.network.stats import ConnectionStats
from bridge.network.transport.base import BaseTransport

LOGGER = logging.getLogger(__name__)

TransportFactory = Callable[[BridgeSettings], BaseTransport]


class ConnectionManager:
    """Keeps one upstream connection alive and multiplexes requests over it."""

    def __init__(
        self,
        settings: BridgeSettings,
        transport_factory: TransportFactory,
        *,
        correlator: Optional[Correlator] = None,
        stats: Optional[ConnectionStats] = None,
    ) -> None:
        self._settings = settings
        self._transport_factory = transport_factory
        self.correlator = correlator or Correlator(default_timeout=settings.request_timeout_seconds)
        self.stats = stats or ConnectionStats()
        self.tracker = ConnectionTracker()
        self._transport: Optional[BaseTransport] = None
        self._reconnect_attempts = 0
        self._exhausted = False
        self._connect_task: Optional[asyncio.Task[None]] = None
        self._recv_task: Optional[asyncio.Task[None]] = None
        self._heartbeat_task: Optional[asyncio.Task[None]] = None
        self._background: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> ConnectionState:
        return self.tracker.state

    @property
    def connected(self) -> bool:
        return self.tracker.connected

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    @property
    def url(self) -> str:
        return str(self._settings.upstream_ws_url)

    def reconnect_delay(self, attempt: int) -> float:
        """Backoff before reconnect ``attempt`` (1-based)."""

        delay = self._settings.reconnect_interval_seconds * (2 ** (attempt - 1))
        if self._settings.reconnect_max_interval_seconds is not None:
            delay = min(delay, self._settings.reconnect_max_interval_seconds)
        jitter = self._settings.reconnect_jitter
        if jitter:
            delay *= random.uniform(1 - jitter, 1 + jitter)
        return delay

    async def start(self) -> None:
        """Start the stale sweep and make the first connection attempt."""

        if self.tracker.closing:
            raise NotConnected("Connection manager has been shut down")
        self.correlator.start(self._settings.sweep_interval_seconds, self._settings.stale_request_seconds)
        if self.tracker.state is not ConnectionState.DISCONNECTED:
            return
        if self._connect_task and not self._connect_task.done():
            return
        await self._run_connect_task(self._connect())

    async def reconnect(self) -> None:
        """Restart the connect cycle by hand, e.g. after reconnection gave up."""

        if self.tracker.closing:
            raise NotConnected("Connection manager has been shut down")
        if self.tracker.state is not ConnectionState.DISCONNECTED:
            return
        self._cancel(self._connect_task)
        self._reconnect_attempts = 0
        self._exhausted = False
        LOGGER.info("Manual reconnect to %s requested", self.url)
        await self._run_connect_task(self._connect())

    async def shutdown(self) -> None:
        """Enter CLOSING for good: stop timers, close the link, fail what is pending."""

        if self.tracker.closing:
            return
        LOGGER.info("Shutting down upstream connection to %s", self.url)
        self.tracker.transition(ConnectionState.CLOSING)
        tasks = [task for task in (self._connect_task, self._heartbeat_task, self._recv_task) if task]
        for task in tasks:
            self._cancel(task)
        children = [task for task in tasks if task is not asyncio.current_task()]
        if children:
            # children end with CancelledError as a result; a cancel aimed at us still propagates
            await asyncio.gather(*children, return_exceptions=True)
        self._connect_task = None
        self._heartbeat_task = None
        self._recv_task = None
        await self.correlator.stop()

        transport = self._transport
        self._transport = None
        if transport:
            try:
                await transport.close()
            except Exception:  # noqa: BLE001
                LOGGER.debug("Suppress transport close error", exc_info=True)
        self.correlator.reject_all(ConnectionLost("Bridge is shutting down"))
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def submit(
        self,
        method: str,
        params: Optional[dict[str, Any]] = None,
        *,
        timeout: Optional[float] = None,
    ) -> Any:
        """Send one request upstream and wait for its response.

        Fails fast with ``NotConnected`` instead of queueing while the link is
        down.
        """
        self.stats.total_requests += 1
        transport = self._transport
        if not self.tracker.connected or transport is None:
            self.stats.total_errors += 1
            raise NotConnected(f"Not connected to upstream {self.url}")

        correlation_id, future = self.correlator.allocate(method, params, timeout)
        try:
            payload = RpcRequest(id=correlation_id, method=method, params=params or {}).model_dump_json()
            await transport.send(payload)
            LOGGER.debug("Sent request id=%s method=%s", correlation_id, method)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Failed to send request id=%s method=%s: %s", correlation_id, method, exc)
            failure = SendFailure(f"Failed to send {method} upstream: {exc}")
            failure.__cause__ = exc
            self.correlator.reject(correlation_id, failure)

        try:
            return await future
        except BridgeError:
            self.stats.total_errors += 1
            raise

    def status(self) -> dict[str, Any]:
        return {
            "connected": self.connected,
            "state": self.state.value,
            "url": self.url,
            "reconnect_attempts": self._reconnect_attempts,
            "exhausted": self._exhausted,
            "pending_requests": self.correlator.pending_count(),
            "stats": self.stats.snapshot(),
        }

    async def _run_connect_task(self, coro: Awaitable[None]) -> None:
        task = asyncio.create_task(coro, name="upstream-connect")
        self._connect_task = task
        try:
            await task
        finally:
            if self._connect_task is task:
                self._connect_task = None

    async def _connect(self) -> None:
        self.tracker.transition(ConnectionState.CONNECTING)
        transport = self._transport_factory(self._settings)
        try:
            await transport.connect()
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            if self.tracker.closing:
                return
            LOGGER.warning("Connect to %s failed: %s", self.url, exc)
            self.tracker.transition(ConnectionState.DISCONNECTED)
            self._schedule_reconnect()
            return

        if self.tracker.closing:
            await self._discard_transport(transport)
            return
        self._transport = transport
        self.tracker.transition(ConnectionState.CONNECTED)
        self._reconnect_attempts = 0
        self._exhausted = False
        self.stats.total_connections += 1
        LOGGER.info("Connected to upstream %s", self.url)
        self._recv_task = asyncio.create_task(self._receive_loop(transport), name="upstream-recv")
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop(transport), name="upstream-heartbeat")

    def _schedule_reconnect(self) -> None:
        if self.tracker.closing:
            return
        limit = self._settings.reconnect_max_attempts
        if self._reconnect_attempts >= limit:
            self._exhausted = True
            LOGGER.error(
                "Giving up on upstream %s after %s reconnect attempts; restart required",
                self.url,
                self._reconnect_attempts,
            )
            return
        self._reconnect_attempts += 1
        delay = self.reconnect_delay(self._reconnect_attempts)
        LOGGER.info(
            "Reconnecting to %s in %.2fs (attempt %s/%s)",
            self.url,
            delay,
            self._reconnect_attempts,
            limit,
        )
        self._connect_task = asyncio.create_task(self._reconnect_after(delay), name="upstream-reconnect")

    async def _reconnect_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        if self.tracker.state is not ConnectionState.DISCONNECTED:
            return
        await self._connect()

    def _on_connection_lost(self, transport: BaseTransport, exc: BaseException) -> None:
        # each physical connection is torn down at most once
        if transport is not self._transport or not self.tracker.connected:
            return
        self._transport = None
        self.tracker.transition(ConnectionState.DISCONNECTED)
        self._cancel(self._heartbeat_task)
        self._cancel(self._recv_task)
        self._heartbeat_task = None
        self._recv_task = None
        LOGGER.warning("Upstream connection to %s lost: %s", self.url, exc)
        self.correlator.reject_all(ConnectionLost(f"Upstream connection lost: {exc}"))
        self.stats.total_reconnections += 1
        self._spawn(self._discard_transport(transport))
        self._schedule_reconnect()

    async def _receive_loop(self, transport: BaseTransport) -> None:
        while True:
            try:
                raw = await transport.receive()
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                self._on_connection_lost(transport, exc)
                return
            self._handle_message(raw)

    def _handle_message(self, raw: str | bytes) -> None:
        try:
            response = RpcResponse.model_validate_json(raw)
        except ValidationError as exc:
            LOGGER.warning("Dropping upstream frame: %r", MalformedResponse(str(exc)))
            return
        if response.id is None:
            LOGGER.debug("Ignoring upstream frame without id: %s", raw)
            return
        if response.failed:
            message, code = response.error_details()
            self.correlator.reject(response.id, UpstreamError(message, upstream_code=code))
            return
        self.correlator.resolve(response.id, response.result)

    async def _heartbeat_loop(self, transport: BaseTransport) -> None:
        interval = self._settings.heartbeat_interval_seconds
        pong_timeout = self._settings.pong_timeout_seconds
        while transport is self._transport:
            await asyncio.sleep(interval)
            if transport is not self._transport:
                return
            try:
                await asyncio.wait_for(self._ping(transport), timeout=pong_timeout)
            except asyncio.CancelledError:
                raise
            except asyncio.TimeoutError:
                LOGGER.warning("No pong from %s within %.1fs; terminating connection", self.url, pong_timeout)
                self._terminate(transport, TimeoutError(f"no pong within {pong_timeout}s"))
                return
            except Exception as exc:  # noqa: BLE001
                LOGGER.warning("Heartbeat ping to %s failed: %s", self.url, exc)
                self._terminate(transport, exc)
                return

    @staticmethod
    async def _ping(transport: BaseTransport) -> None:
        pong_waiter = await transport.ping()
        await pong_waiter

    def _terminate(self, transport: BaseTransport, exc: BaseException) -> None:
        try:
            transport.terminate()
        except Exception:  # noqa: BLE001
            LOGGER.debug("Suppress transport terminate error", exc_info=True)
        self._on_connection_lost(transport, exc)

    async def _discard_transport(self, transport: BaseTransport) -> None:
        try:
            await transport.close()
        except Exception:  # noqa: BLE001
            LOGGER.debug("Suppress transport close error", exc_info=True)

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    @staticmethod
    def _cancel(task: Optional[asyncio.Task[Any]]) -> None:
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()
