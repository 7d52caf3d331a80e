"""Correlation of upstream responses with the callers waiting on them.

Every submitted request is tracked here from allocation until it settles.
A request settles exactly once, by whichever comes first of:

- a matching response (``resolve``/``reject``)
- its own deadline timer
- the periodic stale sweep
- ``reject_all`` on connection loss or shutdown

All methods run on the event loop and never await, so they cannot interleave
with each other. The sweep is a second safety net next to the per-request
deadline and catches entries whose timer never fired.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
from dataclasses import dataclass
from functools import partial
from itertools import count
from typing import Any, Iterator, Optional

from bridge.errors import RequestTimeout
from bridge.models.rpc import CorrelationId

LOGGER = logging.getLogger(__name__)


@dataclass
class PendingRequest:
    correlation_id: CorrelationId
    method: str
    params: dict[str, Any]
    created_at: float
    deadline: float
    future: asyncio.Future[Any]
    timer: Optional[asyncio.TimerHandle] = None

    def age(self, now: float) -> float:
        return now - self.created_at


class Correlator:
    """Owns the correlation id -> pending request map."""

    def __init__(self, *, default_timeout: float = 30.0) -> None:
        self.default_timeout = float(default_timeout)
        self._pending: dict[CorrelationId, PendingRequest] = {}
        self._ids: Iterator[int] = count(1)
        self._sweep_task: Optional[asyncio.Task[None]] = None

    def __contains__(self, correlation_id: object) -> bool:
        return correlation_id in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    def pending_count(self) -> int:
        return len(self._pending)

    def get(self, correlation_id: CorrelationId) -> Optional[PendingRequest]:
        return self._pending.get(correlation_id)

    def _next_id(self) -> int:
        correlation_id = next(self._ids)
        while correlation_id in self._pending:
            correlation_id = next(self._ids)
        return correlation_id

    def allocate(
        self,
        method: str,
        params: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> tuple[CorrelationId, asyncio.Future[Any]]:
        """Register a new pending request and return its id and future.

        A non-finite ``timeout`` disables the deadline timer; only the sweep,
        a response or ``reject_all`` can then settle the request.
        """
        loop = asyncio.get_running_loop()
        timeout = self.default_timeout if timeout is None else float(timeout)
        now = loop.time()
        correlation_id = self._next_id()
        future: asyncio.Future[Any] = loop.create_future()
        pending = PendingRequest(
            correlation_id=correlation_id,
            method=method,
            params=params or {},
            created_at=now,
            deadline=now + timeout,
            future=future,
        )
        if math.isfinite(timeout):
            pending.timer = loop.call_later(timeout, self._expire, correlation_id)
        future.add_done_callback(partial(self._on_future_done, correlation_id))
        self._pending[correlation_id] = pending
        LOGGER.debug("Allocated request id=%s method=%s timeout=%.2fs", correlation_id, method, timeout)
        return correlation_id, future

    def resolve(self, correlation_id: CorrelationId, result: Any) -> bool:
        settled = self._settle(correlation_id, result=result)
        if not settled:
            LOGGER.debug("Dropping response for unknown or settled request id=%s", correlation_id)
        return settled

    def reject(self, correlation_id: CorrelationId, error: BaseException) -> bool:
        settled = self._settle(correlation_id, error=error)
        if not settled:
            LOGGER.debug("Dropping failure for unknown or settled request id=%s: %s", correlation_id, error)
        return settled

    def reject_all(self, error: BaseException) -> int:
        """Fail every pending request with ``error``; returns how many were settled."""

        drained = list(self._pending.values())
        self._pending.clear()
        settled = 0
        for pending in drained:
            if pending.timer:
                pending.timer.cancel()
            if not pending.future.done():
                pending.future.set_exception(error)
                settled += 1
        if settled:
            LOGGER.warning("Rejected %s pending request(s): %s", settled, error)
        return settled

    def sweep(self, now: Optional[float] = None, max_age: float = 300.0) -> int:
        """Reject every request older than ``max_age`` regardless of its deadline."""

        if now is None:
            now = asyncio.get_running_loop().time()
        stale = [pending for pending in self._pending.values() if pending.age(now) > max_age]
        swept = 0
        for pending in stale:
            error = RequestTimeout(
                f"Request {pending.correlation_id} ({pending.method}) reclaimed after "
                f"{pending.age(now):.1f}s without a response"
            )
            if self._settle(pending.correlation_id, error=error):
                swept += 1
        if swept:
            LOGGER.warning("Swept %s stale request(s) older than %.1fs", swept, max_age)
        return swept

    def start(self, interval: float, max_age: float) -> None:
        """Run ``sweep`` every ``interval`` seconds until ``stop()``."""

        if self._sweep_task and not self._sweep_task.done():
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop(interval, max_age), name="correlator-sweep")

    async def stop(self) -> None:
        task = self._sweep_task
        self._sweep_task = None
        if task:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _sweep_loop(self, interval: float, max_age: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                self.sweep(max_age=max_age)
            except Exception:  # noqa: BLE001
                LOGGER.exception("Stale request sweep failed")

    def _expire(self, correlation_id: CorrelationId) -> None:
        pending = self._pending.get(correlation_id)
        if pending is None:
            return
        timeout = pending.deadline - pending.created_at
        LOGGER.warning("Request id=%s method=%s timed out after %.2fs", correlation_id, pending.method, timeout)
        self._settle(
            correlation_id,
            error=RequestTimeout(f"Request {correlation_id} ({pending.method}) timed out after {timeout:.2f}s"),
        )

    def _settle(
        self,
        correlation_id: CorrelationId,
        *,
        result: Any = None,
        error: Optional[BaseException] = None,
    ) -> bool:
        pending = self._pending.pop(correlation_id, None)
        if pending is None:
            return False
        if pending.timer:
            pending.timer.cancel()
        if pending.future.done():
            return False
        if error is not None:
            pending.future.set_exception(error)
        else:
            pending.future.set_result(result)
        return True

    def _on_future_done(self, correlation_id: CorrelationId, future: asyncio.Future[Any]) -> None:
        # the awaiting caller was cancelled; forget the entry so the deadline cannot fire into it
        if not future.cancelled():
            return
        pending = self._pending.get(correlation_id)
        if pending is not None and pending.future is future:
            self._pending.pop(correlation_id, None)
            if pending.timer:
                pending.timer.cancel()
