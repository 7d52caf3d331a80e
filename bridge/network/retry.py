"""Bounded retry around ConnectionManager.submit for retry-safe operations."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from bridge.config import BridgeSettings
from bridge.errors import RETRYABLE_ERRORS, BridgeError
from bridge.network.connection import ConnectionManager

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0
    backoff_factor: float = 2.0
    retry_on: tuple[type[BridgeError], ...] = RETRYABLE_ERRORS

    @classmethod
    def from_settings(cls, settings: BridgeSettings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay_seconds,
            backoff_factor=settings.retry_backoff_factor,
        )

    def delay(self, attempt: int) -> float:
        """Wait after failed ``attempt`` (1-based) before the next one."""
        return self.base_delay * (self.backoff_factor ** (attempt - 1))


class RetryingSender:
    """Re-submits operations that failed before the upstream could act on them.

    ``UpstreamError`` is never retried: the upstream would reject the same
    operation the same way again.
    """

    def __init__(
        self,
        manager: ConnectionManager,
        policy: Optional[RetryPolicy] = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._manager = manager
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def send(
        self,
        method: str,
        params: Optional[dict[str, Any]] = None,
        *,
        retry_safe: bool = True,
        timeout: Optional[float] = None,
    ) -> Any:
        max_attempts = self.policy.max_attempts if retry_safe else 1
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._manager.submit(method, params, timeout=timeout)
            except self.policy.retry_on as exc:
                if attempt >= max_attempts:
                    if max_attempts > 1:
                        LOGGER.warning("%s failed after %s attempts: %s", method, attempt, exc)
                    raise
                delay = self.policy.delay(attempt)
                self._manager.stats.total_retries += 1
                LOGGER.warning(
                    "%s failed (attempt %s/%s): %s; retrying in %.2fs",
                    method,
                    attempt,
                    max_attempts,
                    exc,
                    delay,
                )
                await self._sleep(delay)
