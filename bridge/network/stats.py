"""Process-wide connection counters."""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass
class ConnectionStats:
    total_connections: int = 0
    total_reconnections: int = 0
    total_requests: int = 0
    total_errors: int = 0
    total_retries: int = 0
    process_start_time: float = field(default_factory=time.time)

    def uptime(self, now: float | None = None) -> float:
        return max(0.0, (now if now is not None else time.time()) - self.process_start_time)

    def snapshot(self) -> dict[str, Any]:
        return asdict(self)
