"""Connection state tracking for the upstream link."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSING = "closing"


_ALLOWED: dict[ConnectionState, set[ConnectionState]] = {
    ConnectionState.DISCONNECTED: {ConnectionState.CONNECTING, ConnectionState.CLOSING},
    ConnectionState.CONNECTING: {
        ConnectionState.CONNECTED,
        ConnectionState.DISCONNECTED,
        ConnectionState.CLOSING,
    },
    ConnectionState.CONNECTED: {ConnectionState.DISCONNECTED, ConnectionState.CLOSING},
    ConnectionState.CLOSING: set(),
}


@dataclass
class ConnectionTracker:
    """Current connection state plus the time it was entered."""

    state: ConnectionState = ConnectionState.DISCONNECTED
    last_transition_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    def transition(self, next_state: ConnectionState) -> None:
        """Move into a new state, validating allowed transitions."""

        if next_state not in _ALLOWED[self.state]:
            raise ValueError(f"Invalid transition {self.state.value} → {next_state.value}")
        self.state = next_state
        self.last_transition_at = datetime.now(tz=timezone.utc)

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def closing(self) -> bool:
        return self.state is ConnectionState.CLOSING
