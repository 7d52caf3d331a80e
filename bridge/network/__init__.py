"""Network stack (transport/correlation/connection) for the upstream link."""

from bridge.network.connection import ConnectionManager
from bridge.network.correlator import Correlator, PendingRequest
from bridge.network.retry import RetryingSender, RetryPolicy
from bridge.network.state import ConnectionState, ConnectionTracker
from bridge.network.stats import ConnectionStats
from bridge.network.transport.base import BaseTransport
from bridge.network.transport.dummy import DummyTransport
from bridge.network.transport.websocket import WebSocketTransport

__all__ = [
    "BaseTransport",
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStats",
    "ConnectionTracker",
    "Correlator",
    "DummyTransport",
    "PendingRequest",
    "RetryPolicy",
    "RetryingSender",
    "WebSocketTransport",
]
