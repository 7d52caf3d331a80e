"""SideSwap bridge: request/response HTTP facade over one upstream WebSocket."""

from bridge.errors import (
    BridgeError,
    ConnectionLost,
    MalformedResponse,
    NotConnected,
    RequestTimeout,
    SendFailure,
    UpstreamError,
)
from bridge.service import Bridge, BridgeStatus

__all__ = [
    "Bridge",
    "BridgeError",
    "BridgeStatus",
    "ConnectionLost",
    "MalformedResponse",
    "NotConnected",
    "RequestTimeout",
    "SendFailure",
    "UpstreamError",
]
