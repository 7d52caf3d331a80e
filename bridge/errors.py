"""Typed failures surfaced to bridge callers."""

from __future__ import annotations

from typing import Any, Optional


class BridgeError(RuntimeError):
    """Base class for every failure a submitted operation can settle with."""

    code = "bridge_error"


class NotConnected(BridgeError):
    """Raised when an operation is submitted while the upstream is not connected."""

    code = "not_connected"


class RequestTimeout(BridgeError, TimeoutError):
    """Raised when a pending request passes its deadline or is reclaimed by the sweep."""

    code = "timeout"


class ConnectionLost(BridgeError):
    """Raised for every pending request when the upstream connection drops."""

    code = "connection_lost"


class SendFailure(BridgeError):
    """Raised when writing a request to the transport fails."""

    code = "send_failure"


class UpstreamError(BridgeError):
    """Raised when the upstream answers with an explicit error object."""

    code = "upstream_error"

    def __init__(self, message: str, *, upstream_code: Optional[Any] = None) -> None:
        super().__init__(message)
        self.upstream_code = upstream_code


class MalformedResponse(BridgeError):
    """Describes an inbound frame that could not be parsed; logged, never raised to callers."""

    code = "malformed_response"


RETRYABLE_ERRORS: tuple[type[BridgeError], ...] = (NotConnected, SendFailure, RequestTimeout)

__all__ = [
    "BridgeError",
    "ConnectionLost",
    "MalformedResponse",
    "NotConnected",
    "RETRYABLE_ERRORS",
    "RequestTimeout",
    "SendFailure",
    "UpstreamError",
]
