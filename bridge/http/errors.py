"""Shared error helpers for the HTTP API."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import HTTPException, status

from bridge.errors import (
    BridgeError,
    ConnectionLost,
    NotConnected,
    RequestTimeout,
    SendFailure,
    UpstreamError,
)
from bridge.models.api import Error

_STATUS_ERROR_CODES: dict[int, str] = {
    status.HTTP_400_BAD_REQUEST: "bad_request",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_500_INTERNAL_SERVER_ERROR: "internal_error",
    status.HTTP_502_BAD_GATEWAY: "bad_gateway",
    status.HTTP_503_SERVICE_UNAVAILABLE: "service_unavailable",
    status.HTTP_504_GATEWAY_TIMEOUT: "gateway_timeout",
}

_BRIDGE_ERROR_STATUS: dict[type[BridgeError], int] = {
    NotConnected: status.HTTP_503_SERVICE_UNAVAILABLE,
    RequestTimeout: status.HTTP_504_GATEWAY_TIMEOUT,
    ConnectionLost: status.HTTP_502_BAD_GATEWAY,
    SendFailure: status.HTTP_502_BAD_GATEWAY,
    UpstreamError: status.HTTP_502_BAD_GATEWAY,
}


def error_payload(
    message: str,
    *,
    error: Optional[str] = None,
    status_code: Optional[int] = None,
    details: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    resolved_error = error or _STATUS_ERROR_CODES.get(status_code or 0, "error")
    return Error(
        error=resolved_error,
        message=message,
        details=details,
    ).model_dump(exclude_none=True)


def http_error(
    status_code: int,
    message: str,
    *,
    error: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
) -> HTTPException:
    payload = error_payload(
        message,
        error=error,
        status_code=status_code,
        details=details,
    )
    return HTTPException(status_code=status_code, detail=payload)


def bridge_error_status(exc: BridgeError) -> int:
    for error_cls, status_code in _BRIDGE_ERROR_STATUS.items():
        if isinstance(exc, error_cls):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def from_bridge_error(exc: BridgeError) -> HTTPException:
    details: Optional[dict[str, Any]] = None
    if isinstance(exc, UpstreamError):
        details = {"upstream_code": exc.upstream_code, "upstream_message": str(exc)}
    return http_error(
        bridge_error_status(exc),
        str(exc),
        error=exc.code,
        details=details,
    )


__all__ = [
    "bridge_error_status",
    "error_payload",
    "from_bridge_error",
    "http_error",
]
