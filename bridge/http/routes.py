"""HTTP routes for the bridge."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, Request

from bridge.config import ApiSettings
from bridge.errors import BridgeError
from bridge.http.errors import from_bridge_error
from bridge.models.api import (
    ErrorResponse,
    HealthResponse,
    InstantSwapRequest,
    OperationResponse,
    QuoteRequest,
    StatusResponse,
    WebSocketStatus,
)
from bridge.service import Bridge

LOGGER = logging.getLogger(__name__)

QUOTE_METHOD = "GetQuote"
INSTANT_SWAP_METHOD = "CreateInstantSwap"

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Invalid request body"},
    502: {"model": ErrorResponse, "description": "Upstream failure"},
    503: {"model": ErrorResponse, "description": "Upstream not connected"},
    504: {"model": ErrorResponse, "description": "Upstream timeout"},
}


def get_bridge(request: Request) -> Bridge:
    return request.app.state.bridge


def get_api_settings(request: Request) -> ApiSettings:
    return request.app.state.api_settings


BridgeDep = Annotated[Bridge, Depends(get_bridge)]
ApiSettingsDep = Annotated[ApiSettings, Depends(get_api_settings)]

router = APIRouter()


async def _run_operation(
    bridge: Bridge,
    method: str,
    params: Optional[dict[str, Any]],
    *,
    retry_safe: bool,
) -> OperationResponse:
    try:
        result = await bridge.submit_operation(method, params, retry_safe=retry_safe)
    except BridgeError as exc:
        LOGGER.error("%s failed: %s", method, exc)
        raise from_bridge_error(exc) from exc
    return OperationResponse(success=True, data=result)


@router.get("/health", response_model=HealthResponse, tags=["Health"], summary="Health check")
async def get_health(bridge: BridgeDep) -> HealthResponse:
    return HealthResponse(
        status="ok",
        connected=bridge.get_status().connected,
        timestamp=datetime.now(timezone.utc),
    )


@router.get(
    "/api/status",
    response_model=StatusResponse,
    response_model_by_alias=True,
    tags=["Health"],
    summary="Detailed bridge status",
)
async def get_status(bridge: BridgeDep, api_settings: ApiSettingsDep) -> StatusResponse:
    status = bridge.get_status()
    return StatusResponse(
        service=api_settings.service_name,
        version=api_settings.version,
        websocket=WebSocketStatus(
            connected=status.connected,
            state=status.state,
            url=status.url,
            reconnect_attempts=status.reconnect_attempts,
            exhausted=status.exhausted,
        ),
        pending_requests=status.pending_requests,
        uptime=status.uptime_seconds,
        stats=status.stats,
    )


@router.post(
    "/api/quote",
    response_model=OperationResponse,
    responses=_ERROR_RESPONSES,
    tags=["Swaps"],
    summary="Request a swap quote",
)
async def post_quote(body: QuoteRequest, bridge: BridgeDep) -> OperationResponse:
    return await _run_operation(bridge, QUOTE_METHOD, body.to_params(), retry_safe=True)


@router.post(
    "/api/instant-swap",
    response_model=OperationResponse,
    responses=_ERROR_RESPONSES,
    tags=["Swaps"],
    summary="Create an instant swap",
)
async def post_instant_swap(body: InstantSwapRequest, bridge: BridgeDep) -> OperationResponse:
    return await _run_operation(bridge, INSTANT_SWAP_METHOD, body.to_params(), retry_safe=False)
