"""HTTP request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr, model_validator

Amount = Optional[int]


class QuoteRequest(BaseModel):
    send_asset: StrictStr = Field(min_length=1)
    recv_asset: StrictStr = Field(min_length=1)
    send_amount: Amount = None
    recv_amount: Amount = None

    @model_validator(mode="after")
    def _require_amount(self) -> "QuoteRequest":
        if not self.send_amount and not self.recv_amount:
            raise ValueError("send_amount or recv_amount must be specified")
        return self

    def to_params(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class InstantSwapRequest(BaseModel):
    send_asset: StrictStr = Field(min_length=1)
    recv_asset: StrictStr = Field(min_length=1)
    recv_addr: StrictStr = Field(min_length=1)
    send_amount: Amount = None
    recv_amount: Amount = None

    def to_params(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class OperationResponse(BaseModel):
    success: bool = True
    data: Any = None


class Error(BaseModel):
    error: str
    message: str
    details: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    detail: Error


class HealthResponse(BaseModel):
    status: str = "ok"
    connected: bool
    timestamp: datetime


class WebSocketStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    connected: bool
    state: str
    url: str
    reconnect_attempts: int = Field(alias="reconnectAttempts")
    exhausted: bool


class StatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    service: str
    version: str
    websocket: WebSocketStatus
    pending_requests: int = Field(alias="pendingRequests")
    uptime: float
    stats: Dict[str, Any]
