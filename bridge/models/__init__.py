from .api import (
    Error,
    ErrorResponse,
    HealthResponse,
    InstantSwapRequest,
    OperationResponse,
    QuoteRequest,
    StatusResponse,
    WebSocketStatus,
)
from .rpc import CorrelationId, RpcRequest, RpcResponse

__all__ = [
    "CorrelationId",
    "Error",
    "ErrorResponse",
    "HealthResponse",
    "InstantSwapRequest",
    "OperationResponse",
    "QuoteRequest",
    "RpcRequest",
    "RpcResponse",
    "StatusResponse",
    "WebSocketStatus",
]
