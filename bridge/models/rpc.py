"""Wire frames exchanged with the upstream manager."""

from __future__ import annotations

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr

CorrelationId = Union[StrictInt, StrictStr]

DEFAULT_ERROR_MESSAGE = "Upstream rejected the request"


class RpcRequest(BaseModel):
    """Outbound request frame."""

    id: CorrelationId
    method: StrictStr
    params: Dict[str, Any] = Field(default_factory=dict)


class RpcResponse(BaseModel):
    """Inbound response frame; unknown fields are tolerated.

    ``error`` is kept as sent: usually ``{"code", "message"}``, but a bare
    string or a mapping with odd value types still marks the request as
    rejected.
    """

    model_config = ConfigDict(extra="allow")

    id: Optional[CorrelationId] = None
    result: Any = None
    error: Any = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def error_details(self) -> tuple[str, Any]:
        """Return ``(message, code)`` of the error field."""

        error = self.error
        if isinstance(error, dict):
            message = error.get("message")
            if message is None or message == "":
                message = DEFAULT_ERROR_MESSAGE
            return str(message), error.get("code")
        if error is None or error == "":
            return DEFAULT_ERROR_MESSAGE, None
        return str(error), None
