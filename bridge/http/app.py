"""FastAPI application factory wiring the bridge into the HTTP layer."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bridge.config import ApiSettings, BridgeSettings, get_api_settings, get_settings
from bridge.http.errors import error_payload
from bridge.http.routes import router
from bridge.service import Bridge

LOGGER = logging.getLogger(__name__)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg")}
        for error in exc.errors()
    ]
    message = "; ".join(str(error["msg"]) for error in errors) or "Invalid request body"
    payload = error_payload(
        message,
        status_code=status.HTTP_400_BAD_REQUEST,
        details={"errors": errors},
    )
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": payload})


def create_app(
    settings: Optional[BridgeSettings] = None,
    api_settings: Optional[ApiSettings] = None,
    bridge: Optional[Bridge] = None,
) -> FastAPI:
    """Build the HTTP app; the bridge lives on ``app.state`` and is started by the lifespan."""

    settings = settings or get_settings()
    api_settings = api_settings or get_api_settings()
    bridge = bridge or Bridge(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        LOGGER.info("Starting bridge to %s", settings.upstream_ws_url)
        await bridge.start()
        try:
            yield
        finally:
            LOGGER.info("Stopping bridge")
            await bridge.stop()

    app = FastAPI(
        title=api_settings.service_name,
        description="HTTP request/response facade over the SideSwap manager WebSocket.",
        version=api_settings.version,
        lifespan=lifespan,
    )
    app.state.bridge = bridge
    app.state.api_settings = api_settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=api_settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.include_router(router)
    return app
