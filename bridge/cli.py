"""Command-line launcher for the bridge HTTP API."""

from __future__ import annotations

import argparse
import errno
import logging
import os
import socket
from dataclasses import dataclass
from typing import Final, Optional

import uvicorn

from bridge.config import ApiSettings, get_api_settings

APP_FACTORY: Final[str] = "bridge.http.app:create_app"
LOG_LEVELS: Final[tuple[str, ...]] = ("critical", "error", "warning", "info", "debug", "trace")
LOG_FORMAT: Final[str] = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
ADDRESS_IN_USE: Final[frozenset[int]] = frozenset({errno.EADDRINUSE, 10013, 10048})

# flag -> variable read by BridgeSettings; exported so reloaded workers see the same values
ENV_OVERRIDES: Final[dict[str, str]] = {
    "upstream": "BRIDGE_UPSTREAM_WS_URL",
    "config": "BRIDGE_CONFIG_FILE",
    "transport": "BRIDGE_TRANSPORT",
}


@dataclass(frozen=True)
class LaunchOptions:
    host: str
    port: int
    reload: bool
    log_level: str

    @property
    def uvicorn_log_level(self) -> str:
        return "debug" if self.log_level == "trace" else self.log_level


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sideswap-bridge",
        description="Serve the HTTP bridge in front of the SideSwap manager WebSocket.",
    )
    server = parser.add_argument_group("HTTP server")
    server.add_argument("--host", help="Bind address (default: BRIDGE_API_HOST or 0.0.0.0).")
    server.add_argument("--port", type=int, help="Listen port (default: BRIDGE_API_PORT or 3000).")
    server.add_argument("--reload", action="store_true", help="Restart on code changes (development only).")
    server.add_argument("--log-level", choices=LOG_LEVELS, help="Log level for bridge and uvicorn output.")

    upstream = parser.add_argument_group("upstream")
    upstream.add_argument("--upstream", help="Manager WebSocket URL, e.g. ws://127.0.0.1:7777.")
    upstream.add_argument("--config", help="YAML or JSON file with bridge settings.")
    upstream.add_argument("--transport", choices=["websocket", "dummy"], help="Upstream transport.")
    return parser.parse_args(argv)


def export_overrides(args: argparse.Namespace) -> None:
    for flag, variable in ENV_OVERRIDES.items():
        value = getattr(args, flag, None)
        if value:
            os.environ[variable] = value


def resolve_options(args: argparse.Namespace, api_settings: ApiSettings) -> LaunchOptions:
    return LaunchOptions(
        host=args.host or api_settings.host,
        port=args.port or api_settings.port,
        reload=args.reload or api_settings.reload,
        log_level=(args.log_level or api_settings.log_level).lower(),
    )


def _bind_error(sockaddr_info: tuple) -> Optional[OSError]:
    family, socktype, proto, _, sockaddr = sockaddr_info
    try:
        with socket.socket(family, socktype, proto) as probe:
            probe.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            probe.bind(sockaddr)
    except OSError as exc:
        return exc
    return None


def _address_in_use(exc: OSError) -> bool:
    return exc.errno in ADDRESS_IN_USE or getattr(exc, "winerror", None) in ADDRESS_IN_USE


def ensure_port_available(host: str, port: int) -> None:
    """Exit early with a readable message instead of uvicorn's bind traceback."""

    try:
        candidates = socket.getaddrinfo(host, port, socket.AF_UNSPEC, socket.SOCK_STREAM)
    except socket.gaierror as exc:
        raise SystemExit(f"Cannot resolve bind address {host!r}: {exc}") from exc
    if not candidates:
        raise SystemExit(f"No usable address for {host}:{port}.")

    errors = []
    for candidate in candidates:
        exc = _bind_error(candidate)
        if exc is None:
            return
        if _address_in_use(exc):
            raise SystemExit(
                f"Bridge API cannot listen on {host}:{port}: address already in use. "
                "Free the port or pass --port / set BRIDGE_API_PORT."
            ) from exc
        errors.append(exc)
    raise SystemExit(f"Bridge API cannot listen on {host}:{port}: {errors[-1]}") from errors[-1]


def configure_logging(log_level: str) -> int:
    # uvicorn's "trace" has no stdlib counterpart
    level = logging.DEBUG if log_level == "trace" else logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)
    return level


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    export_overrides(args)
    options = resolve_options(args, get_api_settings())
    configure_logging(options.log_level)
    ensure_port_available(options.host, options.port)

    logging.getLogger(__name__).info("Serving bridge API on %s:%s", options.host, options.port)
    uvicorn.run(
        APP_FACTORY,
        factory=True,
        host=options.host,
        port=options.port,
        reload=options.reload,
        log_level=options.uvicorn_log_level,
        log_config=None,
    )


if __name__ == "__main__":
    main()
