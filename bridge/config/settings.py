"""Bridge configuration loading and validation.

Values are resolved in this order, first match wins: constructor arguments,
``BRIDGE_*`` environment variables, ``.env``, then a YAML/JSON config file
(``BRIDGE_CONFIG_FILE`` or one of ``DEFAULT_CONFIG_LOCATIONS``).
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Callable, ClassVar, Iterator, Literal, Optional

import yaml
from pydantic import AnyUrl, BeforeValidator, Field, NonNegativeFloat, PositiveFloat, PositiveInt
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

CONFIG_FILE_ENV = "BRIDGE_CONFIG_FILE"
DEFAULT_CONFIG_LOCATIONS: tuple[Path, ...] = (
    Path("/etc/sideswap-bridge/bridge.yaml"),
    Path("/etc/sideswap-bridge/bridge.yml"),
    Path("./config/bridge.yaml"),
    Path("./config/bridge.yml"),
)

_LOADERS: dict[str, Callable[[Any], Any]] = {
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
    ".json": json.load,
}


def _upper(value: Any) -> Any:
    return value.upper() if isinstance(value, str) else value


LogLevel = Annotated[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], BeforeValidator(_upper)]


def candidate_config_paths() -> Iterator[Path]:
    explicit = os.getenv(CONFIG_FILE_ENV)
    if explicit:
        yield Path(explicit).expanduser()
    yield from DEFAULT_CONFIG_LOCATIONS


def read_config_file(path: Path) -> dict[str, Any]:
    """Parse one config file; the top level must be a mapping."""

    loader = _LOADERS[path.suffix.lower()]
    try:
        with path.open(encoding="utf-8") as handle:
            raw = loader(handle)
    except OSError as exc:
        raise RuntimeError(f"Cannot read bridge config {path}") from exc
    except (yaml.YAMLError, ValueError) as exc:
        raise ValueError(f"Bridge config {path} is not valid {path.suffix.lstrip('.').upper()}") from exc

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"Bridge config {path} must be a mapping, got {type(raw).__name__}")
    return raw


class ConfigFileSource(PydanticBaseSettingsSource):
    """Settings taken from the first readable config file among the candidates."""

    def __init__(self, settings_cls: type[BaseSettings], candidates: Optional[list[Path]] = None) -> None:
        super().__init__(settings_cls)
        self._candidates = candidates

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        # whole-file source: everything is handed over at once by __call__
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        candidates = self._candidates if self._candidates is not None else candidate_config_paths()
        for path in candidates:
            if path.suffix.lower() not in _LOADERS or not path.is_file():
                continue
            data = read_config_file(path)
            data.setdefault("config_path", path)
            return data
        return {}


class BridgeSettings(BaseSettings):
    """Validated settings for the upstream connection and request handling."""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="BRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Upstream
    upstream_ws_url: AnyUrl = Field(
        default="ws://localhost:7777",
        description="SideSwap manager WebSocket endpoint.",
    )
    transport: Literal["dummy", "websocket"] = Field(
        default="websocket",
        description="'websocket' for the real manager, 'dummy' for an in-memory link.",
    )
    connect_timeout_seconds: PositiveFloat = Field(
        default=10.0,
        description="Seconds allowed for the opening handshake.",
    )

    # Requests
    request_timeout_seconds: PositiveFloat = Field(
        default=30.0,
        description="Per-request deadline before the caller receives a timeout.",
    )
    retry_max_attempts: PositiveInt = Field(default=3, description="Attempts for retry-safe operations.")
    retry_base_delay_seconds: NonNegativeFloat = Field(
        default=1.0,
        description="Pause after the first failed attempt of a retry-safe operation.",
    )
    retry_backoff_factor: PositiveFloat = Field(default=2.0, description="Growth of the pause per attempt.")

    # Reconnection: delay = interval * 2 ** (attempt - 1), optionally capped and jittered
    reconnect_interval_seconds: PositiveFloat = Field(default=5.0, description="Delay before the first reconnect.")
    reconnect_max_interval_seconds: Optional[PositiveFloat] = Field(
        default=None,
        description="Upper bound on the reconnect delay; unset means uncapped.",
    )
    reconnect_max_attempts: PositiveInt = Field(
        default=10,
        description="Reconnects before the bridge stops trying until a manual reconnect.",
    )
    reconnect_jitter: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Relative +/- spread applied to each reconnect delay.",
    )

    # Liveness and housekeeping
    heartbeat_interval_seconds: PositiveFloat = Field(default=15.0, description="Seconds between pings.")
    pong_timeout_seconds: PositiveFloat = Field(
        default=7.0,
        description="Seconds to wait for a pong before the connection is considered dead.",
    )
    sweep_interval_seconds: PositiveFloat = Field(default=60.0, description="Period of the stale-request sweep.")
    stale_request_seconds: PositiveFloat = Field(
        default=300.0,
        description="Age after which the sweep reclaims a pending request.",
    )

    log_level: LogLevel = Field(default="INFO", description="Minimum log level for the bridge process.")
    config_path: Optional[Path] = Field(
        default=None,
        description="Config file the settings were read from, if any.",
        exclude=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            ConfigFileSource(settings_cls),
            file_secret_settings,
        )


class ApiSettings(BaseSettings):
    """Process/runtime settings for the HTTP API server."""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="BRIDGE_API_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="0.0.0.0", description="Bind address for the HTTP API.")
    port: PositiveInt = Field(default=3000, description="Port for the HTTP API.")
    reload: bool = Field(default=False, description="Enable uvicorn auto-reload (dev only).")
    log_level: Literal["critical", "error", "warning", "info", "debug", "trace"] = Field(
        default="info",
        description="Log level for the HTTP API / uvicorn.",
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed by the CORS middleware.",
    )
    service_name: str = Field(default="SideSwap Bridge API", description="Name reported by /api/status.")
    version: str = Field(default="1.0.0", description="Version reported by /api/status.")


@lru_cache()
def get_settings() -> BridgeSettings:
    """Return memoized bridge settings."""

    return BridgeSettings()


@lru_cache()
def get_api_settings() -> ApiSettings:
    """Return memoized HTTP API settings."""

    return ApiSettings()
