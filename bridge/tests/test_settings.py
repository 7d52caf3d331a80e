import json

import pytest

from bridge.config import get_settings
from bridge.config.settings import ApiSettings, BridgeSettings, ConfigFileSource


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in (
        "BRIDGE_CONFIG_FILE",
        "BRIDGE_UPSTREAM_WS_URL",
        "BRIDGE_TRANSPORT",
        "BRIDGE_HEARTBEAT_INTERVAL_SECONDS",
        "BRIDGE_LOG_LEVEL",
        "BRIDGE_API_PORT",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults():
    settings = BridgeSettings()

    assert str(settings.upstream_ws_url).startswith("ws://localhost:7777")
    assert settings.transport == "websocket"
    assert settings.request_timeout_seconds == 30.0
    assert settings.retry_max_attempts == 3
    assert settings.reconnect_interval_seconds == 5.0
    assert settings.reconnect_max_interval_seconds is None
    assert settings.reconnect_max_attempts == 10
    assert settings.reconnect_jitter == 0.0
    assert settings.heartbeat_interval_seconds == 15.0
    assert settings.pong_timeout_seconds == 7.0
    assert settings.sweep_interval_seconds == 60.0
    assert settings.stale_request_seconds == 300.0
    assert settings.config_path is None


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("BRIDGE_UPSTREAM_WS_URL", "wss://manager.example:443/ws")
    monkeypatch.setenv("BRIDGE_HEARTBEAT_INTERVAL_SECONDS", "5")
    monkeypatch.setenv("BRIDGE_LOG_LEVEL", "debug")

    settings = get_settings()

    assert str(settings.upstream_ws_url).startswith("wss://manager.example")
    assert settings.upstream_ws_url.path == "/ws"
    assert settings.heartbeat_interval_seconds == 5.0
    assert settings.log_level == "DEBUG"
    assert get_settings() is settings


def test_yaml_file_is_loaded(monkeypatch, tmp_path):
    config = tmp_path / "bridge.yaml"
    config.write_text(
        "upstream_ws_url: ws://10.0.0.5:7777\n"
        "request_timeout_seconds: 12\n"
        "reconnect_max_attempts: 4\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("BRIDGE_CONFIG_FILE", str(config))

    settings = BridgeSettings()

    assert str(settings.upstream_ws_url).startswith("ws://10.0.0.5:7777")
    assert settings.request_timeout_seconds == 12.0
    assert settings.reconnect_max_attempts == 4
    assert settings.config_path == config


def test_explicit_json_file_is_loaded(monkeypatch, tmp_path):
    config = tmp_path / "bridge.json"
    config.write_text(json.dumps({"pong_timeout_seconds": 2, "transport": "dummy"}), encoding="utf-8")
    monkeypatch.setenv("BRIDGE_CONFIG_FILE", str(config))

    settings = BridgeSettings()

    assert settings.pong_timeout_seconds == 2.0
    assert settings.transport == "dummy"


def test_config_directory_in_working_directory_is_picked_up(tmp_path):
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "bridge.yaml").write_text("pong_timeout_seconds: 3\n", encoding="utf-8")

    settings = BridgeSettings()

    assert settings.pong_timeout_seconds == 3.0


def test_environment_wins_over_file(monkeypatch, tmp_path):
    config = tmp_path / "bridge.yml"
    config.write_text("heartbeat_interval_seconds: 30\n", encoding="utf-8")
    monkeypatch.setenv("BRIDGE_CONFIG_FILE", str(config))
    monkeypatch.setenv("BRIDGE_HEARTBEAT_INTERVAL_SECONDS", "3")

    assert BridgeSettings().heartbeat_interval_seconds == 3.0


def test_non_mapping_file_is_rejected(monkeypatch, tmp_path):
    config = tmp_path / "bridge.yaml"
    config.write_text("- just\n- a list\n", encoding="utf-8")
    monkeypatch.setenv("BRIDGE_CONFIG_FILE", str(config))

    with pytest.raises(ValueError):
        BridgeSettings()


def test_invalid_values_are_rejected():
    with pytest.raises(ValueError):
        BridgeSettings(request_timeout_seconds=0)
    with pytest.raises(ValueError):
        BridgeSettings(reconnect_jitter=1.5)


def test_api_settings_environment(monkeypatch):
    monkeypatch.setenv("BRIDGE_API_PORT", "8080")

    api_settings = ApiSettings()

    assert api_settings.port == 8080
    assert api_settings.host == "0.0.0.0"
    assert api_settings.cors_origins == ["*"]


def test_config_source_skips_missing_and_unknown_files(tmp_path):
    notes = tmp_path / "bridge.txt"
    notes.write_text("request_timeout_seconds: 1\n", encoding="utf-8")
    config = tmp_path / "bridge.yml"
    config.write_text("request_timeout_seconds: 4\n", encoding="utf-8")

    source = ConfigFileSource(BridgeSettings, candidates=[tmp_path / "missing.yaml", notes, config])

    assert source() == {"request_timeout_seconds": 4, "config_path": config}


def test_invalid_yaml_is_reported(monkeypatch, tmp_path):
    config = tmp_path / "bridge.yaml"
    config.write_text("request_timeout_seconds: [1, 2\n", encoding="utf-8")
    monkeypatch.setenv("BRIDGE_CONFIG_FILE", str(config))

    with pytest.raises(ValueError, match="not valid YAML"):
        BridgeSettings()
