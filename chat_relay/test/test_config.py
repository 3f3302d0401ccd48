"""
Configuration and command line tests.
"""

import pytest

from chat_relay.__main__ import load_config
from chat_relay.exceptions import InvalidConfigurationError
from chat_relay.utils import RelayConfig


def test_defaults():
    config = RelayConfig()
    assert config.address == "127.0.0.1:8080"
    assert config.hub_capacity == 100
    assert config.read_timeout == 30.0
    assert config.framing == "line"
    assert config.validate() is config


def test_from_env(monkeypatch):
    monkeypatch.setenv("CHAT_RELAY_HOST", "0.0.0.0")
    monkeypatch.setenv("CHAT_RELAY_PORT", "9000")
    monkeypatch.setenv("CHAT_RELAY_HUB_CAPACITY", "16")
    monkeypatch.setenv("CHAT_RELAY_READ_TIMEOUT", "2.5")
    monkeypatch.setenv("CHAT_RELAY_FRAMING", "CHUNK")
    monkeypatch.setenv("CHAT_RELAY_ENABLE_RICH_LOGGING", "false")
    monkeypatch.setenv("CHAT_RELAY_METRICS_ENABLED", "yes")

    config = RelayConfig.from_env()
    assert config.address == "0.0.0.0:9000"
    assert config.hub_capacity == 16
    assert config.read_timeout == 2.5
    assert config.framing == "chunk"
    assert config.enable_rich_logging is False
    assert config.metrics_enabled is True


def test_ipv6_address():
    assert RelayConfig(host="::1", port=7000).address == "[::1]:7000"


@pytest.mark.parametrize(
    "key, value",
    [
        ("port", 70000),
        ("hub_capacity", 0),
        ("read_timeout", 0),
        ("read_chunk_size", 0),
        ("max_line_bytes", 0),
        ("framing", "words"),
        ("accept_backoff", -1),
    ],
)
def test_validate_rejects_out_of_range(key, value):
    config = RelayConfig()
    config.update(**{key: value})
    with pytest.raises(InvalidConfigurationError) as exc_info:
        config.validate()
    assert exc_info.value.key == key
    assert exc_info.value.error_code == "CONFIG002"


def test_update_get_and_to_dict():
    config = RelayConfig()
    config.update(port=9999, room="lobby")

    assert config.get("port") == 9999
    assert config.get("room") == "lobby"
    assert config.get("missing", "fallback") == "fallback"
    assert config.custom == {"room": "lobby"}

    data = config.to_dict()
    assert data["port"] == 9999
    assert data["room"] == "lobby"
    assert "custom" not in data


def test_command_line_overrides_environment(monkeypatch):
    monkeypatch.setenv("CHAT_RELAY_PORT", "9000")
    monkeypatch.setenv("CHAT_RELAY_READ_TIMEOUT", "12")

    config = load_config(["--port", "9100", "--framing", "chunk", "--no-rich"])
    assert config.port == 9100
    assert config.read_timeout == 12.0
    assert config.framing == "chunk"
    assert config.enable_rich_logging is False
    assert config.metrics_enabled is False


def test_command_line_rejects_bad_values():
    with pytest.raises(InvalidConfigurationError):
        load_config(["--capacity", "0"])
