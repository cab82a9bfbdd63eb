"""Tests for configuration loading."""

import json

from webview_mcp.config import SOCKET_PATH_ENV, Config, default_socket_path


def test_defaults():
    config = Config()

    assert config.socket.resolved_path == default_socket_path()
    assert default_socket_path().endswith("webview-mcp.sock")
    assert config.bridge.read_timeout == 5.0
    assert config.bridge.input_timeout == 30.0
    assert config.capture.default_quality == 85
    assert config.capture.default_max_width == 1920


def test_from_json_overrides_known_keys(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "socket": {"path": "/tmp/custom.sock"},
        "capture": {"strategies": ["webview", "placeholder"], "unknown": 1},
        "bogus": {"x": 1},
    }))

    config = Config.from_json(path)

    assert config.socket.resolved_path == "/tmp/custom.sock"
    assert config.capture.strategies == ["webview", "placeholder"]
    assert not hasattr(config.capture, "unknown")


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"socket": {"path": "/tmp/file.sock"}}))
    monkeypatch.setenv(SOCKET_PATH_ENV, "/tmp/env.sock")

    config = Config.load(path)
    assert config.socket.resolved_path == "/tmp/env.sock"


def test_json_round_trip(tmp_path):
    config = Config()
    config.hub.port = 9999
    config.server.debug = True

    path = tmp_path / "nested" / "config.json"
    config.to_json(path)
    loaded = Config.from_json(path)

    assert loaded.hub.port == 9999
    assert loaded.server.debug is True
