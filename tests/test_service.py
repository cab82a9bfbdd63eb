"""Tests for wiring the control plane together."""

import os

from webview_mcp.client import SocketClient
from webview_mcp.config import Config
from webview_mcp.service import ControlPlane, parse_args

from conftest import FakeHost, FakeInput


async def test_control_plane_serves_commands(socket_path):
    config = Config()
    config.socket.path = socket_path
    config.capture.strategies = ["placeholder"]
    host = FakeHost()

    async with ControlPlane(config, host=host, input_controller=FakeInput()) as plane:
        assert plane.socket_server.is_serving

        client = SocketClient(socket_path, timeout=2.0)
        try:
            assert await client.send_command("ping") == "pong"
            shot = await client.send_command("take_screenshot", {"max_width": 200})
        finally:
            await client.close()

    assert shot["strategy"] == "placeholder"
    assert shot["width"] == 200
    assert not os.path.exists(socket_path)


def test_parse_args():
    args = parse_args(["--socket", "/tmp/x.sock", "--debug"])
    assert args.socket == "/tmp/x.sock"
    assert args.debug is True
    assert args.config is None
