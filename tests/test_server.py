"""Tests for the MCP front-end tool forwarding."""

from webview_mcp import server
from webview_mcp.server import TOOLS, _handle_tool, build_payload


class StubClient:
    def __init__(self, data):
        self.data = data
        self.sent = []

    async def send_command(self, command, payload=None, timeout=None):
        self.sent.append((command, payload))
        return self.data


def test_every_command_is_a_tool():
    assert {tool.name for tool in TOOLS} == {
        "take_screenshot",
        "get_dom",
        "execute_js",
        "manage_local_storage",
        "manage_window",
        "simulate_text_input",
        "simulate_mouse_movement",
        "get_element_position",
        "send_text_to_element",
    }


def test_build_payload():
    assert build_payload("get_dom", {}) == "main"
    assert build_payload("get_dom", {"window_label": "prefs"}) == "prefs"
    assert build_payload("get_element_position", {"selector_type": "id"}) == {
        "window_label": "main",
        "selector_type": "id",
    }
    assert build_payload("execute_js", {"code": "1"}) == {"code": "1"}


async def test_screenshot_returns_image_content():
    client = StubClient({
        "image_data_url": "data:image/jpeg;base64,AAAA",
        "width": 10,
        "height": 5,
        "strategy": "native",
        "degraded": False,
    })

    content = await _handle_tool(client, "take_screenshot", {"quality": 50})

    assert content[0].type == "image"
    assert content[0].data == "AAAA"
    assert content[0].mimeType == "image/jpeg"
    assert '"strategy": "native"' in content[1].text
    assert client.sent == [("take_screenshot", {"quality": 50})]


async def test_get_dom_returns_raw_html():
    content = await _handle_tool(StubClient("<html></html>"), "get_dom", {})
    assert content[0].text == "<html></html>"


async def test_call_tool_reports_errors(monkeypatch):
    class FailingClient:
        async def send_command(self, command, payload=None, timeout=None):
            raise server.SocketClientError("Window not found: main")

    monkeypatch.setattr(server, "get_client", lambda: FailingClient())

    content = await server.call_tool("get_dom", {})
    assert "Window not found: main" in content[0].text
