"""Tests for the webview hub with a real WebSocket guest."""

import asyncio
import json

import pytest
import websockets

from webview_mcp.bridge import EventCorrelationBridge
from webview_mcp.errors import TargetNotFound
from webview_mcp.host import WebviewHub

from conftest import wait_until


@pytest.fixture
async def hub():
    hub = WebviewHub("127.0.0.1", 0)
    await hub.start()
    yield hub
    await hub.stop()


async def test_hello_registers_window(hub):
    async with websockets.connect(f"ws://127.0.0.1:{hub.port}") as ws:
        await ws.send(json.dumps({"type": "hello", "label": "main", "title": "Demo App"}))
        await wait_until(lambda: hub.get_window("main") is not None)

        window = hub.get_window("main")
        assert window.title == "Demo App"
        assert [w.label for w in hub.list_windows()] == ["main"]
        assert hub.status()["windows_count"] == 1

    await wait_until(lambda: hub.get_window("main") is None)


async def test_emit_to_unknown_window(hub):
    with pytest.raises(TargetNotFound):
        await hub.emit_to("main", "got-dom-content", None)


async def test_bridge_round_trip_through_guest(hub):
    bridge = EventCorrelationBridge(hub)

    async with websockets.connect(f"ws://127.0.0.1:{hub.port}") as ws:
        await ws.send(json.dumps({"type": "hello", "label": "main", "title": "Demo App"}))
        await wait_until(lambda: hub.get_window("main") is not None)

        async def guest():
            message = json.loads(await ws.recv())
            assert message == {"type": "event", "event": "got-dom-content", "payload": "main"}
            await ws.send(json.dumps({
                "type": "event",
                "event": "got-dom-content-response",
                "payload": "<html>guest</html>",
            }))

        guest_task = asyncio.create_task(guest())
        reply = await bridge.request(
            "main", "got-dom-content", "got-dom-content-response", "main", timeout=2.0
        )
        await guest_task

    assert reply == "<html>guest</html>"


async def test_events_before_hello_are_dropped(hub):
    received = []

    async def handler(label, event, payload):
        received.append((label, event))

    hub.set_event_handler(handler)

    async with websockets.connect(f"ws://127.0.0.1:{hub.port}") as ws:
        await ws.send("not json")
        await ws.send(json.dumps({"type": "event", "event": "early", "payload": 1}))
        await ws.send(json.dumps({"type": "hello", "label": "main"}))
        await ws.send(json.dumps({"type": "event", "event": "late", "payload": 2}))
        await wait_until(lambda: received)

    assert received == [("main", "late")]
