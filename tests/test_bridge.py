"""Tests for the event correlation bridge."""

import asyncio

import pytest

from webview_mcp.bridge import EventCorrelationBridge, correlation_key, unwrap_result
from webview_mcp.errors import (
    CorrelationTimeout,
    HostOperationFailed,
    MalformedResponsePayload,
    TargetNotFound,
)

from conftest import FakeHost, wait_until


async def test_request_returns_response_payload(host, bridge):
    host.respond("got-dom-content", "got-dom-content-response", lambda label, p: "<html></html>")

    reply = await bridge.request("main", "got-dom-content", "got-dom-content-response", "main")

    assert reply == "<html></html>"
    assert host.emitted == [("main", "got-dom-content", "main")]
    assert bridge.pending_keys == []


async def test_unknown_window_fails_before_emitting(host, bridge):
    with pytest.raises(TargetNotFound):
        await bridge.request("ghost", "got-dom-content", "got-dom-content-response")
    assert host.emitted == []


async def test_timeout_is_not_reported_before_deadline(host, bridge):
    loop = asyncio.get_running_loop()
    started = loop.time()

    with pytest.raises(CorrelationTimeout) as info:
        await bridge.request("main", "execute-js", "execute-js-response", "1", timeout=0.15)

    assert loop.time() - started >= 0.14
    assert info.value.timeout == 0.15
    assert bridge.pending_keys == []


async def test_late_response_is_dropped(host, bridge):
    with pytest.raises(CorrelationTimeout):
        await bridge.request("main", "execute-js", "execute-js-response", "1", timeout=0.05)

    consumed = await bridge.deliver("main", "execute-js-response", {"result": 1})
    assert consumed is False

    # The next request on the same key gets its own answer, not the stale one
    host.respond("execute-js", "execute-js-response", lambda label, p: {"result": 2, "type": "number"})
    reply = await bridge.request("main", "execute-js", "execute-js-response", "2")
    assert reply == {"result": 2, "type": "number"}


async def test_unrelated_event_is_ignored(bridge):
    assert await bridge.deliver("main", "something-else", None) is False


async def test_same_key_requests_are_queued(host, bridge):
    first = asyncio.create_task(
        bridge.request("main", "get-local-storage", "get-local-storage-response", "a", timeout=1.0)
    )
    second = asyncio.create_task(
        bridge.request("main", "get-local-storage", "get-local-storage-response", "b", timeout=1.0)
    )

    await wait_until(lambda: len(host.emitted) == 1)
    await asyncio.sleep(0.02)
    assert len(host.emitted) == 1
    assert bridge.pending_keys == [correlation_key("main", "get-local-storage-response")]

    await bridge.deliver("main", "get-local-storage-response", "first")
    assert await first == "first"

    await wait_until(lambda: len(host.emitted) == 2)
    await bridge.deliver("main", "get-local-storage-response", "second")
    assert await second == "second"
    assert [payload for _, _, payload in host.emitted] == ["a", "b"]


async def test_different_windows_do_not_share_a_key():
    two = FakeHost(labels=("main", "settings"))
    two_bridge = EventCorrelationBridge(two)
    two.respond("got-dom-content", "got-dom-content-response", lambda label, p: f"<{label}>")

    results = await asyncio.gather(
        two_bridge.request("main", "got-dom-content", "got-dom-content-response"),
        two_bridge.request("settings", "got-dom-content", "got-dom-content-response"),
    )
    assert results == ["<main>", "<settings>"]


async def test_close_fails_pending_requests(host, bridge):
    task = asyncio.create_task(
        bridge.request("main", "execute-js", "execute-js-response", "x", timeout=5.0)
    )
    await wait_until(lambda: bridge.pending_keys)

    await bridge.close()

    with pytest.raises(HostOperationFailed):
        await task


def test_unwrap_result():
    assert unwrap_result({"success": True, "data": [1, 2]}) == [1, 2]
    assert unwrap_result('{"success": true, "data": "x"}') == "x"

    with pytest.raises(HostOperationFailed, match="no such element"):
        unwrap_result({"success": False, "error": "no such element"})
    with pytest.raises(MalformedResponsePayload):
        unwrap_result("{not json")
    with pytest.raises(MalformedResponsePayload):
        unwrap_result([1, 2])


async def test_key_locks_are_released_after_use(host, bridge):
    host.respond("execute-js", "execute-js-response", lambda label, p: {"result": p, "type": "string"})

    await bridge.request("main", "execute-js", "execute-js-response", "a")
    with pytest.raises(CorrelationTimeout):
        await bridge.request("main", "got-dom-content", "got-dom-content-response", timeout=0.05)

    assert bridge._key_locks == {}


async def test_key_lock_survives_while_a_request_waits(host, bridge):
    holder = asyncio.create_task(
        bridge.request("main", "execute-js", "execute-js-response", "1", timeout=1.0)
    )
    await wait_until(lambda: bridge.pending_keys)

    # Gives up while the first request still holds the key
    with pytest.raises(CorrelationTimeout):
        await bridge.request("main", "execute-js", "execute-js-response", "2", timeout=0.05)
    assert list(bridge._key_locks) == [correlation_key("main", "execute-js-response")]

    await bridge.deliver("main", "execute-js-response", "done")
    assert await holder == "done"
    assert bridge._key_locks == {}
