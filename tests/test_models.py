"""Tests for command payload validation."""

import pytest

from webview_mcp.errors import InvalidPayload
from webview_mcp.models import (
    Envelope,
    ExecuteJsParams,
    LocalStorageParams,
    MouseButton,
    MouseMovementParams,
    ScreenshotParams,
    SendTextParams,
    TextInputParams,
    WindowManagerParams,
    WindowOperation,
)


def test_envelope_wire_shape():
    assert Envelope.ok([1]).to_dict() == {"success": True, "data": [1], "error": None}
    assert Envelope.fail("bad").to_dict() == {"success": False, "data": None, "error": "bad"}
    assert Envelope.from_dict({"success": False, "error": "x"}) == Envelope.fail("x")


def test_screenshot_defaults_and_clamping():
    assert ScreenshotParams.from_payload(None) == ScreenshotParams()

    params = ScreenshotParams.from_payload({"quality": 500, "max_width": -3})
    assert params.quality == 100
    assert params.max_width == 1


def test_screenshot_rejects_wrong_types():
    with pytest.raises(InvalidPayload) as info:
        ScreenshotParams.from_payload({"quality": "high"})
    assert info.value.field == "quality"

    with pytest.raises(InvalidPayload):
        ScreenshotParams.from_payload({"quality": True})


def test_window_operations():
    params = WindowManagerParams.from_payload({"operation": "set_size", "width": 640.0, "height": 480})
    assert params.operation is WindowOperation.SET_SIZE
    assert (params.width, params.height) == (640, 480)

    with pytest.raises(InvalidPayload, match="requires 'y'"):
        WindowManagerParams.from_payload({"operation": "set_position", "x": 1})
    with pytest.raises(InvalidPayload, match="must be positive"):
        WindowManagerParams.from_payload({"operation": "set_size", "width": 0, "height": 10})
    with pytest.raises(InvalidPayload, match="unsupported operation"):
        WindowManagerParams.from_payload({"operation": "explode"})


def test_text_input():
    params = TextInputParams.from_payload({"text": "abc"}, default_delay_ms=5)
    assert params.delay_ms == 5

    with pytest.raises(InvalidPayload):
        TextInputParams.from_payload({"text": "abc", "delay_ms": -1})
    with pytest.raises(InvalidPayload):
        TextInputParams.from_payload({"delay_ms": 1})


def test_mouse_movement():
    params = MouseMovementParams.from_payload({"x": 1, "y": 2, "button": "RIGHT", "click": True})
    assert params.button is MouseButton.RIGHT
    assert params.click is True

    with pytest.raises(InvalidPayload):
        MouseMovementParams.from_payload({"x": 1, "y": 2, "button": "thumb"})
    with pytest.raises(InvalidPayload):
        MouseMovementParams.from_payload({"x": 1.5, "y": 2})


def test_execute_js_forms():
    assert ExecuteJsParams.from_payload("1+1") == ExecuteJsParams(code="1+1")
    assert ExecuteJsParams.from_payload({"code": "x", "window_label": "w"}).window_label == "w"
    with pytest.raises(InvalidPayload):
        ExecuteJsParams.from_payload({"window_label": "w"})


def test_local_storage_event_payload():
    params = LocalStorageParams.from_payload({"action": "set", "key": "k", "value": "v"})
    assert params.to_event_payload() == {"action": "set", "key": "k", "value": "v"}

    with pytest.raises(InvalidPayload, match="requires 'key'"):
        LocalStorageParams.from_payload({"action": "remove"})


def test_send_text_rejects_negative_delay():
    payload = {
        "window_label": "main",
        "selector_type": "id",
        "selector_value": "q",
        "text": "hi",
    }
    assert SendTextParams.from_payload(payload).delay_ms == 20

    with pytest.raises(InvalidPayload, match="must not be negative"):
        SendTextParams.from_payload({**payload, "delay_ms": -5})
