"""
Data models for Webview MCP.

Command payloads are validated here, one ``from_payload`` per command, so a
shape mismatch always names the offending field.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .errors import InvalidPayload


DEFAULT_WINDOW_LABEL = "main"

_MISSING = object()


# ==================== Payload Helpers ====================

def _require_object(command: str, payload: Any) -> dict:
    if not isinstance(payload, dict):
        raise InvalidPayload(
            command, f"expected an object, got {type(payload).__name__}"
        )
    return payload


def _get_str(command: str, data: dict, key: str, default: Any = _MISSING) -> Any:
    value = data.get(key)
    if value is None:
        if default is _MISSING:
            raise InvalidPayload(command, f"missing field '{key}'", field=key)
        return default
    if not isinstance(value, str):
        raise InvalidPayload(command, f"field '{key}' must be a string", field=key)
    return value


def _get_int(command: str, data: dict, key: str, default: Any = _MISSING) -> Any:
    value = data.get(key)
    if value is None:
        if default is _MISSING:
            raise InvalidPayload(command, f"missing field '{key}'", field=key)
        return default
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidPayload(command, f"field '{key}' must be an integer", field=key)
    if isinstance(value, float):
        if not value.is_integer():
            raise InvalidPayload(command, f"field '{key}' must be an integer", field=key)
        value = int(value)
    return value


def _get_bool(command: str, data: dict, key: str, default: bool) -> bool:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise InvalidPayload(command, f"field '{key}' must be a boolean", field=key)
    return value


# ==================== Envelope ====================

@dataclass
class Envelope:
    """Uniform response wrapper written back for every command."""

    success: bool
    data: Any = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> "Envelope":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "Envelope":
        return cls(success=False, error=error)

    def to_dict(self) -> dict:
        """Convert to the wire representation."""
        return {
            "success": self.success,
            "data": self.data if self.success else None,
            "error": None if self.success else self.error,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Envelope":
        return cls(
            success=bool(data.get("success")),
            data=data.get("data"),
            error=data.get("error"),
        )


# ==================== Windows ====================

@dataclass
class BoundingBox:
    """Represents a rectangular region on screen."""

    x: int
    y: int
    width: int
    height: int


@dataclass
class WindowContext:
    """A webview window as known to the host application."""

    label: str
    title: str = ""
    # Host-specific handle (e.g. the hub connection)
    handle: Any = None


@dataclass
class WindowInfo:
    """Information about a native on-screen window."""

    handle: Any
    title: str
    bounds: BoundingBox
    app_name: str = ""
    is_visible: bool = True
    is_minimized: bool = False
    is_maximized: bool = False


# ==================== Screenshots ====================

@dataclass
class ScreenshotParams:
    """Parameters of a take_screenshot command."""

    window_label: str = DEFAULT_WINDOW_LABEL
    application_name: str = ""
    quality: int = 85
    max_width: int = 1920

    @classmethod
    def from_payload(
        cls,
        payload: Any,
        default_quality: int = 85,
        default_max_width: int = 1920,
    ) -> "ScreenshotParams":
        command = "take_screenshot"
        data = {} if payload is None else _require_object(command, payload)

        quality = _get_int(command, data, "quality", default_quality)
        max_width = _get_int(command, data, "max_width", default_max_width)

        return cls(
            window_label=_get_str(command, data, "window_label", DEFAULT_WINDOW_LABEL),
            application_name=_get_str(command, data, "application_name", ""),
            quality=min(100, max(0, quality)),
            max_width=max(1, max_width),
        )


@dataclass
class ScreenshotResult:
    """A finished screenshot."""

    image_data_url: str
    width: int
    height: int
    # Strategy that produced the pixels
    strategy: str = "native"
    # True when real window pixels were not obtained
    degraded: bool = False

    def to_dict(self) -> dict:
        return {
            "image_data_url": self.image_data_url,
            "width": self.width,
            "height": self.height,
            "strategy": self.strategy,
            "degraded": self.degraded,
        }


# ==================== Window Management ====================

class WindowOperation(str, Enum):
    """Window operations supported by manage_window."""

    FOCUS = "focus"
    MINIMIZE = "minimize"
    MAXIMIZE = "maximize"
    UNMAXIMIZE = "unmaximize"
    SHOW = "show"
    HIDE = "hide"
    CLOSE = "close"
    CENTER = "center"
    SET_POSITION = "set_position"
    SET_SIZE = "set_size"


@dataclass
class WindowManagerParams:
    """Parameters of a manage_window command."""

    operation: WindowOperation
    window_label: str = DEFAULT_WINDOW_LABEL
    x: Optional[int] = None
    y: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "WindowManagerParams":
        command = "manage_window"
        data = _require_object(command, payload)

        op_name = _get_str(command, data, "operation")
        try:
            operation = WindowOperation(op_name)
        except ValueError:
            raise InvalidPayload(
                command, f"unsupported operation '{op_name}'", field="operation"
            ) from None

        params = cls(
            operation=operation,
            window_label=_get_str(command, data, "window_label", DEFAULT_WINDOW_LABEL),
            x=_get_int(command, data, "x", None),
            y=_get_int(command, data, "y", None),
            width=_get_int(command, data, "width", None),
            height=_get_int(command, data, "height", None),
        )

        if operation == WindowOperation.SET_POSITION:
            for key in ("x", "y"):
                if getattr(params, key) is None:
                    raise InvalidPayload(
                        command, f"operation 'set_position' requires '{key}'", field=key
                    )
        elif operation == WindowOperation.SET_SIZE:
            for key in ("width", "height"):
                value = getattr(params, key)
                if value is None:
                    raise InvalidPayload(
                        command, f"operation 'set_size' requires '{key}'", field=key
                    )
                if value <= 0:
                    raise InvalidPayload(command, f"field '{key}' must be positive", field=key)

        return params


@dataclass
class WindowManagerResult:
    """Result of a window operation."""

    success: bool
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {"success": self.success, "error": self.error}


# ==================== Input Simulation ====================

class MouseButton(str, Enum):
    """Mouse button identifiers."""

    LEFT = "left"
    RIGHT = "right"
    MIDDLE = "middle"


@dataclass
class TextInputParams:
    """Parameters of a simulate_text_input command."""

    text: str
    delay_ms: int = 20
    initial_delay_ms: int = 0

    @classmethod
    def from_payload(cls, payload: Any, default_delay_ms: int = 20) -> "TextInputParams":
        command = "simulate_text_input"
        data = _require_object(command, payload)
        params = cls(
            text=_get_str(command, data, "text"),
            delay_ms=_get_int(command, data, "delay_ms", default_delay_ms),
            initial_delay_ms=_get_int(command, data, "initial_delay_ms", 0),
        )
        if params.delay_ms < 0 or params.initial_delay_ms < 0:
            raise InvalidPayload(command, "delays must not be negative", field="delay_ms")
        return params


@dataclass
class TextInputResult:
    success: bool
    chars_typed: int = 0
    duration_ms: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "chars_typed": self.chars_typed,
            "duration_ms": self.duration_ms,
            "error": self.error,
        }


@dataclass
class MouseMovementParams:
    """Parameters of a simulate_mouse_movement command."""

    x: int
    y: int
    relative: bool = False
    click: bool = False
    button: MouseButton = MouseButton.LEFT

    @classmethod
    def from_payload(cls, payload: Any) -> "MouseMovementParams":
        command = "simulate_mouse_movement"
        data = _require_object(command, payload)

        button_name = _get_str(command, data, "button", MouseButton.LEFT.value)
        try:
            button = MouseButton(button_name.lower())
        except ValueError:
            raise InvalidPayload(
                command, f"unsupported button '{button_name}'", field="button"
            ) from None

        return cls(
            x=_get_int(command, data, "x"),
            y=_get_int(command, data, "y"),
            relative=_get_bool(command, data, "relative", False),
            click=_get_bool(command, data, "click", False),
            button=button,
        )


@dataclass
class MouseMovementResult:
    success: bool
    duration_ms: int = 0
    position: Optional[tuple[int, int]] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "duration_ms": self.duration_ms,
            "position": list(self.position) if self.position else None,
            "error": self.error,
        }


# ==================== Webview Round Trips ====================

@dataclass
class GetDomParams:
    window_label: str

    @classmethod
    def from_payload(cls, payload: Any) -> "GetDomParams":
        command = "get_dom"
        # A bare string is the window label
        if isinstance(payload, str):
            return cls(window_label=payload)
        if isinstance(payload, dict):
            return cls(window_label=_get_str(command, payload, "window_label"))
        raise InvalidPayload(
            command, "expected a window label string or an object with 'window_label'"
        )


@dataclass
class ExecuteJsParams:
    code: str
    window_label: str = DEFAULT_WINDOW_LABEL

    @classmethod
    def from_payload(cls, payload: Any) -> "ExecuteJsParams":
        command = "execute_js"
        if isinstance(payload, str):
            return cls(code=payload)
        data = _require_object(command, payload)
        return cls(
            code=_get_str(command, data, "code"),
            window_label=_get_str(command, data, "window_label", DEFAULT_WINDOW_LABEL),
        )


class StorageAction(str, Enum):
    GET = "get"
    SET = "set"
    REMOVE = "remove"
    CLEAR = "clear"
    KEYS = "keys"


@dataclass
class LocalStorageParams:
    action: StorageAction
    window_label: str = DEFAULT_WINDOW_LABEL
    key: Optional[str] = None
    value: Any = None

    @classmethod
    def from_payload(cls, payload: Any) -> "LocalStorageParams":
        command = "manage_local_storage"
        data = _require_object(command, payload)

        action_name = _get_str(command, data, "action")
        try:
            action = StorageAction(action_name)
        except ValueError:
            raise InvalidPayload(
                command, f"unsupported action '{action_name}'", field="action"
            ) from None

        params = cls(
            action=action,
            window_label=_get_str(command, data, "window_label", DEFAULT_WINDOW_LABEL),
            key=_get_str(command, data, "key", None),
            value=data.get("value"),
        )

        if action in (StorageAction.SET, StorageAction.REMOVE) and not params.key:
            raise InvalidPayload(
                command, f"action '{action.value}' requires 'key'", field="key"
            )
        if action == StorageAction.SET and params.value is None:
            raise InvalidPayload(command, "action 'set' requires 'value'", field="value")

        return params

    def to_event_payload(self) -> dict:
        return {"action": self.action.value, "key": self.key, "value": self.value}


@dataclass
class ElementPositionParams:
    window_label: str
    selector_type: str
    selector_value: str
    should_click: bool = False
    raw_coordinates: bool = False

    @classmethod
    def from_payload(cls, payload: Any) -> "ElementPositionParams":
        command = "get_element_position"
        data = _require_object(command, payload)
        return cls(
            window_label=_get_str(command, data, "window_label"),
            selector_type=_get_str(command, data, "selector_type"),
            selector_value=_get_str(command, data, "selector_value"),
            should_click=_get_bool(command, data, "should_click", False),
            raw_coordinates=_get_bool(command, data, "raw_coordinates", False),
        )

    def to_event_payload(self) -> dict:
        return {
            "windowLabel": self.window_label,
            "selectorType": self.selector_type,
            "selectorValue": self.selector_value,
            "shouldClick": self.should_click,
            "rawCoordinates": self.raw_coordinates,
        }


@dataclass
class SendTextParams:
    window_label: str
    selector_type: str
    selector_value: str
    text: str
    delay_ms: int = 20

    @classmethod
    def from_payload(cls, payload: Any) -> "SendTextParams":
        command = "send_text_to_element"
        data = _require_object(command, payload)
        params = cls(
            window_label=_get_str(command, data, "window_label"),
            selector_type=_get_str(command, data, "selector_type"),
            selector_value=_get_str(command, data, "selector_value"),
            text=_get_str(command, data, "text"),
            delay_ms=_get_int(command, data, "delay_ms", 20),
        )
        if params.delay_ms < 0:
            raise InvalidPayload(command, "delays must not be negative", field="delay_ms")
        return params

    def to_event_payload(self) -> dict:
        return {
            "selectorType": self.selector_type,
            "selectorValue": self.selector_value,
            "text": self.text,
            "delayMs": self.delay_ms,
        }


@dataclass
class PendingCorrelation:
    """A request waiting for its response event."""

    correlation_key: str
    future: Any
    created_at: float
    deadline: float
