"""
Command dispatcher.

Maps a command name to its handler and always answers with an envelope:
handler failures become ``{"success": false, "error": ...}`` and never
escape to the socket server.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from .bridge import (
    ELEMENT_POSITION_EVENTS,
    EXECUTE_JS_EVENTS,
    GET_DOM_EVENTS,
    LOCAL_STORAGE_EVENTS,
    SEND_TEXT_EVENTS,
    EventCorrelationBridge,
    expect_string,
    parse_json_payload,
    unwrap_result,
)
from .config import BridgeConfig, CaptureConfig, InputConfig
from .errors import (
    HostOperationFailed,
    MalformedResponsePayload,
    TargetNotFound,
    WebviewMcpError,
)
from .host import HostApplication
from .input import InputController
from .models import (
    Envelope,
    ElementPositionParams,
    ExecuteJsParams,
    GetDomParams,
    LocalStorageParams,
    MouseMovementParams,
    ScreenshotParams,
    SendTextParams,
    TextInputParams,
    WindowManagerParams,
)
from .screenshot import ScreenshotPipeline


logger = logging.getLogger(__name__)

UNKNOWN_COMMAND = "unknown command"

# Command names (case-sensitive)
PING = "ping"
GET_DOM = "get_dom"
MANAGE_LOCAL_STORAGE = "manage_local_storage"
EXECUTE_JS = "execute_js"
MANAGE_WINDOW = "manage_window"
SIMULATE_TEXT_INPUT = "simulate_text_input"
SIMULATE_MOUSE_MOVEMENT = "simulate_mouse_movement"
GET_ELEMENT_POSITION = "get_element_position"
SEND_TEXT_TO_ELEMENT = "send_text_to_element"
TAKE_SCREENSHOT = "take_screenshot"

Handler = Callable[[Any], Awaitable[Any]]


class CommandDispatcher:
    """
    Routes commands to handlers.

    Holds references to the shared collaborators only; no per-request state.
    """

    def __init__(
        self,
        host: HostApplication,
        bridge: EventCorrelationBridge,
        pipeline: ScreenshotPipeline,
        input_controller: Optional[InputController] = None,
        bridge_config: Optional[BridgeConfig] = None,
        capture_config: Optional[CaptureConfig] = None,
        input_config: Optional[InputConfig] = None,
    ):
        self._host = host
        self._bridge = bridge
        self._pipeline = pipeline
        self._input = input_controller or InputController(input_config)
        self._bridge_config = bridge_config or BridgeConfig()
        self._capture_config = capture_config or CaptureConfig()
        self._input_config = input_config or InputConfig()

        self._handlers: dict[str, Handler] = {
            PING: self._ping,
            GET_DOM: self._get_dom,
            MANAGE_LOCAL_STORAGE: self._manage_local_storage,
            EXECUTE_JS: self._execute_js,
            MANAGE_WINDOW: self._manage_window,
            SIMULATE_TEXT_INPUT: self._simulate_text_input,
            SIMULATE_MOUSE_MOVEMENT: self._simulate_mouse_movement,
            GET_ELEMENT_POSITION: self._get_element_position,
            SEND_TEXT_TO_ELEMENT: self._send_text_to_element,
            TAKE_SCREENSHOT: self._take_screenshot,
        }

    @property
    def commands(self) -> list[str]:
        return list(self._handlers)

    async def dispatch(self, name: Any, payload: Any = None) -> Envelope:
        """Run one command. Never raises (cancellation aside)."""
        handler = self._handlers.get(name) if isinstance(name, str) else None
        if handler is None:
            logger.warning("Unknown command: %r", name)
            return Envelope.fail(UNKNOWN_COMMAND)

        try:
            data = await handler(payload)
        except WebviewMcpError as e:
            logger.info("Command %s failed (%s): %s", name, e.kind, e)
            return Envelope.fail(str(e))
        except Exception as e:
            logger.exception(f"Error handling command {name}")
            return Envelope.fail(f"Internal error in {name}: {e}")

        return Envelope.ok(data)

    # ==================== Handlers ====================

    async def _ping(self, payload: Any) -> Any:
        return "pong"

    async def _get_dom(self, payload: Any) -> str:
        params = GetDomParams.from_payload(payload)
        event, response_event = GET_DOM_EVENTS
        reply = await self._bridge.request(
            params.window_label,
            event,
            response_event,
            params.window_label,
            timeout=self._bridge_config.read_timeout,
        )
        dom = expect_string(reply, "DOM content")
        if not dom:
            raise MalformedResponsePayload("Retrieved DOM string is empty")
        return dom

    async def _execute_js(self, payload: Any) -> dict:
        params = ExecuteJsParams.from_payload(payload)
        event, response_event = EXECUTE_JS_EVENTS
        reply = await self._bridge.request(
            params.window_label,
            event,
            response_event,
            params.code,
            timeout=self._bridge_config.read_timeout,
        )
        reply = parse_json_payload(reply)
        if not isinstance(reply, dict) or "type" not in reply:
            raise MalformedResponsePayload("Expected an object with 'result' and 'type'")
        if reply.get("type") == "error":
            raise HostOperationFailed(
                f"JavaScript execution error: {reply.get('error') or 'unknown error'}"
            )
        return {"result": reply.get("result"), "type": reply.get("type")}

    async def _manage_local_storage(self, payload: Any) -> Any:
        params = LocalStorageParams.from_payload(payload)
        event, response_event = LOCAL_STORAGE_EVENTS
        reply = await self._bridge.request(
            params.window_label,
            event,
            response_event,
            params.to_event_payload(),
            timeout=self._bridge_config.read_timeout,
        )
        return unwrap_result(reply)

    async def _get_element_position(self, payload: Any) -> Any:
        params = ElementPositionParams.from_payload(payload)
        event, response_event = ELEMENT_POSITION_EVENTS
        reply = await self._bridge.request(
            params.window_label,
            event,
            response_event,
            params.to_event_payload(),
            timeout=self._bridge_config.read_timeout,
        )
        return unwrap_result(reply)

    async def _send_text_to_element(self, payload: Any) -> Any:
        params = SendTextParams.from_payload(payload)
        event, response_event = SEND_TEXT_EVENTS
        reply = await self._bridge.request(
            params.window_label,
            event,
            response_event,
            params.to_event_payload(),
            timeout=self._bridge_config.input_timeout,
        )
        return unwrap_result(reply)

    async def _manage_window(self, payload: Any) -> dict:
        params = WindowManagerParams.from_payload(payload)
        window = self._host.get_window(params.window_label)
        if window is None:
            raise TargetNotFound(f"Window not found: {params.window_label}")
        result = await self._host.manage_window(window, params)
        return result.to_dict()

    async def _simulate_text_input(self, payload: Any) -> dict:
        params = TextInputParams.from_payload(
            payload, default_delay_ms=self._input_config.default_delay_ms
        )
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, self._input.type_text, params)
        return result.to_dict()

    async def _simulate_mouse_movement(self, payload: Any) -> dict:
        params = MouseMovementParams.from_payload(payload)
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, self._input.move_mouse, params)
        return result.to_dict()

    async def _take_screenshot(self, payload: Any) -> dict:
        params = ScreenshotParams.from_payload(
            payload,
            default_quality=self._capture_config.default_quality,
            default_max_width=self._capture_config.default_max_width,
        )
        result = await self._pipeline.take_screenshot(params)
        return result.to_dict()
