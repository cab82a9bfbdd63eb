"""Shared fakes and fixtures."""

import asyncio
import shutil
import tempfile
import time
from typing import Any, Callable, Optional

import numpy as np
import pytest

from webview_mcp.bridge import EventCorrelationBridge
from webview_mcp.capture import CapturedFrame
from webview_mcp.config import BridgeConfig, CaptureConfig, InputConfig
from webview_mcp.dispatcher import CommandDispatcher
from webview_mcp.errors import TargetNotFound
from webview_mcp.host import HostApplication
from webview_mcp.models import (
    BoundingBox,
    MouseMovementResult,
    TextInputResult,
    WindowContext,
    WindowInfo,
    WindowManagerResult,
)
from webview_mcp.screenshot import CaptureEnvironment, build_pipeline


# (label, payload) -> response payload, or None for no answer
Responder = Callable[[str, Any], Any]


class FakeHost(HostApplication):
    """In-memory host: windows by label, recorded emits, scripted replies."""

    def __init__(self, labels: tuple[str, ...] = ("main",)):
        super().__init__()
        self.windows = {
            label: WindowContext(label=label, title=f"{label.title()} Window")
            for label in labels
        }
        self.emitted: list[tuple[str, str, Any]] = []
        self.managed: list[tuple[WindowContext, Any]] = []
        self.responders: dict[str, tuple[str, Responder]] = {}
        self._tasks: set[asyncio.Task] = set()

    def respond(self, event: str, response_event: str, responder: Responder) -> None:
        self.responders[event] = (response_event, responder)

    def get_window(self, label: str) -> Optional[WindowContext]:
        return self.windows.get(label)

    def list_windows(self) -> list[WindowContext]:
        return list(self.windows.values())

    async def emit_to(self, label: str, event: str, payload: Any) -> None:
        if label not in self.windows:
            raise TargetNotFound(f"Window not found: {label}")
        self.emitted.append((label, event, payload))

        if event in self.responders:
            response_event, responder = self.responders[event]
            reply = responder(label, payload)
            if reply is not None:
                # Answer asynchronously, like a real guest
                task = asyncio.create_task(self._deliver_event(label, response_event, reply))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)

    async def manage_window(self, window, params) -> WindowManagerResult:
        self.managed.append((window, params))
        return WindowManagerResult(success=True)


class FakeSource:
    """Native window source with fixed windows and solid-color frames."""

    def __init__(self, windows: list[WindowInfo]):
        self.windows = windows
        self.captured: list[WindowInfo] = []

    def list_windows(self) -> list[WindowInfo]:
        return list(self.windows)

    def capture_window(self, window: WindowInfo) -> CapturedFrame:
        self.captured.append(window)
        image = np.full((window.bounds.height, window.bounds.width, 3), 90, dtype=np.uint8)
        return CapturedFrame(image=image, timestamp=time.time())


class FakeInput:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.typed: list[str] = []
        self.moves: list[tuple[int, int]] = []

    def type_text(self, params) -> TextInputResult:
        if self.error:
            raise self.error
        self.typed.append(params.text)
        return TextInputResult(success=True, chars_typed=len(params.text))

    def move_mouse(self, params) -> MouseMovementResult:
        if self.error:
            raise self.error
        self.moves.append((params.x, params.y))
        return MouseMovementResult(success=True, position=(params.x, params.y))


def make_window(
    title: str,
    app_name: str = "",
    width: int = 640,
    height: int = 480,
    minimized: bool = False,
) -> WindowInfo:
    return WindowInfo(
        handle=None,
        title=title,
        bounds=BoundingBox(0, 0, width, height),
        app_name=app_name,
        is_minimized=minimized,
    )


def environment(native: bool) -> CaptureEnvironment:
    return CaptureEnvironment(
        platform="linux",
        is_wsl=False,
        has_display=native,
        native_windows=native,
    )


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def bridge(host) -> EventCorrelationBridge:
    return EventCorrelationBridge(host)


@pytest.fixture
def native_source() -> FakeSource:
    return FakeSource([make_window("Main Window", "webview-app", 1280, 720)])


@pytest.fixture
def fake_input() -> FakeInput:
    return FakeInput()


@pytest.fixture
def dispatcher(host, bridge, native_source, fake_input) -> CommandDispatcher:
    pipeline = build_pipeline(
        host,
        bridge,
        read_timeout=0.2,
        source=native_source,
        environment=environment(native=False),
    )
    return CommandDispatcher(
        host,
        bridge,
        pipeline,
        input_controller=fake_input,
        bridge_config=BridgeConfig(read_timeout=0.2, input_timeout=0.5),
        capture_config=CaptureConfig(),
        input_config=InputConfig(),
    )


@pytest.fixture
def socket_path():
    # AF_UNIX paths are short; keep clear of deep pytest tmp dirs
    directory = tempfile.mkdtemp(prefix="wmcp")
    yield f"{directory}/cmd.sock"
    shutil.rmtree(directory, ignore_errors=True)
