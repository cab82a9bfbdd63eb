"""
Screenshot pipeline.

A screenshot is attempted with a chain of capture strategies, highest
priority first, until one yields pixels:

- native (100): find the window on screen and grab its pixels with MSS
- webview (50): ask the guest to render its viewport to a canvas
- placeholder (0): a fixed light-gray image, always available

Which strategies take part is decided by probing the runtime environment
(display present, WSL, PyWinCtl importable), not by the platform we were
built on. Whatever strategy wins, the pixels go through the image
processor, so the command returns a well-formed image unless processing
itself fails.
"""

import asyncio
import importlib.util
import logging
import os
import sys
import time
from abc import ABC, abstractmethod
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Optional

from .bridge import CAPTURE_WEBVIEW_EVENTS, EventCorrelationBridge, unwrap_result
from .capture import CapturedFrame, WindowCapture
from .errors import CaptureFailed, MalformedResponsePayload, TargetNotFound
from .host import HostApplication
from .imaging import ImageProcessingError, decode_data_url, placeholder_image, process_image
from .models import ScreenshotParams, ScreenshotResult, WindowContext
from . import windows


logger = logging.getLogger(__name__)


# ==================== Environment Probing ====================

def is_wsl() -> bool:
    """Detect a WSL/WSL2 environment (no native window capture there)."""
    if os.getenv("WSL_DISTRO_NAME") or os.getenv("WSL_INTEROP"):
        return True
    try:
        with open("/proc/version", "r", encoding="utf-8") as f:
            content = f.read()
    except OSError:
        return False
    return "microsoft" in content.lower() or "WSL" in content


@dataclass
class CaptureEnvironment:
    """What the current runtime can do for screenshots."""

    platform: str
    is_wsl: bool
    has_display: bool
    native_windows: bool

    @property
    def native_capture(self) -> bool:
        return self.has_display and self.native_windows and not self.is_wsl

    def to_dict(self) -> dict:
        return {
            "platform": self.platform,
            "is_wsl": self.is_wsl,
            "has_display": self.has_display,
            "native_windows": self.native_windows,
            "native_capture": self.native_capture,
        }


def probe_environment() -> CaptureEnvironment:
    """Probe the runtime environment."""
    platform = sys.platform
    if platform in ("win32", "darwin"):
        has_display = True
    else:
        has_display = bool(os.getenv("DISPLAY") or os.getenv("WAYLAND_DISPLAY"))

    return CaptureEnvironment(
        platform=platform,
        is_wsl=platform.startswith("linux") and is_wsl(),
        has_display=has_display,
        native_windows=importlib.util.find_spec("pywinctl") is not None,
    )


# ==================== Strategies ====================

@dataclass
class CaptureRequest:
    """One screenshot request as seen by the strategies."""

    params: ScreenshotParams
    # None when only an application name identifies the target
    window: Optional[WindowContext] = None

    @property
    def window_title(self) -> str:
        return self.window.title if self.window else ""


class CaptureStrategy(ABC):
    """
    One way of obtaining a window's pixels.

    ``capture`` returns None (or raises) to let the next strategy try.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def priority(self) -> int:
        """Higher runs first."""
        pass

    @abstractmethod
    def is_available(self, env: CaptureEnvironment, request: CaptureRequest) -> bool:
        pass

    @abstractmethod
    async def capture(self, request: CaptureRequest) -> Optional[CapturedFrame]:
        pass


class NativeCaptureStrategy(CaptureStrategy):
    """Enumerate on-screen windows and grab the matching one."""

    def __init__(self, source: Optional[WindowCapture] = None, executor: Optional[Executor] = None):
        self._source = source or WindowCapture()
        self._executor = executor

    @property
    def name(self) -> str:
        return "native"

    @property
    def priority(self) -> int:
        return 100

    def is_available(self, env: CaptureEnvironment, request: CaptureRequest) -> bool:
        return env.native_capture

    async def capture(self, request: CaptureRequest) -> Optional[CapturedFrame]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._capture_blocking, request)

    def _capture_blocking(self, request: CaptureRequest) -> Optional[CapturedFrame]:
        all_windows = self._source.list_windows()
        logger.debug("Found %d native windows", len(all_windows))

        match = windows.find_window(
            all_windows,
            request.window_title,
            request.params.application_name,
        )
        if match is None:
            logger.info(
                "No native window matches title '%s' / app '%s'",
                request.window_title, request.params.application_name,
            )
            return None

        frame = self._source.capture_window(match)
        logger.info("Captured native window image: %dx%d", frame.width, frame.height)
        return frame


class WebviewCaptureStrategy(CaptureStrategy):
    """
    Ask the guest to render its viewport to a canvas and send it back.

    The guest replies ``{"success": true, "data": {"image": <data URL>,
    "exact": bool}}``; ``exact`` is false when it could only draw an
    approximation (e.g. page text), which marks the result degraded.
    """

    def __init__(self, bridge: EventCorrelationBridge, timeout: float = 5.0):
        self._bridge = bridge
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "webview"

    @property
    def priority(self) -> int:
        return 50

    def is_available(self, env: CaptureEnvironment, request: CaptureRequest) -> bool:
        return request.window is not None

    async def capture(self, request: CaptureRequest) -> Optional[CapturedFrame]:
        event, response_event = CAPTURE_WEBVIEW_EVENTS
        reply = await self._bridge.request(
            request.window.label,
            event,
            response_event,
            {
                "maxWidth": request.params.max_width,
                "quality": request.params.quality / 100,
            },
            timeout=self._timeout,
        )
        data = unwrap_result(reply)

        if isinstance(data, str):
            image_url, exact = data, False
        elif isinstance(data, dict) and isinstance(data.get("image"), str):
            image_url, exact = data["image"], data.get("exact") is True
        else:
            raise MalformedResponsePayload("Webview capture reply carries no image")

        try:
            image = decode_data_url(image_url)
        except ImageProcessingError as e:
            raise MalformedResponsePayload(f"Webview capture image is invalid: {e}") from e

        return CapturedFrame(
            image=image,
            timestamp=time.time(),
            source=self.name,
            degraded=not exact,
        )


class PlaceholderStrategy(CaptureStrategy):
    """Deterministic solid-color image; the last resort."""

    def __init__(self, width: int = 800, height: int = 600):
        self._width = width
        self._height = height

    @property
    def name(self) -> str:
        return "placeholder"

    @property
    def priority(self) -> int:
        return 0

    def is_available(self, env: CaptureEnvironment, request: CaptureRequest) -> bool:
        return True

    async def capture(self, request: CaptureRequest) -> Optional[CapturedFrame]:
        return CapturedFrame(
            image=placeholder_image(self._width, self._height),
            timestamp=time.time(),
            source=self.name,
            degraded=True,
        )


# ==================== Pipeline ====================

class ScreenshotPipeline:
    """Runs the strategy chain for one screenshot request at a time."""

    def __init__(
        self,
        host: HostApplication,
        strategies: Optional[list[CaptureStrategy]] = None,
        environment: Optional[CaptureEnvironment] = None,
        enabled: Optional[list[str]] = None,
    ):
        self._host = host
        self._strategies: list[CaptureStrategy] = []
        self.environment = environment or probe_environment()
        # Restricts and orders strategies by name when set
        self._enabled = enabled

        for strategy in strategies or []:
            self.register(strategy)

    def register(self, strategy: CaptureStrategy) -> None:
        """Register a strategy."""
        self._strategies.append(strategy)
        # Keep sorted by priority (highest first)
        self._strategies.sort(key=lambda s: s.priority, reverse=True)

    def candidates(self, request: CaptureRequest) -> list[CaptureStrategy]:
        """Strategies to try for this request, in order."""
        strategies = self._strategies
        if self._enabled is not None:
            by_name = {s.name: s for s in strategies}
            strategies = [by_name[name] for name in self._enabled if name in by_name]
        return [s for s in strategies if s.is_available(self.environment, request)]

    async def take_screenshot(self, params: ScreenshotParams) -> ScreenshotResult:
        """
        Produce a screenshot of a window.

        Raises:
            TargetNotFound: unknown window label and no application name
            CaptureFailed: the image processor failed or no strategy succeeded
        """
        window = self._host.get_window(params.window_label)
        if window is None and not params.application_name:
            raise TargetNotFound(f"Window not found: {params.window_label}")

        request = CaptureRequest(params=params, window=window)
        chain = self.candidates(request)
        logger.debug("Capture chain: %s", [s.name for s in chain])

        for strategy in chain:
            try:
                frame = await strategy.capture(request)
            except Exception as e:
                logger.warning("Capture strategy '%s' failed: %s", strategy.name, e)
                continue

            if frame is None:
                continue
            if frame.is_empty:
                logger.warning("Capture strategy '%s' returned an empty image", strategy.name)
                continue

            try:
                encoded = process_image(frame.image, params.quality, params.max_width)
            except ImageProcessingError as e:
                raise CaptureFailed(f"Failed to process image: {e}") from e

            if frame.degraded:
                logger.info(
                    "Screenshot of '%s' is degraded (strategy '%s')",
                    params.window_label, strategy.name,
                )

            return ScreenshotResult(
                image_data_url=encoded.data_url,
                width=encoded.width,
                height=encoded.height,
                strategy=strategy.name,
                degraded=frame.degraded,
            )

        raise CaptureFailed(
            f"All capture strategies failed for window '{params.window_label}'"
        )


def build_pipeline(
    host: HostApplication,
    bridge: EventCorrelationBridge,
    executor: Optional[Executor] = None,
    read_timeout: float = 5.0,
    placeholder_size: tuple[int, int] = (800, 600),
    enabled: Optional[list[str]] = None,
    source: Optional[WindowCapture] = None,
    environment: Optional[CaptureEnvironment] = None,
) -> ScreenshotPipeline:
    """Pipeline with the standard native -> webview -> placeholder chain."""
    width, height = placeholder_size
    return ScreenshotPipeline(
        host,
        strategies=[
            NativeCaptureStrategy(source, executor),
            WebviewCaptureStrategy(bridge, read_timeout),
            PlaceholderStrategy(width, height),
        ],
        environment=environment,
        enabled=enabled,
    )
