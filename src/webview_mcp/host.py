"""Host application interface and the webview hub (local WebSocket).

The core never talks to a GUI toolkit directly. It sees the application
through ``HostApplication``: look a window up by label, emit an event to it,
and apply a window operation. ``WebviewHub`` is the implementation used by
the service: the guest script inside every webview connects to it.

Protocol (JSON):
- Guest -> Hub:
  - {"type":"hello","label":"main","title":"My App"}
  - {"type":"event","event":"got-dom-content-response","payload":...}
- Hub -> Guest:
  - {"type":"event","event":"got-dom-content","payload":...}
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed

from .errors import HostOperationFailed, TargetNotFound
from .models import WindowContext, WindowManagerParams, WindowManagerResult
from . import windows


logger = logging.getLogger(__name__)

EventHandler = Callable[[str, str, Any], Awaitable[Any]]


class HostApplication(ABC):
    """
    The application being driven.

    Implementations are shared by all concurrent requests and must be safe
    to call from any task on the event loop.
    """

    def __init__(self) -> None:
        self._event_handler: Optional[EventHandler] = None

    def set_event_handler(self, handler: Optional[EventHandler]) -> None:
        """Set the coroutine receiving (window label, event name, payload)."""
        self._event_handler = handler

    async def _deliver_event(self, label: str, event: str, payload: Any) -> None:
        if self._event_handler is None:
            logger.debug("No event handler, dropping '%s' from '%s'", event, label)
            return
        await self._event_handler(label, event, payload)

    @abstractmethod
    def get_window(self, label: str) -> Optional[WindowContext]:
        """Look up a window by label. None if it does not exist."""
        pass

    @abstractmethod
    def list_windows(self) -> list[WindowContext]:
        """All windows currently known to the host."""
        pass

    @abstractmethod
    async def emit_to(self, label: str, event: str, payload: Any) -> None:
        """
        Emit an event to one window.

        Raises:
            TargetNotFound: no window with this label
            HostOperationFailed: the event could not be delivered
        """
        pass

    @abstractmethod
    async def manage_window(
        self,
        window: WindowContext,
        params: WindowManagerParams,
    ) -> WindowManagerResult:
        """Apply a window geometry/visibility operation."""
        pass


@dataclass
class GuestInfo:
    connected_at: float
    last_seen: float
    label: Optional[str] = None
    title: str = ""


class WebviewHub(HostApplication):
    def __init__(self, host: str = "127.0.0.1", port: int = 8766):
        super().__init__()
        self.host = host
        self.port = port

        self._server = None
        self._guests: dict[Any, GuestInfo] = {}
        self._windows: dict[str, Any] = {}

    async def start(self) -> None:
        if self._server is not None:
            return

        self._server = await websockets.serve(self._handler, self.host, self.port)
        # Port 0 picks a free port; report the real one
        for sock in self._server.sockets:
            self.port = sock.getsockname()[1]
            break
        logger.info("Webview hub listening on ws://%s:%s", self.host, self.port)

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        self._windows.clear()
        self._guests.clear()

    def status(self) -> dict[str, Any]:
        guests = []
        for info in self._guests.values():
            guests.append(
                {
                    "label": info.label,
                    "title": info.title,
                    "connected_at": info.connected_at,
                    "last_seen": info.last_seen,
                }
            )

        return {
            "listening": self._server is not None,
            "host": self.host,
            "port": self.port,
            "windows": guests,
            "windows_count": len(self._windows),
        }

    # ==================== HostApplication ====================

    def get_window(self, label: str) -> Optional[WindowContext]:
        ws = self._windows.get(label)
        if ws is None:
            return None
        info = self._guests.get(ws)
        title = info.title if info else ""
        return WindowContext(label=label, title=title, handle=ws)

    def list_windows(self) -> list[WindowContext]:
        return [
            ctx for ctx in (self.get_window(label) for label in list(self._windows))
            if ctx is not None
        ]

    async def emit_to(self, label: str, event: str, payload: Any) -> None:
        ws = self._windows.get(label)
        if ws is None:
            raise TargetNotFound(f"Window not found: {label}")

        message = json.dumps({"type": "event", "event": event, "payload": payload})
        try:
            await ws.send(message)
        except ConnectionClosed as e:
            raise HostOperationFailed(f"Failed to emit {event} event: {e}") from e

    async def manage_window(
        self,
        window: WindowContext,
        params: WindowManagerParams,
    ) -> WindowManagerResult:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._manage_window_blocking, window, params)

    def _manage_window_blocking(
        self,
        window: WindowContext,
        params: WindowManagerParams,
    ) -> WindowManagerResult:
        try:
            native = windows.find_window(windows.get_all_windows(), window.title)
        except HostOperationFailed as e:
            return WindowManagerResult(success=False, error=str(e))

        if native is None:
            return WindowManagerResult(
                success=False,
                error=f"Native window not found for '{window.label}' (title '{window.title}')",
            )
        return windows.apply_window_operation(native, params)

    # ==================== Guest Connections ====================

    async def _handler(self, ws) -> None:
        info = GuestInfo(connected_at=time.time(), last_seen=time.time())
        self._guests[ws] = info

        try:
            async for message in ws:
                info.last_seen = time.time()

                try:
                    msg = json.loads(message)
                except ValueError:
                    logger.debug("Ignoring non-JSON message from guest")
                    continue

                if not isinstance(msg, dict):
                    continue

                if msg.get("type") == "hello":
                    label = msg.get("label")
                    if not isinstance(label, str) or not label:
                        logger.warning("Guest hello without a label, ignoring")
                        continue
                    info.label = label
                    info.title = msg.get("title") or ""
                    self._windows[label] = ws
                    logger.info("Webview '%s' connected (title '%s')", label, info.title)
                    continue

                if msg.get("type") == "event" and msg.get("event"):
                    if info.label is None:
                        logger.debug("Event '%s' before hello, dropping", msg.get("event"))
                        continue
                    await self._deliver_event(info.label, msg["event"], msg.get("payload"))
        except ConnectionClosed:
            pass
        finally:
            self._guests.pop(ws, None)
            if info.label is not None and self._windows.get(info.label) is ws:
                del self._windows[info.label]
                logger.info("Webview '%s' disconnected", info.label)
