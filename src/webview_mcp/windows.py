"""
Native window utilities.

Enumerates on-screen windows, finds the one that belongs to a webview and
applies geometry operations to it. Uses PyWinCtl so the same code runs on
Windows, macOS and X11; it is imported lazily because it needs a display.
"""

import logging
from typing import Optional

from .errors import HostOperationFailed
from .models import (
    BoundingBox,
    WindowInfo,
    WindowManagerParams,
    WindowManagerResult,
    WindowOperation,
)


logger = logging.getLogger(__name__)


def _pywinctl():
    try:
        import pywinctl
    except Exception as e:
        # pywinctl raises more than ImportError when no display is reachable
        raise HostOperationFailed(f"Native window access unavailable: {e}") from e
    return pywinctl


def _app_name(window) -> str:
    try:
        return window.getAppName() or ""
    except Exception:
        return ""


def get_window_info(window) -> WindowInfo:
    """Get information about a PyWinCtl window."""
    return WindowInfo(
        handle=window,
        title=window.title or "",
        bounds=BoundingBox(
            x=int(window.left),
            y=int(window.top),
            width=int(window.width),
            height=int(window.height),
        ),
        app_name=_app_name(window),
        is_visible=bool(window.isVisible),
        is_minimized=bool(window.isMinimized),
        is_maximized=bool(window.isMaximized),
    )


def get_all_windows() -> list[WindowInfo]:
    """Get information about all top-level windows."""
    pywinctl = _pywinctl()
    try:
        native_windows = pywinctl.getAllWindows()
    except Exception as e:
        raise HostOperationFailed(f"Failed to get window list: {e}") from e

    windows: list[WindowInfo] = []
    for window in native_windows:
        try:
            windows.append(get_window_info(window))
        except Exception as e:
            # Windows can vanish while we enumerate
            logger.debug("Skipping window during enumeration: %s", e)
    return windows


def find_window(
    windows: list[WindowInfo],
    window_title: str,
    application_name: str = "",
) -> Optional[WindowInfo]:
    """
    Find the target window, case-insensitively, in priority order.

    1. Application name containment (only if application_name is not empty)
    2. Exact title match
    3. Title containment

    Minimized windows never match.
    """
    candidates = [w for w in windows if not w.is_minimized]

    app = (application_name or "").lower()
    if app:
        for window in candidates:
            if app in window.app_name.lower():
                logger.info("Found window by app name: '%s'", window.app_name)
                return window

    title = (window_title or "").lower()
    if not title:
        return None

    for window in candidates:
        if window.title.lower() == title:
            logger.info("Found window by exact title match: '%s'", window.title)
            return window

    for window in candidates:
        if title in window.title.lower():
            logger.info("Found window by title contains: '%s'", window.title)
            return window

    logger.debug(
        "No matching window for title '%s', app '%s' among %d windows",
        window_title, application_name, len(windows),
    )
    return None


def _center(window) -> bool:
    pywinctl = _pywinctl()
    screen = pywinctl.getScreenSize()
    x = max(0, (screen.width - int(window.width)) // 2)
    y = max(0, (screen.height - int(window.height)) // 2)
    return window.moveTo(x, y)


def apply_window_operation(
    info: WindowInfo,
    params: WindowManagerParams,
) -> WindowManagerResult:
    """Apply a validated window operation to a native window. Blocking."""
    window = info.handle
    op = params.operation

    try:
        if op == WindowOperation.FOCUS:
            if info.is_minimized:
                window.restore()
            done = window.activate()
        elif op == WindowOperation.MINIMIZE:
            done = window.minimize()
        elif op == WindowOperation.MAXIMIZE:
            done = window.maximize()
        elif op == WindowOperation.UNMAXIMIZE:
            done = window.restore()
        elif op == WindowOperation.SHOW:
            done = window.show()
        elif op == WindowOperation.HIDE:
            done = window.hide()
        elif op == WindowOperation.CLOSE:
            done = window.close()
        elif op == WindowOperation.CENTER:
            done = _center(window)
        elif op == WindowOperation.SET_POSITION:
            done = window.moveTo(params.x, params.y)
        elif op == WindowOperation.SET_SIZE:
            done = window.resizeTo(params.width, params.height)
    except HostOperationFailed as e:
        return WindowManagerResult(success=False, error=str(e))
    except Exception as e:
        logger.warning("Window operation %s failed: %s", op.value, e)
        return WindowManagerResult(success=False, error=str(e))

    # PyWinCtl returns None from some operations on some platforms
    if done is False:
        return WindowManagerResult(
            success=False,
            error=f"Window operation '{op.value}' was not applied",
        )
    return WindowManagerResult(success=True)
