"""Event correlation bridge.

Webviews can only hand data back by emitting an event. The bridge turns
"emit a request event, wait for the matching response event" into a single
awaitable call with a deadline:

1. the target window is looked up first (``TargetNotFound``);
2. a pending entry keyed by ``<window label>:<response event>`` is
   registered *before* the request is emitted;
3. the call waits for the entry's future or the deadline
   (``CorrelationTimeout``);
4. the entry is removed on every path, so a late response is dropped instead
   of answering a later request on the same key.

At most one entry per key is live. A second request on a busy key waits in
line behind the first; that wait is bounded by the request's own timeout.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from .errors import (
    CorrelationTimeout,
    HostOperationFailed,
    MalformedResponsePayload,
    TargetNotFound,
)
from .host import HostApplication
from .models import PendingCorrelation


logger = logging.getLogger(__name__)


def correlation_key(window_label: str, response_event: str) -> str:
    return f"{window_label}:{response_event}"


def parse_json_payload(payload: Any) -> Any:
    """Payloads may arrive pre-parsed or as a JSON string."""
    if isinstance(payload, str):
        try:
            return json.loads(payload)
        except ValueError as e:
            raise MalformedResponsePayload(f"Failed to parse result: {e}") from e
    return payload


def unwrap_result(payload: Any) -> Any:
    """
    Unwrap a ``{"success": bool, "data": ..., "error": ...}`` reply.

    Raises:
        MalformedResponsePayload: the reply is not such an object
        HostOperationFailed: the webview reported a failure
    """
    payload = parse_json_payload(payload)
    if not isinstance(payload, dict) or "success" not in payload:
        raise MalformedResponsePayload(
            f"Expected an object with 'success', got {type(payload).__name__}"
        )
    if payload.get("success") is True:
        return payload.get("data")
    error = payload.get("error")
    raise HostOperationFailed(error if isinstance(error, str) and error else "Unknown error occurred")


class EventCorrelationBridge:
    def __init__(self, host: HostApplication):
        self._host = host
        self._pending: dict[str, PendingCorrelation] = {}
        # Per-key lock and the number of requests holding or waiting on it
        self._key_locks: dict[str, tuple[asyncio.Lock, int]] = {}
        self._lock = asyncio.Lock()

        host.set_event_handler(self.deliver)

    @property
    def pending_keys(self) -> list[str]:
        return list(self._pending)

    def _claim_key(self, key: str) -> asyncio.Lock:
        lock, users = self._key_locks.get(key, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._key_locks[key] = (lock, users + 1)
        return lock

    def _release_key(self, key: str) -> None:
        lock, users = self._key_locks[key]
        if users <= 1:
            del self._key_locks[key]
        else:
            self._key_locks[key] = (lock, users - 1)

    async def request(
        self,
        window_label: str,
        event: str,
        response_event: str,
        payload: Any = None,
        timeout: float = 5.0,
    ) -> Any:
        """
        Emit ``event`` to a window and wait for ``response_event``.

        Returns:
            The raw payload of the response event

        Raises:
            TargetNotFound: no window with this label
            CorrelationTimeout: no response within ``timeout`` seconds
            HostOperationFailed: the request event could not be emitted
        """
        if self._host.get_window(window_label) is None:
            raise TargetNotFound(f"Window not found: {window_label}")

        key = correlation_key(window_label, response_event)
        key_lock = self._claim_key(key)
        try:
            try:
                await asyncio.wait_for(key_lock.acquire(), timeout=timeout)
            except asyncio.TimeoutError:
                raise CorrelationTimeout(
                    f"Timeout waiting for a pending '{response_event}' request on '{window_label}'",
                    timeout,
                ) from None

            try:
                return await self._round_trip(key, window_label, event, response_event, payload, timeout)
            finally:
                key_lock.release()
        finally:
            self._release_key(key)

    async def _round_trip(
        self,
        key: str,
        window_label: str,
        event: str,
        response_event: str,
        payload: Any,
        timeout: float,
    ) -> Any:
        loop = asyncio.get_running_loop()
        now = loop.time()
        entry = PendingCorrelation(
            correlation_key=key,
            future=loop.create_future(),
            created_at=now,
            deadline=now + timeout,
        )

        async with self._lock:
            self._pending[key] = entry

        try:
            await self._host.emit_to(window_label, event, payload)
            return await asyncio.wait_for(entry.future, timeout=entry.deadline - loop.time())
        except asyncio.TimeoutError:
            raise CorrelationTimeout(
                f"Timeout waiting for '{response_event}' from '{window_label}' after {timeout:g}s",
                timeout,
            ) from None
        finally:
            async with self._lock:
                if self._pending.get(key) is entry:
                    del self._pending[key]

    async def deliver(self, window_label: str, event: str, payload: Any) -> bool:
        """
        Resolve the pending request matching a response event.

        Returns:
            True if a waiting request consumed the payload
        """
        key = correlation_key(window_label, event)
        async with self._lock:
            entry = self._pending.get(key)

        if entry is None or entry.future.done():
            logger.debug("No pending request for '%s', dropping response", key)
            return False

        entry.future.set_result(payload)
        return True

    async def close(self) -> None:
        """Fail every pending request."""
        async with self._lock:
            for entry in self._pending.values():
                if not entry.future.done():
                    entry.future.set_exception(HostOperationFailed("Bridge is shutting down"))
            self._pending.clear()


# Request/response event pairs understood by the guest script
GET_DOM_EVENTS = ("got-dom-content", "got-dom-content-response")
EXECUTE_JS_EVENTS = ("execute-js", "execute-js-response")
LOCAL_STORAGE_EVENTS = ("get-local-storage", "get-local-storage-response")
ELEMENT_POSITION_EVENTS = ("get-element-position", "get-element-position-response")
SEND_TEXT_EVENTS = ("send-text-to-element", "send-text-to-element-response")
CAPTURE_WEBVIEW_EVENTS = ("capture-webview", "capture-webview-response")


def expect_string(payload: Any, what: str) -> str:
    if not isinstance(payload, str):
        raise MalformedResponsePayload(f"Expected {what} as a string, got {type(payload).__name__}")
    return payload
