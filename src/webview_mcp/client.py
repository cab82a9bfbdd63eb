"""Socket client for the command server.

Used by the MCP front-end (and handy from scripts/tests). One request is in
flight per client at a time, matching the server's strict request/response
pairing per connection.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional

from .config import get_config
from .models import Envelope


logger = logging.getLogger(__name__)


class SocketClientError(Exception):
    """The command server could not be reached or answered garbage."""


class SocketClient:
    def __init__(
        self,
        path: Optional[str] = None,
        timeout: float = 60.0,
        max_message_bytes: int = 64 * 1024 * 1024,
    ):
        self.path = path or get_config().socket.resolved_path
        self.timeout = timeout
        self._max_message_bytes = max_message_bytes

        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    async def connect(self) -> None:
        if self.connected:
            return
        try:
            self._reader, self._writer = await asyncio.open_unix_connection(
                self.path, limit=self._max_message_bytes
            )
        except OSError as e:
            raise SocketClientError(f"Cannot connect to {self.path}: {e}") from e
        logger.debug("Connected to %s", self.path)

    async def close(self) -> None:
        if self._writer is None:
            return
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except (ConnectionResetError, BrokenPipeError):
            pass
        self._reader = None
        self._writer = None

    async def send(self, command: str, payload: Any = None, timeout: Optional[float] = None) -> Envelope:
        """Send one command and wait for its envelope."""
        message = json.dumps({"command": command, "payload": payload}).encode("utf-8") + b"\n"
        wait = timeout or self.timeout

        async with self._lock:
            await self._write(message)

            try:
                line = await asyncio.wait_for(self._reader.readline(), timeout=wait)
            except asyncio.TimeoutError:
                # A late answer would desynchronize the stream
                await self.close()
                raise SocketClientError(f"No response to '{command}' within {wait}s") from None
            except (ConnectionResetError, ValueError) as e:
                await self.close()
                raise SocketClientError(f"Failed to read response: {e}") from e

            if not line:
                await self.close()
                raise SocketClientError("Connection closed by server")

        try:
            data = json.loads(line)
        except ValueError as e:
            raise SocketClientError(f"Invalid response: {e}") from e
        if not isinstance(data, dict):
            raise SocketClientError("Invalid response: expected a JSON object")
        return Envelope.from_dict(data)

    async def _write(self, message: bytes) -> None:
        """Write a request, reconnecting once if the connection went stale."""
        for attempt in (1, 2):
            await self.connect()
            try:
                self._writer.write(message)
                await self._writer.drain()
                return
            except (ConnectionResetError, BrokenPipeError) as e:
                await self.close()
                if attempt == 2:
                    raise SocketClientError(f"Failed to send request: {e}") from e
                logger.info("Connection lost (%s), reconnecting", e)

    async def send_command(self, command: str, payload: Any = None, timeout: Optional[float] = None) -> Any:
        """Send a command and return its data, raising on an error envelope."""
        envelope = await self.send(command, payload, timeout)
        if not envelope.success:
            raise SocketClientError(envelope.error or "Unknown error")
        return envelope.data
