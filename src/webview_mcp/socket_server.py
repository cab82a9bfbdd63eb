"""
Command socket server.

Listens on a Unix domain socket. Every connection carries newline-delimited
JSON requests ``{"command": <name>, "payload": <any>}`` and receives exactly
one envelope line per request, in request order. Connections are served
concurrently and independently.
"""

import asyncio
import json
import logging
import os
import socket
import stat
from typing import Optional

from .dispatcher import CommandDispatcher
from .errors import BindFailed
from .models import Envelope


logger = logging.getLogger(__name__)


def _is_listening(path: str) -> bool:
    probe = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        probe.connect(path)
    except OSError:
        return False
    finally:
        probe.close()
    return True


def remove_stale_socket(path: str) -> None:
    """
    Remove a leftover socket file so the path can be bound again.

    Only a socket nobody listens on is removed.

    Raises:
        BindFailed: the path is not a socket, or a server still owns it
    """
    try:
        mode = os.lstat(path).st_mode
    except FileNotFoundError:
        return
    except OSError as e:
        raise BindFailed(f"Cannot inspect socket path {path}: {e}") from e

    if not stat.S_ISSOCK(mode):
        raise BindFailed(f"Socket path {path} exists and is not a socket")

    if _is_listening(path):
        raise BindFailed(f"Socket path {path} is in use by a running server")

    try:
        os.unlink(path)
    except OSError as e:
        raise BindFailed(f"Cannot remove stale socket {path}: {e}") from e
    logger.info("Removed stale socket file %s", path)


class SocketServer:
    def __init__(
        self,
        dispatcher: CommandDispatcher,
        path: str,
        max_message_bytes: int = 16 * 1024 * 1024,
    ):
        self.path = path
        self._dispatcher = dispatcher
        self._max_message_bytes = max_message_bytes
        self._server: Optional[asyncio.AbstractServer] = None
        self._writers: set[asyncio.StreamWriter] = set()

    @property
    def is_serving(self) -> bool:
        return self._server is not None and self._server.is_serving()

    async def start(self) -> None:
        """
        Bind the socket and start accepting connections.

        Raises:
            BindFailed: the socket could not be created
        """
        if self._server is not None:
            return

        remove_stale_socket(self.path)
        try:
            self._server = await asyncio.start_unix_server(
                self._handle_connection,
                path=self.path,
                limit=self._max_message_bytes,
            )
        except OSError as e:
            raise BindFailed(f"Failed to bind socket {self.path}: {e}") from e

        logger.info("Socket server listening on %s", self.path)

    async def stop(self) -> None:
        if self._server is None:
            return

        self._server.close()
        for writer in list(self._writers):
            writer.close()
        await self._server.wait_closed()
        self._server = None

        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove socket file %s: %s", self.path, e)
        logger.info("Socket server stopped")

    # ==================== Connections ====================

    async def handle_message(self, raw: bytes) -> Envelope:
        """Decode one request line and dispatch it."""
        try:
            message = json.loads(raw)
        except ValueError as e:
            return Envelope.fail(f"Invalid JSON: {e}")

        if not isinstance(message, dict):
            return Envelope.fail("Invalid request: expected a JSON object")

        command = message.get("command")
        if not isinstance(command, str):
            return Envelope.fail("Invalid request: missing 'command'")

        return await self._dispatcher.dispatch(command, message.get("payload"))

    async def _handle_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        self._writers.add(writer)
        logger.debug("Client connected")

        try:
            while True:
                try:
                    line = await reader.readline()
                except ValueError:
                    # Line longer than the stream limit; framing is lost
                    await self._write(
                        writer,
                        Envelope.fail(
                            f"Message exceeds {self._max_message_bytes} bytes"
                        ),
                    )
                    break

                if not line:
                    break
                if not line.strip():
                    continue

                envelope = await self.handle_message(line)
                await self._write(writer, envelope)
        except (ConnectionResetError, BrokenPipeError) as e:
            logger.debug("Client connection lost: %s", e)
        finally:
            self._writers.discard(writer)
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionResetError, BrokenPipeError):
                pass
            logger.debug("Client disconnected")

    async def _write(self, writer: asyncio.StreamWriter, envelope: Envelope) -> None:
        try:
            line = json.dumps(envelope.to_dict())
        except (TypeError, ValueError) as e:
            logger.error("Response is not JSON serializable: %s", e)
            line = json.dumps(Envelope.fail(f"Response is not JSON serializable: {e}").to_dict())

        writer.write(line.encode("utf-8") + b"\n")
        await writer.drain()
