"""
Webview MCP control plane.

Wires the webview hub, correlation bridge, screenshot pipeline, dispatcher
and socket server together and runs them until interrupted.
"""

import argparse
import asyncio
import logging
import signal
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional

from .bridge import EventCorrelationBridge
from .config import Config, get_config, set_config
from .dispatcher import CommandDispatcher
from .errors import BindFailed
from .host import HostApplication, WebviewHub
from .input import InputController
from .screenshot import build_pipeline
from .socket_server import SocketServer


logger = logging.getLogger("webview-mcp")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(config: Config) -> None:
    """Configure logging once for the whole process (stderr + optional file)."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.server.log_file:
        handlers.append(logging.FileHandler(config.server.log_file, encoding="utf-8"))

    logging.basicConfig(
        level=logging.DEBUG if config.server.debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
    )
    # websockets is chatty at debug level
    logging.getLogger("websockets").setLevel(logging.INFO)


class ControlPlane:
    """
    All server-side components for one application.

    ``host`` defaults to a ``WebviewHub``; tests and embedders can pass any
    ``HostApplication``.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        host: Optional[HostApplication] = None,
        input_controller: Optional[InputController] = None,
    ):
        self.config = config or get_config()
        self.host = host or WebviewHub(self.config.hub.host, self.config.hub.port)

        capture = self.config.capture
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, capture.workers),
            thread_name_prefix="capture",
        )

        self.bridge = EventCorrelationBridge(self.host)
        self.pipeline = build_pipeline(
            self.host,
            self.bridge,
            executor=self._executor,
            read_timeout=self.config.bridge.read_timeout,
            placeholder_size=(capture.placeholder_width, capture.placeholder_height),
            enabled=capture.strategies,
        )
        self.dispatcher = CommandDispatcher(
            self.host,
            self.bridge,
            self.pipeline,
            input_controller=input_controller or InputController(self.config.input),
            bridge_config=self.config.bridge,
            capture_config=capture,
            input_config=self.config.input,
        )
        self.socket_server = SocketServer(
            self.dispatcher,
            self.config.socket.resolved_path,
            max_message_bytes=self.config.socket.max_message_bytes,
        )

    async def start(self) -> None:
        """
        Start the hub (if any) and bind the command socket.

        Raises:
            BindFailed: the command socket could not be created
        """
        logger.info(
            "Capture environment: %s", self.pipeline.environment.to_dict()
        )
        if isinstance(self.host, WebviewHub):
            await self.host.start()
        await self.socket_server.start()

    async def stop(self) -> None:
        await self.socket_server.stop()
        await self.bridge.close()
        if isinstance(self.host, WebviewHub):
            await self.host.stop()
        self._executor.shutdown(wait=False)

    async def __aenter__(self) -> "ControlPlane":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()


async def run_service(config: Config) -> None:
    """Run until SIGINT/SIGTERM."""
    plane = ControlPlane(config)
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            pass

    async with plane:
        logger.info("%s %s control plane ready", config.server.name, config.server.version)
        await stop_event.wait()
    logger.info("Webview MCP control plane stopped")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Webview MCP control plane")
    parser.add_argument("--config", type=Path, help="Path to a JSON config file")
    parser.add_argument("--socket", help="Unix socket path (overrides config and environment)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    config = Config.load(args.config)
    if args.socket:
        config.socket.path = args.socket
    if args.debug:
        config.server.debug = True
    set_config(config)
    configure_logging(config)

    try:
        asyncio.run(run_service(config))
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except BindFailed as e:
        logger.error("Cannot start: %s", e)
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Server error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
