"""
Configuration management for Webview MCP.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import json
import os
import tempfile


SOCKET_PATH_ENV = "WEBVIEW_MCP_SOCKET"
DEFAULT_SOCKET_NAME = "webview-mcp.sock"


def default_socket_path() -> str:
    """Well-known socket path in the system temp directory."""
    return str(Path(tempfile.gettempdir()) / DEFAULT_SOCKET_NAME)


@dataclass
class SocketConfig:
    """Command socket configuration."""

    # Unix socket path (None = default path in the temp directory)
    path: Optional[str] = None

    # Longest accepted message line in bytes
    max_message_bytes: int = 16 * 1024 * 1024

    @property
    def resolved_path(self) -> str:
        return self.path or default_socket_path()


@dataclass
class BridgeConfig:
    """Event correlation configuration."""

    # Deadline for read-like round trips (DOM, element position, storage, js)
    read_timeout: float = 5.0

    # Deadline for text injection into an element
    input_timeout: float = 30.0


@dataclass
class HubConfig:
    """Webview hub (WebSocket) configuration. 127.0.0.1 only."""

    host: str = "127.0.0.1"
    port: int = 8766


@dataclass
class CaptureConfig:
    """Screenshot configuration."""

    # JPEG quality used when the request does not give one (0-100)
    default_quality: int = 85

    # Maximum output width used when the request does not give one
    default_max_width: int = 1920

    # Worker threads reserved for native capture
    workers: int = 2

    # Strategy names to use, in order (None = all, by priority)
    strategies: Optional[list[str]] = None

    # Size of the synthetic placeholder image
    placeholder_width: int = 800
    placeholder_height: int = 600


@dataclass
class InputConfig:
    """Mouse and keyboard simulation configuration."""

    # Delay between typed characters when the request does not give one
    default_delay_ms: int = 20

    # Mouse movement duration in seconds
    move_duration: float = 0.1

    # Enable fail-safe (move mouse to corner to abort)
    failsafe: bool = False


@dataclass
class ServerConfig:
    """Service configuration."""

    # Server name
    name: str = "webview-mcp"

    # Server version
    version: str = "1.0.0"

    # Enable debug logging
    debug: bool = False

    # Log file path (None = console only)
    log_file: Optional[str] = None


@dataclass
class Config:
    """Main configuration container."""

    socket: SocketConfig = field(default_factory=SocketConfig)
    bridge: BridgeConfig = field(default_factory=BridgeConfig)
    hub: HubConfig = field(default_factory=HubConfig)
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    input: InputConfig = field(default_factory=InputConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Config":
        """Load configuration from file or use defaults, then apply the environment."""
        if path is None:
            # Try common locations
            candidates = [
                Path.cwd() / "webview-mcp-config.json",
                Path.home() / ".webview-mcp" / "config.json",
            ]
            for candidate in candidates:
                if candidate.exists():
                    path = candidate
                    break

        if path and path.exists():
            config = cls.from_json(path)
        else:
            config = cls()

        config.apply_environment()
        return config

    def apply_environment(self) -> None:
        """Apply environment overrides (socket path)."""
        socket_path = os.getenv(SOCKET_PATH_ENV)
        if socket_path:
            self.socket.path = socket_path

    @classmethod
    def from_json(cls, path: Path) -> "Config":
        """Load configuration from JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        config = cls()

        for section in ("socket", "bridge", "hub", "capture", "input", "server"):
            if section not in data:
                continue
            target = getattr(config, section)
            for key, value in data[section].items():
                if hasattr(target, key):
                    setattr(target, key, value)

        return config

    def to_json(self, path: Path) -> None:
        """Save configuration to JSON file."""
        data = {
            "socket": {
                "path": self.socket.path,
                "max_message_bytes": self.socket.max_message_bytes,
            },
            "bridge": {
                "read_timeout": self.bridge.read_timeout,
                "input_timeout": self.bridge.input_timeout,
            },
            "hub": {
                "host": self.hub.host,
                "port": self.hub.port,
            },
            "capture": {
                "default_quality": self.capture.default_quality,
                "default_max_width": self.capture.default_max_width,
                "workers": self.capture.workers,
                "strategies": self.capture.strategies,
                "placeholder_width": self.capture.placeholder_width,
                "placeholder_height": self.capture.placeholder_height,
            },
            "input": {
                "default_delay_ms": self.input.default_delay_ms,
                "move_duration": self.input.move_duration,
                "failsafe": self.input.failsafe,
            },
            "server": {
                "name": self.server.name,
                "version": self.server.version,
                "debug": self.server.debug,
                "log_file": self.server.log_file,
            },
        }

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)


# Global configuration instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
