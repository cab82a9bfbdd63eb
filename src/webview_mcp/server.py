"""
Webview MCP Server

MCP stdio server that exposes the control-plane commands as tools. Every
tool call is forwarded over the command socket of a running application.
"""

import asyncio
import json
import logging
import sys
from typing import Any, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import (
    Tool,
    TextContent,
    ImageContent,
)

from .client import SocketClient, SocketClientError
from .config import get_config


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger("webview-mcp-server")


# Create the MCP server
app = Server("webview-mcp")

# Global socket client
_client: Optional[SocketClient] = None


def get_client() -> SocketClient:
    """Get or create the socket client."""
    global _client
    if _client is None:
        _client = SocketClient(get_config().socket.resolved_path)
    return _client


_WINDOW_LABEL = {
    "type": "string",
    "description": "Label of the target webview window",
    "default": "main",
}

_SELECTOR = {
    "selector_type": {
        "type": "string",
        "description": "How to find the element",
        "enum": ["id", "class", "tag", "text", "css"],
    },
    "selector_value": {
        "type": "string",
        "description": "Value for the selector (id, class name, tag, text or CSS selector)",
    },
}


# ==================== Tool Definitions ====================

TOOLS = [
    Tool(
        name="take_screenshot",
        description="""Take a screenshot of an application window.

Tries a native window capture first, then a capture rendered by the webview,
then a placeholder image. `degraded: true` in the result means the real
window pixels could not be obtained.""",
        inputSchema={
            "type": "object",
            "properties": {
                "window_label": _WINDOW_LABEL,
                "application_name": {
                    "type": "string",
                    "description": "Application name used to find the native window (partial, case-insensitive)",
                },
                "quality": {
                    "type": "integer",
                    "description": "JPEG quality (0-100)",
                    "default": 85,
                },
                "max_width": {
                    "type": "integer",
                    "description": "Maximum image width in pixels",
                    "default": 1920,
                },
            },
        },
    ),
    Tool(
        name="get_dom",
        description="Get the full HTML of a webview window as a string. Read-only.",
        inputSchema={
            "type": "object",
            "properties": {"window_label": _WINDOW_LABEL},
        },
    ),
    Tool(
        name="execute_js",
        description="Execute JavaScript in a webview window and return the result and its type.",
        inputSchema={
            "type": "object",
            "properties": {
                "code": {"type": "string", "description": "JavaScript expression or statements"},
                "window_label": _WINDOW_LABEL,
            },
            "required": ["code"],
        },
    ),
    Tool(
        name="manage_local_storage",
        description="Read or modify localStorage of a webview window.",
        inputSchema={
            "type": "object",
            "properties": {
                "action": {
                    "type": "string",
                    "enum": ["get", "set", "remove", "clear", "keys"],
                },
                "key": {"type": "string", "description": "Item key (get without a key returns all items)"},
                "value": {"type": "string", "description": "Value for set"},
                "window_label": _WINDOW_LABEL,
            },
            "required": ["action"],
        },
    ),
    Tool(
        name="manage_window",
        description="""Manage an application window.

Operations: focus, minimize, maximize, unmaximize, show, hide, close, center,
set_position (x, y), set_size (width, height).""",
        inputSchema={
            "type": "object",
            "properties": {
                "window_label": _WINDOW_LABEL,
                "operation": {
                    "type": "string",
                    "enum": [
                        "focus", "minimize", "maximize", "unmaximize", "show",
                        "hide", "close", "center", "set_position", "set_size",
                    ],
                },
                "x": {"type": "integer"},
                "y": {"type": "integer"},
                "width": {"type": "integer"},
                "height": {"type": "integer"},
            },
            "required": ["operation"],
        },
    ),
    Tool(
        name="simulate_text_input",
        description="Type text with the native keyboard into whatever has focus.",
        inputSchema={
            "type": "object",
            "properties": {
                "text": {"type": "string"},
                "delay_ms": {"type": "integer", "description": "Delay between characters", "default": 20},
                "initial_delay_ms": {"type": "integer", "description": "Delay before typing", "default": 0},
            },
            "required": ["text"],
        },
    ),
    Tool(
        name="simulate_mouse_movement",
        description="Move the native mouse pointer, optionally clicking.",
        inputSchema={
            "type": "object",
            "properties": {
                "x": {"type": "integer"},
                "y": {"type": "integer"},
                "relative": {"type": "boolean", "default": False},
                "click": {"type": "boolean", "default": False},
                "button": {"type": "string", "enum": ["left", "right", "middle"], "default": "left"},
            },
            "required": ["x", "y"],
        },
    ),
    Tool(
        name="get_element_position",
        description="Find an element in a webview and return its position, optionally clicking it.",
        inputSchema={
            "type": "object",
            "properties": {
                "window_label": _WINDOW_LABEL,
                **_SELECTOR,
                "should_click": {"type": "boolean", "default": False},
                "raw_coordinates": {"type": "boolean", "default": False},
            },
            "required": ["selector_type", "selector_value"],
        },
    ),
    Tool(
        name="send_text_to_element",
        description="Type text into an element of a webview (inputs, textareas, rich text editors).",
        inputSchema={
            "type": "object",
            "properties": {
                "window_label": _WINDOW_LABEL,
                **_SELECTOR,
                "text": {"type": "string"},
                "delay_ms": {"type": "integer", "default": 20},
            },
            "required": ["selector_type", "selector_value", "text"],
        },
    ),
]

# Tools whose payload needs a window label even when the caller left it out
_LABELLED_TOOLS = {"get_element_position", "send_text_to_element"}


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List all available tools."""
    return TOOLS


@app.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent | ImageContent]:
    """Handle tool calls."""
    try:
        return await _handle_tool(get_client(), name, arguments or {})
    except SocketClientError as e:
        logger.warning("Tool %s failed: %s", name, e)
        return [TextContent(
            type="text",
            text=json.dumps({"error": str(e), "tool": name}, indent=2),
        )]
    except Exception as e:
        logger.exception(f"Error handling tool {name}")
        return [TextContent(
            type="text",
            text=json.dumps({"error": str(e), "tool": name}, indent=2),
        )]


def build_payload(name: str, args: dict[str, Any]) -> Any:
    """Translate tool arguments into the command payload."""
    if name == "get_dom":
        return args.get("window_label", "main")
    if name in _LABELLED_TOOLS:
        return {"window_label": "main", **args}
    return args


async def _handle_tool(
    client: SocketClient,
    name: str,
    args: dict[str, Any]
) -> list[TextContent | ImageContent]:
    """Forward one tool call and format its result."""
    data = await client.send_command(name, build_payload(name, args))

    if name == "take_screenshot":
        header, _, encoded = data["image_data_url"].partition(",")
        mime = header[len("data:"):].split(";")[0] or "image/jpeg"
        meta = {k: v for k, v in data.items() if k != "image_data_url"}
        return [
            ImageContent(type="image", data=encoded, mimeType=mime),
            TextContent(type="text", text=json.dumps(meta, indent=2)),
        ]

    if name == "get_dom" and isinstance(data, str):
        return [TextContent(type="text", text=data)]

    return [TextContent(type="text", text=json.dumps(data, indent=2, default=str))]


async def run_server():
    """Run the MCP server."""
    logger.info("Starting Webview MCP Server...")

    client = get_client()
    try:
        await client.connect()
        logger.info("Connected to %s", client.path)
    except SocketClientError as e:
        # Keep serving; calls retry the connection
        logger.warning("Socket not available yet: %s", e)

    async with stdio_server() as (read_stream, write_stream):
        await app.run(
            read_stream,
            write_stream,
            app.create_initialization_options(),
        )


def main():
    """Main entry point."""
    try:
        asyncio.run(run_server())
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.exception(f"Server error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
