"""
Webview MCP - Drive and inspect a running webview desktop application.

This package provides:
- A Unix socket command server with a uniform response envelope
- Event correlation between commands and webview replies, with deadlines
- Screenshots through a native -> webview -> placeholder strategy chain
- Native mouse/keyboard simulation and window management
- An MCP stdio front-end that forwards tool calls over the socket
"""

__version__ = "1.0.0"
__author__ = "Webview MCP Team"

__all__ = ["__version__"]
