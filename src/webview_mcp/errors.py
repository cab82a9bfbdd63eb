"""
Error taxonomy for Webview MCP.

Every failure a command handler can report is one of these. The dispatcher
turns them into error envelopes; only BindFailed is allowed to escape, and
only at server start.
"""

from typing import Optional


class WebviewMcpError(Exception):
    """Base class for all errors reported back to the controller."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class InvalidPayload(WebviewMcpError):
    """A command payload is missing a field or has one of the wrong type."""

    kind = "invalid_payload"

    def __init__(self, command: str, message: str, field: Optional[str] = None):
        self.command = command
        self.field = field
        super().__init__(f"Invalid payload for {command}: {message}")


class TargetNotFound(WebviewMcpError):
    """The named window (or element) does not exist."""

    kind = "target_not_found"


class CaptureFailed(WebviewMcpError):
    """No capture strategy produced an image."""

    kind = "capture_failed"


class CorrelationTimeout(WebviewMcpError):
    """No response event arrived before the deadline."""

    kind = "timeout"

    def __init__(self, message: str, timeout: float):
        self.timeout = timeout
        super().__init__(message)


class MalformedResponsePayload(WebviewMcpError):
    """The webview answered, but not with the expected shape."""

    kind = "malformed_response"


class BindFailed(WebviewMcpError):
    """The command socket could not be created."""

    kind = "bind_failed"


class HostOperationFailed(WebviewMcpError):
    """The host application or native layer reported a failure."""

    kind = "host_operation_failed"
