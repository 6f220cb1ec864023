"""
Error types raised by the Multiplex MCP client.
"""

from enum import IntEnum
from typing import Any, Optional


class MCPError(Exception):
    """Base class for all MCP client errors."""


class MCPConnectionError(MCPError):
    """
    Raised when a connection could not be established, or when an operation
    is attempted on a connection that is not connected.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class MCPTimeoutError(MCPError):
    """Raised when a connection or wait exceeds its deadline."""

    def __init__(self, message: str, timeout: float):
        super().__init__(message)
        self.timeout = timeout


class MCPProtocolError(MCPError):
    """A JSON-RPC error returned by the server for a well-formed request."""

    def __init__(self, message: str, code: int, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data


class MCPAbortedError(MCPError):
    """Raised when an in-flight operation is aborted through its cancellation signal."""


class MCPConfigurationError(MCPError):
    """Raised for invalid server configuration or a reused server name."""


class TaskTimeoutError(MCPTimeoutError):
    """Raised when waiting for a task exceeds its timeout."""

    def __init__(self, task_id: str, timeout: float):
        super().__init__(f"Task {task_id} timed out after {timeout}s", timeout)
        self.task_id = task_id


class TaskAbortedError(MCPAbortedError):
    """Raised when waiting for a task is aborted."""

    def __init__(self, task_id: str):
        super().__init__(f"Wait for task {task_id} was aborted")
        self.task_id = task_id


class ErrorCode(IntEnum):
    """JSON-RPC 2.0 error codes plus the MCP extensions."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    RESOURCE_NOT_FOUND = -32002
    URL_ELICITATION_REQUIRED = -32042
    USER_REJECTED = -1


_DEFAULT_MESSAGES = {
    ErrorCode.PARSE_ERROR: "Parse error",
    ErrorCode.INVALID_REQUEST: "Invalid request",
    ErrorCode.METHOD_NOT_FOUND: "Method not found",
    ErrorCode.INVALID_PARAMS: "Invalid params",
    ErrorCode.INTERNAL_ERROR: "Internal error",
    ErrorCode.RESOURCE_NOT_FOUND: "Resource not found",
    ErrorCode.URL_ELICITATION_REQUIRED: "URL elicitation required",
    ErrorCode.USER_REJECTED: "User rejected",
}


def create_protocol_error(
    code: int, message: Optional[str] = None, data: Any = None
) -> MCPProtocolError:
    """
    Build an MCPProtocolError, filling in the standard message for known codes.

    Args:
        code: JSON-RPC error code.
        message: Optional message overriding the default for the code.
        data: Optional error data from the server.

    Returns:
        The protocol error.
    """
    if message is None:
        try:
            message = _DEFAULT_MESSAGES[ErrorCode(code)]
        except ValueError:
            message = "Unknown error"
    return MCPProtocolError(message, code, data)
