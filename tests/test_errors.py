"""Tests for the error hierarchy and protocol error construction."""

import pytest

from multiplex_mcp.errors import (
    ErrorCode,
    MCPAbortedError,
    MCPConnectionError,
    MCPError,
    MCPProtocolError,
    MCPTimeoutError,
    TaskAbortedError,
    TaskTimeoutError,
    create_protocol_error,
)


class TestCreateProtocolError:
    """Tests for create_protocol_error."""

    @pytest.mark.parametrize(
        "code, message",
        [
            (ErrorCode.METHOD_NOT_FOUND, "Method not found"),
            (ErrorCode.RESOURCE_NOT_FOUND, "Resource not found"),
            (ErrorCode.USER_REJECTED, "User rejected"),
            (-32000, "Unknown error"),
        ],
    )
    def test_default_message(self, code, message):
        """Known codes get their standard message, others a generic one."""
        error = create_protocol_error(code)

        assert isinstance(error, MCPProtocolError)
        assert str(error) == message
        assert error.code == code
        assert error.data is None

    def test_message_and_data_override(self):
        """An explicit message and data are kept."""
        error = create_protocol_error(ErrorCode.INVALID_PARAMS, "bad cursor", {"cursor": "x"})

        assert str(error) == "bad cursor"
        assert error.data == {"cursor": "x"}


class TestErrorHierarchy:
    """Tests for error attributes and subclassing."""

    def test_connection_error_keeps_cause(self):
        """MCPConnectionError exposes the underlying cause."""
        cause = OSError("spawn failed")
        error = MCPConnectionError("Failed to connect", cause=cause)

        assert error.cause is cause
        assert isinstance(error, MCPError)

    def test_task_timeout_error(self):
        """TaskTimeoutError is a timeout carrying the task id."""
        error = TaskTimeoutError("task-1", 1.5)

        assert isinstance(error, MCPTimeoutError)
        assert error.timeout == 1.5
        assert error.task_id == "task-1"
        assert str(error) == "Task task-1 timed out after 1.5s"

    def test_task_aborted_error(self):
        """TaskAbortedError is an abort carrying the task id."""
        error = TaskAbortedError("task-1")

        assert isinstance(error, MCPAbortedError)
        assert error.task_id == "task-1"
