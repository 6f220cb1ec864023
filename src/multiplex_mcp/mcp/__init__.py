"""
MCP connectivity for the Multiplex MCP client.

This module provides the components for connecting to MCP servers,
managing server connections, and routing tool calls to the appropriate servers.
"""

from .aggregator import (
    NamespacedTool,
    ResourceContext,
    aggregate_tools,
    close_all_connections,
    format_resource_context,
    format_tool_result,
    gather_resource_context,
    is_mcp_tool,
    route_tool_call,
    tools_to_function_format,
)
from .cancellation import CancellableOperation, CancellationController, CancellationManager
from .client_session import MultiplexClientSession
from .connection import ConnectionState, ServerConnection
from .gen_client import connect, disconnect, gen_client
from .notifications import NotificationMethod, parse_notification
from .progress import ProgressInfo, ProgressTracker
from .server_registry import ServerRegistry
from .tasks import Task, TaskResult, TaskState, TaskStatusManager, wait_for_task

__all__ = [
    "NamespacedTool",
    "ResourceContext",
    "aggregate_tools",
    "close_all_connections",
    "format_resource_context",
    "format_tool_result",
    "gather_resource_context",
    "is_mcp_tool",
    "route_tool_call",
    "tools_to_function_format",
    "CancellableOperation",
    "CancellationController",
    "CancellationManager",
    "MultiplexClientSession",
    "ConnectionState",
    "ServerConnection",
    "connect",
    "disconnect",
    "gen_client",
    "NotificationMethod",
    "parse_notification",
    "ProgressInfo",
    "ProgressTracker",
    "ServerRegistry",
    "Task",
    "TaskResult",
    "TaskState",
    "TaskStatusManager",
    "wait_for_task",
]
