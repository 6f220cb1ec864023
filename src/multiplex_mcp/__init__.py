"""
Multiplex MCP - client-side orchestration of connections to many MCP servers.
"""

__version__ = "0.1.0"

# MCP connectivity
from multiplex_mcp.mcp.connection import ServerConnection
from multiplex_mcp.mcp.server_registry import ServerRegistry
from multiplex_mcp.mcp.aggregator import aggregate_tools, route_tool_call, format_tool_result
from multiplex_mcp.mcp.tasks import wait_for_task

# Errors
from multiplex_mcp.errors import (
    MCPAbortedError,
    MCPConfigurationError,
    MCPConnectionError,
    MCPError,
    MCPProtocolError,
    MCPTimeoutError,
)

# Configuration
from multiplex_mcp.config import load_config, load_mcp_config, MCPConfig, Settings

__all__ = [
    "ServerConnection",
    "ServerRegistry",
    "aggregate_tools",
    "route_tool_call",
    "format_tool_result",
    "wait_for_task",
    "MCPAbortedError",
    "MCPConfigurationError",
    "MCPConnectionError",
    "MCPError",
    "MCPProtocolError",
    "MCPTimeoutError",
    "load_config",
    "load_mcp_config",
    "MCPConfig",
    "Settings",
]
