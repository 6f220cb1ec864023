"""
Tool aggregation and routing across multiple MCP server connections.

Tools from every connection are collected into one map keyed by
``"<server>.<tool>"``, where the server part is the name the server reports
about itself. Calls to a namespaced tool are routed back to the connection
that owns it.
"""

import asyncio
import json
from typing import Any, Dict, Iterable, List, Optional, TYPE_CHECKING

from pydantic import BaseModel
from mcp.types import (
    AudioContent,
    BlobResourceContents,
    CallToolResult,
    EmbeddedResource,
    ImageContent,
    TextContent,
    TextResourceContents,
    Tool,
)

from multiplex_mcp.errors import MCPError
from multiplex_mcp.utils.logging import get_logger

if TYPE_CHECKING:
    from multiplex_mcp.mcp.connection import ServerConnection

logger = get_logger(__name__)

SEP = "."
UNKNOWN_SERVER = "unknown"


class NamespacedTool(BaseModel):
    """
    A tool that is namespaced by server name.
    """

    tool: Tool
    server_name: str
    namespaced_tool_name: str
    original_name: str
    connection: Any
    model_config = {"extra": "allow", "arbitrary_types_allowed": True}


ToolMap = Dict[str, NamespacedTool]


class ResourceContext(BaseModel):
    """Content of a resource, for use as context in a prompt."""

    uri: str
    content: str
    mime_type: Optional[str] = None


async def aggregate_tools(connections: Iterable["ServerConnection"]) -> ToolMap:
    """
    Collect the tools of every connection under namespaced names.

    Each tool is renamed ``"<server>.<tool>"`` and its description prefixed
    with ``"[<server>] "``. If two connections report the same server name,
    the tools of the later one replace those of the earlier one.

    Args:
        connections: Connected servers, in order.

    Returns:
        Map of namespaced tool names to tools.
    """
    tool_map: ToolMap = {}
    owners: Dict[str, "ServerConnection"] = {}

    for connection in connections:
        server_name = connection.server_info.name if connection.server_info else UNKNOWN_SERVER
        previous = owners.get(server_name)
        if previous is not None and previous is not connection:
            logger.warning(
                f"Two connections report the server name '{server_name}'; "
                f"tools of the later one replace those of the earlier one"
            )
        owners[server_name] = connection

        tools = await connection.list_all_tools()
        for tool in tools:
            namespaced_tool_name = f"{server_name}{SEP}{tool.name}"
            tool_map[namespaced_tool_name] = NamespacedTool(
                tool=tool.model_copy(
                    update={
                        "name": namespaced_tool_name,
                        "description": f"[{server_name}] {tool.description or ''}",
                    }
                ),
                server_name=server_name,
                namespaced_tool_name=namespaced_tool_name,
                original_name=tool.name,
                connection=connection,
            )

        logger.debug(
            "Server tools loaded",
            data={"server_name": server_name, "tools_count": len(tools)},
        )

    return tool_map


def is_mcp_tool(name: str, tool_map: ToolMap) -> bool:
    return name in tool_map


def tools_to_function_format(tool_map: ToolMap) -> List[Dict[str, Any]]:
    """
    Convert aggregated tools to the OpenAI function calling format.
    """
    functions = []
    for namespaced_tool in tool_map.values():
        tool = namespaced_tool.tool
        function: Dict[str, Any] = {"name": tool.name}
        if tool.description is not None:
            function["description"] = tool.description
        if tool.inputSchema is not None:
            function["parameters"] = tool.inputSchema
        functions.append({"type": "function", "function": function})
    return functions


async def route_tool_call(
    name: str, arguments: Optional[Dict[str, Any]], tool_map: ToolMap
) -> str:
    """
    Call a namespaced tool on the connection that owns it.

    Args:
        name: Namespaced tool name.
        arguments: Tool arguments.
        tool_map: Map built by ``aggregate_tools``.

    Returns:
        The tool result, formatted as text.

    Raises:
        MCPError: If the tool is not in the map.
    """
    namespaced_tool = tool_map.get(name)
    if namespaced_tool is None:
        raise MCPError(f"Unknown MCP tool: {name}")

    logger.info(
        "Requesting tool call",
        data={"tool_name": namespaced_tool.original_name, "server_name": namespaced_tool.server_name},
    )
    result = await namespaced_tool.connection.call_tool(namespaced_tool.original_name, arguments)
    return format_tool_result(result)


def _content_text(content: List[Any]) -> str:
    parts = []
    for block in content or []:
        if isinstance(block, TextContent):
            parts.append(block.text)
        elif isinstance(block, ImageContent):
            parts.append(f"[Image: {block.mimeType or 'unknown'}]")
        elif isinstance(block, AudioContent):
            parts.append(f"[Audio: {block.mimeType or 'unknown'}]")
        elif isinstance(block, EmbeddedResource):
            parts.append(f"[Resource: {block.resource.uri}]")
        else:
            parts.append("[Unknown content]")
    return "\n".join(parts)


def format_tool_result(result: CallToolResult) -> str:
    """
    Render a tool result as text for a chat message.

    Errors render as ``"Error: <text>"``. Structured content, when present,
    renders as indented JSON and takes precedence over the text content.
    """
    if result.isError:
        return f"Error: {_content_text(result.content)}"

    structured = getattr(result, "structuredContent", None)
    if structured:
        return json.dumps(structured, indent=2)

    return _content_text(result.content)


async def gather_resource_context(
    connections: Iterable["ServerConnection"], uris: Iterable[str]
) -> List[ResourceContext]:
    """
    Read resources for use as prompt context.

    Each URI is read from the first connection that can serve it. URIs no
    connection can serve are skipped.
    """
    connections = list(connections)
    contexts: List[ResourceContext] = []

    for uri in uris:
        for connection in connections:
            try:
                result = await connection.read_resource(uri)
            except Exception as e:
                logger.debug(f"{connection.label} cannot read {uri}: {e}")
                continue

            for content in result.contents:
                if isinstance(content, TextResourceContents):
                    text = content.text
                elif isinstance(content, BlobResourceContents):
                    text = f"[Binary: {len(content.blob)} bytes]"
                else:
                    text = ""
                contexts.append(
                    ResourceContext(uri=str(content.uri), content=text, mime_type=content.mimeType)
                )
            break
        else:
            logger.warning(f"No server could read resource {uri}")

    return contexts


def format_resource_context(contexts: List[ResourceContext]) -> str:
    """Format resource contexts as a system message prefix."""
    if not contexts:
        return ""

    parts = []
    for context in contexts:
        header = f"[{context.uri}] ({context.mime_type})" if context.mime_type else f"[{context.uri}]"
        parts.append(f"{header}\n{context.content}")

    return "The following resources are available for reference:\n\n" + "\n\n---\n\n".join(parts)


async def close_all_connections(connections: Iterable["ServerConnection"]) -> None:
    """Close every connection, ignoring individual close errors."""
    results = await asyncio.gather(
        *(connection.close() for connection in connections), return_exceptions=True
    )
    for result in results:
        if isinstance(result, Exception):
            logger.debug(f"Error while closing connection: {result}")
