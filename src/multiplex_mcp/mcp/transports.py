"""
Transport context factories.

A transport context factory takes no arguments and returns an async context
manager yielding ``(read_stream, write_stream)`` for a client session.
"""

from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncGenerator, Callable, Dict, List, Optional, Tuple

from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp.client.sse import sse_client
from mcp.client.stdio import StdioServerParameters
from mcp.client.streamable_http import streamablehttp_client

from multiplex_mcp.config import MCPServerSettings
from multiplex_mcp.errors import MCPConfigurationError
from multiplex_mcp.utils.stdio import stdio_client_with_rich_stderr

TransportStreams = Tuple[MemoryObjectReceiveStream, MemoryObjectSendStream]

TransportContextFactory = Callable[[], AsyncContextManager[TransportStreams]]


def stdio_transport(
    command: str,
    args: Optional[List[str]] = None,
    env: Optional[Dict[str, str]] = None,
    cwd: Optional[str] = None,
    server_name: Optional[str] = None,
) -> TransportContextFactory:
    """
    Transport to a local server spawned as a subprocess.

    Args:
        command: Executable to run.
        args: Command line arguments.
        env: Variables added to the default environment of the subprocess.
        cwd: Working directory of the subprocess.
        server_name: Name used when logging the server's stderr.
    """
    server_params = StdioServerParameters(command=command, args=args or [], env=env, cwd=cwd)

    def factory() -> AsyncContextManager[TransportStreams]:
        return stdio_client_with_rich_stderr(server_params, server_name=server_name)

    return factory


@asynccontextmanager
async def _streamable_http_streams(
    url: str, headers: Optional[Dict[str, str]]
) -> AsyncGenerator[TransportStreams, None]:
    async with streamablehttp_client(url, headers=headers) as (read_stream, write_stream, _):
        yield read_stream, write_stream


def http_transport(url: str, headers: Optional[Dict[str, str]] = None) -> TransportContextFactory:
    """Transport to a remote server over streamable HTTP."""

    def factory() -> AsyncContextManager[TransportStreams]:
        return _streamable_http_streams(url, headers)

    return factory


def sse_transport(url: str, headers: Optional[Dict[str, str]] = None) -> TransportContextFactory:
    """Transport to a remote server over the legacy HTTP+SSE protocol."""

    def factory() -> AsyncContextManager[TransportStreams]:
        return sse_client(url, headers=headers)

    return factory


def transport_from_settings(
    settings: MCPServerSettings, server_name: Optional[str] = None
) -> TransportContextFactory:
    """
    Pick the transport for a server's settings.

    Raises:
        MCPConfigurationError: If the settings name neither a command nor a URL.
    """
    if settings.command:
        return stdio_transport(
            settings.command,
            args=settings.args,
            env=settings.env,
            cwd=settings.cwd,
            server_name=server_name,
        )
    if settings.url:
        if settings.transport == "sse":
            return sse_transport(settings.url, headers=settings.headers)
        return http_transport(settings.url, headers=settings.headers)
    raise MCPConfigurationError(
        f"Server '{server_name or 'unnamed'}' config must have either \"command\" or \"url\""
    )
