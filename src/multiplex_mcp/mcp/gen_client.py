"""
Client generation utilities for connecting to MCP servers.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, List, Optional

from multiplex_mcp.config import ClientSettings, MCPConfig, MCPServerSettings
from multiplex_mcp.errors import MCPConfigurationError, MCPError
from multiplex_mcp.mcp.connection import ServerConnection
from multiplex_mcp.mcp.server_registry import ServerRegistry
from multiplex_mcp.utils.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def gen_client(
    server_name: str,
    config: MCPConfig,
    client_settings: Optional[ClientSettings] = None,
    **kwargs,
) -> AsyncGenerator[ServerConnection, None]:
    """
    Create a temporary connection to a server from a configuration.

    Args:
        server_name: Name of the server to connect to.
        config: Configuration containing the server.
        client_settings: Client identity and timeouts.
        **kwargs: Passed to ServerConnection, such as handlers.

    Yields:
        ServerConnection: A connected connection, closed on exit.

    Raises:
        MCPConfigurationError: If the server is not in the configuration.
    """
    settings = config.servers.get(server_name)
    if settings is None:
        raise MCPConfigurationError(f"Server '{server_name}' not found in config.")

    connection = await ServerConnection.from_settings(
        settings, server_name=server_name, client_settings=client_settings, **kwargs
    )
    try:
        yield connection
    finally:
        logger.debug(f"{server_name}: Closing temporary connection")
        await connection.close()


async def connect(
    server_name: str,
    server_registry: ServerRegistry,
    settings: Optional[MCPServerSettings] = None,
) -> ServerConnection:
    """
    Get a persistent connection to a server, adding it to the registry if needed.

    Args:
        server_name: Name of the server to connect to.
        server_registry: Registry owning the connection.
        settings: Settings used when the server is not registered yet.

    Raises:
        MCPError: If the server is not registered and no settings were given.
    """
    connection = server_registry.get_connection(server_name)
    if connection is not None:
        return connection
    if settings is None:
        raise MCPError(f"Server '{server_name}' not found in registry.")
    return await server_registry.add_server(server_name, settings)


async def disconnect(
    server_name: Optional[str],
    server_registry: ServerRegistry,
) -> None:
    """
    Disconnect from the specified server or all servers.

    Args:
        server_name: Name of the server to disconnect from, or None to disconnect from all.
        server_registry: Registry owning the connections.
    """
    if server_name:
        await server_registry.remove_server(server_name)
    else:
        await server_registry.close_all()


def npm_server_settings(
    package: str,
    args: Optional[List[str]] = None,
    env: Optional[Dict[str, str]] = None,
) -> MCPServerSettings:
    """Settings that run an npm package as a stdio server through ``npx``."""
    return MCPServerSettings(command="npx", args=["-y", package, *(args or [])], env=env)


async def from_npm_package(
    package: str,
    args: Optional[List[str]] = None,
    env: Optional[Dict[str, str]] = None,
    **kwargs,
) -> ServerConnection:
    """
    Connect to a server published as an npm package.

    Args:
        package: npm package name.
        args: Extra arguments for the server.
        env: Extra environment variables for the server.
        **kwargs: Passed to ``ServerConnection.from_settings``.
    """
    return await ServerConnection.from_settings(npm_server_settings(package, args, env), **kwargs)


async def filesystem(allowed_directories: List[str], **kwargs) -> ServerConnection:
    """Connect to the official filesystem server, limited to the given directories."""
    return await from_npm_package(
        "@modelcontextprotocol/server-filesystem", list(allowed_directories), **kwargs
    )


async def github(token: str, **kwargs) -> ServerConnection:
    """Connect to the official GitHub server with a personal access token."""
    return await from_npm_package(
        "@modelcontextprotocol/server-github",
        env={"GITHUB_PERSONAL_ACCESS_TOKEN": token},
        **kwargs,
    )


async def git(repo_path: str, **kwargs) -> ServerConnection:
    """Connect to the official git server for a repository."""
    return await from_npm_package("@modelcontextprotocol/server-git", [repo_path], **kwargs)


async def puppeteer(**kwargs) -> ServerConnection:
    return await from_npm_package("@modelcontextprotocol/server-puppeteer", **kwargs)


async def brave_search(api_key: str, **kwargs) -> ServerConnection:
    return await from_npm_package(
        "@modelcontextprotocol/server-brave-search",
        env={"BRAVE_API_KEY": api_key},
        **kwargs,
    )
