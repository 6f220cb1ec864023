"""
Server registry for managing a named collection of MCP server connections.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

import mcp.types as types
from pydantic import ValidationError

from multiplex_mcp.config import (
    ClientSettings,
    MCPConfig,
    MCPServerSettings,
    expand_config_env,
    load_mcp_config,
    parse_config,
)
from multiplex_mcp.errors import MCPConfigurationError, MCPError
from multiplex_mcp.mcp.connection import ServerConnection
from multiplex_mcp.utils.logging import get_logger
from multiplex_mcp.utils.secrets import get_environment

logger = get_logger(__name__)

SEP = "."

ConnectionFactory = Callable[[str, MCPServerSettings], Awaitable[ServerConnection]]
"""
Creates a connected ServerConnection for a server name and its settings.
"""


class ServerTool(types.Tool):
    """A tool renamed ``"<server>.<tool>"``, tagged with its server."""

    server: str


class ServerPrompt(types.Prompt):
    """A prompt renamed ``"<server>.<prompt>"``, tagged with its server."""

    server: str


class ServerResource(types.Resource):
    """A resource tagged with its server. The URI is unchanged."""

    server: str


class ServerReadResourceResult(types.ReadResourceResult):
    """Contents of a resource together with the server that served it."""

    server: str


def split_namespaced_name(name: str) -> tuple[str, str]:
    """
    Split ``"<server>.<name>"`` on the first dot.

    The remainder is returned verbatim and may itself contain dots.

    Raises:
        MCPError: If there is no dot or the server part is empty.
    """
    server_name, sep, local_name = name.partition(SEP)
    if not sep or not server_name:
        raise MCPError(f"Invalid namespaced name '{name}': expected '<server>{SEP}<name>'")
    return server_name, local_name


class ServerRegistry:
    """
    Manages connections to several MCP servers under one namespaced surface.

    Servers are kept in insertion order. Tools and prompts are exposed as
    ``"<server>.<name>"``; resources keep their URI.
    """

    def __init__(
        self,
        client_settings: Optional[ClientSettings] = None,
        connection_factory: Optional[ConnectionFactory] = None,
        **connection_kwargs: Any,
    ):
        """
        Initialize the ServerRegistry.

        Args:
            client_settings: Client identity, timeouts and bring-up concurrency.
            connection_factory: Creates connections. Defaults to
                ``ServerConnection.from_settings``.
            **connection_kwargs: Passed to every ServerConnection, such as handlers.
        """
        self.client_settings = client_settings or ClientSettings()
        self._connection_factory = connection_factory or self._connect
        self._connection_kwargs = connection_kwargs
        self._connections: Dict[str, ServerConnection] = {}

    async def _connect(self, server_name: str, settings: MCPServerSettings) -> ServerConnection:
        return await ServerConnection.from_settings(
            settings,
            server_name=server_name,
            client_settings=self.client_settings,
            **self._connection_kwargs,
        )

    async def __aenter__(self) -> "ServerRegistry":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close_all()

    def __len__(self) -> int:
        return len(self._connections)

    @property
    def server_names(self) -> List[str]:
        return list(self._connections)

    @property
    def connections(self) -> List[ServerConnection]:
        return list(self._connections.values())

    def has_server(self, server_name: str) -> bool:
        return server_name in self._connections

    def get_connection(self, server_name: str) -> Optional[ServerConnection]:
        return self._connections.get(server_name)

    async def add_server(
        self, server_name: str, settings: Union[MCPServerSettings, Mapping[str, Any]]
    ) -> ServerConnection:
        """
        Connect to a server and add it to the registry.

        Args:
            server_name: Name to register the server under.
            settings: Either ``command`` (with optional args, env, cwd) or ``url``
                (with optional headers).

        Returns:
            The new connection.

        Raises:
            MCPConfigurationError: If the name is taken or the settings are invalid.
        """
        if server_name in self._connections:
            raise MCPConfigurationError(f"Server '{server_name}' is already registered")

        if not isinstance(settings, MCPServerSettings):
            try:
                settings = MCPServerSettings.model_validate(settings)
            except ValidationError as e:
                raise MCPConfigurationError(f"Invalid config for server '{server_name}': {e}") from e

        logger.info(f"{server_name}: Adding server")
        connection = await self._connection_factory(server_name, settings)

        if server_name in self._connections:
            await connection.close()
            raise MCPConfigurationError(f"Server '{server_name}' is already registered")

        self._connections[server_name] = connection
        logger.info(f"{server_name}: Up and running!")
        return connection

    async def load_config(
        self,
        config: Union[MCPConfig, Mapping[str, Any]],
        parallel: Optional[bool] = None,
        max_concurrent: Optional[int] = None,
    ) -> Dict[str, Exception]:
        """
        Connect to every server in a configuration.

        In parallel mode servers are brought up in chunks of at most
        ``max_concurrent``. A server that fails to connect is logged and left
        out; check ``has_server`` afterwards if every server is required.
        Sequential mode stops at the first failure and raises it.

        Args:
            config: Parsed configuration.
            parallel: Defaults to ``client_settings.parallel_connect``.
            max_concurrent: Defaults to ``client_settings.max_concurrent``.

        Returns:
            The errors of servers that failed to connect, by name.
        """
        config = parse_config(config)
        parallel = self.client_settings.parallel_connect if parallel is None else parallel
        max_concurrent = max_concurrent or self.client_settings.max_concurrent
        entries = list(config.servers.items())
        failures: Dict[str, Exception] = {}

        if not parallel:
            for server_name, settings in entries:
                await self.add_server(server_name, settings)
            return failures

        for start in range(0, len(entries), max_concurrent):
            chunk = entries[start:start + max_concurrent]
            results = await asyncio.gather(
                *(self.add_server(server_name, settings) for server_name, settings in chunk),
                return_exceptions=True,
            )
            for (server_name, _), result in zip(chunk, results):
                if isinstance(result, Exception):
                    logger.error(f"{server_name}: Failed to connect: {result}")
                    failures[server_name] = result
                elif isinstance(result, BaseException):
                    raise result

        logger.info(f"Connected to {len(entries) - len(failures)} of {len(entries)} server(s)")
        return failures

    async def load_config_file(
        self,
        path: str,
        environ: Optional[Mapping[str, str]] = None,
        parallel: Optional[bool] = None,
        max_concurrent: Optional[int] = None,
    ) -> Dict[str, Exception]:
        """
        Load a JSON or YAML config file, expand ``${NAME}`` references and
        connect to its servers.

        Args:
            path: Path to the config file.
            environ: Environment for expansion. Defaults to ``get_environment()``.
        """
        config = load_mcp_config(path)
        config = expand_config_env(config, environ if environ is not None else get_environment())
        return await self.load_config(config, parallel=parallel, max_concurrent=max_concurrent)

    async def remove_server(self, server_name: str) -> bool:
        """
        Close a server's connection and remove it.

        Returns:
            False if no server had that name.
        """
        connection = self._connections.pop(server_name, None)
        if connection is None:
            return False
        await connection.close()
        logger.info(f"{server_name}: Removed server")
        return True

    def _require_connection(self, server_name: str) -> ServerConnection:
        connection = self._connections.get(server_name)
        if connection is None:
            raise MCPError(f"Server '{server_name}' not found in registry.")
        return connection

    async def list_all_tools(self) -> List[ServerTool]:
        """Return the tools of every server, renamed ``"<server>.<tool>"``."""
        tools: List[ServerTool] = []
        for server_name, connection in list(self._connections.items()):
            for tool in await connection.list_all_tools():
                data = tool.model_dump(by_alias=True, exclude_none=True)
                data.update(
                    name=f"{server_name}{SEP}{tool.name}",
                    description=f"[{server_name}] {tool.description or ''}",
                    server=server_name,
                )
                tools.append(ServerTool.model_validate(data))
        return tools

    async def list_all_resources(self) -> List[ServerResource]:
        resources: List[ServerResource] = []
        for server_name, connection in list(self._connections.items()):
            for resource in await connection.list_all_resources():
                data = resource.model_dump(by_alias=True, exclude_none=True)
                data["server"] = server_name
                resources.append(ServerResource.model_validate(data))
        return resources

    async def list_all_prompts(self) -> List[ServerPrompt]:
        """Return the prompts of every server, renamed ``"<server>.<prompt>"``."""
        prompts: List[ServerPrompt] = []
        for server_name, connection in list(self._connections.items()):
            for prompt in await connection.list_all_prompts():
                data = prompt.model_dump(by_alias=True, exclude_none=True)
                data.update(name=f"{server_name}{SEP}{prompt.name}", server=server_name)
                prompts.append(ServerPrompt.model_validate(data))
        return prompts

    async def call_tool(
        self, name: str, arguments: Optional[Dict[str, Any]] = None
    ) -> types.CallToolResult:
        """
        Call a tool by its namespaced name.

        Args:
            name: ``"<server>.<tool>"``. Only the first dot separates the server.
            arguments: Arguments to pass to the tool.

        Raises:
            MCPError: If the name has no server part or the server is unknown.
        """
        server_name, tool_name = split_namespaced_name(name)
        connection = self._require_connection(server_name)
        logger.debug(
            "Requesting tool call",
            data={"tool_name": tool_name, "server_name": server_name},
        )
        return await connection.call_tool(tool_name, arguments)

    async def get_prompt(
        self, name: str, arguments: Optional[Dict[str, str]] = None
    ) -> types.GetPromptResult:
        """Get a prompt by its namespaced name."""
        server_name, prompt_name = split_namespaced_name(name)
        return await self._require_connection(server_name).get_prompt(prompt_name, arguments)

    async def read_resource(self, uri: str) -> ServerReadResourceResult:
        """
        Read a resource from the first server, in insertion order, that can serve it.

        Raises:
            MCPError: If no server can read the resource.
        """
        errors = []
        for server_name, connection in list(self._connections.items()):
            try:
                result = await connection.read_resource(uri)
            except Exception as e:
                logger.debug(f"{server_name}: Cannot read {uri}: {e}")
                errors.append(f"{server_name}: {e}")
                continue
            data = result.model_dump(by_alias=True, exclude_none=True)
            data["server"] = server_name
            return ServerReadResourceResult.model_validate(data)

        detail = "; ".join(errors) if errors else "no servers registered"
        raise MCPError(f"Resource {uri} could not be read from any server ({detail})")

    async def close_all(self) -> None:
        """
        Close every connection concurrently and empty the registry.

        Errors from individual connections are logged, not raised.
        """
        connections = list(self._connections.items())
        self._connections.clear()
        if not connections:
            return

        logger.info(f"Closing {len(connections)} server connection(s)")
        results = await asyncio.gather(
            *(connection.close() for _, connection in connections), return_exceptions=True
        )
        for (server_name, _), result in zip(connections, results):
            if isinstance(result, Exception):
                logger.warning(f"{server_name}: Error while closing connection: {result}")
