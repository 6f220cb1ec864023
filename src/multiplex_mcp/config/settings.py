"""
Settings models for the Multiplex MCP client.
"""

import json
import os
import platform
import re
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from multiplex_mcp.errors import MCPConfigurationError


class MCPServerRootSettings(BaseModel):
    """A filesystem root advertised to a server."""

    uri: str
    name: Optional[str] = None


class MCPServerSettings(BaseModel):
    """
    Settings for a single MCP server.

    Exactly one of ``command`` (local subprocess) or ``url`` (remote server)
    must be set.
    """

    model_config = ConfigDict(extra="forbid")

    # Local subprocess
    command: Optional[str] = None
    args: Optional[List[str]] = None
    env: Optional[Dict[str, str]] = None
    cwd: Optional[str] = None

    # Remote server
    url: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    transport: Literal["http", "sse"] = "http"

    read_timeout_seconds: Optional[float] = None
    roots: Optional[List[MCPServerRootSettings]] = None

    @model_validator(mode="after")
    def _check_shape(self) -> "MCPServerSettings":
        if self.command and self.url:
            raise ValueError('Server config must have either "command" or "url", not both')
        if not self.command and not self.url:
            raise ValueError('Server config must have either "command" or "url"')
        if self.command and self.headers is not None:
            raise ValueError('"headers" only applies to servers configured with "url"')
        if self.url and (self.args is not None or self.env is not None or self.cwd is not None):
            raise ValueError('"args", "env" and "cwd" only apply to servers configured with "command"')
        return self

    @property
    def is_stdio(self) -> bool:
        return bool(self.command)


class MCPConfig(BaseModel):
    """MCP server configuration, in the Claude Desktop file format."""

    model_config = ConfigDict(populate_by_name=True)

    servers: Dict[str, MCPServerSettings] = Field(default_factory=dict, alias="mcpServers")


class ClientSettings(BaseModel):
    """Settings applied to every server connection."""

    name: str = "multiplex-mcp"
    version: str = "0.1.0"
    connection_timeout: float = 30.0
    request_timeout: float = 60.0
    parallel_connect: bool = True
    max_concurrent: int = Field(default=10, ge=1)


class LoggingSettings(BaseModel):
    """Settings for logging configuration."""

    level: str = "info"
    file_path: Optional[str] = None
    console: bool = True


class Settings(BaseModel):
    """Root settings object for the Multiplex MCP client."""

    model_config = ConfigDict(extra="allow")

    mcp: MCPConfig = Field(default_factory=MCPConfig)
    client: ClientSettings = Field(default_factory=ClientSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def expand_env_vars(value: str, environ: Mapping[str, str]) -> str:
    """
    Replace every ``${NAME}`` in a string with the value of NAME.

    Args:
        value: The string to expand.
        environ: Environment to resolve names against. Unset names expand to "".

    Returns:
        The expanded string.
    """
    return _ENV_VAR_PATTERN.sub(lambda match: environ.get(match.group(1), ""), value)


def expand_config_env(config: MCPConfig, environ: Mapping[str, str]) -> MCPConfig:
    """
    Expand ``${NAME}`` references in the ``env`` and ``headers`` of every server.

    Args:
        config: The configuration to expand. It is not modified.
        environ: Environment to resolve names against.

    Returns:
        A new, expanded configuration.
    """
    servers = {}
    for name, server in config.servers.items():
        update: Dict[str, Any] = {}
        if server.env is not None:
            update["env"] = {k: expand_env_vars(v, environ) for k, v in server.env.items()}
        if server.headers is not None:
            update["headers"] = {k: expand_env_vars(v, environ) for k, v in server.headers.items()}
        servers[name] = server.model_copy(update=update)
    return MCPConfig(servers=servers)


def validate_config(data: Any) -> bool:
    """
    Check whether parsed data is a valid MCP configuration.

    Args:
        data: Parsed JSON or YAML.

    Returns:
        True if ``data`` validates as an MCPConfig with at least the
        ``mcpServers`` key present.
    """
    if not isinstance(data, dict) or not isinstance(data.get("mcpServers"), dict):
        return False
    try:
        MCPConfig.model_validate(data)
    except ValidationError:
        return False
    return True


def parse_config(data: Any) -> MCPConfig:
    """
    Validate parsed data as an MCP configuration.

    Raises:
        MCPConfigurationError: If the data is not a valid configuration.
    """
    if isinstance(data, MCPConfig):
        return data
    try:
        return MCPConfig.model_validate(data)
    except ValidationError as e:
        raise MCPConfigurationError(f"Invalid MCP configuration: {e}") from e


def create_config(servers: Dict[str, Dict[str, Any]]) -> MCPConfig:
    """
    Build an MCP configuration programmatically.

    Args:
        servers: Map of server names to server settings.

    Returns:
        The validated configuration.
    """
    return parse_config({"mcpServers": servers})


def merge_configs(*configs: MCPConfig) -> MCPConfig:
    """
    Merge MCP configurations. Later configs win for duplicate server names.
    """
    merged: Dict[str, MCPServerSettings] = {}
    for config in configs:
        merged.update(config.servers)
    return MCPConfig(servers=merged)


def _read_file(path: Path) -> Any:
    with open(path, "r") as f:
        if path.suffix in (".yaml", ".yml"):
            return yaml.safe_load(f) or {}
        return json.load(f)


def load_mcp_config(path: str) -> MCPConfig:
    """
    Load an MCP configuration from a JSON or YAML file.

    Args:
        path: Path to the configuration file.

    Returns:
        Parsed MCP configuration.

    Raises:
        MCPConfigurationError: If the file content is not a valid configuration.
    """
    return parse_config(_read_file(Path(path)))


_HOME = Path.home()

CONFIG_LOCATIONS: Dict[str, Path] = {
    "claude_desktop_mac": _HOME / "Library" / "Application Support" / "Claude" / "claude_desktop_config.json",
    "claude_desktop_windows": _HOME / "AppData" / "Roaming" / "Claude" / "claude_desktop_config.json",
    "claude_desktop_linux": _HOME / ".config" / "claude" / "claude_desktop_config.json",
}


def get_desktop_config_path() -> Path:
    """Return the Claude Desktop config path for the current platform."""
    system = platform.system()
    if system == "Darwin":
        return CONFIG_LOCATIONS["claude_desktop_mac"]
    if system == "Windows":
        return CONFIG_LOCATIONS["claude_desktop_windows"]
    return CONFIG_LOCATIONS["claude_desktop_linux"]


def load_desktop_config() -> Optional[MCPConfig]:
    """
    Try the Claude Desktop config from every known location.

    Returns:
        The first config that loads, or None if none is found.
    """
    for location in CONFIG_LOCATIONS.values():
        if not location.exists():
            continue
        try:
            return load_mcp_config(str(location))
        except (OSError, ValueError, MCPConfigurationError):
            continue
    return None


def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load and validate the configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file.
            If None, look for 'multiplex_mcp.config.yaml' in the current directory.

    Returns:
        Settings: Validated configuration object.
    """
    if config_path is None:
        config_path = os.path.join(os.getcwd(), "multiplex_mcp.config.yaml")

    config_data: Dict[str, Any] = {}

    if os.path.exists(config_path):
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}

    # Load secrets if they exist
    secrets_path = Path(config_path).with_suffix(".secrets.yaml")
    if secrets_path.exists():
        with open(secrets_path, "r") as f:
            secrets_data = yaml.safe_load(f) or {}

        _merge_dicts(config_data, secrets_data)

    # Environment variables override file settings
    env_config = _load_from_env()
    if env_config:
        _merge_dicts(config_data, env_config)

    try:
        return Settings.model_validate(config_data)
    except ValidationError as e:
        raise MCPConfigurationError(f"Invalid settings in {config_path}: {e}") from e


def _load_from_env() -> Dict[str, Any]:
    """
    Load configuration from environment variables.

    Returns:
        Dict with configuration loaded from environment variables.
    """
    config: Dict[str, Any] = {}

    _set_nested_dict(config, ["logging", "level"], os.environ.get("MULTIPLEX_LOG_LEVEL"))
    _set_nested_dict(config, ["logging", "file_path"], os.environ.get("MULTIPLEX_LOG_FILE"))
    _set_nested_dict(
        config, ["client", "connection_timeout"], os.environ.get("MULTIPLEX_CONNECTION_TIMEOUT")
    )
    _set_nested_dict(
        config, ["client", "request_timeout"], os.environ.get("MULTIPLEX_REQUEST_TIMEOUT")
    )

    return config


def _set_nested_dict(d: Dict[str, Any], path: List[str], value: Any) -> None:
    """
    Set a value in a nested dictionary based on a path.

    Args:
        d: Dictionary to set value in.
        path: List of keys defining the path.
        value: Value to set.
    """
    if value is None:
        return

    if len(path) == 1:
        d[path[0]] = value
        return

    if path[0] not in d:
        d[path[0]] = {}

    _set_nested_dict(d[path[0]], path[1:], value)


def _merge_dicts(target: Dict, source: Dict) -> None:
    """
    Recursively merge source dictionary into target dictionary.
    Values in source will override values in target.

    Args:
        target: Target dictionary to merge into.
        source: Source dictionary with values to merge.
    """
    for key, value in source.items():
        if key in target and isinstance(target[key], dict) and isinstance(value, dict):
            _merge_dicts(target[key], value)
        else:
            target[key] = value
