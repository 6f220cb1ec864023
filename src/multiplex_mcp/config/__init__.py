"""
Configuration management for the Multiplex MCP client.
"""

from .settings import (
    CONFIG_LOCATIONS,
    ClientSettings,
    LoggingSettings,
    MCPConfig,
    MCPServerRootSettings,
    MCPServerSettings,
    Settings,
    create_config,
    expand_config_env,
    expand_env_vars,
    get_desktop_config_path,
    load_config,
    load_desktop_config,
    load_mcp_config,
    merge_configs,
    parse_config,
    validate_config,
)

__all__ = [
    "CONFIG_LOCATIONS",
    "ClientSettings",
    "LoggingSettings",
    "MCPConfig",
    "MCPServerRootSettings",
    "MCPServerSettings",
    "Settings",
    "create_config",
    "expand_config_env",
    "expand_env_vars",
    "get_desktop_config_path",
    "load_config",
    "load_desktop_config",
    "load_mcp_config",
    "merge_configs",
    "parse_config",
    "validate_config",
]
