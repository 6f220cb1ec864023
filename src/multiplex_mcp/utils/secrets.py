"""
Environment access for the Multiplex MCP client.

Server configs may reference secrets as ``${NAME}``. Those references are
expanded against an explicit environment snapshot built here from the process
environment and ``.env`` files used for local development.
"""

import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from dotenv import dotenv_values

# Paths to check for .env files, in order of precedence
ENV_PATHS: List[Path] = [
    Path.cwd() / ".env",                        # Project root .env file
    Path.cwd() / ".secrets.env",                # Alternative secrets file
    Path.home() / ".multiplex_mcp" / ".env",    # User-level config
]


def load_env_file(env_paths: Optional[List[Path]] = None) -> Dict[str, str]:
    """
    Read the first existing .env file.

    Args:
        env_paths: Candidate paths, in order of precedence. Defaults to ENV_PATHS.

    Returns:
        The variables defined in the file, or an empty dict if none exists.
    """
    for env_path in env_paths if env_paths is not None else ENV_PATHS:
        if env_path.exists():
            values = dotenv_values(env_path)
            return {key: value for key, value in values.items() if value is not None}
    return {}


def get_environment(
    base: Optional[Mapping[str, str]] = None,
    env_paths: Optional[List[Path]] = None,
) -> Dict[str, str]:
    """
    Build an environment snapshot for config expansion.

    Variables from the .env file fill in anything the base environment does
    not define.

    Args:
        base: Base environment. Defaults to ``os.environ``.
        env_paths: Candidate .env paths. Defaults to ENV_PATHS.

    Returns:
        A new dict; mutating it does not affect the process environment.
    """
    environ = dict(load_env_file(env_paths))
    environ.update(base if base is not None else os.environ)
    return environ


def get_secret(
    key: str, default: Optional[str] = None, environ: Optional[Mapping[str, str]] = None
) -> Optional[str]:
    """
    Get a secret from an environment snapshot with fallback.

    Args:
        key: The environment variable name containing the secret.
        default: Default value if the secret is not found.
        environ: Environment to read. Defaults to ``get_environment()``.

    Returns:
        The secret value or default if not found.
    """
    environ = environ if environ is not None else get_environment()
    return environ.get(key, default)
