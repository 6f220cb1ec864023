"""
Logging utilities for the Multiplex MCP client.
"""

import logging
from typing import Dict, List, Optional, Union

from rich.console import Console
from rich.logging import RichHandler


# Global logger configuration
_loggers: Dict[str, logging.Logger] = {}
_console = Console(stderr=True)
_log_level = logging.INFO
_log_handlers: List[logging.Handler] = [RichHandler(console=_console, rich_tracebacks=True)]

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def configure_logging(
    level: Union[int, str] = logging.INFO,
    add_file_handler: Optional[str] = None,
    console: bool = True,
) -> None:
    """
    Configure the logging system.

    Args:
        level: Logging level, as a number or a name such as "debug".
        add_file_handler: If provided, also log to this file.
        console: Whether to log to stderr through rich.
    """
    global _log_level, _log_handlers

    if isinstance(level, str):
        level = _LEVELS.get(level.lower(), logging.INFO)

    _log_level = level
    _log_handlers = []
    if console:
        _log_handlers.append(RichHandler(console=_console, rich_tracebacks=True))

    if add_file_handler:
        file_handler = logging.FileHandler(add_file_handler)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        ))
        _log_handlers.append(file_handler)

    # Update existing loggers
    for logger in _loggers.values():
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)

        for handler in _log_handlers:
            logger.addHandler(handler)

        logger.setLevel(_log_level)


class PatchedLogger(logging.Logger):
    """
    A logger that accepts a 'data' keyword with a structured payload.
    """

    def _log(self, level, msg, args, exc_info=None, extra=None, stack_info=False,
             stacklevel=1, data=None, **kwargs):
        if data is not None:
            msg = f"{msg} {data}"

        super()._log(level, msg, args, exc_info, extra, stack_info, stacklevel)


# Register our custom logger class
logging.setLoggerClass(PatchedLogger)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the specified name.

    Args:
        name: Name of the logger.

    Returns:
        Logger instance.
    """
    if name in _loggers:
        return _loggers[name]

    logger = logging.getLogger(name)
    logger.setLevel(_log_level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    for handler in _log_handlers:
        logger.addHandler(handler)

    _loggers[name] = logger
    return logger
