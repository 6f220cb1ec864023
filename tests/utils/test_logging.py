"""Tests for logging configuration."""

import logging

import pytest

from multiplex_mcp.utils import logging as logging_utils
from multiplex_mcp.utils.logging import configure_logging, get_logger


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    configure_logging(logging.INFO)


class TestLogging:
    """Tests for get_logger and configure_logging."""

    def test_get_logger_is_cached(self):
        assert get_logger("multiplex_mcp.tests.cached") is get_logger("multiplex_mcp.tests.cached")

    def test_configure_updates_existing_loggers(self):
        logger = get_logger("multiplex_mcp.tests.level")

        configure_logging("debug")

        assert logger.level == logging.DEBUG
        assert logger.handlers == logging_utils._log_handlers

    def test_file_handler(self, tmp_path):
        path = tmp_path / "client.log"
        logger = get_logger("multiplex_mcp.tests.file")

        configure_logging("info", add_file_handler=str(path), console=False)
        logger.info("Connected", data={"server": "fs"})
        for handler in logger.handlers:
            handler.flush()

        text = path.read_text()
        assert "Connected {'server': 'fs'}" in text
        assert "[INFO] multiplex_mcp.tests.file" in text
