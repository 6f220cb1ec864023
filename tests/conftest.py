"""
Pytest configuration and shared fixtures for multiplex_mcp tests.
"""

import pytest

from fakes import FakeServer


@pytest.fixture
def make_server():
    """Return the FakeServer class for tests that need custom servers."""
    return FakeServer


@pytest.fixture
def fake_server() -> FakeServer:
    return FakeServer(
        name="fake",
        tools=["search", "lookup"],
        resources={"file:///docs/readme.md": "hello"},
        prompts=["greet"],
    )


@pytest.fixture
async def connection(fake_server):
    """A ServerConnection connected to ``fake_server``."""
    conn = fake_server.connection()
    await conn.connect()
    yield conn
    await conn.close()
