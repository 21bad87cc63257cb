"""Pytest configuration for integration tests.

The client talks to the server in memory, so the lifespan and the real
crawl4ai generator run without a network listener.
"""

from collections.abc import AsyncGenerator
from typing import Any

import pytest
from fastmcp import Client

from confmd.server import mcp


@pytest.fixture
async def mcp_client() -> AsyncGenerator[Client[Any]]:
    """Provide an MCP client connected to the server."""
    async with Client(mcp) as client:
        yield client
