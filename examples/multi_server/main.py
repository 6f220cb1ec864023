"""
Multi-server example for the Multiplex MCP client.

Connects to two local servers, lists their namespaced tools and calls a tool
on each, with and without progress reporting.

Run from this directory:

    python main.py
"""

import asyncio
import os

from multiplex_mcp import ServerRegistry, format_tool_result, load_config
from multiplex_mcp.mcp.aggregator import (
    aggregate_tools,
    format_resource_context,
    gather_resource_context,
    route_tool_call,
)
from multiplex_mcp.utils.logging import configure_logging

HERE = os.path.dirname(os.path.abspath(__file__))


async def main():
    """Run the multi-server example."""
    settings = load_config(os.path.join(HERE, "multiplex_mcp.config.yaml"))
    configure_logging(settings.logging.level, settings.logging.file_path, settings.logging.console)

    async with ServerRegistry(client_settings=settings.client) as registry:
        failures = await registry.load_config_file(os.path.join(HERE, "servers.yaml"))
        for server_name, error in failures.items():
            print(f"Could not start {server_name}: {error}")

        print("\nAvailable tools:")
        for tool in await registry.list_all_tools():
            print(f"  - {tool.name}: {tool.description}")

        result = await registry.call_tool("search.search", {"query": "weather in Tokyo"})
        print(f"\nsearch.search -> {format_tool_result(result)}")

        # Tools keyed by the name each server reports about itself
        tool_map = await aggregate_tools(registry.connections)
        fact = await route_tool_call("facts.get_fun_fact", {"topic": "tokyo"}, tool_map)
        print(f"facts.get_fun_fact -> {fact}")

        search = registry.get_connection("search")
        if search is not None:
            result = await search.call_tool_with_progress(
                "crawl",
                {"url": "https://example.com", "pages": 3},
                lambda info: print(f"  progress {info.progress}/{info.total}: {info.message}"),
            )
            print(f"search.crawl -> {format_tool_result(result)}")

        contexts = await gather_resource_context(registry.connections, ["facts://topics"])
        print(f"\n{format_resource_context(contexts)}")


if __name__ == "__main__":
    asyncio.run(main())
