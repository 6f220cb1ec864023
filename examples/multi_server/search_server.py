"""
Simple search server for demo purposes.
"""

import sys

from mcp.server.fastmcp import Context, FastMCP


app = FastMCP("search")


@app.tool()
async def search(query: str) -> str:
    """
    Search for information.

    Args:
        query: The search query.

    Returns:
        Results of the search.
    """
    # This is a mock implementation
    print(f"Received search query: {query}", file=sys.stderr)

    if "weather" in query.lower():
        return "The weather is sunny with a high of 75°F."
    elif "news" in query.lower():
        return "Latest news: the multiplex client is connected to two servers!"
    else:
        return f"Search results for: {query}\n- Result 1\n- Result 2\n- Result 3"


@app.tool()
async def crawl(url: str, pages: int, ctx: Context) -> str:
    """Pretend to crawl a site, reporting progress per page."""
    for page in range(1, pages + 1):
        await ctx.report_progress(page, pages, f"Crawled page {page}")
    return f"Crawled {pages} page(s) of {url}"


if __name__ == "__main__":
    app.run(transport="stdio")
