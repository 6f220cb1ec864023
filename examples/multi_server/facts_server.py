"""
Fun facts server for the multi-server example.
"""

import random
import sys

from mcp.server.fastmcp import FastMCP


app = FastMCP("facts")

FACTS = {
    "python": [
        "The Python programming language is named after the comedy group Monty Python, not the snake.",
        "Python was created by Guido van Rossum in the late 1980s.",
    ],
    "tokyo": [
        "Tokyo was formerly known as Edo until 1868.",
        "Tokyo has the world's busiest pedestrian crossing at Shibuya Crossing.",
    ],
}


@app.tool()
async def get_fun_fact(topic: str) -> str:
    """
    Get a fun fact about a specific topic.

    Args:
        topic: The topic to get a fun fact about.

    Returns:
        A fun fact about the topic.
    """
    print(f"Received fun fact request for: {topic}", file=sys.stderr)
    facts = FACTS.get(topic.lower())
    if not facts:
        return f"No fun facts available for {topic}"
    return random.choice(facts)


@app.resource("facts://topics")
def topics() -> str:
    """Topics with fun facts, one per line."""
    return "\n".join(sorted(FACTS))


@app.prompt()
def trivia(topic: str) -> str:
    return f"Ask me a trivia question about {topic}."


if __name__ == "__main__":
    app.run(transport="stdio")
