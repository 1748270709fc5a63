"""Entry point for the knowledge-search MCP server."""

from knowledge_search.server import create_server


def main() -> None:
    """Run the knowledge-search MCP server."""
    server = create_server()
    server.run(transport="stdio")


if __name__ == "__main__":
    main()
