"""kb_stats MCP tool — document and chunk counts per knowledge base."""

from typing import Annotated

from fastmcp import FastMCP
from fastmcp.server.context import Context
from pydantic import Field

from knowledge_search.store.chunk_store import ChunkStore
from knowledge_search.tools.formatters import format_stats


def register_kb_stats(mcp: FastMCP) -> None:
    """Register the kb_stats tool with the MCP server."""

    @mcp.tool()
    async def kb_stats(
        knowledge_base_ids: Annotated[
            list[str], Field(description="Knowledge base IDs to report on")
        ],
        ctx: Context | None = None,
    ) -> str:
        """Report live document and chunk counts for each knowledge base."""
        if ctx is None:
            raise RuntimeError("Context not injected")
        store: ChunkStore = ctx.lifespan_context["store"]
        stats = await store.partition_stats(list(dict.fromkeys(knowledge_base_ids)))
        return format_stats(stats)
