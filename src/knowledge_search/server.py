"""FastMCP server with lifespan management and tool registration."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastmcp import FastMCP

from knowledge_search.config import (
    get_branch_timeout,
    get_db_path,
    get_embedding_dim,
    get_filter_cache_size,
    get_log_level,
)
from knowledge_search.db.connection import create_connection
from knowledge_search.search.embeddings import EmbeddingClient
from knowledge_search.search.filters import TagPredicateCache
from knowledge_search.search.rerank import RerankClient
from knowledge_search.search.service import SearchService
from knowledge_search.store.chunk_store import ChunkStore
from knowledge_search.tools.kb_search import register_kb_search
from knowledge_search.tools.kb_stats import register_kb_stats


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
    """Manage database connection, embedding and rerank client lifecycle."""
    # Log to stderr; stdout is the MCP stdio transport
    logging.basicConfig(
        level=getattr(logging, get_log_level()),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    logger = logging.getLogger(__name__)

    db_path = get_db_path()
    logger.info("Opening database at %s", db_path)
    db = await create_connection(db_path, embedding_dim=get_embedding_dim())

    store = ChunkStore(db)
    embedder = EmbeddingClient()
    reranker = RerankClient()
    service = SearchService(
        store,
        embedder=embedder,
        reranker=reranker,
        cache=TagPredicateCache(get_filter_cache_size()),
        branch_timeout=get_branch_timeout(),
    )

    if await embedder.is_available():
        logger.info("Ollama available — semantic search enabled")
    else:
        logger.warning("Ollama unavailable — only tag-filter searches will succeed")

    if reranker.is_configured():
        logger.info("Rerank API key configured — reranking enabled")
    else:
        logger.warning("KS_RERANK_API_KEY not set — reranking disabled")

    try:
        yield {
            "db": db,
            "store": store,
            "embedder": embedder,
            "reranker": reranker,
            "search_service": service,
        }
    finally:
        await reranker.close()
        await embedder.close()
        await db.close()
        logger.info("Database connection closed")


_INSTRUCTIONS = """\
Search chunked documents stored in one or more knowledge bases.

- kb_search: pass knowledge_base_ids plus a natural-language query, tag \
filters, or both. Filters are exact, case-insensitive matches on tag slots \
tag1..tag7; join alternatives with |OR| (e.g. {"tag1": "invoice|OR|receipt"}). \
A query ranks chunks by semantic distance; combining both narrows by tags \
first. Set rerank=true to reorder results with the relevance reranker.
- kb_stats: document and chunk counts for the given knowledge bases.
"""


def create_server() -> FastMCP:
    """Create and configure the MCP server with all tools."""
    mcp = FastMCP(
        "knowledge-search",
        instructions=_INSTRUCTIONS,
        lifespan=lifespan,
    )

    register_kb_search(mcp)
    register_kb_stats(mcp)

    return mcp
