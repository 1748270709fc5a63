"""kb_search MCP tool — tag, vector, and hybrid knowledge-base search."""

import logging
from typing import Annotated

from fastmcp import FastMCP
from fastmcp.server.context import Context
from pydantic import Field, ValidationError

from knowledge_search.errors import EmbeddingUnavailableError, SearchUsageError
from knowledge_search.models.search import RerankConfig, SearchRequest
from knowledge_search.search.service import SearchService
from knowledge_search.tools.formatters import format_result_list

logger = logging.getLogger(__name__)


def _validation_message(exc: ValidationError) -> str:
    return "; ".join(err["msg"] for err in exc.errors())


async def run_search(service: SearchService, request: SearchRequest) -> str:
    """Run a validated request and format the outcome for the tool response."""
    try:
        response = await service.search(request)
    except (SearchUsageError, EmbeddingUnavailableError) as exc:
        logger.warning("Search rejected: %s", exc)
        return f"Error: {exc}"

    note = None
    if request.rerank is not None and request.rerank.enabled and not response.reranked:
        note = "Reranking unavailable; results are in retrieval order."
    return format_result_list(response, note)


def register_kb_search(mcp: FastMCP) -> None:
    """Register the kb_search tool with the MCP server."""

    @mcp.tool()
    async def kb_search(
        knowledge_base_ids: Annotated[
            list[str], Field(description="Knowledge base IDs to search (at least one)")
        ],
        query: Annotated[
            str | None, Field(description="Natural-language query for semantic search")
        ] = None,
        filters: Annotated[
            dict[str, str] | None,
            Field(
                description=(
                    "Exact tag filters by slot, e.g. {'tag1': 'invoice'}. "
                    "Use 'a|OR|b' to match either value."
                )
            ),
        ] = None,
        top_k: Annotated[int, Field(description="Maximum results (1-100)", ge=1, le=100)] = 10,
        distance_threshold: Annotated[
            float | None,
            Field(description="Only return chunks closer than this cosine distance", gt=0),
        ] = None,
        rerank: Annotated[
            bool, Field(description="Reorder results with the rerank service")
        ] = False,
        rerank_top_n: Annotated[
            int | None, Field(description="Results to keep after reranking", ge=1)
        ] = None,
        ctx: Context | None = None,
    ) -> str:
        """Search knowledge bases by tag filters, semantic similarity, or both.

        With only filters, returns chunks whose tags match. With only a query,
        returns the nearest chunks by cosine distance. With both, narrows by
        tags first and then ranks the survivors by distance.
        """
        if ctx is None:
            raise RuntimeError("Context not injected")
        try:
            request = SearchRequest(
                knowledge_base_ids=knowledge_base_ids,
                query=query,
                filters=filters,
                top_k=top_k,
                distance_threshold=distance_threshold,
                rerank=RerankConfig(enabled=rerank, top_n=rerank_top_n),
            )
        except ValidationError as exc:
            return f"Error: {_validation_message(exc)}"

        service: SearchService = ctx.lifespan_context["search_service"]
        return await run_search(service, request)
