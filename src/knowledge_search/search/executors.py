"""Tag-only, vector-only and tag-then-vector search executors."""

import logging

from knowledge_search.errors import SearchUsageError
from knowledge_search.models.search import SearchParams, SearchResult
from knowledge_search.search.fanout import fan_out
from knowledge_search.search.filters import TagPredicate, TagPredicateCache, compile_tag_filters
from knowledge_search.search.merge import merge_partition_results
from knowledge_search.search.strategy import get_query_strategy
from knowledge_search.store.chunk_store import ChunkStore

logger = logging.getLogger(__name__)


def _compile(params: SearchParams, cache: TagPredicateCache | None) -> TagPredicate:
    filters = params.tag_filters or {}
    if cache is not None:
        return cache.get_or_compile(filters)
    return compile_tag_filters(filters)


def _require_vector(params: SearchParams, mode: str) -> tuple[list[float], float]:
    if not params.query_vector or params.distance_threshold is None:
        raise SearchUsageError(
            f"Query vector and distance threshold are required for {mode} search"
        )
    return params.query_vector, params.distance_threshold


async def handle_tag_only_search(
    store: ChunkStore,
    params: SearchParams,
    *,
    cache: TagPredicateCache | None = None,
    branch_timeout: float | None = None,
) -> list[SearchResult]:
    """Structural-only retrieval. Every result has distance 0."""
    if not params.tag_filters:
        raise SearchUsageError("Tag filters are required for tag-only search")

    kb_ids = params.knowledge_base_ids
    strategy = get_query_strategy(len(kb_ids), params.top_k)
    predicate = _compile(params, cache)
    logger.debug(
        "Tag-only search over %d partition(s), parallel=%s", len(kb_ids), strategy.use_parallel
    )

    if strategy.use_parallel:

        async def query(kb_id: str) -> list[SearchResult]:
            return await store.structural_query([kb_id], predicate, strategy.parallel_limit)

        outcomes = await fan_out(kb_ids, query, branch_timeout)
        return merge_partition_results(outcomes, params.top_k, sort_by_distance=False)

    return await store.structural_query(kb_ids, predicate, params.top_k)


async def handle_vector_only_search(
    store: ChunkStore,
    params: SearchParams,
    *,
    branch_timeout: float | None = None,
) -> list[SearchResult]:
    """Similarity retrieval with an exclusive distance threshold, ascending."""
    query_vector, threshold = _require_vector(params, "vector-only")

    kb_ids = params.knowledge_base_ids
    strategy = get_query_strategy(len(kb_ids), params.top_k)
    logger.debug(
        "Vector-only search over %d partition(s), parallel=%s, threshold=%.3f",
        len(kb_ids),
        strategy.use_parallel,
        threshold,
    )

    if strategy.use_parallel:

        async def query(kb_id: str) -> list[SearchResult]:
            return await store.similarity_query(
                [kb_id], query_vector, threshold, strategy.parallel_limit
            )

        outcomes = await fan_out(kb_ids, query, branch_timeout)
        # Per-partition order does not compose into global order without a re-sort
        return merge_partition_results(outcomes, params.top_k, sort_by_distance=True)

    return await store.similarity_query(kb_ids, query_vector, threshold, params.top_k)


async def handle_tag_and_vector_search(
    store: ChunkStore,
    params: SearchParams,
    *,
    cache: TagPredicateCache | None = None,
) -> list[SearchResult]:
    """Filter by tags first, then rank the surviving chunks by distance."""
    if not params.tag_filters:
        raise SearchUsageError("Tag filters are required for tag and vector search")
    query_vector, threshold = _require_vector(params, "tag and vector")

    predicate = _compile(params, cache)
    tag_filtered_ids = await store.tag_filtered_ids(params.knowledge_base_ids, predicate)

    if not tag_filtered_ids:
        logger.debug("No chunks matched the tag filters — skipping vector stage")
        return []

    logger.debug("%d chunk(s) matched the tag filters", len(tag_filtered_ids))
    return await store.similarity_query_by_ids(
        tag_filtered_ids, query_vector, threshold, params.top_k
    )
