"""Search orchestration: route, execute, rerank, and enrich."""

import logging
import uuid

from knowledge_search.errors import EmbeddingUnavailableError
from knowledge_search.models.search import (
    RerankConfig,
    SearchHit,
    SearchMode,
    SearchParams,
    SearchRequest,
    SearchResponse,
    SearchResult,
)
from knowledge_search.search.embeddings import EmbeddingClient
from knowledge_search.search.executors import (
    handle_tag_and_vector_search,
    handle_tag_only_search,
    handle_vector_only_search,
)
from knowledge_search.search.filters import TagPredicateCache
from knowledge_search.search.names import get_document_names_by_ids
from knowledge_search.search.rerank import RerankClient
from knowledge_search.search.strategy import get_query_strategy
from knowledge_search.store.chunk_store import ChunkStore

logger = logging.getLogger(__name__)


class SearchService:
    """Runs knowledge-base searches end to end.

    The service owns its predicate cache; it keeps no other state between
    calls, so one instance serves concurrent requests.
    """

    def __init__(
        self,
        store: ChunkStore,
        embedder: EmbeddingClient | None = None,
        reranker: RerankClient | None = None,
        cache: TagPredicateCache | None = None,
        branch_timeout: float | None = None,
    ):
        """Initialize with a chunk store and optional embedding/rerank clients."""
        self.store = store
        self.embedder = embedder
        self.reranker = reranker
        self.cache = cache if cache is not None else TagPredicateCache()
        self.branch_timeout = branch_timeout

    async def search(self, request: SearchRequest) -> SearchResponse:
        """Execute ``request`` and return ranked, enriched hits."""
        request_id = request.request_id or uuid.uuid4().hex[:8]
        kb_ids = request.knowledge_base_ids
        mode = request.mode
        strategy = get_query_strategy(len(kb_ids), request.top_k)

        query_vector = None
        if mode is not SearchMode.TAG_ONLY:
            query_vector = request.query_vector or await self._embed_query(request.query)

        threshold = request.distance_threshold or strategy.distance_threshold
        params = SearchParams(
            knowledge_base_ids=kb_ids,
            top_k=request.top_k,
            tag_filters=request.filters,
            query_vector=query_vector,
            distance_threshold=threshold if query_vector else None,
        )
        logger.info(
            "[%s] %s search over %d knowledge base(s), top_k=%d",
            request_id,
            mode.value,
            len(kb_ids),
            request.top_k,
        )

        results = await self._execute(mode, params)

        reranked = False
        if request.query and self.reranker is not None:
            config = request.rerank or RerankConfig()
            if config.request_id is None:
                config = config.model_copy(update={"request_id": request_id})
            ranked = await self.reranker.rerank(request.query, results, config)
            reranked = ranked is not results
            results = ranked

        hits = await self._to_hits(results, similarity_ranked=query_vector is not None)
        logger.info("[%s] returning %d result(s)", request_id, len(hits))

        return SearchResponse(
            results=hits,
            query=request.query or "",
            knowledge_base_ids=kb_ids,
            top_k=request.top_k,
            mode=mode,
            reranked=reranked,
        )

    async def _execute(self, mode: SearchMode, params: SearchParams) -> list[SearchResult]:
        if mode is SearchMode.TAG_ONLY:
            return await handle_tag_only_search(
                self.store, params, cache=self.cache, branch_timeout=self.branch_timeout
            )
        if mode is SearchMode.VECTOR_ONLY:
            return await handle_vector_only_search(
                self.store, params, branch_timeout=self.branch_timeout
            )
        return await handle_tag_and_vector_search(self.store, params, cache=self.cache)

    async def _embed_query(self, query: str | None) -> list[float]:
        embedding = None
        if self.embedder is not None and query:
            embedding = await self.embedder.embed(query)
        if not embedding:
            raise EmbeddingUnavailableError(
                "Query embedding unavailable — check that Ollama is running"
            )
        return embedding

    async def _to_hits(
        self, results: list[SearchResult], *, similarity_ranked: bool
    ) -> list[SearchHit]:
        names = await get_document_names_by_ids(self.store, [r.document_id for r in results])
        return [
            SearchHit(
                **r.model_dump(),
                document_name=names.get(r.document_id),
                similarity=1 - r.distance if similarity_ranked else 1.0,
            )
            for r in results
        ]
