"""Shared test fixtures."""

import pytest
import pytest_asyncio

from knowledge_search.db.connection import create_connection
from knowledge_search.models.search import SearchResult
from knowledge_search.search.filters import TagPredicate
from knowledge_search.store.chunk_store import ChunkStore

# Query vector used by the seeded fixtures; distances to it are exact:
# [1,0,0,0] -> 0.0, [1,1,0,0] -> 1 - 1/sqrt(2), [0,1,0,0] -> 1.0, [-1,0,0,0] -> 2.0
QUERY_VECTOR = [1.0, 0.0, 0.0, 0.0]


@pytest_asyncio.fixture
async def db():
    """In-memory database with full schema and sqlite-vec."""
    conn = await create_connection(":memory:", embedding_dim=4)
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def store(db):
    """Chunk store backed by in-memory DB."""
    return ChunkStore(db)


@pytest_asyncio.fixture
async def seeded_store(store):
    """Two knowledge bases with a mix of live, disabled and deleted chunks.

    kb-a / alpha.pdf:
        doc-a1:0  tag1=red   tag2=fruit    [1,0,0,0]
        doc-a1:1  tag1=Blue                [1,1,0,0]
        doc-a1:2  tag1=green               [0,1,0,0]
    kb-b / beta.md:
        doc-b1:0  tag1=RED   tag2=vehicle  [-1,0,0,0]
        doc-b1:1  tag1=red   (disabled)    [1,0,0,0]
        doc-b1:2  tag1=red   (no embedding)
    kb-b / gone.txt (soft-deleted):
        doc-b2:0  tag1=red                 [1,0,0,0]
    """
    await store.create_knowledge_base("Alpha", kb_id="kb-a")
    await store.create_knowledge_base("Beta", kb_id="kb-b")

    alpha = await store.add_document("kb-a", "alpha.pdf", document_id="doc-a1")
    await store.add_chunk(
        alpha, 0, "red apple", tags={"tag1": "red", "tag2": "fruit"}, embedding=[1, 0, 0, 0]
    )
    await store.add_chunk(alpha, 1, "blue sky", tags={"tag1": "Blue"}, embedding=[1, 1, 0, 0])
    await store.add_chunk(alpha, 2, "green leaf", tags={"tag1": "green"}, embedding=[0, 1, 0, 0])

    beta = await store.add_document("kb-b", "beta.md", document_id="doc-b1")
    await store.add_chunk(
        beta, 0, "red car", tags={"tag1": "RED", "tag2": "vehicle"}, embedding=[-1, 0, 0, 0]
    )
    await store.add_chunk(
        beta, 1, "disabled red", tags={"tag1": "red"}, embedding=[1, 0, 0, 0], enabled=False
    )
    await store.add_chunk(beta, 2, "red without embedding", tags={"tag1": "red"})

    gone = await store.add_document("kb-b", "gone.txt", document_id="doc-b2")
    await store.add_chunk(gone, 0, "deleted red", tags={"tag1": "red"}, embedding=[1, 0, 0, 0])
    await store.soft_delete_document("doc-b2")

    return store


def make_result(
    chunk_id: str, kb_id: str = "kb-a", distance: float = 0.0, **kwargs
) -> SearchResult:
    """Build a SearchResult with sensible defaults."""
    defaults = {
        "id": chunk_id,
        "content": f"content of {chunk_id}",
        "document_id": f"doc-{chunk_id}",
        "chunk_index": 0,
        "distance": distance,
        "knowledge_base_id": kb_id,
    }
    defaults.update(kwargs)
    return SearchResult(**defaults)


class RecordingStore:
    """Store double that records every call and serves canned results.

    ``results_by_kb`` feeds structural and similarity queries per partition;
    ``failing_kbs`` raise from their branch.
    """

    def __init__(self):
        self.calls: list[tuple[str, tuple]] = []
        self.results_by_kb: dict[str, list[SearchResult]] = {}
        self.filtered_ids: list[str] = []
        self.by_id_results: list[SearchResult] = []
        self.names: dict[str, str] = {}
        self.failing_kbs: set[str] = set()

    def _partition_results(self, knowledge_base_ids: list[str], limit: int) -> list[SearchResult]:
        for kb_id in knowledge_base_ids:
            if kb_id in self.failing_kbs:
                raise RuntimeError(f"partition {kb_id} is down")
        merged = [r for kb_id in knowledge_base_ids for r in self.results_by_kb.get(kb_id, [])]
        return merged[:limit]

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    async def structural_query(
        self, knowledge_base_ids: list[str], predicate: TagPredicate, limit: int
    ) -> list[SearchResult]:
        self.calls.append(("structural_query", (list(knowledge_base_ids), predicate, limit)))
        return self._partition_results(knowledge_base_ids, limit)

    async def tag_filtered_ids(
        self, knowledge_base_ids: list[str], predicate: TagPredicate
    ) -> list[str]:
        self.calls.append(("tag_filtered_ids", (list(knowledge_base_ids), predicate)))
        return list(self.filtered_ids)

    async def similarity_query(
        self,
        knowledge_base_ids: list[str],
        query_vector: list[float],
        distance_threshold: float,
        limit: int,
    ) -> list[SearchResult]:
        self.calls.append(
            ("similarity_query", (list(knowledge_base_ids), distance_threshold, limit))
        )
        return self._partition_results(knowledge_base_ids, limit)

    async def similarity_query_by_ids(
        self,
        chunk_ids: list[str],
        query_vector: list[float],
        distance_threshold: float,
        limit: int,
    ) -> list[SearchResult]:
        self.calls.append(("similarity_query_by_ids", (list(chunk_ids), distance_threshold, limit)))
        return self.by_id_results[:limit]

    async def document_names(self, document_ids: list[str]) -> dict[str, str]:
        self.calls.append(("document_names", (list(document_ids),)))
        return {doc_id: self.names[doc_id] for doc_id in document_ids if doc_id in self.names}


@pytest.fixture
def recording_store():
    """Store double that records calls."""
    return RecordingStore()


@pytest.fixture
def result_factory():
    """Factory for SearchResult objects."""
    return make_result


class FakeEmbedder:
    """Embedder double returning a fixed vector, or None when unavailable."""

    def __init__(self, vector: list[float] | None = None):
        self.vector = vector if vector is not None else list(QUERY_VECTOR)
        self._available = True
        self.embed_count = 0

    async def is_available(self) -> bool:
        return self._available

    async def embed(self, text: str) -> list[float] | None:
        self.embed_count += 1
        if not self._available:
            return None
        return list(self.vector)

    async def close(self) -> None:
        pass


@pytest.fixture
def fake_embedder():
    """Fake embedding client for tests."""
    return FakeEmbedder()
