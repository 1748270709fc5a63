"""Vector-store boundary: chunk retrieval and ingestion over a Database."""

import logging
import uuid

from knowledge_search.db.backend import Database
from knowledge_search.db.queries import (
    count_partition_stats,
    insert_chunk,
    insert_document,
    insert_knowledge_base,
    mark_document_deleted,
    select_chunk_ids_by_tags,
    select_chunks_by_tags,
    select_document_names,
    select_similar_chunks,
    select_similar_chunks_by_ids,
    update_chunk_enabled,
)
from knowledge_search.models.document import Chunk, Document, KnowledgeBase, PartitionStats
from knowledge_search.models.search import SearchResult
from knowledge_search.search.filters import TagPredicate

logger = logging.getLogger(__name__)


class ChunkStore:
    """Read queries used by search, plus the ingestion write path.

    Every read excludes disabled chunks and chunks whose document has been
    soft-deleted. The store holds no per-call state, so concurrent searches
    can share one instance.
    """

    def __init__(self, db: Database):
        """Initialize with a database connection."""
        self.db = db

    # -- Search queries --

    async def structural_query(
        self, knowledge_base_ids: list[str], predicate: TagPredicate, limit: int
    ) -> list[SearchResult]:
        """Chunks matching a tag predicate, each with distance 0."""
        return await select_chunks_by_tags(self.db, knowledge_base_ids, predicate, limit)

    async def tag_filtered_ids(
        self, knowledge_base_ids: list[str], predicate: TagPredicate
    ) -> list[str]:
        """Ids of all chunks matching a tag predicate."""
        return await select_chunk_ids_by_tags(self.db, knowledge_base_ids, predicate)

    async def similarity_query(
        self,
        knowledge_base_ids: list[str],
        query_vector: list[float],
        distance_threshold: float,
        limit: int,
    ) -> list[SearchResult]:
        """Nearest chunks with ``distance < distance_threshold``, ascending."""
        return await select_similar_chunks(
            self.db, knowledge_base_ids, query_vector, distance_threshold, limit
        )

    async def similarity_query_by_ids(
        self,
        chunk_ids: list[str],
        query_vector: list[float],
        distance_threshold: float,
        limit: int,
    ) -> list[SearchResult]:
        """Like ``similarity_query`` but restricted to ``chunk_ids``."""
        return await select_similar_chunks_by_ids(
            self.db, chunk_ids, query_vector, distance_threshold, limit
        )

    async def document_names(self, document_ids: list[str]) -> dict[str, str]:
        """Filenames for live documents."""
        return await select_document_names(self.db, document_ids)

    # -- Ingestion --

    async def create_knowledge_base(self, name: str, kb_id: str | None = None) -> KnowledgeBase:
        """Create a new knowledge-base partition."""
        kb = KnowledgeBase(id=kb_id or str(uuid.uuid4()), name=name)
        await insert_knowledge_base(self.db, kb)
        logger.info("Created knowledge base %s: %s", kb.id, name)
        return kb

    async def add_document(
        self, knowledge_base_id: str, filename: str, document_id: str | None = None
    ) -> Document:
        """Register a document in a knowledge base."""
        doc = Document(
            id=document_id or str(uuid.uuid4()),
            knowledge_base_id=knowledge_base_id,
            filename=filename,
        )
        await insert_document(self.db, doc)
        logger.info("Added document %s (%s) to %s", doc.id, filename, knowledge_base_id)
        return doc

    async def add_chunk(
        self,
        document: Document,
        chunk_index: int,
        content: str,
        *,
        tags: dict[str, str] | None = None,
        embedding: list[float] | None = None,
        enabled: bool = True,
        chunk_id: str | None = None,
    ) -> Chunk:
        """Store a chunk of ``document`` with optional tags and embedding."""
        chunk = Chunk(
            id=chunk_id or f"{document.id}:{chunk_index}",
            knowledge_base_id=document.knowledge_base_id,
            document_id=document.id,
            chunk_index=chunk_index,
            content=content,
            tags=tags or {},
            embedding=embedding,
            enabled=enabled,
        )
        await insert_chunk(self.db, chunk)
        return chunk

    async def soft_delete_document(self, document_id: str) -> bool:
        """Hide a document and its chunks from search."""
        deleted = await mark_document_deleted(self.db, document_id)
        if deleted:
            logger.info("Soft-deleted document %s", document_id)
        return deleted

    async def set_chunk_enabled(self, chunk_id: str, enabled: bool) -> bool:
        """Enable or disable a single chunk."""
        return await update_chunk_enabled(self.db, chunk_id, enabled)

    async def partition_stats(self, knowledge_base_ids: list[str]) -> list[PartitionStats]:
        """Document and chunk counts per knowledge base, in the given order."""
        return [await count_partition_stats(self.db, kb_id) for kb_id in knowledge_base_ids]
