"""Query helpers for chunk retrieval and ingestion."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from knowledge_search.db.backend import Database, Row
from knowledge_search.models.document import Chunk, Document, KnowledgeBase, PartitionStats
from knowledge_search.models.search import TAG_SLOTS, SearchResult

if TYPE_CHECKING:
    from knowledge_search.search.filters import TagPredicate

_RESULT_COLUMNS = ", ".join(
    [
        "c.id",
        "c.content",
        "c.document_id",
        "c.chunk_index",
        *(f"c.{slot}" for slot in TAG_SLOTS),
        "c.knowledge_base_id",
    ]
)

# Chunks are searchable only while enabled and owned by a live document
_LIVE_CHUNK = "c.enabled = 1 AND d.deleted_at IS NULL"

_FROM_CHUNKS = "FROM chunks c JOIN documents d ON c.document_id = d.id"

# Well below SQLite's 32766 and asyncpg's 32767 bind-parameter limits
ID_BATCH_SIZE = 1000


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _membership(column: str, values: list[str]) -> tuple[str, list[Any]]:
    """``column = ?`` for one value, ``column IN (?, ...)`` for several."""
    if len(values) == 1:
        return f"{column} = ?", [values[0]]
    placeholders = ", ".join("?" for _ in values)
    return f"{column} IN ({placeholders})", list(values)


def row_to_result(row: Row) -> SearchResult:
    """Convert a chunk row (with a ``distance`` column) to a SearchResult."""
    return SearchResult(
        id=row["id"],
        content=row["content"],
        document_id=row["document_id"],
        chunk_index=row["chunk_index"],
        tag1=row["tag1"],
        tag2=row["tag2"],
        tag3=row["tag3"],
        tag4=row["tag4"],
        tag5=row["tag5"],
        tag6=row["tag6"],
        tag7=row["tag7"],
        distance=float(row["distance"]),
        knowledge_base_id=row["knowledge_base_id"],
    )


# -- Retrieval --


async def select_chunks_by_tags(
    db: Database,
    knowledge_base_ids: list[str],
    predicate: TagPredicate,
    limit: int,
) -> list[SearchResult]:
    """Structural query: chunks matching the tag predicate, distance fixed at 0."""
    kb_sql, params = _membership("c.knowledge_base_id", knowledge_base_ids)
    sql = f"""
        SELECT {_RESULT_COLUMNS}, 0 AS distance
        {_FROM_CHUNKS}
        WHERE {kb_sql} AND {_LIVE_CHUNK} AND ({predicate.sql})
        LIMIT ?
    """
    cursor = await db.execute(sql, [*params, *predicate.params, limit])
    return [row_to_result(row) for row in await cursor.fetchall()]


async def select_chunk_ids_by_tags(
    db: Database,
    knowledge_base_ids: list[str],
    predicate: TagPredicate,
) -> list[str]:
    """Ids of every live chunk matching the tag predicate."""
    kb_sql, params = _membership("c.knowledge_base_id", knowledge_base_ids)
    sql = f"""
        SELECT c.id
        {_FROM_CHUNKS}
        WHERE {kb_sql} AND {_LIVE_CHUNK} AND ({predicate.sql})
    """
    cursor = await db.execute(sql, [*params, *predicate.params])
    return [row[0] for row in await cursor.fetchall()]


async def _select_similar(
    db: Database,
    scope_sql: str,
    scope_params: list[Any],
    query_vector: list[float],
    distance_threshold: float,
    limit: int,
) -> list[SearchResult]:
    distance = db.vector_distance_sql("c.embedding")
    vector = db.encode_vector(query_vector)
    sql = f"""
        SELECT {_RESULT_COLUMNS}, {distance} AS distance
        {_FROM_CHUNKS}
        WHERE {scope_sql} AND {_LIVE_CHUNK}
        AND c.embedding IS NOT NULL
        AND {distance} < ?
        ORDER BY distance, c.id
        LIMIT ?
    """
    params = [vector, *scope_params, vector, distance_threshold, limit]
    cursor = await db.execute(sql, params)
    return [row_to_result(row) for row in await cursor.fetchall()]


async def select_similar_chunks(
    db: Database,
    knowledge_base_ids: list[str],
    query_vector: list[float],
    distance_threshold: float,
    limit: int,
) -> list[SearchResult]:
    """Similarity query across partitions, ascending distance, ``distance < threshold``."""
    kb_sql, params = _membership("c.knowledge_base_id", knowledge_base_ids)
    return await _select_similar(db, kb_sql, params, query_vector, distance_threshold, limit)


async def select_similar_chunks_by_ids(
    db: Database,
    chunk_ids: list[str],
    query_vector: list[float],
    distance_threshold: float,
    limit: int,
) -> list[SearchResult]:
    """Similarity query restricted to the given chunk ids.

    Ids are bound in batches of ``ID_BATCH_SIZE`` to stay under the bind
    parameter limits of SQLite and asyncpg; the per-batch hits are merged
    back into one ``distance, id`` ordering.
    """
    if not chunk_ids:
        return []
    results: list[SearchResult] = []
    for start in range(0, len(chunk_ids), ID_BATCH_SIZE):
        batch = chunk_ids[start : start + ID_BATCH_SIZE]
        id_sql, params = _membership("c.id", batch)
        results.extend(
            await _select_similar(db, id_sql, params, query_vector, distance_threshold, limit)
        )
    if len(chunk_ids) > ID_BATCH_SIZE:
        results.sort(key=lambda r: (r.distance, r.id))
    return results[:limit]


async def select_document_names(db: Database, document_ids: list[str]) -> dict[str, str]:
    """Map live document ids to filenames. Unknown or deleted ids are absent."""
    if not document_ids:
        return {}
    id_sql, params = _membership("id", document_ids)
    cursor = await db.execute(
        f"SELECT id, filename FROM documents WHERE {id_sql} AND deleted_at IS NULL",
        params,
    )
    return {row["id"]: row["filename"] for row in await cursor.fetchall()}


# -- Ingestion --


async def insert_knowledge_base(db: Database, kb: KnowledgeBase) -> None:
    """Insert a knowledge-base partition."""
    await db.execute(
        "INSERT INTO knowledge_bases (id, name, created_at) VALUES (?, ?, ?)",
        (kb.id, kb.name, kb.created_at.isoformat() if kb.created_at else _now_iso()),
    )
    await db.commit()


async def insert_document(db: Database, doc: Document) -> None:
    """Insert a document row."""
    await db.execute(
        """INSERT INTO documents (id, knowledge_base_id, filename, created_at, deleted_at)
        VALUES (?, ?, ?, ?, ?)""",
        (
            doc.id,
            doc.knowledge_base_id,
            doc.filename,
            doc.created_at.isoformat() if doc.created_at else _now_iso(),
            doc.deleted_at.isoformat() if doc.deleted_at else None,
        ),
    )
    await db.commit()


async def insert_chunk(db: Database, chunk: Chunk) -> None:
    """Insert a chunk row and, when present, its embedding."""
    tag_values = [chunk.tags.get(slot) for slot in TAG_SLOTS]
    await db.execute(
        f"""INSERT INTO chunks
        (id, knowledge_base_id, document_id, chunk_index, content, enabled,
         {", ".join(TAG_SLOTS)}, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            chunk.id,
            chunk.knowledge_base_id,
            chunk.document_id,
            chunk.chunk_index,
            chunk.content,
            int(chunk.enabled),
            *tag_values,
            _now_iso(),
        ),
    )
    if chunk.embedding is not None:
        await db.vector_store(chunk.id, chunk.embedding)
    await db.commit()


async def mark_document_deleted(db: Database, document_id: str) -> bool:
    """Soft-delete a document. Returns False if it was missing or already deleted."""
    cursor = await db.execute(
        "UPDATE documents SET deleted_at = ? WHERE id = ? AND deleted_at IS NULL",
        (_now_iso(), document_id),
    )
    await db.commit()
    return cursor.rowcount > 0


async def update_chunk_enabled(db: Database, chunk_id: str, enabled: bool) -> bool:
    """Toggle a chunk's enabled flag. Returns False if the chunk does not exist."""
    cursor = await db.execute(
        "UPDATE chunks SET enabled = ? WHERE id = ?",
        (int(enabled), chunk_id),
    )
    await db.commit()
    return cursor.rowcount > 0


async def count_partition_stats(db: Database, knowledge_base_id: str) -> PartitionStats:
    """Count live documents and chunks in one knowledge base."""
    cursor = await db.execute(
        "SELECT COUNT(*) FROM documents WHERE knowledge_base_id = ? AND deleted_at IS NULL",
        (knowledge_base_id,),
    )
    doc_row = await cursor.fetchone()

    cursor = await db.execute(
        f"""SELECT COUNT(*) AS total,
               COALESCE(SUM(CASE WHEN c.enabled = 1 THEN 1 ELSE 0 END), 0) AS enabled
        {_FROM_CHUNKS}
        WHERE c.knowledge_base_id = ? AND d.deleted_at IS NULL""",
        (knowledge_base_id,),
    )
    chunk_row = await cursor.fetchone()

    return PartitionStats(
        knowledge_base_id=knowledge_base_id,
        document_count=doc_row[0] if doc_row else 0,
        chunk_count=chunk_row["total"] if chunk_row else 0,
        enabled_chunk_count=int(chunk_row["enabled"]) if chunk_row else 0,
    )
