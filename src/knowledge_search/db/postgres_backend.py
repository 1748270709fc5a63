"""PostgreSQL implementation of the Database protocol.

Uses asyncpg for async access and pgvector for embeddings. All
application SQL uses ``?`` placeholders — this backend translates them to
``$N`` at execute time.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import asyncpg

    from knowledge_search.db.backend import Cursor, Row

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\?")


def _translate_placeholders(sql: str) -> str:
    """Convert ``?`` placeholders to ``$1, $2, ...`` for asyncpg."""
    counter = 0

    def _replace(_match: re.Match[str]) -> str:
        nonlocal counter
        counter += 1
        return f"${counter}"

    return _PLACEHOLDER_RE.sub(_replace, sql)


def _vector_literal(embedding: list[float]) -> str:
    """Render an embedding in pgvector's text input format."""
    return "[" + ",".join(str(v) for v in embedding) + "]"


class PostgresRow:
    """Wraps asyncpg.Record to satisfy the Row protocol."""

    def __init__(self, record: asyncpg.Record) -> None:
        """Initialize with an asyncpg Record."""
        self._record = record

    def __getitem__(self, key: str | int) -> Any:
        """Get a column value by name or position."""
        return self._record[key]

    def keys(self) -> list[str]:
        """Return column names."""
        return list(self._record.keys())


class PostgresCursor:
    """Wraps a list of asyncpg.Record as a Cursor.

    asyncpg returns results eagerly — there's no server-side cursor for
    simple queries. This wraps the result list to match the Cursor protocol.
    """

    def __init__(self, rows: list[asyncpg.Record], status: str | None = None) -> None:
        """Initialize with result rows and optional status string."""
        self._rows = rows
        self._index = 0
        self._rowcount = self._parse_rowcount(status)

    @property
    def rowcount(self) -> int:
        """Number of rows affected by the last operation."""
        return self._rowcount

    async def fetchone(self) -> Row | None:
        """Fetch the next row, or None if exhausted."""
        if self._index >= len(self._rows):
            return None
        row = PostgresRow(self._rows[self._index])
        self._index += 1
        return row

    async def fetchall(self) -> list[Row]:
        """Fetch all remaining rows."""
        remaining: list[Row] = [PostgresRow(r) for r in self._rows[self._index :]]
        self._index = len(self._rows)
        return remaining

    @staticmethod
    def _parse_rowcount(status: str | None) -> int:
        """Parse affected row count from asyncpg status string.

        Examples: "INSERT 0 1" → 1, "UPDATE 3" → 3, "DELETE 0" → 0.
        """
        if not status:
            return -1
        parts = status.split()
        if len(parts) >= 2:
            try:
                return int(parts[-1])
            except ValueError:
                pass
        return -1


class PostgresBackend:
    """PostgreSQL implementation of the Database protocol.

    Each ``execute()`` call acquires a connection from the pool, translates
    ``?`` → ``$N`` placeholders, and releases the connection after, so
    concurrent partition queries each get their own connection.
    ``commit()`` is a no-op — asyncpg auto-commits each statement.
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        """Initialize with an asyncpg connection pool."""
        self._pool = pool

    @classmethod
    async def create(cls, url: str) -> PostgresBackend:
        """Create a PostgresBackend from a connection URL."""
        import asyncpg as _asyncpg

        pool = await _asyncpg.create_pool(url, min_size=2, max_size=10)
        return cls(pool)

    async def execute(self, sql: str, params: tuple[Any, ...] | list[Any] = ()) -> Cursor:
        """Execute a single SQL statement and return a cursor."""
        pg_sql = _translate_placeholders(sql)
        async with self._pool.acquire() as conn:
            stmt = await conn.prepare(pg_sql)
            if stmt.get_attributes():
                rows = await conn.fetch(pg_sql, *params)
                return PostgresCursor(rows)
            status = await conn.execute(pg_sql, *params)
            return PostgresCursor([], status=status)

    async def executemany(self, sql: str, params_seq: list[tuple[Any, ...] | list[Any]]) -> None:
        """Execute a SQL statement for each set of parameters."""
        pg_sql = _translate_placeholders(sql)
        async with self._pool.acquire() as conn:
            await conn.executemany(pg_sql, params_seq)

    async def executescript(self, sql: str) -> None:
        """Execute multiple SQL statements."""
        async with self._pool.acquire() as conn:
            await conn.execute(sql)

    async def commit(self) -> None:
        """No-op — asyncpg auto-commits each statement."""

    async def close(self) -> None:
        """Close the connection pool."""
        await self._pool.close()

    # -- Vector dialect (pgvector) --

    def vector_distance_sql(self, column: str) -> str:
        """Cosine distance via pgvector's ``<=>`` operator."""
        return f"({column} <=> ?::vector)"

    def encode_vector(self, embedding: list[float]) -> str:
        """Render an embedding as a pgvector literal."""
        return _vector_literal(embedding)

    async def vector_store(self, chunk_id: str, embedding: list[float]) -> None:
        """Set the embedding vector for a chunk."""
        async with self._pool.acquire() as conn:
            await conn.execute(
                "UPDATE chunks SET embedding = $1::vector WHERE id = $2",
                _vector_literal(embedding),
                chunk_id,
            )

    # -- Schema --

    async def apply_schema(self, *, embedding_dim: int = 768) -> None:
        """Apply all PostgreSQL DDL."""
        async with self._pool.acquire() as conn:
            await conn.execute("CREATE EXTENSION IF NOT EXISTS vector")

            await conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER NOT NULL
                )
            """)

            await conn.execute("""
                CREATE TABLE IF NOT EXISTS knowledge_bases (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)

            await conn.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    id TEXT PRIMARY KEY,
                    knowledge_base_id TEXT NOT NULL REFERENCES knowledge_bases(id),
                    filename TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    deleted_at TEXT
                )
            """)

            await conn.execute(f"""
                CREATE TABLE IF NOT EXISTS chunks (
                    id TEXT PRIMARY KEY,
                    knowledge_base_id TEXT NOT NULL REFERENCES knowledge_bases(id),
                    document_id TEXT NOT NULL REFERENCES documents(id),
                    chunk_index INTEGER NOT NULL,
                    content TEXT NOT NULL,
                    enabled INTEGER NOT NULL DEFAULT 1,
                    tag1 TEXT,
                    tag2 TEXT,
                    tag3 TEXT,
                    tag4 TEXT,
                    tag5 TEXT,
                    tag6 TEXT,
                    tag7 TEXT,
                    embedding vector({embedding_dim}),
                    created_at TEXT NOT NULL,
                    UNIQUE(document_id, chunk_index)
                )
            """)

            for idx_sql in [
                "CREATE INDEX IF NOT EXISTS idx_documents_kb ON documents(knowledge_base_id)",
                "CREATE INDEX IF NOT EXISTS idx_chunks_kb ON chunks(knowledge_base_id)",
                "CREATE INDEX IF NOT EXISTS idx_chunks_document ON chunks(document_id)",
                "CREATE INDEX IF NOT EXISTS idx_chunks_kb_enabled"
                " ON chunks(knowledge_base_id, enabled)",
                "CREATE INDEX IF NOT EXISTS idx_chunks_embedding"
                " ON chunks USING hnsw (embedding vector_cosine_ops)",
            ]:
                await conn.execute(idx_sql)

            row = await conn.fetchrow("SELECT version FROM schema_version")
            if row is None:
                await conn.execute("INSERT INTO schema_version (version) VALUES ($1)", 1)
