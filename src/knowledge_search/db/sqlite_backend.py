"""SQLite implementation of the Database protocol.

Thin wrapper around aiosqlite.Connection — no SQL translation needed
since application code already uses SQLite-flavored SQL. Vector distances
come from sqlite-vec's scalar ``vec_distance_cosine`` over float32 blobs.
"""

from __future__ import annotations

import logging
import struct
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import aiosqlite

    from knowledge_search.db.backend import Cursor, Row

logger = logging.getLogger(__name__)


def _serialize_f32(vec: list[float]) -> bytes:
    """Serialize a list of floats to a compact binary format for sqlite-vec."""
    return struct.pack(f"{len(vec)}f", *vec)


class SQLiteCursor:
    """Wraps aiosqlite.Cursor to satisfy the Cursor protocol."""

    def __init__(self, cursor: aiosqlite.Cursor) -> None:
        """Initialize with an aiosqlite cursor."""
        self._cursor = cursor

    @property
    def rowcount(self) -> int:
        """Number of rows affected by the last operation."""
        rc = self._cursor.rowcount
        return rc if rc is not None else -1

    async def fetchone(self) -> Row | None:
        """Fetch the next row, or None if exhausted."""
        return await self._cursor.fetchone()

    async def fetchall(self) -> list[Row]:
        """Fetch all remaining rows."""
        return list(await self._cursor.fetchall())


class SQLiteBackend:
    """SQLite implementation of the Database protocol.

    Passes all calls through to the underlying aiosqlite.Connection.
    The raw connection is exposed as ``_conn`` for SQLite-specific
    operations (extension loading, PRAGMA, etc.) that only run during
    connection setup.
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        """Initialize with an aiosqlite connection."""
        self._conn = conn

    async def execute(self, sql: str, params: tuple[Any, ...] | list[Any] = ()) -> Cursor:
        """Execute a single SQL statement and return a cursor."""
        cursor = await self._conn.execute(sql, params)
        return SQLiteCursor(cursor)

    async def executemany(self, sql: str, params_seq: list[tuple[Any, ...] | list[Any]]) -> None:
        """Execute a SQL statement for each set of parameters."""
        await self._conn.executemany(sql, params_seq)

    async def executescript(self, sql: str) -> None:
        """Execute multiple SQL statements (DDL, migrations)."""
        await self._conn.executescript(sql)

    async def commit(self) -> None:
        """Commit the current transaction."""
        await self._conn.commit()

    async def close(self) -> None:
        """Close the database connection."""
        await self._conn.close()

    # -- Vector dialect (sqlite-vec) --

    def vector_distance_sql(self, column: str) -> str:
        """Cosine distance via sqlite-vec; smaller is more similar."""
        return f"vec_distance_cosine({column}, ?)"

    def encode_vector(self, embedding: list[float]) -> bytes:
        """Pack an embedding as a float32 blob."""
        return _serialize_f32(embedding)

    async def vector_store(self, chunk_id: str, embedding: list[float]) -> None:
        """Set the embedding blob for a chunk."""
        await self._conn.execute(
            "UPDATE chunks SET embedding = ? WHERE id = ?",
            (_serialize_f32(embedding), chunk_id),
        )

    # -- Schema --

    async def apply_schema(self, *, embedding_dim: int = 768) -> None:
        """Apply all SQLite DDL.

        ``embedding_dim`` is accepted for parity with the Postgres backend;
        SQLite stores embeddings as untyped blobs.
        """
        from knowledge_search.db.schema import apply_schema

        await apply_schema(self)
        logger.debug("SQLite schema applied (embedding_dim=%d)", embedding_dim)
