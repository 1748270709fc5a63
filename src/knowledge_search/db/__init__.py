"""Database connection and schema management."""

from knowledge_search.db.backend import Cursor, Database, Row
from knowledge_search.db.postgres_backend import PostgresBackend
from knowledge_search.db.sqlite_backend import SQLiteBackend

__all__ = ["Cursor", "Database", "PostgresBackend", "Row", "SQLiteBackend"]
