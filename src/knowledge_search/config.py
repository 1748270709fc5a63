"""Environment-variable-based configuration."""

import os
from pathlib import Path


def get_db_path() -> Path:
    """Return the SQLite database file path from KS_DB_PATH."""
    raw = os.environ.get("KS_DB_PATH", "~/.local/share/knowledge_search/knowledge.db")
    return Path(raw).expanduser()


def get_database_url() -> str | None:
    """Return a PostgreSQL URL from KS_DATABASE_URL, or None for SQLite."""
    url = os.environ.get("KS_DATABASE_URL", "").strip()
    return url or None


def get_ollama_url() -> str:
    """Return the Ollama API URL from KS_OLLAMA_URL."""
    return os.environ.get("KS_OLLAMA_URL", "http://localhost:11434")


def get_embedding_model() -> str:
    """Return the embedding model name from KS_EMBEDDING_MODEL."""
    return os.environ.get("KS_EMBEDDING_MODEL", "nomic-embed-text")


def get_embedding_dim() -> int:
    """Return the embedding vector dimensions from KS_EMBEDDING_DIM."""
    return int(os.environ.get("KS_EMBEDDING_DIM", "768"))


def get_ollama_timeout() -> float:
    """Return the Ollama timeout in seconds from KS_OLLAMA_TIMEOUT."""
    return float(os.environ.get("KS_OLLAMA_TIMEOUT", "10.0"))


def get_rerank_api_key() -> str | None:
    """Return the reranking service credential from KS_RERANK_API_KEY."""
    key = os.environ.get("KS_RERANK_API_KEY", "").strip()
    return key or None


def get_rerank_url() -> str:
    """Return the reranking endpoint from KS_RERANK_URL."""
    return os.environ.get("KS_RERANK_URL", "https://api.cohere.com/v2/rerank")


def get_rerank_model() -> str:
    """Return the default reranking model from KS_RERANK_MODEL."""
    return os.environ.get("KS_RERANK_MODEL", "rerank-v3.5")


def get_rerank_timeout() -> float:
    """Return the rerank request timeout in seconds from KS_RERANK_TIMEOUT."""
    return float(os.environ.get("KS_RERANK_TIMEOUT", "10.0"))


def get_branch_timeout() -> float:
    """Return the per-partition query timeout in seconds from KS_BRANCH_TIMEOUT."""
    return float(os.environ.get("KS_BRANCH_TIMEOUT", "15.0"))


def get_filter_cache_size() -> int:
    """Return the compiled tag-filter cache size from KS_FILTER_CACHE_SIZE."""
    return int(os.environ.get("KS_FILTER_CACHE_SIZE", "256"))


def get_log_level() -> str:
    """Return the logging level from KS_LOG_LEVEL."""
    return os.environ.get("KS_LOG_LEVEL", "WARNING")
