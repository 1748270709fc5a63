"""Ollama query-embedding client with graceful degradation."""

import logging

import httpx

from knowledge_search.config import get_embedding_model, get_ollama_timeout, get_ollama_url

logger = logging.getLogger(__name__)


class EmbeddingClient:
    """Generates query embeddings via Ollama."""

    def __init__(self, http_client: httpx.AsyncClient | None = None):
        """Initialize with an optional HTTP client."""
        self._http = http_client
        self._available: bool | None = None

    async def is_available(self) -> bool:
        """Check if Ollama is reachable. Only caches success — retries on failure."""
        if self._available is True:
            return True
        try:
            client = self._get_client()
            resp = await client.get(f"{get_ollama_url()}/api/tags", timeout=get_ollama_timeout())
            resp.raise_for_status()
            self._available = True
        except Exception:
            logger.warning("Ollama not available — query embeddings disabled")
            self._available = None
        return self._available is True

    async def embed(self, text: str) -> list[float] | None:
        """Generate an embedding vector for the given text. Returns None if unavailable."""
        if not await self.is_available():
            return None
        try:
            client = self._get_client()
            resp = await client.post(
                f"{get_ollama_url()}/api/embed",
                json={"model": get_embedding_model(), "input": text},
                timeout=get_ollama_timeout(),
            )
            resp.raise_for_status()
            data = resp.json()
            # Ollama /api/embed returns {"embeddings": [[...]]}
            result: list[float] = data["embeddings"][0]
            return result
        except Exception:
            logger.warning("Embedding generation failed", exc_info=True)
            self._available = None
            return None

    def _get_client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient()
        return self._http

    async def close(self) -> None:
        """Close the HTTP client if open."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None
