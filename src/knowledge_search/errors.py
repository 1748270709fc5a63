"""Search error types."""


class SearchUsageError(ValueError):
    """A search was invoked without the inputs its mode requires."""


class EmbeddingUnavailableError(RuntimeError):
    """A query needed an embedding but the embedding backend is offline."""
