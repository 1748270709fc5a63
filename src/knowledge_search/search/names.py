"""Document-name resolution for search results."""

from knowledge_search.store.chunk_store import ChunkStore


async def get_document_names_by_ids(store: ChunkStore, document_ids: list[str]) -> dict[str, str]:
    """Batch-resolve document filenames; missing or deleted documents are absent."""
    unique_ids = list(dict.fromkeys(document_ids))
    if not unique_ids:
        return {}
    return await store.document_names(unique_ids)
