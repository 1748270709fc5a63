"""Knowledge base, document and chunk models."""

from datetime import datetime

from pydantic import BaseModel, Field


class KnowledgeBase(BaseModel):
    """A knowledge-base partition."""

    id: str
    name: str
    created_at: datetime | None = None


class Document(BaseModel):
    """A source document owned by one knowledge base."""

    id: str
    knowledge_base_id: str
    filename: str
    created_at: datetime | None = None
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        """True once the document has been soft-deleted."""
        return self.deleted_at is not None


class Chunk(BaseModel):
    """A contiguous span of a document with its embedding and tags."""

    id: str
    knowledge_base_id: str
    document_id: str
    chunk_index: int = Field(ge=0)
    content: str
    tags: dict[str, str] = Field(default_factory=dict)
    embedding: list[float] | None = None
    enabled: bool = True


class PartitionStats(BaseModel):
    """Document and chunk counts for one knowledge base."""

    knowledge_base_id: str
    document_count: int = 0
    chunk_count: int = 0
    enabled_chunk_count: int = 0
