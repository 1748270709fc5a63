"""Search-related models."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

TAG_SLOTS: tuple[str, ...] = ("tag1", "tag2", "tag3", "tag4", "tag5", "tag6", "tag7")


class SearchMode(StrEnum):
    """Which executor a search is routed to."""

    TAG_ONLY = "tag_only"
    VECTOR_ONLY = "vector_only"
    TAG_AND_VECTOR = "tag_and_vector"


def _dedupe(ids: list[str]) -> list[str]:
    return list(dict.fromkeys(ids))


class SearchParams(BaseModel):
    """Inputs to a single executor call."""

    model_config = ConfigDict(frozen=True)

    knowledge_base_ids: list[str] = Field(min_length=1)
    top_k: int = Field(ge=1)
    tag_filters: dict[str, str] | None = None
    query_vector: list[float] | None = None
    distance_threshold: float | None = None

    @field_validator("knowledge_base_ids")
    @classmethod
    def _unique_ids(cls, value: list[str]) -> list[str]:
        return _dedupe(value)


class SearchResult(BaseModel):
    """A single chunk returned by the vector store."""

    id: str
    content: str
    document_id: str
    chunk_index: int = Field(ge=0)
    tag1: str | None = None
    tag2: str | None = None
    tag3: str | None = None
    tag4: str | None = None
    tag5: str | None = None
    tag6: str | None = None
    tag7: str | None = None
    distance: float = 0.0
    knowledge_base_id: str

    @property
    def tags(self) -> dict[str, str]:
        """Non-empty tag slot values keyed by slot name."""
        values = {slot: getattr(self, slot) for slot in TAG_SLOTS}
        return {slot: value for slot, value in values.items() if value}


class RerankConfig(BaseModel):
    """Options for the optional rerank pass."""

    enabled: bool = True
    model: str | None = None
    top_n: int | None = Field(default=None, ge=1)
    request_id: str | None = None
    max_candidates: int = Field(default=50, ge=1, le=50)
    max_content_length: int = Field(default=4000, ge=1)


class RerankItem(BaseModel):
    """One reranker response item, normalized across provider field names.

    A provider identifies the candidate by position (``index``), by
    ``id``, or both; ``score`` is None when no usable score was given.
    """

    id: str | None = None
    index: int | None = None
    score: float | None = None


class SearchRequest(BaseModel):
    """A caller-facing search request, validated before routing."""

    knowledge_base_ids: list[str] = Field(min_length=1)
    query: str | None = None
    top_k: int = Field(default=10, ge=1, le=100)
    filters: dict[str, str] | None = None
    query_vector: list[float] | None = None
    distance_threshold: float | None = Field(default=None, gt=0)
    rerank: RerankConfig | None = None
    request_id: str | None = None

    @field_validator("knowledge_base_ids", mode="before")
    @classmethod
    def _coerce_ids(cls, value: object) -> object:
        if isinstance(value, str):
            return [value]
        return value

    @field_validator("knowledge_base_ids")
    @classmethod
    def _non_blank_ids(cls, value: list[str]) -> list[str]:
        ids = [kb_id.strip() for kb_id in value if kb_id and kb_id.strip()]
        if not ids:
            raise ValueError("At least one knowledge base ID is required")
        return _dedupe(ids)

    @field_validator("query")
    @classmethod
    def _blank_query(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value

    @field_validator("filters")
    @classmethod
    def _empty_filters(cls, value: dict[str, str] | None) -> dict[str, str] | None:
        return value or None

    @field_validator("query_vector")
    @classmethod
    def _empty_vector(cls, value: list[float] | None) -> list[float] | None:
        return value or None

    @model_validator(mode="after")
    def _query_or_filters(self) -> "SearchRequest":
        if not self.has_vector_query and self.filters is None:
            raise ValueError(
                "Please provide either a search query or tag filters to search your knowledge base"
            )
        return self

    @property
    def has_vector_query(self) -> bool:
        """True when the request asks for similarity ranking."""
        return self.query is not None or self.query_vector is not None

    @property
    def mode(self) -> SearchMode:
        """Executor this request routes to."""
        if not self.has_vector_query:
            return SearchMode.TAG_ONLY
        if self.filters is None:
            return SearchMode.VECTOR_ONLY
        return SearchMode.TAG_AND_VECTOR


class SearchHit(SearchResult):
    """A search result enriched for display."""

    document_name: str | None = None
    similarity: float


class SearchResponse(BaseModel):
    """Final ranked output of a search."""

    results: list[SearchHit]
    query: str
    knowledge_base_ids: list[str]
    top_k: int
    mode: SearchMode
    reranked: bool = False

    @property
    def total_results(self) -> int:
        """Number of returned hits."""
        return len(self.results)
