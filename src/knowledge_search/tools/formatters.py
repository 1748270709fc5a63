"""Compact output formatters for MCP tool responses."""

from knowledge_search.models.document import PartitionStats
from knowledge_search.models.search import SearchHit, SearchResponse

_PREVIEW_CHARS = 300


def format_hit_header(hit: SearchHit, position: int) -> str:
    """Format: 3. handbook.pdf #2 (87%) [kb-sales]."""
    name = hit.document_name or hit.document_id
    return (
        f"{position}. {name} #{hit.chunk_index} "
        f"({hit.similarity:.0%}) [{hit.knowledge_base_id}]"
    )


def format_hit_tags(hit: SearchHit) -> str:
    """Format: tag1=invoice tag3=2024."""
    return " ".join(f"{slot}={value}" for slot, value in hit.tags.items())


def format_hit_compact(hit: SearchHit, position: int) -> str:
    """Header + tags + a content preview."""
    lines = [format_hit_header(hit, position)]
    tags = format_hit_tags(hit)
    if tags:
        lines.append(f"  {tags}")
    content = " ".join(hit.content.split())
    if len(content) > _PREVIEW_CHARS:
        content = content[:_PREVIEW_CHARS].rstrip() + "…"
    lines.append(f"  {content}")
    return "\n".join(lines)


def format_result_list(response: SearchResponse, note: str | None = None) -> str:
    """Count + mode + note + entries joined by blank lines."""
    if not response.results:
        return "No results found."

    lines = [f"{response.total_results} result(s) ({response.mode.value})"]
    if response.reranked:
        lines.append("Reranked by relevance.")
    if note:
        lines.append(f"Note: {note}")
    lines.append("")
    lines.append(
        "\n\n".join(
            format_hit_compact(hit, position)
            for position, hit in enumerate(response.results, start=1)
        )
    )
    return "\n".join(lines)


def format_stats(stats: list[PartitionStats]) -> str:
    """One line per knowledge base with document and chunk counts."""
    if not stats:
        return "No knowledge bases given."
    return "\n".join(
        f"{s.knowledge_base_id}: {s.document_count} document(s), "
        f"{s.chunk_count} chunk(s) ({s.enabled_chunk_count} enabled)"
        for s in stats
    )
