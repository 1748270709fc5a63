"""Cross-partition merge of fan-out results."""

import logging
from collections import Counter

from knowledge_search.models.search import SearchResult
from knowledge_search.search.fanout import PartitionOutcome

logger = logging.getLogger(__name__)


def merge_partition_results(
    outcomes: list[PartitionOutcome],
    top_k: int,
    *,
    sort_by_distance: bool,
) -> list[SearchResult]:
    """Concatenate partition results, optionally sort by distance, truncate to ``top_k``.

    The distance sort is stable, so ties keep partition order. Duplicate
    chunk ids are kept and logged rather than silently dropped.
    """
    merged = [result for outcome in outcomes for result in outcome.results]

    duplicates = [chunk_id for chunk_id, n in Counter(r.id for r in merged).items() if n > 1]
    if duplicates:
        logger.warning("Chunk ids returned by more than one partition: %s", duplicates)

    if sort_by_distance:
        merged.sort(key=lambda r: r.distance)
    return merged[:top_k]
