"""Query strategy selection: one query across partitions or one per partition."""

import math
from dataclasses import dataclass

# Fan out once the partition count makes a single IN-query expensive
PARALLEL_KB_COUNT = 4
PARALLEL_KB_COUNT_LARGE_K = 2
LARGE_TOP_K = 50

# Per-partition overshoot so the global merge can still fill top_k
PARALLEL_OVERSHOOT = 5

DEFAULT_DISTANCE_THRESHOLD = 1.0
WIDE_DISTANCE_THRESHOLD = 0.8
WIDE_KB_COUNT = 3


@dataclass(frozen=True)
class QueryStrategy:
    """Execution plan for a search over ``kb_count`` partitions."""

    use_parallel: bool
    parallel_limit: int
    distance_threshold: float


def get_query_strategy(kb_count: int, top_k: int) -> QueryStrategy:
    """Decide between fan-out and a single query. Pure function of its inputs."""
    use_parallel = kb_count > PARALLEL_KB_COUNT or (
        kb_count > PARALLEL_KB_COUNT_LARGE_K and top_k > LARGE_TOP_K
    )
    distance_threshold = (
        WIDE_DISTANCE_THRESHOLD if kb_count > WIDE_KB_COUNT else DEFAULT_DISTANCE_THRESHOLD
    )
    parallel_limit = math.ceil(top_k / max(kb_count, 1)) + PARALLEL_OVERSHOOT

    return QueryStrategy(
        use_parallel=use_parallel,
        parallel_limit=parallel_limit,
        distance_threshold=distance_threshold,
    )
