"""Tests for query strategy selection."""

import pytest

from knowledge_search.search.strategy import QueryStrategy, get_query_strategy


@pytest.mark.parametrize(
    ("kb_count", "top_k", "expected"),
    [
        (1, 10, False),
        (2, 100, False),
        (3, 50, False),
        (3, 51, True),
        (4, 10, False),
        (4, 60, True),
        (5, 1, True),
        (12, 10, True),
    ],
)
def test_parallel_boundaries(kb_count, top_k, expected):
    assert get_query_strategy(kb_count, top_k).use_parallel is expected


def test_small_fan_in():
    strategy = get_query_strategy(2, 10)
    assert strategy == QueryStrategy(
        use_parallel=False,
        parallel_limit=10,
        distance_threshold=1.0,
    )


def test_six_partitions_large_k():
    strategy = get_query_strategy(6, 60)
    assert strategy.use_parallel is True
    assert strategy.parallel_limit == 15
    assert strategy.distance_threshold == 0.8


def test_parallel_limit_rounds_up():
    assert get_query_strategy(3, 10).parallel_limit == 9  # ceil(10/3) + 5


def test_threshold_tightens_above_three_partitions():
    assert get_query_strategy(3, 10).distance_threshold == 1.0
    assert get_query_strategy(4, 10).distance_threshold == 0.8


def test_deterministic():
    assert get_query_strategy(7, 33) == get_query_strategy(7, 33)


def test_zero_partitions_does_not_divide_by_zero():
    assert get_query_strategy(0, 10).parallel_limit == 15
