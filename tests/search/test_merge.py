"""Tests for cross-partition merge."""

from knowledge_search.search.fanout import PartitionOutcome
from knowledge_search.search.merge import merge_partition_results


def test_sorts_by_distance_and_truncates(result_factory):
    kb1 = [result_factory("a", distance=0.1), result_factory("b", distance=0.5)]
    kb2 = [result_factory("c", distance=0.05), result_factory("d", distance=0.3)]
    outcomes = [PartitionOutcome("kb-1", kb1), PartitionOutcome("kb-2", kb2)]
    merged = merge_partition_results(outcomes, 3, sort_by_distance=True)
    assert [r.id for r in merged] == ["c", "a", "d"]


def test_sort_is_stable_for_ties(result_factory):
    outcomes = [
        PartitionOutcome("kb-1", [result_factory("first", distance=0.2)]),
        PartitionOutcome("kb-2", [result_factory("second", distance=0.2)]),
    ]
    merged = merge_partition_results(outcomes, 10, sort_by_distance=True)
    assert [r.id for r in merged] == ["first", "second"]


def test_concatenates_without_sort(result_factory):
    outcomes = [
        PartitionOutcome("kb-1", [result_factory("a"), result_factory("b")]),
        PartitionOutcome("kb-2", [result_factory("c")]),
    ]
    merged = merge_partition_results(outcomes, 2, sort_by_distance=False)
    assert [r.id for r in merged] == ["a", "b"]


def test_failed_branches_contribute_nothing(result_factory):
    outcomes = [
        PartitionOutcome("kb-1", error=RuntimeError("down")),
        PartitionOutcome("kb-2", [result_factory("c", distance=0.4)]),
    ]
    merged = merge_partition_results(outcomes, 5, sort_by_distance=True)
    assert [r.id for r in merged] == ["c"]


def test_duplicates_kept_and_logged(result_factory, caplog):
    outcomes = [
        PartitionOutcome("kb-1", [result_factory("same", distance=0.1)]),
        PartitionOutcome("kb-2", [result_factory("same", distance=0.1)]),
    ]
    with caplog.at_level("WARNING"):
        merged = merge_partition_results(outcomes, 5, sort_by_distance=True)
    assert [r.id for r in merged] == ["same", "same"]
    assert "same" in caplog.text


def test_empty():
    assert merge_partition_results([], 5, sort_by_distance=True) == []
