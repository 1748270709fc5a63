"""Tests for the tag-only, vector-only and tag-and-vector executors."""

import pytest

from knowledge_search.errors import SearchUsageError
from knowledge_search.models.search import SearchParams
from knowledge_search.search.executors import (
    handle_tag_and_vector_search,
    handle_tag_only_search,
    handle_vector_only_search,
)
from knowledge_search.search.filters import TagPredicateCache

QUERY = [1.0, 0.0, 0.0, 0.0]


def _params(**kwargs) -> SearchParams:
    defaults = {"knowledge_base_ids": ["kb-a", "kb-b"], "top_k": 10}
    defaults.update(kwargs)
    return SearchParams(**defaults)


# --- tag-only ---


@pytest.mark.asyncio
async def test_tag_only_single_query_for_two_partitions(recording_store, result_factory):
    recording_store.results_by_kb = {
        "kb-a": [result_factory("a1", kb_id="kb-a", tag1="invoice")],
        "kb-b": [result_factory("b1", kb_id="kb-b", tag1="invoice")],
    }
    params = _params(tag_filters={"tag1": "invoice"})

    results = await handle_tag_only_search(recording_store, params)

    assert recording_store.count("structural_query") == 1
    kb_ids, _, limit = recording_store.calls[0][1]
    assert kb_ids == ["kb-a", "kb-b"]
    assert limit == 10
    assert [r.id for r in results] == ["a1", "b1"]
    assert all(r.distance == 0.0 for r in results)


@pytest.mark.asyncio
async def test_tag_only_fans_out_over_many_partitions(recording_store, result_factory):
    kb_ids = [f"kb-{i}" for i in range(5)]
    recording_store.results_by_kb = {
        kb_id: [result_factory(f"{kb_id}-{n}", kb_id=kb_id) for n in range(3)] for kb_id in kb_ids
    }
    params = _params(knowledge_base_ids=kb_ids, top_k=4, tag_filters={"tag1": "x"})

    results = await handle_tag_only_search(recording_store, params, branch_timeout=1.0)

    assert recording_store.count("structural_query") == 5
    assert all(call[1][2] == 6 for call in recording_store.calls)  # ceil(4/5) + 5
    # Concatenated in partition order, then truncated
    assert [r.id for r in results] == ["kb-0-0", "kb-0-1", "kb-0-2", "kb-1-0"]


@pytest.mark.asyncio
async def test_tag_only_requires_filters(recording_store):
    with pytest.raises(SearchUsageError, match="Tag filters are required"):
        await handle_tag_only_search(recording_store, _params())
    assert recording_store.calls == []


@pytest.mark.asyncio
async def test_tag_only_uses_cache(recording_store):
    cache = TagPredicateCache()
    params = _params(tag_filters={"tag1": "x"})
    await handle_tag_only_search(recording_store, params, cache=cache)
    await handle_tag_only_search(recording_store, params, cache=cache)
    assert len(cache) == 1
    first, second = (call[1][1] for call in recording_store.calls)
    assert first is second


@pytest.mark.asyncio
async def test_tag_only_against_database(seeded_store):
    params = _params(tag_filters={"tag1": "red|OR|blue"})
    results = await handle_tag_only_search(seeded_store, params)
    assert {r.id for r in results} == {"doc-a1:0", "doc-a1:1", "doc-b1:0", "doc-b1:2"}


# --- vector-only ---


@pytest.mark.asyncio
async def test_vector_only_parallel_merge(recording_store, result_factory):
    kb_ids = [f"kb-{i}" for i in range(6)]
    recording_store.results_by_kb = {
        kb_id: [
            result_factory(f"{kb_id}-{n}", kb_id=kb_id, distance=round(0.01 * (n * 6 + i), 4))
            for n in range(20)
        ]
        for i, kb_id in enumerate(kb_ids)
    }
    params = _params(
        knowledge_base_ids=kb_ids, top_k=60, query_vector=QUERY, distance_threshold=0.8
    )

    results = await handle_vector_only_search(recording_store, params, branch_timeout=1.0)

    assert recording_store.count("similarity_query") == 6
    for _, (call_kbs, threshold, limit) in recording_store.calls:
        assert len(call_kbs) == 1
        assert limit == 15
        assert threshold == 0.8
    assert len(results) == 60
    distances = [r.distance for r in results]
    assert distances == sorted(distances)
    assert results[0].id == "kb-0-0"
    assert results[1].id == "kb-1-0"


@pytest.mark.asyncio
async def test_vector_only_partition_failure_degrades(recording_store, result_factory):
    kb_ids = [f"kb-{i}" for i in range(5)]
    recording_store.results_by_kb = {
        kb_id: [result_factory(f"{kb_id}-0", kb_id=kb_id, distance=0.1 * i)]
        for i, kb_id in enumerate(kb_ids)
    }
    recording_store.failing_kbs = {"kb-2"}
    params = _params(knowledge_base_ids=kb_ids, query_vector=QUERY, distance_threshold=1.0)

    results = await handle_vector_only_search(recording_store, params, branch_timeout=1.0)

    assert [r.id for r in results] == ["kb-0-0", "kb-1-0", "kb-3-0", "kb-4-0"]


@pytest.mark.asyncio
async def test_vector_only_requires_vector(recording_store):
    with pytest.raises(SearchUsageError, match="vector-only"):
        await handle_vector_only_search(recording_store, _params(distance_threshold=1.0))
    with pytest.raises(SearchUsageError):
        await handle_vector_only_search(recording_store, _params(query_vector=QUERY))


@pytest.mark.asyncio
async def test_vector_only_monotonic_and_exclusive(seeded_store):
    params = _params(query_vector=QUERY, distance_threshold=1.0)
    results = await handle_vector_only_search(seeded_store, params)
    assert [r.id for r in results] == ["doc-a1:0", "doc-a1:1"]
    assert all(r.distance < 1.0 for r in results)
    assert results[0].distance <= results[1].distance


@pytest.mark.asyncio
async def test_vector_only_top_k(seeded_store):
    params = _params(top_k=1, query_vector=QUERY, distance_threshold=3.0)
    results = await handle_vector_only_search(seeded_store, params)
    assert [r.id for r in results] == ["doc-a1:0"]


# --- tag and vector ---


@pytest.mark.asyncio
async def test_hybrid_short_circuits_on_no_tag_matches(recording_store):
    recording_store.filtered_ids = []
    params = _params(tag_filters={"tag1": "nothing"}, query_vector=QUERY, distance_threshold=1.0)

    results = await handle_tag_and_vector_search(recording_store, params)

    assert results == []
    assert recording_store.count("tag_filtered_ids") == 1
    assert recording_store.count("similarity_query_by_ids") == 0


@pytest.mark.asyncio
async def test_hybrid_ranks_tag_matches(recording_store, result_factory):
    recording_store.filtered_ids = ["x", "y"]
    recording_store.by_id_results = [result_factory("y", distance=0.1)]
    params = _params(tag_filters={"tag1": "a"}, query_vector=QUERY, distance_threshold=0.5)

    results = await handle_tag_and_vector_search(recording_store, params)

    assert [r.id for r in results] == ["y"]
    ids, threshold, limit = recording_store.calls[-1][1]
    assert ids == ["x", "y"]
    assert threshold == 0.5
    assert limit == 10


@pytest.mark.asyncio
async def test_hybrid_against_database(seeded_store):
    params = _params(
        tag_filters={"tag1": "red|OR|blue"}, query_vector=QUERY, distance_threshold=1.0
    )
    results = await handle_tag_and_vector_search(seeded_store, params)
    # doc-b1:0 matches the tags but is too far; doc-b1:2 has no embedding
    assert [r.id for r in results] == ["doc-a1:0", "doc-a1:1"]


@pytest.mark.asyncio
async def test_hybrid_requires_filters_and_vector(recording_store):
    with pytest.raises(SearchUsageError, match="Tag filters are required"):
        await handle_tag_and_vector_search(
            recording_store, _params(query_vector=QUERY, distance_threshold=1.0)
        )
    with pytest.raises(SearchUsageError, match="tag and vector"):
        await handle_tag_and_vector_search(recording_store, _params(tag_filters={"tag1": "a"}))
    assert recording_store.calls == []
