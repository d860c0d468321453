"""Tests shared by every vector index backend."""
import asyncio
import math

import pytest

from persona_rag.errors import DimensionMismatchError, IndexUnavailableError
from persona_rag.rag.store import IndexEntry, InMemoryVectorIndex
from persona_rag.rag.store_faiss import FAISSVectorIndex


@pytest.fixture(params=["memory", "faiss"])
def index(request):
    """Each vector index implementation, empty."""
    if request.param == "memory":
        return InMemoryVectorIndex()
    return FAISSVectorIndex()


def unit(cosine: float):
    """A 2-d unit vector with the given cosine to [1, 0]."""
    return [cosine, math.sqrt(1 - cosine ** 2)]


@pytest.mark.asyncio
async def test_empty_index_search_returns_empty(index):
    assert await index.search([1.0, 0.0], 5) == []
    assert await index.count() == 0
    assert index.status == "inactive"


@pytest.mark.asyncio
async def test_ranking_by_cosine_similarity(index):
    await index.add([
        IndexEntry(vector=unit(0.1), text="low"),
        IndexEntry(vector=unit(0.9), text="high"),
        IndexEntry(vector=unit(0.5), text="mid"),
    ])

    results = await index.search([1.0, 0.0], 2)

    assert [r.text for r in results] == ["high", "mid"]
    assert results[0].score == pytest.approx(0.9, abs=1e-5)
    assert results[1].score == pytest.approx(0.5, abs=1e-5)


@pytest.mark.asyncio
async def test_scores_ignore_vector_magnitude(index):
    await index.add([IndexEntry(vector=[10.0, 0.0], text="long")])

    results = await index.search([0.5, 0.5], 1)

    assert results[0].score == pytest.approx(math.sqrt(0.5), abs=1e-5)


@pytest.mark.asyncio
async def test_ties_broken_by_insertion_order(index):
    await index.add([
        IndexEntry(vector=[1.0, 0.0], text="first"),
        IndexEntry(vector=[0.0, 1.0], text="other"),
        IndexEntry(vector=[2.0, 0.0], text="second"),
        IndexEntry(vector=[3.0, 0.0], text="third"),
    ])

    results = await index.search([1.0, 0.0], 3)

    assert [r.text for r in results] == ["first", "second", "third"]
    assert [r.entry_id for r in results] == [0, 2, 3]


@pytest.mark.asyncio
async def test_result_length_bounded_by_count(index):
    await index.add([IndexEntry(vector=[1.0, 0.0], text="only")])

    results = await index.search([1.0, 0.0], 10)

    assert len(results) == 1
    assert await index.search([1.0, 0.0], 0) == []


@pytest.mark.asyncio
async def test_search_is_idempotent(index):
    await index.add([
        IndexEntry(vector=[float(i), 1.0, 0.5], text=f"entry {i}", metadata={"i": i})
        for i in range(10)
    ])

    first = await index.search([3.0, 1.0, 0.0], 4)
    second = await index.search([3.0, 1.0, 0.0], 4)

    assert first == second


@pytest.mark.asyncio
async def test_add_accepts_duplicates_and_returns_ids(index):
    entry = IndexEntry(vector=[1.0, 2.0], text="same", metadata={"source": "a"})

    first_ids = await index.add([entry, entry])
    second_ids = await index.add([entry])

    assert first_ids == [0, 1]
    assert second_ids == [2]
    assert await index.count() == 3
    assert index.status == "active"


@pytest.mark.asyncio
async def test_metadata_round_trips(index):
    await index.add([IndexEntry(vector=[1.0, 0.0], text="t", metadata={"source": "cv.txt", "chunk_index": 4})])

    results = await index.search([1.0, 0.0], 1)

    assert results[0].metadata == {"source": "cv.txt", "chunk_index": 4}


@pytest.mark.asyncio
async def test_dimension_mismatch(index):
    await index.add([IndexEntry(vector=[1.0, 0.0], text="t")])

    with pytest.raises(DimensionMismatchError):
        await index.add([IndexEntry(vector=[1.0, 0.0, 0.0], text="u")])
    with pytest.raises(DimensionMismatchError):
        await index.search([1.0, 0.0, 0.0], 1)

    assert issubclass(DimensionMismatchError, IndexUnavailableError)
    assert await index.count() == 1


@pytest.mark.asyncio
async def test_zero_vector_scores_zero(index):
    await index.add([IndexEntry(vector=[0.0, 0.0], text="empty"), IndexEntry(vector=[1.0, 0.0], text="x")])

    results = await index.search([1.0, 0.0], 2)

    assert [r.text for r in results] == ["x", "empty"]
    assert results[1].score == 0.0


@pytest.mark.asyncio
async def test_contains_document(index):
    await index.add([IndexEntry(vector=[1.0, 0.0], text="t", metadata={"document_hash": "abc"})])

    assert await index.contains_document("abc")
    assert not await index.contains_document("def")


@pytest.mark.asyncio
async def test_concurrent_adds_and_searches(index):
    async def writer(n):
        await index.add([IndexEntry(vector=[1.0, float(n)], text=f"w{n}-{i}") for i in range(5)])

    async def reader():
        results = await index.search([1.0, 0.0], 3)
        assert all(r.text.startswith("w") for r in results)

    await asyncio.gather(*[writer(n) for n in range(10)], *[reader() for _ in range(10)])

    assert await index.count() == 50
