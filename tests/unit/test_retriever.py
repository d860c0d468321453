"""Tests for the retriever."""
import pytest

from persona_rag.errors import IndexUnavailableError, QuotaExceededError
from persona_rag.rag.embedder import EmbeddingClient
from persona_rag.rag.retriever import Retriever, format_context
from persona_rag.rag.store import IndexEntry, InMemoryVectorIndex
from tests.fakes import embed_text


class UnreachableIndex(InMemoryVectorIndex):
    async def search(self, query_vector, k):
        raise IndexUnavailableError("backing store unreachable")


@pytest.fixture
def retriever(fake_llm, vector_index) -> Retriever:
    return Retriever(EmbeddingClient(fake_llm), vector_index, top_k=2)


async def seed(index, texts):
    await index.add([IndexEntry(vector=embed_text(t), text=t) for t in texts])


@pytest.mark.asyncio
async def test_retrieve_ranks_matching_text_first(retriever, vector_index):
    await seed(vector_index, ["cats purr softly", "rockets reach orbit", "dogs bark loudly"])

    results = await retriever.retrieve("rockets reach orbit", 3)

    assert results[0].text == "rockets reach orbit"
    assert len(results) == 3


@pytest.mark.asyncio
async def test_default_top_k(retriever, vector_index):
    await seed(vector_index, ["a b", "c d", "e f", "g h"])

    results = await retriever.retrieve("a b")

    assert len(results) == 2


@pytest.mark.asyncio
async def test_explicit_zero_k_returns_nothing(retriever, vector_index):
    await seed(vector_index, [f"entry {i}" for i in range(8)])

    assert await retriever.retrieve("entry", 0) == []


@pytest.mark.asyncio
async def test_explicit_k_is_an_upper_bound(retriever, vector_index):
    await seed(vector_index, [f"entry {i}" for i in range(8)])

    for k in (1, 3, 8, 20):
        assert len(await retriever.retrieve("entry", k)) == min(k, 8)


@pytest.mark.asyncio
async def test_query_is_embedded_every_time(retriever, vector_index, fake_llm):
    await seed(vector_index, ["alpha"])

    await retriever.retrieve("alpha")
    await retriever.retrieve("alpha")

    assert fake_llm.embedding_calls == [["alpha"], ["alpha"]]


@pytest.mark.asyncio
async def test_empty_index_returns_empty(retriever):
    assert await retriever.retrieve("anything") == []


@pytest.mark.asyncio
async def test_quota_error_propagates_unchanged(retriever, fake_llm):
    original = QuotaExceededError(provider_operation="embedding")
    fake_llm.embedding_error = original

    with pytest.raises(QuotaExceededError) as excinfo:
        await retriever.retrieve("q")

    assert excinfo.value is original


@pytest.mark.asyncio
async def test_index_error_propagates(fake_llm):
    retriever = Retriever(EmbeddingClient(fake_llm), UnreachableIndex())

    with pytest.raises(IndexUnavailableError):
        await retriever.retrieve("q")


@pytest.mark.asyncio
async def test_format_context_keeps_order(retriever, vector_index):
    await seed(vector_index, ["one two three", "one two", "one"])

    results = await retriever.retrieve("one two three", 3)

    assert format_context(results) == [r.text for r in results]
    assert format_context(results)[0] == "one two three"
