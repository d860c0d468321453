"""Tests for the text chunker."""
import pytest

from persona_rag.errors import EmptyInputError, ValidationError
from persona_rag.rag.chunker import TextChunker


def reconstruct(chunks):
    """Join each chunk's non-overlap region."""
    text = chunks[0].content
    for previous, chunk in zip(chunks, chunks[1:]):
        text += chunk.content[previous.char_end - chunk.char_start:]
    return text


def test_short_text_is_single_chunk():
    chunker = TextChunker(chunk_size=1000, chunk_overlap=200)

    chunks = chunker.split("0123456789")

    assert len(chunks) == 1
    assert chunks[0].content == "0123456789"
    assert chunks[0].chunk_index == 0
    assert (chunks[0].char_start, chunks[0].char_end) == (0, 10)


@pytest.mark.parametrize("text", ["", "   ", "\n\n\t "])
def test_empty_text_raises(text):
    chunker = TextChunker(chunk_size=100, chunk_overlap=10)

    with pytest.raises(EmptyInputError):
        chunker.split(text)


def test_empty_input_is_a_validation_error():
    assert issubclass(EmptyInputError, ValidationError)


def test_invalid_overlap_rejected():
    with pytest.raises(ValueError):
        TextChunker(chunk_size=100, chunk_overlap=100)


def test_small_sentences_scenario():
    text = "Alpha Beta. Gamma Delta."
    chunker = TextChunker(chunk_size=10, chunk_overlap=2)

    chunks = chunker.split(text)

    assert len(chunks) >= 3
    assert all(len(c.content) <= 10 for c in chunks)
    for previous, chunk in zip(chunks, chunks[1:]):
        assert previous.char_end - chunk.char_start <= 2
    assert reconstruct(chunks) == text


def test_chunks_reconstruct_original(sample_document):
    chunker = TextChunker(chunk_size=200, chunk_overlap=40)

    chunks = chunker.split(sample_document)

    assert len(chunks) > 1
    assert reconstruct(chunks) == sample_document
    assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
    for chunk in chunks:
        assert chunk.content == sample_document[chunk.char_start:chunk.char_end]


def test_chunk_length_and_overlap_bounds(sample_document):
    chunker = TextChunker(chunk_size=150, chunk_overlap=30)

    chunks = chunker.split(sample_document)

    for chunk in chunks:
        assert len(chunk.content) <= 150
    for previous, chunk in zip(chunks, chunks[1:]):
        shared = previous.char_end - chunk.char_start
        assert 0 <= shared <= 30
        assert chunk.char_end > previous.char_end


def test_prefers_paragraph_breaks():
    first = "First paragraph has a few words. It ends here."
    second = "Second paragraph continues the story for a while longer."
    text = f"{first}\n\n{second}"
    chunker = TextChunker(chunk_size=70, chunk_overlap=5)

    chunks = chunker.split(text)

    assert chunks[0].content == f"{first}\n\n"


def test_prefers_sentence_over_whitespace():
    text = "One two three. Four five six seven eight nine ten eleven"
    chunker = TextChunker(chunk_size=30, chunk_overlap=4)

    chunks = chunker.split(text)

    assert chunks[0].content == "One two three. "


def test_hard_boundary_for_long_token():
    text = "x" * 25
    chunker = TextChunker(chunk_size=10, chunk_overlap=3)

    chunks = chunker.split(text)

    assert [len(c.content) for c in chunks[:-1]] == [10] * (len(chunks) - 1)
    for previous, chunk in zip(chunks, chunks[1:]):
        assert previous.char_end - chunk.char_start == 3
    assert reconstruct(chunks) == text


def test_overlap_is_aligned_to_word_start():
    text = " ".join(f"word{i:02d}" for i in range(40))
    chunker = TextChunker(chunk_size=50, chunk_overlap=15)

    chunks = chunker.split(text)

    for chunk in chunks[1:]:
        assert text[chunk.char_start - 1].isspace()


def test_source_and_metadata_inherited():
    chunker = TextChunker(chunk_size=20, chunk_overlap=5)

    chunks = chunker.split(
        "alpha beta gamma delta epsilon zeta eta theta",
        source_id="notes.txt",
        metadata={"author": "ada"},
    )

    assert all(c.source_id == "notes.txt" for c in chunks)
    assert all(c.metadata == {"author": "ada"} for c in chunks)


def test_per_call_size_override():
    chunker = TextChunker(chunk_size=1000, chunk_overlap=200)

    chunks = chunker.split("Alpha Beta. Gamma Delta.", chunk_size=10, chunk_overlap=2)

    assert len(chunks) > 1


def test_chunk_stats():
    chunker = TextChunker(chunk_size=10, chunk_overlap=2)
    chunks = chunker.split("Alpha Beta. Gamma Delta.")

    stats = chunker.get_chunk_stats(chunks)

    assert stats["chunk_count"] == len(chunks)
    assert stats["max_chunk_size"] <= 10
    assert chunker.get_chunk_stats([])["chunk_count"] == 0
