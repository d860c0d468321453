"""Text chunking with overlap for RAG pipeline.

Implements character-based chunking over a separator hierarchy:
paragraph breaks, then sentence breaks, then whitespace, then a hard
character boundary.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import structlog

from persona_rag import config
from persona_rag.errors import EmptyInputError

logger = structlog.get_logger()

# Ordered from largest to smallest unit; a break goes after the separator
SEPARATOR_LEVELS: Tuple[Tuple[str, ...], ...] = (
    ("\n\n",),
    (". ", "! ", "? ", ".\n", "!\n", "?\n"),
    ("\n", " ", "\t"),
)


@dataclass(frozen=True)
class TextChunk:
    """A chunk of a document with position information."""

    content: str
    char_start: int
    char_end: int
    chunk_index: int
    source_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class TextChunker:
    """Character-based text chunker with overlap support."""

    def __init__(
        self,
        chunk_size: int = None,
        chunk_overlap: int = None,
    ):
        """Initialize the text chunker.

        Args:
            chunk_size: Maximum size of each chunk in characters (default from config)
            chunk_overlap: Overlap between chunks in characters (default from config)
        """
        self.chunk_size = chunk_size if chunk_size is not None else config.CHUNK_SIZE
        self.chunk_overlap = chunk_overlap if chunk_overlap is not None else config.CHUNK_OVERLAP
        self._validate(self.chunk_size, self.chunk_overlap)

        logger.info(
            "chunker_initialized",
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
        )

    @staticmethod
    def _validate(chunk_size: int, chunk_overlap: int) -> None:
        if chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {chunk_size}")
        if chunk_overlap < 0:
            raise ValueError(f"Overlap must not be negative, got {chunk_overlap}")
        if chunk_overlap >= chunk_size:
            raise ValueError(
                f"Overlap ({chunk_overlap}) must be less than "
                f"chunk size ({chunk_size})"
            )

    def split(
        self,
        text: str,
        chunk_size: int = None,
        chunk_overlap: int = None,
        source_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> List[TextChunk]:
        """Split text into overlapping chunks.

        Every chunk is an exact substring of ``text``. Joining the first chunk
        with ``text[prev.char_end:chunk.char_end]`` for each later chunk
        reconstructs the input.

        Args:
            text: Text to chunk
            chunk_size: Override for the configured chunk size
            chunk_overlap: Override for the configured overlap
            source_id: Label of the originating document
            metadata: Document metadata inherited by every chunk

        Returns:
            List of TextChunk objects in document order

        Raises:
            EmptyInputError: If text is empty or whitespace-only
        """
        if not text or not text.strip():
            raise EmptyInputError("Document text is empty")

        size = chunk_size if chunk_size is not None else self.chunk_size
        overlap = chunk_overlap if chunk_overlap is not None else self.chunk_overlap
        self._validate(size, overlap)

        metadata = dict(metadata or {})
        spans = self._spans(text, size, overlap)

        chunks = [
            TextChunk(
                content=text[start:end],
                char_start=start,
                char_end=end,
                chunk_index=index,
                source_id=source_id,
                metadata=metadata,
            )
            for index, (start, end) in enumerate(spans)
        ]

        logger.info(
            "text_chunked",
            text_length=len(text),
            chunk_count=len(chunks),
            avg_chunk_size=sum(len(c.content) for c in chunks) // len(chunks),
        )

        return chunks

    def _spans(self, text: str, size: int, overlap: int) -> List[Tuple[int, int]]:
        text_length = len(text)

        if text_length <= size:
            logger.debug(
                "text_shorter_than_chunk_size",
                text_length=text_length,
                chunk_size=size,
            )
            return [(0, text_length)]

        spans = []
        start = 0

        while True:
            if text_length - start <= size:
                spans.append((start, text_length))
                break

            end = self._find_break(text, start, size, overlap)
            spans.append((start, end))
            start = self._next_start(text, end, overlap)

        return spans

    @staticmethod
    def _find_break(text: str, start: int, size: int, overlap: int) -> int:
        """Return the end offset of the chunk starting at ``start``.

        The break must leave more than ``overlap`` characters in the chunk so
        the next chunk always advances.
        """
        window = text[start : start + size]

        for separators in SEPARATOR_LEVELS:
            best = -1
            for separator in separators:
                position = window.rfind(separator)
                if position == -1:
                    continue
                cut = position + len(separator)
                if cut > overlap and cut > best:
                    best = cut
            if best != -1:
                return start + best

        return start + size

    @staticmethod
    def _next_start(text: str, end: int, overlap: int) -> int:
        """Start of the next chunk, aligned forward to a word start."""
        if overlap == 0:
            return end

        candidate = end - overlap
        for position in range(candidate, end + 1):
            if position == 0 or text[position - 1].isspace():
                return position

        # No word start in the overlap region (one long token)
        return candidate

    def get_chunk_stats(self, chunks: List[TextChunk]) -> dict:
        """Get statistics about a set of chunks.

        Args:
            chunks: List of TextChunk objects

        Returns:
            Dictionary with chunk statistics
        """
        if not chunks:
            return {
                "chunk_count": 0,
                "total_chars": 0,
                "avg_chunk_size": 0,
                "min_chunk_size": 0,
                "max_chunk_size": 0,
            }

        chunk_sizes = [len(c.content) for c in chunks]

        return {
            "chunk_count": len(chunks),
            "total_chars": sum(chunk_sizes),
            "avg_chunk_size": sum(chunk_sizes) // len(chunks),
            "min_chunk_size": min(chunk_sizes),
            "max_chunk_size": max(chunk_sizes),
            "overlap": self.chunk_overlap,
        }
