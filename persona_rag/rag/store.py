"""Vector index interface and exact in-memory implementation.

Similarity is cosine similarity, computed as the dot product of
L2-normalized float32 vectors. Ties are broken by insertion order.
"""
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

import numpy as np
import structlog

from persona_rag.errors import DimensionMismatchError

logger = structlog.get_logger()


@dataclass(frozen=True)
class IndexEntry:
    """A stored (vector, text, metadata) tuple."""

    vector: Sequence[float]
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SearchResult:
    """An index entry annotated with its similarity to a query."""

    entry_id: int
    text: str
    metadata: Dict[str, Any]
    score: float


class VectorIndex(Protocol):
    """Storage supporting nearest-neighbour search over embeddings."""

    @property
    def status(self) -> str:
        """"active" once a vector space exists, otherwise "inactive"."""

    async def add(self, entries: Sequence[IndexEntry]) -> List[int]:
        """Append entries as one atomic batch and return their ids."""

    async def search(self, query_vector: Sequence[float], k: int) -> List[SearchResult]:
        """Return up to k entries ranked by descending cosine similarity."""

    async def count(self) -> int:
        """Total number of stored entries."""

    async def contains_document(self, document_hash: str) -> bool:
        """Whether any entry carries the given ``document_hash`` metadata."""


def to_matrix(vectors: Sequence[Sequence[float]], dimension: Optional[int] = None) -> np.ndarray:
    """Convert vectors to an L2-normalized float32 matrix.

    Zero vectors stay zero and score 0 against every query.

    Raises:
        DimensionMismatchError: If rows are ragged or do not match ``dimension``
    """
    try:
        matrix = np.asarray(vectors, dtype=np.float32)
    except ValueError as e:
        raise DimensionMismatchError(f"Vectors have inconsistent dimensions: {e}", cause=e) from e

    if matrix.ndim != 2 or matrix.shape[1] == 0:
        raise DimensionMismatchError(f"Expected a 2-d array of vectors, got shape {matrix.shape}")

    if dimension is not None and matrix.shape[1] != dimension:
        raise DimensionMismatchError(
            f"Embedding dimension mismatch: expected {dimension}, got {matrix.shape[1]}"
        )

    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return np.ascontiguousarray(matrix / norms, dtype=np.float32)


class InMemoryVectorIndex:
    """Exact cosine-similarity index held in a numpy matrix.

    Appends build a new (matrix, entries) snapshot under a lock and publish
    it with a single assignment, so readers never see a partial batch.
    """

    def __init__(self, dimension: Optional[int] = None):
        self.dimension = dimension
        self._lock = threading.Lock()
        self._snapshot: Tuple[np.ndarray, Tuple[IndexEntry, ...]] = (
            np.empty((0, dimension or 0), dtype=np.float32),
            (),
        )

    @property
    def status(self) -> str:
        return "active" if self.dimension is not None else "inactive"

    async def add(self, entries: Sequence[IndexEntry]) -> List[int]:
        if not entries:
            return []

        stored = tuple(
            IndexEntry(
                vector=tuple(float(x) for x in entry.vector),
                text=entry.text,
                metadata=dict(entry.metadata),
            )
            for entry in entries
        )

        with self._lock:
            matrix = to_matrix([entry.vector for entry in stored], self.dimension)
            current_matrix, current_entries = self._snapshot
            start_id = len(current_entries)

            if start_id:
                matrix = np.vstack([current_matrix, matrix])

            self._snapshot = (matrix, current_entries + stored)
            self.dimension = matrix.shape[1]

        logger.info("vectors_added", count=len(stored), total_vectors=start_id + len(stored))

        return list(range(start_id, start_id + len(stored)))

    async def search(self, query_vector: Sequence[float], k: int) -> List[SearchResult]:
        matrix, entries = self._snapshot

        if not entries or k <= 0:
            return []

        query = to_matrix([query_vector], self.dimension)[0]
        scores = matrix @ query
        order = np.argsort(-scores, kind="stable")[:k]

        logger.info("vector_search_completed", top_k=k, results_found=len(order))

        return [
            SearchResult(
                entry_id=int(i),
                text=entries[i].text,
                metadata=dict(entries[i].metadata),
                score=float(scores[i]),
            )
            for i in order
        ]

    async def count(self) -> int:
        return len(self._snapshot[1])

    async def contains_document(self, document_hash: str) -> bool:
        return any(
            entry.metadata.get("document_hash") == document_hash
            for entry in self._snapshot[1]
        )
