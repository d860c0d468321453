"""FAISS vector store for semantic search.

Handles:
- Dimension detection from the first added batch
- Exact inner-product search over L2-normalized vectors (cosine similarity)
- Optional persistence of the index and its entry rows
"""
import json
import os
import shutil
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import faiss
import structlog

from persona_rag.errors import IndexUnavailableError
from persona_rag.rag.store import IndexEntry, SearchResult, to_matrix

logger = structlog.get_logger()


class FAISSVectorIndex:
    """FAISS-based vector index with optional on-disk persistence.

    Rows are stored as vectors in ``vectors.index`` and as
    ``{text, metadata}`` in ``entries.json``, in the same order.
    """

    def __init__(self, persist_dir: Optional[Path] = None, dimension: Optional[int] = None):
        """Initialize the FAISS vector index.

        Args:
            persist_dir: Directory holding the index files (None = memory only)
            dimension: Embedding dimension (detected on first add if not provided)
        """
        self.persist_dir = Path(persist_dir) if persist_dir else None
        self.dimension: Optional[int] = None
        self.index: Optional[faiss.Index] = None

        self._texts: List[str] = []
        self._metadata: List[Dict[str, Any]] = []
        self._lock = threading.Lock()
        self._loaded = self.persist_dir is None

        if dimension is not None:
            self._init_new_index(dimension)

        logger.info(
            "faiss_store_initialized",
            persist_dir=str(self.persist_dir) if self.persist_dir else None,
        )

    @property
    def index_path(self) -> Optional[Path]:
        return self.persist_dir / "vectors.index" if self.persist_dir else None

    @property
    def entries_path(self) -> Optional[Path]:
        return self.persist_dir / "entries.json" if self.persist_dir else None

    @property
    def status(self) -> str:
        return "active" if self.index is not None else "inactive"

    def _init_new_index(self, dimension: int) -> None:
        self.dimension = dimension
        # Exact search; inner product equals cosine on normalized vectors
        self.index = faiss.IndexFlatIP(dimension)
        logger.info("faiss_index_initialized", dimension=dimension, index_type="IndexFlatIP")

    def _ensure_loaded(self) -> None:
        """Load persisted state on first use. Caller holds the lock."""
        if self._loaded:
            return

        index_exists = self.index_path.exists()
        entries_exists = self.entries_path.exists()

        if index_exists and entries_exists:
            self._load()
        elif index_exists or entries_exists:
            raise IndexUnavailableError(
                f"Incomplete vector index in {self.persist_dir}: "
                "expected both vectors.index and entries.json"
            )
        else:
            logger.info("no_index_found_initializing_new", persist_dir=str(self.persist_dir))

        self._loaded = True

    def _load(self) -> None:
        try:
            with open(self.entries_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            index = faiss.read_index(str(self.index_path))
        except (OSError, ValueError, RuntimeError) as e:
            logger.error("faiss_index_load_failed", path=str(self.index_path), error=str(e))
            raise IndexUnavailableError(f"Failed to load vector index: {e}", cause=e) from e

        entries = data.get("entries", [])
        if index.ntotal != len(entries) or index.d != data.get("dimension"):
            raise IndexUnavailableError(
                f"Vector index out of sync: {index.ntotal} vectors (dim={index.d}), "
                f"{len(entries)} entries (dim={data.get('dimension')})"
            )

        self.index = index
        self.dimension = index.d
        self._texts = [entry["text"] for entry in entries]
        self._metadata = [entry.get("metadata", {}) for entry in entries]

        logger.info("faiss_index_loaded", dimension=self.dimension, vector_count=index.ntotal)

    def _save(self) -> None:
        """Write index and entries. Caller holds the lock.

        Both files are written to temporaries first. If the entries file
        cannot be swapped in, the previous vectors file is put back so the
        pair on disk always describes the same rows.
        """
        self.persist_dir.mkdir(parents=True, exist_ok=True)

        index_tmp = self.index_path.with_suffix(".index.tmp")
        entries_tmp = self.entries_path.with_suffix(".json.tmp")
        index_backup = self.index_path.with_suffix(".index.bak")

        try:
            faiss.write_index(self.index, str(index_tmp))
            with open(entries_tmp, "w", encoding="utf-8") as f:
                json.dump(
                    {
                        "dimension": self.dimension,
                        "entries": [
                            {"text": text, "metadata": metadata}
                            for text, metadata in zip(self._texts, self._metadata)
                        ],
                    },
                    f,
                )

            had_index = self.index_path.exists()
            if had_index:
                shutil.copyfile(self.index_path, index_backup)

            os.replace(index_tmp, self.index_path)
            try:
                os.replace(entries_tmp, self.entries_path)
            except OSError:
                if had_index:
                    os.replace(index_backup, self.index_path)
                else:
                    self.index_path.unlink()
                logger.error("faiss_index_files_restored", index_path=str(self.index_path))
                raise
        finally:
            for path in (index_tmp, entries_tmp, index_backup):
                path.unlink(missing_ok=True)

        logger.info("faiss_index_saved", index_path=str(self.index_path), vector_count=self.index.ntotal)

    def _rollback(self, start_id: int) -> None:
        self.index.remove_ids(faiss.IDSelectorRange(start_id, self.index.ntotal))
        del self._texts[start_id:]
        del self._metadata[start_id:]
        logger.warning("faiss_add_rolled_back", vector_count=self.index.ntotal)

    async def add(self, entries: Sequence[IndexEntry]) -> List[int]:
        """Append entries to the index as a single batch.

        Raises:
            DimensionMismatchError: If vectors do not match the index dimension
            IndexUnavailableError: If persisted state cannot be read or written
        """
        if not entries:
            return []

        with self._lock:
            self._ensure_loaded()

            vectors = to_matrix([entry.vector for entry in entries], self.dimension)
            if self.index is None:
                self._init_new_index(vectors.shape[1])

            start_id = self.index.ntotal
            self.index.add(vectors)
            self._texts.extend(entry.text for entry in entries)
            self._metadata.extend(dict(entry.metadata) for entry in entries)

            if self.persist_dir is not None:
                try:
                    self._save()
                except (OSError, RuntimeError, TypeError) as e:
                    self._rollback(start_id)
                    logger.error("faiss_index_save_failed", error=str(e))
                    raise IndexUnavailableError(f"Failed to persist vector index: {e}", cause=e) from e

            total = self.index.ntotal

        logger.info("vectors_added", count=len(entries), total_vectors=total)

        return list(range(start_id, start_id + len(entries)))

    async def search(self, query_vector: Sequence[float], k: int) -> List[SearchResult]:
        """Search for the k most similar entries.

        Returns:
            Results sorted by descending score, ties by insertion order
        """
        with self._lock:
            self._ensure_loaded()

            if self.index is None or self.index.ntotal == 0 or k <= 0:
                return []

            query = to_matrix([query_vector], self.dimension)
            top_k = min(k, self.index.ntotal)
            scores, ids = self.index.search(query, top_k)

            hits = sorted(
                ((int(i), float(s)) for i, s in zip(ids[0], scores[0]) if i != -1),
                key=lambda hit: (-hit[1], hit[0]),
            )
            results = [
                SearchResult(
                    entry_id=i,
                    text=self._texts[i],
                    metadata=dict(self._metadata[i]),
                    score=score,
                )
                for i, score in hits
            ]

        logger.info("vector_search_completed", top_k=top_k, results_found=len(results))

        return results

    async def count(self) -> int:
        with self._lock:
            self._ensure_loaded()
            return self.index.ntotal if self.index is not None else 0

    async def contains_document(self, document_hash: str) -> bool:
        with self._lock:
            self._ensure_loaded()
            return any(m.get("document_hash") == document_hash for m in self._metadata)

    async def reset(self) -> None:
        """Drop every entry and delete persisted files (for full re-ingest)."""
        with self._lock:
            logger.warning("rebuilding_index", persist_dir=str(self.persist_dir))

            for path in (self.index_path, self.entries_path):
                if path is not None and path.exists():
                    path.unlink()
                    logger.info("deleted_existing_index_file", path=str(path))

            self.index = None
            self.dimension = None
            self._texts = []
            self._metadata = []
            self._loaded = True
