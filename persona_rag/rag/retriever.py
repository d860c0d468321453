"""Retriever for semantic search over indexed documents.

Embeds the query and runs a top-k search on the vector index. No
caching and no query rewriting; provider and index errors propagate
unchanged so callers can match on their type.
"""
from typing import List, Optional

import structlog

from persona_rag import config
from persona_rag.rag.embedder import EmbeddingClient
from persona_rag.rag.store import SearchResult, VectorIndex

logger = structlog.get_logger()


class Retriever:
    """Semantic retriever for RAG pipeline."""

    def __init__(
        self,
        embedder: EmbeddingClient,
        vector_index: VectorIndex,
        top_k: int = None,
    ):
        """Initialize the retriever.

        Args:
            embedder: Client used to embed queries
            vector_index: Index searched for similar chunks
            top_k: Default number of results (default from config)
        """
        self.embedder = embedder
        self.vector_index = vector_index
        self.top_k = config.CHAT_TOP_K if top_k is None else top_k

        logger.info("retriever_initialized", top_k=self.top_k)

    async def retrieve(self, query: str, k: Optional[int] = None) -> List[SearchResult]:
        """Retrieve the chunks most similar to a query.

        Args:
            query: User query text
            k: Number of results to return (overrides default)

        Returns:
            List of SearchResult objects, best first

        Raises:
            QuotaExceededError: If embedding the query hits a provider limit
            EmbeddingProviderError: If embedding the query fails
            IndexUnavailableError: If the index cannot be searched
        """
        k = self.top_k if k is None else k

        logger.info("retrieval_started", query_length=len(query), top_k=k)

        query_embedding = await self.embedder.embed(query)
        results = await self.vector_index.search(query_embedding, k)

        logger.info(
            "retrieval_completed",
            query_length=len(query),
            results_returned=len(results),
            top_score=results[0].score if results else None,
        )

        return results


def format_context(results: List[SearchResult]) -> List[str]:
    """Chunk texts in retrieval order, ready for the generator."""
    return [result.text for result in results]
