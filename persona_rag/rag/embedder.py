"""Embedding client for the RAG pipeline.

Thin adapter over LLMClient.embeddings that batches inputs and
guarantees one vector per input, in input order. Embeddings are never
cached; identical texts are re-embedded on every call.
"""
from typing import List, Optional

import structlog

from persona_rag import config
from persona_rag.errors import EmbeddingProviderError, EmptyInputError
from persona_rag.llm_client import LLMClient

logger = structlog.get_logger()


class EmbeddingClient:
    """Converts text into fixed-dimension vectors."""

    def __init__(
        self,
        llm_client: LLMClient,
        model: str = None,
        batch_size: int = None,
    ):
        """Initialize the embedding client.

        Args:
            llm_client: Provider client used for the network calls
            model: Embedding model name (default from config)
            batch_size: Maximum number of texts per provider call
        """
        self.llm_client = llm_client
        self.model = model or config.EMBEDDING_MODEL
        self.batch_size = batch_size or config.EMBEDDING_BATCH_SIZE
        self.dimension: Optional[int] = None

    async def embed(self, text: str) -> List[float]:
        """Embed a single text.

        Raises:
            EmptyInputError: If text is empty
            QuotaExceededError: If the provider reports quota exhaustion
            EmbeddingProviderError: On any other provider failure
        """
        if not text:
            raise EmptyInputError("Cannot embed empty text")

        vectors = await self._embed_call([text])
        return vectors[0]

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed many texts, one provider call per batch.

        Args:
            texts: Texts to embed

        Returns:
            One vector per input text, in the same order
        """
        if not texts:
            return []

        embeddings: List[List[float]] = []

        for i in range(0, len(texts), self.batch_size):
            batch = texts[i : i + self.batch_size]
            embeddings.extend(await self._embed_call(batch))

            logger.debug(
                "embeddings_batch_generated",
                batch_size=len(batch),
                total_so_far=len(embeddings),
            )

        return embeddings

    async def _embed_call(self, texts: List[str]) -> List[List[float]]:
        response = await self.llm_client.embeddings(texts, model=self.model)

        try:
            items = sorted(response["data"], key=lambda item: item["index"])
            vectors = [list(item["embedding"]) for item in items]
        except (KeyError, TypeError) as e:
            raise EmbeddingProviderError(f"Malformed embedding response: {e}", cause=e) from e

        if len(vectors) != len(texts):
            raise EmbeddingProviderError(
                f"Embedding count mismatch: sent {len(texts)}, received {len(vectors)}"
            )

        for vector in vectors:
            if not vector:
                raise EmbeddingProviderError("Empty embedding returned from provider")
            if self.dimension is None:
                self.dimension = len(vector)
                logger.info("embedding_dimension_detected", dimension=self.dimension, model=self.model)
            elif len(vector) != self.dimension:
                raise EmbeddingProviderError(
                    f"Embedding dimension changed: expected {self.dimension}, got {len(vector)}"
                )

        return vectors
