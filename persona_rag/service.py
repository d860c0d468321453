"""RAG service: upload, chat, direct query, stats and health.

Composes the chunker, embedding client, vector index, retriever and
persona generator. Components are injected through ``RAGComponents`` and
built once at startup by ``build_service``.

Typed errors from lower layers pass through unchanged apart from the
operation name attached to them. Nothing is retried here.
"""
import hashlib
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import structlog

from persona_rag import config
from persona_rag.errors import RAGError, ValidationError
from persona_rag.llm_client import LLMClient
from persona_rag.memory import InMemorySessionStore, SessionStore
from persona_rag.persona import Persona, load_persona
from persona_rag.rag.chunker import TextChunker
from persona_rag.rag.embedder import EmbeddingClient
from persona_rag.rag.generator import PersonaResponseGenerator
from persona_rag.rag.retriever import Retriever, format_context
from persona_rag.rag.store import IndexEntry, InMemoryVectorIndex, SearchResult, VectorIndex
from persona_rag.rag.store_faiss import FAISSVectorIndex

logger = structlog.get_logger()

# Written by the pipeline on every indexed chunk
RESERVED_METADATA_KEYS = frozenset({"chunk_index", "document_hash"})


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class RAGComponents:
    """Everything the service talks to, constructed once per process."""

    llm_client: LLMClient
    chunker: TextChunker
    embedder: EmbeddingClient
    vector_index: VectorIndex
    retriever: Retriever
    generator: PersonaResponseGenerator
    persona: Persona
    sessions: SessionStore


@contextmanager
def _operation(name: str):
    """Attach the operation name to typed errors and log them once."""
    try:
        yield
    except RAGError as e:
        e.with_operation(name)
        logger.error(
            "rag_operation_failed",
            operation=name,
            error_type=type(e).__name__,
            error=e.message,
        )
        raise


class RAGService:
    """Pipeline orchestrator for the persona RAG backend."""

    def __init__(
        self,
        components: RAGComponents,
        chat_top_k: int = None,
        query_top_k: int = None,
        deduplicate: Optional[bool] = None,
        preview_chars: int = None,
    ):
        self.components = components
        self.chat_top_k = config.CHAT_TOP_K if chat_top_k is None else chat_top_k
        self.query_top_k = config.QUERY_TOP_K if query_top_k is None else query_top_k
        self.deduplicate = config.DEDUPLICATE_DOCUMENTS if deduplicate is None else deduplicate
        self.preview_chars = config.SOURCE_PREVIEW_CHARS if preview_chars is None else preview_chars

    @property
    def sessions(self) -> SessionStore:
        return self.components.sessions

    @staticmethod
    def _require_text(value: Any, message: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(message)
        return value

    async def upload_document(
        self, content: str, metadata: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Chunk, embed and index a document.

        All chunks are embedded before a single ``add`` call, so a failure
        at any stage leaves the index untouched.

        Returns:
            {"success", "message", "chunks", "metadata"}
        """
        with _operation("upload"):
            content = self._require_text(content, "Document content is required")
            metadata = dict(metadata or {})
            reserved = sorted(RESERVED_METADATA_KEYS.intersection(metadata))
            if reserved:
                raise ValidationError(f"Metadata keys are reserved: {', '.join(reserved)}")
            index = self.components.vector_index

            document_hash = hashlib.sha256(content.encode("utf-8")).hexdigest()

            if self.deduplicate and await index.contains_document(document_hash):
                logger.info("duplicate_document_skipped", document_hash=document_hash)
                return {
                    "success": True,
                    "message": "Document already indexed",
                    "chunks": 0,
                    "metadata": metadata,
                    "duplicate": True,
                }

            source_id = str(metadata.get("source") or f"document-{document_hash[:12]}")
            chunker = self.components.chunker
            chunks = chunker.split(content, source_id=source_id, metadata=metadata)

            vectors = await self.components.embedder.embed_batch([c.content for c in chunks])

            entries = [
                IndexEntry(
                    vector=vector,
                    text=chunk.content,
                    metadata={
                        **chunk.metadata,
                        "source": chunk.source_id,
                        "chunk_index": chunk.chunk_index,
                        "document_hash": document_hash,
                    },
                )
                for chunk, vector in zip(chunks, vectors)
            ]
            await index.add(entries)

            logger.info(
                "document_uploaded",
                source=source_id,
                **chunker.get_chunk_stats(chunks),
            )

            return {
                "success": True,
                "message": "Document uploaded successfully",
                "chunks": len(chunks),
                "metadata": metadata,
            }

    async def chat(self, message: str, session_id: Optional[str] = None) -> Dict[str, Any]:
        """Answer a chat message in persona, recording it in the session.

        A missing session id creates a new session. An unknown id is echoed
        back without recording anything.

        Returns:
            {"response", "sources", "sessionId"}
        """
        with _operation("chat"):
            message = self._require_text(message, "Message is required")
            results, response = await self._answer(message, self.chat_top_k)

            # A failed answer leaves the session untouched
            session_id, recording = self._resolve_session(session_id)
            if recording:
                self.sessions.add_message(session_id, message, "user")
                self.sessions.add_message(session_id, response, "assistant")

            logger.info(
                "chat_response_sent",
                session_id=session_id,
                response_length=len(response),
                num_sources=len(results),
            )

            return {
                "response": response,
                "sources": self._sources(results),
                "sessionId": session_id,
            }

    async def direct_query(self, query: str) -> Dict[str, Any]:
        """Answer a one-off query without session context.

        Returns:
            {"query", "response", "sources"}
        """
        with _operation("query"):
            query = self._require_text(query, "Query is required")
            results, response = await self._answer(query, self.query_top_k)
            return {
                "query": query,
                "response": response,
                "sources": self._sources(results),
            }

    async def get_stats(self) -> Dict[str, Any]:
        """Report index size and status. Never raises."""
        index = self.components.vector_index
        try:
            count = await index.count()
        except Exception as e:
            logger.error("get_stats_failed", error=str(e), error_type=type(e).__name__)
            return {
                "totalDocuments": 0,
                "vectorStoreStatus": "error",
                "error": str(e),
                "timestamp": _timestamp(),
            }

        return {
            "totalDocuments": count,
            "vectorStoreStatus": index.status,
            "timestamp": _timestamp(),
        }

    async def health_check(self) -> Dict[str, Any]:
        stats = await self.get_stats()
        health = {
            "status": "unhealthy" if stats["vectorStoreStatus"] == "error" else "healthy",
            "vectorStore": stats["vectorStoreStatus"],
            "documents": stats["totalDocuments"],
            "timestamp": _timestamp(),
        }
        if "error" in stats:
            health["error"] = stats["error"]
        return health

    async def readiness(self) -> Tuple[bool, Dict[str, Any]]:
        """Check that the provider answers and the index can be counted."""
        checks: Dict[str, Any] = {"status": "ready", "provider": False, "vectorStore": False}

        try:
            await self.components.llm_client.list_models()
            checks["provider"] = True
        except RAGError as e:
            checks["providerError"] = e.message

        stats = await self.get_stats()
        checks["vectorStore"] = stats["vectorStoreStatus"] != "error"
        if "error" in stats:
            checks["vectorStoreError"] = stats["error"]

        ready = checks["provider"] and checks["vectorStore"]
        if not ready:
            checks["status"] = "not_ready"
        checks["timestamp"] = _timestamp()
        return ready, checks

    def get_session_summary(self, session_id: str) -> Optional[Dict[str, Any]]:
        session = self.sessions.get(session_id)
        if session is None:
            return None
        summary = session.summary()
        summary.pop("metadata")
        return summary

    def _resolve_session(self, session_id: Optional[str]) -> Tuple[str, bool]:
        if not session_id:
            session = self.sessions.create()
            return session.id, True

        if self.sessions.get(session_id) is None:
            logger.warning("unknown_session_passthrough", session_id=session_id)
            return session_id, False

        return session_id, True

    async def _answer(self, text: str, k: int) -> Tuple[List[SearchResult], str]:
        results = await self.components.retriever.retrieve(text, k)
        response = await self.components.generator.generate(
            text, format_context(results), self.components.persona
        )
        return results, response

    def _sources(self, results: List[SearchResult]) -> List[Dict[str, Any]]:
        return [
            {
                "content": result.text[: self.preview_chars] + "..."
                if len(result.text) > self.preview_chars
                else result.text,
                "metadata": result.metadata,
                "score": round(result.score, 4),
            }
            for result in results
        ]


def build_vector_index(backend: str = None) -> VectorIndex:
    """Create the configured vector index backend."""
    backend = (backend or config.VECTOR_BACKEND).lower()

    if backend == "memory":
        return InMemoryVectorIndex()
    if backend == "faiss":
        persist_dir = Path(config.VECTOR_PERSIST_DIR) if config.VECTOR_PERSIST_DIR else None
        return FAISSVectorIndex(persist_dir=persist_dir)

    raise ValueError(f"Unknown vector backend: {backend}")


def build_service(
    llm_client: Optional[LLMClient] = None,
    vector_index: Optional[VectorIndex] = None,
    sessions: Optional[SessionStore] = None,
) -> RAGService:
    """Construct the service and its components from configuration."""
    llm_client = llm_client or LLMClient()
    vector_index = vector_index or build_vector_index()
    persona = load_persona()
    embedder = EmbeddingClient(llm_client)

    components = RAGComponents(
        llm_client=llm_client,
        chunker=TextChunker(),
        embedder=embedder,
        vector_index=vector_index,
        retriever=Retriever(embedder, vector_index, top_k=config.CHAT_TOP_K),
        generator=PersonaResponseGenerator(llm_client, persona),
        persona=persona,
        sessions=sessions or InMemorySessionStore(),
    )

    logger.info(
        "rag_service_built",
        vector_backend=type(vector_index).__name__,
        chat_model=components.generator.model,
        embedding_model=embedder.model,
        persona=persona.name,
    )

    return RAGService(components)
