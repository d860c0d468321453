"""Application configuration with sensible defaults."""
import os
from pathlib import Path

# Paths
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))

# Provider configuration (any OpenAI-compatible API)
LLM_BASE_URL = os.getenv("LLM_BASE_URL", "https://api.openai.com/v1")
LLM_API_KEY = os.getenv("LLM_API_KEY", os.getenv("OPENAI_API_KEY", ""))
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "60.0"))
CHAT_MODEL = os.getenv("CHAT_MODEL", "gpt-3.5-turbo")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-ada-002")
EMBEDDING_BATCH_SIZE = int(os.getenv("EMBEDDING_BATCH_SIZE", "64"))

# RAG parameters (character-based)
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "1000"))
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "200"))
CHAT_TOP_K = int(os.getenv("CHAT_TOP_K", "5"))
QUERY_TOP_K = int(os.getenv("QUERY_TOP_K", "3"))
SOURCE_PREVIEW_CHARS = int(os.getenv("SOURCE_PREVIEW_CHARS", "200"))

# Generation
GENERATION_MAX_TOKENS = int(os.getenv("GENERATION_MAX_TOKENS", "600"))
GENERATION_TEMPERATURE = float(os.getenv("GENERATION_TEMPERATURE", "0.7"))

# Vector index: "faiss" or "memory"
VECTOR_BACKEND = os.getenv("VECTOR_BACKEND", "faiss")
# Empty string keeps the FAISS index in memory only
VECTOR_PERSIST_DIR = os.getenv("VECTOR_PERSIST_DIR", "")
DEDUPLICATE_DOCUMENTS = os.getenv("DEDUPLICATE_DOCUMENTS", "false").lower() in ("1", "true", "yes")

# Persona
PERSONA_NAME = os.getenv("PERSONA_NAME", "Mallikarjuna Iytha")
PERSONA_ROLE = os.getenv("PERSONA_ROLE", "AI/ML Engineer and Technology Leader")
PERSONA_BACKGROUND = os.getenv(
    "PERSONA_BACKGROUND",
    "Experienced professional in artificial intelligence, machine learning, "
    "and technology leadership",
)
PERSONA_STYLE = os.getenv(
    "PERSONA_STYLE",
    "Professional, knowledgeable, and helpful with a focus on AI/ML and technology topics",
)

# Server
PORT = int(os.getenv("PORT", "5000"))

# Request limits
MAX_MESSAGE_LENGTH = int(os.getenv("MAX_MESSAGE_LENGTH", "2000"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
