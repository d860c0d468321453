"""In-memory chat session storage."""
from persona_rag.memory.sessions import (
    ChatSession,
    InMemorySessionStore,
    Message,
    SessionStore,
)

__all__ = ["ChatSession", "InMemorySessionStore", "Message", "SessionStore"]
