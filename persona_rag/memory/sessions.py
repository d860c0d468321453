"""Chat session storage.

Sessions live only in process memory and are lost on restart.
``SessionStore`` is the seam for a persistent backend.
"""
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

import structlog

logger = structlog.get_logger()


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Message:
    """A single message in a chat session."""

    id: str
    content: str
    type: str
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "type": self.type,
            "timestamp": self.timestamp,
        }


@dataclass
class ChatSession:
    """An ordered conversation with free-form metadata."""

    id: str
    created_at: str
    messages: List[Message] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "createdAt": self.created_at,
            "messages": [m.to_dict() for m in self.messages],
            "metadata": dict(self.metadata),
        }

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "createdAt": self.created_at,
            "messageCount": len(self.messages),
            "metadata": dict(self.metadata),
        }


class SessionStore(Protocol):
    """CRUD over chat sessions."""

    def create(self, metadata: Optional[Dict[str, Any]] = None) -> ChatSession: ...

    def get(self, session_id: str) -> Optional[ChatSession]: ...

    def add_message(self, session_id: str, content: str, type: str = "user") -> Optional[Message]: ...

    def delete(self, session_id: str) -> bool: ...

    def list_sessions(self) -> List[ChatSession]: ...


class InMemorySessionStore:
    """Session store backed by a dict keyed by session id."""

    def __init__(self):
        self._sessions: Dict[str, ChatSession] = {}
        self._lock = threading.Lock()

    def create(self, metadata: Optional[Dict[str, Any]] = None) -> ChatSession:
        """Create a new session with a fresh uuid4 id."""
        session = ChatSession(
            id=str(uuid.uuid4()),
            created_at=utc_now(),
            metadata=dict(metadata or {}),
        )
        with self._lock:
            self._sessions[session.id] = session
        logger.info("chat_session_created", session_id=session.id)
        return session

    def get(self, session_id: str) -> Optional[ChatSession]:
        return self._sessions.get(session_id)

    def add_message(self, session_id: str, content: str, type: str = "user") -> Optional[Message]:
        """Append a message to a session.

        Returns:
            The stored message, or None if the session does not exist
        """
        message = Message(id=str(uuid.uuid4()), content=content, type=type, timestamp=utc_now())
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            session.messages.append(message)

        logger.info("chat_message_added", session_id=session_id, type=type, message_id=message.id)
        return message

    def delete(self, session_id: str) -> bool:
        with self._lock:
            deleted = self._sessions.pop(session_id, None) is not None
        if deleted:
            logger.info("chat_session_deleted", session_id=session_id)
        return deleted

    def list_sessions(self) -> List[ChatSession]:
        """All sessions in creation order."""
        with self._lock:
            return list(self._sessions.values())
