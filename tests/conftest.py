"""Pytest configuration and fixtures."""
import pytest

from persona_rag.memory import InMemorySessionStore
from persona_rag.persona import Persona
from persona_rag.rag.store import InMemoryVectorIndex
from persona_rag.service import build_service
from tests.fakes import FakeLLMClient


@pytest.fixture
def fake_llm() -> FakeLLMClient:
    """Fake provider client with deterministic embeddings."""
    return FakeLLMClient()


@pytest.fixture
def persona() -> Persona:
    """A test persona."""
    return Persona(
        name="Ada Example",
        role="Staff Engineer",
        background="Fifteen years building search systems",
        style="Direct and friendly",
    )


@pytest.fixture
def vector_index() -> InMemoryVectorIndex:
    return InMemoryVectorIndex()


@pytest.fixture
def service(fake_llm, vector_index):
    """RAG service wired to the fake provider and an in-memory index."""
    return build_service(
        llm_client=fake_llm,
        vector_index=vector_index,
        sessions=InMemorySessionStore(),
    )


@pytest.fixture
def sample_document() -> str:
    """A multi-paragraph document longer than one chunk."""
    paragraphs = [
        "I started my career writing compilers for embedded devices. "
        "That work taught me to care about every allocation.",
        "Later I moved into machine learning infrastructure. "
        "We built feature stores and model registries for hundreds of teams.",
        "Today I lead a group that ships retrieval systems. "
        "Vector search, ranking, and evaluation are the core of our work.",
    ]
    return "\n\n".join(p * 4 for p in paragraphs)
