"""Tests for persona response generation."""
import pytest

from persona_rag.errors import GenerationProviderError, QuotaExceededError, ValidationError
from persona_rag.persona import Persona
from persona_rag.rag.generator import PersonaResponseGenerator
from tests.fakes import FakeLLMClient


@pytest.fixture
def generator(fake_llm, persona) -> PersonaResponseGenerator:
    return PersonaResponseGenerator(
        fake_llm, persona, model="chat-model", max_tokens=600, temperature=0.7
    )


@pytest.mark.asyncio
async def test_generate_returns_completion(generator, fake_llm):
    response = await generator.generate("What do you do?", ["I build search."])

    assert response == fake_llm.reply


@pytest.mark.asyncio
async def test_prompt_structure(generator, fake_llm, persona):
    await generator.generate("What do you do?", ["most relevant", "less relevant"])

    messages = fake_llm.chat_calls[0]["messages"]
    system, user = messages

    assert [m["role"] for m in messages] == ["system", "user"]
    assert persona.name in system["content"]
    assert persona.role in system["content"]
    assert "first person" in system["content"]
    assert "Context:\nmost relevant\n\nless relevant\n\nQuestion: What do you do?" in user["content"]
    assert persona.background in user["content"]
    assert persona.style in user["content"]


@pytest.mark.asyncio
async def test_sampling_parameters_are_fixed(generator, fake_llm):
    await generator.generate("q", [])

    call = fake_llm.chat_calls[0]
    assert call["model"] == "chat-model"
    assert call["temperature"] == 0.7
    assert call["max_tokens"] == 600


@pytest.mark.asyncio
async def test_persona_override(generator, fake_llm):
    other = Persona(name="Grace Other", role="Admiral", background="Navy", style="Crisp")

    await generator.generate("q", [], persona=other)

    assert "Grace Other" in fake_llm.chat_calls[0]["messages"][0]["content"]


@pytest.mark.asyncio
async def test_quota_error_is_not_retried(generator, fake_llm):
    fake_llm.chat_error = QuotaExceededError(provider_operation="generation")

    with pytest.raises(QuotaExceededError):
        await generator.generate("q", ["ctx"])

    assert len(fake_llm.chat_calls) == 1


@pytest.mark.asyncio
async def test_provider_error_distinct_from_validation(generator, fake_llm):
    fake_llm.chat_error = GenerationProviderError("upstream down")

    with pytest.raises(GenerationProviderError) as excinfo:
        await generator.generate("q", ["ctx"])

    assert not isinstance(excinfo.value, ValidationError)


@pytest.mark.asyncio
async def test_empty_completion_is_provider_error(persona):
    generator = PersonaResponseGenerator(FakeLLMClient(reply=""), persona)

    with pytest.raises(GenerationProviderError):
        await generator.generate("q", [])


@pytest.mark.asyncio
async def test_malformed_completion_is_provider_error(persona):
    class NoChoicesClient(FakeLLMClient):
        async def chat(self, messages, **kwargs):
            return {"choices": []}

    generator = PersonaResponseGenerator(NoChoicesClient(), persona)

    with pytest.raises(GenerationProviderError):
        await generator.generate("q", [])
