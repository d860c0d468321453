"""Persona-constrained response generation."""
from typing import List, Optional

import structlog

from persona_rag import config
from persona_rag.errors import GenerationProviderError
from persona_rag.llm_client import LLMClient
from persona_rag.persona import Persona

logger = structlog.get_logger()

CONTEXT_SEPARATOR = "\n\n"


class PersonaResponseGenerator:
    """Builds the persona prompt and calls the chat model once."""

    def __init__(
        self,
        llm_client: LLMClient,
        persona: Persona,
        model: str = None,
        max_tokens: int = None,
        temperature: float = None,
    ):
        self.llm_client = llm_client
        self.persona = persona
        self.model = model or config.CHAT_MODEL
        self.max_tokens = config.GENERATION_MAX_TOKENS if max_tokens is None else max_tokens
        self.temperature = temperature if temperature is not None else config.GENERATION_TEMPERATURE

    def build_messages(self, query: str, context: List[str], persona: Persona) -> List[dict]:
        """Return the system and user messages for one request.

        Context chunks keep their retrieval order, most relevant first.
        """
        joined_context = CONTEXT_SEPARATOR.join(context)
        return [
            {"role": "system", "content": persona.system_prompt()},
            {"role": "user", "content": persona.user_prompt(query, joined_context)},
        ]

    async def generate(
        self,
        query: str,
        context: List[str],
        persona: Optional[Persona] = None,
    ) -> str:
        """Generate a first-person answer grounded in the given context.

        Args:
            query: The user's question
            context: Retrieved chunk texts, best first
            persona: Persona override (defaults to the configured persona)

        Returns:
            The generated response text

        Raises:
            QuotaExceededError: If the provider reports quota exhaustion
            GenerationProviderError: On any other failure or an empty completion
        """
        persona = persona or self.persona
        messages = self.build_messages(query, context, persona)

        logger.info(
            "persona_generation_started",
            persona=persona.name,
            context_chunks=len(context),
            query_length=len(query),
        )

        response = await self.llm_client.chat(
            messages,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

        try:
            content = response["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            logger.error("malformed_completion_response", error=str(e))
            raise GenerationProviderError(f"Malformed completion response: {e}", cause=e) from e

        if not content:
            logger.error("empty_completion_response", model=self.model)
            raise GenerationProviderError("Empty response from LLM")

        logger.info("persona_generation_completed", response_length=len(content))

        return content
