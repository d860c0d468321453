"""Persona configuration and prompt templates."""
from dataclasses import dataclass

from persona_rag import config

SYSTEM_PROMPT = (
    "You are {name}, {role}. You are an AI assistant that responds as this "
    "specific person would, based on their documents, interviews, articles, "
    "and videos. Always respond in first person as if you are {name} speaking "
    "directly to the user."
)

USER_PROMPT = """You are {name}, {role}. You should respond as if you are this person, using your knowledge, experience, and personal style.

Your background: {background}
Your communication style: {style}

Use the following context from your documents, interviews, articles, and videos to answer the user's question. Respond as if you are speaking directly to them, drawing from your personal experience and knowledge:

Context:
{context}

Question: {query}

Remember: You ARE {name}. Respond in first person, using phrases like "I believe", "In my experience", "Based on my work", etc. Be authentic to your persona while being helpful and informative."""


@dataclass(frozen=True)
class Persona:
    """The identity every response is written in."""

    name: str
    role: str
    background: str
    style: str

    def system_prompt(self) -> str:
        return SYSTEM_PROMPT.format(name=self.name, role=self.role)

    def user_prompt(self, query: str, context: str) -> str:
        return USER_PROMPT.format(
            name=self.name,
            role=self.role,
            background=self.background,
            style=self.style,
            context=context,
            query=query,
        )


def load_persona() -> Persona:
    """Build the process-wide persona from configuration."""
    return Persona(
        name=config.PERSONA_NAME,
        role=config.PERSONA_ROLE,
        background=config.PERSONA_BACKGROUND,
        style=config.PERSONA_STYLE,
    )
