"""Error taxonomy for the RAG pipeline.

Lower layers raise these typed errors. The service attaches the operation
name and re-raises; the HTTP layer maps ``status_code`` to the response.
"""
from typing import Optional

QUOTA_HINT = "Please check your billing or try again later."


class RAGError(Exception):
    """Base class for all pipeline errors."""

    status_code = 500
    title = "Internal server error"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.operation: Optional[str] = None

    def with_operation(self, operation: str) -> "RAGError":
        """Attach the name of the service operation that failed."""
        if self.operation is None:
            self.operation = operation
        return self

    def to_dict(self) -> dict:
        return {"error": self.title, "message": self.message}


class ValidationError(RAGError):
    """Caller input is missing or malformed."""

    status_code = 400
    title = "Validation error"


class EmptyInputError(ValidationError):
    """Text is empty or whitespace-only."""


class QuotaExceededError(RAGError):
    """The upstream provider reported a rate or billing limit."""

    status_code = 503
    title = "Quota exceeded"

    def __init__(
        self,
        message: str = f"API quota exceeded. {QUOTA_HINT}",
        cause: Optional[BaseException] = None,
        provider_operation: Optional[str] = None,
    ):
        super().__init__(message, cause)
        self.provider_operation = provider_operation


class ProviderError(RAGError):
    """Generic upstream provider failure."""

    status_code = 502
    title = "Upstream provider error"


class EmbeddingProviderError(ProviderError):
    """Embedding call failed."""


class GenerationProviderError(ProviderError):
    """Chat completion call failed."""


class IndexUnavailableError(RAGError):
    """The vector index backing store cannot be reached or read."""

    status_code = 503
    title = "Vector index unavailable"


class DimensionMismatchError(IndexUnavailableError):
    """A vector does not match the dimension of the index."""
