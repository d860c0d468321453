"""OpenAI-compatible LLM client wrapper with error handling."""
from typing import Any, Dict, List, Optional

import httpx
import structlog

from persona_rag import config
from persona_rag.errors import (
    EmbeddingProviderError,
    GenerationProviderError,
    ProviderError,
    QuotaExceededError,
    RAGError,
)

logger = structlog.get_logger()

# Markers the provider uses in error bodies when the account is out of quota
_QUOTA_MARKERS = ("insufficient_quota", "InsufficientQuotaError", "rate_limit_exceeded")


def translate_provider_error(exc: Exception, operation: str) -> RAGError:
    """Translate a raw transport/HTTP failure into the typed error taxonomy.

    This is the only place that inspects provider status codes and error
    bodies to recognise quota exhaustion.

    Args:
        exc: Exception raised by httpx or by payload decoding
        operation: "embedding", "generation" or another provider call name

    Returns:
        QuotaExceededError, EmbeddingProviderError, GenerationProviderError
        or ProviderError
    """
    if operation == "embedding":
        error_cls = EmbeddingProviderError
    elif operation == "generation":
        error_cls = GenerationProviderError
    else:
        error_cls = ProviderError

    if isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code
        body = exc.response.text
        if status_code == 429 or any(marker in body for marker in _QUOTA_MARKERS):
            return QuotaExceededError(cause=exc, provider_operation=operation)
        return error_cls(
            f"{operation} request failed with HTTP {status_code}: {body[:200]}",
            cause=exc,
        )

    return error_cls(f"{operation} request failed: {exc}", cause=exc)


class LLMClient:
    """Async client for an OpenAI-compatible embeddings/chat API."""

    def __init__(
        self,
        base_url: str = None,
        api_key: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            base_url: API base URL (defaults to config.LLM_BASE_URL)
            api_key: Bearer token (defaults to config.LLM_API_KEY)
            timeout: Request timeout in seconds
            transport: Optional httpx transport, e.g. httpx.MockTransport in tests
        """
        self.base_url = (base_url or config.LLM_BASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else config.LLM_API_KEY
        self.timeout = timeout or config.LLM_TIMEOUT
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        payload: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                timeout=timeout or self.timeout, transport=self.transport
            ) as client:
                response = await client.request(
                    method,
                    f"{self.base_url}{path}",
                    json=payload,
                    headers=self._headers(),
                )
                response.raise_for_status()
                return response.json()

        except httpx.HTTPStatusError as e:
            logger.error(
                "llm_http_error",
                operation=operation,
                status_code=e.response.status_code,
                error=str(e),
            )
            raise translate_provider_error(e, operation) from e
        except httpx.HTTPError as e:
            logger.error(
                "llm_connection_error",
                operation=operation,
                error=str(e),
                base_url=self.base_url,
            )
            raise translate_provider_error(e, operation) from e
        except ValueError as e:
            logger.error("llm_invalid_payload", operation=operation, error=str(e))
            raise translate_provider_error(e, operation) from e

    async def chat(
        self,
        messages: List[Dict[str, str]],
        model: str = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Send a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model to use (defaults to config.CHAT_MODEL)
            temperature: Sampling temperature
            max_tokens: Upper bound on generated tokens

        Returns:
            Response dict with 'choices'

        Raises:
            QuotaExceededError: If the provider reports rate/quota exhaustion
            GenerationProviderError: On any other failure
        """
        model = model or config.CHAT_MODEL

        payload: Dict[str, Any] = {"model": model, "messages": messages}
        if temperature is not None:
            payload["temperature"] = temperature
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens

        logger.info("llm_chat_request", model=model, message_count=len(messages))

        data = await self._request("POST", "/chat/completions", "generation", payload)

        logger.info("llm_chat_response", model=model, choices=len(data.get("choices", [])))

        return data

    async def embeddings(self, inputs: List[str], model: str = None) -> Dict[str, Any]:
        """Generate embeddings for a list of texts in one call.

        Args:
            inputs: Texts to embed
            model: Model to use (defaults to config.EMBEDDING_MODEL)

        Returns:
            Response dict with a 'data' list of {'index', 'embedding'}

        Raises:
            QuotaExceededError: If the provider reports rate/quota exhaustion
            EmbeddingProviderError: On any other failure
        """
        model = model or config.EMBEDDING_MODEL

        logger.debug("llm_embedding_request", model=model, input_count=len(inputs))

        data = await self._request(
            "POST", "/embeddings", "embedding", {"model": model, "input": inputs}
        )

        logger.debug("llm_embedding_response", model=model, count=len(data.get("data", [])))

        return data

    async def list_models(self) -> List[str]:
        """List model ids exposed by the provider.

        Raises:
            ProviderError: On API errors
        """
        data = await self._request("GET", "/models", "models", timeout=5.0)
        return [m["id"] for m in data.get("data", [])]
