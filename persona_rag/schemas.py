"""Request models for the HTTP API."""
from typing import Any, ClassVar, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from persona_rag import config
from persona_rag.errors import ValidationError

RequestModel = TypeVar("RequestModel", bound="APIRequest")

# Error types that mean "the required field is absent or blank"
_REQUIRED_ERRORS = {"missing", "value_error"}


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


class APIRequest(BaseModel):
    """Base for request bodies; ``required_message`` is the 400 text."""

    model_config = ConfigDict(populate_by_name=True)

    required_message: ClassVar[str] = "Invalid request"


class UploadRequest(APIRequest):
    required_message: ClassVar[str] = "Document content is required"

    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        return _not_blank(value)


class ChatRequest(APIRequest):
    required_message: ClassVar[str] = "Message is required"

    message: str = Field(..., max_length=config.MAX_MESSAGE_LENGTH)
    session_id: Optional[str] = Field(default=None, alias="sessionId")

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, value: str) -> str:
        return _not_blank(value)


class QueryRequest(APIRequest):
    required_message: ClassVar[str] = "Query is required"

    query: str = Field(..., max_length=config.MAX_MESSAGE_LENGTH)

    @field_validator("query")
    @classmethod
    def query_not_blank(cls, value: str) -> str:
        return _not_blank(value)


class StartSessionRequest(APIRequest):
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SessionMessageRequest(APIRequest):
    required_message: ClassVar[str] = "Session ID and message are required"

    session_id: str = Field(..., alias="sessionId")
    message: str
    type: str = "user"

    @field_validator("session_id", "message")
    @classmethod
    def fields_not_blank(cls, value: str) -> str:
        return _not_blank(value)


def parse_request(model: Type[RequestModel], data: Any) -> RequestModel:
    """Validate a JSON body against a request model.

    Raises:
        ValidationError: If the body is not an object or fails validation
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        if first["type"] in _REQUIRED_ERRORS:
            raise ValidationError(model.required_message, cause=e) from e
        field = ".".join(str(part) for part in first["loc"])
        raise ValidationError(f"Invalid '{field}': {first['msg']}", cause=e) from e
