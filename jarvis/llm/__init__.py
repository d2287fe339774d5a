"""LLM providers used by the assistant commands."""

from .provider import (
    LLMProvider,
    ChatMessage,
    ChatResponse,
    LLMError,
    LLMRateLimitError,
    LLMAuthError,
    LLMBadRequestError,
    LLMEmptyResponseError,
)
from .gemini import GeminiProvider

__all__ = [
    "LLMProvider",
    "ChatMessage",
    "ChatResponse",
    "LLMError",
    "LLMRateLimitError",
    "LLMAuthError",
    "LLMBadRequestError",
    "LLMEmptyResponseError",
    "GeminiProvider",
]
