"""LLM provider contract, routing facade and response helpers."""

from .json_utils import parse_json_response
from .provider import (
    LLMParseError,
    LLMProvider,
    LLMProviderError,
    LLMQuotaError,
    LLMResponse,
    ProviderStatus,
)
from .service import LLMService

__all__ = [
    "LLMParseError",
    "LLMProvider",
    "LLMProviderError",
    "LLMQuotaError",
    "LLMResponse",
    "LLMService",
    "ProviderStatus",
    "parse_json_response",
]
