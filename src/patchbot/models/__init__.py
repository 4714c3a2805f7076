"""Convenience exports for patchbot language-model clients."""

from .deepseek import DeepSeekClient
from .llm_client import (
    ChatClient,
    ChatMessage,
    ChatRequest,
    LLMClientError,
    LLMResponseFormatError,
    LLMRetryError,
    LLMTransportError,
)

__all__ = [
    "ChatClient",
    "ChatMessage",
    "ChatRequest",
    "DeepSeekClient",
    "LLMClientError",
    "LLMResponseFormatError",
    "LLMRetryError",
    "LLMTransportError",
]
