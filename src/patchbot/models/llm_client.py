"""Chat client base class shared by all language-model integrations."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional

from ..errors import PatchbotError

__all__ = [
    "ChatClient",
    "ChatMessage",
    "ChatRequest",
    "LLMClientError",
    "LLMResponseFormatError",
    "LLMRetryError",
    "LLMTransportError",
]

Role = Literal["system", "user", "assistant"]


class LLMClientError(PatchbotError):
    """Base error raised for language-model client failures."""


class LLMTransportError(LLMClientError):
    """Raised when the underlying transport fails to return a response."""


class LLMResponseFormatError(LLMClientError):
    """Raised when the model response does not carry any message text."""


class LLMRetryError(LLMClientError):
    """Raised after exhausting retries."""


@dataclass(slots=True)
class ChatMessage:
    """One turn of a chat conversation."""

    role: Role
    content: str

    def to_payload(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(slots=True)
class ChatRequest:
    """Chat-completions request sent to a model."""

    messages: List[ChatMessage]
    model: Optional[str] = None
    temperature: float = 0.7
    max_tokens: Optional[int] = 4000
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self, default_model: str) -> Dict[str, Any]:
        """Render a transport-ready payload for an OpenAI-compatible endpoint."""
        payload: Dict[str, Any] = {
            "model": self.model or default_model,
            "messages": [message.to_payload() for message in self.messages],
            "temperature": self.temperature,
        }
        if self.max_tokens:
            payload["max_tokens"] = self.max_tokens
        if self.metadata:
            payload["metadata"] = {
                key: value if isinstance(value, str) else json.dumps(value, separators=(",", ":"), sort_keys=True)
                for key, value in self.metadata.items()
            }
        return payload


class ChatClient:
    """Sends chat requests and returns the reply text, retrying transient failures."""

    def __init__(self, model: str, *, max_attempts: int = 3, retry_delay: float = 0.5) -> None:
        self._model = model
        self._max_attempts = max(1, max_attempts)
        self._retry_delay = retry_delay

    @property
    def model(self) -> str:
        """Return the default model name configured for this client."""
        return self._model

    async def complete(
        self,
        request: ChatRequest,
        *,
        logger: Optional[Callable[[Dict[str, Any], Optional[str], Optional[Exception], int], None]] = None,
    ) -> str:
        """Invoke the model and return the assistant's reply text."""
        payload = request.to_payload(self._model)
        last_error: Optional[Exception] = None

        for attempt in range(1, self._max_attempts + 1):
            raw: Optional[str] = None
            try:
                raw = await self._raw_invoke(payload)
            except (LLMTransportError, LLMResponseFormatError) as error:
                last_error = error
                if logger:
                    logger(payload, raw, error, attempt)
                if attempt >= self._max_attempts:
                    break
                await asyncio.sleep(self._retry_delay)
                continue
            if logger:
                logger(payload, raw, None, attempt)
            return raw

        raise LLMRetryError(
            f"Failed to get a response after {self._max_attempts} attempt(s) for model "
            f"{request.model or self._model}"
        ) from last_error

    async def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        """Perform the transport call. Subclasses must implement."""
        raise NotImplementedError("Subclasses must implement _raw_invoke().")
