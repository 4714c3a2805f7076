"""DeepSeek client speaking the OpenAI-compatible chat-completions API."""

from __future__ import annotations

import json
import os
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from .llm_client import ChatClient, LLMClientError, LLMResponseFormatError, LLMTransportError

__all__ = ["DEFAULT_BASE_URL", "DeepSeekClient"]

DEFAULT_BASE_URL = "https://api.deepseek.com/v1/chat/completions"

Transport = Callable[[Dict[str, Any]], Awaitable[str]]


class DeepSeekClient(ChatClient):
    """Thin adapter around the DeepSeek chat-completions endpoint."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        model: str = "deepseek-chat",
        transport: Optional[Transport] = None,
        timeout: float = 60.0,
        max_attempts: int = 3,
        retry_delay: float = 0.5,
    ) -> None:
        super().__init__(model=model, max_attempts=max_attempts, retry_delay=retry_delay)
        self._api_key = api_key or os.getenv("DEEPSEEK_API_KEY")
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport or self._http_transport

        if transport is None and not self._api_key:
            raise LLMClientError("An API key is required when using the default transport.")

    async def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        """Send the request over the configured transport."""
        try:
            raw_response = await self._transport(payload)
        except LLMTransportError:
            raise
        except Exception as error:  # pragma: no cover
            raise LLMTransportError(f"Transport rejected the request: {error}") from error

        text = self._extract_message_text(raw_response)
        if text is None:
            raise LLMResponseFormatError("DeepSeek response did not contain message content.")
        return text

    async def _http_transport(self, payload: Dict[str, Any]) -> str:
        """Default HTTP transport that targets the chat-completions endpoint."""
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self._timeout)) as client:
                response = await client.post(self._base_url, json=payload, headers=headers)
        except httpx.TimeoutException as error:  # pragma: no cover - network-dependent
            raise LLMTransportError("DeepSeek response timed out.") from error
        except httpx.HTTPError as error:  # pragma: no cover - network-dependent
            raise LLMTransportError(f"Failed to reach DeepSeek endpoint: {error}") from error

        if response.status_code >= 400:
            raise LLMTransportError(f"HTTP {response.status_code}: {response.text[:500]}")
        return response.text

    @staticmethod
    def _extract_message_text(raw_response: str) -> Optional[str]:
        """Return ``choices[0].message.content`` from a chat-completions response."""
        if not raw_response:
            return None
        try:
            data = json.loads(raw_response)
        except json.JSONDecodeError:
            return None
        if not isinstance(data, dict):
            return None
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            return None
        first = choices[0]
        if not isinstance(first, dict):
            return None
        message = first.get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"]
        text = first.get("text")
        return text if isinstance(text, str) else None
