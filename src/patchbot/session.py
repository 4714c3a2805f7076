"""Chat turns that turn model replies into applied edits."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional

from .directives import Directive, OperationResult
from .executor import BatchExecutor
from .extraction import extract_directives
from .models.llm_client import ChatClient, ChatMessage, ChatRequest
from .prompts import SYSTEM_PROMPT, render_autofix_prompt
from .validation import ValidationRejected, validate_candidates

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY = 10


class ConversationHistory:
    """Bounded list of recent chat messages, oldest dropped first."""

    def __init__(self, max_messages: int = DEFAULT_MAX_HISTORY) -> None:
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self._messages: Deque[ChatMessage] = deque(maxlen=max_messages)

    @property
    def max_messages(self) -> int:
        return self._messages.maxlen or DEFAULT_MAX_HISTORY

    def append(self, role: str, content: str) -> None:
        self._messages.append(ChatMessage(role=role, content=content))  # type: ignore[arg-type]

    def clear(self) -> None:
        self._messages.clear()

    def messages(self) -> List[ChatMessage]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)


@dataclass(slots=True)
class ChatTurn:
    """Reply to one user message and the outcome of any edits it carried."""

    response: str
    directives: List[Directive] = field(default_factory=list)
    operations: List[OperationResult] = field(default_factory=list)
    rejected: List[ValidationRejected] = field(default_factory=list)

    def to_dict(self) -> dict:
        payload: dict = {"response": self.response}
        if self.operations:
            payload["operations"] = [result.to_dict() for result in self.operations]
            payload["message"] = "Operations executed"
        if self.rejected:
            payload["rejected"] = [item.reason for item in self.rejected]
        return payload


class ChatSession:
    """One conversation: its history, the model client and the executor edits go through.

    Sessions share nothing, so concurrent conversations never see each
    other's history.
    """

    def __init__(
        self,
        client: ChatClient,
        executor: BatchExecutor,
        *,
        history: Optional[ConversationHistory] = None,
        system_prompt: str = SYSTEM_PROMPT,
        temperature: float = 0.7,
        max_tokens: Optional[int] = 4000,
    ) -> None:
        self.client = client
        self.executor = executor
        self.history = history or ConversationHistory()
        self.system_prompt = system_prompt
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _request(self) -> ChatRequest:
        messages = [ChatMessage(role="system", content=self.system_prompt)] if self.system_prompt else []
        messages.extend(self.history.messages())
        return ChatRequest(messages=messages, temperature=self.temperature, max_tokens=self.max_tokens)

    async def send(self, message: str, *, apply: bool = True) -> ChatTurn:
        """Send ``message``, record the reply and apply any directives it contains."""
        self.history.append("user", message)
        response = await self.client.complete(self._request())
        self.history.append("assistant", response)

        directives, rejected = validate_candidates(extract_directives(response))
        turn = ChatTurn(response=response, directives=directives, rejected=rejected)
        if directives and apply:
            LOGGER.info("Applying %d directive(s) from model reply", len(directives))
            turn.operations = await self.executor.apply(directives)
        return turn

    async def request_autofix(self, error_text: str) -> ChatTurn:
        """Ask the model to repair a failed deployment described by ``error_text``.

        The reply's directives are reported but not applied; the caller reviews
        them and sends them through :meth:`BatchExecutor.apply` explicitly.
        """
        return await self.send(render_autofix_prompt(error_text), apply=False)

    def clear(self) -> None:
        self.history.clear()


__all__ = ["ChatSession", "ChatTurn", "ConversationHistory", "DEFAULT_MAX_HISTORY"]
