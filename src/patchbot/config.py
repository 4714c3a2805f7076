"""Configuration sections and the factories that turn them into live objects."""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .errors import PatchbotError
from .executor import BatchExecutor, CommitMessages
from .models.deepseek import DEFAULT_BASE_URL, DeepSeekClient
from .models.llm_client import ChatClient
from .session import DEFAULT_MAX_HISTORY, ChatSession, ConversationHistory
from .store.base import FileStore
from .store.github import DEFAULT_API_URL, GitHubContentsStore
from .store.local import LocalDirectoryStore

DEFAULT_CONFIG_NAME = "patchbot.yaml"

_DEFAULT_MESSAGES = CommitMessages()

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    "store": {
        "kind": "github",
        "repo": "",
        "branch": "",
        "api_url": DEFAULT_API_URL,
        "token_env": "GITHUB_TOKEN",
        "root": ".",
        "timeout": 30,
    },
    "commit_messages": {
        "modify": _DEFAULT_MESSAGES.modify,
        "create": _DEFAULT_MESSAGES.create,
        "update": _DEFAULT_MESSAGES.update,
        "delete": _DEFAULT_MESSAGES.delete,
    },
    "llm": {
        "model": "deepseek-chat",
        "base_url": DEFAULT_BASE_URL,
        "api_key_env": "DEEPSEEK_API_KEY",
        "temperature": 0.7,
        "max_tokens": 4000,
        "timeout": 60,
        "max_attempts": 3,
        "retry_delay": 0.5,
    },
    "chat": {
        "max_history": DEFAULT_MAX_HISTORY,
    },
}


class ConfigError(PatchbotError):
    """Raised when configuration values are missing or malformed."""


def copy_config_template() -> Dict[str, Any]:
    """Return a deep copy of the default configuration template."""
    return copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)


def _section(config: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = config.get(name) or {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Config section '{name}' must be a mapping.")
    return value


def _text(value: Any, default: str = "") -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _number(value: Any, default: float, *, minimum: float = 0.0) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value) if value >= minimum else default


@dataclass(slots=True)
class StoreSettings:
    """Where directives are applied."""

    kind: str = "github"
    repo: str = ""
    branch: Optional[str] = None
    api_url: str = DEFAULT_API_URL
    token_env: str = "GITHUB_TOKEN"
    root: Path = Path(".")
    timeout: float = 30.0

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, base_dir: Path) -> "StoreSettings":
        kind = _text(data.get("kind"), "github").lower()
        if kind not in {"github", "local"}:
            raise ConfigError(f"Unknown store kind: {kind!r} (expected 'github' or 'local')")
        root = Path(_text(data.get("root"), "."))
        if not root.is_absolute():
            root = (base_dir / root).resolve()
        return cls(
            kind=kind,
            repo=_text(data.get("repo")) or os.getenv("GITHUB_REPO", ""),
            branch=_text(data.get("branch")) or None,
            api_url=_text(data.get("api_url"), DEFAULT_API_URL),
            token_env=_text(data.get("token_env"), "GITHUB_TOKEN"),
            root=root,
            timeout=_number(data.get("timeout"), 30.0, minimum=1.0),
        )


@dataclass(slots=True)
class LLMSettings:
    """Chat model connection settings."""

    model: str = "deepseek-chat"
    base_url: str = DEFAULT_BASE_URL
    api_key_env: str = "DEEPSEEK_API_KEY"
    temperature: float = 0.7
    max_tokens: int = 4000
    timeout: float = 60.0
    max_attempts: int = 3
    retry_delay: float = 0.5

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LLMSettings":
        return cls(
            model=_text(data.get("model"), "deepseek-chat"),
            base_url=_text(data.get("base_url"), DEFAULT_BASE_URL),
            api_key_env=_text(data.get("api_key_env"), "DEEPSEEK_API_KEY"),
            temperature=_number(data.get("temperature"), 0.7),
            max_tokens=int(_number(data.get("max_tokens"), 4000, minimum=1)),
            timeout=_number(data.get("timeout"), 60.0, minimum=1.0),
            max_attempts=int(_number(data.get("max_attempts"), 3, minimum=1)),
            retry_delay=_number(data.get("retry_delay"), 0.5),
        )


@dataclass(slots=True)
class PatchbotConfig:
    """Fully parsed configuration file."""

    store: StoreSettings = field(default_factory=StoreSettings)
    llm: LLMSettings = field(default_factory=LLMSettings)
    commit_messages: CommitMessages = field(default_factory=CommitMessages)
    max_history: int = DEFAULT_MAX_HISTORY
    system_prompt: Optional[str] = None

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any], *, base_dir: Path | str = ".") -> "PatchbotConfig":
        base_path = Path(base_dir)
        chat = _section(config, "chat")
        return cls(
            store=StoreSettings.from_mapping(_section(config, "store"), base_dir=base_path),
            llm=LLMSettings.from_mapping(_section(config, "llm")),
            commit_messages=CommitMessages.from_mapping(_section(config, "commit_messages")),
            max_history=int(_number(chat.get("max_history"), DEFAULT_MAX_HISTORY, minimum=1)),
            system_prompt=_text(chat.get("system_prompt")) or None,
        )

    # -------------------------------------------------------------- factories
    def build_store(self) -> FileStore:
        """Instantiate the configured file store."""
        settings = self.store
        if settings.kind == "local":
            return LocalDirectoryStore(settings.root)
        if not settings.repo:
            raise ConfigError("store.repo (or GITHUB_REPO) must name the repository as 'owner/name'.")
        token = os.getenv(settings.token_env)
        if not token:
            raise ConfigError(f"Environment variable {settings.token_env} must hold a GitHub token.")
        return GitHubContentsStore(
            settings.repo,
            token=token,
            branch=settings.branch,
            api_url=settings.api_url,
            timeout=settings.timeout,
        )

    def build_client(self) -> DeepSeekClient:
        """Instantiate the configured chat client."""
        settings = self.llm
        api_key = os.getenv(settings.api_key_env)
        if not api_key:
            raise ConfigError(f"Environment variable {settings.api_key_env} must hold an API key.")
        return DeepSeekClient(
            api_key=api_key,
            base_url=settings.base_url,
            model=settings.model,
            timeout=settings.timeout,
            max_attempts=settings.max_attempts,
            retry_delay=settings.retry_delay,
        )

    def build_executor(self, store: FileStore) -> BatchExecutor:
        return BatchExecutor(store, messages=self.commit_messages)

    def build_session(self, store: FileStore, client: Optional[ChatClient] = None) -> ChatSession:
        """Create a fresh chat session over ``store``."""
        kwargs: Dict[str, Any] = {}
        if self.system_prompt:
            kwargs["system_prompt"] = self.system_prompt
        return ChatSession(
            client or self.build_client(),
            self.build_executor(store),
            history=ConversationHistory(self.max_history),
            temperature=self.llm.temperature,
            max_tokens=self.llm.max_tokens,
            **kwargs,
        )


__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_NAME",
    "DEFAULT_CONFIG_TEMPLATE",
    "LLMSettings",
    "PatchbotConfig",
    "StoreSettings",
    "copy_config_template",
]
