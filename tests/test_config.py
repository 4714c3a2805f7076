from __future__ import annotations

from pathlib import Path

import pytest

from patchbot.config import (
    DEFAULT_CONFIG_TEMPLATE,
    ConfigError,
    PatchbotConfig,
    copy_config_template,
)
from patchbot.models import DeepSeekClient
from patchbot.store import GitHubContentsStore, LocalDirectoryStore


def test_template_parses_to_defaults(tmp_path: Path) -> None:
    config = PatchbotConfig.from_mapping(copy_config_template(), base_dir=tmp_path)

    assert config.store.kind == "github"
    assert config.store.branch is None
    assert config.llm.model == "deepseek-chat"
    assert config.commit_messages.modify == "Applied {count} operation(s) via chat interface"
    assert config.max_history == 10


def test_copy_config_template_is_independent() -> None:
    copy = copy_config_template()
    copy["store"]["kind"] = "local"

    assert DEFAULT_CONFIG_TEMPLATE["store"]["kind"] == "github"


def test_local_root_is_resolved_against_config_directory(tmp_path: Path) -> None:
    (tmp_path / "repo").mkdir()

    config = PatchbotConfig.from_mapping({"store": {"kind": "local", "root": "repo"}}, base_dir=tmp_path)
    store = config.build_store()

    assert isinstance(store, LocalDirectoryStore)
    assert store.root == (tmp_path / "repo").resolve()


def test_unknown_store_kind_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        PatchbotConfig.from_mapping({"store": {"kind": "ftp"}}, base_dir=tmp_path)


def test_sections_must_be_mappings() -> None:
    with pytest.raises(ConfigError):
        PatchbotConfig.from_mapping({"llm": ["deepseek"]})


def test_invalid_numbers_fall_back_to_defaults() -> None:
    config = PatchbotConfig.from_mapping(
        {"llm": {"temperature": "hot", "max_tokens": 0, "max_attempts": True}, "chat": {"max_history": -2}}
    )

    assert config.llm.temperature == 0.7
    assert config.llm.max_tokens == 4000
    assert config.llm.max_attempts == 3
    assert config.max_history == 10


def test_github_store_needs_repo_and_token(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GITHUB_REPO", raising=False)
    monkeypatch.delenv("PATCHBOT_TOKEN", raising=False)

    with pytest.raises(ConfigError, match="repo"):
        PatchbotConfig.from_mapping({"store": {"token_env": "PATCHBOT_TOKEN"}}).build_store()

    config = PatchbotConfig.from_mapping({"store": {"repo": "octo/demo", "token_env": "PATCHBOT_TOKEN"}})
    with pytest.raises(ConfigError, match="PATCHBOT_TOKEN"):
        config.build_store()

    monkeypatch.setenv("PATCHBOT_TOKEN", "secret")
    store = config.build_store()
    assert isinstance(store, GitHubContentsStore)
    assert store.repo == "octo/demo"


def test_repo_falls_back_to_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITHUB_REPO", "octo/from-env")

    config = PatchbotConfig.from_mapping({"store": {"branch": "main"}})

    assert config.store.repo == "octo/from-env"
    assert config.store.branch == "main"


def test_build_client_reads_configured_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MY_LLM_KEY", raising=False)
    config = PatchbotConfig.from_mapping({"llm": {"api_key_env": "MY_LLM_KEY", "model": "deepseek-coder"}})

    with pytest.raises(ConfigError):
        config.build_client()

    monkeypatch.setenv("MY_LLM_KEY", "key")
    client = config.build_client()
    assert isinstance(client, DeepSeekClient)
    assert client.model == "deepseek-coder"


def test_build_session_uses_chat_settings(tmp_path: Path) -> None:
    config = PatchbotConfig.from_mapping(
        {
            "store": {"kind": "local", "root": str(tmp_path)},
            "chat": {"max_history": 4, "system_prompt": "Be brief."},
            "commit_messages": {"modify": "edit {file}"},
        }
    )
    client = DeepSeekClient(transport=lambda payload: None)

    session = config.build_session(config.build_store(), client)

    assert session.client is client
    assert session.system_prompt == "Be brief."
    assert session.history.max_messages == 4
    assert config.commit_messages.modify == "edit {file}"
