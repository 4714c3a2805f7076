from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import pytest
import yaml
from typer.testing import CliRunner

from patchbot.cli import app
from patchbot.config import PatchbotConfig
from patchbot.models import ChatClient

runner = CliRunner()

REPLY = """Here you go:
```json
[{"action": "insert", "file": "README.md", "line": 2, "code": "Run `patchbot --help`."}]
```"""


class CannedClient(ChatClient):
    def __init__(self, reply: str) -> None:
        super().__init__("canned")
        self.reply = reply
        self.payloads: List[Dict[str, Any]] = []

    async def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        self.payloads.append(payload)
        return self.reply


@pytest.fixture()
def repo(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    (root / "src").mkdir(parents=True)
    (root / "README.md").write_text("# Demo\n", encoding="utf-8")
    (root / "src" / "app.py").write_text("import os\n", encoding="utf-8")
    return root


def _local_args(repo: Path) -> List[str]:
    return ["--root", str(repo), "--config", str(repo.parent / "missing.yaml")]


def test_init_writes_template_once(tmp_path: Path) -> None:
    target = tmp_path / "conf" / "patchbot.yaml"

    first = runner.invoke(app, ["init", "--config", str(target)])
    second = runner.invoke(app, ["init", "--config", str(target)])
    forced = runner.invoke(app, ["init", "--config", str(target), "--force"])

    assert first.exit_code == 0
    assert second.exit_code == 1
    assert forced.exit_code == 0
    data = yaml.safe_load(target.read_text(encoding="utf-8"))
    assert data["store"]["kind"] == "github"
    assert data["llm"]["api_key_env"] == "DEEPSEEK_API_KEY"


def test_extract_prints_validated_directives(tmp_path: Path) -> None:
    source = tmp_path / "reply.md"
    source.write_text(REPLY, encoding="utf-8")

    result = runner.invoke(app, ["extract", str(source)])

    assert result.exit_code == 0
    assert json.loads(result.stdout) == [
        {"file": "README.md", "action": "insert", "line": 2, "code": "Run `patchbot --help`."}
    ]


def test_extract_reads_stdin() -> None:
    result = runner.invoke(app, ["extract", "-"], input='{"action": "delete_file", "file": "x"}')

    assert result.exit_code == 0
    assert '"delete_file"' in result.stdout


def test_apply_against_local_directory(repo: Path, tmp_path: Path) -> None:
    source = tmp_path / "reply.md"
    source.write_text(REPLY, encoding="utf-8")

    result = runner.invoke(app, ["apply", str(source), *_local_args(repo)])

    assert result.exit_code == 0
    assert '"success": true' in result.stdout
    assert (repo / "README.md").read_text(encoding="utf-8") == "# Demo\nRun `patchbot --help`.\n"


def test_apply_exits_non_zero_when_an_item_fails(repo: Path) -> None:
    payload = json.dumps([{"action": "delete", "file": "src/app.py", "line": 1, "code": "import sys"}])

    result = runner.invoke(app, ["apply", "-", *_local_args(repo)], input=payload)

    assert result.exit_code == 1
    assert "does not match expected content" in result.stdout
    assert (repo / "src" / "app.py").read_text(encoding="utf-8") == "import os\n"


def test_apply_reports_invalid_configuration(tmp_path: Path) -> None:
    config = tmp_path / "patchbot.yaml"
    config.write_text("store:\n  kind: ftp\n", encoding="utf-8")

    result = runner.invoke(app, ["apply", "-", "--config", str(config)], input="[]")

    assert result.exit_code == 1


def test_files_and_show(repo: Path) -> None:
    listing = runner.invoke(app, ["files", *_local_args(repo)])
    shown = runner.invoke(app, ["show", "src/app.py", "--numbered", *_local_args(repo)])
    missing = runner.invoke(app, ["show", "nope.txt", *_local_args(repo)])

    assert listing.exit_code == 0
    assert "README.md\t7\t" in listing.stdout
    assert "src/app.py\t10\t" in listing.stdout
    assert shown.exit_code == 0
    assert "    1  import os" in shown.stdout
    assert missing.exit_code == 1


def test_chat_applies_model_reply(repo: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = CannedClient(REPLY)
    monkeypatch.setattr(PatchbotConfig, "build_client", lambda self: client)

    result = runner.invoke(app, ["chat", "Mention the help flag", *_local_args(repo)])

    assert result.exit_code == 0
    assert "Here you go:" in result.stdout
    assert (repo / "README.md").read_text(encoding="utf-8") == "# Demo\nRun `patchbot --help`.\n"
    assert client.payloads[0]["messages"][-1] == {"role": "user", "content": "Mention the help flag"}


def test_autofix_only_proposes_by_default(repo: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = CannedClient(REPLY)
    monkeypatch.setattr(PatchbotConfig, "build_client", lambda self: client)

    result = runner.invoke(app, ["autofix", "-", *_local_args(repo)], input="ModuleNotFoundError: foo\n")

    assert result.exit_code == 0
    assert "Proposed directives (not applied):" in result.stdout
    assert (repo / "README.md").read_text(encoding="utf-8") == "# Demo\n"
    assert "ModuleNotFoundError: foo" in client.payloads[0]["messages"][-1]["content"]


def test_show_numbers_lines_as_patches_address_them(repo: Path) -> None:
    (repo / "form.txt").write_bytes(b"page one\x0cpage two\r\nnext\x1dfield\r\nlast\r\n")

    shown = runner.invoke(app, ["show", "form.txt", "--numbered", *_local_args(repo)])

    assert shown.exit_code == 0
    assert shown.stdout.split("\n")[-4:] == [
        "    1  page one\x0cpage two",
        "    2  next\x1dfield",
        "    3  last",
        "",
    ]
