"""CLI commands for extracting and applying model-authored edit directives."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import typer
import yaml

from .config import DEFAULT_CONFIG_NAME, ConfigError, PatchbotConfig, StoreSettings, copy_config_template
from .directives import OperationResult
from .engine import line_text, split_content
from .errors import PatchbotError
from .extraction import extract_directives
from .session import ChatSession, ChatTurn
from .validation import validate_candidates

APP_HELP = "Apply line-level edit directives written by a language model to a versioned file store."

app = typer.Typer(help=APP_HELP)

_CONFIG_HELP = "Path to the patchbot configuration file."
_ROOT_HELP = "Apply against this local directory instead of the configured store."


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level (DEBUG, INFO, WARNING, ...)."),
) -> None:
    """Configure logging for every command."""
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        raise typer.BadParameter(f"Unknown log level: {log_level}")
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def load_config(config_path: Path) -> Dict[str, Any]:
    """Load YAML configuration from disk and return it as a dictionary."""
    if not config_path.exists():
        raise typer.BadParameter(f"Config file not found: {config_path}")

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        typer.echo(f"Failed to parse config: {error}", err=True)
        raise typer.Exit(code=1) from error

    if not isinstance(data, dict):
        typer.echo("Configuration must be a mapping at the top level.", err=True)
        raise typer.Exit(code=1)

    return data


def _resolve_settings(config: str, root: Optional[Path]) -> PatchbotConfig:
    """Parse the config file; ``--root`` alone is enough to run against a local directory."""
    config_path = Path(config)
    if root is not None and not config_path.exists():
        settings = PatchbotConfig()
    else:
        try:
            settings = PatchbotConfig.from_mapping(load_config(config_path), base_dir=config_path.parent)
        except ConfigError as error:
            typer.echo(f"Invalid configuration: {error}", err=True)
            raise typer.Exit(code=1) from error
    if root is not None:
        settings.store = StoreSettings(kind="local", root=root.resolve())
    return settings


def _read_source(source: str) -> str:
    """Read text from a file path, or from stdin when ``source`` is ``-``."""
    if source == "-":
        return sys.stdin.read()
    path = Path(source)
    if not path.exists():
        raise typer.BadParameter(f"Input file not found: {path}")
    return path.read_text(encoding="utf-8")


def _run(coroutine: Any) -> Any:
    """Drive ``coroutine`` to completion, turning patchbot errors into exit code 1."""
    try:
        return asyncio.run(coroutine)
    except PatchbotError as error:
        typer.echo(f"Error: {error}", err=True)
        raise typer.Exit(code=1) from error


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


def _render_results(results: List[OperationResult]) -> None:
    _echo_json([result.to_dict() for result in results])


def _render_turn(turn: ChatTurn) -> None:
    typer.echo(turn.response)
    for item in turn.rejected:
        typer.echo(f"Skipped directive: {item.reason}", err=True)
    if turn.operations:
        typer.echo("")
        _render_results(turn.operations)
    elif turn.directives:
        typer.echo("")
        typer.echo("Proposed directives (not applied):")
        _echo_json([directive.model_dump() for directive in turn.directives])


@app.command()
def init(
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help=_CONFIG_HELP),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing configuration file."),
) -> None:
    """Write the default configuration file."""
    config_path = Path(config)
    if config_path.exists() and not force:
        typer.echo(f"Config already exists at {config_path}; use --force to overwrite.")
        raise typer.Exit(code=1)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(copy_config_template(), handle, sort_keys=False)
    typer.echo(f"Wrote configuration to {config_path}")


@app.command()
def extract(
    source: str = typer.Argument("-", help="File holding model output, or '-' for stdin."),
) -> None:
    """Print the validated directives found in a piece of text."""
    directives, rejected = validate_candidates(extract_directives(_read_source(source)))
    for item in rejected:
        typer.echo(f"Skipped directive: {item.reason}", err=True)
    _echo_json([directive.model_dump() for directive in directives])


@app.command()
def apply(
    source: str = typer.Argument("-", help="File holding directives or model output, or '-' for stdin."),
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help=_CONFIG_HELP),
    root: Optional[Path] = typer.Option(None, "--root", help=_ROOT_HELP),
) -> None:
    """Extract, validate and apply the directives in a piece of text."""
    settings = _resolve_settings(config, root)
    directives, rejected = validate_candidates(extract_directives(_read_source(source)))
    for item in rejected:
        typer.echo(f"Skipped directive: {item.reason}", err=True)

    async def _apply() -> List[OperationResult]:
        async with settings.build_store() as store:
            return await settings.build_executor(store).apply(directives)

    results = _run(_apply())
    _render_results(results)
    if any(not result.success for result in results):
        raise typer.Exit(code=1)


def _prompt_messages() -> Iterator[str]:
    """Yield messages typed at the prompt until EOF or 'exit'."""
    while True:
        try:
            message = typer.prompt("you", prompt_suffix="> ")
        except typer.Abort:
            return
        if message.strip().lower() in {"exit", "quit"}:
            return
        yield message


@app.command()
def chat(
    message: Optional[str] = typer.Argument(None, help="Message to send; omit for an interactive session."),
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help=_CONFIG_HELP),
    root: Optional[Path] = typer.Option(None, "--root", help=_ROOT_HELP),
    apply_edits: bool = typer.Option(
        True,
        "--apply/--no-apply",
        help="Apply directives found in the model's reply.",
    ),
) -> None:
    """Chat with the model and apply the edits it proposes."""
    settings = _resolve_settings(config, root)

    async def _chat() -> None:
        async with settings.build_store() as store:
            session: ChatSession = settings.build_session(store)
            messages = [message] if message is not None else _prompt_messages()
            for text in messages:
                if text.strip() == "/clear":
                    session.clear()
                    typer.echo("Conversation history cleared")
                    continue
                _render_turn(await session.send(text, apply=apply_edits))

    _run(_chat())


@app.command()
def autofix(
    source: str = typer.Argument("-", help="File holding the failure log, or '-' for stdin."),
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help=_CONFIG_HELP),
    root: Optional[Path] = typer.Option(None, "--root", help=_ROOT_HELP),
    apply_edits: bool = typer.Option(
        False,
        "--apply/--no-apply",
        help="Apply the proposed fix instead of only printing it.",
    ),
) -> None:
    """Ask the model for directives that fix a failed deployment."""
    settings = _resolve_settings(config, root)
    error_text = _read_source(source)
    if not error_text.strip():
        typer.echo("No failure log provided.", err=True)
        raise typer.Exit(code=1)

    async def _autofix() -> ChatTurn:
        async with settings.build_store() as store:
            session = settings.build_session(store)
            turn = await session.request_autofix(error_text)
            if apply_edits and turn.directives:
                turn.operations = await session.executor.apply(turn.directives)
            return turn

    _render_turn(_run(_autofix()))


@app.command()
def files(
    path: str = typer.Argument("", help="Directory to list; defaults to the repository root."),
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help=_CONFIG_HELP),
    root: Optional[Path] = typer.Option(None, "--root", help=_ROOT_HELP),
) -> None:
    """List files in the store."""
    settings = _resolve_settings(config, root)

    async def _list() -> list:
        async with settings.build_store() as store:
            return await store.list_files(path)

    entries = _run(_list())
    if not entries:
        typer.echo("No files found.")
        return
    for entry in entries:
        typer.echo(f"{entry.path}\t{entry.size}\t{entry.version_tag}")


@app.command()
def show(
    path: str = typer.Argument(..., help="File to print."),
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help=_CONFIG_HELP),
    root: Optional[Path] = typer.Option(None, "--root", help=_ROOT_HELP),
    numbered: bool = typer.Option(False, "--numbered", "-n", help="Prefix each line with its 1-based number."),
) -> None:
    """Print a file and its version tag."""
    settings = _resolve_settings(config, root)

    async def _get() -> Any:
        async with settings.build_store() as store:
            return await store.get(path)

    stored = _run(_get())
    typer.echo(f"# {stored.path} @ {stored.version_tag}", err=True)
    if numbered:
        lines, _, _ = split_content(stored.content)
        for number, line in enumerate(lines, start=1):
            typer.echo(f"{number:>5}  {line_text(line)}")
    else:
        typer.echo(stored.content, nl=False)


if __name__ == "__main__":
    app()
