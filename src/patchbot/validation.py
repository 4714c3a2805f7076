"""Turn raw directive candidates into typed directives or explained rejections."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Union

from pydantic import TypeAdapter, ValidationError

from .directives import DIRECTIVE_ACTIONS, Directive

LOGGER = logging.getLogger(__name__)

_DIRECTIVE_ADAPTER: TypeAdapter[Any] = TypeAdapter(Directive)
_LINE_ACTIONS = frozenset({"insert", "delete"})


@dataclass(frozen=True, slots=True)
class ValidationRejected:
    """A candidate that could not be turned into a directive, and why."""

    reason: str
    raw: Any = None


ValidationOutcome = Union[Directive, ValidationRejected]


def _normalise_action(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    action = value.strip().lower().replace("-", "_").replace(" ", "_")
    return action or None


def _coerce_line(value: Any) -> int | None:
    """Coerce ``line`` to an integer; ``None`` signals a non-numeric value."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            try:
                parsed = float(text)
            except ValueError:
                return None
            return int(parsed) if parsed.is_integer() else None
    return None


def _coerce_code(value: Any) -> str:
    """Coerce ``code`` to text; a list of lines is joined with newlines."""
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    if isinstance(value, (list, tuple)) and all(isinstance(item, str) for item in value):
        return "\n".join(value)
    return str(value)


def _coerce_content(value: Any) -> str:
    """Coerce ``content`` to text; structured values are rendered as JSON."""
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, indent=2)
    return str(value)


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()) if part not in DIRECTIVE_ACTIONS)
        message = item.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "invalid directive"


def validate(raw: Any) -> ValidationOutcome:
    """Validate one raw candidate; never raises."""
    if not isinstance(raw, Mapping):
        return ValidationRejected("directive must be a JSON object", raw)

    file_value = raw.get("file")
    if not isinstance(file_value, str) or not file_value.strip():
        return ValidationRejected("missing or non-string 'file'", raw)

    action = _normalise_action(raw.get("action"))
    if action not in DIRECTIVE_ACTIONS:
        return ValidationRejected(f"unknown action {raw.get('action')!r}", raw)

    payload: dict[str, Any] = {"action": action, "file": file_value.strip()}
    if action == "create":
        if "content" not in raw:
            return ValidationRejected("'create' requires 'content'", raw)
        payload["content"] = _coerce_content(raw["content"])
    elif action in _LINE_ACTIONS:
        if "line" not in raw:
            return ValidationRejected(f"'{action}' requires 'line'", raw)
        line = _coerce_line(raw["line"])
        if line is None:
            return ValidationRejected(f"'line' must be an integer, got {raw['line']!r}", raw)
        if "code" not in raw:
            return ValidationRejected(f"'{action}' requires 'code'", raw)
        payload["line"] = line
        payload["code"] = _coerce_code(raw["code"])

    try:
        return _DIRECTIVE_ADAPTER.validate_python(payload)
    except ValidationError as error:
        return ValidationRejected(_describe_validation_error(error), raw)


def validate_candidates(
    candidates: Iterable[Any],
) -> tuple[list[Directive], list[ValidationRejected]]:
    """Validate every candidate, logging and collecting the rejections."""
    accepted: list[Directive] = []
    rejected: list[ValidationRejected] = []
    for raw in candidates:
        outcome = validate(raw)
        if isinstance(outcome, ValidationRejected):
            LOGGER.warning("Rejected directive candidate: %s", outcome.reason)
            rejected.append(outcome)
        else:
            accepted.append(outcome)
    return accepted, rejected


__all__ = [
    "ValidationOutcome",
    "ValidationRejected",
    "validate",
    "validate_candidates",
]
