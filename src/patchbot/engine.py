"""Exact-match line patching for a single file."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Sequence

from .directives import DeleteDirective, InsertDirective, LineDirective
from .errors import PatchbotError

_CODE_BREAK_RE = re.compile(r"\r?\n")


class LinePatchError(PatchbotError):
    """Raised when a line directive cannot be applied to the current file state."""

    def __init__(
        self,
        message: str,
        *,
        directive: LineDirective,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.directive = directive

    @property
    def line(self) -> int:
        return self.directive.line


class OutOfRangeError(LinePatchError):
    """The directive's line number lies outside the file."""


class ContentMismatchError(LinePatchError):
    """A delete directive's expected text differs from the file content."""

    def __init__(self, message: str, *, directive: LineDirective, expected: str, actual: str | None) -> None:
        super().__init__(
            message,
            directive=directive,
            details={"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


def split_content(content: str) -> tuple[List[str], str, bool]:
    """Split file text into lines, its dominant line terminator and a trailing-newline flag.

    Lines are split on ``\\n`` only and keep any ``\\r`` of a ``\\r\\n``
    terminator, so files mixing both endings round-trip unchanged.  The
    dominant terminator is ``\\r\\n`` when it outnumbers bare ``\\n`` and is
    used for lines added later.  A final terminator ends the last line rather
    than starting an empty one; empty text counts as newline-terminated.
    """
    if not content:
        return [], "\n", True
    crlf = content.count("\r\n")
    newline = "\r\n" if crlf > content.count("\n") - crlf else "\n"
    trailing = content.endswith("\n")
    lines = (content[:-1] if trailing else content).split("\n")
    if not trailing and newline == "\r\n":
        lines[-1] += "\r"
    return lines, newline, trailing


def join_content(lines: Sequence[str], newline: str = "\n", trailing: bool = True) -> str:
    """Inverse of :func:`split_content`."""
    if not lines:
        return ""
    text = "\n".join(lines)
    if trailing:
        return text + "\n"
    if newline == "\r\n" and text.endswith("\r"):
        return text[:-1]
    return text


def line_text(line: str) -> str:
    """Return a stored line without the ``\\r`` of its terminator."""
    return line[:-1] if line.endswith("\r") else line


def split_code(code: str) -> List[str]:
    """Split directive code into physical lines; one trailing break is not a line."""
    if code.endswith("\r\n"):
        code = code[:-2]
    elif code.endswith("\n"):
        code = code[:-1]
    return _CODE_BREAK_RE.split(code)


def delete_at_line(lines: List[str], directive: DeleteDirective) -> None:
    """Remove the run of lines at ``directive.line`` that exactly matches its code."""
    index = directive.line - 1
    if index < 0 or index >= len(lines):
        raise OutOfRangeError(
            f"Line {directive.line} out of range (file has {len(lines)} line(s))",
            directive=directive,
            details={"length": len(lines)},
        )
    expected_lines = split_code(directive.code)
    for offset, expected in enumerate(expected_lines):
        position = index + offset
        actual = line_text(lines[position]) if position < len(lines) else None
        if actual != expected:
            shown = "<end of file>" if actual is None else repr(actual)
            raise ContentMismatchError(
                f"Code at line {position + 1} does not match expected content: "
                f"expected {expected!r}, found {shown}",
                directive=directive,
                expected=expected,
                actual=actual,
            )
    del lines[index : index + len(expected_lines)]


def insert_at_line(lines: List[str], directive: InsertDirective, newline: str = "\n") -> None:
    """Splice the directive's code in before ``directive.line``, ending each new line with ``newline``."""
    index = directive.line - 1
    if index < 0 or index > len(lines):
        raise OutOfRangeError(
            f"Line {directive.line} out of range (file has {len(lines)} line(s))",
            directive=directive,
            details={"length": len(lines)},
        )
    suffix = "\r" if newline == "\r\n" else ""
    lines[index:index] = [line + suffix for line in split_code(directive.code)]


def apply_line_directives(
    lines: Sequence[str],
    directives: Sequence[LineDirective],
    newline: str = "\n",
) -> List[str]:
    """Apply pre-ordered directives to a copy of ``lines`` and return it.

    The input is never modified, so a failure part way through leaves the
    caller's lines untouched.
    """
    working = list(lines)
    for directive in directives:
        if isinstance(directive, DeleteDirective):
            delete_at_line(working, directive)
        else:
            insert_at_line(working, directive, newline)
    return working


@dataclass(slots=True)
class FileSnapshot:
    """Lines of one file as fetched from the store, plus its version tag."""

    path: str
    lines: List[str]
    version_tag: str
    newline: str = "\n"
    trailing_newline: bool = True
    original: str = field(default="", repr=False)

    @classmethod
    def from_content(cls, path: str, content: str, version_tag: str) -> "FileSnapshot":
        lines, newline, trailing = split_content(content)
        return cls(
            path=path,
            lines=lines,
            version_tag=version_tag,
            newline=newline,
            trailing_newline=trailing,
            original=content,
        )

    def apply(self, directives: Sequence[LineDirective]) -> None:
        """Apply the ordered directives; on failure the snapshot is unchanged."""
        self.lines = apply_line_directives(self.lines, directives, self.newline)

    def render(self) -> str:
        return join_content(self.lines, self.newline, self.trailing_newline)

    @property
    def changed(self) -> bool:
        return self.render() != self.original


__all__ = [
    "ContentMismatchError",
    "FileSnapshot",
    "LinePatchError",
    "OutOfRangeError",
    "apply_line_directives",
    "delete_at_line",
    "insert_at_line",
    "join_content",
    "line_text",
    "split_code",
    "split_content",
]
