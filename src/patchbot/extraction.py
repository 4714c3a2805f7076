"""Recover edit directives from free-form language-model output.

Model replies mix prose, fenced code blocks and JSON of varying quality.  The
extractor walks an ordered list of :class:`ExtractionStrategy` entries, each a
span locator paired with a repair pass.  Every located span is repaired and
parsed; spans that still fail to parse are skipped.  The first strategy that
produces at least one directive-shaped element wins and the looser strategies
behind it are never consulted, so overlapping patterns cannot report the same
directive twice.
"""

from __future__ import annotations

import ast
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Mapping, Optional, Sequence

from .errors import PatchbotError

LOGGER = logging.getLogger(__name__)

ACTION_KEYS = ("action", "op", "operation")
FILE_KEYS = ("file", "path", "filename", "file_path", "filepath")
WRAPPER_KEYS = ("operations", "directives", "edits", "changes")
STRUCTURED_FENCE_TAGS = frozenset({"json", "json5", "jsonc"})

_FENCE_RE = re.compile(r"```[ \t]*(?P<tag>[A-Za-z0-9_+.-]*)[^\n]*\n(?P<body>.*?)```", re.DOTALL)
_ARRAY_OF_OBJECTS_RE = re.compile(r"\[\s*\{")
_ANY_OPENER_RE = re.compile(r"[\[{]")
_IDENTIFIER_RE = re.compile(r"[A-Za-z_$][\w$-]*")
_BARE_LITERALS = {"True": "true", "False": "false", "None": "null", "undefined": "null"}
_OUTSIDE_ESCAPES = {"n": "\n", "t": "\t", "r": "\r"}


class ExtractionParseError(PatchbotError):
    """Raised when a candidate span cannot be parsed even after repair."""


@dataclass(frozen=True, slots=True)
class CandidateSpan:
    """Region of the source text that may hold a directive batch."""

    start: int
    end: int
    body: str


Locator = Callable[[str, int], Optional[CandidateSpan]]


@dataclass(frozen=True, slots=True)
class ExtractionStrategy:
    """Span locator plus the repair pass applied before parsing.

    ``rescan_inside`` controls where scanning resumes after a span fails to
    parse: bare bracket matches retry from the next character so a nested
    candidate can still be found, fenced blocks skip the whole block.
    """

    name: str
    locate: Locator
    repair: Callable[[str], str]
    rescan_inside: bool = False


# --------------------------------------------------------------------- repair
# Characters that open a string outside a literal, mapped to the characters
# that may close it.  Models also emit typographic quotes as delimiters.
_QUOTE_CLOSERS = {
    '"': '"',
    "'": "'",
    "\u201c": "\u201d\u201c\"",
    "\u201d": "\u201d\u201c\"",
    "\u2018": "\u2019\u2018'",
    "\u2019": "\u2019\u2018'",
    "\uff07": "\uff07'",
}
_DOUBLE_QUOTES = frozenset({'"', "\u201c", "\u201d"})
# Applied outside string literals only; string values stay byte-for-byte.
_OUTSIDE_TRANSLATION = {"\u00a0": " ", "\ufeff": ""}


def find_closing_bracket(text: str, start: int) -> int | None:
    """Return the index closing the bracket opened at ``start``, or ``None``.

    Every quote style in ``_QUOTE_CLOSERS`` opens a string, so brackets
    inside string values are not counted.  Mismatched closers abort the scan.
    """
    expected: list[str] = []
    closers: str | None = None
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if closers is not None:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char in closers:
                closers = None
            continue
        if char in _QUOTE_CLOSERS:
            closers = _QUOTE_CLOSERS[char]
        elif char in "[{":
            expected.append("]" if char == "[" else "}")
        elif char in "]}":
            if not expected or char != expected[-1]:
                return None
            expected.pop()
            if not expected:
                return index
    return None


def trim_to_structure(text: str) -> str:
    """Drop stray prose before the first and after the last structural character."""
    opening = _ANY_OPENER_RE.search(text)
    if opening is None:
        return text.strip()
    start = opening.start()
    end = find_closing_bracket(text, start)
    if end is None:
        end = max(text.rfind("]"), text.rfind("}"))
        if end < start:
            return text[start:].strip()
    return text[start : end + 1]


def _read_string(text: str, start: int, closers: str) -> tuple[str, int, bool]:
    """Read a quoted string starting at ``start``; return body, next index, closed flag."""
    index = start + 1
    while index < len(text):
        char = text[index]
        if char == "\\":
            index += 2
            continue
        if char in closers:
            return text[start + 1 : index], index + 1, True
        index += 1
    return text[start + 1 :], len(text), False


def _requote_single(body: str) -> str:
    """Convert the body of a single-quoted string into a double-quoted JSON body."""
    out: list[str] = []
    index = 0
    while index < len(body):
        char = body[index]
        if char == "\\" and index + 1 < len(body):
            following = body[index + 1]
            out.append("'" if following == "'" else char + following)
            index += 2
            continue
        out.append('\\"' if char == '"' else char)
        index += 1
    return "".join(out)


def _next_significant(text: str, index: int) -> str:
    """Return the next non-whitespace character at or after ``index``."""
    while index < len(text) and text[index].isspace():
        index += 1
    return text[index] if index < len(text) else ""


def rewrite_json_tokens(text: str) -> str:
    """Rewrite JavaScript-ish object notation into strict JSON.

    Outside string literals this quotes bare object keys, maps Python and
    JavaScript literals (``True``, ``None``, ``undefined``) to JSON, drops
    trailing commas and comments, turns literal ``\\n``/``\\t`` escape
    sequences into real whitespace, turns non-breaking spaces into spaces and
    drops byte-order marks.  Single-quoted and typographically quoted strings
    become double-quoted; the value of every string literal is preserved.
    """
    out: list[str] = []
    index = 0
    length = len(text)
    while index < length:
        char = text[index]
        if char in _QUOTE_CLOSERS:
            body, index, closed = _read_string(text, index, _QUOTE_CLOSERS[char])
            if char not in _DOUBLE_QUOTES:
                body = _requote_single(body)
            out.append(f'"{body}"' if closed else f'"{body}')
        elif char in _OUTSIDE_TRANSLATION:
            out.append(_OUTSIDE_TRANSLATION[char])
            index += 1
        elif char == "\\" and index + 1 < length and text[index + 1] in _OUTSIDE_ESCAPES:
            out.append(_OUTSIDE_ESCAPES[text[index + 1]])
            index += 2
        elif char == "/" and text.startswith("//", index):
            newline = text.find("\n", index)
            index = length if newline == -1 else newline
        elif char == "/" and text.startswith("/*", index):
            closing = text.find("*/", index + 2)
            index = length if closing == -1 else closing + 2
        elif char == ",":
            if _next_significant(text, index + 1) not in ("]", "}"):
                out.append(char)
            index += 1
        elif char.isalpha() or char in "_$":
            match = _IDENTIFIER_RE.match(text, index)
            word = match.group(0) if match else char
            index += len(word)
            if _next_significant(text, index) == ":":
                out.append(f'"{word}"')
            else:
                out.append(_BARE_LITERALS.get(word, word))
        else:
            out.append(char)
            index += 1
    return "".join(out)


def repair_bare_span(span: str) -> str:
    """Repair pass for spans already cut at balanced brackets."""
    return rewrite_json_tokens(span)


def repair_fenced_span(span: str) -> str:
    """Repair pass for fenced blocks, which may carry prose around the payload."""
    return rewrite_json_tokens(trim_to_structure(span.strip()))


# -------------------------------------------------------------------- parsing
def _normalise_literal(value: Any) -> Any:
    """Convert Python literals into JSON-compatible structures recursively."""
    if isinstance(value, dict):
        return {str(key): _normalise_literal(sub) for key, sub in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_normalise_literal(item) for item in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def _coerce_python_literal(candidate: str) -> Any | None:
    """Fall back to Python literal parsing when JSON decoding fails."""
    try:
        literal = ast.literal_eval(candidate)
    except (SyntaxError, ValueError, TypeError, MemoryError, RecursionError):
        return None
    return _normalise_literal(literal)


def parse_candidate(span: str, repair: Callable[[str], str] = repair_fenced_span) -> Any:
    """Parse one candidate span, repairing it first.

    Raises :class:`ExtractionParseError` when neither the repaired JSON nor
    the raw span read as a Python literal produces a value.
    """
    if not span or not span.strip():
        raise ExtractionParseError("Empty candidate span.")
    repaired = repair(span)
    try:
        return json.loads(repaired, strict=False)
    except json.JSONDecodeError as error:
        literal = _coerce_python_literal(trim_to_structure(span.strip()))
        if literal is not None:
            return literal
        raise ExtractionParseError(
            f"Candidate is not valid JSON after repair: {error.msg}",
            details={"snippet": repaired[:200], "position": error.pos},
        ) from error


# ---------------------------------------------------------------------- shape
def _first_present(item: Mapping[str, Any], keys: Sequence[str]) -> str | None:
    for key in keys:
        if key in item:
            return key
    return None


def looks_like_directive(value: Any) -> bool:
    """Return True when ``value`` is a mapping with action-like and file-like keys."""
    if not isinstance(value, Mapping):
        return False
    lowered = {str(key).strip().lower() for key in value}
    return any(key in lowered for key in ACTION_KEYS) and any(key in lowered for key in FILE_KEYS)


def canonicalise_candidate(item: Mapping[str, Any]) -> dict[str, Any]:
    """Lower-case keys and fold action/file aliases onto ``action`` and ``file``."""
    lowered = {str(key).strip().lower(): value for key, value in item.items()}
    action_key = _first_present(lowered, ACTION_KEYS)
    file_key = _first_present(lowered, FILE_KEYS)
    canonical = {
        key: value
        for key, value in lowered.items()
        if key not in ACTION_KEYS and key not in FILE_KEYS
    }
    if action_key is not None:
        canonical["action"] = lowered[action_key]
    if file_key is not None:
        canonical["file"] = lowered[file_key]
    return canonical


def directive_elements(value: Any) -> list[dict[str, Any]]:
    """Return the directive-shaped elements of a parsed candidate value.

    Arrays qualify when their first element looks like a directive; other
    elements that do not are dropped.  A single directive object becomes a
    one-element batch, and an object wrapping a directive array under a known
    key is unwrapped.
    """
    if isinstance(value, list):
        if not value or not looks_like_directive(value[0]):
            return []
        return [canonicalise_candidate(item) for item in value if looks_like_directive(item)]
    if isinstance(value, Mapping):
        if looks_like_directive(value):
            return [canonicalise_candidate(value)]
        for key in WRAPPER_KEYS:
            nested = value.get(key)
            if isinstance(nested, list):
                return directive_elements(nested)
    return []


# ------------------------------------------------------------------- locators
def _fence_locator(structured: bool) -> Locator:
    def locate(text: str, pos: int) -> CandidateSpan | None:
        for match in _FENCE_RE.finditer(text, pos):
            tagged = match.group("tag").lower() in STRUCTURED_FENCE_TAGS
            if tagged == structured:
                return CandidateSpan(match.start(), match.end(), match.group("body"))
        return None

    return locate


def _bracket_locator(pattern: re.Pattern[str]) -> Locator:
    def locate(text: str, pos: int) -> CandidateSpan | None:
        for match in pattern.finditer(text, pos):
            end = find_closing_bracket(text, match.start())
            if end is not None:
                return CandidateSpan(match.start(), end + 1, text[match.start() : end + 1])
        return None

    return locate


DEFAULT_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    ExtractionStrategy("structured-fence", _fence_locator(True), repair_fenced_span),
    ExtractionStrategy("any-fence", _fence_locator(False), repair_fenced_span),
    ExtractionStrategy("array-of-objects", _bracket_locator(_ARRAY_OF_OBJECTS_RE), repair_bare_span, True),
    ExtractionStrategy("array-or-object", _bracket_locator(_ANY_OPENER_RE), repair_bare_span, True),
)


def _scan(text: str, strategy: ExtractionStrategy) -> Iterator[dict[str, Any]]:
    """Yield directive candidates from every span ``strategy`` locates in ``text``."""
    pos = 0
    while pos < len(text):
        span = strategy.locate(text, pos)
        if span is None:
            return
        try:
            value = parse_candidate(span.body, strategy.repair)
        except ExtractionParseError as error:
            LOGGER.debug("Skipping %s span at %d: %s", strategy.name, span.start, error)
            pos = span.start + 1 if strategy.rescan_inside else span.end
            continue
        elements = directive_elements(value)
        if not elements and strategy.rescan_inside:
            pos = span.start + 1
            continue
        yield from elements
        pos = span.end


def extract_directives(
    text: str,
    strategies: Sequence[ExtractionStrategy] = DEFAULT_STRATEGIES,
) -> Iterator[dict[str, Any]]:
    """Lazily yield raw directive candidates found in ``text``, in order of appearance."""
    if not text:
        return
    for strategy in strategies:
        found = 0
        for candidate in _scan(text, strategy):
            found += 1
            yield candidate
        if found:
            LOGGER.debug("Strategy %s recovered %d candidate(s)", strategy.name, found)
            return


__all__ = [
    "CandidateSpan",
    "DEFAULT_STRATEGIES",
    "ExtractionParseError",
    "ExtractionStrategy",
    "canonicalise_candidate",
    "directive_elements",
    "extract_directives",
    "find_closing_bracket",
    "looks_like_directive",
    "parse_candidate",
    "repair_bare_span",
    "repair_fenced_span",
    "rewrite_json_tokens",
    "trim_to_structure",
]
