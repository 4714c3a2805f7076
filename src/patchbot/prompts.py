"""Prompt templates that teach the model the directive format."""

from __future__ import annotations

DIRECTIVE_FORMAT_EXAMPLE = """```json
[
  {"action": "insert", "file": "path/to/file", "line": 12, "code": "new line"},
  {"action": "delete", "file": "path/to/file", "line": 5, "code": "exact current line"},
  {"action": "create", "file": "path/to/new_file", "content": "full file content"},
  {"action": "delete_file", "file": "path/to/old_file"}
]
```"""

SYSTEM_PROMPT = (
    "You are a coding assistant with write access to a source repository. "
    "When the user asks for code changes, reply with a short explanation followed by one fenced JSON "
    "block holding an array of edit operations:\n"
    f"{DIRECTIVE_FORMAT_EXAMPLE}\n"
    "Rules:\n"
    "- Line numbers are 1-based and always refer to the file as it is before any of your operations.\n"
    "- `delete` removes the lines starting at `line`; `code` must match them exactly, including indentation.\n"
    "- `insert` places `code` before `line`; use the line count plus one to append.\n"
    "- To replace a line, emit a `delete` and an `insert` with the same line number.\n"
    "- Use `\\n` inside `code` for several lines.\n"
    "- Only emit JSON operations when a change is requested."
)


def render_autofix_prompt(error_text: str) -> str:
    """Build the prompt asking the model to fix a failed deployment."""
    return (
        "The deployment failed with the following error:\n\n"
        f"{error_text.strip()}\n\n"
        "Please analyze the error and provide JSON operations to fix the code. Use this format:\n"
        '```json\n[{"action": "insert|delete", "file": "path/to/file", "line": number, "code": "code here"}]\n```'
    )


__all__ = ["DIRECTIVE_FORMAT_EXAMPLE", "SYSTEM_PROMPT", "render_autofix_prompt"]
