"""Typed edit directives and the per-item outcomes reported after applying them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class DirectiveModel(BaseModel):
    """Base Pydantic model for directives; instances are immutable once validated."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    file: str = Field(min_length=1)


class InsertDirective(DirectiveModel):
    """Insert ``code`` (one or more lines) before the 1-based ``line``."""

    action: Literal["insert"] = "insert"
    line: int = Field(ge=1)
    code: str


class DeleteDirective(DirectiveModel):
    """Remove the lines starting at ``line`` that exactly match ``code``."""

    action: Literal["delete"] = "delete"
    line: int = Field(ge=1)
    code: str


class CreateFileDirective(DirectiveModel):
    """Create ``file`` with ``content``, overwriting it when it already exists."""

    action: Literal["create"] = "create"
    content: str


class DeleteFileDirective(DirectiveModel):
    """Remove ``file`` from the store."""

    action: Literal["delete_file"] = "delete_file"


Directive = Annotated[
    Union[InsertDirective, DeleteDirective, CreateFileDirective, DeleteFileDirective],
    Field(discriminator="action"),
]
LineDirective = Union[InsertDirective, DeleteDirective]

DIRECTIVE_ACTIONS = ("insert", "delete", "create", "delete_file")


@dataclass(slots=True)
class OperationResult:
    """Outcome of one surfaced batch item (a modify group, a create, or a file delete)."""

    file: str
    action: str
    success: bool
    error: Optional[str] = None
    commit: Optional[str] = None
    message: Optional[str] = None
    operations: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "file": self.file,
            "action": self.action,
            "success": self.success,
        }
        for key in ("error", "commit", "message", "operations"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        return payload


__all__ = [
    "CreateFileDirective",
    "DIRECTIVE_ACTIONS",
    "DeleteDirective",
    "DeleteFileDirective",
    "Directive",
    "DirectiveModel",
    "InsertDirective",
    "LineDirective",
    "OperationResult",
]
