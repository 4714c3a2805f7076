"""Base error shared by every patchbot failure."""

from __future__ import annotations

from typing import Any, Mapping


class PatchbotError(RuntimeError):
    """Root of the patchbot error hierarchy."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = dict(details or {})


__all__ = ["PatchbotError"]
