"""Remote file store interface consumed by the batch executor."""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from ..errors import PatchbotError


class StoreError(PatchbotError):
    """Raised when the store cannot complete a request."""


class NotFoundError(StoreError):
    """Raised when the requested path does not exist in the store."""


class VersionConflictError(StoreError):
    """Raised when a write's expected version tag no longer matches the store."""


@dataclass(frozen=True, slots=True)
class StoredFile:
    """File content together with the version tag it was read at."""

    path: str
    content: str
    version_tag: str


@dataclass(frozen=True, slots=True)
class WriteReceipt:
    """Commit produced by a successful write or delete."""

    path: str
    commit: str


@dataclass(frozen=True, slots=True)
class RemoteFileEntry:
    """Listing entry for a file in the store."""

    path: str
    name: str
    size: int
    version_tag: str


def blob_sha(data: bytes) -> str:
    """Return the git blob object id for ``data``."""
    header = f"blob {len(data)}\0".encode("ascii")
    return hashlib.sha1(header + data).hexdigest()


def check_precondition(path: str, current_tag: Optional[str], expected_version: Optional[str]) -> None:
    """Enforce the optimistic-concurrency rules shared by the local stores.

    A write without ``expected_version`` must target a missing path; a write
    with one must target an existing path whose tag still matches.
    """
    if expected_version is None:
        if current_tag is not None:
            raise VersionConflictError(
                f"File already exists: {path}",
                details={"path": path, "current": current_tag},
            )
        return
    if current_tag is None:
        raise VersionConflictError(
            f"File no longer exists: {path}",
            details={"path": path, "expected": expected_version},
        )
    if current_tag != expected_version:
        raise VersionConflictError(
            f"Version conflict for {path}: expected {expected_version}, found {current_tag}",
            details={"path": path, "expected": expected_version, "current": current_tag},
        )


class FileStore(ABC):
    """Asynchronous, versioned file store."""

    @abstractmethod
    async def get(self, path: str) -> StoredFile:
        """Return the file at ``path`` or raise :class:`NotFoundError`."""

    @abstractmethod
    async def put(
        self,
        path: str,
        content: str,
        *,
        expected_version: Optional[str] = None,
        message: str,
    ) -> WriteReceipt:
        """Create (no ``expected_version``) or update (with one) the file at ``path``."""

    @abstractmethod
    async def delete(self, path: str, *, expected_version: str, message: str) -> WriteReceipt:
        """Delete ``path`` provided it is still at ``expected_version``."""

    @abstractmethod
    async def list_files(self, path: str = "") -> List[RemoteFileEntry]:
        """Recursively list files below ``path``."""

    async def aclose(self) -> None:
        """Release any transport resources held by the store."""

    async def __aenter__(self) -> "FileStore":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


__all__ = [
    "FileStore",
    "NotFoundError",
    "RemoteFileEntry",
    "StoreError",
    "StoredFile",
    "VersionConflictError",
    "WriteReceipt",
    "blob_sha",
    "check_precondition",
]
