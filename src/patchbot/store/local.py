"""File store over a directory on the local filesystem."""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import List, Optional

from .base import (
    FileStore,
    NotFoundError,
    RemoteFileEntry,
    StoreError,
    StoredFile,
    WriteReceipt,
    blob_sha,
    check_precondition,
)

LOGGER = logging.getLogger(__name__)

_SKIPPED_DIRS = frozenset({".git", "__pycache__", ".venv", "node_modules"})


class LocalDirectoryStore(FileStore):
    """Serve a working copy as a versioned store.

    Version tags are git blob ids of the file bytes; commit ids are derived
    from the path, the new tag and the message.  Paths that resolve outside
    ``root`` are refused.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()
        if not self.root.is_dir():
            raise StoreError(f"Store root is not a directory: {self.root}")

    def _resolve(self, path: str) -> Path:
        candidate = (self.root / path.lstrip("/")).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            raise StoreError(f"Path escapes the store root: {path}", details={"path": path})
        return candidate

    def _current_tag(self, target: Path) -> Optional[str]:
        if not target.is_file():
            return None
        return blob_sha(target.read_bytes())

    @staticmethod
    def _commit_id(path: str, tag: str, message: str) -> str:
        return hashlib.sha1(f"{path}\0{tag}\0{message}".encode("utf-8")).hexdigest()

    async def get(self, path: str) -> StoredFile:
        target = self._resolve(path)
        if not target.exists():
            raise NotFoundError(f"File not found: {path}", details={"path": path})
        if not target.is_file():
            raise StoreError(f"Not a file: {path}", details={"path": path})
        data = target.read_bytes()
        try:
            content = data.decode("utf-8")
        except UnicodeDecodeError as error:
            raise StoreError(f"File is not UTF-8 text: {path}", details={"path": path}) from error
        return StoredFile(path=path, content=content, version_tag=blob_sha(data))

    async def put(
        self,
        path: str,
        content: str,
        *,
        expected_version: Optional[str] = None,
        message: str,
    ) -> WriteReceipt:
        target = self._resolve(path)
        check_precondition(path, self._current_tag(target), expected_version)
        data = content.encode("utf-8")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as error:
            LOGGER.error("Failed to write %s: %s", target, error)
            raise StoreError(f"Failed to write file: {path}", details={"path": path}) from error
        return WriteReceipt(path=path, commit=self._commit_id(path, blob_sha(data), message))

    async def delete(self, path: str, *, expected_version: str, message: str) -> WriteReceipt:
        target = self._resolve(path)
        current = self._current_tag(target)
        if current is None:
            raise NotFoundError(f"File not found: {path}", details={"path": path})
        check_precondition(path, current, expected_version)
        try:
            target.unlink()
        except OSError as error:
            LOGGER.error("Failed to delete %s: %s", target, error)
            raise StoreError(f"Failed to delete file: {path}", details={"path": path}) from error
        return WriteReceipt(path=path, commit=self._commit_id(path, current, message))

    async def list_files(self, path: str = "") -> List[RemoteFileEntry]:
        base = self._resolve(path) if path else self.root
        if base.is_file():
            candidates = [base]
        elif base.is_dir():
            candidates = sorted(base.rglob("*"))
        else:
            raise NotFoundError(f"Path not found: {path}", details={"path": path})
        entries = []
        for candidate in candidates:
            relative = candidate.relative_to(self.root)
            if not candidate.is_file() or any(part in _SKIPPED_DIRS for part in relative.parts):
                continue
            data = candidate.read_bytes()
            entries.append(
                RemoteFileEntry(
                    path=relative.as_posix(),
                    name=candidate.name,
                    size=len(data),
                    version_tag=blob_sha(data),
                )
            )
        return entries


__all__ = ["LocalDirectoryStore"]
