"""Dictionary-backed file store."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from .base import (
    FileStore,
    NotFoundError,
    RemoteFileEntry,
    StoredFile,
    WriteReceipt,
    blob_sha,
    check_precondition,
)


@dataclass(frozen=True, slots=True)
class RecordedWrite:
    """One mutation applied to an :class:`InMemoryFileStore`."""

    operation: str
    path: str
    message: str
    commit: str


class InMemoryFileStore(FileStore):
    """Keeps files in a dictionary; version tags are git blob ids of the content."""

    def __init__(self, files: Mapping[str, str] | None = None) -> None:
        self._files: Dict[str, str] = dict(files or {})
        self.writes: List[RecordedWrite] = []

    @property
    def files(self) -> Dict[str, str]:
        return dict(self._files)

    def _tag(self, path: str) -> Optional[str]:
        content = self._files.get(path)
        if content is None:
            return None
        return blob_sha(content.encode("utf-8"))

    def _record(self, operation: str, path: str, message: str) -> WriteReceipt:
        seed = f"{len(self.writes)}:{operation}:{path}:{self._tag(path)}:{message}"
        commit = hashlib.sha1(seed.encode("utf-8")).hexdigest()
        self.writes.append(RecordedWrite(operation, path, message, commit))
        return WriteReceipt(path=path, commit=commit)

    async def get(self, path: str) -> StoredFile:
        content = self._files.get(path)
        if content is None:
            raise NotFoundError(f"File not found: {path}", details={"path": path})
        return StoredFile(path=path, content=content, version_tag=blob_sha(content.encode("utf-8")))

    async def put(
        self,
        path: str,
        content: str,
        *,
        expected_version: Optional[str] = None,
        message: str,
    ) -> WriteReceipt:
        check_precondition(path, self._tag(path), expected_version)
        operation = "create" if expected_version is None else "update"
        self._files[path] = content
        return self._record(operation, path, message)

    async def delete(self, path: str, *, expected_version: str, message: str) -> WriteReceipt:
        if path not in self._files:
            raise NotFoundError(f"File not found: {path}", details={"path": path})
        check_precondition(path, self._tag(path), expected_version)
        del self._files[path]
        return self._record("delete", path, message)

    async def list_files(self, path: str = "") -> List[RemoteFileEntry]:
        prefix = path.strip("/")
        entries = []
        for name in sorted(self._files):
            if prefix and not (name == prefix or name.startswith(prefix + "/")):
                continue
            data = self._files[name].encode("utf-8")
            entries.append(
                RemoteFileEntry(
                    path=name,
                    name=name.rsplit("/", 1)[-1],
                    size=len(data),
                    version_tag=blob_sha(data),
                )
            )
        return entries


__all__ = ["InMemoryFileStore", "RecordedWrite"]
