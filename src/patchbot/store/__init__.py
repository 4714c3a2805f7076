"""Versioned file stores the batch executor reads from and writes to."""

from .base import (
    FileStore,
    NotFoundError,
    RemoteFileEntry,
    StoreError,
    StoredFile,
    VersionConflictError,
    WriteReceipt,
    blob_sha,
)
from .github import GitHubContentsStore
from .local import LocalDirectoryStore
from .memory import InMemoryFileStore

__all__ = [
    "FileStore",
    "GitHubContentsStore",
    "InMemoryFileStore",
    "LocalDirectoryStore",
    "NotFoundError",
    "RemoteFileEntry",
    "StoreError",
    "StoredFile",
    "VersionConflictError",
    "WriteReceipt",
    "blob_sha",
]
