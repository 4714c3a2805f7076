"""Apply a directive batch against a file store and report per-item outcomes."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from .directives import CreateFileDirective, DeleteFileDirective, Directive, LineDirective, OperationResult
from .engine import FileSnapshot, LinePatchError
from .scheduler import plan_batch
from .store.base import FileStore, NotFoundError, StoredFile, StoreError

TELEMETRY_LOGGER = logging.getLogger("patchbot.telemetry")

CREATED_MESSAGE = "File created"
UPDATED_MESSAGE = "File already existed; updated instead of created"
UNCHANGED_MESSAGE = "No changes; file left as is"


@dataclass(slots=True)
class CommitMessages:
    """Commit message templates; ``modify`` may reference ``{count}`` and ``{file}``."""

    modify: str = "Applied {count} operation(s) via chat interface"
    create: str = "Create file via chat interface"
    update: str = "Update file via chat interface"
    delete: str = "Delete file via chat interface"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "CommitMessages":
        messages = cls()
        for key, value in (data or {}).items():
            if key in ("modify", "create", "update", "delete") and isinstance(value, str) and value.strip():
                setattr(messages, key, value)
        return messages


def _serialise_event_value(value: Any) -> Any:
    """Convert telemetry payload values into JSON-friendly representations."""
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (list, tuple, set)):
        return [_serialise_event_value(item) for item in value]
    if isinstance(value, Mapping):
        return {str(key): _serialise_event_value(child) for key, child in value.items()}
    return str(value)


def _emit_batch_event(event: str, **fields: Any) -> None:
    """Log one structured telemetry event as a compact JSON line."""
    payload = {"event": event, "timestamp": datetime.now(timezone.utc).isoformat()}
    for key, value in fields.items():
        payload[key] = _serialise_event_value(value)
    TELEMETRY_LOGGER.info(json.dumps(payload, separators=(",", ":"), ensure_ascii=True))


class BatchExecutor:
    """Runs a batch against ``store``: file deletions, then per-file edits, then creations.

    Every surfaced item yields one :class:`OperationResult`.  A failure is
    recorded on its own result and never stops the items after it; nothing
    already written is rolled back.
    """

    def __init__(self, store: FileStore, *, messages: Optional[CommitMessages] = None) -> None:
        self._store = store
        self._messages = messages or CommitMessages()

    @property
    def store(self) -> FileStore:
        return self._store

    async def apply(self, directives: Iterable[Directive]) -> List[OperationResult]:
        plan = plan_batch(directives)
        results: List[OperationResult] = []
        if plan.is_empty:
            return results

        _emit_batch_event(
            "batch_started",
            directives=plan.directive_count,
            delete_files=len(plan.delete_files),
            modify_files=sorted(plan.modify_groups),
            creates=len(plan.creates),
        )
        for directive in plan.delete_files:
            results.append(await self._delete_file(directive))
        for path, group in plan.modify_groups.items():
            results.append(await self._modify(path, group))
        for directive in plan.creates:
            results.append(await self._create(directive))

        failed = sum(1 for result in results if not result.success)
        _emit_batch_event("batch_finished", results=len(results), failed=failed)
        return results

    # ------------------------------------------------------------ delete-file
    async def _delete_file(self, directive: DeleteFileDirective) -> OperationResult:
        path = directive.file
        try:
            stored = await self._store.get(path)
            receipt = await self._store.delete(
                path,
                expected_version=stored.version_tag,
                message=self._messages.delete,
            )
        except StoreError as error:
            _emit_batch_event("delete_file_failed", file=path, error=str(error))
            return OperationResult(file=path, action="delete_file", success=False, error=str(error))
        _emit_batch_event("delete_file_applied", file=path, commit=receipt.commit)
        return OperationResult(
            file=path,
            action="delete_file",
            success=True,
            commit=receipt.commit,
            message="File deleted",
        )

    # ----------------------------------------------------------------- modify
    async def _modify(self, path: str, group: Sequence[LineDirective]) -> OperationResult:
        count = len(group)
        try:
            stored = await self._store.get(path)
            snapshot = FileSnapshot.from_content(path, stored.content, stored.version_tag)
            snapshot.apply(group)
            if not snapshot.changed:
                _emit_batch_event("modify_applied", file=path, operations=count, commit=None)
                return OperationResult(
                    file=path,
                    action="modify",
                    success=True,
                    message=UNCHANGED_MESSAGE,
                    operations=count,
                )
            receipt = await self._store.put(
                path,
                snapshot.render(),
                expected_version=snapshot.version_tag,
                message=self._messages.modify.format(count=count, file=path),
            )
        except LinePatchError as error:
            _emit_batch_event(
                "modify_failed",
                file=path,
                operations=count,
                error=str(error),
                line=error.line,
                kind=type(error).__name__,
            )
            return OperationResult(file=path, action="modify", success=False, error=str(error), operations=count)
        except StoreError as error:
            _emit_batch_event("modify_failed", file=path, operations=count, error=str(error), kind=type(error).__name__)
            return OperationResult(file=path, action="modify", success=False, error=str(error), operations=count)

        _emit_batch_event("modify_applied", file=path, operations=count, commit=receipt.commit)
        return OperationResult(
            file=path,
            action="modify",
            success=True,
            commit=receipt.commit,
            message=f"Applied {count} operation(s)",
            operations=count,
        )

    # ----------------------------------------------------------------- create
    async def _create(self, directive: CreateFileDirective) -> OperationResult:
        path = directive.file
        existing: Optional[StoredFile]
        try:
            existing = await self._store.get(path)
        except NotFoundError:
            existing = None
        except StoreError as error:
            _emit_batch_event("create_failed", file=path, error=str(error))
            return OperationResult(file=path, action="create", success=False, error=str(error))

        try:
            if existing is None:
                receipt = await self._store.put(path, directive.content, message=self._messages.create)
                message = CREATED_MESSAGE
            else:
                receipt = await self._store.put(
                    path,
                    directive.content,
                    expected_version=existing.version_tag,
                    message=self._messages.update,
                )
                message = UPDATED_MESSAGE
        except StoreError as error:
            _emit_batch_event("create_failed", file=path, error=str(error))
            return OperationResult(file=path, action="create", success=False, error=str(error))

        _emit_batch_event("create_applied", file=path, commit=receipt.commit, existed=existing is not None)
        return OperationResult(file=path, action="create", success=True, commit=receipt.commit, message=message)


async def apply_batch(
    directives: Iterable[Directive],
    store: FileStore,
    *,
    messages: Optional[CommitMessages] = None,
) -> List[OperationResult]:
    """Apply ``directives`` to ``store`` and return one result per surfaced item."""
    return await BatchExecutor(store, messages=messages).apply(directives)


__all__ = [
    "BatchExecutor",
    "CREATED_MESSAGE",
    "CommitMessages",
    "UNCHANGED_MESSAGE",
    "UPDATED_MESSAGE",
    "apply_batch",
]
