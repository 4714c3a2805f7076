"""Partition a directive batch into ordered work queues."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence

from .directives import (
    CreateFileDirective,
    DeleteDirective,
    DeleteFileDirective,
    Directive,
    LineDirective,
)


@dataclass(slots=True)
class BatchPlan:
    """Work queues for one batch, in the order they must run.

    File deletions run first, then each file's line edits as one unit, then
    file creations, so a create always lands after any edit to the same path.
    """

    delete_files: List[DeleteFileDirective] = field(default_factory=list)
    modify_groups: Dict[str, List[LineDirective]] = field(default_factory=dict)
    creates: List[CreateFileDirective] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.delete_files or self.modify_groups or self.creates)

    @property
    def directive_count(self) -> int:
        return (
            len(self.delete_files)
            + sum(len(group) for group in self.modify_groups.values())
            + len(self.creates)
        )


def order_line_directives(directives: Sequence[LineDirective]) -> List[LineDirective]:
    """Order one file's line edits for bottom-up application.

    Line numbers refer to the file before the batch, so edits run from the
    highest line down.  On a shared line deletes run before inserts, which
    turns a delete/insert pair into a replacement.  Inserts sharing a line are
    applied last-authored first so they end up in authored order.
    """

    def sort_key(entry: tuple[int, LineDirective]) -> tuple[int, int, int]:
        position, directive = entry
        if isinstance(directive, DeleteDirective):
            return (-directive.line, 0, position)
        return (-directive.line, 1, -position)

    return [directive for _, directive in sorted(enumerate(directives), key=sort_key)]


def plan_batch(directives: Iterable[Directive]) -> BatchPlan:
    """Split validated directives into the delete-file, modify and create queues."""
    plan = BatchPlan()
    for directive in directives:
        if isinstance(directive, DeleteFileDirective):
            plan.delete_files.append(directive)
        elif isinstance(directive, CreateFileDirective):
            plan.creates.append(directive)
        else:
            plan.modify_groups.setdefault(directive.file, []).append(directive)
    for path, group in plan.modify_groups.items():
        plan.modify_groups[path] = order_line_directives(group)
    return plan


__all__ = ["BatchPlan", "order_line_directives", "plan_batch"]
