"""
Task Ledger — content-hashed plan for one request

The ledger pairs the original request with its ordered task entries. Every
change produces a new ledger whose hash covers the request and every field of
every task, in order. Re-hashing the whole ledger on each change keeps
``verify_integrity`` a single recomputation.

Usage:
    ledger = TaskLedger.create("Ship the release notes")
    ledger = ledger.with_task(TaskEntry.create("Draft notes", priority=2))
    assert ledger.verify_integrity()
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Any

from strategist.errors import InvalidArgumentError

from .hashing import content_hash
from .models import TERMINAL_STATUSES, TaskEntry, TaskStatus

TASK_LEDGER_VERSION = "task-ledger/v1"


def compute_task_hash(original_request: str, tasks: Iterable[TaskEntry]) -> str:
    """SHA-256 over the version tag, the request and every task in order."""
    return content_hash(
        [TASK_LEDGER_VERSION, original_request, [task.canonical() for task in tasks]]
    )


@dataclass(frozen=True)
class TaskLedger:
    """Immutable ordered task list with a content hash."""

    ledger_id: str
    original_request: str
    tasks: tuple[TaskEntry, ...]
    content_hash: str
    created_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tasks", tuple(self.tasks))

    @classmethod
    def create(cls, original_request: str, tasks: Iterable[TaskEntry] = ()) -> TaskLedger:
        if original_request is None:
            raise InvalidArgumentError("original_request cannot be None")
        entries = tuple(tasks)
        return cls(
            ledger_id=f"ledger-{uuid.uuid4().hex}",
            original_request=original_request,
            tasks=entries,
            content_hash=compute_task_hash(original_request, entries),
        )

    def _rehashed(self, tasks: tuple[TaskEntry, ...]) -> TaskLedger:
        return replace(
            self,
            tasks=tasks,
            content_hash=compute_task_hash(self.original_request, tasks),
        )

    def with_task(self, task: TaskEntry) -> TaskLedger:
        """Append a task and return the successor ledger."""
        return self._rehashed(self.tasks + (task,))

    def with_updated_task(self, task_id: str, task: TaskEntry) -> TaskLedger:
        """Replace the task with ``task_id`` in place, keeping order.

        Raises:
            KeyError: no task with that id
        """
        for index, existing in enumerate(self.tasks):
            if existing.task_id == task_id:
                tasks = self.tasks[:index] + (task,) + self.tasks[index + 1 :]
                return self._rehashed(tasks)
        raise KeyError(task_id)

    def get_task(self, task_id: str) -> TaskEntry | None:
        for task in self.tasks:
            if task.task_id == task_id:
                return task
        return None

    def completed_ids(self) -> frozenset[str]:
        return frozenset(t.task_id for t in self.tasks if t.status == TaskStatus.COMPLETED)

    def ready_tasks(self) -> list[TaskEntry]:
        """Pending tasks whose dependencies are all completed, highest priority first."""
        done = self.completed_ids()
        ready = [t for t in self.tasks if t.is_ready(done)]
        return sorted(ready, key=lambda t: t.priority, reverse=True)

    def is_complete(self) -> bool:
        """True once every task reached a terminal status."""
        return all(t.status in TERMINAL_STATUSES for t in self.tasks)

    def verify_integrity(self) -> bool:
        return compute_task_hash(self.original_request, self.tasks) == self.content_hash

    def to_dict(self) -> dict[str, Any]:
        return {
            "ledger_id": self.ledger_id,
            "original_request": self.original_request,
            "tasks": [t.canonical() for t in self.tasks],
            "content_hash": self.content_hash,
            "created_at": self.created_at,
        }
