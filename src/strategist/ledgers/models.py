"""
Ledger Entry Models

Task entries describe planned work; progress entries record what an executor
actually did. Both are frozen. ``canonical()`` returns every field as plain
JSON-safe data in a fixed shape and is what the ledgers hash.
"""

from __future__ import annotations

import math
import time
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any

from strategist.errors import InvalidArgumentError, require_identifier


class TaskStatus(StrEnum):
    """Lifecycle of a task entry."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.SKIPPED})


def _require_finite(name: str, value: float | None) -> None:
    # canonical JSON has no NaN or Infinity
    if value is not None and not math.isfinite(value):
        raise InvalidArgumentError(f"{name} must be finite, got {value}")


class SignalType(StrEnum):
    """Signals an executor can raise alongside a progress entry."""

    SUCCESS = "success"
    FAILURE = "failure"
    HELP_NEEDED = "help_needed"
    PROGRESS = "progress"


@dataclass(frozen=True)
class TaskEntry:
    """One planned unit of work in a task ledger."""

    task_id: str
    description: str
    status: TaskStatus = TaskStatus.PENDING
    priority: int = 0
    dependencies: tuple[str, ...] = ()
    created_at: float = field(default_factory=time.time)
    result: str | None = None
    preferred_executor_id: str | None = None

    def __post_init__(self) -> None:
        require_identifier(self.task_id, "task_id")
        if self.description is None:
            raise InvalidArgumentError("description cannot be None")
        _require_finite("created_at", self.created_at)
        object.__setattr__(self, "status", TaskStatus(self.status))
        object.__setattr__(self, "dependencies", tuple(self.dependencies))

    @classmethod
    def create(
        cls,
        description: str,
        priority: int = 0,
        dependencies: Iterable[str] = (),
        task_id: str | None = None,
    ) -> TaskEntry:
        return cls(
            task_id=task_id or f"task-{uuid.uuid4().hex}",
            description=description,
            priority=priority,
            dependencies=tuple(dependencies),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TaskEntry:
        """Build an entry from JSON-style data; a missing id is generated."""
        return cls(
            task_id=data.get("task_id") or f"task-{uuid.uuid4().hex}",
            description=data.get("description", ""),
            status=TaskStatus(data.get("status", TaskStatus.PENDING)),
            priority=int(data.get("priority", 0)),
            dependencies=tuple(data.get("dependencies", ())),
            created_at=float(data.get("created_at", time.time())),
            result=data.get("result"),
            preferred_executor_id=data.get("preferred_executor_id"),
        )

    def with_status(self, status: TaskStatus) -> TaskEntry:
        return replace(self, status=status)

    def with_result(self, result: str) -> TaskEntry:
        return replace(self, result=result)

    def is_ready(self, completed_ids: set[str] | frozenset[str]) -> bool:
        """Pending and every dependency already completed."""
        return self.status == TaskStatus.PENDING and all(
            dep in completed_ids for dep in self.dependencies
        )

    def canonical(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority,
            "dependencies": list(self.dependencies),
            "created_at": self.created_at,
            "result": self.result,
            "preferred_executor_id": self.preferred_executor_id,
        }


@dataclass(frozen=True)
class ExecutorSignal:
    """Explicit status report from an executor."""

    executor_id: str
    type: SignalType
    timestamp: float = field(default_factory=time.time)
    reason: str | None = None

    def __post_init__(self) -> None:
        require_identifier(self.executor_id, "executor_id")
        _require_finite("timestamp", self.timestamp)
        object.__setattr__(self, "type", SignalType(self.type))

    @classmethod
    def from_dict(cls, data: dict[str, Any], executor_id: str | None = None) -> ExecutorSignal:
        return cls(
            executor_id=data.get("executor_id") or executor_id,
            type=SignalType(data["type"]),
            timestamp=float(data.get("timestamp", time.time())),
            reason=data.get("reason"),
        )

    @property
    def is_frustrated(self) -> bool:
        return self.type in (SignalType.FAILURE, SignalType.HELP_NEEDED)

    def canonical(self) -> dict[str, Any]:
        return {
            "executor_id": self.executor_id,
            "type": self.type.value,
            "timestamp": self.timestamp,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class ProgressEntry:
    """One action taken by an executor and what it produced."""

    entry_id: str
    task_id: str
    executor_id: str
    action: str
    progress_made: bool
    output: str | None = None
    artifacts: tuple[str, ...] = ()
    timestamp: float = field(default_factory=time.time)
    duration: float | None = None  # seconds
    tokens_consumed: int = 0
    signal: ExecutorSignal | None = None

    def __post_init__(self) -> None:
        require_identifier(self.entry_id, "entry_id")
        require_identifier(self.task_id, "task_id")
        require_identifier(self.executor_id, "executor_id")
        if self.action is None:
            raise InvalidArgumentError("action cannot be None")
        _require_finite("timestamp", self.timestamp)
        _require_finite("duration", self.duration)
        if self.tokens_consumed < 0:
            raise InvalidArgumentError(
                f"tokens_consumed must be >= 0, got {self.tokens_consumed}"
            )
        object.__setattr__(self, "artifacts", tuple(self.artifacts))

    @classmethod
    def create(
        cls,
        task_id: str,
        executor_id: str,
        action: str,
        progress_made: bool,
        output: str | None = None,
        **kwargs: Any,
    ) -> ProgressEntry:
        return cls(
            entry_id=f"progress-{uuid.uuid4().hex}",
            task_id=task_id,
            executor_id=executor_id,
            action=action,
            progress_made=progress_made,
            output=output,
            **kwargs,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProgressEntry:
        """Build an entry from JSON-style data.

        Only ``action`` is required; ids default so a bare action history
        can be checked for loops.
        """
        executor_id = data.get("executor_id") or "executor"
        signal = data.get("signal")
        return cls(
            entry_id=data.get("entry_id") or f"progress-{uuid.uuid4().hex}",
            task_id=data.get("task_id") or "task",
            executor_id=executor_id,
            action=data["action"],
            progress_made=bool(data.get("progress_made", True)),
            output=data.get("output"),
            artifacts=tuple(data.get("artifacts", ())),
            timestamp=float(data.get("timestamp", time.time())),
            duration=data.get("duration"),
            tokens_consumed=int(data.get("tokens_consumed", 0)),
            signal=ExecutorSignal.from_dict(signal, executor_id) if signal else None,
        )

    @classmethod
    def from_signal(
        cls,
        task_id: str,
        signal: ExecutorSignal,
        action: str,
        output: str | None = None,
    ) -> ProgressEntry:
        """Build an entry from an executor signal; only success counts as progress."""
        return cls.create(
            task_id=task_id,
            executor_id=signal.executor_id,
            action=action,
            progress_made=signal.type == SignalType.SUCCESS,
            output=output if output is not None else signal.reason,
            signal=signal,
        )

    def canonical(self) -> dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "task_id": self.task_id,
            "executor_id": self.executor_id,
            "action": self.action,
            "progress_made": self.progress_made,
            "output": self.output,
            "artifacts": list(self.artifacts),
            "timestamp": self.timestamp,
            "duration": self.duration,
            "tokens_consumed": self.tokens_consumed,
            "signal": self.signal.canonical() if self.signal else None,
        }
