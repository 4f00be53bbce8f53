"""
Progress Ledger — hash-chained execution history

Each appended entry extends a running SHA-256 chain, so appending costs one
hash of the new entry regardless of ledger length:

    h0 = sha256(canonical([version tag, task_ledger_id]))
    hi = sha256(h(i-1) || canonical(entry i))

``verify_integrity`` replays the chain from h0 and compares the result with
the stored hash. The ledger is a frozen value; appends return a successor and
leave the receiver untouched.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Any

from strategist.errors import InvalidArgumentError, require_identifier

from .hashing import chain_hash, content_hash
from .models import ProgressEntry, SignalType

PROGRESS_LEDGER_VERSION = "progress-ledger/v1"


def genesis_hash(task_ledger_id: str) -> str:
    return content_hash([PROGRESS_LEDGER_VERSION, task_ledger_id])


def compute_progress_hash(task_ledger_id: str, entries: Iterable[ProgressEntry]) -> str:
    """Replay the hash chain over ``entries`` from the genesis hash."""
    current = genesis_hash(task_ledger_id)
    for entry in entries:
        current = chain_hash(current, entry.canonical())
    return current


@dataclass(frozen=True)
class ProgressLedgerMetrics:
    """Totals over every entry in a progress ledger."""

    total_entries: int
    total_tokens_consumed: int
    total_duration: float  # seconds, entries without a duration count as 0
    unique_artifact_count: int
    successful_signal_count: int
    failed_signal_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_entries": self.total_entries,
            "total_tokens_consumed": self.total_tokens_consumed,
            "total_duration": round(self.total_duration, 3),
            "unique_artifact_count": self.unique_artifact_count,
            "successful_signal_count": self.successful_signal_count,
            "failed_signal_count": self.failed_signal_count,
        }


@dataclass(frozen=True)
class ProgressLedger:
    """Immutable, append-only record of executor actions for one task ledger."""

    ledger_id: str
    task_ledger_id: str
    entries: tuple[ProgressEntry, ...]
    content_hash: str
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", tuple(self.entries))

    @classmethod
    def create(cls, task_ledger_id: str, entries: Iterable[ProgressEntry] = ()) -> ProgressLedger:
        if task_ledger_id is None:
            raise InvalidArgumentError("task_ledger_id cannot be None")
        items = tuple(entries)
        now = time.time()
        return cls(
            ledger_id=f"progress-ledger-{uuid.uuid4().hex}",
            task_ledger_id=task_ledger_id,
            entries=items,
            content_hash=compute_progress_hash(task_ledger_id, items),
            created_at=now,
            updated_at=now,
        )

    def with_entry(self, entry: ProgressEntry) -> ProgressLedger:
        """Append one entry, extending the hash chain from the stored hash."""
        return replace(
            self,
            entries=self.entries + (entry,),
            content_hash=chain_hash(self.content_hash, entry.canonical()),
            updated_at=time.time(),
        )

    def with_entries(self, entries: Iterable[ProgressEntry]) -> ProgressLedger:
        items = tuple(entries)
        if not items:
            return self
        current = self.content_hash
        for entry in items:
            current = chain_hash(current, entry.canonical())
        return replace(
            self,
            entries=self.entries + items,
            content_hash=current,
            updated_at=time.time(),
        )

    def recent_entries(self, window_size: int = 5) -> list[ProgressEntry]:
        """The last ``window_size`` entries, oldest first."""
        if window_size <= 0:
            raise InvalidArgumentError(f"window_size must be > 0, got {window_size}")
        return list(self.entries[-window_size:])

    def entries_for_task(self, task_id: str) -> list[ProgressEntry]:
        require_identifier(task_id, "task_id")
        return [e for e in self.entries if e.task_id == task_id]

    def entries_since(self, since: float) -> list[ProgressEntry]:
        """Entries strictly newer than the ``since`` timestamp."""
        return [e for e in self.entries if e.timestamp > since]

    def metrics(self) -> ProgressLedgerMetrics:
        artifacts = {a for e in self.entries for a in e.artifacts}
        return ProgressLedgerMetrics(
            total_entries=len(self.entries),
            total_tokens_consumed=sum(e.tokens_consumed for e in self.entries),
            total_duration=sum(e.duration or 0.0 for e in self.entries),
            unique_artifact_count=len(artifacts),
            successful_signal_count=sum(
                1 for e in self.entries if e.signal and e.signal.type == SignalType.SUCCESS
            ),
            failed_signal_count=sum(
                1 for e in self.entries if e.signal and e.signal.type == SignalType.FAILURE
            ),
        )

    def verify_integrity(self) -> bool:
        return compute_progress_hash(self.task_ledger_id, self.entries) == self.content_hash

    def to_dict(self) -> dict[str, Any]:
        return {
            "ledger_id": self.ledger_id,
            "task_ledger_id": self.task_ledger_id,
            "entries": [e.canonical() for e in self.entries],
            "content_hash": self.content_hash,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
