"""
Integrity Ledgers

Immutable task and progress ledgers with SHA-256 content hashes.
"""

from .hashing import canonical_bytes, chain_hash, content_hash, is_valid_hash
from .models import (
    ExecutorSignal,
    ProgressEntry,
    SignalType,
    TaskEntry,
    TaskStatus,
)
from .progress_ledger import ProgressLedger, ProgressLedgerMetrics
from .task_ledger import TaskLedger

__all__ = [
    # Entries
    "ExecutorSignal",
    "ProgressEntry",
    "SignalType",
    "TaskEntry",
    "TaskStatus",
    # Ledgers
    "ProgressLedger",
    "ProgressLedgerMetrics",
    "TaskLedger",
    # Hashing
    "canonical_bytes",
    "chain_hash",
    "content_hash",
    "is_valid_hash",
]
