"""
Tests for the integrity ledgers.

Covers: canonical hashing, entry models, TaskLedger, ProgressLedger.
"""

import json
from dataclasses import replace

import pytest

from strategist.errors import InvalidArgumentError
from strategist.ledgers.hashing import canonical_bytes, chain_hash, content_hash, is_valid_hash
from strategist.ledgers.models import (
    ExecutorSignal,
    ProgressEntry,
    SignalType,
    TaskEntry,
    TaskStatus,
)
from strategist.ledgers.progress_ledger import ProgressLedger, genesis_hash
from strategist.ledgers.task_ledger import TaskLedger


def _task(task_id, description="do the thing", **kwargs):
    kwargs.setdefault("created_at", 1_700_000_000.0)
    return TaskEntry(task_id=task_id, description=description, **kwargs)


def _progress(entry_id, action="run", **kwargs):
    kwargs.setdefault("timestamp", 1_700_000_000.0)
    kwargs.setdefault("progress_made", True)
    return ProgressEntry(
        entry_id=entry_id, task_id="t1", executor_id="exec-1", action=action, **kwargs
    )


# ═══════════════════════════════════════════════════════════════════════════
# HASHING
# ═══════════════════════════════════════════════════════════════════════════


class TestHashing:
    def test_canonical_is_compact_and_sorted(self):
        assert canonical_bytes({"b": 1, "a": [2, 1]}) == b'{"a":[2,1],"b":1}'

    def test_unicode_not_escaped(self):
        assert canonical_bytes("héllo ✓") == '"héllo ✓"'.encode("utf-8")

    def test_content_hash_format(self):
        digest = content_hash([])
        assert is_valid_hash(digest)
        assert digest == digest.lower()

    def test_known_digest(self):
        # sha256 of the two bytes '[]'
        assert content_hash([]) == (
            "4f53cda18c2baa0c0354bb5f9a3ecbe5ed12ab4d8e11ba873c2f11161202b945"
        )

    def test_chain_depends_on_previous(self):
        start = content_hash("x")
        assert chain_hash(start, {"a": 1}) != chain_hash(content_hash("y"), {"a": 1})

    def test_lone_surrogate_hashes(self):
        assert is_valid_hash(content_hash("broken \ud800 text"))

    def test_is_valid_hash(self):
        assert not is_valid_hash("abc")
        assert not is_valid_hash("G" * 64)


# ═══════════════════════════════════════════════════════════════════════════
# ENTRIES
# ═══════════════════════════════════════════════════════════════════════════


class TestTaskEntry:
    def test_create_generates_id(self):
        task = TaskEntry.create("Draft notes", priority=2, dependencies=["a"])
        assert task.task_id.startswith("task-")
        assert task.status == TaskStatus.PENDING
        assert task.dependencies == ("a",)

    def test_with_status_and_result(self):
        task = _task("t1")
        done = task.with_status(TaskStatus.COMPLETED).with_result("ok")
        assert done.status == TaskStatus.COMPLETED
        assert done.result == "ok"
        assert task.status == TaskStatus.PENDING

    def test_is_ready(self):
        task = _task("t2", dependencies=("t1",))
        assert not task.is_ready(set())
        assert task.is_ready({"t1"})
        assert not task.with_status(TaskStatus.IN_PROGRESS).is_ready({"t1"})

    def test_blank_id_rejected(self):
        with pytest.raises(InvalidArgumentError, match="task_id"):
            _task("")

    def test_from_dict(self):
        task = TaskEntry.from_dict(
            {"task_id": "t1", "description": "x", "status": "completed", "priority": 3}
        )
        assert task.status == TaskStatus.COMPLETED
        assert task.priority == 3

    def test_from_dict_bad_status(self):
        with pytest.raises(ValueError):
            TaskEntry.from_dict({"description": "x", "status": "bogus"})


class TestProgressEntry:
    def test_create(self):
        entry = ProgressEntry.create("t1", "exec-1", "run tests", False, "2 failed")
        assert entry.entry_id.startswith("progress-")
        assert not entry.progress_made

    def test_from_signal(self):
        signal = ExecutorSignal("exec-9", SignalType.HELP_NEEDED, reason="stuck on auth")
        entry = ProgressEntry.from_signal("t1", signal, "request help")
        assert entry.executor_id == "exec-9"
        assert entry.output == "stuck on auth"
        assert not entry.progress_made
        assert entry.signal.is_frustrated

    def test_success_signal_counts_as_progress(self):
        signal = ExecutorSignal("exec-1", SignalType.SUCCESS)
        assert ProgressEntry.from_signal("t1", signal, "finish").progress_made

    def test_validation(self):
        with pytest.raises(InvalidArgumentError, match="executor_id"):
            ProgressEntry.create("t1", "", "run", True)
        with pytest.raises(InvalidArgumentError, match="tokens_consumed"):
            ProgressEntry.create("t1", "e", "run", True, tokens_consumed=-1)

    def test_from_dict_defaults(self):
        entry = ProgressEntry.from_dict({"action": "search", "signal": {"type": "failure"}})
        assert entry.task_id == "task"
        assert entry.progress_made
        assert entry.signal.executor_id == entry.executor_id
        assert entry.signal.type == SignalType.FAILURE

    def test_non_finite_numbers_rejected(self):
        with pytest.raises(InvalidArgumentError, match="duration"):
            _progress("p1", duration=float("nan"))
        with pytest.raises(InvalidArgumentError, match="timestamp"):
            ProgressEntry.from_dict(json.loads('{"action": "run", "timestamp": NaN}'))
        with pytest.raises(InvalidArgumentError, match="timestamp"):
            ExecutorSignal("exec-1", SignalType.FAILURE, timestamp=float("inf"))
        with pytest.raises(InvalidArgumentError, match="created_at"):
            _task("t1", created_at=float("-inf"))

    def test_finite_duration_hashes(self):
        ledger = ProgressLedger.create("tl").with_entry(_progress("p1", duration=1.5))
        assert ledger.verify_integrity()


# ═══════════════════════════════════════════════════════════════════════════
# TASK LEDGER
# ═══════════════════════════════════════════════════════════════════════════


class TestTaskLedger:
    def test_identical_content_identical_hash(self):
        a = TaskLedger.create("Ship release", [_task("t1"), _task("t2")])
        b = TaskLedger.create("Ship release", [_task("t1"), _task("t2")])
        assert a.ledger_id != b.ledger_id
        assert a.content_hash == b.content_hash

    def test_order_changes_hash(self):
        a = TaskLedger.create("req", [_task("t1"), _task("t2")])
        b = TaskLedger.create("req", [_task("t2"), _task("t1")])
        assert a.content_hash != b.content_hash

    @pytest.mark.parametrize(
        "change",
        [
            {"description": "something else"},
            {"status": TaskStatus.FAILED},
            {"priority": 9},
            {"dependencies": ("t0",)},
            {"created_at": 1_700_000_001.0},
            {"result": "done"},
            {"preferred_executor_id": "exec-2"},
        ],
    )
    def test_every_field_changes_hash(self, change):
        base = TaskLedger.create("req", [_task("t1")])
        changed = TaskLedger.create("req", [replace(_task("t1"), **change)])
        assert base.content_hash != changed.content_hash

    def test_request_changes_hash(self):
        tasks = [_task("t1")]
        assert (
            TaskLedger.create("req A", tasks).content_hash
            != TaskLedger.create("req B", tasks).content_hash
        )

    def test_empty_and_blank(self):
        empty = TaskLedger.create("")
        blank = TaskLedger.create("   ")
        assert is_valid_hash(empty.content_hash)
        assert is_valid_hash(blank.content_hash)
        assert empty.content_hash != blank.content_hash
        assert empty.verify_integrity()

    def test_unicode_content(self):
        ledger = TaskLedger.create("Résumé 📄 翻訳", [_task("t1", "naïve café ☕")])
        assert ledger.verify_integrity()

    def test_none_request_rejected(self):
        with pytest.raises(InvalidArgumentError):
            TaskLedger.create(None)

    def test_with_task_returns_new_value(self):
        ledger = TaskLedger.create("req")
        extended = ledger.with_task(_task("t1"))
        assert ledger.tasks == ()
        assert len(extended.tasks) == 1
        assert extended.content_hash != ledger.content_hash
        assert extended.verify_integrity()
        assert extended.content_hash == TaskLedger.create("req", [_task("t1")]).content_hash

    def test_with_updated_task(self):
        ledger = TaskLedger.create("req", [_task("t1"), _task("t2")])
        done = ledger.get_task("t1").with_status(TaskStatus.COMPLETED)
        updated = ledger.with_updated_task("t1", done)
        assert updated.tasks[0].status == TaskStatus.COMPLETED
        assert [t.task_id for t in updated.tasks] == ["t1", "t2"]
        assert updated.verify_integrity()
        assert updated.content_hash != ledger.content_hash

    def test_with_updated_task_unknown(self):
        with pytest.raises(KeyError):
            TaskLedger.create("req").with_updated_task("missing", _task("missing"))

    def test_ready_tasks_by_priority(self):
        ledger = TaskLedger.create(
            "req",
            [
                _task("t1", status=TaskStatus.COMPLETED),
                _task("t2", priority=1, dependencies=("t1",)),
                _task("t3", priority=5),
                _task("t4", dependencies=("t2",)),
            ],
        )
        assert [t.task_id for t in ledger.ready_tasks()] == ["t3", "t2"]

    def test_is_complete(self):
        ledger = TaskLedger.create(
            "req", [_task("t1", status=TaskStatus.COMPLETED), _task("t2")]
        )
        assert not ledger.is_complete()
        finished = ledger.with_updated_task("t2", _task("t2", status=TaskStatus.SKIPPED))
        assert finished.is_complete()

    def test_tampering_detected(self):
        ledger = TaskLedger.create("req", [_task("t1")])
        tampered = replace(ledger, tasks=(_task("t1", description="evil"),))
        assert not tampered.verify_integrity()
        assert not replace(ledger, original_request="other").verify_integrity()

    def test_to_dict(self):
        data = TaskLedger.create("req", [_task("t1")]).to_dict()
        assert data["tasks"][0]["task_id"] == "t1"
        assert len(data["content_hash"]) == 64


# ═══════════════════════════════════════════════════════════════════════════
# PROGRESS LEDGER
# ═══════════════════════════════════════════════════════════════════════════


class TestProgressLedger:
    def test_empty_ledger(self):
        ledger = ProgressLedger.create("task-ledger-1")
        assert ledger.content_hash == genesis_hash("task-ledger-1")
        assert is_valid_hash(ledger.content_hash)
        assert ledger.verify_integrity()

    def test_blank_task_ledger_id_hashes_and_verifies(self):
        ledger = ProgressLedger.create("").with_entry(_progress("p1"))
        assert ledger.task_ledger_id == ""
        assert is_valid_hash(ledger.content_hash)
        assert ledger.verify_integrity()
        assert ProgressLedger.create("   ").content_hash != ProgressLedger.create("").content_hash

    def test_none_task_ledger_id_rejected(self):
        with pytest.raises(InvalidArgumentError):
            ProgressLedger.create(None)

    def test_append_matches_create(self):
        entries = [_progress("p1"), _progress("p2", action="test")]
        built = ProgressLedger.create("tl", entries)
        appended = ProgressLedger.create("tl").with_entry(entries[0]).with_entry(entries[1])
        assert built.content_hash == appended.content_hash
        assert appended.verify_integrity()

    def test_with_entries_matches_with_entry(self):
        entries = [_progress(f"p{i}") for i in range(4)]
        one_by_one = ProgressLedger.create("tl")
        for e in entries:
            one_by_one = one_by_one.with_entry(e)
        assert ProgressLedger.create("tl").with_entries(entries).content_hash == (
            one_by_one.content_hash
        )

    def test_with_entries_empty_is_noop(self):
        ledger = ProgressLedger.create("tl")
        assert ledger.with_entries([]) is ledger

    def test_append_leaves_original(self):
        ledger = ProgressLedger.create("tl")
        ledger.with_entry(_progress("p1"))
        assert ledger.entries == ()

    def test_verify_after_every_append(self):
        ledger = ProgressLedger.create("tl")
        for i in range(10):
            ledger = ledger.with_entry(_progress(f"p{i}", output=f"out {i}"))
            assert ledger.verify_integrity()

    def test_order_changes_hash(self):
        a, b = _progress("p1"), _progress("p2")
        assert (
            ProgressLedger.create("tl", [a, b]).content_hash
            != ProgressLedger.create("tl", [b, a]).content_hash
        )

    def test_task_ledger_id_changes_hash(self):
        entries = [_progress("p1")]
        assert (
            ProgressLedger.create("tl-1", entries).content_hash
            != ProgressLedger.create("tl-2", entries).content_hash
        )

    @pytest.mark.parametrize(
        "change",
        [
            {"action": "other"},
            {"progress_made": False},
            {"output": "changed"},
            {"artifacts": ("report.md",)},
            {"timestamp": 1_700_000_001.0},
            {"duration": 2.5},
            {"tokens_consumed": 10},
            {"signal": ExecutorSignal("exec-1", SignalType.FAILURE, timestamp=1.0)},
        ],
    )
    def test_every_field_changes_hash(self, change):
        base = ProgressLedger.create("tl", [_progress("p1")])
        changed = ProgressLedger.create("tl", [replace(_progress("p1"), **change)])
        assert base.content_hash != changed.content_hash

    def test_tampering_detected(self):
        ledger = ProgressLedger.create("tl", [_progress("p1"), _progress("p2")])
        assert not replace(ledger, entries=ledger.entries[:1]).verify_integrity()
        assert not replace(
            ledger, entries=(ledger.entries[0], _progress("p2", output="forged"))
        ).verify_integrity()

    def test_recent_entries(self):
        ledger = ProgressLedger.create("tl", [_progress(f"p{i}") for i in range(6)])
        assert [e.entry_id for e in ledger.recent_entries(3)] == ["p3", "p4", "p5"]
        assert len(ledger.recent_entries(50)) == 6
        with pytest.raises(InvalidArgumentError):
            ledger.recent_entries(0)

    def test_entries_for_task_and_since(self):
        other = ProgressEntry(
            entry_id="px", task_id="t2", executor_id="e", action="a",
            progress_made=True, timestamp=2_000_000_000.0,
        )
        ledger = ProgressLedger.create("tl", [_progress("p1"), other])
        assert [e.entry_id for e in ledger.entries_for_task("t2")] == ["px"]
        assert [e.entry_id for e in ledger.entries_since(1_700_000_000.0)] == ["px"]

    def test_metrics(self):
        ok = ExecutorSignal("exec-1", SignalType.SUCCESS, timestamp=1.0)
        bad = ExecutorSignal("exec-1", SignalType.FAILURE, timestamp=1.0)
        ledger = ProgressLedger.create(
            "tl",
            [
                _progress("p1", tokens_consumed=100, duration=1.5, artifacts=("a.py",), signal=ok),
                _progress("p2", tokens_consumed=50, artifacts=("a.py", "b.py"), signal=bad),
                _progress("p3", duration=0.5),
            ],
        )
        metrics = ledger.metrics()
        assert metrics.total_entries == 3
        assert metrics.total_tokens_consumed == 150
        assert metrics.total_duration == pytest.approx(2.0)
        assert metrics.unique_artifact_count == 2
        assert metrics.successful_signal_count == 1
        assert metrics.failed_signal_count == 1

    def test_unicode_entries(self):
        ledger = ProgressLedger.create("tl", [_progress("p1", output="ошибка 🚫 エラー")])
        assert ledger.verify_integrity()
