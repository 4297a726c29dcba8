"""Unit tests for the persisted execution history."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

from djedops_workflows.orchestrator.workflow.history import ExecutionHistoryStore
from djedops_workflows.orchestrator.workflow.records import (
    ExecutionLogEntry,
    NodeExecutionRecord,
    NodeStatus,
    RunOutcome,
)


def _entry(entry_id: str, workflow_id: str = "wf-1") -> ExecutionLogEntry:
    start = datetime(2025, 1, 1, tzinfo=UTC)
    end = start + timedelta(milliseconds=250)
    return ExecutionLogEntry(
        id=entry_id,
        workflow_id=workflow_id,
        workflow_name="Monitor & Alert",
        started_at=start,
        ended_at=end,
        status=RunOutcome.SUCCESS,
        total_duration_ms=250,
        node_executions=(
            NodeExecutionRecord(
                node_id="monitor",
                node_name="Djed Eye",
                node_type="djed_monitor",
                status=NodeStatus.SUCCESS,
                started_at=start,
                ended_at=end,
                output={"reserve_ratio_pct": 567.89},
            ),
        ),
    )


def test_history_survives_reopen_newest_first(tmp_path: Path) -> None:
    path = tmp_path / "agent_state" / "executions.json"
    store = ExecutionHistoryStore(path)
    assert store.list() == []

    store.append(_entry("run-1"))
    store.append(_entry("run-2"))

    reopened = ExecutionHistoryStore(path)
    entries = reopened.list()
    assert [e.id for e in entries] == ["run-2", "run-1"]
    assert entries[0].node_executions[0].output == {"reserve_ratio_pct": 567.89}
    assert reopened.get("run-1") is not None
    assert reopened.get("missing") is None


def test_history_drops_oldest_beyond_cap(tmp_path: Path) -> None:
    store = ExecutionHistoryStore(tmp_path / "executions.json", max_entries=3)
    for i in range(5):
        store.append(_entry(f"run-{i}"))
    assert [e.id for e in store.list()] == ["run-4", "run-3", "run-2"]


def test_find_by_workflow_and_clear(tmp_path: Path) -> None:
    store = ExecutionHistoryStore(tmp_path / "executions.json")
    store.append(_entry("a", workflow_id="wf-a"))
    store.append(_entry("b", workflow_id="wf-b"))
    store.append(_entry("c", workflow_id="wf-a"))

    assert [e.id for e in store.find_by_workflow("wf-a")] == ["c", "a"]

    store.clear()
    assert store.list() == []


def test_corrupt_history_file_reads_as_empty(tmp_path: Path) -> None:
    path = tmp_path / "executions.json"
    path.write_text("{not json", encoding="utf-8")
    store = ExecutionHistoryStore(path)
    assert store.list() == []

    path.write_text('{"id": "not-a-list"}', encoding="utf-8")
    assert store.list() == []

    store.append(_entry("fresh"))
    assert [e.id for e in store.list()] == ["fresh"]

    backups = list(tmp_path.glob("executions.json.corrupt-*"))
    assert len(backups) == 1
    assert backups[0].read_text(encoding="utf-8") == '{"id": "not-a-list"}'


def test_malformed_entry_is_skipped_and_kept_on_disk(tmp_path: Path) -> None:
    path = tmp_path / "executions.json"
    store = ExecutionHistoryStore(path)
    for entry_id in ("run-1", "run-2", "run-3"):
        store.append(_entry(entry_id))

    raw = json.loads(path.read_text(encoding="utf-8"))
    raw.insert(1, {"id": "bad", "workflow_id": "wf-1"})
    path.write_text(json.dumps(raw), encoding="utf-8")

    assert [e.id for e in store.list()] == ["run-3", "run-2", "run-1"]

    store.append(_entry("new"))
    assert [e.id for e in store.list()] == ["new", "run-3", "run-2", "run-1"]
    stored_ids = [item["id"] for item in json.loads(path.read_text(encoding="utf-8"))]
    assert stored_ids == ["new", "run-3", "bad", "run-2", "run-1"]
    assert list(tmp_path.glob("executions.json.corrupt-*")) == []
