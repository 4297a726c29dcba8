"""Execution history store.

Entries are kept newest first. Stored entries are never edited; appending
past `max_entries` drops the oldest ones.

A stored item that no longer validates is skipped on read but kept on disk.
A file that cannot be read as a JSON list is moved aside before the next
append writes a fresh one, so unreadable history is never overwritten.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from djedops_workflows.orchestrator.workflow.records import ExecutionLogEntry

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 50


class HistoryStore(Protocol):
    def append(self, entry: ExecutionLogEntry) -> None: ...

    def list(self) -> list[ExecutionLogEntry]: ...

    def clear(self) -> None: ...


@dataclass
class ExecutionHistoryStore:
    """JSON-file backed history, safe for concurrent appends within a process.

    Clearing is destructive; confirmation is the caller's job.
    """

    path: Path
    max_entries: int = DEFAULT_MAX_ENTRIES

    def __post_init__(self) -> None:
        if self.max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._lock = threading.Lock()

    def _read_raw_unlocked(self) -> list[object] | None:
        """Stored items as raw JSON, or None if the file is not a JSON list."""

        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("History file is not valid JSON", extra={"path": str(self.path)})
            return None
        if not isinstance(raw, list):
            logger.warning("History file is not a list", extra={"path": str(self.path)})
            return None
        return raw

    def _load_unlocked(self) -> list[ExecutionLogEntry]:
        entries: list[ExecutionLogEntry] = []
        for item in self._read_raw_unlocked() or []:
            try:
                entries.append(ExecutionLogEntry.model_validate(item))
            except ValidationError:
                logger.warning(
                    "Skipping malformed history entry",
                    extra={
                        "path": str(self.path),
                        "entry_id": item.get("id") if isinstance(item, dict) else None,
                    },
                )
        return entries

    def _save_unlocked(self, items: list[object]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps(items, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )

    def _set_aside_unlocked(self) -> Path:
        stamp = datetime.now(tz=UTC).strftime("%Y%m%dT%H%M%S%f")
        backup = self.path.with_name(f"{self.path.name}.corrupt-{stamp}")
        self.path.replace(backup)
        logger.warning(
            "Moved unreadable history file aside",
            extra={"path": str(self.path), "backup": str(backup)},
        )
        return backup

    def append(self, entry: ExecutionLogEntry) -> None:
        with self._lock:
            stored = self._read_raw_unlocked()
            if stored is None:
                self._set_aside_unlocked()
                stored = []
            # Malformed items count towards the cap like any other stored item.
            items = [entry.model_dump(mode="json"), *stored][: self.max_entries]
            self._save_unlocked(items)

    def list(self) -> list[ExecutionLogEntry]:
        with self._lock:
            return self._load_unlocked()

    def get(self, entry_id: str) -> ExecutionLogEntry | None:
        with self._lock:
            for entry in self._load_unlocked():
                if entry.id == entry_id:
                    return entry
            return None

    def find_by_workflow(self, workflow_id: str) -> list[ExecutionLogEntry]:
        with self._lock:
            return [e for e in self._load_unlocked() if e.workflow_id == workflow_id]

    def clear(self) -> None:
        with self._lock:
            self._save_unlocked([])
        logger.info("Execution history cleared", extra={"path": str(self.path)})


class InMemoryHistoryStore:
    """Process-local history with the same semantics as the file store."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        self._lock = threading.Lock()
        self._entries: list[ExecutionLogEntry] = []
        self.max_entries = max_entries

    def append(self, entry: ExecutionLogEntry) -> None:
        with self._lock:
            self._entries = [entry, *self._entries][: self.max_entries]

    def list(self) -> list[ExecutionLogEntry]:
        with self._lock:
            return list(self._entries)

    def get(self, entry_id: str) -> ExecutionLogEntry | None:
        with self._lock:
            return next((e for e in self._entries if e.id == entry_id), None)

    def find_by_workflow(self, workflow_id: str) -> list[ExecutionLogEntry]:
        with self._lock:
            return [e for e in self._entries if e.workflow_id == workflow_id]

    def clear(self) -> None:
        with self._lock:
            self._entries = []
