"""Persisted workflow definitions for the server.

Workflows are stored as one JSON list under the state directory so the API
survives restarts.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from djedops_workflows.orchestrator.workflow.models import Workflow

logger = logging.getLogger(__name__)


@dataclass
class WorkflowStore:
    path: Path

    def __post_init__(self) -> None:
        self._lock = threading.Lock()

    def _load_unlocked(self) -> list[dict[str, object]]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Workflow file is not valid JSON", extra={"path": str(self.path)})
            return []
        if not isinstance(raw, list):
            return []
        return [item for item in raw if isinstance(item, dict)]

    def _save_unlocked(self, items: list[dict[str, object]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps(items, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )

    @staticmethod
    def _parse(item: dict[str, object]) -> Workflow | None:
        try:
            return Workflow.from_json(item)
        except ValidationError:
            logger.warning("Skipping malformed stored workflow", extra={"id": item.get("id")})
            return None

    def list(self) -> list[Workflow]:
        with self._lock:
            parsed = (self._parse(item) for item in self._load_unlocked())
            return [w for w in parsed if w is not None]

    def get(self, workflow_id: str) -> Workflow | None:
        with self._lock:
            for item in self._load_unlocked():
                if item.get("id") == workflow_id:
                    return self._parse(item)
            return None

    def save(self, workflow: Workflow) -> Workflow:
        """Insert or replace by id."""

        with self._lock:
            items = self._load_unlocked()
            payload = workflow.to_json()
            for idx, item in enumerate(items):
                if item.get("id") == workflow.id:
                    items[idx] = payload
                    break
            else:
                items.append(payload)
            self._save_unlocked(items)
            return workflow

    def record_execution(self, workflow_id: str, at: datetime) -> Workflow | None:
        """Bump run bookkeeping on the stored definition, leaving the graph as stored.

        Returns None if the workflow is no longer stored.
        """

        with self._lock:
            items = self._load_unlocked()
            for idx, item in enumerate(items):
                if item.get("id") != workflow_id:
                    continue
                workflow = self._parse(item)
                if workflow is None:
                    return None
                workflow.record_execution(at)
                items[idx] = workflow.to_json()
                self._save_unlocked(items)
                return workflow
            logger.info(
                "Finished run for a workflow that is no longer stored",
                extra={"workflow_id": workflow_id},
            )
            return None
