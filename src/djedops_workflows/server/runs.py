"""In-process tracking of background workflow runs."""

from __future__ import annotations

import threading

from djedops_workflows.orchestrator.workflow.engine import RunHandle
from djedops_workflows.server.models import RunStatus


class RunTracker:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handles: dict[str, RunHandle] = {}

    def add(self, handle: RunHandle) -> None:
        with self._lock:
            self._handles[handle.run_id] = handle

    def get(self, run_id: str) -> RunHandle | None:
        with self._lock:
            return self._handles.get(run_id)

    def status(self, handle: RunHandle) -> RunStatus:
        return RunStatus(
            run_id=handle.run_id,
            workflow_id=handle.workflow_id,
            state=handle.state,
            node_executions=list(handle.records),
            entry=handle.entry,
            error=str(handle.error) if handle.error is not None else None,
        )
