"""Execution records persisted to history.

Both record types are frozen: an entry is built once when its run finishes
and is never edited afterwards.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from djedops_workflows.orchestrator.workflow.errors import ErrorKind


class NodeStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class RunOutcome(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class SkipReason(str, Enum):
    CONDITION_NOT_MET = "condition_not_met"
    ABORTED_AFTER_FAILURE = "aborted_after_failure"
    CANCELLED = "cancelled"


class NodeExecutionRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    node_id: str
    node_name: str
    node_type: str | None = None
    status: NodeStatus
    started_at: datetime
    ended_at: datetime
    output: dict[str, object] | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    skip_reason: SkipReason | None = None

    @property
    def duration_ms(self) -> int:
        return int((self.ended_at - self.started_at).total_seconds() * 1000)


class ExecutionLogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    workflow_id: str
    workflow_name: str
    started_at: datetime
    ended_at: datetime
    status: RunOutcome
    total_duration_ms: int = Field(ge=0)
    atomic_mode: bool = False
    node_executions: tuple[NodeExecutionRecord, ...] = ()
    error: str | None = None

    def failed_nodes(self) -> list[NodeExecutionRecord]:
        return [r for r in self.node_executions if r.status is NodeStatus.FAILED]

    def record_for(self, node_id: str) -> NodeExecutionRecord | None:
        for record in self.node_executions:
            if record.node_id == node_id:
                return record
        return None
