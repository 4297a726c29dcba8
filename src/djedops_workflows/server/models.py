"""Pydantic models for the REST server."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, Field

from djedops_workflows.orchestrator.workflow.engine import ProtocolStatus
from djedops_workflows.orchestrator.workflow.records import ExecutionLogEntry, NodeExecutionRecord
from djedops_workflows.orchestrator.workflow.run_state import RunState


class ExecuteRequest(BaseModel):
    atomic_mode: bool | None = None
    node_timeout_seconds: float | None = Field(default=None, gt=0)
    protocol_status: ProtocolStatus | None = None


class EdgeRef(BaseModel):
    from_node: str = Field(validation_alias=AliasChoices("from_node", "from"))
    to_node: str = Field(validation_alias=AliasChoices("to_node", "to"))


class RepairRequest(BaseModel):
    edge: EdgeRef | None = None
    token: str | None = None
    amount: float | None = Field(default=None, ge=0)


class InstantiateRequest(BaseModel):
    name: str | None = None


class MetricsUpdate(BaseModel):
    reserve_ratio_pct: float | None = Field(default=None, ge=0)
    oracle_price: float | None = Field(default=None, ge=0)


class RunStatus(BaseModel):
    run_id: str
    workflow_id: str
    state: RunState
    node_executions: list[NodeExecutionRecord] = Field(default_factory=list)
    entry: ExecutionLogEntry | None = None
    error: str | None = None
