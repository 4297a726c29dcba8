"""Error taxonomy for the workflow core.

Every error carries a stable `kind` label plus a human-readable message so
callers (and tests) can assert on `(kind, message contains X)` instead of
exact strings.

Structural errors (invalid graph, chain mismatch, already running, graph
locked) are raised before any execution state exists. Execution-time errors
(node failure, timeout, cancellation) are turned into execution records by the
engine and never escape a run.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from djedops_workflows.orchestrator.workflow.compatibility import ChainCheck


class ErrorKind(str, Enum):
    INVALID_GRAPH = "INVALID_GRAPH"
    CHAIN_MISMATCH = "CHAIN_MISMATCH"
    ALREADY_RUNNING = "ALREADY_RUNNING"
    GRAPH_LOCKED = "GRAPH_LOCKED"
    NODE_EXECUTION_FAILED = "NODE_EXECUTION_FAILED"
    NODE_TIMEOUT = "NODE_TIMEOUT"
    CANCELLED_BY_CALLER = "CANCELLED_BY_CALLER"
    APPLET_ERROR = "APPLET_ERROR"
    UNKNOWN_APPLET = "UNKNOWN_APPLET"
    DEPLOYMENT_FAILED = "DEPLOYMENT_FAILED"
    CONFIRMATION_REQUIRED = "CONFIRMATION_REQUIRED"


class GraphErrorReason(str, Enum):
    DANGLING_EDGE = "dangling_edge"
    DUPLICATE_NODE = "duplicate_node"
    DUPLICATE_EDGE = "duplicate_edge"
    SELF_LOOP = "self_loop"
    CYCLE_DETECTED = "cycle_detected"
    UNREACHABLE_NODE = "unreachable_node"
    UNKNOWN_NODE = "unknown_node"
    UNKNOWN_EDGE = "unknown_edge"
    MALFORMED = "malformed"


class WorkflowError(Exception):
    """Base class for all workflow errors."""

    kind: ErrorKind = ErrorKind.INVALID_GRAPH

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"

    def to_json(self) -> dict[str, object]:
        return {"kind": self.kind.value, "message": self.message}


class InvalidGraphError(WorkflowError):
    kind = ErrorKind.INVALID_GRAPH

    def __init__(
        self, message: str, *, reason: GraphErrorReason, node_id: str | None = None
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.node_id = node_id

    def to_json(self) -> dict[str, object]:
        out = super().to_json()
        out["reason"] = self.reason.value
        if self.node_id is not None:
            out["node_id"] = self.node_id
        return out


class CycleDetected(InvalidGraphError):
    """A back edge was found while walking the graph."""

    def __init__(self, node_id: str) -> None:
        super().__init__(
            f"Cycle detected at node {node_id!r}; workflows must be acyclic",
            reason=GraphErrorReason.CYCLE_DETECTED,
            node_id=node_id,
        )


class ChainMismatchError(WorkflowError):
    kind = ErrorKind.CHAIN_MISMATCH

    def __init__(self, mismatches: list[ChainCheck]) -> None:
        pairs = ", ".join(
            f"{m.from_node_id} ({m.source_chain.value}) -> {m.to_node_id} ({m.dest_chain.value})"
            for m in mismatches
        )
        super().__init__(
            f"{len(mismatches)} connection(s) cross chain boundaries without a bridge: {pairs}"
        )
        self.mismatches = mismatches

    def to_json(self) -> dict[str, object]:
        out = super().to_json()
        out["mismatches"] = [m.to_json() for m in self.mismatches]
        return out


class AlreadyRunningError(WorkflowError):
    kind = ErrorKind.ALREADY_RUNNING

    def __init__(self, workflow_id: str, run_id: str | None = None) -> None:
        super().__init__(f"Workflow {workflow_id!r} already has a run in flight")
        self.workflow_id = workflow_id
        self.run_id = run_id

    def to_json(self) -> dict[str, object]:
        out = super().to_json()
        if self.run_id is not None:
            out["run_id"] = self.run_id
        return out


class GraphLockedError(WorkflowError):
    kind = ErrorKind.GRAPH_LOCKED

    def __init__(self, workflow_id: str, *, editing: bool = False) -> None:
        if editing:
            message = f"Workflow {workflow_id!r} is being edited; runs and other edits are rejected"
        else:
            message = f"Workflow {workflow_id!r} is being executed; structural edits are rejected"
        super().__init__(message)
        self.workflow_id = workflow_id


class NodeExecutionFailed(WorkflowError):
    kind = ErrorKind.NODE_EXECUTION_FAILED

    def __init__(self, node_id: str, message: str) -> None:
        super().__init__(message)
        self.node_id = node_id


class NodeTimeout(NodeExecutionFailed):
    kind = ErrorKind.NODE_TIMEOUT

    REASON = "Applet call timed out"

    def __init__(self, node_id: str, timeout_seconds: float) -> None:
        super().__init__(node_id, f"{self.REASON} after {timeout_seconds:g}s")
        self.timeout_seconds = timeout_seconds


class CancelledByCaller(WorkflowError):
    kind = ErrorKind.CANCELLED_BY_CALLER

    def __init__(self, run_id: str) -> None:
        super().__init__(f"Run {run_id!r} was cancelled by the caller")
        self.run_id = run_id


class AppletError(WorkflowError):
    """Raised by applet implementations to report a handled failure."""

    kind = ErrorKind.APPLET_ERROR


class UnknownApplet(WorkflowError):
    kind = ErrorKind.UNKNOWN_APPLET


class DeploymentError(WorkflowError):
    kind = ErrorKind.DEPLOYMENT_FAILED

    def __init__(self, message: str, *, code: str = "UNKNOWN_ERROR") -> None:
        super().__init__(message)
        self.code = code

    def to_json(self) -> dict[str, object]:
        out = super().to_json()
        out["code"] = self.code
        return out


class ConfirmationRequired(WorkflowError):
    kind = ErrorKind.CONFIRMATION_REQUIRED
