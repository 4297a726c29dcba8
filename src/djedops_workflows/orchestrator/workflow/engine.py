"""Workflow execution engine.

A run walks the graph in topological order, one node at a time. For every
node the engine takes a fresh metrics snapshot, evaluates the node's
condition against it, and either records a skip or invokes the node's applet
with a per-node timeout. Metrics are read once per node visit, so a run sees
live data that changes between visits.

Structural problems (invalid graph, unresolved chain mismatches, a second run
for the same workflow) raise before anything is recorded. Everything that
goes wrong once the run has started ends up in the finalised
`ExecutionLogEntry` instead.

Headline status:
  - atomic mode: failed iff any node failed; nodes after the failure are skipped
  - non-atomic mode: failed iff the last attempted node failed
  - cancelled runs are always failed
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable, Iterator
from concurrent.futures import ThreadPoolExecutor, wait
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from djedops_workflows.orchestrator.workflow.applets import AppletCall, AppletRegistry
from djedops_workflows.orchestrator.workflow.compatibility import (
    effective_chain,
    recompute_compatibility,
)
from djedops_workflows.orchestrator.workflow.conditions import (
    MetricsFeed,
    MetricsSnapshot,
    evaluate_condition,
)
from djedops_workflows.orchestrator.workflow.errors import (
    AlreadyRunningError,
    CancelledByCaller,
    ChainMismatchError,
    ErrorKind,
    GraphLockedError,
    NodeExecutionFailed,
    NodeTimeout,
    WorkflowError,
)
from djedops_workflows.orchestrator.workflow.graph import validate
from djedops_workflows.orchestrator.workflow.history import HistoryStore
from djedops_workflows.orchestrator.workflow.models import Node, Workflow
from djedops_workflows.orchestrator.workflow.records import (
    ExecutionLogEntry,
    NodeExecutionRecord,
    NodeStatus,
    RunOutcome,
    SkipReason,
)
from djedops_workflows.orchestrator.workflow.run_state import RunState, transition

if TYPE_CHECKING:
    from djedops_workflows.orchestrator.config import EngineSettings

logger = logging.getLogger(__name__)

POLICY_NODE_ID = "policy_enforcement"
POLICY_NODE_NAME = "[SENTINEL_POLICY]"


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class ProtocolStatus(str, Enum):
    OPTIMAL = "OPTIMAL"
    CRITICAL = "CRITICAL"


class CancellationToken:
    """Cooperative cancellation, checked by the engine between node visits."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True, slots=True)
class ExecutionContext:
    """Per-run inputs. Nothing here is read from global state."""

    metrics: MetricsFeed
    atomic_mode: bool = False
    node_timeout_seconds: float = 30.0
    cancellation: CancellationToken = field(default_factory=CancellationToken)
    protocol_status: ProtocolStatus | None = None

    def __post_init__(self) -> None:
        if self.node_timeout_seconds <= 0:
            raise ValueError("node_timeout_seconds must be > 0")

    @classmethod
    def from_settings(
        cls,
        settings: EngineSettings,
        metrics: MetricsFeed,
        *,
        atomic_mode: bool | None = None,
        node_timeout_seconds: float | None = None,
        protocol_status: ProtocolStatus | None = None,
    ) -> ExecutionContext:
        return cls(
            metrics=metrics,
            atomic_mode=settings.atomic_mode if atomic_mode is None else atomic_mode,
            node_timeout_seconds=(
                settings.node_timeout_seconds
                if node_timeout_seconds is None
                else node_timeout_seconds
            ),
            protocol_status=protocol_status,
        )


class RunHandle:
    """Handle on a background run started with `ExecutionEngine.start`.

    `records` grows as nodes finish, so an in-flight run can be inspected
    before its entry is finalised.
    """

    def __init__(self, *, run_id: str, workflow_id: str, cancellation: CancellationToken) -> None:
        self.run_id = run_id
        self.workflow_id = workflow_id
        self._cancellation = cancellation
        self._done = threading.Event()
        self._entry: ExecutionLogEntry | None = None
        self._error: BaseException | None = None
        self._records_lock = threading.Lock()
        self._records: list[NodeExecutionRecord] = []

    @property
    def state(self) -> RunState:
        if not self._done.is_set():
            return RunState.RUNNING
        if self._entry is not None and self._entry.status is RunOutcome.SUCCESS:
            return RunState.COMPLETED
        return RunState.FAILED

    @property
    def entry(self) -> ExecutionLogEntry | None:
        return self._entry

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def records(self) -> tuple[NodeExecutionRecord, ...]:
        if self._entry is not None:
            return self._entry.node_executions
        with self._records_lock:
            return tuple(self._records)

    def done(self) -> bool:
        return self._done.is_set()

    def cancel(self) -> None:
        self._cancellation.cancel()

    def wait(self, timeout: float | None = None) -> ExecutionLogEntry | None:
        """Block until the run finishes. Returns None on timeout."""

        if not self._done.wait(timeout):
            return None
        return self._entry

    def _publish(self, record: NodeExecutionRecord) -> None:
        with self._records_lock:
            self._records.append(record)

    def _finish(self, entry: ExecutionLogEntry | None, error: BaseException | None = None) -> None:
        self._entry = entry
        self._error = error
        self._done.set()


class ExecutionEngine:
    def __init__(
        self,
        *,
        registry: AppletRegistry,
        history: HistoryStore,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._registry = registry
        self._history = history
        self._clock = clock
        self._lock = threading.Lock()
        self._running: dict[str, str] = {}
        self._editing: set[str] = set()

    def is_running(self, workflow_id: str) -> bool:
        with self._lock:
            return workflow_id in self._running

    @contextmanager
    def editing(self, workflow_id: str) -> Iterator[None]:
        """Keep runs off a workflow while its stored definition is rewritten.

        Raises `GraphLockedError` if a run or another edit holds the workflow.
        Runs started inside the block are rejected the same way.
        """

        with self._lock:
            if workflow_id in self._running:
                raise GraphLockedError(workflow_id)
            if workflow_id in self._editing:
                raise GraphLockedError(workflow_id, editing=True)
            self._editing.add(workflow_id)
        try:
            yield
        finally:
            with self._lock:
                self._editing.discard(workflow_id)

    def execute(self, workflow: Workflow, context: ExecutionContext) -> ExecutionLogEntry:
        """Run the workflow to completion on the calling thread."""

        run_id = self._begin(workflow)
        return self._run(run_id, workflow, context)

    def start(
        self,
        workflow: Workflow,
        context: ExecutionContext,
        *,
        on_finish: Callable[[ExecutionLogEntry], None] | None = None,
    ) -> RunHandle:
        """Run the workflow on a background thread.

        Single-flight and structural checks happen here, synchronously, so a
        rejected request never spawns a thread. `on_finish` is called with the
        finalised entry before waiters are released. If `on_finish` raises, the
        entry is still kept on the handle next to the error.
        """

        run_id = self._begin(workflow)
        handle = RunHandle(
            run_id=run_id, workflow_id=workflow.id, cancellation=context.cancellation
        )
        thread = threading.Thread(
            target=self._run_in_background,
            name=f"workflow-run-{workflow.id}-{run_id}",
            daemon=True,
            kwargs={
                "handle": handle,
                "workflow": workflow,
                "context": context,
                "on_finish": on_finish,
            },
        )
        thread.start()
        return handle

    # ------------------------------------------------------------------

    def _begin(self, workflow: Workflow) -> str:
        run_id = uuid.uuid4().hex
        with self._lock:
            if workflow.id in self._editing:
                raise GraphLockedError(workflow.id, editing=True)
            if workflow.id in self._running or not workflow.lock_for_run(run_id):
                raise AlreadyRunningError(
                    workflow.id, self._running.get(workflow.id) or workflow.active_run_id
                )
            self._running[workflow.id] = run_id

        try:
            validate(workflow)
            mismatches = recompute_compatibility(workflow)
            if mismatches:
                raise ChainMismatchError(mismatches)
        except WorkflowError:
            self._release(workflow, run_id)
            raise
        return run_id

    def _release(self, workflow: Workflow, run_id: str) -> None:
        workflow.release_run(run_id)
        with self._lock:
            if self._running.get(workflow.id) == run_id:
                del self._running[workflow.id]

    def _run_in_background(
        self,
        *,
        handle: RunHandle,
        workflow: Workflow,
        context: ExecutionContext,
        on_finish: Callable[[ExecutionLogEntry], None] | None,
    ) -> None:
        entry: ExecutionLogEntry | None = None
        try:
            entry = self._run(handle.run_id, workflow, context, on_record=handle._publish)
            if on_finish is not None:
                on_finish(entry)
        except Exception as e:
            logger.exception(
                "Workflow run crashed" if entry is None else "Run finish callback failed",
                extra={"workflow_id": workflow.id, "run_id": handle.run_id},
            )
            handle._finish(entry, e)
            return
        handle._finish(entry)

    def _run(
        self,
        run_id: str,
        workflow: Workflow,
        context: ExecutionContext,
        *,
        on_record: Callable[[NodeExecutionRecord], None] | None = None,
    ) -> ExecutionLogEntry:
        state = transition(current=RunState.PENDING, to=RunState.RUNNING)
        started_at = self._clock()
        logger.info(
            "Workflow run started",
            extra={
                "workflow_id": workflow.id,
                "run_id": run_id,
                "atomic_mode": context.atomic_mode,
                "node_count": len(workflow.nodes),
            },
        )

        try:
            if context.protocol_status is ProtocolStatus.CRITICAL:
                records = [self._policy_block_record(started_at)]
                if on_record is not None:
                    on_record(records[0])
                status = RunOutcome.FAILED
                error: str | None = "Execution blocked by Sentinel policy"
            else:
                records, status, error = self._visit_nodes(
                    run_id, workflow, context, on_record
                )

            ended_at = self._clock()
            entry = ExecutionLogEntry(
                id=run_id,
                workflow_id=workflow.id,
                workflow_name=workflow.name,
                started_at=started_at,
                ended_at=ended_at,
                status=status,
                total_duration_ms=max(0, int((ended_at - started_at).total_seconds() * 1000)),
                atomic_mode=context.atomic_mode,
                node_executions=tuple(records),
                error=error,
            )
            self._history.append(entry)
        finally:
            self._release(workflow, run_id)

        workflow.record_execution(entry.ended_at)
        state = transition(
            current=state,
            to=RunState.COMPLETED if status is RunOutcome.SUCCESS else RunState.FAILED,
        )
        logger.info(
            "Workflow run finished",
            extra={
                "workflow_id": workflow.id,
                "run_id": run_id,
                "status": entry.status.value,
                "run_state": state.value,
                "duration_ms": entry.total_duration_ms,
            },
        )
        return entry

    def _visit_nodes(
        self,
        run_id: str,
        workflow: Workflow,
        context: ExecutionContext,
        on_record: Callable[[NodeExecutionRecord], None] | None = None,
    ) -> tuple[list[NodeExecutionRecord], RunOutcome, str | None]:
        records: list[NodeExecutionRecord] = []

        def emit(record: NodeExecutionRecord) -> None:
            records.append(record)
            if on_record is not None:
                on_record(record)

        aborted_by: str | None = None
        cancelled = False
        last_attempted: NodeExecutionRecord | None = None

        for node in workflow.iter_nodes_in_order():
            if aborted_by is not None:
                emit(self._skip_record(node, SkipReason.ABORTED_AFTER_FAILURE))
                continue
            if cancelled or context.cancellation.cancelled:
                if not cancelled:
                    logger.info(
                        "Workflow run cancelled",
                        extra={"workflow_id": workflow.id, "run_id": run_id, "node_id": node.id},
                    )
                cancelled = True
                emit(self._skip_record(node, SkipReason.CANCELLED))
                continue

            metrics = context.metrics.get_snapshot()
            if not evaluate_condition(node.condition, metrics):
                emit(self._skip_record(node, SkipReason.CONDITION_NOT_MET))
                continue

            record = self._invoke(run_id, workflow, node, metrics, context)
            emit(record)
            last_attempted = record
            if record.status is NodeStatus.FAILED and context.atomic_mode:
                aborted_by = node.id

        if cancelled:
            return records, RunOutcome.FAILED, str(CancelledByCaller(run_id))
        if aborted_by is not None:
            return records, RunOutcome.FAILED, f"Run aborted after node {aborted_by!r} failed"
        if last_attempted is not None and last_attempted.status is NodeStatus.FAILED:
            return records, RunOutcome.FAILED, last_attempted.error
        return records, RunOutcome.SUCCESS, None

    def _invoke(
        self,
        run_id: str,
        workflow: Workflow,
        node: Node,
        metrics: MetricsSnapshot,
        context: ExecutionContext,
    ) -> NodeExecutionRecord:
        call = AppletCall(
            node_id=node.id,
            node_type=node.type,
            name=node.name,
            chain=effective_chain(node, workflow.default_chain),
            metrics=metrics,
            params=dict(node.config),
            bridge=node.bridge,
        )
        started_at = self._clock()
        failure: NodeExecutionFailed | None = None
        output: dict[str, object] | None = None

        # No context manager: leaving one would join a hung applet thread.
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"applet-{node.id}")
        try:
            future = pool.submit(self._registry.invoke, call)
            done, _ = wait([future], timeout=context.node_timeout_seconds)
            if not done:
                failure = NodeTimeout(node.id, context.node_timeout_seconds)
            else:
                try:
                    result = future.result()
                except WorkflowError as e:
                    failure = NodeExecutionFailed(node.id, e.message)
                except Exception as e:
                    logger.exception(
                        "Applet raised unexpectedly",
                        extra={"workflow_id": workflow.id, "run_id": run_id, "node_id": node.id},
                    )
                    failure = NodeExecutionFailed(node.id, f"{type(e).__name__}: {e}")
                else:
                    if isinstance(result, dict):
                        output = result
                    else:
                        failure = NodeExecutionFailed(
                            node.id, f"Applet returned {type(result).__name__}, expected an object"
                        )
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        ended_at = self._clock()
        if failure is not None:
            logger.warning(
                "Node failed",
                extra={
                    "workflow_id": workflow.id,
                    "run_id": run_id,
                    "node_id": node.id,
                    "error_kind": failure.kind.value,
                },
            )
            return NodeExecutionRecord(
                node_id=node.id,
                node_name=node.name,
                node_type=node.type.value,
                status=NodeStatus.FAILED,
                started_at=started_at,
                ended_at=ended_at,
                error=failure.message,
                error_kind=failure.kind,
            )
        return NodeExecutionRecord(
            node_id=node.id,
            node_name=node.name,
            node_type=node.type.value,
            status=NodeStatus.SUCCESS,
            started_at=started_at,
            ended_at=ended_at,
            output=output,
        )

    def _skip_record(self, node: Node, reason: SkipReason) -> NodeExecutionRecord:
        now = self._clock()
        return NodeExecutionRecord(
            node_id=node.id,
            node_name=node.name,
            node_type=node.type.value,
            status=NodeStatus.SKIPPED,
            started_at=now,
            ended_at=now,
            skip_reason=reason,
        )

    def _policy_block_record(self, at: datetime) -> NodeExecutionRecord:
        return NodeExecutionRecord(
            node_id=POLICY_NODE_ID,
            node_name=POLICY_NODE_NAME,
            status=NodeStatus.FAILED,
            started_at=at,
            ended_at=at,
            error="Execution blocked by Sentinel policy: protocol status is CRITICAL",
            error_kind=ErrorKind.NODE_EXECUTION_FAILED,
        )
