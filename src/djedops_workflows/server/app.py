"""FastAPI app factory.

Endpoints are thin wrappers over the workflow core. Every `WorkflowError`
leaves the API as `{"kind": ..., "message": ...}` with a status derived from
its kind, so clients never see an unlabelled internal error.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from djedops_workflows import __version__
from djedops_workflows.orchestrator.logging import configure_logging
from djedops_workflows.orchestrator.workflow.applets import AppletRegistry, default_registry
from djedops_workflows.orchestrator.workflow.compatibility import (
    auto_repair,
    check_all,
    repair_all,
)
from djedops_workflows.orchestrator.workflow.conditions import ManualMetricsFeed, MetricsSnapshot
from djedops_workflows.orchestrator.workflow.engine import ExecutionContext, ExecutionEngine
from djedops_workflows.orchestrator.workflow.errors import (
    ConfirmationRequired,
    ErrorKind,
    WorkflowError,
)
from djedops_workflows.orchestrator.workflow.history import ExecutionHistoryStore
from djedops_workflows.orchestrator.workflow.intake import (
    GraphConstructionRequest,
    accept_graph_request,
)
from djedops_workflows.orchestrator.workflow.models import Edge, Workflow
from djedops_workflows.orchestrator.workflow.records import ExecutionLogEntry
from djedops_workflows.orchestrator.workflow.templates import TEMPLATES, get_template
from djedops_workflows.server.config import ServerSettings
from djedops_workflows.server.models import (
    ExecuteRequest,
    InstantiateRequest,
    MetricsUpdate,
    RepairRequest,
    RunStatus,
)
from djedops_workflows.server.runs import RunTracker
from djedops_workflows.server.workflow_store import WorkflowStore

logger = logging.getLogger(__name__)

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.INVALID_GRAPH: 400,
    ErrorKind.CHAIN_MISMATCH: 409,
    ErrorKind.ALREADY_RUNNING: 409,
    ErrorKind.GRAPH_LOCKED: 409,
    ErrorKind.CONFIRMATION_REQUIRED: 428,
    ErrorKind.DEPLOYMENT_FAILED: 502,
}


def _workflow_view(workflow: Workflow) -> dict[str, object]:
    out = workflow.to_json()
    out["estimated_cost"] = workflow.estimated_cost()
    out["has_cross_chain"] = workflow.has_cross_chain()
    out["mismatches"] = [m.to_json() for m in workflow.mismatches]
    return out


def create_app(*, registry: AppletRegistry | None = None) -> FastAPI:
    settings = ServerSettings()

    app = FastAPI(
        title="DjedOps Workflows",
        version=__version__,
        description="REST API over the DjedOps workflow engine.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    history = ExecutionHistoryStore(
        settings.history_file, max_entries=settings.history_max_entries
    )
    workflow_store = WorkflowStore(settings.workflows_file)
    metrics = ManualMetricsFeed(
        MetricsSnapshot(
            reserve_ratio_pct=settings.reserve_ratio_pct, oracle_price=settings.oracle_price
        )
    )
    engine = ExecutionEngine(registry=registry or default_registry(), history=history)
    runs = RunTracker()

    @app.exception_handler(WorkflowError)
    def workflow_error(_request: Request, exc: WorkflowError) -> JSONResponse:
        status = _STATUS_BY_KIND.get(exc.kind, 500)
        logger.info(
            "Request rejected", extra={"kind": exc.kind.value, "status_code": status}
        )
        return JSONResponse(status_code=status, content=exc.to_json())

    def _get_or_404(workflow_id: str) -> Workflow:
        workflow = workflow_store.get(workflow_id)
        if workflow is None:
            raise HTTPException(status_code=404, detail="Workflow not found")
        return workflow

    def _context(req: ExecuteRequest | None) -> ExecutionContext:
        req = req or ExecuteRequest()
        return ExecutionContext.from_settings(
            settings,
            metrics,
            atomic_mode=req.atomic_mode,
            node_timeout_seconds=req.node_timeout_seconds,
            protocol_status=req.protocol_status,
        )

    @app.get("/api/health")
    def health() -> dict[str, object]:
        return {"status": "ok", "version": __version__}

    @app.get("/api/templates")
    def list_templates() -> list[dict[str, object]]:
        return [t.to_json() for t in TEMPLATES]

    @app.post("/api/templates/{template_id}/instantiate", status_code=201)
    def instantiate_template(
        template_id: str, req: InstantiateRequest | None = None
    ) -> dict[str, object]:
        template = get_template(template_id)
        if template is None:
            raise HTTPException(status_code=404, detail="Template not found")
        workflow = template.instantiate(name=req.name if req else None)
        workflow_store.save(workflow)
        return _workflow_view(workflow)

    @app.post("/api/workflows", status_code=201)
    def create_workflow(req: GraphConstructionRequest) -> dict[str, object]:
        if req.default_chain is None:
            req = req.model_copy(update={"default_chain": settings.default_chain})
        result = accept_graph_request(req)
        workflow_store.save(result.workflow)
        return _workflow_view(result.workflow)

    @app.get("/api/workflows")
    def list_workflows() -> list[dict[str, object]]:
        return [_workflow_view(w) for w in workflow_store.list()]

    @app.get("/api/workflows/{workflow_id}")
    def get_workflow(workflow_id: str) -> dict[str, object]:
        return _workflow_view(_get_or_404(workflow_id))

    @app.get("/api/workflows/{workflow_id}/compatibility")
    def compatibility(workflow_id: str) -> dict[str, object]:
        workflow = _get_or_404(workflow_id)
        checks = check_all(workflow)
        return {
            "workflow_id": workflow.id,
            "checks": [c.to_json() for c in checks],
            "mismatch_count": sum(1 for c in checks if c.mismatch),
        }

    @app.post("/api/workflows/{workflow_id}/repair")
    def repair(workflow_id: str, req: RepairRequest | None = None) -> dict[str, object]:
        req = req or RepairRequest()
        token = req.token or settings.bridge_default_token
        amount = settings.bridge_default_amount if req.amount is None else req.amount
        with engine.editing(workflow_id):
            workflow = _get_or_404(workflow_id)
            if req.edge is not None:
                edge = Edge(from_node=req.edge.from_node, to_node=req.edge.to_node)
                repaired = auto_repair(workflow, edge, token=token, amount=amount)
            else:
                repaired = repair_all(workflow, token=token, amount=amount)
            workflow_store.save(repaired)
        return _workflow_view(repaired)

    @app.post("/api/workflows/{workflow_id}/execute")
    def execute(workflow_id: str, req: ExecuteRequest | None = None) -> ExecutionLogEntry:
        workflow = _get_or_404(workflow_id)
        entry = engine.execute(workflow, _context(req))
        workflow_store.record_execution(workflow.id, entry.ended_at)
        return entry

    @app.post("/api/workflows/{workflow_id}/runs", status_code=202, response_model=RunStatus)
    def start_run(workflow_id: str, req: ExecuteRequest | None = None) -> RunStatus:
        workflow = _get_or_404(workflow_id)
        handle = engine.start(
            workflow,
            _context(req),
            on_finish=lambda entry: workflow_store.record_execution(workflow_id, entry.ended_at),
        )
        runs.add(handle)
        return runs.status(handle)

    @app.get("/api/runs/{run_id}", response_model=RunStatus)
    def get_run(run_id: str) -> RunStatus:
        handle = runs.get(run_id)
        if handle is None:
            raise HTTPException(status_code=404, detail="Run not found")
        return runs.status(handle)

    @app.post("/api/runs/{run_id}/cancel", response_model=RunStatus)
    def cancel_run(run_id: str) -> RunStatus:
        handle = runs.get(run_id)
        if handle is None:
            raise HTTPException(status_code=404, detail="Run not found")
        handle.cancel()
        return runs.status(handle)

    @app.get("/api/metrics")
    def get_metrics() -> dict[str, float]:
        return metrics.get_snapshot().to_json()

    @app.put("/api/metrics")
    def put_metrics(req: MetricsUpdate) -> dict[str, float]:
        snapshot = metrics.update(
            reserve_ratio_pct=req.reserve_ratio_pct, oracle_price=req.oracle_price
        )
        return snapshot.to_json()

    @app.get("/api/history")
    def list_history(workflow_id: str | None = None) -> list[ExecutionLogEntry]:
        if workflow_id:
            return history.find_by_workflow(workflow_id)
        return history.list()

    @app.delete("/api/history")
    def clear_history(confirm: bool = False) -> dict[str, object]:
        if not confirm:
            raise ConfirmationRequired(
                "Clearing execution history is destructive; repeat with confirm=true"
            )
        history.clear()
        return {"cleared": True}

    return app


def create_configured_app() -> FastAPI:
    """Factory for `uvicorn --factory`: installs JSON logging, then builds the app."""

    configure_logging(ServerSettings().log_level)
    return create_app()
