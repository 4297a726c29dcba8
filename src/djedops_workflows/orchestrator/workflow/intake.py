"""Intake for candidate graphs produced outside the core.

Parsers (natural-language or template based) hand over a
`GraphConstructionRequest`. The core only validates it and turns it into a
`Workflow`; it never interprets intent.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, ValidationError

from djedops_workflows.orchestrator.workflow.chains import Chain
from djedops_workflows.orchestrator.workflow.compatibility import ChainCheck
from djedops_workflows.orchestrator.workflow.errors import GraphErrorReason, InvalidGraphError
from djedops_workflows.orchestrator.workflow.graph import validate
from djedops_workflows.orchestrator.workflow.models import Workflow


class GraphConstructionRequest(BaseModel):
    id: str | None = None
    name: str = Field(min_length=1)
    description: str = ""
    default_chain: Chain | None = None
    nodes: list[dict[str, Any]] = Field(default_factory=list)
    edges: list[dict[str, Any]] = Field(
        default_factory=list, validation_alias=AliasChoices("edges", "connections")
    )


@dataclass(frozen=True, slots=True)
class IntakeResult:
    workflow: Workflow
    mismatches: list[ChainCheck]


def _edges_from_outputs(nodes: list[dict[str, Any]]) -> list[dict[str, str]]:
    edges: list[dict[str, str]] = []
    for node in nodes:
        outputs = node.get("outputs")
        if not isinstance(outputs, list):
            continue
        for target in outputs:
            if isinstance(target, str):
                edges.append({"from": str(node.get("id")), "to": target})
    return edges


def _format_validation_error(err: ValidationError) -> str:
    parts = []
    for item in err.errors():
        loc = ".".join(str(p) for p in item.get("loc", ()))
        parts.append(f"{loc}: {item.get('msg')}" if loc else str(item.get("msg")))
    return "; ".join(parts)


def accept_graph_request(request: GraphConstructionRequest) -> IntakeResult:
    """Build and validate a workflow from a construction request.

    When the request carries no edges, they are derived from each node's
    `outputs` list. Chain mismatches are reported, not rejected: they can still
    be repaired before execution.
    """

    edges = request.edges or _edges_from_outputs(request.nodes)
    payload: dict[str, Any] = {
        "id": request.id or f"workflow_{uuid.uuid4().hex[:12]}",
        "name": request.name,
        "description": request.description,
        "nodes": request.nodes,
        "edges": edges,
    }
    if request.default_chain is not None:
        payload["default_chain"] = request.default_chain

    try:
        workflow = Workflow.model_validate(payload)
    except ValidationError as e:
        raise InvalidGraphError(
            f"Malformed workflow: {_format_validation_error(e)}",
            reason=GraphErrorReason.MALFORMED,
        ) from e

    validate(workflow)
    return IntakeResult(workflow=workflow, mismatches=workflow.mismatches)
