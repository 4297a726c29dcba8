"""Chain compatibility checks and bridge auto-repair.

An edge is a mismatch when its endpoints resolve to different chains and
neither endpoint is a bridge node. Bridge nodes are chain-transition points,
so any edge touching one is compatible by definition.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from djedops_workflows.orchestrator.workflow.chains import Chain
from djedops_workflows.orchestrator.workflow.errors import GraphErrorReason, InvalidGraphError
from djedops_workflows.orchestrator.workflow.models import (
    BridgeSpec,
    Edge,
    Node,
    Workflow,
)
from djedops_workflows.orchestrator.workflow.node_types import NodeType, applet_definition

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ChainCheck:
    from_node_id: str
    to_node_id: str
    source_chain: Chain
    dest_chain: Chain
    mismatch: bool

    def to_json(self) -> dict[str, object]:
        return {
            "from": self.from_node_id,
            "to": self.to_node_id,
            "source_chain": self.source_chain.value,
            "dest_chain": self.dest_chain.value,
            "mismatch": self.mismatch,
        }


def effective_chain(node: Node, default_chain: Chain) -> Chain:
    """Explicit override, else the node type's default, else the graph default."""

    if node.chain is not None:
        return node.chain
    type_default = applet_definition(node.type).default_chain
    if type_default is not None:
        return type_default
    return default_chain


def detect_mismatch(workflow: Workflow, edge: Edge) -> ChainCheck:
    source = workflow.node(edge.from_node)
    dest = workflow.node(edge.to_node)
    source_chain = effective_chain(source, workflow.default_chain)
    dest_chain = effective_chain(dest, workflow.default_chain)
    bridged = NodeType.BRIDGE in (source.type, dest.type)
    return ChainCheck(
        from_node_id=source.id,
        to_node_id=dest.id,
        source_chain=source_chain,
        dest_chain=dest_chain,
        mismatch=not bridged and source_chain != dest_chain,
    )


def check_all(workflow: Workflow) -> list[ChainCheck]:
    """Check every edge whose endpoints exist. Dangling edges are left to `validate`."""

    known = set(workflow.node_ids())
    return [
        detect_mismatch(workflow, edge)
        for edge in workflow.edges
        if edge.from_node in known and edge.to_node in known
    ]


def recompute_compatibility(workflow: Workflow) -> list[ChainCheck]:
    """Re-scan all edges and store the current mismatch set on the workflow."""

    mismatches = [c for c in check_all(workflow) if c.mismatch]
    workflow._mismatches = mismatches
    if mismatches:
        logger.debug(
            "Chain mismatches detected",
            extra={"workflow_id": workflow.id, "mismatch_count": len(mismatches)},
        )
    return mismatches


def auto_repair(
    workflow: Workflow,
    edge: Edge,
    *,
    token: str = "USDC",
    amount: float = 0.0,
) -> Workflow:
    """Return a copy of `workflow` with a bridge node spliced into `edge`.

    The input is never mutated. An edge that is already compatible is returned
    unchanged (as a copy), so repairing twice never stacks bridges.
    """

    if workflow.find_edge(edge.from_node, edge.to_node) is None:
        raise InvalidGraphError(
            f"Connection {edge.from_node!r} -> {edge.to_node!r} is not part of workflow "
            f"{workflow.id!r}",
            reason=GraphErrorReason.UNKNOWN_EDGE,
            node_id=edge.from_node,
        )

    check = detect_mismatch(workflow, edge)
    repaired = _copy(workflow)
    if not check.mismatch:
        return repaired

    source = workflow.node(edge.from_node)
    dest = workflow.node(edge.to_node)
    bridge = Node(
        id=f"bridge_{uuid.uuid4().hex[:12]}",
        type=NodeType.BRIDGE,
        name=applet_definition(NodeType.BRIDGE).name,
        position=source.position.midpoint(dest.position),
        chain=workflow.default_chain,
        bridge=BridgeSpec(
            source_chain=check.source_chain,
            destination_chain=check.dest_chain,
            token=token,
            amount=amount,
        ),
    )

    edges = [e for e in repaired.edges if e.key != edge.key]
    edges.append(Edge(from_node=source.id, to_node=bridge.id))
    edges.append(Edge(from_node=bridge.id, to_node=dest.id))

    logger.info(
        "Inserted bridge node",
        extra={
            "workflow_id": workflow.id,
            "node_id": bridge.id,
            "source_chain": check.source_chain.value,
            "dest_chain": check.dest_chain.value,
        },
    )
    return _rebuild(repaired, nodes=[*repaired.nodes, bridge], edges=edges)


def repair_all(
    workflow: Workflow,
    *,
    token: str = "USDC",
    amount: float = 0.0,
) -> Workflow:
    """Bridge every mismatched edge. Returns a new workflow."""

    repaired = _copy(workflow)
    for check in workflow.mismatches:
        edge = Edge(from_node=check.from_node_id, to_node=check.to_node_id)
        repaired = auto_repair(repaired, edge, token=token, amount=amount)
    return repaired


def _copy(workflow: Workflow) -> Workflow:
    return _rebuild(workflow, nodes=list(workflow.nodes), edges=list(workflow.edges))


def _rebuild(workflow: Workflow, *, nodes: list[Node], edges: list[Edge]) -> Workflow:
    # Construct a fresh model so outputs and mismatches are derived again and
    # the run lock of the original does not carry over.
    return Workflow(
        id=workflow.id,
        name=workflow.name,
        description=workflow.description,
        nodes=[n.model_copy(deep=True) for n in nodes],
        edges=list(edges),
        default_chain=workflow.default_chain,
        created_at=workflow.created_at,
        last_executed_at=workflow.last_executed_at,
        execution_count=workflow.execution_count,
    )
