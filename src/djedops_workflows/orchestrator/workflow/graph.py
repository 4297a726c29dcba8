"""Structural validation and ordering for workflow graphs.

`validate` is the gate every graph passes before it is stored or executed. It
reports the first problem found, in this order: duplicate node ids, edges that
reference missing nodes (or loop onto themselves, or repeat), cycles, and
finally nodes that cannot be reached from any entry node.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import TYPE_CHECKING

from djedops_workflows.orchestrator.workflow.errors import (
    CycleDetected,
    GraphErrorReason,
    InvalidGraphError,
)

if TYPE_CHECKING:
    from djedops_workflows.orchestrator.workflow.models import Edge, Node, Workflow


class _Mark(Enum):
    WHITE = 0
    GRAY = 1
    BLACK = 2


def validate(workflow: Workflow) -> None:
    """Raise `InvalidGraphError` if the workflow is not an executable DAG."""

    _check_unique_nodes(workflow.nodes)
    _check_edges(workflow.nodes, workflow.edges)
    order = topological_order(workflow)
    _check_reachable(workflow, order)


def entry_nodes(workflow: Workflow) -> list[str]:
    """Node ids with no incoming edge, in declaration order."""

    targets = {e.to_node for e in workflow.edges}
    return [n.id for n in workflow.nodes if n.id not in targets]


def topological_order(workflow: Workflow) -> list[str]:
    """Order node ids so every edge points forward.

    Three-colour depth-first search; reaching a GRAY node means a back edge and
    raises `CycleDetected` with that node's id. Ties between independent nodes
    follow declaration order.
    """

    node_ids = [n.id for n in workflow.nodes]
    children: dict[str, list[str]] = {node_id: [] for node_id in node_ids}
    for edge in workflow.edges:
        if edge.from_node in children and edge.to_node in children:
            children[edge.from_node].append(edge.to_node)

    marks = {node_id: _Mark.WHITE for node_id in node_ids}
    postorder: list[str] = []

    # Roots and children are pushed in reverse so the reversed postorder
    # lists earlier-declared nodes first.
    for root in reversed(node_ids):
        if marks[root] is not _Mark.WHITE:
            continue
        marks[root] = _Mark.GRAY
        stack: list[tuple[str, list[str]]] = [(root, list(reversed(children[root])))]
        while stack:
            node_id, pending = stack[-1]
            if not pending:
                marks[node_id] = _Mark.BLACK
                postorder.append(node_id)
                stack.pop()
                continue
            child = pending.pop()
            mark = marks[child]
            if mark is _Mark.GRAY:
                raise CycleDetected(child)
            if mark is _Mark.WHITE:
                marks[child] = _Mark.GRAY
                stack.append((child, list(reversed(children[child]))))

    postorder.reverse()
    return postorder


def _check_unique_nodes(nodes: Iterable[Node]) -> None:
    seen: set[str] = set()
    for node in nodes:
        if node.id in seen:
            raise InvalidGraphError(
                f"Duplicate node id {node.id!r}",
                reason=GraphErrorReason.DUPLICATE_NODE,
                node_id=node.id,
            )
        seen.add(node.id)


def _check_edges(nodes: Iterable[Node], edges: Iterable[Edge]) -> None:
    known = {n.id for n in nodes}
    seen: set[tuple[str, str]] = set()
    for edge in edges:
        for endpoint in edge.key:
            if endpoint not in known:
                raise InvalidGraphError(
                    f"Connection {edge.from_node!r} -> {edge.to_node!r} "
                    f"references missing node {endpoint!r}",
                    reason=GraphErrorReason.DANGLING_EDGE,
                    node_id=endpoint,
                )
        if edge.from_node == edge.to_node:
            raise InvalidGraphError(
                f"Self-loop on node {edge.from_node!r} is not allowed",
                reason=GraphErrorReason.SELF_LOOP,
                node_id=edge.from_node,
            )
        if edge.key in seen:
            raise InvalidGraphError(
                f"Connection {edge.from_node!r} -> {edge.to_node!r} is declared twice",
                reason=GraphErrorReason.DUPLICATE_EDGE,
                node_id=edge.from_node,
            )
        seen.add(edge.key)


def _check_reachable(workflow: Workflow, order: list[str]) -> None:
    # In a DAG every node is reachable from some node without incoming edges,
    # but the walk is kept explicit so the error names the first orphan.
    children: dict[str, list[str]] = {node_id: [] for node_id in order}
    for edge in workflow.edges:
        children[edge.from_node].append(edge.to_node)

    reached: set[str] = set()
    frontier = entry_nodes(workflow)
    while frontier:
        node_id = frontier.pop()
        if node_id in reached:
            continue
        reached.add(node_id)
        frontier.extend(children[node_id])

    for node_id in order:
        if node_id not in reached:
            raise InvalidGraphError(
                f"Node {node_id!r} is not reachable from any entry node",
                reason=GraphErrorReason.UNREACHABLE_NODE,
                node_id=node_id,
            )
