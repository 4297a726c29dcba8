"""Unit tests for structural validation and topological ordering."""

from __future__ import annotations

import pytest

from djedops_workflows.orchestrator.workflow.errors import (
    CycleDetected,
    GraphErrorReason,
    InvalidGraphError,
)
from djedops_workflows.orchestrator.workflow.graph import entry_nodes, topological_order, validate
from djedops_workflows.orchestrator.workflow.models import Edge, Node, Workflow
from djedops_workflows.orchestrator.workflow.node_types import NodeType


def _workflow(node_ids: list[str], edges: list[tuple[str, str]]) -> Workflow:
    return Workflow(
        id="wf",
        name="wf",
        nodes=[Node(id=n, type=NodeType.MONITOR) for n in node_ids],
        edges=[Edge(from_node=a, to_node=b) for a, b in edges],
    )


@pytest.mark.parametrize(
    "edges",
    [
        [("a", "b"), ("b", "a")],
        [("a", "b"), ("b", "c"), ("c", "a")],
        [("a", "b"), ("b", "c"), ("c", "b")],
    ],
)
def test_cycles_are_rejected(edges: list[tuple[str, str]]) -> None:
    wf = _workflow(["a", "b", "c"], edges)
    with pytest.raises(CycleDetected) as exc:
        validate(wf)
    assert exc.value.reason is GraphErrorReason.CYCLE_DETECTED
    assert exc.value.node_id in {"a", "b", "c"}
    assert "[INVALID_GRAPH]" in str(exc.value)


def test_acyclic_diamond_validates() -> None:
    wf = _workflow(["a", "b", "c", "d"], [("a", "b"), ("a", "c"), ("b", "d"), ("c", "d")])
    validate(wf)
    order = topological_order(wf)
    assert order.index("a") < order.index("b") < order.index("d")
    assert order.index("a") < order.index("c") < order.index("d")


def test_independent_nodes_follow_declaration_order() -> None:
    wf = _workflow(["x", "y", "z"], [])
    assert topological_order(wf) == ["x", "y", "z"]
    assert entry_nodes(wf) == ["x", "y", "z"]


def test_order_follows_edges_not_declaration() -> None:
    wf = _workflow(["late", "early"], [("early", "late")])
    assert topological_order(wf) == ["early", "late"]
    assert entry_nodes(wf) == ["early"]


def test_dangling_edge_is_rejected() -> None:
    wf = _workflow(["a"], [("a", "ghost")])
    with pytest.raises(InvalidGraphError) as exc:
        validate(wf)
    assert exc.value.reason is GraphErrorReason.DANGLING_EDGE
    assert exc.value.node_id == "ghost"


def test_duplicate_node_ids_are_rejected() -> None:
    wf = _workflow(["a", "a"], [])
    with pytest.raises(InvalidGraphError) as exc:
        validate(wf)
    assert exc.value.reason is GraphErrorReason.DUPLICATE_NODE


def test_self_loop_and_duplicate_edge_are_rejected() -> None:
    with pytest.raises(InvalidGraphError) as loop:
        validate(_workflow(["a"], [("a", "a")]))
    assert loop.value.reason is GraphErrorReason.SELF_LOOP

    with pytest.raises(InvalidGraphError) as dup:
        validate(_workflow(["a", "b"], [("a", "b"), ("a", "b")]))
    assert dup.value.reason is GraphErrorReason.DUPLICATE_EDGE


def test_empty_graph_is_valid() -> None:
    wf = _workflow([], [])
    validate(wf)
    assert topological_order(wf) == []
