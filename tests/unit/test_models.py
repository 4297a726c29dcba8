"""Unit tests for the workflow graph model and its mutation API."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from djedops_workflows.orchestrator.workflow.chains import Chain
from djedops_workflows.orchestrator.workflow.errors import (
    ErrorKind,
    GraphErrorReason,
    GraphLockedError,
    InvalidGraphError,
)
from djedops_workflows.orchestrator.workflow.models import (
    BridgeSpec,
    Condition,
    ConditionKind,
    Edge,
    Node,
    Workflow,
)
from djedops_workflows.orchestrator.workflow.node_types import NodeType


def test_condition_accepts_builder_shape_and_legacy_names() -> None:
    cond = Condition.model_validate({"type": "dsi_below", "value": 400})
    assert cond.kind is ConditionKind.METRIC_BELOW
    assert cond.threshold == 400

    above = Condition.model_validate({"kind": "dsi_above", "threshold": 500})
    assert above.kind is ConditionKind.METRIC_ABOVE


def test_condition_requires_threshold_unless_always() -> None:
    with pytest.raises(ValidationError):
        Condition.model_validate({"kind": "price_below"})
    assert Condition.model_validate({"type": "always"}).threshold is None


def test_node_defaults_name_from_applet_definition() -> None:
    node = Node(id="n1", type=NodeType.ARBITRAGE)
    assert node.name == "Arb-Hunter"


def test_only_bridge_nodes_carry_bridge_spec() -> None:
    spec = BridgeSpec(source_chain=Chain.ETHEREUM, destination_chain=Chain.WEILCHAIN, token="USDC")
    with pytest.raises(ValidationError):
        Node(id="m", type=NodeType.MONITOR, bridge=spec)
    bridge = Node(id="b", type=NodeType.BRIDGE, bridge=spec)
    assert bridge.bridge is not None
    assert bridge.bridge.fee_percent == 2.5
    assert bridge.bridge.estimated_time_seconds == 300


def test_edge_accepts_from_to_aliases() -> None:
    edge = Edge.model_validate({"from": "a", "to": "b"})
    assert edge.key == ("a", "b")
    assert edge.to_json() == {"from": "a", "to": "b"}


def test_outputs_mirror_edges(monitor_sentinel: Workflow) -> None:
    assert monitor_sentinel.node("monitor").outputs == ["sentinel"]
    assert monitor_sentinel.node("sentinel").outputs == []


def test_add_and_remove_edges_keep_outputs_in_sync(monitor_sentinel: Workflow) -> None:
    monitor_sentinel.add_node(Node(id="ledger", type=NodeType.LEDGER))
    monitor_sentinel.add_edge("monitor", "ledger")
    assert monitor_sentinel.node("monitor").outputs == ["sentinel", "ledger"]

    monitor_sentinel.remove_edge("monitor", "sentinel")
    assert monitor_sentinel.node("monitor").outputs == ["ledger"]


def test_remove_node_drops_attached_edges(monitor_sentinel: Workflow) -> None:
    monitor_sentinel.remove_node("sentinel")
    assert monitor_sentinel.node_ids() == ["monitor"]
    assert monitor_sentinel.edges == []
    assert monitor_sentinel.node("monitor").outputs == []


def test_add_edge_rejects_self_loops_duplicates_and_unknown_nodes(
    monitor_sentinel: Workflow,
) -> None:
    with pytest.raises(InvalidGraphError) as self_loop:
        monitor_sentinel.add_edge("monitor", "monitor")
    assert self_loop.value.reason is GraphErrorReason.SELF_LOOP

    with pytest.raises(InvalidGraphError) as dup:
        monitor_sentinel.add_edge("monitor", "sentinel")
    assert dup.value.reason is GraphErrorReason.DUPLICATE_EDGE

    with pytest.raises(InvalidGraphError) as unknown:
        monitor_sentinel.add_edge("monitor", "ghost")
    assert unknown.value.reason is GraphErrorReason.UNKNOWN_NODE


def test_add_node_rejects_duplicate_id(monitor_sentinel: Workflow) -> None:
    with pytest.raises(InvalidGraphError) as exc:
        monitor_sentinel.add_node(Node(id="monitor", type=NodeType.LEDGER))
    assert exc.value.reason is GraphErrorReason.DUPLICATE_NODE
    assert exc.value.kind is ErrorKind.INVALID_GRAPH


def test_topological_order_is_invalidated_by_mutation(monitor_sentinel: Workflow) -> None:
    assert monitor_sentinel.topological_order() == ["monitor", "sentinel"]
    monitor_sentinel.add_node(Node(id="sim", type=NodeType.SIMULATOR))
    monitor_sentinel.add_edge("sentinel", "sim")
    assert monitor_sentinel.topological_order() == ["monitor", "sentinel", "sim"]


def test_set_chain_override_recomputes_mismatches(monitor_sentinel: Workflow) -> None:
    assert monitor_sentinel.mismatches == []
    monitor_sentinel.set_chain_override("sentinel", Chain.SOLANA)
    assert len(monitor_sentinel.mismatches) == 1
    assert monitor_sentinel.mismatches[0].dest_chain is Chain.SOLANA

    monitor_sentinel.set_chain_override("sentinel", None)
    assert monitor_sentinel.mismatches == []


def test_mutations_are_rejected_while_locked(monitor_sentinel: Workflow) -> None:
    assert monitor_sentinel.lock_for_run("run-1") is True
    assert monitor_sentinel.lock_for_run("run-2") is False

    with pytest.raises(GraphLockedError) as exc:
        monitor_sentinel.add_node(Node(id="x", type=NodeType.LEDGER))
    assert "GRAPH_LOCKED" in str(exc.value)
    with pytest.raises(GraphLockedError):
        monitor_sentinel.set_condition("sentinel", Condition.always())

    # Layout is not structural.
    monitor_sentinel.move_node("monitor", 10, 5)
    assert monitor_sentinel.node("monitor").position.x == 10

    monitor_sentinel.release_run("run-1")
    monitor_sentinel.set_condition("sentinel", Condition.always())
    assert monitor_sentinel.node("sentinel").condition == Condition.always()


def test_estimated_cost_sums_gas(monitor_sentinel: Workflow) -> None:
    assert monitor_sentinel.estimated_cost() == 50 + 120


def test_json_roundtrip_preserves_structure(eth_to_monitor: Workflow) -> None:
    loaded = Workflow.from_json(eth_to_monitor.to_json())
    assert loaded.node_ids() == ["eth", "monitor"]
    assert [e.key for e in loaded.edges] == [("eth", "monitor")]
    assert loaded.node("eth").chain is Chain.ETHEREUM
    assert len(loaded.mismatches) == 1
