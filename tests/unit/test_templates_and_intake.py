"""Unit tests for the template library and graph intake."""

from __future__ import annotations

import pytest

from djedops_workflows.orchestrator.workflow.applets import default_registry
from djedops_workflows.orchestrator.workflow.compatibility import repair_all
from djedops_workflows.orchestrator.workflow.conditions import ManualMetricsFeed
from djedops_workflows.orchestrator.workflow.engine import ExecutionContext, ExecutionEngine
from djedops_workflows.orchestrator.workflow.errors import GraphErrorReason, InvalidGraphError
from djedops_workflows.orchestrator.workflow.history import InMemoryHistoryStore
from djedops_workflows.orchestrator.workflow.intake import (
    GraphConstructionRequest,
    accept_graph_request,
)
from djedops_workflows.orchestrator.workflow.models import ConditionKind
from djedops_workflows.orchestrator.workflow.records import RunOutcome
from djedops_workflows.orchestrator.workflow.templates import (
    TEMPLATES,
    TemplateCategory,
    TemplateDifficulty,
    get_template,
    templates_by_category,
    templates_by_difficulty,
)


def test_template_lookup_helpers() -> None:
    assert {t.id for t in TEMPLATES} == {
        "monitor-alert",
        "arbitrage-hunter",
        "risk-analysis",
        "transaction-tracker",
        "full-stack",
        "cross-chain-vault",
    }
    assert get_template("nope") is None
    assert {t.id for t in templates_by_category(TemplateCategory.TRADING)} == {"arbitrage-hunter"}
    beginner = {t.id for t in templates_by_difficulty(TemplateDifficulty.BEGINNER)}
    assert beginner == {"monitor-alert", "transaction-tracker"}


def test_instantiate_gives_fresh_ids() -> None:
    template = get_template("monitor-alert")
    assert template is not None
    first = template.instantiate()
    second = template.instantiate(name="Mine")
    assert first.id != second.id
    assert second.name == "Mine"
    assert first.node("node_sentinel").condition is not None
    assert first.node("node_sentinel").condition.kind is ConditionKind.METRIC_BELOW
    assert template.to_json()["estimated_cost"] == 170


@pytest.mark.parametrize("template", TEMPLATES, ids=lambda t: t.id)
def test_every_template_runs_once_repaired(
    template, metrics: ManualMetricsFeed
) -> None:
    workflow = repair_all(template.instantiate())
    engine = ExecutionEngine(registry=default_registry(), history=InMemoryHistoryStore())
    entry = engine.execute(workflow, ExecutionContext(metrics=metrics))
    assert entry.status is RunOutcome.SUCCESS
    assert len(entry.node_executions) == len(workflow.nodes)


def test_cross_chain_template_needs_a_bridge() -> None:
    template = get_template("cross-chain-vault")
    assert template is not None
    assert len(template.instantiate().mismatches) == 1


def test_accept_graph_request_derives_edges_from_outputs() -> None:
    request = GraphConstructionRequest.model_validate(
        {
            "name": "Parsed",
            "nodes": [
                {"id": "m", "type": "djed_monitor", "outputs": ["s"]},
                {
                    "id": "s",
                    "type": "djed_sentinel",
                    "condition": {"type": "dsi_below", "value": 400},
                },
            ],
        }
    )
    result = accept_graph_request(request)

    assert [e.key for e in result.workflow.edges] == [("m", "s")]
    assert result.workflow.id.startswith("workflow_")
    assert result.mismatches == []


def test_accept_graph_request_reports_mismatches_without_rejecting() -> None:
    request = GraphConstructionRequest.model_validate(
        {
            "id": "wf-x",
            "name": "Cross",
            "nodes": [
                {"id": "eth", "type": "eth_wallet"},
                {"id": "m", "type": "djed_monitor"},
            ],
            "connections": [{"from": "eth", "to": "m"}],
        }
    )
    result = accept_graph_request(request)
    assert result.workflow.id == "wf-x"
    assert len(result.mismatches) == 1


def test_accept_graph_request_rejects_unknown_node_type() -> None:
    request = GraphConstructionRequest(name="Bad", nodes=[{"id": "x", "type": "teleport_v2"}])
    with pytest.raises(InvalidGraphError) as exc:
        accept_graph_request(request)
    assert exc.value.reason is GraphErrorReason.MALFORMED
    assert "nodes.0.type" in exc.value.message


def test_accept_graph_request_rejects_cycles() -> None:
    request = GraphConstructionRequest(
        name="Loop",
        nodes=[
            {"id": "a", "type": "djed_monitor", "outputs": ["b"]},
            {"id": "b", "type": "djed_ledger", "outputs": ["a"]},
        ],
    )
    with pytest.raises(InvalidGraphError) as exc:
        accept_graph_request(request)
    assert exc.value.reason is GraphErrorReason.CYCLE_DETECTED
