"""Test configuration and fixtures."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from pathlib import Path

import pytest

from djedops_workflows.orchestrator.workflow.applets import (
    AppletCall,
    AppletRegistry,
    default_registry,
)
from djedops_workflows.orchestrator.workflow.conditions import ManualMetricsFeed, MetricsSnapshot
from djedops_workflows.orchestrator.workflow.engine import ExecutionEngine
from djedops_workflows.orchestrator.workflow.errors import AppletError
from djedops_workflows.orchestrator.workflow.history import InMemoryHistoryStore
from djedops_workflows.orchestrator.workflow.models import (
    Condition,
    Edge,
    Node,
    Workflow,
)
from djedops_workflows.orchestrator.workflow.node_types import NodeType


class FailingApplet:
    def __init__(self, message: str = "boom") -> None:
        self.message = message

    def run(self, call: AppletCall) -> dict[str, object]:
        raise AppletError(self.message)


class BlockingApplet:
    """Blocks until `release` is set; `entered` is set once the call starts."""

    def __init__(self) -> None:
        self.entered = threading.Event()
        self.release = threading.Event()

    def run(self, call: AppletCall) -> dict[str, object]:
        self.entered.set()
        self.release.wait(timeout=10)
        return {"released": True}


@pytest.fixture
def temp_state_dir(tmp_path: Path) -> Path:
    """Provide a temporary state directory."""
    state_dir = tmp_path / "agent_state"
    state_dir.mkdir()
    return state_dir


@pytest.fixture
def metrics() -> ManualMetricsFeed:
    """Healthy protocol metrics."""
    return ManualMetricsFeed(MetricsSnapshot(reserve_ratio_pct=567.89, oracle_price=1.0))


@pytest.fixture
def history() -> InMemoryHistoryStore:
    return InMemoryHistoryStore()


@pytest.fixture
def registry() -> AppletRegistry:
    return default_registry()


@pytest.fixture
def engine(registry: AppletRegistry, history: InMemoryHistoryStore) -> ExecutionEngine:
    return ExecutionEngine(registry=registry, history=history)


@pytest.fixture
def monitor_sentinel() -> Workflow:
    """Monitor (always) -> Sentinel (metric below 400)."""
    return Workflow(
        id="wf-monitor",
        name="Monitor & Alert",
        nodes=[
            Node(id="monitor", type=NodeType.MONITOR, condition=Condition.always()),
            Node(id="sentinel", type=NodeType.SENTINEL, condition=Condition.metric_below(400)),
        ],
        edges=[Edge(from_node="monitor", to_node="sentinel")],
    )


@pytest.fixture
def eth_to_monitor() -> Workflow:
    """Ethereum wallet feeding a WeilChain monitor: one mismatched edge."""
    return Workflow(
        id="wf-cross",
        name="Cross chain",
        nodes=[
            Node(id="eth", type=NodeType.ETH_WALLET, chain="ethereum"),
            Node(id="monitor", type=NodeType.MONITOR),
        ],
        edges=[Edge(from_node="eth", to_node="monitor")],
    )


@pytest.fixture
def failing_applet() -> FailingApplet:
    return FailingApplet()


@pytest.fixture
def blocking_applet() -> Iterator[BlockingApplet]:
    applet = BlockingApplet()
    yield applet
    applet.release.set()
