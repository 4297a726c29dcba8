from __future__ import annotations

import pytest

from djedops_workflows.orchestrator.workflow.applets import (
    AppletCall,
    AppletRegistry,
    BridgeApplet,
    MonitorApplet,
    SentinelApplet,
    SimulatorApplet,
    default_registry,
)
from djedops_workflows.orchestrator.workflow.chains import Chain
from djedops_workflows.orchestrator.workflow.conditions import MetricsSnapshot
from djedops_workflows.orchestrator.workflow.errors import AppletError, UnknownApplet
from djedops_workflows.orchestrator.workflow.models import BridgeSpec
from djedops_workflows.orchestrator.workflow.node_types import NodeType


def _call(node_type: NodeType, ratio: float = 567.89, **kwargs) -> AppletCall:
    return AppletCall(
        node_id="n1",
        node_type=node_type,
        name="node",
        chain=Chain.WEILCHAIN,
        metrics=MetricsSnapshot(reserve_ratio_pct=ratio, oracle_price=1.0),
        **kwargs,
    )


def test_default_registry_covers_every_node_type() -> None:
    assert default_registry().missing() == []


def test_incomplete_registry_is_reported() -> None:
    registry = AppletRegistry()
    registry.register(NodeType.MONITOR, MonitorApplet())
    with pytest.raises(UnknownApplet):
        registry.ensure_complete()
    with pytest.raises(UnknownApplet):
        registry.get(NodeType.BRIDGE)


@pytest.mark.parametrize(
    ("ratio", "status"),
    [(399.99, "CRITICAL"), (400.0, "OPTIMAL"), (800.0, "OPTIMAL"), (900.0, "OVERCOLLATERALISED")],
)
def test_monitor_status_bands(ratio: float, status: str) -> None:
    assert MonitorApplet().run(_call(NodeType.MONITOR, ratio))["status"] == status


def test_sentinel_flags_undercollateralised_reserve() -> None:
    assert SentinelApplet().run(_call(NodeType.SENTINEL, 350))["threat_level"] == "CRITICAL"
    assert SentinelApplet().run(_call(NodeType.SENTINEL, 400))["threat_level"] == "NORMAL"


def test_simulator_applies_price_shock() -> None:
    out = SimulatorApplet().run(_call(NodeType.SIMULATOR, 500, params={"shock_pct": -25}))
    assert out["projected_ratio_pct"] == 375.0
    assert out["risk"] == "HIGH"


def test_bridge_applet_requires_configuration() -> None:
    with pytest.raises(AppletError):
        BridgeApplet().run(_call(NodeType.BRIDGE))


def test_bridge_applet_reports_fee() -> None:
    spec = BridgeSpec(
        source_chain=Chain.ETHEREUM, destination_chain=Chain.WEILCHAIN, token="USDC", amount=200
    )
    out = BridgeApplet().run(_call(NodeType.BRIDGE, bridge=spec))
    assert out["fee"] == 5.0
    assert out["estimated_time_seconds"] == 300
    assert out["status"] == "pending"
