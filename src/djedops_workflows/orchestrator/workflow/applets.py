"""Applet behaviour registry.

The engine addresses applets by `NodeType` only. Each node kind maps to one
`Applet` implementation, registered once when the engine is built, and
`AppletRegistry.ensure_complete()` fails fast if any kind has no behaviour.

The default applets below are deterministic simulations: their payloads are
derived from the metrics snapshot so runs can be reproduced in tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from djedops_workflows.orchestrator.workflow.chains import Chain, chain_info
from djedops_workflows.orchestrator.workflow.conditions import MetricsSnapshot
from djedops_workflows.orchestrator.workflow.errors import AppletError, UnknownApplet
from djedops_workflows.orchestrator.workflow.models import BridgeSpec
from djedops_workflows.orchestrator.workflow.node_types import NodeType

logger = logging.getLogger(__name__)

# Reserve ratio (percent) below which the protocol is undercollateralised.
MIN_RESERVE_RATIO_PCT = 400.0
MAX_RESERVE_RATIO_PCT = 800.0


@dataclass(frozen=True, slots=True)
class AppletCall:
    """Everything an applet may look at for one node visit."""

    node_id: str
    node_type: NodeType
    name: str
    chain: Chain
    metrics: MetricsSnapshot
    params: dict[str, object] = field(default_factory=dict)
    bridge: BridgeSpec | None = None


class Applet(Protocol):
    """One unit of node behaviour. Raise `AppletError` to report a handled failure."""

    def run(self, call: AppletCall) -> dict[str, object]: ...


class AppletRegistry:
    def __init__(self) -> None:
        self._applets: dict[NodeType, Applet] = {}

    def register(self, node_type: NodeType, applet: Applet) -> None:
        if node_type in self._applets:
            logger.debug(
                "Replacing registered applet",
                extra={"node_type": node_type.value, "applet": type(applet).__name__},
            )
        self._applets[node_type] = applet

    def get(self, node_type: NodeType) -> Applet:
        applet = self._applets.get(node_type)
        if applet is None:
            raise UnknownApplet(f"No applet registered for node type {node_type.value!r}")
        return applet

    def invoke(self, call: AppletCall) -> dict[str, object]:
        return self.get(call.node_type).run(call)

    def missing(self) -> list[NodeType]:
        return [t for t in NodeType if t not in self._applets]

    def ensure_complete(self) -> None:
        missing = self.missing()
        if missing:
            names = ", ".join(t.value for t in missing)
            raise UnknownApplet(f"No applet registered for node type(s): {names}")


def _protocol_status(ratio: float) -> str:
    if ratio < MIN_RESERVE_RATIO_PCT:
        return "CRITICAL"
    if ratio > MAX_RESERVE_RATIO_PCT:
        return "OVERCOLLATERALISED"
    return "OPTIMAL"


@dataclass(frozen=True, slots=True)
class MonitorApplet:
    def run(self, call: AppletCall) -> dict[str, object]:
        ratio = call.metrics.reserve_ratio_pct
        return {
            "reserve_ratio_pct": ratio,
            "oracle_price": call.metrics.oracle_price,
            "status": _protocol_status(ratio),
        }


@dataclass(frozen=True, slots=True)
class SimulatorApplet:
    """Projects the reserve ratio under a price shock (default -10%)."""

    default_shock_pct: float = -10.0

    def run(self, call: AppletCall) -> dict[str, object]:
        shock = float(call.params.get("shock_pct", self.default_shock_pct))  # type: ignore[arg-type]
        projected = call.metrics.reserve_ratio_pct * (1 + shock / 100)
        if projected < MIN_RESERVE_RATIO_PCT:
            risk = "HIGH"
        elif projected < MIN_RESERVE_RATIO_PCT * 1.1:
            risk = "MEDIUM"
        else:
            risk = "LOW"
        return {
            "scenario": f"Price Shock {shock:+g}%",
            "projected_ratio_pct": round(projected, 4),
            "risk": risk,
        }


@dataclass(frozen=True, slots=True)
class SentinelApplet:
    def run(self, call: AppletCall) -> dict[str, object]:
        ratio = call.metrics.reserve_ratio_pct
        critical = ratio < MIN_RESERVE_RATIO_PCT
        return {
            "threat_level": "CRITICAL" if critical else "NORMAL",
            "stress_test_result": "FAILED" if critical else "PASSED",
            "reserve_ratio_pct": ratio,
        }


@dataclass(frozen=True, slots=True)
class LedgerApplet:
    def run(self, call: AppletCall) -> dict[str, object]:
        return {
            "chain": call.chain.value,
            "native_token": chain_info(call.chain).native_token,
            "watched_address": call.params.get("address"),
        }


@dataclass(frozen=True, slots=True)
class ArbitrageApplet:
    """Reports the spread between the oracle price and the 1.00 peg."""

    peg: float = 1.0

    def run(self, call: AppletCall) -> dict[str, object]:
        spread_pct = abs(call.metrics.oracle_price - self.peg) / self.peg * 100
        min_spread = float(call.params.get("min_spread_pct", 0.5))  # type: ignore[arg-type]
        return {
            "spread_pct": round(spread_pct, 4),
            "opportunity": spread_pct >= min_spread,
        }


@dataclass(frozen=True, slots=True)
class BridgeApplet:
    def run(self, call: AppletCall) -> dict[str, object]:
        spec = call.bridge
        if spec is None:
            raise AppletError(f"Bridge node {call.node_id!r} has no bridge configuration")
        if not chain_info(spec.source_chain).bridge_enabled:
            raise AppletError(f"Bridging is not enabled on {spec.source_chain.value}")
        if not chain_info(spec.destination_chain).bridge_enabled:
            raise AppletError(f"Bridging is not enabled on {spec.destination_chain.value}")
        fee = spec.amount * spec.fee_percent / 100
        return {
            "source_chain": spec.source_chain.value,
            "destination_chain": spec.destination_chain.value,
            "token": spec.token,
            "amount": spec.amount,
            "fee": round(fee, 8),
            "estimated_time_seconds": spec.estimated_time_seconds,
            "status": spec.status.value,
        }


@dataclass(frozen=True, slots=True)
class WalletApplet:
    """Prepares a wallet operation. Signing and submission happen elsewhere."""

    def run(self, call: AppletCall) -> dict[str, object]:
        return {
            "chain": call.chain.value,
            "native_token": chain_info(call.chain).native_token,
            "operation": call.params.get("operation", "balance"),
            "signed": False,
        }


def default_registry() -> AppletRegistry:
    registry = AppletRegistry()
    registry.register(NodeType.MONITOR, MonitorApplet())
    registry.register(NodeType.SIMULATOR, SimulatorApplet())
    registry.register(NodeType.SENTINEL, SentinelApplet())
    registry.register(NodeType.LEDGER, LedgerApplet())
    registry.register(NodeType.ARBITRAGE, ArbitrageApplet())
    registry.register(NodeType.BRIDGE, BridgeApplet())
    registry.register(NodeType.ETH_WALLET, WalletApplet())
    registry.register(NodeType.SOL_WALLET, WalletApplet())
    registry.ensure_complete()
    return registry
