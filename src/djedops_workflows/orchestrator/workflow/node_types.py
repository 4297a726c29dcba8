"""Applet node kinds and their static metadata.

Node kinds are a closed enum. Behaviour is attached separately through the
applet registry (see `applets.py`), so adding a kind without an applet is
caught when the registry is checked at startup.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from djedops_workflows.orchestrator.workflow.chains import Chain


class NodeType(str, Enum):
    MONITOR = "djed_monitor"
    SIMULATOR = "djed_sim"
    SENTINEL = "djed_sentinel"
    LEDGER = "djed_ledger"
    ARBITRAGE = "djed_arbitrage"
    BRIDGE = "teleport_bridge"
    ETH_WALLET = "eth_wallet"
    SOL_WALLET = "sol_wallet"


class OutputKind(str, Enum):
    DATA = "data"
    ALERT = "alert"
    TRANSACTION = "transaction"
    BRIDGE = "bridge"


@dataclass(frozen=True, slots=True)
class AppletDefinition:
    node_type: NodeType
    name: str
    description: str
    output_kind: OutputKind
    default_chain: Chain | None
    gas_cost: int


APPLET_DEFINITIONS: dict[NodeType, AppletDefinition] = {
    NodeType.MONITOR: AppletDefinition(
        node_type=NodeType.MONITOR,
        name="Djed Eye",
        description="Monitors protocol metrics and reserve ratios",
        output_kind=OutputKind.DATA,
        default_chain=Chain.WEILCHAIN,
        gas_cost=50,
    ),
    NodeType.SIMULATOR: AppletDefinition(
        node_type=NodeType.SIMULATOR,
        name="Chrono-Sim",
        description="Simulates time-based scenarios",
        output_kind=OutputKind.DATA,
        default_chain=Chain.WEILCHAIN,
        gas_cost=75,
    ),
    NodeType.SENTINEL: AppletDefinition(
        node_type=NodeType.SENTINEL,
        name="Sentinel One",
        description="Performs stress tests and risk analysis",
        output_kind=OutputKind.ALERT,
        default_chain=Chain.WEILCHAIN,
        gas_cost=120,
    ),
    NodeType.LEDGER: AppletDefinition(
        node_type=NodeType.LEDGER,
        name="Djed Ledger",
        description="Tracks on-chain transactions",
        output_kind=OutputKind.TRANSACTION,
        default_chain=Chain.WEILCHAIN,
        gas_cost=60,
    ),
    NodeType.ARBITRAGE: AppletDefinition(
        node_type=NodeType.ARBITRAGE,
        name="Arb-Hunter",
        description="Detects arbitrage opportunities",
        output_kind=OutputKind.DATA,
        default_chain=Chain.WEILCHAIN,
        gas_cost=90,
    ),
    NodeType.BRIDGE: AppletDefinition(
        node_type=NodeType.BRIDGE,
        name="Teleporter",
        description="Cross-chain bridge for asset transfers",
        output_kind=OutputKind.BRIDGE,
        default_chain=Chain.WEILCHAIN,
        gas_cost=250,
    ),
    NodeType.ETH_WALLET: AppletDefinition(
        node_type=NodeType.ETH_WALLET,
        name="ETH Vault",
        description="Ethereum wallet operations and DeFi access",
        output_kind=OutputKind.TRANSACTION,
        default_chain=Chain.ETHEREUM,
        gas_cost=80,
    ),
    NodeType.SOL_WALLET: AppletDefinition(
        node_type=NodeType.SOL_WALLET,
        name="SOL Vault",
        description="Solana wallet operations and DeFi access",
        output_kind=OutputKind.TRANSACTION,
        default_chain=Chain.SOLANA,
        gas_cost=70,
    ),
}


def applet_definition(node_type: NodeType) -> AppletDefinition:
    return APPLET_DEFINITIONS[node_type]
