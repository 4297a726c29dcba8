"""Wallet adapter seam and the deployment flow built on it.

Whatever shape a concrete wallet returns, probing it for an address or a tx
hash is the adapter's job. The core only sees `get_address` and `submit`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from djedops_workflows.orchestrator.deploy.sink import (
    DeploymentReceipt,
    DeploySink,
    GasSpeed,
    MevStrategy,
    build_deployment_request,
)
from djedops_workflows.orchestrator.workflow.chains import Chain
from djedops_workflows.orchestrator.workflow.errors import DeploymentError
from djedops_workflows.orchestrator.workflow.models import Workflow
from djedops_workflows.orchestrator.workflow.node_types import NodeType

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WalletTransaction:
    kind: str
    chain: Chain
    payload: dict[str, object] = field(default_factory=dict)


class WalletAdapter(Protocol):
    def get_address(self) -> str | None: ...

    def submit(self, tx: WalletTransaction) -> DeploymentReceipt: ...


@dataclass(frozen=True, slots=True)
class DeploymentOutcome:
    receipt: DeploymentReceipt
    bridge_receipts: list[DeploymentReceipt]


def bridge_transactions(workflow: Workflow) -> list[WalletTransaction]:
    txs: list[WalletTransaction] = []
    for node in workflow.nodes:
        if node.type is not NodeType.BRIDGE or node.bridge is None:
            continue
        spec = node.bridge
        txs.append(
            WalletTransaction(
                kind="bridge",
                chain=spec.source_chain,
                payload={
                    "node_id": node.id,
                    "source_chain": spec.source_chain.value,
                    "destination_chain": spec.destination_chain.value,
                    "token": spec.token,
                    "amount": spec.amount,
                },
            )
        )
    return txs


def deploy_workflow(
    workflow: Workflow,
    *,
    wallet: WalletAdapter,
    sink: DeploySink,
    atomic_mode: bool = False,
    gas_speed: GasSpeed = GasSpeed.STANDARD,
    mev_strategy: MevStrategy = MevStrategy.NONE,
    selected_route: str | None = None,
) -> DeploymentOutcome:
    """Deploy a finalised workflow owned by the wallet's address.

    Bridge transfers go through the wallet first; the workflow itself is then
    handed to the sink. A wallet without an address fails before anything is
    submitted.
    """

    owner = wallet.get_address()
    if not owner:
        raise DeploymentError("Wallet is not connected", code="NOT_CONNECTED")

    request = build_deployment_request(
        workflow,
        owner=owner,
        atomic_mode=atomic_mode,
        gas_speed=gas_speed,
        mev_strategy=mev_strategy,
        selected_route=selected_route,
    )

    bridge_receipts = [wallet.submit(tx) for tx in bridge_transactions(workflow)]
    if bridge_receipts:
        logger.info(
            "Bridge transfers submitted",
            extra={"workflow_id": workflow.id, "count": len(bridge_receipts)},
        )

    receipt = sink.submit(request)
    return DeploymentOutcome(receipt=receipt, bridge_receipts=bridge_receipts)
