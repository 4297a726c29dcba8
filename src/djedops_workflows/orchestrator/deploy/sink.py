from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol

import requests
from pydantic import BaseModel, Field

from djedops_workflows.orchestrator.workflow.compatibility import recompute_compatibility
from djedops_workflows.orchestrator.workflow.errors import ChainMismatchError, DeploymentError
from djedops_workflows.orchestrator.workflow.graph import validate
from djedops_workflows.orchestrator.workflow.models import Workflow

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class GasSpeed(str, Enum):
    SLOW = "slow"
    STANDARD = "standard"
    FAST = "fast"


class MevStrategy(str, Enum):
    NONE = "none"
    PRIVATE = "private"
    FLASHBOTS = "flashbots"


class DeploymentGraph(BaseModel):
    nodes: list[dict[str, Any]]
    edges: list[dict[str, str]]
    node_count: int
    edge_count: int
    has_cross_chain: bool


class DeploymentRequest(BaseModel):
    workflow_id: str
    name: str
    owner: str
    graph: DeploymentGraph
    atomic_mode: bool = False
    gas_speed: GasSpeed = GasSpeed.STANDARD
    mev_strategy: MevStrategy = MevStrategy.NONE
    selected_route: str | None = None
    deployed_at: datetime = Field(default_factory=_utc_now)


class DeploymentReceipt(BaseModel):
    tx_hash: str
    status: str
    timestamp: datetime
    explorer_url: str | None = None


class DeploySink(Protocol):
    def submit(self, request: DeploymentRequest) -> DeploymentReceipt: ...


def build_deployment_request(
    workflow: Workflow,
    *,
    owner: str,
    atomic_mode: bool = False,
    gas_speed: GasSpeed = GasSpeed.STANDARD,
    mev_strategy: MevStrategy = MevStrategy.NONE,
    selected_route: str | None = None,
) -> DeploymentRequest:
    """Serialise a finalised workflow for the deploy sink.

    Applies the same gate as execution: the graph must validate and carry no
    unresolved chain mismatches.
    """

    validate(workflow)
    mismatches = recompute_compatibility(workflow)
    if mismatches:
        raise ChainMismatchError(mismatches)

    graph = DeploymentGraph(
        nodes=[n.model_dump(mode="json") for n in workflow.nodes],
        edges=[e.to_json() for e in workflow.edges],
        node_count=len(workflow.nodes),
        edge_count=len(workflow.edges),
        has_cross_chain=workflow.has_cross_chain(),
    )
    return DeploymentRequest(
        workflow_id=workflow.id,
        name=workflow.name,
        owner=owner,
        graph=graph,
        atomic_mode=atomic_mode,
        gas_speed=gas_speed,
        mev_strategy=mev_strategy,
        selected_route=selected_route,
    )


# Substring -> error code, checked in order against lower-cased messages.
_ERROR_CODES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("rejected", "denied", "cancel"), "USER_REJECTED"),
    (("insufficient", "balance"), "INSUFFICIENT_FUNDS"),
    (("not connected",), "NOT_CONNECTED"),
    (("network", "chain"), "WRONG_NETWORK"),
    (("contract", "address"), "CONTRACT_ERROR"),
)


def classify_deployment_error(message: str) -> str:
    lowered = message.lower()
    for needles, code in _ERROR_CODES:
        if any(n in lowered for n in needles):
            return code
    return "UNKNOWN_ERROR"


class HttpDeploySink:
    """Posts deployment requests to `<base_url>/api/deploy`."""

    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float = 30,
        session: requests.Session | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("Deploy base URL is required")
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._session = session or requests.Session()
        self._session.headers.update(
            {"Accept": "application/json", "User-Agent": "djedops-workflows"}
        )

    def submit(self, request: DeploymentRequest) -> DeploymentReceipt:
        url = f"{self._base_url}/api/deploy"
        try:
            resp = self._session.post(
                url, json=request.model_dump(mode="json"), timeout=self._timeout
            )
            resp.raise_for_status()
            data = resp.json()
        except requests.RequestException as e:
            logger.warning(
                "Deployment request failed",
                extra={"workflow_id": request.workflow_id, "url": url},
            )
            raise DeploymentError(
                f"Deployment request failed: {e}", code=classify_deployment_error(str(e))
            ) from e
        except ValueError as e:
            raise DeploymentError(f"Deployment response is not JSON: {e}") from e

        if not isinstance(data, dict):
            raise DeploymentError("Unexpected deployment response: expected an object")
        if data.get("success") is False:
            message = str(data.get("error") or "Deployment rejected")
            code = data.get("code")
            raise DeploymentError(
                message, code=code if isinstance(code, str) else classify_deployment_error(message)
            )

        tx_hash = data.get("tx_hash") or data.get("txHash")
        if not isinstance(tx_hash, str) or not tx_hash.strip():
            raise DeploymentError("Unexpected deployment response: missing tx hash")

        explorer_url = data.get("explorer_url") or data.get("explorerUrl")
        receipt = DeploymentReceipt(
            tx_hash=tx_hash,
            status=str(data.get("status") or "submitted"),
            timestamp=data.get("timestamp") or _utc_now(),
            explorer_url=explorer_url if isinstance(explorer_url, str) else None,
        )
        logger.info(
            "Workflow deployed",
            extra={"workflow_id": request.workflow_id, "tx_hash": receipt.tx_hash},
        )
        return receipt

    def close(self) -> None:
        self._session.close()
