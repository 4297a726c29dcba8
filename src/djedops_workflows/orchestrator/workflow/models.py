"""Workflow graph model.

A workflow is a directed graph of applet nodes. Edges are the source of truth
for connectivity; each node's `outputs` list mirrors its outgoing edges and is
kept in sync by the mutation API below.

Every structural or chain-affecting mutation invalidates the memoised
topological order and re-scans all edges for chain mismatches. While a run is
in flight the graph is read-only and mutations raise `GraphLockedError`.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, PrivateAttr, model_validator

from djedops_workflows.orchestrator.workflow.chains import Chain
from djedops_workflows.orchestrator.workflow.errors import (
    GraphErrorReason,
    GraphLockedError,
    InvalidGraphError,
)
from djedops_workflows.orchestrator.workflow.node_types import NodeType, applet_definition

if TYPE_CHECKING:
    from djedops_workflows.orchestrator.workflow.compatibility import ChainCheck


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class Position(BaseModel):
    """2D layout position. Owned by the presentation layer; opaque to the engine."""

    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0

    def midpoint(self, other: Position) -> Position:
        return Position(x=(self.x + other.x) / 2, y=(self.y + other.y) / 2)


class ConditionKind(str, Enum):
    ALWAYS = "always"
    METRIC_BELOW = "metric_below"
    METRIC_ABOVE = "metric_above"
    PRICE_BELOW = "price_below"
    PRICE_ABOVE = "price_above"


# Older payloads name the reserve-ratio conditions after the DSI metric.
_LEGACY_CONDITION_KINDS = {
    "dsi_below": ConditionKind.METRIC_BELOW.value,
    "dsi_above": ConditionKind.METRIC_ABOVE.value,
}


class Condition(BaseModel):
    """Predicate gating whether a node runs.

    Accepts both `{"kind": ..., "threshold": ...}` and the builder's
    `{"type": ..., "value": ...}` shape.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: ConditionKind = Field(
        default=ConditionKind.ALWAYS,
        validation_alias=AliasChoices("kind", "type"),
    )
    threshold: float | None = Field(
        default=None,
        validation_alias=AliasChoices("threshold", "value"),
    )

    @model_validator(mode="before")
    @classmethod
    def _normalise_legacy_kind(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        out = dict(data)
        for key in ("kind", "type"):
            raw = out.get(key)
            if isinstance(raw, str) and raw in _LEGACY_CONDITION_KINDS:
                out[key] = _LEGACY_CONDITION_KINDS[raw]
        return out

    @model_validator(mode="after")
    def _require_threshold(self) -> Condition:
        if self.kind is not ConditionKind.ALWAYS and self.threshold is None:
            raise ValueError(f"Condition {self.kind.value!r} requires a numeric threshold")
        return self

    @classmethod
    def always(cls) -> Condition:
        return cls(kind=ConditionKind.ALWAYS)

    @classmethod
    def metric_below(cls, threshold: float) -> Condition:
        return cls(kind=ConditionKind.METRIC_BELOW, threshold=threshold)

    @classmethod
    def metric_above(cls, threshold: float) -> Condition:
        return cls(kind=ConditionKind.METRIC_ABOVE, threshold=threshold)

    @classmethod
    def price_below(cls, threshold: float) -> Condition:
        return cls(kind=ConditionKind.PRICE_BELOW, threshold=threshold)

    @classmethod
    def price_above(cls, threshold: float) -> Condition:
        return cls(kind=ConditionKind.PRICE_ABOVE, threshold=threshold)


class BridgeStatus(str, Enum):
    PENDING = "pending"
    BRIDGING = "bridging"
    COMPLETED = "completed"
    FAILED = "failed"


class BridgeSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_chain: Chain
    destination_chain: Chain
    token: str
    amount: float = Field(default=0.0, ge=0)
    estimated_time_seconds: int = Field(default=300, ge=0)
    fee_percent: float = Field(default=2.5, ge=0)
    status: BridgeStatus = BridgeStatus.PENDING


class Node(BaseModel):
    id: str = Field(min_length=1)
    type: NodeType
    name: str = ""
    position: Position = Field(default_factory=Position)
    outputs: list[str] = Field(default_factory=list)
    condition: Condition | None = None
    chain: Chain | None = Field(default=None, description="Explicit chain override")
    bridge: BridgeSpec | None = Field(
        default=None,
        validation_alias=AliasChoices("bridge", "bridge_config", "bridgeConfig"),
    )
    config: dict[str, object] = Field(
        default_factory=dict, description="Static applet configuration"
    )

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def _check_bridge_and_name(self) -> Node:
        if self.bridge is not None and self.type is not NodeType.BRIDGE:
            raise ValueError(f"Only {NodeType.BRIDGE.value} nodes may carry a bridge spec")
        if not self.name.strip():
            self.name = applet_definition(self.type).name
        return self


class Edge(BaseModel):
    """Ordered connection between two nodes of the same workflow."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_node: str = Field(validation_alias=AliasChoices("from_node", "from", "source"))
    to_node: str = Field(validation_alias=AliasChoices("to_node", "to", "target"))

    @property
    def key(self) -> tuple[str, str]:
        return (self.from_node, self.to_node)

    def to_json(self) -> dict[str, str]:
        return {"from": self.from_node, "to": self.to_node}


class Workflow(BaseModel):
    """A workflow graph plus its execution bookkeeping."""

    id: str = Field(min_length=1)
    name: str
    description: str = ""
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)
    default_chain: Chain = Chain.WEILCHAIN

    created_at: datetime = Field(default_factory=_utc_now)
    last_executed_at: datetime | None = None
    execution_count: int = Field(default=0, ge=0)

    _topological_order: list[str] | None = PrivateAttr(default=None)
    _mismatches: list[ChainCheck] = PrivateAttr(default_factory=list)
    _active_run_id: str | None = PrivateAttr(default=None)
    _run_guard: threading.Lock = PrivateAttr(default_factory=threading.Lock)

    def model_post_init(self, context: Any, /) -> None:
        self._sync_outputs()
        self._structure_changed()

    # ------------------------------------------------------------------
    # Queries

    def find_node(self, node_id: str) -> Node | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def node(self, node_id: str) -> Node:
        found = self.find_node(node_id)
        if found is None:
            raise InvalidGraphError(
                f"Node {node_id!r} is not part of workflow {self.id!r}",
                reason=GraphErrorReason.UNKNOWN_NODE,
                node_id=node_id,
            )
        return found

    def node_ids(self) -> list[str]:
        return [n.id for n in self.nodes]

    def find_edge(self, from_node: str, to_node: str) -> Edge | None:
        for edge in self.edges:
            if edge.key == (from_node, to_node):
                return edge
        return None

    def outgoing(self, node_id: str) -> list[Edge]:
        return [e for e in self.edges if e.from_node == node_id]

    def incoming(self, node_id: str) -> list[Edge]:
        return [e for e in self.edges if e.to_node == node_id]

    def iter_nodes_in_order(self) -> Iterator[Node]:
        for node_id in self.topological_order():
            yield self.node(node_id)

    def topological_order(self) -> list[str]:
        """Return node ids in dependency order, memoised until the next mutation."""

        if self._topological_order is None:
            from djedops_workflows.orchestrator.workflow.graph import topological_order

            self._topological_order = topological_order(self)
        return list(self._topological_order)

    @property
    def mismatches(self) -> list[ChainCheck]:
        """Edges that currently cross a chain boundary without a bridge."""

        return list(self._mismatches)

    def has_cross_chain(self) -> bool:
        return any(n.type is NodeType.BRIDGE for n in self.nodes)

    def estimated_cost(self) -> int:
        return sum(applet_definition(n.type).gas_cost for n in self.nodes)

    # ------------------------------------------------------------------
    # Run lock

    @property
    def active_run_id(self) -> str | None:
        return self._active_run_id

    def lock_for_run(self, run_id: str) -> bool:
        """Mark the graph read-only for a run. Returns False if another run holds it."""

        with self._run_guard:
            if self._active_run_id is not None:
                return False
            self._active_run_id = run_id
            return True

    def release_run(self, run_id: str) -> None:
        with self._run_guard:
            if self._active_run_id == run_id:
                self._active_run_id = None

    def record_execution(self, at: datetime) -> None:
        """Bump execution bookkeeping after a run finished."""

        self.last_executed_at = at
        self.execution_count += 1

    # ------------------------------------------------------------------
    # Mutation API

    def add_node(self, node: Node) -> Node:
        self._ensure_editable()
        if self.find_node(node.id) is not None:
            raise InvalidGraphError(
                f"Duplicate node id {node.id!r}",
                reason=GraphErrorReason.DUPLICATE_NODE,
                node_id=node.id,
            )
        added = node.model_copy(update={"outputs": []})
        self.nodes.append(added)
        self._structure_changed()
        return added

    def remove_node(self, node_id: str) -> None:
        self._ensure_editable()
        self.node(node_id)
        self.nodes = [n for n in self.nodes if n.id != node_id]
        self.edges = [e for e in self.edges if node_id not in e.key]
        self._sync_outputs()
        self._structure_changed()

    def add_edge(self, from_node: str, to_node: str) -> Edge:
        self._ensure_editable()
        self.node(from_node)
        self.node(to_node)
        if from_node == to_node:
            raise InvalidGraphError(
                f"Self-loop on node {from_node!r} is not allowed",
                reason=GraphErrorReason.SELF_LOOP,
                node_id=from_node,
            )
        if self.find_edge(from_node, to_node) is not None:
            raise InvalidGraphError(
                f"Connection {from_node!r} -> {to_node!r} already exists",
                reason=GraphErrorReason.DUPLICATE_EDGE,
                node_id=from_node,
            )
        edge = Edge(from_node=from_node, to_node=to_node)
        self.edges.append(edge)
        self._sync_outputs()
        self._structure_changed()
        return edge

    def remove_edge(self, from_node: str, to_node: str) -> None:
        self._ensure_editable()
        if self.find_edge(from_node, to_node) is None:
            raise InvalidGraphError(
                f"Connection {from_node!r} -> {to_node!r} is not part of workflow {self.id!r}",
                reason=GraphErrorReason.UNKNOWN_EDGE,
                node_id=from_node,
            )
        self.edges = [e for e in self.edges if e.key != (from_node, to_node)]
        self._sync_outputs()
        self._structure_changed()

    def set_condition(self, node_id: str, condition: Condition | None) -> None:
        self._ensure_editable()
        self._replace_node(node_id, condition=condition)

    def set_chain_override(self, node_id: str, chain: Chain | None) -> None:
        self._ensure_editable()
        self._replace_node(node_id, chain=chain)
        # Chain changes can flip edges other than this node's own.
        self._structure_changed()

    def move_node(self, node_id: str, dx: float, dy: float) -> None:
        # Layout only: allowed during a run, no recomputation needed.
        current = self.node(node_id)
        moved = Position(x=current.position.x + dx, y=current.position.y + dy)
        self._replace_node(node_id, position=moved)

    # ------------------------------------------------------------------
    # Serialisation

    def to_json(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "default_chain": self.default_chain.value,
            "nodes": [n.model_dump(mode="json") for n in self.nodes],
            "edges": [e.to_json() for e in self.edges],
            "created_at": self.created_at.isoformat(),
            "last_executed_at": (
                self.last_executed_at.isoformat() if self.last_executed_at else None
            ),
            "execution_count": self.execution_count,
        }

    @staticmethod
    def from_json(obj: dict[str, object]) -> Workflow:
        return Workflow.model_validate(obj)

    # ------------------------------------------------------------------
    # Internals

    def _ensure_editable(self) -> None:
        if self._active_run_id is not None:
            raise GraphLockedError(self.id)

    def _replace_node(self, node_id: str, **updates: object) -> None:
        self.node(node_id)
        self.nodes = [n.model_copy(update=updates) if n.id == node_id else n for n in self.nodes]

    def _sync_outputs(self) -> None:
        outputs: dict[str, list[str]] = {n.id: [] for n in self.nodes}
        for edge in self.edges:
            if edge.from_node in outputs:
                outputs[edge.from_node].append(edge.to_node)
        self.nodes = [
            n if n.outputs == outputs[n.id] else n.model_copy(update={"outputs": outputs[n.id]})
            for n in self.nodes
        ]

    def _structure_changed(self) -> None:
        from djedops_workflows.orchestrator.workflow.compatibility import (
            recompute_compatibility,
        )

        self._topological_order = None
        recompute_compatibility(self)
