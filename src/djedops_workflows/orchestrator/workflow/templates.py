"""Built-in workflow templates."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum

from djedops_workflows.orchestrator.workflow.chains import Chain
from djedops_workflows.orchestrator.workflow.models import (
    Condition,
    Edge,
    Node,
    Position,
    Workflow,
)
from djedops_workflows.orchestrator.workflow.node_types import NodeType


class TemplateCategory(str, Enum):
    MONITORING = "monitoring"
    TRADING = "trading"
    SECURITY = "security"
    ANALYTICS = "analytics"


class TemplateDifficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


@dataclass(frozen=True, slots=True)
class WorkflowTemplate:
    id: str
    name: str
    description: str
    category: TemplateCategory
    difficulty: TemplateDifficulty
    workflow_name: str
    workflow_description: str
    nodes: tuple[Node, ...]
    edges: tuple[tuple[str, str], ...]

    def instantiate(self, *, name: str | None = None) -> Workflow:
        """Return a fresh workflow built from this template, with a new id."""

        return Workflow(
            id=f"workflow_{uuid.uuid4().hex[:12]}",
            name=name or self.workflow_name,
            description=self.workflow_description,
            nodes=[n.model_copy(deep=True) for n in self.nodes],
            edges=[Edge(from_node=a, to_node=b) for a, b in self.edges],
        )

    def estimated_cost(self) -> int:
        return self.instantiate().estimated_cost()

    def to_json(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "difficulty": self.difficulty.value,
            "estimated_cost": self.estimated_cost(),
            "node_count": len(self.nodes),
        }


def _node(
    node_id: str,
    node_type: NodeType,
    x: float,
    y: float,
    condition: Condition | None = None,
    chain: Chain | None = None,
) -> Node:
    return Node(
        id=node_id,
        type=node_type,
        position=Position(x=x, y=y),
        condition=condition or Condition.always(),
        chain=chain,
    )


TEMPLATES: tuple[WorkflowTemplate, ...] = (
    WorkflowTemplate(
        id="monitor-alert",
        name="Monitor & Alert",
        description=(
            "Continuously monitor Djed protocol health and trigger alerts when the "
            "reserve ratio drops below the safe threshold"
        ),
        category=TemplateCategory.MONITORING,
        difficulty=TemplateDifficulty.BEGINNER,
        workflow_name="Monitor & Alert",
        workflow_description="Basic health monitoring workflow",
        nodes=(
            _node("node_monitor", NodeType.MONITOR, 100, 150),
            _node("node_sentinel", NodeType.SENTINEL, 450, 150, Condition.metric_below(400)),
        ),
        edges=(("node_monitor", "node_sentinel"),),
    ),
    WorkflowTemplate(
        id="arbitrage-hunter",
        name="Arbitrage Opportunity Scanner",
        description=(
            "Detect arbitrage opportunities, verify with transaction history and "
            "check protocol health"
        ),
        category=TemplateCategory.TRADING,
        difficulty=TemplateDifficulty.ADVANCED,
        workflow_name="Arbitrage Hunter Pro",
        workflow_description="Advanced arbitrage detection workflow",
        nodes=(
            _node("node_arb", NodeType.ARBITRAGE, 100, 100, Condition.price_below(0.98)),
            _node("node_ledger", NodeType.LEDGER, 450, 100),
            _node("node_monitor", NodeType.MONITOR, 800, 100),
        ),
        edges=(("node_arb", "node_ledger"), ("node_ledger", "node_monitor")),
    ),
    WorkflowTemplate(
        id="risk-analysis",
        name="Comprehensive Risk Analysis",
        description=(
            "Run stress tests, simulate scenarios and monitor protocol stability in a "
            "complete risk assessment pipeline"
        ),
        category=TemplateCategory.SECURITY,
        difficulty=TemplateDifficulty.ADVANCED,
        workflow_name="Risk Analysis Pipeline",
        workflow_description="Full risk assessment workflow",
        nodes=(
            _node("node_sentinel", NodeType.SENTINEL, 100, 150),
            _node("node_sim", NodeType.SIMULATOR, 450, 150),
            _node("node_monitor", NodeType.MONITOR, 800, 150, Condition.metric_below(450)),
        ),
        edges=(("node_sentinel", "node_sim"), ("node_sim", "node_monitor")),
    ),
    WorkflowTemplate(
        id="transaction-tracker",
        name="Live Transaction Tracker",
        description="Monitor on-chain transactions and analyse transaction patterns",
        category=TemplateCategory.ANALYTICS,
        difficulty=TemplateDifficulty.BEGINNER,
        workflow_name="Transaction Tracker",
        workflow_description="Real-time transaction monitoring",
        nodes=(
            _node("node_ledger", NodeType.LEDGER, 100, 150),
            _node("node_monitor", NodeType.MONITOR, 450, 150),
        ),
        edges=(("node_ledger", "node_monitor"),),
    ),
    WorkflowTemplate(
        id="full-stack",
        name="Full Stack Monitor",
        description="Complete monitoring solution using all five protocol applets",
        category=TemplateCategory.MONITORING,
        difficulty=TemplateDifficulty.ADVANCED,
        workflow_name="Full Stack Monitor",
        workflow_description="Complete ecosystem monitoring",
        nodes=(
            _node("node_monitor", NodeType.MONITOR, 100, 200),
            _node("node_sentinel", NodeType.SENTINEL, 450, 100, Condition.metric_below(450)),
            _node("node_ledger", NodeType.LEDGER, 450, 300),
            _node("node_sim", NodeType.SIMULATOR, 800, 100),
            _node("node_arb", NodeType.ARBITRAGE, 800, 300, Condition.price_below(0.99)),
        ),
        edges=(
            ("node_monitor", "node_sentinel"),
            ("node_monitor", "node_ledger"),
            ("node_sentinel", "node_sim"),
            ("node_ledger", "node_arb"),
        ),
    ),
    WorkflowTemplate(
        id="cross-chain-vault",
        name="Cross-Chain Vault Watch",
        description=(
            "Read an Ethereum vault and feed it into WeilChain monitoring; needs a "
            "bridge before it can run"
        ),
        category=TemplateCategory.MONITORING,
        difficulty=TemplateDifficulty.INTERMEDIATE,
        workflow_name="Cross-Chain Vault Watch",
        workflow_description="Ethereum wallet feeding protocol monitoring",
        nodes=(
            _node("node_eth", NodeType.ETH_WALLET, 100, 150, chain=Chain.ETHEREUM),
            _node("node_monitor", NodeType.MONITOR, 450, 150),
        ),
        edges=(("node_eth", "node_monitor"),),
    ),
)

_BY_ID = {t.id: t for t in TEMPLATES}


def get_template(template_id: str) -> WorkflowTemplate | None:
    return _BY_ID.get(template_id)


def templates_by_category(category: TemplateCategory) -> list[WorkflowTemplate]:
    return [t for t in TEMPLATES if t.category is category]


def templates_by_difficulty(difficulty: TemplateDifficulty) -> list[WorkflowTemplate]:
    return [t for t in TEMPLATES if t.difficulty is difficulty]
