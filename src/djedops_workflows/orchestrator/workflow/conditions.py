"""Condition evaluation against live protocol metrics."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Protocol

from djedops_workflows.orchestrator.workflow.models import Condition, ConditionKind


@dataclass(frozen=True, slots=True)
class MetricsSnapshot:
    reserve_ratio_pct: float
    oracle_price: float

    def to_json(self) -> dict[str, float]:
        return {"reserve_ratio_pct": self.reserve_ratio_pct, "oracle_price": self.oracle_price}


class MetricsFeed(Protocol):
    """Snapshot accessor handed to the engine. The engine never polls on its own."""

    def get_snapshot(self) -> MetricsSnapshot: ...


class ManualMetricsFeed:
    """Metrics feed refreshed explicitly by the caller."""

    def __init__(self, snapshot: MetricsSnapshot) -> None:
        self._lock = threading.Lock()
        self._snapshot = snapshot

    def get_snapshot(self) -> MetricsSnapshot:
        with self._lock:
            return self._snapshot

    def update(
        self, *, reserve_ratio_pct: float | None = None, oracle_price: float | None = None
    ) -> MetricsSnapshot:
        with self._lock:
            current = self._snapshot
            self._snapshot = MetricsSnapshot(
                reserve_ratio_pct=(
                    current.reserve_ratio_pct if reserve_ratio_pct is None else reserve_ratio_pct
                ),
                oracle_price=current.oracle_price if oracle_price is None else oracle_price,
            )
            return self._snapshot


def evaluate_condition(condition: Condition | None, metrics: MetricsSnapshot) -> bool:
    """Return True if a node guarded by `condition` should run.

    Comparisons are strict: a metric exactly equal to the threshold is not
    below it and not above it.
    """

    if condition is None or condition.kind is ConditionKind.ALWAYS:
        return True

    threshold = condition.threshold
    if threshold is None:
        # Rejected at construction; kept for type narrowing.
        raise ValueError(f"Condition {condition.kind.value!r} has no threshold")

    if condition.kind is ConditionKind.METRIC_BELOW:
        return metrics.reserve_ratio_pct < threshold
    if condition.kind is ConditionKind.METRIC_ABOVE:
        return metrics.reserve_ratio_pct > threshold
    if condition.kind is ConditionKind.PRICE_BELOW:
        return metrics.oracle_price < threshold
    if condition.kind is ConditionKind.PRICE_ABOVE:
        return metrics.oracle_price > threshold
    raise ValueError(f"Unsupported condition kind: {condition.kind!r}")
