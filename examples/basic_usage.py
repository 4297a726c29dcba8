#!/usr/bin/env python3
"""Programmatic workflow run example.

This demonstrates using the engine components directly:

* load settings from `.env`
* instantiate a template and bridge any cross-chain connections
* execute it once and persist the log to `agent_state/executions.json`

Protocol metrics are passed as arguments (not fetched from a live feed).
"""

from __future__ import annotations

import argparse
from typing import Sequence

from djedops_workflows.orchestrator.config import EngineSettings
from djedops_workflows.orchestrator.logging import configure_logging
from djedops_workflows.orchestrator.workflow.applets import default_registry
from djedops_workflows.orchestrator.workflow.compatibility import repair_all
from djedops_workflows.orchestrator.workflow.conditions import ManualMetricsFeed, MetricsSnapshot
from djedops_workflows.orchestrator.workflow.engine import ExecutionContext, ExecutionEngine
from djedops_workflows.orchestrator.workflow.history import ExecutionHistoryStore
from djedops_workflows.orchestrator.workflow.templates import TEMPLATES, get_template


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a workflow template once (example).")
    parser.add_argument(
        "--template",
        default="monitor-alert",
        choices=[t.id for t in TEMPLATES],
        help="Template to instantiate",
    )
    parser.add_argument("--reserve-ratio", type=float, default=567.89, help="Reserve ratio (%%)")
    parser.add_argument("--oracle-price", type=float, default=1.0, help="Oracle price")
    parser.add_argument("--atomic", action="store_true", help="Abort on the first failure")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = EngineSettings()
    configure_logging(settings.log_level)

    template = get_template(args.template)
    assert template is not None
    workflow = repair_all(
        template.instantiate(),
        token=settings.bridge_default_token,
        amount=settings.bridge_default_amount,
    )

    engine = ExecutionEngine(
        registry=default_registry(),
        history=ExecutionHistoryStore(
            settings.history_file, max_entries=settings.history_max_entries
        ),
    )
    metrics = ManualMetricsFeed(
        MetricsSnapshot(reserve_ratio_pct=args.reserve_ratio, oracle_price=args.oracle_price)
    )
    entry = engine.execute(
        workflow, ExecutionContext.from_settings(settings, metrics, atomic_mode=args.atomic)
    )

    print(f"Run {entry.id}: {entry.status.value} in {entry.total_duration_ms}ms")
    for record in entry.node_executions:
        detail = record.error or (record.skip_reason.value if record.skip_reason else "")
        print(f"  {record.node_name:<24} {record.status.value:<8} {detail}")
    print(f"Persisted to: {settings.history_file}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
