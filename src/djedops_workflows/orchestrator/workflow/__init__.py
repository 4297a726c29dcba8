"""Workflow domain concepts.

This package introduces first-class types for:
- Chains and applet node kinds (static metadata)
- The workflow graph (nodes, edges, conditions, bridge specs)
- Chain compatibility checks and bridge auto-repair
- The execution engine, its run state machine and the persisted history

Control flow is deterministic: nodes run sequentially in topological order,
and every run ends in exactly one finalized execution log entry.
"""

__all__: list[str] = []
