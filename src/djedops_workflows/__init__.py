"""DjedOps workflow engine.

Composes applet steps (monitors, sentinels, arbitrage scanners, ledger readers,
cross-chain bridges) into a directed graph and executes it as one workflow:
- graph model and validation
- chain compatibility checks with bridge auto-repair
- a conditional, single-flight execution engine
- a persisted execution history
"""

__version__ = "0.1.0"

from djedops_workflows.orchestrator.config import EngineSettings

__all__ = ["__version__", "EngineSettings"]
