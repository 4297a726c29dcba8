"""FastAPI server adapter for djedops-workflows.

Design intent:
- Keep workflow logic in `djedops_workflows.orchestrator.*`
- Keep server-specific concerns (routing, CORS, run tracking, error mapping) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from djedops_workflows.server.app import create_app
