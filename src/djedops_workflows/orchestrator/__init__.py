"""Workflow orchestration core.

Provides:
- Settings loaded from .env
- Structured logging
- The workflow graph, compatibility checks and execution engine
- A deploy sink boundary for finalized graphs
"""
