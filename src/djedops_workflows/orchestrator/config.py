"""Configuration for the workflow engine.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Engine variables use a dedicated `DJEDOPS_` prefix so they do not collide with
the host application's own settings.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from djedops_workflows.orchestrator.workflow.chains import Chain


class EngineSettings(BaseSettings):
    """Settings for the workflow engine.

    Environment variables:
    - LOG_LEVEL                      (optional)
    - DJEDOPS_STATE_PATH             (optional)
    - DJEDOPS_HISTORY_MAX_ENTRIES    (optional)
    - DJEDOPS_NODE_TIMEOUT_SECONDS   (optional)
    - DJEDOPS_ATOMIC_MODE            (optional)
    - DJEDOPS_DEFAULT_CHAIN          (optional)
    - DJEDOPS_BRIDGE_TOKEN           (optional)
    - DJEDOPS_BRIDGE_AMOUNT          (optional)
    - DJEDOPS_DEPLOY_URL             (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `EngineSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    state_path: Path = Field(
        default=Path("agent_state"),
        validation_alias="DJEDOPS_STATE_PATH",
        description="Directory where execution history and workflows are persisted",
    )

    history_max_entries: int = Field(
        default=50,
        ge=1,
        validation_alias="DJEDOPS_HISTORY_MAX_ENTRIES",
        description="Maximum number of execution log entries kept in history",
    )

    node_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        validation_alias="DJEDOPS_NODE_TIMEOUT_SECONDS",
        description="Per-node applet timeout; a hung applet is recorded as failed",
    )

    atomic_mode: bool = Field(
        default=False,
        validation_alias="DJEDOPS_ATOMIC_MODE",
        description="Default atomic mode: abort remaining nodes on the first failure",
    )

    default_chain: Chain = Field(
        default=Chain.WEILCHAIN,
        validation_alias="DJEDOPS_DEFAULT_CHAIN",
        description="Graph-level fallback chain, also used for synthesized bridge nodes",
    )

    bridge_default_token: str = Field(
        default="USDC",
        validation_alias="DJEDOPS_BRIDGE_TOKEN",
        description="Token symbol placed on bridge nodes inserted by auto-repair",
    )
    bridge_default_amount: float = Field(
        default=0.0,
        ge=0,
        validation_alias="DJEDOPS_BRIDGE_AMOUNT",
        description="Amount placed on bridge nodes inserted by auto-repair",
    )

    deploy_base_url: str = Field(
        default="http://localhost:3001",
        validation_alias="DJEDOPS_DEPLOY_URL",
        description="Base URL of the external deployment backend",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("bridge_default_token")
    @classmethod
    def _normalise_token(cls, value: str) -> str:
        token = value.strip().upper()
        if not token:
            raise ValueError("DJEDOPS_BRIDGE_TOKEN must not be empty")
        return token

    @property
    def history_file(self) -> Path:
        """Path where finished execution log entries are persisted."""

        return self.state_path / "executions.json"

    @property
    def workflows_file(self) -> Path:
        """Path where submitted workflows are persisted."""

        return self.state_path / "workflows.json"
