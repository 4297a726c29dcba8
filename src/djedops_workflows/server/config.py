"""Configuration for the REST server."""

from __future__ import annotations

from pydantic import Field

from djedops_workflows.orchestrator.config import EngineSettings


class ServerSettings(EngineSettings):
    """Engine settings plus REST-only concerns.

    The initial metrics snapshot only seeds the in-process feed; callers are
    expected to refresh it through `PUT /api/metrics`.
    """

    reserve_ratio_pct: float = Field(
        default=500.0,
        ge=0,
        validation_alias="DJEDOPS_RESERVE_RATIO_PCT",
        description="Initial reserve ratio (percent) for the metrics feed.",
    )
    oracle_price: float = Field(
        default=1.0,
        ge=0,
        validation_alias="DJEDOPS_ORACLE_PRICE",
        description="Initial oracle price for the metrics feed.",
    )

    # Dev-friendly CORS (Vite). Override via DJEDOPS_CORS_ORIGINS=...
    cors_origins: str = Field(
        default="http://localhost:5173,http://127.0.0.1:5173",
        validation_alias="DJEDOPS_CORS_ORIGINS",
        description="Comma-separated list of allowed CORS origins.",
    )

    def parsed_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
