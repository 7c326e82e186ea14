from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class OptimizeRequest(BaseModel):
    players: list[dict[str, Any]]
    exposure_settings: dict[str, Any] | None = Field(default=None, alias="exposureSettings")
    seed_lineups: list[dict[str, Any]] | None = Field(default=None, alias="seedLineups")
    lineups: int = Field(default=20, ge=1, le=500)
    config: dict[str, Any] | None = None

    model_config = ConfigDict(populate_by_name=True)


class OptimizationResponse(BaseModel):
    lineups: list[dict[str, Any]]
    summary: dict[str, Any]
    evolution: dict[str, Any] | None = None
