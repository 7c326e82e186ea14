"""Exposure settings as supplied by callers (percent values)."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator
from pydantic.config import ConfigDict


STACK_SIZES = (2, 3, 4)


class ExposureBounds(BaseModel):
    min_exposure: float = Field(default=0.0, ge=0.0, le=100.0, validation_alias=AliasChoices("min_exposure", "min"))
    max_exposure: float = Field(default=100.0, ge=0.0, le=100.0, validation_alias=AliasChoices("max_exposure", "max"))
    target_exposure: Optional[float] = Field(
        default=None, ge=0.0, le=100.0, validation_alias=AliasChoices("target_exposure", "target")
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    @model_validator(mode="after")
    def _check_order(self) -> "ExposureBounds":
        if self.min_exposure > self.max_exposure:
            raise ValueError(f"min exposure {self.min_exposure} exceeds max exposure {self.max_exposure}")
        return self


class TeamExposure(ExposureBounds):
    team: str = Field(..., min_length=1)
    stack_size: Optional[int] = Field(default=None, validation_alias=AliasChoices("stack_size", "stackSize"))

    @field_validator("stack_size")
    @classmethod
    def _check_stack_size(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value not in STACK_SIZES:
            raise ValueError(f"stack size must be one of {STACK_SIZES}, got {value}")
        return value


class PlayerExposure(ExposureBounds):
    player_id: str = Field(..., min_length=1, validation_alias=AliasChoices("player_id", "id"))

    @field_validator("player_id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return value if value is None else str(value)


class GlobalExposure(BaseModel):
    global_min_exposure: float = Field(
        default=0.0, ge=0.0, le=100.0, validation_alias=AliasChoices("global_min_exposure", "globalMinExposure")
    )
    global_max_exposure: float = Field(
        default=100.0, ge=0.0, le=100.0, validation_alias=AliasChoices("global_max_exposure", "globalMaxExposure")
    )
    apply_to_new_lineups: bool = Field(
        default=True, validation_alias=AliasChoices("apply_to_new_lineups", "applyToNewLineups")
    )
    prioritize_projections: bool = Field(
        default=True, validation_alias=AliasChoices("prioritize_projections", "prioritizeProjections")
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class ExposureSettings(BaseModel):
    """Global, team, stack, player and position exposure rules."""

    global_settings: GlobalExposure = Field(
        default_factory=GlobalExposure, validation_alias=AliasChoices("global_settings", "global")
    )
    teams: List[TeamExposure] = Field(default_factory=list)
    players: List[PlayerExposure] = Field(default_factory=list)
    positions: Dict[str, ExposureBounds] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")
