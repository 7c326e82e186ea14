"""Canonical player models shared across ingestion and optimizer layers."""

from __future__ import annotations

from typing import Any, FrozenSet, Optional, Union

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic.config import ConfigDict


POSITIONS = ("TOP", "JNG", "MID", "ADC", "SUP", "TEAM")

RawNumber = Union[int, float, str, None]


class PlayerRecord(BaseModel):
    """Player payload as supplied by callers; numeric fields may be strings."""

    player_id: str = Field(..., min_length=1, validation_alias=AliasChoices("player_id", "id"))
    name: str = ""
    position: str
    team: str = Field(..., min_length=1)
    salary: RawNumber = None
    projected_points: RawNumber = Field(
        default=None,
        validation_alias=AliasChoices("projected_points", "projectedPoints", "projection"),
    )
    ownership: RawNumber = None
    opponent: Optional[str] = Field(default=None, validation_alias=AliasChoices("opponent", "opp", "matchup"))

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    @field_validator("player_id", "name", "team", "position", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if value is None:
            return value
        return str(value).strip()

    @field_validator("opponent", mode="before")
    @classmethod
    def _coerce_opponent(cls, value: Any) -> Any:
        if value is None:
            return None
        text = str(value).strip()
        return text or None


class Player(BaseModel):
    """Normalized player used by the optimizer; ownership is a fraction."""

    player_id: str = Field(..., min_length=1)
    name: str
    position: str
    team: str
    salary: int = Field(..., ge=0)
    projection: float = Field(..., ge=0.0)
    ownership: float = Field(default=0.0, ge=0.0, le=1.0)
    opponent: Optional[str] = None
    std_dev: float = Field(..., gt=0.0)
    min_exposure: float = Field(default=0.0, ge=0.0, le=1.0)
    max_exposure: float = Field(default=1.0, ge=0.0, le=1.0)
    target_exposure: float = Field(default=0.0, ge=0.0, le=1.0)

    model_config = ConfigDict(frozen=True)

    @property
    def ownership_pct(self) -> float:
        return self.ownership * 100.0

    @property
    def game(self) -> Optional[FrozenSet[str]]:
        if not self.opponent:
            return None
        return frozenset((self.team, self.opponent))
