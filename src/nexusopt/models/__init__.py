"""Canonical models shared across the engine, API and CLI layers."""

from .exposure import ExposureBounds, ExposureSettings, GlobalExposure, PlayerExposure, TeamExposure
from .lineup import CAPTAIN_ROLE, Lineup, LineupSlot
from .player import POSITIONS, Player, PlayerRecord

__all__ = [
    "CAPTAIN_ROLE",
    "ExposureBounds",
    "ExposureSettings",
    "GlobalExposure",
    "Lineup",
    "LineupSlot",
    "POSITIONS",
    "Player",
    "PlayerExposure",
    "PlayerRecord",
    "TeamExposure",
]
