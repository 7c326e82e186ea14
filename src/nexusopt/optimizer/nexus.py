"""NexusScore: projection scaled by ownership leverage plus stack and captain bonuses."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from nexusopt.config import RosterRules
from nexusopt.models import Lineup
from nexusopt.optimizer.pool import PlayerPool


POSITION_IMPACT = {
    "MID": 2.0,
    "ADC": 1.8,
    "JNG": 1.5,
    "TOP": 1.2,
    "SUP": 1.0,
    "TEAM": 0.8,
}
DEFAULT_IMPACT = 1.0

LEVERAGE_MIN = 0.6
LEVERAGE_MAX = 1.5
STACK_BONUS_PER_PLAYER = 3.0
POSITION_BONUS_WEIGHT = 2.0
SCORE_DIVISOR = 7.0

SCORE_BANDS = (
    (160.0, "elite"),
    (140.0, "excellent"),
    (120.0, "good"),
    (100.0, "average"),
)


@dataclass(frozen=True)
class NexusComponents:
    base_projection: float
    avg_ownership: float
    leverage_factor: float
    stack_bonus: float
    position_bonus: float


@dataclass(frozen=True)
class NexusResult:
    score: float
    components: NexusComponents


def captain_impact(position: str) -> float:
    return POSITION_IMPACT.get(position, DEFAULT_IMPACT)


def leverage_factor(avg_ownership_pct: float) -> float:
    ownership = max(0.1, avg_ownership_pct / 100.0)
    return min(LEVERAGE_MAX, max(LEVERAGE_MIN, 1.0 / ownership))


def stack_bonus(team_sizes: Iterable[int]) -> float:
    return sum((size - 2) * STACK_BONUS_PER_PLAYER for size in team_sizes if size >= 3)


def nexus_score(base_projection: float, avg_ownership_pct: float, bonus: float, captain_position: str) -> NexusResult:
    leverage = leverage_factor(avg_ownership_pct)
    position_bonus = captain_impact(captain_position) * POSITION_BONUS_WEIGHT
    score = (base_projection * leverage + bonus + position_bonus) / SCORE_DIVISOR
    return NexusResult(
        score=score,
        components=NexusComponents(
            base_projection=base_projection,
            avg_ownership=avg_ownership_pct,
            leverage_factor=leverage,
            stack_bonus=bonus,
            position_bonus=position_bonus,
        ),
    )


def score_band(score: float) -> str:
    for floor, label in SCORE_BANDS:
        if score >= floor:
            return label
    return "poor"


class NexusScoreCalculator:
    def __init__(self, pool: PlayerPool, rules: RosterRules) -> None:
        self.pool = pool
        self.rules = rules

    def score(self, lineup: Lineup) -> NexusResult:
        captain = self.pool.get(lineup.captain.player_id)
        others = [self.pool.get(slot.player_id) for slot in lineup.players]
        base = captain.projection * self.rules.captain_multiplier + sum(player.projection for player in others)
        ownerships = [captain.ownership_pct] + [player.ownership_pct for player in others]
        avg_ownership = sum(ownerships) / len(ownerships)
        team_sizes: Mapping[str, int] = self.pool.team_counts(lineup)
        return nexus_score(base, avg_ownership, stack_bonus(team_sizes.values()), captain.position)
