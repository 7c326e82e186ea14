"""Exposure constraints and the mutable ledger of accepted lineups."""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from nexusopt.models import Lineup
from nexusopt.optimizer.errors import InvariantViolation
from nexusopt.optimizer.pool import PlayerPool


_EPSILON = 1e-9

StackKey = Tuple[str, int]


@dataclass(frozen=True)
class Bounds:
    """Exposure window as fractions of the lineup count."""

    min: float = 0.0
    max: float = 1.0
    target: Optional[float] = None

    @property
    def floor(self) -> float:
        if self.target is None:
            return self.min
        return max(self.min, self.target)

    @property
    def ceiling(self) -> float:
        if self.target is None:
            return self.max
        return min(self.max, self.target)


DEFAULT_BOUNDS = Bounds()


def count_limit(fraction: float, planned_total: int) -> int:
    """Largest count that keeps ``count / planned_total`` within ``fraction``."""

    return max(0, math.ceil(fraction * planned_total - _EPSILON))


@dataclass
class ConstraintSet:
    players: Dict[str, Bounds] = field(default_factory=dict)
    teams: Dict[str, Bounds] = field(default_factory=dict)
    stacks: Dict[StackKey, Bounds] = field(default_factory=dict)

    def player(self, player_id: str) -> Bounds:
        return self.players.get(player_id, DEFAULT_BOUNDS)

    def team(self, team: str) -> Bounds:
        return self.teams.get(team, DEFAULT_BOUNDS)

    def stack(self, team: str, size: int) -> Bounds:
        return self.stacks.get((team, size), DEFAULT_BOUNDS)

    def stack_sizes(self, team: str) -> List[int]:
        return sorted(size for (code, size) in self.stacks if code == team)


class ExposureTracker:
    """Counts players, teams, (team, stack size) pairs and slots across accepted lineups.

    A ``(team, k)`` entry is incremented once per lineup in which ``team``
    contributes exactly ``k`` players, captain included. Team counts are the
    number of lineups that contain the team at all.
    """

    def __init__(self, pool: PlayerPool, constraints: ConstraintSet, planned_total: int = 0) -> None:
        self.pool = pool
        self.constraints = constraints
        self.planned_total = planned_total
        self.total = 0
        self.players: Counter = Counter()
        self.teams: Counter = Counter()
        self.stacks: Counter = Counter()
        self.positions: Counter = Counter()

    def record(self, lineup: Lineup) -> None:
        self.total += 1
        for slot in lineup.slots:
            self.players[slot.player_id] += 1
            self.positions[slot.role] += 1
        for team, size in self.pool.team_counts(lineup).items():
            self.teams[team] += 1
            self.stacks[(team, size)] += 1

    def remove(self, lineup: Lineup) -> None:
        if self.total <= 0:
            raise InvariantViolation("Cannot remove a lineup from an empty ledger")
        self.total -= 1
        for slot in lineup.slots:
            _decrement(self.players, slot.player_id)
            _decrement(self.positions, slot.role)
        for team, size in self.pool.team_counts(lineup).items():
            _decrement(self.teams, team)
            _decrement(self.stacks, (team, size))

    def _fraction(self, count: int) -> float:
        return count / self.total if self.total else 0.0

    def player_exposure(self, player_id: str) -> float:
        return self._fraction(self.players[player_id])

    def team_exposure(self, team: str) -> float:
        return self._fraction(self.teams[team])

    def stack_exposure(self, team: str, size: int) -> float:
        return self._fraction(self.stacks[(team, size)])

    @staticmethod
    def _needs(current: float, bounds: Bounds, floor: float) -> Optional[bool]:
        if current >= bounds.max:
            return False
        if current < floor:
            return True
        return None

    def stack_needs_more(self, team: str, size: int) -> Optional[bool]:
        """True below the stack floor, False at or above max, None in between."""

        bounds = self.constraints.stack(team, size)
        return self._needs(self.stack_exposure(team, size), bounds, bounds.floor)

    def team_needs_more(self, team: str) -> Optional[bool]:
        bounds = self.constraints.team(team)
        return self._needs(self.team_exposure(team), bounds, bounds.floor)

    def player_needs_more(self, player_id: str) -> Optional[bool]:
        bounds = self.constraints.player(player_id)
        return self._needs(self.player_exposure(player_id), bounds, bounds.min)

    @staticmethod
    def weight_adjustment(target: float, current: float) -> float:
        return max(0.1, 1.0 + (target - current))

    def stack_deficit(self, team: str, size: int) -> float:
        bounds = self.constraints.stack(team, size)
        return bounds.floor - self.stack_exposure(team, size)

    def player_saturated(self, player_id: str) -> bool:
        bounds = self.constraints.player(player_id)
        if bounds.max >= 1.0 or self.planned_total <= 0:
            return False
        return self.players[player_id] >= count_limit(bounds.max, self.planned_total)

    def team_saturated(self, team: str) -> bool:
        bounds = self.constraints.team(team)
        if bounds.max >= 1.0 or self.planned_total <= 0:
            return False
        return self.teams[team] >= count_limit(bounds.max, self.planned_total)

    def stack_saturated(self, team: str, size: int) -> bool:
        bounds = self.constraints.stack(team, size)
        if bounds.ceiling >= 1.0 or self.planned_total <= 0:
            return False
        return self.stacks[(team, size)] >= count_limit(bounds.ceiling, self.planned_total)

    def cap_violations(self, lineup: Lineup) -> List[str]:
        """Reasons accepting ``lineup`` would push a max or stack ceiling past its limit."""

        reasons: List[str] = []
        for player_id in lineup.player_ids:
            if self.player_saturated(player_id):
                reasons.append(f"player {player_id} at max exposure")
        for team, size in self.pool.team_counts(lineup).items():
            if self.team_saturated(team):
                reasons.append(f"team {team} at max exposure")
            if self.stack_saturated(team, size):
                reasons.append(f"{team} {size}-stack at max exposure")
        return reasons

    def snapshot(self) -> Tuple[int, Dict, Dict, Dict, Dict]:
        return (
            self.total,
            dict(+self.players),
            dict(+self.teams),
            dict(+self.stacks),
            dict(+self.positions),
        )

    @classmethod
    def recount(
        cls,
        pool: PlayerPool,
        constraints: ConstraintSet,
        lineups: Iterable[Lineup],
        planned_total: int = 0,
    ) -> "ExposureTracker":
        tracker = cls(pool, constraints, planned_total)
        for lineup in lineups:
            tracker.record(lineup)
        return tracker

    def copy(self, planned_total: Optional[int] = None) -> "ExposureTracker":
        """Independent ledger with the same counts, optionally planned for a different total."""

        clone = ExposureTracker(
            self.pool,
            self.constraints,
            self.planned_total if planned_total is None else planned_total,
        )
        clone.total = self.total
        clone.players = Counter(self.players)
        clone.teams = Counter(self.teams)
        clone.stacks = Counter(self.stacks)
        clone.positions = Counter(self.positions)
        return clone

    def verify(self, lineups: Iterable[Lineup]) -> None:
        """Raise :class:`InvariantViolation` unless counters equal a full recount."""

        fresh = ExposureTracker.recount(self.pool, self.constraints, lineups)
        if fresh.snapshot() != self.snapshot():
            raise InvariantViolation(
                f"Exposure ledger diverged from recount (ledger total {self.total}, recount total {fresh.total})"
            )


def _decrement(counter: Counter, key) -> None:
    counter[key] -= 1
    if counter[key] <= 0:
        del counter[key]
