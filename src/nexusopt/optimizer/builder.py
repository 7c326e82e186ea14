"""Greedy randomized lineup construction guided by the exposure ledger."""

from __future__ import annotations

import logging
import math
import random
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, TypeVar

from nexusopt.config import RosterRules
from nexusopt.models import CAPTAIN_ROLE, Lineup, LineupSlot, Player
from nexusopt.optimizer.correlation import CorrelationModel
from nexusopt.optimizer.errors import LineupBuildError
from nexusopt.optimizer.exposure import ExposureTracker
from nexusopt.optimizer.pool import PlayerPool
from nexusopt.optimizer.validator import required_positions


logger = logging.getLogger(__name__)

T = TypeVar("T")

PAIRINGS = {"MID": "JNG", "JNG": "MID", "ADC": "SUP", "SUP": "ADC"}
TOP_PAIRING_CHANCE = 0.5
_EPSILON = 1e-9


@dataclass(frozen=True)
class BuildParams:
    """Per-lineup knobs; genetic seeding strategies override these."""

    randomness: float = 0.3
    leverage_multiplier: float = 1.0
    stack_bias: Optional[str] = None


def weighted_choice(rng: random.Random, items: Sequence[T], weights: Sequence[float], randomness: float) -> T:
    """Pick one item proportionally to ``weights`` after flattening by ``randomness``.

    Every weight receives a random share of ``max(weights) * randomness`` so
    higher randomness narrows the gap between strong and weak candidates.
    """

    if not items:
        raise ValueError("weighted_choice needs at least one item")
    if len(items) == 1:
        return items[0]
    positive = [w if w > 0 and math.isfinite(w) else 0.0 for w in weights]
    base = max(positive) * randomness
    adjusted = [w + base * (0.3 + rng.random() * randomness * 1.5) for w in positive]
    total = sum(adjusted)
    if total <= 0:
        return items[rng.randrange(len(items))]
    threshold = rng.random() * total
    cumulative = 0.0
    for item, weight in zip(items, adjusted):
        cumulative += weight
        if cumulative >= threshold:
            return item
    return items[-1]


class LineupBuilder:
    """Builds one lineup at a time: stack team, captain, then position fills.

    The builder only reads the tracker; callers record accepted lineups.
    """

    def __init__(
        self,
        pool: PlayerPool,
        rules: RosterRules,
        tracker: ExposureTracker,
        correlation: CorrelationModel,
        rng: random.Random,
    ) -> None:
        self.pool = pool
        self.rules = rules
        self.tracker = tracker
        self.correlation = correlation
        self.rng = rng
        self.positions = required_positions(pool, rules)
        self._min_salary: Dict[str, int] = {
            position: min((player.salary for player in pool.by_position.get(position, ())), default=0)
            for position in self.positions
        }

    # -- step 1 -----------------------------------------------------------
    def _captain_pool(self, team: str) -> List[Player]:
        squad = self.pool.teams[team]
        return [
            player
            for player in squad.players
            if player.position in self.rules.captain_positions and player.position in self.positions
        ]

    def select_stack_team(self) -> str:
        tracker = self.tracker
        constraints = tracker.constraints
        teams = [code for code in self.pool.team_codes if self._captain_pool(code)]
        if not teams:
            raise LineupBuildError("No team has a captain-eligible player")
        open_teams = [code for code in teams if not tracker.team_saturated(code)] or teams

        needing = [
            code
            for code in open_teams
            if tracker.team_needs_more(code) is True
            or any(
                tracker.stack_needs_more(code, size) is True and not tracker.stack_saturated(code, size)
                for size in constraints.stack_sizes(code)
            )
        ]
        if needing:
            return self.rng.choice(needing)

        weights = []
        for code in open_teams:
            weight = self.pool.teams[code].total_projection
            bounds = constraints.team(code)
            if bounds.target is not None:
                weight *= tracker.weight_adjustment(bounds.target, tracker.team_exposure(code))
            weights.append(weight)
        return weighted_choice(self.rng, open_teams, weights, 0.0)

    # -- step 2 -----------------------------------------------------------
    def team_cap(self, team: str) -> int:
        """Most players ``team`` may contribute without hitting a saturated stack size."""

        cap = self.rules.team_max_players
        while cap > 1 and self.tracker.stack_saturated(team, cap):
            cap -= 1
        return cap

    def target_stack_size(self, team: str, params: BuildParams) -> Optional[int]:
        tracker = self.tracker
        cap = self.team_cap(team)
        below = [
            size
            for size in tracker.constraints.stack_sizes(team)
            if size <= cap and tracker.stack_needs_more(team, size) is True and not tracker.stack_saturated(team, size)
        ]
        if below:
            return max(below, key=lambda size: (tracker.stack_deficit(team, size), size))
        if params.stack_bias == "large":
            return cap if cap >= 3 else None
        if params.stack_bias == "small":
            return 2 if cap >= 2 else None
        return None

    # -- step 3 -----------------------------------------------------------
    def _reserve(self, positions: Sequence[str]) -> int:
        return sum(self._min_salary.get(position, 0) for position in positions)

    def select_captain(self, team: str, randomness: float = 0.3) -> Player:
        tracker = self.tracker
        budget = self.rules.salary_cap - self._reserve(self.positions)
        candidates = [
            player for player in self._captain_pool(team) if self.rules.captain_salary(player.salary) <= budget
        ] or [
            player
            for player in self._captain_pool(team)
            if self.rules.captain_salary(player.salary) <= self.rules.salary_cap
        ]
        if not candidates:
            raise LineupBuildError(f"No affordable captain on {team}")
        candidates = [player for player in candidates if not tracker.player_saturated(player.player_id)] or candidates

        below_min = [player for player in candidates if tracker.player_needs_more(player.player_id) is True]
        if below_min:
            candidates = below_min

        weights = []
        for player in candidates:
            available = max(0.0, player.max_exposure - tracker.player_exposure(player.player_id))
            weights.append(
                player.projection
                * (player.projection / max(0.01, player.ownership_pct))
                * (available / max(0.1, player.max_exposure))
            )
        return weighted_choice(self.rng, candidates, weights, randomness)

    # -- step 4 -----------------------------------------------------------
    def _synergy(self, candidate: Player, selected: Sequence[Player]) -> float:
        if not selected:
            return 1.0
        log_total = 0.0
        for member in selected:
            factor = 1.0 + self.correlation.get(candidate.player_id, member.player_id)
            if factor <= 0:
                return 0.0
            log_total += math.log(factor)
        return math.exp(log_total / len(selected))

    def _fill_weight(self, player: Player, selected: Sequence[Player], params: BuildParams) -> float:
        leverage = (player.projection / max(0.01, player.ownership_pct)) ** params.leverage_multiplier
        target = player.target_exposure
        exposure_factor = (target - self.tracker.player_exposure(player.player_id)) / max(_EPSILON, target)
        return player.projection * leverage * self._synergy(player, selected) * max(0.1, exposure_factor)

    def _pairing_applies(self, position: str, fills: Sequence[Player], stack_team: str) -> bool:
        if position == "TOP":
            return self.rng.random() < TOP_PAIRING_CHANCE
        partner = PAIRINGS.get(position)
        if partner is None:
            return False
        return any(player.position == partner and player.team == stack_team for player in fills)

    def _stack_options(self, positions: Sequence[str], stack_team: str, used: set[str]) -> int:
        squad = self.pool.teams[stack_team]
        return sum(
            1
            for position in positions
            if any(player.player_id not in used for player in squad.by_position.get(position, ()))
        )

    def build(self, lineup_id: str, params: BuildParams = BuildParams(), name: str = "") -> Lineup:
        stack_team = self.select_stack_team()
        target_size = self.target_stack_size(stack_team, params)
        captain = self.select_captain(stack_team, params.randomness)

        captain_slot = LineupSlot(captain.player_id, CAPTAIN_ROLE, self.rules.captain_salary(captain.salary))
        remaining = self.rules.salary_cap - captain_slot.salary
        used = {captain.player_id}
        selected: List[Player] = [captain]
        fills: List[Player] = []
        team_counts: Counter = Counter({captain.team: 1})
        caps: Dict[str, int] = {}

        def cap_for(team: str) -> int:
            if team not in caps:
                caps[team] = self.team_cap(team)
            return caps[team]

        for idx, position in enumerate(self.positions):
            later = self.positions[idx + 1:]
            reserve = self._reserve(later)
            pool_at = [
                player
                for player in self.pool.by_position.get(position, ())
                if player.player_id not in used and team_counts[player.team] < cap_for(player.team)
            ]
            candidates = [player for player in pool_at if player.salary <= remaining - reserve]
            if not candidates:
                candidates = [player for player in pool_at if player.salary <= remaining]
            if not candidates:
                raise LineupBuildError(f"No affordable {position} with {remaining} salary left")
            candidates = [
                player for player in candidates if not self.tracker.player_saturated(player.player_id)
            ] or candidates

            on_stack = [player for player in candidates if player.team == stack_team]
            off_stack = [player for player in candidates if player.team != stack_team]
            stacked = team_counts[stack_team]
            if target_size is not None and stacked >= target_size:
                candidates = off_stack or candidates
            elif on_stack:
                must_fill = target_size is not None and (
                    target_size - stacked >= self._stack_options(self.positions[idx:], stack_team, used)
                )
                if position == "TEAM" or must_fill or self._pairing_applies(position, fills, stack_team):
                    candidates = on_stack

            if position == "TEAM":
                best = max(player.projection for player in candidates)
                top = [player for player in candidates if player.projection == best]
                choice = top[0] if len(top) == 1 else self.rng.choice(top)
            else:
                below_min = [
                    player for player in candidates if self.tracker.player_needs_more(player.player_id) is True
                ]
                if below_min:
                    candidates = below_min
                weights = [self._fill_weight(player, selected, params) for player in candidates]
                choice = weighted_choice(self.rng, candidates, weights, params.randomness)

            used.add(choice.player_id)
            selected.append(choice)
            fills.append(choice)
            team_counts[choice.team] += 1
            remaining -= choice.salary

        slots = tuple(LineupSlot(player.player_id, player.position, player.salary) for player in fills)
        return Lineup(lineup_id=lineup_id, captain=captain_slot, players=slots, name=name)
