"""Hard structural checks applied to every candidate lineup."""

from __future__ import annotations

import logging
import random
from collections import Counter
from dataclasses import dataclass
from typing import Collection, Optional, Tuple

from nexusopt.config import RosterRules
from nexusopt.models import CAPTAIN_ROLE, Lineup, LineupSlot
from nexusopt.optimizer.errors import InvariantViolation
from nexusopt.optimizer.pool import PlayerPool


logger = logging.getLogger(__name__)


def required_positions(pool: PlayerPool, rules: RosterRules) -> Tuple[str, ...]:
    """Non-captain slots to fill; TEAM is dropped when the pool has no TEAM players."""

    return tuple(
        position
        for position in rules.fill_order
        if position != "TEAM" or pool.by_position.get("TEAM")
    )


@dataclass(frozen=True)
class ValidationResult:
    reasons: Tuple[str, ...] = ()
    has_duplicates: bool = False

    @property
    def valid(self) -> bool:
        return not self.reasons


class LineupValidator:
    def __init__(self, pool: PlayerPool, rules: RosterRules, check_games: Optional[bool] = None) -> None:
        self.pool = pool
        self.rules = rules
        self.positions = required_positions(pool, rules)
        self.check_games = pool.has_opponents if check_games is None else check_games

    def validate(self, lineup: Lineup, existing_signatures: Collection[Tuple[str, ...]] = ()) -> ValidationResult:
        reasons: list[str] = []
        rules = self.rules

        ids = lineup.player_ids
        unknown = [player_id for player_id in ids if player_id not in self.pool]
        if unknown:
            return ValidationResult((f"unknown players {unknown}",))

        if lineup.salary > rules.salary_cap:
            reasons.append(f"salary {lineup.salary} exceeds cap {rules.salary_cap}")

        duplicates = len(set(ids)) != len(ids)
        if duplicates:
            reasons.append("duplicate players")

        captain = lineup.captain
        if captain.role != CAPTAIN_ROLE:
            reasons.append(f"captain slot has role {captain.role}")
        captain_player = self.pool.get(captain.player_id)
        if captain_player.position not in rules.captain_positions:
            reasons.append(f"{captain_player.position} cannot captain")
        expected_salary = rules.captain_salary(captain_player.salary)
        if captain.salary != expected_salary:
            reasons.append(f"captain salary {captain.salary} != {expected_salary}")

        roles = Counter(slot.role for slot in lineup.players)
        if roles != Counter(self.positions):
            reasons.append(f"positions {sorted(roles.elements())} do not match {list(self.positions)}")
        for slot in lineup.players:
            player = self.pool.get(slot.player_id)
            if player.position != slot.role:
                reasons.append(f"{slot.player_id} ({player.position}) placed at {slot.role}")
            elif slot.salary != player.salary:
                reasons.append(f"{slot.player_id} salary {slot.salary} != {player.salary}")

        team_counts = self.pool.team_counts(lineup)
        crowded = sorted(team for team, count in team_counts.items() if count > rules.team_max_players)
        if crowded:
            reasons.append(f"more than {rules.team_max_players} players from {', '.join(crowded)}")

        if self.check_games and len(self.pool.games(lineup)) < rules.min_games:
            reasons.append(f"fewer than {rules.min_games} games represented")

        if lineup.signature() in existing_signatures:
            reasons.append("duplicate of an existing lineup")

        if reasons:
            logger.debug("Rejected lineup %s: %s", lineup.lineup_id, "; ".join(reasons))
        return ValidationResult(tuple(reasons), duplicates)

    def repair_duplicates(self, lineup: Lineup, rng: random.Random) -> Optional[Lineup]:
        """Replace repeated players with unused same-position alternatives.

        Returns ``None`` when a repeated slot has no alternative left in the pool.
        """

        seen: set[str] = set()
        repaired = lineup
        for slot in lineup.slots:
            if slot.player_id not in seen:
                seen.add(slot.player_id)
                continue
            in_use = set(repaired.player_ids)
            alternatives = sorted(
                (player for player in self.pool.by_position.get(slot.role, ()) if player.player_id not in in_use),
                key=lambda player: player.player_id,
            )
            if not alternatives:
                return None
            choice = rng.choice(alternatives)
            repaired = repaired.replace_slot(slot.role, LineupSlot(choice.player_id, slot.role, choice.salary))
            seen.add(choice.player_id)

        ids = repaired.player_ids
        if len(set(ids)) != len(ids):
            raise InvariantViolation(f"Lineup {lineup.lineup_id} still repeats players after repair: {ids}")
        return repaired
