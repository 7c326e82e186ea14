"""Roster configuration for supported site/sport combinations."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Tuple, Union


@dataclass(frozen=True)
class RosterRules:
    site: str
    sport: str
    salary_cap: int
    captain_slot: str
    roster_order: Tuple[str, ...]
    captain_positions: FrozenSet[str]
    team_max_players: int
    min_games: int
    captain_multiplier: float

    @property
    def fill_order(self) -> Tuple[str, ...]:
        """Non-captain slots in the order the builder fills them."""

        return tuple(slot for slot in self.roster_order if slot != self.captain_slot)

    @property
    def positions(self) -> FrozenSet[str]:
        return frozenset(self.fill_order)

    @property
    def roster_size(self) -> int:
        return len(self.roster_order)

    def captain_salary(self, base_salary: int) -> int:
        return captain_salary(base_salary, self.captain_multiplier)


def captain_salary(base_salary: int, multiplier: float = 1.5) -> int:
    """Round half up so 6003 -> 9005 regardless of float banker's rounding."""

    return int(math.floor(base_salary * multiplier + 0.5))


_ROSTER_RULES: Dict[Tuple[str, str], RosterRules] = {
    ("DK_CAPTAIN", "LOL"): RosterRules(
        site="DK_CAPTAIN",
        sport="LOL",
        salary_cap=50_000,
        captain_slot="CPT",
        roster_order=("CPT", "TOP", "JNG", "MID", "ADC", "SUP", "TEAM"),
        captain_positions=frozenset({"TOP", "JNG", "MID", "ADC"}),
        team_max_players=4,
        min_games=2,
        captain_multiplier=1.5,
    ),
}

DEFAULT_SITE = "DK_CAPTAIN"
DEFAULT_SPORT = "LOL"


def iter_rules() -> Iterable[RosterRules]:
    """Return an iterator of all configured rule sets."""

    return _ROSTER_RULES.values()


def get_rules(site: str = DEFAULT_SITE, sport: str = DEFAULT_SPORT) -> RosterRules:
    """Fetch rules for a site/sport pair, raising KeyError if missing."""

    key = (site.upper(), sport.upper())
    if key not in _ROSTER_RULES:
        raise KeyError(f"No roster rules configured for site={site!r}, sport={sport!r}")
    return _ROSTER_RULES[key]


def get_rules_by_key(site_key: Union[str, Tuple[str, str]]) -> RosterRules:
    """Resolve rules using either "SITE_SPORT" or (site, sport)."""

    if isinstance(site_key, tuple):
        site, sport = site_key
        return get_rules(site, sport)

    if not isinstance(site_key, str):
        raise TypeError("site_key must be a str or (site, sport) tuple")

    # Site keys may themselves contain underscores (DK_CAPTAIN), so split on the last one.
    parts = site_key.rsplit("_", 1)
    if len(parts) != 2:
        raise ValueError(f"site_key must look like 'SITE_SPORT', got {site_key!r}")

    site, sport = parts
    return get_rules(site, sport)
