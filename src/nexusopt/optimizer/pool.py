"""Id-keyed, read-only lookup tables over the normalized player pool."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Dict, FrozenSet, Mapping, Optional, Sequence, Tuple

from nexusopt.models import Lineup, Player


@dataclass(frozen=True)
class Team:
    code: str
    players: Tuple[Player, ...]
    by_position: Mapping[str, Tuple[Player, ...]]
    total_projection: float
    avg_ownership: float
    opponent: Optional[str] = None


class PlayerPool:
    """Players plus per-position and per-team buckets, built once per run."""

    def __init__(self, players: Sequence[Player]) -> None:
        self.players: Tuple[Player, ...] = tuple(players)
        self.by_id: Dict[str, Player] = {player.player_id: player for player in self.players}

        by_position: Dict[str, list[Player]] = {}
        by_team: Dict[str, list[Player]] = {}
        opponents: Dict[str, str] = {}
        for player in self.players:
            by_position.setdefault(player.position, []).append(player)
            by_team.setdefault(player.team, []).append(player)
            if player.opponent and player.team not in opponents:
                opponents[player.team] = player.opponent
        for team, opponent in list(opponents.items()):
            if opponent in by_team:
                opponents.setdefault(opponent, team)
        self.by_position: Dict[str, Tuple[Player, ...]] = {pos: tuple(group) for pos, group in by_position.items()}
        self.opponents = opponents

        teams: Dict[str, Team] = {}
        for code, members in by_team.items():
            buckets: Dict[str, list[Player]] = {}
            for player in members:
                buckets.setdefault(player.position, []).append(player)
            teams[code] = Team(
                code=code,
                players=tuple(members),
                by_position={pos: tuple(group) for pos, group in buckets.items()},
                total_projection=sum(player.projection for player in members),
                avg_ownership=sum(player.ownership for player in members) / len(members),
                opponent=opponents.get(code),
            )
        self.teams = teams

    def __len__(self) -> int:
        return len(self.players)

    def __contains__(self, player_id: object) -> bool:
        return player_id in self.by_id

    def get(self, player_id: str) -> Player:
        return self.by_id[player_id]

    @property
    def team_codes(self) -> Tuple[str, ...]:
        return tuple(sorted(self.teams))

    @property
    def has_opponents(self) -> bool:
        return bool(self.opponents)

    def game_of(self, team: str) -> FrozenSet[str]:
        """Unordered {team, opponent} pair; a team without an opponent is its own game."""

        opponent = self.opponents.get(team)
        if opponent is None:
            return frozenset((team,))
        return frozenset((team, opponent))

    def team_counts(self, lineup: Lineup) -> Counter:
        """Players per team in ``lineup``; the captain counts for their team."""

        return Counter(self.by_id[player_id].team for player_id in lineup.player_ids)

    def games(self, lineup: Lineup) -> set[FrozenSet[str]]:
        return {self.game_of(team) for team in self.team_counts(lineup)}
