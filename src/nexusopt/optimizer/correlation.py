"""Pairwise player correlation derived from team membership."""

from __future__ import annotations

from typing import Dict, Sequence, Tuple

import numpy as np

from nexusopt.config import CorrelationConfig
from nexusopt.models import Player


PairKey = Tuple[str, str]


def pair_key(first: str, second: str) -> PairKey:
    return (first, second) if first <= second else (second, first)


def pair_correlation(first: Player, second: Player, config: CorrelationConfig) -> float:
    if first.team == second.team:
        value = config.same_team
        if first.position == second.position:
            value += config.same_team_same_position
    else:
        # Game matchups are not always known, so cross-team pairs share one field effect.
        value = config.opposing_team
    return max(-1.0, min(1.0, value))


class CorrelationModel:
    """Symmetric correlation table keyed by canonical (min id, max id) pairs."""

    def __init__(self, players: Sequence[Player], config: CorrelationConfig | None = None) -> None:
        self.config = config or CorrelationConfig()
        self._table: Dict[PairKey, float] = {}
        for idx, first in enumerate(players):
            for second in players[idx + 1:]:
                self._table[pair_key(first.player_id, second.player_id)] = pair_correlation(
                    first, second, self.config
                )

    def __len__(self) -> int:
        return len(self._table)

    def get(self, first: str, second: str) -> float:
        if first == second:
            return 1.0
        return self._table[pair_key(first, second)]

    def matrix(self, player_ids: Sequence[str]) -> np.ndarray:
        size = len(player_ids)
        result = np.eye(size)
        for i in range(size):
            for j in range(i + 1, size):
                value = self.get(player_ids[i], player_ids[j])
                result[i, j] = value
                result[j, i] = value
        return result
