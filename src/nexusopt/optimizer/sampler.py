"""Monte Carlo sampling of per-player fantasy point outcomes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence, Tuple

import numpy as np

from nexusopt.models import Player


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PerformanceGrid:
    """Simulated points, one row per player and one column per iteration.

    Column ``i`` is one coherent world across all players.
    """

    player_ids: Tuple[str, ...]
    values: np.ndarray
    index: Dict[str, int]

    @property
    def iterations(self) -> int:
        return int(self.values.shape[1])

    def row(self, player_id: str) -> np.ndarray:
        return self.values[self.index[player_id]]

    def rows(self, player_ids: Sequence[str]) -> np.ndarray:
        return self.values[[self.index[player_id] for player_id in player_ids]]


def sample_performance(
    players: Sequence[Player],
    iterations: int,
    randomness: float,
    rng: np.random.Generator,
    *,
    batch_size: int = 1_000,
    checkpoint: Optional[Callable[[], None]] = None,
    on_batch: Optional[Callable[[int, int], None]] = None,
) -> PerformanceGrid:
    """Draw ``iterations`` independent outcomes per player.

    Each value is ``max(0, N(projection, std_dev))`` scaled by a factor drawn
    uniformly from ``[1 - randomness, 1 + randomness]``. Correlation is not
    applied here; the scorer adjusts per lineup. Batches are generated in order
    so a seeded generator yields the same grid for the same batch size.
    """

    if iterations <= 0:
        raise ValueError("iterations must be positive")
    ids = tuple(player.player_id for player in players)
    means = np.array([player.projection for player in players], dtype=float)[:, None]
    stds = np.array([player.std_dev for player in players], dtype=float)[:, None]
    values = np.empty((len(ids), iterations), dtype=float)

    step = max(1, batch_size)
    for start in range(0, iterations, step):
        stop = min(iterations, start + step)
        width = stop - start
        draws = np.maximum(means + stds * rng.standard_normal((len(ids), width)), 0.0)
        factors = rng.uniform(1.0 - randomness, 1.0 + randomness, size=(len(ids), width))
        values[:, start:stop] = draws * factors
        if on_batch is not None:
            on_batch(stop, iterations)
        if checkpoint is not None:
            checkpoint()

    logger.debug("Sampled %s iterations for %s players", iterations, len(ids))
    return PerformanceGrid(player_ids=ids, values=values, index={pid: idx for idx, pid in enumerate(ids)})
