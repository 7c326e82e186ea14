"""Monte Carlo scoring of lineups against the sampled performance grid."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import List, Sequence

import numpy as np

from nexusopt.config import RosterRules
from nexusopt.models import Lineup
from nexusopt.optimizer.correlation import CorrelationModel
from nexusopt.optimizer.pool import PlayerPool
from nexusopt.optimizer.sampler import PerformanceGrid


CASH_LINE = 130.0
WIN_LINE = 180.0
TOP10_QUANTILE = 0.9
CORRELATION_STRENGTH = 0.2


@dataclass(frozen=True)
class SimulationStats:
    """Distribution summary for one lineup. Rates are percents."""

    projected_points: float
    min: float
    p10: float
    p25: float
    median: float
    p75: float
    p90: float
    max: float
    cash_rate: float
    win_rate: float
    first_place: float
    top10: float
    roi: float


def roi_value(first_place: float, top10: float, cash_rate: float) -> float:
    """ROI from rates expressed as fractions in [0, 1]."""

    return 100.0 * first_place + 10.0 * top10 + 2.0 * cash_rate


def sorted_quantile(sorted_values: np.ndarray, quantile: float) -> float:
    count = len(sorted_values)
    return float(sorted_values[min(count - 1, int(math.floor(count * quantile)))])


def apply_correlation(rows: np.ndarray, correlation: np.ndarray) -> np.ndarray:
    """Pull each pair of outcomes toward (or push from) the pair mean by ``corr * 0.2``.

    Pairs are processed in order ``(0, 1), (0, 2), ...`` and each adjustment
    sees the values left by the previous pair; every column is independent.
    """

    values = np.array(rows, dtype=float, copy=True)
    size = values.shape[0]
    for i in range(size):
        for j in range(i + 1, size):
            strength = correlation[i, j] * CORRELATION_STRENGTH
            if strength == 0.0:
                continue
            first = values[i]
            second = values[j]
            mean = (first + second) / 2.0
            values[i] = first + (mean - first) * strength
            values[j] = second + (mean - second) * strength
    return values


def summarize(totals: np.ndarray, projected_points: float, target_top: float) -> SimulationStats:
    ordered = np.sort(totals)
    first_threshold = sorted_quantile(ordered, 1.0 - target_top)
    top10_threshold = sorted_quantile(ordered, TOP10_QUANTILE)
    cash_rate = float(np.mean(totals >= CASH_LINE))
    win_rate = float(np.mean(totals >= WIN_LINE))
    first_place = float(np.mean(totals > first_threshold))
    top10 = float(np.mean(totals >= top10_threshold))
    return SimulationStats(
        projected_points=round(projected_points, 2),
        min=round(float(ordered[0]), 2),
        p10=round(sorted_quantile(ordered, 0.10), 2),
        p25=round(sorted_quantile(ordered, 0.25), 2),
        median=round(float(ordered[len(ordered) // 2]), 2),
        p75=round(sorted_quantile(ordered, 0.75), 2),
        p90=round(sorted_quantile(ordered, 0.90), 2),
        max=round(float(ordered[-1]), 2),
        cash_rate=round(cash_rate * 100.0, 1),
        win_rate=round(win_rate * 100.0, 1),
        first_place=round(first_place * 100.0, 1),
        top10=round(top10 * 100.0, 1),
        roi=round(roi_value(first_place, top10, cash_rate), 2),
    )


def field_thresholds(all_totals: Sequence[np.ndarray], field_size: int) -> tuple[float, float, float]:
    """First-place, top-10 and cash lines from the pooled totals of every lineup."""

    pooled = np.sort(np.concatenate(list(all_totals)))[::-1]
    last = len(pooled) - 1
    first_rank = max(1, math.ceil(field_size * 0.001))
    top10_rank = max(10, math.ceil(field_size * 0.01))
    cash_rank = max(20, math.ceil(field_size * 0.2))
    return (
        float(pooled[min(first_rank - 1, last)]),
        float(pooled[min(top10_rank - 1, last)]),
        float(pooled[min(cash_rank - 1, last)]),
    )


def rescore_against_field(
    stats: Sequence[SimulationStats],
    all_totals: Sequence[np.ndarray],
    field_size: int,
) -> List[SimulationStats]:
    if not stats:
        return []
    first_line, top10_line, cash_line = field_thresholds(all_totals, field_size)
    rescored = []
    for entry, totals in zip(stats, all_totals):
        first_place = float(np.mean(totals >= first_line))
        top10 = float(np.mean(totals >= top10_line))
        cash_rate = float(np.mean(totals >= cash_line))
        rescored.append(
            replace(
                entry,
                first_place=round(first_place * 100.0, 1),
                top10=round(top10 * 100.0, 1),
                cash_rate=round(cash_rate * 100.0, 1),
                roi=round(roi_value(first_place, top10, cash_rate), 2),
            )
        )
    return rescored


class MonteCarloScorer:
    def __init__(
        self,
        pool: PlayerPool,
        grid: PerformanceGrid,
        correlation: CorrelationModel,
        rules: RosterRules,
        target_top: float = 0.2,
    ) -> None:
        self.pool = pool
        self.grid = grid
        self.correlation = correlation
        self.rules = rules
        self.target_top = target_top

    def projected_points(self, lineup: Lineup) -> float:
        captain = self.pool.get(lineup.captain.player_id)
        rest = sum(self.pool.get(slot.player_id).projection for slot in lineup.players)
        return captain.projection * self.rules.captain_multiplier + rest

    def totals(self, lineup: Lineup) -> np.ndarray:
        """Per-iteration lineup points; row 0 is the captain."""

        player_ids = lineup.player_ids
        adjusted = apply_correlation(self.grid.rows(player_ids), self.correlation.matrix(player_ids))
        return adjusted[0] * self.rules.captain_multiplier + adjusted[1:].sum(axis=0)

    def score(self, lineup: Lineup) -> tuple[SimulationStats, np.ndarray]:
        totals = self.totals(lineup)
        return summarize(totals, self.projected_points(lineup), self.target_top), totals
