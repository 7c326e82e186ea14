import numpy as np
import pytest

from nexusopt.config import get_rules
from nexusopt.models import Lineup, LineupSlot, Player
from nexusopt.optimizer.correlation import CorrelationModel
from nexusopt.optimizer.pool import PlayerPool
from nexusopt.optimizer.sampler import PerformanceGrid
from nexusopt.optimizer.scoring import (
    MonteCarloScorer,
    apply_correlation,
    field_thresholds,
    rescore_against_field,
    roi_value,
    sorted_quantile,
    summarize,
)


POSITIONS = ("TOP", "JNG", "MID", "ADC", "SUP", "TEAM")


def _sample_pool() -> PlayerPool:
    players = [
        Player(
            player_id=f"{team}_{position}",
            name=f"{team} {position}",
            position=position,
            team=team,
            salary=6000,
            projection=20.0 + idx,
            std_dev=5.0,
        )
        for team in ("T1", "GEN")
        for idx, position in enumerate(POSITIONS)
    ]
    return PlayerPool(players)


def _lineup() -> Lineup:
    return Lineup(
        lineup_id="L001",
        captain=LineupSlot("T1_MID", "CPT", 9000),
        players=tuple(
            LineupSlot(f"{'T1' if position in ('TOP', 'JNG') else 'GEN'}_{position}", position, 6000)
            for position in POSITIONS
        ),
    )


def _constant_grid(pool: PlayerPool, value: float, iterations: int = 50) -> PerformanceGrid:
    ids = tuple(player.player_id for player in pool.players)
    values = np.full((len(ids), iterations), value)
    return PerformanceGrid(player_ids=ids, values=values, index={pid: idx for idx, pid in enumerate(ids)})


def test_roi_value_weights_rates():
    assert roi_value(0.1, 0.2, 0.5) == pytest.approx(13.0)
    assert roi_value(0.0, 0.0, 0.0) == 0.0


def test_sorted_quantile_uses_floor_index():
    ordered = np.arange(10, dtype=float)
    assert sorted_quantile(ordered, 0.25) == 2.0
    assert sorted_quantile(ordered, 0.9) == 9.0
    assert sorted_quantile(ordered, 1.0) == 9.0


def test_apply_correlation_pulls_pairs_together():
    rows = np.array([[10.0, 0.0], [20.0, 0.0]])
    adjusted = apply_correlation(rows, np.array([[1.0, 1.0], [1.0, 1.0]]))

    assert adjusted[:, 0] == pytest.approx([11.0, 19.0])
    assert adjusted[:, 1] == pytest.approx([0.0, 0.0])
    assert rows[0, 0] == 10.0


def test_apply_correlation_pushes_negative_pairs_apart():
    rows = np.array([[10.0], [20.0]])
    adjusted = apply_correlation(rows, np.array([[1.0, -0.5], [-0.5, 1.0]]))
    assert adjusted[:, 0] == pytest.approx([9.5, 20.5])


def test_summarize_distribution():
    totals = np.arange(100, dtype=float)
    stats = summarize(totals, 55.5, target_top=0.2)

    assert stats.projected_points == 55.5
    assert (stats.min, stats.median, stats.max) == (0.0, 50.0, 99.0)
    assert (stats.p10, stats.p25, stats.p75, stats.p90) == (10.0, 25.0, 75.0, 90.0)
    assert stats.first_place == 19.0
    assert stats.top10 == 10.0
    assert stats.cash_rate == 0.0
    assert stats.win_rate == 0.0
    assert stats.roi == pytest.approx(20.0)


def test_summarize_cash_and_win_lines():
    totals = np.array([100.0, 130.0, 150.0, 180.0])
    stats = summarize(totals, 140.0, target_top=0.2)
    assert stats.cash_rate == 75.0
    assert stats.win_rate == 25.0


def test_scorer_applies_captain_multiplier():
    pool = _sample_pool()
    scorer = MonteCarloScorer(pool, _constant_grid(pool, 10.0), CorrelationModel(pool.players), get_rules())
    lineup = _lineup()

    stats, totals = scorer.score(lineup)

    assert totals.shape == (50,)
    assert totals == pytest.approx(np.full(50, 10.0 * 1.5 + 60.0))
    captain = pool.get("T1_MID")
    others = sum(pool.get(slot.player_id).projection for slot in lineup.players)
    assert stats.projected_points == pytest.approx(captain.projection * 1.5 + others)


def test_field_thresholds_rank_pooled_totals():
    first = np.arange(0, 50, dtype=float)
    second = np.arange(50, 100, dtype=float)

    top, top10, cash = field_thresholds([first, second], field_size=1000)

    # ranks 1, 10 and 200 (clipped to the 100 pooled values)
    assert (top, top10, cash) == (99.0, 90.0, 0.0)


def test_rescore_against_field_rewards_the_stronger_lineup():
    weak = np.full(100, 100.0)
    strong = np.full(100, 150.0)
    base = summarize(weak, 100.0, 0.2)

    rescored = rescore_against_field([base, summarize(strong, 150.0, 0.2)], [weak, strong], field_size=100)

    assert rescored[0].first_place == 0.0
    assert rescored[1].first_place == 100.0
    assert rescored[1].roi > rescored[0].roi
    assert rescored[0].median == base.median
    assert rescore_against_field([], [], 100) == []
