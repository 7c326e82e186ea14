import numpy as np
import pytest

from nexusopt.models import Player
from nexusopt.optimizer.errors import OptimizationCancelled
from nexusopt.optimizer.progress import ProgressReporter
from nexusopt.optimizer.sampler import sample_performance


def _sample_players() -> list[Player]:
    return [
        Player(player_id="steady", name="Steady", position="SUP", team="T1", salary=5000, projection=40.0, std_dev=3.0),
        Player(player_id="boom", name="Boom", position="MID", team="GEN", salary=9000, projection=2.0, std_dev=20.0),
    ]


def test_grid_shape_and_non_negative():
    grid = sample_performance(_sample_players(), 500, 0.3, np.random.default_rng(1), batch_size=128)

    assert grid.values.shape == (2, 500)
    assert grid.iterations == 500
    assert grid.player_ids == ("steady", "boom")
    assert (grid.values >= 0).all()
    assert grid.rows(["boom", "steady"]).shape == (2, 500)


def test_sampling_is_reproducible_for_a_seed():
    first = sample_performance(_sample_players(), 300, 0.3, np.random.default_rng(42), batch_size=100)
    second = sample_performance(_sample_players(), 300, 0.3, np.random.default_rng(42), batch_size=100)
    third = sample_performance(_sample_players(), 300, 0.3, np.random.default_rng(43), batch_size=100)

    assert np.array_equal(first.values, second.values)
    assert not np.array_equal(first.values, third.values)


def test_mean_tracks_projection_without_randomness():
    grid = sample_performance(_sample_players(), 5000, 0.0, np.random.default_rng(7))
    assert grid.row("steady").mean() == pytest.approx(40.0, abs=0.5)


def test_randomness_bounds_the_scale_factor():
    players = [Player(player_id="flat", name="Flat", position="TOP", team="KT", salary=5000, projection=50.0, std_dev=1e-9)]
    grid = sample_performance(players, 1000, 0.2, np.random.default_rng(3))

    assert grid.row("flat").min() >= 40.0 - 1e-6
    assert grid.row("flat").max() <= 60.0 + 1e-6


def test_batches_report_progress_and_honor_cancellation():
    seen = []
    reporter = ProgressReporter()

    def on_batch(done: int, total: int) -> None:
        seen.append((done, total))
        if done >= 200:
            reporter.cancel()

    with pytest.raises(OptimizationCancelled):
        sample_performance(
            _sample_players(),
            1000,
            0.3,
            np.random.default_rng(0),
            batch_size=100,
            checkpoint=reporter.checkpoint,
            on_batch=on_batch,
        )
    assert seen == [(100, 1000), (200, 1000)]


def test_iterations_must_be_positive():
    with pytest.raises(ValueError):
        sample_performance(_sample_players(), 0, 0.3, np.random.default_rng(0))
