from collections import Counter

import pytest

from nexusopt.config import GeneticConfig, OptimizerConfig
from nexusopt.optimizer import (
    EngineStateError,
    InvalidInputError,
    LineupOptimizer,
    OptimizationCancelled,
    optimize,
)


POSITIONS = ("TOP", "JNG", "MID", "ADC", "SUP", "TEAM")
TEAMS = ("T1", "GEN", "KT", "HLE", "DK")


def _sample_players(expensive_teams: tuple[str, ...] = ()) -> list[dict]:
    players = []
    for team in TEAMS:
        base = 9200 if team in expensive_teams else 6000
        for pos_idx, position in enumerate(POSITIONS):
            players.append(
                {
                    "id": f"{team}_{position}",
                    "name": f"{team} {position}",
                    "position": position,
                    "team": team,
                    "salary": base + 200 * pos_idx,
                    "projectedPoints": 40,
                    "ownership": 20,
                }
            )
    return players


def _config(**overrides) -> OptimizerConfig:
    values = {"iterations": 500, "seed": 11}
    values.update(overrides)
    return OptimizerConfig(**values)


def _team_counts(record) -> Counter:
    return Counter(slot.team for slot in (record.captain, *record.players))


def _stack_count(result, team: str, size: int) -> int:
    return sum(1 for record in result.lineups if _team_counts(record)[team] == size)


def _signature(record) -> tuple:
    return record.captain.player_id, tuple(sorted(slot.player_id for slot in record.players))


def test_unconstrained_pool_builds_distinct_lineups():
    result = optimize(_sample_players(), 5, config=_config(iterations=1000))

    assert len(result.lineups) == 5
    assert len({_signature(record) for record in result.lineups}) == 5
    for record in result.lineups:
        assert record.salary <= 50_000
        assert len(_team_counts(record)) >= 2
        assert record.lineup_id.startswith("L")
    assert result.summary.generated == 5
    assert result.summary.mode == "simulation"

    rois = [record.stats.roi for record in result.lineups]
    assert rois == sorted(rois, reverse=True)


def test_single_team_stack_target():
    settings = {"teams": [{"team": "KT", "stackSize": 4, "target": 27}]}
    result = optimize(_sample_players(), 20, exposure_settings=settings, config=_config())

    assert len(result.lineups) == 20
    # 22%..32% of 20 lineups
    assert 5 <= _stack_count(result, "KT", 4) <= 6


def test_impossible_stack_targets_are_scaled():
    settings = {
        "teams": [
            {"team": "T1", "stackSize": 4, "target": 60},
            {"team": "GEN", "stackSize": 4, "target": 50},
            {"team": "KT", "stackSize": 4, "target": 40},
        ]
    }
    result = optimize(_sample_players(), 20, exposure_settings=settings, config=_config())

    assert len(result.lineups) == 20
    assert any("scaled by" in warning for warning in result.summary.warnings)
    assert not any("infeasible" in warning for warning in result.summary.warnings)
    # scaled targets 40%, 33.3% and 26.7% of 20 lineups, rounded up
    assert _stack_count(result, "T1", 4) <= 8
    assert _stack_count(result, "GEN", 4) <= 7
    assert _stack_count(result, "KT", 4) <= 6


def test_zero_target_blocks_stack():
    settings = {
        "teams": [
            {"team": "KT", "stackSize": 4, "target": 0, "max": 5},
            {"team": "T1", "target": 50},
        ]
    }
    result = optimize(_sample_players(), 20, exposure_settings=settings, config=_config())

    assert len(result.lineups) == 20
    assert _stack_count(result, "KT", 4) <= 1
    t1_lineups = sum(1 for record in result.lineups if _team_counts(record)["T1"] > 0)
    assert t1_lineups >= 9


def test_expensive_pool_still_fits_salary_cap():
    result = optimize(_sample_players(expensive_teams=("T1", "GEN", "KT")), 10, config=_config())

    assert len(result.lineups) == 10
    assert all(record.salary <= 50_000 for record in result.lineups)


def test_same_seed_reproduces_results():
    first = optimize(_sample_players(), 6, config=_config(seed=42))
    second = optimize(_sample_players(), 6, config=_config(seed=42))

    assert [record.to_payload() for record in first.lineups] == [record.to_payload() for record in second.lineups]
    assert first.summary.seed == second.summary.seed == 42


def test_run_before_initialize_and_invalid_count():
    optimizer = LineupOptimizer(_config())
    with pytest.raises(EngineStateError):
        optimizer.run_simulation(3)

    optimizer.initialize(_sample_players())
    assert optimizer.is_initialized
    with pytest.raises(InvalidInputError):
        optimizer.run_simulation(0)


def test_unknown_mode_is_rejected():
    with pytest.raises(InvalidInputError):
        optimize(_sample_players(), 3, mode="annealing", config=_config())


def test_progress_is_monotonic_and_completes():
    events = []
    messages = []
    optimizer = LineupOptimizer(
        _config(),
        on_progress=lambda percent, stage: events.append((percent, stage)),
        on_status=messages.append,
    )
    optimizer.initialize(_sample_players())
    optimizer.run_simulation(4)

    percents = [percent for percent, _ in events]
    assert percents == sorted(percents)
    assert events[0][1] == "initializing"
    assert events[-1] == (100.0, "completed")
    assert {"final_selection", "final_simulation"} <= {stage for _, stage in events}
    assert messages


def test_failing_status_callback_does_not_abort():
    def explode(message: str) -> None:
        raise RuntimeError("display offline")

    result = optimize(_sample_players(), 3, config=_config(), on_status=explode)
    assert len(result.lineups) == 3


def test_cancellation_stops_run_with_error_stage():
    stages = []

    def on_progress(percent: float, stage: str) -> None:
        stages.append(stage)
        if stage == "final_selection" and percent > 5.0 and "error" not in stages:
            optimizer.cancel()

    optimizer = LineupOptimizer(_config(), on_progress=on_progress)
    optimizer.initialize(_sample_players())

    with pytest.raises(OptimizationCancelled) as excinfo:
        optimizer.run_simulation(10)
    assert excinfo.value.stage == "final_selection"
    assert stages[-1] == "error"
    assert "completed" not in stages

    # the cancel flag is cleared for the next run
    result = optimizer.run_simulation(2)
    assert len(result.lineups) == 2


def test_cancel_between_initialize_and_run_stops_the_run():
    optimizer = LineupOptimizer(_config())
    optimizer.initialize(_sample_players())
    optimizer.cancel()

    with pytest.raises(OptimizationCancelled):
        optimizer.run_simulation(3)
    assert optimizer.reporter.stage == "error"

    result = optimizer.run_genetic(2)
    assert len(result.lineups) == 2


def test_cancel_after_completion_does_not_leak_into_next_run():
    def on_progress(percent: float, stage: str) -> None:
        if stage == "completed":
            optimizer.cancel()

    optimizer = LineupOptimizer(_config(), on_progress=on_progress)
    optimizer.initialize(_sample_players())
    first = optimizer.run_simulation(2)
    assert len(first.lineups) == 2

    second = optimizer.run_simulation(2)
    assert len(second.lineups) == 2


def test_runs_before_initialize_raise_engine_state_error():
    optimizer = LineupOptimizer(_config())
    assert optimizer.seed is None
    with pytest.raises(EngineStateError):
        optimizer.run_simulation(2)
    with pytest.raises(EngineStateError):
        optimizer.run_genetic(2)
    with pytest.raises(EngineStateError):
        optimizer.prepared


def test_seed_lineups_count_but_are_not_reproduced():
    seed_players = [f"{team}_{position}" for team, position in zip(("HLE", "HLE", "DK", "DK", "GEN", "HLE"), POSITIONS)]
    seed = {"id": "S1", "cpt": {"id": "HLE_MID"}, "players": [{"id": player_id} for player_id in seed_players]}
    seed_signature = ("HLE_MID", tuple(sorted(seed_players)))
    settings = {"players": [{"id": "HLE_MID", "max": 50}]}

    result = optimize(_sample_players(), 4, exposure_settings=settings, seed_lineups=[seed], config=_config())

    assert all(_signature(record) != seed_signature for record in result.lineups)
    # the seed already uses HLE_MID once out of five planned lineups
    with_hle_mid = sum(1 for record in result.lineups if "HLE_MID" in record.player_ids)
    assert with_hle_mid <= 2


def test_field_roi_mode():
    result = optimize(_sample_players(), 4, config=_config(roi_mode="field", field_size=50))

    assert len(result.lineups) == 4
    for record in result.lineups:
        assert 0.0 <= record.stats.cash_rate <= 100.0
        assert record.to_payload()["roi"] == record.stats.roi


def test_genetic_run_reports_evolution():
    config = _config(genetic=GeneticConfig(population_size=12, generations=3))
    result = optimize(_sample_players(), 5, mode="genetic", config=config)

    assert len(result.lineups) == 5
    assert [record.lineup_id for record in result.lineups] == ["L001", "L002", "L003", "L004", "L005"]
    assert result.lineups[0].name == "Genetic Lineup 1"
    assert result.summary.algorithm == "genetic"
    assert result.evolution is not None
    assert result.evolution.generations == 3
    assert len(result.evolution.fitness_history) == 3

    payload = result.to_payload()
    assert payload["summary"]["algorithm"] == "genetic"
    assert "geneticFitness" in payload["lineups"][0]
    assert payload["evolution"]["fitnessHistory"][0]["generation"] == 1
