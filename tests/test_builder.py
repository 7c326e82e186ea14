import random

import pytest

from nexusopt.config import get_rules
from nexusopt.optimizer.builder import BuildParams, LineupBuilder, weighted_choice
from nexusopt.optimizer.correlation import CorrelationModel
from nexusopt.optimizer.exposure import ExposureTracker
from nexusopt.optimizer.preprocess import PreparedInput, preprocess
from nexusopt.optimizer.validator import LineupValidator


POSITIONS = ("TOP", "JNG", "MID", "ADC", "SUP", "TEAM")
TEAMS = ("T1", "GEN", "KT", "HLE", "DK")


def _sample_records() -> list[dict]:
    return [
        {
            "id": f"{team}_{position}",
            "name": f"{team} {position}",
            "position": position,
            "team": team,
            "salary": 6000 + 100 * pos_idx,
            "projectedPoints": 30 + team_idx + 2 * pos_idx,
            "ownership": 12 + 3 * team_idx,
        }
        for team_idx, team in enumerate(TEAMS)
        for pos_idx, position in enumerate(POSITIONS)
    ]


def _builder(prepared: PreparedInput, seed: int = 1, planned_total: int = 0) -> LineupBuilder:
    tracker = ExposureTracker(prepared.pool, prepared.constraints, planned_total)
    return LineupBuilder(prepared.pool, get_rules(), tracker, CorrelationModel(prepared.pool.players), random.Random(seed))


def test_weighted_choice_edge_cases():
    rng = random.Random(0)
    assert weighted_choice(rng, ["only"], [0.0], 0.3) == "only"
    assert weighted_choice(rng, ["a", "b"], [0.0, 0.0], 0.3) in {"a", "b"}
    with pytest.raises(ValueError):
        weighted_choice(rng, [], [], 0.3)


def test_weighted_choice_without_randomness_ignores_zero_weights():
    rng = random.Random(5)
    picks = {weighted_choice(rng, ["a", "b"], [0.0, 1.0], 0.0) for _ in range(200)}
    assert picks == {"b"}


def test_weighted_choice_randomness_flattens_distribution():
    rng = random.Random(11)
    picks = [weighted_choice(rng, ["strong", "weak"], [10.0, 1.0], 0.9) for _ in range(500)]
    assert 0 < picks.count("weak") < picks.count("strong")


def test_builder_produces_valid_lineups():
    prepared = preprocess(_sample_records())
    validator = LineupValidator(prepared.pool, get_rules())
    rules = get_rules()

    for seed in range(25):
        lineup = _builder(prepared, seed).build(f"L{seed + 1:03}", name=f"Optimized Lineup {seed + 1}")
        result = validator.validate(lineup)
        assert result.valid, result.reasons
        assert lineup.salary <= rules.salary_cap
        assert prepared.pool.get(lineup.captain.player_id).position in rules.captain_positions
        assert [slot.role for slot in lineup.players] == list(POSITIONS)


def test_builder_is_deterministic_for_a_seed():
    prepared = preprocess(_sample_records())
    first = _builder(prepared, 9).build("L001")
    second = _builder(prepared, 9).build("L001")
    assert first == second


def test_stack_floor_forces_exact_stack_size():
    settings = {"teams": [{"team": "KT", "stackSize": 4, "min": 100}]}
    prepared = preprocess(_sample_records(), settings)

    for seed in range(20):
        lineup = _builder(prepared, seed).build("L001")
        assert prepared.pool.team_counts(lineup)["KT"] == 4
        assert prepared.pool.get(lineup.captain.player_id).team == "KT"


def test_saturated_stack_size_caps_the_team():
    settings = {"teams": [{"team": "KT", "stackSize": 4, "max": 0}]}
    prepared = preprocess(_sample_records(), settings)
    builder = _builder(prepared, 3, planned_total=10)

    assert builder.team_cap("KT") == 3
    assert builder.team_cap("T1") == 4
    for idx in range(20):
        lineup = builder.build(f"L{idx + 1:03}")
        assert prepared.pool.team_counts(lineup)["KT"] <= 3


def test_large_stack_bias_builds_four_stacks():
    prepared = preprocess(_sample_records())
    for seed in range(10):
        lineup = _builder(prepared, seed).build("L001", BuildParams(stack_bias="large"))
        assert max(prepared.pool.team_counts(lineup).values()) == 4


def test_team_minimum_steers_stack_team_choice():
    settings = {"teams": [{"team": "DK", "min": 100}]}
    prepared = preprocess(_sample_records(), settings)
    builder = _builder(prepared, 2)
    assert all(builder.select_stack_team() == "DK" for _ in range(10))
