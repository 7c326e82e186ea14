import pytest

from nexusopt.models import Lineup, LineupSlot, Player
from nexusopt.optimizer.errors import InvariantViolation
from nexusopt.optimizer.exposure import Bounds, ConstraintSet, ExposureTracker, count_limit
from nexusopt.optimizer.pool import PlayerPool


POSITIONS = ("TOP", "JNG", "MID", "ADC", "SUP", "TEAM")


def _player(team: str, position: str, salary: int = 6000) -> Player:
    return Player(
        player_id=f"{team}_{position}",
        name=f"{team} {position}",
        position=position,
        team=team,
        salary=salary,
        projection=40.0,
        ownership=0.2,
        std_dev=12.0,
    )


def _sample_pool() -> PlayerPool:
    return PlayerPool([_player(team, position) for team in ("T1", "GEN", "KT") for position in POSITIONS])


def _lineup(lineup_id: str, captain: str, picks: dict[str, str]) -> Lineup:
    """``picks`` maps each position to the team supplying it."""

    return Lineup(
        lineup_id=lineup_id,
        captain=LineupSlot(captain, "CPT", 9000),
        players=tuple(LineupSlot(f"{picks[position]}_{position}", position, 6000) for position in POSITIONS),
    )


def _t1_four_stack() -> Lineup:
    # captain T1_MID plus T1 TOP/JNG/TEAM: four T1 players
    picks = {"TOP": "T1", "JNG": "T1", "MID": "GEN", "ADC": "GEN", "SUP": "KT", "TEAM": "T1"}
    return _lineup("L001", "T1_MID", picks)


def _gen_three_stack() -> Lineup:
    picks = {"TOP": "KT", "JNG": "GEN", "MID": "KT", "ADC": "GEN", "SUP": "T1", "TEAM": "KT"}
    return _lineup("L002", "GEN_TOP", picks)


def test_bounds_floor_and_ceiling_use_target():
    assert Bounds(min=0.1, max=0.5).floor == 0.1
    assert Bounds(min=0.1, max=0.5).ceiling == 0.5
    assert Bounds(min=0.1, max=0.5, target=0.27).floor == 0.27
    assert Bounds(min=0.1, max=0.5, target=0.27).ceiling == 0.27
    assert Bounds(min=0.3, max=0.5, target=0.0).floor == 0.3


@pytest.mark.parametrize(
    "fraction, planned, expected",
    [(0.27, 20, 6), (0.25, 20, 5), (0.05, 20, 1), (0.0, 20, 0), (0.5, 3, 2)],
)
def test_count_limit(fraction, planned, expected):
    assert count_limit(fraction, planned) == expected


def test_record_counts_captain_toward_stacks():
    pool = _sample_pool()
    tracker = ExposureTracker(pool, ConstraintSet())
    tracker.record(_t1_four_stack())

    assert tracker.total == 1
    assert tracker.stacks[("T1", 4)] == 1
    assert tracker.stacks[("GEN", 2)] == 1
    assert tracker.stacks[("KT", 1)] == 1
    assert tracker.teams == {"T1": 1, "GEN": 1, "KT": 1}
    assert tracker.players["T1_MID"] == 1
    assert tracker.positions["CPT"] == 1
    assert tracker.player_exposure("T1_MID") == 1.0
    assert tracker.stack_exposure("T1", 3) == 0.0


def test_record_then_remove_restores_snapshot():
    pool = _sample_pool()
    tracker = ExposureTracker(pool, ConstraintSet())
    tracker.record(_gen_three_stack())
    before = tracker.snapshot()

    lineup = _t1_four_stack()
    tracker.record(lineup)
    tracker.remove(lineup)

    assert tracker.snapshot() == before
    tracker.verify([_gen_three_stack()])


def test_remove_from_empty_ledger_raises():
    tracker = ExposureTracker(_sample_pool(), ConstraintSet())
    with pytest.raises(InvariantViolation):
        tracker.remove(_t1_four_stack())


def test_verify_detects_divergence():
    pool = _sample_pool()
    tracker = ExposureTracker.recount(pool, ConstraintSet(), [_t1_four_stack()])
    with pytest.raises(InvariantViolation):
        tracker.verify([_t1_four_stack(), _gen_three_stack()])


def test_needs_more_is_tri_state():
    pool = _sample_pool()
    constraints = ConstraintSet(stacks={("T1", 4): Bounds(min=0.2, max=0.6, target=0.3)})
    tracker = ExposureTracker(pool, constraints)

    assert tracker.stack_needs_more("T1", 4) is True

    tracker.record(_t1_four_stack())
    assert tracker.stack_needs_more("T1", 4) is False

    tracker.record(_gen_three_stack())
    tracker.record(_gen_three_stack())
    # 1/3 sits between the 0.3 floor and the 0.6 max
    assert tracker.stack_needs_more("T1", 4) is None
    assert tracker.stack_deficit("T1", 4) == pytest.approx(0.3 - 1 / 3)


def test_saturation_uses_planned_total():
    pool = _sample_pool()
    constraints = ConstraintSet(
        players={"T1_MID": Bounds(max=0.5)},
        stacks={("T1", 4): Bounds(max=1.0, target=0.0)},
    )
    tracker = ExposureTracker(pool, constraints, planned_total=4)

    assert tracker.stack_saturated("T1", 4)
    assert not tracker.player_saturated("T1_MID")

    tracker.record(_t1_four_stack())
    tracker.record(_t1_four_stack())
    assert tracker.player_saturated("T1_MID")
    violations = tracker.cap_violations(_t1_four_stack())
    assert "player T1_MID at max exposure" in violations
    assert "T1 4-stack at max exposure" in violations
    assert tracker.cap_violations(_gen_three_stack()) == []


def test_weight_adjustment_has_floor():
    assert ExposureTracker.weight_adjustment(0.5, 0.2) == pytest.approx(1.3)
    assert ExposureTracker.weight_adjustment(0.0, 1.0) == pytest.approx(0.1)
