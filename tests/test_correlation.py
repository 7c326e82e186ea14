import numpy as np
import pytest

from nexusopt.config import CorrelationConfig
from nexusopt.models import Player
from nexusopt.optimizer.correlation import CorrelationModel, pair_correlation, pair_key


def _player(player_id: str, team: str, position: str) -> Player:
    return Player(
        player_id=player_id,
        name=player_id,
        position=position,
        team=team,
        salary=6000,
        projection=30.0,
        std_dev=10.0,
    )


def _sample_players() -> list[Player]:
    return [
        _player("faker", "T1", "MID"),
        _player("oner", "T1", "JNG"),
        _player("t1", "T1", "TEAM"),
        _player("chovy", "GEN", "MID"),
    ]


def test_pair_key_is_order_independent():
    assert pair_key("b", "a") == ("a", "b")
    assert pair_key("a", "b") == ("a", "b")


def test_pair_correlation_by_team_and_position():
    config = CorrelationConfig()
    faker, oner, _, chovy = _sample_players()
    sub = _player("poby", "T1", "MID")

    assert pair_correlation(faker, oner, config) == pytest.approx(0.65)
    assert pair_correlation(faker, sub, config) == pytest.approx(0.85)
    assert pair_correlation(faker, chovy, config) == pytest.approx(-0.15)


def test_pair_correlation_is_clamped():
    config = CorrelationConfig(same_team=0.9, same_team_same_position=0.5)
    assert pair_correlation(_player("a", "T1", "MID"), _player("b", "T1", "MID"), config) == 1.0


def test_model_is_symmetric_with_unit_diagonal():
    model = CorrelationModel(_sample_players())

    assert len(model) == 6
    assert model.get("faker", "faker") == 1.0
    assert model.get("faker", "oner") == model.get("oner", "faker")

    matrix = model.matrix(["faker", "oner", "chovy"])
    assert matrix.shape == (3, 3)
    assert np.allclose(matrix, matrix.T)
    assert np.allclose(np.diag(matrix), 1.0)
    assert matrix[0, 2] == pytest.approx(-0.15)
