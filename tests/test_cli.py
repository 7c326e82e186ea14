import json

import pytest

from nexusopt.cli import main
from nexusopt.config_loader import OptimizerProfile


POSITIONS = ("TOP", "JNG", "MID", "ADC", "SUP", "TEAM")
TEAMS = ("T1", "GEN", "KT", "HLE")


def _write_players(path) -> None:
    players = [
        {
            "id": f"{team}_{position}",
            "name": f"{team} {position}",
            "position": position,
            "team": team,
            "opponent": {"T1": "GEN", "GEN": "T1", "KT": "HLE", "HLE": "KT"}[team],
            "salary": 6000 + 100 * pos_idx,
            "projectedPoints": 32 + team_idx + pos_idx,
            "ownership": 18,
        }
        for team_idx, team in enumerate(TEAMS)
        for pos_idx, position in enumerate(POSITIONS)
    ]
    path.write_text(json.dumps(players), encoding="utf-8")


def test_cli_writes_lineups_and_profile(tmp_path, capsys):
    players = tmp_path / "players.json"
    output = tmp_path / "out.json"
    profile = tmp_path / "profile.json"
    _write_players(players)

    main(
        [
            str(players),
            "--lineups",
            "3",
            "--iterations",
            "200",
            "--seed",
            "9",
            "--output",
            str(output),
            "--save-profile",
            str(profile),
        ]
    )

    payload = json.loads(output.read_text(encoding="utf-8"))
    assert len(payload["lineups"]) == 3
    assert payload["summary"]["seed"] == 9
    assert "Built 3/3 simulation lineups" in capsys.readouterr().out

    saved = OptimizerProfile.load(profile)
    assert saved.config_overrides == {"iterations": 200, "seed": 9}


def test_cli_profile_values_yield_to_flags(tmp_path, capsys):
    players = tmp_path / "players.json"
    output = tmp_path / "out.json"
    profile = tmp_path / "profile.json"
    _write_players(players)
    OptimizerProfile({"iterations": 150, "seed": 3, "genetic": {"population_size": 6, "generations": 2}}).save(profile)

    main(
        [
            str(players),
            "--mode",
            "genetic",
            "--lineups",
            "2",
            "--seed",
            "4",
            "--load-profile",
            str(profile),
            "--output",
            str(output),
        ]
    )

    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["summary"]["seed"] == 4
    assert payload["evolution"]["generations"] == 2
    assert "Loaded optimizer profile" in capsys.readouterr().out


def test_cli_rejects_bad_input(tmp_path):
    players = tmp_path / "players.json"
    players.write_text(json.dumps({"not": "a list"}), encoding="utf-8")
    with pytest.raises(SystemExit):
        main([str(players), "--output", str(tmp_path / "out.json")])

    missing = tmp_path / "missing.json"
    with pytest.raises(SystemExit):
        main([str(missing)])


def test_cli_rejects_exposures_that_are_not_an_object(tmp_path):
    players = tmp_path / "players.json"
    exposures = tmp_path / "exposures.json"
    _write_players(players)
    exposures.write_text(json.dumps([{"team": "T1", "max": 50}]), encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        main([str(players), "--exposures", str(exposures)])
    assert "JSON object of exposure settings" in str(excinfo.value)
