import pytest

from nexusopt.config import captain_salary, get_rules, get_rules_by_key, iter_rules


def test_get_rules_handles_site_and_sport_uppercase():
    rules = get_rules("dk_captain", "lol")
    assert rules.site == "DK_CAPTAIN"
    assert rules.salary_cap == 50_000
    assert rules.roster_size == 7


def test_get_rules_by_key_string_alias():
    rules = get_rules_by_key("DK_CAPTAIN_LOL")
    assert rules.captain_slot == "CPT"
    assert get_rules_by_key(("DK_CAPTAIN", "LOL")) is rules


def test_get_rules_missing_raises():
    with pytest.raises(KeyError):
        get_rules("FD", "LOL")


def test_fill_order_skips_captain_slot():
    rules = get_rules()
    assert rules.fill_order == ("TOP", "JNG", "MID", "ADC", "SUP", "TEAM")
    assert "SUP" not in rules.captain_positions
    assert "TEAM" not in rules.captain_positions
    assert list(iter_rules()) == [rules]


@pytest.mark.parametrize(
    "base, expected",
    [(6000, 9000), (6003, 9005), (6001, 9002), (7333, 11000), (0, 0)],
)
def test_captain_salary_rounds_half_up(base, expected):
    assert captain_salary(base) == expected
    assert get_rules().captain_salary(base) == expected
