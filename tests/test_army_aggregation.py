import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from app.services import scoring


def _torrent_weapon(name, attacks, group="", qty=1):
    # Torrent, S4, AP0, D1: power is attacks * 0.8.
    return SimpleNamespace(
        name=name,
        qty=qty,
        group=group,
        attacks=attacks,
        hit=3,
        strength=4,
        ap=0,
        damage=1,
        sustained=0,
        crit=6,
        lethal=False,
        devastating=False,
        twin_linked=False,
        torrent=True,
    )


def _unit(name="Squad", weapons=None, **overrides):
    values = {
        "name": name,
        "points": 100,
        "models": 5,
        "count": 1,
        "toughness": 4,
        "save": 3,
        "invulnerable": 7,
        "feel_no_pain": 7,
        "wounds": 2,
        "leadership": 6,
        "objective_control": 2,
        "modifiers": None,
        "weapons": weapons or [],
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def test_tactical_score_example():
    assert scoring.tactical_score(_unit(objective_control=2, leadership=6)) == pytest.approx(26.0)


def test_tactical_score_defaults():
    # OC 0, Ld 7.
    assert scoring.tactical_score(SimpleNamespace()) == pytest.approx(16.0)


@pytest.mark.parametrize("leadership", [11, 12, 20])
def test_tactical_score_never_negative(leadership):
    unit = _unit(objective_control=0, leadership=leadership)

    assert scoring.tactical_score(unit) == 0.0


def test_negative_objective_control_is_floored():
    unit = _unit(objective_control=-3, leadership=11)

    assert scoring.tactical_score(unit) == 0.0


def test_grouped_weapons_count_only_the_best():
    unit = _unit(
        weapons=[
            _torrent_weapon("Plasma", 12.5, group="main"),
            _torrent_weapon("Melta", 18.75, group="main"),
        ]
    )

    entries = scoring.weapon_scores(unit)

    assert [entry.counted for entry in entries] == [False, True]
    assert scoring.unit_offense_score(unit) == pytest.approx(15.0)


def test_group_tie_keeps_the_first_weapon():
    unit = _unit(
        weapons=[
            _torrent_weapon("Left", 5, group="arm"),
            _torrent_weapon("Right", 5, group="arm"),
        ]
    )

    entries = scoring.weapon_scores(unit)

    assert [entry.counted for entry in entries] == [True, False]
    assert scoring.unit_offense_score(unit) == pytest.approx(4.0)


def test_group_comparison_uses_quantity():
    unit = _unit(
        weapons=[
            _torrent_weapon("Pistols", 2, group="sidearm", qty=5),
            _torrent_weapon("Cannon", 5, group="sidearm"),
        ]
    )

    assert scoring.unit_offense_score(unit) == pytest.approx(8.0)


def test_ungrouped_and_grouped_weapons_add_up():
    unit = _unit(
        weapons=[
            _torrent_weapon("Knife", 5),
            _torrent_weapon("Plasma", 12.5, group="main"),
            _torrent_weapon("Melta", 18.75, group="main"),
            _torrent_weapon("Flamer", 2.5, group="secondary"),
            _torrent_weapon("Grenade", 5, group="secondary"),
        ]
    )

    assert scoring.unit_offense_score(unit) == pytest.approx(4.0 + 15.0 + 4.0)


def test_blank_group_names_are_ungrouped():
    unit = _unit(
        weapons=[
            _torrent_weapon("A", 5, group="  "),
            _torrent_weapon("B", 5, group=None),
        ]
    )

    assert scoring.unit_offense_score(unit) == pytest.approx(8.0)


def test_unit_without_weapons_has_no_offense():
    assert scoring.unit_offense_score(_unit(weapons=[])) == 0.0


def test_army_totals_multiply_by_quantity_and_models():
    unit = _unit(weapons=[_torrent_weapon("Knife", 5)], count=2)

    result = scoring.aggregate_army([unit])

    assert result.total_points == 200
    assert result.total_offense == pytest.approx(8.0)
    assert result.total_defense == pytest.approx(2.6 * 5 * 2)
    assert result.total_tactical == pytest.approx(26.0 * 5 * 2)


def test_zero_quantity_unit_is_listed_but_not_counted():
    active = _unit(name="Active", weapons=[_torrent_weapon("Knife", 5)])
    reserve = _unit(name="Reserve", weapons=[_torrent_weapon("Cannon", 50)], count=0)

    with_reserve = scoring.aggregate_army([active, reserve])
    without_reserve = scoring.aggregate_army([active])

    assert [unit.name for unit in with_reserve.units] == ["Active", "Reserve"]
    assert with_reserve.units[1].active is False
    assert with_reserve.total_points == without_reserve.total_points
    assert with_reserve.total_offense == pytest.approx(without_reserve.total_offense)
    assert with_reserve.total_defense == pytest.approx(without_reserve.total_defense)
    assert with_reserve.total_tactical == pytest.approx(without_reserve.total_tactical)


def test_negative_quantity_is_treated_as_zero():
    unit = _unit(count=-2)

    result = scoring.aggregate_army([unit])

    assert result.units[0].quantity == 0
    assert result.total_points == 0


def test_missing_quantity_defaults_to_one():
    unit = _unit()
    del unit.count

    assert scoring.aggregate_army([unit]).total_points == 100


def test_empty_army_has_zero_totals():
    result = scoring.aggregate_army([])

    assert result.total_points == 0
    assert result.total_offense == 0.0
    assert result.units == []


def test_unit_scores_keep_list_order_and_index():
    units = [_unit(name=name) for name in ("First", "Second", "Third")]

    result = scoring.aggregate_army(units)

    assert [(entry.index, entry.name) for entry in result.units] == [
        (0, "First"),
        (1, "Second"),
        (2, "Third"),
    ]


def test_aggregation_is_deterministic():
    units = [
        _unit(weapons=[_torrent_weapon("Plasma", 3.5, group="main")], count=3),
        _unit(toughness=10, save=2, wounds=12, feel_no_pain=6, models=1),
    ]

    first = scoring.aggregate_army(units)
    second = scoring.aggregate_army(units)

    assert first == second


def test_aggregation_does_not_mutate_units():
    unit = _unit(weapons=[_torrent_weapon("Knife", 5)], count=2)
    before = dict(vars(unit))

    scoring.aggregate_army([unit])

    assert vars(unit) == before
