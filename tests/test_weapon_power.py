import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from app.services import scoring


def _weapon(**overrides):
    values = {
        "name": "Bolt rifle",
        "qty": 1,
        "group": "",
        "attacks": 2,
        "hit": 3,
        "strength": 4,
        "ap": 0,
        "damage": 1,
        "sustained": 0,
        "crit": 6,
        "lethal": False,
        "devastating": False,
        "twin_linked": False,
        "torrent": False,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def test_bolt_rifle_profile():
    weapon = _weapon(attacks=2, hit=3, strength=4, ap=-1, damage=1)

    assert scoring.weapon_power(weapon) == pytest.approx(2 * (4 / 6) * 1.1)


def test_ap_sign_is_ignored():
    negative = scoring.weapon_power(_weapon(ap=-2))
    positive = scoring.weapon_power(_weapon(ap=2))

    assert negative == pytest.approx(positive)
    assert scoring.weapon_profile(_weapon(ap=-2)).ap_factor == pytest.approx(1.4)


def test_torrent_always_hits():
    weapon = _weapon(hit=6, torrent=True)

    assert scoring.weapon_profile(weapon).hit_probability == 1.0
    assert scoring.weapon_power(weapon) == pytest.approx(2 * 0.8)


def test_sustained_hits_add_crit_share():
    weapon = _weapon(attacks=6, hit=4, sustained=1)

    assert scoring.weapon_profile(weapon).expected_hits == pytest.approx(4.0)
    assert scoring.weapon_power(weapon) == pytest.approx(3.2)


def test_lower_crit_threshold_boosts_sustained_hits():
    weapon = _weapon(attacks=6, hit=4, sustained=1, crit=5)

    assert scoring.weapon_profile(weapon).expected_hits == pytest.approx(5.0)


def test_unit_sustained_bonus_uses_the_larger_value():
    weapon = _weapon(attacks=6, hit=4, sustained=1)
    unit = SimpleNamespace(modifiers={"sustained": 2})

    profile = scoring.weapon_profile(weapon, unit)

    assert profile.sustained == 2
    assert profile.score == pytest.approx(4.0)


def test_keywords_multiply():
    weapon = _weapon(lethal=True, devastating=True, twin_linked=True)
    plain = scoring.weapon_power(_weapon())

    assert scoring.keyword_multiplier(weapon) == pytest.approx(1.25 * 1.4 * 1.25)
    assert scoring.weapon_power(weapon) == pytest.approx(plain * 2.1875)


def test_strength_scales_sublinearly():
    weapon = _weapon(strength=8)

    assert scoring.weapon_profile(weapon).strength_factor == pytest.approx(2 ** 0.9)


def test_fractional_damage_is_kept():
    weapon = _weapon(damage=3.5, attacks=1, hit=2)

    assert scoring.weapon_power(weapon) == pytest.approx((5 / 6) * 0.8 * 3.5)


def test_hit_bonus_modifier_does_not_change_weapon_power():
    # The adjusted hit roll is reported, the probability still uses the raw roll.
    weapon = _weapon(hit=4)
    unit = SimpleNamespace(modifiers={"hit": 1})

    profile = scoring.weapon_profile(weapon, unit)

    assert profile.adjusted_hit == 3
    assert profile.score == pytest.approx(scoring.weapon_power(weapon))


def test_adjusted_hit_never_drops_below_two():
    unit = SimpleNamespace(modifiers={"hit": 3})

    assert scoring.weapon_profile(_weapon(hit=3), unit).adjusted_hit == 2


def test_unit_keyword_grants_are_not_applied_to_weapons():
    weapon = _weapon()
    unit = SimpleNamespace(modifiers={"lethal": True, "devastating": True})

    assert scoring.weapon_power(weapon, unit) == pytest.approx(scoring.weapon_power(weapon))


def test_weapon_without_unit_uses_empty_modifiers():
    assert scoring.weapon_power(_weapon(), None) == pytest.approx(2 * (4 / 6) * 0.8)


def test_missing_fields_fall_back_to_defaults():
    # One attack hitting on 3+, S4, AP0, D1.
    assert scoring.weapon_power(SimpleNamespace()) == pytest.approx((4 / 6) * 0.8)


def test_string_flags_are_parsed():
    weapon = _weapon(torrent="true", lethal="no")

    profile = scoring.weapon_profile(weapon)

    assert profile.hit_probability == 1.0
    assert profile.keyword_multiplier == 1.0


def test_weapon_power_works_on_mappings():
    weapon = {"attacks": 2, "hit": 3, "strength": 4, "ap": -1, "damage": 1}

    assert scoring.weapon_power(weapon) == pytest.approx(2 * (4 / 6) * 1.1)


@pytest.mark.parametrize(
    "overrides",
    [
        {"attacks": -4},
        {"strength": -2},
        {"damage": -1},
        {"hit": 9, "crit": 1, "sustained": -3},
    ],
)
def test_weapon_power_is_never_negative(overrides):
    assert scoring.weapon_power(_weapon(**overrides)) >= 0
