"""Offense, defense and tactical scores for army list units."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence


NO_ROLL = 7

# Ordered (upper bound, factor) tiers; the first bound >= value wins.
SAVE_FACTORS = ((2, 1.8), (3, 1.3), (4, 1.0), (5, 0.7))
SAVE_FACTOR_NONE = 0.5

INVULNERABLE_FACTORS = ((4, 1.4), (5, 1.2), (6, 1.1))
INVULNERABLE_FACTOR_NONE = 1.0
# A granted invulnerable save only replaces a native one worse than this.
INVULNERABLE_GRANT_CEILING = 5

# Feel-no-pain is matched exactly, not by tier.
FEEL_NO_PAIN_FACTORS = {4: 1.8, 5: 1.4, 6: 1.15}

MINUS_ONE_TO_WOUND_FACTOR = 1.2

TOUGHNESS_BASELINE = 4.0
TOUGHNESS_EXPONENT = 1.2
STRENGTH_BASELINE = 4.0
STRENGTH_EXPONENT = 0.9

AP_BASE = 0.8
AP_STEP = 0.3

LETHAL_HITS_MULTIPLIER = 1.25
DEVASTATING_WOUNDS_MULTIPLIER = 1.4
TWIN_LINKED_MULTIPLIER = 1.25

OC_WEIGHT = 3.0
LEADERSHIP_WEIGHT = 4.0
LEADERSHIP_CEILING = 11

DEFAULT_CRIT = 6


def _raw(source: Any, name: str) -> Any:
    if source is None:
        return None
    if isinstance(source, Mapping):
        return source.get(name)
    return getattr(source, name, None)


def _to_float(value: Any, default: float) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(numeric):
        return default
    return numeric


def _to_int(value: Any, default: int) -> int:
    numeric = _to_float(value, float(default))
    return int(numeric)


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().casefold() in {"1", "true", "yes", "on"}
    return bool(value)


def _number(source: Any, name: str, default: float, minimum: float | None = None) -> float:
    value = _to_float(_raw(source, name), default)
    if minimum is not None and value < minimum:
        value = minimum
    return value


def _roll(source: Any, name: str, default: int = NO_ROLL) -> int:
    return clamp_roll(_to_int(_raw(source, name), default))


def clamp_roll(value: int) -> int:
    return max(2, min(NO_ROLL, int(value)))


def lookup_tier(table: Sequence[tuple[int, float]], value: int, default: float) -> float:
    for bound, factor in table:
        if value <= bound:
            return factor
    return default


@dataclass(frozen=True)
class Modifiers:
    hit: int = 0
    sustained: int = 0
    save: int = 0
    invulnerable: int = NO_ROLL
    feel_no_pain: int = NO_ROLL
    lethal: bool = False
    devastating: bool = False
    minus_wound: bool = False

    @classmethod
    def from_source(cls, source: Any) -> "Modifiers":
        if isinstance(source, cls):
            return source
        if source is None:
            return cls()
        return cls(
            hit=_to_int(_raw(source, "hit"), 0),
            sustained=max(_to_int(_raw(source, "sustained"), 0), 0),
            save=_to_int(_raw(source, "save"), 0),
            invulnerable=_roll(source, "invulnerable"),
            feel_no_pain=_roll(source, "feel_no_pain"),
            lethal=_to_bool(_raw(source, "lethal")),
            devastating=_to_bool(_raw(source, "devastating")),
            minus_wound=_to_bool(_raw(source, "minus_wound")),
        )


def unit_modifiers(unit: Any) -> Modifiers:
    return Modifiers.from_source(_raw(unit, "modifiers"))


def unit_quantity(unit: Any) -> int:
    return max(_to_int(_raw(unit, "count"), 1), 0)


def unit_model_count(unit: Any) -> int:
    return max(_to_int(_raw(unit, "models"), 1), 1)


def unit_points(unit: Any) -> int:
    return max(_to_int(_raw(unit, "points"), 0), 0)


def unit_weapons(unit: Any) -> list[Any]:
    weapons = _raw(unit, "weapons")
    return list(weapons or [])


def weapon_group(weapon: Any) -> str:
    value = _raw(weapon, "group")
    return str(value).strip() if value else ""


@dataclass(frozen=True)
class DefenseProfile:
    toughness_factor: float
    effective_save: int
    save_factor: float
    effective_invulnerable: int
    effective_feel_no_pain: int
    feel_no_pain_factor: float
    score: float


def effective_invulnerable(native: int, granted: int) -> int:
    if granted < native and native > INVULNERABLE_GRANT_CEILING:
        return granted
    return native


def defense_profile(unit: Any) -> DefenseProfile:
    modifiers = unit_modifiers(unit)
    toughness = _number(unit, "toughness", TOUGHNESS_BASELINE, minimum=1.0)
    wounds = _number(unit, "wounds", 1.0, minimum=0.0)
    save = _roll(unit, "save")

    toughness_factor = math.pow(toughness / TOUGHNESS_BASELINE, TOUGHNESS_EXPONENT)

    # Reported only; the tier lookup keys on the unmodified save.
    effective_save = clamp_roll(save - modifiers.save)
    save_factor = lookup_tier(SAVE_FACTORS, save, SAVE_FACTOR_NONE)

    invulnerable = effective_invulnerable(
        _roll(unit, "invulnerable"), modifiers.invulnerable
    )
    save_factor *= lookup_tier(
        INVULNERABLE_FACTORS, invulnerable, INVULNERABLE_FACTOR_NONE
    )
    if modifiers.minus_wound:
        save_factor *= MINUS_ONE_TO_WOUND_FACTOR

    feel_no_pain = min(_roll(unit, "feel_no_pain"), modifiers.feel_no_pain)
    feel_no_pain_factor = FEEL_NO_PAIN_FACTORS.get(feel_no_pain, 1.0)

    score = wounds * toughness_factor * save_factor * feel_no_pain_factor
    return DefenseProfile(
        toughness_factor=toughness_factor,
        effective_save=effective_save,
        save_factor=save_factor,
        effective_invulnerable=invulnerable,
        effective_feel_no_pain=feel_no_pain,
        feel_no_pain_factor=feel_no_pain_factor,
        score=round(score, 1),
    )


def defense_score(unit: Any) -> float:
    return defense_profile(unit).score


def tactical_score(unit: Any) -> float:
    objective_control = _number(unit, "objective_control", 0.0, minimum=0.0)
    leadership = min(
        max(_to_int(_raw(unit, "leadership"), NO_ROLL), 2), LEADERSHIP_CEILING
    )
    score = objective_control * OC_WEIGHT + (LEADERSHIP_CEILING - leadership) * LEADERSHIP_WEIGHT
    return round(score, 1)


@dataclass(frozen=True)
class WeaponPower:
    adjusted_hit: int
    hit_probability: float
    sustained: int
    expected_hits: float
    strength_factor: float
    ap_factor: float
    keyword_multiplier: float
    score: float


def keyword_multiplier(weapon: Any) -> float:
    multiplier = 1.0
    if _to_bool(_raw(weapon, "lethal")):
        multiplier *= LETHAL_HITS_MULTIPLIER
    if _to_bool(_raw(weapon, "devastating")):
        multiplier *= DEVASTATING_WOUNDS_MULTIPLIER
    if _to_bool(_raw(weapon, "twin_linked")):
        multiplier *= TWIN_LINKED_MULTIPLIER
    return multiplier


def weapon_profile(weapon: Any, unit: Any = None) -> WeaponPower:
    modifiers = unit_modifiers(unit)
    hit = _roll(weapon, "hit", 3)

    # The hit bonus is reported but does not feed the hit probability.
    adjusted_hit = max(hit - modifiers.hit, 2)
    hit_probability = (NO_ROLL - hit) / 6.0
    if _to_bool(_raw(weapon, "torrent")):
        hit_probability = 1.0

    crit = _roll(weapon, "crit", DEFAULT_CRIT)
    crit_probability = (NO_ROLL - crit) / 6.0
    sustained = max(_to_int(_raw(weapon, "sustained"), 0), modifiers.sustained, 0)
    sustained_bonus = crit_probability * sustained

    attacks = _number(weapon, "attacks", 1.0, minimum=0.0)
    expected_hits = attacks * (hit_probability + sustained_bonus)

    strength = _number(weapon, "strength", STRENGTH_BASELINE, minimum=0.0)
    strength_factor = math.pow(strength / STRENGTH_BASELINE, STRENGTH_EXPONENT)
    ap_factor = AP_BASE + AP_STEP * abs(_to_int(_raw(weapon, "ap"), 0))
    damage = _number(weapon, "damage", 1.0, minimum=0.0)
    multiplier = keyword_multiplier(weapon)

    score = expected_hits * strength_factor * ap_factor * damage * multiplier
    return WeaponPower(
        adjusted_hit=adjusted_hit,
        hit_probability=hit_probability,
        sustained=sustained,
        expected_hits=expected_hits,
        strength_factor=strength_factor,
        ap_factor=ap_factor,
        keyword_multiplier=multiplier,
        score=score,
    )


def weapon_power(weapon: Any, unit: Any = None) -> float:
    return weapon_profile(weapon, unit).score


@dataclass
class WeaponScore:
    name: str
    qty: int
    group: str
    single: float
    total: float
    counted: bool = True


@dataclass
class UnitScores:
    index: int
    name: str
    points: int
    models: int
    quantity: int
    offense: float
    defense: float
    tactical: float
    weapons: list[WeaponScore] = field(default_factory=list)

    @property
    def active(self) -> bool:
        return self.quantity > 0

    @property
    def subtotal_points(self) -> int:
        return self.points * self.quantity


@dataclass
class ArmyScores:
    total_points: int = 0
    total_offense: float = 0.0
    total_defense: float = 0.0
    total_tactical: float = 0.0
    units: list[UnitScores] = field(default_factory=list)


def weapon_scores(unit: Any) -> list[WeaponScore]:
    entries: list[WeaponScore] = []
    best_in_group: dict[str, WeaponScore] = {}
    for weapon in unit_weapons(unit):
        qty = max(_to_int(_raw(weapon, "qty"), 1), 0)
        single = weapon_power(weapon, unit)
        group = weapon_group(weapon)
        entry = WeaponScore(
            name=str(_raw(weapon, "name") or ""),
            qty=qty,
            group=group,
            single=single,
            total=single * qty,
            counted=not group,
        )
        if group:
            current = best_in_group.get(group)
            if current is None or entry.total > current.total:
                best_in_group[group] = entry
        entries.append(entry)
    for entry in best_in_group.values():
        entry.counted = True
    return entries


def offense_from_weapon_scores(entries: Iterable[WeaponScore]) -> float:
    return sum(entry.total for entry in entries if entry.counted)


def unit_offense_score(unit: Any) -> float:
    return offense_from_weapon_scores(weapon_scores(unit))


def score_unit(unit: Any, index: int = 0) -> UnitScores:
    entries = weapon_scores(unit)
    return UnitScores(
        index=index,
        name=str(_raw(unit, "name") or ""),
        points=unit_points(unit),
        models=unit_model_count(unit),
        quantity=unit_quantity(unit),
        offense=offense_from_weapon_scores(entries),
        defense=defense_score(unit),
        tactical=tactical_score(unit),
        weapons=entries,
    )


def aggregate_army(units: Iterable[Any]) -> ArmyScores:
    result = ArmyScores()
    for index, unit in enumerate(units):
        scores = score_unit(unit, index)
        result.units.append(scores)
        if not scores.active:
            continue
        result.total_points += scores.points * scores.quantity
        result.total_offense += scores.offense * scores.quantity
        result.total_defense += scores.defense * scores.models * scores.quantity
        result.total_tactical += scores.tactical * scores.models * scores.quantity
    return result
