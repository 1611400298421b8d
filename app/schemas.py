from __future__ import annotations

import math
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


def _coerce_number(value: Any, default: Any, cast: Callable[[float], Any]) -> Any:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
        if not value:
            return default
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(numeric):
        return default
    return cast(numeric)


def _coerce_bool(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().casefold() in {"true", "yes", "1", "on"}
    return bool(value)


def _clamp_roll(value: int) -> int:
    return max(2, min(7, int(value)))


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def _default(cls, info: ValidationInfo) -> Any:
        return cls.model_fields[info.field_name].default

    @classmethod
    def _text(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return cls._default(info)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip() or cls._default(info)
        return value


class ModifierRecord(_Record):
    hit: int = 0
    sustained: int = Field(0, alias="sus")
    save: int = Field(0, alias="sv")
    invulnerable: int = Field(7, alias="inv")
    feel_no_pain: int = Field(7, alias="fnp")
    lethal: bool = False
    devastating: bool = Field(False, alias="dev")
    minus_wound: bool = Field(False, alias="minusWound")

    @field_validator("hit", "sustained", "save", "invulnerable", "feel_no_pain", mode="before")
    @classmethod
    def _integers(cls, value: Any, info: ValidationInfo) -> Any:
        return _coerce_number(value, cls._default(info), int)

    @field_validator("lethal", "devastating", "minus_wound", mode="before")
    @classmethod
    def _flags(cls, value: Any) -> bool:
        return _coerce_bool(value)

    @field_validator("invulnerable", "feel_no_pain")
    @classmethod
    def _rolls(cls, value: int) -> int:
        return _clamp_roll(value)

    @field_validator("sustained")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        return max(value, 0)


class WeaponRecord(_Record):
    name: str = "Weapon"
    qty: int = 1
    group: str = Field("", alias="grp")
    attacks: float = Field(1.0, alias="a")
    hit: int = 3
    strength: int = Field(4, alias="s")
    ap: int = 0
    damage: float = Field(1.0, alias="d")
    sustained: int = Field(0, alias="sus")
    crit: int = 6
    lethal: bool = False
    devastating: bool = Field(False, alias="dev")
    twin_linked: bool = Field(False, alias="twin")
    torrent: bool = False
    tags: str = ""

    @field_validator("name", "group", "tags", mode="before")
    @classmethod
    def _strings(cls, value: Any, info: ValidationInfo) -> Any:
        return cls._text(value, info)

    @field_validator("qty", "hit", "strength", "ap", "sustained", "crit", mode="before")
    @classmethod
    def _integers(cls, value: Any, info: ValidationInfo) -> Any:
        return _coerce_number(value, cls._default(info), int)

    @field_validator("attacks", "damage", mode="before")
    @classmethod
    def _decimals(cls, value: Any, info: ValidationInfo) -> Any:
        return _coerce_number(value, cls._default(info), float)

    @field_validator("lethal", "devastating", "twin_linked", "torrent", mode="before")
    @classmethod
    def _flags(cls, value: Any) -> bool:
        return _coerce_bool(value)

    @field_validator("hit", "crit")
    @classmethod
    def _rolls(cls, value: int) -> int:
        return _clamp_roll(value)

    @field_validator("qty", "sustained", "strength")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        return max(value, 0)

    @field_validator("attacks", "damage")
    @classmethod
    def _non_negative_decimal(cls, value: float) -> float:
        return max(value, 0.0)


class UnitRecord(_Record):
    name: str = "Unit"
    points: int = Field(0, alias="pts")
    models: int = 1
    toughness: int = Field(4, alias="t")
    save: int = Field(7, alias="sv")
    invulnerable: int = Field(7, alias="inv")
    feel_no_pain: int = Field(7, alias="fnp")
    wounds: int = Field(1, alias="w")
    leadership: int = Field(7, alias="ld")
    objective_control: int = Field(0, alias="oc")
    count: int = 1
    modifiers: ModifierRecord = Field(default_factory=ModifierRecord, alias="buffs")
    weapons: list[WeaponRecord] = Field(default_factory=list)

    @field_validator("name", mode="before")
    @classmethod
    def _strings(cls, value: Any, info: ValidationInfo) -> Any:
        return cls._text(value, info)

    @field_validator(
        "points",
        "models",
        "toughness",
        "save",
        "invulnerable",
        "feel_no_pain",
        "wounds",
        "leadership",
        "objective_control",
        "count",
        mode="before",
    )
    @classmethod
    def _integers(cls, value: Any, info: ValidationInfo) -> Any:
        return _coerce_number(value, cls._default(info), int)

    @field_validator("modifiers", mode="before")
    @classmethod
    def _missing_modifiers(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("weapons", mode="before")
    @classmethod
    def _missing_weapons(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("save", "invulnerable", "feel_no_pain")
    @classmethod
    def _rolls(cls, value: int) -> int:
        return _clamp_roll(value)

    @field_validator("models", "toughness")
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        return max(value, 1)

    @field_validator("points", "wounds", "objective_control", "count")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        return max(value, 0)
