from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .config import DEFAULT_GAME_SIZE
from .db import Base


UNIT_MODIFIER_COLUMNS = {
    "hit": "hit_bonus",
    "sustained": "sustained_bonus",
    "save": "save_bonus",
    "invulnerable": "invulnerable_bonus",
    "feel_no_pain": "feel_no_pain_bonus",
    "lethal": "grants_lethal",
    "devastating": "grants_devastating",
    "minus_wound": "minus_one_to_wound",
}


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


def touch_timestamps(mapper, connection, target) -> None:  # pragma: no cover - SQLAlchemy hook
    now = datetime.utcnow()
    if getattr(target, "created_at", None) is None:
        target.created_at = now
    target.updated_at = now


class Army(TimestampMixin, Base):
    __tablename__ = "armies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    game_size: Mapped[int] = mapped_column(Integer, nullable=False, default=DEFAULT_GAME_SIZE)

    units: Mapped[List["Unit"]] = relationship(
        back_populates="army",
        cascade="all, delete-orphan",
        order_by="Unit.position",
    )


class Unit(TimestampMixin, Base):
    __tablename__ = "units"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    army_id: Mapped[int] = mapped_column(ForeignKey("armies.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    models: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    toughness: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    save: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    invulnerable: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    feel_no_pain: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    wounds: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    leadership: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    objective_control: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    hit_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sustained_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    save_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    invulnerable_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    feel_no_pain_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    grants_lethal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    grants_devastating: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    minus_one_to_wound: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    army: Mapped[Army] = relationship(back_populates="units")
    weapons: Mapped[List["Weapon"]] = relationship(
        back_populates="unit",
        cascade="all, delete-orphan",
        order_by=lambda: (Weapon.position, Weapon.id),
    )

    @property
    def modifiers(self) -> dict[str, Any]:
        return {
            key: getattr(self, column) for key, column in UNIT_MODIFIER_COLUMNS.items()
        }

    @modifiers.setter
    def modifiers(self, values: Any) -> None:
        for key, column in UNIT_MODIFIER_COLUMNS.items():
            if isinstance(values, dict):
                value = values.get(key)
            else:
                value = getattr(values, key, None)
            if value is not None:
                setattr(self, column, value)


class Weapon(TimestampMixin, Base):
    __tablename__ = "weapons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    unit_id: Mapped[int] = mapped_column(ForeignKey("units.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    qty: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    group: Mapped[Optional[str]] = mapped_column("weapon_group", String(60), nullable=True)
    attacks: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    hit: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    strength: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    ap: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    damage: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    sustained: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    crit: Mapped[int] = mapped_column(Integer, nullable=False, default=6)
    lethal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    devastating: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    twin_linked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    torrent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tags: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    unit: Mapped[Unit] = relationship(back_populates="weapons")


for cls in [Army, Unit, Weapon]:
    event.listen(cls, "before_insert", touch_timestamps)
    event.listen(cls, "before_update", touch_timestamps)
