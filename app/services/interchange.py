from __future__ import annotations

import json
import logging
from typing import Any, Iterable

from pydantic import ValidationError
from sqlalchemy.orm import Session

from .. import models
from ..schemas import UnitRecord, WeaponRecord

logger = logging.getLogger(__name__)


class ArmyImportError(Exception):
    """Raised when an imported army list cannot be read."""


def unit_record(unit: Any) -> UnitRecord:
    if isinstance(unit, UnitRecord):
        return unit
    return UnitRecord.model_validate(unit, from_attributes=True)


def export_payload(units: Iterable[Any]) -> list[dict[str, Any]]:
    return [unit_record(unit).model_dump(by_alias=True) for unit in units]


def export_army(units: Iterable[Any]) -> str:
    return json.dumps(export_payload(units), ensure_ascii=False, indent=4)


def _validation_message(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid army list."
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg") or "invalid value"
    return f"Invalid army list at {location}: {message}" if location else f"Invalid army list: {message}"


def parse_army(payload: str | bytes | list | None) -> list[UnitRecord]:
    if payload is None:
        raise ArmyImportError("No army list was provided.")
    data: Any = payload
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ArmyImportError("The army list file is not UTF-8 text.") from exc
    if isinstance(payload, str):
        if not payload.strip():
            raise ArmyImportError("The army list file is empty.")
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise ArmyImportError(f"The army list is not valid JSON: {exc.msg}.") from exc
    if not isinstance(data, list):
        raise ArmyImportError("An army list must be a JSON array of units.")

    records: list[UnitRecord] = []
    for index, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise ArmyImportError(f"Unit #{index + 1} is not an object.")
        try:
            records.append(UnitRecord.model_validate(entry))
        except ValidationError as exc:
            raise ArmyImportError(
                f"Unit #{index + 1}: {_validation_message(exc)}"
            ) from exc
    return records


def apply_weapon_record(weapon: models.Weapon, record: WeaponRecord) -> models.Weapon:
    weapon.name = record.name
    weapon.qty = record.qty
    weapon.group = record.group or None
    weapon.attacks = record.attacks
    weapon.hit = record.hit
    weapon.strength = record.strength
    weapon.ap = record.ap
    weapon.damage = record.damage
    weapon.sustained = record.sustained
    weapon.crit = record.crit
    weapon.lethal = record.lethal
    weapon.devastating = record.devastating
    weapon.twin_linked = record.twin_linked
    weapon.torrent = record.torrent
    weapon.tags = record.tags or None
    return weapon


def apply_unit_record(
    unit: models.Unit, record: UnitRecord, *, include_weapons: bool = True
) -> models.Unit:
    unit.name = record.name
    unit.points = record.points
    unit.models = record.models
    unit.count = record.count
    unit.toughness = record.toughness
    unit.save = record.save
    unit.invulnerable = record.invulnerable
    unit.feel_no_pain = record.feel_no_pain
    unit.wounds = record.wounds
    unit.leadership = record.leadership
    unit.objective_control = record.objective_control
    unit.modifiers = record.modifiers
    if include_weapons:
        unit.weapons = [
            apply_weapon_record(models.Weapon(position=position), weapon_record)
            for position, weapon_record in enumerate(record.weapons)
        ]
    return unit


def build_units(records: Iterable[UnitRecord]) -> list[models.Unit]:
    return [
        apply_unit_record(models.Unit(position=position), record)
        for position, record in enumerate(records)
    ]


def replace_army_units(db: Session, army: models.Army, records: list[UnitRecord]) -> None:
    army.units.clear()
    db.flush()
    army.units.extend(build_units(records))
    db.flush()
    logger.info("Imported %d units into army %s", len(records), army.id)


def import_army(db: Session, army: models.Army, payload: str | bytes | None) -> list[UnitRecord]:
    try:
        records = parse_army(payload)
    except ArmyImportError as exc:
        logger.warning("Rejected army list import for army %s: %s", army.id, exc)
        raise
    replace_army_units(db, army, records)
    return records
