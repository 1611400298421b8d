from __future__ import annotations

from io import BytesIO
from typing import Any, Sequence

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from openpyxl import Workbook
from sqlalchemy.orm import Session

from .. import models
from ..db import get_db
from ..services import scoring, thresholds
from .armies import _load_army_detail, modifier_badges

router = APIRouter(prefix="/armies", tags=["export"])


def _fit_columns(sheet, limit: int) -> None:
    for column_cells in sheet.columns:
        max_length = max(len(str(cell.value or "")) for cell in column_cells)
        adjusted = max_length + 2
        column_letter = column_cells[0].column_letter
        sheet.column_dimensions[column_letter].width = min(adjusted, limit)


def _append_roster_sheet(
    workbook: Workbook, units: Sequence[Any], game_size: int
) -> scoring.ArmyScores:
    sheet = workbook.active
    sheet.title = "Roster"
    sheet.append([f"Game size: {game_size} pts"])
    sheet.append(
        [
            "Unit",
            "Quantity",
            "Points",
            "Models",
            "T",
            "Sv",
            "Inv",
            "FNP",
            "W",
            "Ld",
            "OC",
            "Modifiers",
            "Offense",
            "Defense",
            "Tactical",
        ]
    )

    scores = scoring.aggregate_army(units)
    for unit, unit_scores in zip(units, scores.units):
        sheet.append(
            [
                unit_scores.name,
                unit_scores.quantity,
                unit_scores.subtotal_points,
                unit_scores.models,
                unit.toughness,
                unit.save,
                unit.invulnerable,
                unit.feel_no_pain,
                unit.wounds,
                unit.leadership,
                unit.objective_control,
                ", ".join(modifier_badges(unit.modifiers)) or "-",
                round(unit_scores.offense, 1),
                unit_scores.defense,
                unit_scores.tactical,
            ]
        )

    sheet.append([])
    sheet.append(["Total", "", scores.total_points])
    for label, axis, total in (
        ("Offense", "offense", scores.total_offense),
        ("Defense", "defense", scores.total_defense),
        ("Tactical", "tactical", scores.total_tactical),
    ):
        band = thresholds.scaled_band(axis, game_size)
        rating = thresholds.band_rating(total, axis, game_size)
        sheet.append(
            [
                label,
                "",
                round(total),
                f"{band.low:.0f} - {band.high:.0f}",
                thresholds.BAND_LABELS[rating],
            ]
        )
    _fit_columns(sheet, 40)
    return scores


def _append_weapons_sheet(workbook: Workbook, units: Sequence[Any]) -> None:
    sheet = workbook.create_sheet("Weapons")
    sheet.append(
        ["Unit", "Weapon", "Qty", "Group", "A", "Hit", "S", "AP", "D", "Keywords", "Power", "Counted"]
    )
    for unit in units:
        entries = scoring.weapon_scores(unit)
        for weapon, entry in zip(unit.weapons, entries):
            keywords = [
                label
                for flag, label in (
                    (weapon.torrent, "Torrent"),
                    (weapon.lethal, "Lethal Hits"),
                    (weapon.devastating, "Devastating Wounds"),
                    (weapon.twin_linked, "Twin-linked"),
                )
                if flag
            ]
            if weapon.sustained:
                keywords.append(f"Sustained Hits {weapon.sustained}")
            if weapon.tags:
                keywords.append(weapon.tags)
            sheet.append(
                [
                    unit.name,
                    entry.name,
                    entry.qty,
                    entry.group or "-",
                    weapon.attacks,
                    f"{weapon.hit}+",
                    weapon.strength,
                    weapon.ap,
                    weapon.damage,
                    ", ".join(keywords) or "-",
                    round(entry.total, 2),
                    "yes" if entry.counted else "no",
                ]
            )
    _fit_columns(sheet, 50)


@router.get("/{army_id}/export.xlsx")
def export_xlsx(army_id: int, db: Session = Depends(get_db)):
    army: models.Army | None = _load_army_detail(db, army_id)
    if not army:
        raise HTTPException(status_code=404)

    workbook = Workbook()
    units = list(army.units)
    scores = _append_roster_sheet(workbook, units, army.game_size)
    _append_weapons_sheet(workbook, units)

    buffer = BytesIO()
    workbook.save(buffer)
    buffer.seek(0)
    filename = f"army_{army_id}_{scores.total_points}.xlsx"
    headers = {"Content-Disposition": f"attachment; filename={filename}"}
    return StreamingResponse(
        buffer,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers=headers,
    )
