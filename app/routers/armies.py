from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from .. import models
from ..config import DEFAULT_GAME_SIZE, GAME_SIZE_OPTIONS
from ..db import get_db
from ..schemas import UnitRecord, WeaponRecord
from ..services import interchange, scoring, thresholds

router = APIRouter(prefix="/armies", tags=["armies"])
templates = Jinja2Templates(directory="app/templates")


def _parse_game_size(value: str | int | None) -> int:
    try:
        size = int(str(value).strip()) if value is not None else 0
    except ValueError:
        size = 0
    return size if size > 0 else DEFAULT_GAME_SIZE


def _parse_count(value: str | int | None) -> int:
    try:
        count = int(str(value).strip()) if value is not None else 0
    except ValueError:
        count = 0
    return max(count, 0)


def _get_army(db: Session, army_id: int) -> models.Army:
    army = db.get(models.Army, army_id)
    if not army:
        raise HTTPException(status_code=404)
    return army


def _load_army_detail(db: Session, army_id: int) -> models.Army | None:
    stmt = (
        select(models.Army)
        .where(models.Army.id == army_id)
        .options(selectinload(models.Army.units).selectinload(models.Unit.weapons))
    )
    return db.execute(stmt).scalars().unique().one_or_none()


def _get_unit(db: Session, army: models.Army, unit_id: int) -> models.Unit:
    unit = db.get(models.Unit, unit_id)
    if not unit or unit.army_id != army.id:
        raise HTTPException(status_code=404)
    return unit


def _get_weapon(db: Session, unit: models.Unit, weapon_id: int) -> models.Weapon:
    weapon = db.get(models.Weapon, weapon_id)
    if not weapon or weapon.unit_id != unit.id:
        raise HTTPException(status_code=404)
    return weapon


def _resequence(items: list[Any]) -> None:
    for index, item in enumerate(items):
        item.position = index


def _next_position(items: list[Any]) -> int:
    positions = [item.position or 0 for item in items]
    return max(positions) + 1 if positions else 0


def _move_unit_in_sequence(units: list[Any], unit_id: int, direction: str) -> bool:
    index = next((i for i, item in enumerate(units) if item.id == unit_id), None)
    if index is None:
        return False
    target = index - 1 if direction == "up" else index + 1
    if not 0 <= target < len(units):
        return False
    units[index], units[target] = units[target], units[index]
    return True


def modifier_badges(modifiers: Any) -> list[str]:
    mods = scoring.Modifiers.from_source(modifiers)
    badges: list[str] = []
    if mods.lethal:
        badges.append("Lethal Hits")
    if mods.devastating:
        badges.append("Devastating Wounds")
    if mods.minus_wound:
        badges.append("-1 to Wound")
    if mods.hit > 0:
        badges.append(f"+{mods.hit} to Hit")
    if mods.sustained > 0:
        badges.append(f"Sustained Hits {mods.sustained}")
    if mods.save > 0:
        badges.append(f"Sv +{mods.save}")
    if mods.invulnerable < scoring.NO_ROLL:
        badges.append(f"{mods.invulnerable}++")
    if mods.feel_no_pain < scoring.NO_ROLL:
        badges.append(f"{mods.feel_no_pain}+++")
    return badges


def weapon_badges(weapon: Any) -> list[dict[str, str]]:
    badges: list[dict[str, str]] = []
    group = scoring.weapon_group(weapon)
    if group:
        badges.append({"label": f"Group: {group}", "kind": "group"})
    if weapon.torrent:
        badges.append({"label": "Torrent", "kind": "keyword"})
    if weapon.sustained:
        badges.append({"label": f"Sustained Hits {weapon.sustained}", "kind": "keyword"})
    if weapon.lethal:
        badges.append({"label": "Lethal Hits", "kind": "keyword"})
    if weapon.devastating:
        badges.append({"label": "Devastating Wounds", "kind": "keyword"})
    if weapon.twin_linked:
        badges.append({"label": "Twin-linked", "kind": "keyword"})
    if weapon.tags:
        badges.append({"label": weapon.tags, "kind": "keyword"})
    return badges


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def army_view(army: models.Army) -> dict[str, Any]:
    units = list(army.units)
    scores = scoring.aggregate_army(units)
    game_size = army.game_size or DEFAULT_GAME_SIZE
    rows: list[dict[str, Any]] = []
    for unit, unit_scores in zip(units, scores.units):
        defense = scoring.defense_profile(unit)
        weapon_rows = []
        for weapon, weapon_score in zip(unit.weapons, unit_scores.weapons):
            profile = scoring.weapon_profile(weapon, unit)
            weapon_rows.append(
                {
                    "instance": weapon,
                    "score": weapon_score,
                    "profile": f"{_format_number(weapon.attacks)}A / "
                    f"{weapon.hit}+ / S{weapon.strength} / AP{weapon.ap} / "
                    f"D{_format_number(weapon.damage)}",
                    "adjusted_hit": profile.adjusted_hit,
                    "badges": weapon_badges(weapon),
                    "total_display": f"{weapon_score.total:.1f}",
                }
            )
        rows.append(
            {
                "unit": unit,
                "scores": unit_scores,
                "effective_save": defense.effective_save,
                "effective_invulnerable": defense.effective_invulnerable,
                "effective_feel_no_pain": defense.effective_feel_no_pain,
                "weapons": weapon_rows,
                "modifier_badges": modifier_badges(unit.modifiers),
                "offense_display": f"{unit_scores.offense:.1f}",
                "offense_percent": thresholds.unit_percentage(
                    unit_scores.offense, "offense", game_size
                ),
                "defense_percent": thresholds.unit_percentage(
                    unit_scores.defense, "defense", game_size
                ),
            }
        )
    bands = thresholds.army_bands(
        {
            "offense": scores.total_offense,
            "defense": scores.total_defense,
            "tactical": scores.total_tactical,
        },
        game_size,
    )
    return {
        "army": army,
        "rows": rows,
        "totals": scores,
        "total_offense_display": f"{scores.total_offense:.0f}",
        "total_defense_display": f"{scores.total_defense:.0f}",
        "total_tactical_display": f"{scores.total_tactical:.0f}",
        "bands": bands,
        "game_size": game_size,
        "game_size_options": sorted(set(GAME_SIZE_OPTIONS) | {game_size}),
    }


def render_army(
    request: Request,
    army: models.Army,
    *,
    error: str | None = None,
    message: str | None = None,
    status_code: int = 200,
):
    context = army_view(army)
    context.update({"request": request, "error": error, "message": message})
    return templates.TemplateResponse("army_detail.html", context, status_code=status_code)


def _unit_form_values(unit: models.Unit | None) -> dict[str, Any]:
    record = interchange.unit_record(unit) if unit is not None else UnitRecord()
    return record.model_dump(exclude={"weapons"})


def _weapon_form_values(weapon: models.Weapon | None) -> dict[str, Any]:
    if weapon is None:
        return WeaponRecord().model_dump()
    return WeaponRecord.model_validate(weapon, from_attributes=True).model_dump()


def _unit_record_from_form(values: dict[str, Any]) -> UnitRecord:
    modifiers = {
        "hit": values.pop("hit_bonus", None),
        "sustained": values.pop("sustained_bonus", None),
        "save": values.pop("save_bonus", None),
        "invulnerable": values.pop("invulnerable_bonus", None),
        "feel_no_pain": values.pop("feel_no_pain_bonus", None),
        "lethal": values.pop("grants_lethal", None),
        "devastating": values.pop("grants_devastating", None),
        "minus_wound": values.pop("minus_one_to_wound", None),
    }
    return UnitRecord.model_validate({**values, "modifiers": modifiers})


@router.get("", response_class=HTMLResponse)
def list_armies(request: Request, db: Session = Depends(get_db)):
    armies = (
        db.execute(
            select(models.Army)
            .options(selectinload(models.Army.units).selectinload(models.Unit.weapons))
            .order_by(models.Army.created_at.desc())
        )
        .scalars()
        .unique()
        .all()
    )
    entries = []
    for army in armies:
        scores = scoring.aggregate_army(army.units)
        entries.append(
            {
                "army": army,
                "unit_count": len(army.units),
                "total_points": scores.total_points,
            }
        )
    return templates.TemplateResponse(
        "army_list.html",
        {
            "request": request,
            "entries": entries,
            "game_size_options": GAME_SIZE_OPTIONS,
            "default_game_size": DEFAULT_GAME_SIZE,
        },
    )


@router.post("/new")
def create_army(
    name: str = Form(...),
    game_size: str | None = Form(None),
    db: Session = Depends(get_db),
):
    army_name = name.strip()
    if not army_name:
        raise HTTPException(status_code=400, detail="Army name is required")
    army = models.Army(name=army_name, game_size=_parse_game_size(game_size))
    db.add(army)
    db.commit()
    return RedirectResponse(url=f"/armies/{army.id}", status_code=303)


@router.get("/{army_id}", response_class=HTMLResponse)
def view_army(army_id: int, request: Request, db: Session = Depends(get_db)):
    army = _load_army_detail(db, army_id)
    if not army:
        raise HTTPException(status_code=404)
    status_key = request.query_params.get("status")
    message_map = {
        "imported": "Army list imported.",
        "cleared": "All units removed.",
    }
    return render_army(request, army, message=message_map.get(status_key))


@router.post("/{army_id}/update")
def update_army(
    army_id: int,
    name: str | None = Form(None),
    game_size: str | None = Form(None),
    db: Session = Depends(get_db),
):
    army = _get_army(db, army_id)
    if name and name.strip():
        army.name = name.strip()
    if game_size is not None:
        army.game_size = _parse_game_size(game_size)
    db.commit()
    return RedirectResponse(url=f"/armies/{army.id}", status_code=303)


@router.post("/{army_id}/delete")
def delete_army(army_id: int, db: Session = Depends(get_db)):
    army = _get_army(db, army_id)
    db.delete(army)
    db.commit()
    return RedirectResponse(url="/armies", status_code=303)


@router.post("/{army_id}/clear")
def clear_army(army_id: int, db: Session = Depends(get_db)):
    army = _get_army(db, army_id)
    army.units.clear()
    db.commit()
    return RedirectResponse(url=f"/armies/{army.id}?status=cleared", status_code=303)


@router.get("/{army_id}/units/new", response_class=HTMLResponse)
def new_unit_form(army_id: int, request: Request, db: Session = Depends(get_db)):
    army = _get_army(db, army_id)
    return templates.TemplateResponse(
        "unit_form.html",
        {
            "request": request,
            "army": army,
            "unit": None,
            "values": _unit_form_values(None),
            "action_url": f"/armies/{army.id}/units/new",
        },
    )


@router.post("/{army_id}/units/new")
def create_unit(
    army_id: int,
    name: str = Form(...),
    points: str | None = Form(None),
    models_count: str | None = Form(None, alias="models"),
    toughness: str | None = Form(None),
    save: str | None = Form(None),
    invulnerable: str | None = Form(None),
    feel_no_pain: str | None = Form(None),
    wounds: str | None = Form(None),
    leadership: str | None = Form(None),
    objective_control: str | None = Form(None),
    hit_bonus: str | None = Form(None),
    sustained_bonus: str | None = Form(None),
    save_bonus: str | None = Form(None),
    invulnerable_bonus: str | None = Form(None),
    feel_no_pain_bonus: str | None = Form(None),
    grants_lethal: str | None = Form(None),
    grants_devastating: str | None = Form(None),
    minus_one_to_wound: str | None = Form(None),
    db: Session = Depends(get_db),
):
    army = _get_army(db, army_id)
    record = _unit_record_from_form(
        {
            "name": name,
            "points": points,
            "models": models_count,
            "toughness": toughness,
            "save": save,
            "invulnerable": invulnerable,
            "feel_no_pain": feel_no_pain,
            "wounds": wounds,
            "leadership": leadership,
            "objective_control": objective_control,
            "hit_bonus": hit_bonus,
            "sustained_bonus": sustained_bonus,
            "save_bonus": save_bonus,
            "invulnerable_bonus": invulnerable_bonus,
            "feel_no_pain_bonus": feel_no_pain_bonus,
            "grants_lethal": grants_lethal,
            "grants_devastating": grants_devastating,
            "minus_one_to_wound": minus_one_to_wound,
        }
    )
    unit = models.Unit(position=_next_position(army.units))
    interchange.apply_unit_record(unit, record)
    army.units.append(unit)
    db.commit()
    return RedirectResponse(url=f"/armies/{army.id}/units/{unit.id}/edit", status_code=303)


@router.get("/{army_id}/units/{unit_id}/edit", response_class=HTMLResponse)
def edit_unit_form(
    army_id: int, unit_id: int, request: Request, db: Session = Depends(get_db)
):
    army = _get_army(db, army_id)
    unit = _get_unit(db, army, unit_id)
    weapon_rows = [
        {
            "instance": weapon,
            "power": scoring.weapon_power(weapon, unit),
            "badges": weapon_badges(weapon),
        }
        for weapon in unit.weapons
    ]
    return templates.TemplateResponse(
        "unit_form.html",
        {
            "request": request,
            "army": army,
            "unit": unit,
            "values": _unit_form_values(unit),
            "weapons": weapon_rows,
            "action_url": f"/armies/{army.id}/units/{unit.id}/edit",
        },
    )


@router.post("/{army_id}/units/{unit_id}/edit")
def update_unit(
    army_id: int,
    unit_id: int,
    name: str = Form(...),
    points: str | None = Form(None),
    models_count: str | None = Form(None, alias="models"),
    count: str | None = Form(None),
    toughness: str | None = Form(None),
    save: str | None = Form(None),
    invulnerable: str | None = Form(None),
    feel_no_pain: str | None = Form(None),
    wounds: str | None = Form(None),
    leadership: str | None = Form(None),
    objective_control: str | None = Form(None),
    hit_bonus: str | None = Form(None),
    sustained_bonus: str | None = Form(None),
    save_bonus: str | None = Form(None),
    invulnerable_bonus: str | None = Form(None),
    feel_no_pain_bonus: str | None = Form(None),
    grants_lethal: str | None = Form(None),
    grants_devastating: str | None = Form(None),
    minus_one_to_wound: str | None = Form(None),
    db: Session = Depends(get_db),
):
    army = _get_army(db, army_id)
    unit = _get_unit(db, army, unit_id)
    record = _unit_record_from_form(
        {
            "name": name,
            "points": points,
            "models": models_count,
            "count": unit.count if count is None else _parse_count(count),
            "toughness": toughness,
            "save": save,
            "invulnerable": invulnerable,
            "feel_no_pain": feel_no_pain,
            "wounds": wounds,
            "leadership": leadership,
            "objective_control": objective_control,
            "hit_bonus": hit_bonus,
            "sustained_bonus": sustained_bonus,
            "save_bonus": save_bonus,
            "invulnerable_bonus": invulnerable_bonus,
            "feel_no_pain_bonus": feel_no_pain_bonus,
            "grants_lethal": grants_lethal,
            "grants_devastating": grants_devastating,
            "minus_one_to_wound": minus_one_to_wound,
        }
    )
    interchange.apply_unit_record(unit, record, include_weapons=False)
    db.commit()
    return RedirectResponse(url=f"/armies/{army.id}", status_code=303)


@router.post("/{army_id}/units/{unit_id}/count")
def update_unit_count(
    army_id: int,
    unit_id: int,
    count: str | None = Form(None),
    db: Session = Depends(get_db),
):
    army = _get_army(db, army_id)
    unit = _get_unit(db, army, unit_id)
    unit.count = _parse_count(count)
    db.commit()
    return RedirectResponse(url=f"/armies/{army.id}", status_code=303)


@router.post("/{army_id}/units/{unit_id}/duplicate")
def duplicate_unit(army_id: int, unit_id: int, db: Session = Depends(get_db)):
    army = _get_army(db, army_id)
    unit = _get_unit(db, army, unit_id)
    record = interchange.unit_record(unit)
    clone = interchange.apply_unit_record(models.Unit(), record)
    units = list(army.units)
    units.insert(units.index(unit) + 1, clone)
    army.units.append(clone)
    _resequence(units)
    db.commit()
    return RedirectResponse(url=f"/armies/{army.id}", status_code=303)


@router.post("/{army_id}/units/{unit_id}/move")
def move_unit(
    army_id: int,
    unit_id: int,
    direction: str = Form(...),
    db: Session = Depends(get_db),
):
    army = _get_army(db, army_id)
    unit = _get_unit(db, army, unit_id)
    units = list(army.units)
    if _move_unit_in_sequence(units, unit.id, direction):
        _resequence(units)
        db.commit()
    return RedirectResponse(url=f"/armies/{army.id}", status_code=303)


@router.post("/{army_id}/units/{unit_id}/delete")
def delete_unit(army_id: int, unit_id: int, db: Session = Depends(get_db)):
    army = _get_army(db, army_id)
    unit = _get_unit(db, army, unit_id)
    army.units.remove(unit)
    db.flush()
    _resequence(list(army.units))
    db.commit()
    return RedirectResponse(url=f"/armies/{army.id}", status_code=303)


@router.get("/{army_id}/units/{unit_id}/weapons/new", response_class=HTMLResponse)
def new_weapon_form(
    army_id: int, unit_id: int, request: Request, db: Session = Depends(get_db)
):
    army = _get_army(db, army_id)
    unit = _get_unit(db, army, unit_id)
    return templates.TemplateResponse(
        "weapon_form.html",
        {
            "request": request,
            "army": army,
            "unit": unit,
            "weapon": None,
            "values": _weapon_form_values(None),
            "action_url": f"/armies/{army.id}/units/{unit.id}/weapons/new",
        },
    )


def _weapon_record_from_form(**values: Any) -> WeaponRecord:
    return WeaponRecord.model_validate(values)


@router.post("/{army_id}/units/{unit_id}/weapons/new")
def create_weapon(
    army_id: int,
    unit_id: int,
    name: str | None = Form(None),
    qty: str | None = Form(None),
    group: str | None = Form(None),
    attacks: str | None = Form(None),
    hit: str | None = Form(None),
    strength: str | None = Form(None),
    ap: str | None = Form(None),
    damage: str | None = Form(None),
    sustained: str | None = Form(None),
    crit: str | None = Form(None),
    lethal: str | None = Form(None),
    devastating: str | None = Form(None),
    twin_linked: str | None = Form(None),
    torrent: str | None = Form(None),
    tags: str | None = Form(None),
    db: Session = Depends(get_db),
):
    army = _get_army(db, army_id)
    unit = _get_unit(db, army, unit_id)
    record = _weapon_record_from_form(
        name=name, qty=qty, group=group, attacks=attacks, hit=hit,
        strength=strength, ap=ap, damage=damage, sustained=sustained, crit=crit,
        lethal=lethal, devastating=devastating, twin_linked=twin_linked,
        torrent=torrent, tags=tags,
    )
    weapon = models.Weapon(position=_next_position(unit.weapons))
    interchange.apply_weapon_record(weapon, record)
    unit.weapons.append(weapon)
    db.commit()
    return RedirectResponse(url=f"/armies/{army.id}/units/{unit.id}/edit", status_code=303)


@router.get(
    "/{army_id}/units/{unit_id}/weapons/{weapon_id}/edit", response_class=HTMLResponse
)
def edit_weapon_form(
    army_id: int,
    unit_id: int,
    weapon_id: int,
    request: Request,
    db: Session = Depends(get_db),
):
    army = _get_army(db, army_id)
    unit = _get_unit(db, army, unit_id)
    weapon = _get_weapon(db, unit, weapon_id)
    return templates.TemplateResponse(
        "weapon_form.html",
        {
            "request": request,
            "army": army,
            "unit": unit,
            "weapon": weapon,
            "values": _weapon_form_values(weapon),
            "action_url": f"/armies/{army.id}/units/{unit.id}/weapons/{weapon.id}/edit",
        },
    )


@router.post("/{army_id}/units/{unit_id}/weapons/{weapon_id}/edit")
def update_weapon(
    army_id: int,
    unit_id: int,
    weapon_id: int,
    name: str | None = Form(None),
    qty: str | None = Form(None),
    group: str | None = Form(None),
    attacks: str | None = Form(None),
    hit: str | None = Form(None),
    strength: str | None = Form(None),
    ap: str | None = Form(None),
    damage: str | None = Form(None),
    sustained: str | None = Form(None),
    crit: str | None = Form(None),
    lethal: str | None = Form(None),
    devastating: str | None = Form(None),
    twin_linked: str | None = Form(None),
    torrent: str | None = Form(None),
    tags: str | None = Form(None),
    db: Session = Depends(get_db),
):
    army = _get_army(db, army_id)
    unit = _get_unit(db, army, unit_id)
    weapon = _get_weapon(db, unit, weapon_id)
    record = _weapon_record_from_form(
        name=name, qty=qty, group=group, attacks=attacks, hit=hit,
        strength=strength, ap=ap, damage=damage, sustained=sustained, crit=crit,
        lethal=lethal, devastating=devastating, twin_linked=twin_linked,
        torrent=torrent, tags=tags,
    )
    interchange.apply_weapon_record(weapon, record)
    db.commit()
    return RedirectResponse(url=f"/armies/{army.id}/units/{unit.id}/edit", status_code=303)


@router.post("/{army_id}/units/{unit_id}/weapons/{weapon_id}/delete")
def delete_weapon(
    army_id: int, unit_id: int, weapon_id: int, db: Session = Depends(get_db)
):
    army = _get_army(db, army_id)
    unit = _get_unit(db, army, unit_id)
    weapon = _get_weapon(db, unit, weapon_id)
    unit.weapons.remove(weapon)
    db.flush()
    _resequence(list(unit.weapons))
    db.commit()
    return RedirectResponse(url=f"/armies/{army.id}/units/{unit.id}/edit", status_code=303)
