from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import RedirectResponse, Response
from sqlalchemy.orm import Session

from ..db import get_db
from ..services import interchange
from .armies import _load_army_detail, render_army

router = APIRouter(prefix="/armies", tags=["export"])


def _safe_filename(name: str | None, suffix: str) -> str:
    base = "".join(
        char if char.isalnum() or char in "-_" else "_" for char in (name or "").strip()
    ).strip("_")
    return f"{base or 'army_list'}{suffix}"


@router.get("/{army_id}/export.json")
def export_army_json(army_id: int, db: Session = Depends(get_db)):
    army = _load_army_detail(db, army_id)
    if not army:
        raise HTTPException(status_code=404)
    content = interchange.export_army(army.units)
    filename = _safe_filename(army.name, ".json")
    return Response(
        content=content,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/{army_id}/import")
def import_army_json(
    army_id: int,
    request: Request,
    upload: UploadFile | None = File(None),
    db: Session = Depends(get_db),
):
    army = _load_army_detail(db, army_id)
    if not army:
        raise HTTPException(status_code=404)
    payload = upload.file.read() if upload is not None else None
    try:
        interchange.import_army(db, army, payload)
    except interchange.ArmyImportError as exc:
        db.rollback()
        army = _load_army_detail(db, army_id)
        return render_army(request, army, error=str(exc), status_code=400)
    db.commit()
    return RedirectResponse(url=f"/armies/{army.id}?status=imported", status_code=303)
