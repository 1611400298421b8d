from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles

from .config import DEBUG
from .db import init_db
from .routers import armies, export, export_xlsx

logger = logging.getLogger(__name__)

app = FastAPI(debug=DEBUG)
app.mount("/static", StaticFiles(directory="app/static"), name="static")


@app.on_event("startup")
def startup_event() -> None:
    init_db()
    logger.info("Application started")


@app.get("/")
def index():
    return RedirectResponse(url="/armies", status_code=303)


app.include_router(armies.router)
app.include_router(export.router)
app.include_router(export_xlsx.router)
