import logging
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from .config import DB_URL, DEFAULT_GAME_SIZE

logger = logging.getLogger(__name__)

connect_args = {"check_same_thread": False} if DB_URL.startswith("sqlite") else {}
engine = create_engine(DB_URL, connect_args=connect_args, future=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


class Base(DeclarativeBase):
    pass


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _migrate_schema() -> None:
    from sqlalchemy import inspect

    if not DB_URL.startswith("sqlite"):
        return

    with engine.begin() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())

        if "armies" in table_names:
            columns = inspector.get_columns("armies")
            if "game_size" not in {column["name"] for column in columns}:
                logger.info("Adding game_size column to armies table")
                connection.execute(
                    text(
                        "ALTER TABLE armies ADD COLUMN game_size INTEGER NOT NULL "
                        f"DEFAULT {int(DEFAULT_GAME_SIZE)}"
                    )
                )

        if "units" in table_names:
            columns = inspector.get_columns("units")
            column_names = {column["name"] for column in columns}
            if "count" not in column_names:
                # Lists stored before quantities existed field every unit once.
                logger.info("Adding count column to units table")
                connection.execute(
                    text("ALTER TABLE units ADD COLUMN count INTEGER NOT NULL DEFAULT 1")
                )


def _sample_units(models) -> list:
    intercessors = models.Unit(
        name="Intercessor Squad",
        points=80,
        models=5,
        toughness=4,
        save=3,
        wounds=2,
        leadership=6,
        objective_control=2,
        position=0,
    )
    intercessors.weapons = [
        models.Weapon(
            name="Bolt rifle", qty=5, attacks=2, hit=3, strength=4, ap=-1,
            damage=1, sustained=0, position=0,
        ),
        models.Weapon(
            name="Close combat weapon", qty=5, attacks=3, hit=3, strength=4, ap=0,
            damage=1, position=1,
        ),
    ]
    dreadnought = models.Unit(
        name="Redemptor Dreadnought",
        points=210,
        models=1,
        toughness=10,
        save=2,
        wounds=12,
        leadership=6,
        objective_control=4,
        feel_no_pain=6,
        position=1,
    )
    dreadnought.weapons = [
        models.Weapon(
            name="Macro plasma incinerator", qty=1, attacks=3.5, hit=3, strength=8,
            ap=-4, damage=2, group="main", position=0,
        ),
        models.Weapon(
            name="Heavy onslaught gatling cannon", qty=1, attacks=12, hit=3,
            strength=6, ap=-1, damage=1, group="main", position=1,
        ),
        models.Weapon(
            name="Redemptor fist", qty=1, attacks=5, hit=3, strength=12, ap=-2,
            damage=3, position=2,
        ),
    ]
    return [intercessors, dreadnought]


def init_db() -> None:
    from sqlalchemy import select

    from . import models

    db_path = Path(DB_URL.split("///")[-1]) if DB_URL.startswith("sqlite") else None
    first_start = db_path is not None and not db_path.exists()

    Base.metadata.create_all(bind=engine)
    _migrate_schema()

    with SessionLocal() as session:
        if not session.execute(select(models.Army)).first():
            army = models.Army(name="Strike Force", game_size=DEFAULT_GAME_SIZE)
            army.units = _sample_units(models)
            session.add(army)
        session.commit()

    if first_start:
        logger.info("Database initialized with sample data at %s", DB_URL)
