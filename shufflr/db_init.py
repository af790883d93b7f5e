import logging
from threading import Lock

from sqlalchemy import inspect

from . import db as db_module
from .db import Base, session_scope

logger = logging.getLogger(__name__)

_initialized_for = None
_init_lock = Lock()

# Columns added after the first release; (table, column, DDL type)
_LEGACY_COLUMNS = [
    ("image_files", "enabled", "BOOLEAN NOT NULL DEFAULT 1"),
]


def _add_missing_columns(engine) -> None:
    inspector = inspect(engine)
    with engine.begin() as conn:
        for table, column, ddl in _LEGACY_COLUMNS:
            if not inspector.has_table(table):
                continue
            existing = {c["name"] for c in inspector.get_columns(table)}
            if column in existing:
                continue
            conn.exec_driver_sql(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}")
            logger.info("added legacy column %s.%s", table, column, extra={"component": "db"})


def init_schema_and_seed() -> None:
    """
    Ensure DB schema exists and seed default settings.
    1) ORM create_all for every model.
    2) Add columns that older databases lack.
    3) Insert missing settings defaults.
    Safe to call multiple times; runs once per configured engine.
    """
    global _initialized_for
    engine = db_module.get_engine()
    if _initialized_for is engine:
        return
    with _init_lock:
        if _initialized_for is engine:
            return

        # Import all models to ensure they're registered with Base.metadata
        from . import models  # noqa: F401
        from .services.settings import seed_default_settings

        Base.metadata.create_all(bind=engine)
        _add_missing_columns(engine)

        with session_scope() as s:
            seed_default_settings(s)

        _initialized_for = engine
        logger.info("database schema ready", extra={"component": "db"})
