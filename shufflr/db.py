"""
Database configuration and session management
"""
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from . import config

logger = logging.getLogger(__name__)

# Create base class for models
Base = declarative_base()

# Create session factory; bound by configure_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False)

engine = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def configure_engine(url: str = None):
    """(Re)create the engine for `url` and rebind SessionLocal to it"""
    global engine
    url = url or config.DATABASE_URL
    is_sqlite = url.startswith("sqlite")
    new_engine = create_engine(
        url,
        future=True,
        connect_args={"check_same_thread": False} if is_sqlite else {}
    )
    if is_sqlite:
        event.listen(new_engine, "connect", _enable_sqlite_foreign_keys)

    if engine is not None:
        engine.dispose()
    engine = new_engine
    SessionLocal.configure(bind=engine)
    logger.info("database engine configured", extra={"component": "db", "url": url})
    return engine


def get_engine():
    if engine is None:
        configure_engine()
    return engine


# Dependency to get database session
def get_db():
    get_engine()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope():
    get_engine()
    s = SessionLocal()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
