"""
Database engine and sessions for the make2manage web service.

The engine is built on first use from ``web.config`` so tests can point the
service at a throwaway database and call ``reset_engine`` between runs.
"""

from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from web.config import get_settings
from web.database.models import Base

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def _prepare_sqlite(url: str) -> dict:
    """Create the parent directory of a SQLite file and return connect args."""
    database = make_url(url).database
    if database and database != ":memory:":
        Path(database).parent.mkdir(parents=True, exist_ok=True)
    # Sessions are served from FastAPI's worker threads
    return {"check_same_thread": False}


def get_engine() -> Engine:
    """Engine for the configured database URL."""
    global _engine, _session_factory
    if _engine is None:
        config = get_settings()
        connect_args = {}
        if config.database_url.startswith("sqlite"):
            connect_args = _prepare_sqlite(config.database_url)
        _engine = create_engine(config.database_url, connect_args=connect_args, echo=config.debug)
        _session_factory = sessionmaker(bind=_engine, autoflush=False)
    return _engine


def reset_engine() -> None:
    """Dispose of the engine so the next use picks up new settings."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


def init_db() -> None:
    """Create the session and decision tables if they are missing."""
    Base.metadata.create_all(bind=get_engine())


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding a database session per request."""
    get_engine()
    db = _session_factory()
    try:
        yield db
    finally:
        db.close()
