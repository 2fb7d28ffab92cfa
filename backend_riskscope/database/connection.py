"""
SQLAlchemy engine and sessions for report history.

URL comes from Settings.database_url (DATABASE_URL; SQLite file by default).
The engine is created lazily and cached; reset_engine_for_test() drops it so a
test can point DATABASE_URL at a fresh file.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from backend_riskscope.config.settings import get_settings
from backend_riskscope.riskscope_logging import get_logger

logger = get_logger(__name__)

Base = declarative_base()

_engine: Engine | None = None
_SessionLocal: sessionmaker | None = None


def _redact(url: str) -> str:
    return url.split("?")[0].split("@")[-1].split("//")[-1]


def get_engine() -> Engine:
    """Create or return the cached engine."""
    global _engine
    if _engine is None:
        url = get_settings().database_url
        connect_args = {}
        if url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        _engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True)
        logger.info("database_engine_created", url=_redact(url))
    return _engine


def _get_session_factory() -> sessionmaker:
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _SessionLocal


@contextmanager
def session_scope() -> Iterator[Session]:
    """Commits on success, rolls back on error."""
    session = _get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Create tables if they do not exist. Safe to call on every startup."""
    # Registers the mapped classes on Base.metadata
    from backend_riskscope.database import models  # noqa: F401

    try:
        engine = get_engine()
        Base.metadata.create_all(bind=engine)
        logger.info("database_init_db", url=_redact(get_settings().database_url))
    except Exception as e:
        logger.exception("database_init_db_failed", error=str(e))
        raise


def reset_engine_for_test() -> None:
    """Dispose and forget the cached engine. Tests only."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None
