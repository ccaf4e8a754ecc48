"""Engine and session plumbing shared by the API, the unstake processor and the reward updater."""

import logging
from collections.abc import Generator, Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from config import DatabaseSettings, get_settings

logger = logging.getLogger(__name__)

_state: dict[str, Any] = {"engine": None, "factory": None}


def _engine_options(db: DatabaseSettings, echo: bool) -> dict[str, Any]:
    if db.backend == "postgres":
        return {
            "echo": echo,
            "pool_size": db.pool_size,
            "pool_timeout": db.pool_timeout,
            "pool_recycle": db.pool_recycle,
            "pool_pre_ping": True,
        }
    # Several worker threads write to the same SQLite file.
    return {"echo": echo, "connect_args": {"check_same_thread": False}}


def _install_sqlite_pragmas(engine: Engine, busy_timeout_ms: int) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _record) -> None:
        cursor = dbapi_conn.cursor()
        for pragma in ("journal_mode=WAL", f"busy_timeout={busy_timeout_ms}", "synchronous=NORMAL"):
            cursor.execute(f"PRAGMA {pragma}")
        cursor.close()


def get_engine() -> Engine:
    """Return the process-wide engine, building it on first use."""
    engine: Engine | None = _state["engine"]
    if engine is not None:
        return engine

    settings = get_settings()
    db = settings.database
    engine = create_engine(db.url, **_engine_options(db, settings.debug))
    if db.backend == "sqlite":
        _install_sqlite_pragmas(engine, db.sqlite_busy_timeout_ms)
    logger.info("Database engine ready (%s)", db.describe())
    _state["engine"] = engine
    return engine


def dispose_engine() -> None:
    """Close pooled connections and forget the engine; the next call rebuilds it."""
    engine: Engine | None = _state["engine"]
    if engine is not None:
        engine.dispose()
    _state["engine"] = None
    _state["factory"] = None


def get_session_factory() -> sessionmaker[Session]:
    factory: sessionmaker[Session] | None = _state["factory"]
    if factory is None:
        factory = sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=False)
        _state["factory"] = factory
    return factory


@contextmanager
def get_session() -> Iterator[Session]:
    """Unit of work: commit when the block exits cleanly, roll back otherwise."""
    with get_session_factory()() as session:
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        session.commit()


def get_db() -> Generator[Session, None, None]:
    with get_session() as session:
        yield session
