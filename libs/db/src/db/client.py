"""Centralized SQLAlchemy engine/session helpers for the workspace.

Usage
-----
from db.client import get_sessionmaker, session_scope

sessions = get_sessionmaker()
with session_scope(sessions=sessions) as s:
    s.execute(...)

Engines are cached per database URL so a process can talk to more than one
database (tests create a fresh SQLite file per test). Callers that need an
explicit store handle keep the ``sessionmaker`` and pass it around instead of
relying on the environment.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

_LOCK = threading.Lock()
_ENGINES: dict[str, Engine] = {}
_SESSION_MAKERS: dict[str, sessionmaker[Session]] = {}


def _database_url(override: str | None = None) -> str:
    url = override or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not set; cannot initialize database client")
    return url


def get_engine(*, database_url: str | None = None) -> Engine:
    """Return the shared engine for ``database_url``, creating it on first use."""

    url = _database_url(database_url)
    with _LOCK:
        engine = _ENGINES.get(url)
        if engine is None:
            engine = create_engine(url, pool_pre_ping=True)
            _ENGINES[url] = engine
            _SESSION_MAKERS[url] = sessionmaker(
                bind=engine, expire_on_commit=False, class_=Session
            )
        return engine


def get_sessionmaker(*, database_url: str | None = None) -> sessionmaker[Session]:
    """Return the session factory bound to the shared engine for ``database_url``."""

    url = _database_url(database_url)
    get_engine(database_url=url)
    return _SESSION_MAKERS[url]


@contextmanager
def session_scope(
    *,
    database_url: str | None = None,
    sessions: sessionmaker[Session] | None = None,
) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations.

    ``sessions`` wins over ``database_url`` when both are given.
    """

    factory = sessions if sessions is not None else get_sessionmaker(database_url=database_url)
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def dispose_engines() -> None:
    """Dispose and forget every cached engine (test teardown helper)."""

    with _LOCK:
        for engine in _ENGINES.values():
            engine.dispose()
        _ENGINES.clear()
        _SESSION_MAKERS.clear()


__all__ = [
    "get_engine",
    "get_sessionmaker",
    "session_scope",
    "dispose_engines",
]
