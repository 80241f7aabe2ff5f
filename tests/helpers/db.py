"""DB helpers for tests: bootstrap a temporary SQLite DB and seed categories."""

from __future__ import annotations

import os
from pathlib import Path

from db import Base
from db.client import get_engine, session_scope
from sms_categorizer.categories import create_category
from sqlalchemy import event


def bootstrap_sqlite_db(db_file: Path, *, set_default_env: bool = False) -> str:
    """Create a SQLite database file, initialize schema, and return the URL.

    Using a file-backed SQLite DB ensures multiple SQLAlchemy connections share
    the same state (in-memory DBs are per-connection by default), which the
    concurrent signal reads rely on.
    """

    url = f"sqlite+pysqlite:///{db_file}"
    # Ensure parent exists before engine creation attempts any writes
    db_file.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(database_url=url)

    # Enforce FKs so foreign-category writes fail like they do on Postgres
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _):  # pragma: no cover - tiny bridge
        dbapi_conn.execute("PRAGMA foreign_keys = ON")

    Base.metadata.create_all(bind=engine)

    # Make it the default for any code paths that read from the environment
    if set_default_env:
        os.environ.setdefault("DATABASE_URL", url)
    return url


def seed_categories(
    *, database_url: str, user_id: int, categories: dict[str, str]
) -> dict[str, int]:
    """Create ``{name: type}`` categories for ``user_id``; return ``{name: id}``."""

    ids: dict[str, int] = {}
    with session_scope(database_url=database_url) as session:
        for name, category_type in categories.items():
            res = create_category(
                session, user_id=user_id, name=name, category_type=category_type
            )
            ids[name] = res["category"]["id"]
    return ids
