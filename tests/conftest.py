"""Pytest configuration for test isolation.

Settings are cached per process (``get_settings``) and engines are cached per
database URL (``db.client``). Each test gets a clean environment, a fresh
settings cache and its own file-backed SQLite database, and every cached
engine is disposed afterwards so no state leaks between tests.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from db.client import dispose_engines, get_sessionmaker
from sms_categorizer.config import get_settings
from sms_categorizer.ledger import DbLedgerWriter
from sms_categorizer.service import CategorizationService
from sms_categorizer.store import PatternStore
from sms_categorizer.workflows.intake_flow import PendingDecisionStore

from tests.helpers.db import bootstrap_sqlite_db


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Pin the timezone, drop any ambient DATABASE_URL and reset caches."""

    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("SMS_CATEGORIZER_SIGNAL_WORKERS", raising=False)
    monkeypatch.setenv("SMS_CATEGORIZER_TZ", "Asia/Amman")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    dispose_engines()


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return bootstrap_sqlite_db(tmp_path / "sms.db")


@pytest.fixture
def store(db_url: str) -> PatternStore:
    return PatternStore(get_sessionmaker(database_url=db_url))


@pytest.fixture
def service(store: PatternStore) -> CategorizationService:
    return CategorizationService(store, workers=3)


@pytest.fixture
def pending(db_url: str) -> PendingDecisionStore:
    return PendingDecisionStore(get_sessionmaker(database_url=db_url))


@pytest.fixture
def ledger() -> DbLedgerWriter:
    return DbLedgerWriter()
