"""Process-level settings read once from the environment.

Environment variables
---------------------
- ``DATABASE_URL``: SQLAlchemy URL of the store (required by DB-backed flows).
- ``SMS_CATEGORIZER_TZ``: IANA timezone used when a message carries no
  timestamp, and for naive timestamps (default ``Asia/Amman``).
- ``SMS_CATEGORIZER_SIGNAL_WORKERS``: thread-pool size for the signal fan-out
  (default 6, clamped to 1..16).
- ``SMS_CATEGORIZER_LOG_LEVEL``: read by :mod:`.logging_setup`.

The CLI loads a ``.env`` from the working directory before the first call to
:func:`get_settings`; library users set the environment themselves or build a
:class:`Settings` explicitly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_TIMEZONE = "Asia/Amman"
DEFAULT_SIGNAL_WORKERS = 6
_MAX_SIGNAL_WORKERS = 16


@dataclass(frozen=True, slots=True)
class Settings:
    database_url: str | None = None
    timezone: str = DEFAULT_TIMEZONE
    signal_workers: int = DEFAULT_SIGNAL_WORKERS

    def __post_init__(self) -> None:
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {self.timezone!r}") from exc
        if isinstance(self.signal_workers, bool) or not isinstance(self.signal_workers, int):
            raise ValueError("signal_workers must be an integer")
        if self.signal_workers < 1:
            raise ValueError("signal_workers must be a positive integer")

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @classmethod
    def from_env(cls) -> Settings:
        raw_workers = os.getenv("SMS_CATEGORIZER_SIGNAL_WORKERS")
        try:
            workers = int(raw_workers) if raw_workers else DEFAULT_SIGNAL_WORKERS
        except ValueError:
            workers = DEFAULT_SIGNAL_WORKERS
        return cls(
            database_url=os.getenv("DATABASE_URL") or None,
            timezone=os.getenv("SMS_CATEGORIZER_TZ") or DEFAULT_TIMEZONE,
            signal_workers=max(1, min(workers, _MAX_SIGNAL_WORKERS)),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process settings, read from the environment on first use."""

    return Settings.from_env()


__all__ = ["Settings", "get_settings", "DEFAULT_TIMEZONE", "DEFAULT_SIGNAL_WORKERS"]
