"""db: shared database library (SQLAlchemy/Alembic).

Public exports
--------------
- ``Base`` and ``metadata`` for Alembic autogenerate/targeting
- ORM models in ``db.models`` (re-exported for convenience)
- Engine/session helpers in ``db.client``
"""

from __future__ import annotations

from .models import (
    Base,
    CategorizationHistory,
    Category,
    CategoryPattern,
    CliqPattern,
    LedgerEntry,
    MerchantLearning,
    PendingDecision,
)

# Re-export SQLAlchemy metadata for Alembic's env.py
metadata = Base.metadata

__all__ = [
    "Base",
    "metadata",
    "Category",
    "LedgerEntry",
    "PendingDecision",
    "CategorizationHistory",
    "CategoryPattern",
    "CliqPattern",
    "MerchantLearning",
]
