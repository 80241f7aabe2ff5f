# ruff: noqa: I001
"""Ledger collaborator: books a categorized transaction as income or expense.

Writers take the caller's session so the ledger row commits in the same unit
of work as the decision that produced it (e.g. resolving a pending decision).
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from db.models.finance import LedgerEntry
from sqlalchemy import select
from sqlalchemy.orm import Session

from .categories import get_category
from .logging_setup import get_logger
from .models import ParsedTransaction

logger = get_logger("sms_categorizer.ledger")


class LedgerWriter(Protocol):
    def write(
        self,
        session: Session,
        *,
        user_id: int,
        transaction: ParsedTransaction,
        category_id: int,
    ) -> int: ...


def _to_amount(value: float) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.001"), rounding=ROUND_HALF_UP)


class DbLedgerWriter:
    """Writes ``ledger_entries`` rows.

    The entry kind follows the transaction direction; for an ``unknown``
    direction the chosen category's type decides.
    """

    def write(
        self,
        session: Session,
        *,
        user_id: int,
        transaction: ParsedTransaction,
        category_id: int,
    ) -> int:
        category = get_category(session, user_id=user_id, category_id=category_id)
        if transaction.type in ("income", "expense"):
            kind = transaction.type
        else:
            kind = category["type"].lower()
        entry = LedgerEntry(
            user_id=user_id,
            kind=kind,
            amount=_to_amount(transaction.amount),
            merchant=transaction.merchant,
            category_id=category_id,
            source=transaction.source,
            occurred_at=transaction.timestamp,
        )
        session.add(entry)
        session.flush()
        logger.info(
            "ledger %s %s for user %s under %r (entry %s)",
            kind,
            entry.amount,
            user_id,
            category["name"],
            entry.id,
        )
        return entry.id


def list_entries(session: Session, *, user_id: int) -> list[LedgerEntry]:
    """Return the user's ledger entries, oldest first."""

    return list(
        session.execute(
            select(LedgerEntry).where(LedgerEntry.user_id == user_id).order_by(LedgerEntry.id)
        )
        .scalars()
        .all()
    )


__all__ = ["LedgerWriter", "DbLedgerWriter", "list_entries"]
