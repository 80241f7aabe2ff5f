# ruff: noqa: I001
"""Pattern store: reads for the signal generators and writes for learning.

``PatternStore`` wraps an injected ``sessionmaker``; there is no process-wide
store. Read methods open their own short session so the signal generators can
run concurrently, each on its own connection. Write methods take the caller's
session so one learning event commits (or rolls back) as a unit.

Upserts are atomic in SQL (``INSERT ... ON CONFLICT DO UPDATE`` with the new
values computed from the stored row), so concurrent learning events for the
same key never lose an increment. The amount-range document of a
``CategoryPattern`` is JSON and is updated as a row-locked read-modify-write.

Every merchant/sender argument must already be normalized
(:func:`~sms_categorizer.normalizers.normalize_merchant`), except for
``update_cliq_pattern``, which takes the sender as the user typed it.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from db.client import session_scope
from db.models.finance import Category
from db.models.learning import (
    CategorizationHistory,
    CategoryPattern,
    CliqPattern,
    MerchantLearning,
)
from sqlalchemy import case, func, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, sessionmaker

from .categories import CategoryDict, CategoryType, get_category, list_categories
from .logging_setup import get_logger
from .models import AmountRanges
from .normalizers import normalize_merchant

logger = get_logger("sms_categorizer.store")

MERCHANT_SEED_CONFIDENCE = 0.7
MERCHANT_GROWTH = 1.1
MERCHANT_CAP = 0.95
CLIQ_SEED_CONFIDENCE = 0.6
CLIQ_GROWTH = 1.05
CLIQ_CAP = 0.9
RECURRING_MIN_USES = 3


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class MerchantMatch:
    category_id: int
    category_name: str
    confidence: float
    use_count: int


@dataclass(frozen=True, slots=True)
class CliqMatch:
    category_id: int
    category_name: str
    confidence: float
    average_amount: float
    is_recurring: bool
    use_count: int


@dataclass(frozen=True, slots=True)
class RangeMatch:
    category_id: int
    category_name: str
    ranges: AmountRanges


@dataclass(frozen=True, slots=True)
class HistoryPoint:
    category_id: int
    category_name: str
    amount: float


@dataclass(frozen=True, slots=True)
class CliqPatternView:
    """One learned CliQ sender pattern, as listed to the user."""

    sender: str
    transaction_type: str
    category_id: int
    category_name: str
    average_amount: float
    amount_variance: float
    confidence: float
    use_count: int
    is_recurring: bool
    is_business_like: bool
    last_seen: datetime


def _cliq_view(p: CliqPattern, category_name: str) -> CliqPatternView:
    return CliqPatternView(
        sender=p.sender,
        transaction_type=p.transaction_type,
        category_id=p.category_id,
        category_name=category_name,
        average_amount=p.average_amount,
        amount_variance=p.amount_variance,
        confidence=p.confidence,
        use_count=p.use_count,
        is_recurring=bool(p.is_recurring),
        is_business_like=bool(p.is_business_like),
        last_seen=p.last_seen,
    )


def _insert_for(session: Session) -> Any:
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise RuntimeError(f"Unsupported database dialect for upserts: {dialect}")


def _capped(expr: Any, cap: float) -> Any:
    return case((expr > cap, cap), else_=expr)


class PatternStore:
    """Learned-pattern persistence bound to one database."""

    def __init__(self, sessions: sessionmaker[Session]) -> None:
        self.sessions = sessions

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        with session_scope(sessions=self.sessions) as session:
            yield session

    # -- reads (one short session each) ------------------------------------

    def merchant_matches(
        self, user_id: int, merchant: str, message_type: str
    ) -> list[MerchantMatch]:
        stmt = (
            select(
                MerchantLearning.category_id,
                Category.name,
                MerchantLearning.confidence,
                MerchantLearning.use_count,
            )
            .join(Category, Category.id == MerchantLearning.category_id)
            .where(
                MerchantLearning.user_id == user_id,
                MerchantLearning.merchant == merchant,
                MerchantLearning.message_type == message_type,
            )
            .order_by(MerchantLearning.confidence.desc(), MerchantLearning.id)
        )
        with self.transaction() as s:
            return [MerchantMatch(*row) for row in s.execute(stmt).all()]

    def cliq_matches(self, user_id: int, sender: str, transaction_type: str) -> list[CliqMatch]:
        stmt = (
            select(
                CliqPattern.category_id,
                Category.name,
                CliqPattern.confidence,
                CliqPattern.average_amount,
                CliqPattern.is_recurring,
                CliqPattern.use_count,
            )
            .join(Category, Category.id == CliqPattern.category_id)
            .where(
                CliqPattern.user_id == user_id,
                CliqPattern.sender == sender,
                CliqPattern.transaction_type == transaction_type,
            )
        )
        with self.transaction() as s:
            return [
                CliqMatch(cid, name, conf, avg, bool(rec), uses)
                for cid, name, conf, avg, rec, uses in s.execute(stmt).all()
            ]

    def range_patterns(self, user_id: int, message_type: str) -> list[RangeMatch]:
        stmt = (
            select(CategoryPattern.category_id, Category.name, CategoryPattern.typical_amounts)
            .join(Category, Category.id == CategoryPattern.category_id)
            .where(
                CategoryPattern.user_id == user_id,
                CategoryPattern.message_type == message_type,
            )
            .order_by(CategoryPattern.id)
        )
        with self.transaction() as s:
            rows = s.execute(stmt).all()
        return [
            RangeMatch(cid, name, AmountRanges.model_validate(doc)) for cid, name, doc in rows
        ]

    def history(self, user_id: int) -> list[HistoryPoint]:
        stmt = (
            select(CategorizationHistory.category_id, Category.name, CategorizationHistory.amount)
            .join(Category, Category.id == CategorizationHistory.category_id)
            .where(CategorizationHistory.user_id == user_id)
            .order_by(CategorizationHistory.id)
        )
        with self.transaction() as s:
            return [HistoryPoint(*row) for row in s.execute(stmt).all()]

    def categories(
        self, user_id: int, category_type: CategoryType | None = None
    ) -> list[CategoryDict]:
        with self.transaction() as s:
            return list_categories(s, user_id=user_id, category_type=category_type)

    def cliq_patterns(
        self,
        user_id: int,
        transaction_type: str | None = None,
        *,
        sender: str | None = None,
    ) -> list[CliqPatternView]:
        """List learned CliQ patterns: recurring first, then by use count and recency."""

        stmt = (
            select(CliqPattern, Category.name)
            .join(Category, Category.id == CliqPattern.category_id)
            .where(CliqPattern.user_id == user_id)
        )
        if transaction_type is not None:
            stmt = stmt.where(CliqPattern.transaction_type == transaction_type)
        if sender is not None:
            stmt = stmt.where(CliqPattern.sender == sender)
        stmt = stmt.order_by(
            CliqPattern.is_recurring.desc(),
            CliqPattern.use_count.desc(),
            CliqPattern.last_seen.desc(),
        )
        with self.transaction() as s:
            return [_cliq_view(p, name) for p, name in s.execute(stmt).all()]

    # -- writes (caller's session) -----------------------------------------

    def update_cliq_pattern(
        self,
        session: Session,
        user_id: int,
        sender: str,
        transaction_type: str,
        *,
        is_recurring: bool | None = None,
        category_id: int | None = None,
    ) -> CliqPatternView:
        """Override the recurring flag and/or category of one sender pattern.

        Raises ``LookupError`` when the pattern does not exist or the category
        is not owned by ``user_id``. Unset arguments leave the column alone.
        """

        key = normalize_merchant(sender)
        row = session.execute(
            select(CliqPattern)
            .where(
                CliqPattern.user_id == user_id,
                CliqPattern.sender == key,
                CliqPattern.transaction_type == transaction_type,
            )
            .with_for_update()
        ).scalar_one_or_none()
        if row is None:
            raise LookupError(f"No CliQ pattern for {key!r} ({transaction_type})")

        if category_id is not None:
            category = get_category(session, user_id=user_id, category_id=category_id)
            row.category_id = category["id"]
        if is_recurring is not None:
            row.is_recurring = is_recurring
        session.flush()

        name = session.execute(
            select(Category.name).where(Category.id == row.category_id)
        ).scalar_one()
        logger.info(
            "updated CliQ pattern %r (%s) for user %s: category=%s recurring=%s",
            key,
            transaction_type,
            user_id,
            row.category_id,
            row.is_recurring,
        )
        return _cliq_view(row, name)

    def record_history(
        self,
        session: Session,
        *,
        user_id: int,
        merchant: str,
        amount: float,
        category_id: int,
        message_type: str,
        confidence: float,
        was_correct: bool,
        timestamp: datetime,
    ) -> None:
        session.add(
            CategorizationHistory(
                user_id=user_id,
                merchant=merchant,
                amount=amount,
                category_id=category_id,
                message_type=message_type,
                confidence=confidence,
                was_correct=was_correct,
                timestamp=timestamp,
            )
        )
        session.flush()

    def upsert_merchant(
        self,
        session: Session,
        *,
        user_id: int,
        merchant: str,
        category_id: int,
        message_type: str,
        amount: float,
    ) -> None:
        """Seed at 0.7 or grow confidence by 10% (cap 0.95) and fold in the amount."""

        t = MerchantLearning.__table__.c
        insert = _insert_for(session)
        stmt = insert(MerchantLearning).values(
            user_id=user_id,
            merchant=merchant,
            category_id=category_id,
            message_type=message_type,
            confidence=MERCHANT_SEED_CONFIDENCE,
            use_count=1,
            average_amount=amount,
            last_used=func.now(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[t.user_id, t.merchant, t.category_id, t.message_type],
            set_={
                "use_count": t.use_count + 1,
                "average_amount": (
                    func.coalesce(t.average_amount, stmt.excluded.average_amount) * t.use_count
                    + stmt.excluded.average_amount
                )
                / (t.use_count + 1),
                "confidence": _capped(t.confidence * MERCHANT_GROWTH, MERCHANT_CAP),
                "last_used": func.now(),
            },
        )
        session.execute(stmt)

    def update_category_pattern(
        self,
        session: Session,
        *,
        user_id: int,
        category_id: int,
        message_type: str,
        amount: float,
    ) -> None:
        """Absorb ``amount`` into the typical ranges under a row lock."""

        insert = _insert_for(session)
        seed = insert(CategoryPattern).values(
            user_id=user_id,
            category_id=category_id,
            message_type=message_type,
            typical_amounts=AmountRanges().model_dump(),
            transaction_count=0,
            last_updated=func.now(),
        )
        session.execute(
            seed.on_conflict_do_nothing(
                index_elements=["user_id", "category_id", "message_type"]
            )
        )
        row = session.execute(
            select(CategoryPattern)
            .where(
                CategoryPattern.user_id == user_id,
                CategoryPattern.category_id == category_id,
                CategoryPattern.message_type == message_type,
            )
            .with_for_update()
        ).scalar_one()
        updated = AmountRanges.model_validate(row.typical_amounts).with_amount(amount)
        row.typical_amounts = updated.model_dump()
        row.transaction_count = row.transaction_count + 1
        row.last_updated = func.now()
        session.flush()

    def upsert_cliq_pattern(
        self,
        session: Session,
        *,
        user_id: int,
        sender: str,
        transaction_type: str,
        category_id: int,
        amount: float,
        is_business_like: bool,
    ) -> None:
        """Seed at 0.6 or grow confidence by 5% (cap 0.9); recurring from the third use."""

        t = CliqPattern.__table__.c
        insert = _insert_for(session)
        stmt = insert(CliqPattern).values(
            user_id=user_id,
            sender=sender,
            transaction_type=transaction_type,
            category_id=category_id,
            average_amount=amount,
            amount_variance=0.0,
            confidence=CLIQ_SEED_CONFIDENCE,
            use_count=1,
            is_recurring=False,
            is_business_like=is_business_like,
            last_seen=func.now(),
        )
        new_amount = stmt.excluded.average_amount
        # All right-hand sides read the stored (pre-update) row.
        stmt = stmt.on_conflict_do_update(
            index_elements=[t.user_id, t.sender, t.transaction_type],
            set_={
                "category_id": stmt.excluded.category_id,
                "use_count": t.use_count + 1,
                "average_amount": (t.average_amount * t.use_count + new_amount)
                / (t.use_count + 1),
                "amount_variance": (new_amount - t.average_amount)
                * (new_amount - t.average_amount),
                "confidence": _capped(t.confidence * CLIQ_GROWTH, CLIQ_CAP),
                "is_recurring": or_(t.is_recurring, t.use_count + 1 >= RECURRING_MIN_USES),
                "last_seen": func.now(),
            },
        )
        session.execute(stmt)


__all__ = [
    "PatternStore",
    "MerchantMatch",
    "CliqMatch",
    "RangeMatch",
    "HistoryPoint",
    "CliqPatternView",
    "MERCHANT_SEED_CONFIDENCE",
    "MERCHANT_CAP",
    "CLIQ_SEED_CONFIDENCE",
    "CLIQ_CAP",
]
