# ruff: noqa: I001
"""Message intake orchestration: parse, score, decide, then book or ask.

``process_message`` carries one SMS from raw text to either a ledger entry
(confident, non-CliQ) or a persisted pending decision that the user answers
later through ``complete_decision``. Learning always runs after the ledger
row has committed, in its own transaction, so a learning failure never undoes
a booking.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime

from db.client import session_scope
from db.models.finance import PendingDecision
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from ..categories import detect_business_name
from ..decision import Decision, DecisionKind, TransactionState, can_transition, decide
from ..ledger import LedgerWriter
from ..logging_setup import get_logger
from ..models import (
    CategorizationResult,
    CategorySuggestion,
    ParsedTransaction,
    ParsedTransactionSnapshot,
    SuggestionList,
)
from ..parser import parse_message
from ..service import CategorizationService

logger = get_logger("sms_categorizer.workflows.intake_flow")


# ---------------------------------------------------------------------------
# Pending decisions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PendingRecord:
    id: int
    user_id: int
    transaction: ParsedTransaction
    suggestions: tuple[CategorySuggestion, ...]
    suggested_category_id: int | None
    resolved_category_id: int | None
    created_at: datetime | None
    resolved_at: datetime | None

    @property
    def resolved(self) -> bool:
        return self.resolved_at is not None


def _to_record(row: PendingDecision) -> PendingRecord:
    return PendingRecord(
        id=row.id,
        user_id=row.user_id,
        transaction=ParsedTransactionSnapshot.model_validate(row.snapshot).to_transaction(),
        suggestions=SuggestionList.model_validate(
            {"schema_version": 1, "items": row.suggestions}
        ).to_suggestions(),
        suggested_category_id=row.suggested_category_id,
        resolved_category_id=row.resolved_category_id,
        created_at=row.created_at,
        resolved_at=row.resolved_at,
    )


class PendingDecisionStore:
    """Persists transactions awaiting a user decision (``pending_decisions``)."""

    def __init__(self, sessions: sessionmaker[Session]) -> None:
        self.sessions = sessions

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        with session_scope(sessions=self.sessions) as session:
            yield session

    def create(
        self,
        session: Session,
        *,
        user_id: int,
        transaction: ParsedTransaction,
        suggestions: Sequence[CategorySuggestion],
        suggested_category_id: int | None,
    ) -> int:
        row = PendingDecision(
            user_id=user_id,
            snapshot=ParsedTransactionSnapshot.from_transaction(transaction).model_dump(),
            suggestions=SuggestionList.from_suggestions(suggestions).model_dump()["items"],
            suggested_category_id=suggested_category_id,
        )
        session.add(row)
        session.flush()
        return row.id

    def get(self, user_id: int, pending_id: int) -> PendingRecord:
        with self.transaction() as session:
            return _to_record(self._owned(session, user_id, pending_id))

    def list_open(self, user_id: int) -> list[PendingRecord]:
        with self.transaction() as session:
            rows = (
                session.execute(
                    select(PendingDecision)
                    .where(
                        PendingDecision.user_id == user_id,
                        PendingDecision.resolved_at.is_(None),
                    )
                    .order_by(PendingDecision.id)
                )
                .scalars()
                .all()
            )
            return [_to_record(r) for r in rows]

    def claim(
        self, session: Session, *, user_id: int, pending_id: int, category_id: int
    ) -> PendingRecord:
        """Lock and resolve an open decision in the caller's transaction.

        Raises ``LookupError`` for an unknown or foreign id and ``ValueError``
        when the decision was already resolved.
        """

        row = self._owned(session, user_id, pending_id, for_update=True)
        if row.resolved_at is not None:
            raise ValueError(f"Pending decision {pending_id} is already resolved")
        row.resolved_at = datetime.now(UTC)
        row.resolved_category_id = category_id
        session.flush()
        return _to_record(row)

    @staticmethod
    def _owned(
        session: Session, user_id: int, pending_id: int, *, for_update: bool = False
    ) -> PendingDecision:
        stmt = select(PendingDecision).where(PendingDecision.id == pending_id)
        if for_update:
            stmt = stmt.with_for_update()
        row = session.execute(stmt).scalars().first()
        if row is None or row.user_id != user_id:
            raise LookupError(f"Pending decision {pending_id} not found for user {user_id}")
        return row


# ---------------------------------------------------------------------------
# Outcomes and notifications
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PromptPayload:
    """What a notifier receives when the user has to choose a category.

    For CliQ transfers ``is_recurring`` and ``is_business_like`` describe the
    sender as learned so far; both are ``False`` for bank messages.
    """

    user_id: int
    pending_id: int
    transaction: ParsedTransaction
    kind: DecisionKind
    prefill_category_id: int | None
    suggestions: tuple[CategorySuggestion, ...]
    is_recurring: bool = False
    is_business_like: bool = False


@dataclass(frozen=True, slots=True)
class IntakeOutcome:
    state: TransactionState
    transaction: ParsedTransaction | None = None
    result: CategorizationResult | None = None
    decision: Decision | None = None
    ledger_entry_id: int | None = None
    pending_id: int | None = None
    notes: tuple[str, ...] = field(default=())


type Notifier = Callable[[PromptPayload], None]


def _advance(state: TransactionState, target: TransactionState) -> TransactionState:
    if not can_transition(state, target):
        raise RuntimeError(f"Illegal transaction state change {state} -> {target}")
    return target


# ---------------------------------------------------------------------------
# Orchestrators
# ---------------------------------------------------------------------------


def process_message(
    user_id: int,
    text: str,
    timestamp: str | datetime | None = None,
    *,
    service: CategorizationService,
    ledger: LedgerWriter,
    pending: PendingDecisionStore,
    notifier: Notifier | None = None,
) -> IntakeOutcome:
    """Parse, score and route one message.

    Parameters
    ----------
    user_id:
        Owner of the message.
    text / timestamp:
        Passed to :func:`~sms_categorizer.parser.parse_message`; an invalid
        timestamp raises ``InvalidTimestamp``.
    service:
        Categorization service used for scoring and learning.
    ledger:
        Writer used for confident, non-CliQ transactions.
    pending:
        Store for transactions that need a user decision.
    notifier:
        Optional callable told about each new prompt. Its failures are logged
        and do not affect the stored pending decision.

    Returns
    -------
    IntakeOutcome
        ``REJECTED`` for non-transactions, ``AUTO_CATEGORIZED`` when booked
        (learning follows implicitly), else ``AWAITING_USER_DECISION`` with the
        pending id.
    """

    tx = parse_message(text, timestamp)
    if tx is None:
        logger.debug("message rejected for user %s", user_id)
        return IntakeOutcome(state=TransactionState.REJECTED)

    state = TransactionState.PARSED
    result = service.categorize_transaction(user_id, tx)
    state = _advance(state, TransactionState.SCORED)
    decision = decide(tx, result)
    state = _advance(state, decision.next_state)

    if state is TransactionState.AUTO_CATEGORIZED:
        category_id = decision.category_id
        if category_id is None:
            raise RuntimeError("auto-categorize decision carries no category")
        with pending.transaction() as session:
            entry_id = ledger.write(
                session, user_id=user_id, transaction=tx, category_id=category_id
            )
        service.learn_from_user_decision(user_id, tx, category_id, was_correction=False)
        logger.info(
            "auto-categorized %s %.3f for user %s as %r (confidence %.2f)",
            tx.type,
            tx.amount,
            user_id,
            result.category_name,
            result.confidence,
        )
        return IntakeOutcome(
            state=state,
            transaction=tx,
            result=result,
            decision=decision,
            ledger_entry_id=entry_id,
        )

    with pending.transaction() as session:
        pending_id = pending.create(
            session,
            user_id=user_id,
            transaction=tx,
            suggestions=decision.suggestions,
            suggested_category_id=decision.category_id,
        )
    logger.info(
        "pending decision %s for user %s (%s, confidence %.2f)",
        pending_id,
        user_id,
        decision.kind.value,
        result.confidence,
    )

    notes: tuple[str, ...] = ()
    if notifier is not None:
        is_recurring = is_business_like = False
        if tx.is_cliq:
            sender = service.cliq_pattern(user_id, tx.merchant or "", tx.type)
            is_recurring = sender is not None and sender.is_recurring
            is_business_like = (
                sender is not None and sender.is_business_like
            ) or detect_business_name(tx.merchant)
        payload = PromptPayload(
            user_id=user_id,
            pending_id=pending_id,
            transaction=tx,
            kind=decision.kind,
            prefill_category_id=decision.category_id,
            suggestions=decision.suggestions,
            is_recurring=is_recurring,
            is_business_like=is_business_like,
        )
        try:
            notifier(payload)
        except Exception:
            logger.exception("notifier failed for pending decision %s", pending_id)
            notes = ("notification failed",)

    return IntakeOutcome(
        state=state,
        transaction=tx,
        result=result,
        decision=decision,
        pending_id=pending_id,
        notes=notes,
    )


def complete_decision(
    user_id: int,
    pending_id: int,
    category_id: int,
    *,
    service: CategorizationService,
    ledger: LedgerWriter,
    pending: PendingDecisionStore,
) -> IntakeOutcome:
    """Book the user's answer to a pending decision and learn from it.

    Resolving the decision and writing the ledger row commit together. A
    choice that differs from the suggested category is learned as a
    correction.

    Raises
    ------
    LookupError
        Unknown/foreign pending decision, or a category the user does not own.
    ValueError
        The decision was already resolved.
    """

    state = _advance(TransactionState.AWAITING_USER_DECISION, TransactionState.USER_DECIDED)
    with pending.transaction() as session:
        record = pending.claim(
            session, user_id=user_id, pending_id=pending_id, category_id=category_id
        )
        entry_id = ledger.write(
            session, user_id=user_id, transaction=record.transaction, category_id=category_id
        )

    was_correction = (
        record.suggested_category_id is not None and record.suggested_category_id != category_id
    )
    service.learn_from_user_decision(
        user_id, record.transaction, category_id, was_correction=was_correction
    )
    logger.info(
        "resolved pending decision %s for user %s -> category %s (correction=%s)",
        pending_id,
        user_id,
        category_id,
        was_correction,
    )
    return IntakeOutcome(
        state=state,
        transaction=record.transaction,
        ledger_entry_id=entry_id,
        pending_id=pending_id,
    )


__all__ = [
    "PendingRecord",
    "PendingDecisionStore",
    "PromptPayload",
    "IntakeOutcome",
    "Notifier",
    "process_message",
    "complete_decision",
]
