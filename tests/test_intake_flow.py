from datetime import UTC, datetime
from decimal import Decimal

import pytest
from db.client import session_scope
from db.models.learning import CategorizationHistory
from sms_categorizer.decision import DecisionKind, TransactionState
from sms_categorizer.ledger import list_entries
from sms_categorizer.models import ParsedTransaction
from sms_categorizer.workflows.intake_flow import complete_decision, process_message
from sqlalchemy import select

from tests.helpers.db import seed_categories

USER = 1
CLIQ_TEXT = "CLIQ: تم استلام حوالة كليق واردة من Ahmad Ali بقيمة 100.00 دينار"
CARREFOUR_TEXT = "Purchase of JOD 25.000 at CARREFOUR AMMAN on 12/03"


def _learned(merchant: str, amount: float, *, source: str, tx_type: str) -> ParsedTransaction:
    return ParsedTransaction(
        original_message="seed",
        timestamp=datetime(2024, 1, 1, tzinfo=UTC),
        amount=amount,
        merchant=merchant,
        category="seed",
        type=tx_type,  # type: ignore[arg-type]
        source=source,  # type: ignore[arg-type]
    )


@pytest.fixture
def deps(service, ledger, pending):
    return {"service": service, "ledger": ledger, "pending": pending}


def test_greeting_is_rejected(deps):
    outcome = process_message(USER, "تهنئكم الاسرة بعيد مبارك", **deps)
    assert outcome.state is TransactionState.REJECTED
    assert outcome.transaction is None


def test_confident_bank_message_is_booked_automatically(db_url, service, deps):
    ids = seed_categories(database_url=db_url, user_id=USER, categories={"Groceries": "EXPENSE"})
    seed = _learned("Carrefour", 25.0, source="SMS", tx_type="expense")
    for _ in range(5):
        service.learn_from_user_decision(USER, seed, ids["Groceries"])

    outcome = process_message(USER, CARREFOUR_TEXT, "2024-03-12T10:00:00+03:00", **deps)

    assert outcome.state is TransactionState.AUTO_CATEGORIZED
    assert outcome.decision.kind is DecisionKind.AUTO_CATEGORIZE
    assert outcome.pending_id is None
    with session_scope(database_url=db_url) as s:
        (entry,) = list_entries(s, user_id=USER)
        assert entry.id == outcome.ledger_entry_id
        assert entry.kind == "expense"
        assert entry.amount == Decimal("25.000")
        assert entry.category_id == ids["Groceries"]
        assert entry.source == "SMS"
        assert entry.merchant == "CARREFOUR"
        # The booking itself was learned from as a confirmation.
        history = (
            s.execute(select(CategorizationHistory).order_by(CategorizationHistory.id))
            .scalars()
            .all()
        )
        assert len(history) == 6
        assert history[-1].was_correct is True


def test_cliq_message_waits_for_user_then_books_on_decision(db_url, deps, pending):
    ids = seed_categories(database_url=db_url, user_id=USER, categories={"Family": "INCOME"})
    prompts = []

    outcome = process_message(
        USER, CLIQ_TEXT, "2024-03-01T09:15:00+03:00", notifier=prompts.append, **deps
    )

    assert outcome.state is TransactionState.AWAITING_USER_DECISION
    assert outcome.decision.kind is DecisionKind.ALWAYS_PROMPT
    assert outcome.ledger_entry_id is None
    (payload,) = prompts
    assert payload.pending_id == outcome.pending_id
    assert payload.prefill_category_id is None
    assert payload.transaction == outcome.transaction

    (record,) = pending.list_open(USER)
    assert record.id == outcome.pending_id
    assert record.transaction == outcome.transaction
    assert not record.resolved

    done = complete_decision(USER, outcome.pending_id, ids["Family"], **deps)

    assert done.state is TransactionState.USER_DECIDED
    assert pending.list_open(USER) == []
    resolved = pending.get(USER, outcome.pending_id)
    assert resolved.resolved and resolved.resolved_category_id == ids["Family"]
    with session_scope(database_url=db_url) as s:
        (entry,) = list_entries(s, user_id=USER)
        assert entry.id == done.ledger_entry_id
        assert (entry.kind, entry.amount, entry.source) == ("income", Decimal("100"), "CliQ")
    (pattern,) = deps["service"].cliq_patterns(USER)
    assert pattern.sender == "ahmad ali" and pattern.use_count == 1


def test_completing_twice_is_rejected(db_url, deps):
    ids = seed_categories(database_url=db_url, user_id=USER, categories={"Family": "INCOME"})
    outcome = process_message(USER, CLIQ_TEXT, **deps)
    complete_decision(USER, outcome.pending_id, ids["Family"], **deps)
    with pytest.raises(ValueError, match="already resolved"):
        complete_decision(USER, outcome.pending_id, ids["Family"], **deps)
    with session_scope(database_url=db_url) as s:
        assert len(list_entries(s, user_id=USER)) == 1


def test_foreign_ids_are_rejected_and_nothing_is_booked(db_url, deps, pending):
    ids = seed_categories(database_url=db_url, user_id=USER, categories={"Family": "INCOME"})
    other = seed_categories(database_url=db_url, user_id=2, categories={"Gifts": "INCOME"})
    outcome = process_message(USER, CLIQ_TEXT, **deps)

    with pytest.raises(LookupError):
        complete_decision(2, outcome.pending_id, other["Gifts"], **deps)
    with pytest.raises(LookupError):
        complete_decision(USER, outcome.pending_id, other["Gifts"], **deps)

    # The failed attempts rolled back: still open, nothing booked.
    assert [r.id for r in pending.list_open(USER)] == [outcome.pending_id]
    with session_scope(database_url=db_url) as s:
        assert list_entries(s, user_id=USER) == []
    complete_decision(USER, outcome.pending_id, ids["Family"], **deps)


def test_choosing_a_different_category_is_learned_as_correction(db_url, service, deps):
    ids = seed_categories(
        database_url=db_url, user_id=USER, categories={"Family": "INCOME", "Gifts": "INCOME"}
    )
    seed = _learned("Ahmad Ali", 100.0, source="CliQ", tx_type="income")
    for _ in range(3):
        service.learn_from_user_decision(USER, seed, ids["Family"])

    outcome = process_message(USER, CLIQ_TEXT, **deps)
    assert outcome.decision.kind is DecisionKind.ALWAYS_PROMPT
    assert outcome.decision.category_id == ids["Family"]
    assert outcome.result.suggestions[0].category_name == "Family"

    complete_decision(USER, outcome.pending_id, ids["Gifts"], **deps)
    with session_scope(database_url=db_url) as s:
        last = (
            s.execute(select(CategorizationHistory).order_by(CategorizationHistory.id.desc()))
            .scalars()
            .first()
        )
        assert last.category_id == ids["Gifts"]
        assert last.was_correct is False
        assert last.confidence == 0.0


def test_notifier_failure_keeps_pending_decision(db_url, deps, pending):
    seed_categories(database_url=db_url, user_id=USER, categories={"Family": "INCOME"})

    def broken(_payload):
        raise ConnectionError("push service down")

    outcome = process_message(USER, CLIQ_TEXT, notifier=broken, **deps)
    assert outcome.state is TransactionState.AWAITING_USER_DECISION
    assert outcome.notes == ("notification failed",)
    assert len(pending.list_open(USER)) == 1


def test_cliq_prompt_describes_known_sender(db_url, service, deps):
    ids = seed_categories(database_url=db_url, user_id=USER, categories={"Family": "INCOME"})
    seed = _learned("Ahmad Ali", 100.0, source="CliQ", tx_type="income")
    for _ in range(3):
        service.learn_from_user_decision(USER, seed, ids["Family"])
    prompts = []

    process_message(USER, CLIQ_TEXT, notifier=prompts.append, **deps)

    (payload,) = prompts
    assert payload.is_recurring is True
    assert payload.is_business_like is False


def test_cliq_prompt_flags_business_sender_without_history(deps):
    prompts = []
    process_message(
        USER,
        "Received CliQ transfer of 120 JOD from Nour Trading Company",
        notifier=prompts.append,
        **deps,
    )
    (payload,) = prompts
    assert payload.is_recurring is False
    assert payload.is_business_like is True
