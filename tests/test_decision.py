from datetime import UTC, datetime

import pytest
from sms_categorizer.decision import (
    DecisionKind,
    TransactionState,
    can_transition,
    decide,
)
from sms_categorizer.models import CategorizationResult, CategorySuggestion, ParsedTransaction


def _tx(source: str = "SMS", tx_type: str = "expense") -> ParsedTransaction:
    return ParsedTransaction(
        original_message="msg",
        timestamp=datetime(2024, 1, 1, tzinfo=UTC),
        amount=10.0,
        merchant="Shop",
        category="Expense",
        type=tx_type,  # type: ignore[arg-type]
        source=source,  # type: ignore[arg-type]
    )


def _result(conf: float, cid: int | None = 7) -> CategorizationResult:
    suggestion = CategorySuggestion(7, "Groceries", conf, "r")
    return CategorizationResult(
        category_id=cid if conf > 0.5 else None,
        category_name="Groceries" if conf > 0.5 and cid is not None else None,
        confidence=conf,
        reason="r",
        suggestions=(suggestion,),
    )


def test_cliq_always_prompts_even_when_confident():
    d = decide(_tx(source="CliQ", tx_type="income"), _result(0.95))
    assert d.kind is DecisionKind.ALWAYS_PROMPT
    assert d.category_id == 7
    assert d.next_state is TransactionState.AWAITING_USER_DECISION


def test_confident_bank_message_is_auto_categorized():
    d = decide(_tx(), _result(0.81))
    assert d.kind is DecisionKind.AUTO_CATEGORIZE
    assert d.category_id == 7
    assert d.next_state is TransactionState.AUTO_CATEGORIZED


def test_exactly_point_eight_is_not_auto():
    d = decide(_tx(), _result(0.8))
    assert d.kind is DecisionKind.PROMPT_USER
    assert d.category_id == 7


def test_weak_result_prompts_without_prefill():
    d = decide(_tx(), _result(0.5))
    assert d.kind is DecisionKind.PROMPT_USER
    assert d.category_id is None
    assert len(d.suggestions) == 1


def test_high_confidence_without_category_prompts():
    d = decide(_tx(), _result(0.9, cid=None))
    assert d.kind is DecisionKind.PROMPT_USER


@pytest.mark.parametrize(
    "src, dst, ok",
    [
        (TransactionState.PARSED, TransactionState.SCORED, True),
        (TransactionState.SCORED, TransactionState.AUTO_CATEGORIZED, True),
        (TransactionState.AWAITING_USER_DECISION, TransactionState.USER_DECIDED, True),
        (TransactionState.USER_DECIDED, TransactionState.LEARNED, True),
        (TransactionState.AUTO_CATEGORIZED, TransactionState.LEARNED, True),
        (TransactionState.AUTO_CATEGORIZED, TransactionState.USER_DECIDED, False),
        (TransactionState.REJECTED, TransactionState.SCORED, False),
        (TransactionState.LEARNED, TransactionState.PARSED, False),
    ],
)
def test_state_transitions(src, dst, ok):
    assert can_transition(src, dst) is ok
