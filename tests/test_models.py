from datetime import UTC, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError
from sms_categorizer.models import (
    AmountRange,
    AmountRanges,
    CategorySuggestion,
    ParsedTransaction,
    ParsedTransactionSnapshot,
    SuggestionList,
    message_type_for,
)


def _tx(**overrides) -> ParsedTransaction:
    fields = dict(
        original_message="Purchase of JOD 5 at KFC",
        timestamp=datetime(2024, 5, 1, 9, 0, tzinfo=timezone(timedelta(hours=3))),
        amount=5.0,
        merchant="KFC",
        category="Food",
        type="expense",
        source="SMS",
    )
    fields.update(overrides)
    return ParsedTransaction(**fields)


def test_message_type_mapping():
    assert message_type_for("CliQ", "income") == "cliq_incoming"
    assert message_type_for("CliQ", "unknown") == "cliq_outgoing"
    assert message_type_for("SMS", "income") == "bank_credit"
    assert message_type_for(None, "expense") == "bank_debit"


@pytest.mark.parametrize(
    "overrides",
    [
        {"amount": 0.0},
        {"amount": -3.0},
        {"amount": float("inf")},
        {"timestamp": datetime(2024, 5, 1, 9, 0)},
        {"type": "transfer"},
        {"source": "Email"},
    ],
)
def test_parsed_transaction_rejects_invalid_fields(overrides):
    with pytest.raises(ValueError):
        _tx(**overrides)


def test_snapshot_restores_the_same_transaction():
    tx = _tx()
    doc = ParsedTransactionSnapshot.from_transaction(tx).model_dump()
    assert doc["schema_version"] == 1
    assert ParsedTransactionSnapshot.model_validate(doc).to_transaction() == tx


def test_snapshot_rejects_unknown_keys_and_naive_timestamps():
    doc = ParsedTransactionSnapshot.from_transaction(_tx()).model_dump()
    with pytest.raises(ValidationError):
        ParsedTransactionSnapshot.model_validate({**doc, "extra": 1})
    with pytest.raises(ValidationError):
        ParsedTransactionSnapshot.model_validate({**doc, "timestamp": "2024-05-01T09:00:00"})


def test_amount_within_twenty_percent_widens_existing_range():
    ranges = AmountRanges(ranges=[AmountRange(min=40, max=60, frequency=0.5)])
    updated = ranges.with_amount(70)
    assert len(updated.ranges) == 1
    r = updated.ranges[0]
    assert (r.min, r.max) == (40, 70)
    assert r.frequency == pytest.approx(0.6)
    # The source document is left untouched.
    assert ranges.ranges[0].max == 60


def test_distant_amount_appends_new_range():
    updated = AmountRanges(ranges=[AmountRange(min=40, max=60, frequency=0.5)]).with_amount(200)
    assert len(updated.ranges) == 2
    new = updated.ranges[1]
    assert new.min == pytest.approx(180)
    assert new.max == pytest.approx(220)
    assert new.frequency == 0.5


def test_frequency_is_capped_at_one():
    ranges = AmountRanges(ranges=[AmountRange(min=10, max=10, frequency=0.95)])
    assert ranges.with_amount(10).ranges[0].frequency == 1.0


def test_best_frequency():
    ranges = AmountRanges(
        ranges=[
            AmountRange(min=40, max=60, frequency=0.5),
            AmountRange(min=50, max=55, frequency=0.8),
        ]
    )
    assert ranges.best_frequency(52) == 0.8
    assert ranges.best_frequency(45) == 0.5
    assert ranges.best_frequency(100) is None


def test_amount_range_validation():
    with pytest.raises(ValidationError):
        AmountRange(min=5, max=1, frequency=0.5)
    with pytest.raises(ValidationError):
        AmountRange(min=1, max=5, frequency=1.5)


def test_suggestion_list_roundtrip_preserves_order():
    suggestions = (
        CategorySuggestion(2, "Food", 0.7, "Keyword match (1/4)"),
        CategorySuggestion(1, "Groceries", 0.4, "Amount pattern match"),
    )
    doc = SuggestionList.from_suggestions(suggestions).model_dump()
    assert SuggestionList.model_validate(doc).to_suggestions() == suggestions


def test_snapshot_keeps_utc_offset():
    tx = _tx(timestamp=datetime(2024, 1, 2, 3, 4, tzinfo=UTC))
    snap = ParsedTransactionSnapshot.from_transaction(tx)
    assert snap.timestamp == "2024-01-02T03:04:00+00:00"
