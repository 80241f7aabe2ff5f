"""Data models for ``sms_categorizer``.

In-process values are frozen ``dataclass`` instances; anything persisted as a
JSON document (pending-decision snapshots, learned amount ranges, stored
suggestion lists) is a pydantic model with extra keys forbidden, carrying a
``schema_version`` so older rows can be recognised when the shape changes.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

type TransactionType = Literal["income", "expense", "unknown"]
type Source = Literal["CliQ", "SMS"]
type MessageType = Literal["cliq_incoming", "cliq_outgoing", "bank_credit", "bank_debit"]

TRANSACTION_TYPES: tuple[str, ...] = ("income", "expense", "unknown")
SOURCES: tuple[str, ...] = ("CliQ", "SMS")


def message_type_for(source: str | None, tx_type: str) -> MessageType:
    """Map ``(source, type)`` to the message-type key used by learned patterns.

    Anything that is not income counts as outgoing (CliQ) or debit (bank).
    """

    if source == "CliQ":
        return "cliq_incoming" if tx_type == "income" else "cliq_outgoing"
    return "bank_credit" if tx_type == "income" else "bank_debit"


# ---------------------------------------------------------------------------
# Parsed transactions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ParsedTransaction:
    """A structured record extracted from one SMS.

    ``category`` is the parser's hint label (e.g. ``"Groceries"`` or
    ``"CliQ Incoming"``), not a user category id. ``merchant`` is the cleaned
    display name; lookups use :func:`~sms_categorizer.normalizers.normalize_merchant`.
    """

    original_message: str
    timestamp: datetime
    amount: float
    merchant: str | None
    category: str
    type: TransactionType
    source: Source | None

    def __post_init__(self) -> None:
        if not (self.amount > 0) or math.isinf(self.amount):
            raise ValueError("amount must be a positive finite number")
        if self.timestamp.tzinfo is None:
            raise ValueError("timestamp must be timezone-aware")
        if self.type not in TRANSACTION_TYPES:
            raise ValueError(f"unknown transaction type: {self.type!r}")
        if self.source is not None and self.source not in SOURCES:
            raise ValueError(f"unknown source: {self.source!r}")

    @property
    def message_type(self) -> MessageType:
        return message_type_for(self.source, self.type)

    @property
    def is_cliq(self) -> bool:
        return self.source == "CliQ"


class ParsedTransactionSnapshot(BaseModel):
    """Versioned JSON form of a :class:`ParsedTransaction`.

    Stored alongside a pending decision so the transaction can be rebuilt
    exactly when the user answers later.
    """

    model_config = ConfigDict(extra="forbid")

    schema_version: int = 1
    original_message: str
    # ISO-8601 with offset.
    timestamp: str
    amount: float
    merchant: str | None
    category: str
    type: TransactionType
    source: Source | None

    @field_validator("timestamp")
    @classmethod
    def _iso_with_offset(cls, v: str) -> str:
        parsed = datetime.fromisoformat(v)
        if parsed.tzinfo is None:
            raise ValueError("timestamp must carry a UTC offset")
        return v

    @classmethod
    def from_transaction(cls, tx: ParsedTransaction) -> ParsedTransactionSnapshot:
        return cls(
            original_message=tx.original_message,
            timestamp=tx.timestamp.isoformat(),
            amount=float(tx.amount),
            merchant=tx.merchant,
            category=tx.category,
            type=tx.type,
            source=tx.source,
        )

    def to_transaction(self) -> ParsedTransaction:
        return ParsedTransaction(
            original_message=self.original_message,
            timestamp=datetime.fromisoformat(self.timestamp),
            amount=self.amount,
            merchant=self.merchant,
            category=self.category,
            type=self.type,
            source=self.source,
        )


# ---------------------------------------------------------------------------
# Learned amount ranges (CategoryPattern.typical_amounts)
# ---------------------------------------------------------------------------


class AmountRange(BaseModel):
    model_config = ConfigDict(extra="forbid")

    min: float
    max: float
    frequency: float

    @field_validator("frequency")
    @classmethod
    def _frequency_in_unit_interval(cls, v: float) -> float:
        if 0.0 <= v <= 1.0:
            return v
        raise ValueError("frequency must be within [0,1]")

    @model_validator(mode="after")
    def _ordered(self) -> AmountRange:
        if self.min > self.max:
            raise ValueError("range min must not exceed max")
        return self

    def contains(self, amount: float) -> bool:
        return self.min <= amount <= self.max


class AmountRanges(BaseModel):
    """Typical amount ranges learned for one category and message type."""

    model_config = ConfigDict(extra="forbid")

    schema_version: int = 1
    ranges: list[AmountRange] = []

    def best_frequency(self, amount: float) -> float | None:
        """Highest frequency among ranges containing ``amount`` (None if none do)."""

        hits = [r.frequency for r in self.ranges if r.contains(amount)]
        return max(hits) if hits else None

    def with_amount(self, amount: float) -> AmountRanges:
        """Return a copy that has absorbed one more observation of ``amount``.

        The first range within 20% of its bounds widens to include the amount
        and gains 0.1 frequency (capped at 1.0); otherwise a new +/-10% range
        is appended with frequency 0.5.
        """

        ranges = list(self.ranges)
        for i, r in enumerate(ranges):
            if r.min * 0.8 <= amount <= r.max * 1.2:
                ranges[i] = AmountRange(
                    min=min(r.min, amount),
                    max=max(r.max, amount),
                    frequency=min(r.frequency + 0.1, 1.0),
                )
                break
        else:
            ranges.append(AmountRange(min=amount * 0.9, max=amount * 1.1, frequency=0.5))
        return AmountRanges(schema_version=self.schema_version, ranges=ranges)


# ---------------------------------------------------------------------------
# Suggestions and results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CategorySuggestion:
    category_id: int
    category_name: str
    confidence: float
    reason: str

    def __post_init__(self) -> None:
        c = self.confidence
        if isinstance(c, bool) or not isinstance(c, (int, float)) or not (0.0 <= c <= 1.0):
            raise ValueError(f"confidence must be within [0,1], got {c!r}")


@dataclass(frozen=True, slots=True)
class CategorizationResult:
    """Outcome of categorizing one transaction.

    ``category_id``/``category_name`` are set only when the top suggestion is
    strong enough to prefill; ``suggestions`` always carries the ranked list
    (at most five).
    """

    category_id: int | None
    category_name: str | None
    confidence: float
    reason: str
    suggestions: tuple[CategorySuggestion, ...] = ()


class SuggestionItem(BaseModel):
    model_config = ConfigDict(extra="forbid")

    category_id: int
    category_name: str
    confidence: float
    reason: str


class SuggestionList(BaseModel):
    """Ranked suggestions persisted with a pending decision."""

    model_config = ConfigDict(extra="forbid")

    schema_version: int = 1
    items: list[SuggestionItem] = []

    @classmethod
    def from_suggestions(cls, suggestions: Iterable[CategorySuggestion]) -> SuggestionList:
        return cls(
            items=[
                SuggestionItem(
                    category_id=s.category_id,
                    category_name=s.category_name,
                    confidence=float(s.confidence),
                    reason=s.reason,
                )
                for s in suggestions
            ]
        )

    def to_suggestions(self) -> tuple[CategorySuggestion, ...]:
        return tuple(
            CategorySuggestion(
                category_id=i.category_id,
                category_name=i.category_name,
                confidence=i.confidence,
                reason=i.reason,
            )
            for i in self.items
        )


__all__ = [
    "TransactionType",
    "Source",
    "MessageType",
    "message_type_for",
    "ParsedTransaction",
    "ParsedTransactionSnapshot",
    "AmountRange",
    "AmountRanges",
    "CategorySuggestion",
    "CategorizationResult",
    "SuggestionItem",
    "SuggestionList",
]
