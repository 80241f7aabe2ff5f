"""Signal generators: independent, read-only heuristics that score categories.

Each generator implements :class:`Signal` and returns zero or more
:class:`CategorySuggestion` values for one transaction. Generators never
write; they read learned patterns through a :class:`PatternStore`, so they
can run concurrently (see ``CategorizationService``). Every confidence is
clamped to ``[0, 1]`` before a suggestion is built.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass
from typing import Protocol

from .combine import clamp_confidence
from .models import CategorySuggestion, MessageType, ParsedTransaction, TransactionType
from .normalizers import normalize_merchant
from .store import PatternStore


@dataclass(frozen=True, slots=True)
class SignalFeatures:
    """What the generators see of a transaction."""

    merchant: str
    merchant_key: str
    amount: float
    type: TransactionType
    source: str | None
    message_type: MessageType

    @classmethod
    def from_transaction(cls, tx: ParsedTransaction) -> SignalFeatures:
        merchant = tx.merchant or ""
        return cls(
            merchant=merchant,
            merchant_key=normalize_merchant(merchant),
            amount=float(tx.amount),
            type=tx.type,
            source=tx.source,
            message_type=tx.message_type,
        )


class Signal(Protocol):
    name: str

    def suggest(self, user_id: int, features: SignalFeatures) -> list[CategorySuggestion]: ...


def _suggestion(category_id: int, name: str, confidence: float, reason: str) -> CategorySuggestion:
    return CategorySuggestion(
        category_id=category_id,
        category_name=name,
        confidence=clamp_confidence(confidence),
        reason=reason,
    )


# ---------------------------------------------------------------------------
# Generators
# ---------------------------------------------------------------------------


class ExactMerchantSignal:
    name = "exact_merchant"

    def __init__(self, store: PatternStore) -> None:
        self.store = store

    def suggest(self, user_id: int, features: SignalFeatures) -> list[CategorySuggestion]:
        if not features.merchant_key:
            return []
        return [
            _suggestion(
                m.category_id,
                m.category_name,
                min(m.confidence * 0.9, 0.95),
                f"Exact merchant match (used {m.use_count} times)",
            )
            for m in self.store.merchant_matches(
                user_id, features.merchant_key, features.message_type
            )
        ]


class CliqPatternSignal:
    """Learned CliQ sender patterns, weighted by how close the amount is."""

    name = "cliq_pattern"

    def __init__(self, store: PatternStore) -> None:
        self.store = store

    def suggest(self, user_id: int, features: SignalFeatures) -> list[CategorySuggestion]:
        if not features.merchant_key:
            return []
        out: list[CategorySuggestion] = []
        matches = self.store.cliq_matches(user_id, features.merchant_key, features.type)
        for p in sorted(matches, key=lambda m: m.confidence, reverse=True):
            confidence = p.confidence * 0.85
            if p.average_amount > 0:
                diff = abs(features.amount - p.average_amount) / p.average_amount
                confidence *= 0.7 + 0.3 * max(0.0, 1.0 - diff)
            if p.is_recurring:
                confidence *= 1.1
            reason = "CLIQ pattern match" + (" (recurring)" if p.is_recurring else "")
            out.append(_suggestion(p.category_id, p.category_name, min(confidence, 0.9), reason))
        return out


class AmountRangeSignal:
    """Typical amount ranges learned per category for this message type."""

    name = "amount_range"
    min_confidence = 0.3

    def __init__(self, store: PatternStore) -> None:
        self.store = store

    def suggest(self, user_id: int, features: SignalFeatures) -> list[CategorySuggestion]:
        out: list[CategorySuggestion] = []
        for p in self.store.range_patterns(user_id, features.message_type):
            frequency = p.ranges.best_frequency(features.amount)
            if frequency is None:
                continue
            confidence = clamp_confidence(frequency * 0.6)
            # Rounded so 0.5 * 0.6 (0.3 in exact arithmetic) is kept.
            if round(confidence, 9) >= self.min_confidence:
                out.append(
                    _suggestion(p.category_id, p.category_name, confidence, "Amount pattern match")
                )
        return out


class KeywordSignal:
    name = "keyword"

    def __init__(self, store: PatternStore) -> None:
        self.store = store

    def suggest(self, user_id: int, features: SignalFeatures) -> list[CategorySuggestion]:
        if not features.merchant:
            return []
        category_type = {"income": "INCOME", "expense": "EXPENSE"}.get(features.type)
        merchant = features.merchant.lower()
        out: list[CategorySuggestion] = []
        for c in self.store.categories(user_id, category_type):  # type: ignore[arg-type]
            keywords = c["keywords"]
            if not keywords:
                continue
            matched = sum(1 for k in keywords if k in merchant)
            if matched == 0:
                continue
            out.append(
                _suggestion(
                    c["id"],
                    c["name"],
                    min(matched / len(keywords) * 0.5, 0.7),
                    f"Keyword match ({matched}/{len(keywords)})",
                )
            )
        return out


class AmountDistributionSignal:
    """How typical the amount is for each category, by z-score over history.

    Needs at least three recorded amounts per category. Uses the population
    standard deviation; a zero deviation is treated as 1.
    """

    name = "amount_distribution"
    min_points = 3
    max_z = 1.5
    min_confidence = 0.2

    def __init__(self, store: PatternStore) -> None:
        self.store = store

    def suggest(self, user_id: int, features: SignalFeatures) -> list[CategorySuggestion]:
        amounts: dict[int, list[float]] = defaultdict(list)
        names: dict[int, str] = {}
        for point in self.store.history(user_id):
            amounts[point.category_id].append(point.amount)
            names[point.category_id] = point.category_name

        out: list[CategorySuggestion] = []
        for category_id, values in amounts.items():
            if len(values) < self.min_points:
                continue
            mean = sum(values) / len(values)
            std = math.sqrt(sum((v - mean) ** 2 for v in values) / len(values)) or 1.0
            z = abs(features.amount - mean) / std
            if z >= self.max_z:
                continue
            confidence = max(0.0, (self.max_z - z) / self.max_z * 0.4)
            if confidence > self.min_confidence:
                out.append(
                    _suggestion(
                        category_id, names[category_id], confidence, "Amount pattern similarity"
                    )
                )
        return out


class TimePatternSignal:
    """Placeholder for time-of-day/day-of-week patterns; contributes nothing yet."""

    name = "time_pattern"

    def __init__(self, store: PatternStore) -> None:
        self.store = store

    def suggest(self, user_id: int, features: SignalFeatures) -> list[CategorySuggestion]:
        return []


def default_signals(store: PatternStore) -> tuple[Signal, ...]:
    """The six generators in combination order."""

    return (
        ExactMerchantSignal(store),
        CliqPatternSignal(store),
        AmountRangeSignal(store),
        KeywordSignal(store),
        AmountDistributionSignal(store),
        TimePatternSignal(store),
    )


__all__ = [
    "Signal",
    "SignalFeatures",
    "ExactMerchantSignal",
    "CliqPatternSignal",
    "AmountRangeSignal",
    "KeywordSignal",
    "AmountDistributionSignal",
    "TimePatternSignal",
    "default_signals",
]
