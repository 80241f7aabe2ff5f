"""Fan-in of signal suggestions into one ranked categorization result."""

from __future__ import annotations

import math
from collections.abc import Iterable

from .models import CategorizationResult, CategorySuggestion

MAX_SUGGESTIONS = 5
PREFILL_THRESHOLD = 0.5
MERGE_DAMPING = 0.8
MERGE_CAP = 0.95

NO_PATTERN_REASON = "No strong pattern found"
INSUFFICIENT_DATA_REASON = "Insufficient data for categorization"


def clamp_confidence(value: float) -> float:
    """Clamp to ``[0, 1]``; NaN becomes 0."""

    if math.isnan(value):
        return 0.0
    return min(max(float(value), 0.0), 1.0)


def combine_suggestions(suggestions: Iterable[CategorySuggestion]) -> list[CategorySuggestion]:
    """Merge suggestions per category and rank them.

    Suggestions are folded in the order given. A category seen again merges
    as ``min((existing + new) * 0.8, 0.95)`` with the reasons joined by
    ``" + "``. The result is sorted by confidence, highest first; ties keep
    first-seen order.
    """

    merged: dict[int, CategorySuggestion] = {}
    for s in suggestions:
        prev = merged.get(s.category_id)
        if prev is None:
            merged[s.category_id] = s
            continue
        merged[s.category_id] = CategorySuggestion(
            category_id=prev.category_id,
            category_name=prev.category_name,
            confidence=clamp_confidence(
                min((prev.confidence + s.confidence) * MERGE_DAMPING, MERGE_CAP)
            ),
            reason=f"{prev.reason} + {s.reason}",
        )
    return sorted(merged.values(), key=lambda s: s.confidence, reverse=True)


def build_result(ranked: list[CategorySuggestion]) -> CategorizationResult:
    if not ranked:
        return CategorizationResult(
            category_id=None, category_name=None, confidence=0.0, reason=NO_PATTERN_REASON
        )
    best = ranked[0]
    strong = best.confidence > PREFILL_THRESHOLD
    return CategorizationResult(
        category_id=best.category_id if strong else None,
        category_name=best.category_name if strong else None,
        confidence=best.confidence,
        reason=best.reason or NO_PATTERN_REASON,
        suggestions=tuple(ranked[:MAX_SUGGESTIONS]),
    )


def empty_result() -> CategorizationResult:
    return CategorizationResult(
        category_id=None, category_name=None, confidence=0.0, reason=INSUFFICIENT_DATA_REASON
    )


__all__ = [
    "clamp_confidence",
    "combine_suggestions",
    "build_result",
    "empty_result",
    "MAX_SUGGESTIONS",
    "PREFILL_THRESHOLD",
    "NO_PATTERN_REASON",
    "INSUFFICIENT_DATA_REASON",
]
