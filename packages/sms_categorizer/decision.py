"""Decision policy and per-transaction lifecycle states.

CliQ transfers always go to the user. Other transactions are booked
automatically only when the top suggestion is confident (``> 0.8``) and
names a category; everything else is surfaced as a prompt, prefilled when
the best guess clears ``0.5``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from .combine import PREFILL_THRESHOLD
from .models import CategorizationResult, CategorySuggestion, ParsedTransaction

AUTO_THRESHOLD = 0.8


class DecisionKind(StrEnum):
    ALWAYS_PROMPT = "always_prompt"
    AUTO_CATEGORIZE = "auto_categorize"
    PROMPT_USER = "prompt_user"


class TransactionState(StrEnum):
    """Lifecycle of one message.

    ``PARSED -> SCORED -> {AUTO_CATEGORIZED | AWAITING_USER_DECISION}``;
    ``AWAITING_USER_DECISION -> USER_DECIDED -> LEARNED``;
    ``AUTO_CATEGORIZED -> LEARNED``. ``REJECTED`` and ``LEARNED`` are terminal.
    """

    PARSED = "parsed"
    SCORED = "scored"
    AUTO_CATEGORIZED = "auto_categorized"
    AWAITING_USER_DECISION = "awaiting_user_decision"
    USER_DECIDED = "user_decided"
    LEARNED = "learned"
    REJECTED = "rejected"


_TRANSITIONS: dict[TransactionState, frozenset[TransactionState]] = {
    TransactionState.PARSED: frozenset({TransactionState.SCORED}),
    TransactionState.SCORED: frozenset(
        {TransactionState.AUTO_CATEGORIZED, TransactionState.AWAITING_USER_DECISION}
    ),
    TransactionState.AUTO_CATEGORIZED: frozenset({TransactionState.LEARNED}),
    TransactionState.AWAITING_USER_DECISION: frozenset({TransactionState.USER_DECIDED}),
    TransactionState.USER_DECIDED: frozenset({TransactionState.LEARNED}),
    TransactionState.LEARNED: frozenset(),
    TransactionState.REJECTED: frozenset(),
}


def can_transition(src: TransactionState, dst: TransactionState) -> bool:
    return dst in _TRANSITIONS[src]


@dataclass(frozen=True, slots=True)
class Decision:
    kind: DecisionKind
    # Category to book (AUTO_CATEGORIZE) or to prefill in the prompt.
    category_id: int | None
    suggestions: tuple[CategorySuggestion, ...]

    @property
    def next_state(self) -> TransactionState:
        if self.kind is DecisionKind.AUTO_CATEGORIZE:
            return TransactionState.AUTO_CATEGORIZED
        return TransactionState.AWAITING_USER_DECISION


def decide(transaction: ParsedTransaction, result: CategorizationResult) -> Decision:
    prefill = result.category_id if result.confidence > PREFILL_THRESHOLD else None
    if transaction.source == "CliQ":
        return Decision(DecisionKind.ALWAYS_PROMPT, prefill, result.suggestions)
    if result.confidence > AUTO_THRESHOLD and result.category_id is not None:
        return Decision(DecisionKind.AUTO_CATEGORIZE, result.category_id, result.suggestions)
    return Decision(DecisionKind.PROMPT_USER, prefill, result.suggestions)


__all__ = [
    "AUTO_THRESHOLD",
    "DecisionKind",
    "TransactionState",
    "Decision",
    "decide",
    "can_transition",
]
