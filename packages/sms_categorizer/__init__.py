"""Public interface for the ``sms_categorizer`` package.

Symbol re-exports only; see the individual modules for behavior.
"""

from .models import (
    CategorizationResult,
    CategorySuggestion,
    ParsedTransaction,
    ParsedTransactionSnapshot,
)
from .parser import InvalidTimestamp, parse_message
from .service import CategorizationService
from .store import PatternStore

__all__ = [
    # Parsing
    "parse_message",
    "InvalidTimestamp",
    # Categorization
    "CategorizationService",
    "PatternStore",
    # Models / types
    "ParsedTransaction",
    "ParsedTransactionSnapshot",
    "CategorySuggestion",
    "CategorizationResult",
]
