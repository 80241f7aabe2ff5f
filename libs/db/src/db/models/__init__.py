"""Shared SQLAlchemy models registry for the workspace database.

``finance`` holds user categories, ledger entries and pending decisions;
``learning`` holds the records the categorizer learns from user feedback.
"""

from .finance import Base, Category, LedgerEntry, PendingDecision
from .learning import CategorizationHistory, CategoryPattern, CliqPattern, MerchantLearning

__all__ = [
    "Base",
    "Category",
    "LedgerEntry",
    "PendingDecision",
    "CategorizationHistory",
    "CategoryPattern",
    "CliqPattern",
    "MerchantLearning",
]
