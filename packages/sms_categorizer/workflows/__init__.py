"""Intake orchestration built on the categorization service."""

from .intake_flow import (
    IntakeOutcome,
    PendingDecisionStore,
    PendingRecord,
    PromptPayload,
    complete_decision,
    process_message,
)

__all__ = [
    "process_message",
    "complete_decision",
    "PendingDecisionStore",
    "PendingRecord",
    "PromptPayload",
    "IntakeOutcome",
]
