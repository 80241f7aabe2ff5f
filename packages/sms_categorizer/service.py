"""Adaptive categorization service.

``CategorizationService`` is an explicit value built around an injected
:class:`PatternStore`; hosts construct one per database (see
:meth:`CategorizationService.from_settings`) and share it freely across
threads, since it holds no mutable state of its own.
"""

from __future__ import annotations

from collections.abc import Sequence

from db.client import get_sessionmaker

from .categories import detect_business_name
from .combine import build_result, combine_suggestions, empty_result
from .config import Settings, get_settings
from .logging_setup import get_logger
from .models import CategorizationResult, CategorySuggestion, ParsedTransaction
from .normalizers import normalize_merchant
from .pmap import p_map
from .signals import Signal, SignalFeatures, default_signals
from .store import CliqPatternView, PatternStore

logger = get_logger("sms_categorizer.service")


class CategorizationService:
    """Scores transactions against learned patterns and learns from decisions.

    Parameters
    ----------
    store:
        Pattern store bound to the target database.
    signals:
        Generators to run, in combination order. Defaults to the six built-in
        generators.
    workers:
        Thread-pool size for the signal fan-out.
    """

    def __init__(
        self,
        store: PatternStore,
        *,
        signals: Sequence[Signal] | None = None,
        workers: int = 6,
    ) -> None:
        self.store = store
        self.signals: tuple[Signal, ...] = (
            tuple(signals) if signals is not None else default_signals(store)
        )
        self.workers = workers

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> CategorizationService:
        s = settings or get_settings()
        store = PatternStore(get_sessionmaker(database_url=s.database_url))
        return cls(store, workers=s.signal_workers)

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def categorize_transaction(self, user_id: int, tx: ParsedTransaction) -> CategorizationResult:
        """Run every signal concurrently and combine their suggestions.

        Returns a zero-confidence result (never raises) when nothing matches.
        Errors from the store propagate.
        """

        if not tx.merchant or not tx.amount:
            return empty_result()

        features = SignalFeatures.from_transaction(tx)

        def _run(signal: Signal) -> list[CategorySuggestion]:
            return signal.suggest(user_id, features)

        per_signal = p_map(
            list(self.signals),
            _run,
            concurrency=self.workers,
            thread_name_prefix="signal",
        )
        ranked = combine_suggestions(s for batch in per_signal for s in batch)
        result = build_result(ranked)
        logger.debug(
            "categorized %r for user %s: confidence=%.3f reason=%r",
            features.merchant_key,
            user_id,
            result.confidence,
            result.reason,
        )
        return result

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------

    def learn_from_user_decision(
        self,
        user_id: int,
        tx: ParsedTransaction,
        category_id: int,
        was_correction: bool = False,
    ) -> None:
        """Fold one categorization decision into the learned patterns.

        Best-effort: store failures are logged and swallowed so they never
        undo a decision that has already been recorded.
        """

        if not tx.merchant:
            logger.debug("skip learning for user %s: transaction has no merchant", user_id)
            return

        key = normalize_merchant(tx.merchant)
        if not key:
            logger.debug(
                "skip learning for user %s: merchant %r normalizes to empty", user_id, tx.merchant
            )
            return
        message_type = tx.message_type
        amount = float(tx.amount)

        try:
            with self.store.transaction() as session:
                self.store.record_history(
                    session,
                    user_id=user_id,
                    merchant=key,
                    amount=amount,
                    category_id=category_id,
                    message_type=message_type,
                    confidence=0.0 if was_correction else 1.0,
                    was_correct=not was_correction,
                    timestamp=tx.timestamp,
                )
                self.store.upsert_merchant(
                    session,
                    user_id=user_id,
                    merchant=key,
                    category_id=category_id,
                    message_type=message_type,
                    amount=amount,
                )
                self.store.update_category_pattern(
                    session,
                    user_id=user_id,
                    category_id=category_id,
                    message_type=message_type,
                    amount=amount,
                )
                if tx.is_cliq:
                    self.store.upsert_cliq_pattern(
                        session,
                        user_id=user_id,
                        sender=key,
                        transaction_type=tx.type,
                        category_id=category_id,
                        amount=amount,
                        is_business_like=detect_business_name(tx.merchant),
                    )
        except Exception:
            logger.exception(
                "learning failed for user %s merchant %r category %s", user_id, key, category_id
            )
            return

        logger.info(
            "learned %s -> category %s for user %s (%s, correction=%s)",
            key,
            category_id,
            user_id,
            message_type,
            was_correction,
        )

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def cliq_patterns(
        self, user_id: int, transaction_type: str | None = None
    ) -> list[CliqPatternView]:
        return self.store.cliq_patterns(user_id, transaction_type)

    def cliq_pattern(
        self, user_id: int, sender: str, transaction_type: str
    ) -> CliqPatternView | None:
        """The learned pattern for one sender and direction, if any."""

        key = normalize_merchant(sender)
        if not key:
            return None
        found = self.store.cliq_patterns(user_id, transaction_type, sender=key)
        return found[0] if found else None

    def update_cliq_pattern(
        self,
        user_id: int,
        sender: str,
        transaction_type: str,
        *,
        is_recurring: bool | None = None,
        category_id: int | None = None,
    ) -> CliqPatternView:
        """Apply a user override to a sender pattern.

        Unlike learning this is not best-effort: ``LookupError`` for an
        unknown pattern or a foreign category propagates to the caller.
        """

        with self.store.transaction() as session:
            return self.store.update_cliq_pattern(
                session,
                user_id,
                sender,
                transaction_type,
                is_recurring=is_recurring,
                category_id=category_id,
            )


__all__ = ["CategorizationService"]
