"""Bilingual (Arabic/English) bank and CliQ SMS parser.

``parse_message`` turns one SMS into a :class:`ParsedTransaction` or returns
``None`` when the text is not a transaction (greetings, promotions, messages
without an amount). It is pure apart from reading the configured timezone
when no timestamp, or a naive one, is supplied.

Stages, in order:

1. Fold Arabic-Indic digits to ASCII.
2. Reject promotional/greeting messages.
3. Detect direction (CliQ patterns first, then generic banking keywords).
4. Extract the amount (first matching pattern wins; ``<= 0`` rejects).
5. Extract and clean the counterparty, or fall back to a fee/service label.
6. Derive the source and a category hint label.
"""

from __future__ import annotations

import re
from datetime import datetime, tzinfo
from functools import lru_cache

from .config import get_settings
from .logging_setup import get_logger
from .models import ParsedTransaction, Source, TransactionType
from .normalizers import clean_merchant, fold_digits
from .patterns import ARABIC_BLOCK, DEFAULT_LOCALE, ParserLocale

logger = get_logger("sms_categorizer.parser")


class InvalidTimestamp(ValueError):
    """Raised when a supplied timestamp is not an ISO-8601 date/time."""


def parse_message(
    text: str,
    timestamp: str | datetime | None = None,
    *,
    locale: ParserLocale = DEFAULT_LOCALE,
    tz: tzinfo | None = None,
) -> ParsedTransaction | None:
    """Parse one SMS into a transaction.

    Parameters
    ----------
    text:
        Raw message body.
    timestamp:
        Optional ISO-8601 string or ``datetime``. Naive values are taken to be
        in ``tz``; when omitted the current time in ``tz`` is used.
    locale:
        Pattern tables to match against.
    tz:
        Timezone for naive/missing timestamps; defaults to the configured
        ``SMS_CATEGORIZER_TZ``.

    Returns
    -------
    ParsedTransaction | None
        ``None`` for greetings, promotions and messages without a positive
        amount.

    Raises
    ------
    InvalidTimestamp
        If ``timestamp`` is a string that is not a valid ISO-8601 value.
    """

    when = _resolve_timestamp(timestamp, tz)

    if not text or not text.strip():
        return None
    folded = fold_digits(text)

    if any(marker.search(folded) for marker in locale.skip_markers):
        logger.debug("skipping promotional/greeting message")
        return None

    tx_type, is_cliq = _detect_direction(folded, locale)

    amount = _extract_amount(folded, locale)
    if amount is None:
        logger.debug("no amount found; not a transaction")
        return None

    merchant = _extract_merchant(folded, locale)
    source: Source = "CliQ" if is_cliq else "SMS"

    return ParsedTransaction(
        original_message=text,
        timestamp=when,
        amount=amount,
        merchant=merchant,
        category=_category_hint(folded, merchant, tx_type, source, locale),
        type=tx_type,
        source=source,
    )


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------


def _resolve_timestamp(value: str | datetime | None, tz: tzinfo | None) -> datetime:
    zone = tz if tz is not None else get_settings().tzinfo
    if value is None:
        return datetime.now(zone)
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(value.strip())
        except (AttributeError, ValueError) as exc:
            raise InvalidTimestamp(f"Invalid timestamp: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=zone)
    return parsed


def _detect_direction(text: str, locale: ParserLocale) -> tuple[TransactionType, bool]:
    """Return ``(type, is_cliq)``."""

    for matcher, direction in locale.cliq_direction:
        if matcher.search(text):
            return direction, True
    is_cliq = any(m.search(text) for m in locale.cliq_markers)
    for matcher, direction in locale.bank_direction:
        if matcher.search(text):
            return direction, is_cliq
    return "unknown", is_cliq


def _extract_amount(text: str, locale: ParserLocale) -> float | None:
    for pattern in locale.amount_patterns:
        m = pattern.search(text)
        if m is None:
            continue
        try:
            value = float(m.group("amount").replace(",", ""))
        except ValueError:
            continue
        return value if value > 0 else None
    return None


def _extract_merchant(text: str, locale: ParserLocale) -> str | None:
    for pattern in locale.merchant_patterns:
        for m in pattern.finditer(text):
            cleaned = clean_merchant(m.group("merchant"), locale)
            if cleaned:
                return cleaned
    for matcher, label in locale.fallback_merchants:
        if matcher.search(text):
            return label
    return None


@lru_cache(maxsize=512)
def _keyword_matcher(keyword: str) -> re.Pattern[str]:
    # Whole-word match so "atm" does not fire inside "treatment".
    letters = rf"A-Za-z{ARABIC_BLOCK}"
    return re.compile(rf"(?<![{letters}]){re.escape(keyword)}(?![{letters}])", re.IGNORECASE)


def _category_hint(
    text: str,
    merchant: str | None,
    tx_type: TransactionType,
    source: Source,
    locale: ParserLocale,
) -> str:
    if source == "CliQ":
        if locale.salary_keywords.search(text):
            return "Salary"
        if locale.business_keywords.search(merchant or text):
            return "Business"

    if merchant:
        first = merchant.split()[0].lower()
        for keyword, label in locale.category_keywords:
            if first == keyword:
                return label

    for keyword, label in locale.category_keywords:
        if _keyword_matcher(keyword).search(text):
            return label

    return locale.default_label(source, tx_type)


__all__ = ["parse_message", "InvalidTimestamp"]
