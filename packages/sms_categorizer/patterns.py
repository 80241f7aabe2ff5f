"""Locale tables used by the message parser.

Everything the parser matches against lives here as immutable, ordered data:
tuples of compiled regexes or ``(matcher, label)`` pairs inside a frozen
:class:`ParserLocale`. Order is significant wherever a table is scanned
(first match wins). ``DEFAULT_LOCALE`` covers Jordanian bank and CliQ
messages in Arabic and English; a different locale can be built with
:func:`dataclasses.replace` and passed to ``parse_message``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

type Direction = Literal["income", "expense"]
type Matcher = re.Pattern[str]

_I = re.IGNORECASE

# Letters kept in merchant names: Latin plus the Arabic block.
ARABIC_BLOCK = "\u0600-\u06FF"
_LETTER = rf"A-Za-z{ARABIC_BLOCK}"
_NOT_LETTER_AHEAD = rf"(?![{_LETTER}])"
_NOT_LETTER_BEHIND = rf"(?<![{_LETTER}])"

_NUMBER = r"(?P<amount>\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)"
_AR_AMOUNT_MARKER = r"(?:بمبلغ|بقيمة|قيمة|مبلغ|قيد\s+راتب)"
_EN_AMOUNT_MARKER = r"(?:amount(?:\s+of)?|amt|value(?:\s+of)?|of|for)"
_AR_CURRENCY = r"(?:دينار(?:\s+(?:اردني|أردني))?|د\.ا|JOD|JD)"
_EN_CURRENCY = r"(?:JOD|JD|dinars?)"
# Within one sentence: no newline, and a dot only between digits (100.000).
_SAME_SENTENCE = r"(?:[^.\n]|(?<=\d)\.(?=\d))*"

# Words that end a merchant/sender capture when they follow whitespace.
_BOUNDARY_WORDS = (
    r"بمبلغ|بقيمة|قيمة|مبلغ|الرصيد|رصيد|رصيدكم|بتاريخ|في|دينار|"
    r"عمان|الاردن|الأردن|"
    r"amount|amt|balance|bal|avail(?:able)?|on|in|via|using|ref|reference|"
    r"amman|jordan|jo|jod|jd"
)
_BOUNDARY = (
    rf"(?=\s+(?:{_BOUNDARY_WORDS}){_NOT_LETTER_AHEAD}"
    r"|\s+(?:of|for)\s+(?:JOD|JD|\d)"
    r"|\s*[.,;:،\n(]"
    r"|\s+\d"
    r"|\s*$)"
)

_CITY_NAMES = (
    r"عمان|الاردن|الأردن|اربد|إربد|الزرقاء|العقبة|"
    r"amman|jordan|jo|irbid|zarqa|aqaba"
)


@dataclass(frozen=True, slots=True)
class ParserLocale:
    """Ordered pattern tables for one market's message formats."""

    # Promotional/greeting markers; any hit rejects the message.
    skip_markers: tuple[Matcher, ...]
    # CliQ direction patterns are tested before the generic banking ones.
    cliq_direction: tuple[tuple[Matcher, Direction], ...]
    # Direction-neutral CliQ markers (e.g. a "CliQ:" prefix).
    cliq_markers: tuple[Matcher, ...]
    bank_direction: tuple[tuple[Matcher, Direction], ...]
    # Each pattern exposes a named group ``amount``.
    amount_patterns: tuple[Matcher, ...]
    # Each pattern exposes a named group ``merchant``.
    merchant_patterns: tuple[Matcher, ...]
    # Merchant cleanup, applied in field order by ``clean_merchant``.
    account_refs: Matcher
    city_suffix: Matcher
    noise_tokens: Matcher
    leading_tokens: Matcher
    # Labels used when no merchant could be extracted.
    fallback_merchants: tuple[tuple[Matcher, str], ...]
    salary_keywords: Matcher
    business_keywords: Matcher
    # Static keyword -> category hint table (lower-case keys).
    category_keywords: tuple[tuple[str, str], ...]
    # (source, type) -> default hint when nothing else matched.
    default_labels: tuple[tuple[tuple[str, str], str], ...]

    def default_label(self, source: str, tx_type: str) -> str:
        for (src, typ), label in self.default_labels:
            if src == source and typ == tx_type:
                return label
        return "Uncategorized"


def _compile_all(*patterns: str, flags: int = _I) -> tuple[Matcher, ...]:
    return tuple(re.compile(p, flags) for p in patterns)


def _markers(*phrases: str) -> tuple[Matcher, ...]:
    return tuple(re.compile(re.escape(p), _I) for p in phrases)


DEFAULT_LOCALE = ParserLocale(
    skip_markers=_markers(
        "تهنئكم",
        "كل عام",
        "عيد مبارك",
        "عيد سعيد",
        "بعيد",
        "العيد",
        "أضحى",
        "العام الهجري",
        "رمضان",
        "مبارك",
        "بمناسبة",
        "عرض خاص",
        "eid mubarak",
        "ramadan kareem",
        "happy new year",
        "season's greetings",
        "special offer",
    ),
    cliq_direction=(
        (re.compile(r"حوالة\s+(?:كليك|كليق)\s+واردة"), "income"),
        (re.compile(r"(?:كليك|كليق)\s+واردة"), "income"),
        (
            re.compile(rf"\bcliq\b{_SAME_SENTENCE}\b(?:received|incoming|credited)\b", _I),
            "income",
        ),
        (re.compile(rf"\b(?:received|incoming)\b{_SAME_SENTENCE}\bcliq\b", _I), "income"),
        (re.compile(r"حوالة\s+(?:كليك|كليق)\s+صادرة"), "expense"),
        (re.compile(r"(?:كليك|كليق)\s+صادرة"), "expense"),
        (
            re.compile(rf"\bcliq\b{_SAME_SENTENCE}\b(?:sent|outgoing|debited)\b", _I),
            "expense",
        ),
        (re.compile(rf"\b(?:sent|outgoing)\b{_SAME_SENTENCE}\bcliq\b", _I), "expense"),
    ),
    cliq_markers=_compile_all(r"\bcliq\b", r"كليك|كليق"),
    bank_direction=(
        (
            re.compile(
                r"تحويل\s+وارد|حوالة\s+واردة|ايداع|إيداع|راتب"
                r"|\bdeposit(?:ed)?\b|\bcredited\b|\bsalary\b|\bincoming\s+transfer\b"
                r"|\brefund(?:ed)?\b",
                _I,
            ),
            "income",
        ),
        (
            re.compile(
                r"حوالة\s+صادرة|تحويل\s+صادر|شراء|دفع|خصم|اقتطاع|عمولة|رسوم"
                r"|خدمات\s+مصرفية|تفويض|سحب"
                r"|\bpurchase\b|\bdebited\b|\bauthori[sz]ation\b|\bdeducted\b"
                r"|\bwithdrawal\b|\bpayment\b|\boutgoing\s+transfer\b|\bfees?\b",
                _I,
            ),
            "expense",
        ),
    ),
    amount_patterns=_compile_all(
        rf"{_AR_AMOUNT_MARKER}\s*:?\s*{_NUMBER}\s*{_AR_CURRENCY}",
        rf"\b{_EN_AMOUNT_MARKER}\s*:?\s*{_NUMBER}\s*{_EN_CURRENCY}\b",
        rf"\b{_EN_AMOUNT_MARKER}\s*:?\s*{_EN_CURRENCY}\s*{_NUMBER}",
    ),
    merchant_patterns=_compile_all(
        r"(?:اسم\s+)?(?:المرسل|المستفيد|المحول\s+(?:له|اليه|إليه)"
        r"|sender(?:\s+name)?|beneficiary(?:\s+name)?|receiver(?:\s+name)?|payee|merchant)"
        rf"\s*:\s*(?P<merchant>.+?){_BOUNDARY}",
        rf"{_NOT_LETTER_BEHIND}(?:من|الى|إلى|لدى|عند)\s+(?P<merchant>.+?){_BOUNDARY}",
        rf"\b(?:from|to|at)\s+(?P<merchant>.+?){_BOUNDARY}",
    ),
    account_refs=re.compile(
        rf"{_NOT_LETTER_BEHIND}"
        r"(?:حسابكم|حسابك|حساب|بطاقتكم|بطاقتك|بطاقة|your\s+(?:account|card)|account|card)"
        rf"{_NOT_LETTER_AHEAD}"
        r"(?:\s*(?:رقم|no\.?|number))?(?:[\s\-]*[\d*][\dxX*\-]*)*",
        _I,
    ),
    city_suffix=re.compile(
        rf"(?:\s+(?:in|في))?(?:\s+(?:{_CITY_NAMES}){_NOT_LETTER_AHEAD})+\s*$",
        _I,
    ),
    noise_tokens=re.compile(
        rf"{_NOT_LETTER_BEHIND}(?:JOD|JD|دينار|اردني|أردني|بمبلغ|بقيمة|قيمة|مبلغ|amount|amt)"
        rf"{_NOT_LETTER_AHEAD}",
        _I,
    ),
    leading_tokens=re.compile(
        r"^(?:(?:the|from|to|at|mr|mrs|ms|من|الى|إلى|لدى|عند|السيد|السيدة)\.?\s+)+",
        _I,
    ),
    fallback_merchants=(
        (
            re.compile(
                r"عمولة|رسوم|خدمات\s+مصرفية|خصم\s+تلقائي|اقتطاع"
                r"|\bfees?\b|\bcommission\b|\bcharges?\b",
                _I,
            ),
            "Bank Fees",
        ),
        (
            re.compile(
                r"تسديد\s+الكتروني|مدفوعات|دفع|خدمة|\bbill\s+payment\b|\be-?fawateer(?:com)?\b",
                _I,
            ),
            "Services",
        ),
    ),
    salary_keywords=re.compile(r"راتب|رواتب|\bsalary\b|\bpayroll\b|\bwages?\b", _I),
    business_keywords=re.compile(
        r"\b(?:company|co|corp|corporation|ltd|llc|inc|bank|store|shop|est|establishment)\b"
        r"|شركة|مؤسسة|معهد|مصرف|بنك|متجر|محل",
        _I,
    ),
    category_keywords=(
        ("carrefour", "Groceries"),
        ("كارفور", "Groceries"),
        ("cozmo", "Groceries"),
        ("safeway", "Groceries"),
        ("sameh", "Groceries"),
        ("talabat", "Food"),
        ("طلبات", "Food"),
        ("careem", "Transport"),
        ("كريم", "Transport"),
        ("uber", "Transport"),
        ("taxi", "Transport"),
        ("تكسي", "Transport"),
        ("zain", "Telecom"),
        ("زين", "Telecom"),
        ("orange", "Telecom"),
        ("اورنج", "Telecom"),
        ("umniah", "Telecom"),
        ("امنية", "Telecom"),
        ("jopetrol", "Fuel"),
        ("manaseer", "Fuel"),
        ("المناصير", "Fuel"),
        ("محطة", "Fuel"),
        ("kfc", "Food"),
        ("mcdonalds", "Food"),
        ("restaurant", "Food"),
        ("مطعم", "Food"),
        ("cafe", "Food"),
        ("pharmacy", "Health"),
        ("صيدلية", "Health"),
        ("hospital", "Health"),
        ("مستشفى", "Health"),
        ("electricity", "Utilities"),
        ("الكهرباء", "Utilities"),
        ("كهرباء", "Utilities"),
        ("water", "Utilities"),
        ("مياه", "Utilities"),
        ("netflix", "Subscriptions"),
        ("spotify", "Subscriptions"),
        ("amazon", "Shopping"),
        ("ikea", "Shopping"),
        ("noon", "Shopping"),
        ("atm", "Cash"),
        ("صراف", "Cash"),
    ),
    default_labels=(
        (("CliQ", "income"), "CliQ Incoming"),
        (("CliQ", "expense"), "CliQ Outgoing"),
        (("CliQ", "unknown"), "CliQ Transfer"),
        (("SMS", "income"), "Income"),
        (("SMS", "expense"), "Expense"),
        (("SMS", "unknown"), "Uncategorized"),
    ),
)


__all__ = ["ParserLocale", "DEFAULT_LOCALE", "Direction", "ARABIC_BLOCK"]
