"""Text normalization helpers shared by the parser and the pattern store.

- :func:`fold_digits` maps Arabic-Indic and Extended Arabic-Indic digits (and
  the Arabic decimal/thousands separators) to ASCII so amount regexes only
  deal with ``0-9``, ``.`` and ``,``.
- :func:`clean_merchant` runs the merchant cleanup pipeline on a raw capture.
- :func:`normalize_merchant` produces the lookup key used for every learned
  pattern (merchant and CliQ sender alike).
"""

from __future__ import annotations

import re

from .patterns import ARABIC_BLOCK, DEFAULT_LOCALE, ParserLocale

# ---------------------------------------------------------------------------
# Digits
# ---------------------------------------------------------------------------

_DIGIT_TABLE = str.maketrans(
    {
        **{chr(0x0660 + i): str(i) for i in range(10)},
        **{chr(0x06F0 + i): str(i) for i in range(10)},
        "٫": ".",  # Arabic decimal separator
        "٬": ",",  # Arabic thousands separator
    }
)


def fold_digits(text: str) -> str:
    return text.translate(_DIGIT_TABLE)


# ---------------------------------------------------------------------------
# Merchant cleanup and lookup keys
# ---------------------------------------------------------------------------

_NON_LETTER = re.compile(rf"[^A-Za-z{ARABIC_BLOCK}\s]")
_NON_KEY_CHAR = re.compile(rf"[^a-z{ARABIC_BLOCK}\s]")


def _collapse(text: str) -> str:
    return " ".join(text.split())


def clean_merchant(raw: str, locale: ParserLocale = DEFAULT_LOCALE) -> str:
    """Return a display-ready merchant name from a raw regex capture.

    Steps, in order: strip account references, strip a trailing city/country
    suffix, strip currency and amount-marker tokens, collapse whitespace,
    strip leading articles/prepositions, keep only Latin and Arabic letters
    and spaces, trim. Returns ``""`` when nothing survives.
    """

    s = locale.account_refs.sub(" ", raw)
    s = locale.city_suffix.sub("", s)
    s = locale.noise_tokens.sub(" ", s)
    s = _collapse(s)
    s = locale.leading_tokens.sub("", s)
    s = _NON_LETTER.sub("", s)
    return _collapse(s)


def normalize_merchant(name: str) -> str:
    """Lookup key for a merchant or sender name.

    Lower-case, keep Latin/Arabic letters and whitespace only, collapse runs
    of whitespace, trim. Idempotent.
    """

    return _collapse(_NON_KEY_CHAR.sub("", name.lower()))


__all__ = ["fold_digits", "clean_merchant", "normalize_merchant"]
