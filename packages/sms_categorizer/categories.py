"""Category store helpers.

Categories are owned per user (``categories`` table). This module exposes the
small, server-side validated operations the intake workflow, the signals and
the CLI need:

- ``create_category(...)``: idempotent creation with case-insensitive conflict
  detection within the user's categories.
- ``list_categories(...)`` / ``get_category(...)``: reads returning plain
  ``CategoryDict`` mappings.
- ``ensure_default_categories(...)``: seed the starter categories for a user.
- ``normalize_name(...)`` / ``validate_name(...)``: shared with the terminal UI
  for early feedback before hitting the database.
- ``detect_business_name(...)``: company/institution heuristic used when a new
  CliQ sender pattern is learned.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal, TypedDict

from db.models.finance import Category
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .logging_setup import get_logger
from .patterns import ARABIC_BLOCK, DEFAULT_LOCALE, ParserLocale

logger = get_logger("sms_categorizer.categories")

type CategoryType = Literal["INCOME", "EXPENSE"]

# ---------------------------
# Name normalization/validation
# ---------------------------

_ALLOWED_RE = re.compile(rf"^[A-Za-z0-9{ARABIC_BLOCK} &\-/]+$")


def normalize_name(name: str) -> str:
    """Return a trimmed, single-spaced representation of ``name``.

    Does not change case.
    """

    return " ".join(name.strip().split())


@dataclass(frozen=True, slots=True)
class NameValidation:
    ok: bool
    reason: str | None = None


def validate_name(name: str, *, min_len: int = 1, max_len: int = 64) -> NameValidation:
    """Lightweight client/server validation for category names.

    Rules
    -----
    - Trim whitespace; enforce length bounds 1..64.
    - Allowed characters: Latin or Arabic letters, digits, spaces, and ``& - /``.
    """

    n = normalize_name(name)
    if len(n) < min_len:
        return NameValidation(False, "Name cannot be empty")
    if len(n) > max_len:
        return NameValidation(False, f"Name must be at most {max_len} characters")
    if not _ALLOWED_RE.match(n):
        return NameValidation(False, "Only letters, numbers, spaces, and & - / are allowed")
    return NameValidation(True, None)


def parse_keywords(raw: str | None) -> list[str]:
    """Split a comma-separated keyword column into lower-case, non-empty terms."""

    if not raw:
        return []
    return [k.strip().lower() for k in raw.split(",") if k.strip()]


def detect_business_name(name: str | None, locale: ParserLocale = DEFAULT_LOCALE) -> bool:
    """True when ``name`` looks like a company or institution rather than a person."""

    if not name:
        return False
    return locale.business_keywords.search(name) is not None


# ---------------------------
# Service result shape
# ---------------------------


class CategoryDict(TypedDict):
    id: int
    user_id: int
    name: str
    type: CategoryType
    keywords: list[str]


class CreateCategoryResult(TypedDict):
    category: CategoryDict
    created: bool


def _row_to_dict(row: Category) -> CategoryDict:
    return {
        "id": row.id,
        "user_id": row.user_id,
        "name": row.name,
        "type": row.type,  # type: ignore[typeddict-item]
        "keywords": parse_keywords(row.keywords),
    }


def _find_by_name(session: Session, *, user_id: int, name: str) -> Category | None:
    return (
        session.execute(
            select(Category).where(
                Category.user_id == user_id,
                func.lower(Category.name) == name.lower(),
            )
        )
        .scalars()
        .first()
    )


def create_category(
    session: Session,
    *,
    user_id: int,
    name: str,
    category_type: CategoryType,
    keywords: Sequence[str] | None = None,
) -> CreateCategoryResult:
    """Create a category for ``user_id`` if it doesn't exist (case-insensitive).

    Parameters
    ----------
    session:
        SQLAlchemy session to use (callers own the transaction scope).
    name:
        Display name; normalized and validated before insert.
    category_type:
        ``"INCOME"`` or ``"EXPENSE"``.
    keywords:
        Optional merchant keywords used by the keyword signal.

    Returns
    -------
    dict
        A mapping ``{"category": {...}, "created": bool}``. An existing
        category with the same name (any case) is returned with
        ``created=False``.
    """

    name_n = normalize_name(name)
    v = validate_name(name_n)
    if not v.ok:
        raise ValueError(f"Invalid category name: {v.reason or 'invalid_name'}")
    if category_type not in ("INCOME", "EXPENSE"):
        raise ValueError(f"Invalid category type: {category_type!r}")

    existing = _find_by_name(session, user_id=user_id, name=name_n)
    if existing is not None:
        return {"category": _row_to_dict(existing), "created": False}

    kw = ",".join(k.strip().lower() for k in (keywords or ()) if k.strip()) or None
    row = Category(user_id=user_id, name=name_n, type=category_type, keywords=kw)
    try:
        # Savepoint so a lost race does not discard the caller's transaction.
        with session.begin_nested():
            session.add(row)
            session.flush()
    except IntegrityError:
        existing = _find_by_name(session, user_id=user_id, name=name_n)
        if existing is None:
            raise
        return {"category": _row_to_dict(existing), "created": False}

    logger.info("created category %r (%s) for user %s", name_n, category_type, user_id)
    return {"category": _row_to_dict(row), "created": True}


def list_categories(
    session: Session,
    *,
    user_id: int,
    category_type: CategoryType | None = None,
) -> list[CategoryDict]:
    """Return the user's categories sorted by name, optionally filtered by type."""

    stmt = select(Category).where(Category.user_id == user_id)
    if category_type is not None:
        stmt = stmt.where(Category.type == category_type)
    rows = session.execute(stmt.order_by(Category.name)).scalars().all()
    return [_row_to_dict(r) for r in rows]


def get_category(session: Session, *, user_id: int, category_id: int) -> CategoryDict:
    """Return one category owned by ``user_id``.

    Raises ``LookupError`` when the id is unknown or belongs to another user.
    """

    row = session.get(Category, category_id)
    if row is None or row.user_id != user_id:
        raise LookupError(f"Category {category_id} not found for user {user_id}")
    return _row_to_dict(row)


# ---------------------------
# Default seed
# ---------------------------


@dataclass(frozen=True, slots=True)
class DefaultCategory:
    name: str
    category_type: CategoryType
    keywords: tuple[str, ...]


DEFAULT_CATEGORIES: tuple[DefaultCategory, ...] = (
    DefaultCategory("Transport", "EXPENSE", ("gulf", "alharamain", "taxi", "uber", "transport")),
    DefaultCategory("Food", "EXPENSE", ("restaurant", "food", "dining", "eat")),
    DefaultCategory("Salary", "INCOME", ("salary", "income", "paycheck")),
)


def ensure_default_categories(
    session: Session,
    *,
    user_id: int,
    defaults: Sequence[DefaultCategory] = DEFAULT_CATEGORIES,
) -> list[str]:
    """Create any missing starter categories; return the names actually created."""

    created: list[str] = []
    for d in defaults:
        res = create_category(
            session,
            user_id=user_id,
            name=d.name,
            category_type=d.category_type,
            keywords=d.keywords,
        )
        if res["created"]:
            created.append(res["category"]["name"])
    return created


__all__ = [
    "CategoryType",
    "CategoryDict",
    "CreateCategoryResult",
    "NameValidation",
    "DefaultCategory",
    "DEFAULT_CATEGORIES",
    "normalize_name",
    "validate_name",
    "parse_keywords",
    "detect_business_name",
    "create_category",
    "list_categories",
    "get_category",
    "ensure_default_categories",
]
