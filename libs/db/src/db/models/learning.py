from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from .finance import Base

# Every learned record keys merchants/senders by their normalized form
# (see ``sms_categorizer.normalizers.normalize_merchant``). Callers normalize
# before lookup or upsert; the tables do not re-normalize.


def _confidence_check(table: str) -> CheckConstraint:
    return CheckConstraint(
        "confidence >= 0 AND confidence <= 1", name=f"ck_{table}_confidence"
    )


class CategorizationHistory(Base):
    """Append-only log of user category decisions."""

    __tablename__ = "categorization_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    merchant: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("categories.id"), nullable=False
    )
    message_type: Mapped[str] = mapped_column(String, nullable=False, index=True)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    was_correct: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("true")
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_categorization_history_user_merchant", "user_id", "merchant"),
        Index("ix_categorization_history_user_category", "user_id", "category_id"),
        _confidence_check("categorization_history"),
    )


class MerchantLearning(Base):
    __tablename__ = "merchant_learning"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    merchant: Mapped[str] = mapped_column(Text, nullable=False)
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("categories.id"), nullable=False
    )
    message_type: Mapped[str] = mapped_column(String, nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    use_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("1"))
    average_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_used: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "merchant",
            "category_id",
            "message_type",
            name="uq_merchant_learning_key",
        ),
        Index("ix_merchant_learning_user_merchant", "user_id", "merchant"),
        _confidence_check("merchant_learning"),
    )


class CategoryPattern(Base):
    """Typical amount ranges observed for a category and message type.

    ``typical_amounts`` stores a versioned ``AmountRanges`` document
    (``{"schema_version": 1, "ranges": [{"min", "max", "frequency"}]}``).
    """

    __tablename__ = "category_patterns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("categories.id"), nullable=False
    )
    message_type: Mapped[str] = mapped_column(String, nullable=False)
    typical_amounts: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    transaction_count: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "user_id", "category_id", "message_type", name="uq_category_patterns_key"
        ),
        Index("ix_category_patterns_user_message_type", "user_id", "message_type"),
    )


class CliqPattern(Base):
    __tablename__ = "cliq_patterns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    sender: Mapped[str] = mapped_column(Text, nullable=False)
    # income | expense | unknown (the parsed direction, not the message type)
    transaction_type: Mapped[str] = mapped_column(String, nullable=False)
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("categories.id"), nullable=False
    )
    average_amount: Mapped[float] = mapped_column(Float, nullable=False)
    amount_variance: Mapped[float] = mapped_column(
        Float, nullable=False, server_default=text("0")
    )
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    use_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("1"))
    is_recurring: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false")
    )
    is_business_like: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false")
    )
    last_seen: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "sender", "transaction_type", name="uq_cliq_patterns_key"
        ),
        Index("ix_cliq_patterns_is_recurring", "is_recurring"),
        _confidence_check("cliq_patterns"),
    )


__all__ = [
    "CategorizationHistory",
    "MerchantLearning",
    "CategoryPattern",
    "CliqPattern",
]
