# ruff: noqa: I001
"""Categories, ledger, pending decisions and learned-pattern tables.

Revision ID: 0001_sms_core
Revises: None
Create Date: 2026-10-19
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_sms_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def _category_fk(name: str = "category_id", *, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.Integer(), sa.ForeignKey("categories.id"), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("keywords", sa.Text(), nullable=True),
        _created_at(),
        sa.UniqueConstraint("user_id", "name", name="uq_categories_user_name"),
        sa.CheckConstraint("type in ('INCOME','EXPENSE')", name="ck_categories_type"),
    )
    op.create_index("ix_categories_user_id", "categories", ["user_id"])

    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 3), nullable=False),
        sa.Column("merchant", sa.Text(), nullable=True),
        _category_fk(),
        sa.Column("source", sa.String(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
        sa.CheckConstraint("kind in ('income','expense')", name="ck_ledger_entries_kind"),
        sa.CheckConstraint("amount > 0", name="ck_ledger_entries_amount"),
    )
    op.create_index("ix_ledger_entries_user_id", "ledger_entries", ["user_id"])

    op.create_table(
        "pending_decisions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("snapshot", sa.JSON(), nullable=False),
        sa.Column("suggestions", sa.JSON(), nullable=False),
        _category_fk("suggested_category_id", nullable=True),
        _category_fk("resolved_category_id", nullable=True),
        _created_at(),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_pending_decisions_user_id", "pending_decisions", ["user_id"])

    op.create_table(
        "categorization_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("merchant", sa.Text(), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        _category_fk(),
        sa.Column("message_type", sa.String(), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("was_correct", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
        sa.CheckConstraint(
            "confidence >= 0 AND confidence <= 1", name="ck_categorization_history_confidence"
        ),
    )
    op.create_index(
        "ix_categorization_history_message_type", "categorization_history", ["message_type"]
    )
    op.create_index(
        "ix_categorization_history_user_merchant",
        "categorization_history",
        ["user_id", "merchant"],
    )
    op.create_index(
        "ix_categorization_history_user_category",
        "categorization_history",
        ["user_id", "category_id"],
    )

    op.create_table(
        "merchant_learning",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("merchant", sa.Text(), nullable=False),
        _category_fk(),
        sa.Column("message_type", sa.String(), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("use_count", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("average_amount", sa.Float(), nullable=True),
        sa.Column("last_used", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
        sa.UniqueConstraint(
            "user_id", "merchant", "category_id", "message_type", name="uq_merchant_learning_key"
        ),
        sa.CheckConstraint(
            "confidence >= 0 AND confidence <= 1", name="ck_merchant_learning_confidence"
        ),
    )
    op.create_index(
        "ix_merchant_learning_user_merchant", "merchant_learning", ["user_id", "merchant"]
    )

    op.create_table(
        "category_patterns",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        _category_fk(),
        sa.Column("message_type", sa.String(), nullable=False),
        sa.Column("typical_amounts", sa.JSON(), nullable=False),
        sa.Column("transaction_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "user_id", "category_id", "message_type", name="uq_category_patterns_key"
        ),
    )
    op.create_index(
        "ix_category_patterns_user_message_type",
        "category_patterns",
        ["user_id", "message_type"],
    )

    op.create_table(
        "cliq_patterns",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("sender", sa.Text(), nullable=False),
        sa.Column("transaction_type", sa.String(), nullable=False),
        _category_fk(),
        sa.Column("average_amount", sa.Float(), nullable=False),
        sa.Column("amount_variance", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("use_count", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "is_business_like", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        sa.Column("last_seen", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
        sa.UniqueConstraint(
            "user_id", "sender", "transaction_type", name="uq_cliq_patterns_key"
        ),
        sa.CheckConstraint(
            "confidence >= 0 AND confidence <= 1", name="ck_cliq_patterns_confidence"
        ),
    )
    op.create_index("ix_cliq_patterns_is_recurring", "cliq_patterns", ["is_recurring"])


def downgrade() -> None:
    for table in (
        "cliq_patterns",
        "category_patterns",
        "merchant_learning",
        "categorization_history",
        "pending_decisions",
        "ledger_entries",
        "categories",
    ):
        op.drop_table(table)
