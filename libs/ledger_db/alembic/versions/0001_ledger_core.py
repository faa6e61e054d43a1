# ruff: noqa: I001
"""Ledger core tables: accounts, categories, category rules, transactions.

Revision ID: 0001_ledger_core
Revises: None
Create Date: 2026-10-17
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_ledger_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("institution", sa.Text(), nullable=False),
        sa.Column("account_type", sa.Text(), nullable=False),
        sa.Column("mask", sa.Text(), nullable=True),
        sa.Column(
            "current_balance_cents",
            sa.BigInteger(),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("icon", sa.Text(), nullable=True),
        sa.Column("color", sa.Text(), nullable=True),
        sa.Column("parent_id", sa.Text(), nullable=True),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_income", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "exclude_from_spending",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("budget_cents", sa.BigInteger(), nullable=True),
        sa.ForeignKeyConstraint(["parent_id"], ["categories.id"], name="fk_cat_parent"),
        sa.CheckConstraint("parent_id IS NULL OR parent_id <> id", name="ck_cat_parent"),
    )

    op.create_table(
        "category_rules",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("category_id", sa.Text(), nullable=False),
        sa.Column("match_field", sa.Text(), nullable=False, server_default=sa.text("'name'")),
        sa.Column(
            "match_type", sa.Text(), nullable=False, server_default=sa.text("'substring'")
        ),
        sa.Column("match_pattern", sa.Text(), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.ForeignKeyConstraint(
            ["category_id"],
            ["categories.id"],
            name="fk_rule_category",
            ondelete="CASCADE",
        ),
        sa.CheckConstraint(
            "match_field in ('name','merchant_name')",
            name="ck_rule_match_field",
        ),
        sa.CheckConstraint(
            "match_type in ('exact','prefix','substring')",
            name="ck_rule_match_type",
        ),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("account_id", sa.Text(), nullable=False),
        sa.Column("external_id", sa.Text(), nullable=True),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("date", sa.String(10), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("merchant_name", sa.Text(), nullable=True),
        sa.Column("category_id", sa.Text(), nullable=True),
        sa.Column(
            "auto_categorized",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("is_pending", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.ForeignKeyConstraint(
            ["account_id"],
            ["accounts.id"],
            name="fk_tx_account",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["category_id"],
            ["categories.id"],
            name="fk_tx_category",
            ondelete="SET NULL",
        ),
        # Upsert target for idempotent statement re-import
        sa.UniqueConstraint("account_id", "external_id", name="transactions_dedup"),
    )

    op.create_index(
        "idx_transactions_account_date", "transactions", ["account_id", "date"], unique=False
    )
    op.create_index(
        "idx_transactions_category_date", "transactions", ["category_id", "date"], unique=False
    )


def downgrade() -> None:
    op.drop_index("idx_transactions_category_date", table_name="transactions")
    op.drop_index("idx_transactions_account_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("category_rules")
    op.drop_table("categories")
    op.drop_table("accounts")
