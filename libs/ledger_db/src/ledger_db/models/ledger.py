from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ---------------------------
# Reference: accounts
# ---------------------------


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    institution: Mapped[str] = mapped_column(String, nullable=False)
    account_type: Mapped[str] = mapped_column(String, nullable=False)
    mask: Mapped[str | None] = mapped_column(String, nullable=True)
    current_balance_cents: Mapped[int] = mapped_column(
        BigInteger, nullable=False, server_default=text("0")
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ---------------------------
# Reference: categories
# ---------------------------


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    icon: Mapped[str | None] = mapped_column(String, nullable=True)
    color: Mapped[str | None] = mapped_column(String, nullable=True)
    # Self-reference forms a tree. Acyclicity is enforced when writing through
    # ``statement_ingest.categories`` rather than with recursive DB constraints.
    parent_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("categories.id"), nullable=True
    )
    is_system: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    is_income: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    exclude_from_spending: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false")
    )
    budget_cents: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    __table_args__ = (
        CheckConstraint("parent_id IS NULL OR parent_id <> id", name="ck_cat_parent"),
    )


class CategoryRuleRow(Base):
    __tablename__ = "category_rules"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    category_id: Mapped[str] = mapped_column(
        String, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False
    )
    match_field: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'name'"))
    match_type: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'substring'")
    )
    # Stored lower-cased; matching is case-insensitive on both sides anyway.
    match_pattern: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    # Insertion order; breaks ties between rules of equal priority.
    position: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))

    __table_args__ = (
        CheckConstraint("match_field in ('name','merchant_name')", name="ck_rule_match_field"),
        CheckConstraint(
            "match_type in ('exact','prefix','substring')",
            name="ck_rule_match_type",
        ),
    )


# ---------------------------
# Core: transactions
# ---------------------------


class LedgerTransaction(Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    account_id: Mapped[str] = mapped_column(
        String, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    # Content-derived dedup key; (account_id, external_id) is the upsert target.
    external_id: Mapped[str | None] = mapped_column(String, nullable=True)
    # Signed: credits positive, debits negative.
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    date: Mapped[str] = mapped_column(String(10), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    merchant_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    category_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )
    auto_categorized: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false")
    )
    is_pending: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    extra: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("account_id", "external_id", name="transactions_dedup"),
        Index("idx_transactions_account_date", "account_id", "date"),
        Index("idx_transactions_category_date", "category_id", "date"),
    )


__all__ = [
    "Base",
    "Account",
    "Category",
    "CategoryRuleRow",
    "LedgerTransaction",
]
