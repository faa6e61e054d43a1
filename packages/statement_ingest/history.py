"""Read-side loaders feeding the categorization engine from the ledger."""

from __future__ import annotations

from ledger_db.models.ledger import CategoryRuleRow, LedgerTransaction
from sqlalchemy import select
from sqlalchemy.orm import Session

from .logging_setup import get_logger
from .models import CategoryRule, HistoryEntry, MatchField, MatchType

_logger = get_logger("statement_ingest.history")


def load_enabled_rules(session: Session) -> list[CategoryRule]:
    """Return enabled rules, highest priority first, then in creation order.

    Rows whose match field or type cannot be parsed are skipped with a warning
    rather than failing the whole import.
    """

    rows = (
        session.execute(
            select(CategoryRuleRow)
            .where(CategoryRuleRow.is_enabled.is_(True))
            .order_by(
                CategoryRuleRow.priority.desc(), CategoryRuleRow.position, CategoryRuleRow.id
            )
        )
        .scalars()
        .all()
    )
    rules: list[CategoryRule] = []
    for row in rows:
        try:
            field = MatchField(row.match_field)
            kind = MatchType.parse(row.match_type)
        except ValueError:
            _logger.warning(
                "load_enabled_rules:skip_invalid id=%s match_field=%s match_type=%s",
                row.id,
                row.match_field,
                row.match_type,
            )
            continue
        rules.append(
            CategoryRule(
                id=row.id,
                category_id=row.category_id,
                match_field=field,
                match_type=kind,
                match_pattern=row.match_pattern,
                priority=row.priority,
                enabled=row.is_enabled,
            )
        )
    return rules


def load_history(session: Session, *, account_id: str | None = None) -> list[HistoryEntry]:
    """Return prior ledger transactions, oldest first, optionally for one account."""

    stmt = select(
        LedgerTransaction.id,
        LedgerTransaction.name,
        LedgerTransaction.merchant_name,
        LedgerTransaction.amount_cents,
        LedgerTransaction.category_id,
    ).order_by(LedgerTransaction.date, LedgerTransaction.id)
    if account_id is not None:
        stmt = stmt.where(LedgerTransaction.account_id == account_id)
    return [
        HistoryEntry(
            id=r.id,
            name=r.name,
            merchant_name=r.merchant_name,
            amount_cents=r.amount_cents,
            category_id=r.category_id,
        )
        for r in session.execute(stmt).all()
    ]


__all__ = ["load_enabled_rules", "load_history"]
