"""Shared SQLAlchemy models registry for the ledger database.

Currently includes the ledger domain models used by ``statement_ingest``.
"""

from .ledger import Account, Base, Category, CategoryRuleRow, LedgerTransaction

__all__ = [
    "Base",
    "Account",
    "Category",
    "CategoryRuleRow",
    "LedgerTransaction",
]
