# ruff: noqa: I001
"""Persistence integration for statement_ingest.

Writes prepared transactions to the shared ledger database owned by
``libs/ledger_db``. Relies on the ORM models in ``ledger_db.models.ledger`` and
a session provided by the caller (see ``ledger_db.client.session_scope``).

Idempotency: rows upsert on ``(account_id, external_id)``. Re-importing the
same statement refreshes amount, merchant and category fields and leaves every
other column (name, date, pending flag, metadata, created_at) untouched.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from typing import Any

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from ledger_db.models.ledger import LedgerTransaction
from .identity import fallback_external_id
from .logging_setup import get_logger
from .models import CategorizationSource, ImportResult, PreparedTransaction

# Rows per INSERT statement; keeps bind parameters well below driver limits.
_CHUNK_SIZE: int = 500

_UPDATED_ON_CONFLICT: tuple[str, ...] = (
    "amount_cents",
    "merchant_name",
    "category_id",
    "auto_categorized",
)

_logger = get_logger("statement_ingest.persistence")


def _insert_for(session: Session):
    name = session.get_bind().dialect.name
    if name == "postgresql":
        return pg_insert
    if name == "sqlite":
        return sqlite_insert
    raise RuntimeError(f"Unsupported database dialect for upsert: {name!r}")


def _row_for(account_id: str, tx: PreparedTransaction) -> dict[str, Any]:
    signed = tx.signed_amount_cents
    external_id = tx.external_id or fallback_external_id(tx.date, signed, tx.description)
    return {
        "id": str(uuid.uuid4()),
        "account_id": account_id,
        "external_id": external_id,
        "amount_cents": signed,
        "date": tx.date,
        "name": tx.description,
        "merchant_name": None,
        "category_id": tx.category_id,
        "auto_categorized": tx.source is not CategorizationSource.MANUAL,
    }


def import_transactions(
    session: Session,
    *,
    account_id: str,
    transactions: Iterable[PreparedTransaction],
) -> ImportResult:
    """Insert or update ``transactions`` for ``account_id``.

    Rows sharing an external id within the batch collapse to the last one, so
    a single statement cannot conflict with itself. ``imported`` counts rows
    written (inserted or updated) after that collapse.
    """

    by_key: dict[str, dict[str, Any]] = {}
    for tx in transactions:
        row = _row_for(account_id, tx)
        by_key[row["external_id"]] = row
    rows = list(by_key.values())
    if not rows:
        return ImportResult(imported=0)

    insert = _insert_for(session)
    for start in range(0, len(rows), _CHUNK_SIZE):
        chunk = rows[start : start + _CHUNK_SIZE]
        stmt = insert(LedgerTransaction).values(chunk)
        set_ = {col: stmt.excluded[col] for col in _UPDATED_ON_CONFLICT}
        set_["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(
            index_elements=[LedgerTransaction.account_id, LedgerTransaction.external_id],
            set_=set_,
        )
        session.execute(stmt)

    _logger.info(
        "import_transactions:done account_id=%s imported=%d chunks=%d",
        account_id,
        len(rows),
        (len(rows) + _CHUNK_SIZE - 1) // _CHUNK_SIZE,
    )
    return ImportResult(imported=len(rows))


__all__ = ["import_transactions"]
