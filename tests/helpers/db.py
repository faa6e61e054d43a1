"""DB helpers for tests: bootstrap a temporary SQLite ledger and seed rows."""

from __future__ import annotations

import uuid
from pathlib import Path

from ledger_db import metadata
from ledger_db.client import get_engine, reset_engine
from ledger_db.models.ledger import Account, Category, LedgerTransaction
from sqlalchemy import event
from sqlalchemy.orm import Session


def bootstrap_sqlite_db(db_file: Path) -> str:
    """Create a SQLite database file, initialize schema, and return the URL.

    Using a file-backed SQLite DB ensures multiple SQLAlchemy connections share
    the same state (in-memory DBs are per-connection by default).
    """

    url = f"sqlite+pysqlite:///{db_file}"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    reset_engine()
    engine = get_engine(database_url=url)

    # Enforce FKs like the production database does
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _):  # pragma: no cover - tiny bridge
        dbapi_conn.execute("PRAGMA foreign_keys = ON")

    metadata.create_all(bind=engine)
    return url


def add_account(session: Session, *, account_id: str = "acct-1", name: str = "Checking") -> str:
    session.add(
        Account(id=account_id, name=name, institution="Bank of America", account_type="checking")
    )
    session.flush()
    return account_id


def add_category(session: Session, category_id: str, name: str | None = None) -> str:
    session.add(Category(id=category_id, name=name or category_id.title()))
    session.flush()
    return category_id


def add_ledger_transaction(
    session: Session,
    *,
    account_id: str,
    name: str,
    amount_cents: int,
    category_id: str | None,
    date: str = "2024-01-01",
) -> str:
    tx_id = str(uuid.uuid4())
    session.add(
        LedgerTransaction(
            id=tx_id,
            account_id=account_id,
            external_id=uuid.uuid4().hex[:24],
            amount_cents=amount_cents,
            date=date,
            name=name,
            category_id=category_id,
        )
    )
    session.flush()
    return tx_id
