"""Ledger account helpers: the import target for parsed statements."""

from __future__ import annotations

import uuid

from ledger_db.models.ledger import Account
from sqlalchemy import select
from sqlalchemy.orm import Session


def create_account(
    session: Session,
    *,
    name: str,
    institution: str,
    account_type: str,
    mask: str | None = None,
) -> Account:
    name_n = name.strip()
    if not name_n:
        raise ValueError("Account name cannot be empty")
    row = Account(
        id=str(uuid.uuid4()),
        name=name_n,
        institution=institution.strip(),
        account_type=account_type.strip(),
        mask=mask.strip() if mask else None,
    )
    session.add(row)
    session.flush()
    return row


def list_active_accounts(session: Session) -> list[Account]:
    return list(
        session.execute(select(Account).where(Account.is_active.is_(True)).order_by(Account.name))
        .scalars()
        .all()
    )


def require_account(session: Session, account_id: str) -> Account:
    """Return the account or raise ``ValueError`` when it does not exist."""

    row = session.get(Account, account_id)
    if row is None:
        raise ValueError(f"Account not found: {account_id!r}")
    return row


__all__ = ["create_account", "list_active_accounts", "require_account"]
