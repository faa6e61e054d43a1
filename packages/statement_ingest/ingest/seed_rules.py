from __future__ import annotations

# Seeder for default categories and starter category rules.
#
# Usage (example):
#   python -m statement_ingest.ingest.seed_rules \
#     --database-url sqlite:///ledger.db \
#     --file packages/statement_ingest/ingest/seeds/category_rules.v1.json
#
# This script:
#   1) Ensures the default categories exist (idempotent).
#   2) Adds each rule whose (category_id, pattern) pair is not stored yet, so
#      re-running it never duplicates rules.
import argparse
import json
from pathlib import Path
from typing import Any

from ledger_db.client import session_scope
from ledger_db.models.ledger import CategoryRuleRow
from sqlalchemy import select

from ..categories import create_category_rule, ensure_default_categories

_DEFAULT_FILE = Path(__file__).resolve().parent / "seeds" / "category_rules.v1.json"


def _load_json(path: Path) -> list[dict[str, Any]]:
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError("Seed JSON must be a list of rule objects")
    return data


def seed_rules(*, database_url: str | None, file: Path) -> int:
    """Seed defaults and rules from ``file``; return the number of rules added."""

    data = _load_json(file)
    added = 0
    with session_scope(database_url=database_url) as session:
        ensure_default_categories(session)
        existing = {
            (r.category_id, r.match_pattern)
            for r in session.execute(
                select(CategoryRuleRow.category_id, CategoryRuleRow.match_pattern)
            ).all()
        }
        for item in data:
            category_id = str(item["category_id"])
            pattern = str(item["pattern"]).strip().lower()
            if (category_id, pattern) in existing:
                continue
            create_category_rule(
                session,
                category_id=category_id,
                match_pattern=pattern,
                match_field=str(item.get("match_field") or "name"),
                match_type=str(item.get("match_type") or "substring"),
                priority=int(item.get("priority") or 0),
            )
            existing.add((category_id, pattern))
            added += 1
    return added


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(
        description="Seed default categories and starter category rules",
    )
    ap.add_argument(
        "--database-url",
        required=False,
        default=None,
        help=("SQLAlchemy database URL; falls back to $DATABASE_URL when not set"),
    )
    ap.add_argument("--file", type=Path, required=False, default=_DEFAULT_FILE)
    args = ap.parse_args(argv)

    db_url: str | None = args.database_url or None
    added = seed_rules(database_url=db_url, file=args.file)
    print(f"rules added: {added}")
    return 0


if __name__ == "__main__":  # pragma: no cover - manual utility
    raise SystemExit(main())
