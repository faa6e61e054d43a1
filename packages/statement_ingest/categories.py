"""Category tree and rule store operations.

Exports
-------
- ``ensure_default_categories(...)``: explicit, idempotent seeding of the
  default category set. Never run implicitly on read.
- ``create_category(...)``: create a category (case-insensitive name match
  returns the existing row with ``created=False``).
- ``set_category_parent(...)``: re-parent a category, rejecting cycles.
- ``create_category_rule(...)``: store a rule with a trimmed, lower-cased
  pattern.
- ``known_category_ids(...)`` / ``list_category_options(...)``: read helpers
  used when validating overrides and prompting for suggestions.

Callers own the transaction scope; these functions only ``flush``.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from typing import Any

from ledger_db.models.ledger import Category, CategoryRuleRow
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .logging_setup import get_logger
from .models import CategoryOption, MatchField, MatchType

_logger = get_logger("statement_ingest.categories")

TRANSFER_CATEGORY_ID = "transfer"

_TRANSFER: dict[str, Any] = {
    "id": TRANSFER_CATEGORY_ID,
    "name": "Transfer",
    "icon": "↔️",
    "is_system": True,
    "exclude_from_spending": True,
}

DEFAULT_CATEGORIES: tuple[dict[str, Any], ...] = (
    {"id": "salary", "name": "Salary", "icon": "💰", "is_income": True, "is_system": True},
    {"id": "rent", "name": "Rent", "icon": "🏠", "is_system": True},
    {"id": "utilities", "name": "Utilities", "icon": "💡", "is_system": True},
    {"id": "groceries", "name": "Groceries", "icon": "🛒", "is_system": True},
    {"id": "shopping", "name": "Shopping", "icon": "🛍️", "is_system": True},
    {"id": "restaurants", "name": "Restaurants", "icon": "🍔", "is_system": True},
    {"id": "internet", "name": "Internet", "icon": "🌐", "is_system": True},
    {"id": "phone", "name": "Phone", "icon": "📱", "is_system": True},
    {"id": "transportation", "name": "Transportation", "icon": "🚗", "is_system": True},
    {"id": "entertainment", "name": "Entertainment", "icon": "🎬", "is_system": True},
    {"id": "miscellaneous", "name": "Miscellaneous", "icon": "🤷", "is_system": True},
    {"id": "subscriptions", "name": "Subscriptions", "icon": "📺", "is_system": False},
    {"id": "travel", "name": "Travel", "icon": "🛫", "is_system": False},
    _TRANSFER,
)


# ---------------------------
# Seeding
# ---------------------------


def ensure_default_categories(session: Session) -> int:
    """Seed the default categories and return how many rows were inserted.

    An empty table receives the full default set. A non-empty table is left
    alone apart from the ``transfer`` category, which the suggestion prompt
    and spending reports rely on.
    """

    any_row = session.execute(select(Category.id).limit(1)).first()
    if any_row is None:
        to_insert = list(DEFAULT_CATEGORIES)
    elif session.get(Category, TRANSFER_CATEGORY_ID) is None:
        to_insert = [_TRANSFER]
    else:
        to_insert = []

    for row in to_insert:
        session.add(Category(**row))
    if to_insert:
        session.flush()
        _logger.info("ensure_default_categories:inserted count=%d", len(to_insert))
    return len(to_insert)


# ---------------------------
# Category tree
# ---------------------------

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def normalize_name(name: str) -> str:
    """Trim and collapse internal whitespace; case is preserved."""

    return " ".join(name.strip().split())


def _slug(name: str) -> str:
    return _SLUG_RE.sub("_", name.lower()).strip("_")


@dataclass(frozen=True, slots=True)
class CreatedCategory:
    category: Category
    created: bool


def _require_category(session: Session, category_id: str) -> Category:
    row = session.get(Category, category_id)
    if row is None:
        raise ValueError(f"Category not found: {category_id!r}")
    return row


def _would_cycle(session: Session, category_id: str, parent_id: str) -> bool:
    # Walk up from the proposed parent; reaching the child means a loop.
    seen: set[str] = set()
    current: str | None = parent_id
    while current is not None:
        if current == category_id:
            return True
        if current in seen:
            # Pre-existing loop in stored data; refuse to extend it.
            return True
        seen.add(current)
        current = session.execute(
            select(Category.parent_id).where(Category.id == current)
        ).scalar_one_or_none()
    return False


def create_category(
    session: Session,
    *,
    name: str,
    category_id: str | None = None,
    parent_id: str | None = None,
    icon: str | None = None,
    color: str | None = None,
    is_income: bool = False,
    exclude_from_spending: bool = False,
    budget_cents: int | None = None,
) -> CreatedCategory:
    """Create a category, or return the existing one with the same name.

    ``category_id`` defaults to a slug of ``name``. ``parent_id`` must name an
    existing category.
    """

    name_n = normalize_name(name)
    if not name_n:
        raise ValueError("Category name cannot be empty")

    existing = (
        session.execute(select(Category).where(func.lower(Category.name) == name_n.lower()))
        .scalars()
        .first()
    )
    if existing is not None:
        return CreatedCategory(category=existing, created=False)

    cid = (category_id or _slug(name_n)).strip()
    if not cid:
        raise ValueError(f"Cannot derive a category id from {name!r}")
    if session.get(Category, cid) is not None:
        raise ValueError(f"Category id already exists: {cid!r}")
    if parent_id is not None:
        _require_category(session, parent_id)
        if parent_id == cid:
            raise ValueError("A category cannot be its own parent")

    row = Category(
        id=cid,
        name=name_n,
        icon=icon,
        color=color,
        parent_id=parent_id,
        is_system=False,
        is_income=is_income,
        exclude_from_spending=exclude_from_spending,
        budget_cents=budget_cents,
    )
    session.add(row)
    session.flush()
    return CreatedCategory(category=row, created=True)


def set_category_parent(session: Session, category_id: str, parent_id: str | None) -> Category:
    """Move ``category_id`` under ``parent_id`` (``None`` makes it top-level).

    Raises ``ValueError`` when either category is missing or when the move
    would make the category its own ancestor.
    """

    row = _require_category(session, category_id)
    if parent_id is not None:
        _require_category(session, parent_id)
        if _would_cycle(session, category_id, parent_id):
            raise ValueError(
                f"Setting parent of {category_id!r} to {parent_id!r} would create a cycle"
            )
    row.parent_id = parent_id
    session.flush()
    return row


# ---------------------------
# Rules
# ---------------------------


def create_category_rule(
    session: Session,
    *,
    category_id: str,
    match_pattern: str,
    match_field: str = MatchField.NAME.value,
    match_type: str = MatchType.SUBSTRING.value,
    priority: int = 0,
) -> CategoryRuleRow:
    """Store an enabled rule; the pattern is trimmed and lower-cased."""

    pattern = match_pattern.strip().lower()
    if not pattern:
        raise ValueError("Rule pattern cannot be empty")
    _require_category(session, category_id)
    field = MatchField(match_field)
    kind = MatchType.parse(match_type)
    position = session.execute(
        select(func.coalesce(func.max(CategoryRuleRow.position), 0))
    ).scalar_one()

    row = CategoryRuleRow(
        id=str(uuid.uuid4()),
        category_id=category_id,
        match_field=field.value,
        match_type=kind.value,
        match_pattern=pattern,
        priority=priority,
        position=position + 1,
        is_enabled=True,
    )
    session.add(row)
    session.flush()
    return row


# ---------------------------
# Reads
# ---------------------------


def known_category_ids(session: Session) -> set[str]:
    return set(session.execute(select(Category.id)).scalars().all())


def list_category_options(session: Session) -> list[CategoryOption]:
    rows = session.execute(select(Category.id, Category.name).order_by(Category.name)).all()
    return [CategoryOption(id=r.id, name=r.name) for r in rows]


__all__ = [
    "DEFAULT_CATEGORIES",
    "TRANSFER_CATEGORY_ID",
    "CreatedCategory",
    "create_category",
    "create_category_rule",
    "ensure_default_categories",
    "known_category_ids",
    "list_category_options",
    "normalize_name",
    "set_category_parent",
]
