"""Public API and pipeline orchestration for ``statement_ingest``.

Pipeline
--------
``bytes -> text -> format -> transactions`` (:func:`parse_statement`), then
``transactions -> categorized`` (:func:`prepare_import`), optional operator
overrides (:func:`apply_manual_overrides`), and finally the idempotent upsert
(:func:`import_prepared`).

Nothing touches the ledger before :func:`prepare_import`, and the only ledger
write it performs is default-category seeding. Transaction rows are written in
one statement batch by :func:`import_prepared`.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping, Sequence
from dataclasses import replace
from typing import Any, Literal, TypeAlias

from sqlalchemy.orm import Session

from . import text_extraction
from .accounts import require_account
from .categories import list_category_options
from .categorize import categorize_transactions
from .config import RAW_TEXT_PREVIEW_CHARS, Settings
from .formats import detect_format
from .history import load_enabled_rules, load_history
from .logging_setup import get_logger
from .models import (
    CategorizationSource,
    DocumentOutcome,
    ImportResult,
    ParsedTransaction,
    PreparedTransaction,
    StatementFormat,
    StatementParseResult,
    SuggestionRequestItem,
)
from .parsers import parse_transactions
from .persistence import import_transactions
from .reconciliation import find_stated_balances
from .suggestions import suggest_categories
from .text_extraction import DocumentReadError

LLM_CONFIDENCE: float = 0.75
AUTO_ACCEPT_THRESHOLD: float = 0.85
SUGGEST_THRESHOLD: float = 0.6

ConfidenceBand: TypeAlias = Literal["auto", "suggest", "manual"]

_logger = get_logger("statement_ingest.api")


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_statement(
    data: bytes,
    *,
    include_raw_text: bool = False,
    default_year: int | None = None,
    raw_text_chars: int = RAW_TEXT_PREVIEW_CHARS,
) -> StatementParseResult:
    """Parse one statement document into transactions.

    Transactions without a derivable external id are returned separately in
    ``needs_review`` and are never imported automatically. Unrecognized
    documents produce format ``unknown`` and no transactions. Opening and
    closing balances printed on the statement are returned for reconciliation.

    Raises :class:`DocumentReadError` when the bytes cannot be read as a PDF.
    """

    text = text_extraction.extract_document_text(data)
    fmt = detect_format(text)
    parsed = parse_transactions(text, fmt, default_year=default_year)

    ready = tuple(tx for tx in parsed if tx.external_id is not None)
    review = tuple(tx for tx in parsed if tx.external_id is None)
    _logger.info(
        "parse_statement:done format=%s parsed=%d needs_review=%d chars=%d",
        fmt.value,
        len(ready),
        len(review),
        len(text),
    )
    return StatementParseResult(
        format=fmt,
        transactions=ready,
        needs_review=review,
        raw_text=text[:raw_text_chars] if include_raw_text else None,
        stated_balances=find_stated_balances(text, fmt),
    )


def parse_statements(
    documents: Iterable[tuple[str, bytes]],
    *,
    isolate_failures: bool | None = None,
    default_year: int | None = None,
    include_raw_text: bool = False,
    raw_text_chars: int = RAW_TEXT_PREVIEW_CHARS,
) -> list[DocumentOutcome]:
    """Parse several ``(source, bytes)`` documents, in order.

    With ``isolate_failures`` (default from ``STATEMENT_INGEST_ISOLATE_FAILURES``)
    an unreadable document is recorded with ``error`` set and the batch
    continues; otherwise the first :class:`DocumentReadError` propagates.
    """

    if isolate_failures is None:
        isolate_failures = Settings.from_env().isolate_document_failures

    outcomes: list[DocumentOutcome] = []
    for source, data in documents:
        try:
            result = parse_statement(
                data,
                include_raw_text=include_raw_text,
                default_year=default_year,
                raw_text_chars=raw_text_chars,
            )
        except DocumentReadError as e:
            if not isolate_failures:
                raise
            _logger.warning("parse_statements:document_failed source=%s error=%s", source, e)
            empty = StatementParseResult(
                format=StatementFormat.UNKNOWN, transactions=(), needs_review=()
            )
            outcomes.append(DocumentOutcome(source=source, result=empty, error=str(e)))
            continue
        outcomes.append(DocumentOutcome(source=source, result=result))
    return outcomes


# ---------------------------------------------------------------------------
# Categorization
# ---------------------------------------------------------------------------


def _apply_suggestions(
    session: Session,
    prepared: list[PreparedTransaction],
    *,
    settings: Settings,
    client: Any | None,
) -> list[PreparedTransaction]:
    pending = [i for i, p in enumerate(prepared) if p.category_id is None]
    if not pending:
        return prepared
    items = [
        SuggestionRequestItem(
            description=prepared[i].description,
            amount_cents=prepared[i].signed_amount_cents,
        )
        for i in pending
    ]
    suggestions = suggest_categories(
        items,
        list_category_options(session),
        client=client,
        api_key=settings.openai_api_key,
        model=settings.llm_model,
    )
    out = list(prepared)
    for i, s in zip(pending, suggestions, strict=True):
        if s.category_id is None:
            continue
        out[i] = replace(
            out[i],
            category_id=s.category_id,
            confidence=LLM_CONFIDENCE,
            source=CategorizationSource.LLM,
            explanation=("LLM suggested category",),
            suggested_match_pattern=s.suggested_match_pattern,
            likely_recurring=s.likely_recurring,
        )
    return out


def prepare_import(
    session: Session,
    parsed: Iterable[ParsedTransaction],
    *,
    use_suggestions: bool | None = None,
    settings: Settings | None = None,
    client: Any | None = None,
) -> list[PreparedTransaction]:
    """Categorize parsed transactions against the ledger's rules and history.

    Writes nothing: callers seed default categories explicitly with
    :func:`~statement_ingest.categories.ensure_default_categories`. The LLM
    tier runs only for transactions left uncategorized, and only when
    ``use_suggestions`` is true (default: ``Settings.suggestions_enabled``).
    """

    settings = settings or Settings.from_env()
    if use_suggestions is None:
        use_suggestions = settings.suggestions_enabled

    rules = load_enabled_rules(session)
    history = load_history(session)
    prepared = categorize_transactions(parsed, rules, history)
    if use_suggestions:
        prepared = _apply_suggestions(session, prepared, settings=settings, client=client)
    return prepared


def apply_manual_overrides(
    prepared: Sequence[PreparedTransaction],
    overrides: Mapping[int, str],
    *,
    known_categories: Collection[str],
) -> list[PreparedTransaction]:
    """Replace categories chosen by the operator, keyed by position in ``prepared``.

    Overridden rows become ``manual`` with confidence 1.0. Unknown category ids
    and out-of-range positions raise ``ValueError``; nothing is applied in that
    case.
    """

    for idx, category_id in overrides.items():
        if not 0 <= idx < len(prepared):
            raise ValueError(f"Override index out of range: {idx} (have {len(prepared)})")
        if category_id not in known_categories:
            raise ValueError(f"Unknown category: {category_id!r}")

    out = list(prepared)
    for idx, category_id in overrides.items():
        out[idx] = replace(
            out[idx],
            category_id=category_id,
            confidence=1.0,
            source=CategorizationSource.MANUAL,
            explanation=("Manually categorized",),
        )
    return out


def confidence_band(confidence: float) -> ConfidenceBand:
    """Map an engine confidence to the review band shown to operators."""

    if confidence >= AUTO_ACCEPT_THRESHOLD:
        return "auto"
    if confidence >= SUGGEST_THRESHOLD:
        return "suggest"
    return "manual"


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


def import_prepared(
    session: Session,
    *,
    account_id: str,
    transactions: Iterable[PreparedTransaction],
) -> ImportResult:
    """Upsert prepared transactions into ``account_id``'s ledger."""

    require_account(session, account_id)
    return import_transactions(session, account_id=account_id, transactions=transactions)


__all__ = [
    "AUTO_ACCEPT_THRESHOLD",
    "LLM_CONFIDENCE",
    "SUGGEST_THRESHOLD",
    "ConfidenceBand",
    "DocumentReadError",
    "apply_manual_overrides",
    "confidence_band",
    "import_prepared",
    "parse_statement",
    "parse_statements",
    "prepare_import",
]
