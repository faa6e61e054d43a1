from __future__ import annotations

from typing import Any

import pytest
from ledger_db.client import session_scope
from ledger_db.models.ledger import Category, LedgerTransaction
from sqlalchemy import func, select

import statement_ingest.text_extraction as text_extraction
from statement_ingest import suggestions
from statement_ingest.api import (
    apply_manual_overrides,
    confidence_band,
    import_prepared,
    parse_statement,
    parse_statements,
    prepare_import,
)
from statement_ingest.categories import create_category_rule, ensure_default_categories
from statement_ingest.config import Settings
from statement_ingest.models import (
    CategorizationSource,
    ParsedTransaction,
    StatementFormat,
    TransactionType,
)
from statement_ingest.text_extraction import DocumentReadError

from tests.helpers.db import add_account, add_ledger_transaction
from tests.helpers.openai_stub import OpenAIStub
from tests.helpers.pdf import statement_pdf

BOFA_TEXT = "\n".join(
    [
        "Bank of America",
        "Beginning balance on March 1, 2024 $1,000.00",
        "03/14 COFFEE SHOP 0.00 4.50",
        "03/15 PAYROLL ACME 1,000.00 0.00",
        "03/16 ATM WITHDRAWAL -60.00",
        "Ending balance on March 31, 2024 $1,935.50",
    ]
)


@pytest.fixture()
def fake_extract(monkeypatch: pytest.MonkeyPatch) -> dict[bytes, str]:
    """Route document bytes to canned text; ``b"corrupt"`` fails to read."""

    texts: dict[bytes, str] = {b"bofa": BOFA_TEXT, b"blank": ""}

    def _extract(data: bytes) -> str:
        if data == b"corrupt":
            raise DocumentReadError("unable to read PDF document: bad xref")
        return texts[data]

    monkeypatch.setattr(text_extraction, "extract_document_text", _extract)
    return texts


# ---- parse_statement -----------------------------------------------------------


def test_parse_statement_end_to_end_from_pdf() -> None:
    data = statement_pdf(BOFA_TEXT.splitlines())

    result = parse_statement(data, default_year=2024)

    assert result.format is StatementFormat.BANK_OF_AMERICA
    assert [(t.description, t.signed_amount_cents) for t in result.transactions] == [
        ("COFFEE SHOP", -450),
        ("PAYROLL ACME", 100000),
        ("ATM WITHDRAWAL", -6000),
    ]
    assert result.needs_review == ()
    assert result.raw_text is None
    assert result.stated_balances is not None
    assert result.stated_balances.end_cents == 193550


def test_parse_statement_raw_text_preview(fake_extract: dict[bytes, str]) -> None:
    fake_extract[b"long"] = "Bank of America\n" + "x" * 5000

    result = parse_statement(b"long", include_raw_text=True)

    assert result.raw_text is not None
    assert len(result.raw_text) == 3000
    assert result.raw_text.startswith("Bank of America")


def test_unrecognized_or_empty_documents_yield_unknown(fake_extract: dict[bytes, str]) -> None:
    result = parse_statement(b"blank")

    assert result.format is StatementFormat.UNKNOWN
    assert result.transactions == ()
    assert result.stated_balances is None


def test_rows_without_identity_go_to_review(fake_extract: dict[bytes, str]) -> None:
    # The description collapses to nothing once whitespace is normalized.
    fake_extract[b"odd"] = "Bank of America\n03/14   \t 4.50 0.00\n03/15 PAYROLL 1.00 0.00"

    result = parse_statement(b"odd", default_year=2024)

    assert [t.description for t in result.transactions] == ["PAYROLL"]
    assert len(result.needs_review) == 1
    assert result.needs_review[0].external_id is None


def test_parse_statement_corrupt_bytes_fail_fast() -> None:
    with pytest.raises(DocumentReadError):
        parse_statement(b"%PDF-1.4 garbage")


# ---- parse_statements ------------------------------------------------------------


def test_batch_isolates_failures_by_default(fake_extract: dict[bytes, str]) -> None:
    outcomes = parse_statements([("a.pdf", b"bofa"), ("b.pdf", b"corrupt"), ("c.pdf", b"bofa")])

    assert [o.ok for o in outcomes] == [True, False, True]
    failed = outcomes[1]
    assert failed.source == "b.pdf"
    assert failed.result.format is StatementFormat.UNKNOWN
    assert "bad xref" in (failed.error or "")


def test_batch_isolation_can_be_disabled(fake_extract: dict[bytes, str]) -> None:
    with pytest.raises(DocumentReadError):
        parse_statements([("a.pdf", b"bofa"), ("b.pdf", b"corrupt")], isolate_failures=False)


def test_batch_isolation_reads_env(
    fake_extract: dict[bytes, str], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("STATEMENT_INGEST_ISOLATE_FAILURES", "0")

    with pytest.raises(DocumentReadError):
        parse_statements([("b.pdf", b"corrupt")])


# ---- prepare / override / import -------------------------------------------------


def _parsed() -> list[ParsedTransaction]:
    return [
        ParsedTransaction("2024-03-14", "STARBUCKS STORE 1234", 450, "e1", TransactionType.DEBIT),
        ParsedTransaction("2024-03-15", "PAYROLL ACME", 100000, "e2", TransactionType.CREDIT),
        ParsedTransaction("2024-03-16", "TMOBILE AUTOPAY", 8500, "e3", TransactionType.DEBIT),
    ]


def _seed_history(session: Any, account_id: str) -> None:
    for i, name in enumerate(["STARBUCKS STORE 9", "STARBUCKS RESERVE", "STARBUCKS COFFEE"]):
        add_ledger_transaction(
            session,
            account_id=account_id,
            name=name,
            amount_cents=-500,
            category_id="restaurants",
            date=f"2024-02-0{i + 1}",
        )


def test_prepare_import_runs_the_tiers(db_url: str) -> None:
    with session_scope(database_url=db_url) as s:
        account_id = add_account(s)
        ensure_default_categories(s)
        create_category_rule(s, category_id="salary", match_pattern="payroll")
        _seed_history(s, account_id)

        prepared = prepare_import(s, _parsed(), use_suggestions=False)

    assert [(p.category_id, p.source) for p in prepared] == [
        ("restaurants", CategorizationSource.SIMILARITY),
        ("salary", CategorizationSource.RULE),
        (None, CategorizationSource.MANUAL),
    ]
    assert prepared[0].confidence == 0.9


def test_prepare_import_llm_tier_fills_only_uncategorized(db_url: str) -> None:
    def _decide(desc: str, _amount: int) -> dict[str, Any]:
        assert "TMOBILE" in desc
        return {"categoryId": "phone", "suggestedMatchPattern": "TMOBILE", "likelyRecurring": True}

    stub = OpenAIStub(_decide)
    with session_scope(database_url=db_url) as s:
        ensure_default_categories(s)
        create_category_rule(s, category_id="salary", match_pattern="payroll")

        prepared = prepare_import(
            s, _parsed()[1:], use_suggestions=True, settings=Settings(), client=stub
        )

    assert len(stub.calls) == 1
    assert prepared[0].source is CategorizationSource.RULE
    llm = prepared[1]
    assert llm.category_id == "phone"
    assert llm.confidence == 0.75
    assert llm.source is CategorizationSource.LLM
    assert llm.explanation == ("LLM suggested category",)
    assert llm.suggested_match_pattern == "TMOBILE"
    assert llm.likely_recurring is True


def test_prepare_import_writes_nothing(db_url: str) -> None:
    with session_scope(database_url=db_url) as s:
        prepared = prepare_import(s, _parsed(), settings=Settings())

    assert all(p.category_id is None for p in prepared)
    with session_scope(database_url=db_url) as s:
        assert s.execute(select(func.count()).select_from(Category)).scalar_one() == 0


def test_prepare_import_builds_llm_client_from_settings(
    db_url: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    stub = OpenAIStub(lambda _d, _a: {"categoryId": "phone"})
    keys: list[str] = []

    def _openai(*, api_key: str) -> OpenAIStub:
        keys.append(api_key)
        return stub

    monkeypatch.setattr(suggestions, "OpenAI", _openai)
    settings = Settings(openai_api_key="sk-settings", llm_suggestions=True)
    with session_scope(database_url=db_url) as s:
        ensure_default_categories(s)
        prepared = prepare_import(s, _parsed()[2:], settings=settings)

    assert keys == ["sk-settings"]
    assert prepared[0].category_id == "phone"


def test_prepare_import_skips_llm_unless_enabled(db_url: str) -> None:
    stub = OpenAIStub()
    with session_scope(database_url=db_url) as s:
        prepared = prepare_import(s, _parsed(), client=stub)

    assert stub.calls == []
    assert all(p.source is CategorizationSource.MANUAL for p in prepared)


def test_manual_overrides(db_url: str) -> None:
    with session_scope(database_url=db_url) as s:
        prepared = prepare_import(s, _parsed(), use_suggestions=False)

    known = {"phone", "salary"}
    out = apply_manual_overrides(prepared, {2: "phone"}, known_categories=known)

    assert out[2].category_id == "phone"
    assert out[2].confidence == 1.0
    assert out[2].source is CategorizationSource.MANUAL
    assert out[0] == prepared[0]

    with pytest.raises(ValueError, match="Unknown category"):
        apply_manual_overrides(prepared, {0: "nope"}, known_categories=known)
    with pytest.raises(ValueError, match="out of range"):
        apply_manual_overrides(prepared, {7: "phone"}, known_categories=known)


def test_import_prepared_is_idempotent(db_url: str) -> None:
    with session_scope(database_url=db_url) as s:
        account_id = add_account(s)
        prepared = prepare_import(s, _parsed(), use_suggestions=False)

    for _ in range(2):
        with session_scope(database_url=db_url) as s:
            assert import_prepared(s, account_id=account_id, transactions=prepared).imported == 3

    with session_scope(database_url=db_url) as s:
        rows = s.execute(select(LedgerTransaction)).scalars().all()
        assert sorted(r.external_id for r in rows) == ["e1", "e2", "e3"]


def test_import_prepared_requires_existing_account(db_url: str) -> None:
    with session_scope(database_url=db_url) as s:
        with pytest.raises(ValueError, match="Account not found"):
            import_prepared(s, account_id="missing", transactions=[])


@pytest.mark.parametrize(
    ("confidence", "band"),
    [
        (1.0, "auto"),
        (0.85, "auto"),
        (0.84, "suggest"),
        (0.6, "suggest"),
        (0.59, "manual"),
        (0.0, "manual"),
    ],
)
def test_confidence_band(confidence: float, band: str) -> None:
    assert confidence_band(confidence) == band
