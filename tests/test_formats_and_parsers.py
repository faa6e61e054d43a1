from __future__ import annotations

from datetime import date

import pytest

from statement_ingest.formats import detect_format
from statement_ingest.identity import compute_external_id
from statement_ingest.models import StatementFormat, TransactionType
from statement_ingest.parsers import normalize_description, parse_amount_cents, parse_transactions

BOFA = StatementFormat.BANK_OF_AMERICA
CAP1 = StatementFormat.CAPITAL_ONE


# ---- Format detection ------------------------------------------------------


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Your Bank of America Advantage statement", BOFA),
        ("Capital One Quicksilver\nPrevious Balance", CAP1),
        ("Some Credit Union", StatementFormat.UNKNOWN),
        ("", StatementFormat.UNKNOWN),
        ("bank of america", StatementFormat.UNKNOWN),
    ],
)
def test_detect_format(text: str, expected: StatementFormat) -> None:
    assert detect_format(text) is expected


def test_detect_format_first_marker_wins() -> None:
    text = "Capital One payment to Bank of America"
    assert detect_format(text) is BOFA


# ---- Normalization helpers -------------------------------------------------


def test_parse_amount_cents() -> None:
    assert parse_amount_cents("1,234.56") == 123456
    assert parse_amount_cents("-60.00") == -6000
    assert parse_amount_cents("0.005") == 1  # half-up
    assert parse_amount_cents("abc") is None


def test_normalize_description() -> None:
    assert normalize_description("  COFFEE    SHOP\t#12 ") == "COFFEE SHOP #12"


# ---- Bank of America -------------------------------------------------------


def test_two_column_debit_when_second_column_nonzero() -> None:
    txs = parse_transactions("03/14 COFFEE SHOP 0.00 4.50", BOFA, default_year=2024)

    assert len(txs) == 1
    tx = txs[0]
    assert tx.date == "2024-03-14"
    assert tx.description == "COFFEE SHOP"
    assert tx.amount_cents == 450
    assert tx.type is TransactionType.DEBIT
    assert tx.signed_amount_cents == -450


def test_two_column_credit_when_first_column_nonzero() -> None:
    txs = parse_transactions("03/14 PAYROLL 1000.00 0.00", BOFA, default_year=2024)

    assert [(t.amount_cents, t.type) for t in txs] == [(100000, TransactionType.CREDIT)]


def test_two_column_zero_rows_are_dropped_and_not_reparsed() -> None:
    txs = parse_transactions("03/31 SUBTOTAL 0.00 0.00", BOFA, default_year=2024)
    assert txs == []


def test_two_column_lines_are_not_offered_to_fallback() -> None:
    # The fallback regex alone would read "COFFEE SHOP 0.00" / 4.50 as a credit.
    txs = parse_transactions("03/14 COFFEE SHOP 0.00 4.50", BOFA, default_year=2024)
    assert [t.type for t in txs] == [TransactionType.DEBIT]


def test_fallback_sign_decides_direction() -> None:
    text = "\n".join(
        [
            "03/15 ATM WITHDRAWAL -60.00",
            "03/16 MOBILE DEPOSIT 250.00",
        ]
    )

    txs = parse_transactions(text, BOFA, default_year=2024)

    assert [(t.description, t.amount_cents, t.type) for t in txs] == [
        ("ATM WITHDRAWAL", 6000, TransactionType.DEBIT),
        ("MOBILE DEPOSIT", 25000, TransactionType.CREDIT),
    ]


def test_fallback_skips_rows_already_captured() -> None:
    text = "\n".join(
        [
            "03/14 COFFEE SHOP 0.00 4.50",
            "03/14 COFFEE SHOP -4.50",
        ]
    )

    txs = parse_transactions(text, BOFA, default_year=2024)

    assert len(txs) == 1


def test_fallback_dedups_identical_rows() -> None:
    text = "03/16 MOBILE DEPOSIT 250.00\n03/16 MOBILE DEPOSIT 250.00"
    assert len(parse_transactions(text, BOFA, default_year=2024)) == 1


def test_explicit_two_digit_year() -> None:
    txs = parse_transactions("12/31/23 RENT 0.00 1,500.00", BOFA)
    assert txs[0].date == "2023-12-31"
    assert txs[0].amount_cents == 150000


def test_missing_year_defaults_to_current_year() -> None:
    txs = parse_transactions("01/02 GROCER 12.00", CAP1)
    assert txs[0].date == f"{date.today().year}-01-02"


def test_invalid_calendar_dates_are_skipped() -> None:
    assert parse_transactions("02/30 IMPOSSIBLE 5.00", CAP1, default_year=2024) == []


def test_non_matching_lines_are_skipped() -> None:
    text = "\n".join(
        [
            "Bank of America",
            "Account summary",
            "Deposits and other additions",
            "03/16 MOBILE DEPOSIT 250.00",
            "Page 1 of 3",
        ]
    )

    txs = parse_transactions(text, BOFA, default_year=2024)

    assert [t.description for t in txs] == ["MOBILE DEPOSIT"]


def test_external_id_matches_identity_generator() -> None:
    tx = parse_transactions("03/14 COFFEE SHOP 0.00 4.50", BOFA, default_year=2024)[0]
    assert tx.external_id == compute_external_id("2024-03-14", 450, "COFFEE SHOP")


def test_parsing_is_deterministic() -> None:
    text = "03/14 COFFEE SHOP 0.00 4.50\n03/15 ATM WITHDRAWAL -60.00"
    first = parse_transactions(text, BOFA, default_year=2024)
    second = parse_transactions(text, BOFA, default_year=2024)
    assert first == second


# ---- Capital One -----------------------------------------------------------


def test_capital_one_rows_are_debits() -> None:
    text = "Capital One\n01/05 AMAZON MKTPLACE 23.99\n01/06 UBER   TRIP 1,001.10"

    txs = parse_transactions(text, CAP1, default_year=2024)

    assert [(t.date, t.description, t.amount_cents, t.type) for t in txs] == [
        ("2024-01-05", "AMAZON MKTPLACE", 2399, TransactionType.DEBIT),
        ("2024-01-06", "UBER TRIP", 100110, TransactionType.DEBIT),
    ]


def test_unknown_format_yields_nothing() -> None:
    text = "03/14 COFFEE SHOP 0.00 4.50"
    assert parse_transactions(text, StatementFormat.UNKNOWN) == []
