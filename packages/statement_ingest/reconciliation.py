"""Balance cross-check of extracted activity against a statement's balances.

The check is advisory: a mismatch is reported with its numeric difference and
never blocks categorization or import.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from .logging_setup import get_logger
from .models import ParsedTransaction, ReconciliationReport, StatedBalances, StatementFormat
from .parsers import parse_amount_cents

# Strictly less than one major unit of drift is treated as rounding noise.
TOLERANCE_CENTS: int = 100

_logger = get_logger("statement_ingest.reconciliation")

_AMOUNT = r"(?P<amount>-?\$?-?[\d,]+\.\d{2})"

_BALANCE_PATTERNS: dict[StatementFormat, tuple[re.Pattern[str], re.Pattern[str]]] = {
    StatementFormat.BANK_OF_AMERICA: (
        re.compile(r"Beginning balance on [A-Za-z]+ \d{1,2}, \d{4}\s+" + _AMOUNT),
        re.compile(r"Ending balance on [A-Za-z]+ \d{1,2}, \d{4}\s+" + _AMOUNT),
    ),
    StatementFormat.CAPITAL_ONE: (
        re.compile(r"Previous Balance\s+" + _AMOUNT),
        re.compile(r"New Balance\s+" + _AMOUNT),
    ),
}


def validate_extraction(
    transactions: Iterable[ParsedTransaction],
    start_balance_cents: int,
    end_balance_cents: int,
) -> ReconciliationReport:
    """Replay ``transactions`` from the starting balance and compare.

    Credits add and debits subtract. ``difference`` is
    ``calculated_end - end_balance_cents``: a positive value means the
    extracted activity leaves more money than the statement reports (for
    example, a missed debit).
    """

    calculated_end = start_balance_cents
    for tx in transactions:
        calculated_end += tx.signed_amount_cents
    difference = calculated_end - end_balance_cents
    report = ReconciliationReport(
        valid=abs(difference) < TOLERANCE_CENTS,
        calculated_end=calculated_end,
        difference=difference,
    )
    if not report.valid:
        _logger.warning(
            "validate_extraction:mismatch calculated_end=%d stated_end=%d difference=%d",
            calculated_end,
            end_balance_cents,
            difference,
        )
    return report


def _amount_from(match: re.Match[str]) -> int | None:
    raw = match["amount"]
    negative = "-" in raw
    cents = parse_amount_cents(raw.replace("$", "").replace("-", ""))
    if cents is None:
        return None
    return -cents if negative else cents


def find_stated_balances(text: str, fmt: StatementFormat) -> StatedBalances | None:
    """Locate the statement's own opening and closing balances, if printed.

    Returns ``None`` unless both are found.
    """

    patterns = _BALANCE_PATTERNS.get(fmt)
    if patterns is None:
        return None
    start_re, end_re = patterns
    start_m = start_re.search(text)
    end_m = end_re.search(text)
    if start_m is None or end_m is None:
        return None
    start = _amount_from(start_m)
    end = _amount_from(end_m)
    if start is None or end is None:
        return None
    return StatedBalances(start_cents=start, end_cents=end)


__all__ = ["TOLERANCE_CENTS", "find_stated_balances", "validate_extraction"]
