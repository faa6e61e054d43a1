"""Format-specific transaction extraction from reconstructed statement text.

Each supported format runs one or more ordered regex passes over the text one
line at a time. Lines that match no pass are skipped: a statement with
unfamiliar sections yields fewer transactions rather than an error.

Bank of America (two passes)
----------------------------
1. Two-column: ``MM/DD[/YY] <description> <credit> <debit>``. Exactly one of
   the two amounts is expected to be non-zero; a non-zero first column is a
   credit and a non-zero second column is a debit. Rows where both are zero
   (subtotals and similar) are discarded. Any line this pass matches is
   consumed and not offered to the fallback.
2. Single-amount fallback: ``MM/DD[/YY] <description> [-]<amount>`` at end of
   line. A leading minus marks a debit, otherwise a credit. Rows whose
   ``(date, description, |amount|)`` key was already captured are skipped.

Capital One (one pass)
----------------------
``MM/DD[/YY] <description> <amount>``; always a debit.

Normalization
-------------
- Dates become ``YYYY-MM-DD``; ``YY`` means ``20YY``. A date without a year
  takes ``default_year`` or, when that is not supplied, the current calendar
  year (logged, since it is wrong for statements spanning a year boundary).
  Impossible calendar dates (``02/30``) are skipped.
- Descriptions collapse whitespace runs and are trimmed.
- Amounts drop thousands separators and convert to integer cents, rounding
  half-up.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .identity import compute_external_id
from .logging_setup import get_logger
from .models import ParsedTransaction, StatementFormat, TransactionType

_logger = get_logger("statement_ingest.parsers")

_DATE = r"(?P<mm>0[1-9]|1[0-2])/(?P<dd>0[1-9]|[12]\d|3[01])(?:/(?P<yy>\d{2}))?"

_BOFA_TWO_AMOUNT_RE = re.compile(
    _DATE + r"\s+(?P<desc>.+?)\s+(?P<first>[\d,]+\.\d{2})\s+(?P<second>[\d,]+\.\d{2})(?!\d)"
)
_BOFA_SINGLE_AMOUNT_RE = re.compile(
    _DATE + r"\s+(?P<desc>.+?)\s+(?P<amount>-?[\d,]+\.\d{2})\s*$"
)
_CAPITAL_ONE_TX_RE = re.compile(_DATE + r"\s+(?P<desc>.+?)\s+(?P<amount>[\d,]+\.\d{2})(?!\d)")

_WS_RE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# Normalization helpers
# ---------------------------------------------------------------------------


def normalize_description(raw: str) -> str:
    """Collapse internal whitespace runs to one space and trim."""

    return _WS_RE.sub(" ", raw).strip()


def parse_amount_cents(raw: str) -> int | None:
    """Parse a statement amount like ``"-1,234.56"`` into signed cents.

    Returns ``None`` when the string is not a decimal number.
    """

    s = raw.replace(",", "").strip()
    try:
        d = Decimal(s)
    except InvalidOperation:
        return None
    return int((d * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(slots=True)
class _DateContext:
    """Year resolution for ``MM/DD`` tokens, counting inferred years."""

    default_year: int | None
    inferred: int = field(default=0)

    def resolve(self, mm: str, dd: str, yy: str | None) -> str | None:
        if yy:
            year = 2000 + int(yy)
        else:
            year = self.default_year if self.default_year is not None else date.today().year
            if self.default_year is None:
                self.inferred += 1
        try:
            return date(year, int(mm), int(dd)).isoformat()
        except ValueError:
            return None


def _make(
    iso_date: str, description: str, amount_cents: int, tx_type: TransactionType
) -> ParsedTransaction:
    return ParsedTransaction(
        date=iso_date,
        description=description,
        amount_cents=amount_cents,
        external_id=compute_external_id(iso_date, amount_cents, description),
        type=tx_type,
    )


def _lines(text: str) -> Iterator[str]:
    for line in text.splitlines():
        if line.strip():
            yield line


# ---------------------------------------------------------------------------
# Format-specific passes
# ---------------------------------------------------------------------------


def _parse_bank_of_america(text: str, ctx: _DateContext) -> list[ParsedTransaction]:
    transactions: list[ParsedTransaction] = []
    seen: set[tuple[str, str, int]] = set()
    leftover: list[str] = []

    for line in _lines(text):
        matched = False
        for m in _BOFA_TWO_AMOUNT_RE.finditer(line):
            matched = True
            iso = ctx.resolve(m["mm"], m["dd"], m["yy"])
            first = parse_amount_cents(m["first"])
            second = parse_amount_cents(m["second"])
            if iso is None or first is None or second is None:
                continue
            if first != 0:
                amount, tx_type = first, TransactionType.CREDIT
            elif second != 0:
                amount, tx_type = second, TransactionType.DEBIT
            else:
                continue
            desc = normalize_description(m["desc"])
            seen.add((iso, desc, amount))
            transactions.append(_make(iso, desc, amount, tx_type))
        if not matched:
            leftover.append(line)

    for line in leftover:
        m = _BOFA_SINGLE_AMOUNT_RE.search(line)
        if m is None:
            continue
        iso = ctx.resolve(m["mm"], m["dd"], m["yy"])
        signed = parse_amount_cents(m["amount"])
        if iso is None or signed is None:
            continue
        desc = normalize_description(m["desc"])
        key = (iso, desc, abs(signed))
        if key in seen:
            continue
        seen.add(key)
        tx_type = TransactionType.DEBIT if m["amount"].startswith("-") else TransactionType.CREDIT
        transactions.append(_make(iso, desc, abs(signed), tx_type))

    return transactions


def _parse_capital_one(text: str, ctx: _DateContext) -> list[ParsedTransaction]:
    transactions: list[ParsedTransaction] = []
    for line in _lines(text):
        for m in _CAPITAL_ONE_TX_RE.finditer(line):
            iso = ctx.resolve(m["mm"], m["dd"], m["yy"])
            amount = parse_amount_cents(m["amount"])
            if iso is None or amount is None:
                continue
            desc = normalize_description(m["desc"])
            transactions.append(_make(iso, desc, amount, TransactionType.DEBIT))
    return transactions


_PARSERS: dict[StatementFormat, Callable[[str, _DateContext], list[ParsedTransaction]]] = {
    StatementFormat.BANK_OF_AMERICA: _parse_bank_of_america,
    StatementFormat.CAPITAL_ONE: _parse_capital_one,
}


def parse_transactions(
    text: str, fmt: StatementFormat, *, default_year: int | None = None
) -> list[ParsedTransaction]:
    """Extract transactions from ``text`` using the passes for ``fmt``.

    ``StatementFormat.UNKNOWN`` yields an empty list.
    """

    parser = _PARSERS.get(fmt)
    if parser is None:
        return []
    ctx = _DateContext(default_year=default_year)
    transactions = parser(text, ctx)
    if ctx.inferred:
        _logger.warning(
            "parse_transactions:year_inferred format=%s dates=%d year=%d",
            fmt.value,
            ctx.inferred,
            date.today().year,
        )
    _logger.debug("parse_transactions:done format=%s parsed=%d", fmt.value, len(transactions))
    return transactions


__all__ = ["normalize_description", "parse_amount_cents", "parse_transactions"]
