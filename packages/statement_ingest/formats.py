"""Statement format detection by institution markers."""

from __future__ import annotations

from .models import StatementFormat

# Checked in order; the first literal found in the text decides the format.
_MARKERS: tuple[tuple[str, StatementFormat], ...] = (
    ("Bank of America", StatementFormat.BANK_OF_AMERICA),
    ("Capital One", StatementFormat.CAPITAL_ONE),
)


def detect_format(text: str) -> StatementFormat:
    """Classify full statement text into a known format or ``UNKNOWN``.

    Exact, case-sensitive substring search; no fuzzy matching.
    """

    for marker, fmt in _MARKERS:
        if marker in text:
            return fmt
    return StatementFormat.UNKNOWN


__all__ = ["detect_format"]
