"""Deterministic, content-derived transaction identity.

The external id is the dedup key for re-import: the same (date, normalized
description, amount) always hashes to the same value, across runs and
processes. It is a truncated SHA-256 hex digest; at 24 hex characters (96
bits) collisions are negligible for per-account volumes.
"""

from __future__ import annotations

import hashlib

EXTERNAL_ID_LENGTH: int = 24
_DESCRIPTION_PREFIX_CHARS: int = 64


def format_cents(amount_cents: int) -> str:
    """Render minor units as a plain decimal string (``-1234`` -> ``"-12.34"``)."""

    sign = "-" if amount_cents < 0 else ""
    whole, frac = divmod(abs(amount_cents), 100)
    return f"{sign}{whole}.{frac:02d}"


def _digest(date: str, amount_cents: int, description: str) -> str:
    payload = f"{date}|{format_cents(amount_cents)}|{description[:_DESCRIPTION_PREFIX_CHARS]}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:EXTERNAL_ID_LENGTH]


def compute_external_id(date: str, amount_cents: int, description: str) -> str | None:
    """Return the external id for a transaction, or ``None`` when underivable.

    ``date`` is ISO ``YYYY-MM-DD`` and ``description`` is already normalized.
    A missing date or an empty description means the identity would not be
    meaningful; callers route such rows to manual review.
    """

    date_s = (date or "").strip()
    desc = (description or "").strip()
    if not date_s or not desc:
        return None
    return _digest(date_s, amount_cents, desc)


def fallback_external_id(date: str, amount_cents: int, description: str) -> str:
    """Always-derivable id used by the import merger for rows that arrive without one.

    Unlike :func:`compute_external_id` this never returns ``None``; empty
    components hash as empty strings.
    """

    return _digest((date or "").strip(), amount_cents, (description or "").strip())


__all__ = ["EXTERNAL_ID_LENGTH", "compute_external_id", "fallback_external_id", "format_cents"]
