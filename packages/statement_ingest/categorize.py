"""Tiered transaction categorization.

Public API:
    - :func:`categorize_transaction`
    - :func:`categorize_transactions`

Three ordered tiers decide each transaction; the first to commit wins:

1. **Rule**: enabled rules by descending priority (declaration order breaks
   ties). The first rule whose pattern matches the selected field assigns its
   category at confidence 1.0.
2. **Similarity**: prior ledger transactions sharing word tokens with the new
   description vote with their categories. Requires at least
   ``_MIN_CANDIDATES`` candidates and a leader with ``_MIN_VOTES`` votes.
3. **Manual**: no category, confidence 0. This is an expected outcome, not an
   error.

Confidence is returned as a number only; accept/suggest/manual thresholds are
applied by callers.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence

from .logging_setup import get_logger
from .models import (
    CategorizationInput,
    CategorizationResult,
    CategorizationSource,
    CategoryRule,
    HistoryEntry,
    ParsedTransaction,
    PreparedTransaction,
)

# ---- Tunables (private) ------------------------------------------------------

_MIN_TOKEN_LEN: int = 3
_CANDIDATE_LIMIT: int = 10
_MIN_CANDIDATES: int = 3
_MIN_VOTES: int = 2
_BASE_CONFIDENCE: float = 0.6
_CONFIDENCE_PER_VOTE: float = 0.1
_MAX_SIMILARITY_CONFIDENCE: float = 0.95

_logger = get_logger("statement_ingest.categorize")


# ---- Rule tier -----------------------------------------------------------------


def _ordered_rules(rules: Iterable[CategoryRule]) -> list[CategoryRule]:
    # sorted() is stable: equal priorities keep declaration order.
    return sorted((r for r in rules if r.enabled), key=lambda r: -r.priority)


def _match_rule(
    tx: CategorizationInput, rules: Sequence[CategoryRule]
) -> CategorizationResult | None:
    for rule in rules:
        if rule.matches(tx.name, tx.merchant_name):
            return CategorizationResult(
                category_id=rule.category_id,
                confidence=1.0,
                source=CategorizationSource.RULE,
                explanation=(f'Matched rule: "{rule.match_pattern}"',),
            )
    return None


# ---- Similarity tier -----------------------------------------------------------


def _tokens(text: str) -> set[str]:
    return {w for w in text.lower().split() if len(w) >= _MIN_TOKEN_LEN}


def find_similar_transactions(
    name: str,
    history: Iterable[HistoryEntry],
    *,
    limit: int = _CANDIDATE_LIMIT,
) -> list[HistoryEntry]:
    """Return up to ``limit`` history entries ranked by shared-token count.

    Entries with an identical description (case-insensitive) and entries
    sharing no tokens are excluded. Ties keep history order.
    """

    name_lower = name.lower()
    wanted = _tokens(name)
    if not wanted:
        return []
    scored: list[tuple[int, HistoryEntry]] = []
    for entry in history:
        if entry.name.lower() == name_lower:
            continue
        score = len(wanted & _tokens(entry.name))
        if score > 0:
            scored.append((score, entry))
    scored.sort(key=lambda pair: -pair[0])
    return [entry for _, entry in scored[:limit]]


def _match_similar(
    tx: CategorizationInput, history: Sequence[HistoryEntry]
) -> CategorizationResult | None:
    similar = find_similar_transactions(tx.name, history)
    if len(similar) < _MIN_CANDIDATES:
        return None
    votes = Counter(e.category_id for e in similar if e.category_id)
    if not votes:
        return None
    # most_common() keeps first-seen order among equal counts.
    top_category, count = votes.most_common(1)[0]
    if count < _MIN_VOTES:
        return None
    confidence = round(
        min(_MAX_SIMILARITY_CONFIDENCE, _BASE_CONFIDENCE + _CONFIDENCE_PER_VOTE * count), 2
    )
    return CategorizationResult(
        category_id=top_category,
        confidence=confidence,
        source=CategorizationSource.SIMILARITY,
        explanation=(
            f"Similar to {count} past transactions",
            f"Confidence: {confidence * 100:.0f}%",
        ),
    )


# ---- Manual tier ---------------------------------------------------------------

_MANUAL = CategorizationResult(
    category_id=None,
    confidence=0.0,
    source=CategorizationSource.MANUAL,
    explanation=("No matching rule or similar transactions found",),
)


# ---- Public API ------------------------------------------------------------------


def categorize_transaction(
    tx: CategorizationInput,
    rules: Iterable[CategoryRule],
    history: Sequence[HistoryEntry],
) -> CategorizationResult:
    """Assign a category to ``tx`` through the rule, similarity and manual tiers."""

    return (
        _match_rule(tx, _ordered_rules(rules))
        or _match_similar(tx, history)
        or _MANUAL
    )


def categorize_transactions(
    transactions: Iterable[ParsedTransaction],
    rules: Iterable[CategoryRule],
    history: Sequence[HistoryEntry],
) -> list[PreparedTransaction]:
    """Categorize a batch of parsed transactions, preserving input order."""

    ordered = _ordered_rules(rules)
    out: list[PreparedTransaction] = []
    for tx in transactions:
        query = CategorizationInput(name=tx.description, amount_cents=tx.signed_amount_cents)
        result = _match_rule(query, ordered) or _match_similar(query, history) or _MANUAL
        out.append(PreparedTransaction.from_parts(tx, result))

    by_source = Counter(p.source.value for p in out)
    _logger.info(
        "categorize_transactions:done total=%d rule=%d similarity=%d manual=%d",
        len(out),
        by_source.get("rule", 0),
        by_source.get("similarity", 0),
        by_source.get("manual", 0),
    )
    return out


__all__ = [
    "categorize_transaction",
    "categorize_transactions",
    "find_similar_transactions",
]
