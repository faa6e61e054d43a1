"""Data models and type aliases for ``statement_ingest``.

Pipeline values are frozen dataclasses: each stage returns new values rather
than mutating its input. Closed vocabularies (transaction direction, statement
format, rule match field/type, categorization source) are ``StrEnum`` types so
that stored strings parse once at the boundary and matching behaviour lives on
the variant itself.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import TypeAlias

from pydantic import BaseModel, ConfigDict, field_validator

# ---------------------------------------------------------------------------
# Extraction and parsing
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TextFragment:
    """A positioned run of text on a page.

    ``y`` grows upwards (PDF user space), so larger values are nearer the top
    of the page. ``line_break`` marks the last fragment of an extracted line.
    """

    text: str
    x: float
    y: float
    line_break: bool = False


class TransactionType(StrEnum):
    DEBIT = "debit"
    CREDIT = "credit"

    def signed(self, amount_cents: int) -> int:
        """Return ``amount_cents`` with the ledger sign for this direction."""
        return amount_cents if self is TransactionType.CREDIT else -amount_cents


class StatementFormat(StrEnum):
    BANK_OF_AMERICA = "bofa"
    CAPITAL_ONE = "capital_one"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class ParsedTransaction:
    """A single transaction extracted from statement text.

    ``amount_cents`` is always non-negative; direction is carried by ``type``.
    ``external_id`` is ``None`` when no deterministic identity could be
    derived, which routes the row to manual review.
    """

    date: str
    description: str
    amount_cents: int
    external_id: str | None
    type: TransactionType

    @property
    def signed_amount_cents(self) -> int:
        return self.type.signed(self.amount_cents)


@dataclass(frozen=True, slots=True)
class StatementParseResult:
    """Outcome of parsing one document.

    ``stated_balances`` holds the opening and closing balances printed on the
    statement, when the format defines where to find them.
    """

    format: StatementFormat
    transactions: tuple[ParsedTransaction, ...]
    needs_review: tuple[ParsedTransaction, ...]
    raw_text: str | None = None
    stated_balances: StatedBalances | None = None


@dataclass(frozen=True, slots=True)
class DocumentOutcome:
    """Per-document result within a multi-document batch."""

    source: str
    result: StatementParseResult
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class ReconciliationReport:
    valid: bool
    calculated_end: int
    difference: int


@dataclass(frozen=True, slots=True)
class StatedBalances:
    start_cents: int
    end_cents: int


# ---------------------------------------------------------------------------
# Categorization
# ---------------------------------------------------------------------------


class MatchField(StrEnum):
    NAME = "name"
    MERCHANT_NAME = "merchant_name"

    def select(self, name: str | None, merchant_name: str | None) -> str | None:
        return merchant_name if self is MatchField.MERCHANT_NAME else name


class MatchType(StrEnum):
    EXACT = "exact"
    PREFIX = "prefix"
    SUBSTRING = "substring"

    @classmethod
    def parse(cls, raw: str) -> MatchType:
        """Parse a stored value, accepting the older ``contains``/``starts_with`` names."""
        v = raw.strip().lower()
        return cls(_MATCH_TYPE_ALIASES.get(v, v))

    def matches(self, value: str | None, pattern: str) -> bool:
        """Case-insensitive match of ``value`` against ``pattern``."""
        if value is None:
            return False
        lower = value.lower()
        pat = pattern.lower()
        if self is MatchType.EXACT:
            return lower == pat
        if self is MatchType.PREFIX:
            return lower.startswith(pat)
        return pat in lower


_MATCH_TYPE_ALIASES: dict[str, str] = {"contains": "substring", "starts_with": "prefix"}


@dataclass(frozen=True, slots=True)
class CategoryRule:
    id: str
    category_id: str
    match_field: MatchField
    match_type: MatchType
    match_pattern: str
    priority: int = 0
    enabled: bool = True

    def matches(self, name: str | None, merchant_name: str | None) -> bool:
        value = self.match_field.select(name, merchant_name)
        return self.match_type.matches(value, self.match_pattern)


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """A prior ledger transaction as seen by the similarity tier."""

    id: str
    name: str
    merchant_name: str | None
    amount_cents: int
    category_id: str | None


@dataclass(frozen=True, slots=True)
class CategorizationInput:
    name: str
    amount_cents: int
    merchant_name: str | None = None


class CategorizationSource(StrEnum):
    RULE = "rule"
    SIMILARITY = "similarity"
    LLM = "llm"
    MANUAL = "manual"


@dataclass(frozen=True, slots=True)
class CategorizationResult:
    category_id: str | None
    confidence: float
    source: CategorizationSource
    explanation: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class PreparedTransaction:
    """A parsed transaction paired with its categorization outcome.

    This is the unit handed to the import merger. ``suggested_match_pattern``
    and ``likely_recurring`` are only populated by the LLM suggestion tier.
    """

    date: str
    description: str
    amount_cents: int
    external_id: str | None
    type: TransactionType
    category_id: str | None
    confidence: float
    source: CategorizationSource
    explanation: tuple[str, ...] = ()
    suggested_match_pattern: str | None = None
    likely_recurring: bool = False

    @classmethod
    def from_parts(
        cls, tx: ParsedTransaction, result: CategorizationResult
    ) -> PreparedTransaction:
        return cls(
            date=tx.date,
            description=tx.description,
            amount_cents=tx.amount_cents,
            external_id=tx.external_id,
            type=tx.type,
            category_id=result.category_id,
            confidence=result.confidence,
            source=result.source,
            explanation=result.explanation,
        )

    @property
    def signed_amount_cents(self) -> int:
        return self.type.signed(self.amount_cents)


@dataclass(frozen=True, slots=True)
class ImportResult:
    imported: int


# ---------------------------------------------------------------------------
# Suggestion service DTOs
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CategoryOption:
    id: str
    name: str


@dataclass(frozen=True, slots=True)
class SuggestionRequestItem:
    description: str
    amount_cents: int


@dataclass(frozen=True, slots=True)
class CategorySuggestion:
    category_id: str | None = None
    suggested_match_pattern: str | None = None
    likely_recurring: bool = False


class LlmSuggestion(BaseModel):
    """Typed, validated model of one suggestion item returned by the model."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    categoryId: str | None = None
    suggestedMatchPattern: str | None = None
    likelyRecurring: bool = False

    @field_validator("categoryId", "suggestedMatchPattern")
    @classmethod
    def _blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v if v.strip() else None


class LlmSuggestionBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    suggestions: list[LlmSuggestion]


PreparedTransactions: TypeAlias = Sequence[PreparedTransaction]
"""An ordered batch of prepared transactions, as handed to the import merger."""
