"""Public interface for the ``statement_ingest`` package.

Re-exports the pipeline entry points and the value types they exchange; there
is no runtime logic here.
"""

from .api import (
    apply_manual_overrides,
    confidence_band,
    import_prepared,
    parse_statement,
    parse_statements,
    prepare_import,
)
from .categorize import categorize_transaction, categorize_transactions
from .formats import detect_format
from .identity import compute_external_id
from .models import (
    CategorizationInput,
    CategorizationResult,
    CategorizationSource,
    CategoryRule,
    DocumentOutcome,
    HistoryEntry,
    ImportResult,
    MatchField,
    MatchType,
    ParsedTransaction,
    PreparedTransaction,
    ReconciliationReport,
    StatementFormat,
    StatementParseResult,
    TextFragment,
    TransactionType,
)
from .parsers import parse_transactions
from .reconciliation import validate_extraction
from .text_extraction import DocumentReadError, extract_document_text, reconstruct_page_text

__all__ = [
    # Pipeline
    "parse_statement",
    "parse_statements",
    "prepare_import",
    "apply_manual_overrides",
    "import_prepared",
    "confidence_band",
    # Stages
    "extract_document_text",
    "reconstruct_page_text",
    "detect_format",
    "parse_transactions",
    "compute_external_id",
    "validate_extraction",
    "categorize_transaction",
    "categorize_transactions",
    # Errors
    "DocumentReadError",
    # Types
    "TextFragment",
    "TransactionType",
    "StatementFormat",
    "ParsedTransaction",
    "StatementParseResult",
    "DocumentOutcome",
    "ReconciliationReport",
    "MatchField",
    "MatchType",
    "CategoryRule",
    "HistoryEntry",
    "CategorizationInput",
    "CategorizationSource",
    "CategorizationResult",
    "PreparedTransaction",
    "ImportResult",
]
