"""Environment-driven settings for ``statement_ingest``.

Entrypoints load a local ``.env`` (python-dotenv) before calling
:meth:`Settings.from_env`; library code only ever reads the resulting frozen
object, never the environment directly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

RAW_TEXT_PREVIEW_CHARS: int = 3000
_DEFAULT_LLM_MODEL: str = "gpt-4o"


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"{name} must be a boolean flag (1/0, true/false); got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer; got {raw!r}") from exc
    if value < 1:
        raise ValueError(f"{name} must be positive; got {value}")
    return value


@dataclass(frozen=True, slots=True)
class Settings:
    """Resolved runtime configuration.

    Attributes
    ----------
    database_url:
        SQLAlchemy URL for the ledger; ``None`` defers to ``ledger_db.client``
        which raises when it is needed and missing.
    llm_suggestions:
        Permit the optional LLM suggestion tier. It additionally requires
        ``openai_api_key``.
    llm_model:
        Model name passed to the Responses API.
    isolate_document_failures:
        In multi-document batches, record a failing document and continue
        (``True``) or abort the batch on the first failure (``False``).
    raw_text_chars:
        Cap for the debug preview of reconstructed statement text.
    """

    database_url: str | None = None
    openai_api_key: str | None = None
    llm_suggestions: bool = False
    llm_model: str = _DEFAULT_LLM_MODEL
    isolate_document_failures: bool = True
    raw_text_chars: int = RAW_TEXT_PREVIEW_CHARS

    @property
    def suggestions_enabled(self) -> bool:
        return self.llm_suggestions and bool(self.openai_api_key)

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            database_url=os.getenv("DATABASE_URL") or None,
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            llm_suggestions=_env_flag("STATEMENT_INGEST_LLM_SUGGESTIONS", False),
            llm_model=os.getenv("STATEMENT_INGEST_LLM_MODEL") or _DEFAULT_LLM_MODEL,
            isolate_document_failures=_env_flag("STATEMENT_INGEST_ISOLATE_FAILURES", True),
            raw_text_chars=_env_int("STATEMENT_INGEST_RAW_TEXT_CHARS", RAW_TEXT_PREVIEW_CHARS),
        )


__all__ = ["RAW_TEXT_PREVIEW_CHARS", "Settings"]
