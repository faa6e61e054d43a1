"""Pytest configuration shared by the suite.

Puts the workspace packages on ``sys.path`` so tests run from a plain checkout
(``packages/`` for ``statement_ingest``, ``libs/ledger_db/src`` for
``ledger_db`` and the repo root for ``tests.helpers``), and keeps every test
hermetic with respect to the environment-driven settings.
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

_ROOT = Path(__file__).resolve().parents[1]
_PATHS = [_ROOT / "packages", _ROOT / "libs" / "ledger_db" / "src", _ROOT]
sys.path[:0] = [str(p) for p in _PATHS if str(p) not in sys.path]

_ENV_VARS = (
    "DATABASE_URL",
    "OPENAI_API_KEY",
    "STATEMENT_INGEST_LLM_SUGGESTIONS",
    "STATEMENT_INGEST_LLM_MODEL",
    "STATEMENT_INGEST_ISOLATE_FAILURES",
    "STATEMENT_INGEST_RAW_TEXT_CHARS",
    "STATEMENT_INGEST_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Clear settings variables so a developer's shell or .env cannot leak in."""

    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def db_url(tmp_path: Path) -> Iterator[str]:
    """A fresh file-backed SQLite ledger bound to the shared engine."""

    from ledger_db.client import reset_engine

    from tests.helpers.db import bootstrap_sqlite_db

    url = bootstrap_sqlite_db(tmp_path / "ledger.db")
    try:
        yield url
    finally:
        reset_engine()
