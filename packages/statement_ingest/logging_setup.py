"""Logging for ``statement_ingest``.

Every module logs through ``get_logger("statement_ingest.<module>")`` using
``event:phase key=value`` messages, e.g.::

    parse_statement:done format=bofa parsed=12 needs_review=0 chars=4810
    import_transactions:done account_id=acct-1 imported=12 chunks=1

Until an entrypoint calls :func:`configure_logging` the package logger only
carries a ``NullHandler``, so importing the library prints nothing. The CLI
configures it once at start-up; a host application may do the same or attach
its own handlers to the ``statement_ingest`` logger instead.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

PACKAGE_LOGGER = "statement_ingest"
LOG_LEVEL_ENV = "STATEMENT_INGEST_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_configured = False


def _resolve_level(level: int | str | None) -> int:
    """Explicit ``level`` first, then ``STATEMENT_INGEST_LOG_LEVEL``, then INFO.

    Names (``"debug"``) and numeric strings (``"10"``) are accepted; anything
    unrecognized falls through to the next source.
    """

    for candidate in (level, os.getenv(LOG_LEVEL_ENV)):
        if isinstance(candidate, int):
            return candidate
        if isinstance(candidate, str) and candidate.strip():
            name = candidate.strip().upper()
            if name.isdigit():
                return int(name)
            value = logging.getLevelName(name)
            if isinstance(value, int):
                return value
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str = DEFAULT_FORMAT,
    stream: IO[str] | None = None,
) -> None:
    """Send package logs to ``stream`` (stderr by default). Later calls are no-ops."""

    global _configured
    if _configured:
        return

    pkg = logging.getLogger(PACKAGE_LOGGER)
    for h in [h for h in pkg.handlers if isinstance(h, logging.NullHandler)]:
        pkg.removeHandler(h)

    resolved = _resolve_level(level)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt))
    pkg.addHandler(handler)
    pkg.setLevel(resolved)
    # The CLI owns stderr; keep records away from the root logger.
    pkg.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    pkg = logging.getLogger(PACKAGE_LOGGER)
    if not _configured and not pkg.handlers:
        pkg.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
