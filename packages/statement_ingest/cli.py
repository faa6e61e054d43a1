# ruff: noqa: I001
"""CLI for the ``statement_ingest`` package.

Command handlers (``cmd_*``) return a process exit code and print errors as
``Error: ...`` on stderr; the Typer commands below are thin wrappers that turn
a non-zero code into ``typer.Exit``. Environment variables (``DATABASE_URL``,
``OPENAI_API_KEY`` and the ``STATEMENT_INGEST_*`` settings) are loaded from a
local ``.env`` using ``python-dotenv`` in the root callback. Business logic
lives in ``statement_ingest.api`` and related modules.
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv

from .logging_setup import configure_logging


# ---- Small module-level helpers used by CLI commands -------------------------


def _err(msg: str) -> int:
    print(f"Error: {msg}", file=sys.stderr)
    return 1


def _parse_money(raw: str, *, option: str) -> int:
    from .parsers import parse_amount_cents

    cents = parse_amount_cents(raw.replace("$", ""))
    if cents is None:
        raise ValueError(f"{option} must be an amount like 1234.56; got {raw!r}")
    return cents


def _parse_overrides(raw: Sequence[str]) -> dict[int, str]:
    """Parse ``IDX=CATEGORY`` pairs; later pairs win for a repeated index."""

    out: dict[int, str] = {}
    for item in raw:
        idx_s, sep, category = item.partition("=")
        if not sep or not category.strip():
            raise ValueError(f"--override must look like IDX=CATEGORY; got {item!r}")
        try:
            idx = int(idx_s)
        except ValueError as e:
            raise ValueError(f"--override index must be an integer; got {idx_s!r}") from e
        out[idx] = category.strip()
    return out


def _read_documents(paths: Sequence[Path]) -> list[tuple[str, bytes]]:
    docs: list[tuple[str, bytes]] = []
    for p in paths:
        docs.append((str(p), p.read_bytes()))
    return docs


def _format_amount(cents: int) -> str:
    from .identity import format_cents

    return format_cents(cents)


def _reconciliation_line(transactions: Sequence[Any], balances: Any) -> str:
    from .reconciliation import validate_extraction

    report = validate_extraction(transactions, balances.start_cents, balances.end_cents)
    return (
        f"reconciliation valid={str(report.valid).lower()} "
        f"calculated_end={_format_amount(report.calculated_end)} "
        f"difference={_format_amount(report.difference)}"
    )


# ---- Command handlers ----------------------------------------------------------


def cmd_init_db(*, database_url: str | None, create_schema: bool) -> int:
    """Optionally create the ledger tables, then seed default categories."""

    from ledger_db import metadata
    from ledger_db.client import get_engine, session_scope

    from .categories import ensure_default_categories

    try:
        if create_schema:
            metadata.create_all(get_engine(database_url=database_url))
        with session_scope(database_url=database_url) as session:
            inserted = ensure_default_categories(session)
    except Exception as e:
        return _err(f"init-db failed: {e}")
    print(f"default categories inserted: {inserted}")
    return 0


def cmd_add_account(
    *,
    name: str,
    institution: str,
    account_type: str,
    mask: str | None,
    database_url: str | None,
) -> int:
    """Create a ledger account and print its id."""

    from ledger_db.client import session_scope

    from .accounts import create_account

    try:
        with session_scope(database_url=database_url) as session:
            account = create_account(
                session,
                name=name,
                institution=institution,
                account_type=account_type,
                mask=mask,
            )
            account_id = account.id
    except ValueError as e:
        return _err(str(e))
    except Exception as e:
        return _err(f"add-account failed: {e}")
    print(account_id)
    return 0


def cmd_parse(
    paths: Sequence[Path],
    *,
    debug: bool = False,
    default_year: int | None = None,
    start_balance: str | None = None,
    end_balance: str | None = None,
) -> int:
    """Parse statements and print their transactions without touching the ledger.

    Output per document: a ``# <path> format=<fmt>`` header, one
    ``date<TAB>type<TAB>amount<TAB>description<TAB>external_id`` line per
    transaction, a ``needs_review=<n>`` line and a ``reconciliation ...``
    line. Explicit balances apply to every document; otherwise the balances
    printed on the statement itself are used when found.
    """

    from .api import parse_statements
    from .config import Settings
    from .models import StatedBalances

    if (start_balance is None) != (end_balance is None):
        return _err("--start-balance and --end-balance must be given together")
    explicit: StatedBalances | None = None
    try:
        if start_balance is not None and end_balance is not None:
            explicit = StatedBalances(
                start_cents=_parse_money(start_balance, option="--start-balance"),
                end_cents=_parse_money(end_balance, option="--end-balance"),
            )
        settings = Settings.from_env()
        docs = _read_documents(paths)
        outcomes = parse_statements(
            docs,
            isolate_failures=settings.isolate_document_failures,
            default_year=default_year,
            include_raw_text=debug,
            raw_text_chars=settings.raw_text_chars,
        )
    except (OSError, ValueError) as e:
        # DocumentReadError is a ValueError (non-isolated batches).
        return _err(str(e))

    failed = 0
    for outcome in outcomes:
        res = outcome.result
        print(f"# {outcome.source} format={res.format.value}")
        if not outcome.ok:
            failed += 1
            print(f"error={outcome.error}")
            continue
        for tx in res.transactions:
            print(
                f"{tx.date}\t{tx.type.value}\t{_format_amount(tx.amount_cents)}\t"
                f"{tx.description}\t{tx.external_id}"
            )
        print(f"needs_review={len(res.needs_review)}")

        balances = explicit or res.stated_balances
        if balances is None:
            print("reconciliation=skipped")
        else:
            print(_reconciliation_line(res.transactions, balances))
        if debug:
            print("--- raw text preview ---")
            print(res.raw_text or "")

    if failed and failed == len(outcomes):
        return _err(f"no document could be read ({failed} failed)")
    return 0


def cmd_import(
    paths: Sequence[Path],
    *,
    account_id: str,
    overrides: Sequence[str] = (),
    database_url: str | None = None,
    default_year: int | None = None,
    dry_run: bool = False,
) -> int:
    """Parse, categorize and upsert statements into ``account_id``.

    Prints one line per prepared transaction
    (``idx<TAB>date<TAB>amount<TAB>category<TAB>confidence<TAB>band<TAB>source<TAB>description``)
    followed by the imported count. Documents that print their own balances
    get a ``# <path> reconciliation ...`` line first; a mismatch is reported
    and the import goes ahead. ``--dry-run`` prints the same preview and rolls
    back, including the default-category seeding.
    """

    from ledger_db.client import session_scope

    from .api import (
        apply_manual_overrides,
        confidence_band,
        import_prepared,
        parse_statements,
        prepare_import,
    )
    from .categories import ensure_default_categories, known_category_ids
    from .config import Settings

    try:
        override_map = _parse_overrides(overrides)
        settings = Settings.from_env()
        outcomes = parse_statements(
            _read_documents(paths),
            isolate_failures=settings.isolate_document_failures,
            default_year=default_year,
        )
    except (OSError, ValueError) as e:
        return _err(str(e))

    parsed = []
    needs_review = 0
    for outcome in outcomes:
        if not outcome.ok:
            print(f"# {outcome.source} error={outcome.error}", file=sys.stderr)
            continue
        parsed.extend(outcome.result.transactions)
        needs_review += len(outcome.result.needs_review)
        balances = outcome.result.stated_balances
        if balances is not None:
            # Advisory: a mismatch is shown but never blocks the import.
            line = _reconciliation_line(outcome.result.transactions, balances)
            print(f"# {outcome.source} {line}")

    try:
        with session_scope(database_url=database_url or settings.database_url) as session:
            ensure_default_categories(session)
            prepared = prepare_import(session, parsed, settings=settings)
            if override_map:
                prepared = apply_manual_overrides(
                    prepared, override_map, known_categories=known_category_ids(session)
                )
            for i, p in enumerate(prepared):
                print(
                    f"{i}\t{p.date}\t{_format_amount(p.signed_amount_cents)}\t"
                    f"{p.category_id or '-'}\t{p.confidence:.2f}\t"
                    f"{confidence_band(p.confidence)}\t{p.source.value}\t{p.description}"
                )
            print(f"needs_review={needs_review}")
            if dry_run:
                session.rollback()
                print("dry-run: nothing imported")
                return 0
            result = import_prepared(session, account_id=account_id, transactions=prepared)
    except ValueError as e:
        return _err(str(e))
    except Exception as e:
        return _err(f"import failed: {e}")

    print(f"imported={result.imported}")
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Parse text-based PDF bank statements, categorize their transactions and "
        "import them idempotently into the ledger database."
    ),
)


def _exit_on_error(code: int) -> None:
    if code != 0:
        raise typer.Exit(code)


@app.command("init-db")
def init_db_cmd(
    *,
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
    create_schema: bool = typer.Option(
        False, help="Create missing tables directly instead of running Alembic migrations."
    ),
) -> None:
    """Seed default categories (optionally creating tables first)."""

    _exit_on_error(cmd_init_db(database_url=database_url, create_schema=create_schema))


@app.command("add-account")
def add_account_cmd(
    name: Annotated[str, typer.Argument(help="Display name of the account.")],
    *,
    institution: str = typer.Option(..., help="Institution name, e.g. 'Bank of America'."),
    account_type: str = typer.Option("checking", help="Account type, e.g. checking, credit."),
    mask: str | None = typer.Option(None, help="Last digits of the account number."),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Create an account to import statements into; prints the new id."""

    _exit_on_error(
        cmd_add_account(
            name=name,
            institution=institution,
            account_type=account_type,
            mask=mask,
            database_url=database_url,
        )
    )


@app.command("parse")
def parse_cmd(
    pdf_paths: Annotated[list[Path], typer.Argument(help="Statement PDF file(s).")],
    *,
    debug: bool = typer.Option(False, help="Print a preview of the reconstructed text."),
    default_year: int | None = typer.Option(
        None, help="Year for MM/DD dates without one (defaults to the current year)."
    ),
    start_balance: str | None = typer.Option(None, help="Opening balance, e.g. 1200.00."),
    end_balance: str | None = typer.Option(None, help="Closing balance, e.g. 980.55."),
) -> None:
    """Parse statements and print transactions plus a reconciliation check."""

    _exit_on_error(
        cmd_parse(
            pdf_paths,
            debug=debug,
            default_year=default_year,
            start_balance=start_balance,
            end_balance=end_balance,
        )
    )


@app.command("import")
def import_cmd(
    pdf_paths: Annotated[list[Path], typer.Argument(help="Statement PDF file(s).")],
    *,
    account_id: str = typer.Option(..., help="Ledger account id to import into."),
    override: Annotated[
        list[str] | None,
        typer.Option(help="Operator override IDX=CATEGORY_ID (repeatable)."),
    ] = None,
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
    default_year: int | None = typer.Option(
        None, help="Year for MM/DD dates without one (defaults to the current year)."
    ),
    dry_run: bool = typer.Option(False, help="Show the categorized preview without importing."),
) -> None:
    """Parse, categorize and import statements into the ledger."""

    _exit_on_error(
        cmd_import(
            pdf_paths,
            account_id=account_id,
            overrides=override or (),
            database_url=database_url,
            default_year=default_year,
            dry_run=dry_run,
        )
    )


@app.callback(invoke_without_command=True)
def _root(ctx: typer.Context) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging once.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover - exercised via console script
    # Running as a module: `python -m statement_ingest.cli`
    main()
