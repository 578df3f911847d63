"""CLI for the ``finance_tracker`` package.

This module exposes callable command handlers (``cmd_*``, returning a process
exit code) and a Typer-based console interface wrapping them. Environment
variables (notably ``DATABASE_URL``) are loaded from a local ``.env`` using
``python-dotenv`` before delegating to command logic. Business logic lives in
``finance_tracker.api`` and the persistence/summary modules.

Every command ensures the schema exists first, so a fresh database works
without a separate ``init-db``.
"""

from __future__ import annotations

import sys
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from .logging_setup import configure_logging

_console = Console()


def _err(msg: str) -> int:
    print(f"Error: {msg}", file=sys.stderr)
    return 1


def _prepare(database_url: str | None) -> None:
    from db.client import init_db

    init_db(database_url=database_url)


def _fmt_amount(kind: str, amount: Decimal) -> str:
    sign = "+" if kind == "income" else "-"
    return f"{sign}{amount:.2f}"


# ---- Command handlers --------------------------------------------------------


def cmd_init_db(*, database_url: str | None = None) -> int:
    try:
        _prepare(database_url)
    except Exception as e:
        return _err(f"failed to initialize database: {e}")
    print("Database ready.")
    return 0


def cmd_process_recurring(*, database_url: str | None = None) -> int:
    """Run one materialization pass and print what it did.

    Exits non-zero when the pass could not run or any rule failed.
    """

    from .api import process_recurring

    try:
        _prepare(database_url)
    except Exception as e:
        return _err(f"failed to initialize database: {e}")

    report = process_recurring(database_url=database_url)
    if report is None:
        return _err("recurring processing aborted; see log for details")

    print(
        f"Processed {report.rules_processed} rule(s): "
        f"{len(report.created)} created, {report.skipped} already present."
    )
    for entry in report.created:
        print(f"  + {entry.created_at:%Y-%m}\t{entry.description}\t{entry.amount:.2f}")
    for failure in report.failures:
        print(
            f"  ! rule {failure.rule_id} ({failure.description}) "
            f"stopped at {failure.year_month or '-'}: {failure.error}",
            file=sys.stderr,
        )
    if report.watermark_error:
        print(f"  ! last-run timestamp not saved: {report.watermark_error}", file=sys.stderr)
    return 0 if report.ok else 1


def cmd_add_recurring(
    *,
    kind: str,
    amount: str,
    description: str,
    start_date: date,
    end_date: date | None = None,
    category_id: int | None = None,
    database_url: str | None = None,
) -> int:
    from .api import add_recurring_rule
    from .errors import InvalidRuleError

    try:
        _prepare(database_url)
    except Exception as e:
        return _err(f"failed to initialize database: {e}")

    try:
        rule, report = add_recurring_rule(
            kind=kind,
            amount=amount,
            description=description,
            start_date=start_date,
            end_date=end_date,
            category_id=category_id,
            database_url=database_url,
        )
    except InvalidRuleError as e:
        return _err(f"invalid recurring rule: {e}")
    except Exception as e:
        return _err(f"failed to save recurring rule: {e}")

    print(f"Created recurring rule {rule.id}: {rule.description}")
    if report is None:
        return _err("rule saved but recurring processing aborted; see log for details")
    print(f"Generated {len(report.created)} transaction(s).")
    return 0 if report.ok else 1


def cmd_list_recurring(*, database_url: str | None = None) -> int:
    from db.client import session_scope

    from .persistence import list_recurring_rules

    try:
        _prepare(database_url)
        with session_scope(database_url=database_url) as session:
            rules = list_recurring_rules(session)
    except Exception as e:
        return _err(f"failed to list recurring rules: {e}")

    if not rules:
        print("No recurring transactions.")
        return 0

    table = Table(title="Recurring")
    for col in ("ID", "Description", "Amount", "Category", "Start", "End"):
        table.add_column(col)
    for r in rules:
        table.add_row(
            str(r.id),
            r.description,
            _fmt_amount(r.kind, r.amount),
            str(r.category_id) if r.category_id is not None else "-",
            f"{r.start_date:%Y-%m}",
            f"{r.end_date:%Y-%m-%d}" if r.end_date else "Never",
        )
    _console.print(table)
    return 0


def cmd_delete_recurring(rule_id: int, *, database_url: str | None = None) -> int:
    from db.client import session_scope

    from .persistence import delete_recurring_rule

    try:
        _prepare(database_url)
        with session_scope(database_url=database_url) as session:
            deleted = delete_recurring_rule(session, rule_id)
    except Exception as e:
        return _err(f"failed to delete recurring rule: {e}")
    if not deleted:
        return _err(f"recurring rule {rule_id} not found")
    print(f"Deleted recurring rule {rule_id}; generated transactions were kept.")
    return 0


def cmd_add_transaction(
    *,
    kind: str,
    amount: str,
    description: str | None = None,
    category_id: int | None = None,
    created_at: datetime | None = None,
    database_url: str | None = None,
) -> int:
    from db.client import session_scope

    from .persistence import add_transaction

    try:
        _prepare(database_url)
        with session_scope(database_url=database_url) as session:
            entry = add_transaction(
                session,
                kind=kind,
                amount=amount,
                category_id=category_id,
                description=description,
                created_at=created_at,
            )
    except (ValueError, InvalidOperation) as e:
        return _err(f"invalid transaction: {e}")
    except Exception as e:
        return _err(f"failed to save transaction: {e}")
    print(f"Created transaction {entry.id}.")
    return 0


def cmd_list_transactions(
    *,
    year: int | None = None,
    month: int | None = None,
    limit: int | None = None,
    database_url: str | None = None,
) -> int:
    from db.client import session_scope

    from .persistence import list_transactions

    try:
        _prepare(database_url)
        with session_scope(database_url=database_url) as session:
            rows = list_transactions(session, year=year, month=month, limit=limit)
    except ValueError as e:
        return _err(str(e))
    except Exception as e:
        return _err(f"failed to list transactions: {e}")

    if not rows:
        print("No transactions.")
        return 0

    table = Table(title="Transactions")
    for col in ("ID", "Date", "Description", "Amount", "Category"):
        table.add_column(col)
    for t in rows:
        table.add_row(
            str(t.id),
            f"{t.created_at:%Y-%m-%d %H:%M}",
            t.description or "",
            _fmt_amount(t.kind, t.amount),
            str(t.category_id) if t.category_id is not None else "-",
        )
    _console.print(table)
    return 0


def cmd_delete_transaction(tx_id: int, *, database_url: str | None = None) -> int:
    from db.client import session_scope

    from .persistence import delete_transaction

    try:
        _prepare(database_url)
        with session_scope(database_url=database_url) as session:
            deleted = delete_transaction(session, tx_id)
    except Exception as e:
        return _err(f"failed to delete transaction: {e}")
    if not deleted:
        return _err(f"transaction {tx_id} not found")
    print(f"Deleted transaction {tx_id}.")
    return 0


def cmd_add_category(name: str, *, database_url: str | None = None) -> int:
    from db.client import session_scope

    from .persistence import add_category

    try:
        _prepare(database_url)
        with session_scope(database_url=database_url) as session:
            cat = add_category(session, name)
    except ValueError as e:
        return _err(str(e))
    except Exception as e:
        return _err(f"failed to add category: {e}")
    print(f"Created category {cat.id}: {cat.name}")
    return 0


def cmd_list_categories(*, database_url: str | None = None) -> int:
    from db.client import session_scope

    from .persistence import list_categories

    try:
        _prepare(database_url)
        with session_scope(database_url=database_url) as session:
            cats = list_categories(session)
    except Exception as e:
        return _err(f"failed to list categories: {e}")
    for c in cats:
        print(f"{c.id}\t{c.name}")
    return 0


def cmd_rename_category(category_id: int, name: str, *, database_url: str | None = None) -> int:
    from db.client import session_scope

    from .persistence import rename_category

    try:
        _prepare(database_url)
        with session_scope(database_url=database_url) as session:
            cat = rename_category(session, category_id, name)
    except ValueError as e:
        return _err(str(e))
    except Exception as e:
        return _err(f"failed to rename category: {e}")
    if cat is None:
        return _err(f"category {category_id} not found")
    print(f"Renamed category {cat.id} to {cat.name}")
    return 0


def cmd_delete_category(category_id: int, *, database_url: str | None = None) -> int:
    """Delete a category; its transactions and rules become uncategorized."""

    from db.client import session_scope

    from .persistence import delete_category

    try:
        _prepare(database_url)
        with session_scope(database_url=database_url) as session:
            deleted = delete_category(session, category_id)
    except Exception as e:
        return _err(f"failed to delete category: {e}")
    if not deleted:
        return _err(f"category {category_id} not found")
    print(f"Deleted category {category_id}.")
    return 0


def cmd_summary(year: int, month: int | None = None, *, database_url: str | None = None) -> int:
    """Print income, expenses, balance and the per-category breakdown."""

    from db.client import session_scope

    from .summary import category_breakdown, period_summary

    try:
        _prepare(database_url)
        with session_scope(database_url=database_url) as session:
            summary = period_summary(session, year, month)
            breakdown = category_breakdown(session, year, month)
    except ValueError as e:
        return _err(str(e))
    except Exception as e:
        return _err(f"failed to compute summary: {e}")

    label = f"{year}-{month:02d}" if month is not None else str(year)
    print(f"Period {label}: {summary.count} transaction(s)")
    print(f"  Income:   {summary.income:.2f}")
    print(f"  Expenses: {summary.expenses:.2f}")
    print(f"  Balance:  {summary.balance:.2f}")
    if breakdown:
        table = Table(title="By category")
        for col in ("Category", "Kind", "Total"):
            table.add_column(col)
        for row in breakdown:
            table.add_row(row.name or "Uncategorized", row.kind, f"{row.total:.2f}")
        _console.print(table)
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Personal finance ledger with monthly recurring transactions. "
        "Loads DATABASE_URL from a local .env before running."
    ),
)

# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults).
DATABASE_URL_OPTION = typer.Option(None, help="Override DATABASE_URL (falls back to env var).")
DATE_FORMATS = ["%Y-%m-%d"]


@app.command("init-db")
def init_db_cmd(database_url: str | None = DATABASE_URL_OPTION) -> None:
    """Create the ledger tables if they do not exist."""
    raise typer.Exit(cmd_init_db(database_url=database_url))


@app.command("process-recurring")
def process_recurring_cmd(database_url: str | None = DATABASE_URL_OPTION) -> None:
    """Generate any missing monthly transactions from recurring rules."""
    raise typer.Exit(cmd_process_recurring(database_url=database_url))


@app.command("add-recurring")
def add_recurring_cmd(
    kind: str = typer.Option(..., help="income or expense"),
    amount: str = typer.Option(..., help="Positive amount, e.g. 12.99"),
    description: str = typer.Option(..., help="Required; used to tag generated entries."),
    start_date: datetime = typer.Option(
        ..., formats=DATE_FORMATS, help="First month (day is ignored)."
    ),
    end_date: datetime | None = typer.Option(
        None, formats=DATE_FORMATS, help="Last date; its month is included."
    ),
    category_id: int | None = typer.Option(None, help="Optional category id."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Create a monthly recurring rule and materialize its elapsed months."""
    raise typer.Exit(
        cmd_add_recurring(
            kind=kind,
            amount=amount,
            description=description,
            start_date=start_date.date(),
            end_date=end_date.date() if end_date else None,
            category_id=category_id,
            database_url=database_url,
        )
    )


@app.command("list-recurring")
def list_recurring_cmd(database_url: str | None = DATABASE_URL_OPTION) -> None:
    raise typer.Exit(cmd_list_recurring(database_url=database_url))


@app.command("delete-recurring")
def delete_recurring_cmd(
    rule_id: int = typer.Argument(..., help="Rule id (see list-recurring)."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    raise typer.Exit(cmd_delete_recurring(rule_id, database_url=database_url))


@app.command("add-transaction")
def add_transaction_cmd(
    kind: str = typer.Option(..., help="income or expense"),
    amount: str = typer.Option(..., help="Positive amount, e.g. 42.50"),
    description: str | None = typer.Option(None),
    category_id: int | None = typer.Option(None),
    date_: datetime | None = typer.Option(
        None, "--date", formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"], help="Defaults to now."
    ),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    raise typer.Exit(
        cmd_add_transaction(
            kind=kind,
            amount=amount,
            description=description,
            category_id=category_id,
            created_at=date_,
            database_url=database_url,
        )
    )


@app.command("list-transactions")
def list_transactions_cmd(
    year: int | None = typer.Option(None),
    month: int | None = typer.Option(None, min=1, max=12),
    limit: int | None = typer.Option(None, min=1),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    raise typer.Exit(
        cmd_list_transactions(year=year, month=month, limit=limit, database_url=database_url)
    )


@app.command("delete-transaction")
def delete_transaction_cmd(
    tx_id: int = typer.Argument(..., help="Transaction id (see list-transactions)."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    raise typer.Exit(cmd_delete_transaction(tx_id, database_url=database_url))


@app.command("add-category")
def add_category_cmd(
    name: str = typer.Argument(...),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    raise typer.Exit(cmd_add_category(name, database_url=database_url))


@app.command("list-categories")
def list_categories_cmd(database_url: str | None = DATABASE_URL_OPTION) -> None:
    raise typer.Exit(cmd_list_categories(database_url=database_url))


@app.command("rename-category")
def rename_category_cmd(
    category_id: int = typer.Argument(...),
    name: str = typer.Argument(...),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    raise typer.Exit(cmd_rename_category(category_id, name, database_url=database_url))


@app.command("delete-category")
def delete_category_cmd(
    category_id: int = typer.Argument(...),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Delete a category; its transactions become uncategorized."""
    raise typer.Exit(cmd_delete_category(category_id, database_url=database_url))


@app.command("summary")
def summary_cmd(
    year: int = typer.Option(..., help="Calendar year."),
    month: int | None = typer.Option(None, min=1, max=12, help="Restrict to one month."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Show income, expenses and balance for a month or a year."""
    raise typer.Exit(cmd_summary(year, month, database_url=database_url))


@app.callback()
def _root(
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="DEBUG, INFO, WARNING, ... (falls back to FINANCE_TRACKER_LOG_LEVEL, then INFO).",
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging for this run.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    try:
        configure_logging(log_level)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--log-level") from e


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m finance_tracker.cli`
    main()
