"""DB helpers for tests: bootstrap a temporary SQLite ledger and seed rows."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

from sqlalchemy import select

from db.client import init_db, session_scope
from db.models.finance import Category, RecurringRule, Transaction


def bootstrap_sqlite_db(db_file: Path) -> str:
    """Create a SQLite database file, initialize schema, and return the URL.

    Using a file-backed SQLite DB ensures multiple SQLAlchemy connections share
    the same state (in-memory DBs are per-connection by default).
    """

    url = f"sqlite+pysqlite:///{db_file}"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    init_db(database_url=url)
    return url


def seed_rule(
    database_url: str,
    *,
    description: str,
    amount: str = "10.00",
    kind: str = "expense",
    start_date: date,
    end_date: date | None = None,
    category_id: int | None = None,
) -> int:
    """Insert a rule row directly (bypassing validation) and return its id."""

    with session_scope(database_url=database_url) as session:
        row = RecurringRule(
            kind=kind,
            amount=Decimal(amount),
            category_id=category_id,
            description=description,
            start_date=start_date,
            end_date=end_date,
        )
        session.add(row)
        session.flush()
        return row.id


def seed_category(database_url: str, name: str) -> int:
    with session_scope(database_url=database_url) as session:
        row = Category(name=name)
        session.add(row)
        session.flush()
        return row.id


def fetch_transactions(database_url: str) -> list[tuple[str | None, datetime, Decimal]]:
    """Return ``(description, created_at, amount)`` rows ordered by date then id."""

    with session_scope(database_url=database_url) as session:
        rows = session.execute(
            select(Transaction.description, Transaction.created_at, Transaction.amount).order_by(
                Transaction.created_at, Transaction.id
            )
        ).all()
        return [(d, c, Decimal(str(a)).quantize(Decimal("0.01"))) for d, c, a in rows]
