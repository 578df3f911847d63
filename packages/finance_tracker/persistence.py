"""Persistence integration for finance_tracker.

Functions and stores here read and write the ledger tables owned by
``libs/db``. They rely on SQLAlchemy ORM models defined in
``db.models.finance`` and a session provided by ``db.client``.

Scope:
- ``SqlTransactionStore`` / ``SqlWatermarkStore``: the collaborators the
  recurrence materializer consumes (see ``finance_tracker.stores``).
- Ledger plumbing: create/list/delete transactions, categories and recurrence
  rules. Callers own the session and its transaction scope.

SQLAlchemy failures inside the stores are re-raised as ``StoreReadError`` or
``StoreWriteError`` with the original error chained.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import delete, exists, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models.finance import AppSetting, Category, RecurringRule, Transaction

from .errors import StoreReadError, StoreWriteError
from .logging_setup import get_logger
from .models import (
    TRANSACTION_KINDS,
    CategoryEntry,
    LedgerEntry,
    NewRecurrenceRule,
    RecurrenceRule,
    TransactionKind,
    to_amount,
)
from .months import YearMonth, period_bounds
from .stores import EPOCH

_logger = get_logger("finance_tracker.persistence")

LAST_RUN_KEY = "recurring.last_run"


# ---------------------------
# Row mapping
# ---------------------------


def _to_entry(row: Transaction) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,
        kind=row.kind,  # type: ignore[arg-type]
        amount=to_amount(row.amount),
        category_id=row.category_id,
        description=row.description,
        created_at=row.created_at,
    )


def _to_rule(row: RecurringRule) -> RecurrenceRule:
    return RecurrenceRule(
        id=row.id,
        kind=row.kind,  # type: ignore[arg-type]
        amount=to_amount(row.amount),
        category_id=row.category_id,
        description=row.description,
        start_date=row.start_date,
        end_date=row.end_date,
    )


# ---------------------------
# Materializer collaborators
# ---------------------------


class SqlTransactionStore:
    """``TransactionStore`` over a SQLAlchemy session.

    With ``commit_each`` (the default) every inserted transaction is committed
    immediately, so a failure later in the pass only rolls back the failing
    insert and leaves earlier occurrences in place.

    Every failed statement rolls the session back before the error is raised,
    so one rule's failure does not poison the lookups of the rules after it.
    """

    def __init__(self, session: Session, *, commit_each: bool = True) -> None:
        self._session = session
        self._commit_each = commit_each

    def list_recurrence_rules(self) -> list[RecurrenceRule]:
        try:
            rows = self._session.execute(select(RecurringRule).order_by(RecurringRule.id))
            return [_to_rule(r) for r in rows.scalars().all()]
        except SQLAlchemyError as e:
            self._session.rollback()
            raise StoreReadError(f"failed to list recurrence rules: {e}") from e

    def find_transaction(self, description: str, year_month: str) -> bool:
        start, end = YearMonth.parse(year_month).bounds()
        stmt = select(
            exists().where(
                Transaction.description == description,
                Transaction.created_at >= start,
                Transaction.created_at < end,
            )
        )
        try:
            return bool(self._session.execute(stmt).scalar())
        except SQLAlchemyError as e:
            self._session.rollback()
            raise StoreReadError(
                f"failed to look up {description!r} in {year_month}: {e}"
            ) from e

    def insert_transaction(
        self,
        *,
        kind: TransactionKind,
        amount: Decimal,
        category_id: int | None,
        description: str,
        created_at: datetime,
    ) -> LedgerEntry:
        row = Transaction(
            kind=kind,
            amount=to_amount(amount),
            category_id=category_id,
            description=description,
            created_at=created_at,
        )
        try:
            self._session.add(row)
            self._session.flush()
            if self._commit_each:
                self._session.commit()
        except SQLAlchemyError as e:
            self._session.rollback()
            raise StoreWriteError(
                f"failed to insert {description!r} at {created_at.isoformat()}: {e}"
            ) from e
        return _to_entry(row)


class SqlWatermarkStore:
    """``WatermarkStore`` persisted as an ISO timestamp in ``app_settings``."""

    def __init__(self, session: Session, *, key: str = LAST_RUN_KEY) -> None:
        self._session = session
        self._key = key

    def get_last_run(self) -> datetime:
        try:
            row = self._session.get(AppSetting, self._key)
        except SQLAlchemyError as e:
            self._session.rollback()
            raise StoreReadError(f"failed to read watermark {self._key!r}: {e}") from e
        if row is None:
            return EPOCH
        try:
            return datetime.fromisoformat(row.value)
        except ValueError:
            _logger.warning(
                "watermark:unparseable key=%s value=%r; treating as never run",
                self._key,
                row.value,
            )
            return EPOCH

    def set_last_run(self, ts: datetime) -> None:
        try:
            self._session.merge(AppSetting(key=self._key, value=ts.isoformat()))
            self._session.flush()
        except SQLAlchemyError as e:
            self._session.rollback()
            raise StoreWriteError(f"failed to write watermark {self._key!r}: {e}") from e


# ---------------------------
# Transactions
# ---------------------------


def add_transaction(
    session: Session,
    *,
    kind: str,
    amount: Decimal | float | str,
    category_id: int | None = None,
    description: str | None = None,
    created_at: datetime | None = None,
) -> LedgerEntry:
    """Insert a user-entered transaction (``created_at`` defaults to now)."""

    if kind not in TRANSACTION_KINDS:
        raise ValueError(f"kind must be one of {TRANSACTION_KINDS}, got {kind!r}")
    amt = to_amount(amount)
    if amt <= 0:
        raise ValueError("amount must be positive")
    desc = description.strip() if description and description.strip() else None
    row = Transaction(
        kind=kind,
        amount=amt,
        category_id=category_id,
        description=desc,
        created_at=created_at or datetime.now(),
    )
    session.add(row)
    session.flush()
    return _to_entry(row)


def list_transactions(
    session: Session,
    *,
    year: int | None = None,
    month: int | None = None,
    limit: int | None = None,
) -> list[LedgerEntry]:
    """Return transactions newest first, optionally limited to a period."""

    stmt = select(Transaction).order_by(Transaction.created_at.desc(), Transaction.id.desc())
    if year is not None:
        start, end = period_bounds(year, month)
        stmt = stmt.where(Transaction.created_at >= start, Transaction.created_at < end)
    elif month is not None:
        raise ValueError("month filter requires a year")
    if limit is not None:
        stmt = stmt.limit(limit)
    return [_to_entry(r) for r in session.execute(stmt).scalars().all()]


def delete_transaction(session: Session, tx_id: int) -> bool:
    result = session.execute(delete(Transaction).where(Transaction.id == tx_id))
    return bool(result.rowcount)


# ---------------------------
# Categories
# ---------------------------


def add_category(session: Session, name: str) -> CategoryEntry:
    n = " ".join(name.strip().split())
    if not n:
        raise ValueError("Category name cannot be empty")
    row = Category(name=n)
    session.add(row)
    session.flush()
    return CategoryEntry(id=row.id, name=row.name)


def list_categories(session: Session) -> list[CategoryEntry]:
    rows = session.execute(select(Category).order_by(Category.name)).scalars().all()
    return [CategoryEntry(id=r.id, name=r.name) for r in rows]


def rename_category(session: Session, category_id: int, name: str) -> CategoryEntry | None:
    """Rename a category; returns ``None`` when no category has ``category_id``."""

    n = " ".join(name.strip().split())
    if not n:
        raise ValueError("Category name cannot be empty")
    row = session.get(Category, category_id)
    if row is None:
        return None
    row.name = n
    session.flush()
    return CategoryEntry(id=row.id, name=row.name)


def delete_category(session: Session, category_id: int) -> bool:
    """Delete a category; transactions and rules referencing it become unassigned."""

    # Explicit unassign so backends without FK enforcement behave the same.
    session.execute(
        update(Transaction).where(Transaction.category_id == category_id).values(category_id=None)
    )
    session.execute(
        update(RecurringRule)
        .where(RecurringRule.category_id == category_id)
        .values(category_id=None)
    )
    result = session.execute(delete(Category).where(Category.id == category_id))
    return bool(result.rowcount)


# ---------------------------
# Recurrence rules
# ---------------------------


def insert_recurring_rule(session: Session, rule: NewRecurrenceRule) -> RecurrenceRule:
    """Persist an already-validated rule and return it with its assigned id."""

    row = RecurringRule(
        kind=rule.kind,
        amount=rule.amount,
        category_id=rule.category_id,
        description=rule.description,
        start_date=rule.start_date,
        end_date=rule.end_date,
    )
    session.add(row)
    session.flush()
    return _to_rule(row)


def list_recurring_rules(session: Session) -> list[RecurrenceRule]:
    rows = session.execute(select(RecurringRule).order_by(RecurringRule.id)).scalars().all()
    return [_to_rule(r) for r in rows]


def delete_recurring_rule(session: Session, rule_id: int) -> bool:
    """Delete a rule. Transactions it already generated are kept."""

    result = session.execute(delete(RecurringRule).where(RecurringRule.id == rule_id))
    return bool(result.rowcount)


__all__ = [
    "LAST_RUN_KEY",
    "SqlTransactionStore",
    "SqlWatermarkStore",
    "add_transaction",
    "list_transactions",
    "delete_transaction",
    "add_category",
    "list_categories",
    "rename_category",
    "delete_category",
    "insert_recurring_rule",
    "list_recurring_rules",
    "delete_recurring_rule",
]
