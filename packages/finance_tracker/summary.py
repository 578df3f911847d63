"""Period aggregates over the ledger (month or whole year).

Balances are signed: income counts positive, expenses negative.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from db.models.finance import Category, Transaction

from .models import to_amount
from .months import period_bounds

_ZERO = Decimal("0.00")


@dataclass(frozen=True, slots=True)
class PeriodSummary:
    year: int
    month: int | None
    income: Decimal
    expenses: Decimal
    count: int

    @property
    def balance(self) -> Decimal:
        return self.income - self.expenses


@dataclass(frozen=True, slots=True)
class CategoryTotal:
    category_id: int | None
    name: str | None
    kind: str
    total: Decimal


def _in_period(year: int, month: int | None):
    start, end = period_bounds(year, month)
    return (Transaction.created_at >= start, Transaction.created_at < end)


def _signed_amount():
    return case((Transaction.kind == "income", Transaction.amount), else_=-Transaction.amount)


def period_total(session: Session, year: int, month: int | None = None) -> Decimal:
    """Income minus expenses for the period."""

    total = session.execute(
        select(func.coalesce(func.sum(_signed_amount()), 0)).where(*_in_period(year, month))
    ).scalar_one()
    return to_amount(total)


def transaction_count(session: Session, year: int, month: int | None = None) -> int:
    return int(
        session.execute(
            select(func.count(Transaction.id)).where(*_in_period(year, month))
        ).scalar_one()
    )


def period_summary(session: Session, year: int, month: int | None = None) -> PeriodSummary:
    income_expr = func.coalesce(
        func.sum(case((Transaction.kind == "income", Transaction.amount), else_=0)), 0
    )
    expense_expr = func.coalesce(
        func.sum(case((Transaction.kind == "expense", Transaction.amount), else_=0)), 0
    )
    income, expenses, count = session.execute(
        select(income_expr, expense_expr, func.count(Transaction.id)).where(
            *_in_period(year, month)
        )
    ).one()
    return PeriodSummary(
        year=year,
        month=month,
        income=to_amount(income),
        expenses=to_amount(expenses),
        count=int(count),
    )


def category_breakdown(
    session: Session, year: int, month: int | None = None
) -> list[CategoryTotal]:
    """Totals per (category, kind), largest absolute total first.

    Uncategorized transactions are grouped under ``category_id=None``.
    """

    total = func.sum(Transaction.amount)
    stmt = (
        select(Transaction.category_id, Category.name, Transaction.kind, total)
        .outerjoin(Category, Category.id == Transaction.category_id)
        .where(*_in_period(year, month))
        .group_by(Transaction.category_id, Category.name, Transaction.kind)
    )
    rows = [
        CategoryTotal(category_id=cid, name=name, kind=kind, total=to_amount(t or _ZERO))
        for cid, name, kind, t in session.execute(stmt).all()
    ]
    rows.sort(key=lambda r: (-abs(r.total), r.name or "", r.kind))
    return rows


__all__ = [
    "PeriodSummary",
    "CategoryTotal",
    "period_total",
    "transaction_count",
    "period_summary",
    "category_breakdown",
]
