"""Domain models for ``finance_tracker``.

Dataclasses here are plain, store-agnostic views. ORM rows live in
``db.models.finance`` and are mapped into these by ``finance_tracker.persistence``
so the materializer never touches SQLAlchemy objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from .months import month_start, tagged_description

TransactionKind = Literal["income", "expense"]
TRANSACTION_KINDS: tuple[str, ...] = ("income", "expense")

_CENTS = Decimal("0.01")


def to_amount(raw: Decimal | float | int | str) -> Decimal:
    """Quantize a monetary amount to two decimal places."""

    return Decimal(str(raw)).quantize(_CENTS, rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# Store-facing records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RecurrenceRule:
    """Immutable definition of a monthly recurring income or expense.

    ``start_date`` and ``end_date`` are calendar dates; only their (year,
    month) component is used by materialization.
    """

    id: int
    kind: TransactionKind
    amount: Decimal
    category_id: int | None
    description: str
    start_date: date
    end_date: date | None = None

    @property
    def tagged_description(self) -> str:
        """Description carried by generated transactions (duplicate-check key)."""
        return tagged_description(self.description)


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """A concrete ledger transaction, user-entered or materialized."""

    id: int
    kind: TransactionKind
    amount: Decimal
    category_id: int | None
    description: str | None
    created_at: datetime


@dataclass(frozen=True, slots=True)
class CategoryEntry:
    id: int
    name: str


# ---------------------------------------------------------------------------
# Materialization results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RuleFailure:
    """A rule whose materialization stopped early.

    ``year_month`` is the month being processed when the failure occurred.
    """

    rule_id: int
    description: str
    year_month: str | None
    error: str


@dataclass(slots=True)
class MaterializationReport:
    """Non-fatal summary of one materialization pass."""

    started_at: datetime
    previous_run: datetime
    rules_processed: int = 0
    created: list[LedgerEntry] = field(default_factory=list)
    skipped: int = 0
    failures: list[RuleFailure] = field(default_factory=list)
    # Set when the closing watermark write failed; the inserts above still stand.
    watermark_error: str | None = None

    @property
    def ok(self) -> bool:
        return not self.failures and self.watermark_error is None


# ---------------------------------------------------------------------------
# Rule creation input
# ---------------------------------------------------------------------------


class NewRecurrenceRule(BaseModel):
    """Validated input for creating a recurrence rule.

    ``start_date`` is normalized to the first of its month; ``end_date`` is
    kept as given and must not fall before the normalized start.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, str_strip_whitespace=True)

    kind: TransactionKind
    amount: Decimal
    category_id: int | None = None
    description: str
    start_date: date
    end_date: date | None = None

    @field_validator("amount")
    @classmethod
    def _amount_positive(cls, v: Decimal) -> Decimal:
        if not v.is_finite() or v <= 0:
            raise ValueError("amount must be a positive number")
        q = to_amount(v)
        if q <= 0:
            raise ValueError("amount must be at least 0.01")
        return q

    @field_validator("description")
    @classmethod
    def _description_non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("description is required for recurring transactions")
        return v

    @field_validator("start_date")
    @classmethod
    def _normalize_start(cls, v: date) -> date:
        return month_start(v)

    @model_validator(mode="after")
    def _end_not_before_start(self) -> NewRecurrenceRule:
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError(
                f"end_date {self.end_date.isoformat()} is before start month "
                f"{self.start_date.isoformat()}"
            )
        return self


__all__ = [
    "TransactionKind",
    "TRANSACTION_KINDS",
    "to_amount",
    "RecurrenceRule",
    "LedgerEntry",
    "CategoryEntry",
    "RuleFailure",
    "MaterializationReport",
    "NewRecurrenceRule",
]
