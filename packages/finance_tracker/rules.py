"""Recurrence rule creation with validation at creation time.

Materialization trusts stored rules, so every check on rule shape happens
here, before anything is written:

- ``kind`` is ``income`` or ``expense``;
- ``amount`` is positive (rounded to cents);
- ``description`` is non-empty after trimming;
- ``end_date`` (when given) is not before the start month.

Failures raise ``InvalidRuleError`` carrying the pydantic messages.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import ValidationError
from sqlalchemy.orm import Session

from .errors import InvalidRuleError
from .models import NewRecurrenceRule, RecurrenceRule
from .persistence import insert_recurring_rule


def _format_errors(err: ValidationError) -> str:
    parts = []
    for e in err.errors():
        loc = ".".join(str(p) for p in e.get("loc", ())) or "rule"
        msg = str(e.get("msg", "invalid")).removeprefix("Value error, ")
        parts.append(f"{loc}: {msg}")
    return "; ".join(parts)


def validate_rule(
    *,
    kind: str,
    amount: Decimal | float | str,
    description: str,
    start_date: date,
    end_date: date | None = None,
    category_id: int | None = None,
) -> NewRecurrenceRule:
    try:
        return NewRecurrenceRule(
            kind=kind,
            amount=amount,
            category_id=category_id,
            description=description,
            start_date=start_date,
            end_date=end_date,
        )
    except ValidationError as e:
        raise InvalidRuleError(_format_errors(e)) from e


def create_recurrence_rule(
    session: Session,
    *,
    kind: str,
    amount: Decimal | float | str,
    description: str,
    start_date: date,
    end_date: date | None = None,
    category_id: int | None = None,
) -> RecurrenceRule:
    """Validate and persist a new rule; the caller commits and materializes."""

    rule = validate_rule(
        kind=kind,
        amount=amount,
        description=description,
        start_date=start_date,
        end_date=end_date,
        category_id=category_id,
    )
    return insert_recurring_rule(session, rule)


__all__ = ["validate_rule", "create_recurrence_rule"]
