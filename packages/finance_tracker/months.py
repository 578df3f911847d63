"""Calendar-month arithmetic for recurring materialization.

Everything here is pure: no store access, no clock. The materializer feeds
``iter_rule_months`` with a rule's bounds and the current time and acts on the
months it yields, which keeps enumeration testable on its own.

Month semantics
---------------
A rule is active in month ``M`` when ``M`` is not before the month of its
start date, not after the month of its end date (inclusive), and not after the
month of ``now``. Day-of-month never matters: a rule starting on the 15th is
due on the 1st of that same month.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date, datetime

RECURRING_TAG = " (Recurring)"

# Occurrences are dated at noon so a local/UTC shift cannot move them across
# the month boundary.
OCCURRENCE_HOUR = 12


@dataclass(frozen=True, slots=True, order=True)
class YearMonth:
    """A calendar month, ordered chronologically."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be within 1..12, got {self.month}")

    @classmethod
    def from_date(cls, d: date) -> YearMonth:
        # datetime is a date subclass, so this accepts both.
        return cls(d.year, d.month)

    @classmethod
    def parse(cls, prefix: str) -> YearMonth:
        """Parse a ``"YYYY-MM"`` prefix."""

        try:
            y, m = prefix.strip().split("-")
            return cls(int(y), int(m))
        except ValueError as e:
            raise ValueError(f"expected a YYYY-MM month prefix, got {prefix!r}") from e

    @property
    def prefix(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def next(self) -> YearMonth:
        if self.month == 12:
            return YearMonth(self.year + 1, 1)
        return YearMonth(self.year, self.month + 1)

    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    def bounds(self) -> tuple[datetime, datetime]:
        """Return ``[start, end)`` datetimes covering the whole month."""

        nxt = self.next()
        return datetime(self.year, self.month, 1), datetime(nxt.year, nxt.month, 1)

    def __str__(self) -> str:
        return self.prefix


def month_start(d: date) -> date:
    """Normalize ``d`` to the first day of its month."""

    return date(d.year, d.month, 1)


def occurrence_datetime(ym: YearMonth) -> datetime:
    """Timestamp for the generated transaction of month ``ym`` (1st, noon)."""

    return datetime(ym.year, ym.month, 1, OCCURRENCE_HOUR)


def tagged_description(description: str) -> str:
    return f"{description}{RECURRING_TAG}"


def period_bounds(year: int, month: int | None = None) -> tuple[datetime, datetime]:
    """Return ``[start, end)`` for a whole year, or one month of it."""

    if month is None:
        return datetime(year, 1, 1), datetime(year + 1, 1, 1)
    return YearMonth(year, month).bounds()


def iter_rule_months(
    start_date: date,
    end_date: date | None,
    now: datetime,
) -> Iterator[YearMonth]:
    """Lazily yield every month in which a rule is due, oldest first.

    Yields nothing when ``start_date`` lies in a month after ``now`` or after
    ``end_date``.
    """

    cursor = YearMonth.from_date(start_date)
    stop = YearMonth.from_date(now)
    if end_date is not None:
        stop = min(stop, YearMonth.from_date(end_date))
    while cursor <= stop:
        yield cursor
        cursor = cursor.next()


__all__ = [
    "RECURRING_TAG",
    "OCCURRENCE_HOUR",
    "YearMonth",
    "iter_rule_months",
    "month_start",
    "occurrence_datetime",
    "period_bounds",
    "tagged_description",
]
