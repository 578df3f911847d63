"""Error taxonomy for ``finance_tracker``.

- ``StoreReadError`` / ``StoreWriteError``: persistence layer failures. SQL
  stores raise these with the underlying SQLAlchemy error chained as
  ``__cause__``.
- ``InvalidRuleError``: malformed recurrence rule input, raised at creation
  time only. Materialization never validates rules.
"""

from __future__ import annotations


class FinanceTrackerError(Exception):
    """Base class for errors raised by this package."""


class StoreError(FinanceTrackerError):
    """A Transaction Store or Watermark Store operation failed."""


class StoreReadError(StoreError):
    pass


class StoreWriteError(StoreError):
    pass


class InvalidRuleError(FinanceTrackerError, ValueError):
    """Recurrence rule input failed validation (e.g., end before start)."""


__all__ = [
    "FinanceTrackerError",
    "StoreError",
    "StoreReadError",
    "StoreWriteError",
    "InvalidRuleError",
]
