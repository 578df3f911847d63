"""Public interface for the ``finance_tracker`` package.

This module exposes the package's entry points and public models/types as the
stable import surface. There is no runtime logic here, only re-exports.
Database-backed entry points live in ``finance_tracker.api`` and require the
workspace ``db`` package.
"""

from .errors import (
    FinanceTrackerError,
    InvalidRuleError,
    StoreError,
    StoreReadError,
    StoreWriteError,
)
from .materializer import RecurrenceMaterializer
from .models import (
    LedgerEntry,
    MaterializationReport,
    NewRecurrenceRule,
    RecurrenceRule,
    RuleFailure,
    TransactionKind,
)
from .months import YearMonth, iter_rule_months, occurrence_datetime, tagged_description
from .stores import EPOCH, TransactionStore, WatermarkStore

__all__ = [
    # Core
    "RecurrenceMaterializer",
    "iter_rule_months",
    "occurrence_datetime",
    "tagged_description",
    "YearMonth",
    # Collaborators
    "TransactionStore",
    "WatermarkStore",
    "EPOCH",
    # Models / types
    "RecurrenceRule",
    "NewRecurrenceRule",
    "LedgerEntry",
    "MaterializationReport",
    "RuleFailure",
    "TransactionKind",
    # Errors
    "FinanceTrackerError",
    "StoreError",
    "StoreReadError",
    "StoreWriteError",
    "InvalidRuleError",
]
