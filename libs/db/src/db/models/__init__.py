"""Shared SQLAlchemy models registry for the ledger database.

Currently includes the finance models used by ``finance_tracker``.
"""

from .finance import AppSetting, Base, Category, RecurringRule, Transaction

__all__ = [
    "Base",
    "AppSetting",
    "Category",
    "RecurringRule",
    "Transaction",
]
