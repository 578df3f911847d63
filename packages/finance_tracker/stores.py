"""Collaborator contracts consumed by the recurrence materializer.

Two narrow protocols decouple materialization from persistence. The SQLAlchemy
implementations live in ``finance_tracker.persistence``; tests use the
in-memory fakes in ``tests/helpers/stores.py``.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Protocol

from .models import LedgerEntry, RecurrenceRule, TransactionKind

# Value returned by ``WatermarkStore.get_last_run`` before the first run.
EPOCH = datetime(1970, 1, 1)


class TransactionStore(Protocol):
    def list_recurrence_rules(self) -> list[RecurrenceRule]:
        """Return all rules. Raises ``StoreReadError`` on failure."""
        ...

    def find_transaction(self, description: str, year_month: str) -> bool:
        """Return True when a transaction with exactly ``description`` exists
        with a creation timestamp inside ``year_month`` (``"YYYY-MM"``).

        Raises ``StoreReadError`` on failure.
        """
        ...

    def insert_transaction(
        self,
        *,
        kind: TransactionKind,
        amount: Decimal,
        category_id: int | None,
        description: str,
        created_at: datetime,
    ) -> LedgerEntry:
        """Persist a transaction. Raises ``StoreWriteError`` on failure."""
        ...


class WatermarkStore(Protocol):
    def get_last_run(self) -> datetime:
        """Return the last materialization run, or :data:`EPOCH` if never set."""
        ...

    def set_last_run(self, ts: datetime) -> None: ...


__all__ = ["EPOCH", "TransactionStore", "WatermarkStore"]
