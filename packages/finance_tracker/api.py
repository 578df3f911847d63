"""Application entry points for recurring materialization.

The host application calls :func:`process_recurring` once at startup and
:func:`add_recurring_rule` when the user saves a recurring transaction (which
materializes immediately). Both open their own session through
``db.client.session_scope`` and share one process-wide lock so overlapping
triggers run one pass after the other.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from db.client import session_scope

from .errors import StoreError
from .logging_setup import get_logger
from .materializer import RecurrenceMaterializer
from .models import MaterializationReport, RecurrenceRule
from .persistence import SqlTransactionStore, SqlWatermarkStore
from .rules import create_recurrence_rule

_logger = get_logger("finance_tracker.api")

# Shared by every materializer built here; see RecurrenceMaterializer.
_RUN_LOCK = threading.Lock()


def build_materializer(
    session: Session,
    *,
    clock: Callable[[], datetime] | None = None,
) -> RecurrenceMaterializer:
    return RecurrenceMaterializer(
        SqlTransactionStore(session),
        SqlWatermarkStore(session),
        clock=clock or datetime.now,
        lock=_RUN_LOCK,
    )


def process_recurring(
    *,
    database_url: str | None = None,
    clock: Callable[[], datetime] | None = None,
) -> MaterializationReport | None:
    """Run one materialization pass; never raises on store failures.

    Returns the pass report, or ``None`` when the pass could not run at all
    (e.g., the rule list could not be read). Failures are logged and the
    application keeps working with the transactions already present.
    """

    try:
        with session_scope(database_url=database_url) as session:
            return build_materializer(session, clock=clock).run()
    except StoreError as e:
        _logger.error("recurring:aborted error=%s", e)
        return None


def add_recurring_rule(
    *,
    kind: str,
    amount: Decimal | float | str,
    description: str,
    start_date: date,
    end_date: date | None = None,
    category_id: int | None = None,
    database_url: str | None = None,
    clock: Callable[[], datetime] | None = None,
) -> tuple[RecurrenceRule, MaterializationReport | None]:
    """Create a rule, then materialize so its elapsed months appear at once.

    Raises ``InvalidRuleError`` for malformed input; nothing is stored then.
    """

    with session_scope(database_url=database_url) as session:
        rule = create_recurrence_rule(
            session,
            kind=kind,
            amount=amount,
            description=description,
            start_date=start_date,
            end_date=end_date,
            category_id=category_id,
        )
    _logger.info("recurring:rule_created rule_id=%d start=%s", rule.id, rule.start_date)
    return rule, process_recurring(database_url=database_url, clock=clock)


def last_run(*, database_url: str | None = None) -> datetime:
    with session_scope(database_url=database_url) as session:
        return SqlWatermarkStore(session).get_last_run()


__all__ = [
    "build_materializer",
    "process_recurring",
    "add_recurring_rule",
    "last_run",
]
