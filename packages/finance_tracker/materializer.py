"""Recurrence materializer: turn recurrence rules into monthly transactions.

Every pass rescans each rule from its start month through the current month
and inserts the transactions that are missing. The duplicate check (tagged
description within the month) is what makes repeated passes safe: nothing
else records which months were already materialized. A rule created with a
start date in the past therefore backfills immediately, and a long gap between
runs cannot skip months.

The watermark is read at the start of a pass and advanced at the end, after
every rule was attempted. It is reported but does not bound the scan.

Failure policy
--------------
- Reading the rule list fails: the pass aborts (``StoreError`` propagates) and
  the watermark is left untouched.
- A lookup or insert for one rule fails: that rule stops at the failing month,
  the failure is logged and recorded in the report, and the next rule is
  attempted.
- Writing the watermark fails: the created transactions stay, the error is
  recorded in ``MaterializationReport.watermark_error`` and the report is still
  returned. The next pass reads the older watermark and rescans as usual.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime

from .errors import StoreError
from .logging_setup import get_logger
from .models import MaterializationReport, RecurrenceRule, RuleFailure
from .months import YearMonth, iter_rule_months, occurrence_datetime
from .stores import TransactionStore, WatermarkStore

_logger = get_logger("finance_tracker.materializer")


class RecurrenceMaterializer:
    """Generate the missing monthly transactions for all recurrence rules.

    Parameters
    ----------
    transactions:
        Store providing rules, the duplicate lookup and inserts.
    watermark:
        Store holding the last-run timestamp.
    clock:
        Returns "now" as a naive local datetime. Defaults to ``datetime.now``.
    lock:
        Serializes ``run()`` calls. Pass a shared lock when several
        materializers may run against the same store, otherwise two passes
        could both miss the same month in the check and double-insert it.
    """

    def __init__(
        self,
        transactions: TransactionStore,
        watermark: WatermarkStore,
        *,
        clock: Callable[[], datetime] = datetime.now,
        lock: threading.Lock | None = None,
    ) -> None:
        self._transactions = transactions
        self._watermark = watermark
        self._clock = clock
        self._lock = lock if lock is not None else threading.Lock()

    def run(self) -> MaterializationReport:
        with self._lock:
            return self._run_locked()

    def _run_locked(self) -> MaterializationReport:
        now = self._clock()
        previous = self._watermark.get_last_run()
        rules = self._transactions.list_recurrence_rules()

        _logger.info(
            "recurring:start rules=%d last_run=%s now=%s",
            len(rules),
            previous.isoformat(),
            now.isoformat(),
        )

        report = MaterializationReport(started_at=now, previous_run=previous)
        for rule in rules:
            self._materialize_rule(rule, now, report)
            report.rules_processed += 1

        try:
            self._watermark.set_last_run(now)
        except StoreError as e:
            _logger.error("recurring:watermark_failed now=%s error=%s", now.isoformat(), e)
            report.watermark_error = str(e)

        if not report.ok:
            _logger.warning(
                "recurring:done_partial created=%d skipped=%d failed_rules=%d watermark=%s",
                len(report.created),
                report.skipped,
                len(report.failures),
                "failed" if report.watermark_error else "ok",
            )
        else:
            _logger.info(
                "recurring:done created=%d skipped=%d",
                len(report.created),
                report.skipped,
            )
        return report

    def _materialize_rule(
        self,
        rule: RecurrenceRule,
        now: datetime,
        report: MaterializationReport,
    ) -> None:
        description = rule.tagged_description
        ym: YearMonth | None = None
        try:
            for ym in iter_rule_months(rule.start_date, rule.end_date, now):
                if self._transactions.find_transaction(description, ym.prefix):
                    _logger.debug(
                        "recurring:exists rule_id=%d month=%s", rule.id, ym.prefix
                    )
                    report.skipped += 1
                    continue
                entry = self._transactions.insert_transaction(
                    kind=rule.kind,
                    amount=rule.amount,
                    category_id=rule.category_id,
                    description=description,
                    created_at=occurrence_datetime(ym),
                )
                _logger.info(
                    "recurring:created rule_id=%d month=%s tx_id=%d",
                    rule.id,
                    ym.prefix,
                    entry.id,
                )
                report.created.append(entry)
        except StoreError as e:
            month = ym.prefix if ym is not None else None
            _logger.error(
                "recurring:rule_failed rule_id=%d month=%s error=%s",
                rule.id,
                month,
                e,
            )
            report.failures.append(
                RuleFailure(
                    rule_id=rule.id,
                    description=rule.description,
                    year_month=month,
                    error=str(e),
                )
            )


__all__ = ["RecurrenceMaterializer"]
