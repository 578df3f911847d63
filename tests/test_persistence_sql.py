from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from db.client import session_scope
from db.models.finance import AppSetting, RecurringRule, Transaction
from finance_tracker.errors import StoreReadError, StoreWriteError
from finance_tracker.materializer import RecurrenceMaterializer
from finance_tracker.models import CategoryEntry
from finance_tracker.persistence import (
    LAST_RUN_KEY,
    SqlTransactionStore,
    SqlWatermarkStore,
    add_category,
    add_transaction,
    delete_category,
    delete_recurring_rule,
    delete_transaction,
    list_categories,
    list_recurring_rules,
    list_transactions,
    rename_category,
)
from finance_tracker.stores import EPOCH
from tests.helpers.db import bootstrap_sqlite_db, seed_category, seed_rule


@pytest.fixture()
def db_url(tmp_path: Path) -> str:
    return bootstrap_sqlite_db(tmp_path / "ledger.db")


def test_find_transaction_matches_description_within_month_only(db_url: str):
    with session_scope(database_url=db_url) as session:
        add_transaction(
            session,
            kind="expense",
            amount="12.99",
            description="Gym (Recurring)",
            created_at=datetime(2025, 2, 28, 23, 59, 59),
        )

    with session_scope(database_url=db_url) as session:
        store = SqlTransactionStore(session)
        assert store.find_transaction("Gym (Recurring)", "2025-02") is True
        assert store.find_transaction("Gym (Recurring)", "2025-03") is False
        assert store.find_transaction("Gym (Recurring)", "2025-01") is False
        assert store.find_transaction("Gym", "2025-02") is False


def test_insert_transaction_commits_and_maps_entry(db_url: str):
    with session_scope(database_url=db_url) as session:
        entry = SqlTransactionStore(session).insert_transaction(
            kind="income",
            amount=Decimal("1500"),
            category_id=None,
            description="Salary (Recurring)",
            created_at=datetime(2025, 1, 1, 12, 0),
        )
    assert entry.id > 0
    assert entry.amount == Decimal("1500.00")

    with session_scope(database_url=db_url) as session:
        rows = session.execute(select(Transaction)).scalars().all()
        assert [(r.description, r.created_at) for r in rows] == [
            ("Salary (Recurring)", datetime(2025, 1, 1, 12, 0))
        ]


def test_insert_constraint_violation_raises_store_write_error(db_url: str):
    with session_scope(database_url=db_url) as session:
        store = SqlTransactionStore(session)
        kept = store.insert_transaction(
            kind="expense",
            amount=Decimal("5"),
            category_id=None,
            description="Coffee (Recurring)",
            created_at=datetime(2025, 1, 1, 12),
        )
        with pytest.raises(StoreWriteError):
            store.insert_transaction(
                kind="expense",
                amount=Decimal("5"),
                category_id=999,  # no such category
                description="Coffee (Recurring)",
                created_at=datetime(2025, 2, 1, 12),
            )
        # The earlier committed insert survives the rollback
        assert store.find_transaction("Coffee (Recurring)", "2025-01") is True
    assert kept.id > 0


def test_watermark_defaults_to_epoch_and_round_trips(db_url: str):
    with session_scope(database_url=db_url) as session:
        wm = SqlWatermarkStore(session)
        assert wm.get_last_run() == EPOCH
        wm.set_last_run(datetime(2025, 4, 10, 8, 15, 30))
        wm.set_last_run(datetime(2025, 4, 11, 9, 0))

    with session_scope(database_url=db_url) as session:
        assert SqlWatermarkStore(session).get_last_run() == datetime(2025, 4, 11, 9, 0)
        rows = session.execute(select(AppSetting)).scalars().all()
        assert [r.key for r in rows] == [LAST_RUN_KEY]


def test_unparseable_watermark_reads_as_epoch(db_url: str):
    with session_scope(database_url=db_url) as session:
        session.add(AppSetting(key=LAST_RUN_KEY, value="yesterday"))
    with session_scope(database_url=db_url) as session:
        assert SqlWatermarkStore(session).get_last_run() == EPOCH


def test_list_recurrence_rules_maps_rows(db_url: str):
    rid = seed_rule(
        db_url,
        description="Gym",
        amount="12.99",
        start_date=date(2025, 1, 1),
        end_date=date(2025, 12, 31),
    )
    with session_scope(database_url=db_url) as session:
        rules = SqlTransactionStore(session).list_recurrence_rules()
    assert len(rules) == 1
    r = rules[0]
    assert (r.id, r.description, r.amount, r.end_date) == (
        rid,
        "Gym",
        Decimal("12.99"),
        date(2025, 12, 31),
    )
    assert r.tagged_description == "Gym (Recurring)"


def test_transactions_crud_and_period_filter(db_url: str):
    with session_scope(database_url=db_url) as session:
        a = add_transaction(
            session, kind="expense", amount=20, description=" Lunch ",
            created_at=datetime(2025, 3, 5, 13),
        )
        add_transaction(
            session, kind="income", amount="100", created_at=datetime(2025, 4, 1, 9)
        )

    with session_scope(database_url=db_url) as session:
        march = list_transactions(session, year=2025, month=3)
        assert [t.id for t in march] == [a.id]
        assert march[0].description == "Lunch"
        everything = list_transactions(session)
        # Newest first
        assert [t.created_at.month for t in everything] == [4, 3]
        assert delete_transaction(session, a.id) is True
        assert delete_transaction(session, a.id) is False


@pytest.mark.parametrize(
    "kwargs",
    [
        {"kind": "gift", "amount": "1"},
        {"kind": "expense", "amount": "0"},
        {"kind": "expense", "amount": "-3"},
    ],
)
def test_add_transaction_rejects_invalid_input(db_url: str, kwargs: dict):
    with session_scope(database_url=db_url) as session:
        with pytest.raises(ValueError):
            add_transaction(session, **kwargs)


def test_month_filter_requires_year(db_url: str):
    with session_scope(database_url=db_url) as session:
        with pytest.raises(ValueError):
            list_transactions(session, month=3)


def test_deleting_category_unassigns_transactions_and_rules(db_url: str):
    cid = seed_category(db_url, "Health")
    seed_rule(db_url, description="Gym", start_date=date(2025, 1, 1), category_id=cid)
    with session_scope(database_url=db_url) as session:
        add_transaction(session, kind="expense", amount="30", category_id=cid)

    with session_scope(database_url=db_url) as session:
        assert delete_category(session, cid) is True

    with session_scope(database_url=db_url) as session:
        assert list_categories(session) == []
        assert [t.category_id for t in list_transactions(session)] == [None]
        assert [r.category_id for r in list_recurring_rules(session)] == [None]


def test_categories_listed_by_name(db_url: str):
    with session_scope(database_url=db_url) as session:
        add_category(session, "  Utilities ")
        add_category(session, "Food")
        with pytest.raises(ValueError):
            add_category(session, "   ")
    with session_scope(database_url=db_url) as session:
        assert [c.name for c in list_categories(session)] == ["Food", "Utilities"]


def test_deleting_rule_keeps_generated_transactions(db_url: str):
    rid = seed_rule(db_url, description="Gym", start_date=date(2025, 1, 1))
    with session_scope(database_url=db_url) as session:
        SqlTransactionStore(session).insert_transaction(
            kind="expense",
            amount=Decimal("10"),
            category_id=None,
            description="Gym (Recurring)",
            created_at=datetime(2025, 1, 1, 12),
        )

    with session_scope(database_url=db_url) as session:
        assert delete_recurring_rule(session, rid) is True

    with session_scope(database_url=db_url) as session:
        assert session.execute(select(RecurringRule)).scalars().all() == []
        assert len(list_transactions(session)) == 1


def test_failed_lookup_rolls_back_and_next_rule_still_materializes(
    monkeypatch: pytest.MonkeyPatch, db_url: str
):
    seed_rule(db_url, description="Gym", start_date=date(2025, 1, 1))
    seed_rule(db_url, description="Rent", start_date=date(2025, 1, 1))

    with session_scope(database_url=db_url) as session:
        real_execute = session.execute
        real_rollback = session.rollback
        rollbacks: list[int] = []
        failed: list[str] = []

        def flaky_execute(stmt, *args, **kwargs):
            if not failed and "EXISTS" in str(stmt).upper():
                failed.append(str(stmt))
                raise OperationalError("SELECT EXISTS ...", {}, Exception("disk I/O error"))
            return real_execute(stmt, *args, **kwargs)

        def counting_rollback():
            rollbacks.append(1)
            real_rollback()

        monkeypatch.setattr(session, "execute", flaky_execute)
        monkeypatch.setattr(session, "rollback", counting_rollback)

        report = RecurrenceMaterializer(
            SqlTransactionStore(session),
            SqlWatermarkStore(session),
            clock=lambda: datetime(2025, 3, 1),
        ).run()

    assert rollbacks == [1]
    assert [(f.description, f.year_month) for f in report.failures] == [("Gym", "2025-01")]
    assert "disk I/O error" in report.failures[0].error
    assert [e.description for e in report.created] == ["Rent (Recurring)"] * 3
    with session_scope(database_url=db_url) as session:
        assert len(list_transactions(session)) == 3
        assert SqlWatermarkStore(session).get_last_run() == datetime(2025, 3, 1)


def test_find_transaction_translates_errors(monkeypatch: pytest.MonkeyPatch, db_url: str):
    with session_scope(database_url=db_url) as session:

        def broken(*args, **kwargs):
            raise OperationalError("SELECT EXISTS ...", {}, Exception("no such table"))

        monkeypatch.setattr(session, "execute", broken)
        with pytest.raises(StoreReadError, match="Gym"):
            SqlTransactionStore(session).find_transaction("Gym (Recurring)", "2025-01")


def test_rename_category_trims_and_reports_missing(db_url: str):
    cid = seed_category(db_url, "Utilties")
    with session_scope(database_url=db_url) as session:
        renamed = rename_category(session, cid, "  Home   utilities ")
        assert renamed == CategoryEntry(id=cid, name="Home utilities")
        assert rename_category(session, cid + 100, "Food") is None
        with pytest.raises(ValueError):
            rename_category(session, cid, "   ")

    with session_scope(database_url=db_url) as session:
        assert [c.name for c in list_categories(session)] == ["Home utilities"]
