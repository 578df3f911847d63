"""Pytest configuration for test isolation.

The ``db.client`` module keeps one engine per process and refuses to rebind it
to a different URL. Tests each bootstrap their own SQLite file, so the shared
engine is dropped around every test. ``DATABASE_URL`` is cleared as well so a
developer's ``.env`` can never point a test at a real ledger.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from db.client import dispose_engine


@pytest.fixture(autouse=True)
def _isolate_database(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.delenv("DATABASE_URL", raising=False)
    dispose_engine()
    yield
    dispose_engine()
