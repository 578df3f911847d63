from __future__ import annotations

import io
import logging
import sys
from collections.abc import Iterator

import pytest

from finance_tracker import logging_setup


@pytest.fixture()
def pkg_logger() -> Iterator[logging.Logger]:
    logger = logging.getLogger(logging_setup.PACKAGE_LOGGER)
    saved = (list(logger.handlers), logger.level, logger.propagate)
    logger.handlers.clear()
    yield logger
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


def test_resolve_level_precedence(monkeypatch: pytest.MonkeyPatch):
    assert logging_setup.resolve_level("debug") == logging.DEBUG
    assert logging_setup.resolve_level(" 15 ") == 15
    assert logging_setup.resolve_level(logging.WARNING) == logging.WARNING
    monkeypatch.setenv(logging_setup.LEVEL_ENV, "ERROR")
    assert logging_setup.resolve_level() == logging.ERROR
    # An explicit level wins over the environment
    assert logging_setup.resolve_level("info") == logging.INFO
    monkeypatch.setenv(logging_setup.LEVEL_ENV, "loud")
    assert logging_setup.resolve_level() == logging.INFO
    monkeypatch.delenv(logging_setup.LEVEL_ENV)
    assert logging_setup.resolve_level() == logging.INFO


def test_resolve_level_rejects_unknown_names():
    with pytest.raises(ValueError, match="chatty"):
        logging_setup.resolve_level("chatty")


def test_library_loggers_are_silent_until_configured(pkg_logger: logging.Logger):
    logger = logging_setup.get_logger("finance_tracker.materializer")

    assert logger.name == "finance_tracker.materializer"
    assert [type(h) for h in pkg_logger.handlers] == [logging.NullHandler]


def test_reconfiguring_changes_level_without_duplicating_handlers(
    monkeypatch: pytest.MonkeyPatch, pkg_logger: logging.Logger
):
    monkeypatch.delenv(logging_setup.LEVEL_ENV, raising=False)
    logging_setup.get_logger("finance_tracker.api")

    assert logging_setup.configure_logging() == logging.INFO
    assert logging_setup.configure_logging("warning") == logging.WARNING

    assert len(pkg_logger.handlers) == 1
    assert not isinstance(pkg_logger.handlers[0], logging.NullHandler)
    assert pkg_logger.level == logging.WARNING
    assert pkg_logger.propagate is False


def test_handler_writes_to_current_stderr(
    monkeypatch: pytest.MonkeyPatch, pkg_logger: logging.Logger
):
    logging_setup.configure_logging("DEBUG")
    buf = io.StringIO()
    monkeypatch.setattr(sys, "stderr", buf)

    logging_setup.get_logger("finance_tracker.materializer").debug("recurring:exists rule_id=1")

    assert "DEBUG finance_tracker.materializer recurring:exists rule_id=1" in buf.getvalue()
