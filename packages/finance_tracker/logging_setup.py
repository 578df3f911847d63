"""Logging for the ``finance_tracker`` package.

Library modules only ever call ``get_logger("finance_tracker.<module>")``.
Until an entrypoint calls ``configure_logging`` the package logger carries a
``NullHandler`` and stays silent, so importing the package (tests, other
hosts) prints nothing.

``configure_logging`` installs one stderr handler on the package logger. It is
safe to call more than once: later calls only change the level, which is how
the CLI applies ``--log-level`` on every invocation in the same process.
Level precedence: explicit argument, then ``FINANCE_TRACKER_LOG_LEVEL``, then
``INFO``.
"""

from __future__ import annotations

import logging
import os
import sys

PACKAGE_LOGGER = "finance_tracker"
LEVEL_ENV = "FINANCE_TRACKER_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class _StderrHandler(logging.StreamHandler):
    """Writes to whatever ``sys.stderr`` is at emit time.

    The CLI runner swaps ``sys.stderr`` per invocation; a handler bound to the
    stream seen at configuration time would keep writing to a closed one.
    """

    def __init__(self) -> None:
        super().__init__()

    @property
    def stream(self):  # type: ignore[override]
        return sys.stderr

    @stream.setter
    def stream(self, value) -> None:
        pass


def resolve_level(level: int | str | None = None) -> int:
    """Turn ``level`` (or the environment, when ``None``) into a numeric level.

    Raises ``ValueError`` for an explicit name logging does not know. A bad
    value in the environment falls back to ``INFO`` instead, since it is not
    something the caller passed.
    """

    if level is None:
        env_val = (os.getenv(LEVEL_ENV) or "").strip()
        if not env_val:
            return logging.INFO
        try:
            return resolve_level(env_val)
        except ValueError:
            return logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = logging.getLevelNamesMapping().get(name)
    if numeric is None:
        raise ValueError(f"unknown log level {level!r}")
    return numeric


def _installed_handler(logger: logging.Logger) -> _StderrHandler | None:
    for h in logger.handlers:
        if isinstance(h, _StderrHandler):
            return h
    return None


def configure_logging(level: int | str | None = None) -> int:
    """Route package logs to stderr at ``level`` and return the level applied."""

    resolved = resolve_level(level)
    logger = logging.getLogger(PACKAGE_LOGGER)
    handler = _installed_handler(logger)
    if handler is None:
        for h in list(logger.handlers):
            if isinstance(h, logging.NullHandler):
                logger.removeHandler(h)
        handler = _StderrHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        # Avoid double emission via the root logger.
        logger.propagate = False
    handler.setLevel(resolved)
    logger.setLevel(resolved)
    return resolved


def get_logger(name: str) -> logging.Logger:
    pkg_logger = logging.getLogger(PACKAGE_LOGGER)
    if not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["LEVEL_ENV", "configure_logging", "get_logger", "resolve_level"]
