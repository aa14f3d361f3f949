"""Logging for ``fuel_ledger``.

Records emitted while a statement is being parsed or imported carry the
statement's file name (``%(statement)s``), so a row-skip warning such as
``row 17: unparseable date`` can be traced back to the upload that caused it
when several files go through the same process.

- ``configure_logging(...)`` installs one handler on the ``fuel_ledger``
  logger and turns down chatty third-party loggers (``pypdf`` warns on every
  malformed object in a scanned toll report). The CLI calls it once.
- ``statement_context(file_name)`` tags records for the duration of a block.
- ``get_logger(name)`` is what library modules use; until the host configures
  logging, the package logger only has a ``NullHandler``.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import IO

PACKAGE_LOGGER = "fuel_ledger"
LEVEL_ENV = "FUEL_LEDGER_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(statement)s] %(message)s"
NOISY_LIBRARIES: dict[str, int] = {"pypdf": logging.ERROR, "sqlalchemy.engine": logging.WARNING}

_current_statement: ContextVar[str] = ContextVar("fuel_ledger_statement", default="-")
_configured = False


class StatementFilter(logging.Filter):
    """Stamp ``record.statement`` with the file being processed (``-`` outside one)."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "statement"):
            record.statement = _current_statement.get()
        return True


@contextmanager
def statement_context(file_name: str | None) -> Iterator[None]:
    token = _current_statement.set(file_name or "-")
    try:
        yield
    finally:
        _current_statement.reset(token)


def resolve_level(level: int | str | None = None) -> int:
    """Explicit ``level``, else ``FUEL_LEDGER_LOG_LEVEL``, else INFO.

    Unknown names fall through to the next source.
    """

    for candidate in (level, os.getenv(LEVEL_ENV)):
        if isinstance(candidate, int):
            return candidate
        if not candidate:
            continue
        name = candidate.strip().upper()
        if name.isdigit():
            return int(name)
        value = logging.getLevelName(name)
        if isinstance(value, int):
            return value
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Install the package handler. Later calls are no-ops."""

    global _configured
    if _configured:
        return

    resolved = resolve_level(level)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.addFilter(StatementFilter())
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.handlers = [h for h in logger.handlers if not isinstance(h, logging.NullHandler)]
    logger.addHandler(handler)
    logger.setLevel(resolved)
    logger.propagate = False

    for name, floor in NOISY_LIBRARIES.items():
        lib = logging.getLogger(name)
        lib.setLevel(max(floor, resolved))

    _configured = True


def get_logger(name: str) -> logging.Logger:
    pkg = logging.getLogger(PACKAGE_LOGGER)
    if not _configured and not pkg.handlers:
        pkg.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = [
    "DEFAULT_FORMAT",
    "StatementFilter",
    "configure_logging",
    "get_logger",
    "resolve_level",
    "statement_context",
]
