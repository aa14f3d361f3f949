from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from fuel_ledger.importer import import_statement
from fuel_ledger.logging_setup import StatementFilter, resolve_level, statement_context
from tests.helpers.db import COMPANY, bootstrap_sqlite_db, new_session
from tests.helpers.rates import offline_rates
from tests.helpers.statements import PROVIDER_A_CSV


class _ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []
        self.addFilter(StatementFilter())

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@pytest.fixture
def capture() -> Iterator[Callable[[str], _ListHandler]]:
    def attach(name: str) -> _ListHandler:
        logger = logging.getLogger(name)
        handler = _ListHandler()
        attached.append((logger, handler, logger.level))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        return handler

    attached: list[tuple[logging.Logger, _ListHandler, int]] = []
    yield attach
    for logger, handler, level in attached:
        logger.removeHandler(handler)
        logger.setLevel(level)


def test_records_carry_the_statement_being_processed(capture):
    handler = capture("fuel_ledger.tests")
    log = logging.getLogger("fuel_ledger.tests")

    log.info("before")
    with statement_context("maut_03.pdf"):
        log.info("inside")
        with statement_context("EW_export.csv"):
            log.info("nested")
        log.info("back")
    log.info("after")

    assert [r.statement for r in handler.records] == [
        "-",
        "maut_03.pdf",
        "EW_export.csv",
        "maut_03.pdf",
        "-",
    ]


def test_import_logs_are_tagged_with_the_file_name(capture, tmp_path: Path):
    handler = capture("fuel_ledger.importer")
    _, engine = bootstrap_sqlite_db(tmp_path / "fleet.db")
    with new_session(engine) as session:
        import_statement(
            session,
            company_id=COMPANY,
            file_name="invoice-transactions-03.csv",
            file_bytes=PROVIDER_A_CSV,
            rates=offline_rates(),
        )
    engine.dispose()

    assert handler.records
    assert {r.statement for r in handler.records} == {"invoice-transactions-03.csv"}


@pytest.mark.parametrize(
    "level, env, expected",
    [
        ("debug", None, logging.DEBUG),
        (logging.ERROR, "DEBUG", logging.ERROR),
        (None, "warning", logging.WARNING),
        ("nonsense", "ERROR", logging.ERROR),
        (None, "15", 15),
        (None, None, logging.INFO),
    ],
)
def test_resolve_level(level, env, expected, monkeypatch: pytest.MonkeyPatch):
    if env is None:
        monkeypatch.delenv("FUEL_LEDGER_LOG_LEVEL", raising=False)
    else:
        monkeypatch.setenv("FUEL_LEDGER_LOG_LEVEL", env)

    assert resolve_level(level) == expected
