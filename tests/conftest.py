"""Pytest configuration for test isolation.

Settings are read from ``DATABASE_URL`` and ``FUEL_LEDGER_*`` variables, and
the exchange-rate cache and the database engine are process-wide. A developer
shell (or a ``.env`` loaded by an earlier CLI test) could leak into later
tests, so every test starts from a clean environment, a fresh rate cache and
no shared engine.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest

from fleet_db.client import reset_engine
from fuel_ledger.api import reset_rate_cache


@pytest.fixture(autouse=True)
def _isolate_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in list(os.environ):
        if name == "DATABASE_URL" or name.startswith("FUEL_LEDGER_"):
            monkeypatch.delenv(name, raising=False)
    # The CLI loads ``.env`` from the working directory; keep it empty.
    monkeypatch.chdir(tmp_path)
    reset_rate_cache()
    reset_engine()
    yield
    reset_engine()
    reset_rate_cache()
