from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from fuel_ledger.config import BNR_CURRENT_URL, Settings


def test_defaults():
    settings = Settings.from_env({})

    assert settings.database_url is None
    assert settings.reporting_currency == "EUR"
    assert settings.rates_url == BNR_CURRENT_URL
    assert settings.insert_chunk_size == 100
    assert settings.header_variants_path is None


def test_reads_prefixed_variables_and_ignores_blanks():
    settings = Settings.from_env(
        {
            "DATABASE_URL": "sqlite:///x.db",
            "FUEL_LEDGER_REPORTING_CURRENCY": " ron ",
            "FUEL_LEDGER_RATES_TTL": "60",
            "FUEL_LEDGER_INSERT_CHUNK_SIZE": "",
            "FUEL_LEDGER_HEADER_VARIANTS": "conf/variants.json",
        }
    )

    assert settings.database_url == "sqlite:///x.db"
    assert settings.reporting_currency == "RON"
    assert settings.rates_ttl_seconds == 60
    assert settings.insert_chunk_size == 100
    assert settings.header_variants_path == Path("conf/variants.json")


@pytest.mark.parametrize(
    "env",
    [
        {"FUEL_LEDGER_REPORTING_CURRENCY": "EURO"},
        {"FUEL_LEDGER_RATES_YEAR_URL": "https://example.test/rates.xml"},
        {"FUEL_LEDGER_RATES_TIMEOUT": "0"},
        {"FUEL_LEDGER_INSERT_CHUNK_SIZE": "-5"},
    ],
)
def test_invalid_values_are_rejected(env):
    with pytest.raises(ValidationError):
        Settings.from_env(env)


def test_reads_process_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("FUEL_LEDGER_RATES_TIMEOUT", "2.5")

    assert Settings.from_env().rates_timeout == 2.5
