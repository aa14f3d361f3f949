"""Runtime settings read from the environment.

The CLI loads a local ``.env`` (via ``python-dotenv``) before calling
:meth:`Settings.from_env`; library callers may construct :class:`Settings`
directly.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict, field_validator

BNR_CURRENT_URL = "https://www.bnr.ro/nbrfxrates.xml"
BNR_YEAR_URL = "https://www.bnr.ro/files/xml/years/nbrfxrates{year}.xml"


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    database_url: str | None = None
    reporting_currency: str = "EUR"
    rates_url: str = BNR_CURRENT_URL
    rates_year_url: str = BNR_YEAR_URL
    rates_timeout: float = 10.0
    rates_ttl_seconds: int = 3600
    insert_chunk_size: int = 100
    header_variants_path: Path | None = None

    @field_validator("reporting_currency")
    @classmethod
    def _upper_currency(cls, v: str) -> str:
        code = v.strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError(f"reporting currency must be a 3-letter code, got {v!r}")
        return code

    @field_validator("rates_year_url")
    @classmethod
    def _year_placeholder(cls, v: str) -> str:
        if "{year}" not in v:
            raise ValueError("rates_year_url must contain a '{year}' placeholder")
        return v

    @field_validator("rates_timeout", "rates_ttl_seconds", "insert_chunk_size")
    @classmethod
    def _positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from ``FUEL_LEDGER_*`` variables and ``DATABASE_URL``."""

        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        mapping = {
            "DATABASE_URL": "database_url",
            "FUEL_LEDGER_REPORTING_CURRENCY": "reporting_currency",
            "FUEL_LEDGER_RATES_URL": "rates_url",
            "FUEL_LEDGER_RATES_YEAR_URL": "rates_year_url",
            "FUEL_LEDGER_RATES_TIMEOUT": "rates_timeout",
            "FUEL_LEDGER_RATES_TTL": "rates_ttl_seconds",
            "FUEL_LEDGER_INSERT_CHUNK_SIZE": "insert_chunk_size",
            "FUEL_LEDGER_HEADER_VARIANTS": "header_variants_path",
        }
        for env_name, field in mapping.items():
            raw = env.get(env_name)
            if raw is not None and raw.strip() != "":
                values[field] = raw.strip()
        return cls(**values)


__all__ = ["BNR_CURRENT_URL", "BNR_YEAR_URL", "Settings"]
