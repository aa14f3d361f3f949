"""Exchange rates and per-country VAT reference data."""

from __future__ import annotations

from .cache import RateCache
from .countries import (
    VatProfile,
    get_country_code,
    get_country_currency,
    get_vat_profile,
    list_vat_profiles,
)
from .service import Conversion, ExchangeRateService, RateQuote
from .source import BnrRateSource, RateSource, RateTable

__all__ = [
    "BnrRateSource",
    "Conversion",
    "ExchangeRateService",
    "RateCache",
    "RateQuote",
    "RateSource",
    "RateTable",
    "VatProfile",
    "get_country_code",
    "get_country_currency",
    "get_vat_profile",
    "list_vat_profiles",
]
