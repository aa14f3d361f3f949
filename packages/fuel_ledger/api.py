"""Wiring of settings into the services used by the CLI and host applications.

The rate cache is process-wide: every service built here shares it, so
historical tables fetched once stay available for the life of the process.
"""

from __future__ import annotations

from .config import Settings
from .ingest.columns import HeaderVariantConfig, load_header_variants
from .rates.cache import RateCache
from .rates.service import ExchangeRateService
from .rates.source import BnrRateSource

_SHARED_CACHE: RateCache | None = None


def shared_rate_cache(ttl_seconds: int) -> RateCache:
    """Return the process-wide cache, creating it on first use."""

    global _SHARED_CACHE
    if _SHARED_CACHE is None:
        _SHARED_CACHE = RateCache(ttl_seconds=ttl_seconds)
    return _SHARED_CACHE


def reset_rate_cache() -> None:
    global _SHARED_CACHE
    _SHARED_CACHE = None


def build_rate_service(settings: Settings, *, offline: bool = False) -> ExchangeRateService:
    """Exchange-rate service for ``settings``.

    With ``offline`` there is no feed and every non-identity quote comes from
    the static fallback table.
    """

    source = None
    if not offline:
        source = BnrRateSource(
            reporting_currency=settings.reporting_currency,
            current_url=settings.rates_url,
            year_url=settings.rates_year_url,
            timeout=settings.rates_timeout,
        )
    return ExchangeRateService(
        source,
        cache=shared_rate_cache(settings.rates_ttl_seconds),
        reporting_currency=settings.reporting_currency,
    )


def header_variants_for(settings: Settings) -> HeaderVariantConfig | None:
    """Header-variant override configured in ``settings``, if any."""

    if settings.header_variants_path is None:
        return None
    return load_header_variants(settings.header_variants_path)


__all__ = ["build_rate_service", "header_variants_for", "reset_rate_cache", "shared_rate_cache"]
