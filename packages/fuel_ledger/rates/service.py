"""Currency conversion into the reporting currency.

Rates are expressed as units of foreign currency per one unit of reporting
currency, so ``reporting = round(amount / rate, 2)``.

Degradation order when the feed misbehaves: fresh cache, feed, stale cached
"current" table, static :data:`FALLBACK_RATES`. A conversion never fails
because the feed is down; it fails only for a currency that appears in none
of those tables.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from ..errors import ExchangeRateError, RateSourceError
from ..logging_setup import get_logger
from ..values import round_money
from .cache import RateCache
from .source import RATE_QUANTUM, RateSource, RateTable

_logger = get_logger("fuel_ledger.rates.service")

# Approximate units per 1 EUR, used only when no published table is usable.
FALLBACK_RATES: dict[str, Decimal] = {
    "EUR": Decimal("1"),
    "RON": Decimal("4.97"),
    "USD": Decimal("1.08"),
    "GBP": Decimal("0.85"),
    "CHF": Decimal("0.94"),
    "HUF": Decimal("395"),
    "PLN": Decimal("4.30"),
    "CZK": Decimal("25.2"),
    "BGN": Decimal("1.95583"),
    "DKK": Decimal("7.46"),
    "SEK": Decimal("11.4"),
    "NOK": Decimal("11.6"),
    "RSD": Decimal("117.2"),
    "UAH": Decimal("44.5"),
    "MDL": Decimal("19.3"),
    "TRY": Decimal("36.0"),
}

FALLBACK_RATE_DATE = "fallback"


@dataclass(frozen=True, slots=True)
class RateQuote:
    """A rate together with where it came from.

    ``kind`` is one of ``identity``, ``exact``, ``closest``, ``current`` or
    ``fallback``. ``rate_date`` is the ISO publication date of the rate used,
    ``"fallback"`` for the static table and ``None`` for identity.
    """

    currency: str
    rate: Decimal
    rate_date: str | None
    kind: str


@dataclass(frozen=True, slots=True)
class Conversion:
    amount: Decimal
    rate: Decimal
    rate_date: str | None
    kind: str


def _as_date(on: date | datetime | None) -> date | None:
    if isinstance(on, datetime):
        return on.date()
    return on


class ExchangeRateService:
    """Quote and apply exchange rates for a fixed reporting currency.

    Parameters
    ----------
    source:
        Feed used to refresh rates. ``None`` means offline: every quote comes
        from the fallback table.
    cache:
        Shared :class:`RateCache`; a private one is created when omitted.
    reporting_currency:
        Target currency of :meth:`convert`.
    fallback_rates:
        Units per 1 EUR; re-based automatically for other reporting currencies.
    """

    def __init__(
        self,
        source: RateSource | None,
        *,
        cache: RateCache | None = None,
        reporting_currency: str = "EUR",
        fallback_rates: dict[str, Decimal] | None = None,
    ) -> None:
        self.source = source
        self.cache = cache if cache is not None else RateCache()
        self.reporting_currency = reporting_currency.upper()
        self._fallback = self._rebase_fallback(fallback_rates or FALLBACK_RATES)

    def _rebase_fallback(self, table: dict[str, Decimal]) -> dict[str, Decimal]:
        anchor = table.get(self.reporting_currency)
        if anchor is None:
            return {self.reporting_currency: Decimal(1)}
        return {code: (rate / anchor).quantize(RATE_QUANTUM) for code, rate in table.items()}

    # ---- table acquisition -----------------------------------------------

    def _current_table(self) -> RateTable | None:
        fresh = self.cache.get_current()
        if fresh is not None:
            return fresh
        if self.source is not None:
            try:
                table = self.source.fetch_current()
            except RateSourceError as e:
                _logger.warning("current rates unavailable: %s", e)
            else:
                self.cache.put_current(table)
                return table
        stale = self.cache.get_stale_current()
        if stale is not None and self.source is not None:
            _logger.warning("using expired rates published %s", stale.published)
        return stale

    def _historical_table(self, on: date) -> RateTable | None:
        if self.source is None:
            return None
        if not self.cache.has_year(on.year) and not self.cache.year_recently_failed(on.year):
            try:
                tables = self.source.fetch_year(on.year)
            except RateSourceError as e:
                _logger.warning("historical rates for %d unavailable: %s", on.year, e)
                self.cache.mark_year_failed(on.year)
            else:
                self.cache.put_year(on.year, tables)
        return self.cache.closest_on_or_before(on)

    # ---- quoting -----------------------------------------------------------

    def _fallback_quote(self, currency: str) -> RateQuote:
        rate = self._fallback.get(currency)
        if rate is None:
            raise ExchangeRateError(f"no exchange rate available for {currency}")
        _logger.warning("using fallback rate for %s: %s", currency, rate)
        return RateQuote(currency, rate, FALLBACK_RATE_DATE, "fallback")

    def quote(self, currency: str, on: date | datetime | None = None) -> RateQuote:
        """Return the rate for ``currency`` on ``on`` (today's rate when ``None``)."""

        code = (currency or self.reporting_currency).strip().upper()
        if code == self.reporting_currency:
            return RateQuote(code, Decimal(1), None, "identity")

        target = _as_date(on)
        if target is not None:
            table = self._historical_table(target)
            if table is not None:
                rate = table.get(code)
                if rate is not None:
                    kind = "exact" if table.published == target else "closest"
                    return RateQuote(code, rate, table.published.isoformat(), kind)

        table = self._current_table()
        if table is not None:
            rate = table.get(code)
            if rate is not None:
                return RateQuote(code, rate, table.published.isoformat(), "current")

        return self._fallback_quote(code)

    # ---- conversion ----------------------------------------------------------

    def convert(
        self, amount: Decimal, currency: str, on: date | datetime | None = None
    ) -> Conversion:
        """Convert ``amount`` of ``currency`` into the reporting currency."""

        q = self.quote(currency, on)
        if q.kind == "identity":
            return Conversion(round_money(amount), q.rate, None, q.kind)
        return Conversion(round_money(amount / q.rate), q.rate, q.rate_date, q.kind)

    def convert_from_reporting(
        self, amount: Decimal, currency: str, on: date | datetime | None = None
    ) -> Conversion:
        """Convert ``amount`` of reporting currency into ``currency``."""

        q = self.quote(currency, on)
        return Conversion(round_money(amount * q.rate), q.rate, q.rate_date, q.kind)

    def convert_between(
        self,
        amount: Decimal,
        from_currency: str,
        to_currency: str,
        on: date | datetime | None = None,
    ) -> Conversion:
        """Cross-convert through the reporting currency."""

        src = self.quote(from_currency, on)
        dst = self.quote(to_currency, on)
        rate = (dst.rate / src.rate).quantize(RATE_QUANTUM)
        rate_date = src.rate_date if src.kind != "identity" else dst.rate_date
        kind = src.kind if src.kind != "identity" else dst.kind
        return Conversion(round_money(amount * dst.rate / src.rate), rate, rate_date, kind)


__all__ = [
    "FALLBACK_RATES",
    "FALLBACK_RATE_DATE",
    "Conversion",
    "ExchangeRateService",
    "RateQuote",
]
