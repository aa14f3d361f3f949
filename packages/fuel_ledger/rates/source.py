"""Exchange-rate feeds.

The default source reads the National Bank of Romania reference-rate XML
feeds: a daily document with today's rates and one document per year with a
rate set for every business day. The feed quotes RON per unit of foreign
currency (optionally per ``multiplier`` units); :class:`BnrRateSource`
re-bases every set onto the reporting currency so that a :class:`RateTable`
always holds *units of foreign currency per one unit of reporting currency*.
"""

from __future__ import annotations

import urllib.error
import urllib.request
import xml.etree.ElementTree as ET
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

from ..config import BNR_CURRENT_URL, BNR_YEAR_URL
from ..errors import RateSourceError
from ..logging_setup import get_logger

_logger = get_logger("fuel_ledger.rates.source")

RATE_QUANTUM = Decimal("0.000001")


@dataclass(frozen=True, slots=True)
class RateTable:
    """Rates published for a single day, keyed by ISO currency code."""

    published: date
    rates: Mapping[str, Decimal]

    def get(self, currency: str) -> Decimal | None:
        return self.rates.get(currency)


class RateSource(Protocol):
    def fetch_current(self) -> RateTable: ...

    def fetch_year(self, year: int) -> list[RateTable]: ...


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _cube_to_table(cube: ET.Element, base: str, reporting: str) -> RateTable | None:
    raw_date = cube.get("date")
    if not raw_date:
        return None
    try:
        published = date.fromisoformat(raw_date)
    except ValueError:
        return None

    base_per_unit: dict[str, Decimal] = {base: Decimal(1)}
    for rate in cube:
        if _local(rate.tag) != "Rate":
            continue
        currency = (rate.get("currency") or "").strip().upper()
        try:
            value = Decimal((rate.text or "").strip())
            multiplier = Decimal(rate.get("multiplier") or "1")
        except InvalidOperation:
            continue
        if not currency or value <= 0 or multiplier <= 0:
            continue
        base_per_unit[currency] = value / multiplier

    anchor = base_per_unit.get(reporting)
    if anchor is None:
        return None
    rates = {
        code: (anchor / per_unit).quantize(RATE_QUANTUM) for code, per_unit in base_per_unit.items()
    }
    rates[reporting] = Decimal(1)
    return RateTable(published=published, rates=rates)


def parse_rate_document(payload: bytes, *, reporting_currency: str) -> list[RateTable]:
    """Parse a BNR ``DataSet`` document into rate tables ordered by date.

    Raises
    ------
    RateSourceError
        When the payload is not XML or holds no usable rate set.
    """

    try:
        root = ET.fromstring(payload)
    except ET.ParseError as e:
        raise RateSourceError(f"rate feed is not valid XML: {e}") from e

    base = "RON"
    for el in root.iter():
        if _local(el.tag) == "OrigCurrency" and el.text:
            base = el.text.strip().upper()
            break

    tables: list[RateTable] = []
    for el in root.iter():
        if _local(el.tag) != "Cube":
            continue
        table = _cube_to_table(el, base, reporting_currency)
        if table is not None:
            tables.append(table)
    if not tables:
        raise RateSourceError(
            f"rate feed contains no rate sets quoting {reporting_currency}"
        )
    tables.sort(key=lambda t: t.published)
    return tables


class BnrRateSource:
    """HTTP client for the BNR reference-rate feeds."""

    def __init__(
        self,
        *,
        reporting_currency: str = "EUR",
        current_url: str = BNR_CURRENT_URL,
        year_url: str = BNR_YEAR_URL,
        timeout: float = 10.0,
        opener: Callable[..., Any] = urllib.request.urlopen,
    ) -> None:
        self.reporting_currency = reporting_currency
        self.current_url = current_url
        self.year_url = year_url
        self.timeout = timeout
        self._opener = opener

    def _get(self, url: str, timeout: float) -> bytes:
        req = urllib.request.Request(url, headers={"Accept": "application/xml"})
        try:
            with self._opener(req, timeout=timeout) as resp:
                return resp.read()
        except urllib.error.HTTPError as e:
            raise RateSourceError(f"rate feed error: {e.code} {e.reason} ({url})") from e
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            raise RateSourceError(f"rate feed unreachable: {url}: {e}") from e

    def fetch_current(self) -> RateTable:
        _logger.debug("fetching current rates from %s", self.current_url)
        payload = self._get(self.current_url, self.timeout)
        return parse_rate_document(payload, reporting_currency=self.reporting_currency)[-1]

    def fetch_year(self, year: int) -> list[RateTable]:
        url = self.year_url.format(year=year)
        _logger.debug("fetching %d rates from %s", year, url)
        # Yearly documents are large; allow a longer read.
        payload = self._get(url, self.timeout * 3)
        return parse_rate_document(payload, reporting_currency=self.reporting_currency)


__all__ = [
    "RATE_QUANTUM",
    "BnrRateSource",
    "RateSource",
    "RateTable",
    "parse_rate_document",
]
