from __future__ import annotations

import io
import urllib.error
from datetime import date
from decimal import Decimal

import pytest

from fuel_ledger.errors import ExchangeRateError, RateSourceError
from fuel_ledger.rates.cache import RateCache
from fuel_ledger.rates.countries import (
    get_country_code,
    get_country_currency,
    get_vat_profile,
    list_vat_profiles,
)
from fuel_ledger.rates.service import ExchangeRateService
from fuel_ledger.rates.source import BnrRateSource, parse_rate_document
from tests.helpers.rates import FakeClock, FakeRateSource, offline_rates, table

BNR_DOC = b"""<?xml version="1.0" encoding="utf-8"?>
<DataSet xmlns="http://www.bnr.ro/xsd">
  <Header>
    <Publisher>National Bank of Romania</Publisher>
    <PublishingDate>2025-03-28</PublishingDate>
    <MessageType>DR</MessageType>
  </Header>
  <Body>
    <Subject>Reference rates</Subject>
    <OrigCurrency>RON</OrigCurrency>
    <Cube date="2025-03-27">
      <Rate currency="EUR">4.9700</Rate>
      <Rate currency="USD">4.6000</Rate>
    </Cube>
    <Cube date="2025-03-28">
      <Rate currency="EUR">4.9770</Rate>
      <Rate currency="HUF" multiplier="100">1.2500</Rate>
      <Rate currency="USD">4.6000</Rate>
    </Cube>
  </Body>
</DataSet>
"""


# ---- feed parsing ----------------------------------------------------------------


def test_parse_rate_document_rebases_onto_reporting_currency():
    tables = parse_rate_document(BNR_DOC, reporting_currency="EUR")

    assert [t.published for t in tables] == [date(2025, 3, 27), date(2025, 3, 28)]
    latest = tables[-1]
    assert latest.get("EUR") == Decimal(1)
    assert latest.get("RON") == Decimal("4.977000")
    # Quoted per 100 units in the feed.
    assert latest.get("HUF") == Decimal("398.160000")
    assert latest.get("USD") == Decimal("1.081957")


def test_parse_rate_document_rejects_garbage():
    with pytest.raises(RateSourceError):
        parse_rate_document(b"<not xml", reporting_currency="EUR")
    with pytest.raises(RateSourceError):
        parse_rate_document(BNR_DOC, reporting_currency="JPY")


def test_bnr_source_fetches_current_and_year_documents():
    calls: list[tuple[str, float]] = []

    def opener(req, timeout):
        calls.append((req.full_url, timeout))
        return io.BytesIO(BNR_DOC)

    source = BnrRateSource(
        current_url="https://rates.test/today.xml",
        year_url="https://rates.test/{year}.xml",
        timeout=2.0,
        opener=opener,
    )

    assert source.fetch_current().published == date(2025, 3, 28)
    assert len(source.fetch_year(2025)) == 2
    assert calls == [("https://rates.test/today.xml", 2.0), ("https://rates.test/2025.xml", 6.0)]


def test_bnr_source_wraps_network_errors():
    def opener(req, timeout):
        raise urllib.error.URLError("connection refused")

    with pytest.raises(RateSourceError, match="unreachable"):
        BnrRateSource(opener=opener).fetch_current()


# ---- service -----------------------------------------------------------------------


def test_reporting_currency_is_identity():
    rates = offline_rates()
    quote = rates.quote("eur")
    assert (quote.rate, quote.rate_date, quote.kind) == (Decimal(1), None, "identity")
    conv = rates.convert(Decimal("10.005"), "EUR")
    assert conv.amount == Decimal("10.01")
    assert conv.rate_date is None


def test_historical_quote_uses_exact_then_closest_earlier_date():
    source = FakeRateSource(
        years={2025: [table("2025-03-27", RON="4.9700"), table("2025-03-28", RON="5.0000")]}
    )
    rates = ExchangeRateService(source, cache=RateCache())

    exact = rates.quote("RON", date(2025, 3, 28))
    assert (exact.rate, exact.rate_date, exact.kind) == (Decimal("5.0000"), "2025-03-28", "exact")

    weekend = rates.quote("RON", date(2025, 3, 30))
    assert (weekend.rate_date, weekend.kind) == ("2025-03-28", "closest")

    # Before the first published day of the year: earliest table of that year.
    early = rates.quote("RON", date(2025, 1, 1))
    assert early.rate_date == "2025-03-27"

    assert source.year_calls == [2025]


def test_conversion_divides_by_rate_and_records_rate_date():
    source = FakeRateSource(years={2025: [table("2025-03-28", RON="5.0000")]})
    rates = ExchangeRateService(source, cache=RateCache())

    conv = rates.convert(Decimal("123.45"), "RON", date(2025, 3, 28))

    assert conv.amount == Decimal("24.69")
    assert conv.rate_date == "2025-03-28"


def test_missing_year_falls_back_to_current_and_is_not_refetched():
    clock = FakeClock()
    source = FakeRateSource(current=table("2025-03-28", RON="5.0000"))
    rates = ExchangeRateService(source, cache=RateCache(ttl_seconds=60, clock=clock))

    first = rates.quote("RON", date(2024, 6, 3))
    rates.quote("RON", date(2024, 6, 4))

    assert first.kind == "current"
    assert source.year_calls == [2024]

    clock.advance(61)
    rates.quote("RON", date(2024, 6, 5))
    assert source.year_calls == [2024, 2024]


def test_current_table_expires_after_ttl():
    clock = FakeClock()
    source = FakeRateSource(current=table("2025-03-28", RON="5.0000"))
    rates = ExchangeRateService(source, cache=RateCache(ttl_seconds=60, clock=clock))

    rates.quote("RON")
    rates.quote("RON")
    assert source.current_calls == 1

    clock.advance(60)
    rates.quote("RON")
    assert source.current_calls == 2


def test_stale_current_table_is_used_while_feed_is_down():
    clock = FakeClock()
    source = FakeRateSource(current=table("2025-03-28", RON="5.0000"))
    rates = ExchangeRateService(source, cache=RateCache(ttl_seconds=60, clock=clock))
    rates.quote("RON")

    source.fail = True
    clock.advance(3600)
    quote = rates.quote("RON")

    assert (quote.rate, quote.kind) == (Decimal("5.0000"), "current")


def test_offline_uses_fallback_table():
    rates = offline_rates()
    quote = rates.quote("RON")
    assert (quote.rate, quote.rate_date, quote.kind) == (Decimal("4.97"), "fallback", "fallback")
    assert rates.convert(Decimal("100"), "RON").amount == Decimal("20.12")


def test_unknown_currency_without_any_table_fails():
    with pytest.raises(ExchangeRateError):
        offline_rates().quote("XYZ")


def test_fallback_table_is_rebased_for_other_reporting_currencies():
    rates = offline_rates("RON")
    assert rates.quote("EUR").rate == (Decimal(1) / Decimal("4.97")).quantize(Decimal("0.000001"))
    assert rates.quote("RON").kind == "identity"


def test_convert_between_and_from_reporting():
    rates = offline_rates()
    assert rates.convert_from_reporting(Decimal("10"), "RON").amount == Decimal("49.70")
    assert rates.convert_between(Decimal("100"), "RON", "HUF").amount == Decimal("7947.69")
    assert rates.convert_between(Decimal("100"), "EUR", "RON").amount == Decimal("497.00")


# ---- cache ---------------------------------------------------------------------------


def test_cache_closest_on_or_before_stays_within_the_year():
    cache = RateCache()
    cache.put_year(2025, [table("2025-03-28"), table("2025-01-02")])

    assert cache.closest_on_or_before(date(2025, 3, 1)).published == date(2025, 1, 2)
    assert cache.closest_on_or_before(date(2025, 12, 31)).published == date(2025, 3, 28)
    assert cache.closest_on_or_before(date(2024, 12, 31)) is None


def test_cache_forgets_failure_once_year_is_stored():
    clock = FakeClock()
    cache = RateCache(ttl_seconds=60, clock=clock)
    cache.mark_year_failed(2025)
    assert cache.year_recently_failed(2025)
    cache.put_year(2025, [table("2025-03-28")])
    assert not cache.year_recently_failed(2025)


# ---- countries -------------------------------------------------------------------------


@pytest.mark.parametrize(
    "raw, code",
    [
        ("RO", "RO"),
        ("de", "DE"),
        ("România", "RO"),
        ("Österreich", "AT"),
        ("DEU", "DE"),
        ("Ungaria", "HU"),
        ("Atlantis", None),
        (None, None),
    ],
)
def test_get_country_code(raw, code):
    assert get_country_code(raw) == code


def test_vat_profiles_and_currencies():
    assert get_vat_profile("HU").rate == Decimal("27")
    assert get_vat_profile("HU").refundable
    assert not get_vat_profile("Switzerland").refundable
    assert get_vat_profile("Atlantis").rate == Decimal("0")
    assert get_country_currency("Bulgaria") == "BGN"
    assert get_country_currency("AT") == "EUR"
    profiles = list_vat_profiles()
    # Refundable (EU) profiles are listed first.
    assert profiles[0].refundable and not profiles[-1].refundable
