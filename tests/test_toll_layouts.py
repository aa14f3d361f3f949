from __future__ import annotations

import textwrap
from datetime import datetime
from decimal import Decimal

import pytest

from fuel_ledger.errors import NoTransactionsError, UnsupportedFileError
from fuel_ledger.ingest.adapters.toll_pdf import extract_pdf_text, parse_toll_text
from fuel_ledger.ingest.layouts import (
    LAYOUTS,
    SUMMARY_STRATEGY,
    LayoutResult,
    TollLine,
    candidate_layouts,
    distribute_vat,
)
from fuel_ledger.ingest.layouts.common import leading_plate, product_category, split_amounts
from fuel_ledger.ingest.utils import detect_provider
from fuel_ledger.models import Provider
from tests.helpers.rates import offline_rates

D = Decimal


def _text(s: str) -> str:
    return textwrap.dedent(s).strip("\n")


GROUPED_LEDGER = _text(
    """
    MAUT REPORT
    LKW-Kennzeichen: B16TFL
    AT 29.03.2025 000490984032037 96,63
    AT 30.03.2025 000490984032037 3,33
    HU 21.03.2025 ÚTDÍJAK 000490984032037 42U61K275M 48,3338,0610,27
    AT MwSt (20%) = 19,99
    LKW-Kennzeichen: CJ01ABC
    DE 30.03.2025 Tolls 000490984032037 50,00 9,50 59,50
    Gesamtsumme 218,29
    """
)

FUEL_SUMMARY = _text(
    """
    Fuel statement
    Country: Germany (DE) Currency: EUR Total: 103,53
    12.03.2025 08:14 B 16 TFL Diesel 50,00 L 75,00 14,25 89,25
    13.03.2025 B16TFL AdBlue 10,00 L 12,00 2,28 14,28
    Tara: Romania (RO) Moneda: RON
    14.03.2025 CJ 01 ABC Diesel 20,00 L 99,40
    """
)

LINE_INVOICE = _text(
    """
    Invoice 2025/0042
    05/03/2025 14:20 B-123-XYZ Parking Vienna AT EUR 10,00 2,00 12,00
    2025-03-06 CJ 01 ABC Tolls HU 12700,00
    07.03.2025 bogus line
    """
)


# ---- building blocks --------------------------------------------------------------


def test_split_amounts_separates_glued_columns():
    assert split_amounts("48,3338,0610,27") == ["48,33", "38,06", "10,27"]
    assert split_amounts("1.234,56") == ["1.234,56"]
    assert split_amounts("-5,00") == ["-5,00"]
    assert split_amounts("42U61K275M") is None


def test_leading_plate_joins_split_tokens():
    assert leading_plate(["B", "16", "TFL", "Diesel"]) == ("B 16 TFL", 3)
    assert leading_plate(["B16TFL", "AdBlue"]) == ("B16TFL", 1)
    assert leading_plate(["Diesel", "50,00"]) == (None, 0)


def test_product_category():
    assert product_category("ÚTDÍJAK", "HU") == "toll_hungary"
    assert product_category("Eurovignette 12M", None) == "vignette_eu"
    assert product_category(None, "AT") == "toll_austria"
    assert product_category("", "RO") == "toll_generic"
    assert product_category("Car wash", "RO") == "toll_other"


def test_distribute_vat_sums_exactly_with_last_line_absorbing_remainder():
    lines = [
        TollLine(
            line_number=i,
            transaction_at=datetime(2025, 3, 1),
            vehicle=None,
            country="AT",
            net=D("10.00"),
        )
        for i in range(3)
    ]

    distribute_vat(lines, D("12.34"), D("20"))

    assert [ln.vat for ln in lines] == [D("4.11"), D("4.11"), D("4.12")]
    assert sum(ln.vat for ln in lines) == D("12.34")
    for ln in lines:
        assert ln.gross == ln.net + ln.vat
        assert ln.resolution.strategy == SUMMARY_STRATEGY
        assert ln.resolution.rate == D("20")


# ---- grouped ledger ---------------------------------------------------------------


def test_grouped_ledger_distributes_country_summary_vat():
    result = parse_toll_text(GROUPED_LEDGER, rates=offline_rates())

    assert result.metadata.layout == "grouped_ledger"
    assert result.metadata.total_count == 4
    at1, at2, hu, de = result.transactions

    assert at1.provider is Provider.TOLL
    assert at1.vehicle_registration == "B16TFL"
    assert at1.category_hint == "toll_austria"
    assert at1.card_number == "000490984032037"
    assert (at1.vat_amount, at2.vat_amount) == (D("19.32"), D("0.67"))
    assert at1.vat_amount + at2.vat_amount == D("19.99")
    assert at1.vat_strategy == at2.vat_strategy == SUMMARY_STRATEGY
    assert at1.gross_amount == D("115.95")
    assert at1.vat_rate == D("20")
    assert at1.raw_record["layout"] == "grouped_ledger"


def test_grouped_ledger_takes_net_from_the_last_glued_amount():
    hu = parse_toll_text(GROUPED_LEDGER, rates=offline_rates()).transactions[2]

    assert hu.transaction_at == datetime(2025, 3, 21)
    assert hu.original_net == D("10.27")
    assert hu.original_currency == "EUR"
    assert hu.product == "ÚTDÍJAK"
    assert hu.category_hint == "toll_hungary"
    assert hu.reference == "42U61K275M"
    assert hu.vat_strategy == "country_rate"
    assert hu.vat_amount == D("2.77")


def test_grouped_ledger_reads_net_vat_gross_triplets():
    de = parse_toll_text(GROUPED_LEDGER, rates=offline_rates()).transactions[3]

    assert de.vehicle_registration == "CJ01ABC"
    assert (de.net_amount, de.vat_amount, de.gross_amount) == (D("50.00"), D("9.50"), D("59.50"))
    assert de.vat_strategy == "gross_minus_net"
    assert de.product == "Tolls"


def test_grouped_ledger_amounts_are_euro_whatever_the_country():
    text = _text(
        """
        MAUT REPORT
        LKW-Kennzeichen: B16TFL
        HU 21.03.2025 ÚTDÍJAK 000490984032037 42U61K275M 48,3338,0610,27
        PL 22.03.2025 000490984032037 55,00
        """
    )

    hu, pl = parse_toll_text(text, rates=offline_rates()).transactions

    for tx in (hu, pl):
        assert tx.original_currency == "EUR"
        assert tx.rate_date is None
        assert tx.net_amount == tx.original_net
    assert hu.net_amount == D("10.27")
    assert pl.net_amount == D("55.00")
    assert pl.country_code == "PL"


# ---- fuel summary -------------------------------------------------------------------


def test_fuel_summary_sections_set_country_and_currency():
    result = parse_toll_text(FUEL_SUMMARY, rates=offline_rates())

    assert result.metadata.layout == "fuel_summary"
    diesel, adblue, ro = result.transactions

    assert diesel.transaction_at == datetime(2025, 3, 12, 8, 14)
    assert diesel.vehicle_registration == "B 16 TFL"
    assert diesel.product == "Diesel"
    assert (diesel.quantity, diesel.unit) == (D("50.00"), "L")
    assert (diesel.net_amount, diesel.vat_amount, diesel.gross_amount) == (
        D("75.00"),
        D("14.25"),
        D("89.25"),
    )
    assert diesel.category_hint == "fuel"
    assert adblue.product == "AdBlue"
    assert adblue.country_code == "DE"

    assert ro.country_code == "RO"
    assert ro.original_currency == "RON"
    assert ro.original_net == D("99.40")
    assert ro.vat_strategy == "country_rate"
    assert ro.net_amount == D("20.00")
    assert ro.gross_amount == D("23.80")


# ---- line invoice ---------------------------------------------------------------------


def test_line_invoice_lines_in_any_token_order():
    result = parse_toll_text(LINE_INVOICE, rates=offline_rates())

    assert result.metadata.layout == "line_invoice"
    assert result.metadata.skipped_count == 1
    parking, toll = result.transactions

    assert parking.transaction_at == datetime(2025, 3, 5, 14, 20)
    assert parking.vehicle_registration == "B-123-XYZ"
    assert parking.country_code == "AT"
    assert parking.product == "Parking Vienna"
    assert parking.vat_amount == D("2.00")

    assert toll.vehicle_registration == "CJ 01 ABC"
    assert toll.original_currency == "HUF"
    assert toll.vat_strategy == "gross_country_rate"
    assert toll.original_net == D("10000.00")
    assert toll.net_amount == D("25.32")
    assert toll.gross_amount == D("32.15")


# ---- layout selection -------------------------------------------------------------------


def test_signed_layout_without_lines_falls_through_to_the_next():
    text = "MAUT REPORT\n01.04.2025 B16TFL DE Tolls 100,00\n"

    result = parse_toll_text(text, rates=offline_rates())

    assert result.metadata.layout == "fuel_summary"


class _StubLayout:
    def __init__(self, name: str, rank: int, signature: str, parses: bool) -> None:
        self.name = name
        self.rank = rank
        self.signature = signature
        self.parses = parses

    def matches(self, text: str) -> bool:
        return self.signature in text

    def try_parse(self, text: str) -> LayoutResult | None:
        if not self.parses:
            return None
        line = TollLine(
            line_number=1,
            transaction_at=datetime(2025, 4, 1),
            vehicle="B16TFL",
            country="RO",
            net=D("10.00"),
        )
        return LayoutResult(self.name, lines=[line])


def test_candidate_layouts_put_signed_layouts_first():
    low = _StubLayout("low", 1, "zzz", parses=True)
    high = _StubLayout("high", 50, "SIGNED", parses=True)

    order = candidate_layouts("a SIGNED report", [low, high])

    assert [layout.name for layout in order] == ["high", "low"]
    assert [layout.name for layout in candidate_layouts("plain", LAYOUTS)] == [
        "grouped_ledger",
        "fuel_summary",
        "line_invoice",
    ]


def test_custom_layouts_are_tried_in_order():
    empty = _StubLayout("empty", 1, "X", parses=False)
    working = _StubLayout("working", 2, "Y", parses=True)

    result = parse_toll_text("X Y", rates=offline_rates(), layouts=[empty, working])

    assert result.metadata.layout == "working"
    assert result.transactions[0].original_currency == "RON"


def test_no_layout_recognizing_a_line_is_a_file_error():
    with pytest.raises(NoTransactionsError, match="grouped_ledger, fuel_summary, line_invoice"):
        parse_toll_text("Nothing to see here\n", rates=offline_rates())


def test_unreadable_pdf_is_rejected():
    with pytest.raises(UnsupportedFileError):
        extract_pdf_text(b"%PDF-1.4 truncated")


@pytest.mark.parametrize(
    "name, head, provider",
    [
        ("EW_Export_2025-03.csv", b"", Provider.PROVIDER_B),
        ("invoice-transactions-03.xlsx", b"PK\x03\x04", Provider.PROVIDER_A),
        ("Maut_Report_Q1.pdf", b"%PDF", Provider.TOLL),
        ("scan.bin", b"%PDF-1.7", Provider.TOLL),
        ("export.csv", b"a;b", Provider.PROVIDER_A),
    ],
)
def test_detect_provider(name, head, provider):
    assert detect_provider(name, head) is provider
