from __future__ import annotations

from decimal import Decimal

import pytest

from fuel_ledger.errors import VatResolutionError
from fuel_ledger.vat import (
    GROSS_NET_CASCADE,
    VatInput,
    calculate_vat,
    effective_rate,
    resolve_vat,
    stated_vat,
)

D = Decimal


def test_gross_minus_net_wins_when_both_amounts_are_present():
    res = resolve_vat(VatInput(net=D("100"), gross=D("119"), country_rate=D("27")))
    assert res.strategy == "gross_minus_net"
    assert (res.net, res.vat, res.gross) == (D("100.00"), D("19.00"), D("119.00"))
    assert res.rate == D("19.00")
    assert not res.needs_review


def test_gross_equal_to_net_means_zero_vat():
    res = resolve_vat(VatInput(net=D("50"), gross=D("50")))
    assert res.strategy == "gross_minus_net"
    assert res.vat == D("0.00")
    assert res.rate == D("0")


def test_stated_vat_backfills_gross():
    res = resolve_vat(VatInput(net=D("100"), vat=D("20")))
    assert res.strategy == "stated_vat"
    assert res.gross == D("120.00")
    assert not res.needs_review


def test_stated_vat_flags_a_contradicting_gross():
    res = stated_vat(VatInput(net=D("100"), vat=D("20"), gross=D("125")))
    assert res is not None
    assert res.gross == D("120")
    assert res.needs_review


def test_country_rate_applies_standard_rate_to_net():
    res = resolve_vat(VatInput(net=D("96.63"), country_rate=D("20")))
    assert res.strategy == "country_rate"
    assert res.vat == D("19.33")
    assert res.gross == D("115.96")
    assert res.rate == D("20")


def test_swapped_columns_are_corrected_and_flagged():
    res = resolve_vat(VatInput(net=D("119"), gross=D("100")), GROSS_NET_CASCADE)
    assert res.strategy == "swapped_gross_net"
    assert (res.net, res.vat, res.gross) == (D("100.00"), D("19.00"), D("119.00"))
    assert res.needs_review


def test_gross_only_back_calculates_net_from_country_rate():
    res = resolve_vat(VatInput(gross=D("119"), country_rate=D("19")))
    assert res.strategy == "gross_country_rate"
    assert res.net == D("100.00")
    assert res.vat == D("19.00")


def test_single_amount_without_country_has_no_vat():
    res = resolve_vat(VatInput(net=D("42.10")))
    assert res.strategy == "no_vat"
    assert res.vat == D("0.00")
    assert res.gross == D("42.10")


def test_no_amount_at_all_is_an_error():
    with pytest.raises(VatResolutionError):
        resolve_vat(VatInput(country_rate=D("19")))


@pytest.mark.parametrize(
    "inp",
    [
        VatInput(net=D("10.005"), gross=D("11.999")),
        VatInput(net=D("33.33"), country_rate=D("19")),
        VatInput(gross=D("1.01"), country_rate=D("27")),
        VatInput(net=D("7.77"), vat=D("1.11")),
        VatInput(net=D("5"), gross=D("4.5")),
    ],
)
def test_every_resolution_balances_exactly(inp):
    res = resolve_vat(inp)
    assert res.gross == res.net + res.vat


def test_calculate_vat():
    assert calculate_vat(D("119"), D("100")) == (D("19.00"), D("19.00"))
    assert calculate_vat(None, D("100")) == (D("0.00"), D("0.00"))
    assert calculate_vat(D("90"), D("100")) == (D("0.00"), D("0.00"))


def test_effective_rate_of_zero_net_is_zero():
    assert effective_rate(D("0"), D("5")) == D("0")
