from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from fuel_ledger.values import parse_date, parse_number, round_money


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1.234,56", Decimal("1234.56")),
        ("1,234.56", Decimal("1234.56")),
        ("5.972.33", Decimal("5972.33")),
        ("1,234", Decimal("1234")),
        ("12,5 EUR", Decimal("12.5")),
        ("96,63", Decimal("96.63")),
        ("-48,33", Decimal("-48.33")),
        (" 1 234,00 ", Decimal("1234.00")),
        (12, Decimal(12)),
        (1.5, Decimal("1.5")),
    ],
)
def test_parse_number_accepts_both_separator_styles(raw, expected):
    assert parse_number(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   ", "n/a", True, float("nan")])
def test_parse_number_returns_none_for_unreadable_values(raw):
    assert parse_number(raw) is None


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2025-03-29 10:15", datetime(2025, 3, 29, 10, 15)),
        ("2025-03-29T10:15:30", datetime(2025, 3, 29, 10, 15, 30)),
        ("29.03.2025 10:15", datetime(2025, 3, 29, 10, 15)),
        ("29.03.2025", datetime(2025, 3, 29)),
        ("29/03/25 1015", datetime(2025, 3, 29, 10, 15)),
        ("29/03/25 10:15", datetime(2025, 3, 29, 10, 15)),
        (date(2025, 3, 29), datetime(2025, 3, 29)),
    ],
)
def test_parse_date_formats(raw, expected):
    assert parse_date(raw) == expected


def test_parse_date_normalizes_aware_values_to_naive_utc():
    aware = datetime(2025, 3, 29, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    assert parse_date(aware) == datetime(2025, 3, 29, 10, 0)
    assert parse_date("2025-03-29T12:00:00+02:00") == datetime(2025, 3, 29, 10, 0)


@pytest.mark.parametrize("raw", [None, "", "garbage", "31.02.2025", "2025/03/29"])
def test_parse_date_returns_none_for_unreadable_values(raw):
    assert parse_date(raw) is None


def test_round_money_rounds_half_away_from_zero():
    assert round_money(Decimal("2.345")) == Decimal("2.35")
    assert round_money(Decimal("-2.345")) == Decimal("-2.35")
    assert round_money(Decimal("2.344")) == Decimal("2.34")
