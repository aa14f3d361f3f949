"""Fuel purchases summarized by country, with itemized product lines.

Shape of the extracted text::

    Country: Germany (DE) Currency: EUR Total: 103,53
    12.03.2025 08:14 B 16 TFL Diesel 50,00 L 75,00 14,25 89,25
    13.03.2025 B16TFL AdBlue 10,00 L 12,00 2,28 14,28
    Tara: Romania (RO) Moneda: RON
    ...

A country header sets the country and currency for the item lines below it.
Item lines carry a date (optionally a time), the vehicle, the product, a
quantity with its unit, then one to three amounts: ``net vat gross``,
``net gross`` or a single net amount.
"""

from __future__ import annotations

import re
from decimal import Decimal

from ...logging_setup import get_logger
from ...models import SkippedRow
from ...rates.countries import get_country_code
from ...values import parse_date, parse_number
from ...vat import TOLERANCE
from .common import (
    DECIMAL_TOKEN_RE,
    DOTTED_DATE_RE,
    TIME_RE,
    LayoutResult,
    TollLine,
    leading_plate,
    text_lines,
    trailing_amounts,
)

_logger = get_logger("fuel_ledger.ingest.layouts.fuel_summary")

UNITS = ("L", "LTR", "KG", "PCS", "BUC", "STK", "KWH", "M3")

_COUNTRY_HEADER_RE = re.compile(
    r"^(?:Country|Land|Tara|Țara)\s*:\s*(?P<name>[^()]+?)\s*(?:\((?P<code>[A-Z]{2,3})\))?"
    r"(?:\s+(?:Currency|Währung|Moneda|Valuta)\s*:?\s*(?P<cur>[A-Z]{3}))?"
    r"(?:\s+(?:Total|Summe|Gesamt)\s*:?\s*(?P<total>-?\d(?:[\d.,]*\d)?))?$"
)
_SIGNATURE_RE = re.compile(r"^\s*(?:Country|Land|Tara|Țara)\s*:", re.MULTILINE)


class _Section:
    __slots__ = ("country", "currency", "stated_total", "lines")

    def __init__(self, country: str | None, currency: str | None, stated_total: Decimal | None):
        self.country = country
        self.currency = currency
        self.stated_total = stated_total
        self.lines: list[TollLine] = []

    def check_total(self) -> None:
        if self.stated_total is None or not self.lines:
            return
        items = sum(
            ((ln.gross if ln.gross is not None else ln.net) or Decimal("0") for ln in self.lines),
            Decimal("0"),
        )
        if abs(items - self.stated_total) > TOLERANCE:
            _logger.warning(
                "%s items add up to %s, summary states %s",
                self.country or "?",
                items,
                self.stated_total,
            )


def _split_item(tokens: list[str]) -> tuple[str | None, Decimal | None, str | None]:
    """Return ``(product, quantity, unit)`` from the tokens left of the amounts."""

    unit_index = next(
        (i for i in range(len(tokens) - 1, -1, -1) if tokens[i].upper() in UNITS), None
    )
    if unit_index is not None and unit_index > 0 and parse_number(tokens[unit_index - 1]) is not None:
        product = " ".join(tokens[: unit_index - 1]) or None
        return product, parse_number(tokens[unit_index - 1]), tokens[unit_index].upper()
    if tokens and DECIMAL_TOKEN_RE.match(tokens[-1]):
        return " ".join(tokens[:-1]) or None, parse_number(tokens[-1]), None
    return " ".join(tokens) or None, None, None


class FuelSummaryLayout:
    name = "fuel_summary"
    rank = 20

    def matches(self, text: str) -> bool:
        return bool(_SIGNATURE_RE.search(text))

    def _parse_item(self, number: int, line: str, section: _Section | None) -> TollLine | None:
        tokens = line.split()
        if not tokens or not DOTTED_DATE_RE.match(tokens[0]):
            return None
        stamp = tokens.pop(0)
        if tokens and TIME_RE.match(tokens[0]):
            stamp = f"{stamp} {tokens.pop(0)}"
        when = parse_date(stamp)
        if when is None:
            return None

        amounts = [parse_number(a) for a in trailing_amounts(tokens)]
        if not amounts or any(a is None for a in amounts):
            return None
        net = vat = gross = None
        if len(amounts) == 3:
            net, vat, gross = amounts
        elif len(amounts) == 2:
            net, gross = amounts
        else:
            net = amounts[0]

        vehicle, consumed = leading_plate(tokens)
        product, quantity, unit = _split_item(tokens[consumed:])
        return TollLine(
            line_number=number,
            transaction_at=when,
            vehicle=vehicle,
            country=section.country if section else None,
            net=net,
            vat=vat,
            gross=gross,
            product=product,
            category="fuel",
            quantity=quantity,
            unit=unit,
            currency=section.currency if section else None,
            text=line,
        )

    def try_parse(self, text: str) -> LayoutResult | None:
        result = LayoutResult(self.name)
        sections: list[_Section] = []
        section: _Section | None = None

        for number, line in text_lines(text):
            header = _COUNTRY_HEADER_RE.match(line)
            if header:
                country = get_country_code(header.group("code")) or get_country_code(header.group("name"))
                total = header.group("total")
                section = _Section(country, header.group("cur"), parse_number(total) if total else None)
                sections.append(section)
                continue

            if not DOTTED_DATE_RE.match(line.split(" ", 1)[0]):
                continue
            item = self._parse_item(number, line, section)
            if item is None:
                result.skipped.append(SkippedRow(number, f"unrecognized item line: {line!r}"))
                continue
            if section is not None:
                section.lines.append(item)
            result.lines.append(item)

        for s in sections:
            s.check_total()
        return result if result.lines else None


__all__ = ["UNITS", "FuelSummaryLayout"]
