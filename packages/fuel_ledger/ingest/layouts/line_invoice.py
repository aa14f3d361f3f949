"""Generic per-line invoice: one purchase per text line.

Each line starts with a date (``DD.MM.YYYY``, ``DD/MM/YYYY`` or
``YYYY-MM-DD``, optionally followed by a time) and ends with one to three
amounts: ``net vat gross``, ``net gross`` or a single gross amount. In between
may appear a plate, a country code, a currency code and a free-text
description, in any order.
"""

from __future__ import annotations

import re
from datetime import datetime

from ...models import SkippedRow
from ...rates.countries import COUNTRY_CURRENCY, get_country_code
from ...values import parse_date, parse_number
from .common import (
    TIME_RE,
    LayoutResult,
    TollLine,
    is_plate,
    leading_plate,
    product_category,
    text_lines,
    trailing_amounts,
)

_DATE_RE = re.compile(r"^(?:\d{2}\.\d{2}\.\d{4}|\d{2}/\d{2}/\d{4}|\d{4}-\d{2}-\d{2})$")
_SIGNATURE_RE = re.compile(r"\b(?:Invoice|Rechnung|Factura|Facture)\b", re.IGNORECASE)
_CURRENCIES = frozenset(COUNTRY_CURRENCY.values()) | {"EUR", "USD", "GBP", "CHF"}


def _parse_stamp(tokens: list[str]) -> datetime | None:
    stamp = tokens.pop(0)
    if "/" in stamp:
        day, month, year = stamp.split("/")
        stamp = f"{year}-{month}-{day}"
    if tokens and TIME_RE.match(tokens[0]):
        stamp = f"{stamp} {tokens.pop(0)}"
    return parse_date(stamp)


class LineInvoiceLayout:
    name = "line_invoice"
    rank = 30

    def matches(self, text: str) -> bool:
        return bool(_SIGNATURE_RE.search(text))

    def _parse_line(self, number: int, line: str) -> TollLine | None:
        tokens = line.split()
        when = _parse_stamp(tokens)
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
            gross = amounts[0]

        vehicle = country = currency = None
        words: list[str] = []
        i = 0
        while i < len(tokens):
            token = tokens[i]
            if vehicle is None:
                plate, consumed = leading_plate(tokens[i:])
                if plate is not None and (consumed > 1 or is_plate(token)):
                    vehicle = plate
                    i += consumed
                    continue
            if currency is None and token in _CURRENCIES:
                currency = token
            elif country is None and token.isalpha() and token.isupper() and get_country_code(token):
                country = get_country_code(token)
            else:
                words.append(token)
            i += 1

        product = " ".join(words) or None
        return TollLine(
            line_number=number,
            transaction_at=when,
            vehicle=vehicle,
            country=country,
            net=net,
            vat=vat,
            gross=gross,
            product=product,
            category=product_category(product, country),
            currency=currency,
            text=line,
        )

    def try_parse(self, text: str) -> LayoutResult | None:
        result = LayoutResult(self.name)
        for number, line in text_lines(text):
            if not _DATE_RE.match(line.split(" ", 1)[0]):
                continue
            parsed = self._parse_line(number, line)
            if parsed is None:
                result.skipped.append(SkippedRow(number, f"unrecognized invoice line: {line!r}"))
                continue
            result.lines.append(parsed)
        return result if result.lines else None


__all__ = ["LineInvoiceLayout"]
