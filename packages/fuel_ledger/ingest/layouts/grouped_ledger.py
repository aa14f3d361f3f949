"""Per-vehicle grouped toll ledger (e.g. "MAUT REPORT" exports).

Shape of the extracted text::

    LKW-Kennzeichen: B16TFL
    AT 29.03.2025 000490984032037 96,63
    HU 21.03.2025 ÚTDÍJAK 000490984032037 42U61K275M 48,3338,0610,27
    ...
    AT MwSt (20%) = 19,33

- A vehicle header opens a group; transaction lines below it inherit that
  vehicle until the next header, unless they carry a plate themselves.
- Transaction lines start with a country code (2 or 3 letters) and a
  ``DD.MM.YYYY`` date. The trailing amounts may be glued together; with one
  value it is the net amount, with several the net amount is the last one
  (the others are distance and unit price) unless the three values read as
  ``net, vat, gross``.
- Amounts are in the report currency (EUR) whatever the line country, unless
  a ``Währung:`` / ``Currency:`` line says otherwise.
- Lines do not state their own VAT. A per-country summary states the VAT
  total, which is distributed over that country's lines proportionally to
  their net amounts, the last line absorbing the rounding remainder.
"""

from __future__ import annotations

import re
from collections import defaultdict
from decimal import Decimal

from ...logging_setup import get_logger
from ...models import SkippedRow
from ...rates.countries import get_country_code
from ...values import parse_date, parse_number, round_money
from ...vat import TOLERANCE, VatResolution
from .common import (
    CARD_RE,
    DOTTED_DATE_RE,
    LayoutResult,
    TollLine,
    is_plate,
    is_product_word,
    leading_plate,
    product_category,
    split_amounts,
    text_lines,
)

_logger = get_logger("fuel_ledger.ingest.layouts.grouped_ledger")

SUMMARY_STRATEGY = "country_summary_share"
REPORT_CURRENCY = "EUR"

_VEHICLE_HEADER_RE = re.compile(
    r"(?:LKW-)?Kennzeichen\s*:\s*(?P<plate>.+)$|^(?:Vehicle|Fahrzeug)\s*:\s*(?P<plate2>.+)$",
    re.IGNORECASE,
)
_TX_START_RE = re.compile(r"^(?P<country>[A-Z]{2,3})\s+(?P<date>\d{2}\.\d{2}\.\d{4})\b\s*(?P<rest>.*)$")
_SUMMARY_RE = re.compile(
    r"^(?:(?P<country>[A-Z]{2,3})\b.*?)?"
    r"(?:MwSt|MWST|USt|VAT|TVA)\s*\(\s*(?P<rate>\d+(?:[.,]\d+)?)\s*%\s*\)\s*=?\s*"
    r"(?P<vat>-?\d(?:[\d.,]*\d)?)"
)
_SUMMARY_COUNTRY_RE = re.compile(r"^(?:Land|Country|Tara)\s*:?\s*(?P<country>[A-Za-z]{2,3})$")
_CURRENCY_RE = re.compile(r"(?:Währung|Currency|Valuta)\s*:\s*(?P<cur>[A-Z]{3})\b")
_IGNORED_MARKERS = (
    "Gesamtsumme",
    "Länder Gesamt",
    "Sachbearbeiter",
    "Seite",
    "MAUT REPORT",
    "Anlage zur Sammelrechnung",
)


def _plate(raw: str) -> str | None:
    tokens = raw.split()
    plate, _ = leading_plate(tokens)
    return plate or (tokens[0] if tokens else None)


def distribute_vat(lines: list[TollLine], vat_total: Decimal, rate: Decimal) -> None:
    """Spread ``vat_total`` over ``lines`` proportionally to net amounts.

    Every line but the last gets its rounded share; the last gets the
    remainder so the shares sum to ``vat_total`` exactly.
    """

    if not lines:
        return
    nets = [ln.net or Decimal("0") for ln in lines]
    net_total = sum(nets, Decimal("0"))
    allocated = Decimal("0.00")
    for i, (ln, net) in enumerate(zip(lines, nets, strict=True)):
        if i == len(lines) - 1:
            share = vat_total - allocated
        elif net_total:
            share = round_money(vat_total * net / net_total)
        else:
            share = round_money(vat_total / len(lines))
        allocated += share
        ln.vat = share
        ln.gross = net + share
        ln.resolution = VatResolution(
            net=net, vat=share, gross=net + share, rate=rate, strategy=SUMMARY_STRATEGY
        )


def _split_line_amounts(values: list[Decimal]) -> tuple[Decimal, Decimal | None, Decimal | None]:
    """Return ``(net, vat, gross)`` for the amounts at the end of a line."""

    if len(values) >= 3:
        a, b, c = values[-3:]
        if abs(a + b - c) <= TOLERANCE and c != 0:
            return a, b, c
    return values[-1], None, None


class GroupedLedgerLayout:
    name = "grouped_ledger"
    rank = 10

    def matches(self, text: str) -> bool:
        return "Kennzeichen" in text or "MAUT REPORT" in text

    def _parse_tx(
        self, number: int, line: str, current_vehicle: str | None, currency: str | None
    ) -> TollLine | None:
        m = _TX_START_RE.match(line)
        if not m or not DOTTED_DATE_RE.match(m.group("date")):
            return None
        country = get_country_code(m.group("country"))
        when = parse_date(m.group("date"))
        if country is None or when is None:
            return None

        tokens = m.group("rest").split()
        amounts: list[Decimal] = []
        while tokens:
            parts = split_amounts(tokens[-1])
            if parts is None:
                break
            tokens.pop()
            parsed = [parse_number(p) for p in parts]
            amounts[:0] = [p for p in parsed if p is not None]
        if not amounts:
            return None
        net, vat, gross = _split_line_amounts(amounts)

        vehicle = current_vehicle
        card = None
        product_words: list[str] = []
        route: list[str] = []
        for token in tokens:
            if CARD_RE.match(token):
                card = token
            elif is_plate(token) and not is_product_word(token):
                vehicle = token
            elif is_product_word(token) or (not product_words and not route and token.isalpha()):
                product_words.append(token)
            else:
                route.append(token)
        product = " ".join(product_words) or None
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
            card_number=card,
            route_info=" ".join(route) or None,
            currency=currency,
            text=line,
        )

    def try_parse(self, text: str) -> LayoutResult | None:
        result = LayoutResult(self.name)
        current_vehicle: str | None = None
        currency = REPORT_CURRENCY
        summary_country: str | None = None
        summaries: dict[str, tuple[Decimal, Decimal]] = {}

        for number, line in text_lines(text):
            cur = _CURRENCY_RE.search(line)
            if cur:
                currency = cur.group("cur")

            header = _VEHICLE_HEADER_RE.search(line)
            if header:
                current_vehicle = _plate(header.group("plate") or header.group("plate2") or "")
                continue

            summary = _SUMMARY_RE.search(line)
            if summary:
                code = get_country_code(summary.group("country")) or summary_country
                if code is None and result.lines:
                    code = result.lines[-1].country
                rate = parse_number(summary.group("rate"))
                vat_total = parse_number(summary.group("vat"))
                if code and rate is not None and vat_total is not None:
                    summaries[code] = (rate, round_money(vat_total))
                continue

            sc = _SUMMARY_COUNTRY_RE.match(line)
            if sc:
                summary_country = get_country_code(sc.group("country"))
                continue

            if any(marker in line for marker in _IGNORED_MARKERS):
                continue

            if not _TX_START_RE.match(line):
                continue
            parsed = self._parse_tx(number, line, current_vehicle, currency)
            if parsed is None:
                result.skipped.append(SkippedRow(number, f"unrecognized ledger line: {line!r}"))
                continue
            result.lines.append(parsed)

        by_country: dict[str, list[TollLine]] = defaultdict(list)
        for ln in result.lines:
            if ln.country:
                by_country[ln.country].append(ln)
        for code, (rate, vat_total) in summaries.items():
            lines = by_country.get(code)
            if not lines:
                _logger.debug("VAT summary for %s has no matching lines", code)
                continue
            distribute_vat(lines, vat_total, rate)
            _logger.debug("distributed %s VAT over %d %s lines", vat_total, len(lines), code)

        return result if result.lines else None


__all__ = ["REPORT_CURRENCY", "SUMMARY_STRATEGY", "GroupedLedgerLayout", "distribute_vat"]
