"""Building blocks shared by the toll-report layout grammars."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Protocol

from ...models import SkippedRow
from ...vat import VatResolution

# Amount tokens as printed in the reports: "1.234,56" or "96,63". PDF text
# extraction may glue adjacent columns together ("48,3338,0610,27"), so
# amounts are found by scanning, never by splitting on whitespace alone.
AMOUNT_RE = re.compile(r"\d{1,3}(?:\.\d{3})+,\d{2}|\d+,\d{2}")
_AMOUNT_RUN_RE = re.compile(rf"-?(?:{AMOUNT_RE.pattern})+")

PLATE_RE = re.compile(r"^[A-Z]{1,3}-?\d{2,4}-?[A-Z]{1,3}$")
CARD_RE = re.compile(r"^\d{10,}$")
DOTTED_DATE_RE = re.compile(r"^\d{2}\.\d{2}\.\d{4}$")
TIME_RE = re.compile(r"^\d{1,2}:\d{2}(?::\d{2})?$")
# A single amount with either separator style: "1.234,56", "1,234.56", "12.00".
DECIMAL_TOKEN_RE = re.compile(r"^-?(?:\d{1,3}(?:[.,]\d{3})+|\d+)[.,]\d{2}$")

# Product descriptors printed on toll lines -> category code. Checked in
# order; more specific entries come before their prefixes.
TOLL_PRODUCTS: tuple[tuple[str, str], ...] = (
    ("ÚTDÍJAK", "toll_hungary"),
    ("PEDAGGIO BG", "toll_bulgaria"),
    ("OPLATY DROGOWE", "toll_poland"),
    ("TOLLS STALEXPORT", "toll_poland_motorway"),
    ("Tolls Postpay", "toll_czech"),
    ("TOLLS MOTORWAY", "toll_motorway_fr"),
    ("TOLLS TUNNEL", "toll_tunnel"),
    ("Toll HR", "toll_croatia"),
    ("Eurovignette", "vignette_eu"),
    ("Vignette", "vignette"),
    ("Maut SVN Postpay", "toll_slovenia"),
    ("PARKS DK TRUCKS", "parking"),
    ("CONDITION OF USE", "adjustment"),
    ("Deposit Postpay", "deposit"),
    ("Rounding", "rounding"),
    ("Fee for PLOSE BOX", "equipment_fee"),
    ("Costi ETOLL", "etoll_fee"),
    ("Tolls", "toll_generic"),
)

_COUNTRY_DEFAULT_CATEGORY = {"AT": "toll_austria", "DE": "toll_germany", "FR": "toll_france"}


def product_category(product: str | None, country_code: str | None) -> str:
    """Category code for a toll product descriptor."""

    if not product or not product.strip():
        return _COUNTRY_DEFAULT_CATEGORY.get(country_code or "", "toll_generic")
    for key, category in TOLL_PRODUCTS:
        if key in product:
            return category
    return "toll_other"


def is_product_word(token: str) -> bool:
    return any(token in key.split() for key, _ in TOLL_PRODUCTS)


def split_amounts(token: str) -> list[str] | None:
    """Split a run of glued amounts, left to right.

    ``"48,3338,0610,27"`` gives ``["48,33", "38,06", "10,27"]``. Returns
    ``None`` when ``token`` is not made up entirely of amounts.
    """

    if not _AMOUNT_RUN_RE.fullmatch(token):
        return None
    negative = token.startswith("-")
    parts = AMOUNT_RE.findall(token.lstrip("-"))
    if negative and parts:
        parts[0] = "-" + parts[0]
    return parts


def trailing_amounts(tokens: list[str], max_count: int = 3) -> list[str]:
    """Pop up to ``max_count`` amount tokens off the end of ``tokens``.

    Returns them in line order; ``tokens`` is shortened in place.
    """

    found: list[str] = []
    while tokens and len(found) < max_count and DECIMAL_TOKEN_RE.match(tokens[-1]):
        found.insert(0, tokens.pop())
    return found


def is_plate(token: str) -> bool:
    return bool(PLATE_RE.match(token))


def leading_plate(tokens: list[str], max_tokens: int = 3) -> tuple[str | None, int]:
    """Longest prefix of up to ``max_tokens`` tokens that reads as a plate.

    Returns ``(plate, tokens_consumed)``; ``(None, 0)`` when none does.
    """

    for n in range(min(max_tokens, len(tokens)), 0, -1):
        candidate = "".join(tokens[:n])
        if is_plate(candidate):
            return " ".join(tokens[:n]), n
    return None, 0


@dataclass(slots=True)
class TollLine:
    """A transaction line recognized by a layout grammar.

    ``resolution`` is set when the grammar already knows the final VAT split
    (e.g. from a per-country summary); otherwise the builder derives it from
    ``net``/``vat``/``gross``.
    """

    line_number: int
    transaction_at: datetime
    vehicle: str | None
    country: str | None
    net: Decimal | None
    vat: Decimal | None = None
    gross: Decimal | None = None
    product: str | None = None
    category: str | None = None
    card_number: str | None = None
    route_info: str | None = None
    quantity: Decimal | None = None
    unit: str | None = None
    currency: str | None = None
    resolution: VatResolution | None = None
    text: str = ""


@dataclass(slots=True)
class LayoutResult:
    layout: str
    lines: list[TollLine] = field(default_factory=list)
    skipped: list[SkippedRow] = field(default_factory=list)


class LayoutGrammar(Protocol):
    name: str
    rank: int

    def matches(self, text: str) -> bool:
        """True when ``text`` carries this layout's signature substrings."""
        ...

    def try_parse(self, text: str) -> LayoutResult | None:
        """Parse ``text``; ``None`` or an empty result means "not this layout"."""
        ...


def text_lines(text: str) -> list[tuple[int, str]]:
    """Non-empty, whitespace-collapsed lines with 1-based line numbers."""

    out: list[tuple[int, str]] = []
    for number, line in enumerate(text.splitlines(), start=1):
        collapsed = " ".join(line.split())
        if collapsed:
            out.append((number, collapsed))
    return out


__all__ = [
    "AMOUNT_RE",
    "CARD_RE",
    "DECIMAL_TOKEN_RE",
    "DOTTED_DATE_RE",
    "PLATE_RE",
    "TIME_RE",
    "TOLL_PRODUCTS",
    "LayoutGrammar",
    "LayoutResult",
    "TollLine",
    "is_plate",
    "is_product_word",
    "leading_plate",
    "product_category",
    "split_amounts",
    "text_lines",
    "trailing_amounts",
]
