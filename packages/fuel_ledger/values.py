"""Locale-aware parsing of numbers and dates found in provider exports.

Both parsers return ``None`` for anything they cannot read. Callers decide
whether a missing value means "skip the field" or "skip the row"; nothing in
here raises on bad input.
"""

from __future__ import annotations

import re
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

_CENT = Decimal("0.01")

# Anything that is not a digit or a separator: whitespace (incl. NBSP),
# currency codes and symbols, percent signs, unit suffixes.
_NOISE_RE = re.compile(r"[^\d.,]")


def round_money(value: Decimal) -> Decimal:
    """Round to cents, half away from zero."""

    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def _is_negative(text: str) -> bool:
    for ch in text:
        if ch.isdigit():
            return False
        if ch == "-":
            return True
    return False


def parse_number(value: Any) -> Decimal | None:
    """Parse a number written with either European or US separators.

    Examples
    --------
    ``"1.234,56"`` and ``"1,234.56"`` both give ``Decimal("1234.56")``;
    ``"5.972.33"`` gives ``Decimal("5972.33")``; ``"1,234"`` gives
    ``Decimal("1234")`` while ``"12,5 EUR"`` gives ``Decimal("12.5")``.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        return Decimal(str(value))

    text = str(value).strip()
    if not text:
        return None
    negative = _is_negative(text)
    cleaned = _NOISE_RE.sub("", text)
    if not any(ch.isdigit() for ch in cleaned):
        return None

    dots = cleaned.count(".")
    commas = cleaned.count(",")
    if dots and commas:
        decimal_sep = "." if cleaned.rfind(".") > cleaned.rfind(",") else ","
        thousands_sep = "," if decimal_sep == "." else "."
        cleaned = cleaned.replace(thousands_sep, "")
        if cleaned.count(decimal_sep) > 1:
            return None
        cleaned = cleaned.replace(decimal_sep, ".")
    elif dots or commas:
        sep = "." if dots else ","
        head, _, tail = cleaned.rpartition(sep)
        head = head.replace(sep, "")
        thousands_group = len(tail) == 3 and head not in ("", "0")
        cleaned = head + tail if thousands_group else f"{head or '0'}.{tail or '0'}"

    try:
        number = Decimal(cleaned)
    except InvalidOperation:
        return None
    return -number if negative else number


_DMY_DOTTED = re.compile(
    r"^(\d{1,2})\.(\d{1,2})\.(\d{4})(?:[ T\-]+(\d{1,2}):(\d{2})(?::(\d{2}))?)?$"
)
_DMY_SLASH_COMPACT = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2})\s+(\d{2})(\d{2})$")
_DMY_SLASH = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2})\s+(\d{1,2}):(\d{2})$")
_YMD_TIME = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})[ T](\d{1,2}):(\d{2})(?::(\d{2}))?$")


def _build(
    year: int, month: int, day: int, hour: int = 0, minute: int = 0, second: int = 0
) -> datetime | None:
    try:
        return datetime(year, month, day, hour, minute, second)
    except ValueError:
        return None


def _ints(groups: tuple[str | None, ...]) -> list[int]:
    return [int(g) if g else 0 for g in groups]


def _from_iso(text: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC).replace(tzinfo=None)
    return parsed


def _from_dotted(text: str) -> datetime | None:
    m = _DMY_DOTTED.match(text)
    if not m:
        return None
    day, month, year, hour, minute, second = _ints(m.groups())
    return _build(year, month, day, hour, minute, second)


def _from_slash(pattern: re.Pattern[str], text: str) -> datetime | None:
    m = pattern.match(text)
    if not m:
        return None
    day, month, year, hour, minute = _ints(m.groups())
    return _build(2000 + year, month, day, hour, minute)


def _from_ymd(text: str) -> datetime | None:
    m = _YMD_TIME.match(text)
    if not m:
        return None
    year, month, day, hour, minute, second = _ints(m.groups())
    return _build(year, month, day, hour, minute, second)


_DATE_PARSERS = (
    _from_iso,
    _from_dotted,
    lambda t: _from_slash(_DMY_SLASH_COMPACT, t),
    lambda t: _from_slash(_DMY_SLASH, t),
    _from_ymd,
)


def parse_date(value: Any) -> datetime | None:
    """Parse a timestamp from a cell value.

    Accepts ``datetime``/``date`` objects (as produced by spreadsheet readers)
    and strings in these formats, tried in order: ISO 8601,
    ``DD.MM.YYYY[ HH:MM[:SS]]``, ``DD/MM/YY HHMM``, ``DD/MM/YY HH:MM`` and
    ``YYYY-MM-DD HH:MM[:SS]``. Timezone-aware values are normalized to naive
    UTC.
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(UTC).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    text = " ".join(str(value).split())
    if not text:
        return None
    for parser in _DATE_PARSERS:
        parsed = parser(text)
        if parsed is not None:
            return parsed
    return None


__all__ = ["parse_date", "parse_number", "round_money"]
