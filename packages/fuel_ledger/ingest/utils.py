"""Ingest entry points shared by the CLI and the importer.

Provider detection works off the file name first and the file's leading bytes
second: any PDF is a toll report; spreadsheets fall back to provider A, the
most common export.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import PurePath

from ..models import ParseResult, Provider
from ..rates.service import ExchangeRateService
from .adapters.provider_a_sheet import parse_provider_a
from .adapters.provider_b_sheet import parse_provider_b
from .adapters.toll_pdf import parse_toll_pdf
from .columns import HeaderVariantConfig

type StatementParser = Callable[..., ParseResult]

_PARSERS: dict[Provider, StatementParser] = {
    Provider.PROVIDER_A: parse_provider_a,
    Provider.PROVIDER_B: parse_provider_b,
    Provider.TOLL: parse_toll_pdf,
}

_NAME_HINTS: tuple[tuple[tuple[str, ...], Provider], ...] = (
    (("ew_export", "eurowag"), Provider.PROVIDER_B),
    (("invoice-transactions", "dkv"), Provider.PROVIDER_A),
    (("maut", "verag"), Provider.TOLL),
)


def detect_provider(file_name: str, file_bytes: bytes = b"") -> Provider:
    """Guess the provider of an export from its name and content."""

    name = PurePath(file_name).name.lower()
    for needles, provider in _NAME_HINTS:
        if any(n in name for n in needles):
            return provider
    if name.endswith(".pdf") or file_bytes.startswith(b"%PDF"):
        return Provider.TOLL
    return Provider.PROVIDER_A


def get_parser(provider: Provider | str) -> StatementParser:
    return _PARSERS[Provider(provider)]


def parse_statement(
    file_bytes: bytes,
    provider: Provider | str,
    *,
    rates: ExchangeRateService,
    header_variants: HeaderVariantConfig | None = None,
) -> ParseResult:
    """Parse ``file_bytes`` with the parser registered for ``provider``.

    ``header_variants`` applies to the spreadsheet providers only.
    """

    resolved = Provider(provider)
    parser = get_parser(resolved)
    if resolved is Provider.TOLL or header_variants is None:
        return parser(file_bytes, rates=rates)
    return parser(file_bytes, rates=rates, header_variants=header_variants)


__all__ = ["StatementParser", "detect_provider", "get_parser", "parse_statement"]
