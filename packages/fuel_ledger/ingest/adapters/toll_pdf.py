"""Adapter for the toll provider's PDF reports.

The PDF is reduced to plain text with pypdf and handed to the layout
grammars in :mod:`fuel_ledger.ingest.layouts`. Grammars are tried in
:func:`candidate_layouts` order until one recognizes at least one line; when
none does, the file fails with :class:`NoTransactionsError`.

Amounts are in the report's stated currency when it prints one, otherwise in
the currency of the line's country.
"""

from __future__ import annotations

import io
from collections.abc import Sequence

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from ...errors import ExchangeRateError, NoTransactionsError, UnsupportedFileError, VatResolutionError
from ...logging_setup import get_logger
from ...models import ParseResult, Provider
from ...rates.service import ExchangeRateService
from ..builder import StatementBuilder
from ..layouts import LAYOUTS, LayoutGrammar, LayoutResult, candidate_layouts

_logger = get_logger("fuel_ledger.ingest.adapters.toll_pdf")


def extract_pdf_text(file_bytes: bytes) -> str:
    """Concatenated text of every page, one page after another."""

    try:
        reader = PdfReader(io.BytesIO(file_bytes))
        pages = [(page.extract_text() or "") for page in reader.pages]
    except (PyPdfError, ValueError, OSError) as e:
        raise UnsupportedFileError(f"cannot read PDF: {e}") from e
    text = "\n".join(pages).replace("\xa0", " ").replace(" ", " ")
    _logger.debug("extracted %d characters from %d pages", len(text), len(pages))
    return text


def _select_layout(text: str, layouts: Sequence[LayoutGrammar]) -> LayoutResult:
    tried: list[str] = []
    for layout in candidate_layouts(text, layouts):
        tried.append(layout.name)
        parsed = layout.try_parse(text)
        if parsed is not None and parsed.lines:
            _logger.info("toll report parsed with layout %s (%d lines)", layout.name, len(parsed.lines))
            return parsed
        _logger.debug("layout %s recognized no lines", layout.name)
    raise NoTransactionsError(f"no transactions found with any layout (tried: {', '.join(tried)})")


def parse_toll_text(
    text: str,
    *,
    rates: ExchangeRateService,
    layouts: Sequence[LayoutGrammar] = LAYOUTS,
) -> ParseResult:
    """Parse extracted report text.

    Raises
    ------
    NoTransactionsError
        When no layout recognizes a line, or every recognized line fails to
        normalize.
    """

    parsed = _select_layout(text, layouts)
    builder = StatementBuilder(Provider.TOLL, rates)
    for skipped in parsed.skipped:
        builder.skip(skipped.row_number, skipped.reason)

    for line in parsed.lines:
        try:
            builder.add(
                row_number=line.line_number,
                transaction_at=line.transaction_at,
                vehicle=line.vehicle,
                net=line.net,
                gross=line.gross,
                vat=line.vat,
                country=line.country,
                currency=line.currency,
                card_number=line.card_number,
                reference=line.route_info,
                product=line.product,
                category_hint=line.category,
                quantity=line.quantity,
                unit=line.unit,
                resolution=line.resolution,
                raw_record={"line": line.text, "layout": parsed.layout},
            )
        except (VatResolutionError, ExchangeRateError) as e:
            builder.skip(line.line_number, str(e))

    return builder.result(layout=parsed.layout)


def parse_toll_pdf(
    file_bytes: bytes,
    *,
    rates: ExchangeRateService,
    layouts: Sequence[LayoutGrammar] = LAYOUTS,
) -> ParseResult:
    """Parse a toll PDF report."""

    return parse_toll_text(extract_pdf_text(file_bytes), rates=rates, layouts=layouts)


__all__ = ["extract_pdf_text", "parse_toll_pdf", "parse_toll_text"]
