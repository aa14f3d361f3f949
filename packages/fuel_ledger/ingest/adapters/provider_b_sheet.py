"""Adapter for the second card provider's spreadsheet export (provider B).

Amounts are in the stated transaction currency (falling back to the country's
currency). Net and gross are both reliably present, so VAT is their
difference. Some exports carry the two columns swapped; those rows are
corrected and flagged for review instead of being stored with negative VAT.
"""

from __future__ import annotations

from ...errors import ExchangeRateError, VatResolutionError
from ...models import ParseResult, Provider
from ...rates.service import ExchangeRateService
from ...values import parse_date, parse_number
from ...vat import GROSS_NET_CASCADE
from ..builder import StatementBuilder, clean_text
from ..columns import HeaderVariantConfig, default_header_variants
from ..tabular import Table, read_rows

DEFAULT_UNIT = "LTR"


def parse_provider_b(
    file_bytes: bytes,
    *,
    rates: ExchangeRateService,
    header_variants: HeaderVariantConfig | None = None,
) -> ParseResult:
    """Parse a provider B export (``.xlsx`` or delimited text)."""

    columns = (header_variants or default_header_variants()).for_provider(Provider.PROVIDER_B)
    table = Table(read_rows(file_bytes), columns)
    builder = StatementBuilder(Provider.PROVIDER_B, rates)

    for row_number, row in table.data_rows():
        raw = table.raw(row_number, row)

        def value(field: str):
            return table.value(raw, field)

        transaction_at = parse_date(value("DATETIME"))
        if transaction_at is None:
            builder.skip(row_number, f"unparseable date {value('DATETIME')!r}")
            continue

        net = parse_number(value("NET_AMOUNT"))
        gross = parse_number(value("GROSS_AMOUNT"))
        if net is None and gross is None:
            builder.skip(row_number, "unparseable amount")
            continue

        product = clean_text(value("PRODUCT")) or clean_text(value("SERVICE"))
        try:
            builder.add(
                row_number=row_number,
                transaction_at=transaction_at,
                vehicle=value("REGISTRATION"),
                net=net,
                gross=gross,
                country=clean_text(value("COUNTRY")),
                currency=clean_text(value("CURRENCY")),
                card_number=value("CARD") or value("OBU_ID"),
                product=product,
                quantity=parse_number(value("QUANTITY")),
                unit=clean_text(value("UNIT")) or DEFAULT_UNIT,
                location=value("LOCATION"),
                strategies=GROSS_NET_CASCADE,
                raw_record=raw.as_record(),
            )
        except (VatResolutionError, ExchangeRateError) as e:
            builder.skip(row_number, str(e))

    return builder.result()


__all__ = ["parse_provider_b"]
