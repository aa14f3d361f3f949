"""Adapter for the card provider's per-transaction spreadsheet (provider A).

Header wording comes in Romanian, English or German (see the ``provider_a``
table in ``seeds/header_variants.v1.json``). Required columns:
``TRANSACTION_TIME``, ``VEHICLE_REGISTRATION``, ``QUANTITY`` and
``NET_PURCHASE_VALUE``.

Amount semantics:
- ``NET_PURCHASE_VALUE`` is in the currency of the country of service, which
  is what gets converted. ``PAYMENT_CURRENCY`` is the billing currency and is
  only used when the country is unknown.
- VAT is rarely present; the cascade usually lands on the country rate.
"""

from __future__ import annotations

from ...errors import ExchangeRateError, VatResolutionError
from ...models import ParseResult, Provider
from ...rates.service import ExchangeRateService
from ...values import parse_date, parse_number
from ..builder import StatementBuilder, clean_text
from ..columns import HeaderVariantConfig, default_header_variants
from ..tabular import Table, read_rows

DEFAULT_UNIT = "L"


def _location(name: str | None, city: str | None) -> str | None:
    parts = [p for p in (name, city) if p]
    return ", ".join(parts) if parts else None


def parse_provider_a(
    file_bytes: bytes,
    *,
    rates: ExchangeRateService,
    header_variants: HeaderVariantConfig | None = None,
) -> ParseResult:
    """Parse a provider A export (``.xlsx`` or ``;``/``,`` CSV).

    Raises
    ------
    MissingColumnsError
        When a required column is not found in the header row.
    NoTransactionsError
        When no data row could be parsed.
    """

    columns = (header_variants or default_header_variants()).for_provider(Provider.PROVIDER_A)
    table = Table(read_rows(file_bytes), columns)
    builder = StatementBuilder(Provider.PROVIDER_A, rates)

    for row_number, row in table.data_rows():
        raw = table.raw(row_number, row)

        def value(field: str):
            return table.value(raw, field)

        transaction_at = parse_date(value("TRANSACTION_TIME"))
        if transaction_at is None:
            builder.skip(row_number, f"unparseable transaction time {value('TRANSACTION_TIME')!r}")
            continue

        net = parse_number(value("NET_PURCHASE_VALUE"))
        if net is None:
            base = parse_number(value("NET_BASE_VALUE"))
            fee = parse_number(value("NET_SERVICE_FEE"))
            if base is not None:
                net = base + (fee or 0)
        gross = parse_number(value("GROSS_AMOUNT"))
        if net is None and gross is None:
            builder.skip(row_number, "unparseable amount")
            continue

        product = clean_text(value("GOODS_TYPE")) or clean_text(value("PRODUCT_GROUP"))
        try:
            builder.add(
                row_number=row_number,
                transaction_at=transaction_at,
                vehicle=value("VEHICLE_REGISTRATION"),
                net=net,
                gross=gross,
                vat=parse_number(value("VAT_AMOUNT")),
                country=clean_text(value("COUNTRY")),
                currency_hint=clean_text(value("PAYMENT_CURRENCY")),
                card_number=value("CARD_NUMBER"),
                reference=value("TRANSACTION_NUMBER"),
                product=product,
                quantity=parse_number(value("QUANTITY")),
                unit=clean_text(value("UNIT")) or DEFAULT_UNIT,
                location=_location(clean_text(value("STATION_NAME")), clean_text(value("STATION_CITY"))),
                raw_record=raw.as_record(),
            )
        except (VatResolutionError, ExchangeRateError) as e:
            builder.skip(row_number, str(e))

    return builder.result()


__all__ = ["parse_provider_a"]
