"""Shared assembly of :class:`NormalizedTransaction` records.

Every provider parser funnels rows through :class:`StatementBuilder`, which
owns the steps all providers share: resolving the origin-country currency,
running the VAT cascade, converting into the reporting currency, and keeping
the per-file skip list and metadata.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from ..errors import NoTransactionsError
from ..logging_setup import get_logger
from ..matching import match_key
from ..models import NormalizedTransaction, ParseMetadata, ParseResult, Provider, SkippedRow
from ..rates.countries import get_country_code, get_country_currency, get_vat_profile
from ..rates.service import ExchangeRateService, RateQuote
from ..vat import DEFAULT_CASCADE, VatInput, VatResolution, VatStrategy, resolve_vat
from ..values import round_money

_logger = get_logger("fuel_ledger.ingest.builder")

_TOLL_WORDS = ("toll", "taxa", "maut", "peaj", "vignet", "vinieta", "utdij", "pedaggio", "oplaty")


def expense_category(product: str | None, provider: Provider) -> str:
    """Downstream expense category: ``fuel``, ``toll`` or ``parking``."""

    text = (product or "").lower()
    if "park" in text:
        return "parking"
    if provider is Provider.TOLL or any(w in text for w in _TOLL_WORDS):
        return "toll"
    return "fuel"


def _currency_code(value: str | None) -> str | None:
    code = (value or "").strip().upper()
    return code if len(code) == 3 and code.isalpha() else None


def clean_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = " ".join(str(value).split())
    return text or None


class StatementBuilder:
    """Accumulates transactions and skipped rows for one file."""

    def __init__(self, provider: Provider, rates: ExchangeRateService) -> None:
        self.provider = provider
        self.rates = rates
        self.transactions: list[NormalizedTransaction] = []
        self.skipped: list[SkippedRow] = []
        self._quotes: dict[tuple[str, date], RateQuote] = {}

    @property
    def reporting_currency(self) -> str:
        return self.rates.reporting_currency

    def skip(self, row_number: int | None, reason: str) -> None:
        _logger.warning("row %s skipped: %s", row_number if row_number is not None else "?", reason)
        self.skipped.append(SkippedRow(row_number, reason))

    def origin_currency(
        self,
        country_code: str | None,
        currency_hint: str | None,
        *,
        stated: str | None = None,
    ) -> str:
        """Currency of the purchase.

        An explicit ``stated`` transaction currency wins; otherwise the
        country's local currency, then ``currency_hint`` (a billing currency),
        then the reporting currency.
        """

        explicit = _currency_code(stated)
        if explicit:
            return explicit
        local = get_country_currency(country_code)
        if local:
            return local
        return _currency_code(currency_hint) or self.reporting_currency

    def _quote(self, currency: str, on: date) -> RateQuote:
        key = (currency, on)
        quote = self._quotes.get(key)
        if quote is None:
            quote = self.rates.quote(currency, on)
            self._quotes[key] = quote
        return quote

    def add(
        self,
        *,
        row_number: int | None,
        transaction_at: datetime,
        vehicle: str | None,
        net: Decimal | None = None,
        gross: Decimal | None = None,
        vat: Decimal | None = None,
        country: str | None = None,
        currency_hint: str | None = None,
        currency: str | None = None,
        card_number: str | None = None,
        reference: str | None = None,
        product: str | None = None,
        category_hint: str | None = None,
        quantity: Decimal | None = None,
        unit: str | None = None,
        location: str | None = None,
        strategies: Sequence[VatStrategy] = DEFAULT_CASCADE,
        resolution: VatResolution | None = None,
        raw_record: Mapping[str, Any] | None = None,
    ) -> NormalizedTransaction:
        """Normalize one purchase and append it.

        Raises
        ------
        VatResolutionError
            When the row carries no amount at all.
        ExchangeRateError
            When no rate is available for the origin currency.
        """

        country_code = get_country_code(country)
        profile = get_vat_profile(country_code)
        currency = self.origin_currency(country_code, currency_hint, stated=currency)

        if resolution is None:
            resolution = resolve_vat(
                VatInput(
                    net=net,
                    gross=gross,
                    vat=vat,
                    country_rate=profile.rate if country_code else None,
                ),
                strategies,
            )

        quote = self._quote(currency, transaction_at.date())
        if quote.kind == "identity":
            net_r, gross_r = resolution.net, resolution.gross
        else:
            net_r = round_money(resolution.net / quote.rate)
            gross_r = round_money(resolution.gross / quote.rate)

        registration = clean_text(vehicle)
        tx = NormalizedTransaction(
            provider=self.provider,
            transaction_at=transaction_at,
            vehicle_registration=registration,
            vehicle_match_key=match_key(registration) or None,
            card_number=clean_text(card_number),
            reference=clean_text(reference),
            product=clean_text(product),
            category_hint=category_hint or expense_category(product, self.provider),
            quantity=quantity,
            unit=clean_text(unit),
            country_code=country_code,
            location=clean_text(location),
            original_currency=currency,
            original_net=resolution.net,
            original_gross=resolution.gross,
            original_vat=resolution.vat,
            vat_rate=resolution.rate,
            vat_refundable=profile.refundable,
            vat_strategy=resolution.strategy,
            needs_review=resolution.needs_review,
            reporting_currency=self.reporting_currency,
            net_amount=net_r,
            gross_amount=gross_r,
            # Derived so that gross == net + vat holds exactly after conversion.
            vat_amount=gross_r - net_r,
            exchange_rate=quote.rate,
            rate_date=quote.rate_date,
            source_row=row_number,
            raw_record=dict(raw_record or {}),
        )
        self.transactions.append(tx)
        return tx

    def metadata(self, *, layout: str | None = None) -> ParseMetadata:
        txs = self.transactions
        days = [t.transaction_at.date() for t in txs]
        vehicles = dict.fromkeys(t.vehicle_registration for t in txs if t.vehicle_registration)
        countries = dict.fromkeys(t.country_code for t in txs if t.country_code)
        return ParseMetadata(
            total_count=len(txs),
            reporting_currency=self.reporting_currency,
            reporting_total=sum((t.gross_amount for t in txs), Decimal("0.00")),
            period_start=min(days) if days else None,
            period_end=max(days) if days else None,
            vehicles=tuple(vehicles),
            countries=tuple(countries),
            skipped=tuple(self.skipped),
            layout=layout,
        )

    def result(self, *, layout: str | None = None) -> ParseResult:
        """Finish the file; zero transactions is a file-level failure."""

        if not self.transactions:
            detail = f" ({len(self.skipped)} rows skipped)" if self.skipped else ""
            raise NoTransactionsError(f"no transactions found in file{detail}")
        return ParseResult(transactions=tuple(self.transactions), metadata=self.metadata(layout=layout))


__all__ = ["StatementBuilder", "clean_text", "expense_category"]
