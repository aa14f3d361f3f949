"""Persistence of normalized transactions and import batches.

Functions here write to the tables owned by ``libs/db`` (``fleet_db``). They
never commit; the caller owns the unit of work. Inserts are chunked, and each
chunk runs inside a SAVEPOINT so a failing chunk is rolled back on its own
while earlier chunks stay in the session.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fleet_db.models.fuel import FuelImportBatch, FuelTransaction

from .logging_setup import get_logger
from .models import BatchStatus, NormalizedTransaction

_logger = get_logger("fuel_ledger.persistence")

DEFAULT_CHUNK_SIZE = 100


def _to_decimal(raw: Any, places: str = "0.01") -> Decimal | None:
    if raw is None:
        return None
    try:
        d = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return None
    return d.quantize(Decimal(places), rounding=ROUND_HALF_UP)


def transaction_row(
    tx: NormalizedTransaction, *, company_id: str, batch_id: str
) -> FuelTransaction:
    """Build the ORM row for ``tx``."""

    return FuelTransaction(
        company_id=company_id,
        batch_id=batch_id,
        provider=str(tx.provider),
        transaction_at=tx.transaction_at,
        vehicle_registration=tx.vehicle_registration,
        vehicle_match_key=tx.vehicle_match_key,
        card_number=tx.card_number,
        reference=tx.reference,
        product=tx.product,
        category_hint=tx.category_hint,
        quantity=_to_decimal(tx.quantity, "0.001"),
        unit=tx.unit,
        country_code=tx.country_code,
        location=tx.location,
        original_currency=tx.original_currency,
        original_net=_to_decimal(tx.original_net),
        original_gross=_to_decimal(tx.original_gross),
        original_vat=_to_decimal(tx.original_vat),
        vat_rate=_to_decimal(tx.vat_rate),
        vat_refundable=tx.vat_refundable,
        vat_strategy=tx.vat_strategy,
        needs_review=tx.needs_review,
        reporting_currency=tx.reporting_currency,
        net_amount=_to_decimal(tx.net_amount),
        gross_amount=_to_decimal(tx.gross_amount),
        vat_amount=_to_decimal(tx.vat_amount),
        exchange_rate=_to_decimal(tx.exchange_rate, "0.000001"),
        rate_date=tx.rate_date,
        vehicle_id=tx.vehicle_id,
        status=str(tx.status),
        matched_at=func.now() if tx.vehicle_id else None,
        raw_record=dict(tx.raw_record),
    )


def _chunks(
    items: Sequence[NormalizedTransaction], size: int
) -> Iterable[Sequence[NormalizedTransaction]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def insert_transactions(
    session: Session,
    *,
    company_id: str,
    batch_id: str,
    transactions: Sequence[NormalizedTransaction],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> tuple[list[NormalizedTransaction], int]:
    """Insert ``transactions`` in chunks of ``chunk_size``.

    Returns
    -------
    tuple
        ``(persisted, failed)``: the transactions whose chunk was flushed
        successfully, and the number of transactions lost to failing chunks.
        A failing chunk is logged and skipped; later chunks still run.
    """

    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    persisted: list[NormalizedTransaction] = []
    failed = 0
    for index, chunk in enumerate(_chunks(transactions, chunk_size)):
        try:
            with session.begin_nested():
                session.add_all(
                    transaction_row(tx, company_id=company_id, batch_id=batch_id) for tx in chunk
                )
                session.flush()
        except SQLAlchemyError:
            failed += len(chunk)
            _logger.exception(
                "chunk %d (%d transactions) of batch %s failed to insert",
                index,
                len(chunk),
                batch_id,
            )
            continue
        persisted.extend(chunk)
    return persisted, failed


def create_batch(
    session: Session,
    *,
    company_id: str,
    provider: str,
    file_name: str,
    currency_code: str,
    imported_by: str | None = None,
) -> FuelImportBatch:
    """Insert a batch in ``processing`` state and flush to obtain its id."""

    batch = FuelImportBatch(
        company_id=company_id,
        provider=provider,
        file_name=file_name,
        status=str(BatchStatus.PROCESSING),
        currency_code=currency_code,
        imported_by=imported_by,
    )
    session.add(batch)
    session.flush()
    return batch


def finalize_batch(
    session: Session,
    batch: FuelImportBatch,
    *,
    persisted: Sequence[NormalizedTransaction],
    skipped_rows: int,
    duplicates_skipped: int,
    notes: str | None = None,
) -> FuelImportBatch:
    """Write final counts computed from the rows that were actually persisted."""

    matched = sum(1 for tx in persisted if tx.vehicle_id)
    unmatched = len(persisted) - matched
    days = [tx.transaction_at.date() for tx in persisted]
    batch.total_transactions = len(persisted)
    batch.matched_transactions = matched
    batch.unmatched_transactions = unmatched
    batch.skipped_rows = skipped_rows
    batch.duplicates_skipped = duplicates_skipped
    batch.total_amount = sum((tx.gross_amount for tx in persisted), Decimal("0.00"))
    batch.period_start = min(days) if days else None
    batch.period_end = max(days) if days else None
    batch.status = str(BatchStatus.PARTIAL if unmatched else BatchStatus.COMPLETED)
    batch.notes = notes
    batch.updated_at = func.now()
    session.flush()
    return batch


__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "create_batch",
    "finalize_batch",
    "insert_transactions",
    "transaction_row",
]
