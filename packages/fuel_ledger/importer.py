"""Batch import of a provider statement.

Flow for one file:

1. parse into candidate transactions (file-level errors abort here);
2. drop candidates already stored for the company (all duplicates aborts);
3. create the batch in ``processing`` state;
4. match vehicles against a registry snapshot taken once for the run;
5. insert in chunks, each inside its own SAVEPOINT;
6. finalize the batch as ``partial`` (some unmatched) or ``completed``.

Nothing is committed here; callers wrap the call in a session scope. A
file-level failure therefore never leaves a batch behind.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace

from sqlalchemy.orm import Session

from .duplicates import filter_duplicates
from .errors import DuplicateImportError
from .ingest.columns import HeaderVariantConfig
from .ingest.utils import detect_provider, parse_statement
from .logging_setup import get_logger, statement_context
from .matching import VehicleMatcher, load_fleet_registry
from .models import (
    BatchStatus,
    ImportResult,
    NormalizedTransaction,
    ParseMetadata,
    ParseResult,
    Provider,
    TransactionStatus,
    VehicleRecord,
)
from .persistence import DEFAULT_CHUNK_SIZE, create_batch, finalize_batch, insert_transactions
from .rates.service import ExchangeRateService

_logger = get_logger("fuel_ledger.importer")


def _batch_notes(metadata: ParseMetadata, duplicates: int, failed: int) -> str:
    parts = []
    if metadata.vehicles:
        parts.append("Vehicles: " + ", ".join(metadata.vehicles))
    if metadata.countries:
        parts.append("Countries: " + ", ".join(metadata.countries))
    if metadata.layout:
        parts.append(f"Layout: {metadata.layout}")
    if metadata.skipped_count:
        parts.append(f"Rows skipped: {metadata.skipped_count}")
    if duplicates:
        parts.append(f"Duplicates skipped: {duplicates}")
    if failed:
        parts.append(f"Failed inserts: {failed}")
    return "; ".join(parts)


def assign_vehicles(
    transactions: Sequence[NormalizedTransaction], matcher: VehicleMatcher
) -> list[NormalizedTransaction]:
    """Return copies with ``vehicle_id`` and ``matched``/``unmatched`` status set."""

    out: list[NormalizedTransaction] = []
    for tx in transactions:
        vehicle_id = matcher.match(tx.vehicle_registration)
        status = TransactionStatus.MATCHED if vehicle_id else TransactionStatus.UNMATCHED
        out.append(replace(tx, vehicle_id=vehicle_id, status=status))
    return out


def import_parsed(
    session: Session,
    parsed: ParseResult,
    *,
    company_id: str,
    provider: Provider,
    file_name: str,
    registry: Sequence[VehicleRecord] | None = None,
    imported_by: str | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> ImportResult:
    """Persist an already parsed statement as a new batch.

    Raises
    ------
    DuplicateImportError
        When every candidate already exists for the company.
    """

    fresh, duplicates = filter_duplicates(
        session, company_id=company_id, candidates=parsed.transactions
    )
    if not fresh:
        raise DuplicateImportError(duplicates)

    metadata = parsed.metadata
    batch = create_batch(
        session,
        company_id=company_id,
        provider=str(provider),
        file_name=file_name,
        currency_code=metadata.reporting_currency,
        imported_by=imported_by,
    )

    if registry is None:
        registry = load_fleet_registry(session, company_id=company_id)
    matched = assign_vehicles(fresh, VehicleMatcher(registry))

    persisted, failed = insert_transactions(
        session,
        company_id=company_id,
        batch_id=batch.id,
        transactions=matched,
        chunk_size=chunk_size,
    )
    finalize_batch(
        session,
        batch,
        persisted=persisted,
        skipped_rows=metadata.skipped_count,
        duplicates_skipped=duplicates,
        notes=_batch_notes(metadata, duplicates, failed),
    )
    _logger.info(
        "batch %s: %d persisted (%d matched), %d duplicates, %d skipped rows, %d failed",
        batch.id,
        batch.total_transactions,
        batch.matched_transactions,
        duplicates,
        metadata.skipped_count,
        failed,
    )
    return ImportResult(
        batch_id=batch.id,
        provider=provider,
        status=BatchStatus(batch.status),
        total_transactions=batch.total_transactions,
        matched_transactions=batch.matched_transactions,
        unmatched_transactions=batch.unmatched_transactions,
        skipped_rows=batch.skipped_rows,
        duplicates_skipped=duplicates,
        failed_inserts=failed,
        total_amount=batch.total_amount,
        reporting_currency=metadata.reporting_currency,
        period_start=batch.period_start,
        period_end=batch.period_end,
    )


def import_statement(
    session: Session,
    *,
    company_id: str,
    file_name: str,
    file_bytes: bytes,
    rates: ExchangeRateService,
    provider: Provider | str | None = None,
    registry: Sequence[VehicleRecord] | None = None,
    imported_by: str | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    header_variants: HeaderVariantConfig | None = None,
) -> ImportResult:
    """Parse ``file_bytes`` and import it for ``company_id``.

    ``provider`` is detected from the file name and content when omitted.

    Raises
    ------
    StatementFormatError
        For unreadable files, missing required columns or zero transactions.
    DuplicateImportError
        When the file holds nothing new.
    """

    with statement_context(file_name):
        resolved = Provider(provider) if provider else detect_provider(file_name, file_bytes)
        parsed = parse_statement(
            file_bytes, resolved, rates=rates, header_variants=header_variants
        )
        return import_parsed(
            session,
            parsed,
            company_id=company_id,
            provider=resolved,
            file_name=file_name,
            registry=registry,
            imported_by=imported_by,
            chunk_size=chunk_size,
        )


__all__ = ["assign_vehicles", "import_parsed", "import_statement"]
