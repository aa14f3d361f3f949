"""Operator actions and queries on imported transactions and batches.

Status transitions allowed here::

    pending | unmatched | matched  --match-->           matched
    matched                        --create_expense-->  created_expense
    any but created_expense        --ignore-->          ignored

``created_expense`` is terminal. Bulk variants run every item inside its own
SAVEPOINT and report one :class:`ActionOutcome` per id, so a failing item
never undoes the others. Nothing here commits; the caller owns the session.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from math import ceil
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fleet_db.models.fuel import FleetVehicle, FuelImportBatch, FuelTransaction

from .errors import FuelLedgerError, TransactionNotFoundError, TransactionStateError
from .expenses import ExpenseDraft, ExpenseSink, SqlExpenseSink
from .logging_setup import get_logger
from .models import ActionOutcome, BulkActionResult, Provider, TransactionStatus
from .values import round_money

_logger = get_logger("fuel_ledger.actions")

_PROCESSED = (str(TransactionStatus.CREATED_EXPENSE), str(TransactionStatus.IGNORED))
_MATCHABLE = (
    str(TransactionStatus.PENDING),
    str(TransactionStatus.UNMATCHED),
    str(TransactionStatus.MATCHED),
)


@dataclass(frozen=True, slots=True)
class Page:
    items: list[Any]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return ceil(self.total / self.limit) if self.limit else 0


@dataclass(frozen=True, slots=True)
class TransactionFilters:
    """Filters for :func:`list_transactions`.

    ``hide_processed`` drops ``created_expense`` and ``ignored`` rows unless a
    specific ``status`` is requested.
    """

    batch_id: str | None = None
    vehicle_id: str | None = None
    status: TransactionStatus | None = None
    provider: Provider | None = None
    hide_processed: bool = True
    page: int = 1
    limit: int = 50


@dataclass(frozen=True, slots=True)
class BatchStatusSummary:
    batch_id: str
    file_name: str
    status: str
    counts: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class TransactionSummary:
    total_transactions: int
    counts: dict[str, int]
    total_value: Decimal
    pending_value: Decimal


# ---------------------------------------------------------------------------
# Single-transaction operations
# ---------------------------------------------------------------------------


def get_transaction(session: Session, *, company_id: str, transaction_id: str) -> FuelTransaction:
    tx = session.execute(
        select(FuelTransaction).where(
            FuelTransaction.id == transaction_id, FuelTransaction.company_id == company_id
        )
    ).scalar_one_or_none()
    if tx is None:
        raise TransactionNotFoundError(f"transaction {transaction_id} not found")
    return tx


def match_transaction(
    session: Session, *, company_id: str, transaction_id: str, vehicle_id: str
) -> FuelTransaction:
    """Assign a vehicle by hand; the transaction becomes ``matched``.

    Raises
    ------
    TransactionNotFoundError
        Unknown transaction for the company.
    TransactionStateError
        The transaction is already promoted or ignored.
    ValueError
        The vehicle does not belong to the company.
    """

    tx = get_transaction(session, company_id=company_id, transaction_id=transaction_id)
    if tx.status not in _MATCHABLE:
        raise TransactionStateError(f"cannot match a transaction in status {tx.status}")
    owner = session.execute(
        select(FleetVehicle.company_id).where(FleetVehicle.id == vehicle_id)
    ).scalar_one_or_none()
    if owner != company_id:
        raise ValueError(f"vehicle {vehicle_id} does not belong to company {company_id}")

    tx.vehicle_id = vehicle_id
    tx.status = str(TransactionStatus.MATCHED)
    tx.matched_at = func.now()
    tx.updated_at = func.now()
    session.flush()
    return tx


def ignore_transaction(
    session: Session, *, company_id: str, transaction_id: str, notes: str | None = None
) -> FuelTransaction:
    """Mark a transaction ``ignored``; promoted transactions are refused."""

    tx = get_transaction(session, company_id=company_id, transaction_id=transaction_id)
    if tx.status == TransactionStatus.CREATED_EXPENSE:
        raise TransactionStateError("Already processed: an expense exists for this transaction")
    tx.status = str(TransactionStatus.IGNORED)
    tx.notes = notes
    tx.updated_at = func.now()
    session.flush()
    return tx


def create_expense(
    session: Session,
    *,
    company_id: str,
    transaction_id: str,
    trip_id: str | None = None,
    sink: ExpenseSink | None = None,
) -> str:
    """Promote a matched transaction to an expense and return the expense id.

    Raises
    ------
    TransactionStateError
        The transaction is not ``matched`` (including when an expense was
        already created for it).
    """

    tx = get_transaction(session, company_id=company_id, transaction_id=transaction_id)
    if tx.status == TransactionStatus.CREATED_EXPENSE:
        raise TransactionStateError("Expense already created for this transaction")
    if tx.status != TransactionStatus.MATCHED:
        raise TransactionStateError(
            f"only matched transactions can become expenses (status: {tx.status})"
        )

    draft = ExpenseDraft.from_transaction(tx, trip_id=trip_id)
    # Claim the transaction before the ledger write so a failed update never
    # leaves an expense behind.
    tx.status = str(TransactionStatus.CREATED_EXPENSE)
    tx.updated_at = func.now()
    session.flush()

    expense_id = (sink or SqlExpenseSink(session)).record(draft)
    tx.expense_id = expense_id
    session.flush()
    return expense_id


# ---------------------------------------------------------------------------
# Bulk operations
# ---------------------------------------------------------------------------


def _for_each(
    session: Session, ids: Sequence[str], action: Callable[[str], str | None]
) -> BulkActionResult:
    outcomes: list[ActionOutcome] = []
    for transaction_id in ids:
        try:
            with session.begin_nested():
                expense_id = action(transaction_id)
        except (FuelLedgerError, SQLAlchemyError) as e:
            _logger.warning("transaction %s: %s", transaction_id, e)
            outcomes.append(ActionOutcome(transaction_id, ok=False, error=str(e)))
            continue
        outcomes.append(ActionOutcome(transaction_id, ok=True, expense_id=expense_id))
    return BulkActionResult(tuple(outcomes))


def bulk_ignore(
    session: Session,
    *,
    company_id: str,
    transaction_ids: Sequence[str],
    notes: str | None = None,
) -> BulkActionResult:
    def ignore(transaction_id: str) -> None:
        ignore_transaction(
            session,
            company_id=company_id,
            transaction_id=transaction_id,
            notes=notes or "Bulk ignored",
        )

    return _for_each(session, transaction_ids, ignore)


def bulk_create_expenses(
    session: Session,
    *,
    company_id: str,
    transaction_ids: Sequence[str],
    trip_id: str | None = None,
    sink: ExpenseSink | None = None,
) -> BulkActionResult:
    def promote(transaction_id: str) -> str:
        return create_expense(
            session,
            company_id=company_id,
            transaction_id=transaction_id,
            trip_id=trip_id,
            sink=sink,
        )

    result = _for_each(session, transaction_ids, promote)
    _logger.info("created %d expenses, %d failed", result.succeeded, result.failed)
    return result


# ---------------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------------


def _get_batch(session: Session, *, company_id: str, batch_id: str) -> FuelImportBatch:
    batch = session.execute(
        select(FuelImportBatch).where(
            FuelImportBatch.id == batch_id, FuelImportBatch.company_id == company_id
        )
    ).scalar_one_or_none()
    if batch is None:
        raise TransactionNotFoundError(f"batch {batch_id} not found")
    return batch


def _status_counts(session: Session, *conditions: Any) -> dict[str, int]:
    counts = {str(s): 0 for s in TransactionStatus}
    rows = session.execute(
        select(FuelTransaction.status, func.count())
        .where(*conditions)
        .group_by(FuelTransaction.status)
    ).all()
    for status, n in rows:
        counts[status] = n
    return counts


def list_batches(
    session: Session,
    *,
    company_id: str,
    provider: Provider | str | None = None,
    page: int = 1,
    limit: int = 20,
) -> Page:
    """Newest batches first."""

    conditions = [FuelImportBatch.company_id == company_id]
    if provider:
        conditions.append(FuelImportBatch.provider == str(Provider(provider)))
    total = session.execute(
        select(func.count()).select_from(FuelImportBatch).where(*conditions)
    ).scalar_one()
    items = list(
        session.execute(
            select(FuelImportBatch)
            .where(*conditions)
            .order_by(FuelImportBatch.created_at.desc(), FuelImportBatch.id)
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars()
    )
    return Page(items=items, total=total, page=page, limit=limit)


def get_batch_status_summary(
    session: Session, *, company_id: str, batch_id: str
) -> BatchStatusSummary:
    """Live per-status counts of a batch's transactions."""

    batch = _get_batch(session, company_id=company_id, batch_id=batch_id)
    return BatchStatusSummary(
        batch_id=batch.id,
        file_name=batch.file_name,
        status=batch.status,
        counts=_status_counts(session, FuelTransaction.batch_id == batch.id),
    )


def delete_batch(session: Session, *, company_id: str, batch_id: str) -> int:
    """Delete a batch and its transactions; returns the number of transactions removed."""

    batch = _get_batch(session, company_id=company_id, batch_id=batch_id)
    removed = session.execute(
        select(func.count())
        .select_from(FuelTransaction)
        .where(FuelTransaction.batch_id == batch.id)
    ).scalar_one()
    session.delete(batch)
    session.flush()
    _logger.info("deleted batch %s with %d transactions", batch_id, removed)
    return removed


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


def list_transactions(
    session: Session, *, company_id: str, filters: TransactionFilters | None = None
) -> Page:
    """Most recent transactions first."""

    f = filters or TransactionFilters()
    conditions: list[Any] = [FuelTransaction.company_id == company_id]
    if f.batch_id:
        conditions.append(FuelTransaction.batch_id == f.batch_id)
    if f.vehicle_id:
        conditions.append(FuelTransaction.vehicle_id == f.vehicle_id)
    if f.provider:
        conditions.append(FuelTransaction.provider == str(Provider(f.provider)))
    if f.status:
        conditions.append(FuelTransaction.status == str(TransactionStatus(f.status)))
    elif f.hide_processed:
        conditions.append(FuelTransaction.status.not_in(_PROCESSED))

    total = session.execute(
        select(func.count()).select_from(FuelTransaction).where(*conditions)
    ).scalar_one()
    items = list(
        session.execute(
            select(FuelTransaction)
            .where(*conditions)
            .order_by(FuelTransaction.transaction_at.desc(), FuelTransaction.id)
            .offset((f.page - 1) * f.limit)
            .limit(f.limit)
        ).scalars()
    )
    return Page(items=items, total=total, page=f.page, limit=f.limit)


def summarize_transactions(
    session: Session, *, company_id: str, provider: Provider | str | None = None
) -> TransactionSummary:
    """Counts per status plus total and still-pending net value (reporting currency).

    Pending value covers everything not yet promoted or ignored.
    """

    conditions: list[Any] = [FuelTransaction.company_id == company_id]
    if provider:
        conditions.append(FuelTransaction.provider == str(Provider(provider)))

    counts = _status_counts(session, *conditions)
    total_value = session.execute(
        select(func.coalesce(func.sum(FuelTransaction.net_amount), 0)).where(*conditions)
    ).scalar_one()
    pending_value = session.execute(
        select(func.coalesce(func.sum(FuelTransaction.net_amount), 0)).where(
            *conditions, FuelTransaction.status.not_in(_PROCESSED)
        )
    ).scalar_one()
    return TransactionSummary(
        total_transactions=sum(counts.values()),
        counts=counts,
        total_value=round_money(Decimal(str(total_value))),
        pending_value=round_money(Decimal(str(pending_value))),
    )


__all__ = [
    "BatchStatusSummary",
    "Page",
    "TransactionFilters",
    "TransactionSummary",
    "bulk_create_expenses",
    "bulk_ignore",
    "create_expense",
    "delete_batch",
    "get_batch_status_summary",
    "get_transaction",
    "ignore_transaction",
    "list_batches",
    "list_transactions",
    "match_transaction",
    "summarize_transactions",
]
