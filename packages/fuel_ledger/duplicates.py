"""Duplicate detection against previously imported transactions.

A candidate is a duplicate when a transaction of the same company already
exists with the same timestamp, vehicle registration (as read) and net
reporting amount. Only rows inside the candidates' date window are loaded.

There is no lock between the lookup here and the insert done by the
importer; two concurrent imports of overlapping files can both pass.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from fleet_db.models.fuel import FuelTransaction

from .logging_setup import get_logger
from .models import NormalizedTransaction

_logger = get_logger("fuel_ledger.duplicates")

type DedupKey = tuple[str, str, str]


def dedup_key(
    transaction_at: datetime, vehicle_registration: str | None, net_amount: Decimal
) -> DedupKey:
    """``(timestamp, vehicle, net)`` with each part in a canonical string form."""

    return (
        transaction_at.replace(tzinfo=None).isoformat(),
        (vehicle_registration or "").strip(),
        f"{Decimal(net_amount):.2f}",
    )


def key_for(tx: NormalizedTransaction) -> DedupKey:
    return dedup_key(tx.transaction_at, tx.vehicle_registration, tx.net_amount)


def existing_keys(
    session: Session,
    *,
    company_id: str,
    start: datetime,
    end: datetime,
) -> set[DedupKey]:
    """Dedup keys of the company's stored transactions between ``start`` and ``end``.

    The window is widened to whole days so timestamps at either edge are
    included.
    """

    lower = datetime.combine(start.date(), time.min)
    upper = datetime.combine(end.date() + timedelta(days=1), time.min)
    rows = session.execute(
        select(
            FuelTransaction.transaction_at,
            FuelTransaction.vehicle_registration,
            FuelTransaction.net_amount,
        ).where(
            FuelTransaction.company_id == company_id,
            FuelTransaction.transaction_at >= lower,
            FuelTransaction.transaction_at < upper,
        )
    ).all()
    return {dedup_key(r[0], r[1], r[2]) for r in rows}


def filter_duplicates(
    session: Session,
    *,
    company_id: str,
    candidates: Sequence[NormalizedTransaction],
) -> tuple[list[NormalizedTransaction], int]:
    """Return ``(new_transactions, duplicates_skipped)``.

    Candidates that repeat each other within the same file are kept; only
    matches against stored rows are dropped.
    """

    if not candidates:
        return [], 0
    stamps = [tx.transaction_at for tx in candidates]
    known = existing_keys(session, company_id=company_id, start=min(stamps), end=max(stamps))
    fresh = [tx for tx in candidates if key_for(tx) not in known]
    skipped = len(candidates) - len(fresh)
    if skipped:
        _logger.info("%d of %d transactions already imported", skipped, len(candidates))
    return fresh, skipped


__all__ = ["DedupKey", "dedup_key", "existing_keys", "filter_duplicates", "key_for"]
