"""Data models shared by the parsers, the importer and the bulk actions.

Provider parsers emit :class:`NormalizedTransaction` records; everything
downstream (dedup, vehicle matching, persistence) consumes them without
knowing which provider produced them.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any, NamedTuple


class Provider(StrEnum):
    PROVIDER_A = "provider_a"
    PROVIDER_B = "provider_b"
    TOLL = "toll_provider"


class TransactionStatus(StrEnum):
    PENDING = "pending"
    MATCHED = "matched"
    UNMATCHED = "unmatched"
    CREATED_EXPENSE = "created_expense"
    IGNORED = "ignored"


class BatchStatus(StrEnum):
    PROCESSING = "processing"
    PARTIAL = "partial"
    COMPLETED = "completed"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


@dataclass(frozen=True, slots=True)
class RawRow:
    """One source row: cell values in file order plus the header labels.

    ``row_number`` is 1-based and counts from the top of the sheet (or the
    line number for PDF text), so it can be quoted back to an operator.
    """

    row_number: int
    headers: tuple[str, ...]
    cells: tuple[Any, ...]

    def cell(self, index: int | None) -> Any:
        if index is None or index >= len(self.cells):
            return None
        return self.cells[index]

    def as_record(self) -> dict[str, Any]:
        """Return a JSON-friendly ``{header: value}`` mapping for auditing."""

        record: dict[str, Any] = {}
        for i, value in enumerate(self.cells):
            label = self.headers[i] if i < len(self.headers) and self.headers[i] else f"col_{i}"
            if value is None or value == "":
                continue
            record.setdefault(label, _jsonable(value))
        return record


@dataclass(frozen=True, slots=True)
class NormalizedTransaction:
    """A fuel/toll purchase in canonical form.

    ``original_*`` amounts are in ``original_currency`` (the currency of the
    country where the purchase happened). ``net_amount``/``gross_amount``/
    ``vat_amount`` are in ``reporting_currency``. ``rate_date`` is the ISO date
    of the rate that was applied, ``"fallback"`` for the static table, or
    ``None`` when no conversion was needed.
    """

    provider: Provider
    transaction_at: datetime
    vehicle_registration: str | None
    vehicle_match_key: str | None
    card_number: str | None
    reference: str | None
    product: str | None
    category_hint: str | None
    quantity: Decimal | None
    unit: str | None
    country_code: str | None
    location: str | None
    original_currency: str
    original_net: Decimal
    original_gross: Decimal
    original_vat: Decimal
    vat_rate: Decimal
    vat_refundable: bool
    vat_strategy: str
    needs_review: bool
    reporting_currency: str
    net_amount: Decimal
    gross_amount: Decimal
    vat_amount: Decimal
    exchange_rate: Decimal
    rate_date: str | None
    vehicle_id: str | None = None
    status: TransactionStatus = TransactionStatus.PENDING
    source_row: int | None = None
    raw_record: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class SkippedRow:
    row_number: int | None
    reason: str


@dataclass(frozen=True, slots=True)
class ParseMetadata:
    total_count: int
    reporting_currency: str
    reporting_total: Decimal
    period_start: date | None
    period_end: date | None
    vehicles: tuple[str, ...]
    countries: tuple[str, ...]
    skipped: tuple[SkippedRow, ...] = ()
    layout: str | None = None

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


@dataclass(frozen=True, slots=True)
class ParseResult:
    transactions: Sequence[NormalizedTransaction]
    metadata: ParseMetadata


# ---------------------------------------------------------------------------
# Import and actions
# ---------------------------------------------------------------------------


class VehicleRecord(NamedTuple):
    """Fleet registry snapshot entry."""

    vehicle_id: str
    registration_number: str


@dataclass(frozen=True, slots=True)
class ImportResult:
    batch_id: str
    provider: Provider
    status: BatchStatus
    total_transactions: int
    matched_transactions: int
    unmatched_transactions: int
    skipped_rows: int
    duplicates_skipped: int
    failed_inserts: int
    total_amount: Decimal
    reporting_currency: str
    period_start: date | None
    period_end: date | None


@dataclass(frozen=True, slots=True)
class ActionOutcome:
    transaction_id: str
    ok: bool
    error: str | None = None
    expense_id: str | None = None


@dataclass(frozen=True, slots=True)
class BulkActionResult:
    outcomes: tuple[ActionOutcome, ...]

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)


__all__ = [
    "ActionOutcome",
    "BatchStatus",
    "BulkActionResult",
    "ImportResult",
    "NormalizedTransaction",
    "ParseMetadata",
    "ParseResult",
    "Provider",
    "RawRow",
    "SkippedRow",
    "TransactionStatus",
    "VehicleRecord",
]
