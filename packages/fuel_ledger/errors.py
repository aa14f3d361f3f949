"""Exception taxonomy for statement ingestion.

File-level failures (``StatementFormatError`` and ``DuplicateImportError``)
abort an import before any batch is written. Row-level problems never surface
as exceptions to callers of the importer; parsers catch them, count the row as
skipped and continue.
"""

from __future__ import annotations

from collections.abc import Sequence


class FuelLedgerError(Exception):
    """Base class for all errors raised by ``fuel_ledger``."""


class StatementFormatError(FuelLedgerError, ValueError):
    """The file cannot be read as a statement of the expected provider."""


class MissingColumnsError(StatementFormatError):
    def __init__(self, missing: Sequence[str], found: Sequence[str]) -> None:
        self.missing = list(missing)
        self.found = list(found)
        super().__init__(
            "Missing required columns: "
            + ", ".join(self.missing)
            + ". Found headers: "
            + ", ".join(h for h in self.found if h)
        )


class NoTransactionsError(StatementFormatError):
    """Parsing finished without producing a single transaction."""


class UnsupportedFileError(StatementFormatError):
    """The bytes are not a spreadsheet, CSV or PDF we can open."""


class DuplicateImportError(FuelLedgerError):
    def __init__(self, duplicates: int) -> None:
        self.duplicates = duplicates
        super().__init__(
            f"All {duplicates} transactions already exist in the database. "
            "No new data to import."
        )


class ExchangeRateError(FuelLedgerError):
    """No usable rate for the requested currency."""


class RateSourceError(ExchangeRateError):
    """The rate feed is unreachable or returned something unparseable."""


class VatResolutionError(FuelLedgerError):
    """None of the VAT strategies could be applied to a row."""


class TransactionStateError(FuelLedgerError):
    """The requested status transition is not allowed."""


class TransactionNotFoundError(FuelLedgerError):
    pass


__all__ = [
    "DuplicateImportError",
    "ExchangeRateError",
    "FuelLedgerError",
    "MissingColumnsError",
    "NoTransactionsError",
    "RateSourceError",
    "StatementFormatError",
    "TransactionNotFoundError",
    "TransactionStateError",
    "UnsupportedFileError",
    "VatResolutionError",
]
