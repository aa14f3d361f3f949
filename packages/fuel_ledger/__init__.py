"""Public interface for the ``fuel_ledger`` package.

Fuel and toll statements from several providers are parsed into normalized,
VAT-annotated transactions in one reporting currency, imported as batches,
matched to fleet vehicles and finally promoted to expenses or ignored.

Only symbol re-exports live here.
"""

from __future__ import annotations

from .actions import (
    bulk_create_expenses,
    bulk_ignore,
    create_expense,
    delete_batch,
    get_batch_status_summary,
    ignore_transaction,
    list_batches,
    list_transactions,
    match_transaction,
    summarize_transactions,
)
from .config import Settings
from .errors import (
    DuplicateImportError,
    ExchangeRateError,
    FuelLedgerError,
    MissingColumnsError,
    NoTransactionsError,
    StatementFormatError,
    TransactionNotFoundError,
    TransactionStateError,
    UnsupportedFileError,
    VatResolutionError,
)
from .importer import import_statement
from .ingest.utils import detect_provider, parse_statement
from .models import (
    BatchStatus,
    ImportResult,
    NormalizedTransaction,
    ParseResult,
    Provider,
    TransactionStatus,
)
from .rates.service import ExchangeRateService

__all__ = [
    "BatchStatus",
    "DuplicateImportError",
    "ExchangeRateError",
    "ExchangeRateService",
    "FuelLedgerError",
    "ImportResult",
    "MissingColumnsError",
    "NoTransactionsError",
    "NormalizedTransaction",
    "ParseResult",
    "Provider",
    "Settings",
    "StatementFormatError",
    "TransactionNotFoundError",
    "TransactionStateError",
    "TransactionStatus",
    "UnsupportedFileError",
    "VatResolutionError",
    "bulk_create_expenses",
    "bulk_ignore",
    "create_expense",
    "delete_batch",
    "detect_provider",
    "get_batch_status_summary",
    "ignore_transaction",
    "import_statement",
    "list_batches",
    "list_transactions",
    "match_transaction",
    "parse_statement",
    "summarize_transactions",
]
