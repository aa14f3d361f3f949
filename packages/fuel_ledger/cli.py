"""CLI for the ``fuel_ledger`` package.

This module exposes callable command handlers (``cmd_parse``,
``cmd_import`` ...) and a Typer-based console interface on top of them.
Environment variables (``DATABASE_URL`` and the ``FUEL_LEDGER_*`` settings)
are loaded from a local ``.env`` using ``python-dotenv`` before any command
runs. Output is tab-separated plain text on stdout; errors go to stderr and
yield exit status 1.
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from typer.models import ArgumentInfo, OptionInfo

from .config import Settings
from .errors import DuplicateImportError, FuelLedgerError, StatementFormatError
from .logging_setup import configure_logging, statement_context
from .models import Provider


def _err(message: str) -> int:
    print(message, file=sys.stderr)
    return 1


def _load_settings(database_url: str | None = None) -> Settings:
    settings = Settings.from_env()
    if database_url:
        settings = settings.model_copy(update={"database_url": database_url})
    return settings


def _read_file(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def _fmt(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    return str(value)


# ---- Command handlers ---------------------------------------------------------


def cmd_parse(path: str, *, provider: str | None = None, offline: bool = False) -> int:
    """Parse a statement and print normalized rows; nothing is stored.

    One line per transaction::

        <timestamp> <vehicle> <country> <currency> <original gross>
        <net> <vat> <gross> <rate date> <vat strategy>

    followed by a ``#`` summary line.
    """

    from .api import build_rate_service, header_variants_for
    from .ingest.utils import detect_provider, parse_statement

    try:
        settings = _load_settings()
        file_bytes = _read_file(path)
        resolved = Provider(provider) if provider else detect_provider(path, file_bytes)
        with statement_context(Path(path).name):
            parsed = parse_statement(
                file_bytes,
                resolved,
                rates=build_rate_service(settings, offline=offline),
                header_variants=header_variants_for(settings),
            )
    except FileNotFoundError:
        return _err(f"Error: File not found: {path}")
    except PermissionError:
        return _err(f"Error: Permission denied: {path}")
    except StatementFormatError as e:
        return _err(f"Error: bad file format: {e}")
    except ValidationError as e:
        return _err(f"Error: invalid configuration: {e}")
    except ValueError as e:
        return _err(f"Error: {e}")

    for tx in parsed.transactions:
        print(
            "\t".join(
                _fmt(v)
                for v in (
                    tx.transaction_at.isoformat(sep=" "),
                    tx.vehicle_registration,
                    tx.country_code,
                    tx.original_currency,
                    tx.original_gross,
                    tx.net_amount,
                    tx.vat_amount,
                    tx.gross_amount,
                    tx.rate_date,
                    tx.vat_strategy,
                )
            )
        )
    meta = parsed.metadata
    print(
        f"# {resolved}: {meta.total_count} transactions, "
        f"total {meta.reporting_total:.2f} {meta.reporting_currency}, "
        f"{meta.skipped_count} rows skipped"
        + (f", layout {meta.layout}" if meta.layout else "")
    )
    return 0


def cmd_import(
    path: str,
    *,
    company_id: str,
    provider: str | None = None,
    imported_by: str | None = None,
    database_url: str | None = None,
    offline: bool = False,
) -> int:
    """Import a statement into the database and print the batch summary."""

    from fleet_db.client import session_scope

    from .api import build_rate_service, header_variants_for
    from .importer import import_statement

    try:
        settings = _load_settings(database_url)
        file_bytes = _read_file(path)
    except FileNotFoundError:
        return _err(f"Error: File not found: {path}")
    except PermissionError:
        return _err(f"Error: Permission denied: {path}")
    except ValidationError as e:
        return _err(f"Error: invalid configuration: {e}")

    try:
        with session_scope(database_url=settings.database_url) as session:
            result = import_statement(
                session,
                company_id=company_id,
                file_name=Path(path).name,
                file_bytes=file_bytes,
                rates=build_rate_service(settings, offline=offline),
                provider=provider,
                imported_by=imported_by,
                chunk_size=settings.insert_chunk_size,
                header_variants=header_variants_for(settings),
            )
    except StatementFormatError as e:
        return _err(f"Error: bad file format: {e}")
    except DuplicateImportError as e:
        return _err(f"Nothing new to import: {e}")
    except Exception as e:
        return _err(f"Error: import failed: {e}")

    print(
        "\t".join(
            _fmt(v)
            for v in (
                result.batch_id,
                result.status,
                result.total_transactions,
                result.matched_transactions,
                result.unmatched_transactions,
                result.skipped_rows,
                result.duplicates_skipped,
                result.total_amount,
                result.reporting_currency,
            )
        )
    )
    return 0


def cmd_batches(
    *,
    company_id: str,
    provider: str | None = None,
    page: int = 1,
    limit: int = 20,
    database_url: str | None = None,
) -> int:
    from fleet_db.client import session_scope

    from .actions import list_batches

    try:
        settings = _load_settings(database_url)
        with session_scope(database_url=settings.database_url) as session:
            result = list_batches(
                session, company_id=company_id, provider=provider, page=page, limit=limit
            )
            rows = [
                (
                    b.id,
                    b.provider,
                    b.file_name,
                    b.status,
                    b.total_transactions,
                    b.matched_transactions,
                    b.unmatched_transactions,
                    b.total_amount,
                    b.currency_code,
                    b.period_start,
                    b.period_end,
                )
                for b in result.items
            ]
    except Exception as e:
        return _err(f"Error: failed to list batches: {e}")

    for row in rows:
        print("\t".join(_fmt(v) for v in row))
    print(f"# page {result.page}/{result.total_pages}, {result.total} batches")
    return 0


def cmd_summary(
    *, company_id: str, provider: str | None = None, database_url: str | None = None
) -> int:
    from fleet_db.client import session_scope

    from .actions import summarize_transactions

    try:
        settings = _load_settings(database_url)
        with session_scope(database_url=settings.database_url) as session:
            summary = summarize_transactions(session, company_id=company_id, provider=provider)
    except Exception as e:
        return _err(f"Error: failed to summarize transactions: {e}")

    print(f"total_transactions\t{summary.total_transactions}")
    for status, count in summary.counts.items():
        print(f"{status}\t{count}")
    print(f"total_value\t{summary.total_value:.2f}")
    print(f"pending_value\t{summary.pending_value:.2f}")
    return 0


def _print_outcomes(result) -> None:
    for o in result.outcomes:
        if o.ok:
            print(f"{o.transaction_id}\tok\t{o.expense_id or ''}")
        else:
            print(f"{o.transaction_id}\tfailed\t{o.error}")
    print(f"# {result.succeeded} succeeded, {result.failed} failed")


def cmd_ignore(
    transaction_ids: Sequence[str],
    *,
    company_id: str,
    notes: str | None = None,
    database_url: str | None = None,
) -> int:
    from fleet_db.client import session_scope

    from .actions import bulk_ignore

    try:
        settings = _load_settings(database_url)
        with session_scope(database_url=settings.database_url) as session:
            result = bulk_ignore(
                session, company_id=company_id, transaction_ids=list(transaction_ids), notes=notes
            )
    except Exception as e:
        return _err(f"Error: ignore failed: {e}")
    _print_outcomes(result)
    return 0 if result.failed == 0 else 1


def cmd_create_expenses(
    transaction_ids: Sequence[str],
    *,
    company_id: str,
    trip_id: str | None = None,
    database_url: str | None = None,
) -> int:
    from fleet_db.client import session_scope

    from .actions import bulk_create_expenses

    try:
        settings = _load_settings(database_url)
        with session_scope(database_url=settings.database_url) as session:
            result = bulk_create_expenses(
                session,
                company_id=company_id,
                transaction_ids=list(transaction_ids),
                trip_id=trip_id,
            )
    except Exception as e:
        return _err(f"Error: create-expenses failed: {e}")
    _print_outcomes(result)
    return 0 if result.failed == 0 else 1


def cmd_match(
    transaction_id: str,
    *,
    company_id: str,
    vehicle_id: str,
    database_url: str | None = None,
) -> int:
    from fleet_db.client import session_scope

    from .actions import match_transaction

    try:
        settings = _load_settings(database_url)
        with session_scope(database_url=settings.database_url) as session:
            match_transaction(
                session, company_id=company_id, transaction_id=transaction_id, vehicle_id=vehicle_id
            )
    except (FuelLedgerError, ValueError, RuntimeError) as e:
        return _err(f"Error: {e}")
    print(f"{transaction_id}\tmatched\t{vehicle_id}")
    return 0


def cmd_delete_batch(
    batch_id: str, *, company_id: str, database_url: str | None = None
) -> int:
    from fleet_db.client import session_scope

    from .actions import delete_batch

    try:
        settings = _load_settings(database_url)
        with session_scope(database_url=settings.database_url) as session:
            removed = delete_batch(session, company_id=company_id, batch_id=batch_id)
    except (FuelLedgerError, ValueError, RuntimeError) as e:
        return _err(f"Error: {e}")
    print(f"{batch_id}\tdeleted\t{removed}")
    return 0


def cmd_vat_rates() -> int:
    from .rates.countries import list_vat_profiles

    for profile in list_vat_profiles():
        print(
            f"{profile.country_code}\t{profile.name}\t{profile.rate}\t"
            f"{'refundable' if profile.refundable else 'not refundable'}"
        )
    return 0


def cmd_convert(
    amount: str,
    currency: str,
    *,
    on: str | None = None,
    to_currency: str | None = None,
    offline: bool = False,
) -> int:
    """Convert ``amount`` of ``currency`` into the reporting currency (or ``to_currency``)."""

    from .api import build_rate_service
    from .errors import ExchangeRateError

    try:
        value = Decimal(amount)
    except InvalidOperation:
        return _err(f"Error: not a number: {amount}")
    try:
        when = date.fromisoformat(on) if on else None
    except ValueError:
        return _err(f"Error: not an ISO date: {on}")

    try:
        rates = build_rate_service(_load_settings(), offline=offline)
        if to_currency:
            target = to_currency.upper()
            conv = rates.convert_between(value, currency, target, when)
        else:
            target = rates.reporting_currency
            conv = rates.convert(value, currency, when)
    except ValidationError as e:
        return _err(f"Error: invalid configuration: {e}")
    except ExchangeRateError as e:
        return _err(f"Error: {e}")

    print(f"{conv.amount:.2f}\t{target}\t{conv.rate}\t{conv.rate_date or ''}\t{conv.kind}")
    return 0


# ---- Typer-based console interface ----------------------------------------------


def _exit(code: int) -> None:
    if code:
        raise typer.Exit(code)


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import fuel and toll statements into a normalized, VAT-annotated ledger. "
        "Loads DATABASE_URL and FUEL_LEDGER_* settings from a local .env first."
    ),
)

# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults). Defaults live in the signatures; these only carry names and help.
FILE_ARGUMENT: ArgumentInfo = typer.Argument(
    ..., help="Statement file (.xlsx, .csv or .pdf)", dir_okay=False, exists=False
)
COMPANY_OPTION: OptionInfo = typer.Option(..., "--company", help="Company (tenant) id.")
PROVIDER_OPTION: OptionInfo = typer.Option(
    ...,
    "--provider",
    help="provider_a, provider_b or toll_provider (detected when omitted).",
)
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    ..., "--database-url", help="Override DATABASE_URL (falls back to env var)."
)
OFFLINE_OPTION: OptionInfo = typer.Option(
    ..., "--offline", help="Do not contact the rate feed; use the static fallback table."
)
IDS_ARGUMENT: ArgumentInfo = typer.Argument(..., help="Transaction ids.")


@app.command("parse")
def parse_cmd(
    path: Annotated[Path, FILE_ARGUMENT],
    *,
    provider: Annotated[str | None, PROVIDER_OPTION] = None,
    offline: Annotated[bool, OFFLINE_OPTION] = False,
) -> None:
    """Parse a statement and print normalized rows (no database)."""

    _exit(cmd_parse(str(path), provider=provider, offline=offline))


@app.command("import")
def import_cmd(
    path: Annotated[Path, FILE_ARGUMENT],
    *,
    company: Annotated[str, COMPANY_OPTION],
    provider: Annotated[str | None, PROVIDER_OPTION] = None,
    imported_by: str | None = typer.Option(None, help="Operator recorded on the batch."),
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
    offline: Annotated[bool, OFFLINE_OPTION] = False,
) -> None:
    """Import a statement as a new batch."""

    _exit(
        cmd_import(
            str(path),
            company_id=company,
            provider=provider,
            imported_by=imported_by,
            database_url=database_url,
            offline=offline,
        )
    )


@app.command("batches")
def batches_cmd(
    *,
    company: Annotated[str, COMPANY_OPTION],
    provider: Annotated[str | None, PROVIDER_OPTION] = None,
    page: int = typer.Option(1, min=1),
    limit: int = typer.Option(20, min=1, max=200),
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """List import batches, newest first."""

    _exit(
        cmd_batches(
            company_id=company,
            provider=provider,
            page=page,
            limit=limit,
            database_url=database_url,
        )
    )


@app.command("summary")
def summary_cmd(
    *,
    company: Annotated[str, COMPANY_OPTION],
    provider: Annotated[str | None, PROVIDER_OPTION] = None,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Transaction counts per status and pending value."""

    _exit(cmd_summary(company_id=company, provider=provider, database_url=database_url))


@app.command("ignore")
def ignore_cmd(
    transaction_ids: Annotated[list[str], IDS_ARGUMENT],
    *,
    company: Annotated[str, COMPANY_OPTION],
    notes: str | None = typer.Option(None, help="Reason recorded on each transaction."),
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Mark transactions as ignored."""

    _exit(
        cmd_ignore(transaction_ids, company_id=company, notes=notes, database_url=database_url)
    )


@app.command("create-expenses")
def create_expenses_cmd(
    transaction_ids: Annotated[list[str], IDS_ARGUMENT],
    *,
    company: Annotated[str, COMPANY_OPTION],
    trip: str | None = typer.Option(None, "--trip", help="Trip to attach the expenses to."),
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Promote matched transactions to fleet expenses."""

    _exit(
        cmd_create_expenses(
            transaction_ids, company_id=company, trip_id=trip, database_url=database_url
        )
    )


@app.command("match")
def match_cmd(
    transaction_id: str,
    *,
    company: Annotated[str, COMPANY_OPTION],
    vehicle: str = typer.Option(..., "--vehicle", help="Fleet vehicle id."),
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Assign a vehicle to a transaction by hand."""

    _exit(
        cmd_match(
            transaction_id, company_id=company, vehicle_id=vehicle, database_url=database_url
        )
    )


@app.command("delete-batch")
def delete_batch_cmd(
    batch_id: str,
    *,
    company: Annotated[str, COMPANY_OPTION],
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Delete a batch together with its transactions."""

    _exit(cmd_delete_batch(batch_id, company_id=company, database_url=database_url))


@app.command("vat-rates")
def vat_rates_cmd() -> None:
    """Print the static VAT profiles."""

    _exit(cmd_vat_rates())


@app.command("convert")
def convert_cmd(
    amount: str,
    currency: str,
    *,
    on: str | None = typer.Option(None, "--date", help="Rate date (YYYY-MM-DD)."),
    to: str | None = typer.Option(None, "--to", help="Target currency (default: reporting)."),
    offline: Annotated[bool, OFFLINE_OPTION] = False,
) -> None:
    """Convert an amount using the exchange-rate service."""

    _exit(cmd_convert(amount, currency, on=on, to_currency=to, offline=offline))


@app.callback()
def _root(
    log_level: str | None = typer.Option(
        None, "--log-level", help="Log level (default: FUEL_LEDGER_LOG_LEVEL or INFO)."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(log_level)


if __name__ == "__main__":  # pragma: no cover
    app()
