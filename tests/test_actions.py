from __future__ import annotations

from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import select

from fleet_db.models.fuel import FleetExpense, FuelImportBatch, FuelTransaction
from fuel_ledger.actions import (
    TransactionFilters,
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
from fuel_ledger.errors import FuelLedgerError, TransactionNotFoundError, TransactionStateError
from fuel_ledger.expenses import ExpenseDraft, expense_category_for
from fuel_ledger.importer import import_statement
from fuel_ledger.models import Provider, TransactionStatus
from tests.helpers.db import (
    COMPANY,
    OTHER_COMPANY,
    bootstrap_sqlite_db,
    count_transactions,
    new_session,
    seed_vehicles,
)
from tests.helpers.rates import offline_rates
from tests.helpers.statements import PROVIDER_A_CSV, PROVIDER_B_CSV


@pytest.fixture
def session(tmp_path: Path):
    _, engine = bootstrap_sqlite_db(tmp_path / "fleet.db")
    s = new_session(engine)
    try:
        yield s
    finally:
        s.close()
        engine.dispose()


@pytest.fixture
def imported(session):
    """Provider A statement imported with only ``B 16 TFL`` registered.

    TX1 and TX2 are matched, TX3 (``CJ 01 ABC``) is unmatched.
    """

    vehicles = seed_vehicles(session, ["B 16 TFL"])
    result = import_statement(
        session,
        company_id=COMPANY,
        file_name="invoice-transactions-03.csv",
        file_bytes=PROVIDER_A_CSV,
        rates=offline_rates(),
    )
    session.commit()
    by_ref = {
        tx.reference: tx.id for tx in session.execute(select(FuelTransaction)).scalars()
    }
    return {"batch_id": result.batch_id, "tx": by_ref, "vehicles": vehicles}


# ---- match ------------------------------------------------------------------------


def test_manual_match_assigns_vehicle(session, imported):
    cj = seed_vehicles(session, ["CJ 01 ABC"])["CJ 01 ABC"]

    tx = match_transaction(
        session, company_id=COMPANY, transaction_id=imported["tx"]["TX3"], vehicle_id=cj
    )
    session.commit()

    assert tx.status == TransactionStatus.MATCHED
    assert tx.vehicle_id == cj
    assert tx.matched_at is not None
    # Batch counters describe the import, not later edits.
    batch = session.get(FuelImportBatch, imported["batch_id"])
    assert batch.unmatched_transactions == 1


def test_match_refuses_vehicle_of_another_company(session, imported):
    foreign = seed_vehicles(session, ["CJ 01 ABC"], company_id=OTHER_COMPANY)["CJ 01 ABC"]

    with pytest.raises(ValueError, match="does not belong"):
        match_transaction(
            session, company_id=COMPANY, transaction_id=imported["tx"]["TX3"], vehicle_id=foreign
        )


def test_unknown_or_foreign_transaction_is_not_found(session, imported):
    vehicle = imported["vehicles"]["B 16 TFL"]
    with pytest.raises(TransactionNotFoundError):
        match_transaction(session, company_id=COMPANY, transaction_id="nope", vehicle_id=vehicle)
    with pytest.raises(TransactionNotFoundError):
        ignore_transaction(
            session, company_id=OTHER_COMPANY, transaction_id=imported["tx"]["TX1"]
        )


# ---- ignore / create expense ----------------------------------------------------------


def test_create_expense_promotes_matched_transaction(session, imported):
    tx_id = imported["tx"]["TX1"]

    expense_id = create_expense(session, company_id=COMPANY, transaction_id=tx_id, trip_id="trip-7")
    session.commit()

    expense = session.get(FleetExpense, expense_id)
    assert expense.company_id == COMPANY
    assert expense.vehicle_id == imported["vehicles"]["B 16 TFL"]
    assert expense.trip_id == "trip-7"
    assert expense.category == "fuel"
    assert expense.amount == Decimal("180.00")
    assert expense.currency_code == "EUR"
    assert expense.expense_date == date(2025, 3, 29)
    assert expense.description == "Diesel (AT) - B 16 TFL"

    tx = session.get(FuelTransaction, tx_id)
    assert tx.status == TransactionStatus.CREATED_EXPENSE
    assert tx.expense_id == expense_id


def test_promoted_transaction_is_terminal(session, imported):
    tx_id = imported["tx"]["TX1"]
    create_expense(session, company_id=COMPANY, transaction_id=tx_id)

    with pytest.raises(TransactionStateError, match="Expense already created"):
        create_expense(session, company_id=COMPANY, transaction_id=tx_id)
    with pytest.raises(TransactionStateError, match="Already processed"):
        ignore_transaction(session, company_id=COMPANY, transaction_id=tx_id)
    with pytest.raises(TransactionStateError):
        match_transaction(
            session,
            company_id=COMPANY,
            transaction_id=tx_id,
            vehicle_id=imported["vehicles"]["B 16 TFL"],
        )


def test_only_matched_transactions_become_expenses(session, imported):
    with pytest.raises(TransactionStateError, match="status: unmatched"):
        create_expense(session, company_id=COMPANY, transaction_id=imported["tx"]["TX3"])

    ignore_transaction(session, company_id=COMPANY, transaction_id=imported["tx"]["TX2"])
    with pytest.raises(TransactionStateError, match="status: ignored"):
        create_expense(session, company_id=COMPANY, transaction_id=imported["tx"]["TX2"])


def test_ignore_keeps_notes(session, imported):
    tx = ignore_transaction(
        session, company_id=COMPANY, transaction_id=imported["tx"]["TX3"], notes="private car"
    )
    assert tx.status == TransactionStatus.IGNORED
    assert tx.notes == "private car"


class _RecordingSink:
    def __init__(self) -> None:
        self.drafts: list[ExpenseDraft] = []

    def record(self, draft: ExpenseDraft) -> str:
        self.drafts.append(draft)
        return f"exp-{len(self.drafts)}"


def test_create_expense_with_custom_sink(session, imported):
    sink = _RecordingSink()

    expense_id = create_expense(
        session, company_id=COMPANY, transaction_id=imported["tx"]["TX2"], sink=sink
    )
    session.commit()

    assert expense_id == "exp-1"
    (draft,) = sink.drafts
    assert draft.amount == Decimal("127.00")
    assert draft.category == "fuel"
    tx = session.get(FuelTransaction, imported["tx"]["TX2"])
    assert tx.status == TransactionStatus.CREATED_EXPENSE
    assert tx.expense_id == "exp-1"
    # Nothing was written to the local expense table.
    assert session.execute(select(FleetExpense)).scalars().all() == []


def test_external_ledger_is_written_once_per_transaction(session, imported):
    sink = _RecordingSink()
    ids = [imported["tx"]["TX1"], imported["tx"]["TX3"]]

    first = bulk_create_expenses(session, company_id=COMPANY, transaction_ids=ids, sink=sink)
    session.commit()
    retry = bulk_create_expenses(session, company_id=COMPANY, transaction_ids=ids, sink=sink)
    session.commit()

    assert [o.ok for o in first.outcomes] == [True, False]
    assert first.outcomes[0].expense_id == "exp-1"
    assert [o.ok for o in retry.outcomes] == [False, False]
    assert len(sink.drafts) == 1


class _FailingSink:
    def record(self, draft: ExpenseDraft) -> str:
        raise FuelLedgerError("ledger unavailable")


def test_failed_ledger_write_leaves_transaction_matched(session, imported):
    tx_id = imported["tx"]["TX1"]

    result = bulk_create_expenses(
        session, company_id=COMPANY, transaction_ids=[tx_id], sink=_FailingSink()
    )
    session.commit()

    assert not result.outcomes[0].ok
    assert "ledger unavailable" in result.outcomes[0].error
    tx = session.get(FuelTransaction, tx_id)
    session.refresh(tx)
    assert tx.status == TransactionStatus.MATCHED
    assert tx.expense_id is None


@pytest.mark.parametrize(
    "hint, provider, category",
    [
        ("fuel", "provider_a", "fuel"),
        ("toll_hungary", "toll_provider", "toll"),
        ("vignette_eu", "toll_provider", "toll"),
        ("parking", "toll_provider", "parking"),
        (None, "toll_provider", "toll"),
        (None, "provider_b", "fuel"),
    ],
)
def test_expense_category_for(hint, provider, category):
    assert expense_category_for(hint, provider) == category


# ---- bulk ---------------------------------------------------------------------------


def test_bulk_create_reports_each_item(session, imported):
    ids = [imported["tx"]["TX1"], imported["tx"]["TX3"], "missing"]

    result = bulk_create_expenses(session, company_id=COMPANY, transaction_ids=ids)
    session.commit()

    assert (result.succeeded, result.failed) == (1, 2)
    ok, unmatched, missing = result.outcomes
    assert ok.ok and ok.expense_id is not None
    assert not unmatched.ok and "unmatched" in unmatched.error
    assert not missing.ok and "not found" in missing.error
    assert session.get(FuelTransaction, ids[0]).status == TransactionStatus.CREATED_EXPENSE
    assert session.get(FuelTransaction, ids[1]).status == TransactionStatus.UNMATCHED
    assert len(session.execute(select(FleetExpense)).scalars().all()) == 1


def test_bulk_ignore_skips_promoted_items(session, imported):
    create_expense(session, company_id=COMPANY, transaction_id=imported["tx"]["TX1"])

    result = bulk_ignore(
        session,
        company_id=COMPANY,
        transaction_ids=[imported["tx"]["TX1"], imported["tx"]["TX2"]],
    )
    session.commit()

    assert [o.ok for o in result.outcomes] == [False, True]
    tx2 = session.get(FuelTransaction, imported["tx"]["TX2"])
    assert tx2.status == TransactionStatus.IGNORED
    assert tx2.notes == "Bulk ignored"


# ---- queries -------------------------------------------------------------------------


def test_list_transactions_hides_processed_by_default(session, imported):
    ignore_transaction(session, company_id=COMPANY, transaction_id=imported["tx"]["TX3"])

    visible = list_transactions(session, company_id=COMPANY)
    assert visible.total == 2
    assert [tx.reference for tx in visible.items] == ["TX2", "TX1"]

    ignored = list_transactions(
        session, company_id=COMPANY, filters=TransactionFilters(status=TransactionStatus.IGNORED)
    )
    assert [tx.reference for tx in ignored.items] == ["TX3"]

    everything = list_transactions(
        session, company_id=COMPANY, filters=TransactionFilters(hide_processed=False, limit=2)
    )
    assert everything.total == 3
    assert len(everything.items) == 2
    assert everything.total_pages == 2


def test_list_transactions_filters_by_vehicle(session, imported):
    page = list_transactions(
        session,
        company_id=COMPANY,
        filters=TransactionFilters(vehicle_id=imported["vehicles"]["B 16 TFL"]),
    )
    assert {tx.reference for tx in page.items} == {"TX1", "TX2"}


def test_summarize_transactions(session, imported):
    ignore_transaction(session, company_id=COMPANY, transaction_id=imported["tx"]["TX3"])

    summary = summarize_transactions(session, company_id=COMPANY)

    assert summary.total_transactions == 3
    assert summary.counts["matched"] == 2
    assert summary.counts["ignored"] == 1
    assert summary.counts["created_expense"] == 0
    assert summary.total_value == Decimal("260.00")
    assert summary.pending_value == Decimal("250.00")
    assert summarize_transactions(session, company_id=OTHER_COMPANY).total_transactions == 0


def test_batch_listing_and_status_summary(session, imported):
    import_statement(
        session,
        company_id=COMPANY,
        file_name="EW_export.csv",
        file_bytes=PROVIDER_B_CSV,
        rates=offline_rates(),
    )
    create_expense(session, company_id=COMPANY, transaction_id=imported["tx"]["TX1"])
    session.commit()

    assert list_batches(session, company_id=COMPANY).total == 2
    only_a = list_batches(session, company_id=COMPANY, provider=Provider.PROVIDER_A)
    assert [b.id for b in only_a.items] == [imported["batch_id"]]
    assert list_batches(session, company_id=OTHER_COMPANY).total == 0

    summary = get_batch_status_summary(
        session, company_id=COMPANY, batch_id=imported["batch_id"]
    )
    assert summary.status == "partial"
    assert summary.counts["created_expense"] == 1
    assert summary.counts["matched"] == 1
    assert summary.counts["unmatched"] == 1


def test_delete_batch_removes_its_transactions(session, imported):
    with pytest.raises(TransactionNotFoundError):
        delete_batch(session, company_id=OTHER_COMPANY, batch_id=imported["batch_id"])

    removed = delete_batch(session, company_id=COMPANY, batch_id=imported["batch_id"])
    session.commit()

    assert removed == 3
    assert count_transactions(session) == 0
    assert session.get(FuelImportBatch, imported["batch_id"]) is None
