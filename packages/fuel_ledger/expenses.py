"""Promotion of matched transactions into fleet expenses.

The ledger that receives expenses is a collaborator behind
:class:`ExpenseSink`; :class:`SqlExpenseSink` writes ``fleet_expenses`` rows
through the same session as the transaction update.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Protocol

from sqlalchemy.orm import Session

from fleet_db.models.fuel import FleetExpense, FuelTransaction

EXPENSE_CATEGORIES = ("fuel", "toll", "parking")


def expense_category_for(category_hint: str | None, provider: str) -> str:
    """Collapse a transaction's category hint into an expense category."""

    hint = (category_hint or "").lower()
    if hint in EXPENSE_CATEGORIES:
        return hint
    if hint.startswith(("toll", "vignette", "etoll")):
        return "toll"
    return "toll" if provider == "toll_provider" else "fuel"


@dataclass(frozen=True, slots=True)
class ExpenseDraft:
    """What a downstream ledger needs to record a fuel or toll expense."""

    company_id: str
    vehicle_id: str | None
    trip_id: str | None
    category: str
    amount: Decimal
    currency_code: str
    expense_date: date
    description: str | None

    @classmethod
    def from_transaction(cls, tx: FuelTransaction, *, trip_id: str | None = None) -> ExpenseDraft:
        label = tx.product or tx.category_hint or "fuel"
        where = f" ({tx.country_code})" if tx.country_code else ""
        return cls(
            company_id=tx.company_id,
            vehicle_id=tx.vehicle_id,
            trip_id=trip_id,
            category=expense_category_for(tx.category_hint, tx.provider),
            amount=tx.gross_amount,
            currency_code=tx.reporting_currency,
            expense_date=tx.transaction_at.date(),
            description=f"{label}{where} - {tx.vehicle_registration or 'unknown vehicle'}",
        )


class ExpenseSink(Protocol):
    def record(self, draft: ExpenseDraft) -> str:
        """Store ``draft`` and return the new expense id."""
        ...


class SqlExpenseSink:
    def __init__(self, session: Session) -> None:
        self.session = session

    def record(self, draft: ExpenseDraft) -> str:
        expense = FleetExpense(
            company_id=draft.company_id,
            vehicle_id=draft.vehicle_id,
            trip_id=draft.trip_id,
            category=draft.category,
            amount=draft.amount,
            currency_code=draft.currency_code,
            expense_date=draft.expense_date,
            description=draft.description,
        )
        self.session.add(expense)
        self.session.flush()
        return expense.id


__all__ = [
    "EXPENSE_CATEGORIES",
    "ExpenseDraft",
    "ExpenseSink",
    "SqlExpenseSink",
    "expense_category_for",
]
