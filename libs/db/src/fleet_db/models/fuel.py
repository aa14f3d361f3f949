from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    CHAR,
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import expression as sa_expr


class Base(DeclarativeBase):
    pass


def _new_id() -> str:
    return str(uuid.uuid4())


# Allowed values for enum-like string columns. Kept as tuples so the service
# layer and the CHECK constraints share a single definition.
PROVIDERS: tuple[str, ...] = ("provider_a", "provider_b", "toll_provider")
BATCH_STATUSES: tuple[str, ...] = ("processing", "partial", "completed")
TRANSACTION_STATUSES: tuple[str, ...] = (
    "pending",
    "matched",
    "unmatched",
    "created_expense",
    "ignored",
)


def _in_list(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


# ---------------------------
# Reference: fleet_vehicles
# ---------------------------


class FleetVehicle(Base):
    __tablename__ = "fleet_vehicles"
    __table_args__ = (Index("ix_fleet_vehicles_company", "company_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    company_id: Mapped[str] = mapped_column(String(36), nullable=False)
    registration_number: Mapped[str] = mapped_column(String, nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa_expr.true()
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ---------------------------
# Core: fuel_import_batches
# ---------------------------


class FuelImportBatch(Base):
    __tablename__ = "fuel_import_batches"
    __table_args__ = (
        CheckConstraint(_in_list("provider", PROVIDERS), name="ck_fuel_batches_provider"),
        CheckConstraint(_in_list("status", BATCH_STATUSES), name="ck_fuel_batches_status"),
        Index("ix_fuel_batches_company_created", "company_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    company_id: Mapped[str] = mapped_column(String(36), nullable=False)
    provider: Mapped[str] = mapped_column(String, nullable=False)
    file_name: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, server_default="processing")
    total_transactions: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    matched_transactions: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    unmatched_transactions: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default="0"
    )
    skipped_rows: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    duplicates_skipped: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, server_default="0"
    )
    currency_code: Mapped[str] = mapped_column(CHAR(3), nullable=False, server_default="EUR")
    period_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    period_end: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    imported_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    transactions: Mapped[list[FuelTransaction]] = relationship(
        back_populates="batch",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


# ---------------------------
# Downstream: fleet_expenses
# ---------------------------


class FleetExpense(Base):
    __tablename__ = "fleet_expenses"
    __table_args__ = (Index("ix_fleet_expenses_company", "company_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    company_id: Mapped[str] = mapped_column(String(36), nullable=False)
    vehicle_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("fleet_vehicles.id", ondelete="SET NULL"), nullable=True
    )
    trip_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    category: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    currency_code: Mapped[str] = mapped_column(CHAR(3), nullable=False)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ---------------------------
# Core: fuel_transactions
# ---------------------------


class FuelTransaction(Base):
    __tablename__ = "fuel_transactions"
    __table_args__ = (
        CheckConstraint(_in_list("provider", PROVIDERS), name="ck_fuel_tx_provider"),
        CheckConstraint(_in_list("status", TRANSACTION_STATUSES), name="ck_fuel_tx_status"),
        Index("ix_fuel_tx_company_time", "company_id", "transaction_at"),
        Index("ix_fuel_tx_batch", "batch_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    company_id: Mapped[str] = mapped_column(String(36), nullable=False)
    batch_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("fuel_import_batches.id", ondelete="CASCADE"), nullable=False
    )
    provider: Mapped[str] = mapped_column(String, nullable=False)
    transaction_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    vehicle_registration: Mapped[str | None] = mapped_column(String, nullable=True)
    vehicle_match_key: Mapped[str | None] = mapped_column(String, nullable=True)
    card_number: Mapped[str | None] = mapped_column(String, nullable=True)
    reference: Mapped[str | None] = mapped_column(String, nullable=True)
    product: Mapped[str | None] = mapped_column(String, nullable=True)
    category_hint: Mapped[str | None] = mapped_column(String, nullable=True)
    quantity: Mapped[Decimal | None] = mapped_column(Numeric(18, 3), nullable=True)
    unit: Mapped[str | None] = mapped_column(String, nullable=True)
    country_code: Mapped[str | None] = mapped_column(CHAR(2), nullable=True)
    location: Mapped[str | None] = mapped_column(String, nullable=True)

    # Amounts as found in the source, in the origin-country currency
    original_currency: Mapped[str] = mapped_column(CHAR(3), nullable=False)
    original_net: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    original_gross: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    original_vat: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    vat_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, server_default="0")
    vat_refundable: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa_expr.false()
    )
    vat_strategy: Mapped[str] = mapped_column(String, nullable=False)
    needs_review: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa_expr.false()
    )

    # Amounts converted into the reporting currency
    reporting_currency: Mapped[str] = mapped_column(CHAR(3), nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    gross_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    vat_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    exchange_rate: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    # ISO date of the rate actually applied, or "fallback"; NULL for identity
    rate_date: Mapped[str | None] = mapped_column(String(16), nullable=True)

    vehicle_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("fleet_vehicles.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(String, nullable=False, server_default="pending")
    matched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Id issued by whichever expense ledger recorded the promotion; not always
    # a fleet_expenses row, so no foreign key.
    expense_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    raw_record: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    batch: Mapped[FuelImportBatch] = relationship(back_populates="transactions")
