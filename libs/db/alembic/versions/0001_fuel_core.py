# ruff: noqa: I001
"""Fleet vehicles, fuel import batches, fuel transactions and expenses.

Revision ID: 0001_fuel_core
Revises: None
Create Date: 2026-10-19
"""

from __future__ import annotations  # ruff: noqa: I001

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_fuel_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


_PROVIDERS = "provider IN ('provider_a', 'provider_b', 'toll_provider')"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "fleet_vehicles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("company_id", sa.String(36), nullable=False),
        sa.Column("registration_number", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_fleet_vehicles_company", "fleet_vehicles", ["company_id"])

    op.create_table(
        "fuel_import_batches",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("company_id", sa.String(36), nullable=False),
        sa.Column("provider", sa.String(), nullable=False),
        sa.Column("file_name", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="processing"),
        sa.Column("total_transactions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("matched_transactions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unmatched_transactions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("skipped_rows", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("duplicates_skipped", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("currency_code", sa.CHAR(3), nullable=False, server_default="EUR"),
        sa.Column("period_start", sa.Date(), nullable=True),
        sa.Column("period_end", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("imported_by", sa.String(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(_PROVIDERS, name="ck_fuel_batches_provider"),
        sa.CheckConstraint(
            "status IN ('processing', 'partial', 'completed')",
            name="ck_fuel_batches_status",
        ),
    )
    op.create_index(
        "ix_fuel_batches_company_created",
        "fuel_import_batches",
        ["company_id", "created_at"],
    )

    op.create_table(
        "fleet_expenses",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("company_id", sa.String(36), nullable=False),
        sa.Column(
            "vehicle_id",
            sa.String(36),
            sa.ForeignKey("fleet_vehicles.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("trip_id", sa.String(36), nullable=True),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("currency_code", sa.CHAR(3), nullable=False),
        sa.Column("expense_date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_fleet_expenses_company", "fleet_expenses", ["company_id"])

    op.create_table(
        "fuel_transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("company_id", sa.String(36), nullable=False),
        sa.Column(
            "batch_id",
            sa.String(36),
            sa.ForeignKey("fuel_import_batches.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("provider", sa.String(), nullable=False),
        sa.Column("transaction_at", sa.DateTime(), nullable=False),
        sa.Column("vehicle_registration", sa.String(), nullable=True),
        sa.Column("vehicle_match_key", sa.String(), nullable=True),
        sa.Column("card_number", sa.String(), nullable=True),
        sa.Column("reference", sa.String(), nullable=True),
        sa.Column("product", sa.String(), nullable=True),
        sa.Column("category_hint", sa.String(), nullable=True),
        sa.Column("quantity", sa.Numeric(18, 3), nullable=True),
        sa.Column("unit", sa.String(), nullable=True),
        sa.Column("country_code", sa.CHAR(2), nullable=True),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("original_currency", sa.CHAR(3), nullable=False),
        sa.Column("original_net", sa.Numeric(18, 2), nullable=False),
        sa.Column("original_gross", sa.Numeric(18, 2), nullable=False),
        sa.Column("original_vat", sa.Numeric(18, 2), nullable=False),
        sa.Column("vat_rate", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("vat_refundable", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("vat_strategy", sa.String(), nullable=False),
        sa.Column("needs_review", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("reporting_currency", sa.CHAR(3), nullable=False),
        sa.Column("net_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("gross_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("vat_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("exchange_rate", sa.Numeric(18, 6), nullable=False),
        sa.Column("rate_date", sa.String(16), nullable=True),
        sa.Column(
            "vehicle_id",
            sa.String(36),
            sa.ForeignKey("fleet_vehicles.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("matched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expense_id", sa.String(64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("raw_record", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(_PROVIDERS, name="ck_fuel_tx_provider"),
        sa.CheckConstraint(
            "status IN ('pending', 'matched', 'unmatched', 'created_expense', 'ignored')",
            name="ck_fuel_tx_status",
        ),
    )
    op.create_index(
        "ix_fuel_tx_company_time", "fuel_transactions", ["company_id", "transaction_at"]
    )
    op.create_index("ix_fuel_tx_batch", "fuel_transactions", ["batch_id"])


def downgrade() -> None:
    op.drop_index("ix_fuel_tx_batch", table_name="fuel_transactions")
    op.drop_index("ix_fuel_tx_company_time", table_name="fuel_transactions")
    op.drop_table("fuel_transactions")
    op.drop_index("ix_fleet_expenses_company", table_name="fleet_expenses")
    op.drop_table("fleet_expenses")
    op.drop_index("ix_fuel_batches_company_created", table_name="fuel_import_batches")
    op.drop_table("fuel_import_batches")
    op.drop_index("ix_fleet_vehicles_company", table_name="fleet_vehicles")
    op.drop_table("fleet_vehicles")
