"""Shared SQLAlchemy models registry for the fleet database.

Currently includes the fuel/toll statement models used by ``fuel_ledger``.
"""

from .fuel import (
    BATCH_STATUSES,
    PROVIDERS,
    TRANSACTION_STATUSES,
    Base,
    FleetExpense,
    FleetVehicle,
    FuelImportBatch,
    FuelTransaction,
)

__all__ = [
    "BATCH_STATUSES",
    "PROVIDERS",
    "TRANSACTION_STATUSES",
    "Base",
    "FleetExpense",
    "FleetVehicle",
    "FuelImportBatch",
    "FuelTransaction",
]
