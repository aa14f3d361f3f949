"""fleet_db: shared database library (SQLAlchemy/Alembic).

Public exports
--------------
- ``Base`` and ``metadata`` for Alembic autogenerate/targeting
- ORM models in ``fleet_db.models.fuel`` (re-exported for convenience)
- Engine/session helpers in ``fleet_db.client``
"""

from __future__ import annotations

from .models.fuel import Base, FleetExpense, FleetVehicle, FuelImportBatch, FuelTransaction

# Re-export SQLAlchemy metadata for Alembic's env.py
metadata = Base.metadata

__all__ = [
    "Base",
    "metadata",
    "FleetExpense",
    "FleetVehicle",
    "FuelImportBatch",
    "FuelTransaction",
]
