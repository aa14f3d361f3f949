"""Vehicle identifier reconciliation against the fleet registry.

Free-text registrations from provider files ("B 16 TFL", "b-16-tfl",
"RO B16TFL") are reduced to a *match key* (separators removed, upper-cased)
and compared with the registry's keys: exact match first, then substring
containment in either direction.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from fleet_db.models.fuel import FleetVehicle

from .logging_setup import get_logger
from .models import VehicleRecord

_logger = get_logger("fuel_ledger.matching")

_SEPARATORS_RE = re.compile(r"[\s\-_.]")


def match_key(registration: str | None) -> str:
    """Strip spaces, hyphens, underscores and dots; upper-case the rest."""

    if not registration:
        return ""
    return _SEPARATORS_RE.sub("", str(registration)).upper()


class VehicleMatcher:
    """Registry snapshot indexed by match key.

    Built once per import run; the registry is not re-read while matching.
    """

    def __init__(self, registry: Iterable[VehicleRecord]) -> None:
        self._entries: list[tuple[str, str]] = []
        self._exact: dict[str, str] = {}
        for record in registry:
            key = match_key(record.registration_number)
            if not key:
                continue
            self._entries.append((key, record.vehicle_id))
            self._exact.setdefault(key, record.vehicle_id)

    def __len__(self) -> int:
        return len(self._entries)

    def match(self, free_text: str | None) -> str | None:
        """Return the vehicle id for ``free_text`` or ``None``."""

        key = match_key(free_text)
        if not key:
            return None
        exact = self._exact.get(key)
        if exact is not None:
            return exact
        for registry_key, vehicle_id in self._entries:
            if registry_key in key or key in registry_key:
                _logger.info(
                    "fuzzy vehicle match: %r -> %s (registry key %s)",
                    free_text,
                    vehicle_id,
                    registry_key,
                )
                return vehicle_id
        return None


def match_vehicle(free_text: str | None, registry: Sequence[VehicleRecord]) -> str | None:
    """One-shot convenience wrapper around :class:`VehicleMatcher`."""

    return VehicleMatcher(registry).match(free_text)


def load_fleet_registry(session: Session, *, company_id: str) -> list[VehicleRecord]:
    """Snapshot the company's active vehicles."""

    rows = session.execute(
        select(FleetVehicle.id, FleetVehicle.registration_number)
        .where(FleetVehicle.company_id == company_id, FleetVehicle.is_active.is_(True))
        .order_by(FleetVehicle.registration_number)
    ).all()
    return [VehicleRecord(vehicle_id=r[0], registration_number=r[1]) for r in rows]


__all__ = ["VehicleMatcher", "load_fleet_registry", "match_key", "match_vehicle"]
