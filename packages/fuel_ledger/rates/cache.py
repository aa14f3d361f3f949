"""In-memory rate cache with an injectable clock.

"Current" tables expire after ``ttl_seconds`` but stay available as a stale
copy for degraded operation. Historical tables never expire. Years whose feed
failed are remembered for ``ttl_seconds`` so a file full of rows from the same
year does not hammer an unreachable feed.
"""

from __future__ import annotations

import bisect
import time
from collections.abc import Callable, Iterable
from datetime import date

from .source import RateTable


class RateCache:
    def __init__(
        self,
        *,
        ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._current: RateTable | None = None
        self._current_at: float | None = None
        self._history: dict[int, list[RateTable]] = {}
        self._failed_years: dict[int, float] = {}

    # ---- current ---------------------------------------------------------

    def get_current(self) -> RateTable | None:
        """Return the current table while it is fresh, else ``None``."""

        if self._current is None or self._current_at is None:
            return None
        if self._clock() - self._current_at >= self.ttl_seconds:
            return None
        return self._current

    def get_stale_current(self) -> RateTable | None:
        return self._current

    def put_current(self, table: RateTable) -> None:
        self._current = table
        self._current_at = self._clock()

    # ---- historical ------------------------------------------------------

    def has_year(self, year: int) -> bool:
        return year in self._history

    def put_year(self, year: int, tables: Iterable[RateTable]) -> None:
        self._history[year] = sorted(tables, key=lambda t: t.published)
        self._failed_years.pop(year, None)

    def year_tables(self, year: int) -> list[RateTable]:
        return self._history.get(year, [])

    def closest_on_or_before(self, target: date) -> RateTable | None:
        """Exact date, else the closest earlier date, else the earliest one.

        Only the year of ``target`` is considered.
        """

        tables = self._history.get(target.year) or []
        if not tables:
            return None
        days = [t.published for t in tables]
        idx = bisect.bisect_right(days, target)
        if idx == 0:
            return tables[0]
        return tables[idx - 1]

    def mark_year_failed(self, year: int) -> None:
        self._failed_years[year] = self._clock()

    def year_recently_failed(self, year: int) -> bool:
        failed_at = self._failed_years.get(year)
        if failed_at is None:
            return False
        return self._clock() - failed_at < self.ttl_seconds

    def clear(self) -> None:
        self._current = None
        self._current_at = None
        self._history.clear()
        self._failed_years.clear()


__all__ = ["RateCache"]
