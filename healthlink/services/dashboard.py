"""Last-known dashboard snapshots.

Dashboards refresh when the host tells them to (page focus, tab visible
again). ``DashboardCache.refresh`` recomputes on every call and falls back to
the previous snapshot only when the database cannot be read.

One snapshot is kept per scope. A snapshot computed for another day is
replaced on the next successful refresh and never served as a fallback.
"""

from dataclasses import dataclass
from datetime import date, datetime
from threading import Lock
from typing import Any, Callable, Hashable

from sqlalchemy.exc import SQLAlchemyError

from healthlink.models.appointment import utcnow


@dataclass
class DashboardSnapshot:
    data: Any
    computed_at: datetime
    day: date | None = None
    stale: bool = False


class DashboardCache:
    def __init__(self):
        self._lock = Lock()
        self._snapshots: dict[Hashable, DashboardSnapshot] = {}

    def refresh(self, scope: Hashable, loader: Callable[[], Any], day: date | None = None) -> DashboardSnapshot:
        try:
            data = loader()
        except SQLAlchemyError:
            with self._lock:
                previous = self._snapshots.get(scope)
            if previous is None or previous.day != day:
                raise
            return DashboardSnapshot(data=previous.data, computed_at=previous.computed_at, day=day, stale=True)

        snapshot = DashboardSnapshot(data=data, computed_at=utcnow(), day=day)
        with self._lock:
            self._snapshots[scope] = snapshot
        return snapshot

    def last_known(self, scope: Hashable) -> DashboardSnapshot | None:
        with self._lock:
            return self._snapshots.get(scope)

    def __len__(self) -> int:
        with self._lock:
            return len(self._snapshots)

    def clear(self) -> None:
        with self._lock:
            self._snapshots.clear()


dashboard_cache = DashboardCache()
