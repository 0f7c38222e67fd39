"""In-process visit store used for demos and tests."""

from __future__ import annotations

import itertools
import threading
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Mapping, Optional

from visits.errors import ErrorKind, StoreError
from visits.models import Executive, Visit, YearMonth, check_photo_url
from visits.scheduling import matches_overlap

from .base import VisitFilter, VisitStore, check_changes, duplicate_executive_error


class MemoryVisitStore(VisitStore):
    backend_name = "memoria"

    def __init__(self, visits: Iterable[Visit] = ()):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._rows: Dict[int, Visit] = {}
        self._executive_ids = itertools.count(1)
        self._executives: Dict[int, Executive] = {}
        self.insert_batch(visits)

    def list(self, visit_filter: Optional[VisitFilter] = None) -> List[Visit]:
        with self._lock:
            rows = sorted((replace(v) for v in self._rows.values()), key=lambda v: (v.date, v.id))
        if visit_filter is None:
            return rows
        return [v for v in rows if visit_filter.matches(v)]

    def insert_one(self, visit: Visit) -> Visit:
        with self._lock:
            stored = replace(visit, id=next(self._ids))
            self._rows[stored.id] = stored
        return replace(stored)

    def insert_batch(self, visits: Iterable[Visit]) -> None:
        for visit in visits:
            self.insert_one(visit)

    def update_one(self, visit_id: int, changes: Mapping[str, Any]) -> None:
        changes = check_changes(changes)
        with self._lock:
            if visit_id not in self._rows:
                raise StoreError(f"No existe la visita {visit_id}.", ErrorKind.NOT_FOUND, context="actualización")
            self._rows[visit_id] = replace(self._rows[visit_id], **changes)

    def delete_one(self, visit_id: int) -> None:
        with self._lock:
            self._rows.pop(visit_id, None)

    def delete_all(self) -> None:
        with self._lock:
            self._rows.clear()

    def delete_where(self, month_to_executives: Mapping[YearMonth, Iterable[str]]) -> None:
        targets = {month: frozenset(execs) for month, execs in month_to_executives.items()}
        with self._lock:
            doomed = [vid for vid, visit in self._rows.items() if matches_overlap(visit, targets)]
            for vid in doomed:
                del self._rows[vid]

    def list_executives(self) -> List[Executive]:
        with self._lock:
            return sorted((replace(e) for e in self._executives.values()), key=lambda e: e.name)

    def add_executive(self, executive: Executive) -> Executive:
        with self._lock:
            if any(e.name == executive.name for e in self._executives.values()):
                raise duplicate_executive_error(executive.name)
            stored = replace(executive, id=next(self._executive_ids))
            self._executives[stored.id] = stored
        return replace(stored)

    def update_executive(self, executive_id: int, photo_url: Optional[str]) -> None:
        photo_url = check_photo_url(photo_url)
        with self._lock:
            if executive_id not in self._executives:
                raise StoreError(
                    f"No existe la ejecutiva {executive_id}.", ErrorKind.NOT_FOUND, context="actualización de ejecutiva"
                )
            self._executives[executive_id] = replace(self._executives[executive_id], photo_url=photo_url)

    def delete_executive(self, executive_id: int) -> None:
        with self._lock:
            self._executives.pop(executive_id, None)
