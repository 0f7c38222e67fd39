"""Base classes for visit stores."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional

from visits.errors import ErrorKind, StoreError
from visits.models import VISIT_FIELDS, Executive, Visit, YearMonth


@dataclass(frozen=True)
class VisitFilter:
    month: Optional[YearMonth] = None
    executive: Optional[str] = None
    agent: Optional[str] = None

    def matches(self, visit: Visit) -> bool:
        if self.month is not None and not self.month.contains(visit.date):
            return False
        if self.executive and visit.executive != self.executive:
            return False
        if self.agent and visit.agent != self.agent:
            return False
        return True


def check_changes(changes: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate a partial update and coerce its values like ``Visit`` does.

    Unknown field names and values that break a visit invariant (negative
    budget, unparseable date, unknown activity) raise ``ValueError``.
    """

    unknown = sorted(set(changes) - set(VISIT_FIELDS))
    if unknown:
        raise ValueError(f"Campos desconocidos: {', '.join(unknown)}")
    candidate = Visit(**{"date": date.today(), "executive": "", **changes})
    return {name: getattr(candidate, name) for name in changes}


class VisitStore:
    """Abstract visit store.

    Every method may raise ``StoreError`` with a kind and a readable
    message; callers never see backend specific exceptions.
    """

    backend_name: str = ""

    def list(self, visit_filter: Optional[VisitFilter] = None) -> List[Visit]:
        raise NotImplementedError

    def list_all(self) -> List[Visit]:
        return self.list(None)

    def insert_one(self, visit: Visit) -> Visit:
        raise NotImplementedError

    def insert_batch(self, visits: Iterable[Visit]) -> None:
        raise NotImplementedError

    def update_one(self, visit_id: int, changes: Mapping[str, Any]) -> None:
        raise NotImplementedError

    def delete_one(self, visit_id: int) -> None:
        raise NotImplementedError

    def delete_all(self) -> None:
        raise NotImplementedError

    def delete_where(self, month_to_executives: Mapping[YearMonth, Iterable[str]]) -> None:
        raise NotImplementedError

    # -- executive catalogue -------------------------------------------

    def list_executives(self) -> List[Executive]:
        """Catalogue sorted by name."""
        raise NotImplementedError

    def add_executive(self, executive: Executive) -> Executive:
        """Insert a new executive; a taken name raises ``StoreError`` (DUPLICATE)."""
        raise NotImplementedError

    def update_executive(self, executive_id: int, photo_url: Optional[str]) -> None:
        """Change the photo.  Names are fixed once created."""
        raise NotImplementedError

    def delete_executive(self, executive_id: int) -> None:
        raise NotImplementedError


def duplicate_executive_error(name: str) -> StoreError:
    return StoreError(
        f'La ejecutiva con nombre "{name}" ya existe.',
        ErrorKind.DUPLICATE,
        context="creación de ejecutiva",
    )
