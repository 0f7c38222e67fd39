"""Month duplication and overlap reconciliation for visit schedules.

Both routines are pure: they take visit lists and return new values
without touching any store, so the controller decides what to persist.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple

from .models import Visit, YearMonth

OverlapMap = Dict[YearMonth, FrozenSet[str]]


def visits_in_month(visits: Iterable[Visit], month: YearMonth) -> List[Visit]:
    return [visit for visit in visits if month.contains(visit.date)]


def duplicate_month(source: YearMonth, target: YearMonth, all_visits: Iterable[Visit]) -> List[Visit]:
    """Copy every visit of ``source`` into ``target``.

    The day of month is preserved and clamped to the length of the target
    month, so a visit on January 31 lands on February 28 (29 in leap
    years).  The copies have no ``id``; all other fields are kept.  An empty
    list means the source month has no visits.
    """

    return [
        visit.as_draft(date=target.clamp_day(visit.date.day))
        for visit in visits_in_month(all_visits, source)
    ]


def _month_executive_pairs(visits: Iterable[Visit]) -> Set[Tuple[YearMonth, str]]:
    return {(visit.month, visit.executive) for visit in visits}


def find_overlaps(incoming: Iterable[Visit], existing: Iterable[Visit]) -> OverlapMap:
    """Return month -> executives present both in ``incoming`` and ``existing``.

    Pairs found on only one side are left out, as are months without any
    collision.  The result does not depend on the order of either input.
    """

    existing_pairs = _month_executive_pairs(existing)
    grouped: Dict[YearMonth, Set[str]] = defaultdict(set)
    for pair in _month_executive_pairs(incoming):
        if pair in existing_pairs:
            month, executive = pair
            grouped[month].add(executive)
    return {month: frozenset(executives) for month, executives in grouped.items()}


def format_overlaps(overlaps: Mapping[YearMonth, Iterable[str]]) -> List[Tuple[str, List[str]]]:
    """Sorted ``(YYYY-MM, [executives])`` rows for the confirmation prompt."""

    return [(str(month), sorted(overlaps[month])) for month in sorted(overlaps)]


def matches_overlap(visit: Visit, overlaps: Mapping[YearMonth, Iterable[str]]) -> bool:
    executives = overlaps.get(visit.month)
    return bool(executives) and visit.executive in executives


def available_months(visits: Iterable[Visit]) -> List[YearMonth]:
    """Distinct months with visits, newest first."""

    return sorted({visit.month for visit in visits}, reverse=True)


def target_month_options(visits: Iterable[Visit], today: Optional[date] = None, horizon: int = 12) -> List[YearMonth]:
    """Months a schedule can be duplicated into, newest first.

    Existing months plus the ``horizon`` months following the latest visit
    (or following ``today`` when there is no data yet).
    """

    visits = list(visits)
    months = {visit.month for visit in visits}
    if visits:
        anchor = max(visit.date for visit in visits)
    else:
        anchor = today or date.today()
    start = YearMonth.from_date(anchor)
    months.update(start.shift(offset) for offset in range(1, horizon + 1))
    return sorted(months, reverse=True)
