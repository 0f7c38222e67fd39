"""Client-side aggregation of visits into KPIs, chart data and text."""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from .materials import MATERIAL_CATALOG
from .models import Activity, Visit, YearMonth

ALL = "all"
UNSPECIFIED = "No especificado"

FILTER_FIELDS = ("city", "chain", "zone", "activity")

WEEKDAYS = ["Lun", "Mar", "Mié", "Jue", "Vie", "Sáb", "Dom"]

CalendarDay = Tuple[int, Dict[str, List[Visit]]]


def _field_value(visit: Visit, name: str) -> str:
    value = getattr(visit, name)
    if isinstance(value, Activity):
        return value.value
    return value or ""


def visits_to_frame(visits: Iterable[Visit]) -> pd.DataFrame:
    """One row per visit with plain values, ready for tables and charts."""

    rows = []
    for visit in visits:
        row = visit.to_dict()
        row["month"] = str(visit.month)
        row["total_cost"] = visit.total_cost
        rows.append(row)
    frame = pd.DataFrame(rows)
    if not frame.empty:
        frame["date"] = pd.to_datetime(frame["date"])
    return frame


def filter_options(visits: Iterable[Visit]) -> Dict[str, List[str]]:
    """Sorted non-empty values for each panel filter, ``"all"`` first."""

    values: Dict[str, set] = {name: set() for name in FILTER_FIELDS}
    for visit in visits:
        for name in FILTER_FIELDS:
            value = _field_value(visit, name).strip()
            if value:
                values[name].add(value)
    return {name: [ALL, *sorted(found)] for name, found in values.items()}


def apply_filters(visits: Iterable[Visit], **selected: Optional[str]) -> List[Visit]:
    """Keep visits matching every selected filter.  ``"all"``/``None`` match anything."""

    active = {k: v for k, v in selected.items() if v and v != ALL}
    unknown = set(active) - set(FILTER_FIELDS)
    if unknown:
        raise ValueError(f"Filtro desconocido: {', '.join(sorted(unknown))}")
    return [
        visit for visit in visits
        if all(_field_value(visit, name) == value for name, value in active.items())
    ]


def count_by(visits: Iterable[Visit], name: str) -> pd.DataFrame:
    """Visit counts per value of ``name``, largest first."""

    counts: Dict[str, int] = defaultdict(int)
    for visit in visits:
        counts[_field_value(visit, name) or UNSPECIFIED] += 1
    frame = pd.DataFrame({"name": list(counts), "visits": list(counts.values())})
    if frame.empty:
        return frame
    return frame.sort_values(["visits", "name"], ascending=[False, True]).reset_index(drop=True)


def compute_kpis(visits: Iterable[Visit], month: Optional[YearMonth] = None) -> Dict[str, float]:
    visits = list(visits)
    active_days = {visit.date for visit in visits}
    kpis: Dict[str, float] = {
        "visits": len(visits),
        "executives": len({v.executive for v in visits if v.executive}),
        "chains": len({v.chain for v in visits if v.chain}),
        "budget": float(sum(v.budget for v in visits)),
        "material_cost": float(sum(v.total_cost for v in visits)),
        "active_days": len(active_days),
    }
    if month is not None:
        in_month = {d for d in active_days if month.contains(d)}
        kpis["idle_days"] = month.days - len(in_month)
    return kpis


def group_by_day(visits: Iterable[Visit]) -> Dict[str, Dict[str, List[Visit]]]:
    """``YYYY-MM-DD`` -> executive -> visits, used by the calendar view."""

    grouped: Dict[str, Dict[str, List[Visit]]] = defaultdict(lambda: defaultdict(list))
    for visit in sorted(visits, key=lambda v: (v.date, v.executive)):
        grouped[visit.date.isoformat()][visit.executive or "Sin Asignar"].append(visit)
    return {day: dict(execs) for day, execs in grouped.items()}


def calendar_weeks(visits: Iterable[Visit], month: YearMonth) -> List[List[Optional[CalendarDay]]]:
    """Weeks of ``month`` (Monday first); each cell is ``(day, executive -> visits)`` or ``None``."""

    grouped = group_by_day(visits)
    offset = month.first_day.weekday()
    cells: List[Optional[CalendarDay]] = [None] * offset
    for day in range(1, month.days + 1):
        cells.append((day, grouped.get(date(month.year, month.month, day).isoformat(), {})))
    cells.extend([None] * (-len(cells) % 7))
    return [cells[start:start + 7] for start in range(0, len(cells), 7)]


def material_summary(visits: Iterable[Visit], catalog: Optional[Mapping[str, float]] = None) -> pd.DataFrame:
    """Quantity and cost per material for Impulso activities."""

    prices = MATERIAL_CATALOG if catalog is None else catalog
    totals: Dict[str, int] = defaultdict(int)
    for visit in visits:
        if visit.activity is not Activity.IMPULSO:
            continue
        for name, quantity in visit.material_pop.items():
            totals[name] += quantity
    frame = pd.DataFrame(
        [{"material": name, "quantity": qty, "unit_price": prices.get(name, 0.0)} for name, qty in totals.items()],
        columns=["material", "quantity", "unit_price"],
    )
    frame["cost"] = frame["quantity"] * frame["unit_price"]
    return frame.sort_values("cost", ascending=False).reset_index(drop=True)


def _format_currency(value: Optional[float]) -> str:
    if value is None or pd.isna(value):
        return "―"
    return f"${value:,.0f}"


def generate_summary(kpis: Mapping[str, float], timeframe: str, top_executives: Optional[pd.DataFrame] = None) -> str:
    """Create a short narrative for the KPIs of ``timeframe``."""

    lines = [
        f"En {timeframe} se programaron {int(kpis.get('visits', 0))} actividades "
        f"con {int(kpis.get('executives', 0))} ejecutivas en {int(kpis.get('chains', 0))} cadenas."
    ]
    lines.append(
        f" Presupuesto total {_format_currency(kpis.get('budget'))}, "
        f"costo de materiales {_format_currency(kpis.get('material_cost'))}."
    )
    idle = kpis.get("idle_days")
    if idle is not None:
        lines.append(f" Hay {int(idle)} días del mes sin actividad.")
    if top_executives is not None and not top_executives.empty:
        leaders = [f"{row['name']} ({int(row['visits'])})" for _, row in top_executives.head(3).iterrows()]
        lines.append(" Mayor carga: " + ", ".join(leaders) + ".")
    return "".join(lines)
