"""POP material catalogue used for import columns and cost totals."""

from __future__ import annotations

from typing import Dict, Mapping, Optional

MATERIAL_CATALOG: Dict[str, float] = {
    "AFICHE": 1.50,
    "CARPA": 150.00,
    "EXHIBIDOR MADERA": 80.00,
    "FUNDA": 0.50,
    "GANCHOS": 0.25,
    "HABLADORES ACRILICO": 5.00,
    "PLUMA": 0.75,
    "ROMPETRAFICO": 2.00,
    "SERVILLETA": 0.10,
    "OTROS": 0.00,
    "FLAYER": 0.20,
    "ROLL UP": 45.00,
    "LLAVERO": 1.00,
    "PORTAVASO": 0.30,
    "STAND": 250.00,
    "VIBRIN": 3.00,
    "EXHIBIDOR ACRILICO": 60.00,
}

MATERIAL_COLUMN_PREFIX = "CANTIDAD "


def material_column(name: str) -> str:
    return f"{MATERIAL_COLUMN_PREFIX}{name}"


def material_cost(material_pop: Mapping[str, int], catalog: Optional[Mapping[str, float]] = None) -> float:
    """Total cost of the given quantities.  Unknown materials cost nothing."""

    prices = MATERIAL_CATALOG if catalog is None else catalog
    return float(sum(qty * prices.get(name, 0.0) for name, qty in material_pop.items()))


def format_material_pop(material_pop: Mapping[str, int]) -> str:
    return ", ".join(f"{name}({qty})" for name, qty in material_pop.items())
