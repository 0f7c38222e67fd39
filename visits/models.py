"""Core record types for trade visits."""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

import pandas as pd

from .materials import material_cost

_YEAR_MONTH_PATTERN = re.compile(r"^\s*(?P<year>\d{4})[-/](?P<month>\d{1,2})\s*$")
_YEAR_FIRST_PATTERN = re.compile(r"^(?P<year>\d{4})[-/.](?P<month>\d{1,2})[-/.](?P<day>\d{1,2})(?!\d)")


@dataclass(frozen=True, order=True)
class YearMonth:
    """A calendar month without a specific day."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Mes fuera de rango: {self.month}")

    @classmethod
    def parse(cls, text: str) -> "YearMonth":
        match = _YEAR_MONTH_PATTERN.match(str(text))
        if not match:
            raise ValueError(f"Formato de mes no reconocido: {text!r} (se espera YYYY-MM)")
        return cls(int(match.group("year")), int(match.group("month")))

    @classmethod
    def from_date(cls, value: date) -> "YearMonth":
        return cls(value.year, value.month)

    @property
    def days(self) -> int:
        return calendar.monthrange(self.year, self.month)[1]

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, self.days)

    def contains(self, value: date) -> bool:
        return value.year == self.year and value.month == self.month

    def shift(self, months: int) -> "YearMonth":
        index = self.year * 12 + (self.month - 1) + months
        return YearMonth(index // 12, index % 12 + 1)

    def clamp_day(self, day: int) -> date:
        """Return ``day`` in this month, moved back to the last day if needed."""

        return date(self.year, self.month, min(day, self.days))

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


class Activity(str, Enum):
    VISITA = "Visita"
    IMPULSO = "Impulso"
    VERIFICACION = "Verificación"

    @classmethod
    def parse(cls, value: Any) -> "Activity":
        if isinstance(value, Activity):
            return value
        text = str(value or "").strip().lower()
        aliases = {
            "visita": cls.VISITA,
            "impulso": cls.IMPULSO,
            "impulsación": cls.IMPULSO,
            "impulsacion": cls.IMPULSO,
            "verificación": cls.VERIFICACION,
            "verificacion": cls.VERIFICACION,
        }
        if text not in aliases:
            options = ", ".join(a.value for a in cls)
            raise ValueError(f"Actividad no válida: {value!r}. Valores permitidos: {options}")
        return aliases[text]


def to_date(value: Any) -> date:
    """Convert strings, timestamps and datetimes to a plain ``date``."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        raise ValueError("Fecha vacía")
    text = str(value).strip()
    if not text:
        raise ValueError("Fecha vacía")
    # Year-first text (ISO timestamps from the hosted backend included) is
    # read as year, month, day; any trailing time or zone is ignored.
    match = _YEAR_FIRST_PATTERN.match(text)
    if match:
        try:
            return date(int(match.group("year")), int(match.group("month")), int(match.group("day")))
        except ValueError as exc:
            raise ValueError(f"Fecha no válida: {value!r}") from exc
    parsed = pd.to_datetime(text, errors="coerce", dayfirst=True)
    if pd.isna(parsed):
        raise ValueError(f"Fecha no válida: {value!r}")
    return parsed.date()


@dataclass
class Visit:
    """One field visit.  ``id`` is ``None`` until the store assigns one."""

    date: date
    executive: str
    agent: str = ""
    channel: str = ""
    chain: str = ""
    pdv_detail: str = ""
    activity: Activity = Activity.VISITA
    schedule: str = ""
    city: str = ""
    zone: str = ""
    budget: float = 0.0
    expected_attendance: Optional[int] = None
    material_delivery_date: Optional[date] = None
    delivery_place: Optional[str] = None
    objective: Optional[str] = None
    sample_count: Optional[int] = None
    material_pop: Dict[str, int] = field(default_factory=dict)
    other_materials: Optional[str] = None
    observation: Optional[str] = None
    id: Optional[int] = None

    def __post_init__(self) -> None:
        self.date = to_date(self.date)
        if self.material_delivery_date is not None:
            self.material_delivery_date = to_date(self.material_delivery_date)
        self.activity = Activity.parse(self.activity)
        self.budget = float(self.budget or 0.0)
        if self.budget < 0:
            raise ValueError("El presupuesto no puede ser negativo.")
        for name in ("expected_attendance", "sample_count"):
            value = getattr(self, name)
            if value is not None and int(value) < 0:
                raise ValueError(f"{name} no puede ser negativo.")
        self.material_pop = {str(k): int(v) for k, v in (self.material_pop or {}).items() if int(v) > 0}

    @property
    def month(self) -> YearMonth:
        return YearMonth.from_date(self.date)

    @property
    def total_cost(self) -> float:
        return material_cost(self.material_pop)

    @property
    def is_draft(self) -> bool:
        return self.id is None

    def as_draft(self, **changes: Any) -> "Visit":
        """Copy of this visit without ``id``, with ``changes`` applied."""

        changes.setdefault("material_pop", dict(self.material_pop))
        return replace(self, id=None, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["activity"] = self.activity.value
        data["material_pop"] = dict(self.material_pop)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Visit":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


VISIT_FIELDS = tuple(f.name for f in fields(Visit) if f.name != "id")


@dataclass
class Executive:
    """A trade executive in the catalogue.  Names are unique."""

    name: str
    photo_url: Optional[str] = None
    id: Optional[int] = None

    def __post_init__(self) -> None:
        self.name = re.sub(r"\s+", " ", str(self.name or "")).strip()
        if not self.name:
            raise ValueError("El nombre de la ejecutiva es requerido.")
        self.photo_url = check_photo_url(self.photo_url)


def check_photo_url(value: Optional[str]) -> Optional[str]:
    """Blank becomes ``None``; anything else must be an http(s) URL."""

    text = str(value or "").strip()
    if not text:
        return None
    if not re.match(r"^https?://\S+$", text):
        raise ValueError("Por favor, ingrese una URL válida.")
    return text
