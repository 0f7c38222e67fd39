"""Supabase (PostgREST) backed visit store."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional

from visits.errors import ErrorKind, StoreError, classify_backend_error
from visits.models import Executive, Visit, YearMonth, check_photo_url

from .base import VisitFilter, VisitStore, check_changes, duplicate_executive_error

logger = logging.getLogger(__name__)

TABLE = "visits"
EXECUTIVES_TABLE = "executives"
PAGE_SIZE = 1000

# Visit field -> column of the hosted ``visits`` table.
COLUMNS: Dict[str, str] = {
    "executive": "EJECUTIVA DE TRADE",
    "agent": "ASESOR COMERCIAL",
    "channel": "CANAL",
    "chain": "CADENA",
    "pdv_detail": "DIRECCIÓN DEL PDV",
    "activity": "ACTIVIDAD",
    "schedule": "HORARIO",
    "city": "CIUDAD",
    "zone": "ZONA",
    "date": "FECHA",
    "budget": "PRESUPUESTO",
    "expected_attendance": "AFLUENCIA ESPERADA",
    "material_delivery_date": "FECHA DE ENTREGA DE MATERIAL",
    "delivery_place": "LUGAR DE ENTREGA",
    "objective": "OBJETIVO DE LA ACTIVIDAD",
    "sample_count": "CANTIDAD DE MUESTRAS",
    "material_pop": "MATERIAL POP",
    "other_materials": "OTROS MATERIALES",
    "observation": "OBSERVACION",
}


def _serialise(name: str, value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    if name == "activity":
        return value.value
    if name == "material_pop":
        return dict(value or {})
    return value


def visit_to_record(visit: Visit) -> Dict[str, Any]:
    return {column: _serialise(name, getattr(visit, name)) for name, column in COLUMNS.items()}


def record_to_visit(record: Mapping[str, Any]) -> Visit:
    data: Dict[str, Any] = {"id": record.get("id")}
    for name, column in COLUMNS.items():
        value = record.get(column)
        if value is not None:
            data[name] = value
    return Visit.from_dict(data)


class SupabaseVisitStore(VisitStore):
    """Visits stored in the hosted ``visits`` table.

    The client is created by the caller (see ``stores.create_store``) so
    tests can pass a fake with the same fluent query interface.
    """

    backend_name = "Supabase"

    def __init__(self, client: Any, table: str = TABLE, page_size: int = PAGE_SIZE):
        self.client = client
        self.table = table
        # Must not exceed the server max_rows, or pages come back short.
        self.page_size = page_size

    def _run(self, query: Any, context: str) -> Any:
        try:
            response = query.execute()
        except Exception as exc:
            logger.error("Supabase error during %s: %s", context, exc)
            raise classify_backend_error(exc, context) from exc
        return response

    def _filtered_query(self, visit_filter: Optional[VisitFilter]) -> Any:
        query = self.client.table(self.table).select("*")
        if visit_filter is not None:
            if visit_filter.month is not None:
                query = query.gte(COLUMNS["date"], visit_filter.month.first_day.isoformat())
                query = query.lt(COLUMNS["date"], visit_filter.month.shift(1).first_day.isoformat())
            if visit_filter.executive:
                query = query.eq(COLUMNS["executive"], visit_filter.executive)
            if visit_filter.agent:
                query = query.eq(COLUMNS["agent"], visit_filter.agent)
        return query.order(COLUMNS["date"]).order("id")

    def list(self, visit_filter: Optional[VisitFilter] = None) -> List[Visit]:
        """Read every matching row, one ``page_size`` range at a time.

        PostgREST caps each response (``max_rows``), so a single request
        would silently drop rows on large tables.
        """

        records: List[Mapping[str, Any]] = []
        start = 0
        while True:
            query = self._filtered_query(visit_filter).range(start, start + self.page_size - 1)
            page = self._run(query, "lectura de visitas").data or []
            records.extend(page)
            if len(page) < self.page_size:
                break
            start += self.page_size
        return [record_to_visit(record) for record in records]

    def insert_one(self, visit: Visit) -> Visit:
        response = self._run(
            self.client.table(self.table).insert(visit_to_record(visit)),
            "creación de visita",
        )
        if not response.data:
            raise StoreError("El servidor no devolvió la visita creada.", context="creación de visita")
        return record_to_visit(response.data[0])

    def insert_batch(self, visits: Iterable[Visit]) -> None:
        records = [visit_to_record(visit) for visit in visits]
        if not records:
            return
        self._run(self.client.table(self.table).insert(records), "carga masiva de visitas")
        logger.info("Inserted %d visits into Supabase", len(records))

    def update_one(self, visit_id: int, changes: Mapping[str, Any]) -> None:
        changes = check_changes(changes)
        if not changes:
            return
        payload = {COLUMNS[name]: _serialise(name, value) for name, value in changes.items()}
        response = self._run(
            self.client.table(self.table).update(payload).eq("id", visit_id),
            "actualización de visita",
        )
        if not response.data:
            raise StoreError(f"No existe la visita {visit_id}.", ErrorKind.NOT_FOUND, context="actualización de visita")

    def delete_one(self, visit_id: int) -> None:
        self._run(self.client.table(self.table).delete().eq("id", visit_id), "eliminación de visita")

    def delete_all(self) -> None:
        # PostgREST refuses unfiltered deletes.
        self._run(self.client.table(self.table).delete().neq("id", -1), "borrado total de visitas")
        logger.warning("All visits deleted from Supabase")

    def delete_where(self, month_to_executives: Mapping[YearMonth, Iterable[str]]) -> None:
        for month, executives in month_to_executives.items():
            names = sorted(set(executives))
            if not names:
                continue
            query = (
                self.client.table(self.table)
                .delete()
                .gte(COLUMNS["date"], month.first_day.isoformat())
                .lt(COLUMNS["date"], month.shift(1).first_day.isoformat())
                .in_(COLUMNS["executive"], names)
            )
            self._run(query, f"borrado para mes {month} y ejecutivas")
            logger.info("Deleted visits of %s for %s", month, ", ".join(names))

    def list_executives(self) -> List[Executive]:
        response = self._run(
            self.client.table(EXECUTIVES_TABLE).select("*").order("name"),
            "lectura de ejecutivas",
        )
        return [
            Executive(name=record["name"], photo_url=record.get("photo_url"), id=record.get("id"))
            for record in response.data or []
        ]

    def add_executive(self, executive: Executive) -> Executive:
        payload = {"name": executive.name, "photo_url": executive.photo_url}
        try:
            response = self._run(self.client.table(EXECUTIVES_TABLE).insert(payload), "creación de ejecutiva")
        except StoreError as exc:
            if exc.kind is ErrorKind.DUPLICATE:
                raise duplicate_executive_error(executive.name) from exc
            raise
        if not response.data:
            raise StoreError("El servidor no devolvió la ejecutiva creada.", context="creación de ejecutiva")
        record = response.data[0]
        return Executive(name=record["name"], photo_url=record.get("photo_url"), id=record.get("id"))

    def update_executive(self, executive_id: int, photo_url: Optional[str]) -> None:
        response = self._run(
            self.client.table(EXECUTIVES_TABLE).update({"photo_url": check_photo_url(photo_url)}).eq("id", executive_id),
            "actualización de ejecutiva",
        )
        if not response.data:
            raise StoreError(
                f"No existe la ejecutiva {executive_id}.", ErrorKind.NOT_FOUND, context="actualización de ejecutiva"
            )

    def delete_executive(self, executive_id: int) -> None:
        self._run(self.client.table(EXECUTIVES_TABLE).delete().eq("id", executive_id), "eliminación de ejecutiva")
