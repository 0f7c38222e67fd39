"""DuckDB backed visit store."""

from __future__ import annotations

import json
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

import duckdb
import pandas as pd

from visits.errors import ErrorKind, StoreError, classify_backend_error
from visits.models import VISIT_FIELDS, Executive, Visit, YearMonth, check_photo_url

from .base import VisitFilter, VisitStore, check_changes, duplicate_executive_error

logger = logging.getLogger(__name__)

_SCHEMA_INITIALIZED: set[str] = set()
_SCHEMA_LOCK = threading.Lock()

# Visit field -> column.  ``date`` is renamed to keep the column name out of
# SQL keyword territory.
COLUMNS: Dict[str, str] = {name: name for name in VISIT_FIELDS}
COLUMNS["date"] = "visit_date"

_INTEGER_FIELDS = {"expected_attendance", "sample_count"}


def get_connection(path: str = "data/visits.duckdb") -> duckdb.DuckDBPyConnection:
    """Return a DuckDB connection for the given path."""

    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(path)


def create_db_and_tables(con: duckdb.DuckDBPyConnection) -> None:
    """Ensure that the visits and executives tables and their id sequences exist."""

    con.execute("CREATE SEQUENCE IF NOT EXISTS visit_id_seq START 1")
    con.execute(
        """
        CREATE TABLE IF NOT EXISTS visits (
            id BIGINT PRIMARY KEY DEFAULT nextval('visit_id_seq'),
            visit_date DATE NOT NULL,
            executive TEXT NOT NULL,
            agent TEXT,
            channel TEXT,
            chain TEXT,
            pdv_detail TEXT,
            activity TEXT NOT NULL,
            schedule TEXT,
            city TEXT,
            zone TEXT,
            budget DOUBLE NOT NULL DEFAULT 0,
            expected_attendance INTEGER,
            material_delivery_date DATE,
            delivery_place TEXT,
            objective TEXT,
            sample_count INTEGER,
            material_pop TEXT,
            other_materials TEXT,
            observation TEXT
        )
        """
    )
    con.execute("CREATE SEQUENCE IF NOT EXISTS executive_id_seq START 1")
    con.execute(
        """
        CREATE TABLE IF NOT EXISTS executives (
            id BIGINT PRIMARY KEY DEFAULT nextval('executive_id_seq'),
            name TEXT NOT NULL UNIQUE,
            photo_url TEXT
        )
        """
    )


def _safe_get(row: pd.Series, key: str) -> Optional[object]:
    """Return a value from a Series with ``None`` for missing/NaN."""

    if key not in row.index:
        return None
    value = row[key]
    if pd.isna(value):
        return None
    return value


def _row_to_visit(row: pd.Series) -> Visit:
    data: Dict[str, Any] = {"id": int(row["id"])}
    for name, column in COLUMNS.items():
        value = _safe_get(row, column)
        if value is None:
            continue
        if name == "material_pop":
            value = json.loads(value)
        elif name in _INTEGER_FIELDS:
            value = int(value)
        data[name] = value
    return Visit.from_dict(data)


def _to_db_value(name: str, value: Any) -> Any:
    if name == "material_pop":
        return json.dumps(value or {}, ensure_ascii=False)
    if name == "activity":
        return value.value
    return value


def _visit_params(visit: Visit) -> List[Any]:
    return [_to_db_value(name, getattr(visit, name)) for name in COLUMNS]


class DuckDBVisitStore(VisitStore):
    """Visits persisted in a local DuckDB file.

    A fresh connection is opened per operation.  Multi-statement writes run
    inside a DuckDB transaction, so a failed batch leaves the table as it
    was.
    """

    backend_name = "DuckDB"

    def __init__(self, path: str = "data/visits.duckdb"):
        self.path = path
        # ``:memory:`` databases vanish with their connection, so keep one open.
        self._shared = get_connection(path) if path == ":memory:" else None

    @contextmanager
    def _connection(self, context: str) -> Iterator[duckdb.DuckDBPyConnection]:
        try:
            # Cursors on the shared in-memory database are safe to use from
            # the refresh worker threads.
            con = self._shared.cursor() if self._shared is not None else get_connection(self.path)
        except duckdb.Error as exc:
            raise classify_backend_error(exc, context) from exc
        try:
            self._ensure_schema(con)
            yield con
        except duckdb.Error as exc:
            logger.error("DuckDB error during %s: %s", context, exc)
            raise classify_backend_error(exc, context) from exc
        finally:
            con.close()

    def _ensure_schema(self, con: duckdb.DuckDBPyConnection) -> None:
        with _SCHEMA_LOCK:
            if self.path in _SCHEMA_INITIALIZED and self._shared is None:
                return
            create_db_and_tables(con)
            if self._shared is None:
                _SCHEMA_INITIALIZED.add(self.path)

    @contextmanager
    def _transaction(self, con: duckdb.DuckDBPyConnection) -> Iterator[None]:
        con.execute("BEGIN TRANSACTION")
        try:
            yield
            con.execute("COMMIT")
        except Exception:
            con.execute("ROLLBACK")
            raise

    def list(self, visit_filter: Optional[VisitFilter] = None) -> List[Visit]:
        clauses: List[str] = []
        params: List[Any] = []
        if visit_filter is not None:
            if visit_filter.month is not None:
                clauses.append("visit_date BETWEEN ? AND ?")
                params.extend([visit_filter.month.first_day, visit_filter.month.last_day])
            if visit_filter.executive:
                clauses.append("executive = ?")
                params.append(visit_filter.executive)
            if visit_filter.agent:
                clauses.append("agent = ?")
                params.append(visit_filter.agent)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._connection("lectura de visitas") as con:
            df = con.execute(f"SELECT * FROM visits {where} ORDER BY visit_date, id", params).df()
        return [_row_to_visit(row) for _, row in df.iterrows()]

    def insert_one(self, visit: Visit) -> Visit:
        columns = ", ".join(COLUMNS.values())
        placeholders = ", ".join("?" for _ in COLUMNS)
        with self._connection("creación de visita") as con:
            new_id = con.execute(
                f"INSERT INTO visits ({columns}) VALUES ({placeholders}) RETURNING id",
                _visit_params(visit),
            ).fetchone()[0]
        return Visit.from_dict({**visit.to_dict(), "id": int(new_id)})

    def insert_batch(self, visits: Iterable[Visit]) -> None:
        prepared = [_visit_params(visit) for visit in visits]
        if not prepared:
            return
        columns = ", ".join(COLUMNS.values())
        placeholders = ", ".join("?" for _ in COLUMNS)
        with self._connection("carga masiva de visitas") as con:
            with self._transaction(con):
                con.executemany(f"INSERT INTO visits ({columns}) VALUES ({placeholders})", prepared)
        logger.info("Inserted %d visits into %s", len(prepared), self.path)

    def update_one(self, visit_id: int, changes: Mapping[str, Any]) -> None:
        changes = check_changes(changes)
        if not changes:
            return
        assignments = ", ".join(f"{COLUMNS[name]} = ?" for name in changes)
        params = [_to_db_value(name, value) for name, value in changes.items()]
        with self._connection("actualización de visita") as con:
            found = con.execute("SELECT COUNT(*) FROM visits WHERE id = ?", [visit_id]).fetchone()[0]
            if not found:
                raise StoreError(f"No existe la visita {visit_id}.", ErrorKind.NOT_FOUND, context="actualización de visita")
            con.execute(f"UPDATE visits SET {assignments} WHERE id = ?", [*params, visit_id])

    def delete_one(self, visit_id: int) -> None:
        with self._connection("eliminación de visita") as con:
            con.execute("DELETE FROM visits WHERE id = ?", [visit_id])

    def delete_all(self) -> None:
        with self._connection("borrado total de visitas") as con:
            con.execute("DELETE FROM visits")
        logger.warning("All visits deleted from %s", self.path)

    def delete_where(self, month_to_executives: Mapping[YearMonth, Iterable[str]]) -> None:
        with self._connection("borrado por mes y ejecutiva") as con:
            with self._transaction(con):
                for month, executives in month_to_executives.items():
                    names = sorted(set(executives))
                    if not names:
                        continue
                    placeholders = ", ".join("?" for _ in names)
                    con.execute(
                        f"""
                        DELETE FROM visits
                        WHERE visit_date BETWEEN ? AND ?
                          AND executive IN ({placeholders})
                        """,
                        [month.first_day, month.last_day, *names],
                    )
                    logger.info("Deleted visits of %s for %s", month, ", ".join(names))

    def list_executives(self) -> List[Executive]:
        with self._connection("lectura de ejecutivas") as con:
            rows = con.execute("SELECT id, name, photo_url FROM executives ORDER BY name").fetchall()
        return [Executive(name=name, photo_url=photo_url, id=int(eid)) for eid, name, photo_url in rows]

    def add_executive(self, executive: Executive) -> Executive:
        with self._connection("creación de ejecutiva") as con:
            taken = con.execute("SELECT COUNT(*) FROM executives WHERE name = ?", [executive.name]).fetchone()[0]
            if taken:
                raise duplicate_executive_error(executive.name)
            new_id = con.execute(
                "INSERT INTO executives (name, photo_url) VALUES (?, ?) RETURNING id",
                [executive.name, executive.photo_url],
            ).fetchone()[0]
        logger.info("Executive %s added to %s", executive.name, self.path)
        return Executive(name=executive.name, photo_url=executive.photo_url, id=int(new_id))

    def update_executive(self, executive_id: int, photo_url: Optional[str]) -> None:
        photo_url = check_photo_url(photo_url)
        with self._connection("actualización de ejecutiva") as con:
            found = con.execute("SELECT COUNT(*) FROM executives WHERE id = ?", [executive_id]).fetchone()[0]
            if not found:
                raise StoreError(
                    f"No existe la ejecutiva {executive_id}.", ErrorKind.NOT_FOUND, context="actualización de ejecutiva"
                )
            con.execute("UPDATE executives SET photo_url = ? WHERE id = ?", [photo_url, executive_id])

    def delete_executive(self, executive_id: int) -> None:
        with self._connection("eliminación de ejecutiva") as con:
            con.execute("DELETE FROM executives WHERE id = ?", [executive_id])
