"""Spreadsheet ingestion for visit schedules.

Files are read into a pandas dataframe (CSV, Excel or a public Google
Sheet) and then validated row by row into ``Visit`` drafts.  Validation
stops at the first problem and nothing partial is returned, so an upload
is either imported completely or not at all.
"""

from __future__ import annotations

import io
import logging
import pathlib
import re
from dataclasses import dataclass, field
from io import BufferedReader
from typing import Any, List, Optional, Union

import chardet
import pandas as pd
import requests

from .errors import ImportValidationError
from .materials import MATERIAL_CATALOG, material_column
from .models import Activity, Visit, to_date

logger = logging.getLogger(__name__)

SUPPORTED_FILE_TYPES = {"csv", "excel", "google"}

REQUIRED_COLUMNS = (
    "EJECUTIVA DE TRADE",
    "ASESOR COMERCIAL",
    "CANAL",
    "CADENA",
    "DIRECCIÓN DEL PDV",
    "ACTIVIDAD",
    "HORARIO",
    "CIUDAD",
    "ZONA",
    "FECHA",
)

OPTIONAL_COLUMNS = (
    "PRESUPUESTO",
    "AFLUENCIA ESPERADA",
    "FECHA DE ENTREGA DE MATERIAL",
    "LUGAR DE ENTREGA",
    "OBJETIVO DE LA ACTIVIDAD",
    "CANTIDAD DE MUESTRAS",
    "OTROS MATERIALES",
    "OBSERVACION",
)

MATERIAL_COLUMNS = tuple(material_column(name) for name in MATERIAL_CATALOG)

TEMPLATE_COLUMNS = REQUIRED_COLUMNS + OPTIONAL_COLUMNS + MATERIAL_COLUMNS

_TEXT_FIELDS = {
    "executive": "EJECUTIVA DE TRADE",
    "agent": "ASESOR COMERCIAL",
    "channel": "CANAL",
    "chain": "CADENA",
    "pdv_detail": "DIRECCIÓN DEL PDV",
    "schedule": "HORARIO",
    "city": "CIUDAD",
    "zone": "ZONA",
}

_OPTIONAL_TEXT_FIELDS = {
    "delivery_place": "LUGAR DE ENTREGA",
    "objective": "OBJETIVO DE LA ACTIVIDAD",
    "other_materials": "OTROS MATERIALES",
    "observation": "OBSERVACION",
}

_COUNT_FIELDS = {
    "expected_attendance": "AFLUENCIA ESPERADA",
    "sample_count": "CANTIDAD DE MUESTRAS",
}


@dataclass(frozen=True)
class ParseResult:
    """Outcome of an import: either ``visits`` or an ``error``."""

    visits: List[Visit] = field(default_factory=list)
    error: Optional[ImportValidationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, visits: List[Visit]) -> "ParseResult":
        return cls(visits=visits)

    @classmethod
    def failure(cls, error: ImportValidationError) -> "ParseResult":
        return cls(error=error)


def _normalise_column_name(name: Any) -> str:
    """Collapse whitespace and case so header typos in spacing still match."""

    return re.sub(r"\s+", " ", str(name)).strip().upper()


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _text(value: Any) -> str:
    return "" if _is_blank(value) else str(value).strip()


def _number(value: Any, column: str, row_number: int) -> Optional[float]:
    if _is_blank(value):
        return None
    number = pd.to_numeric(value, errors="coerce")
    if pd.isna(number):
        raise ImportValidationError(
            f"Fila {row_number}: el valor {value!r} de la columna {column} no es numérico.",
            row=row_number,
            column=column,
        )
    if number < 0:
        raise ImportValidationError(
            f"Fila {row_number}: la columna {column} no puede ser negativa.",
            row=row_number,
            column=column,
        )
    return float(number)


def _date(value: Any, column: str, row_number: int) -> Any:
    try:
        return to_date(value)
    except ValueError as exc:
        raise ImportValidationError(
            f"Fila {row_number}: fecha no válida en la columna {column} ({exc}).",
            row=row_number,
            column=column,
        ) from exc


def check_columns(df: pd.DataFrame) -> None:
    """Raise for the first required column missing from ``df``."""

    present = set(df.columns)
    for column in REQUIRED_COLUMNS:
        if column not in present:
            raise ImportValidationError(
                f"Falta la columna requerida: {column}. Descargue la plantilla actualizada.",
                column=column,
            )


def parse_visit_row(row: pd.Series, row_number: int) -> Visit:
    """Convert one spreadsheet row into a visit draft."""

    data: dict = {name: _text(row.get(column)) for name, column in _TEXT_FIELDS.items()}
    if not data["executive"]:
        raise ImportValidationError(
            f"Fila {row_number}: la columna EJECUTIVA DE TRADE está vacía.",
            row=row_number,
            column="EJECUTIVA DE TRADE",
        )
    data["date"] = _date(row.get("FECHA"), "FECHA", row_number)
    try:
        data["activity"] = Activity.parse(row.get("ACTIVIDAD"))
    except ValueError as exc:
        raise ImportValidationError(f"Fila {row_number}: {exc}", row=row_number, column="ACTIVIDAD") from exc

    data["budget"] = _number(row.get("PRESUPUESTO"), "PRESUPUESTO", row_number) or 0.0
    for name, column in _COUNT_FIELDS.items():
        value = _number(row.get(column), column, row_number)
        data[name] = int(value) if value is not None else None
    for name, column in _OPTIONAL_TEXT_FIELDS.items():
        data[name] = _text(row.get(column)) or None
    delivery = row.get("FECHA DE ENTREGA DE MATERIAL")
    if not _is_blank(delivery):
        data["material_delivery_date"] = _date(delivery, "FECHA DE ENTREGA DE MATERIAL", row_number)

    materials = {}
    for name in MATERIAL_CATALOG:
        column = material_column(name)
        quantity = _number(row.get(column), column, row_number)
        if quantity:
            materials[name] = int(quantity)
    data["material_pop"] = materials
    try:
        return Visit(**data)
    except ValueError as exc:
        raise ImportValidationError(f"Fila {row_number}: {exc}", row=row_number) from exc


def parse_visit_frame(df: pd.DataFrame) -> ParseResult:
    """Validate a whole sheet, stopping at the first error."""

    if df is None or df.empty:
        return ParseResult.failure(ImportValidationError("El archivo está vacío o no tiene datos."))
    data = df.rename(columns={col: _normalise_column_name(col) for col in df.columns})
    # Positional index so row numbers survive dropping blank rows.
    data = data.reset_index(drop=True).dropna(how="all")
    try:
        check_columns(data)
        # Header is spreadsheet row 1, so data starts at row 2.
        visits = [parse_visit_row(row, int(index) + 2) for index, row in data.iterrows()]
    except ImportValidationError as exc:
        logger.info("Import rejected: %s", exc)
        return ParseResult.failure(exc)
    return ParseResult.success(visits)


def _load_csv(data: io.BytesIO, **kwargs) -> pd.DataFrame:
    """Load a CSV file with encoding detection."""

    raw = data.getvalue()
    if not raw:
        raise ImportValidationError("El archivo CSV está vacío.")
    encoding = chardet.detect(raw[:4096])["encoding"] or "utf-8"
    data.seek(0)
    return pd.read_csv(data, encoding=encoding, **kwargs)


def _load_excel(data: io.BytesIO, **kwargs) -> pd.DataFrame:
    """Load the first sheet of an Excel file from bytes."""

    return pd.read_excel(data, sheet_name=0, **kwargs)


def _load_google_sheet(url: str, worksheet: Optional[str] = None) -> pd.DataFrame:
    """Load a Google Spreadsheet via the public CSV export endpoint."""

    if "spreadsheets" not in url:
        raise ImportValidationError("Indique la URL de una hoja de cálculo de Google.")
    if "export" in url:
        export_url = url
    else:
        match = re.search(r"/spreadsheets/d/([a-zA-Z0-9-_]+)", url)
        if not match:
            raise ImportValidationError("No se pudo extraer el ID de la hoja.")
        sheet_id = match.group(1)
        params = "&" + worksheet if worksheet and "gid=" not in worksheet else ""
        export_url = f"https://docs.google.com/spreadsheets/d/{sheet_id}/export?format=csv{params}"
    response = requests.get(export_url, timeout=30)
    response.raise_for_status()
    return pd.read_csv(io.BytesIO(response.content))


FileLike = Union[io.BytesIO, BufferedReader]


def load_visit_file(
    file: Union[FileLike, str],
    source: Optional[str] = None,
    **kwargs,
) -> pd.DataFrame:
    """Load CSV/Excel/Google Sheets into a pandas dataframe.

    Parameters
    ----------
    file:
        Either a file-like object (``BytesIO``) or a string path/URL.
    source:
        Optional explicit source type (``"csv"``, ``"excel"`` or
        ``"google"``).  When ``None`` the type is derived from the file
        extension or URL pattern.
    """

    if source is None:
        if isinstance(file, (str, pathlib.Path)):
            candidate_name: Optional[str] = str(file)
        else:
            candidate_name = getattr(file, "name", None)
        if candidate_name is None:
            raise ImportValidationError("Indique el tipo de archivo o una ruta con extensión.")
        lower_name = candidate_name.lower()
        if lower_name.endswith((".csv", ".txt")):
            source = "csv"
        elif lower_name.endswith((".xlsx", ".xlsm")):
            source = "excel"
        elif "spreadsheets" in lower_name and "google" in lower_name:
            source = "google"
        else:
            raise ImportValidationError(
                "Archivo no válido: seleccione un archivo Excel (.xlsx) o CSV. "
                "Los libros .xls antiguos deben guardarse como .xlsx."
            )

    source = source.lower()
    if source not in SUPPORTED_FILE_TYPES:
        raise ImportValidationError(f"Origen de datos desconocido: {source}")

    if source == "google":
        if not isinstance(file, str):
            raise ImportValidationError("Las hojas de Google se indican con su URL.")
        return _load_google_sheet(file, worksheet=kwargs.pop("worksheet", None))

    if isinstance(file, (str, pathlib.Path)):
        with open(file, "rb") as f:
            data = io.BytesIO(f.read())
    else:
        data = io.BytesIO(file.read()) if not isinstance(file, io.BytesIO) else file
    if source == "csv":
        return _load_csv(data, **kwargs)
    return _load_excel(data, **kwargs)


def build_template() -> bytes:
    """Excel template with every accepted column and one example row."""

    example = {
        "EJECUTIVA DE TRADE": "Luisa Perez",
        "ASESOR COMERCIAL": "Ana Gomez",
        "CANAL": "Moderno",
        "CADENA": "Exito",
        "DIRECCIÓN DEL PDV": "Exito Calle 80",
        "ACTIVIDAD": Activity.VISITA.value,
        "HORARIO": "AM",
        "CIUDAD": "Bogotá",
        "ZONA": "Norte",
        "FECHA": "2024-07-20",
        "PRESUPUESTO": 1000000,
        "AFLUENCIA ESPERADA": 50,
        "FECHA DE ENTREGA DE MATERIAL": "2024-07-19",
        "OBJETIVO DE LA ACTIVIDAD": "Aumentar visibilidad",
        "CANTIDAD DE MUESTRAS": 100,
        "OBSERVACION": "Sin novedades",
        material_column("AFICHE"): 10,
        material_column("CARPA"): 2,
    }
    frame = pd.DataFrame([example]).reindex(columns=list(TEMPLATE_COLUMNS))
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        frame.to_excel(writer, sheet_name="Datos de Visitas", index=False)
    return output.getvalue()
