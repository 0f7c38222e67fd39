"""Excel and PDF exports of the filtered visit list."""

from __future__ import annotations

import io
from datetime import date
from typing import Iterable, List, Mapping, Optional

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .materials import MATERIAL_CATALOG, material_column
from .models import Visit

EXCEL_COLUMNS = {
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
    "total_cost": "COSTO TOTAL MATERIALES",
    "expected_attendance": "AFLUENCIA ESPERADA",
    "material_delivery_date": "FECHA DE ENTREGA DE MATERIAL",
    "delivery_place": "LUGAR DE ENTREGA",
    "objective": "OBJETIVO DE LA ACTIVIDAD",
    "sample_count": "CANTIDAD DE MUESTRAS",
    "other_materials": "OTROS MATERIALES",
    "observation": "OBSERVACION",
}

FILTER_LABELS = {
    "month": ("Mes", "Todos"),
    "executive": ("Ejecutiva", "Todas"),
    "agent": ("Asesor", "Todos"),
    "city": ("Ciudad", "Todas"),
    "chain": ("Cadena", "Todas"),
    "zone": ("Zona", "Todas"),
    "activity": ("Actividad", "Todas"),
}


def _format_date(value: Optional[date]) -> str:
    return value.strftime("%d/%m/%Y") if value else ""


def _format_money(value: float) -> str:
    return f"${value:,.0f}"


def export_rows(visits: Iterable[Visit]) -> pd.DataFrame:
    rows = []
    for visit in visits:
        row = {}
        for name, header in EXCEL_COLUMNS.items():
            value = getattr(visit, name)
            if name in ("date", "material_delivery_date"):
                value = _format_date(value)
            elif name == "activity":
                value = value.value
            row[header] = value
        for material in MATERIAL_CATALOG:
            row[material_column(material)] = visit.material_pop.get(material, 0)
        rows.append(row)
    columns = list(EXCEL_COLUMNS.values()) + [material_column(m) for m in MATERIAL_CATALOG]
    return pd.DataFrame(rows, columns=columns)


def export_excel(visits: Iterable[Visit]) -> bytes:
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        export_rows(visits).to_excel(writer, sheet_name="Visitas", index=False)
    return output.getvalue()


def describe_filters(filters: Mapping[str, Optional[str]]) -> List[str]:
    """Human readable ``Label: value`` lines, with "Todas"/"Todos" for unfiltered."""

    lines = []
    for key, (label, everything) in FILTER_LABELS.items():
        value = filters.get(key)
        shown = everything if not value or value == "all" else str(value)
        lines.append(f"{label}: {shown}")
    return lines


def export_pdf(visits: Iterable[Visit], filters: Mapping[str, Optional[str]], today: Optional[date] = None) -> bytes:
    """Landscape PDF with the active filters and one table row per visit."""

    today = today or date.today()
    styles = getSampleStyleSheet()
    buf = io.BytesIO()
    doc = SimpleDocTemplate(buf, pagesize=landscape(A4), title="Reporte de Actividades")
    story = [
        Paragraph("Reporte de Actividades - Cronograma Trade", styles["Title"]),
        Paragraph(f"Fecha: {today.strftime('%d/%m/%Y')}", styles["Normal"]),
        Spacer(1, 6),
        Paragraph("Filtros aplicados:", styles["Heading4"]),
    ]
    story.extend(Paragraph(line, styles["Normal"]) for line in describe_filters(filters))
    story.append(Spacer(1, 12))

    header = ["Fecha", "Ejecutiva", "Asesor", "Cadena", "Actividad", "Costo Materiales", "Presupuesto"]
    body = [
        [
            _format_date(v.date),
            v.executive,
            v.agent,
            v.chain,
            v.activity.value,
            _format_money(v.total_cost),
            _format_money(v.budget),
        ]
        for v in visits
    ]
    table = Table([header, *body], repeatRows=1)
    table.setStyle(
        TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#4b0082")),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTSIZE", (0, 0), (-1, -1), 8),
            ("ALIGN", (5, 1), (-1, -1), "RIGHT"),
            ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ])
    )
    story.append(table)
    doc.build(story)
    return buf.getvalue()


def report_filename(kind: str, month: Optional[str] = None) -> str:
    suffix = {"pdf": "pdf", "excel": "xlsx"}[kind]
    stem = "Reporte" if kind == "pdf" else "Reporte_Detallado"
    return f"Cronograma_{stem}_{month or 'completo'}.{suffix}"
