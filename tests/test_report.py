import io
from datetime import date

import pandas as pd

from visits.materials import material_column
from visits.report import describe_filters, export_excel, export_pdf, report_filename


def test_export_excel_has_one_row_per_visit(impulse_visit, make_visit):
    data = export_excel([impulse_visit, make_visit()])
    frame = pd.read_excel(io.BytesIO(data))
    assert len(frame) == 2
    assert frame.loc[0, "COSTO TOTAL MATERIALES"] == 165.0
    assert frame.loc[0, material_column("AFICHE")] == 10
    assert frame.loc[1, material_column("AFICHE")] == 0
    assert frame.loc[0, "FECHA"] == "31/07/2024"


def test_export_pdf_produces_pdf(impulse_visit):
    data = export_pdf([impulse_visit], {"month": "2024-07", "executive": None}, today=date(2024, 8, 1))
    assert data.startswith(b"%PDF")


def test_describe_filters_uses_all_labels():
    lines = describe_filters({"month": "2024-07", "executive": None, "city": "all"})
    assert "Mes: 2024-07" in lines
    assert "Ejecutiva: Todas" in lines
    assert "Ciudad: Todas" in lines
    assert "Asesor: Todos" in lines


def test_report_filename():
    assert report_filename("pdf", "2024-07") == "Cronograma_Reporte_2024-07.pdf"
    assert report_filename("excel", None) == "Cronograma_Reporte_Detallado_completo.xlsx"
