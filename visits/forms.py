"""Reusable Streamlit forms, dialogs and error panels."""

from __future__ import annotations

from datetime import date
from html import escape
from typing import Dict, Iterable, List, Optional, Tuple

import streamlit as st

from .controller import Notice, PendingUpload
from .errors import ConfigurationError, ErrorKind, VisitAppError
from .kpi import WEEKDAYS, CalendarDay
from .materials import MATERIAL_CATALOG
from .models import Activity, Visit, YearMonth
from .scheduling import available_months, target_month_options
from .theme import ACTIVITY_COLORS

REMEDIATION: Dict[ErrorKind, str] = {
    ErrorKind.CONFIGURATION: (
        "Defina SUPABASE_URL y SUPABASE_ANON_KEY (o cambie VISITS_BACKEND a 'duckdb') "
        "en settings.yaml o en las variables de entorno y reinicie la aplicación."
    ),
    ErrorKind.NETWORK: "Compruebe la conexión a internet y que el servidor de base de datos esté disponible.",
    ErrorKind.PERMISSION: (
        "El usuario no tiene permisos sobre la tabla de visitas. Revise las políticas de acceso (RLS) "
        "y otorgue permisos de lectura y escritura al rol anónimo."
    ),
    ErrorKind.MISSING_SCHEMA: (
        "La tabla o función requerida no existe. Ejecute el script de creación del esquema "
        "en la base de datos antes de continuar."
    ),
    ErrorKind.TIMEOUT: "La base de datos tardó demasiado en responder. Intente de nuevo en unos segundos.",
    ErrorKind.NOT_FOUND: "El registro ya no existe; recargue los datos.",
    ErrorKind.DUPLICATE: "Ya existe un registro con ese nombre; elija otro o edite el existente.",
    ErrorKind.VALIDATION: "Corrija el archivo o el formulario y vuelva a intentarlo.",
    ErrorKind.BACKEND: "Revise el registro de la aplicación para más detalles.",
}

_TOAST_ICONS = {"success": "✅", "warning": "⚠️", "error": "❌", "info": "ℹ️"}


def show_notice(notice: Optional[Notice]) -> None:
    if notice is None:
        return
    st.toast(f"**{notice.title}** {notice.message}", icon=_TOAST_ICONS.get(notice.level, "ℹ️"))
    if notice.is_error:
        st.error(f"**{notice.title}**\n\n{notice.message}")


def render_configuration_error(error: ConfigurationError) -> None:
    """Full-page screen for settings that prevent startup."""

    st.error("### Error de configuración")
    st.markdown(error.message)
    if error.missing:
        st.markdown("Variables faltantes:")
        st.code("\n".join(error.missing))
    st.info(REMEDIATION[ErrorKind.CONFIGURATION])
    st.stop()


def render_error_panel(error: Optional[VisitAppError], key: str = "retry") -> bool:
    """Inline panel for the last store error; returns True when retry is clicked."""

    if error is None:
        return False
    with st.container(border=True):
        st.error(f"**{error.kind.value.replace('_', ' ').title()}**: {error.message}")
        st.caption(REMEDIATION.get(error.kind, REMEDIATION[ErrorKind.BACKEND]))
        return st.button("Reintentar", key=key)


def render_visit_form(
    visit: Optional[Visit] = None, key: str = "visit_form", executives: Iterable[str] = ()
) -> Optional[Visit]:
    """Create or edit a visit.  Returns the visit when the form is submitted.

    With a non-empty ``executives`` catalogue the executive is picked from a
    list instead of typed.
    """

    current = visit or Visit(date=date.today(), executive="")
    activities = [a.value for a in Activity]
    with st.form(key):
        st.markdown("### " + ("Editar visita" if visit and visit.id else "Nueva visita"))
        col1, col2, col3 = st.columns(3)
        catalog = set(executives)
        if catalog:
            names = sorted(catalog | ({current.executive} if current.executive else set()))
            executive = col1.selectbox(
                "**Ejecutiva de trade**",
                names,
                index=names.index(current.executive) if current.executive in names else 0,
            )
        else:
            executive = col1.text_input("**Ejecutiva de trade**", value=current.executive)
        agent = col2.text_input("Asesor comercial", value=current.agent)
        channel = col3.text_input("Canal", value=current.channel)
        chain = col1.text_input("Cadena", value=current.chain)
        pdv_detail = col2.text_input("Dirección del PDV", value=current.pdv_detail)
        activity = col3.selectbox("Actividad", activities, index=activities.index(current.activity.value))
        schedule = col1.text_input("Horario", value=current.schedule)
        city = col2.text_input("Ciudad", value=current.city)
        zone = col3.text_input("Zona", value=current.zone)
        visit_date = col1.date_input("**Fecha**", value=current.date)
        budget = col2.number_input("Presupuesto", min_value=0.0, value=float(current.budget), step=1000.0)
        attendance = col3.number_input(
            "Afluencia esperada", min_value=0, value=int(current.expected_attendance or 0), step=1
        )

        with st.expander("Logística y materiales", expanded=current.activity is Activity.IMPULSO):
            delivery_date = st.date_input("Fecha de entrega de material", value=current.material_delivery_date)
            delivery_place = st.text_input("Lugar de entrega", value=current.delivery_place or "")
            sample_count = st.number_input(
                "Cantidad de muestras", min_value=0, value=int(current.sample_count or 0), step=1
            )
            quantities: Dict[str, int] = {}
            columns = st.columns(3)
            for index, (name, price) in enumerate(MATERIAL_CATALOG.items()):
                quantities[name] = columns[index % 3].number_input(
                    name,
                    min_value=0,
                    value=int(current.material_pop.get(name, 0)),
                    step=1,
                    help=f"Precio unitario ${price:,.0f}",
                )
            other_materials = st.text_input("Otros materiales", value=current.other_materials or "")
        objective = st.text_area("Objetivo de la actividad", value=current.objective or "")
        observation = st.text_area("Observación", value=current.observation or "")
        submitted = st.form_submit_button("Guardar")

    if not submitted:
        return None
    if not executive.strip():
        st.warning("Indique la ejecutiva de trade.")
        return None
    try:
        return Visit(
            id=current.id,
            date=visit_date,
            executive=executive.strip(),
            agent=agent.strip(),
            channel=channel.strip(),
            chain=chain.strip(),
            pdv_detail=pdv_detail.strip(),
            activity=activity,
            schedule=schedule.strip(),
            city=city.strip(),
            zone=zone.strip(),
            budget=budget,
            expected_attendance=int(attendance) or None,
            material_delivery_date=delivery_date or None,
            delivery_place=delivery_place.strip() or None,
            objective=objective.strip() or None,
            sample_count=int(sample_count) or None,
            material_pop=quantities,
            other_materials=other_materials.strip() or None,
            observation=observation.strip() or None,
        )
    except ValueError as exc:
        st.warning(str(exc))
        return None


def render_duplicate_form(visits: Iterable[Visit], today: Optional[date] = None) -> Optional[Tuple[YearMonth, YearMonth]]:
    """Pick a loaded source month and a different target month."""

    visits = list(visits)
    sources = available_months(visits)
    if not sources:
        st.info("No hay meses cargados para duplicar.")
        return None
    targets = target_month_options(visits, today=today)
    with st.form("duplicate_month"):
        st.markdown("### Duplicar mes")
        st.caption("Copia todas las visitas de un mes a otro manteniendo el día (o el último día del mes).")
        col1, col2 = st.columns(2)
        source = col1.selectbox("Mes de origen", sources, format_func=str)
        target = col2.selectbox("Mes de destino", targets, format_func=str)
        submitted = st.form_submit_button("Duplicar")
    if not submitted:
        return None
    if source == target:
        st.warning("El mes de origen y el de destino deben ser distintos.")
        return None
    return source, target


def render_overlap_confirmation(pending: PendingUpload) -> Optional[bool]:
    """Ask before replacing.  True to replace, False to cancel, None while undecided."""

    with st.container(border=True):
        st.warning("### ¿Reemplazar datos existentes?")
        st.markdown("Ya existen datos para las siguientes ejecutivas y meses. Si continúa, se eliminarán y se reemplazarán por los del archivo.")
        for month, executives in pending.describe():
            st.markdown(f"- **{month}**: {', '.join(executives)}")
        col1, col2 = st.columns(2)
        if col1.button("Sí, reemplazar", type="primary", key="confirm_replace"):
            return True
        if col2.button("Cancelar", key="cancel_replace"):
            return False
    return None


def render_calendar(weeks: List[List[Optional[CalendarDay]]]) -> None:
    """Month grid with one coloured chip per visit, grouped by executive."""

    header = "".join(f"<th>{name}</th>" for name in WEEKDAYS)
    body = []
    for week in weeks:
        cells = []
        for cell in week:
            if cell is None:
                cells.append("<td></td>")
                continue
            day, executives = cell
            parts = [f"<div class='calendar-day'>{day}</div>"]
            for executive, visits in executives.items():
                parts.append(f"<div class='calendar-executive'>{escape(executive)}</div>")
                for visit in visits:
                    colour = ACTIVITY_COLORS.get(visit.activity.value, "#7f8c8d")
                    place = escape(visit.chain or visit.pdv_detail or "")
                    parts.append(
                        f"<div class='visit-chip' style='background-color:{colour}'>"
                        f"{escape(visit.activity.value)} · {place}</div>"
                    )
            cells.append(f"<td>{''.join(parts)}</td>")
        body.append(f"<tr>{''.join(cells)}</tr>")
    st.markdown(
        f"<table class='visit-calendar'><thead><tr>{header}</tr></thead><tbody>{''.join(body)}</tbody></table>",
        unsafe_allow_html=True,
    )
