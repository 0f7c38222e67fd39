from __future__ import annotations

from typing import Dict, List, Optional

import plotly.express as px
import streamlit as st

from visits.forms import render_calendar, render_error_panel, render_visit_form, show_notice
from visits.kpi import (
    ALL,
    apply_filters,
    calendar_weeks,
    compute_kpis,
    count_by,
    filter_options,
    generate_summary,
    visits_to_frame,
)
from visits.materials import format_material_pop
from visits.models import Visit, YearMonth
from visits.report import export_excel, export_pdf, report_filename
from visits.state import AppState, require_state
from visits.theme import ACTIVITY_COLORS, apply_streamlit_theme, sidebar_mode_toggle

APP_TITLE = "Cronograma Trade"

FILTER_LABELS = {"city": "Ciudad", "chain": "Cadena", "zone": "Zona", "activity": "Actividad"}

TABLE_COLUMNS = {
    "date": "Fecha",
    "executive": "Ejecutiva",
    "agent": "Asesor",
    "chain": "Cadena",
    "pdv_detail": "PDV",
    "activity": "Actividad",
    "schedule": "Horario",
    "city": "Ciudad",
    "budget": "Presupuesto",
    "total_cost": "Costo Materiales",
}


def _pick(label: str, options: List[str], current: Optional[str], everything: str) -> Optional[str]:
    choices = [ALL, *options]
    index = choices.index(current) if current in choices else 0
    value = st.sidebar.selectbox(
        label,
        choices,
        index=index,
        format_func=lambda v: everything if v == ALL else v,
    )
    return None if value == ALL else value


def render_sidebar_filters(state: AppState) -> None:
    controller = state.controller
    st.sidebar.markdown("### Filtros")
    state.month = _pick("Mes", sorted(controller.loaded_months(), reverse=True), state.month, "Todos")
    state.executive = _pick("Ejecutiva", controller.executives(), state.executive, "Todas")
    state.agent = _pick("Asesor", controller.agents(), state.agent, "Todos")
    wanted = state.visit_filter()
    if wanted != controller.visit_filter:
        show_notice(controller.refresh(wanted))


def render_local_filters(state: AppState, visits: List[Visit]) -> List[Visit]:
    options = filter_options(visits)
    columns = st.columns(len(FILTER_LABELS))
    for column, (name, label) in zip(columns, FILTER_LABELS.items()):
        choices = options[name]
        current = state.local_filters.get(name, ALL)
        state.local_filters[name] = column.selectbox(
            label,
            choices,
            index=choices.index(current) if current in choices else 0,
            format_func=lambda v: "Todas" if v == ALL else v,
            key=f"local_{name}",
        )
    return apply_filters(visits, **state.local_filters)


def render_kpis(visits: List[Visit], month: Optional[YearMonth]) -> Dict[str, float]:
    kpis = compute_kpis(visits, month)
    cols = st.columns(5)
    cols[0].metric("Actividades", f"{int(kpis['visits'])}")
    cols[1].metric("Ejecutivas", f"{int(kpis['executives'])}")
    cols[2].metric("Presupuesto", f"${kpis['budget']:,.0f}")
    cols[3].metric("Costo materiales", f"${kpis['material_cost']:,.0f}")
    if "idle_days" in kpis:
        cols[4].metric("Días sin actividad", f"{int(kpis['idle_days'])}", help="Días del mes sin visitas programadas.")
    else:
        cols[4].metric("Días con actividad", f"{int(kpis['active_days'])}")
    return kpis


def render_charts(visits: List[Visit]) -> None:
    col1, col2 = st.columns(2)
    by_executive = count_by(visits, "executive")
    by_activity = count_by(visits, "activity")
    with col1:
        st.markdown('<div class="section-title">Actividades por ejecutiva</div>', unsafe_allow_html=True)
        fig = px.bar(by_executive, x="name", y="visits", labels={"name": "Ejecutiva", "visits": "Actividades"})
        st.plotly_chart(fig, use_container_width=True, config={"displaylogo": False})
    with col2:
        st.markdown('<div class="section-title">Tipo de actividad</div>', unsafe_allow_html=True)
        fig = px.pie(
            by_activity,
            names="name",
            values="visits",
            color="name",
            color_discrete_map=ACTIVITY_COLORS,
            hole=0.45,
        )
        st.plotly_chart(fig, use_container_width=True, config={"displaylogo": False})
    by_city = count_by(visits, "city")
    fig = px.bar(by_city, x="visits", y="name", orientation="h", labels={"name": "Ciudad", "visits": "Actividades"})
    st.plotly_chart(fig, use_container_width=True, config={"displaylogo": False})


def render_visit_table(state: AppState, visits: List[Visit]) -> None:
    controller = state.controller
    frame = visits_to_frame(visits)
    st.subheader("Detalle de actividades")
    if frame.empty:
        st.info("No hay actividades para los filtros seleccionados.")
        return
    table = frame[list(TABLE_COLUMNS)].rename(columns=TABLE_COLUMNS)
    table["Materiales"] = [format_material_pop(v.material_pop) for v in visits]
    st.dataframe(table, use_container_width=True, hide_index=True)

    by_id = {v.id: v for v in visits if v.id is not None}
    if not by_id:
        return
    selected = st.selectbox(
        "Seleccione una visita para editar o eliminar",
        list(by_id),
        format_func=lambda i: f"{by_id[i].date:%d/%m/%Y} · {by_id[i].executive} · {by_id[i].chain or by_id[i].pdv_detail}",
    )
    visit = by_id[selected]
    catalog = [e.name for e in controller.executive_catalog]
    edited = render_visit_form(visit, key=f"edit_visit_{visit.id}", executives=catalog)
    if edited is not None:
        state.notice = controller.save_visit(edited)
        st.rerun()
    if st.button("Eliminar visita", key=f"delete_{visit.id}"):
        state.notice = controller.delete_visit(visit.id)
        st.rerun()


def render_downloads(state: AppState, visits: List[Visit]) -> None:
    filters = {"month": state.month, "executive": state.executive, "agent": state.agent, **state.local_filters}
    col1, col2 = st.columns(2)
    col1.download_button(
        "Descargar Excel",
        data=export_excel(visits),
        file_name=report_filename("excel", state.month),
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        disabled=not visits,
    )
    col2.download_button(
        "Descargar PDF",
        data=export_pdf(visits, filters),
        file_name=report_filename("pdf", state.month),
        mime="application/pdf",
        disabled=not visits,
    )


def main() -> None:
    st.set_page_config(page_title=APP_TITLE, layout="wide")
    state = require_state()
    controller = state.controller

    st.title(APP_TITLE)
    st.caption("Programación de visitas, impulsos y verificaciones del equipo de trade marketing.")

    theme_mode = sidebar_mode_toggle()
    apply_streamlit_theme(theme_mode)
    render_sidebar_filters(state)
    show_notice(state.take_notice())
    st.sidebar.caption(f"Base de datos: {controller.store.backend_name}")

    if render_error_panel(controller.error):
        state.notice = controller.refresh()
        st.rerun()

    visits = render_local_filters(state, controller.visits)
    month = YearMonth.parse(state.month) if state.month else None
    kpis = render_kpis(visits, month)

    if month is not None:
        st.subheader(f"Calendario {month}")
        render_calendar(calendar_weeks(visits, month))
    else:
        st.caption("Seleccione un mes en la barra lateral para ver el calendario.")

    if visits:
        render_charts(visits)

    render_visit_table(state, visits)

    with st.expander("Nueva visita", expanded=False):
        new_visit = render_visit_form(
            key="new_visit", executives=[e.name for e in controller.executive_catalog]
        )
        if new_visit is not None:
            state.notice = controller.save_visit(new_visit)
            st.rerun()

    render_downloads(state, visits)

    with st.expander("Resumen", expanded=False):
        st.write(
            generate_summary(
                kpis,
                timeframe=str(month) if month else "el periodo seleccionado",
                top_executives=count_by(visits, "executive"),
            )
        )


if __name__ == "__main__":
    main()
