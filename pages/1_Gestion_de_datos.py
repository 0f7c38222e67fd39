from __future__ import annotations

import streamlit as st

from visits.controller import UploadState
from visits.errors import ImportValidationError
from visits.forms import render_duplicate_form, render_error_panel, render_overlap_confirmation, show_notice
from visits.importer import build_template, load_visit_file, parse_visit_frame
from visits.state import AppState, require_state
from visits.theme import apply_streamlit_theme, sidebar_mode_toggle


def render_upload(state: AppState) -> None:
    controller = state.controller
    st.subheader("Cargar cronograma")
    st.caption("Excel (.xlsx) o CSV con las columnas de la plantilla. Si alguna fila tiene errores no se carga nada.")
    st.download_button(
        "Descargar plantilla",
        data=build_template(),
        file_name="Plantilla_Cronograma_Trade.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )
    upload = st.file_uploader("Archivo de visitas", type=["xlsx", "csv"])
    gsheet_url = st.text_input("URL de Google Sheets", help="La hoja debe estar compartida públicamente.")
    if not st.button("Procesar archivo", type="primary", disabled=upload is None and not gsheet_url):
        return
    try:
        frame = load_visit_file(upload) if upload is not None else load_visit_file(gsheet_url, source="google")
    except ImportValidationError as exc:
        st.error(exc.message)
        return
    except (ValueError, OSError) as exc:
        st.error(f"No se pudo leer el archivo: {exc}")
        return
    result = parse_visit_frame(frame)
    if not result.ok:
        st.error(f"**Error de validación**\n\n{result.error.message}")
        return
    controller.acknowledge()
    state.notice = controller.receive_upload(result.visits)
    st.rerun()


def render_pending(state: AppState) -> None:
    controller = state.controller
    if controller.state is not UploadState.OVERLAP_DETECTED or controller.pending is None:
        return
    decision = render_overlap_confirmation(controller.pending)
    if decision is None:
        return
    if decision:
        state.notice = controller.confirm_replace()
    else:
        controller.cancel_upload()
    st.rerun()


def render_loaded_months(state: AppState) -> None:
    st.subheader("Meses cargados")
    months = state.controller.loaded_months()
    if not months:
        st.info("Aún no hay visitas cargadas.")
        return
    counts = {}
    for visit in state.controller.all_visits:
        counts[str(visit.month)] = counts.get(str(visit.month), 0) + 1
    st.dataframe(
        [{"Mes": month, "Visitas": counts[month]} for month in reversed(months)],
        use_container_width=True,
        hide_index=True,
    )


def render_danger_zone(state: AppState) -> None:
    with st.expander("Limpiar Todos los Datos", expanded=False):
        st.warning("Esta acción elimina todas las visitas de forma permanente.")
        confirmed = st.checkbox("Entiendo que no se puede deshacer", key="confirm_delete_all")
        if st.button("Eliminar todo", disabled=not confirmed):
            state.notice = state.controller.delete_all()
            state.reset_filters()
            st.rerun()


def main() -> None:
    st.set_page_config(page_title="Gestión de datos", layout="wide")
    state = require_state()
    controller = state.controller

    theme_mode = sidebar_mode_toggle()
    apply_streamlit_theme(theme_mode)

    st.title("Gestión de datos")
    show_notice(state.take_notice())
    if render_error_panel(controller.error, key="retry_data"):
        state.notice = controller.refresh()
        st.rerun()

    render_pending(state)
    if controller.state is not UploadState.OVERLAP_DETECTED:
        render_upload(state)

    st.divider()
    choice = render_duplicate_form(controller.all_visits)
    if choice is not None:
        source, target = choice
        state.notice = controller.duplicate(source, target)
        st.rerun()

    st.divider()
    render_loaded_months(state)
    render_danger_zone(state)


if __name__ == "__main__":
    main()
