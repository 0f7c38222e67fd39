from __future__ import annotations

import streamlit as st

from visits.forms import render_error_panel, show_notice
from visits.models import Executive
from visits.state import AppState, require_state
from visits.theme import apply_streamlit_theme, sidebar_mode_toggle


def render_catalog(state: AppState) -> None:
    catalog = state.controller.executive_catalog
    st.subheader("Ejecutivas registradas")
    if not catalog:
        st.info("Aún no hay ejecutivas en el catálogo.")
        return
    st.dataframe(
        [{"Foto": e.photo_url, "Nombre": e.name} for e in catalog],
        column_config={"Foto": st.column_config.ImageColumn("Foto", width="small")},
        use_container_width=True,
        hide_index=True,
    )


def render_add_form(state: AppState) -> None:
    with st.form("add_executive", clear_on_submit=True):
        st.markdown("### Añadir ejecutiva")
        name = st.text_input("**Nombre**")
        photo_url = st.text_input("URL de la foto", placeholder="https://")
        submitted = st.form_submit_button("Añadir")
    if submitted:
        state.notice = state.controller.add_executive(name, photo_url)
        st.rerun()


def render_edit(state: AppState) -> None:
    catalog = {e.id: e for e in state.controller.executive_catalog if e.id is not None}
    if not catalog:
        return
    st.subheader("Editar o eliminar")
    selected = st.selectbox("Ejecutiva", list(catalog), format_func=lambda i: catalog[i].name)
    executive: Executive = catalog[selected]
    if executive.photo_url:
        st.image(executive.photo_url, width=96)
    with st.form(f"edit_executive_{executive.id}"):
        photo_url = st.text_input("URL de la foto", value=executive.photo_url or "")
        st.caption("El nombre no se puede cambiar; deje la URL vacía para quitar la foto.")
        saved = st.form_submit_button("Guardar foto")
    if saved:
        state.notice = state.controller.update_executive_photo(executive.id, photo_url)
        st.rerun()

    confirmed = st.checkbox(
        f"Confirmo que quiero eliminar a {executive.name}", key=f"confirm_delete_executive_{executive.id}"
    )
    if st.button("Eliminar ejecutiva", disabled=not confirmed, key=f"delete_executive_{executive.id}"):
        state.notice = state.controller.delete_executive(executive.id)
        st.rerun()


def main() -> None:
    st.set_page_config(page_title="Gestión de ejecutivas", layout="wide")
    state = require_state()
    controller = state.controller

    theme_mode = sidebar_mode_toggle()
    apply_streamlit_theme(theme_mode)

    st.title("Gestión de ejecutivas")
    st.caption("Catálogo de ejecutivas de trade disponible en el formulario de visitas.")
    show_notice(state.take_notice())
    if render_error_panel(controller.error, key="retry_executives"):
        state.notice = controller.load_executives() or controller.refresh()
        st.rerun()

    col1, col2 = st.columns([2, 1])
    with col1:
        render_catalog(state)
        render_edit(state)
    with col2:
        render_add_form(state)


if __name__ == "__main__":
    main()
