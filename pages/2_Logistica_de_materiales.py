from __future__ import annotations

import plotly.express as px
import streamlit as st

from visits.kpi import compute_kpis, material_summary
from visits.models import Activity
from visits.state import require_state
from visits.theme import apply_streamlit_theme, sidebar_mode_toggle


def main() -> None:
    st.set_page_config(page_title="Logística de materiales", layout="wide")
    state = require_state()
    controller = state.controller

    theme_mode = sidebar_mode_toggle()
    apply_streamlit_theme(theme_mode)

    st.title("Logística de materiales")
    st.caption("Material POP solicitado para las actividades de impulso del filtro actual.")

    impulses = [v for v in controller.visits if v.activity is Activity.IMPULSO]
    summary = material_summary(impulses)
    kpis = compute_kpis(impulses)

    col1, col2, col3 = st.columns(3)
    col1.metric("Impulsos", f"{int(kpis['visits'])}")
    col2.metric("Unidades de material", f"{int(summary['quantity'].sum()) if not summary.empty else 0}")
    col3.metric("Costo total", f"${kpis['material_cost']:,.0f}")

    if summary.empty:
        st.info("No hay material POP registrado para los impulsos seleccionados.")
        return

    fig = px.bar(summary, x="material", y="cost", labels={"material": "Material", "cost": "Costo"})
    fig.update_traces(hovertemplate="%{x}: $%{y:,.0f}")
    st.plotly_chart(fig, use_container_width=True, config={"displaylogo": False})
    st.dataframe(
        summary.rename(columns={
            "material": "Material",
            "quantity": "Cantidad",
            "unit_price": "Precio unitario",
            "cost": "Costo",
        }),
        use_container_width=True,
        hide_index=True,
    )

    st.subheader("Entregas programadas")
    deliveries = sorted(
        (v for v in impulses if v.material_delivery_date or v.delivery_place),
        key=lambda v: (v.material_delivery_date or v.date, v.executive),
    )
    st.dataframe(
        [
            {
                "Entrega": (v.material_delivery_date or v.date).strftime("%d/%m/%Y"),
                "Lugar": v.delivery_place or "",
                "Ejecutiva": v.executive,
                "Actividad": v.date.strftime("%d/%m/%Y"),
                "Muestras": v.sample_count or 0,
            }
            for v in deliveries
        ],
        use_container_width=True,
        hide_index=True,
    )


if __name__ == "__main__":
    main()
