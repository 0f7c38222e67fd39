"""Light/dark styling for the Streamlit pages and Plotly charts."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict

import plotly.io as pio
import streamlit as st

MODES = ("light", "dark")
TEMPLATE_NAME = "visits_theme"


@dataclass(frozen=True)
class ThemePalette:
    background: str
    surface: str
    text: str
    muted: str
    accent: str
    border: str


PALETTES: Dict[str, ThemePalette] = {
    "light": ThemePalette("#f6f5fb", "#ffffff", "#1f1b2e", "#5b5675", "#4b0082", "#e3dff0"),
    "dark": ThemePalette("#14101f", "#221a35", "#f4f1fa", "#b3abc9", "#b28dff", "#3a2f55"),
}

# Activity colours shared by the calendar chips and the activity chart.
ACTIVITY_COLORS = {
    "Visita": "#7b4fbf",
    "Impulso": "#e67e22",
    "Verificación": "#16a085",
}

CHART_COLORWAY = ["#4b0082", "#e67e22", "#16a085", "#c0392b", "#2c3e50", "#7b4fbf"]


def palette_for(mode: str) -> ThemePalette:
    return PALETTES.get(mode, PALETTES["light"])


def theme_css(palette: ThemePalette) -> str:
    variables = "\n".join(f"    --{name.replace('_', '-')}: {value};" for name, value in asdict(palette).items())
    return f"""
<style>
:root {{
{variables}
}}
.stApp {{ background-color: var(--background); color: var(--text); }}
.section-title {{ font-weight: 700; color: var(--accent); margin-bottom: 0.3rem; }}
table.visit-calendar {{ width: 100%; table-layout: fixed; border-collapse: collapse; }}
table.visit-calendar th {{ color: var(--muted); font-weight: 600; padding: 0.3rem; }}
table.visit-calendar td {{
    vertical-align: top; height: 6rem; padding: 0.3rem;
    border: 1px solid var(--border); background-color: var(--surface);
}}
.calendar-day {{ font-weight: 700; color: var(--accent); }}
.calendar-executive {{ font-size: 0.75rem; color: var(--muted); margin-top: 0.2rem; }}
.visit-chip {{
    border-radius: 6px; padding: 0.1rem 0.35rem; margin-top: 0.1rem;
    color: #ffffff; font-size: 0.7rem; overflow: hidden; white-space: nowrap; text-overflow: ellipsis;
}}
</style>
"""


def apply_streamlit_theme(mode: str) -> None:
    """Inject the page CSS and make the matching Plotly template the default."""

    palette = palette_for(mode)
    st.markdown(theme_css(palette), unsafe_allow_html=True)
    pio.templates[TEMPLATE_NAME] = {
        "layout": {
            "font": {"color": palette.text},
            "paper_bgcolor": "rgba(0,0,0,0)",
            "plot_bgcolor": "rgba(0,0,0,0)",
            "colorway": CHART_COLORWAY,
        }
    }
    pio.templates.default = f"plotly+{TEMPLATE_NAME}"


def sidebar_mode_toggle() -> str:
    current = st.session_state.get("theme_mode", "light")
    mode = st.sidebar.radio(
        "Modo de visualización",
        options=MODES,
        format_func={"light": "Claro", "dark": "Oscuro"}.get,
        index=MODES.index(current) if current in MODES else 0,
        horizontal=True,
    )
    st.session_state["theme_mode"] = mode
    return mode
