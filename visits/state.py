"""Session state shared across pages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

import streamlit as st

from stores import create_store
from stores.base import VisitFilter

from .config import SETTINGS_PATH, Settings, configure_logging, load_settings
from .controller import Notice, VisitController
from .errors import ConfigurationError
from .forms import render_configuration_error
from .kpi import ALL, FILTER_FIELDS
from .models import YearMonth

STATE_KEY = "app_state"


@dataclass
class AppState:
    """Everything a page needs, created once per browser session."""

    settings: Settings
    controller: VisitController
    month: Optional[str] = None
    executive: Optional[str] = None
    agent: Optional[str] = None
    local_filters: Dict[str, str] = field(default_factory=lambda: {name: ALL for name in FILTER_FIELDS})
    notice: Optional[Notice] = None

    def visit_filter(self) -> VisitFilter:
        return VisitFilter(
            month=YearMonth.parse(self.month) if self.month else None,
            executive=self.executive or None,
            agent=self.agent or None,
        )

    def take_notice(self) -> Optional[Notice]:
        """Pop the notice left by the previous run (shown after ``st.rerun``)."""

        notice, self.notice = self.notice, None
        return notice

    def reset_filters(self) -> None:
        self.month = self.executive = self.agent = None
        self.local_filters = {name: ALL for name in FILTER_FIELDS}


def build_state(settings: Settings) -> AppState:
    """Create the store and controller for ``settings`` and load the data.

    ``ConfigurationError`` propagates so the page can stop with a
    remediation screen.
    """

    store = create_store(settings)
    controller = VisitController(store, fetch_timeout=settings.fetch_timeout)
    controller.refresh()
    controller.load_executives()
    return AppState(settings=settings, controller=controller)


def bootstrap_state(settings_path: str = SETTINGS_PATH) -> AppState:
    """Return the session's ``AppState``, creating it on first use."""

    if "theme_mode" not in st.session_state:
        st.session_state.theme_mode = "light"
    if STATE_KEY not in st.session_state:
        settings = load_settings(settings_path)
        configure_logging(settings.log_level)
        st.session_state[STATE_KEY] = build_state(settings)
    return st.session_state[STATE_KEY]


def require_state() -> AppState:
    """``bootstrap_state`` for pages: bad settings stop the script with a help screen."""

    try:
        return bootstrap_state()
    except ConfigurationError as exc:
        render_configuration_error(exc)
        raise
