"""Application settings loaded from YAML with environment overrides."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import ConfigurationError

SETTINGS_PATH = "settings.yaml"
BACKENDS = ("duckdb", "supabase", "memory")

ENV_OVERRIDES = {
    "VISITS_BACKEND": "backend",
    "VISITS_DB_PATH": "duckdb_path",
    "SUPABASE_URL": "supabase_url",
    "SUPABASE_ANON_KEY": "supabase_key",
    "VISITS_FETCH_TIMEOUT": "fetch_timeout",
    "VISITS_LOG_LEVEL": "log_level",
}


@dataclass
class Settings:
    backend: str = "duckdb"
    duckdb_path: str = "data/visits.duckdb"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    fetch_timeout: float = 15.0
    log_level: str = "INFO"

    def validate(self) -> "Settings":
        """Raise ``ConfigurationError`` when the settings cannot work."""

        if self.backend not in BACKENDS:
            raise ConfigurationError(f"Backend desconocido: {self.backend!r}. Opciones: {', '.join(BACKENDS)}")
        if self.backend == "supabase":
            missing = tuple(
                env for env, attr in ENV_OVERRIDES.items()
                if attr in ("supabase_url", "supabase_key") and not getattr(self, attr)
            )
            if missing:
                raise ConfigurationError(
                    "La configuración de Supabase está incompleta: faltan " + ", ".join(missing),
                    missing=missing,
                )
        if self.fetch_timeout <= 0:
            raise ConfigurationError("fetch_timeout debe ser mayor que cero.")
        return self


def load_settings(path: str = SETTINGS_PATH, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Load settings from ``path`` (defaults when absent) then apply env vars."""

    environ = os.environ if environ is None else environ
    data: Dict[str, Any] = {}
    file_path = Path(path)
    if file_path.exists():
        with open(file_path, "r", encoding="utf-8") as fp:
            data = yaml.safe_load(fp) or {}
    known = {f.name for f in fields(Settings)}
    values = {k: v for k, v in data.items() if k in known}
    for env, attr in ENV_OVERRIDES.items():
        if environ.get(env):
            values[attr] = environ[env]
    settings = Settings(**values)
    settings.backend = str(settings.backend).lower()
    try:
        settings.fetch_timeout = float(settings.fetch_timeout)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(
            f"fetch_timeout debe ser un número de segundos, no {settings.fetch_timeout!r} (VISITS_FETCH_TIMEOUT)."
        ) from exc
    return settings


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
