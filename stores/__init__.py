"""Visit store backends."""

from __future__ import annotations

from supabase import create_client

from visits.config import Settings

from .base import VisitFilter, VisitStore
from .duckdb_store import DuckDBVisitStore
from .memory import MemoryVisitStore
from .supabase_store import SupabaseVisitStore

__all__ = [
    "VisitFilter",
    "VisitStore",
    "DuckDBVisitStore",
    "MemoryVisitStore",
    "SupabaseVisitStore",
    "create_store",
]


def create_store(settings: Settings) -> VisitStore:
    """Build the store selected in ``settings`` (validated first)."""

    settings.validate()
    if settings.backend == "supabase":
        return SupabaseVisitStore(create_client(settings.supabase_url, settings.supabase_key))
    if settings.backend == "memory":
        return MemoryVisitStore()
    return DuckDBVisitStore(settings.duckdb_path)
