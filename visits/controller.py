"""Upload, replace and edit workflows on top of a visit store.

``VisitController`` is a small state machine.  It turns reconciler output
and user confirmations into store calls and reports every outcome as a
``Notice`` that the UI shows as a toast.  Store failures never escape: they
are recorded in ``error`` and the controller re-reads the store so the
screen reflects what is really persisted.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Sequence

from stores.base import VisitFilter, VisitStore

from .errors import ErrorKind, InvalidTransitionError, StoreError, VisitAppError
from .models import Executive, Visit, YearMonth
from .scheduling import OverlapMap, duplicate_month, find_overlaps, format_overlaps

logger = logging.getLogger(__name__)


class UploadState(str, Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    READY = "ready"
    OVERLAP_DETECTED = "overlap_detected"
    REPLACING = "replacing"
    FAILED = "failed"


TRANSITIONS = {
    UploadState.IDLE: {UploadState.UPLOADING},
    UploadState.UPLOADING: {UploadState.READY, UploadState.OVERLAP_DETECTED, UploadState.FAILED},
    UploadState.READY: {UploadState.UPLOADING, UploadState.IDLE},
    UploadState.OVERLAP_DETECTED: {UploadState.IDLE, UploadState.REPLACING},
    UploadState.REPLACING: {UploadState.IDLE, UploadState.FAILED},
    UploadState.FAILED: {UploadState.UPLOADING, UploadState.IDLE},
}


@dataclass
class PendingUpload:
    visits: List[Visit]
    overlaps: OverlapMap

    def describe(self) -> List[tuple]:
        return format_overlaps(self.overlaps)


@dataclass(frozen=True)
class Notice:
    level: str
    title: str
    message: str = ""

    @property
    def is_error(self) -> bool:
        return self.level == "error"


@dataclass
class VisitController:
    store: VisitStore
    fetch_timeout: Optional[float] = 15.0
    state: UploadState = UploadState.IDLE
    pending: Optional[PendingUpload] = None
    visits: List[Visit] = field(default_factory=list)
    all_visits: List[Visit] = field(default_factory=list)
    executive_catalog: List[Executive] = field(default_factory=list)
    visit_filter: Optional[VisitFilter] = None
    error: Optional[VisitAppError] = None

    def _transition(self, new_state: UploadState) -> None:
        if new_state not in TRANSITIONS[self.state]:
            raise InvalidTransitionError(f"Transición no permitida: {self.state.value} -> {new_state.value}")
        logger.debug("Upload state %s -> %s", self.state.value, new_state.value)
        self.state = new_state

    def _fail(self, exc: VisitAppError, title: str, *, extra: str = "") -> Notice:
        self.error = exc
        logger.error("%s: %s", title, exc)
        # Re-read so the screen shows what is actually persisted, but keep
        # the original failure as the error on display.
        self.refresh()
        self.error = exc
        message = exc.message if not extra else f"{exc.message}\n\n{extra}"
        return Notice("error", title, message)

    # -- reads ---------------------------------------------------------

    def refresh(self, visit_filter: Optional[VisitFilter] = None) -> Optional[Notice]:
        """Read the filtered list and the full history together.

        Both reads are issued at once and awaited jointly; when the store
        takes longer than ``fetch_timeout`` a TIMEOUT error is recorded.
        """

        if visit_filter is not None:
            self.visit_filter = visit_filter
        executor = ThreadPoolExecutor(max_workers=2)
        try:
            filtered = executor.submit(self.store.list, self.visit_filter)
            history = executor.submit(self.store.list_all)
            # One deadline shared by both reads.
            _, unfinished = wait([filtered, history], timeout=self.fetch_timeout)
            if unfinished:
                self.error = StoreError(
                    f"La base de datos no respondió en {self.fetch_timeout:g} segundos.",
                    ErrorKind.TIMEOUT,
                    context="lectura de visitas",
                )
                logger.warning("Refresh timed out after %ss", self.fetch_timeout)
                return Notice("error", "Tiempo de espera agotado", self.error.message)
            visits = filtered.result()
            all_visits = history.result()
        except VisitAppError as exc:
            self.error = exc
            logger.error("Refresh failed: %s", exc)
            return Notice("error", "Error al cargar datos", exc.message)
        finally:
            executor.shutdown(wait=False)
        self.visits = visits
        self.all_visits = all_visits
        self.error = None
        return None

    # -- upload / replace ----------------------------------------------

    def receive_upload(self, drafts: Sequence[Visit]) -> Notice:
        """Handle a freshly parsed batch.

        Without collisions the batch is inserted right away.  Otherwise the
        batch is parked in ``pending`` until ``confirm_replace`` or
        ``cancel_upload`` is called.
        """

        if not drafts:
            return Notice("warning", "Archivo sin registros", "No se encontraron visitas para cargar.")
        self._transition(UploadState.UPLOADING)
        self.error = None
        try:
            existing = self.store.list_all()
        except VisitAppError as exc:
            self._transition(UploadState.FAILED)
            return self._fail(exc, "Error al Guardar")
        overlaps = find_overlaps(drafts, existing)
        if overlaps:
            self.pending = PendingUpload(list(drafts), overlaps)
            self._transition(UploadState.OVERLAP_DETECTED)
            pairs = sum(len(execs) for execs in overlaps.values())
            return Notice(
                "warning",
                "¿Reemplazar datos existentes?",
                f"Ya hay datos para {pairs} combinaciones de ejecutiva y mes. Confirme para reemplazarlos.",
            )
        try:
            self.store.insert_batch(drafts)
        except VisitAppError as exc:
            self._transition(UploadState.FAILED)
            return self._fail(exc, "Error al Guardar")
        self._transition(UploadState.READY)
        self.refresh()
        return Notice("success", "Éxito", f"{len(drafts)} registros han sido cargados y guardados.")

    def confirm_replace(self) -> Notice:
        """Delete the colliding (month, executive) data then insert the batch.

        The two steps are separate store calls.  When the delete succeeded
        and the insert failed, the affected pairs are listed in the notice
        so they can be reconciled by hand.
        """

        if self.state is not UploadState.OVERLAP_DETECTED or self.pending is None:
            raise InvalidTransitionError("No hay una carga pendiente de confirmación.")
        pending = self.pending
        self._transition(UploadState.REPLACING)
        self.pending = None
        try:
            self.store.delete_where(pending.overlaps)
        except VisitAppError as exc:
            self._transition(UploadState.FAILED)
            return self._fail(exc, "Error al Reemplazar")
        try:
            self.store.insert_batch(pending.visits)
        except VisitAppError as exc:
            self._transition(UploadState.FAILED)
            lost = "; ".join(f"{month}: {', '.join(execs)}" for month, execs in pending.describe())
            logger.error("Replace left deleted data without new rows for %s", lost)
            return self._fail(
                exc,
                "Error al Reemplazar",
                extra=f"Los datos anteriores de {lost} ya fueron eliminados; vuelva a cargar el archivo.",
            )
        self._transition(UploadState.IDLE)
        self.refresh()
        return Notice(
            "success",
            "Datos Reemplazados",
            f"Se han actualizado los datos para las ejecutivas y meses correspondientes con "
            f"{len(pending.visits)} nuevos registros.",
        )

    def cancel_upload(self) -> None:
        if self.state is not UploadState.OVERLAP_DETECTED:
            return
        self.pending = None
        self._transition(UploadState.IDLE)

    def acknowledge(self) -> None:
        """Return to IDLE after a finished (READY) or failed upload."""

        if self.state in (UploadState.READY, UploadState.FAILED):
            self._transition(UploadState.IDLE)

    # -- other workflows -----------------------------------------------

    def duplicate(self, source: YearMonth, target: YearMonth) -> Notice:
        if source == target:
            return Notice("error", "Meses iguales", "El mes de origen y el de destino deben ser distintos.")
        try:
            history = self.store.list_all()
        except VisitAppError as exc:
            return self._fail(exc, "Error al Duplicar")
        copies = duplicate_month(source, target, history)
        if not copies:
            return Notice("error", "Sin datos", "No se encontraron visitas en el mes de origen para duplicar.")
        try:
            self.store.insert_batch(copies)
        except VisitAppError as exc:
            return self._fail(exc, "Error al Duplicar")
        self.refresh()
        return Notice("success", "Éxito", f"{len(copies)} visitas han sido duplicadas y guardadas.")

    def save_visit(self, visit: Visit) -> Notice:
        """Insert ``visit`` when it has no id, otherwise overwrite its fields."""

        try:
            if visit.id is None:
                self.store.insert_one(visit)
            else:
                changes = visit.to_dict()
                changes.pop("id")
                self.store.update_one(visit.id, changes)
        except VisitAppError as exc:
            return self._fail(exc, "Error al Guardar")
        self.refresh()
        return Notice("success", "Éxito", "Visita guardada correctamente.")

    def update_fields(self, visit_id: int, **changes: Any) -> Notice:
        try:
            self.store.update_one(visit_id, changes)
        except VisitAppError as exc:
            return self._fail(exc, "Error al Guardar")
        self.refresh()
        return Notice("success", "Éxito", "Visita actualizada correctamente.")

    def delete_visit(self, visit_id: int) -> Notice:
        try:
            self.store.delete_one(visit_id)
        except VisitAppError as exc:
            return self._fail(exc, "Error al Eliminar")
        self.refresh()
        return Notice("success", "Visita Eliminada", "La visita fue eliminada.")

    def delete_all(self) -> Notice:
        try:
            self.store.delete_all()
        except VisitAppError as exc:
            return self._fail(exc, "Error al Eliminar")
        self.visits = []
        self.all_visits = []
        self.error = None
        return Notice("success", "Datos Eliminados", "Toda la información ha sido borrada.")

    # -- executive catalogue -------------------------------------------

    def load_executives(self) -> Optional[Notice]:
        try:
            self.executive_catalog = self.store.list_executives()
        except VisitAppError as exc:
            self.error = exc
            logger.error("Executive catalogue read failed: %s", exc)
            return Notice("error", "Error al cargar ejecutivas", exc.message)
        return None

    def _catalog_fail(self, exc: VisitAppError, title: str) -> Notice:
        notice = self._fail(exc, title)
        self.load_executives()
        self.error = exc
        return notice

    def add_executive(self, name: str, photo_url: Optional[str] = None) -> Notice:
        try:
            executive = Executive(name=name, photo_url=photo_url)
        except ValueError as exc:
            return Notice("error", "Datos no válidos", str(exc))
        try:
            self.store.add_executive(executive)
        except VisitAppError as exc:
            return self._catalog_fail(exc, "Error al Guardar")
        self.load_executives()
        return Notice("success", "Ejecutiva añadida", f"{executive.name} fue añadida al catálogo.")

    def update_executive_photo(self, executive_id: int, photo_url: Optional[str]) -> Notice:
        try:
            self.store.update_executive(executive_id, photo_url)
        except ValueError as exc:
            return Notice("error", "Datos no válidos", str(exc))
        except VisitAppError as exc:
            return self._catalog_fail(exc, "Error al Guardar")
        self.load_executives()
        return Notice("success", "Ejecutiva actualizada", "La foto fue actualizada.")

    def delete_executive(self, executive_id: int) -> Notice:
        try:
            self.store.delete_executive(executive_id)
        except VisitAppError as exc:
            return self._catalog_fail(exc, "Error al Eliminar")
        self.load_executives()
        return Notice("success", "Ejecutiva eliminada", "La ejecutiva fue eliminada del catálogo.")

    def loaded_months(self) -> List[str]:
        return sorted({str(visit.month) for visit in self.all_visits})

    def executives(self) -> List[str]:
        names = {v.executive for v in self.all_visits if v.executive}
        names.update(e.name for e in self.executive_catalog)
        return sorted(names)

    def agents(self) -> List[str]:
        return sorted({v.agent for v in self.all_visits if v.agent})
