import threading
import time

import pytest

from stores import MemoryVisitStore
from stores.base import VisitFilter
from visits.controller import UploadState, VisitController
from visits.errors import ErrorKind, InvalidTransitionError, StoreError
from visits.models import YearMonth


class FailingStore(MemoryVisitStore):
    """Memory store whose selected operations raise a backend error."""

    def __init__(self, visits=(), fail_on=()):
        super().__init__()
        self.fail_on = set(fail_on)
        self.writes = 0
        MemoryVisitStore.insert_batch(self, visits)

    def _maybe_fail(self, name):
        if name in self.fail_on:
            raise StoreError(f"{name} falló", ErrorKind.NETWORK, context=name)

    def insert_batch(self, visits):
        visits = list(visits)
        if visits:
            self._maybe_fail("insert_batch")
            self.writes += 1
        super().insert_batch(visits)

    def delete_where(self, month_to_executives):
        self._maybe_fail("delete_where")
        self.writes += 1
        super().delete_where(month_to_executives)


class SlowStore(MemoryVisitStore):
    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def list(self, visit_filter=None):
        self.release.wait(2)
        return super().list(visit_filter)


@pytest.fixture
def august(make_visit):
    return [make_visit("2024-08-10", "Ana"), make_visit("2024-08-12", "Luis")]


def test_upload_without_overlap_inserts(make_visit):
    controller = VisitController(MemoryVisitStore())
    notice = controller.receive_upload([make_visit("2024-08-01", "Ana")])
    assert notice.level == "success"
    assert "1 registros" in notice.message
    assert controller.state is UploadState.READY
    assert len(controller.all_visits) == 1
    controller.acknowledge()
    assert controller.state is UploadState.IDLE


def test_overlap_waits_for_confirmation(make_visit, august):
    store = MemoryVisitStore(august)
    controller = VisitController(store)
    incoming = [make_visit("2024-08-01", "Ana"), make_visit("2024-08-02", "Ana"), make_visit("2024-08-03", "Pia")]
    notice = controller.receive_upload(incoming)
    assert notice.level == "warning"
    assert controller.state is UploadState.OVERLAP_DETECTED
    assert controller.pending.overlaps == {YearMonth(2024, 8): frozenset({"Ana"})}
    assert len(store.list_all()) == 2


def test_confirm_replace_deletes_only_overlapping_pairs(make_visit, august):
    store = MemoryVisitStore(august + [make_visit("2024-07-10", "Ana")])
    controller = VisitController(store)
    controller.receive_upload([make_visit("2024-08-01", "Ana"), make_visit("2024-08-02", "Ana")])
    notice = controller.confirm_replace()
    assert notice.level == "success"
    assert controller.state is UploadState.IDLE
    assert controller.pending is None
    remaining = sorted((v.date.isoformat(), v.executive) for v in store.list_all())
    assert remaining == [
        ("2024-07-10", "Ana"),
        ("2024-08-01", "Ana"),
        ("2024-08-02", "Ana"),
        ("2024-08-12", "Luis"),
    ]


def test_cancel_leaves_store_untouched(make_visit, august):
    store = FailingStore(august)
    controller = VisitController(store)
    controller.receive_upload([make_visit("2024-08-01", "Luis")])
    controller.cancel_upload()
    assert controller.state is UploadState.IDLE
    assert controller.pending is None
    assert store.writes == 0
    assert len(store.list_all()) == 2


def test_confirm_without_pending_is_rejected():
    controller = VisitController(MemoryVisitStore())
    with pytest.raises(InvalidTransitionError):
        controller.confirm_replace()


def test_insert_failure_after_delete_names_lost_pairs(make_visit, august):
    store = FailingStore(august, fail_on={"insert_batch"})
    controller = VisitController(store)
    controller.receive_upload([make_visit("2024-08-01", "Ana")])
    notice = controller.confirm_replace()
    assert notice.is_error
    assert "2024-08: Ana" in notice.message
    assert controller.state is UploadState.FAILED
    assert controller.error.kind is ErrorKind.NETWORK
    assert [v.executive for v in controller.all_visits] == ["Luis"]


def test_upload_insert_failure_keeps_previous_data(make_visit, august):
    store = FailingStore(august, fail_on={"insert_batch"})
    controller = VisitController(store)
    controller.refresh()
    notice = controller.receive_upload([make_visit("2024-09-01", "Ana")])
    assert notice.is_error
    assert controller.state is UploadState.FAILED
    assert len(controller.all_visits) == 2


def test_duplicate_copies_month(make_visit):
    store = MemoryVisitStore([make_visit("2024-01-31", "Ana"), make_visit("2024-03-01", "Luis")])
    controller = VisitController(store)
    notice = controller.duplicate(YearMonth(2024, 1), YearMonth(2024, 2))
    assert notice.level == "success"
    copies = [v for v in store.list_all() if v.month == YearMonth(2024, 2)]
    assert [(v.date.day, v.executive) for v in copies] == [(29, "Ana")]


def test_duplicate_empty_source_writes_nothing(make_visit):
    store = FailingStore([make_visit("2024-03-01", "Luis")])
    controller = VisitController(store)
    notice = controller.duplicate(YearMonth(2024, 1), YearMonth(2024, 2))
    assert notice.is_error
    assert notice.title == "Sin datos"
    assert store.writes == 0


def test_duplicate_same_month_is_rejected():
    notice = VisitController(MemoryVisitStore()).duplicate(YearMonth(2024, 1), YearMonth(2024, 1))
    assert notice.is_error


def test_refresh_timeout_records_error():
    store = SlowStore()
    controller = VisitController(store, fetch_timeout=0.05)
    notice = controller.refresh()
    store.release.set()
    assert notice.is_error
    assert controller.error.kind is ErrorKind.TIMEOUT


def test_save_update_and_delete_visit(make_visit):
    controller = VisitController(MemoryVisitStore())
    controller.save_visit(make_visit("2024-08-01", "Ana"))
    [saved] = controller.all_visits
    saved.chain = "Olimpica"
    controller.save_visit(saved)
    assert controller.all_visits[0].chain == "Olimpica"
    controller.update_fields(saved.id, budget=200)
    assert controller.all_visits[0].budget == 200.0
    controller.delete_visit(saved.id)
    assert controller.all_visits == []


def test_update_missing_visit_reports_error():
    controller = VisitController(MemoryVisitStore())
    notice = controller.update_fields(5, chain="Exito")
    assert notice.is_error
    assert controller.error.kind is ErrorKind.NOT_FOUND


def test_refresh_applies_filter(make_visit, august):
    controller = VisitController(MemoryVisitStore(august + [make_visit("2024-07-01", "Ana")]))
    controller.refresh(VisitFilter(month=YearMonth(2024, 8), executive="Ana"))
    assert len(controller.visits) == 1
    assert len(controller.all_visits) == 3
    assert controller.loaded_months() == ["2024-07", "2024-08"]


def test_delete_all_clears_everything(august):
    controller = VisitController(MemoryVisitStore(august))
    controller.refresh()
    controller.delete_all()
    assert controller.all_visits == []
    assert controller.store.list_all() == []


class StaggeredStore(MemoryVisitStore):
    """Filtered read is quick, the full history read is slow."""

    def list(self, visit_filter=None):
        time.sleep(0.2 if visit_filter is not None else 0.33)
        return super().list(visit_filter)


def test_refresh_reads_share_one_deadline():
    controller = VisitController(StaggeredStore(), fetch_timeout=0.25)
    notice = controller.refresh(VisitFilter(month=YearMonth(2024, 8)))
    assert notice.is_error
    assert controller.error.kind is ErrorKind.TIMEOUT


def test_executive_catalogue_workflow():
    controller = VisitController(MemoryVisitStore())
    notice = controller.add_executive("Ana", "https://example.com/ana.png")
    assert notice.title == "Ejecutiva añadida"
    assert [e.name for e in controller.executive_catalog] == ["Ana"]
    assert controller.executives() == ["Ana"]

    ana = controller.executive_catalog[0]
    assert controller.update_executive_photo(ana.id, "").title == "Ejecutiva actualizada"
    assert controller.executive_catalog[0].photo_url is None

    assert controller.delete_executive(ana.id).title == "Ejecutiva eliminada"
    assert controller.executive_catalog == []


def test_duplicate_executive_reports_error():
    controller = VisitController(MemoryVisitStore())
    controller.add_executive("Ana")
    notice = controller.add_executive("Ana")
    assert notice.is_error
    assert controller.error.kind is ErrorKind.DUPLICATE
    assert len(controller.executive_catalog) == 1


def test_invalid_executive_input_is_not_stored():
    controller = VisitController(MemoryVisitStore())
    assert controller.add_executive("   ").is_error
    assert controller.add_executive("Ana", "foto.png").is_error
    assert controller.executive_catalog == []
    assert controller.error is None
