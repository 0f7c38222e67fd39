from datetime import date

import pytest

from stores import DuckDBVisitStore, MemoryVisitStore, create_store
from stores.base import VisitFilter
from visits.config import Settings
from visits.errors import ConfigurationError, ErrorKind, StoreError
from visits.models import Activity, Executive, YearMonth


@pytest.fixture(params=["memory", "duckdb"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryVisitStore()
    return DuckDBVisitStore(str(tmp_path / "visits.duckdb"))


def _seed(store, make_visit):
    store.insert_batch([
        make_visit("2024-08-01", "Ana", agent="Pedro"),
        make_visit("2024-08-15", "Ana", agent="Marta"),
        make_visit("2024-08-03", "Luis", agent="Pedro"),
        make_visit("2024-07-20", "Ana", agent="Pedro"),
    ])


def test_insert_one_assigns_id(store, impulse_visit):
    saved = store.insert_one(impulse_visit)
    assert saved.id is not None
    [loaded] = store.list_all()
    assert loaded.id == saved.id
    assert loaded.material_pop == {"AFICHE": 10, "CARPA": 1}
    assert loaded.activity is Activity.IMPULSO
    assert loaded.material_delivery_date == date(2024, 7, 29)
    assert loaded.sample_count == 150


def test_list_honours_filter(store, make_visit):
    _seed(store, make_visit)
    august = store.list(VisitFilter(month=YearMonth(2024, 8)))
    assert len(august) == 3
    assert all(v.date.month == 8 for v in august)
    ana_pedro = store.list(VisitFilter(month=YearMonth(2024, 8), executive="Ana", agent="Pedro"))
    assert [v.date for v in ana_pedro] == [date(2024, 8, 1)]
    assert len(store.list_all()) == 4


def test_delete_where_only_touches_listed_pairs(store, make_visit):
    _seed(store, make_visit)
    store.delete_where({YearMonth(2024, 8): frozenset({"Ana"})})
    remaining = sorted((str(v.month), v.executive) for v in store.list_all())
    assert remaining == [("2024-07", "Ana"), ("2024-08", "Luis")]


def test_update_and_delete(store, make_visit):
    saved = store.insert_one(make_visit("2024-08-01", "Ana"))
    store.update_one(saved.id, {"chain": "Olimpica", "budget": 50})
    [loaded] = store.list_all()
    assert loaded.chain == "Olimpica"
    assert loaded.budget == 50.0
    store.delete_one(saved.id)
    assert store.list_all() == []


def test_update_missing_visit_is_not_found(store):
    with pytest.raises(StoreError) as info:
        store.update_one(999, {"chain": "Olimpica"})
    assert info.value.kind is ErrorKind.NOT_FOUND


def test_update_rejects_invalid_changes(store, make_visit):
    saved = store.insert_one(make_visit())
    with pytest.raises(ValueError):
        store.update_one(saved.id, {"budget": -10})
    with pytest.raises(ValueError):
        store.update_one(saved.id, {"colour": "red"})


def test_delete_all(store, make_visit):
    _seed(store, make_visit)
    store.delete_all()
    assert store.list_all() == []


def test_duckdb_in_memory_keeps_data(make_visit):
    store = DuckDBVisitStore(":memory:")
    store.insert_batch([make_visit(), make_visit("2024-08-06")])
    assert len(store.list_all()) == 2


def test_create_store_selects_backend(tmp_path):
    assert isinstance(create_store(Settings(backend="memory")), MemoryVisitStore)
    duck = create_store(Settings(backend="duckdb", duckdb_path=str(tmp_path / "db" / "v.duckdb")))
    assert isinstance(duck, DuckDBVisitStore)
    with pytest.raises(ConfigurationError):
        create_store(Settings(backend="supabase"))


def test_executive_catalogue_crud(store):
    luis = store.add_executive(Executive(name="Luis"))
    ana = store.add_executive(Executive(name="Ana", photo_url="https://example.com/ana.png"))
    assert luis.id is not None and ana.id != luis.id
    assert [e.name for e in store.list_executives()] == ["Ana", "Luis"]

    store.update_executive(luis.id, "https://example.com/luis.png")
    store.update_executive(ana.id, "")
    photos = {e.name: e.photo_url for e in store.list_executives()}
    assert photos == {"Ana": None, "Luis": "https://example.com/luis.png"}

    store.delete_executive(ana.id)
    assert [e.name for e in store.list_executives()] == ["Luis"]


def test_duplicate_executive_is_rejected(store):
    store.add_executive(Executive(name="Ana"))
    with pytest.raises(StoreError) as info:
        store.add_executive(Executive(name="  Ana "))
    assert info.value.kind is ErrorKind.DUPLICATE
    assert len(store.list_executives()) == 1


def test_update_missing_executive_is_not_found(store):
    with pytest.raises(StoreError) as info:
        store.update_executive(42, None)
    assert info.value.kind is ErrorKind.NOT_FOUND


def test_update_executive_rejects_bad_url(store):
    ana = store.add_executive(Executive(name="Ana"))
    with pytest.raises(ValueError):
        store.update_executive(ana.id, "foto.png")
