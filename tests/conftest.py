from datetime import date

import pytest

from visits.models import Activity, Visit


@pytest.fixture
def make_visit():
    def _make(day="2024-08-05", executive="Ana", **kwargs):
        kwargs.setdefault("agent", "Pedro")
        kwargs.setdefault("chain", "Exito")
        kwargs.setdefault("city", "Bogotá")
        return Visit(date=date.fromisoformat(day), executive=executive, **kwargs)

    return _make


@pytest.fixture
def impulse_visit():
    return Visit(
        date=date(2024, 7, 31),
        executive="Luisa",
        agent="Carlos",
        channel="Moderno",
        chain="Olimpica",
        pdv_detail="Olimpica 72",
        activity=Activity.IMPULSO,
        schedule="PM",
        city="Barranquilla",
        zone="Norte",
        budget=250000,
        expected_attendance=80,
        material_delivery_date=date(2024, 7, 29),
        delivery_place="Bodega central",
        objective="Lanzamiento",
        sample_count=150,
        material_pop={"AFICHE": 10, "CARPA": 1},
        other_materials="Pendones",
        observation="Confirmar horario",
    )
