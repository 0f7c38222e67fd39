import pytest

from visits.kpi import (
    ALL,
    UNSPECIFIED,
    apply_filters,
    calendar_weeks,
    compute_kpis,
    count_by,
    filter_options,
    generate_summary,
    group_by_day,
    material_summary,
    visits_to_frame,
)
from visits.models import Activity, YearMonth


@pytest.fixture
def visits(make_visit):
    return [
        make_visit("2024-08-01", "Ana", city="Bogotá", budget=100),
        make_visit("2024-08-01", "Luis", city="Cali", chain="Olimpica", activity=Activity.IMPULSO,
                   material_pop={"AFICHE": 4, "CARPA": 1}),
        make_visit("2024-08-05", "Ana", city="", activity=Activity.IMPULSO, material_pop={"AFICHE": 2}),
    ]


def test_filter_options_and_apply(visits):
    options = filter_options(visits)
    assert options["city"] == [ALL, "Bogotá", "Cali"]
    assert options["activity"] == [ALL, "Impulso", "Visita"]
    assert len(apply_filters(visits, city=ALL, activity="Impulso")) == 2
    assert [v.executive for v in apply_filters(visits, city="Cali")] == ["Luis"]
    with pytest.raises(ValueError):
        apply_filters(visits, colour="red")


def test_count_by_sorts_and_labels_blanks(visits):
    by_exec = count_by(visits, "executive")
    assert by_exec.to_dict("records") == [{"name": "Ana", "visits": 2}, {"name": "Luis", "visits": 1}]
    by_city = count_by(visits, "city")
    assert UNSPECIFIED in by_city["name"].tolist()


def test_compute_kpis_with_month(visits):
    kpis = compute_kpis(visits, YearMonth(2024, 8))
    assert kpis["visits"] == 3
    assert kpis["executives"] == 2
    assert kpis["chains"] == 2
    assert kpis["budget"] == 100.0
    assert kpis["material_cost"] == pytest.approx(6 * 1.5 + 150.0)
    assert kpis["active_days"] == 2
    assert kpis["idle_days"] == 29


def test_group_by_day_and_calendar(visits):
    grouped = group_by_day(visits)
    assert sorted(grouped["2024-08-01"]) == ["Ana", "Luis"]
    weeks = calendar_weeks(visits, YearMonth(2024, 8))
    assert all(len(week) == 7 for week in weeks)
    # August 1st 2024 is a Thursday.
    assert weeks[0][:3] == [None, None, None]
    day, executives = weeks[0][3]
    assert day == 1
    assert [v.chain for v in executives["Luis"]] == ["Olimpica"]
    assert executives["Luis"][0].activity is Activity.IMPULSO
    assert weeks[0][4] == (2, {})
    assert weeks[-1][5] == (31, {})
    assert weeks[-1][6] is None


def test_material_summary_only_counts_impulses(visits, make_visit):
    extra = make_visit("2024-08-09", "Ana", material_pop={"AFICHE": 100})
    summary = material_summary(visits + [extra])
    rows = {r["material"]: r for r in summary.to_dict("records")}
    assert rows["AFICHE"]["quantity"] == 6
    assert rows["CARPA"]["cost"] == 150.0
    assert summary.iloc[0]["material"] == "CARPA"


def test_visits_to_frame_adds_derived_columns(visits):
    frame = visits_to_frame(visits)
    assert {"month", "total_cost", "executive"} <= set(frame.columns)
    assert frame["month"].unique().tolist() == ["2024-08"]


def test_generate_summary_mentions_timeframe(visits):
    kpis = compute_kpis(visits, YearMonth(2024, 8))
    text = generate_summary(kpis, "2024-08", top_executives=count_by(visits, "executive"))
    assert "2024-08" in text
    assert "Ana (2)" in text
    assert "29 días" in text
