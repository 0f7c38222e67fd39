from datetime import date

from visits.models import YearMonth
from visits.scheduling import (
    available_months,
    duplicate_month,
    find_overlaps,
    format_overlaps,
    target_month_options,
)


def test_duplicate_clamps_day_to_short_month(make_visit):
    visits = [make_visit("2023-01-31"), make_visit("2023-01-15")]
    copies = duplicate_month(YearMonth(2023, 1), YearMonth(2023, 2), visits)
    assert sorted(v.date for v in copies) == [date(2023, 2, 15), date(2023, 2, 28)]


def test_duplicate_keeps_29th_in_leap_february(make_visit):
    copies = duplicate_month(YearMonth(2024, 1), YearMonth(2024, 2), [make_visit("2024-01-29")])
    assert copies[0].date == date(2024, 2, 29)


def test_duplicate_day_is_min_of_day_and_month_length(make_visit):
    source = YearMonth(2024, 3)
    visits = [make_visit(f"2024-03-{day:02d}") for day in range(1, 32)]
    copies = duplicate_month(source, YearMonth(2024, 4), visits)
    assert [c.date.day for c in copies] == [min(day, 30) for day in range(1, 32)]


def test_duplicate_empty_source_returns_nothing(make_visit):
    visits = [make_visit("2024-05-10")]
    assert duplicate_month(YearMonth(2024, 6), YearMonth(2024, 7), visits) == []


def test_duplicate_drops_id_and_keeps_other_fields(impulse_visit):
    stored = impulse_visit.as_draft()
    stored.id = 42
    first = duplicate_month(YearMonth(2024, 7), YearMonth(2024, 9), [stored])
    second = duplicate_month(YearMonth(2024, 9), YearMonth(2024, 10), first)
    copy = second[0]
    assert copy.id is None
    assert copy.date == date(2024, 10, 30)
    original = stored.to_dict()
    result = copy.to_dict()
    for name in ("date", "id"):
        original.pop(name)
        result.pop(name)
    assert result == original


def test_duplicate_does_not_share_material_dict(impulse_visit):
    copy = duplicate_month(YearMonth(2024, 7), YearMonth(2024, 8), [impulse_visit])[0]
    copy.material_pop["AFICHE"] = 99
    assert impulse_visit.material_pop["AFICHE"] == 10


def test_find_overlaps_reports_only_shared_pairs(make_visit):
    incoming = [make_visit("2024-08-01", "Ana"), make_visit("2024-08-20", "Ana"), make_visit("2024-08-03", "Luis")]
    existing = [make_visit("2024-08-10", "Ana"), make_visit("2024-07-10", "Luis")]
    overlaps = find_overlaps(incoming, existing)
    assert overlaps == {YearMonth(2024, 8): frozenset({"Ana"})}


def test_find_overlaps_is_order_independent(make_visit):
    incoming = [make_visit("2024-08-03", "Luis"), make_visit("2024-09-01", "Ana"), make_visit("2024-08-01", "Ana")]
    existing = [make_visit("2024-09-15", "Ana"), make_visit("2024-08-02", "Luis"), make_visit("2024-08-22", "Ana")]
    expected = find_overlaps(incoming, existing)
    assert find_overlaps(list(reversed(incoming)), list(reversed(existing))) == expected
    assert format_overlaps(expected) == [("2024-08", ["Ana", "Luis"]), ("2024-09", ["Ana"])]


def test_find_overlaps_empty_when_no_existing(make_visit):
    assert find_overlaps([make_visit()], []) == {}


def test_available_months_newest_first(make_visit):
    visits = [make_visit("2024-01-03"), make_visit("2024-03-03"), make_visit("2024-01-20")]
    assert available_months(visits) == [YearMonth(2024, 3), YearMonth(2024, 1)]


def test_target_month_options_include_following_year(make_visit):
    options = target_month_options([make_visit("2024-11-03")], horizon=3)
    assert options == [YearMonth(2025, 2), YearMonth(2025, 1), YearMonth(2024, 12), YearMonth(2024, 11)]


def test_target_month_options_without_data_uses_today():
    options = target_month_options([], today=date(2024, 5, 17), horizon=2)
    assert options == [YearMonth(2024, 7), YearMonth(2024, 6)]
