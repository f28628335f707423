from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest

from meeting_manager.services.recurrence import add_months, next_occurrence


@pytest.mark.parametrize(
    "ref, expected",
    [
        (date(2024, 2, 29), date(2024, 3, 1)),
        (date(2023, 2, 28), date(2023, 3, 1)),
        (date(2024, 12, 31), date(2025, 1, 1)),
        (date(2024, 4, 30), date(2024, 5, 1)),
    ],
)
def test_daily_crosses_month_and_year_boundaries(ref, expected):
    assert next_occurrence(ref, "daily") == expected


def test_daily_is_one_day_for_a_run_of_dates():
    d = date(2023, 12, 25)
    for _ in range(800):
        assert next_occurrence(d, "daily") == d + timedelta(days=1)
        d += timedelta(days=1)


def test_weekly_adds_seven_days():
    assert next_occurrence(date(2024, 12, 28), "weekly") == date(2025, 1, 4)


@pytest.mark.parametrize(
    "ref, expected",
    [
        (date(2024, 1, 15), date(2024, 2, 15)),
        (date(2024, 1, 31), date(2024, 2, 29)),
        (date(2023, 1, 31), date(2023, 2, 28)),
        (date(2024, 3, 31), date(2024, 4, 30)),
        (date(2024, 12, 31), date(2025, 1, 31)),
    ],
)
def test_monthly_clamps_to_last_day_of_target_month(ref, expected):
    assert next_occurrence(ref, "monthly") == expected


def test_add_months_spans_several_years():
    assert add_months(date(2024, 2, 29), 12) == date(2025, 2, 28)
    assert add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)


def test_custom_day_uses_interval():
    assert next_occurrence(date(2024, 5, 1), "custom_day", 10) == date(2024, 5, 11)


@pytest.mark.parametrize("custom_days", [0, None, -3, "x"])
def test_custom_day_without_positive_interval_falls_back_to_one_day(custom_days):
    assert next_occurrence(date(2024, 5, 1), "custom_day", custom_days) == date(2024, 5, 2)


@pytest.mark.parametrize("kind", ["none", None, "yearly", "week"])
def test_unknown_kind_falls_back_to_one_day(kind):
    assert next_occurrence(date(2024, 5, 1), kind) == date(2024, 5, 2)


def test_datetime_reference_is_reduced_to_its_date():
    assert next_occurrence(datetime(2024, 5, 1, 23, 59), "weekly") == date(2024, 5, 8)


def test_monthly_series_keeps_the_clamped_day():
    # each step starts from the stored date, so a clamped day stays clamped
    d = date(2024, 1, 31)
    series = []
    for _ in range(4):
        d = next_occurrence(d, "monthly")
        series.append(d)
    assert series == [date(2024, 2, 29), date(2024, 3, 29), date(2024, 4, 29), date(2024, 5, 29)]
