"""Tests for core/recurrence.py — next occurrence, day difference, text, ordering.

Tests cover:
    - Calendar helpers: leap years, month lengths, month/year shifting with clamping
    - calculate_next_occurrence for every frequency, anchors in the past, today, future
    - Month-end and Feb 29 clamping stays relative to the anchor day
    - Repeating moments: next occurrence strictly after today, never PAST
    - Agreement with a naive step-until-after-today loop
    - Display text (singular/plural/Today) and status thresholds
    - sort_moments_by_date ordering and stability
"""

from datetime import date, datetime, timedelta
from types import SimpleNamespace

import pytest

from lifemoments.core.domain_types import MomentStatus, RepeatFrequency
from lifemoments.core.recurrence import (
    add_months, add_years, as_calendar_date, calculate_day_difference,
    calculate_next_occurrence, day_difference, days_in_month, format_day_text,
    format_display_date, is_leap_year, sort_moments_by_date, status_for,
    today_string,
)


TODAY = date(2024, 6, 15)


def _naive_next(anchor: date, frequency: RepeatFrequency, today: date) -> date:
    """Reference: advance one period at a time until strictly after today."""
    k = 0
    occurrence = anchor
    while occurrence <= today:
        k += 1
        if frequency is RepeatFrequency.DAILY:
            occurrence = anchor + timedelta(days=k)
        elif frequency is RepeatFrequency.WEEKLY:
            occurrence = anchor + timedelta(weeks=k)
        elif frequency is RepeatFrequency.MONTHLY:
            occurrence = add_months(anchor, k)
        else:
            occurrence = add_years(anchor, k)
    return occurrence


# ─── Calendar helpers ───────────────────────────────────────────


def test_leap_year_rules():
    assert is_leap_year(2024)
    assert is_leap_year(2000)
    assert not is_leap_year(1900)
    assert not is_leap_year(2023)


def test_days_in_month():
    assert days_in_month(2024, 2) == 29
    assert days_in_month(2023, 2) == 28
    assert days_in_month(2024, 4) == 30
    assert days_in_month(2024, 12) == 31


def test_add_months_clamps_to_short_month():
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
    assert add_months(date(2024, 1, 31), 3) == date(2024, 4, 30)


def test_add_months_crosses_year_boundaries():
    assert add_months(date(2024, 12, 15), 1) == date(2025, 1, 15)
    assert add_months(date(2024, 3, 31), -1) == date(2024, 2, 29)
    assert add_months(date(2024, 1, 10), -13) == date(2022, 12, 10)


def test_add_years_feb_29():
    assert add_years(date(2024, 2, 29), 1) == date(2025, 2, 28)
    assert add_years(date(2024, 2, 29), 4) == date(2028, 2, 29)
    assert add_years(date(2024, 3, 1), 1) == date(2025, 3, 1)


def test_as_calendar_date_accepts_strings_and_datetimes():
    assert as_calendar_date("2024-06-15") == TODAY
    assert as_calendar_date(datetime(2024, 6, 15, 23, 59)) == TODAY
    assert as_calendar_date(TODAY) is TODAY


# ─── Next occurrence ────────────────────────────────────────────


def test_none_frequency_returns_anchor():
    anchor = date(2020, 1, 1)
    assert calculate_next_occurrence(anchor, RepeatFrequency.NONE, TODAY) == anchor


def test_future_anchor_is_its_own_next_occurrence():
    anchor = date(2024, 7, 1)
    for frequency in (
        RepeatFrequency.DAILY, RepeatFrequency.WEEKLY,
        RepeatFrequency.MONTHLY, RepeatFrequency.YEARLY,
    ):
        assert calculate_next_occurrence(anchor, frequency, TODAY) == anchor


def test_daily_anchor_today_moves_to_tomorrow():
    assert calculate_next_occurrence(TODAY, RepeatFrequency.DAILY, TODAY) == date(2024, 6, 16)


def test_daily_far_past_anchor():
    assert calculate_next_occurrence(
        date(1900, 1, 1), RepeatFrequency.DAILY, TODAY,
    ) == date(2024, 6, 16)


def test_weekly_keeps_weekday():
    # 2024-06-03 is a Monday
    assert calculate_next_occurrence(
        date(2024, 6, 3), RepeatFrequency.WEEKLY, TODAY,
    ) == date(2024, 6, 17)
    # same weekday as today -> one week later, not today
    assert calculate_next_occurrence(
        date(2024, 6, 1), RepeatFrequency.WEEKLY, TODAY,
    ) == date(2024, 6, 22)


def test_monthly_clamps_to_leap_february():
    assert calculate_next_occurrence(
        date(2024, 1, 31), RepeatFrequency.MONTHLY, date(2024, 2, 1),
    ) == date(2024, 2, 29)


def test_monthly_returns_to_anchor_day_after_short_month():
    anchor = date(2024, 1, 31)
    assert calculate_next_occurrence(
        anchor, RepeatFrequency.MONTHLY, date(2024, 4, 10),
    ) == date(2024, 4, 30)
    assert calculate_next_occurrence(
        anchor, RepeatFrequency.MONTHLY, date(2024, 4, 30),
    ) == date(2024, 5, 31)


def test_monthly_later_day_in_current_month():
    assert calculate_next_occurrence(
        date(2023, 11, 20), RepeatFrequency.MONTHLY, TODAY,
    ) == date(2024, 6, 20)


def test_yearly_leap_anchor_clamps_in_common_year():
    assert calculate_next_occurrence(
        date(2024, 2, 29), RepeatFrequency.YEARLY, date(2025, 1, 1),
    ) == date(2025, 2, 28)
    assert calculate_next_occurrence(
        date(2024, 2, 29), RepeatFrequency.YEARLY, date(2024, 3, 1),
    ) == date(2025, 2, 28)
    assert calculate_next_occurrence(
        date(2020, 2, 29), RepeatFrequency.YEARLY, date(2023, 3, 1),
    ) == date(2024, 2, 29)


def test_yearly_anchor_today_moves_a_year():
    assert calculate_next_occurrence(
        date(1990, 6, 15), RepeatFrequency.YEARLY, TODAY,
    ) == date(2025, 6, 15)


def test_unknown_frequency_raises():
    with pytest.raises(ValueError):
        calculate_next_occurrence(date(2024, 1, 1), "hourly", TODAY)


@pytest.mark.parametrize("frequency", [
    RepeatFrequency.DAILY, RepeatFrequency.WEEKLY,
    RepeatFrequency.MONTHLY, RepeatFrequency.YEARLY,
])
def test_matches_naive_loop(frequency):
    anchors = [
        date(2024, 1, 31), date(2023, 2, 28), date(2020, 2, 29),
        date(2019, 8, 30), date(2024, 6, 14), date(2024, 6, 15),
    ]
    todays = [TODAY, date(2024, 2, 28), date(2024, 2, 29), date(2025, 3, 1), date(2024, 12, 31)]
    for anchor in anchors:
        for today in todays:
            expected = _naive_next(anchor, frequency, today) if anchor <= today else anchor
            assert calculate_next_occurrence(anchor, frequency, today) == expected, (anchor, today)


# ─── Day difference ─────────────────────────────────────────────


def test_day_difference_ignores_time_of_day():
    assert day_difference(date(2024, 6, 16), datetime(2024, 6, 15, 23, 59)) == 1
    assert day_difference("2024-06-10", TODAY) == -5


@pytest.mark.parametrize("days,text", [
    (0, "Today"),
    (1, "1 day until"),
    (2, "2 days until"),
    (-1, "1 day ago"),
    (-30, "30 days ago"),
])
def test_format_day_text(days, text):
    assert format_day_text(days) == text


def test_status_thresholds():
    assert status_for(0, False) is MomentStatus.TODAY
    assert status_for(3, False) is MomentStatus.FUTURE
    assert status_for(-3, False) is MomentStatus.PAST
    assert status_for(-3, True) is MomentStatus.FUTURE


def test_one_off_moment_today():
    result = calculate_day_difference(TODAY, RepeatFrequency.NONE, TODAY)
    assert result.days_difference == 0
    assert result.display_text == "Today"
    assert result.status is MomentStatus.TODAY
    assert result.next_occurrence is None
    assert result.is_repeating is False


def test_one_off_moment_in_past():
    result = calculate_day_difference("2024-06-10", RepeatFrequency.NONE, TODAY)
    assert result.days_difference == -5
    assert result.display_text == "5 days ago"
    assert result.status is MomentStatus.PAST


def test_daily_moment_anchored_today_is_tomorrow():
    result = calculate_day_difference(TODAY, RepeatFrequency.DAILY, TODAY)
    assert result.days_difference == 1
    assert result.display_text == "1 day until"
    assert result.status is MomentStatus.FUTURE
    assert result.next_occurrence == date(2024, 6, 16)
    assert result.is_repeating is True


def test_plain_string_frequency_is_repeating():
    result = calculate_day_difference("2024-01-01", "weekly", TODAY)
    assert result.is_repeating is True


def test_repeating_moments_never_past():
    for frequency in (
        RepeatFrequency.DAILY, RepeatFrequency.WEEKLY,
        RepeatFrequency.MONTHLY, RepeatFrequency.YEARLY,
    ):
        for offset in (-4000, -365, -31, -1, 0, 1, 45):
            anchor = TODAY + timedelta(days=offset)
            result = calculate_day_difference(anchor, frequency, TODAY)
            assert result.next_occurrence > TODAY
            assert result.days_difference > 0
            assert result.status is MomentStatus.FUTURE


# ─── Formatting & ordering ──────────────────────────────────────


def test_format_display_date():
    assert format_display_date("2024-03-15") == "March 15, 2024"
    assert format_display_date(date(2025, 12, 1)) == "December 1, 2025"


def test_today_string():
    assert today_string(date(2024, 1, 5)) == "2024-01-05"


def test_sort_upcoming_first_then_recent_past():
    items = [SimpleNamespace(days_difference=d) for d in (-5, 5, 0, 10, -10)]
    ordered = sort_moments_by_date(items)
    assert [i.days_difference for i in ordered] == [0, 5, 10, -5, -10]


def test_sort_is_stable_for_ties():
    first = SimpleNamespace(days_difference=3, name="first")
    second = SimpleNamespace(days_difference=3, name="second")
    ordered = sort_moments_by_date([first, second])
    assert [i.name for i in ordered] == ["first", "second"]


def test_sort_with_custom_key():
    ordered = sort_moments_by_date([-1, 2, 0], key=lambda d: d)
    assert ordered == [0, 2, -1]
