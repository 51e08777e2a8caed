"""Recurrence Calculator — next occurrence, signed day difference and display text.

Invariants:
    - Every function here is PURE: no clock reads unless `today` is omitted, no IO
    - For frequency != NONE the next occurrence is strictly after today
      (observable result of "while occurrence <= today: advance")
    - Repeating moments never report MomentStatus.PAST
    - Monthly steps keep the anchor's day-of-month, clamped to the target month's length
    - Yearly steps keep the anchor's month/day; Feb 29 clamps to Feb 28 in common years
    - Runtime is constant per call: elapsed periods come from integer arithmetic

Design Decisions:
    - datetime.date arithmetic instead of epoch milliseconds: calendar days have no
      time-of-day, so there is no local-time skew to round away
    - Clamping is always relative to the ANCHOR day, not the previous occurrence,
      so a "31st" moment returns to the 31st after a short month
    - "today" defaults to the caller's local calendar date; a reference timezone can
      be supplied explicitly (see today_in)
"""

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, TypeVar
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

from lifemoments.core.domain_types import MomentStatus, RepeatFrequency


DAYS_PER_WEEK: int = 7
MONTHS_PER_YEAR: int = 12

T = TypeVar("T")


@dataclass(frozen=True)
class DayDifference:
    """Result of a recurrence calculation relative to one `today`."""
    days_difference: int
    display_text: str
    status: MomentStatus
    next_occurrence: date | None
    is_repeating: bool


# ─── Calendar helpers ────────────────────────────────────────────

def is_leap_year(year: int) -> bool:
    return calendar.isleap(year)


def days_in_month(year: int, month: int) -> int:
    """Number of days in month (1-12) of year."""
    return calendar.monthrange(year, month)[1]


def add_months(anchor: date, months: int) -> date:
    """Shift anchor by whole months, clamping the day to the target month."""
    return anchor + relativedelta(months=months)


def add_years(anchor: date, years: int) -> date:
    """Shift anchor by whole years. Feb 29 lands on Feb 28 in common years."""
    return anchor + relativedelta(years=years)


def today_in(timezone_name: str | None = None) -> date:
    """Today's calendar date, locally or in the named IANA zone."""
    if timezone_name:
        return datetime.now(ZoneInfo(timezone_name)).date()
    return date.today()


def as_calendar_date(value: date | datetime | str) -> date:
    """Strip time-of-day: datetimes become their date, ISO strings are parsed."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


# ─── Next occurrence ─────────────────────────────────────────────

def calculate_next_occurrence(
    anchor: date | str,
    frequency: RepeatFrequency,
    today: date | datetime | None = None,
) -> date:
    """First occurrence of a moment strictly after today (anchor itself for NONE)."""
    anchor = as_calendar_date(anchor)
    today = as_calendar_date(today) if today is not None else today_in()

    match frequency:
        case RepeatFrequency.NONE:
            return anchor
        case RepeatFrequency.DAILY:
            return _step_days(anchor, today, 1)
        case RepeatFrequency.WEEKLY:
            return _step_days(anchor, today, DAYS_PER_WEEK)
        case RepeatFrequency.MONTHLY:
            if anchor > today:
                return anchor
            elapsed = (today.year - anchor.year) * MONTHS_PER_YEAR + (today.month - anchor.month)
            return _first_after(today, elapsed, lambda k: add_months(anchor, k))
        case RepeatFrequency.YEARLY:
            if anchor > today:
                return anchor
            elapsed = today.year - anchor.year
            return _first_after(today, elapsed, lambda k: add_years(anchor, k))
        case _:
            raise ValueError(f"Unhandled repeat frequency: {frequency!r}")


def _step_days(anchor: date, today: date, period: int) -> date:
    if anchor > today:
        return anchor
    steps = (today - anchor).days // period + 1
    return anchor + timedelta(days=steps * period)


def _first_after(today: date, elapsed: int, shift: Callable[[int], date]) -> date:
    # shift(elapsed) lands in today's month/year; one more period is enough
    # always shifted from the anchor: no drift from a clamped previous occurrence
    candidate = shift(elapsed)
    if candidate <= today:
        candidate = shift(elapsed + 1)
    return candidate


# ─── Day difference ──────────────────────────────────────────────

def day_difference(target: date | datetime | str, today: date | datetime) -> int:
    """Signed calendar-day count from today to target."""
    return (as_calendar_date(target) - as_calendar_date(today)).days


def format_day_text(days: int) -> str:
    if days == 0:
        return "Today"
    if days > 0:
        return "1 day until" if days == 1 else f"{days} days until"
    ago = abs(days)
    return "1 day ago" if ago == 1 else f"{ago} days ago"


def status_for(days: int, is_repeating: bool) -> MomentStatus:
    if days == 0:
        status = MomentStatus.TODAY
    elif days > 0:
        status = MomentStatus.FUTURE
    else:
        status = MomentStatus.PAST
    # repeating moments are upcoming by definition
    if is_repeating and status is MomentStatus.PAST:
        status = MomentStatus.FUTURE
    return status


def calculate_day_difference(
    moment_date: date | str,
    frequency: RepeatFrequency = RepeatFrequency.NONE,
    today: date | datetime | None = None,
) -> DayDifference:
    """Compute difference, text and status for a moment relative to today."""
    today = as_calendar_date(today) if today is not None else today_in()
    is_repeating = frequency != RepeatFrequency.NONE

    next_occurrence = None
    if is_repeating:
        next_occurrence = calculate_next_occurrence(moment_date, frequency, today)
        target = next_occurrence
    else:
        target = as_calendar_date(moment_date)

    days = day_difference(target, today)
    return DayDifference(
        days_difference=days,
        display_text=format_day_text(days),
        status=status_for(days, is_repeating),
        next_occurrence=next_occurrence,
        is_repeating=is_repeating,
    )


# ─── Formatting & ordering ───────────────────────────────────────

def format_display_date(value: date | str) -> str:
    """Long US-style date, e.g. 'March 15, 2024'."""
    d = as_calendar_date(value)
    return f"{calendar.month_name[d.month]} {d.day}, {d.year}"


def today_string(today: date | None = None) -> str:
    """Today as YYYY-MM-DD, for default form values."""
    return (today or today_in()).isoformat()


def sort_moments_by_date(
    items: Iterable[T],
    key: Callable[[T], int] = lambda item: item.days_difference,
) -> list[T]:
    """Today/future first (closest first), then past (most recent first).

    Stable: items with equal day differences keep their incoming order.
    """
    def _rank(item: T) -> tuple[int, int]:
        days = key(item)
        return (0, days) if days >= 0 else (1, -days)

    return sorted(items, key=_rank)
