"""
ISO week arithmetic: week keys, week ranges, month mapping and labels.

Weeks follow ISO-8601: Monday to Sunday, week 1 is the week that contains the
year's first Thursday. A year has 52 or 53 ISO weeks, never a fixed 52.

`current_year_week` is the only function here that reads a clock, and the
clock is passed in by the caller.
"""
from __future__ import annotations

from collections import OrderedDict
from datetime import date, timedelta
from typing import Callable, Collection, Dict, Iterable, List, NamedTuple, Sequence, Tuple

from dateutil.relativedelta import relativedelta


MIN_YEAR = 1
# Week 52 of 9999 ends in year 10000, past date.max
MAX_YEAR = 9998

MONTH_NAMES: Dict[str, Tuple[str, ...]] = {
    "en": ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"),
    "sv": ("jan", "feb", "mar", "apr", "maj", "jun",
           "jul", "aug", "sep", "okt", "nov", "dec"),
}


class InvalidWeekError(ValueError):
    """Raised when a week number is outside the ISO weeks of its year."""

    def __init__(self, year: int, week: int) -> None:
        super().__init__(f"Invalid ISO week {week} for year {year}")
        self.year = year
        self.week = week


class InvalidYearError(ValueError):
    """Raised when a year is outside the supported calendar range."""

    def __init__(self, year: int) -> None:
        super().__init__(f"Invalid year {year}")
        self.year = year


class InvalidMonthError(ValueError):
    """Raised when a month is outside 1-12."""

    def __init__(self, month: int) -> None:
        super().__init__(f"Invalid month {month}")
        self.month = month


class WeekKey(NamedTuple):
    year: int
    week: int


# =============================================================================
# VALIDATION
# =============================================================================

def validate_year(year: int) -> int:
    if year < MIN_YEAR or year > MAX_YEAR:
        raise InvalidYearError(year)
    return year


def validate_month(month: int) -> int:
    if month < 1 or month > 12:
        raise InvalidMonthError(month)
    return month


def iso_weeks_in_year(year: int) -> int:
    """Number of ISO weeks (52 or 53) in the given year."""
    validate_year(year)
    # Dec 28 always falls in the last ISO week of its year
    return date(year, 12, 28).isocalendar()[1]


def validate_week(year: int, week: int) -> WeekKey:
    """Return the (year, week) key, raising on out-of-range values."""
    validate_year(year)
    if week < 1 or week > 53:
        raise InvalidWeekError(year, week)
    if week > iso_weeks_in_year(year):
        raise InvalidWeekError(year, week)
    return WeekKey(year, week)


# =============================================================================
# WEEK KEYS
# =============================================================================

def year_week_for_date(value: date) -> WeekKey:
    iso = value.isocalendar()
    return WeekKey(iso[0], iso[1])


def current_year_week(clock: Callable[[], date] = date.today) -> WeekKey:
    """ISO year and week of the date returned by `clock`."""
    return year_week_for_date(clock())


def week_date_range(year: int, week: int) -> Tuple[date, date]:
    """Monday and Sunday of the given ISO week."""
    validate_week(year, week)
    monday = date.fromisocalendar(year, week, 1)
    return monday, monday + timedelta(days=6)


def add_weeks(key: Tuple[int, int], delta: int) -> WeekKey:
    """Shift a week key by `delta` weeks (negative allowed), honouring 53-week years."""
    monday, _ = week_date_range(key[0], key[1])
    try:
        shifted = year_week_for_date(monday + timedelta(weeks=delta))
    except OverflowError:
        raise InvalidYearError(key[0] + delta // 52) from None
    validate_year(shifted.year)
    return shifted


def week_range(year_from: int, week_from: int, year_to: int, week_to: int) -> List[WeekKey]:
    """
    Inclusive, ordered list of week keys between two ISO weeks.

    An inverted range returns an empty list.
    """
    start = validate_week(year_from, week_from)
    end = validate_week(year_to, week_to)
    weeks: List[WeekKey] = []
    year, week = start
    last_week = iso_weeks_in_year(year)
    while (year, week) <= end:
        weeks.append(WeekKey(year, week))
        week += 1
        if week > last_week:
            year += 1
            week = 1
            if year > MAX_YEAR:
                break
            last_week = iso_weeks_in_year(year)
    return weeks


# =============================================================================
# MONTHS
# =============================================================================

def month_label(month: int, year: int, locale: str = "en") -> str:
    """Short month label, e.g. 'Mar 2026'. The locale is explicit, never the host's."""
    validate_month(month)
    if locale not in MONTH_NAMES:
        raise ValueError(f"unsupported locale '{locale}'")
    return f"{MONTH_NAMES[locale][month - 1]} {year}"


def month_for_week(year: int, week: int) -> int:
    """Month (1-12) of the week's Monday."""
    monday, _ = week_date_range(year, week)
    return monday.month


def month_range(year_from: int, month_from: int, year_to: int, month_to: int) -> List[Tuple[int, int]]:
    """Inclusive (year, month) pairs between two months; empty when inverted."""
    validate_year(year_from)
    validate_year(year_to)
    validate_month(month_from)
    validate_month(month_to)
    current = date(year_from, month_from, 1)
    end = date(year_to, month_to, 1)
    months: List[Tuple[int, int]] = []
    while current <= end:
        months.append((current.year, current.month))
        if current.year == MAX_YEAR and current.month == 12:
            break
        current += relativedelta(months=1)
    return months


def month_spans_for_weeks(weeks: Sequence[Tuple[int, int]], locale: str = "en") -> List[Tuple[str, int]]:
    """
    Group consecutive weeks by the month of their Monday.

    Returns (label, column span) pairs for week-grid headers.
    """
    spans: List[Tuple[str, int]] = []
    current = None
    count = 0
    for year, week in weeks:
        monday, _ = week_date_range(year, week)
        month_key = (monday.year, monday.month)
        if month_key != current:
            if current is not None:
                spans.append((month_label(current[1], current[0], locale), count))
            current = month_key
            count = 1
        else:
            count += 1
    if current is not None:
        spans.append((month_label(current[1], current[0], locale), count))
    return spans


def _days_by_month(days: Iterable[date]) -> List[Tuple[int, int, int]]:
    buckets: "OrderedDict[Tuple[int, int], int]" = OrderedDict()
    for day in days:
        key = (day.year, day.month)
        buckets[key] = buckets.get(key, 0) + 1
    return [(year, month, count) for (year, month), count in buckets.items()]


def _week_days(year: int, week: int) -> List[date]:
    monday, _ = week_date_range(year, week)
    return [monday + timedelta(days=offset) for offset in range(7)]


def month_overlap_days(year: int, week: int) -> List[Tuple[int, int, int]]:
    """
    Calendar days of the ISO week per month, as (year, month, days).

    The day counts always sum to 7.
    """
    return _days_by_month(_week_days(year, week))


def working_days_by_month(year: int,
                          week: int,
                          holidays: Collection[date] = ()) -> List[Tuple[int, int, int]]:
    """
    Working days (Mon-Fri, not a holiday) of the ISO week per month.

    Months without a working day are left out.
    """
    days = [
        day for day in _week_days(year, week)
        if day.weekday() < 5 and day not in holidays
    ]
    return _days_by_month(days)
