"""
Tests for capacity metrics.
"""
import pytest
import sys
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from capacity_os.data.models import Calendar, Consultant
from capacity_os.data.weeks import InvalidWeekError, week_range
from capacity_os.metrics.capacity import (
    CAPACITY_COLUMNS,
    MissingCalendarError,
    compute_capacity_summary,
    compute_capacity_table,
    is_unavailable,
    resolve_capacity,
    resolve_capacity_from,
)


def make_calendar(hours=40.0, holiday_weeks=None, calendar_id="se"):
    return Calendar(
        id=calendar_id,
        name="Sweden",
        base_hours_per_week=hours,
        holiday_weeks=holiday_weeks or {},
    )


def make_consultant(consultant_id="c1", work=100.0, overhead=0.0, calendar_id="se", **kwargs):
    return Consultant(
        id=consultant_id,
        name="Anna Berg",
        calendar_id=calendar_id,
        work_percentage=work,
        overhead_percentage=overhead,
        **kwargs,
    )


class TestResolveCapacity:
    """Tests for per consultant-week capacity."""

    def test_overhead_reduces_billable_hours(self):
        """40h calendar, 100% work, 20% overhead gives 40h capacity and 32h billable."""
        snapshot = resolve_capacity(make_consultant(overhead=20), make_calendar(), 2026, 10)

        assert snapshot.capacity_hours_per_week == pytest.approx(40.0)
        assert snapshot.hours_per_week == pytest.approx(32.0)

    def test_part_time_with_holiday(self):
        """Holiday hours come off before the work percentage is applied."""
        calendar = make_calendar(holiday_weeks={(2026, 15): 8.0})
        snapshot = resolve_capacity(make_consultant(work=50), calendar, 2026, 15)

        assert snapshot.capacity_hours_per_week == pytest.approx(16.0)
        assert snapshot.hours_per_week == pytest.approx(16.0)

    def test_holiday_only_affects_its_week(self):
        calendar = make_calendar(holiday_weeks={(2026, 15): 8.0})

        assert resolve_capacity(make_consultant(), calendar, 2026, 16).capacity_hours_per_week == 40.0

    def test_holidays_exceeding_base_floor_at_zero(self):
        calendar = make_calendar(holiday_weeks={(2026, 15): 48.0})
        snapshot = resolve_capacity(make_consultant(), calendar, 2026, 15)

        assert snapshot.capacity_hours_per_week == 0.0
        assert snapshot.hours_per_week == 0.0

    def test_percentages_are_clamped(self):
        """Work above 100% and negative overhead are clamped into 0-100."""
        snapshot = resolve_capacity(make_consultant(work=150, overhead=-10), make_calendar(), 2026, 10)

        assert snapshot.capacity_hours_per_week == pytest.approx(40.0)
        assert snapshot.hours_per_week == pytest.approx(40.0)

    def test_full_overhead_leaves_no_billable_hours(self):
        snapshot = resolve_capacity(make_consultant(overhead=100), make_calendar(), 2026, 10)

        assert snapshot.capacity_hours_per_week == pytest.approx(40.0)
        assert snapshot.hours_per_week == 0.0

    def test_billable_never_exceeds_capacity(self):
        calendar = make_calendar()
        for work in (0, 25, 50, 80, 100):
            for overhead in (0, 10, 50, 100):
                snapshot = resolve_capacity(make_consultant(work=work, overhead=overhead), calendar, 2026, 10)
                assert 0 <= snapshot.hours_per_week <= snapshot.capacity_hours_per_week

    def test_monotonic_in_work_percentage(self):
        calendar = make_calendar()
        values = [
            resolve_capacity(make_consultant(work=work), calendar, 2026, 10).capacity_hours_per_week
            for work in range(0, 101, 10)
        ]

        assert values == sorted(values)

    def test_anti_monotonic_in_overhead(self):
        calendar = make_calendar()
        values = [
            resolve_capacity(make_consultant(overhead=overhead), calendar, 2026, 10).hours_per_week
            for overhead in range(0, 101, 10)
        ]

        assert values == sorted(values, reverse=True)

    def test_anti_monotonic_in_holidays(self):
        consultant = make_consultant(work=80, overhead=10)
        values = [
            resolve_capacity(consultant, make_calendar(holiday_weeks={(2026, 10): hours}), 2026, 10).hours_per_week
            for hours in (0, 8, 16, 24, 32, 40, 48)
        ]

        assert values == sorted(values, reverse=True)

    def test_deterministic(self):
        consultant, calendar = make_consultant(work=80, overhead=15), make_calendar(37.5)

        assert resolve_capacity(consultant, calendar, 2026, 10) == resolve_capacity(consultant, calendar, 2026, 10)

    def test_missing_calendar_raises(self):
        """No default calendar is substituted."""
        with pytest.raises(MissingCalendarError) as exc_info:
            resolve_capacity(make_consultant(calendar_id="no"), None, 2026, 10)

        assert exc_info.value.consultant_id == "c1"
        assert exc_info.value.calendar_id == "no"

    def test_wrong_calendar_raises(self):
        with pytest.raises(MissingCalendarError):
            resolve_capacity(make_consultant(calendar_id="no"), make_calendar(), 2026, 10)

    def test_invalid_week_raises(self):
        with pytest.raises(InvalidWeekError):
            resolve_capacity(make_consultant(), make_calendar(), 2025, 53)

    def test_lookup_by_calendar_id(self):
        calendars = {"se": make_calendar(), "uk": make_calendar(37.5, calendar_id="uk")}
        snapshot = resolve_capacity_from(make_consultant(calendar_id="uk"), calendars, 2026, 10)

        assert snapshot.capacity_hours_per_week == pytest.approx(37.5)


class TestCalendarFromHolidayDates:
    """Tests for building holiday deductions from dates."""

    def test_weekday_holidays_deduct_per_week(self):
        calendar = Calendar.from_holiday_dates(
            id="se",
            name="Sweden",
            base_hours_per_week=40,
            holiday_dates=[date(2026, 4, 3), date(2026, 4, 6)],
        )

        assert calendar.holiday_deduction(2026, 14) == 8.0
        assert calendar.holiday_deduction(2026, 15) == 8.0
        assert calendar.holiday_deduction(2026, 16) == 0.0

    def test_weekend_holidays_ignored(self):
        calendar = Calendar.from_holiday_dates("se", "Sweden", 40, [date(2026, 4, 4)])

        assert calendar.holiday_weeks == {}
        assert calendar.holiday_dates == (date(2026, 4, 4),)

    def test_custom_hours_and_duplicates(self):
        calendar = Calendar.from_holiday_dates(
            "uk", "UK", 37.5, [date(2026, 4, 3), date(2026, 4, 3)], hours_per_holiday=7.5,
        )

        assert calendar.holiday_deduction(2026, 14) == 7.5


class TestIsUnavailable:
    """Tests for the employment window flag."""

    def test_before_start(self):
        consultant = make_consultant(start_date=date(2026, 4, 8))

        assert is_unavailable(consultant, 2026, 14) is True
        assert is_unavailable(consultant, 2026, 15) is False

    def test_after_end(self):
        consultant = make_consultant(end_date=date(2026, 4, 30))

        assert is_unavailable(consultant, 2026, 17) is False
        assert is_unavailable(consultant, 2026, 18) is True

    def test_no_dates(self):
        assert is_unavailable(make_consultant(), 2026, 1) is False


class TestCapacityTable:
    """Tests for the consultant-week capacity table."""

    def test_one_row_per_consultant_week(self):
        consultants = [make_consultant("c1"), make_consultant("c2", work=50)]
        weeks = week_range(2026, 52, 2027, 1)

        df, warnings = compute_capacity_table(consultants, [make_calendar()], weeks)

        assert list(df.columns) == CAPACITY_COLUMNS
        assert len(df) == 6
        assert warnings == []
        assert df[df["consultant_id"] == "c2"]["capacity_hours_per_week"].tolist() == [20.0, 20.0, 20.0]

    def test_missing_calendar_becomes_warning(self):
        consultants = [make_consultant("c1"), make_consultant("c2", calendar_id="missing")]

        df, warnings = compute_capacity_table(consultants, [make_calendar()], [(2026, 10)])

        assert df["consultant_id"].tolist() == ["c1"]
        assert len(warnings) == 1
        assert warnings[0].type == "missing_calendar"
        assert warnings[0].consultant_id == "c2"

    def test_empty(self):
        df, warnings = compute_capacity_table([], [make_calendar()], [(2026, 10)])

        assert len(df) == 0
        assert list(df.columns) == CAPACITY_COLUMNS

    def test_summary_per_week(self):
        consultants = [make_consultant("c1", overhead=20), make_consultant("c2", work=50)]
        df, _ = compute_capacity_table(consultants, [make_calendar()], [(2026, 10), (2026, 11)])

        summary = compute_capacity_summary(df)

        assert len(summary) == 2
        first = summary.iloc[0]
        assert first["consultant_count"] == 2
        assert first["capacity_hours"] == pytest.approx(60.0)
        assert first["billable_hours"] == pytest.approx(52.0)
