"""
Capacity metrics pack.

Single source of truth for: weekly capacity and billable hours per consultant.

capacity_hours_per_week = (calendar base hours - holiday hours) × work %
hours_per_week          = capacity_hours_per_week × (1 - overhead %)
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from capacity_os.data.models import Calendar, Consultant, index_by_id
from capacity_os.data.semantic import clamp_pct
from capacity_os.data.weeks import WeekKey, validate_week, week_date_range


CAPACITY_COLUMNS = [
    "consultant_id",
    "consultant_name",
    "year",
    "week",
    "capacity_hours_per_week",
    "hours_per_week",
    "is_unavailable",
]


class MissingCalendarError(LookupError):
    """Raised when a consultant's calendar is not in the snapshot."""

    def __init__(self, consultant: Consultant) -> None:
        super().__init__(
            f"Consultant {consultant.id} references missing calendar {consultant.calendar_id!r}"
        )
        self.consultant_id = consultant.id
        self.calendar_id = consultant.calendar_id


@dataclass(frozen=True)
class CapacitySnapshot:
    capacity_hours_per_week: float
    hours_per_week: float


@dataclass
class ConsultantWarning:
    """Per-consultant problem surfaced instead of failing a whole report."""
    type: str
    consultant_id: str
    message: str


def missing_calendar_warning(exc: MissingCalendarError) -> ConsultantWarning:
    return ConsultantWarning(
        type="missing_calendar",
        consultant_id=exc.consultant_id,
        message=str(exc),
    )


def resolve_capacity(consultant: Consultant,
                     calendar: Optional[Calendar],
                     year: int,
                     week: int) -> CapacitySnapshot:
    """
    Compute capacity and billable hours for one consultant-week.

    Raises MissingCalendarError when no calendar (or another consultant's
    calendar) is supplied; no default calendar is ever substituted.
    """
    validate_week(year, week)
    if calendar is None or calendar.id != consultant.calendar_id:
        raise MissingCalendarError(consultant)

    base_hours = max(0.0, calendar.base_hours_per_week - calendar.holiday_deduction(year, week))
    work_share = clamp_pct(consultant.work_percentage) / 100
    overhead_share = clamp_pct(consultant.overhead_percentage) / 100

    capacity = max(0.0, base_hours * work_share)
    return CapacitySnapshot(
        capacity_hours_per_week=capacity,
        hours_per_week=capacity * (1 - overhead_share),
    )


def resolve_capacity_from(consultant: Consultant,
                          calendars_by_id: Mapping[str, Calendar],
                          year: int,
                          week: int) -> CapacitySnapshot:
    """Resolve capacity looking the calendar up by the consultant's calendar id."""
    return resolve_capacity(consultant, calendars_by_id.get(consultant.calendar_id), year, week)


def resolve_capacity_weeks(consultant: Consultant,
                           calendars_by_id: Mapping[str, Calendar],
                           weeks: Sequence[Tuple[int, int]]) -> Dict[WeekKey, CapacitySnapshot]:
    """Capacity for every week in `weeks`; raises MissingCalendarError before any work."""
    calendar = calendars_by_id.get(consultant.calendar_id)
    if calendar is None:
        raise MissingCalendarError(consultant)
    return {
        WeekKey(year, week): resolve_capacity(consultant, calendar, year, week)
        for year, week in weeks
    }


def is_unavailable(consultant: Consultant, year: int, week: int) -> bool:
    """
    True when the week falls outside the consultant's employment window.

    A week is unavailable when it ends before the start date or extends past
    the end date. Bookings in such weeks are still counted.
    """
    _, sunday = week_date_range(year, week)
    if consultant.start_date and sunday < consultant.start_date:
        return True
    if consultant.end_date and sunday > consultant.end_date:
        return True
    return False


def compute_capacity_table(consultants: Sequence[Consultant],
                           calendars: Sequence[Calendar],
                           weeks: Sequence[Tuple[int, int]]) -> Tuple[pd.DataFrame, List[ConsultantWarning]]:
    """
    Compute capacity per consultant-week.

    Returns DataFrame with one row per consultant and week:
    - capacity_hours_per_week: calendar hours minus holidays, × work %
    - hours_per_week: capacity available for projects after overhead
    - is_unavailable: week outside the employment window

    Consultants with a missing calendar are left out and reported as warnings.
    """
    calendars_by_id = index_by_id(calendars)
    warnings: List[ConsultantWarning] = []
    rows = []

    for consultant in consultants:
        try:
            by_week = resolve_capacity_weeks(consultant, calendars_by_id, weeks)
        except MissingCalendarError as exc:
            warnings.append(missing_calendar_warning(exc))
            continue

        for key, snapshot in by_week.items():
            rows.append({
                "consultant_id": consultant.id,
                "consultant_name": consultant.name,
                "year": key.year,
                "week": key.week,
                "capacity_hours_per_week": snapshot.capacity_hours_per_week,
                "hours_per_week": snapshot.hours_per_week,
                "is_unavailable": is_unavailable(consultant, key.year, key.week),
            })

    if not rows:
        return pd.DataFrame(columns=CAPACITY_COLUMNS), warnings

    return pd.DataFrame(rows, columns=CAPACITY_COLUMNS), warnings


def compute_capacity_summary(capacity_df: pd.DataFrame) -> pd.DataFrame:
    """
    Roll the capacity table up to one row per week across all consultants.
    """
    if len(capacity_df) == 0:
        return pd.DataFrame(columns=["year", "week", "consultant_count",
                                     "capacity_hours", "billable_hours"])

    result = capacity_df.groupby(["year", "week"]).agg(
        consultant_count=("consultant_id", "nunique"),
        capacity_hours=("capacity_hours_per_week", "sum"),
        billable_hours=("hours_per_week", "sum"),
    ).reset_index()

    return result.sort_values(["year", "week"]).reset_index(drop=True)
