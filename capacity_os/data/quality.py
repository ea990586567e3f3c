"""
Snapshot data quality checks.

Finds the rows the engine would silently skip or isolate (dangling ids,
invalid weeks and hours, duplicate bookings) so they can be fixed at source.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List

import pandas as pd

from capacity_os.data.loader import Snapshot
from capacity_os.data.semantic import is_valid_hours
from capacity_os.data.weeks import InvalidWeekError, InvalidYearError, validate_week


ISSUE_COLUMNS = ["type", "table", "record", "message"]


@dataclass
class SnapshotIssue:
    type: str
    table: str
    record: str
    message: str


def _allocation_label(allocation) -> str:
    if allocation.id:
        return str(allocation.id)
    return f"{allocation.consultant_id}/{allocation.project_id}/{allocation.year}-W{allocation.week}"


def check_allocations(snapshot: Snapshot) -> List[SnapshotIssue]:
    """Allocations with unknown ids, invalid weeks or invalid hours, and duplicate bookings."""
    consultant_ids = {c.id for c in snapshot.consultants}
    project_ids = {p.id for p in snapshot.projects}
    issues: List[SnapshotIssue] = []

    for allocation in snapshot.allocations:
        label = _allocation_label(allocation)
        if allocation.consultant_id not in consultant_ids:
            issues.append(SnapshotIssue(
                "unknown_consultant", "allocations", label,
                f"consultant {allocation.consultant_id!r} does not exist",
            ))
        if allocation.project_id not in project_ids:
            issues.append(SnapshotIssue(
                "unknown_project", "allocations", label,
                f"project {allocation.project_id!r} does not exist",
            ))
        try:
            validate_week(allocation.year, allocation.week)
        except (InvalidWeekError, InvalidYearError) as exc:
            issues.append(SnapshotIssue("invalid_week", "allocations", label, str(exc)))
        if not is_valid_hours(allocation.hours):
            issues.append(SnapshotIssue(
                "invalid_hours", "allocations", label,
                f"hours {allocation.hours!r} must be a finite number >= 0",
            ))

    keys = pd.DataFrame(
        [(a.consultant_id, a.project_id, a.year, a.week) for a in snapshot.allocations],
        columns=["consultant_id", "project_id", "year", "week"],
    )
    if len(keys) > 0:
        counts = keys.groupby(["consultant_id", "project_id", "year", "week"]).size()
        for (consultant_id, project_id, year, week), count in counts[counts > 1].items():
            issues.append(SnapshotIssue(
                "duplicate_allocation", "allocations",
                f"{consultant_id}/{project_id}/{year}-W{week}",
                f"{count} rows for the same week (hours are summed)",
            ))
    return issues


def check_references(snapshot: Snapshot) -> List[SnapshotIssue]:
    """Consultants, projects and rate cards pointing at missing records."""
    calendar_ids = {c.id for c in snapshot.calendars}
    customer_ids = {c.id for c in snapshot.customers}
    issues: List[SnapshotIssue] = []

    for consultant in snapshot.consultants:
        if consultant.calendar_id not in calendar_ids:
            issues.append(SnapshotIssue(
                "missing_calendar", "consultants", consultant.id,
                f"calendar {consultant.calendar_id!r} does not exist",
            ))
        for field_name in ("work_percentage", "overhead_percentage"):
            value = getattr(consultant, field_name)
            if not 0 <= value <= 100:
                issues.append(SnapshotIssue(
                    "percentage_out_of_range", "consultants", consultant.id,
                    f"{field_name} {value} is outside 0-100 (clamped)",
                ))

    for project in snapshot.projects:
        if project.customer_id not in customer_ids:
            issues.append(SnapshotIssue(
                "unknown_customer", "projects", project.id,
                f"customer {project.customer_id!r} does not exist",
            ))

    for rate in snapshot.customer_rates:
        if rate.customer_id not in customer_ids:
            issues.append(SnapshotIssue(
                "unknown_customer", "customer_rates", f"{rate.customer_id}/{rate.role_id}",
                f"customer {rate.customer_id!r} does not exist",
            ))
    return issues


def check_snapshot(snapshot: Snapshot) -> List[SnapshotIssue]:
    return check_references(snapshot) + check_allocations(snapshot)


def issues_to_frame(issues: List[SnapshotIssue]) -> pd.DataFrame:
    rows = [
        {"type": i.type, "table": i.table, "record": i.record, "message": i.message}
        for i in issues
    ]
    return pd.DataFrame(rows, columns=ISSUE_COLUMNS)
