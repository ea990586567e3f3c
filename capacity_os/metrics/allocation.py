"""
Allocation metrics pack.

Single source of truth for: hours allocated per consultant-week, allocation %,
project breakdowns, and project/customer hour rollups.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

import numpy as np
import pandas as pd

from capacity_os.config import DEFAULT_CUSTOMER_COLOR, DEFAULT_PROJECT_COLOR
from capacity_os.data.models import (
    Allocation,
    Calendar,
    Consultant,
    Customer,
    Project,
    index_by_id,
)
from capacity_os.data.semantic import allocation_percent, is_valid_hours, ordered_sum
from capacity_os.data.weeks import WeekKey, validate_week
from capacity_os.metrics.capacity import (
    CapacitySnapshot,
    ConsultantWarning,
    MissingCalendarError,
    missing_calendar_warning,
    resolve_capacity_weeks,
)


@dataclass(frozen=True)
class ProjectHours:
    project_id: str
    project_name: str
    hours: float


@dataclass
class WeekAllocation:
    year: int
    week: int
    capacity_hours_per_week: float
    hours_per_week: float
    total_hours_allocated: float
    allocation_percent: float
    project_breakdown: List[ProjectHours] = field(default_factory=list)


@dataclass
class ConsultantAllocation:
    consultant_id: str
    consultant_name: str
    weeks: List[WeekAllocation] = field(default_factory=list)

    def week(self, year: int, week: int) -> Optional[WeekAllocation]:
        for item in self.weeks:
            if item.year == year and item.week == week:
                return item
        return None


@dataclass
class AllocationReport:
    """Output of `aggregate`: per-consultant weeks plus what was left out."""
    consultants: List[ConsultantAllocation]
    skipped_count: int = 0
    warnings: List[ConsultantWarning] = field(default_factory=list)

    def for_consultant(self, consultant_id: str) -> Optional[ConsultantAllocation]:
        for item in self.consultants:
            if item.consultant_id == consultant_id:
                return item
        return None

    def to_frame(self) -> pd.DataFrame:
        """One row per consultant-week."""
        columns = [
            "consultant_id", "consultant_name", "year", "week",
            "capacity_hours_per_week", "hours_per_week",
            "total_hours_allocated", "allocation_percent", "project_count",
        ]
        rows = [
            {
                "consultant_id": consultant.consultant_id,
                "consultant_name": consultant.consultant_name,
                "year": week.year,
                "week": week.week,
                "capacity_hours_per_week": week.capacity_hours_per_week,
                "hours_per_week": week.hours_per_week,
                "total_hours_allocated": week.total_hours_allocated,
                "allocation_percent": week.allocation_percent,
                "project_count": len(week.project_breakdown),
            }
            for consultant in self.consultants
            for week in consultant.weeks
        ]
        return pd.DataFrame(rows, columns=columns)

    def breakdown_frame(self) -> pd.DataFrame:
        """One row per consultant-week-project, in breakdown order."""
        columns = ["consultant_id", "year", "week", "project_id", "project_name", "hours"]
        rows = [
            {
                "consultant_id": consultant.consultant_id,
                "year": week.year,
                "week": week.week,
                "project_id": item.project_id,
                "project_name": item.project_name,
                "hours": item.hours,
            }
            for consultant in self.consultants
            for week in consultant.weeks
            for item in week.project_breakdown
        ]
        return pd.DataFrame(rows, columns=columns)


def _breakdown_sort_key(item: ProjectHours) -> Tuple[float, str, str]:
    return (-item.hours, item.project_name, item.project_id)


def _valid_allocation_rows(allocations: Sequence[Allocation],
                           consultant_ids: Set[str],
                           project_ids: Set[str]) -> Tuple[List[Allocation], int]:
    """Split allocations into usable rows and a count of dangling/invalid ones."""
    valid: List[Allocation] = []
    skipped = 0
    for allocation in allocations:
        if (allocation.consultant_id not in consultant_ids
                or allocation.project_id not in project_ids
                or not is_valid_hours(allocation.hours)):
            skipped += 1
            continue
        valid.append(allocation)
    return valid, skipped


def _allocations_frame(allocations: Sequence[Allocation]) -> pd.DataFrame:
    columns = ["consultant_id", "project_id", "year", "week", "hours"]
    rows = [
        {
            "consultant_id": a.consultant_id,
            "project_id": a.project_id,
            "year": int(a.year),
            "week": int(a.week),
            "hours": float(a.hours),
        }
        for a in allocations
    ]
    return pd.DataFrame(rows, columns=columns)


def aggregate(consultants: Sequence[Consultant],
              allocations: Sequence[Allocation],
              projects: Sequence[Project],
              weeks: Sequence[Tuple[int, int]],
              calendars: Sequence[Calendar]) -> AllocationReport:
    """
    Aggregate allocated hours per consultant and week.

    - Duplicate rows for the same consultant, project and week are summed.
    - Allocations with unknown consultant/project ids (or invalid hours) are
      dropped and counted in `skipped_count`.
    - Consultants whose calendar is missing are reported in `warnings` and
      left out; other consultants are unaffected.
    - Allocations outside `weeks` are ignored.
    """
    week_keys = list(dict.fromkeys(validate_week(int(year), int(week)) for year, week in weeks))
    week_set = set(week_keys)
    calendars_by_id = index_by_id(calendars)
    projects_by_id = index_by_id(projects)
    consultant_ids = {c.id for c in consultants}

    capacity_by_consultant: Dict[str, Dict[WeekKey, CapacitySnapshot]] = {}
    warnings: List[ConsultantWarning] = []
    for consultant in consultants:
        if consultant.id in capacity_by_consultant:
            continue
        try:
            capacity_by_consultant[consultant.id] = resolve_capacity_weeks(
                consultant, calendars_by_id, week_keys
            )
        except MissingCalendarError as exc:
            warnings.append(missing_calendar_warning(exc))

    valid, skipped = _valid_allocation_rows(allocations, consultant_ids, set(projects_by_id))
    df = _allocations_frame(valid)
    if len(df) > 0:
        in_range = [WeekKey(y, w) in week_set for y, w in zip(df["year"], df["week"])]
        df = df[np.array(in_range, dtype=bool)]
        df = df[df["consultant_id"].isin(list(capacity_by_consultant))]

    breakdowns: Dict[Tuple[str, WeekKey], List[ProjectHours]] = {}
    if len(df) > 0:
        grouped = df.groupby(["consultant_id", "year", "week", "project_id"], sort=False)["hours"].sum()
        for (consultant_id, year, week, project_id), hours in grouped.items():
            key = (consultant_id, WeekKey(int(year), int(week)))
            breakdowns.setdefault(key, []).append(ProjectHours(
                project_id=project_id,
                project_name=projects_by_id[project_id].name,
                hours=float(hours),
            ))

    results: List[ConsultantAllocation] = []
    seen: Set[str] = set()
    for consultant in consultants:
        if consultant.id not in capacity_by_consultant or consultant.id in seen:
            continue
        seen.add(consultant.id)
        by_week = capacity_by_consultant[consultant.id]
        consultant_weeks: List[WeekAllocation] = []
        for key in week_keys:
            snapshot = by_week[key]
            breakdown = sorted(breakdowns.get((consultant.id, key), []), key=_breakdown_sort_key)
            total = ordered_sum(item.hours for item in breakdown)
            consultant_weeks.append(WeekAllocation(
                year=key.year,
                week=key.week,
                capacity_hours_per_week=snapshot.capacity_hours_per_week,
                hours_per_week=snapshot.hours_per_week,
                total_hours_allocated=total,
                allocation_percent=allocation_percent(total, snapshot.hours_per_week),
                project_breakdown=breakdown,
            ))
        results.append(ConsultantAllocation(
            consultant_id=consultant.id,
            consultant_name=consultant.name,
            weeks=consultant_weeks,
        ))

    return AllocationReport(consultants=results, skipped_count=skipped, warnings=warnings)


# =============================================================================
# PROJECT / CUSTOMER ROLLUPS
# =============================================================================

PROJECT_ROLLUP_COLUMNS = [
    "project_id", "project_name", "customer_id", "customer_name", "type",
    "is_active", "start_date", "end_date", "color",
    "total_hours", "consultant_count", "consultant_initials",
]

CUSTOMER_ROLLUP_COLUMNS = [
    "customer_id", "customer_name", "is_active", "color",
    "project_count", "active_project_count", "total_hours", "consultant_count",
]


def _rollup_allocations(allocations: Sequence[Allocation],
                        projects: Sequence[Project],
                        consultants: Optional[Sequence[Consultant]]) -> pd.DataFrame:
    project_ids = {p.id for p in projects}
    if consultants is None:
        consultant_ids = {a.consultant_id for a in allocations}
    else:
        consultant_ids = {c.id for c in consultants}
    valid, _ = _valid_allocation_rows(allocations, consultant_ids, project_ids)
    return _allocations_frame(valid)


def _project_color(project: Project, customer: Optional[Customer]) -> str:
    # Own colour, then the customer's; projects without a known customer get the neutral grey
    if project.color:
        return project.color
    if customer is None:
        return DEFAULT_PROJECT_COLOR
    return customer.color or DEFAULT_CUSTOMER_COLOR


def project_rollup(allocations: Sequence[Allocation],
                   projects: Sequence[Project],
                   customers: Sequence[Customer],
                   consultants: Optional[Sequence[Consultant]] = None) -> pd.DataFrame:
    """
    Total allocated hours and staffing per project.

    When `consultants` is given, allocations of unknown consultants are
    ignored and initials are filled in. Sorted active first, then by name.
    """
    if not projects:
        return pd.DataFrame(columns=PROJECT_ROLLUP_COLUMNS)

    customers_by_id = index_by_id(customers)
    initials_by_id = {c.id: c.initials for c in consultants} if consultants is not None else {}

    alloc_df = _rollup_allocations(allocations, projects, consultants)
    if len(alloc_df) > 0:
        stats = alloc_df.groupby("project_id").agg(
            total_hours=("hours", "sum"),
            consultant_count=("consultant_id", "nunique"),
        )
        consultant_lists = alloc_df.groupby("project_id")["consultant_id"].apply(
            lambda ids: list(dict.fromkeys(ids))
        )
    else:
        stats = pd.DataFrame(columns=["total_hours", "consultant_count"])
        consultant_lists = pd.Series(dtype=object)

    rows = []
    for project in projects:
        customer = customers_by_id.get(project.customer_id)
        total_hours = float(stats["total_hours"].get(project.id, 0.0))
        consultant_count = int(stats["consultant_count"].get(project.id, 0))
        ids = consultant_lists.get(project.id, [])
        rows.append({
            "project_id": project.id,
            "project_name": project.name,
            "customer_id": project.customer_id,
            "customer_name": customer.name if customer else "Unknown",
            "type": project.type,
            "is_active": project.is_active,
            "start_date": project.start_date,
            "end_date": project.end_date,
            "color": _project_color(project, customer),
            "total_hours": total_hours,
            "consultant_count": consultant_count,
            "consultant_initials": [initials_by_id.get(cid, "?") for cid in ids] if initials_by_id else [],
        })

    result = pd.DataFrame(rows, columns=PROJECT_ROLLUP_COLUMNS)
    result = result.sort_values(
        ["is_active", "project_name", "project_id"],
        ascending=[False, True, True],
        kind="mergesort",
    )
    return result.reset_index(drop=True)


def customer_rollup(allocations: Sequence[Allocation],
                    projects: Sequence[Project],
                    customers: Sequence[Customer]) -> pd.DataFrame:
    """
    Projects, active projects and allocated hours per customer, sorted by name.
    """
    if not customers:
        return pd.DataFrame(columns=CUSTOMER_ROLLUP_COLUMNS)

    projects_df = pd.DataFrame(
        [{"project_id": p.id, "customer_id": p.customer_id, "is_active": p.is_active} for p in projects],
        columns=["project_id", "customer_id", "is_active"],
    )
    alloc_df = _rollup_allocations(allocations, projects, None)
    if len(alloc_df) > 0:
        alloc_df = alloc_df.merge(projects_df[["project_id", "customer_id"]], on="project_id", how="left")

    rows = []
    for customer in customers:
        own_projects = projects_df[projects_df["customer_id"] == customer.id]
        own_allocs = alloc_df[alloc_df["customer_id"] == customer.id] if len(alloc_df) > 0 else alloc_df
        rows.append({
            "customer_id": customer.id,
            "customer_name": customer.name,
            "is_active": customer.is_active,
            "color": customer.color or DEFAULT_CUSTOMER_COLOR,
            "project_count": len(own_projects),
            "active_project_count": int(own_projects["is_active"].astype(bool).sum()),
            "total_hours": float(own_allocs["hours"].sum()) if len(own_allocs) > 0 else 0.0,
            "consultant_count": int(own_allocs["consultant_id"].nunique()) if len(own_allocs) > 0 else 0,
        })

    result = pd.DataFrame(rows, columns=CUSTOMER_ROLLUP_COLUMNS)
    return result.sort_values(["customer_name", "customer_id"], kind="mergesort").reset_index(drop=True)
