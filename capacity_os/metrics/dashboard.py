"""
Dashboard KPI pack: a cross-sectional snapshot for a single week.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from capacity_os.data.models import (
    Allocation,
    Calendar,
    Consultant,
    Customer,
    Project,
    index_by_id,
)
from capacity_os.data.semantic import fleet_percent, is_valid_hours, ordered_sum
from capacity_os.data.weeks import validate_week
from capacity_os.metrics.allocation import project_rollup
from capacity_os.metrics.capacity import (
    ConsultantWarning,
    MissingCalendarError,
    missing_calendar_warning,
    resolve_capacity_from,
)


@dataclass
class DashboardKpis:
    consultant_count: int
    customer_count: int
    active_project_count: int
    allocation_this_week_percent: int
    warnings: List[ConsultantWarning] = field(default_factory=list)

    def as_dict(self) -> Dict[str, int]:
        return {
            "consultant_count": self.consultant_count,
            "customer_count": self.customer_count,
            "active_project_count": self.active_project_count,
            "allocation_this_week_percent": self.allocation_this_week_percent,
        }


def count_active_customer_projects(projects: Sequence[Project]) -> int:
    """Active projects of type 'customer'; internal and absence projects are not counted."""
    return sum(1 for p in projects if p.is_active and p.is_customer_project)


def compute_kpis(consultants: Sequence[Consultant],
                 customers: Sequence[Customer],
                 projects: Sequence[Project],
                 allocations: Sequence[Allocation],
                 current_week: Tuple[int, int],
                 calendars: Sequence[Calendar]) -> DashboardKpis:
    """
    Compute dashboard KPIs for `current_week`.

    allocation_this_week_percent = Σ allocated hours / Σ capacity hours × 100,
    rounded half up, over consultants whose calendar resolves. Zero total
    capacity reports 0.
    """
    year, week = validate_week(int(current_week[0]), int(current_week[1]))
    calendars_by_id = index_by_id(calendars)
    project_ids = {p.id for p in projects}

    resolved: Dict[str, float] = {}
    warnings: List[ConsultantWarning] = []
    for consultant in consultants:
        if consultant.id in resolved:
            continue
        try:
            snapshot = resolve_capacity_from(consultant, calendars_by_id, year, week)
        except MissingCalendarError as exc:
            warnings.append(missing_calendar_warning(exc))
            continue
        resolved[consultant.id] = snapshot.capacity_hours_per_week

    allocated = ordered_sum(
        float(a.hours)
        for a in allocations
        if a.year == year and a.week == week
        and a.consultant_id in resolved
        and a.project_id in project_ids
        and is_valid_hours(a.hours)
    )
    capacity = ordered_sum(resolved.values())

    return DashboardKpis(
        consultant_count=len(consultants),
        customer_count=len(customers),
        active_project_count=count_active_customer_projects(projects),
        allocation_this_week_percent=fleet_percent(allocated, capacity),
        warnings=warnings,
    )


def active_projects(projects: Sequence[Project],
                    customers: Sequence[Customer],
                    allocations: Sequence[Allocation],
                    consultants: Optional[Sequence[Consultant]] = None) -> pd.DataFrame:
    """
    Active projects list for the dashboard: active and not of type 'absence'.
    """
    listed = [p for p in projects if p.is_active and p.type != "absence"]
    return project_rollup(allocations, listed, customers, consultants)
