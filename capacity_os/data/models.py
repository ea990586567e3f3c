"""
Snapshot records consumed by the capacity engine.

Records are immutable; engine functions build new structures from them.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple, TypeVar

from capacity_os.data.weeks import WeekKey, year_week_for_date


HOURS_PER_HOLIDAY = 8.0

ProjectType = str


@dataclass(frozen=True)
class Calendar:
    """Working calendar: full-time hours and per-week holiday deductions."""

    id: str
    name: str
    base_hours_per_week: float
    holiday_weeks: Mapping[Tuple[int, int], float] = field(default_factory=dict)
    holiday_dates: Tuple[date, ...] = ()
    country_code: Optional[str] = None

    def holiday_deduction(self, year: int, week: int) -> float:
        return float(self.holiday_weeks.get((year, week), 0.0))

    @classmethod
    def from_holiday_dates(cls,
                           id: str,
                           name: str,
                           base_hours_per_week: float,
                           holiday_dates: Iterable[date],
                           hours_per_holiday: float = HOURS_PER_HOLIDAY,
                           country_code: Optional[str] = None) -> "Calendar":
        """
        Build a calendar from holiday dates.

        Each weekday holiday deducts `hours_per_holiday` from its ISO week;
        weekend holidays deduct nothing.
        """
        dates = tuple(sorted(set(holiday_dates)))
        holiday_weeks: Dict[Tuple[int, int], float] = {}
        for day in dates:
            if day.weekday() >= 5:
                continue
            key = tuple(year_week_for_date(day))
            holiday_weeks[key] = holiday_weeks.get(key, 0.0) + hours_per_holiday
        return cls(
            id=id,
            name=name,
            base_hours_per_week=float(base_hours_per_week),
            holiday_weeks=holiday_weeks,
            holiday_dates=dates,
            country_code=country_code,
        )


@dataclass(frozen=True)
class Consultant:
    id: str
    name: str
    calendar_id: str
    work_percentage: float = 100.0
    overhead_percentage: float = 0.0
    role_id: Optional[str] = None
    team_id: Optional[str] = None
    is_external: bool = False
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @property
    def initials(self) -> str:
        return "".join(part[0] for part in self.name.split() if part).upper()[:2]


@dataclass(frozen=True)
class Project:
    id: str
    name: str
    customer_id: str
    type: ProjectType = "customer"
    is_active: bool = True
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    color: Optional[str] = None

    @property
    def is_customer_project(self) -> bool:
        return self.type == "customer"


@dataclass(frozen=True)
class Customer:
    id: str
    name: str
    billing_rate: Optional[float] = None
    currency: Optional[str] = None
    is_active: bool = True
    color: Optional[str] = None

    def has_billing(self) -> bool:
        return self.billing_rate is not None and bool(self.currency)


@dataclass(frozen=True)
class CustomerRate:
    """Per-role hourly rate agreed with a customer."""

    customer_id: str
    role_id: str
    rate_per_hour: float
    currency: Optional[str] = None


@dataclass(frozen=True)
class Allocation:
    """Hours booked for one consultant on one project in one ISO week."""

    consultant_id: str
    project_id: str
    year: int
    week: int
    hours: float
    id: Optional[str] = None
    role_id: Optional[str] = None

    @property
    def week_key(self) -> WeekKey:
        return WeekKey(self.year, self.week)


T = TypeVar("T")


def index_by_id(records: Sequence[T]) -> Dict[str, T]:
    """Map records by their `id`; a later duplicate id replaces an earlier one."""
    return {record.id: record for record in records}
