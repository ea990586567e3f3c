"""
Revenue forecast based on planned allocations.

Allocation hours × billing rate, split across the months each ISO week
touches and summed per (year, month, currency).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from capacity_os.data.models import (
    Allocation,
    Calendar,
    Consultant,
    Customer,
    CustomerRate,
    Project,
    index_by_id,
)
from capacity_os.data.semantic import is_valid_hours
from capacity_os.data.weeks import (
    InvalidWeekError,
    InvalidYearError,
    month_overlap_days,
    month_range,
    validate_week,
    working_days_by_month,
)


PRORATE_MODES = ("calendar_days", "working_days")

FORECAST_COLUMNS = ["year", "month", "currency", "revenue"]


@dataclass(frozen=True)
class RevenueForecastMonth:
    year: int
    month: int
    revenue: float
    currency: str


def _resolve_rate(allocation: Allocation,
                  customer_id: str,
                  customer: Optional[Customer],
                  rates_by_key: Dict[Tuple[str, str], CustomerRate],
                  consultants_by_id: Dict[str, Consultant]) -> Optional[Tuple[float, str]]:
    """Return (rate, currency) for the allocation, or None when it is not billable."""
    role_id = allocation.role_id
    if role_id is None:
        consultant = consultants_by_id.get(allocation.consultant_id)
        role_id = consultant.role_id if consultant else None

    rate_row = rates_by_key.get((customer_id, role_id)) if role_id else None
    if rate_row is not None:
        currency = rate_row.currency or (customer.currency if customer else None)
        if not currency:
            return None
        return float(rate_row.rate_per_hour), currency

    if customer is not None and customer.has_billing():
        return float(customer.billing_rate), customer.currency
    return None


def _month_splits(allocation: Allocation,
                  prorate_by: str,
                  consultants_by_id: Dict[str, Consultant],
                  calendars_by_id: Dict[str, Calendar]) -> Tuple[List[Tuple[int, int, int]], int]:
    """(year, month, days) parts of the allocation week and the denominator."""
    if prorate_by == "calendar_days":
        return month_overlap_days(allocation.year, allocation.week), 7

    holidays = ()
    consultant = consultants_by_id.get(allocation.consultant_id)
    calendar = calendars_by_id.get(consultant.calendar_id) if consultant else None
    if calendar is not None:
        holidays = frozenset(calendar.holiday_dates)
    parts = working_days_by_month(allocation.year, allocation.week, holidays)
    return parts, sum(days for _, _, days in parts)


def forecast(allocations: Sequence[Allocation],
             projects: Sequence[Project],
             customers: Sequence[Customer],
             year_from: int,
             month_from: int,
             year_to: int,
             month_to: int,
             customer_rates: Sequence[CustomerRate] = (),
             consultants: Sequence[Consultant] = (),
             calendars: Sequence[Calendar] = (),
             prorate_by: str = "calendar_days") -> List[RevenueForecastMonth]:
    """
    Monthly revenue forecast for the window [year_from-month_from, year_to-month_to].

    Only allocations on 'customer' projects with a rate and currency count.
    The rate comes from the customer's rate card for the allocation's role
    (or the consultant's role) when one exists, else from the customer's flat
    billing rate. Allocations without either are skipped.

    prorate_by:
        'calendar_days': hours × rate × overlap days / 7
        'working_days': hours × rate × weekdays in month / weekdays in week,
                        excluding the consultant's calendar holidays

    Sums accumulate in chronological allocation order, so identical inputs
    give identical output. Parts of a week outside the window are dropped.
    """
    if prorate_by not in PRORATE_MODES:
        raise ValueError(f"unsupported prorate_by '{prorate_by}'")

    window = set(month_range(year_from, month_from, year_to, month_to))
    if not window:
        return []

    projects_by_id = index_by_id(projects)
    customers_by_id = index_by_id(customers)
    consultants_by_id = index_by_id(consultants)
    calendars_by_id = index_by_id(calendars)
    rates_by_key = {(r.customer_id, r.role_id): r for r in customer_rates}

    revenue_by_key: Dict[Tuple[int, int, str], float] = {}

    for allocation in sorted(allocations, key=lambda a: (a.year, a.week)):
        if not is_valid_hours(allocation.hours):
            continue
        project = projects_by_id.get(allocation.project_id)
        if project is None or not project.is_customer_project:
            continue
        try:
            validate_week(allocation.year, allocation.week)
        except (InvalidWeekError, InvalidYearError):
            # Malformed rows are skipped like dangling references
            continue

        customer = customers_by_id.get(project.customer_id)
        billing = _resolve_rate(allocation, project.customer_id, customer, rates_by_key, consultants_by_id)
        if billing is None:
            continue
        rate, currency = billing

        parts, denominator = _month_splits(allocation, prorate_by, consultants_by_id, calendars_by_id)
        if denominator == 0:
            continue

        for year, month, days in parts:
            if (year, month) not in window:
                continue
            key = (year, month, currency)
            revenue = allocation.hours * rate * days / denominator
            revenue_by_key[key] = revenue_by_key.get(key, 0.0) + revenue

    return [
        RevenueForecastMonth(year=year, month=month, revenue=revenue, currency=currency)
        for (year, month, currency), revenue in sorted(revenue_by_key.items())
    ]


def forecast_to_frame(entries: Sequence[RevenueForecastMonth]) -> pd.DataFrame:
    rows = [
        {"year": e.year, "month": e.month, "currency": e.currency, "revenue": e.revenue}
        for e in entries
    ]
    return pd.DataFrame(rows, columns=FORECAST_COLUMNS)


def forecast_totals_by_currency(entries: Sequence[RevenueForecastMonth]) -> Dict[str, float]:
    """Total forecast revenue per currency over the whole window."""
    totals: Dict[str, float] = {}
    for entry in entries:
        totals[entry.currency] = totals.get(entry.currency, 0.0) + entry.revenue
    return dict(sorted(totals.items()))
