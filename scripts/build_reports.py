#!/usr/bin/env python
"""
Build capacity, allocation, KPI and revenue forecast reports from a snapshot.

Usage:
    python scripts/build_reports.py
    python scripts/build_reports.py --data-dir /path/to/data --today 2026-03-30
    python scripts/build_reports.py --year-from 2026 --week-from 10 --year-to 2026 --week-to 18
"""
import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional

# Add repository root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pandas as pd

from capacity_os.config import config, REPORT_FILES
from capacity_os.data.loader import Snapshot, SnapshotLoadError, load_snapshot
from capacity_os.data.schema import SchemaValidationError
from capacity_os.data.weeks import WeekKey, add_weeks, current_year_week, week_range
from capacity_os.metrics.allocation import aggregate, customer_rollup, project_rollup
from capacity_os.metrics.capacity import compute_capacity_summary, compute_capacity_table
from capacity_os.metrics.dashboard import compute_kpis
from capacity_os.modeling.forecast import forecast, forecast_to_frame, forecast_totals_by_currency
from capacity_os.ui.formatting import fmt_count, fmt_currency, fmt_percent, fmt_week, format_report_df

logger = logging.getLogger("build_reports")


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(levelname)s %(message)s")


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build capacity and revenue reports")
    parser.add_argument("--data-dir", type=str, default=None, help="Override data directory")
    parser.add_argument("--out-dir", type=str, default=None,
                        help="Output directory (default: <data-dir>/reports)")
    parser.add_argument("--today", type=date.fromisoformat, default=None,
                        help="Reference date for the current week (YYYY-MM-DD)")
    parser.add_argument("--year-from", type=int, default=None)
    parser.add_argument("--week-from", type=int, default=None)
    parser.add_argument("--year-to", type=int, default=None)
    parser.add_argument("--week-to", type=int, default=None)
    parser.add_argument("--forecast-year-from", type=int, default=None)
    parser.add_argument("--forecast-month-from", type=int, default=1)
    parser.add_argument("--forecast-year-to", type=int, default=None)
    parser.add_argument("--forecast-month-to", type=int, default=12)
    parser.add_argument("--prorate-by", choices=["calendar_days", "working_days"], default="calendar_days")
    parser.add_argument("--locale", default=config.default_locale)
    parser.add_argument("--log-level", default=config.log_level)
    parser.add_argument("--dry-run", action="store_true", help="Print summary without writing CSV files")
    return parser.parse_args(argv)


def _resolve_weeks(args: argparse.Namespace, current: WeekKey) -> List[WeekKey]:
    start = WeekKey(args.year_from or current.year, args.week_from or current.week)
    if args.year_to is not None and args.week_to is not None:
        end = WeekKey(args.year_to, args.week_to)
    else:
        end = add_weeks(start, config.report_horizon_weeks - 1)
    return week_range(start.year, start.week, end.year, end.week)


def build_reports(snapshot: Snapshot,
                  weeks: List[WeekKey],
                  current: WeekKey,
                  forecast_window: tuple,
                  prorate_by: str = "calendar_days") -> Dict[str, pd.DataFrame]:
    """Run every engine computation on the snapshot and return report frames."""
    capacity_df, _ = compute_capacity_table(snapshot.consultants, snapshot.calendars, weeks)
    report = aggregate(snapshot.consultants, snapshot.allocations, snapshot.projects, weeks, snapshot.calendars)
    kpis = compute_kpis(
        snapshot.consultants, snapshot.customers, snapshot.projects,
        snapshot.allocations, current, snapshot.calendars,
    )
    entries = forecast(
        snapshot.allocations, snapshot.projects, snapshot.customers,
        *forecast_window,
        customer_rates=snapshot.customer_rates,
        consultants=snapshot.consultants,
        calendars=snapshot.calendars,
        prorate_by=prorate_by,
    )

    if report.skipped_count:
        logger.warning("Skipped %d allocations with unknown consultant/project or invalid hours",
                       report.skipped_count)
    for warning in report.warnings:
        logger.warning("%s: %s", warning.type, warning.message)

    project_df = project_rollup(snapshot.allocations, snapshot.projects, snapshot.customers, snapshot.consultants)
    project_df["consultant_initials"] = project_df["consultant_initials"].apply(" ".join)

    return {
        "consultant_weeks": report.to_frame(),
        "capacity": capacity_df,
        "capacity_summary": compute_capacity_summary(capacity_df),
        "projects": project_df,
        "customers": customer_rollup(snapshot.allocations, snapshot.projects, snapshot.customers),
        "kpis": pd.DataFrame([{"year": current.year, "week": current.week, **kpis.as_dict()}]),
        "forecast": forecast_to_frame(entries),
        "forecast_totals": pd.DataFrame(
            [{"currency": c, "revenue": r} for c, r in forecast_totals_by_currency(entries).items()],
            columns=["currency", "revenue"],
        ),
    }


def _print_summary(reports: Dict[str, pd.DataFrame],
                   weeks: List[WeekKey],
                   current: WeekKey,
                   locale: str) -> None:
    kpis = reports["kpis"].iloc[0]
    print("=" * 60)
    print(f"Capacity report {fmt_week(weeks[0].year, weeks[0].week)} - {fmt_week(weeks[-1].year, weeks[-1].week)}")
    print("=" * 60)
    print(f"Current week:          {fmt_week(current.year, current.week)}")
    print(f"Consultants:           {fmt_count(kpis['consultant_count'])}")
    print(f"Customers:             {fmt_count(kpis['customer_count'])}")
    print(f"Active projects:       {fmt_count(kpis['active_project_count'])}")
    print(f"Allocation this week:  {fmt_percent(kpis['allocation_this_week_percent'])}")
    print()

    over = reports["consultant_weeks"]
    over = over[over["allocation_percent"] > 100]
    if len(over) > 0:
        print("Over-allocated consultant weeks:")
        for row in over.itertuples(index=False):
            print(f"  - {row.consultant_name} {fmt_week(row.year, row.week)}: {fmt_percent(row.allocation_percent)}")
        print()

    if len(reports["forecast"]) > 0:
        print("Revenue forecast:")
        for row in format_report_df(reports["forecast"], locale=locale).itertuples(index=False):
            print(f"  {row.month}: {row.revenue}")
        for row in reports["forecast_totals"].itertuples(index=False):
            print(f"  Total: {fmt_currency(row.revenue, row.currency)}")


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    _configure_logging(args.log_level)

    data_dir = Path(args.data_dir) if args.data_dir else config.data_dir
    if args.out_dir:
        out_dir = Path(args.out_dir)
    else:
        out_dir = data_dir / "reports" if args.data_dir else config.reports_dir

    if args.today:
        current = current_year_week(lambda: args.today)
    else:
        current = current_year_week()

    try:
        snapshot = load_snapshot(data_dir)
    except (SnapshotLoadError, SchemaValidationError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    try:
        weeks = _resolve_weeks(args, current)
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2
    if not weeks:
        print("ERROR: empty week range", file=sys.stderr)
        return 2

    forecast_window = (
        args.forecast_year_from or current.year,
        args.forecast_month_from,
        args.forecast_year_to or current.year + 1,
        args.forecast_month_to,
    )

    try:
        reports = build_reports(snapshot, weeks, current, forecast_window, args.prorate_by)
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    _print_summary(reports, weeks, current, args.locale)

    if args.dry_run:
        return 0

    out_dir.mkdir(parents=True, exist_ok=True)
    for name, df in reports.items():
        filename = REPORT_FILES.get(name, name)
        path = out_dir / f"{filename}.csv"
        df.to_csv(path, index=False)
        logger.info("Wrote %s (%d rows)", path, len(df))
    return 0


if __name__ == "__main__":
    sys.exit(main())
