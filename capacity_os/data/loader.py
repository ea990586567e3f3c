"""
Snapshot loading: CSV/parquet tables into engine records.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from capacity_os.config import config, OPTIONAL_TABLES, PROJECT_TYPES, REQUIRED_COLUMNS, TABLE_FILES
from capacity_os.data.models import (
    Allocation,
    Calendar,
    Consultant,
    Customer,
    CustomerRate,
    Project,
)
from capacity_os.data.schema import check_optional_columns, ensure_column_types, validate_schema

logger = logging.getLogger(__name__)


class SnapshotLoadError(Exception):
    """Raised when a required snapshot table cannot be found."""
    pass


@dataclass(frozen=True)
class Snapshot:
    """All records of one data snapshot."""
    calendars: Tuple[Calendar, ...]
    consultants: Tuple[Consultant, ...]
    projects: Tuple[Project, ...]
    customers: Tuple[Customer, ...]
    customer_rates: Tuple[CustomerRate, ...]
    allocations: Tuple[Allocation, ...]


def _load_file(filepath: Path) -> Optional[pd.DataFrame]:
    """Load a single file, preferring parquet over csv."""
    parquet_path = filepath.with_suffix(".parquet")
    csv_path = filepath.with_suffix(".csv")

    if parquet_path.exists():
        return pd.read_parquet(parquet_path)
    if csv_path.exists():
        return pd.read_csv(csv_path)
    return None


def _processed_dir(data_dir: Optional[Path]) -> Path:
    if data_dir is None:
        return config.processed_dir
    return Path(data_dir) / "processed"


def _empty_table(table_name: str) -> pd.DataFrame:
    return pd.DataFrame(columns=REQUIRED_COLUMNS.get(table_name, []))


def load_table(table_name: str, data_dir: Optional[Path] = None) -> pd.DataFrame:
    """
    Load, validate and type one snapshot table.

    Optional tables that are absent load as empty frames; absent required
    tables raise SnapshotLoadError.
    """
    filepath = _processed_dir(data_dir) / TABLE_FILES[table_name]
    df = _load_file(filepath)
    if df is None:
        if table_name in OPTIONAL_TABLES:
            logger.debug("Optional table %s not found, using empty table", table_name)
            return ensure_column_types(_empty_table(table_name))
        raise SnapshotLoadError(f"Could not find {table_name} in {filepath.parent}")

    validate_schema(df, table_name, strict=True)
    missing_optional = check_optional_columns(df, table_name)
    if missing_optional:
        logger.warning("%s: missing optional columns %s", table_name, missing_optional)

    logger.debug("Loaded %s rows from %s", len(df), table_name)
    return ensure_column_types(df)


# =============================================================================
# FRAME -> RECORD CONVERTERS
# =============================================================================

def _value(row: Any, name: str, default: Any = None) -> Any:
    value = getattr(row, name, default)
    if value is None:
        return default
    if not isinstance(value, (list, tuple)) and pd.isna(value):
        return default
    return value


def _drop_blank(df: pd.DataFrame, table_name: str, key_cols: Sequence[str]) -> pd.DataFrame:
    present = [col for col in key_cols if col in df.columns]
    blank = df[present].isna().any(axis=1) if present else pd.Series(False, index=df.index)
    if blank.any():
        logger.warning("%s: dropping %d rows with blank %s", table_name, int(blank.sum()), present)
    return df[~blank]


def calendars_from_df(df: pd.DataFrame,
                      holidays_df: Optional[pd.DataFrame] = None,
                      hours_per_holiday: Optional[float] = None) -> List[Calendar]:
    if hours_per_holiday is None:
        hours_per_holiday = config.hours_per_holiday

    holidays_by_calendar: Dict[str, list] = {}
    if holidays_df is not None and len(holidays_df) > 0:
        holidays_df = _drop_blank(holidays_df, "calendar_holidays", ["calendar_id", "holiday_date"])
        for row in holidays_df.itertuples(index=False):
            holidays_by_calendar.setdefault(row.calendar_id, []).append(row.holiday_date)

    calendars: List[Calendar] = []
    for row in _drop_blank(df, "calendars", ["id"]).itertuples(index=False):
        calendars.append(Calendar.from_holiday_dates(
            id=row.id,
            name=str(_value(row, "name", "")),
            base_hours_per_week=float(_value(row, "hours_per_week", config.default_hours_per_week)),
            holiday_dates=holidays_by_calendar.get(row.id, []),
            hours_per_holiday=hours_per_holiday,
            country_code=_value(row, "country_code"),
        ))
    return calendars


def consultants_from_df(df: pd.DataFrame) -> List[Consultant]:
    consultants: List[Consultant] = []
    for row in _drop_blank(df, "consultants", ["id", "calendar_id"]).itertuples(index=False):
        consultants.append(Consultant(
            id=row.id,
            name=str(_value(row, "name", "")),
            calendar_id=row.calendar_id,
            work_percentage=float(_value(row, "work_percentage", 100.0)),
            overhead_percentage=float(_value(row, "overhead_percentage", 0.0)),
            role_id=_value(row, "role_id"),
            team_id=_value(row, "team_id"),
            is_external=bool(_value(row, "is_external", False)),
            start_date=_value(row, "start_date"),
            end_date=_value(row, "end_date"),
        ))
    return consultants


def projects_from_df(df: pd.DataFrame) -> List[Project]:
    projects: List[Project] = []
    for row in _drop_blank(df, "projects", ["id"]).itertuples(index=False):
        project_type = str(_value(row, "type", "customer")).strip().lower()
        if project_type not in PROJECT_TYPES:
            logger.warning("projects: %s has unknown type %r", row.id, project_type)
        projects.append(Project(
            id=row.id,
            name=str(_value(row, "name", "")),
            customer_id=_value(row, "customer_id", ""),
            type=project_type,
            is_active=bool(_value(row, "is_active", True)),
            start_date=_value(row, "start_date"),
            end_date=_value(row, "end_date"),
            color=_value(row, "color"),
        ))
    return projects


def customers_from_df(df: pd.DataFrame) -> List[Customer]:
    customers: List[Customer] = []
    for row in _drop_blank(df, "customers", ["id"]).itertuples(index=False):
        rate = _value(row, "billing_rate")
        customers.append(Customer(
            id=row.id,
            name=str(_value(row, "name", "")),
            billing_rate=float(rate) if rate is not None else None,
            currency=_value(row, "currency"),
            is_active=bool(_value(row, "is_active", True)),
            color=_value(row, "color"),
        ))
    return customers


def customer_rates_from_df(df: pd.DataFrame) -> List[CustomerRate]:
    rates: List[CustomerRate] = []
    key_cols = ["customer_id", "role_id", "rate_per_hour"]
    for row in _drop_blank(df, "customer_rates", key_cols).itertuples(index=False):
        rates.append(CustomerRate(
            customer_id=row.customer_id,
            role_id=row.role_id,
            rate_per_hour=float(row.rate_per_hour),
            currency=_value(row, "currency"),
        ))
    return rates


def allocations_from_df(df: pd.DataFrame) -> List[Allocation]:
    allocations: List[Allocation] = []
    key_cols = ["consultant_id", "project_id", "year", "week", "hours"]
    for row in _drop_blank(df, "allocations", key_cols).itertuples(index=False):
        allocations.append(Allocation(
            consultant_id=row.consultant_id,
            project_id=row.project_id,
            year=int(row.year),
            week=int(row.week),
            hours=float(row.hours),
            id=_value(row, "id"),
            role_id=_value(row, "role_id"),
        ))
    return allocations


def load_snapshot(data_dir: Optional[Path] = None) -> Snapshot:
    """Load every snapshot table from `<data_dir>/processed` into records."""
    tables = {name: load_table(name, data_dir) for name in TABLE_FILES}

    snapshot = Snapshot(
        calendars=tuple(calendars_from_df(tables["calendars"], tables["calendar_holidays"])),
        consultants=tuple(consultants_from_df(tables["consultants"])),
        projects=tuple(projects_from_df(tables["projects"])),
        customers=tuple(customers_from_df(tables["customers"])),
        customer_rates=tuple(customer_rates_from_df(tables["customer_rates"])),
        allocations=tuple(allocations_from_df(tables["allocations"])),
    )
    logger.info(
        "Loaded snapshot: %d consultants, %d projects, %d customers, %d allocations",
        len(snapshot.consultants), len(snapshot.projects),
        len(snapshot.customers), len(snapshot.allocations),
    )
    return snapshot


def get_data_status(data_dir: Optional[Path] = None) -> Dict[str, Any]:
    """Get status of all snapshot files."""
    processed_dir = _processed_dir(data_dir)
    status: Dict[str, Any] = {}
    for key, filename in TABLE_FILES.items():
        status[key] = {
            "parquet_exists": (processed_dir / f"{filename}.parquet").exists(),
            "csv_exists": (processed_dir / f"{filename}.csv").exists(),
            "optional": key in OPTIONAL_TABLES,
        }
    return status
