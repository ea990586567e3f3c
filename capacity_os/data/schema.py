"""
Schema validation and column typing for snapshot tables.
"""
import pandas as pd
from typing import List, Tuple, Dict

from capacity_os.config import REQUIRED_COLUMNS, OPTIONAL_COLUMNS


class SchemaValidationError(Exception):
    """Raised when required columns are missing."""
    pass


NUMERIC_COLUMNS = [
    "hours_per_week", "work_percentage", "overhead_percentage",
    "billing_rate", "rate_per_hour", "hours", "year", "week",
]

BOOL_COLUMNS = ["is_external", "is_active"]

DATE_COLUMNS = ["holiday_date", "start_date", "end_date"]

ID_COLUMNS = [
    "id", "calendar_id", "consultant_id", "project_id", "customer_id",
    "role_id", "team_id",
]

_TRUE_STRINGS = {"true", "t", "yes", "y", "1"}


def validate_required_columns(df: pd.DataFrame, table_name: str) -> Tuple[bool, List[str]]:
    """
    Validate that required columns exist in dataframe.
    Returns (is_valid, missing_columns).
    """
    if table_name not in REQUIRED_COLUMNS:
        return True, []

    required = REQUIRED_COLUMNS[table_name]
    missing = [col for col in required if col not in df.columns]

    return len(missing) == 0, missing


def check_optional_columns(df: pd.DataFrame, table_name: str) -> List[str]:
    """
    Check which optional columns are missing.
    Returns list of missing optional columns.
    """
    if table_name not in OPTIONAL_COLUMNS:
        return []

    optional = OPTIONAL_COLUMNS[table_name]
    missing = [col for col in optional if col not in df.columns]

    return missing


def validate_schema(df: pd.DataFrame, table_name: str, strict: bool = True) -> Dict:
    """
    Full schema validation.

    Args:
        df: DataFrame to validate
        table_name: Name of table for column requirements lookup
        strict: If True, raise error on missing required columns

    Returns:
        Dict with validation results
    """
    is_valid, missing_required = validate_required_columns(df, table_name)
    missing_optional = check_optional_columns(df, table_name)

    result = {
        "is_valid": is_valid,
        "missing_required": missing_required,
        "missing_optional": missing_optional,
        "total_columns": len(df.columns),
        "total_rows": len(df),
    }

    if strict and not is_valid:
        raise SchemaValidationError(
            f"Missing required columns in {table_name}: {missing_required}"
        )

    return result


def _to_bool(value):
    # Missing flags stay missing so record defaults can apply
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    if pd.isna(value):
        return None
    return bool(value)


def _to_id(value):
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if pd.isna(value):
        return None
    return str(value).strip()


def ensure_column_types(df: pd.DataFrame) -> pd.DataFrame:
    """Ensure consistent column types."""
    df = df.copy()

    for col in NUMERIC_COLUMNS:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")

    for col in BOOL_COLUMNS:
        if col in df.columns:
            df[col] = df[col].astype(object).map(_to_bool)

    for col in DATE_COLUMNS:
        if col in df.columns:
            df[col] = pd.to_datetime(df[col], errors="coerce").dt.date

    for col in ID_COLUMNS:
        if col in df.columns:
            df[col] = df[col].astype(object).map(_to_id)

    return df
