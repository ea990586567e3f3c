"""
Consistent number and display formatting.

Applied to engine output after the fact; the engine itself returns raw numbers.
"""
import math

import pandas as pd
from typing import Union, Optional

from capacity_os.config import FORMAT_COUNT, FORMAT_CURRENCY, FORMAT_HOURS, FORMAT_PERCENT, config
from capacity_os.data.weeks import month_label


MISSING = "—"


# =============================================================================
# NUMBER FORMATTERS
# =============================================================================

def fmt_currency(value: Union[float, int, None], currency: Optional[str] = None, decimals: int = 0) -> str:
    """Format as currency: 1,234 SEK or 1,234.56 EUR"""
    if value is None or pd.isna(value):
        return MISSING
    if decimals == 0:
        text = FORMAT_CURRENCY.format(value)
    else:
        text = f"{value:,.{decimals}f}"
    return f"{text} {currency}" if currency else text


def fmt_hours(value: Union[float, int, None]) -> str:
    """Format hours: 1,234.5"""
    if value is None or pd.isna(value):
        return MISSING
    return FORMAT_HOURS.format(value)


def fmt_percent(value: Union[float, int, None]) -> str:
    """Format allocation percentage: 85%, or ∞% when allocated with zero capacity."""
    if value is None or pd.isna(value):
        return MISSING
    if math.isinf(value):
        return "∞%"
    return FORMAT_PERCENT.format(value)


def fmt_count(value: Union[float, int, None]) -> str:
    """Format count: 1,234"""
    if value is None or pd.isna(value):
        return MISSING
    return FORMAT_COUNT.format(int(value))


def fmt_week(year: int, week: int) -> str:
    """Format ISO week: W07 2026"""
    return f"W{week:02d} {year}"


def fmt_month(year: int, month: int, locale: Optional[str] = None) -> str:
    return month_label(month, year, locale or config.default_locale)


# =============================================================================
# DATAFRAME FORMATTERS
# =============================================================================

HOURS_COLUMNS = [
    "capacity_hours_per_week", "hours_per_week", "total_hours_allocated",
    "total_hours", "hours", "capacity_hours", "billable_hours",
]

PERCENT_COLUMNS = ["allocation_percent", "allocation_this_week_percent"]

COUNT_COLUMNS = [
    "consultant_count", "customer_count", "project_count", "active_project_count",
]


def format_report_df(df: pd.DataFrame, locale: Optional[str] = None) -> pd.DataFrame:
    """
    Format a report dataframe for display.

    Applies formatting to known column types; a 'revenue' column is paired
    with 'currency' when present.
    """
    df = df.copy()

    for col in df.columns:
        if col in HOURS_COLUMNS:
            df[col] = df[col].apply(fmt_hours)
        elif col in PERCENT_COLUMNS:
            df[col] = df[col].apply(fmt_percent)
        elif col in COUNT_COLUMNS:
            df[col] = df[col].apply(fmt_count)

    if "revenue" in df.columns:
        if "currency" in df.columns:
            df["revenue"] = [fmt_currency(v, c) for v, c in zip(df["revenue"], df["currency"])]
        else:
            df["revenue"] = df["revenue"].apply(fmt_currency)

    if "year" in df.columns and "month" in df.columns:
        df["month"] = [fmt_month(int(y), int(m), locale) for y, m in zip(df["year"], df["month"])]

    return df
