"""
Application configuration management.
"""
import os
from pathlib import Path
from dataclasses import dataclass, field


def _default_data_dir() -> Path:
    env_dir = os.getenv("DATA_DIR")
    if env_dir:
        return Path(env_dir)
    return Path("./data")


@dataclass
class AppConfig:
    """Application configuration with environment overrides."""

    # Paths
    data_dir: Path = field(default_factory=_default_data_dir)

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # Display
    default_locale: str = field(default_factory=lambda: os.getenv("DEFAULT_LOCALE", "en"))

    # Capacity model
    hours_per_holiday: float = field(default_factory=lambda: float(os.getenv("HOURS_PER_HOLIDAY", "8")))
    # Fill value for a blank calendar hours cell at load time only
    default_hours_per_week: float = field(default_factory=lambda: float(os.getenv("DEFAULT_HOURS_PER_WEEK", "40")))

    # Report defaults
    report_horizon_weeks: int = field(default_factory=lambda: int(os.getenv("REPORT_HORIZON_WEEKS", "8")))

    @property
    def processed_dir(self) -> Path:
        return self.data_dir / "processed"

    @property
    def reports_dir(self) -> Path:
        return self.data_dir / "reports"


# Global config instance
config = AppConfig()


PROJECT_TYPES = ("customer", "internal", "absence")

# Must match the customer/project default colours of the planning UI
DEFAULT_CUSTOMER_COLOR = "#3b82f6"
DEFAULT_PROJECT_COLOR = "#9ca3af"


# Snapshot table file names
TABLE_FILES = {
    "calendars": "calendars",
    "calendar_holidays": "calendar_holidays",
    "consultants": "consultants",
    "projects": "projects",
    "customers": "customers",
    "customer_rates": "customer_rates",
    "allocations": "allocations",
}

# Tables that may be absent from a snapshot (loaded as empty)
OPTIONAL_TABLES = ["calendar_holidays", "customer_rates"]

# Report file names
REPORT_FILES = {
    "consultant_weeks": "consultant_week_allocation",
    "capacity": "consultant_week_capacity",
    "capacity_summary": "week_capacity_summary",
    "projects": "project_rollup",
    "customers": "customer_rollup",
    "kpis": "dashboard_kpis",
    "forecast": "revenue_forecast",
    "forecast_totals": "revenue_forecast_totals",
}

# Required columns (hard fail if missing)
REQUIRED_COLUMNS = {
    "calendars": ["id", "name", "hours_per_week"],
    "calendar_holidays": ["calendar_id", "holiday_date"],
    "consultants": ["id", "name", "calendar_id"],
    "projects": ["id", "name", "customer_id"],
    "customers": ["id", "name"],
    "customer_rates": ["customer_id", "role_id", "rate_per_hour"],
    "allocations": ["consultant_id", "project_id", "year", "week", "hours"],
}

# Optional columns (soft warn if missing)
OPTIONAL_COLUMNS = {
    "calendars": ["country_code"],
    "calendar_holidays": ["name"],
    "consultants": [
        "role_id",
        "team_id",
        "is_external",
        "work_percentage",
        "overhead_percentage",
        "start_date",
        "end_date",
    ],
    "projects": ["type", "is_active", "start_date", "end_date", "color"],
    "customers": ["billing_rate", "currency", "is_active", "color"],
    "customer_rates": ["currency"],
    "allocations": ["id", "role_id"],
}

# Formatting constants
FORMAT_CURRENCY = "{:,.0f}"
FORMAT_HOURS = "{:,.1f}"
FORMAT_PERCENT = "{:.0f}%"
FORMAT_COUNT = "{:,}"
