"""
Tests for snapshot loading from CSV tables.
"""
import pytest
import pandas as pd
import sys
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from capacity_os.data.loader import (
    SnapshotLoadError,
    get_data_status,
    load_snapshot,
    load_table,
)
from capacity_os.data.schema import SchemaValidationError


def write_snapshot(data_dir: Path, **overrides) -> Path:
    """Write a small snapshot as CSV files under <data_dir>/processed."""
    processed = data_dir / "processed"
    processed.mkdir(parents=True, exist_ok=True)

    tables = {
        "calendars": pd.DataFrame({
            "id": ["se"],
            "name": ["Sweden"],
            "hours_per_week": [40.0],
        }),
        "calendar_holidays": pd.DataFrame({
            "calendar_id": ["se", "se"],
            "holiday_date": ["2021-04-02", "2021-04-05"],
        }),
        "consultants": pd.DataFrame({
            "id": ["c1", "c2"],
            "name": ["Anna Berg", "Erik Lund"],
            "calendar_id": ["se", "se"],
            "work_percentage": [100, 80],
            "overhead_percentage": [20, None],
            "role_id": ["dev", None],
            "start_date": [None, "2021-03-01"],
        }),
        "projects": pd.DataFrame({
            "id": ["p1", "p2"],
            "name": ["Alpha", "Internal"],
            "customer_id": ["cu1", "cu1"],
            "type": ["customer", "internal"],
            "is_active": [True, False],
        }),
        "customers": pd.DataFrame({
            "id": ["cu1"],
            "name": ["Acme"],
            "billing_rate": [1000.0],
            "currency": ["SEK"],
        }),
        "allocations": pd.DataFrame({
            "consultant_id": ["c1", "c2", "c1"],
            "project_id": ["p1", "p1", None],
            "year": [2021, 2021, 2021],
            "week": [13, 13, 13],
            "hours": [14.0, 8.0, 4.0],
        }),
    }
    tables.update(overrides)

    for name, df in tables.items():
        if df is not None:
            df.to_csv(processed / f"{name}.csv", index=False)
    return data_dir


class TestLoadTable:
    """Tests for single table loading."""

    def test_missing_required_table_raises(self, tmp_path):
        with pytest.raises(SnapshotLoadError):
            load_table("consultants", tmp_path)

    def test_missing_optional_table_is_empty(self, tmp_path):
        df = load_table("customer_rates", tmp_path)

        assert len(df) == 0
        assert "rate_per_hour" in df.columns

    def test_missing_required_column_raises(self, tmp_path):
        write_snapshot(tmp_path, calendars=pd.DataFrame({"id": ["se"], "name": ["Sweden"]}))

        with pytest.raises(SchemaValidationError):
            load_table("calendars", tmp_path)


class TestLoadSnapshot:
    """Tests for converting a whole snapshot into records."""

    def test_records(self, tmp_path):
        snapshot = load_snapshot(write_snapshot(tmp_path))

        assert [c.id for c in snapshot.consultants] == ["c1", "c2"]
        assert snapshot.customer_rates == ()
        assert snapshot.customers[0].billing_rate == 1000.0
        assert snapshot.customers[0].currency == "SEK"

    def test_holidays_deducted_on_weekdays(self, tmp_path):
        snapshot = load_snapshot(write_snapshot(tmp_path))

        calendar = snapshot.calendars[0]
        assert calendar.holiday_deduction(2021, 13) == 8.0
        assert calendar.holiday_deduction(2021, 14) == 8.0
        assert date(2021, 4, 2) in calendar.holiday_dates

    def test_optional_fields_default(self, tmp_path):
        snapshot = load_snapshot(write_snapshot(tmp_path))

        anna, erik = snapshot.consultants
        assert anna.overhead_percentage == 20.0
        assert anna.role_id == "dev"
        assert anna.start_date is None
        assert erik.overhead_percentage == 0.0
        assert erik.work_percentage == 80.0
        assert erik.role_id is None
        assert erik.start_date == date(2021, 3, 1)

    def test_project_flags(self, tmp_path):
        snapshot = load_snapshot(write_snapshot(tmp_path))

        alpha, internal = snapshot.projects
        assert alpha.is_active is True
        assert alpha.is_customer_project
        assert internal.is_active is False
        assert internal.type == "internal"

    def test_blank_allocation_keys_dropped(self, tmp_path):
        snapshot = load_snapshot(write_snapshot(tmp_path))

        assert len(snapshot.allocations) == 2
        assert snapshot.allocations[0].year == 2021
        assert snapshot.allocations[0].hours == 14.0

    def test_numeric_ids_become_strings(self, tmp_path):
        customers = pd.DataFrame({"id": [1], "name": ["Acme"]})
        projects = pd.DataFrame({"id": [10], "name": ["Alpha"], "customer_id": [1]})
        snapshot = load_snapshot(write_snapshot(tmp_path, customers=customers, projects=projects))

        assert snapshot.customers[0].id == "1"
        assert snapshot.projects[0].customer_id == "1"
        assert snapshot.customers[0].has_billing() is False

    def test_data_status(self, tmp_path):
        status = get_data_status(write_snapshot(tmp_path))

        assert status["consultants"]["csv_exists"] is True
        assert status["customer_rates"]["csv_exists"] is False
        assert status["customer_rates"]["optional"] is True
