"""
Tests for snapshot data quality checks.
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from capacity_os.data.loader import Snapshot
from capacity_os.data.models import Allocation, Calendar, Consultant, Customer, CustomerRate, Project
from capacity_os.data.quality import ISSUE_COLUMNS, check_snapshot, issues_to_frame


def make_snapshot(consultants=None, projects=None, customer_rates=(), allocations=()):
    return Snapshot(
        calendars=(Calendar(id="se", name="Sweden", base_hours_per_week=40.0),),
        consultants=tuple(consultants or [Consultant(id="c1", name="Anna Berg", calendar_id="se")]),
        projects=tuple(projects or [Project(id="p1", name="Alpha", customer_id="cu1")]),
        customers=(Customer(id="cu1", name="Acme"),),
        customer_rates=tuple(customer_rates),
        allocations=tuple(allocations),
    )


def alloc(consultant_id="c1", project_id="p1", year=2026, week=10, hours=8.0):
    return Allocation(consultant_id=consultant_id, project_id=project_id, year=year, week=week, hours=hours)


def issue_types(issues):
    return [issue.type for issue in issues]


class TestCheckSnapshot:
    """Tests for snapshot-wide issue detection."""

    def test_clean_snapshot(self):
        assert check_snapshot(make_snapshot(allocations=[alloc()])) == []

    def test_unknown_consultant_and_project(self):
        issues = check_snapshot(make_snapshot(allocations=[alloc(consultant_id="ghost", project_id="nowhere")]))

        assert issue_types(issues) == ["unknown_consultant", "unknown_project"]
        assert issues[0].table == "allocations"
        assert issues[0].record == "ghost/nowhere/2026-W10"

    def test_invalid_week(self):
        """2021 has 52 ISO weeks."""
        issues = check_snapshot(make_snapshot(allocations=[alloc(year=2021, week=53)]))

        assert issue_types(issues) == ["invalid_week"]

    def test_negative_hours(self):
        issues = check_snapshot(make_snapshot(allocations=[alloc(hours=-4.0)]))

        assert issue_types(issues) == ["invalid_hours"]

    def test_duplicate_allocation(self):
        issues = check_snapshot(make_snapshot(allocations=[alloc(hours=4.0), alloc(hours=6.0)]))

        assert issue_types(issues) == ["duplicate_allocation"]
        assert issues[0].record == "c1/p1/2026-W10"
        assert issues[0].message.startswith("2 rows")

    def test_allocation_id_used_as_record(self):
        allocation = Allocation(consultant_id="c1", project_id="p9", year=2026, week=10, hours=8.0, id="a-17")

        issues = check_snapshot(make_snapshot(allocations=[allocation]))

        assert issues[0].record == "a-17"

    def test_missing_calendar(self):
        consultants = [Consultant(id="c2", name="Erik Lund", calendar_id="uk")]

        issues = check_snapshot(make_snapshot(consultants=consultants))

        assert issue_types(issues) == ["missing_calendar"]
        assert issues[0].record == "c2"

    def test_percentage_out_of_range(self):
        consultants = [Consultant(id="c1", name="Anna Berg", calendar_id="se", work_percentage=120.0)]

        issues = check_snapshot(make_snapshot(consultants=consultants))

        assert issue_types(issues) == ["percentage_out_of_range"]
        assert "work_percentage" in issues[0].message

    def test_unknown_customer(self):
        projects = [Project(id="p1", name="Alpha", customer_id="cu1"), Project(id="p2", name="Beta", customer_id="cu9")]
        rates = [CustomerRate(customer_id="cu9", role_id="dev", rate_per_hour=1200.0)]

        issues = check_snapshot(make_snapshot(projects=projects, customer_rates=rates))

        assert issue_types(issues) == ["unknown_customer", "unknown_customer"]
        assert [issue.record for issue in issues] == ["p2", "cu9/dev"]

    def test_reference_issues_come_first(self):
        consultants = [Consultant(id="c1", name="Anna Berg", calendar_id="uk")]

        issues = check_snapshot(make_snapshot(consultants=consultants, allocations=[alloc(hours=-1.0)]))

        assert issue_types(issues) == ["missing_calendar", "invalid_hours"]


class TestIssuesToFrame:
    """Tests for the tabular issue view."""

    def test_columns(self):
        issues = check_snapshot(make_snapshot(allocations=[alloc(project_id="nowhere")]))

        df = issues_to_frame(issues)

        assert list(df.columns) == ISSUE_COLUMNS
        assert df["type"].tolist() == ["unknown_project"]

    def test_empty(self):
        df = issues_to_frame([])

        assert len(df) == 0
        assert list(df.columns) == ISSUE_COLUMNS
