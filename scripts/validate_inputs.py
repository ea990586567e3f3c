#!/usr/bin/env python
"""
Check a snapshot before building reports.

Reports missing tables, schema problems and rows the engine would skip
(unknown consultants/projects/calendars, invalid weeks, negative hours).

Usage:
    python scripts/validate_inputs.py
    python scripts/validate_inputs.py --data-dir /path/to/data --strict
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Add repository root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from capacity_os.config import config, TABLE_FILES
from capacity_os.data.loader import SnapshotLoadError, get_data_status, load_snapshot, load_table
from capacity_os.data.quality import check_snapshot, issues_to_frame
from capacity_os.data.schema import SchemaValidationError


def _check_tables(data_dir: Optional[Path]) -> bool:
    """Print file presence and schema status per table; False when a required table is unusable."""
    status = get_data_status(data_dir)
    all_valid = True

    for table_key, filename in TABLE_FILES.items():
        table_status = status[table_key]
        found = table_status["parquet_exists"] or table_status["csv_exists"]
        if not found:
            if table_status["optional"]:
                print(f"  - {table_key}: not found (optional)")
            else:
                print(f"  ✗ {table_key}: not found ({filename}.parquet|csv)")
                all_valid = False
            continue

        try:
            df = load_table(table_key, data_dir)
        except (SchemaValidationError, SnapshotLoadError) as exc:
            print(f"  ✗ {table_key}: {exc}")
            all_valid = False
            continue
        print(f"  ✓ {table_key}: {len(df):,} rows")

    return all_valid


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Validate a snapshot")
    parser.add_argument("--data-dir", type=str, default=None, help="Override data directory")
    parser.add_argument("--strict", action="store_true", help="Fail on data quality issues too")
    parser.add_argument("--log-level", default="ERROR")
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.ERROR),
                        format="%(levelname)s %(message)s")
    data_dir = Path(args.data_dir) if args.data_dir else None

    print("=" * 60)
    print("Snapshot Validation")
    print("=" * 60)
    print(f"Source directory: {(data_dir / 'processed') if data_dir else config.processed_dir}")
    print()

    if not _check_tables(data_dir):
        print()
        print("✗ Validation failed - see errors above")
        return 1

    issues = check_snapshot(load_snapshot(data_dir))
    print()
    if issues:
        issues_df = issues_to_frame(issues)
        print(f"Data quality issues: {len(issues)}")
        for issue_type, count in issues_df["type"].value_counts().sort_index().items():
            print(f"  {issue_type}: {count}")
        for issue in issues:
            print(f"  ⚠ {issue.table} {issue.record}: {issue.message}")
        print()
        if args.strict:
            print("✗ Validation failed - data quality issues in strict mode")
            return 1
    print("=" * 60)
    print("✓ All validations passed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
