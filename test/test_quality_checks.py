"""Tests for the informational quality checks."""

from datetime import date

import pandas as pd

from HCM.common.quality_checks import (
    check_duplicates,
    check_nulls,
    check_numeric_range,
    run_quality_checks,
    validate_post_load,
)
from HCM.reconciliation import upsert_time_entries
from db.models import CostCenter, TimeEntry
from factories import TENANT, make_candidate


def frame(rows):
    return pd.DataFrame(rows)


def test_clean_batch_passes():
    df = frame([
        {"external_entry_id": "1", "employee_account_id": "5", "entry_date": date(2025, 8, 10),
         "entry_type": "TIME", "total_hours": 4.42},
        {"external_entry_id": "2", "employee_account_id": "5", "entry_date": date(2025, 8, 11),
         "entry_type": "TIME", "total_hours": None},
    ])

    report = run_quality_checks(df, max_date="2025-12-31")

    assert report.passed
    assert report.failed_count == 0
    assert "QC REPORT" in report.summary()


def test_empty_batch_fails_row_count():
    report = run_quality_checks(pd.DataFrame(columns=["external_entry_id", "total_hours"]))

    assert not report.passed
    assert [r.check_name for r in report.results if not r.passed] == ["row_count"]


def test_repeated_external_ids_are_flagged():
    result = check_duplicates(frame([{"external_entry_id": "1"}, {"external_entry_id": "1"}]), "t", ["external_entry_id"])

    assert not result.passed
    assert result.details["duplicate_count"] == 1


def test_nulls_in_critical_columns():
    result = check_nulls(frame([{"entry_type": None, "entry_date": "2025-08-10"}]), "t", ["entry_type", "entry_date"])

    assert not result.passed
    assert result.details["null_counts"] == {"entry_type": 1, "entry_date": 0}


def test_hours_range():
    result = check_numeric_range(frame([{"total_hours": 25.0}, {"total_hours": -1}]), "t", "total_hours", 0, 24)

    assert not result.passed
    assert "1 values below 0" in result.message
    assert "1 values above 24" in result.message


def test_dates_after_max_date_fail():
    df = frame([{"external_entry_id": "1", "employee_account_id": "5", "entry_date": "2030-01-01", "entry_type": "TIME"}])

    report = run_quality_checks(df, max_date="2025-12-31")

    assert [r.check_name for r in report.results if not r.passed] == ["date_range_entry_date"]


def test_post_load_counts_per_tenant(db_session):
    upsert_time_entries(db_session, TENANT, [make_candidate(1), make_candidate(2)])

    report = validate_post_load(db_session, TENANT, {"time_entries": TimeEntry, "cost_centers": CostCenter})

    by_table = {r.table_name: r for r in report.results}
    assert by_table["time_entries"].details["db_row_count"] == 2
    assert by_table["time_entries"].passed
    assert not by_table["cost_centers"].passed
