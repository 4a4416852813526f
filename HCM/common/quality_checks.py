"""
Quality Control for normalized time entries.
- Row count validation
- Null checks on critical columns
- Duplicate external ids within a batch
- Range checks (total_hours within [0, 24], plausible entry dates)
- Post-load row counts per tenant

Reports are informational: they are logged and returned to the caller but
never stop a batch from being persisted.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pandas as pd
from sqlalchemy import func, select

logger = logging.getLogger(__name__)


@dataclass
class QCResult:
    """Single quality check result."""
    check_name: str
    table_name: str
    passed: bool
    message: str
    details: Optional[Dict[str, Any]] = None


@dataclass
class QCReport:
    """Aggregated QC report for one sync run."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    results: List[QCResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(r.passed for r in self.results)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if not r.passed)

    @property
    def passed_count(self) -> int:
        return sum(1 for r in self.results if r.passed)

    def add(self, result: QCResult) -> None:
        self.results.append(result)
        status = "PASS" if result.passed else "FAIL"
        log_fn = logger.info if result.passed else logger.warning
        log_fn(f"[QC {status}] {result.table_name}: {result.check_name} - {result.message}")

    def summary(self) -> str:
        lines = [
            "=" * 60,
            f"QC REPORT - {self.timestamp.strftime('%Y-%m-%d %H:%M:%S')}",
            "=" * 60,
            f"Total Checks: {len(self.results)}",
            f"Passed: {self.passed_count}",
            f"Failed: {self.failed_count}",
            "-" * 60,
        ]
        for r in self.results:
            status = "PASS" if r.passed else "FAIL"
            lines.append(f"[{status}] {r.table_name}.{r.check_name}: {r.message}")
        lines.append("=" * 60)
        return "\n".join(lines)


# INDIVIDUAL CHECK FUNCTIONS

def check_row_count(df: pd.DataFrame, table_name: str, min_rows: int = 1) -> QCResult:
    """Check that the frame has the minimum number of rows."""
    row_count = len(df)
    return QCResult(
        check_name="row_count",
        table_name=table_name,
        passed=row_count >= min_rows,
        message=f"Row count: {row_count} (min: {min_rows})",
        details={"row_count": row_count, "min_required": min_rows}
    )


def check_nulls(df: pd.DataFrame, table_name: str, critical_columns: List[str]) -> QCResult:
    """Check for null values in critical columns."""
    null_counts = {
        col: int(df[col].isna().sum())
        for col in critical_columns
        if col in df.columns
    }
    total_nulls = sum(null_counts.values())
    passed = total_nulls == 0

    return QCResult(
        check_name="null_check",
        table_name=table_name,
        passed=passed,
        message=f"Nulls in critical columns: {total_nulls}" + (f" ({null_counts})" if not passed else ""),
        details={"null_counts": null_counts}
    )


def check_duplicates(df: pd.DataFrame, table_name: str, key_columns: List[str]) -> QCResult:
    """
    Check for repeated keys within the batch.

    Repeats are legal (last write wins on upsert) but usually point at a
    vendor paging problem, so they are surfaced.
    """
    existing_cols = [c for c in key_columns if c in df.columns]
    if not existing_cols or df.empty:
        return QCResult(
            check_name="duplicate_check",
            table_name=table_name,
            passed=True,
            message="No rows or key columns to check"
        )

    duplicate_count = int(df.duplicated(subset=existing_cols, keep="first").sum())
    return QCResult(
        check_name="duplicate_check",
        table_name=table_name,
        passed=duplicate_count == 0,
        message=f"Repeated keys on {existing_cols}: {duplicate_count}",
        details={"duplicate_count": duplicate_count, "key_columns": existing_cols}
    )


def check_numeric_range(
    df: pd.DataFrame,
    table_name: str,
    column: str,
    min_val: Optional[float] = None,
    max_val: Optional[float] = None
) -> QCResult:
    """Check that numeric values fall within the expected range."""
    if column not in df.columns or df.empty:
        return QCResult(
            check_name=f"range_check_{column}",
            table_name=table_name,
            passed=True,
            message=f"Column '{column}' not present"
        )

    col_data = pd.to_numeric(df[column], errors="coerce")
    issues = []
    if min_val is not None:
        below_min = int((col_data < min_val).sum())
        if below_min:
            issues.append(f"{below_min} values below {min_val}")
    if max_val is not None:
        above_max = int((col_data > max_val).sum())
        if above_max:
            issues.append(f"{above_max} values above {max_val}")

    has_values = not col_data.isna().all()
    actual_min = float(col_data.min()) if has_values else None
    actual_max = float(col_data.max()) if has_values else None

    return QCResult(
        check_name=f"range_check_{column}",
        table_name=table_name,
        passed=not issues,
        message=f"Range [{actual_min}, {actual_max}]" + (f" - Issues: {', '.join(issues)}" if issues else " OK"),
        details={"min": actual_min, "max": actual_max, "expected_min": min_val, "expected_max": max_val}
    )


def check_date_range(
    df: pd.DataFrame,
    table_name: str,
    column: str,
    min_date: Optional[str] = None,
    max_date: Optional[str] = None
) -> QCResult:
    """Check that date values fall within the expected range."""
    if column not in df.columns or df.empty:
        return QCResult(
            check_name=f"date_range_{column}",
            table_name=table_name,
            passed=True,
            message=f"Column '{column}' not present"
        )

    col_data = pd.to_datetime(df[column], errors="coerce")
    issues = []
    if min_date:
        before_min = int((col_data < pd.to_datetime(min_date)).sum())
        if before_min:
            issues.append(f"{before_min} dates before {min_date}")
    if max_date:
        after_max = int((col_data > pd.to_datetime(max_date)).sum())
        if after_max:
            issues.append(f"{after_max} dates after {max_date}")

    actual_min = col_data.min()
    actual_max = col_data.max()
    return QCResult(
        check_name=f"date_range_{column}",
        table_name=table_name,
        passed=not issues,
        message=f"Date range [{actual_min.date() if pd.notna(actual_min) else None}] to "
                f"[{actual_max.date() if pd.notna(actual_max) else None}]"
                + (f" - {', '.join(issues)}" if issues else " OK"),
        details={"min_date": str(actual_min), "max_date": str(actual_max)}
    )


# AGGREGATE VALIDATION FUNCTIONS

def run_quality_checks(df_entries: pd.DataFrame, max_date: Optional[str] = None) -> QCReport:
    """Run all checks on a frame of normalized time-entry candidates."""
    report = QCReport()
    table = "time_entries"

    report.add(check_row_count(df_entries, table, min_rows=1))
    report.add(check_nulls(df_entries, table, ["external_entry_id", "employee_account_id", "entry_date", "entry_type"]))
    report.add(check_duplicates(df_entries, table, ["external_entry_id"]))
    report.add(check_numeric_range(df_entries, table, "total_hours", min_val=0, max_val=24))
    report.add(check_date_range(df_entries, table, "entry_date", min_date="2000-01-01", max_date=max_date))

    logger.debug(report.summary())
    return report


def validate_post_load(session, tenant_id: str, models_and_tables: Dict[str, Any]) -> QCReport:
    """
    Post-load validation: count the tenant's rows in each table.

    Args:
        session: SQLAlchemy session
        tenant_id: Tenant whose partition is counted
        models_and_tables: Dict mapping table names to model classes

    Returns:
        QCReport with one result per table
    """
    report = QCReport()

    for table_name, model in models_and_tables.items():
        count = session.execute(
            select(func.count()).select_from(model).where(model.tenant_id == tenant_id)
        ).scalar_one()
        report.add(QCResult(
            check_name="post_load_count",
            table_name=table_name,
            passed=count > 0,
            message=f"Records for tenant {tenant_id}: {count}",
            details={"db_row_count": count}
        ))

    return report
