# HCM/orchestrator.py
"""
HCM Sync Orchestrator.
Runs normalize -> quality checks -> reconcile for time entries, the
employee sync, and the clocked-in refresh, one tenant per call.

Scheduling is external: a cron job, a queue worker or an operator runs
these functions (or the CLI below) with a session of their own.
"""

import argparse
import json
import logging
import sys
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from HCM.common.exceptions import ClampedValueWarning, HCMError
from HCM.common.logging import configure_logging, create_run_log_file
from HCM.common.quality_checks import QCReport, run_quality_checks, validate_post_load
from HCM.extract import ClockStateSource, EmployeeSource, TimeEntrySource
from HCM.normalizer import EntryError, candidates_to_frame, normalize_time_entries
from HCM.reconciliation import (
    BatchResult,
    ItemError,
    deactivate_employees,
    normalize_identifier,
    upsert_employees,
    upsert_time_entries,
)
from HCM.snapshot import CacheStatistics, ClockedInObservation, RefreshResult, get_cache_statistics, refresh_clocked_in
from db.db_utils import build_engine, create_all_tables, get_session, SessionLocal
from db.models import Employee, TimeEntry

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of one time-entry sync for a tenant."""
    tenant_id: str
    candidates: int = 0
    persisted: int = 0
    validation_errors: List[EntryError] = field(default_factory=list)
    clamped_values: List[ClampedValueWarning] = field(default_factory=list)
    persistence_errors: List[ItemError] = field(default_factory=list)
    qc_report: Optional[QCReport] = None
    post_load_report: Optional[QCReport] = None

    @property
    def error_count(self) -> int:
        return len(self.validation_errors) + len(self.persistence_errors)


def _banner(title: str) -> None:
    logger.info("=" * 60)
    logger.info(f"  {title}")
    logger.info("=" * 60)


def run_time_entry_sync(
    session: Session,
    tenant_id: str,
    payload: Any,
    max_date: Optional[date] = None,
) -> SyncResult:
    """
    Normalize a vendor payload and upsert its entries for a tenant.

    Quality checks on the candidates are reported, never blocking.

    Raises:
        PayloadFormatError: the payload shape is not recognized
        PersistenceFatalError: the batch was rolled back
    """
    _banner(f"TIME ENTRY SYNC - tenant {tenant_id}")
    result = SyncResult(tenant_id=tenant_id)

    normalized = normalize_time_entries(payload)
    result.candidates = normalized.processed_count
    result.validation_errors = normalized.errors
    result.clamped_values = normalized.warnings

    max_date = max_date or (date.today() + timedelta(days=1))
    result.qc_report = run_quality_checks(candidates_to_frame(normalized.candidates), max_date=max_date.isoformat())
    if not result.qc_report.passed:
        logger.warning(f"Quality checks found {result.qc_report.failed_count} issue(s); continuing with upsert")

    if normalized.candidates:
        batch = upsert_time_entries(session, tenant_id, normalized.candidates)
        result.persisted = batch.processed
        result.persistence_errors = batch.errors
    else:
        logger.warning(f"No valid time entries for tenant {tenant_id}; nothing to upsert")

    result.post_load_report = validate_post_load(session, tenant_id, {"time_entries": TimeEntry})

    logger.info(
        f"Sync complete for {tenant_id}: {result.persisted}/{result.candidates} persisted, "
        f"{len(result.validation_errors)} invalid, {len(result.persistence_errors)} failed, "
        f"{len(result.clamped_values)} clamped"
    )
    return result


def sync_from_source(
    session: Session,
    tenant_id: str,
    source: TimeEntrySource,
    start_date: date,
    end_date: date,
) -> SyncResult:
    """Pull the vendor payload for a date range and run the sync on it."""
    if start_date > end_date:
        raise ValueError(f"start_date {start_date} is after end_date {end_date}")
    logger.info(f"Fetching time entries for {tenant_id} from {start_date} to {end_date}")
    payload = source.fetch_time_entries(start_date, end_date)
    return run_time_entry_sync(session, tenant_id, payload)


def sync_employees(
    session: Session,
    tenant_id: str,
    source: EmployeeSource,
    deactivate_missing: bool = False,
) -> Tuple[BatchResult, int]:
    """
    Upsert every employee the source returns.

    With deactivate_missing, active employees of the tenant that the feed
    no longer returns are soft-deactivated.

    Returns:
        (batch result, number of employees deactivated)
    """
    _banner(f"EMPLOYEE SYNC - tenant {tenant_id}")
    records = list(source.fetch_employees())
    batch = upsert_employees(session, tenant_id, records)

    deactivated = 0
    if deactivate_missing:
        # Compared in stored id form, invalid records included
        seen = {
            normalize_identifier(r.get("external_employee_id") if isinstance(r, dict) else r.external_employee_id)
            for r in records
        }
        active_ids = session.execute(
            select(Employee.external_employee_id).where(
                Employee.tenant_id == tenant_id,
                Employee.is_active.is_(True),
            )
        ).scalars().all()
        deactivated = deactivate_employees(session, tenant_id, [i for i in active_ids if i not in seen])

    return batch, deactivated


def run_clocked_in_refresh(
    session: Session,
    tenant_id: str,
    source_or_observations: Union[ClockStateSource, Iterable[ClockedInObservation]],
    business_date: Optional[date] = None,
    refresh_time: Optional[datetime] = None,
) -> Tuple[RefreshResult, CacheStatistics]:
    """Rebuild the tenant's clocked-in snapshot and return it with fresh statistics."""
    _banner(f"CLOCKED-IN REFRESH - tenant {tenant_id}")
    if isinstance(source_or_observations, ClockStateSource):
        observations = source_or_observations.fetch_clocked_in()
    else:
        observations = list(source_or_observations)

    refresh = refresh_clocked_in(session, tenant_id, observations, business_date, refresh_time)
    stats = get_cache_statistics(session, tenant_id, refresh.business_date)
    logger.info(
        f"Snapshot stats: {stats.total_clocked_in} clocked in across "
        f"{stats.total_active_locations} locations ({stats.total_employees} active employees)"
    )
    return refresh, stats


# CLI

def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest an HCM time-entry payload for a tenant.")
    parser.add_argument("tenant_id", help="Tenant the payload belongs to")
    parser.add_argument("payload", type=Path, help="Path to the vendor JSON payload")
    parser.add_argument("--database-url", help="Override DATABASE_URL")
    parser.add_argument("--create-tables", action="store_true", help="Create missing tables first")
    parser.add_argument("--log-level", help="Override LOG_LEVEL")
    parser.add_argument("--log-file", help="Also write the log to this file")
    parser.add_argument("--log-dir", help="Also write a timestamped run log into this directory")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    log_file = args.log_file or (create_run_log_file(args.log_dir) if args.log_dir else None)
    configure_logging(level=args.log_level, log_file=log_file)

    if args.database_url:
        engine = build_engine(args.database_url)
        SessionLocal.configure(bind=engine)
        session = SessionLocal()
    else:
        session = get_session()
        engine = session.get_bind()

    try:
        if args.create_tables:
            create_all_tables(engine)
        payload = json.loads(args.payload.read_text(encoding="utf-8"))
        result = run_time_entry_sync(session, args.tenant_id, payload)
    except (HCMError, OSError, json.JSONDecodeError) as e:
        logger.error(f"Sync failed: {e}")
        return 1
    finally:
        session.close()

    for ref, reason in result.validation_errors:
        logger.info(f"  invalid  {ref}: {reason}")
    for key, reason in result.persistence_errors:
        logger.info(f"  failed   {key}: {reason}")
    return 0 if result.error_count == 0 else 2


if __name__ == "__main__":
    sys.exit(main())
