# HCM/snapshot/refresh.py
"""
Clocked-In Snapshot Cache - "who is clocked in right now" per tenant and
business date.

A refresh deletes every row of its (tenant, business_date) and inserts
the new set in the same transaction, so readers see either the old set
or the new one. Refreshes of the same key are serialized by an
in-process lock and, on PostgreSQL, a transaction-scoped advisory lock.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from HCM.common.exceptions import SnapshotRefreshError
from HCM.normalizer.utils import as_utc, hours_between
from HCM.resolver.resolver import (
    department_label,
    employee_label,
    get_cost_center_names,
    location_label,
    resolve_employees,
)
from db.db_utils import acquire_advisory_xact_lock
from db.models import ClockedInSnapshot, Employee

logger = logging.getLogger(__name__)

NOT_IMPLEMENTED_STATISTICS = ("avg_refresh_duration", "last_refresh_duration", "success_rate")


@dataclass
class ClockedInObservation:
    """An employee currently clocked in, as reported by the clock-state source."""
    employee_account_id: Union[int, str]
    clock_in_time: datetime
    employee_number: Optional[str] = None
    employee_name: Optional[str] = None
    location_cost_center_id: Optional[int] = None
    department_cost_center_id: Optional[int] = None
    location_name: Optional[str] = None
    department_name: Optional[str] = None
    time_entry_id: Optional[str] = None


@dataclass
class RefreshResult:
    tenant_id: str
    business_date: date
    refresh_time: datetime
    inserted: int
    removed: int
    duration_seconds: float


@dataclass
class CacheStatistics:
    """
    Health view of the snapshot.

    The refresh-history fields are not tracked yet; they stay None and are
    listed in not_implemented.
    """
    last_refresh_time: Optional[datetime]
    total_clocked_in: int
    total_active_locations: int
    total_employees: int
    avg_refresh_duration: Optional[float] = None
    last_refresh_duration: Optional[float] = None
    success_rate: Optional[float] = None
    not_implemented: Tuple[str, ...] = field(default=NOT_IMPLEMENTED_STATISTICS)


# PER-KEY LOCKS

# Fixed pool; keys sharing a stripe are serialized together
REFRESH_LOCK_STRIPES = 64
_refresh_locks: Tuple[threading.Lock, ...] = tuple(threading.Lock() for _ in range(REFRESH_LOCK_STRIPES))


def _refresh_lock(tenant_id: str, business_date: date) -> threading.Lock:
    return _refresh_locks[hash((tenant_id, business_date)) % REFRESH_LOCK_STRIPES]


def _advisory_key(tenant_id: str, business_date: date) -> str:
    return f"clocked_in:{tenant_id}:{business_date.isoformat()}"


# ROW BUILDING

def _latest_per_employee(observations: Iterable[ClockedInObservation]) -> List[ClockedInObservation]:
    """One observation per employee account, the latest clock-in winning."""
    latest: Dict[str, ClockedInObservation] = {}
    for obs in observations:
        key = str(obs.employee_account_id)
        current = latest.get(key)
        if current is None or as_utc(obs.clock_in_time) > as_utc(current.clock_in_time):
            latest[key] = obs
    return list(latest.values())


def _hours_so_far(obs: ClockedInObservation, refresh_time: datetime) -> Decimal:
    hours = hours_between(as_utc(obs.clock_in_time), refresh_time)
    if hours < 0:
        logger.warning(
            f"Employee {obs.employee_account_id} clock-in {obs.clock_in_time.isoformat()} "
            f"is after refresh time {refresh_time.isoformat()}, using 0.00 hours"
        )
        return Decimal("0.00")
    return hours


def build_snapshot_rows(
    session: Session,
    tenant_id: str,
    business_date: date,
    refresh_time: datetime,
    observations: Iterable[ClockedInObservation],
) -> List[Dict[str, Any]]:
    """
    Resolve names and compute hours for each observation.

    Names fall back from the resolved value to the observation's own hint
    to a placeholder built from the raw id.
    """
    observations = _latest_per_employee(observations)
    if not observations:
        return []

    lookup_ids = [obs.employee_account_id for obs in observations]
    lookup_ids += [obs.employee_number for obs in observations if obs.employee_number]
    identities = resolve_employees(session, tenant_id, lookup_ids)

    prepared = []
    for obs in observations:
        identity = identities.get(obs.employee_account_id)
        if identity is None and obs.employee_number:
            identity = identities.get(obs.employee_number)

        location_id = obs.location_cost_center_id
        if location_id is None and identity is not None:
            location_id = identity.cost_center
        prepared.append((obs, identity, location_id))

    cost_center_ids = [p[2] for p in prepared] + [p[0].department_cost_center_id for p in prepared]
    cost_center_names = get_cost_center_names(session, tenant_id, cost_center_ids)

    snapshot_rows = []
    for obs, identity, location_id in prepared:
        department_id = obs.department_cost_center_id

        snapshot_rows.append({
            "tenant_id": tenant_id,
            "business_date": business_date,
            "employee_account_id": str(obs.employee_account_id),
            "employee_number": obs.employee_number or (identity.employee_id if identity else None),
            "employee_name": (
                (identity.name if identity else None)
                or obs.employee_name
                or employee_label(obs.employee_account_id)
            ),
            "clock_in_time": as_utc(obs.clock_in_time),
            "location_cost_center_id": location_id,
            "department_cost_center_id": department_id,
            "location_name": (
                cost_center_names.get(location_id)
                or (identity.location if identity else None)
                or obs.location_name
                or location_label(location_id)
            ),
            "department_name": (
                cost_center_names.get(department_id)
                or (identity.department if identity else None)
                or obs.department_name
                or department_label(department_id)
            ),
            "time_entry_id": str(obs.time_entry_id) if obs.time_entry_id is not None else None,
            "hours_worked_so_far": _hours_so_far(obs, refresh_time),
            "cache_refresh_time": refresh_time,
        })
    return snapshot_rows


# OPERATIONS

def refresh_clocked_in(
    session: Session,
    tenant_id: str,
    observations: Iterable[ClockedInObservation],
    business_date: Optional[date] = None,
    refresh_time: Optional[datetime] = None,
) -> RefreshResult:
    """
    Replace the clocked-in set of (tenant_id, business_date).

    Args:
        session: Open session; committed on success, rolled back on failure
        tenant_id: Tenant to refresh
        observations: Employees currently clocked in
        business_date: Snapshot date (default: the refresh time's UTC date)
        refresh_time: "Now" for hours worked (default: current UTC time)

    Raises:
        SnapshotRefreshError: nothing was changed; the previous set remains
    """
    refresh_time = as_utc(refresh_time) if refresh_time else datetime.now(timezone.utc)
    business_date = business_date or refresh_time.date()
    observations = list(observations)
    started = time.monotonic()

    logger.info(f"Refreshing clocked-in snapshot for {tenant_id} on {business_date} ({len(observations)} observations)")

    with _refresh_lock(tenant_id, business_date):
        try:
            acquire_advisory_xact_lock(session, _advisory_key(tenant_id, business_date))
            rows = build_snapshot_rows(session, tenant_id, business_date, refresh_time, observations)

            removed = session.execute(
                delete(ClockedInSnapshot).where(
                    ClockedInSnapshot.tenant_id == tenant_id,
                    ClockedInSnapshot.business_date == business_date,
                )
            ).rowcount
            if rows:
                session.execute(insert(ClockedInSnapshot), rows)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Clocked-in refresh failed for {tenant_id} on {business_date}: {e}")
            raise SnapshotRefreshError(
                "Clocked-in snapshot refresh failed and was rolled back",
                tenant_id=tenant_id,
                business_date=business_date.isoformat(),
                original_error=e,
            ) from e

    result = RefreshResult(
        tenant_id=tenant_id,
        business_date=business_date,
        refresh_time=refresh_time,
        inserted=len(rows),
        removed=removed,
        duration_seconds=round(time.monotonic() - started, 3),
    )
    logger.info(
        f"Clocked-in snapshot for {tenant_id} on {business_date}: "
        f"{result.removed} removed, {result.inserted} inserted in {result.duration_seconds}s"
    )
    return result


def clear_clocked_in(session: Session, tenant_id: str, business_date: Optional[date] = None) -> int:
    """Delete the tenant's snapshot rows (one date, or all dates when None)."""
    stmt = delete(ClockedInSnapshot).where(ClockedInSnapshot.tenant_id == tenant_id)
    if business_date is not None:
        stmt = stmt.where(ClockedInSnapshot.business_date == business_date)

    try:
        removed = session.execute(stmt).rowcount
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise SnapshotRefreshError(
            "Clearing the clocked-in snapshot failed",
            tenant_id=tenant_id,
            business_date=business_date.isoformat() if business_date else None,
            original_error=e,
        ) from e

    logger.info(f"Cleared {removed} clocked-in rows for {tenant_id}" + (f" on {business_date}" if business_date else ""))
    return removed


def get_clocked_in(
    session: Session, tenant_id: str, business_date: Optional[date] = None
) -> List[ClockedInSnapshot]:
    """Snapshot rows for the date (default: today, UTC), latest clock-in first."""
    business_date = business_date or datetime.now(timezone.utc).date()
    stmt = (
        select(ClockedInSnapshot)
        .where(
            ClockedInSnapshot.tenant_id == tenant_id,
            ClockedInSnapshot.business_date == business_date,
        )
        .order_by(ClockedInSnapshot.clock_in_time.desc(), ClockedInSnapshot.employee_account_id)
    )
    return list(session.execute(stmt).scalars().all())


def get_cache_statistics(
    session: Session, tenant_id: str, business_date: Optional[date] = None
) -> CacheStatistics:
    """Counts and last refresh time of the tenant's snapshot for the date (default: today, UTC)."""
    business_date = business_date or datetime.now(timezone.utc).date()
    stmt = select(
        func.max(ClockedInSnapshot.cache_refresh_time),
        func.count(func.distinct(ClockedInSnapshot.employee_account_id)),
        func.count(func.distinct(ClockedInSnapshot.location_cost_center_id)),
    ).where(
        ClockedInSnapshot.tenant_id == tenant_id,
        ClockedInSnapshot.business_date == business_date,
    )

    last_refresh, clocked_in, locations = session.execute(stmt).one()
    total_employees = session.execute(
        select(func.count()).select_from(Employee).where(
            Employee.tenant_id == tenant_id,
            Employee.is_active.is_(True),
        )
    ).scalar_one()

    return CacheStatistics(
        last_refresh_time=last_refresh,
        total_clocked_in=clocked_in or 0,
        total_active_locations=locations or 0,
        total_employees=total_employees or 0,
    )
