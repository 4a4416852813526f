# HCM/queries.py
"""
Read queries over the mirrored time entries for reporting callers.

Optional filters compose into SQLAlchemy expressions; no SQL is built
from strings.
"""

from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from db.models import TimeEntry


@dataclass
class TimeEntryFilter:
    """Optional filters; a None field does not constrain the query."""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    employee_account_id: Optional[Union[int, str]] = None
    approval_status: Optional[str] = None

    def conditions(self, tenant_id: str) -> list:
        conditions = [TimeEntry.tenant_id == tenant_id]
        if self.start_date is not None:
            conditions.append(TimeEntry.entry_date >= self.start_date)
        if self.end_date is not None:
            conditions.append(TimeEntry.entry_date <= self.end_date)
        if self.employee_account_id is not None:
            conditions.append(TimeEntry.employee_account_id == str(self.employee_account_id))
        if self.approval_status is not None:
            conditions.append(TimeEntry.approval_status == self.approval_status)
        return conditions


def query_time_entries(
    session: Session,
    tenant_id: str,
    filters: Optional[TimeEntryFilter] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[TimeEntry]:
    """Time entries of a tenant, newest date first, then by employee."""
    filters = filters or TimeEntryFilter()
    stmt = (
        select(TimeEntry)
        .where(*filters.conditions(tenant_id))
        .order_by(TimeEntry.entry_date.desc(), TimeEntry.employee_account_id, TimeEntry.id)
        .offset(offset)
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(session.execute(stmt).scalars().all())


def count_time_entries(session: Session, tenant_id: str, filters: Optional[TimeEntryFilter] = None) -> int:
    filters = filters or TimeEntryFilter()
    stmt = select(func.count()).select_from(TimeEntry).where(*filters.conditions(tenant_id))
    return session.execute(stmt).scalar_one()
