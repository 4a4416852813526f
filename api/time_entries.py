# api/time_entries.py
"""Time entry read-only endpoints."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from api.database import get_db
from api.schemas import TimeEntryListResponse, TimeEntryResponse
from HCM.queries import TimeEntryFilter, count_time_entries, query_time_entries

router = APIRouter(prefix="/tenants/{tenant_id}/time-entries", tags=["Time Entries"])


@router.get("", response_model=TimeEntryListResponse)
def list_time_entries(
    tenant_id: str,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=500, description="Items per page"),
    start_date: Optional[date] = Query(None, description="Filter by entry_date >= start_date"),
    end_date: Optional[date] = Query(None, description="Filter by entry_date <= end_date"),
    employee_id: Optional[str] = Query(None, description="Filter by employee account id"),
    approval_status: Optional[str] = Query(None, description="Filter by approval status"),
    db: Session = Depends(get_db)
):
    """
    List a tenant's time entries, most recent date first.

    - **start_date** / **end_date**: inclusive entry date range
    - **employee_id**: vendor employee account id
    - **approval_status**: e.g. APPROVED, PENDING
    """
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=400, detail="start_date must not be after end_date")

    filters = TimeEntryFilter(
        start_date=start_date,
        end_date=end_date,
        employee_account_id=employee_id,
        approval_status=approval_status,
    )
    total = count_time_entries(db, tenant_id, filters)
    entries = query_time_entries(db, tenant_id, filters, limit=page_size, offset=(page - 1) * page_size)

    return TimeEntryListResponse(
        total=total,
        page=page,
        page_size=page_size,
        time_entries=[TimeEntryResponse.model_validate(e) for e in entries]
    )
