# api/clocked_in.py
"""Clocked-in snapshot read-only endpoints."""

from dataclasses import asdict
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.database import get_db
from api.schemas import CacheStatisticsResponse, ClockedInEmployeeResponse, ClockedInListResponse
from HCM.snapshot import get_cache_statistics, get_clocked_in

router = APIRouter(prefix="/tenants/{tenant_id}/clocked-in", tags=["Clocked In"])


@router.get("", response_model=ClockedInListResponse)
def list_clocked_in(
    tenant_id: str,
    business_date: Optional[date] = Query(None, description="Snapshot date (default: today, UTC)"),
    db: Session = Depends(get_db)
):
    """Employees clocked in as of the last refresh, latest clock-in first."""
    business_date = business_date or datetime.now(timezone.utc).date()
    rows = get_clocked_in(db, tenant_id, business_date)
    return ClockedInListResponse(
        business_date=business_date,
        total=len(rows),
        employees=[ClockedInEmployeeResponse.model_validate(row) for row in rows]
    )


@router.get("/stats", response_model=CacheStatisticsResponse)
def clocked_in_stats(
    tenant_id: str,
    business_date: Optional[date] = Query(None, description="Snapshot date (default: today, UTC)"),
    db: Session = Depends(get_db)
):
    """Snapshot statistics for health checks."""
    stats = get_cache_statistics(db, tenant_id, business_date)
    return CacheStatisticsResponse(**asdict(stats))
