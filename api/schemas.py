"""Pydantic schemas for API responses."""

from datetime import date, datetime
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


# TIME ENTRY SCHEMAS

class TimeEntryResponse(BaseModel):
    """Schema for a mirrored time entry."""
    model_config = ConfigDict(from_attributes=True)

    external_entry_id: str
    employee_account_id: str
    entry_type: str
    entry_date: date
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    total_hours: Optional[float] = None
    approval_status: Optional[str] = None
    is_raw: bool = False
    is_calculated: bool = False
    location_cost_center_id: Optional[int] = None
    department_cost_center_id: Optional[int] = None
    updated_at: Optional[datetime] = None


class TimeEntryListResponse(BaseModel):
    """Paginated list of time entries."""
    total: int
    page: int
    page_size: int
    time_entries: List[TimeEntryResponse]


# CLOCKED-IN SCHEMAS

class ClockedInEmployeeResponse(BaseModel):
    """Schema for one row of the clocked-in snapshot."""
    model_config = ConfigDict(from_attributes=True)

    employee_account_id: str
    employee_number: Optional[str] = None
    employee_name: Optional[str] = None
    clock_in_time: datetime
    location_cost_center_id: Optional[int] = None
    department_cost_center_id: Optional[int] = None
    location_name: Optional[str] = None
    department_name: Optional[str] = None
    time_entry_id: Optional[str] = None
    hours_worked_so_far: float
    cache_refresh_time: datetime


class ClockedInListResponse(BaseModel):
    business_date: date
    total: int
    employees: List[ClockedInEmployeeResponse]


class CacheStatisticsResponse(BaseModel):
    """Snapshot health; refresh-history fields are null until tracked."""
    model_config = ConfigDict(from_attributes=True)

    last_refresh_time: Optional[datetime] = None
    total_clocked_in: int
    total_active_locations: int
    total_employees: int
    avg_refresh_duration: Optional[float] = None
    last_refresh_duration: Optional[float] = None
    success_rate: Optional[float] = None
    not_implemented: Tuple[str, ...] = Field(
        default=(), description="Fields that are always null because they are not tracked yet"
    )
