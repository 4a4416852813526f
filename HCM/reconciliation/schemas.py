# HCM/reconciliation/schemas.py
"""
Inbound record schemas for the employee and cost-center upsert paths.

Records arrive from the employee-sync collaborator as dicts or as these
models; a record that fails validation is reported as an item error of
its batch.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def normalize_identifier(value):
    """Stored form of an upstream id: trimmed text, whole numbers without ".0"."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return str(int(value)) if float(value).is_integer() else str(value)
    if isinstance(value, str):
        return value.strip() or None
    return value


class RecordModel(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class EmployeeRecord(RecordModel):
    """Employee attributes as delivered by the HCM employee feed."""
    external_employee_id: str = Field(..., min_length=1)

    employee_number: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    status: Optional[str] = None
    is_active: bool = True
    hire_date: Optional[date] = None
    termination_date: Optional[date] = None

    department_id: Optional[str] = None
    department_name: Optional[str] = None
    position_id: Optional[str] = None
    position_title: Optional[str] = None
    job_title: Optional[str] = None
    location_id: Optional[str] = None
    location_name: Optional[str] = None
    cost_center_location_id: Optional[int] = None
    cost_center_location_name: Optional[str] = None
    cost_center_job_title_id: Optional[int] = None
    cost_center_job_title_name: Optional[str] = None

    pay_class: Optional[str] = None
    pay_group: Optional[str] = None
    pay_rate: Optional[Decimal] = Field(None, ge=0)

    raw_payload: Optional[Dict[str, Any]] = None

    @field_validator(
        "external_employee_id", "employee_number", "department_id", "position_id", "location_id",
        mode="before",
    )
    @classmethod
    def _identifier_to_str(cls, value):
        return normalize_identifier(value)

    @model_validator(mode="after")
    def _derive_defaults(self):
        if not self.full_name and (self.first_name or self.last_name):
            self.full_name = " ".join(p for p in (self.first_name, self.last_name) if p)
        if not self.status:
            self.status = "Active" if self.is_active else "Inactive"
        return self


class UnifiedEmployeeRecord(RecordModel):
    """Row of the secondary employee table, tagged with its upstream system."""
    data_source: str = Field(..., min_length=1)
    source_employee_id: str = Field(..., min_length=1)

    employee_number: Optional[str] = None
    payroll_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: Optional[str] = None
    department: Optional[str] = None
    location: Optional[str] = None
    is_active: bool = True

    raw_payload: Optional[Dict[str, Any]] = None

    @field_validator("source_employee_id", "employee_number", "payroll_id", mode="before")
    @classmethod
    def _identifier_to_str(cls, value):
        return normalize_identifier(value)

    @field_validator("data_source", mode="before")
    @classmethod
    def _normalize_source(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class CostCenterRecord(RecordModel):
    cost_center_id: int = Field(..., gt=0)
    name: str = Field(..., min_length=1)
    code: Optional[str] = None
    parent_id: Optional[int] = Field(None, gt=0)
    level: int = Field(1, ge=1)
    is_active: bool = True

    raw_payload: Optional[Dict[str, Any]] = None

    @field_validator("code", mode="before")
    @classmethod
    def _code_to_str(cls, value):
        return normalize_identifier(value)
