# HCM/normalizer/schemas.py
"""
Pydantic models for the vendor time-entry payload.

    {"time_entry_sets": [
        {"employee": {"account_id": 12345},
         "time_entries": [{"id": 1, "date": "2025-08-10", "type": "TIME", ...}]}]}

Fields are optional at this level; required-field rules live in
HCM.normalizer.validator so a missing field rejects one entry, not the
whole payload. Unknown vendor fields are kept (extra="allow").
"""

from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class VendorModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class VendorEmployeeRef(VendorModel):
    account_id: Optional[Union[int, str]] = None


class VendorCostCenterValue(VendorModel):
    id: Optional[int] = None


class VendorCostCenterRef(VendorModel):
    """
    Positional cost-center reference on a time entry.

    Index 0 is the location, index 1 the department. The id is normally
    nested under "value"; a flat "id" is accepted too.
    """
    index: Optional[int] = None
    id: Optional[int] = None
    value: Optional[VendorCostCenterValue] = None

    @property
    def cost_center_id(self) -> Optional[int]:
        if self.value is not None and self.value.id is not None:
            return self.value.id
        return self.id


class VendorTimeEntry(VendorModel):
    id: Optional[Union[int, str]] = None
    date: Optional[str] = None
    type: Optional[str] = None
    start_time: Optional[Any] = None
    end_time: Optional[Any] = None
    total: Optional[Any] = None
    approval_status: Optional[str] = None
    is_raw: Optional[Any] = None
    is_calc: Optional[Any] = None
    cost_centers: List[VendorCostCenterRef] = Field(default_factory=list)
    # Only present when entries arrive as a bare list instead of sets
    employee: Optional[VendorEmployeeRef] = None

    @field_validator("cost_centers", mode="before")
    @classmethod
    def _null_cost_centers(cls, value):
        return [] if value is None else value


class VendorTimeEntrySet(VendorModel):
    employee: Optional[VendorEmployeeRef] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    # Kept as raw dicts: each entry is parsed on its own so one bad entry
    # cannot fail its siblings
    time_entries: List[Any] = Field(default_factory=list)

    @field_validator("employee", mode="before")
    @classmethod
    def _unusable_employee(cls, value):
        # Reads as a missing account id, rejected per entry
        return value if value is None or isinstance(value, (dict, VendorEmployeeRef)) else None
