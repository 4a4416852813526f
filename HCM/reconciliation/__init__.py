"""
Reconciliation Engine: per-tenant idempotent upserts with per-item savepoints.
"""

from HCM.reconciliation.loader import (
    BatchResult,
    ItemError,
    run_batch,
    upsert_time_entries,
    upsert_employees,
    upsert_employee,
    upsert_unified_employees,
    upsert_cost_centers,
    deactivate_employees,
)
from HCM.reconciliation.schemas import EmployeeRecord, UnifiedEmployeeRecord, CostCenterRecord, normalize_identifier

__all__ = [
    "BatchResult",
    "ItemError",
    "run_batch",
    "upsert_time_entries",
    "upsert_employees",
    "upsert_employee",
    "upsert_unified_employees",
    "upsert_cost_centers",
    "deactivate_employees",
    "EmployeeRecord",
    "UnifiedEmployeeRecord",
    "CostCenterRecord",
    "normalize_identifier",
]
