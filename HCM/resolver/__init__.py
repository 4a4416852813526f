"""
Identity & Cost-Center Resolver: two-source employee merge and cost-center names.
"""

from HCM.resolver.resolver import (
    ResolvedEmployee,
    PROVENANCE_BOTH,
    resolve_employees,
    get_cost_center_names,
    get_cost_center_path,
    location_label,
    department_label,
    employee_label,
)

__all__ = [
    "ResolvedEmployee",
    "PROVENANCE_BOTH",
    "resolve_employees",
    "get_cost_center_names",
    "get_cost_center_path",
    "location_label",
    "department_label",
    "employee_label",
]
