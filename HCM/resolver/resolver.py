# HCM/resolver/resolver.py
"""
Identity & Cost-Center Resolver.

Employee identities come from two tables:
- employees (primary, HCM feed): matched on external_employee_id or employee_number
- unified_employees (secondary, two upstream systems): active rows matched on
  employee_number or payroll_id

Both are fetched, then merged in memory. Rank 1 is the primary table,
rank 2 a secondary row tagged with the primary system, rank 3 any other
secondary row; the lowest rank supplies the returned fields.

Lookups either return their whole map or raise; a storage failure is
never turned into a partial result.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from db.models import DATA_SOURCE_HCM, CostCenter, Employee, UnifiedEmployee

logger = logging.getLogger(__name__)

PROVENANCE_BOTH = "both"

RANK_PRIMARY = 1
RANK_SECONDARY_PRIMARY_ORIGIN = 2
RANK_SECONDARY_OTHER_ORIGIN = 3

# Bound parameters per IN clause
LOOKUP_CHUNK_SIZE = 500

Identifier = Union[int, str]


@dataclass(frozen=True)
class ResolvedEmployee:
    identifier: Identifier
    employee_id: str
    name: Optional[str]
    department: Optional[str]
    location: Optional[str]
    cost_center: Optional[int]
    provenance: str
    rank: int


# FALLBACK NAMING

def location_label(cost_center_id: Optional[Any]) -> str:
    return f"Location {cost_center_id}" if cost_center_id is not None else "Unknown Location"


def department_label(cost_center_id: Optional[Any]) -> str:
    return f"Department {cost_center_id}" if cost_center_id is not None else "Unknown Department"


def employee_label(account_id: Optional[Any]) -> str:
    return f"Employee {account_id}" if account_id is not None else "Unknown Employee"


# EMPLOYEE RESOLUTION

def _chunks(values: List[str], size: int = LOOKUP_CHUNK_SIZE):
    for i in range(0, len(values), size):
        yield values[i:i + size]


def _join_name(first: Optional[str], last: Optional[str]) -> Optional[str]:
    name = " ".join(p for p in (first, last) if p).strip()
    return name or None


def _fetch_primary(session: Session, tenant_id: str, keys: List[str]) -> List[Employee]:
    rows = []
    for chunk in _chunks(keys):
        stmt = select(Employee).where(
            Employee.tenant_id == tenant_id,
            or_(Employee.external_employee_id.in_(chunk), Employee.employee_number.in_(chunk)),
        ).order_by(Employee.id)
        rows.extend(session.execute(stmt).scalars().all())
    return rows


def _fetch_secondary(session: Session, tenant_id: str, keys: List[str]) -> List[UnifiedEmployee]:
    rows = []
    for chunk in _chunks(keys):
        stmt = select(UnifiedEmployee).where(
            UnifiedEmployee.tenant_id == tenant_id,
            UnifiedEmployee.is_active.is_(True),
            or_(UnifiedEmployee.employee_number.in_(chunk), UnifiedEmployee.payroll_id.in_(chunk)),
        ).order_by(UnifiedEmployee.id)
        rows.extend(session.execute(stmt).scalars().all())
    return rows


def _primary_candidate(row: Employee, key: str) -> Tuple[int, str, Dict[str, Any]]:
    return RANK_PRIMARY, DATA_SOURCE_HCM, {
        "employee_id": row.employee_number or key,
        "name": row.full_name or _join_name(row.first_name, row.last_name),
        "department": row.department_name,
        "location": row.location_name or row.cost_center_location_name,
        "cost_center": row.cost_center_location_id,
    }


def _secondary_candidate(row: UnifiedEmployee, key: str) -> Tuple[int, str, Dict[str, Any]]:
    rank = RANK_SECONDARY_PRIMARY_ORIGIN if row.data_source == DATA_SOURCE_HCM else RANK_SECONDARY_OTHER_ORIGIN
    return rank, row.data_source, {
        "employee_id": row.employee_number or row.payroll_id or key,
        "name": row.full_name or _join_name(row.first_name, row.last_name),
        "department": row.department,
        "location": row.location,
        "cost_center": None,
    }


def resolve_employees(
    session: Session, tenant_id: str, identifiers: Iterable[Identifier]
) -> Dict[Identifier, ResolvedEmployee]:
    """
    Resolve employee identifiers against both employee tables.

    Args:
        session: Open session
        tenant_id: Tenant to search
        identifiers: Account ids, employee numbers or payroll ids (int or str)

    Returns:
        Map keyed by the identifiers as supplied; unmatched identifiers are
        absent. Provenance is "both" when an identifier matched rows in
        both tables, otherwise the origin tag of the contributing rows.
    """
    by_key: Dict[str, List[Identifier]] = {}
    for identifier in identifiers:
        if identifier is None:
            continue
        key = str(identifier).strip()
        if key:
            by_key.setdefault(key, []).append(identifier)
    if not by_key:
        return {}

    keys = sorted(by_key)
    primary_rows = _fetch_primary(session, tenant_id, keys)
    secondary_rows = _fetch_secondary(session, tenant_id, keys)

    # key -> [(rank, tag, fields)] in fetch order; primary first
    candidates: Dict[str, List[Tuple[int, str, Dict[str, Any]]]] = {}
    matched_primary = set()
    matched_secondary = set()

    for row in primary_rows:
        for key in {row.external_employee_id, row.employee_number}:
            if key in by_key:
                candidates.setdefault(key, []).append(_primary_candidate(row, key))
                matched_primary.add(key)

    for row in secondary_rows:
        for key in {row.employee_number, row.payroll_id}:
            if key in by_key:
                candidates.setdefault(key, []).append(_secondary_candidate(row, key))
                matched_secondary.add(key)

    resolved: Dict[Identifier, ResolvedEmployee] = {}
    for key, options in candidates.items():
        rank, tag, fields = min(options, key=lambda option: option[0])
        provenance = PROVENANCE_BOTH if key in matched_primary and key in matched_secondary else tag
        for identifier in by_key[key]:
            resolved[identifier] = ResolvedEmployee(
                identifier=identifier, provenance=provenance, rank=rank, **fields
            )

    logger.debug(
        f"Resolved {len(resolved)}/{sum(len(v) for v in by_key.values())} identifiers for tenant {tenant_id} "
        f"({len(primary_rows)} primary rows, {len(secondary_rows)} secondary rows)"
    )
    return resolved


# COST CENTERS

def _valid_cost_center_ids(ids: Iterable[Any]) -> List[int]:
    valid = set()
    for value in ids:
        if value is None or isinstance(value, bool):
            continue
        try:
            number = int(value)
        except (TypeError, ValueError):
            continue
        if number > 0:
            valid.add(number)
    return sorted(valid)


def get_cost_center_names(session: Session, tenant_id: str, ids: Iterable[Any]) -> Dict[int, str]:
    """
    Batch lookup of active cost-center names.

    Null, non-numeric and non-positive ids are dropped before querying;
    ids with no active row are omitted from the result. Callers fall
    back to location_label / department_label on a miss.
    """
    valid_ids = _valid_cost_center_ids(ids)
    if not valid_ids:
        return {}

    names: Dict[int, str] = {}
    for chunk in _chunks(valid_ids):
        stmt = select(CostCenter.cost_center_id, CostCenter.name).where(
            CostCenter.tenant_id == tenant_id,
            CostCenter.is_active.is_(True),
            CostCenter.cost_center_id.in_(chunk),
        )
        for cost_center_id, name in session.execute(stmt):
            names[int(cost_center_id)] = name
    return names


def get_cost_center_path(session: Session, tenant_id: str, cost_center_id: int) -> List[CostCenter]:
    """
    Chain of cost centers from the root down to cost_center_id.

    Follows parent_id upwards; stops at a missing parent or at the first
    id seen twice, so a cyclic hierarchy still terminates. Empty when the
    cost center itself does not exist.
    """
    path = []
    seen = set()
    current_id = cost_center_id

    while current_id is not None:
        if current_id in seen:
            logger.warning(f"Cost center hierarchy cycle at {current_id} for tenant {tenant_id}")
            break
        seen.add(current_id)
        row = session.execute(
            select(CostCenter).where(
                CostCenter.tenant_id == tenant_id,
                CostCenter.cost_center_id == current_id,
            )
        ).scalar_one_or_none()
        if row is None:
            break
        path.append(row)
        current_id = row.parent_id

    path.reverse()
    return path
