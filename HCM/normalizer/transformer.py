# HCM/normalizer/transformer.py
"""
Payload Normalizer - flatten the vendor's grouped time entries into
candidates ready for reconciliation.

Each entry inherits the employee account id of its set, is validated
(id, date, type, employee), has its duration converted from milliseconds
to hours and its positional cost centers split into location and
department. Invalid entries are excluded and reported; their siblings
carry on.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import pandas as pd
from pydantic import ValidationError as PydanticValidationError

from HCM.common.exceptions import ClampedValueWarning, PayloadFormatError, ValidationError
from HCM.normalizer.schemas import VendorCostCenterRef, VendorTimeEntry, VendorTimeEntrySet
from HCM.normalizer.utils import (
    clamp_milliseconds,
    clean_identifier,
    clean_scalar,
    milliseconds_to_hours,
    parse_timestamp,
    to_decimal,
)
from HCM.normalizer.validator import EntryError, entry_ref, positional_ref, set_ref, validate_entry

logger = logging.getLogger(__name__)

LOCATION_INDEX = 0
DEPARTMENT_INDEX = 1

CANDIDATE_COLUMNS = [
    "external_entry_id", "employee_account_id", "entry_type", "entry_date",
    "start_time", "end_time", "total_hours", "approval_status",
    "is_raw", "is_calculated", "location_cost_center_id", "department_cost_center_id",
]


@dataclass
class TimeEntryCandidate:
    """A validated, normalized time entry. The only input of reconciliation."""
    external_entry_id: str
    employee_account_id: str
    entry_type: str
    entry_date: date
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    total_hours: Optional[Decimal] = None
    approval_status: Optional[str] = None
    is_raw: bool = False
    is_calculated: bool = False
    location_cost_center_id: Optional[int] = None
    department_cost_center_id: Optional[int] = None
    raw_payload: Dict[str, Any] = field(default_factory=dict)

    def to_row(self, tenant_id: str) -> Dict[str, Any]:
        """Column values for the time_entries table."""
        return {
            "tenant_id": tenant_id,
            "external_entry_id": self.external_entry_id,
            "employee_account_id": self.employee_account_id,
            "entry_type": self.entry_type,
            "entry_date": self.entry_date,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "total_hours": self.total_hours,
            "approval_status": self.approval_status,
            "is_raw": self.is_raw,
            "is_calculated": self.is_calculated,
            "location_cost_center_id": self.location_cost_center_id,
            "department_cost_center_id": self.department_cost_center_id,
            "raw_payload": self.raw_payload,
        }


@dataclass
class NormalizationResult:
    candidates: List[TimeEntryCandidate] = field(default_factory=list)
    errors: List[EntryError] = field(default_factory=list)
    warnings: List[ClampedValueWarning] = field(default_factory=list)

    @property
    def processed_count(self) -> int:
        return len(self.candidates)

    @property
    def error_count(self) -> int:
        return len(self.errors)


# FIELD EXTRACTION

def extract_cost_centers(
    cost_centers: List[Union[VendorCostCenterRef, Dict[str, Any]]]
) -> Tuple[Optional[int], Optional[int]]:
    """
    Split a positional cost-center list into (location id, department id).

    Index 0 is the location, index 1 the department; other indexes are
    ignored and a missing index yields None. The first reference for an
    index wins.
    """
    location_id = None
    department_id = None
    seen = set()

    for ref in cost_centers or []:
        if isinstance(ref, dict):
            ref = VendorCostCenterRef.model_validate(ref)
        if ref.index in seen:
            continue
        seen.add(ref.index)
        if ref.index == LOCATION_INDEX:
            location_id = ref.cost_center_id
        elif ref.index == DEPARTMENT_INDEX:
            department_id = ref.cost_center_id

    return location_id, department_id


def _convert_total(
    entry: VendorTimeEntry, ref: str, warnings: List[ClampedValueWarning]
) -> Optional[Decimal]:
    """Duration in hours; None when the vendor sent no total."""
    if clean_scalar(entry.total) is None:
        return None

    milliseconds = to_decimal(entry.total)
    if milliseconds is None:
        logger.warning(f"Entry {ref}: non-numeric total {entry.total!r}, using 0.00 hours")
        warnings.append(ClampedValueWarning(
            entry_ref=ref,
            field_name="total",
            original_value=entry.total,
            clamped_value=Decimal("0.00"),
            reason="not numeric",
        ))
        return Decimal("0.00")

    hours = milliseconds_to_hours(milliseconds)
    if clamp_milliseconds(milliseconds) != milliseconds:
        warnings.append(ClampedValueWarning(
            entry_ref=ref,
            field_name="total",
            original_value=entry.total,
            clamped_value=hours,
        ))
    return hours


def _convert_timestamp(value: Any, ref: str, field_name: str) -> Optional[datetime]:
    parsed = parse_timestamp(value)
    if parsed is None and clean_scalar(value) is not None:
        logger.warning(f"Entry {ref}: unparseable {field_name} {value!r}, stored as null")
    return parsed


def normalize_entry(
    raw: Dict[str, Any],
    employee_account_id: Optional[str],
    set_index: int,
    entry_index: int,
    warnings: List[ClampedValueWarning],
) -> TimeEntryCandidate:
    """
    Normalize one raw entry.

    Raises:
        ValidationError: if a required field is missing or invalid
    """
    if not isinstance(raw, dict):
        raise ValidationError(
            f"Entry is not an object: {type(raw).__name__}",
            entry_ref=positional_ref(set_index, entry_index),
        )

    ref = entry_ref(raw.get("id"), set_index, entry_index)
    try:
        entry = VendorTimeEntry.model_validate(raw)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Entry {ref} has invalid fields: {e.error_count()} error(s), first: {e.errors()[0]['msg']}",
            entry_ref=ref,
            original_error=e,
        ) from e

    if employee_account_id is None and entry.employee is not None:
        employee_account_id = clean_identifier(entry.employee.account_id)

    entry_date = validate_entry(entry, employee_account_id, ref)
    location_id, department_id = extract_cost_centers(entry.cost_centers)

    return TimeEntryCandidate(
        external_entry_id=clean_identifier(entry.id),
        employee_account_id=employee_account_id,
        entry_type=clean_scalar(entry.type),
        entry_date=entry_date,
        start_time=_convert_timestamp(entry.start_time, ref, "start_time"),
        end_time=_convert_timestamp(entry.end_time, ref, "end_time"),
        total_hours=_convert_total(entry, ref, warnings),
        approval_status=clean_scalar(entry.approval_status),
        is_raw=entry.is_raw is True,
        is_calculated=entry.is_calc is True,
        location_cost_center_id=location_id,
        department_cost_center_id=department_id,
        raw_payload=raw,
    )


# PAYLOAD TRAVERSAL

def _load_payload(payload: Any) -> Any:
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8")
    if isinstance(payload, str):
        try:
            return json.loads(payload)
        except json.JSONDecodeError as e:
            raise PayloadFormatError("Payload is not valid JSON", original_error=e) from e
    return payload


def iter_entry_sets(
    payload: Any, errors: Optional[List[EntryError]] = None
) -> Iterator[Tuple[int, Optional[str], List[Any]]]:
    """
    Yield (set index, employee account id, raw entries) for each entry set.

    A set that cannot be read (not an object, time_entries not an array)
    is skipped and reported in errors under a set[<index>] marker; the
    other sets carry on.

    A bare list of entries is accepted as a single set whose entries carry
    their own employee reference (account id None here).

    Raises:
        PayloadFormatError: if the payload has neither shape
    """
    payload = _load_payload(payload)

    if isinstance(payload, list):
        yield 0, None, payload
        return

    if not isinstance(payload, dict) or not isinstance(payload.get("time_entry_sets"), list):
        raise PayloadFormatError(
            "Invalid payload structure: expected time_entry_sets array or array of entries",
            details={"payload_type": type(payload).__name__},
        )

    for set_index, raw_set in enumerate(payload["time_entry_sets"]):
        try:
            entry_set = VendorTimeEntrySet.model_validate(raw_set)
        except PydanticValidationError as e:
            reason = f"Entry set {set_ref(set_index)} is unreadable: {e.errors()[0]['msg']}"
            logger.warning(f"Skipping {reason}")
            if errors is not None:
                errors.append(EntryError(set_ref(set_index), reason))
            continue
        account_id = clean_identifier(entry_set.employee.account_id) if entry_set.employee else None
        yield set_index, account_id, entry_set.time_entries


def normalize_time_entries(payload: Any) -> NormalizationResult:
    """
    Flatten and validate a vendor time-entry payload.

    Args:
        payload: {"time_entry_sets": [...]} mapping, a bare list of entries,
            or either one as a JSON string

    Returns:
        NormalizationResult with the candidates, the (entry ref, reason)
        errors of excluded entries and the clamped-value warnings

    Raises:
        PayloadFormatError: if the payload shape is not recognized
    """
    result = NormalizationResult()
    set_count = 0

    for set_index, account_id, raw_entries in iter_entry_sets(payload, result.errors):
        set_count += 1
        for entry_index, raw in enumerate(raw_entries):
            try:
                candidate = normalize_entry(raw, account_id, set_index, entry_index, result.warnings)
            except ValidationError as e:
                logger.warning(f"Skipping entry {e.entry_ref}: {e.message}")
                result.errors.append(EntryError(e.entry_ref, e.message))
                continue
            result.candidates.append(candidate)

    logger.info(
        f"Normalized {result.processed_count} entries from {set_count} sets "
        f"({result.error_count} rejected, {len(result.warnings)} clamped)"
    )
    return result


def candidates_to_frame(candidates: List[TimeEntryCandidate]) -> pd.DataFrame:
    """Tabular view of the candidates for the quality checks."""
    if not candidates:
        return pd.DataFrame(columns=CANDIDATE_COLUMNS)

    df = pd.DataFrame([{col: getattr(c, col) for col in CANDIDATE_COLUMNS} for c in candidates])
    df["total_hours"] = df["total_hours"].map(lambda v: float(v) if v is not None else None)
    return df
