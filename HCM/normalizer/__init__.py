"""
Payload Normalizer: vendor time-entry payload -> validated candidates.
"""

from HCM.normalizer.transformer import (
    TimeEntryCandidate,
    NormalizationResult,
    normalize_time_entries,
    normalize_entry,
    extract_cost_centers,
    candidates_to_frame,
)
from HCM.normalizer.utils import (
    parse_entry_date,
    parse_timestamp,
    milliseconds_to_hours,
    hours_between,
)
from HCM.normalizer.validator import EntryError
from HCM.normalizer.schemas import (
    VendorTimeEntrySet,
    VendorTimeEntry,
    VendorCostCenterRef,
)

__all__ = [
    "TimeEntryCandidate",
    "NormalizationResult",
    "normalize_time_entries",
    "normalize_entry",
    "extract_cost_centers",
    "candidates_to_frame",
    "parse_entry_date",
    "parse_timestamp",
    "milliseconds_to_hours",
    "hours_between",
    "EntryError",
    "VendorTimeEntrySet",
    "VendorTimeEntry",
    "VendorCostCenterRef",
]
