# HCM/normalizer/validator.py
"""
Entry-level validation for vendor time entries.

An entry needs an id, a date, a type, and an employee account id
inherited from its set. A failed check raises ValidationError; the
transformer turns it into an (entry ref, reason) pair and moves on to
the next entry.
"""

import logging
from datetime import date
from typing import NamedTuple, Optional

from HCM.common.exceptions import ValidationError
from HCM.normalizer.schemas import VendorTimeEntry
from HCM.normalizer.utils import clean_identifier, clean_scalar, parse_entry_date

logger = logging.getLogger(__name__)


class EntryError(NamedTuple):
    """A raw entry excluded from the candidates, and why."""
    entry_ref: str
    reason: str


def positional_ref(set_index: int, entry_index: int) -> str:
    """Marker for an entry that has no usable id of its own."""
    return f"entry[{set_index}:{entry_index}]"


def set_ref(set_index: int) -> str:
    """Marker for an entry set that could not be read."""
    return f"set[{set_index}]"


def entry_ref(raw_id, set_index: int, entry_index: int) -> str:
    """The entry's own id when present, its position in the payload otherwise."""
    return clean_identifier(raw_id) or positional_ref(set_index, entry_index)


def validate_entry(entry: VendorTimeEntry, employee_account_id: Optional[str], ref: str) -> date:
    """
    Check the required fields of one entry.

    Returns:
        The parsed entry date

    Raises:
        ValidationError: on the first missing or unparseable required field
    """
    if clean_identifier(entry.id) is None:
        raise ValidationError("Entry missing required field 'id'", entry_ref=ref, field_name="id")

    raw_date = clean_scalar(entry.date)
    if raw_date is None:
        raise ValidationError(f"Entry {ref} missing required field 'date'", entry_ref=ref, field_name="date")

    if clean_scalar(entry.type) is None:
        raise ValidationError(f"Entry {ref} missing required field 'type'", entry_ref=ref, field_name="type")

    if employee_account_id is None:
        raise ValidationError(
            f"Entry {ref} missing required employee.account_id",
            entry_ref=ref,
            field_name="employee.account_id",
        )

    try:
        return parse_entry_date(raw_date)
    except ValueError as e:
        raise ValidationError(str(e), entry_ref=ref, field_name="date", original_error=e) from e
