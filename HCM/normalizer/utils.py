# HCM/normalizer/utils.py
"""
Normalizer Utilities - parsing and unit conversion for vendor fields.
Dates, timestamps, durations and placeholder-null handling.
"""

import logging
import re
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

import pandas as pd

logger = logging.getLogger(__name__)

# String values the vendor uses to mean "no value"
NULL_PLACEHOLDERS = {
    '', '[NULL]', '[null]', 'NULL', 'null', 'None', 'none', 'undefined', 'N/A', 'n/a',
}

# Leading calendar-date component of a date or datetime string
DATE_PREFIX_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?=$|[T ])")

MILLISECONDS_PER_HOUR = Decimal(60 * 60 * 1000)
MAX_ENTRY_MILLISECONDS = Decimal(24) * MILLISECONDS_PER_HOUR
HOURS_QUANTUM = Decimal("0.01")


def clean_scalar(value: Any) -> Any:
    """
    Return None for null-like vendor values, the stripped value otherwise.

    Strings are stripped of whitespace and surrounding quotes; non-string
    values pass through untouched.
    """
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip().strip('"').strip("'").strip()
        return None if stripped in NULL_PLACEHOLDERS else stripped
    return value


def clean_identifier(value: Any) -> Optional[str]:
    """Normalize an external identifier (int or str) to its string form."""
    value = clean_scalar(value)
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def parse_entry_date(value: Any) -> date:
    """
    Parse a vendor date or datetime string to its calendar date.

    Only the leading YYYY-MM-DD is used; the time of day and any UTC offset
    are dropped so re-ingesting the same business day always lands on the
    same date.

        "2025-08-10"                    -> date(2025, 8, 10)
        "2025-08-10T23:49:48.000-06:00" -> date(2025, 8, 10)

    Raises:
        ValueError: if the string does not start with a valid YYYY-MM-DD
    """
    if not isinstance(value, str):
        raise ValueError(f"Invalid date format: {value!r}")

    match = DATE_PREFIX_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid date format: {value!r}")

    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError as e:
        raise ValueError(f"Invalid date values in {value!r}: {e}") from e


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp (with or without offset) to an aware UTC datetime.

    Naive values are taken as UTC. Returns None for empty or unparseable input.
    """
    value = clean_scalar(value)
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)

    parsed = pd.to_datetime(value, utc=True, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


def to_decimal(value: Any) -> Optional[Decimal]:
    """Convert a numeric vendor value to Decimal; None if it is not a finite number."""
    value = clean_scalar(value)
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


def clamp_milliseconds(milliseconds: Decimal) -> Decimal:
    """Clamp a duration to [0, 24 hours] in milliseconds."""
    return max(Decimal(0), min(milliseconds, MAX_ENTRY_MILLISECONDS))


def milliseconds_to_hours(milliseconds: Any) -> Decimal:
    """
    Convert an elapsed duration in milliseconds to hours, rounded to 2 places.

    Values outside [0, 24h] are clamped rather than rejected, and the
    clamping is logged.

        15912000 -> Decimal("4.42")
        -500     -> Decimal("0.00")

    Raises:
        ValueError: if the value is not numeric
    """
    ms = to_decimal(milliseconds)
    if ms is None:
        raise ValueError(f"Duration is not numeric: {milliseconds!r}")

    clamped = clamp_milliseconds(ms)
    if clamped != ms:
        logger.warning(f"Duration out of range (0-24 hours): {ms} ms, clamped to {clamped} ms")

    return (clamped / MILLISECONDS_PER_HOUR).quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)


def hours_between(start: datetime, end: datetime) -> Decimal:
    """Elapsed hours from start to end, rounded to 2 places (negative if end < start)."""
    seconds = Decimal(str((end - start).total_seconds()))
    return (seconds / Decimal(3600)).quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
