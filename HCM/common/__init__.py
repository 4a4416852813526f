"""
Common utilities shared across pipeline stages.
Includes quality checks, logging, and custom exceptions.
"""

from HCM.common.quality_checks import (
    QCResult,
    QCReport,
    run_quality_checks,
    validate_post_load,
    check_row_count,
    check_nulls,
    check_duplicates,
    check_numeric_range,
    check_date_range,
)
from HCM.common.exceptions import (
    HCMError,
    PayloadFormatError,
    ValidationError,
    PersistenceItemError,
    PersistenceFatalError,
    SnapshotRefreshError,
    ClampedValueWarning,
)
from HCM.common.logging import configure_logging

__all__ = [
    # Quality Checks
    "QCResult",
    "QCReport",
    "run_quality_checks",
    "validate_post_load",
    "check_row_count",
    "check_nulls",
    "check_duplicates",
    "check_numeric_range",
    "check_date_range",
    # Exceptions
    "HCMError",
    "PayloadFormatError",
    "ValidationError",
    "PersistenceItemError",
    "PersistenceFatalError",
    "SnapshotRefreshError",
    "ClampedValueWarning",
    # Logging
    "configure_logging",
]
