"""
Custom exceptions for the HCM sync pipeline.
Provides specific error types for each stage and common error scenarios.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Dict, Any


class HCMError(Exception):
    """Base exception for all HCM sync errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class PayloadFormatError(HCMError):
    """Raised when a vendor payload does not have the expected shape at all."""


class ValidationError(HCMError):
    """A raw entry is missing a required field or has an unparseable value."""

    def __init__(
        self,
        message: str,
        entry_ref: Optional[str] = None,
        field_name: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if entry_ref:
            details["entry_ref"] = entry_ref
        if field_name:
            details["field"] = field_name
        super().__init__(message, details=details, **kwargs)
        self.entry_ref = entry_ref
        self.field_name = field_name


class PersistenceItemError(HCMError):
    """A single record of a batch could not be written; the batch goes on."""

    def __init__(
        self,
        message: str,
        item_key: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if item_key:
            details["item_key"] = item_key
        super().__init__(message, details=details, **kwargs)
        self.item_key = item_key


class PersistenceFatalError(HCMError):
    """The batch transaction itself failed and was rolled back entirely."""

    def __init__(
        self,
        message: str,
        table_name: Optional[str] = None,
        processed_before_failure: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if table_name:
            details["table_name"] = table_name
        if processed_before_failure is not None:
            details["processed_before_failure"] = processed_before_failure
        super().__init__(message, details=details, **kwargs)


class SnapshotRefreshError(HCMError):
    """A clocked-in refresh failed; the previous snapshot is left in place."""

    def __init__(
        self,
        message: str,
        tenant_id: Optional[str] = None,
        business_date: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if tenant_id:
            details["tenant_id"] = tenant_id
        if business_date:
            details["business_date"] = business_date
        super().__init__(message, details=details, **kwargs)


@dataclass(frozen=True)
class ClampedValueWarning:
    """
    A numeric vendor value fell outside its expected range and was coerced.

    Not an error: the record is kept, but the coercion is reported so it
    can be audited.
    """
    entry_ref: str
    field_name: str
    original_value: Any
    clamped_value: Decimal
    reason: str = "out of range"
