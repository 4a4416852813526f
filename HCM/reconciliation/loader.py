# HCM/reconciliation/loader.py
"""
Reconciliation Engine - idempotent upserts into the tenant mirror tables.

Every batch runs in one transaction and every item in its own SAVEPOINT:
- an item that fails (constraint, timeout, invalid record) is rolled back
  to its savepoint, recorded in BatchResult.errors, and the batch goes on
- a failure outside item scope (lost connection, failed commit) rolls the
  whole batch back and raises PersistenceFatalError

The batch is committed even when some items failed, so the stored result
can be a subset of the input. BatchResult is the authoritative account of
what was written.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, NamedTuple, Sequence, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import to_jsonable_python
from sqlalchemy import update
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session

from HCM.common.exceptions import PersistenceFatalError, PersistenceItemError
from HCM.config import get_settings
from HCM.normalizer.transformer import TimeEntryCandidate
from HCM.reconciliation.schemas import CostCenterRecord, EmployeeRecord, UnifiedEmployeeRecord
from db.db_utils import upsert_record
from db.models import CostCenter, Employee, TimeEntry, UnifiedEmployee

logger = logging.getLogger(__name__)

# Errors that fail one item but not its batch
ITEM_ERRORS = (SQLAlchemyError, PydanticValidationError, PersistenceItemError, ValueError, TypeError)


class ItemError(NamedTuple):
    """A batch item that was not persisted, and why."""
    item_key: str
    reason: str


@dataclass
class BatchResult:
    table_name: str
    processed: int = 0
    errors: List[ItemError] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def total(self) -> int:
        return self.processed + self.error_count


# BATCH MACHINERY

def _is_connection_loss(error: Exception) -> bool:
    return isinstance(error, DBAPIError) and error.connection_invalidated


def _describe(error: Exception) -> str:
    if isinstance(error, DBAPIError) and error.orig is not None:
        return f"{type(error).__name__}: {error.orig}"
    if isinstance(error, PydanticValidationError):
        first = error.errors()[0]
        location = ".".join(str(p) for p in first.get("loc", ()))
        return f"invalid record: {location} {first.get('msg')}".strip()
    return f"{type(error).__name__}: {error}"


def _item_key(item: Any, key_field: str, position: int) -> str:
    if isinstance(item, Mapping):
        value = item.get(key_field)
    else:
        value = getattr(item, key_field, None)
    if value is None or value == "":
        return f"item[{position}]"
    return str(value)


def run_batch(
    session: Session,
    table_name: str,
    items: Sequence[Any],
    key_field: str,
    write_item: Callable[[Any], None],
) -> BatchResult:
    """
    Write items one by one, each inside its own SAVEPOINT, then commit.

    Args:
        session: Open session; the batch transaction is begun on it
        table_name: Target table, for logs and errors
        items: Items in processing order
        key_field: Attribute or key naming the item in BatchResult.errors
        write_item: Persists one item; any ITEM_ERRORS it raises fail only that item

    Raises:
        PersistenceFatalError: the transaction could not go on; nothing was kept
    """
    result = BatchResult(table_name=table_name)
    log_interval = get_settings().batch_log_interval
    items = list(items)

    logger.info(f"Upserting {len(items)} items into {table_name}")

    try:
        for position, item in enumerate(items):
            key = _item_key(item, key_field, position)
            try:
                with session.begin_nested():
                    write_item(item)
            except ITEM_ERRORS as e:
                if _is_connection_loss(e):
                    raise
                reason = _describe(e)
                logger.error(f"{table_name}: item {key} failed: {reason}")
                result.errors.append(ItemError(key, reason))
                continue

            result.processed += 1
            if log_interval and result.processed % log_interval == 0:
                logger.info(f"{table_name}: {result.processed}/{len(items)} items upserted")

        session.commit()

    except Exception as e:
        session.rollback()
        logger.error(f"{table_name}: batch rolled back after {result.processed} items: {e}")
        raise PersistenceFatalError(
            f"Batch upsert into {table_name} failed and was rolled back",
            table_name=table_name,
            processed_before_failure=result.processed,
            original_error=e,
        ) from e

    logger.info(f"{table_name}: {result.processed} upserted, {result.error_count} failed")
    return result


def _as_record(model_class, item: Union[BaseModel, Mapping[str, Any]]):
    if isinstance(item, model_class):
        return item
    if isinstance(item, BaseModel):
        item = item.model_dump()
    elif isinstance(item, Mapping) and item.get("raw_payload") is None:
        # Inbound record kept verbatim for audit
        item = {**item, "raw_payload": to_jsonable_python(dict(item))}
    return model_class.model_validate(item)


def _record_values(record: BaseModel, tenant_id: str) -> Dict[str, Any]:
    values = record.model_dump()
    values["tenant_id"] = tenant_id
    if values.get("raw_payload") is None:
        # Leaves a stored payload in place on update
        values.pop("raw_payload", None)
    return values


# TIME ENTRIES

def upsert_time_entries(
    session: Session, tenant_id: str, candidates: Iterable[TimeEntryCandidate]
) -> BatchResult:
    """
    Upsert normalized time entries keyed on (tenant_id, external_entry_id).

    Re-ingesting an entry overwrites every field with the latest values.
    """
    def write(candidate: TimeEntryCandidate) -> None:
        if not isinstance(candidate, TimeEntryCandidate):
            raise PersistenceItemError(f"Not a time entry candidate: {type(candidate).__name__}")
        upsert_record(
            session,
            TimeEntry,
            candidate.to_row(tenant_id),
            key_cols=("tenant_id", "external_entry_id"),
        )

    return run_batch(session, TimeEntry.__tablename__, list(candidates), "external_entry_id", write)


# EMPLOYEES

def upsert_employees(
    session: Session, tenant_id: str, records: Iterable[Union[EmployeeRecord, Dict[str, Any]]]
) -> BatchResult:
    """Upsert HCM employee records keyed on (tenant_id, external_employee_id)."""
    def write(item) -> None:
        record = _as_record(EmployeeRecord, item)
        upsert_record(
            session,
            Employee,
            _record_values(record, tenant_id),
            key_cols=("tenant_id", "external_employee_id"),
        )

    return run_batch(session, Employee.__tablename__, list(records), "external_employee_id", write)


def upsert_employee(
    session: Session, tenant_id: str, record: Union[EmployeeRecord, Dict[str, Any]]
) -> BatchResult:
    """Single-record form of upsert_employees."""
    return upsert_employees(session, tenant_id, [record])


def upsert_unified_employees(
    session: Session, tenant_id: str, records: Iterable[Union[UnifiedEmployeeRecord, Dict[str, Any]]]
) -> BatchResult:
    """Upsert secondary-table rows keyed on (tenant_id, data_source, source_employee_id)."""
    def write(item) -> None:
        record = _as_record(UnifiedEmployeeRecord, item)
        upsert_record(
            session,
            UnifiedEmployee,
            _record_values(record, tenant_id),
            key_cols=("tenant_id", "data_source", "source_employee_id"),
        )

    return run_batch(session, UnifiedEmployee.__tablename__, list(records), "source_employee_id", write)


def deactivate_employees(session: Session, tenant_id: str, external_ids: Iterable[Any]) -> int:
    """
    Soft-deactivate employees that left the HCM feed.

    Rows are kept; is_active is cleared and status set to "Inactive".

    Returns:
        Number of employees that were active and are now inactive
    """
    ids = sorted({str(i) for i in external_ids if i is not None and str(i) != ""})
    if not ids:
        return 0

    stmt = (
        update(Employee)
        .where(
            Employee.tenant_id == tenant_id,
            Employee.external_employee_id.in_(ids),
            Employee.is_active.is_(True),
        )
        .values(is_active=False, status="Inactive", updated_at=datetime.now(timezone.utc))
    )
    try:
        count = session.execute(stmt).rowcount
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceFatalError(
            "Employee deactivation failed and was rolled back",
            table_name=Employee.__tablename__,
            original_error=e,
        ) from e

    logger.info(f"Deactivated {count} employees for tenant {tenant_id}")
    return count


# COST CENTERS

def upsert_cost_centers(
    session: Session, tenant_id: str, records: Iterable[Union[CostCenterRecord, Dict[str, Any]]]
) -> BatchResult:
    """Upsert cost centers keyed on (tenant_id, cost_center_id)."""
    def write(item) -> None:
        record = _as_record(CostCenterRecord, item)
        upsert_record(
            session,
            CostCenter,
            _record_values(record, tenant_id),
            key_cols=("tenant_id", "cost_center_id"),
        )

    return run_batch(session, CostCenter.__tablename__, list(records), "cost_center_id", write)
