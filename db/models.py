# db/models.py
"""
Local mirror of the HCM workforce data.

Every table is partitioned by tenant_id and carries a natural key made of
the tenant and the upstream (external) identifier; that key is what the
upserts in HCM.reconciliation conflict on.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Origin tags of unified_employees rows
DATA_SOURCE_HCM = "hcm"
DATA_SOURCE_POS = "pos"


class TimeEntry(Base):
    """Time-clock entry mirrored from the HCM vendor."""

    __tablename__ = "time_entries"
    __table_args__ = (
        UniqueConstraint("tenant_id", "external_entry_id", name="uq_time_entries_tenant_entry"),
        CheckConstraint("total_hours >= 0 AND total_hours <= 24", name="ck_time_entries_total_hours"),
        Index("ix_time_entries_tenant_date", "tenant_id", "entry_date"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(64), nullable=False)
    external_entry_id = Column(String(64), nullable=False)

    employee_account_id = Column(String(64), nullable=False)
    entry_type = Column(String(50), nullable=False)
    entry_date = Column(Date, nullable=False)
    start_time = Column(DateTime(timezone=True))
    end_time = Column(DateTime(timezone=True))
    total_hours = Column(Numeric(5, 2))
    approval_status = Column(String(50))
    is_raw = Column(Boolean, nullable=False, default=False)
    is_calculated = Column(Boolean, nullable=False, default=False)
    location_cost_center_id = Column(BigInteger)
    department_cost_center_id = Column(BigInteger)

    raw_payload = Column(JSON, doc="Vendor entry exactly as received, kept for audit")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<TimeEntry(tenant={self.tenant_id}, entry={self.external_entry_id}, date={self.entry_date})>"


class Employee(Base):
    """Employee record synced from the HCM system (primary identity source)."""

    __tablename__ = "employees"
    __table_args__ = (
        UniqueConstraint("tenant_id", "external_employee_id", name="uq_employees_tenant_external"),
        Index("ix_employees_tenant_number", "tenant_id", "employee_number"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(64), nullable=False)
    external_employee_id = Column(String(64), nullable=False)

    # Identity
    employee_number = Column(String(50))
    first_name = Column(String(100))
    last_name = Column(String(100))
    full_name = Column(String(200))
    email = Column(String(255))
    status = Column(String(50), default="Active")
    is_active = Column(Boolean, nullable=False, default=True)
    hire_date = Column(Date)
    termination_date = Column(Date)

    # Organization
    department_id = Column(String(50))
    department_name = Column(String(200))
    position_id = Column(String(50))
    position_title = Column(String(200))
    job_title = Column(String(200))
    location_id = Column(String(50))
    location_name = Column(String(200))
    cost_center_location_id = Column(BigInteger)
    cost_center_location_name = Column(String(200))
    cost_center_job_title_id = Column(BigInteger)
    cost_center_job_title_name = Column(String(200))

    # Payroll-adjacent
    pay_class = Column(String(50))
    pay_group = Column(String(50))
    pay_rate = Column(Numeric(10, 4))

    raw_payload = Column(JSON)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Employee(tenant={self.tenant_id}, external_id={self.external_employee_id})>"


class UnifiedEmployee(Base):
    """
    Secondary employee table fed by two upstream systems.

    data_source tags the origin of each row ("hcm" or "pos").
    """

    __tablename__ = "unified_employees"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "data_source", "source_employee_id",
            name="uq_unified_employees_tenant_source",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(64), nullable=False)
    data_source = Column(String(20), nullable=False)
    source_employee_id = Column(String(64), nullable=False)

    employee_number = Column(String(50))
    payroll_id = Column(String(50))
    first_name = Column(String(100))
    last_name = Column(String(100))
    full_name = Column(String(200))
    department = Column(String(200))
    location = Column(String(200))
    is_active = Column(Boolean, nullable=False, default=True)

    raw_payload = Column(JSON)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<UnifiedEmployee(tenant={self.tenant_id}, source={self.data_source}, id={self.source_employee_id})>"


class CostCenter(Base):
    """Cost center (location, department, job) arranged as a tree via parent_id."""

    __tablename__ = "cost_centers"
    __table_args__ = (
        UniqueConstraint("tenant_id", "cost_center_id", name="uq_cost_centers_tenant_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(64), nullable=False)
    cost_center_id = Column(BigInteger, nullable=False)

    name = Column(String(200), nullable=False)
    code = Column(String(50))
    parent_id = Column(BigInteger)
    level = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)

    raw_payload = Column(JSON)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<CostCenter(tenant={self.tenant_id}, id={self.cost_center_id}, name={self.name})>"


class ClockedInSnapshot(Base):
    """
    One row per employee clocked in as of the last refresh.

    The rows of a (tenant_id, business_date) pair are replaced wholesale on
    every refresh; nothing here is an audit trail.
    """

    __tablename__ = "clocked_in_snapshot"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "business_date", "employee_account_id",
            name="uq_clocked_in_snapshot_tenant_date_employee",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(64), nullable=False)
    business_date = Column(Date, nullable=False)
    employee_account_id = Column(String(64), nullable=False)

    employee_number = Column(String(50))
    employee_name = Column(String(200))
    clock_in_time = Column(DateTime(timezone=True), nullable=False)
    location_cost_center_id = Column(BigInteger)
    department_cost_center_id = Column(BigInteger)
    location_name = Column(String(200))
    department_name = Column(String(200))
    time_entry_id = Column(String(64))
    hours_worked_so_far = Column(Numeric(6, 2), nullable=False, default=0)

    cache_refresh_time = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<ClockedInSnapshot(tenant={self.tenant_id}, date={self.business_date}, emp={self.employee_account_id})>"
