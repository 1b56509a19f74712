import uuid
from datetime import datetime, date
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Column,
    String,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Table,
    Integer,
    Numeric,
    JSON,
    Text,
    Uuid,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)


USER_ROLES = ("super_admin", "admin", "project_manager", "supervisor", "project_admin", "labourer")
PROJECT_STATUSES = ("active", "completed", "on_hold")
PAYMENT_PERIOD_CADENCES = ("fortnightly", "monthly")
RATE_CATEGORIES = ("open_trenching", "close_trenching", "custom")
RATE_UNITS = ("per_meter", "per_day", "fixed")
ACCOUNT_TYPES = ("cheque", "savings")
PERIOD_STATUSES = ("open", "submitted", "approved", "rejected", "paid")
CORRECTION_STATUSES = ("pending", "approved", "rejected")
CORRECTION_ENTITY_TYPES = ("work_log", "labourer", "project", "payment_period")


# Association tables for many-to-many Project<->User; the composite primary key
# is what turns a concurrent duplicate assignment into an IntegrityError
project_managers = Table(
    "project_managers",
    Base.metadata,
    Column("project_id", Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("assigned_at", DateTime(timezone=True), default=datetime.utcnow),
)

project_supervisors = Table(
    "project_supervisors",
    Base.metadata,
    Column("project_id", Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("assigned_at", DateTime(timezone=True), default=datetime.utcnow),
)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = uuid_pk()
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, index=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(100))
    last_name: Mapped[Optional[str]] = mapped_column(String(100))
    profile_image_url: Mapped[Optional[str]] = mapped_column(String(500))
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="labourer")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    managed_projects = relationship("Project", secondary=project_managers, back_populates="managers")
    supervised_projects = relationship("Project", secondary=project_supervisors, back_populates="supervisors")

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class EmployeeType(Base):
    __tablename__ = "employee_types"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(500))
    budget: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="active")  # active|completed|on_hold
    payment_period: Mapped[str] = mapped_column(String(50), nullable=False, default="fortnightly")  # fortnightly|monthly
    default_open_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    default_close_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    start_date: Mapped[Optional[date]] = mapped_column(Date)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    managers = relationship("User", secondary=project_managers, back_populates="managed_projects")
    supervisors = relationship("User", secondary=project_supervisors, back_populates="supervised_projects")


class PayRate(Base):
    """Time-versioned rate; rows are appended, never edited"""
    __tablename__ = "pay_rates"

    id: Mapped[uuid.UUID] = uuid_pk()
    project_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_type_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("employee_types.id"), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)  # open_trenching|close_trenching|custom
    category_name: Mapped[Optional[str]] = mapped_column(String(255))  # For custom categories
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    unit: Mapped[str] = mapped_column(String(50), nullable=False, default="per_meter")  # per_meter|per_day|fixed
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    __table_args__ = (
        Index('idx_pay_rates_lookup', 'project_id', 'employee_type_id', 'category', 'effective_date'),
    )


class Labourer(Base):
    __tablename__ = "labourers"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("users.id"))
    # Unassigned labourers (NULL) form the available pool
    project_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="SET NULL"), index=True)
    employee_type_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("employee_types.id"), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    surname: Mapped[str] = mapped_column(String(100), nullable=False)
    id_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)  # SA ID or passport
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date)
    gender: Mapped[Optional[str]] = mapped_column(String(20))
    contact_number: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    physical_address: Mapped[Optional[str]] = mapped_column(Text)
    profile_photo_path: Mapped[Optional[str]] = mapped_column(String(500))
    id_document_path: Mapped[Optional[str]] = mapped_column(String(500))
    # Banking details
    bank_name: Mapped[str] = mapped_column(String(100), nullable=False)
    account_number: Mapped[str] = mapped_column(String(50), nullable=False)
    account_type: Mapped[str] = mapped_column(String(20), nullable=False)  # cheque|savings
    branch_code: Mapped[str] = mapped_column(String(20), nullable=False)
    banking_proof_path: Mapped[Optional[str]] = mapped_column(String(500))
    password_hash: Mapped[Optional[str]] = mapped_column(String(255))
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    project = relationship("Project")
    employee_type = relationship("EmployeeType")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.surname}".strip()


class WorkLog(Base):
    """One labourer's work for one calendar day on one project"""
    __tablename__ = "work_logs"

    id: Mapped[uuid.UUID] = uuid_pk()
    project_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    labourer_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("labourers.id", ondelete="CASCADE"), nullable=False)
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    open_trenching_meters: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    close_trenching_meters: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    additional_items: Mapped[Optional[list]] = mapped_column(JSON)
    # Computed once at write time; reports sum this, never rate x metres
    total_earnings: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    recorded_by: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    __table_args__ = (
        Index('idx_work_logs_date', 'work_date'),
        Index('idx_work_logs_labourer', 'labourer_id'),
        Index('idx_work_logs_project_date', 'project_id', 'work_date'),
    )


class PaymentPeriod(Base):
    __tablename__ = "payment_periods"

    id: Mapped[uuid.UUID] = uuid_pk()
    project_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="open")  # open|submitted|approved|rejected|paid
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    submitted_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("users.id"))
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("users.id"))
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    __table_args__ = (
        Index('idx_payment_periods_dates', 'start_date', 'end_date'),
    )


class PaymentPeriodEntry(Base):
    """Per-labourer snapshot materialized when a period is submitted"""
    __tablename__ = "payment_period_entries"

    id: Mapped[uuid.UUID] = uuid_pk()
    period_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("payment_periods.id", ondelete="CASCADE"), nullable=False, index=True)
    labourer_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("labourers.id", ondelete="CASCADE"), nullable=False)
    days_worked: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    open_meters: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    close_meters: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    total_meters: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    total_earnings: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('period_id', 'labourer_id', name='uq_period_labourer'),
    )


class CorrectionRequest(Base):
    """Proposed edit to a historical record; approval does not apply it"""
    __tablename__ = "correction_requests"

    id: Mapped[uuid.UUID] = uuid_pk()
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)  # work_log|labourer|project|payment_period
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    field_name: Mapped[str] = mapped_column(String(100), nullable=False)
    old_value: Mapped[Optional[str]] = mapped_column(Text)
    new_value: Mapped[str] = mapped_column(Text, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")  # pending|approved|rejected
    requested_by: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("users.id"))
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    review_notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        Index('idx_correction_requests_status', 'status'),
        Index('idx_correction_requests_entity', 'entity_type', 'entity_id'),
    )


class AuditLog(Base):
    """Append-only audit log; user name/email are snapshots taken at write time"""
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = uuid_pk()
    action: Mapped[str] = mapped_column(String(20), nullable=False)  # CREATE|UPDATE|DELETE|ASSIGN|SUBMIT|APPROVE|REJECT
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    user_name: Mapped[Optional[str]] = mapped_column(String(255))
    user_email: Mapped[Optional[str]] = mapped_column(String(255))
    changes: Mapped[Optional[dict]] = mapped_column(JSON)
    # "metadata" is reserved on declarative classes
    meta: Mapped[Optional[dict]] = mapped_column("metadata", JSON)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_audit_entity', 'entity_type', 'entity_id'),
        Index('idx_audit_user', 'user_id', 'timestamp'),
    )
