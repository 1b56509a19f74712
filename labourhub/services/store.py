"""
Query operations the payroll core needs from the data store.
Business logic depends on these functions, not on ad-hoc queries.
"""
import uuid
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

import structlog
from sqlalchemy import insert, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import NotFoundError
from ..models.models import (
    CorrectionRequest,
    Labourer,
    PaymentPeriod,
    PaymentPeriodEntry,
    PayRate,
    Project,
    User,
    WorkLog,
    project_managers,
    project_supervisors,
)


logger = structlog.get_logger(__name__)


def as_uuid(value, entity: str = "Record") -> uuid.UUID:
    """Parse an id, treating malformed ids as missing records."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        raise NotFoundError(entity, value)


def get_or_404(db: Session, model, entity_id, entity: str):
    obj = db.get(model, as_uuid(entity_id, entity))
    if obj is None:
        raise NotFoundError(entity, entity_id)
    return obj


# Work logs

def get_work_logs_by_date_range(db: Session, project_id, start_date: date, end_date: date, labourer_id=None) -> List[WorkLog]:
    query = db.query(WorkLog).filter(
        WorkLog.project_id == as_uuid(project_id, "Project"),
        WorkLog.work_date >= start_date,
        WorkLog.work_date <= end_date,
    )
    if labourer_id:
        query = query.filter(WorkLog.labourer_id == as_uuid(labourer_id, "Labourer"))
    return query.order_by(WorkLog.work_date.desc()).all()


def get_work_logs(db: Session, project_id, start_date: Optional[date] = None, end_date: Optional[date] = None) -> List[WorkLog]:
    if start_date and end_date:
        return get_work_logs_by_date_range(db, project_id, start_date, end_date)
    return (
        db.query(WorkLog)
        .filter(WorkLog.project_id == as_uuid(project_id, "Project"))
        .order_by(WorkLog.work_date.desc())
        .all()
    )


def get_work_logs_by_labourer(db: Session, labourer_id) -> List[WorkLog]:
    return (
        db.query(WorkLog)
        .filter(WorkLog.labourer_id == as_uuid(labourer_id, "Labourer"))
        .order_by(WorkLog.work_date.desc())
        .all()
    )


# Labourers

def get_labourers(db: Session, project_id) -> List[Labourer]:
    return (
        db.query(Labourer)
        .filter(Labourer.project_id == as_uuid(project_id, "Project"))
        .order_by(Labourer.surname, Labourer.first_name)
        .all()
    )


def get_labourers_by_ids(db: Session, labourer_ids) -> List[Labourer]:
    ids = {as_uuid(i, "Labourer") for i in labourer_ids}
    if not ids:
        return []
    return db.query(Labourer).filter(Labourer.id.in_(ids)).all()


def get_available_labourers(db: Session) -> List[Labourer]:
    """Labourers with no project, or whose project is no longer active."""
    return (
        db.query(Labourer)
        .outerjoin(Project, Labourer.project_id == Project.id)
        .filter(or_(Project.id.is_(None), Project.status != "active"))
        .order_by(Labourer.surname, Labourer.first_name)
        .all()
    )


def get_labourer_by_phone_or_email(db: Session, identifier: str) -> Optional[Labourer]:
    identifier = (identifier or "").strip()
    if not identifier:
        return None
    return (
        db.query(Labourer)
        .filter(or_(Labourer.contact_number == identifier, Labourer.email == identifier))
        .first()
    )


# Pay rates

def get_pay_rates(db: Session, project_id) -> List[PayRate]:
    return (
        db.query(PayRate)
        .filter(PayRate.project_id == as_uuid(project_id, "Project"))
        .order_by(PayRate.effective_date.desc(), PayRate.created_at.desc())
        .all()
    )


# Payment periods

def get_payment_periods(db: Session, project_id) -> List[PaymentPeriod]:
    return (
        db.query(PaymentPeriod)
        .filter(PaymentPeriod.project_id == as_uuid(project_id, "Project"))
        .order_by(PaymentPeriod.start_date.desc())
        .all()
    )


def get_payment_period(db: Session, period_id) -> Optional[PaymentPeriod]:
    return db.get(PaymentPeriod, as_uuid(period_id, "Payment period"))


def get_payment_period_entries(db: Session, period_id) -> List[PaymentPeriodEntry]:
    return (
        db.query(PaymentPeriodEntry)
        .filter(PaymentPeriodEntry.period_id == as_uuid(period_id, "Payment period"))
        .all()
    )


def create_payment_period_entry(db: Session, **values) -> PaymentPeriodEntry:
    """Stage an entry; the caller owns the transaction."""
    entry = PaymentPeriodEntry(**values)
    db.add(entry)
    return entry


# Correction requests

def get_correction_requests(db: Session, status: Optional[str] = None) -> List[CorrectionRequest]:
    query = db.query(CorrectionRequest)
    if status:
        query = query.filter(CorrectionRequest.status == status)
    return query.order_by(CorrectionRequest.requested_at.desc()).all()


def get_correction_request(db: Session, request_id) -> Optional[CorrectionRequest]:
    return db.get(CorrectionRequest, as_uuid(request_id, "Correction request"))


def create_correction_request(db: Session, **values) -> CorrectionRequest:
    request = CorrectionRequest(**values)
    db.add(request)
    db.commit()
    db.refresh(request)
    return request


def update_correction_request(db: Session, request: CorrectionRequest, **values) -> CorrectionRequest:
    for key, value in values.items():
        setattr(request, key, value)
    db.commit()
    db.refresh(request)
    return request


# Manager / supervisor assignment

ASSIGNMENT_TABLES = {
    "manager": project_managers,
    "supervisor": project_supervisors,
}


@dataclass(frozen=True)
class AssignmentResult:
    created: bool

    @property
    def already_exists(self) -> bool:
        return not self.created


def insert_assignment(db: Session, kind: str, project_id: uuid.UUID, user_id: uuid.UUID) -> AssignmentResult:
    """
    Insert-or-detect-conflict for a project assignment row.

    A duplicate (including one inserted concurrently by another request)
    comes back as ``AssignmentResult(created=False)`` instead of an error.
    """
    table = ASSIGNMENT_TABLES[kind]
    try:
        db.execute(insert(table).values(project_id=project_id, user_id=user_id))
        db.commit()
        return AssignmentResult(created=True)
    except IntegrityError:
        db.rollback()
        logger.info("assignment_already_exists", kind=kind, project_id=str(project_id), user_id=str(user_id))
        return AssignmentResult(created=False)


def get_assigned_users(db: Session, kind: str, project_id) -> List[User]:
    table = ASSIGNMENT_TABLES[kind]
    return (
        db.query(User)
        .join(table, table.c.user_id == User.id)
        .filter(table.c.project_id == as_uuid(project_id, "Project"))
        .order_by(User.first_name, User.last_name)
        .all()
    )
