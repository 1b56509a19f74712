"""
Projects and their manager / supervisor assignments.
"""
from datetime import datetime
from typing import List

import structlog
from sqlalchemy.orm import Session

from ..errors import ValidationError
from ..models.models import Project, User, PAYMENT_PERIOD_CADENCES, PROJECT_STATUSES
from . import audit
from .pay_rates import create_default_rates, to_money
from .store import AssignmentResult, as_uuid, get_or_404, insert_assignment
from .time_rules import local_today, to_calendar_date


logger = structlog.get_logger(__name__)

EDITABLE_FIELDS = (
    "name",
    "location",
    "budget",
    "status",
    "payment_period",
    "default_open_rate",
    "default_close_rate",
    "start_date",
    "end_date",
)
_MONEY_FIELDS = ("budget", "default_open_rate", "default_close_rate")
_DATE_FIELDS = ("start_date", "end_date")


def _clean(data: dict, partial: bool) -> dict:
    values = {k: data[k] for k in EDITABLE_FIELDS if k in data}
    if not partial or "name" in values:
        name = (values.get("name") or "").strip()
        if not name:
            raise ValidationError("name is required")
        values["name"] = name
    if values.get("status") is not None and values["status"] not in PROJECT_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(PROJECT_STATUSES)}")
    if values.get("payment_period") is not None and values["payment_period"] not in PAYMENT_PERIOD_CADENCES:
        raise ValidationError(f"payment_period must be one of {', '.join(PAYMENT_PERIOD_CADENCES)}")
    for key in _MONEY_FIELDS:
        if values.get(key) is not None:
            values[key] = to_money(values[key])
            if values[key] < 0:
                raise ValidationError(f"{key} must not be negative")
    for key in _DATE_FIELDS:
        if values.get(key) is not None:
            values[key] = to_calendar_date(values[key])
    return values


def create_project(db: Session, data: dict, user_id) -> Project:
    """
    Create a project. When default open/close rates are given, one
    per-metre rate per active employee type is created alongside,
    effective today.
    """
    values = _clean(data, partial=False)
    now = datetime.utcnow()
    project = Project(created_by=as_uuid(user_id), created_at=now, updated_at=now, **values)
    if project.status is None:
        project.status = "active"
    if project.payment_period is None:
        project.payment_period = "fortnightly"
    db.add(project)
    db.flush()
    rates = create_default_rates(db, project, user_id, local_today())
    db.commit()
    db.refresh(project)

    audit.log_create(db, "project", project.id, user_id, audit.snapshot(project), {"default_rates": len(rates)})
    logger.info("project_created", project_id=str(project.id), default_rates=len(rates))
    return project


def update_project(db: Session, project_id, data: dict, user_id) -> Project:
    project = get_or_404(db, Project, project_id, "Project")
    values = _clean(data, partial=True)
    before = audit.snapshot(project)
    for key, value in values.items():
        setattr(project, key, value)
    project.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(project)
    audit.log_update(db, "project", project.id, user_id, before, audit.snapshot(project))
    return project


def list_projects_for(db: Session, user: User) -> List[Project]:
    """Admin tier and project admins see every project; others see their assignments."""
    if user.role == "project_manager":
        projects = list(user.managed_projects)
    elif user.role == "supervisor":
        projects = list(user.supervised_projects)
    else:
        projects = db.query(Project).all()
    return sorted(projects, key=lambda p: p.created_at or datetime.min, reverse=True)


def assign_user(db: Session, kind: str, project_id, user_id, acting_user_id) -> AssignmentResult:
    """
    Assign a manager or supervisor. Assigning the same pair twice, even
    concurrently, leaves one row and reports the repeat as already assigned.
    """
    if not user_id:
        raise ValidationError("user_id is required")
    project = get_or_404(db, Project, project_id, "Project")
    user = get_or_404(db, User, user_id, "User")

    result = insert_assignment(db, kind, project.id, user.id)
    if result.created:
        audit.log_action(db, "ASSIGN", "project", project.id, acting_user_id, {"role": kind, "user_id": str(user.id)})
    return result


def serialize_project(project: Project) -> dict:
    return {
        "id": str(project.id),
        "name": project.name,
        "location": project.location,
        "budget": format(to_money(project.budget), "f") if project.budget is not None else None,
        "status": project.status,
        "payment_period": project.payment_period,
        "default_open_rate": format(to_money(project.default_open_rate), "f") if project.default_open_rate is not None else None,
        "default_close_rate": format(to_money(project.default_close_rate), "f") if project.default_close_rate is not None else None,
        "start_date": project.start_date.isoformat() if project.start_date else None,
        "end_date": project.end_date.isoformat() if project.end_date else None,
        "created_by": str(project.created_by),
        "created_at": project.created_at.isoformat() if project.created_at else None,
        "updated_at": project.updated_at.isoformat() if project.updated_at else None,
    }
