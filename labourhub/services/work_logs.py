"""
Daily work logs.

A work log can only be written for the server-local today, and its
earnings are fixed at write time from the rates in force that day.
"""
from datetime import datetime
from decimal import Decimal

import structlog
from sqlalchemy.orm import Session

from ..errors import ValidationError
from ..models.models import Labourer, Project, WorkLog
from . import audit
from .pay_rates import CLOSE_TRENCHING, OPEN_TRENCHING, compute_earnings, resolve_work_rates, to_money
from .store import as_uuid, get_or_404
from .time_rules import local_today, to_calendar_date


logger = structlog.get_logger(__name__)


def _require_today(value, what: str = "Work logs"):
    work_date = to_calendar_date(value)
    today = local_today()
    if work_date != today:
        raise ValidationError(f"{what} can only be recorded for today ({today.isoformat()})")
    return work_date


def _meters(value, key: str) -> Decimal:
    meters = to_money(value if value is not None else 0)
    if meters < 0:
        raise ValidationError(f"{key} must not be negative")
    return meters


def _earnings(db: Session, project: Project, labourer: Labourer, work_date, open_m, close_m) -> Decimal:
    rates = resolve_work_rates(db, project, labourer.employee_type_id, work_date)
    return compute_earnings(open_m, close_m, rates[OPEN_TRENCHING], rates[CLOSE_TRENCHING])


def create_work_log(db: Session, data: dict, user_id) -> WorkLog:
    if not data.get("work_date"):
        raise ValidationError("work_date is required")
    work_date = _require_today(data["work_date"])
    project = get_or_404(db, Project, data.get("project_id"), "Project")
    labourer = get_or_404(db, Labourer, data.get("labourer_id"), "Labourer")

    open_m = _meters(data.get("open_trenching_meters"), "open_trenching_meters")
    close_m = _meters(data.get("close_trenching_meters"), "close_trenching_meters")

    work_log = WorkLog(
        project_id=project.id,
        labourer_id=labourer.id,
        work_date=work_date,
        open_trenching_meters=open_m,
        close_trenching_meters=close_m,
        additional_items=data.get("additional_items"),
        total_earnings=_earnings(db, project, labourer, work_date, open_m, close_m),
        recorded_by=as_uuid(user_id),
        recorded_at=datetime.utcnow(),
    )
    db.add(work_log)
    db.commit()
    db.refresh(work_log)
    audit.log_create(db, "work_log", work_log.id, user_id, audit.snapshot(work_log))
    logger.info("work_log_created", work_log_id=str(work_log.id), labourer_id=str(labourer.id))
    return work_log


def update_work_log(db: Session, work_log_id, data: dict, user_id) -> WorkLog:
    """
    Edit today's log. Both the stored date and any new date must be today;
    past logs are changed through correction requests.
    """
    work_log = get_or_404(db, WorkLog, work_log_id, "Work log")
    _require_today(work_log.work_date, "Only today's work logs")
    work_date = _require_today(data["work_date"]) if data.get("work_date") else work_log.work_date

    before = audit.snapshot(work_log)
    open_m = work_log.open_trenching_meters
    close_m = work_log.close_trenching_meters
    if "open_trenching_meters" in data:
        open_m = _meters(data["open_trenching_meters"], "open_trenching_meters")
    if "close_trenching_meters" in data:
        close_m = _meters(data["close_trenching_meters"], "close_trenching_meters")
    if "additional_items" in data:
        work_log.additional_items = data["additional_items"]

    project = get_or_404(db, Project, work_log.project_id, "Project")
    labourer = get_or_404(db, Labourer, work_log.labourer_id, "Labourer")
    work_log.work_date = work_date
    work_log.open_trenching_meters = open_m
    work_log.close_trenching_meters = close_m
    work_log.total_earnings = _earnings(db, project, labourer, work_date, open_m, close_m)
    db.commit()
    db.refresh(work_log)
    audit.log_update(db, "work_log", work_log.id, user_id, before, audit.snapshot(work_log))
    return work_log


def serialize_work_log(work_log: WorkLog) -> dict:
    return {
        "id": str(work_log.id),
        "project_id": str(work_log.project_id),
        "labourer_id": str(work_log.labourer_id),
        "work_date": work_log.work_date.isoformat(),
        "open_trenching_meters": format(to_money(work_log.open_trenching_meters), "f"),
        "close_trenching_meters": format(to_money(work_log.close_trenching_meters), "f"),
        "additional_items": work_log.additional_items,
        "total_earnings": format(to_money(work_log.total_earnings), "f"),
        "recorded_by": str(work_log.recorded_by),
        "recorded_at": work_log.recorded_at.isoformat() if work_log.recorded_at else None,
    }
