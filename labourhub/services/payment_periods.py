"""
Payment period lifecycle: open -> submitted -> approved -> paid.

Submission materializes one PaymentPeriodEntry per labourer from the work
logs in range. Materialization runs in a single transaction and is
idempotent: a period that already has entries is never materialized again.
"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Tuple

import structlog
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models.models import Labourer, PaymentPeriod, PaymentPeriodEntry, Project, WorkLog, PERIOD_STATUSES
from . import audit
from .aggregation import aggregate_by_labourer
from .pay_rates import to_money
from .store import (
    as_uuid,
    create_payment_period_entry,
    get_or_404,
    get_payment_period,
    get_payment_period_entries,
    get_work_logs_by_date_range,
)
from .time_rules import to_calendar_date


logger = structlog.get_logger(__name__)

# Allowed moves besides rewriting the current status
TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    "open": ("submitted",),
    "submitted": ("approved", "rejected"),
    "approved": ("paid",),
    "rejected": ("submitted",),
    "paid": (),
}

_STATUS_ACTIONS = {
    "submitted": "SUBMIT",
    "approved": "APPROVE",
    "rejected": "REJECT",
}


def can_transition(current: str, target: str) -> bool:
    if current == target:
        return True
    return target in TRANSITIONS.get(current, ())


def _sum_work_log_earnings(db: Session, project_id, start_date, end_date) -> Decimal:
    total = (
        db.query(func.coalesce(func.sum(WorkLog.total_earnings), 0))
        .filter(
            WorkLog.project_id == project_id,
            WorkLog.work_date >= start_date,
            WorkLog.work_date <= end_date,
        )
        .scalar()
    )
    return to_money(total)


def _sum_entries(entries: List[PaymentPeriodEntry]) -> Decimal:
    return to_money(sum((to_money(e.total_earnings) for e in entries), Decimal("0")))


def create_payment_period(db: Session, project_id, start_date, end_date, user_id) -> PaymentPeriod:
    """
    Open a period. ``total_amount`` is a preview of the work log earnings
    already in range; entries are only materialized on submission.
    """
    if not start_date or not end_date:
        raise ValidationError("start_date and end_date are required")
    start = to_calendar_date(start_date)
    end = to_calendar_date(end_date)
    if start > end:
        raise ValidationError("start_date must not be after end_date")
    project = get_or_404(db, Project, project_id, "Project")

    period = PaymentPeriod(
        project_id=project.id,
        start_date=start,
        end_date=end,
        status="open",
        total_amount=_sum_work_log_earnings(db, project.id, start, end),
    )
    db.add(period)
    db.commit()
    db.refresh(period)

    audit.log_create(db, "payment_period", period.id, user_id, audit.snapshot(period))
    logger.info("payment_period_created", period_id=str(period.id), project_id=str(project.id))
    return period


def materialize_entries(db: Session, period: PaymentPeriod) -> Tuple[List[PaymentPeriodEntry], bool]:
    """
    Ensure the period has its per-labourer entries.

    Returns the entries and whether this call created them. Existing entries
    are returned untouched; a concurrent materialization that wins the
    unique (period, labourer) race is treated the same way.
    """
    existing = get_payment_period_entries(db, period.id)
    if existing:
        return existing, False

    work_logs = get_work_logs_by_date_range(db, period.project_id, period.start_date, period.end_date)
    try:
        created = []
        for acc in aggregate_by_labourer(work_logs):
            created.append(create_payment_period_entry(
                db,
                period_id=period.id,
                labourer_id=as_uuid(acc.labourer_id),
                days_worked=acc.days_worked,
                open_meters=to_money(acc.open_meters),
                close_meters=to_money(acc.close_meters),
                total_meters=to_money(acc.total_meters),
                total_earnings=to_money(acc.earnings),
            ))
        db.flush()
        return created, True
    except IntegrityError:
        db.rollback()
        logger.info("payment_period_already_materialized", period_id=str(period.id))
        return get_payment_period_entries(db, period.id), False


def update_payment_period(db: Session, period_id, data: dict, user_id) -> Tuple[PaymentPeriod, dict]:
    """
    Apply a status change (and optional date edits while still open).

    Returns the period and a small result dict with ``materialized`` (entries
    created by this call) and ``entry_count``.
    """
    period = get_payment_period(db, period_id)
    if period is None:
        raise NotFoundError("Payment period", period_id)

    before = audit.snapshot(period)
    target = data.get("status") or period.status
    if target not in PERIOD_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(PERIOD_STATUSES)}")
    if not can_transition(period.status, target):
        raise ConflictError(f"Cannot move payment period from {period.status} to {target}")

    if data.get("start_date") or data.get("end_date"):
        if period.status != "open" or target != "open":
            raise ConflictError("Dates can only be changed while the period is open")
        start = to_calendar_date(data.get("start_date") or period.start_date)
        end = to_calendar_date(data.get("end_date") or period.end_date)
        if start > end:
            raise ValidationError("start_date must not be after end_date")
        period.start_date = start
        period.end_date = end
        period.total_amount = _sum_work_log_earnings(db, period.project_id, start, end)

    result = {"materialized": False, "entry_count": None}
    now = datetime.utcnow()
    uid = as_uuid(user_id) if user_id else None

    if target == "submitted":
        entries, created = materialize_entries(db, period)
        # A rolled-back race expires the period; reload before writing
        period = get_payment_period(db, period_id)
        period.total_amount = _sum_entries(entries)
        result = {"materialized": created, "entry_count": len(entries)}
        if period.status != "submitted":
            period.submitted_by = uid
            period.submitted_at = now
    elif target == "approved" and period.status != "approved":
        period.approved_by = uid
        period.approved_at = now

    previous_status = period.status
    period.status = target
    period.updated_at = now
    db.commit()
    db.refresh(period)

    action = _STATUS_ACTIONS.get(target) if target != previous_status else None
    if action:
        audit.log_action(db, action, "payment_period", period.id, user_id, {
            "from_status": previous_status,
            "to_status": target,
            "total_amount": format(to_money(period.total_amount), "f"),
            "entry_count": result["entry_count"],
        })
    else:
        audit.log_update(db, "payment_period", period.id, user_id, before, audit.snapshot(period))

    logger.info(
        "payment_period_updated",
        period_id=str(period.id),
        status=period.status,
        materialized=result["materialized"],
    )
    return period, result


def submit_payment_period(db: Session, period_id, user_id) -> Tuple[PaymentPeriod, dict]:
    return update_payment_period(db, period_id, {"status": "submitted"}, user_id)


def get_period_or_404(db: Session, period_id) -> PaymentPeriod:
    period = get_payment_period(db, period_id)
    if period is None:
        raise NotFoundError("Payment period", period_id)
    return period


def period_entries_with_names(db: Session, period_id) -> List[dict]:
    get_period_or_404(db, period_id)
    rows = (
        db.query(PaymentPeriodEntry, Labourer)
        .outerjoin(Labourer, Labourer.id == PaymentPeriodEntry.labourer_id)
        .filter(PaymentPeriodEntry.period_id == as_uuid(period_id))
        .all()
    )
    out = []
    for entry, labourer in rows:
        out.append({
            "id": str(entry.id),
            "period_id": str(entry.period_id),
            "labourer_id": str(entry.labourer_id),
            "labourer_name": labourer.full_name if labourer else None,
            "id_number": labourer.id_number if labourer else None,
            "days_worked": entry.days_worked,
            "open_meters": format(to_money(entry.open_meters), "f"),
            "close_meters": format(to_money(entry.close_meters), "f"),
            "total_meters": format(to_money(entry.total_meters), "f"),
            "total_earnings": format(to_money(entry.total_earnings), "f"),
        })
    out.sort(key=lambda e: (e["labourer_name"] or "").lower())
    return out

