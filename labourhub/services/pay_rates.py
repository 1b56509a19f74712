"""
Pay rate resolution.

Rates are time-versioned rows: a new rate is appended with an effective
date and the rate in force on a given day is the one with the greatest
effective date not after that day.
"""
import uuid
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Dict, List

from sqlalchemy.orm import Session

from ..errors import ValidationError
from ..models.models import EmployeeType, PayRate, Project, RATE_CATEGORIES, RATE_UNITS
from . import audit
from .store import as_uuid, get_or_404, get_pay_rates


CENT = Decimal("0.01")
ZERO = Decimal("0")

OPEN_TRENCHING = "open_trenching"
CLOSE_TRENCHING = "close_trenching"


def to_money(value) -> Decimal:
    """Round half-up to cents."""
    if value is None:
        return ZERO.quantize(CENT)
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _rate_order(rate: PayRate):
    created = rate.created_at.replace(tzinfo=None) if rate.created_at else datetime.min
    return rate.effective_date, created


def select_effective_rate(
    rates: Iterable[PayRate],
    employee_type_id,
    category: str,
    as_of: date,
) -> Optional[PayRate]:
    """
    Pick the rate in force on ``as_of`` from any iterable of rates.

    ``employee_type_id=None`` matches any employee type. Ties on effective
    date go to the most recently created row.
    """
    best = None
    for rate in rates:
        if rate.category != category:
            continue
        if employee_type_id is not None and rate.employee_type_id != employee_type_id:
            continue
        if rate.effective_date > as_of:
            continue
        if best is None or _rate_order(rate) > _rate_order(best):
            best = rate
    return best


def resolve_rate(db: Session, project_id, employee_type_id, category: str, as_of: date) -> Optional[PayRate]:
    type_id = as_uuid(employee_type_id, "Employee type") if employee_type_id is not None else None
    return select_effective_rate(get_pay_rates(db, project_id), type_id, category, as_of)


def rate_amount(rate: Optional[PayRate], fallback=None) -> Decimal:
    """Amount of a resolved rate, else the fallback, else zero."""
    if rate is not None:
        return to_money(rate.amount)
    if fallback is not None:
        return to_money(fallback)
    return to_money(ZERO)


def resolve_work_rates(db: Session, project: Project, employee_type_id, as_of: date) -> Dict[str, Decimal]:
    """Open and close trenching rates for one labourer type on one day."""
    rates = get_pay_rates(db, project.id)
    return {
        OPEN_TRENCHING: rate_amount(
            select_effective_rate(rates, employee_type_id, OPEN_TRENCHING, as_of),
            project.default_open_rate,
        ),
        CLOSE_TRENCHING: rate_amount(
            select_effective_rate(rates, employee_type_id, CLOSE_TRENCHING, as_of),
            project.default_close_rate,
        ),
    }


def compute_earnings(open_meters, close_meters, open_rate, close_rate) -> Decimal:
    return to_money(
        to_money(open_meters) * to_money(open_rate) + to_money(close_meters) * to_money(close_rate)
    )


def create_pay_rate(db: Session, data: dict, user_id) -> PayRate:
    """Append a rate. Existing rates and stored earnings are left alone."""
    get_or_404(db, Project, data.get("project_id"), "Project")
    get_or_404(db, EmployeeType, data.get("employee_type_id"), "Employee type")

    category = data.get("category")
    if category not in RATE_CATEGORIES:
        raise ValidationError(f"category must be one of {', '.join(RATE_CATEGORIES)}")
    unit = data.get("unit") or "per_meter"
    if unit not in RATE_UNITS:
        raise ValidationError(f"unit must be one of {', '.join(RATE_UNITS)}")
    if category == "custom" and not (data.get("category_name") or "").strip():
        raise ValidationError("category_name is required for custom rates")

    amount = to_money(data.get("amount"))
    if amount < ZERO:
        raise ValidationError("amount must not be negative")
    effective_date = data.get("effective_date")
    if effective_date is None:
        raise ValidationError("effective_date is required")

    rate = PayRate(
        project_id=as_uuid(data["project_id"]),
        employee_type_id=as_uuid(data["employee_type_id"]),
        category=category,
        category_name=data.get("category_name") if category == "custom" else None,
        amount=amount,
        unit=unit,
        effective_date=effective_date,
        created_by=as_uuid(user_id),
    )
    db.add(rate)
    db.commit()
    db.refresh(rate)
    audit.log_create(db, "pay_rate", rate.id, user_id, audit.snapshot(rate))
    return rate


def create_default_rates(db: Session, project: Project, user_id, effective_date: date) -> List[PayRate]:
    """
    Stage one per-metre rate per active employee type for each default the
    project carries. The caller commits.
    """
    defaults = (
        (OPEN_TRENCHING, project.default_open_rate),
        (CLOSE_TRENCHING, project.default_close_rate),
    )
    employee_types = db.query(EmployeeType).filter(EmployeeType.is_active.is_(True)).all()
    created = []
    for employee_type in employee_types:
        for category, amount in defaults:
            if amount is None:
                continue
            rate = PayRate(
                project_id=project.id,
                employee_type_id=employee_type.id,
                category=category,
                amount=to_money(amount),
                unit="per_meter",
                effective_date=effective_date,
                created_by=uuid.UUID(str(user_id)),
            )
            db.add(rate)
            created.append(rate)
    return created
