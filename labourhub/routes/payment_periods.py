from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import PaymentPeriod, Project, User
from ..auth.security import ADMIN_TIER, get_current_user, require_roles
from ..schemas.payroll import PaymentPeriodCreate, PaymentPeriodUpdate
from ..services.payment_periods import (
    create_payment_period,
    get_period_or_404,
    period_entries_with_names,
    update_payment_period,
)
from ..services.pay_rates import to_money
from ..services.store import get_or_404, get_payment_periods


router = APIRouter(tags=["payment-periods"])


def _serialize(period: PaymentPeriod) -> dict:
    return {
        "id": str(period.id),
        "project_id": str(period.project_id),
        "start_date": period.start_date.isoformat(),
        "end_date": period.end_date.isoformat(),
        "status": period.status,
        "total_amount": format(to_money(period.total_amount), "f"),
        "submitted_by": str(period.submitted_by) if period.submitted_by else None,
        "submitted_at": period.submitted_at.isoformat() if period.submitted_at else None,
        "approved_by": str(period.approved_by) if period.approved_by else None,
        "approved_at": period.approved_at.isoformat() if period.approved_at else None,
        "created_at": period.created_at.isoformat() if period.created_at else None,
    }


@router.get("/projects/{project_id}/payment-periods")
def list_payment_periods(project_id: str, db: Session = Depends(get_db), _=Depends(get_current_user)):
    get_or_404(db, Project, project_id, "Project")
    return [_serialize(p) for p in get_payment_periods(db, project_id)]


@router.get("/payment-periods/{period_id}")
def get_payment_period(period_id: str, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return _serialize(get_period_or_404(db, period_id))


@router.get("/payment-periods/{period_id}/entries")
def get_payment_period_entries(period_id: str, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return period_entries_with_names(db, period_id)


@router.post("/payment-periods", status_code=201)
def post_payment_period(
    payload: PaymentPeriodCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*ADMIN_TIER, "project_manager")),
):
    period = create_payment_period(db, payload.project_id, payload.start_date, payload.end_date, user.id)
    return _serialize(period)


@router.put("/payment-periods/{period_id}")
def put_payment_period(
    period_id: str,
    payload: PaymentPeriodUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*ADMIN_TIER, "project_manager")),
):
    period, result = update_payment_period(db, period_id, payload.model_dump(exclude_unset=True), user.id)
    out = _serialize(period)
    out.update(result)
    return out
