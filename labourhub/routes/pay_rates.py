from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import PayRate, Project, User
from ..auth.security import ADMIN_TIER, get_current_user, require_roles
from ..schemas.payroll import PayRateCreate
from ..services.pay_rates import create_pay_rate, resolve_rate, to_money
from ..services.store import get_or_404, get_pay_rates
from ..services.time_rules import local_today


router = APIRouter(tags=["pay-rates"])


def _serialize(rate: PayRate) -> dict:
    return {
        "id": str(rate.id),
        "project_id": str(rate.project_id),
        "employee_type_id": str(rate.employee_type_id),
        "category": rate.category,
        "category_name": rate.category_name,
        "amount": format(to_money(rate.amount), "f"),
        "unit": rate.unit,
        "effective_date": rate.effective_date.isoformat(),
        "created_by": str(rate.created_by),
        "created_at": rate.created_at.isoformat() if rate.created_at else None,
    }


@router.get("/projects/{project_id}/pay-rates")
def list_pay_rates(project_id: str, db: Session = Depends(get_db), _=Depends(get_current_user)):
    get_or_404(db, Project, project_id, "Project")
    return [_serialize(r) for r in get_pay_rates(db, project_id)]


@router.post("/pay-rates", status_code=201)
def post_pay_rate(payload: PayRateCreate, db: Session = Depends(get_db), user: User = Depends(require_roles(*ADMIN_TIER, "project_manager"))):
    return _serialize(create_pay_rate(db, payload.model_dump(), user.id))


@router.get("/pay-rates/resolve")
def get_resolved_rate(
    project_id: str,
    employee_type_id: str,
    category: str,
    as_of: Optional[date] = None,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    get_or_404(db, Project, project_id, "Project")
    rate = resolve_rate(db, project_id, employee_type_id, category, as_of or local_today())
    return {"rate": _serialize(rate) if rate else None}
