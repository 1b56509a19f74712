from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import EmployeeType, User
from ..auth.security import ADMIN_TIER, get_current_user, require_roles
from ..schemas.projects import EmployeeTypeCreate, EmployeeTypeUpdate
from ..services.employee_types import (
    create_employee_type,
    deactivate_employee_type,
    list_employee_types,
    update_employee_type,
)


router = APIRouter(prefix="/employee-types", tags=["employee-types"])


def _serialize(t: EmployeeType) -> dict:
    return {
        "id": str(t.id),
        "name": t.name,
        "description": t.description,
        "is_active": t.is_active,
        "created_at": t.created_at.isoformat() if t.created_at else None,
    }


@router.get("")
def get_employee_types(db: Session = Depends(get_db), _=Depends(get_current_user)):
    return [_serialize(t) for t in list_employee_types(db)]


@router.post("", status_code=201)
def post_employee_type(payload: EmployeeTypeCreate, db: Session = Depends(get_db), user: User = Depends(require_roles(*ADMIN_TIER))):
    return _serialize(create_employee_type(db, payload.model_dump(), user.id))


@router.put("/{type_id}")
def put_employee_type(type_id: str, payload: EmployeeTypeUpdate, db: Session = Depends(get_db), user: User = Depends(require_roles(*ADMIN_TIER))):
    return _serialize(update_employee_type(db, type_id, payload.model_dump(exclude_unset=True), user.id))


@router.delete("/{type_id}")
def delete_employee_type(type_id: str, db: Session = Depends(get_db), user: User = Depends(require_roles(*ADMIN_TIER))):
    employee_type, deactivated = deactivate_employee_type(db, type_id, user.id)
    if not deactivated:
        return {"message": "Employee type already deactivated", "already_deactivated": True}
    return {"message": "Employee type deactivated successfully", "already_deactivated": False}
