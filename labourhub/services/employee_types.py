from datetime import datetime
from typing import Tuple

from sqlalchemy.orm import Session

from ..errors import ValidationError
from ..models.models import EmployeeType
from . import audit
from .store import get_or_404


def list_employee_types(db: Session, include_inactive: bool = False):
    query = db.query(EmployeeType)
    if not include_inactive:
        query = query.filter(EmployeeType.is_active.is_(True))
    return query.order_by(EmployeeType.name).all()


def create_employee_type(db: Session, data: dict, user_id) -> EmployeeType:
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required")
    now = datetime.utcnow()
    employee_type = EmployeeType(
        name=name,
        description=data.get("description"),
        is_active=True if data.get("is_active") is None else bool(data["is_active"]),
        created_at=now,
        updated_at=now,
    )
    db.add(employee_type)
    db.commit()
    db.refresh(employee_type)
    audit.log_create(db, "employee_type", employee_type.id, user_id, audit.snapshot(employee_type))
    return employee_type


def update_employee_type(db: Session, type_id, data: dict, user_id) -> EmployeeType:
    employee_type = get_or_404(db, EmployeeType, type_id, "Employee type")
    before = audit.snapshot(employee_type)
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name must not be empty")
        employee_type.name = name
    if "description" in data:
        employee_type.description = data["description"]
    if data.get("is_active") is not None:
        employee_type.is_active = bool(data["is_active"])
    employee_type.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(employee_type)
    audit.log_update(db, "employee_type", employee_type.id, user_id, before, audit.snapshot(employee_type))
    return employee_type


def deactivate_employee_type(db: Session, type_id, user_id) -> Tuple[EmployeeType, bool]:
    """
    Soft delete. Returns the type and whether this call deactivated it;
    deactivating an inactive type is a no-op.
    """
    employee_type = get_or_404(db, EmployeeType, type_id, "Employee type")
    if not employee_type.is_active:
        return employee_type, False
    before = audit.snapshot(employee_type)
    employee_type.is_active = False
    employee_type.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(employee_type)
    audit.log_delete(db, "employee_type", employee_type.id, user_id, before)
    return employee_type, True
