from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import NotFoundError
from ..models.models import AuditLog
from ..auth.security import ADMIN_TIER, require_roles
from ..services.audit import get_audit_logs
from ..services.store import as_uuid


router = APIRouter(prefix="/audit-logs", tags=["audit"])


def _serialize(log: AuditLog) -> dict:
    return {
        "id": str(log.id),
        "action": log.action,
        "entity_type": log.entity_type,
        "entity_id": log.entity_id,
        "user_id": str(log.user_id) if log.user_id else None,
        "user_name": log.user_name,
        "user_email": log.user_email,
        "changes": log.changes,
        "metadata": log.meta,
        "timestamp": log.timestamp.isoformat() if log.timestamp else None,
    }


@router.get("")
def list_audit_logs(
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    user_id: Optional[str] = None,
    action: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    _=Depends(require_roles(*ADMIN_TIER)),
):
    if user_id:
        user_id = str(as_uuid(user_id, "User"))
    logs = get_audit_logs(db, entity_type, entity_id, user_id, action, start, end, limit, offset)
    return [_serialize(l) for l in logs]


@router.get("/{log_id}")
def get_audit_log(log_id: str, db: Session = Depends(get_db), _=Depends(require_roles(*ADMIN_TIER))):
    log = db.get(AuditLog, as_uuid(log_id, "Audit log"))
    if log is None:
        raise NotFoundError("Audit log", log_id)
    return _serialize(log)
