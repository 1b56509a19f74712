"""
Audit logging service.
Append-only audit log written as a best-effort side effect of every mutation.
"""
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Dict, Any, Iterable

import structlog
from sqlalchemy import inspect
from sqlalchemy.orm import Session

from ..models.models import AuditLog, User


logger = structlog.get_logger(__name__)

# Bookkeeping columns that never count as a change
IGNORED_DIFF_FIELDS = ("updated_at",)


@dataclass
class AuditEvent:
    action: str  # CREATE|UPDATE|DELETE|ASSIGN|SUBMIT|APPROVE|REJECT
    entity_type: str
    entity_id: Any
    user_id: Optional[Any] = None
    changes: Optional[Dict] = None
    metadata: Optional[Dict] = field(default=None)


def _json_safe(value: Any) -> Any:
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


def snapshot(obj, exclude: Iterable[str] = ("password_hash",)) -> Dict[str, Any]:
    """JSON-safe dict of an ORM object's column values."""
    mapper = inspect(obj).mapper
    out: Dict[str, Any] = {}
    for attr in mapper.column_attrs:
        if attr.key in exclude:
            continue
        out[attr.key] = _json_safe(getattr(obj, attr.key))
    return out


def compute_diff(before: Dict, after: Dict, ignore: Iterable[str] = IGNORED_DIFF_FIELDS) -> Dict:
    """
    Compute a diff between two snapshots.

    Only keys present in ``after`` are considered, and only those whose value
    changed are kept, each as ``{"old": ..., "new": ...}``.
    """
    diff = {}
    for key, after_val in after.items():
        if key in ignore:
            continue
        before_val = before.get(key)
        if before_val != after_val:
            diff[key] = {
                "old": before_val,
                "new": after_val,
            }
    return diff


def _user_info(db: Session, user_id) -> Dict[str, str]:
    user = db.get(User, user_id) if user_id else None
    if not user:
        return {"user_name": "Unknown", "user_email": ""}
    return {
        "user_name": user.full_name or "Unknown",
        "user_email": user.email or "",
    }


def create_audit_log(db: Session, event: AuditEvent) -> AuditLog:
    """
    Create an append-only audit log entry.

    The acting user's name and email are copied onto the row so later
    profile changes do not rewrite history.
    """
    user_id = uuid.UUID(str(event.user_id)) if event.user_id else None
    audit_log = AuditLog(
        action=event.action,
        entity_type=event.entity_type,
        entity_id=str(event.entity_id),
        user_id=user_id,
        changes=_json_safe(event.changes) if event.changes is not None else None,
        meta=_json_safe(event.metadata) if event.metadata is not None else None,
        timestamp=datetime.utcnow(),
        **_user_info(db, user_id),
    )
    db.add(audit_log)
    db.commit()
    return audit_log


def record_audit_event(db: Session, event: AuditEvent) -> Optional[AuditLog]:
    """
    Best-effort audit write.

    Call after the primary change is committed. Any failure is rolled back
    and logged; it never propagates to the caller.
    """
    try:
        return create_audit_log(db, event)
    except Exception as e:
        db.rollback()
        logger.error(
            "audit_log_failed",
            action=event.action,
            entity_type=event.entity_type,
            entity_id=str(event.entity_id),
            error=str(e),
        )
        return None


def log_create(db: Session, entity_type: str, entity_id, user_id, new_data: Dict, metadata: Optional[Dict] = None):
    return record_audit_event(db, AuditEvent("CREATE", entity_type, entity_id, user_id, {"new": new_data}, metadata))


def log_update(db: Session, entity_type: str, entity_id, user_id, old_data: Dict, new_data: Dict, metadata: Optional[Dict] = None):
    changes = compute_diff(old_data, new_data)
    if not changes:
        return None
    return record_audit_event(db, AuditEvent("UPDATE", entity_type, entity_id, user_id, changes, metadata))


def log_delete(db: Session, entity_type: str, entity_id, user_id, deleted_data: Dict, metadata: Optional[Dict] = None):
    return record_audit_event(db, AuditEvent("DELETE", entity_type, entity_id, user_id, {"deleted": deleted_data}, metadata))


def log_action(db: Session, action: str, entity_type: str, entity_id, user_id, metadata: Optional[Dict] = None):
    """ASSIGN, SUBMIT, APPROVE and REJECT carry metadata only."""
    return record_audit_event(db, AuditEvent(action, entity_type, entity_id, user_id, None, metadata))


def get_audit_logs(
    db: Session,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    user_id: Optional[str] = None,
    action: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 100,
    offset: int = 0
) -> list:
    """
    Get audit logs with optional filtering, newest first.
    """
    query = db.query(AuditLog)

    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id:
        query = query.filter(AuditLog.entity_id == str(entity_id))
    if user_id:
        query = query.filter(AuditLog.user_id == uuid.UUID(str(user_id)))
    if action:
        query = query.filter(AuditLog.action == action.upper())
    if start:
        query = query.filter(AuditLog.timestamp >= start)
    if end:
        query = query.filter(AuditLog.timestamp <= end)

    query = query.order_by(AuditLog.timestamp.desc())
    query = query.limit(limit).offset(offset)

    return query.all()
